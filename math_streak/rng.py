"""Random draws used by the problem generator."""

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def random_int(low: int, high: int) -> int:
    """Draw an integer uniformly from the inclusive range [low, high]."""
    if low > high:
        raise ValueError(f"Empty range: [{low}, {high}]")
    return random.randint(low, high)


def random_element(items: Sequence[T]) -> T:
    """Pick one element uniformly from a non-empty sequence."""
    if not items:
        raise ValueError("Cannot choose from an empty sequence")
    return items[random_int(0, len(items) - 1)]


def shuffled(items: Sequence[T]) -> list[T]:
    """Return a uniformly permuted copy of the items."""
    result = list(items)
    random.shuffle(result)
    return result
