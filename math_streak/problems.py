"""
Core problem generator for the Math Streak drill.

This module produces single-step arithmetic facts (addition, subtraction,
multiplication and division) that satisfy a configurable set of numeric
constraints. Any slot of the equation can be hidden: the result, or one of
the operands, in which case the hidden operand is solved for by inverting
the operation.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache

from math_streak.config import MAX_GENERATION_ATTEMPTS
from math_streak.rng import random_element, random_int, shuffled

logger = logging.getLogger(__name__)


class ConfigurationInfeasibleError(ValueError):
    """Raised when no problem can satisfy a difficulty configuration."""


class ProblemVerificationError(AssertionError):
    """Raised when a generated problem does not re-evaluate to its answer."""


class Operation(Enum):
    """Supported math operations."""

    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    MULTIPLICATION = "multiplication"
    DIVISION = "division"

    @property
    def symbol(self) -> str:
        """Symbol used when rendering an equation."""
        return OPERATION_SYMBOLS[self]


OPERATION_SYMBOLS: dict[Operation, str] = {
    Operation.ADDITION: "+",
    Operation.SUBTRACTION: "-",
    Operation.MULTIPLICATION: "×",
    Operation.DIVISION: "÷",
}


@dataclass(frozen=True)
class UnknownPosition:
    """
    The slot of an equation the player has to supply.

    Either the result (``operand_index`` is None) or the operand at a
    zero-based index. The textual forms are ``"result"`` and
    ``"operand-<index>"``.
    """

    operand_index: int | None = None

    @property
    def is_result(self) -> bool:
        return self.operand_index is None

    @classmethod
    def operand(cls, index: int) -> "UnknownPosition":
        if index < 0:
            raise ValueError(f"Operand index must be non-negative, got {index}")
        return cls(operand_index=index)

    @classmethod
    def parse(cls, text: str) -> "UnknownPosition":
        """Parse ``"result"`` or ``"operand-<index>"``."""
        if not isinstance(text, str):
            raise ValueError(f"Unknown position must be text, got {text!r}")
        if text == "result":
            return cls()
        prefix = "operand-"
        if text.startswith(prefix):
            try:
                return cls.operand(int(text[len(prefix) :]))
            except ValueError:
                pass
        raise ValueError(f"Unknown position: {text!r}")

    def __str__(self) -> str:
        if self.is_result:
            return "result"
        return f"operand-{self.operand_index}"


RESULT = UnknownPosition()


@dataclass(frozen=True)
class Constraints:
    """Numeric bounds every generated problem must respect."""

    max_result: int
    min_operand: int = 0
    max_operand: int = 10
    allow_zero: bool = True

    def __post_init__(self) -> None:
        if min(self.max_result, self.min_operand, self.max_operand) < 0:
            raise ValueError(f"Constraints must be non-negative: {self}")
        if self.min_operand > self.max_operand:
            raise ValueError(
                f"min_operand ({self.min_operand}) exceeds max_operand ({self.max_operand})"
            )

    @property
    def lowest_operand(self) -> int:
        """Smallest operand value allowed once the zero policy is applied."""
        if self.allow_zero:
            return self.min_operand
        return max(self.min_operand, 1)


@dataclass(frozen=True)
class DifficultyConfig:
    """Configuration describing which problems the generator may produce."""

    name: str
    operations: tuple[Operation, ...]
    operand_count: int = 2
    unknown_positions: tuple[UnknownPosition, ...] = (RESULT,)
    constraints: Constraints = field(default_factory=lambda: Constraints(max_result=10))

    def __post_init__(self) -> None:
        # Accept any iterable, keep the first occurrence of each entry
        object.__setattr__(self, "operations", tuple(dict.fromkeys(self.operations)))
        object.__setattr__(
            self, "unknown_positions", tuple(dict.fromkeys(self.unknown_positions))
        )

        if not self.operations:
            raise ValueError(f"Config {self.name!r} has no operations")
        if not self.unknown_positions:
            raise ValueError(f"Config {self.name!r} has no unknown positions")
        if self.operand_count < 2:
            raise ValueError(f"operand_count must be at least 2, got {self.operand_count}")
        if self.operand_count > 2 and self.operations != (Operation.ADDITION,):
            raise ValueError(
                f"More than two operands is only supported for addition, "
                f"got {[op.value for op in self.operations]}"
            )
        for position in self.unknown_positions:
            if not position.is_result and position.operand_index >= self.operand_count:
                raise ValueError(
                    f"Unknown position {position} is out of range for "
                    f"{self.operand_count} operands"
                )


@dataclass(frozen=True)
class Problem:
    """A single arithmetic problem with one hidden slot."""

    operation: Operation
    operands: tuple[int, ...]  # Full equation, including the hidden operand
    unknown_position: UnknownPosition
    answer: int  # Value of the hidden slot
    display_string: str  # e.g. "3 + 4 = ?"

    @property
    def result(self) -> int:
        """Result of the full equation."""
        return evaluate(self.operation, self.operands)

    def check_answer(self, answer: int) -> bool:
        """Check if the provided answer is correct."""
        return answer == self.answer


# Initial difficulty configuration (addition, sum <= 10)
DEFAULT_CONFIG = DifficultyConfig(
    name="Kindergarten Addition",
    operations=(Operation.ADDITION,),
    operand_count=2,
    unknown_positions=(RESULT,),
    constraints=Constraints(max_result=10, min_operand=0, max_operand=10),
)

DIFFICULTY_PRESETS: dict[str, DifficultyConfig] = {
    DEFAULT_CONFIG.name: DEFAULT_CONFIG,
    "Addition to 20": DifficultyConfig(
        name="Addition to 20",
        operations=(Operation.ADDITION,),
        constraints=Constraints(max_result=20, min_operand=0, max_operand=20),
    ),
    "Missing Addend": DifficultyConfig(
        name="Missing Addend",
        operations=(Operation.ADDITION,),
        unknown_positions=(UnknownPosition.operand(0), UnknownPosition.operand(1)),
        constraints=Constraints(max_result=10, min_operand=0, max_operand=10),
    ),
    "Subtraction within 10": DifficultyConfig(
        name="Subtraction within 10",
        operations=(Operation.SUBTRACTION,),
        constraints=Constraints(max_result=10, min_operand=0, max_operand=10),
    ),
    "Three Addends": DifficultyConfig(
        name="Three Addends",
        operations=(Operation.ADDITION,),
        operand_count=3,
        constraints=Constraints(max_result=20, min_operand=1, max_operand=10),
    ),
    "Times Tables": DifficultyConfig(
        name="Times Tables",
        operations=(Operation.MULTIPLICATION,),
        constraints=Constraints(max_result=100, min_operand=1, max_operand=10),
    ),
    "Division Facts": DifficultyConfig(
        name="Division Facts",
        operations=(Operation.DIVISION,),
        constraints=Constraints(max_result=10, min_operand=1, max_operand=100),
    ),
    "Mixed Facts": DifficultyConfig(
        name="Mixed Facts",
        operations=(
            Operation.ADDITION,
            Operation.SUBTRACTION,
            Operation.MULTIPLICATION,
            Operation.DIVISION,
        ),
        unknown_positions=(RESULT, UnknownPosition.operand(0), UnknownPosition.operand(1)),
        constraints=Constraints(max_result=20, min_operand=0, max_operand=20),
    ),
}


def get_preset(name: str) -> DifficultyConfig:
    """Get a named difficulty configuration."""
    if name not in DIFFICULTY_PRESETS:
        raise ValueError(
            f"Unknown difficulty: {name!r}. Available: {list(DIFFICULTY_PRESETS.keys())}"
        )
    return DIFFICULTY_PRESETS[name]


# ============================================================================
# Evaluation and display
# ============================================================================


def _divide_exact(dividend: int, divisor: int) -> int:
    if divisor == 0:
        raise ZeroDivisionError(f"{dividend} ÷ 0")
    if dividend % divisor:
        raise ValueError(f"{dividend} ÷ {divisor} is not a whole number")
    return dividend // divisor


_APPLY: dict[Operation, Callable[[int, int], int]] = {
    Operation.ADDITION: lambda a, b: a + b,
    Operation.SUBTRACTION: lambda a, b: a - b,
    Operation.MULTIPLICATION: lambda a, b: a * b,
    Operation.DIVISION: _divide_exact,
}


def evaluate(operation: Operation, operands: Sequence[int]) -> int:
    """
    Evaluate an equation left to right.

    Raises:
        ValueError: If fewer than two operands are given, or a division
                    does not produce a whole number.
        ZeroDivisionError: If a divisor is zero.
    """
    if len(operands) < 2:
        raise ValueError(f"Need at least two operands, got {list(operands)}")
    apply = _APPLY[operation]
    total = operands[0]
    for value in operands[1:]:
        total = apply(total, value)
    return total


def format_display(
    operation: Operation, operands: Sequence[int], unknown_position: UnknownPosition
) -> str:
    """
    Render an equation with the hidden slot replaced by ``?``.

    Examples: ``"3 + 4 = ?"`` when the result is hidden,
    ``"? × 4 = 12"`` when the first operand is hidden.
    """
    shown = [str(value) for value in operands]
    if unknown_position.is_result:
        result_text = "?"
    else:
        shown[unknown_position.operand_index] = "?"
        result_text = str(evaluate(operation, operands))
    return f" {operation.symbol} ".join(shown) + f" = {result_text}"


def verify_problem(problem: Problem, config: DifficultyConfig | None = None) -> None:
    """
    Re-evaluate a problem independently and check it against its answer.

    Args:
        problem: The problem to check.
        config: When given, the problem must also respect its constraints.

    Raises:
        ProblemVerificationError: If any invariant does not hold.
    """
    try:
        result = evaluate(problem.operation, problem.operands)
    except (ValueError, ZeroDivisionError) as e:
        raise ProblemVerificationError(f"{problem.display_string}: {e}") from e

    position = problem.unknown_position
    if position.is_result:
        hidden = result
    elif position.operand_index < len(problem.operands):
        hidden = problem.operands[position.operand_index]
    else:
        raise ProblemVerificationError(f"{position} is out of range for {problem.operands}")

    if hidden != problem.answer:
        raise ProblemVerificationError(
            f"{problem.display_string}: stated answer {problem.answer}, equation gives {hidden}"
        )
    if problem.display_string.count("?") != 1:
        raise ProblemVerificationError(f"{problem.display_string!r} must contain exactly one '?'")
    if problem.display_string != format_display(problem.operation, problem.operands, position):
        raise ProblemVerificationError(f"{problem.display_string!r} does not match its operands")

    if config is None:
        return

    c = config.constraints
    if any(not c.lowest_operand <= value <= c.max_operand for value in problem.operands):
        raise ProblemVerificationError(
            f"{problem.display_string}: operands outside [{c.lowest_operand}, {c.max_operand}]"
        )
    if not 0 <= result <= c.max_result:
        raise ProblemVerificationError(
            f"{problem.display_string}: result {result} outside [0, {c.max_result}]"
        )


# ============================================================================
# Forward generation (result unknown)
# ============================================================================


@lru_cache(maxsize=32)
def addition_pairs(
    max_result: int, low: int, high: int
) -> tuple[tuple[int, tuple[tuple[int, int], ...]], ...]:
    """
    Lookup table of every ordered operand pair per achievable sum.

    Returns:
        ``(sum, pairs)`` entries for each sum in ``1..max_result`` that has at
        least one pair with both operands in ``[low, high]``.
    """
    table = []
    for total in range(1, max_result + 1):
        first_values = range(max(low, total - high), min(high, total - low) + 1)
        pairs = tuple((first, total - first) for first in first_values)
        if pairs:
            table.append((total, pairs))
    return tuple(table)


def _operand_range(config: DifficultyConfig) -> tuple[int, int]:
    c = config.constraints
    if c.lowest_operand > c.max_operand:
        raise ConfigurationInfeasibleError(
            f"Config {config.name!r}: no operand value allowed in "
            f"[{c.lowest_operand}, {c.max_operand}]"
        )
    return c.lowest_operand, c.max_operand


def _previous_pair(previous: Problem | None) -> tuple[int, int] | None:
    if previous is None or previous.operation is not Operation.ADDITION:
        return None
    if len(previous.operands) != 2:
        return None
    return previous.operands[0], previous.operands[1]


def _draw_addition_pair(config: DifficultyConfig, previous: Problem | None) -> tuple[int, int]:
    """Uniform sum, then uniform pair for that sum, skipping the previous pair."""
    low, high = _operand_range(config)
    table = addition_pairs(config.constraints.max_result, low, high)
    if not table:
        raise ConfigurationInfeasibleError(
            f"Config {config.name!r}: no operand pair sums to at most "
            f"{config.constraints.max_result}"
        )

    excluded = _previous_pair(previous)
    _, pairs = random_element(table)
    pool = [pair for pair in pairs if pair != excluded]

    if not pool:
        alternatives = []
        for _, candidates in table:
            filtered = [pair for pair in candidates if pair != excluded]
            if filtered:
                alternatives.append(filtered)
        if alternatives:
            pool = random_element(alternatives)
        else:
            logger.debug(f"Only {excluded} is feasible for {config.name!r}; repeating it")
            pool = list(pairs)

    return random_element(pool)


def _allocate_addends(config: DifficultyConfig) -> tuple[int, ...]:
    """Split a random target sum over several operands, then shuffle them."""
    low, high = _operand_range(config)
    count = config.operand_count
    smallest_total = max(1, count * low)
    largest_total = min(config.constraints.max_result, count * high)
    if smallest_total > largest_total:
        raise ConfigurationInfeasibleError(
            f"Config {config.name!r}: {count} operands in [{low}, {high}] cannot sum "
            f"to at most {config.constraints.max_result}"
        )

    remaining = random_int(smallest_total, largest_total)
    values = []
    for slot in range(count - 1):
        slots_after = count - 1 - slot
        # Leave enough headroom for the remaining slots to stay in range
        lower = max(low, remaining - high * slots_after)
        upper = min(high, remaining - low * slots_after)
        value = random_int(lower, upper)
        values.append(value)
        remaining -= value
    values.append(remaining)

    return tuple(shuffled(values))


def _addition_operands(config: DifficultyConfig, previous: Problem | None) -> tuple[int, ...]:
    if config.operand_count == 2:
        return _draw_addition_pair(config, previous)
    return _allocate_addends(config)


def _subtraction_operands(config: DifficultyConfig, previous: Problem | None) -> tuple[int, ...]:
    """Result first so it is never negative, then subtrahend, minuend derived."""
    low, high = _operand_range(config)
    result = random_int(0, min(config.constraints.max_result, high - low))
    subtrahend = random_int(low, high)
    minuend = result + subtrahend
    if minuend > high:
        minuend = high
        subtrahend = minuend - result
    return minuend, subtrahend


def _multiplication_operands(
    config: DifficultyConfig, previous: Problem | None
) -> tuple[int, ...]:
    """First factor, then a second factor bounded so the product fits."""
    low, high = _operand_range(config)
    max_result = config.constraints.max_result

    # Only first factors that still admit a partner of at least `low`
    first_max = high if low == 0 else min(high, max_result // low)
    if first_max < low:
        raise ConfigurationInfeasibleError(
            f"Config {config.name!r}: {low} × {low} already exceeds {max_result}"
        )

    first = random_int(low, first_max)
    if first == 0:
        second = random_int(low, high)
    else:
        second = random_int(low, min(high, max_result // first))
    return first, second


def _divisor_span(quotient: int, low: int, high: int) -> tuple[int, int] | None:
    """Range of non-zero divisors keeping ``quotient × divisor`` in [low, high]."""
    if quotient == 0:
        if low > 0:
            return None
        span = (max(low, 1), high)
    else:
        span = (max(low, 1, -(-low // quotient)), high // quotient)
    return span if span[0] <= span[1] else None


def _division_operands(config: DifficultyConfig, previous: Problem | None) -> tuple[int, ...]:
    """Quotient first, then a non-zero divisor; the dividend is their product."""
    low, high = _operand_range(config)
    choices = []
    for quotient in range(min(config.constraints.max_result, high) + 1):
        span = _divisor_span(quotient, low, high)
        if span is not None:
            choices.append((quotient, span))
    if not choices:
        raise ConfigurationInfeasibleError(
            f"Config {config.name!r}: no whole-number division fits the constraints"
        )

    quotient, (divisor_low, divisor_high) = random_element(choices)
    divisor = random_int(divisor_low, divisor_high)
    return quotient * divisor, divisor


# Map operations to their operand generators
_OPERAND_GENERATORS: dict[
    Operation, Callable[[DifficultyConfig, Problem | None], tuple[int, ...]]
] = {
    Operation.ADDITION: _addition_operands,
    Operation.SUBTRACTION: _subtraction_operands,
    Operation.MULTIPLICATION: _multiplication_operands,
    Operation.DIVISION: _division_operands,
}


# ============================================================================
# Inverse solving (operand unknown)
# ============================================================================


def solve_for_operand(
    operation: Operation, result: int, known: Sequence[int], index: int
) -> int | None:
    """
    Solve ``operation`` for the operand at ``index``.

    Args:
        operation: The equation's operation.
        result: The visible result.
        known: The remaining operands in order, without the hidden one.
        index: Position of the hidden operand in the full equation.

    Returns:
        The hidden operand, or None when it is undefined, not a whole
        number, or not unique (``0 × ? = 0``, ``0 ÷ ? = 0``).
    """
    if operation is Operation.ADDITION:
        return result - sum(known)

    (other,) = known
    if operation is Operation.SUBTRACTION:
        # ? - other = result, or other - ? = result
        return result + other if index == 0 else other - result

    if operation is Operation.MULTIPLICATION:
        if other == 0 or result % other:
            return None
        return result // other

    if index == 0:
        # ? ÷ other = result
        return None if other == 0 else result * other
    # other ÷ ? = result
    if result == 0 or other % result:
        return None
    return other // result


def _generate_unknown_operand(
    config: DifficultyConfig,
    operation: Operation,
    position: UnknownPosition,
    previous: Problem | None,
) -> tuple[int, ...]:
    """
    Draw a target result and the known operands, then invert for the hidden one.

    Raises:
        ConfigurationInfeasibleError: If no acceptable operand is found
                                      within the retry budget.
    """
    low, high = _operand_range(config)
    index = position.operand_index
    generator = _OPERAND_GENERATORS[operation]

    for _ in range(MAX_GENERATION_ATTEMPTS):
        drawn = generator(config, previous)
        result = evaluate(operation, drawn)
        known = drawn[:index] + drawn[index + 1 :]

        solved = solve_for_operand(operation, result, known, index)
        if solved is None or not low <= solved <= high:
            continue
        return known[:index] + (solved,) + known[index:]

    raise ConfigurationInfeasibleError(
        f"Config {config.name!r}: could not solve {operation.value} for {position} "
        f"within {MAX_GENERATION_ATTEMPTS} attempts"
    )


# ============================================================================
# Public API
# ============================================================================


def _build_problem(
    operation: Operation, operands: tuple[int, ...], position: UnknownPosition
) -> Problem:
    if position.is_result:
        answer = evaluate(operation, operands)
    else:
        answer = operands[position.operand_index]
    return Problem(
        operation=operation,
        operands=tuple(operands),
        unknown_position=position,
        answer=answer,
        display_string=format_display(operation, operands, position),
    )


def _same_problem(problem: Problem, previous: Problem | None) -> bool:
    return (
        previous is not None
        and problem.operation is previous.operation
        and problem.operands == previous.operands
        and problem.unknown_position == previous.unknown_position
    )


def generate_problem(
    config: DifficultyConfig = DEFAULT_CONFIG,
    previous: Problem | None = None,
) -> Problem:
    """
    Generate a random problem satisfying the configuration.

    Args:
        config: Difficulty configuration. Defaults to DEFAULT_CONFIG.
        previous: The problem just answered. The next problem is never
                  identical to it when an alternative is feasible.

    Returns:
        A verified Problem instance.

    Raises:
        ConfigurationInfeasibleError: If the constraints admit no problem.
        ProblemVerificationError: If the generated problem fails its
                                  re-evaluation (a bug, never expected).
    """
    # Pairs found infeasible are dropped for the rest of this call
    candidates = [
        (operation, position)
        for operation in config.operations
        for position in config.unknown_positions
    ]
    problem: Problem | None = None
    last_error: ConfigurationInfeasibleError | None = None

    for _ in range(MAX_GENERATION_ATTEMPTS):
        if not candidates:
            break
        operation, position = random_element(candidates)

        try:
            if position.is_result:
                operands = _OPERAND_GENERATORS[operation](config, previous)
            else:
                operands = _generate_unknown_operand(config, operation, position, previous)
        except ConfigurationInfeasibleError as e:
            logger.debug(f"Config {config.name!r}: dropping {operation.value}/{position}: {e}")
            candidates.remove((operation, position))
            last_error = e
            continue

        problem = _build_problem(operation, operands, position)
        if not _same_problem(problem, previous):
            break

    if problem is None:
        raise ConfigurationInfeasibleError(
            f"Config {config.name!r}: no operation and unknown position admits a problem "
            f"({last_error})"
        ) from last_error
    if _same_problem(problem, previous):
        logger.debug(f"Config {config.name!r}: accepting repeat of {previous.display_string}")

    verify_problem(problem, config)
    return problem


def generate_problem_set(
    count: int = 10, config: DifficultyConfig = DEFAULT_CONFIG
) -> list[Problem]:
    """
    Generate a run of problems, each avoiding a repeat of the one before.

    Args:
        count: Number of problems to generate.
        config: Difficulty configuration.

    Returns:
        A list of Problem instances.
    """
    problems: list[Problem] = []
    previous = None
    for _ in range(count):
        previous = generate_problem(config, previous)
        problems.append(previous)
    return problems
