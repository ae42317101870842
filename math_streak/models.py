"""
Data models for the Math Streak drill.

This module defines the game state snapshot handed to observers, the
persisted user settings, and the per-session statistics.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from math_streak.problems import (
    RESULT,
    Constraints,
    DifficultyConfig,
    Operation,
    Problem,
    UnknownPosition,
)


class CelebrationPhase(Enum):
    """Animation phase gating input and advancement."""

    IDLE = "idle"
    REVEALING = "revealing"
    TRANSITIONING = "transitioning"


@dataclass(frozen=True)
class GameState:
    """
    Snapshot of a running game.

    The game owns exactly one current snapshot and replaces it on every
    transition; observers only ever see these frozen values.
    """

    current_problem: Problem
    current_answer: str = ""  # Typed digits only
    streak: int = 0
    high_score: int = 0
    is_answer_correct: bool | None = None  # None until an answer is evaluated
    celebration_phase: CelebrationPhase = CelebrationPhase.IDLE

    @property
    def is_idle(self) -> bool:
        return self.celebration_phase is CelebrationPhase.IDLE

    @property
    def is_new_high_score(self) -> bool:
        """True while the streak equals a non-zero high score."""
        return self.streak > 0 and self.streak == self.high_score


def _require_int(data: dict, key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Setting {key!r} must be an integer, got {value!r}")
    return value


@dataclass(frozen=True)
class UserSettings:
    """
    User-adjustable difficulty settings, persisted between sessions.
    """

    max_result: int = 10
    min_operand: int = 0
    max_operand: int = 10
    allow_zero: bool = True
    operations: tuple[Operation, ...] = (Operation.ADDITION,)
    unknown_positions: tuple[UnknownPosition, ...] = (RESULT,)

    def __post_init__(self) -> None:
        if not self.operations or not self.unknown_positions:
            raise ValueError("Settings need at least one operation and one unknown position")
        # Raises ValueError for inconsistent bounds
        self.constraints

    @property
    def constraints(self) -> Constraints:
        return Constraints(
            max_result=self.max_result,
            min_operand=self.min_operand,
            max_operand=self.max_operand,
            allow_zero=self.allow_zero,
        )

    @classmethod
    def from_config(cls, config: DifficultyConfig) -> "UserSettings":
        """Settings matching an existing configuration."""
        constraints = config.constraints
        return cls(
            max_result=constraints.max_result,
            min_operand=constraints.min_operand,
            max_operand=constraints.max_operand,
            allow_zero=constraints.allow_zero,
            operations=config.operations,
            unknown_positions=config.unknown_positions,
        )

    def apply_to(self, config: DifficultyConfig) -> DifficultyConfig:
        """
        Build the effective configuration from a base config.

        Raises:
            ValueError: If the settings do not fit the base config.
        """
        return replace(
            config,
            operations=self.operations,
            unknown_positions=self.unknown_positions,
            constraints=self.constraints,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return {
            "maxResult": self.max_result,
            "minOperand": self.min_operand,
            "maxOperand": self.max_operand,
            "allowZero": self.allow_zero,
            "operations": [op.value for op in self.operations],
            "unknownPositions": [str(position) for position in self.unknown_positions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserSettings":
        """
        Create from dictionary (from persistence).

        Missing fields fall back to the defaults so older stored settings
        keep loading.

        Raises:
            ValueError: If the stored data is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Settings must be an object, got {type(data).__name__}")

        defaults = cls()
        allow_zero = data.get("allowZero", defaults.allow_zero)
        if not isinstance(allow_zero, bool):
            raise ValueError(f"Setting 'allowZero' must be a boolean, got {allow_zero!r}")

        operations = data.get("operations", [op.value for op in defaults.operations])
        positions = data.get(
            "unknownPositions", [str(position) for position in defaults.unknown_positions]
        )
        if not isinstance(operations, list) or not isinstance(positions, list):
            raise ValueError("Settings 'operations' and 'unknownPositions' must be lists")

        return cls(
            max_result=_require_int(data, "maxResult", defaults.max_result),
            min_operand=_require_int(data, "minOperand", defaults.min_operand),
            max_operand=_require_int(data, "maxOperand", defaults.max_operand),
            allow_zero=allow_zero,
            operations=tuple(Operation(value) for value in operations),
            unknown_positions=tuple(UnknownPosition.parse(text) for text in positions),
        )


@dataclass
class SessionStats:
    """
    Statistics for the current play session.

    Not persisted; a new session starts from zero.
    """

    problems_attempted: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    started_at: datetime = field(default_factory=datetime.now)

    def record_attempt(self, is_correct: bool) -> None:
        self.problems_attempted += 1
        if is_correct:
            self.correct_answers += 1
        else:
            self.incorrect_answers += 1

    @property
    def accuracy(self) -> int:
        """Accuracy as a rounded percentage, 0 when nothing was attempted."""
        if self.problems_attempted == 0:
            return 0
        return round(self.correct_answers / self.problems_attempted * 100)

    def duration_minutes(self, now: datetime | None = None) -> float:
        """Session duration in minutes, rounded to one decimal place."""
        elapsed = (now or datetime.now()) - self.started_at
        return round(elapsed.total_seconds() / 60, 1)

    def reset(self) -> None:
        """Reset all statistics and start a new session."""
        self.problems_attempted = 0
        self.correct_answers = 0
        self.incorrect_answers = 0
        self.started_at = datetime.now()
