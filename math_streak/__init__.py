"""
Math Streak: an arithmetic drill with a correctness streak.

Exports the problem generator, the game state machine, the animation
orchestrator, persistence and the session that wires them together.
"""

from math_streak.game import Game
from math_streak.models import CelebrationPhase, GameState, SessionStats, UserSettings
from math_streak.orchestrator import AnimationOrchestrator, AsyncioScheduler, ManualScheduler
from math_streak.persistence import (
    DynamoDbStore,
    FileStore,
    MemoryStore,
    PersistenceManager,
    get_persistence_manager,
)
from math_streak.problems import (
    DEFAULT_CONFIG,
    ConfigurationInfeasibleError,
    Constraints,
    DifficultyConfig,
    Operation,
    Problem,
    ProblemVerificationError,
    UnknownPosition,
    generate_problem,
)
from math_streak.session import MathStreakSession

__all__ = [
    "DEFAULT_CONFIG",
    "AnimationOrchestrator",
    "AsyncioScheduler",
    "CelebrationPhase",
    "ConfigurationInfeasibleError",
    "Constraints",
    "DifficultyConfig",
    "DynamoDbStore",
    "FileStore",
    "Game",
    "GameState",
    "ManualScheduler",
    "MathStreakSession",
    "MemoryStore",
    "Operation",
    "PersistenceManager",
    "Problem",
    "ProblemVerificationError",
    "SessionStats",
    "UnknownPosition",
    "UserSettings",
    "generate_problem",
    "get_persistence_manager",
]
