"""
Game state machine for the Math Streak drill.

State changes are expressed as small action records run through a pure
``reduce`` function. The ``Game`` class owns the single current state,
dispatches actions, generates the next problem and keeps the persisted
high score in step with the streak.

Phase cycle: submit moves IDLE -> REVEALING; the animation orchestrator
moves REVEALING -> TRANSITIONING and then calls advance, which resets the
phase to IDLE with a fresh problem.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from math_streak.config import MAX_ANSWER_LENGTH
from math_streak.models import CelebrationPhase, GameState
from math_streak.persistence import PersistenceManager
from math_streak.problems import DEFAULT_CONFIG, DifficultyConfig, Problem, generate_problem

logger = logging.getLogger(__name__)

StateListener = Callable[[GameState, GameState], None]
ProblemGenerator = Callable[[DifficultyConfig, Problem | None], Problem]

DIGITS = frozenset("0123456789")


# ============================================================================
# Actions
# ============================================================================


@dataclass(frozen=True)
class UpdateAnswer:
    digit: str


@dataclass(frozen=True)
class DeleteDigit:
    pass


@dataclass(frozen=True)
class SubmitAnswer:
    pass


@dataclass(frozen=True)
class BeginTransition:
    pass


@dataclass(frozen=True)
class NextProblem:
    problem: Problem


GameAction = UpdateAnswer | DeleteDigit | SubmitAnswer | BeginTransition | NextProblem


def reduce(state: GameState, action: GameAction) -> GameState:
    """
    Apply an action to a state.

    Returns the same state object when the action is rejected, so callers
    can detect a no-op by identity.
    """
    if isinstance(action, UpdateAnswer):
        if not state.is_idle or len(state.current_answer) >= MAX_ANSWER_LENGTH:
            return state
        if action.digit not in DIGITS:
            return state
        return replace(state, current_answer=state.current_answer + action.digit)

    if isinstance(action, DeleteDigit):
        if not state.is_idle or not state.current_answer:
            return state
        return replace(state, current_answer=state.current_answer[:-1])

    if isinstance(action, SubmitAnswer):
        # Don't allow re-submission while feedback is showing
        if not state.is_idle or not state.current_answer:
            return state

        is_correct = state.current_problem.check_answer(int(state.current_answer))
        # Keep the streak on a wrong answer so it stays visible during feedback
        streak = state.streak + 1 if is_correct else state.streak
        return replace(
            state,
            is_answer_correct=is_correct,
            streak=streak,
            high_score=max(state.high_score, streak),
            celebration_phase=CelebrationPhase.REVEALING,
        )

    if isinstance(action, BeginTransition):
        if state.celebration_phase is not CelebrationPhase.REVEALING:
            return state
        return replace(state, celebration_phase=CelebrationPhase.TRANSITIONING)

    if isinstance(action, NextProblem):
        return replace(
            state,
            current_problem=action.problem,
            current_answer="",
            is_answer_correct=None,
            celebration_phase=CelebrationPhase.IDLE,
            # Reset streak when moving on after an incorrect answer
            streak=0 if state.is_answer_correct is False else state.streak,
        )

    raise TypeError(f"Unknown game action: {action!r}")


class Game:
    """
    Owner of the game state.

    All changes go through ``dispatch``; observers registered with
    ``subscribe`` receive ``(state, previous_state)`` after every change.
    """

    def __init__(
        self,
        persistence: PersistenceManager,
        config: DifficultyConfig = DEFAULT_CONFIG,
        generator: ProblemGenerator = generate_problem,
    ):
        """
        Initialize the game with a fresh problem and the stored high score.

        Args:
            persistence: Storage for the high score.
            config: Difficulty configuration for generated problems.
            generator: Problem generator, replaceable in tests.

        Raises:
            ConfigurationInfeasibleError: If the config admits no problem.
        """
        self._persistence = persistence
        self._config = config
        self._generator = generator
        self._listeners: list[StateListener] = []

        high_score = persistence.get_high_score()
        self._state = GameState(
            current_problem=generator(config, None),
            high_score=high_score,
        )
        logger.info(
            f"Game started: config={config.name!r}, high_score={high_score}, "
            f"problem={self._state.current_problem.display_string!r}"
        )

    @property
    def state(self) -> GameState:
        """Current state snapshot."""
        return self._state

    @property
    def config(self) -> DifficultyConfig:
        return self._config

    @config.setter
    def config(self, value: DifficultyConfig) -> None:
        """Replace the configuration; it applies from the next problem."""
        logger.info(f"Game config changed: {self._config.name!r} -> {value.name!r}")
        self._config = value

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register an observer of state changes.

        Returns:
            A callable that removes the observer.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: GameAction) -> GameState:
        """Apply an action and notify observers if the state changed."""
        previous = self._state
        state = reduce(previous, action)
        if state is previous:
            return state

        self._state = state
        if state.high_score > previous.high_score:
            logger.info(f"New high score: {state.high_score}")
            self._persistence.save_high_score(state.high_score)

        for listener in list(self._listeners):
            listener(state, previous)
        return state

    def update_answer(self, digit: str) -> GameState:
        """Add a digit to the current answer."""
        return self.dispatch(UpdateAnswer(digit))

    def delete_digit(self) -> GameState:
        """Remove the last digit from the current answer."""
        return self.dispatch(DeleteDigit())

    def submit(self) -> GameState:
        """Submit the current answer for checking."""
        return self.dispatch(SubmitAnswer())

    def begin_transition(self) -> GameState:
        """Mark the start of the slide between problems."""
        return self.dispatch(BeginTransition())

    def advance(self) -> GameState:
        """
        Generate and move to the next problem.

        Raises:
            ConfigurationInfeasibleError: If the config admits no problem.
            ProblemVerificationError: If generation produced an invalid problem.
        """
        outgoing = self._state.current_problem
        problem = self._generator(self._config, outgoing)
        logger.debug(f"Next problem: {problem.display_string!r}")
        return self.dispatch(NextProblem(problem))

    def retry_problem(self) -> GameState:
        """Return to IDLE on the current problem, as if it had been generated again."""
        return self.dispatch(NextProblem(self._state.current_problem))
