"""
Session wiring for the Math Streak drill.

A session ties the pieces together for one player: persistence, the
stored settings, the game state machine, the animation orchestrator and
the (non-persisted) session statistics. The rendering layer talks to the
session; everything else stays behind it.
"""

import logging
from dataclasses import replace

from math_streak.config import REVEAL_DELAY, TRANSITION_DELAY
from math_streak.game import Game, ProblemGenerator
from math_streak.models import GameState, SessionStats, UserSettings
from math_streak.orchestrator import AnimationOrchestrator, AsyncioScheduler, Scheduler
from math_streak.persistence import KeyValueStore, get_persistence_manager
from math_streak.problems import DEFAULT_CONFIG, DifficultyConfig, generate_problem

logger = logging.getLogger(__name__)

BACKSPACE_KEY = "Backspace"
ENTER_KEY = "Enter"


def log_state_change(state: GameState, previous: GameState) -> None:
    """Log phase changes and evaluated answers."""
    if state.celebration_phase is not previous.celebration_phase:
        logger.info(
            f"Phase {previous.celebration_phase.value} -> {state.celebration_phase.value}: "
            f"problem={state.current_problem.display_string!r}, "
            f"correct={state.is_answer_correct}, streak={state.streak}, "
            f"high_score={state.high_score}"
        )


class MathStreakSession:
    """
    One player's drill session.

    Settings stored from an earlier session override the base config; if
    they no longer produce a valid config the base config is used.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        config: DifficultyConfig = DEFAULT_CONFIG,
        scheduler: Scheduler | None = None,
        generator: ProblemGenerator = generate_problem,
        reveal_delay: float = REVEAL_DELAY,
        transition_delay: float = TRANSITION_DELAY,
    ):
        """
        Initialize the session.

        Args:
            store: Storage backend. Defaults to the configured backend.
            config: Base difficulty configuration.
            scheduler: Timer source for the animation. Defaults to the
                       running asyncio event loop.
            generator: Problem generator, replaceable in tests.
            reveal_delay: Seconds feedback stays visible before the swap.
            transition_delay: Seconds for the slide-in to settle.
        """
        self._base_config = config
        self._generator = generator
        self.persistence = get_persistence_manager(store)
        self.stats = SessionStats()

        stored = self.persistence.get_settings(default=UserSettings.from_config(config))
        try:
            effective = self._build_config(stored)
            self.settings = stored
        except ValueError as e:
            logger.warning(f"Stored settings ignored: {e}")
            effective = config
            self.settings = UserSettings.from_config(config)

        self.game = Game(self.persistence, effective, generator)
        self.game.subscribe(self._record_answer)
        self.game.subscribe(log_state_change)
        self.orchestrator = AnimationOrchestrator(
            self.game,
            scheduler or AsyncioScheduler(),
            reveal_delay=reveal_delay,
            transition_delay=transition_delay,
        )

    @property
    def state(self) -> GameState:
        """Read-only snapshot of the game state."""
        return self.game.state

    def _build_config(self, settings: UserSettings) -> DifficultyConfig:
        """
        Apply settings to the base config and check a problem can be generated.

        Raises:
            ValueError: If the settings are invalid or infeasible.
        """
        config = settings.apply_to(self._base_config)
        self._generator(config, None)
        return config

    def _record_answer(self, state: GameState, previous: GameState) -> None:
        if previous.is_answer_correct is None and state.is_answer_correct is not None:
            self.stats.record_attempt(state.is_answer_correct)

    def handle_key(self, key: str) -> bool:
        """
        Map a key press to a game action.

        Digits type, Backspace deletes and Enter submits.

        Returns:
            True if the key is one the game responds to.
        """
        if len(key) == 1 and key in "0123456789":
            self.game.update_answer(key)
        elif key == BACKSPACE_KEY:
            self.game.delete_digit()
        elif key == ENTER_KEY:
            self.game.submit()
        else:
            return False
        return True

    def update_settings(self, **changes) -> UserSettings:
        """
        Merge setting changes, persist them and reconfigure the game.

        The new configuration applies from the next problem.

        Raises:
            ValueError: If the resulting settings are invalid or infeasible.
            TypeError: If an unknown setting is given.
        """
        settings = replace(self.settings, **changes)
        config = self._build_config(settings)

        self.settings = settings
        self.persistence.save_settings(settings)
        self.game.config = config
        return settings

    def reset_settings(self) -> UserSettings:
        """Restore the base configuration and forget the stored settings."""
        self.settings = UserSettings.from_config(self._base_config)
        self.persistence.reset_settings()
        self.game.config = self._base_config
        return self.settings

    def close(self) -> None:
        """Stop pending animations and log the session summary."""
        self.orchestrator.close()
        logger.info(
            f"Session ended: attempted={self.stats.problems_attempted}, "
            f"accuracy={self.stats.accuracy}%, high_score={self.state.high_score}"
        )
