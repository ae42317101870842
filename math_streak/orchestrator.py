"""
Timed animation sequencing for the Math Streak drill.

After an answer is submitted the game sits in the REVEALING phase while
feedback is shown. The orchestrator watches for that phase, waits the
reveal delay, swaps the problems (slide out, advance, slide in) and then
waits the transition delay before clearing the slide flags.

Timers come from a ``Scheduler``:
- AsyncioScheduler: asyncio event-loop timers
- ManualScheduler: a virtual clock advanced explicitly, for headless runs
  and tests
"""

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Protocol

from math_streak.config import REVEAL_DELAY, TRANSITION_DELAY
from math_streak.game import Game
from math_streak.models import CelebrationPhase, GameState

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Schedule-after-delay with a cancellation handle."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ManualTimer:
    """Handle for a callback scheduled on a ManualScheduler."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Scheduler driven by a virtual clock.

    Time only moves when ``advance`` is called; due callbacks then run in
    order of their due time (ties in scheduling order).
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._sequence = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not fired or been cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (timer.when, next(self._sequence), timer))
        return timer

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that falls due."""
        if seconds < 0:
            raise ValueError("Cannot advance clock backwards")
        deadline = self._now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            when, _, timer = heapq.heappop(self._queue)
            self._now = when
            if not timer.cancelled:
                timer.callback()
        self._now = deadline


class AnimationOrchestrator:
    """
    Drives the reveal -> swap -> settle sequence for each submitted answer.

    Only one chain is in flight at a time. The game refuses a new submit
    until the chain has advanced, and ``close`` cancels any pending timer
    so nothing fires against a stale problem.
    """

    def __init__(
        self,
        game: Game,
        scheduler: Scheduler,
        reveal_delay: float = REVEAL_DELAY,
        transition_delay: float = TRANSITION_DELAY,
        on_slide: Callable[[bool, bool], None] | None = None,
    ):
        """
        Initialize the orchestrator and start observing the game.

        Args:
            game: The game whose phase drives the sequence.
            scheduler: Source of delayed callbacks.
            reveal_delay: Seconds feedback stays visible before the swap.
            transition_delay: Seconds until the slide flags are cleared.
            on_slide: Called with ``(sliding_out, sliding_in)`` whenever
                      the slide flags change.
        """
        self._game = game
        self._scheduler = scheduler
        self._reveal_delay = reveal_delay
        self._transition_delay = transition_delay
        self._on_slide = on_slide

        self._timer: TimerHandle | None = None
        self._sliding_out = False
        self._sliding_in = False
        self._unsubscribe: Callable[[], None] | None = game.subscribe(self._on_state_change)

    @property
    def in_flight(self) -> bool:
        """True while a timer from the current chain is pending."""
        return self._timer is not None

    @property
    def sliding_out(self) -> bool:
        return self._sliding_out

    @property
    def sliding_in(self) -> bool:
        return self._sliding_in

    def _on_state_change(self, state: GameState, previous: GameState) -> None:
        entered_reveal = (
            state.celebration_phase is CelebrationPhase.REVEALING
            and previous.celebration_phase is not CelebrationPhase.REVEALING
        )
        if entered_reveal:
            self._start_chain()

    def _start_chain(self) -> None:
        self._cancel_timer()
        # A submit during the slide-in cancels its settle timer
        if self._sliding_out or self._sliding_in:
            self._set_slide(sliding_out=False, sliding_in=False)
        logger.debug(f"Revealing answer, swapping in {self._reveal_delay}s")
        self._timer = self._scheduler.call_later(self._reveal_delay, self._swap_problems)

    def _swap_problems(self) -> None:
        self._timer = None
        self._set_slide(sliding_out=True, sliding_in=False)
        try:
            self._game.begin_transition()
            self._game.advance()
        except Exception:
            logger.error("Error advancing to the next problem", exc_info=True)
            # Stay on the current problem so input is accepted again
            self._game.retry_problem()
            self._set_slide(sliding_out=False, sliding_in=False)
            raise
        self._set_slide(sliding_out=False, sliding_in=True)
        self._timer = self._scheduler.call_later(self._transition_delay, self._settle)

    def _settle(self) -> None:
        self._timer = None
        self._set_slide(sliding_out=False, sliding_in=False)

    def _set_slide(self, sliding_out: bool, sliding_in: bool) -> None:
        self._sliding_out = sliding_out
        self._sliding_in = sliding_in
        if self._on_slide is not None:
            self._on_slide(sliding_out, sliding_in)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Cancel pending timers and stop observing the game."""
        self._cancel_timer()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._sliding_out = False
        self._sliding_in = False
