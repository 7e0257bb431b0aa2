"""Per-step countdown timer.

States:

    Stopped(remaining) ──start()──▶ Running(remaining) ──pause()──▶ Stopped(remaining)
    Running(1) ──tick──▶ Expired(0) ──restart()──▶ Running(full duration)

The timer is re-armed (fresh Stopped state at the directive's full duration,
any ticking cancelled) whenever the quest, the step index or the step's timer
directive changes. A step without a directive arms to 0 and cannot start.

TimerState is immutable; every transition replaces it. Ticking runs in a
single asyncio task that is cancelled on pause, re-arm, expiry and close().
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from kitchen_quest.models import NarrationRequest, TimerDirective
from kitchen_quest.narration import Narrate
from kitchen_quest.sequencer import InvalidStateError

logger = logging.getLogger(__name__)

TIMES_UP_NARRATION = "Time's up, Chef! What's next?"

TimerStatus = Literal["idle", "stopped", "running", "expired"]


class TimerStateError(InvalidStateError):
    """Raised for a timer transition that is not valid in the current state."""


class TimerState(BaseModel):
    model_config = ConfigDict(frozen=True)

    remaining_seconds: int = Field(default=0, ge=0)
    is_running: bool = False
    expired: bool = False

    @property
    def status(self) -> TimerStatus:
        if self.is_running:
            return "running"
        if self.expired:
            return "expired"
        if self.remaining_seconds == 0:
            return "idle"
        return "stopped"


class TimerEngine:
    """Owns the TimerState and the one tick task for the active step.

    Args:
        narrate:  Receives the log-only "time's up" line on expiry.
        sleep:    Awaitable used between ticks; tests swap in a fake.
        interval: Seconds per tick.
    """

    def __init__(
        self,
        *,
        narrate: Narrate | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        interval: float = 1.0,
    ) -> None:
        self._narrate = narrate
        self._sleep = sleep
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._key: tuple[Hashable, int, TimerDirective | None] | None = None
        self.directive: TimerDirective | None = None
        self.state = TimerState()

    @property
    def full_duration(self) -> int:
        return self.directive.total_seconds if self.directive else 0

    @property
    def ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Arming
    # ------------------------------------------------------------------

    def rearm(self, directive: TimerDirective | None) -> TimerState:
        """Replace the timer with a stopped one at the directive's full duration."""
        self._stop_ticking()
        self.directive = directive
        self.state = TimerState(remaining_seconds=self.full_duration)
        return self.state

    def sync(self, quest_id: Hashable, step_index: int, directive: TimerDirective | None) -> bool:
        """Re-arm if the quest, step index or directive differ from the last sync.

        Returns True when the timer was re-armed.
        """
        key = (quest_id, step_index, directive)
        if key == self._key:
            return False
        self._key = key
        self.rearm(directive)
        logger.debug(
            "timer re-armed quest=%s step=%d remaining=%ds",
            quest_id, step_index, self.state.remaining_seconds,
        )
        return True

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> TimerState:
        if self.state.is_running:
            return self.state
        if self.state.remaining_seconds == 0:
            if self.state.expired:
                raise TimerStateError("Timer has expired; use restart()")
            raise TimerStateError("This step has no countdown to start")
        self.state = self.state.model_copy(update={"is_running": True})
        self._start_ticking()
        return self.state

    def pause(self) -> TimerState:
        if not self.state.is_running:
            raise TimerStateError("Timer is not running")
        self._stop_ticking()
        self.state = self.state.model_copy(update={"is_running": False})
        return self.state

    def restart(self) -> TimerState:
        if not self.state.expired:
            raise TimerStateError("Only an expired timer can be restarted")
        self._stop_ticking()
        self.state = TimerState(remaining_seconds=self.full_duration, is_running=True)
        self._start_ticking()
        return self.state

    async def tick(self) -> TimerState:
        """Advance the countdown by one second. Ignored unless running."""
        if not self.state.is_running:
            return self.state
        remaining = self.state.remaining_seconds - 1
        if remaining > 0:
            self.state = self.state.model_copy(update={"remaining_seconds": remaining})
            return self.state

        self._stop_ticking()
        self.state = TimerState(remaining_seconds=0, is_running=False, expired=True)
        label = self.directive.label if self.directive else ""
        logger.info("timer expired: %s", label)
        if self._narrate is not None:
            await self._narrate(NarrationRequest(text=TIMES_UP_NARRATION, speak_aloud=False))
        return self.state

    def close(self) -> None:
        self._stop_ticking()

    # ------------------------------------------------------------------
    # Tick source
    # ------------------------------------------------------------------

    def _start_ticking(self) -> None:
        if self.ticking:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _stop_ticking(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Expiry inside the tick loop; the loop exits on its own.
            return
        task.cancel()

    async def _run(self) -> None:
        me = asyncio.current_task()
        while self._task is me and self.state.is_running:
            await self._sleep(self._interval)
            if self._task is not me:
                return
            await self.tick()
