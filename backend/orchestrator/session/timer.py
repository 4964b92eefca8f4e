from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from core.config import TIMER_TICK_SEC

logger = logging.getLogger("session_timer")

TickFn = Callable[[int], None]


def format_elapsed(total_seconds: float) -> str:
    seconds = max(0, int(total_seconds))
    hrs = seconds // 3600
    mins = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


class SessionTimer:
    """
    Elapsed-seconds clock for display.
    Started and stopped only by the session state machine; never gates a transition.
    """

    def __init__(
        self,
        duration_minutes: int = 0,
        on_tick: TickFn | None = None,
        tick_sec: float = TIMER_TICK_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.duration_minutes = max(0, int(duration_minutes or 0))
        self._on_tick = on_tick
        self._tick_sec = tick_sec
        self._clock = clock
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._started_at is not None and self._stopped_at is None

    @property
    def started(self) -> bool:
        return self._started_at is not None

    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    def remaining_seconds(self) -> float | None:
        if not self.duration_minutes:
            return None
        return max(0.0, self.duration_minutes * 60 - self.elapsed_seconds())

    def start(self) -> None:
        if self._started_at is not None:
            return
        self._started_at = self._clock()
        if self._on_tick is not None:
            self._task = asyncio.get_running_loop().create_task(self._tick_loop())

    def stop(self) -> None:
        if self._started_at is None or self._stopped_at is not None:
            return
        self._stopped_at = self._clock()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _tick_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self._tick_sec)
            if not self.running:
                break
            try:
                self._on_tick(int(self.elapsed_seconds()))
            except Exception as exc:
                logger.warning("timer tick callback failed | err=%s", exc)

    def snapshot(self) -> dict:
        elapsed = self.elapsed_seconds()
        remaining = self.remaining_seconds()
        return {
            "running": self.running,
            "elapsed_seconds": int(elapsed),
            "elapsed_display": format_elapsed(elapsed),
            "remaining_seconds": int(remaining) if remaining is not None else None,
        }
