"""Fixed-interval scheduler for the orchestration loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("mindloom.orchestrator.scheduler")


class PeriodicScheduler:
    """
    Calls ``tick`` every ``interval`` seconds until ``stop_event`` is set.

    A tick that raises is logged and the loop keeps going. The wait between
    ticks returns early when stop is requested, so shutdown never waits a
    full interval.
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[object]],
        interval: float = 1.0,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        self._tick = tick
        self.interval = interval
        self.stop_event = stop_event or asyncio.Event()
        self.ticks = 0
        self.failures = 0

    def stop(self) -> None:
        self.stop_event.set()

    async def run(self, max_ticks: Optional[int] = None) -> None:
        while not self.stop_event.is_set():
            try:
                await self._tick()
            except Exception:
                self.failures += 1
                logger.exception("Error in processing loop")
            self.ticks += 1

            if max_ticks is not None and self.ticks >= max_ticks:
                break
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
