"""Fixed-rate asyncio scheduler for simulation ticks."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from services.simulator import SimulationDriver

logger = logging.getLogger(__name__)


class SimulationScheduler:
    """Drive :class:`SimulationDriver` ticks back to back at a fixed rate.

    Ticks never overlap: each tick, broadcasts included, is awaited before the
    next sleep starts. A failing tick is logged and the schedule carries on.
    ``enabled`` and ``interval_seconds`` may be changed while running; a
    disabled scheduler keeps its loop alive and simply skips ticks.
    """

    def __init__(
        self,
        driver: SimulationDriver,
        interval_seconds: float = 5.0,
        enabled: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.driver = driver
        self._interval_seconds = interval_seconds
        self.enabled = enabled
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @interval_seconds.setter
    def interval_seconds(self, value: float) -> None:
        if value <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval_seconds = value

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the tick loop on the running event loop."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="simulation-scheduler")
        logger.info(
            "Simulation scheduler started (interval %.2fs, enabled=%s).",
            self._interval_seconds,
            self.enabled,
        )

    async def stop(self) -> None:
        """Stop scheduling new ticks and wait for an in-flight tick to finish."""
        if self._task is None:
            return
        assert self._stop_event is not None
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Simulation scheduler stopped.")

    async def _run(self) -> None:
        assert self._stop_event is not None
        loop = asyncio.get_running_loop()
        while not self._stop_event.is_set():
            tick_start = loop.time()
            if self.enabled:
                await self._run_tick_safely()

            if self._stop_event.is_set():
                break
            sleep_time = max(0.0, self._interval_seconds - (loop.time() - tick_start))
            await self._sleep(sleep_time)

    async def _run_tick_safely(self) -> None:
        try:
            await self.driver.tick()
        except Exception:
            logger.exception("Simulation tick failed.", extra={"tick": self.driver.tick_count})

    async def _sleep(self, seconds: float) -> None:
        assert self._stop_event is not None
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
