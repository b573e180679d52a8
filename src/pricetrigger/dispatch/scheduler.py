"""Fixed-cadence poll loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pricetrigger.constants import TickOutcome
from pricetrigger.dispatch.results import TickResult

logger = logging.getLogger(__name__)


class PollScheduler:
    """
    Runs a tick coroutine every ``interval_sec`` until stopped.

    Ticks never overlap: each one is awaited before the next is scheduled.
    The next tick fires ``interval_sec`` after the previous one started, or
    immediately if that tick ran long. Missed slots are dropped.

    ``timeout_sec`` is off by default. When set, a slow tick is cancelled, so it
    only suits ticks that are safe to cancel. OrderDispatcher bounds its own
    ticks instead.
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[TickResult]],
        interval_sec: float,
        timeout_sec: float | None = None,
    ):
        if interval_sec <= 0:
            raise ValueError(f"Interval must be positive, got: {interval_sec}")
        self.tick = tick
        self.interval_sec = interval_sec
        self.timeout_sec = timeout_sec

        self.ticks_run = 0
        self.timeouts = 0
        self.last_result: TickResult | None = None

        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, max_ticks: int | None = None) -> None:
        """Tick until ``stop()`` is called or ``max_ticks`` ticks have run."""
        loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._running = True
        logger.info(
            f"Poll loop started (every {self.interval_sec}s, timeout {self.timeout_sec}s)"
        )

        count = 0
        try:
            while not self._stop_event.is_set():
                started = loop.time()
                self.last_result = await self.run_tick()
                count += 1

                if max_ticks is not None and count >= max_ticks:
                    break

                delay = max(0.0, self.interval_sec - (loop.time() - started))
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info(f"Poll loop stopped after {count} ticks")

    async def run_tick(self) -> TickResult:
        """Run one tick within the timeout. Never raises for tick failures."""
        self.ticks_run += 1
        try:
            return await asyncio.wait_for(self.tick(), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            self.timeouts += 1
            logger.warning(f"Tick exceeded {self.timeout_sec}s and was cancelled")
            return TickResult(
                outcome=TickOutcome.TIMED_OUT,
                error=f"tick exceeded {self.timeout_sec}s",
                duration_sec=self.timeout_sec,
            )
        except Exception as e:
            logger.error(f"Unexpected error in tick: {e}", exc_info=True)
            return TickResult(outcome=TickOutcome.ERROR, error=f"{type(e).__name__}: {e}")

    def stop(self) -> None:
        """Stop after the current tick; interrupts the inter-tick wait."""
        self._stop_event.set()
