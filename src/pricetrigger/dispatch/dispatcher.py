"""Price-triggered order dispatcher."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING

from pricetrigger.constants import OrderSide, OrderType, TickOutcome
from pricetrigger.dispatch.results import FetchResult, SubmitResult, TickResult
from pricetrigger.exchange.models import OrderRequest

if TYPE_CHECKING:
    from pricetrigger.config_loader import TriggerConfig
    from pricetrigger.exchange.base import Exchange

logger = logging.getLogger(__name__)


def plan_order(price: Decimal, config: TriggerConfig) -> OrderRequest | None:
    """
    Decide whether ``price`` triggers a sell and build the order for it.

    The threshold is inclusive. The limit price is always the live price plus
    the configured increment.
    """
    if price < config.base_price:
        return None
    return OrderRequest(
        symbol=config.symbol,
        side=OrderSide.SELL,
        type=OrderType.LIMIT,
        quantity=config.order_quantity,
        limit_price=price + config.price_increment,
    )


@dataclass
class DispatchStats:
    """Running counters, for operator visibility only."""

    ticks: int = 0
    orders_placed: int = 0
    failures: int = 0
    skipped: int = 0

    def record(self, result: TickResult) -> None:
        if result.outcome == TickOutcome.SKIPPED:
            self.skipped += 1
            return
        self.ticks += 1
        if result.order_submitted:
            self.orders_placed += 1
        elif result.failed:
            self.failures += 1


class OrderDispatcher:
    """
    Reads the market price and submits a limit sell once it reaches the threshold.

    Holds no state between ticks apart from the immutable trigger config and
    the statistics counters. At most one tick runs at a time: a call made while
    another is in flight returns a SKIPPED result without touching the exchange.

    Each tick runs as its own task and the guard is released only when that task
    finishes. When a tick exceeds ``timeout_sec`` it is reported as TIMED_OUT.
    A tick still fetching the ticker is cancelled. A tick that has started
    submitting is left to finish and keeps the guard, because the exchange call
    may run in a worker thread that cancellation cannot stop.
    """

    def __init__(
        self,
        config: TriggerConfig,
        exchange: Exchange,
        dry_run: bool = False,
        timeout_sec: float | None = None,
    ):
        self.config = config
        self.exchange = exchange
        self.dry_run = dry_run
        self.timeout_sec = timeout_sec
        self.stats = DispatchStats()
        self._in_flight = False
        self._submitting = False
        self._task: asyncio.Task[TickResult] | None = None

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def fetch_price(self) -> FetchResult:
        """Read the ticker for the configured market."""
        try:
            ticker = await self.exchange.get_ticker(self.config.symbol)
        except Exception as e:
            return FetchResult(error=f"{type(e).__name__}: {e}")
        if ticker is None:
            return FetchResult(error=f"No ticker returned for {self.config.symbol}")
        return FetchResult(ticker=ticker)

    async def submit_order(self, request: OrderRequest) -> SubmitResult:
        """Submit one order. No retry."""
        try:
            order = await self.exchange.place_order(request)
        except Exception as e:
            return SubmitResult(error=f"{type(e).__name__}: {e}")
        return SubmitResult(order=order)

    async def check_and_dispatch(self) -> TickResult:
        """Run one tick: fetch, compare, and submit at most one order."""
        if self._in_flight:
            logger.warning("Previous tick still in flight, skipping")
            result = TickResult(outcome=TickOutcome.SKIPPED)
            self.stats.record(result)
            return result

        self._in_flight = True
        started = time.monotonic()
        task = asyncio.create_task(self._tick())
        self._task = task
        # Registered before shield() so the guard is free once awaiters resume
        task.add_done_callback(self._release)

        try:
            result = await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            result = self._timed_out(task)
        except asyncio.CancelledError:
            if not self._submitting:
                task.cancel()
            raise

        result = replace(result, duration_sec=time.monotonic() - started)
        self.stats.record(result)
        return result

    async def wait_idle(self) -> None:
        """Wait for the in-flight tick, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _timed_out(self, task: asyncio.Task[TickResult]) -> TickResult:
        if self._submitting:
            logger.warning(
                f"Tick exceeded {self.timeout_sec}s during order submission; "
                f"holding further ticks until it completes"
            )
            task.add_done_callback(self._report_late)
        else:
            logger.warning(f"Tick exceeded {self.timeout_sec}s fetching the ticker; cancelled")
            task.cancel()
        return TickResult(
            outcome=TickOutcome.TIMED_OUT,
            error=f"tick exceeded {self.timeout_sec}s",
        )

    def _release(self, task: asyncio.Task[TickResult]) -> None:
        self._in_flight = False
        self._submitting = False
        if self._task is task:
            self._task = None

    def _report_late(self, task: asyncio.Task[TickResult]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Timed-out tick failed: {exc}", exc_info=exc)
            return
        result = task.result()
        logger.warning(f"Timed-out tick completed late: {result.summary()}")
        if result.order_submitted:
            self.stats.orders_placed += 1

    async def _tick(self) -> TickResult:
        symbol = self.config.symbol

        fetched = await self.fetch_price()
        if not fetched.ok:
            logger.error(f"Ticker fetch failed for {symbol}: {fetched.error}")
            return TickResult(outcome=TickOutcome.FETCH_FAILED, error=fetched.error)

        price = fetched.ticker.price
        logger.debug(f"{symbol} price: {price}")

        request = plan_order(price, self.config)
        if request is None:
            logger.debug(f"{symbol} {price} below threshold {self.config.base_price}")
            return TickResult(outcome=TickOutcome.BELOW_THRESHOLD, price=price)

        logger.info(
            f"{symbol} {price} >= {self.config.base_price}: selling "
            f"{request.quantity} @ {request.limit_price}"
        )

        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would place SELL LIMIT {request.quantity} {symbol} "
                f"@ {request.limit_price}"
            )
            return TickResult(outcome=TickOutcome.DRY_RUN, price=price, request=request)

        self._submitting = True
        submitted = await self.submit_order(request)
        if not submitted.ok:
            logger.error(f"Order submission failed for {symbol}: {submitted.error}")
            return TickResult(
                outcome=TickOutcome.SUBMIT_FAILED,
                price=price,
                request=request,
                error=submitted.error,
            )

        logger.info(f"Order placed: {submitted.order}")
        return TickResult(
            outcome=TickOutcome.ORDER_PLACED,
            price=price,
            request=request,
            order=submitted.order,
        )
