"""Tests for the price-triggered order dispatcher."""

import asyncio
import logging
import time
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pricetrigger.config_loader import TriggerConfig
from pricetrigger.constants import OrderSide, OrderStatus, OrderType, TickOutcome
from pricetrigger.dispatch.dispatcher import OrderDispatcher, plan_order
from pricetrigger.dispatch.scheduler import PollScheduler
from pricetrigger.exchange.base import OrderRejectedError, TickerError
from pricetrigger.exchange.models import Order, Ticker
from pricetrigger.exchange.sim import SimExchange


@pytest.fixture
def trigger_config():
    return TriggerConfig(
        symbol="BTC-USDT",
        base_price=Decimal("30000"),
        price_increment=Decimal("100"),
        order_quantity=Decimal("0.01"),
    )


def make_exchange(price: str | None = None) -> MagicMock:
    """Exchange double returning ``price`` and acknowledging every order."""
    exchange = MagicMock()
    exchange.get_ticker = AsyncMock(
        return_value=Ticker(symbol="BTC-USDT", price=Decimal(price)) if price else None
    )

    async def place_order(request):
        return Order(id="ord-1", request=request, status=OrderStatus.SUBMITTED)

    exchange.place_order = AsyncMock(side_effect=place_order)
    return exchange


class TestPlanOrder:
    def test_below_threshold(self, trigger_config):
        assert plan_order(Decimal("29999"), trigger_config) is None

    def test_threshold_is_inclusive(self, trigger_config):
        request = plan_order(Decimal("30000"), trigger_config)
        assert request is not None
        assert request.limit_price == Decimal("30100")

    def test_limit_tracks_live_price(self, trigger_config):
        request = plan_order(Decimal("31234.5"), trigger_config)
        assert request.symbol == "BTC-USDT"
        assert request.side == OrderSide.SELL
        assert request.type == OrderType.LIMIT
        assert request.quantity == Decimal("0.01")
        assert request.limit_price == Decimal("31334.5")

    def test_zero_increment(self):
        config = TriggerConfig(base_price=Decimal("10"), price_increment=Decimal("0"))
        assert plan_order(Decimal("10"), config).limit_price == Decimal("10")


@pytest.mark.asyncio
async def test_scenario_above_threshold(trigger_config):
    """base 30000, increment 100, price 30050 -> sell 0.01 @ 30150."""
    exchange = make_exchange("30050")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.ORDER_PLACED
    assert result.price == Decimal("30050")
    exchange.get_ticker.assert_awaited_once_with("BTC-USDT")
    exchange.place_order.assert_awaited_once()
    request = exchange.place_order.await_args.args[0]
    assert request.side == OrderSide.SELL
    assert request.limit_price == Decimal("30150")
    assert request.quantity == Decimal("0.01")
    assert result.order.id == "ord-1"


@pytest.mark.asyncio
async def test_scenario_below_threshold(trigger_config):
    exchange = make_exchange("29999")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.BELOW_THRESHOLD
    assert result.price == Decimal("29999")
    exchange.place_order.assert_not_awaited()


@pytest.mark.asyncio
async def test_scenario_exactly_at_threshold(trigger_config):
    exchange = make_exchange("30000")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.ORDER_PLACED
    request = exchange.place_order.await_args.args[0]
    assert request.limit_price == Decimal("30100")


@pytest.mark.asyncio
async def test_one_order_per_tick(trigger_config):
    exchange = make_exchange("30500")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    for _ in range(3):
        await dispatcher.check_and_dispatch()

    assert exchange.place_order.await_count == 3
    assert dispatcher.stats.ticks == 3
    assert dispatcher.stats.orders_placed == 3


@pytest.mark.asyncio
async def test_fetch_failure_is_contained(trigger_config, caplog):
    exchange = make_exchange()
    exchange.get_ticker.side_effect = TickerError("connection reset")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    with caplog.at_level(logging.ERROR):
        result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.FETCH_FAILED
    assert result.failed
    assert "connection reset" in result.error
    assert "connection reset" in caplog.text
    exchange.place_order.assert_not_awaited()
    assert dispatcher.stats.failures == 1


@pytest.mark.asyncio
async def test_unexpected_fetch_exception_is_contained(trigger_config):
    exchange = make_exchange()
    exchange.get_ticker.side_effect = RuntimeError("boom")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.FETCH_FAILED
    assert result.error == "RuntimeError: boom"


@pytest.mark.asyncio
async def test_empty_ticker_is_fetch_failure(trigger_config):
    exchange = make_exchange()
    dispatcher = OrderDispatcher(trigger_config, exchange)

    result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.FETCH_FAILED
    assert "No ticker" in result.error
    exchange.place_order.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_failure_is_contained(trigger_config, caplog):
    exchange = make_exchange("30050")
    exchange.place_order.side_effect = OrderRejectedError("Balance insufficient!")
    dispatcher = OrderDispatcher(trigger_config, exchange)

    with caplog.at_level(logging.ERROR):
        result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.SUBMIT_FAILED
    assert result.request.limit_price == Decimal("30150")
    assert result.order is None
    assert "Balance insufficient!" in caplog.text
    # No retry within the tick
    exchange.place_order.assert_awaited_once()

    # The next tick runs normally
    exchange.place_order.side_effect = None
    exchange.place_order.return_value = MagicMock(id="ord-2")
    result = await dispatcher.check_and_dispatch()
    assert result.outcome == TickOutcome.ORDER_PLACED


@pytest.mark.asyncio
async def test_dry_run_never_submits(trigger_config):
    exchange = make_exchange("30050")
    dispatcher = OrderDispatcher(trigger_config, exchange, dry_run=True)

    result = await dispatcher.check_and_dispatch()

    assert result.outcome == TickOutcome.DRY_RUN
    assert result.request.limit_price == Decimal("30150")
    exchange.place_order.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_tick_is_skipped(trigger_config):
    release = asyncio.Event()
    exchange = make_exchange()

    async def slow_ticker(symbol):
        await release.wait()
        return Ticker(symbol=symbol, price=Decimal("30050"))

    exchange.get_ticker.side_effect = slow_ticker
    dispatcher = OrderDispatcher(trigger_config, exchange)

    first = asyncio.create_task(dispatcher.check_and_dispatch())
    await asyncio.sleep(0)
    assert dispatcher.busy

    second = await dispatcher.check_and_dispatch()
    assert second.outcome == TickOutcome.SKIPPED

    release.set()
    first_result = await first

    assert first_result.outcome == TickOutcome.ORDER_PLACED
    exchange.get_ticker.assert_awaited_once()
    exchange.place_order.assert_awaited_once()
    assert not dispatcher.busy
    assert dispatcher.stats.skipped == 1


@pytest.mark.asyncio
async def test_cancelled_tick_releases_guard(trigger_config):
    exchange = make_exchange()

    async def hang(symbol):
        await asyncio.Event().wait()

    exchange.get_ticker.side_effect = hang
    dispatcher = OrderDispatcher(trigger_config, exchange)

    task = asyncio.create_task(dispatcher.check_and_dispatch())
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await dispatcher.wait_idle()

    assert not dispatcher.busy
    exchange.place_order.assert_not_awaited()


@pytest.mark.asyncio
async def test_against_sim_exchange(trigger_config):
    exchange = SimExchange(prices=[Decimal("29000"), Decimal("29999"), Decimal("30000")])
    await exchange.connect()
    dispatcher = OrderDispatcher(trigger_config, exchange)

    outcomes = [(await dispatcher.check_and_dispatch()).outcome for _ in range(3)]

    assert outcomes == [
        TickOutcome.BELOW_THRESHOLD,
        TickOutcome.BELOW_THRESHOLD,
        TickOutcome.ORDER_PLACED,
    ]
    orders = await exchange.get_orders()
    assert len(orders) == 1
    assert orders[0].request.limit_price == Decimal("30100")


@pytest.mark.asyncio
async def test_slow_fetch_times_out_and_is_cancelled(trigger_config):
    exchange = make_exchange()
    cancelled = False

    async def hang(symbol):
        nonlocal cancelled
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled = True
            raise

    exchange.get_ticker.side_effect = hang
    dispatcher = OrderDispatcher(trigger_config, exchange, timeout_sec=0.05)

    result = await dispatcher.check_and_dispatch()
    await dispatcher.wait_idle()

    assert result.outcome == TickOutcome.TIMED_OUT
    assert result.failed
    assert cancelled
    assert not dispatcher.busy
    exchange.place_order.assert_not_awaited()
    assert dispatcher.stats.ticks == 1
    assert dispatcher.stats.failures == 1


@pytest.mark.asyncio
async def test_timed_out_submission_blocks_further_orders(trigger_config):
    """A submission stuck in a worker thread must not be duplicated by later ticks."""
    exchange = make_exchange("30050")
    active = 0
    peak = 0

    async def place_order(request):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            # Blocking client call, as the KuCoin SDK makes
            await asyncio.to_thread(time.sleep, 0.3)
        finally:
            active -= 1
        return Order(id="ord-1", request=request)

    exchange.place_order.side_effect = place_order
    dispatcher = OrderDispatcher(trigger_config, exchange, timeout_sec=0.05)
    scheduler = PollScheduler(dispatcher.check_and_dispatch, interval_sec=0.05)

    await scheduler.run(max_ticks=3)

    assert peak == 1
    exchange.place_order.assert_awaited_once()
    assert dispatcher.busy
    assert dispatcher.stats.ticks == 1
    assert dispatcher.stats.failures == 1
    assert dispatcher.stats.skipped == 2
    assert dispatcher.stats.orders_placed == 0

    await dispatcher.wait_idle()

    assert not dispatcher.busy
    assert dispatcher.stats.orders_placed == 1

    # Guard is free again once the late submission lands
    exchange.place_order.side_effect = None
    exchange.place_order.return_value = MagicMock(id="ord-2")
    result = await dispatcher.check_and_dispatch()
    assert result.outcome == TickOutcome.ORDER_PLACED


@pytest.mark.asyncio
async def test_late_submission_failure_is_logged(trigger_config, caplog):
    exchange = make_exchange("30050")

    async def place_order(request):
        await asyncio.to_thread(time.sleep, 0.1)
        raise OrderRejectedError("Balance insufficient!")

    exchange.place_order.side_effect = place_order
    dispatcher = OrderDispatcher(trigger_config, exchange, timeout_sec=0.02)

    with caplog.at_level(logging.WARNING):
        result = await dispatcher.check_and_dispatch()
        await dispatcher.wait_idle()

    assert result.outcome == TickOutcome.TIMED_OUT
    assert "completed late" in caplog.text
    assert "Balance insufficient!" in caplog.text
    assert dispatcher.stats.orders_placed == 0
    assert not dispatcher.busy
