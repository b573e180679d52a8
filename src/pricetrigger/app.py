"""pricetrigger Main Application."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

from pricetrigger.config_loader import AppConfig, load_config_with_overrides
from pricetrigger.constants import DEFAULT_CONFIG_PATH, LOG_FORMAT, LOG_FORMAT_JSON, LogFormat
from pricetrigger.dispatch.dispatcher import OrderDispatcher
from pricetrigger.dispatch.results import TickResult
from pricetrigger.dispatch.scheduler import PollScheduler
from pricetrigger.exchange.base import Exchange
from pricetrigger.exchange.sim import SimExchange

logger = logging.getLogger(__name__)


def build_exchange(config: AppConfig) -> Exchange:
    """Create the exchange client selected by config."""
    if config.is_sim_mode:
        logger.info("Using SimExchange (random walk)")
        return SimExchange(
            start_price=config.exchange.sim_start_price, step=config.exchange.sim_step
        )

    from pricetrigger.exchange.kucoin import KuCoinExchange

    logger.info(f"Using KuCoinExchange (sandbox={config.exchange.sandbox})")
    return KuCoinExchange(config.exchange)


class PriceTriggerApp:
    """Main application orchestrator."""

    def __init__(
        self,
        config_path: str | Path = DEFAULT_CONFIG_PATH,
        dry_run: bool = False,
        symbol: str | None = None,
        exchange_mode: str | None = None,
        config: AppConfig | None = None,
        exchange: Exchange | None = None,
    ):
        self.config_path = Path(config_path)
        self.config = config
        self._dry_run_override = dry_run
        self._symbol_override = symbol
        self._exchange_mode_override = exchange_mode

        # Components
        self.exchange = exchange
        self.dispatcher: OrderDispatcher | None = None
        self.scheduler: PollScheduler | None = None

        self._connected = False
        self._shutdown_event = asyncio.Event()

    def _setup_logging(self) -> None:
        env = self.config.environment
        fmt = LOG_FORMAT_JSON if env.log_format == LogFormat.JSON else LOG_FORMAT
        logging.basicConfig(level=env.log_level.value, format=fmt)

    async def initialize(self) -> None:
        """Load config and initialize components."""
        if self.config is None:
            self.config = load_config_with_overrides(
                self.config_path.absolute(),
                dry_run=True if self._dry_run_override else None,
                symbol=self._symbol_override,
                exchange_mode=self._exchange_mode_override,
            )
        self._setup_logging()
        logger.info("Initializing pricetrigger...")

        if self.config.is_dry_run:
            logger.info("Dry run mode: orders will be logged, not submitted")

        if self.exchange is None:
            self.exchange = build_exchange(self.config)

        trigger = self.config.trigger
        self.dispatcher = OrderDispatcher(
            trigger,
            self.exchange,
            dry_run=self.config.is_dry_run,
            timeout_sec=trigger.tick_timeout_seconds,
        )
        self.scheduler = PollScheduler(
            self.dispatcher.check_and_dispatch,
            interval_sec=trigger.poll_interval_seconds,
        )
        logger.info(
            f"Watching {trigger.symbol}: sell {trigger.order_quantity} at price + "
            f"{trigger.price_increment} once price >= {trigger.base_price}"
        )

    async def connect(self) -> None:
        if not self._connected:
            await self.exchange.connect()
            self._connected = True

    async def disconnect(self) -> None:
        if self._connected:
            await self.exchange.disconnect()
            self._connected = False

    async def check_once(self) -> TickResult:
        """Run a single tick against the exchange and return its result."""
        if not self.dispatcher:
            await self.initialize()

        await self.connect()
        try:
            return await self.dispatcher.check_and_dispatch()
        finally:
            await self.dispatcher.wait_idle()
            await self.disconnect()

    async def run(self, max_ticks: int | None = None) -> None:
        """Run the poll loop until a shutdown signal (or ``max_ticks``)."""
        if not self.dispatcher:
            await self.initialize()

        await self.connect()
        logger.info("Starting run loop...")

        loop = asyncio.get_running_loop()
        handled_signals: list[signal.Signals] = []
        try:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._handle_signal)
                handled_signals.append(sig)
        except NotImplementedError:
            logger.warning(
                "Signal handlers not supported in this environment (likely Windows). Use Ctrl+C to stop."
            )

        scheduler_task = asyncio.create_task(self.scheduler.run(max_ticks=max_ticks))
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        try:
            await asyncio.wait(
                {scheduler_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            pass
        finally:
            logger.info("Shutting down...")
            self.scheduler.stop()
            shutdown_task.cancel()
            await scheduler_task
            await self.dispatcher.wait_idle()

            await self.disconnect()
            for sig in handled_signals:
                loop.remove_signal_handler(sig)

            stats = self.dispatcher.stats
            logger.info(
                f"Shutdown complete. Ticks: {stats.ticks}, orders: {stats.orders_placed}, "
                f"failures: {stats.failures}, skipped: {stats.skipped}"
            )

    def _handle_signal(self) -> None:
        logger.info("Signal received, initiating shutdown...")
        self._shutdown_event.set()

    def request_shutdown(self) -> None:
        """Ask a running app to stop."""
        self._shutdown_event.set()
