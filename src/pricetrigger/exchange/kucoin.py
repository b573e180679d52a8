"""KuCoin exchange implementation wrapping kucoin-python."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from kucoin.client import Market, Trade

from pricetrigger.config_loader import ExchangeConfig
from pricetrigger.constants import KUCOIN_API_URL, KUCOIN_SANDBOX_URL, OrderStatus, OrderType
from pricetrigger.exchange.base import (
    Exchange,
    ExchangeConnectionError,
    OrderRejectedError,
    TickerError,
)
from pricetrigger.exchange.models import Order, OrderRequest, Ticker, parse_price

logger = logging.getLogger(__name__)


class KuCoinExchange(Exchange):
    """
    Concrete Exchange implementation for KuCoin spot via kucoin-python.

    The library's REST clients are synchronous; every call is pushed to a worker
    thread so the event loop keeps running while a request is in flight.
    """

    def __init__(self, config: ExchangeConfig):
        self.config = config
        self.market_client: Market | None = None
        self.trade_client: Trade | None = None

    @property
    def base_url(self) -> str:
        return KUCOIN_SANDBOX_URL if self.config.sandbox else KUCOIN_API_URL

    async def connect(self) -> None:
        """Create the REST clients."""
        if not self.config.has_credentials:
            raise ExchangeConnectionError(
                "KuCoin credentials missing in config (api_key, api_secret, api_passphrase)."
            )

        logger.info(f"Connecting to KuCoin ({self.base_url})")

        try:
            self.market_client = Market(url=self.base_url)
            self.trade_client = Trade(
                key=self.config.api_key,
                secret=self.config.api_secret,
                passphrase=self.config.api_passphrase,
                is_sandbox=self.config.sandbox,
                url=self.base_url,
            )
        except Exception as e:
            raise ExchangeConnectionError(f"KuCoin client initialization failed: {e}") from e

        logger.info("KuCoin connected.")

    async def disconnect(self) -> None:
        """Drop the REST clients. Nothing is held open between requests."""
        self.market_client = None
        self.trade_client = None
        logger.info("KuCoin disconnected")

    async def get_ticker(self, symbol: str) -> Ticker:
        """Fetch level-1 ticker and parse its price."""
        if not self.market_client:
            raise ExchangeConnectionError("Not connected")

        logger.debug(f"Fetching ticker for {symbol}")
        try:
            payload = await asyncio.to_thread(self.market_client.get_ticker, symbol)
        except Exception as e:
            raise TickerError(f"Failed to fetch ticker for {symbol}: {e}") from e

        if not isinstance(payload, dict):
            raise TickerError(f"Unexpected ticker payload for {symbol}: {payload!r}")

        try:
            price = parse_price(payload.get("price"))
        except ValueError as e:
            raise TickerError(f"Malformed ticker for {symbol}: {e}") from e

        return Ticker(symbol=symbol, price=price, timestamp=self._ticker_time(payload))

    async def place_order(self, request: OrderRequest) -> Order:
        """Submit a limit order via REST."""
        if not self.trade_client:
            raise ExchangeConnectionError("Not connected")

        if request.type != OrderType.LIMIT or request.limit_price is None:
            raise OrderRejectedError(f"Only limit orders with a price are supported: {request}")

        # KuCoin expects lowercase side and decimal strings for price/size
        side = request.side.value.lower()
        logger.debug(
            f"Placing {side} limit order for {request.quantity} {request.symbol} "
            f"@ {request.limit_price}"
        )
        try:
            response = await asyncio.to_thread(
                self.trade_client.create_limit_order,
                symbol=request.symbol,
                side=side,
                size=str(request.quantity),
                price=str(request.limit_price),
                clientOid=request.client_order_id,
            )
        except Exception as e:
            raise OrderRejectedError(
                f"Failed to place {side} order for {request.symbol}: {e}"
            ) from e

        order_id = response.get("orderId") if isinstance(response, dict) else None
        if not order_id:
            raise OrderRejectedError(f"KuCoin returned no order id: {response!r}")

        return Order(id=str(order_id), request=request, status=OrderStatus.SUBMITTED)

    @staticmethod
    def _ticker_time(payload: dict[str, Any]) -> datetime:
        # "time" is epoch milliseconds
        ts = payload.get("time")
        if isinstance(ts, (int, float)):
            return datetime.fromtimestamp(ts / 1000)
        return datetime.now()
