"""Simulation exchange implementation."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from pricetrigger.constants import DEFAULT_SIM_START_PRICE, DEFAULT_SIM_STEP, OrderStatus
from pricetrigger.exchange.base import Exchange, ExchangeConnectionError, TickerError
from pricetrigger.exchange.models import Order, OrderRequest, Ticker, generate_id

logger = logging.getLogger(__name__)


class SimExchange(Exchange):
    """
    Simulation exchange for testing and dry runs.

    Prices follow a random walk around ``start_price`` unless a fixed ``prices``
    sequence is given, in which case each ticker read consumes the next value and
    the last one repeats once the sequence runs out. Orders are accepted and kept
    in memory; nothing is matched.
    """

    def __init__(
        self,
        start_price: Decimal = DEFAULT_SIM_START_PRICE,
        step: Decimal = DEFAULT_SIM_STEP,
        prices: Iterable[Decimal] | None = None,
    ):
        self.step = step
        self.current_price = start_price
        self._scripted = list(prices) if prices is not None else None
        self._connected = False
        self._orders: list[Order] = []

    async def connect(self) -> None:
        self._connected = True
        logger.info(f"SimExchange connected. Start price: {self.current_price}")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info(f"SimExchange disconnected ({len(self._orders)} orders accepted)")

    async def get_ticker(self, symbol: str) -> Ticker:
        if not self._connected:
            raise ExchangeConnectionError("Not connected")

        if self._scripted is not None:
            if not self._scripted:
                raise TickerError(f"No scripted price available for {symbol}")
            # Keep the last scripted price sticky
            if len(self._scripted) > 1:
                self.current_price = self._scripted.pop(0)
            else:
                self.current_price = self._scripted[0]
        else:
            # Random walk, floored at one step
            change = self.step * random.choice([-2, -1, 0, 1, 2])
            self.current_price = max(self.current_price + change, self.step)

        return Ticker(symbol=symbol, price=self.current_price, timestamp=datetime.now())

    async def place_order(self, request: OrderRequest) -> Order:
        if not self._connected:
            raise ExchangeConnectionError("Not connected")

        order = Order(id=generate_id(), request=request, status=OrderStatus.SUBMITTED)
        self._orders.append(order)
        logger.info(f"Sim order accepted: {order}")
        return order

    async def get_orders(self) -> list[Order]:
        """All orders accepted so far."""
        return list(self._orders)
