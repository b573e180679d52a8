"""Exchange clients - live KuCoin adapter and an in-process simulator."""

from pricetrigger.exchange.base import (
    Exchange,
    ExchangeConnectionError,
    ExchangeError,
    OrderRejectedError,
    TickerError,
)
from pricetrigger.exchange.models import Order, OrderRequest, Ticker
from pricetrigger.exchange.sim import SimExchange

__all__ = [
    "Exchange",
    "ExchangeError",
    "ExchangeConnectionError",
    "TickerError",
    "OrderRejectedError",
    "Order",
    "OrderRequest",
    "Ticker",
    "SimExchange",
]
