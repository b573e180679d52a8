"""Base exchange interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pricetrigger.exchange.models import Order, OrderRequest, Ticker


class ExchangeError(Exception):
    """Base class for exchange client failures."""


class ExchangeConnectionError(ExchangeError):
    """Client not connected, or the connection could not be set up."""


class TickerError(ExchangeError):
    """Price read failed or returned a malformed payload."""


class OrderRejectedError(ExchangeError):
    """Order submission failed in transit or was rejected by the exchange."""


class Exchange(ABC):
    """Abstract exchange client interface."""

    @abstractmethod
    async def connect(self) -> None:
        """Set up the client."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the client."""
        pass

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Ticker:
        """Get the current price for a market."""
        pass

    @abstractmethod
    async def place_order(self, request: OrderRequest) -> Order:
        """Submit an order."""
        pass
