"""Exchange models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from pricetrigger.constants import OrderSide, OrderStatus, OrderType


def generate_id() -> str:
    """Generate unique ID."""
    return uuid4().hex


def parse_price(raw: Any) -> Decimal:
    """
    Parse an exchange price field (string or number) into a Decimal.

    Raises:
        ValueError: If the value is missing, not numeric, not finite or not positive.
    """
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"Missing or invalid price: {raw!r}")
    try:
        price = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise ValueError(f"Price is not numeric: {raw!r}") from e
    if not price.is_finite() or price <= 0:
        raise ValueError(f"Price must be a positive number, got: {raw!r}")
    return price


@dataclass(frozen=True)
class Ticker:
    """Snapshot of a market's current trading price."""

    symbol: str
    price: Decimal
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class OrderRequest:
    """Request to place an order."""

    symbol: str
    side: OrderSide
    quantity: Decimal
    type: OrderType = OrderType.LIMIT
    limit_price: Decimal | None = None
    client_order_id: str = field(default_factory=generate_id)


@dataclass
class Order:
    """Exchange acknowledgement of a submitted order."""

    id: str
    request: OrderRequest
    status: OrderStatus = OrderStatus.SUBMITTED
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return (
            f"{self.request.side.value} {self.request.type.value} {self.request.quantity} "
            f"{self.request.symbol} @ {self.request.limit_price} (id={self.id})"
        )
