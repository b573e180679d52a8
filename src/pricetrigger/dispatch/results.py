"""Per-tick result types."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pricetrigger.constants import TickOutcome
from pricetrigger.exchange.models import Order, OrderRequest, Ticker


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a ticker read: a ticker or an error message."""

    ticker: Ticker | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.ticker is not None


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of an order submission: the acknowledged order or an error message."""

    order: Order | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.order is not None


# Outcomes that count as a failed tick
FAILED_OUTCOMES = frozenset(
    {
        TickOutcome.FETCH_FAILED,
        TickOutcome.SUBMIT_FAILED,
        TickOutcome.TIMED_OUT,
        TickOutcome.ERROR,
    }
)


@dataclass(frozen=True)
class TickResult:
    """Explicit outcome of one check-and-dispatch tick."""

    outcome: TickOutcome
    price: Decimal | None = None
    request: OrderRequest | None = None
    order: Order | None = None
    error: str | None = None
    duration_sec: float = 0.0

    @property
    def failed(self) -> bool:
        return self.outcome in FAILED_OUTCOMES

    @property
    def order_submitted(self) -> bool:
        return self.outcome == TickOutcome.ORDER_PLACED

    def summary(self) -> str:
        """One-line human readable description."""
        parts = [self.outcome.value]
        if self.price is not None:
            parts.append(f"price={self.price}")
        if self.order is not None:
            parts.append(f"order={self.order}")
        elif self.request is not None:
            parts.append(
                f"would_sell={self.request.quantity}@{self.request.limit_price}"
            )
        if self.error:
            parts.append(f"error={self.error}")
        return " ".join(parts)
