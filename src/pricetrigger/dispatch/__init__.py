"""Dispatch Module - price trigger evaluation and the poll loop."""

from pricetrigger.dispatch.dispatcher import DispatchStats, OrderDispatcher, plan_order
from pricetrigger.dispatch.results import FetchResult, SubmitResult, TickResult
from pricetrigger.dispatch.scheduler import PollScheduler

__all__ = [
    "OrderDispatcher",
    "DispatchStats",
    "plan_order",
    "PollScheduler",
    "FetchResult",
    "SubmitResult",
    "TickResult",
]
