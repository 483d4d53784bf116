"""Client-side state: budget, reconciliation, session and connection."""

from .budget import MAX_PIXELS, REFILL_INTERVAL_SECONDS, BudgetScheduler, format_countdown
from .local_state import InMemoryLocalStateStore, JsonFileLocalStateStore, LocalStateStore
from .reconciler import ClientReconciler
from .session import PaintSession, Session, color_for_name

__all__ = [
    "MAX_PIXELS",
    "REFILL_INTERVAL_SECONDS",
    "BudgetScheduler",
    "format_countdown",
    "InMemoryLocalStateStore",
    "JsonFileLocalStateStore",
    "LocalStateStore",
    "ClientReconciler",
    "PaintSession",
    "Session",
    "color_for_name",
]
