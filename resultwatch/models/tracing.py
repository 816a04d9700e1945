"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single observability event recorded by the Tracker."""

    id: str
    event_type: str  # e.g. "reconcile_completed", "notification_stored"
    actor: str  # component that recorded it, e.g. "reconciler"
    data: dict  # self-contained details for display
    timestamp: datetime
