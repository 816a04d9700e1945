"""Core data models for resultwatch."""

from .notifications import (
    DeviceRegistration,
    Notification,
    NotificationPage,
    NotificationPreferences,
    SyncResult,
    pick_locale,
)
from .portal import (
    MAX_ITEM_TEXT,
    Account,
    DeliveryCandidate,
    ItemCategory,
    LocalizedText,
    ObservedItem,
    PortalCredentials,
)
from .reconcile import (
    AccountResult,
    AcknowledgmentReport,
    BatchResult,
    DeliveryResult,
    PassState,
)
from .tracing import TraceEvent

__all__ = [
    # Store
    "Notification",
    "DeviceRegistration",
    "NotificationPreferences",
    "NotificationPage",
    "SyncResult",
    "pick_locale",
    # Portal
    "MAX_ITEM_TEXT",
    "Account",
    "PortalCredentials",
    "ItemCategory",
    "ObservedItem",
    "LocalizedText",
    "DeliveryCandidate",
    # Reconciliation
    "PassState",
    "DeliveryResult",
    "AcknowledgmentReport",
    "AccountResult",
    "BatchResult",
    # Tracing
    "TraceEvent",
]
