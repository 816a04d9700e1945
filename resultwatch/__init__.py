"""resultwatch: lab-result notification store and portal reconciler."""

from .app import Application, IApplication
from .models import (
    Account,
    AccountResult,
    BatchResult,
    DeliveryCandidate,
    DeliveryResult,
    DeviceRegistration,
    ItemCategory,
    Notification,
    NotificationPreferences,
    ObservedItem,
    PassState,
    PortalCredentials,
    TraceEvent,
)
from .notifications import INotificationService, NotificationService
from .portal import DocumentModel, IPortalClient, IPortalSession, PlaywrightPortalClient
from .push import ExpoPushRelay, IPushRelay
from .reconciler import InMemorySnapshotStore, IReconciler, ISnapshotStore, Reconciler
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Account",
    "PortalCredentials",
    "ObservedItem",
    "ItemCategory",
    "DeliveryCandidate",
    "DeliveryResult",
    "AccountResult",
    "BatchResult",
    "PassState",
    "Notification",
    "DeviceRegistration",
    "NotificationPreferences",
    "TraceEvent",
    # Components
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
    "IPushRelay",
    "ExpoPushRelay",
    "IPortalClient",
    "IPortalSession",
    "PlaywrightPortalClient",
    "DocumentModel",
    "ISnapshotStore",
    "InMemorySnapshotStore",
    "IReconciler",
    "Reconciler",
    "INotificationService",
    "NotificationService",
]
