"""Notification store data models."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Union

# Plain text, or a locale map such as {"ar": "...", "en": "..."}
Text = Union[str, dict]

PRIMARY_LOCALE = "ar"
FALLBACK_LOCALE = "en"


def pick_locale(value: Text | None) -> str:
    """Resolve text to the primary locale, falling back to English."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.get(PRIMARY_LOCALE) or value.get(FALLBACK_LOCALE) or ""


@dataclass
class Notification:
    """A notification stored for one patient."""

    id: str
    patient_id: str
    title: Text
    message: Text
    created_at: datetime
    type: str = "general"
    priority: str = "normal"
    data: dict = field(default_factory=dict)
    action_url: str | None = None
    image_url: str | None = None
    expires_at: str | None = None
    scheduled_for: str | None = None
    read: bool = False
    read_at: datetime | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["read_at"] = self.read_at.isoformat() if self.read_at else None
        return data


@dataclass
class DeviceRegistration:
    """A push token registered to a patient."""

    token: str
    patient_id: str
    registered_at: datetime
    platform: str = "unknown"
    app_version: str = "1.0.0"


@dataclass
class NotificationPreferences:
    """Per-patient switches that gate push delivery."""

    enabled: bool = True
    result_ready: bool = True
    appointments: bool = True
    offers: bool = True
    promotions: bool = True
    system: bool = True
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "08:00"
    sound: bool = True
    vibration: bool = True
    updated_at: datetime | None = None

    def allows(self, notification_type: str) -> bool:
        """Whether a notification of this type may be pushed."""
        if not self.enabled:
            return False
        switches = {
            "result_ready": self.result_ready,
            "appointment": self.appointments,
            "offer": self.offers,
            "promotion": self.promotions,
        }
        return switches.get(notification_type, True)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass
class NotificationPage:
    """A filtered, paged slice of a patient's notifications."""

    total: int
    unread_count: int
    notifications: list[Notification]


@dataclass
class SyncResult:
    """Notifications created since the client's last sync."""

    notifications: list[Notification]
    sync_time: datetime
    deleted_ids: list[str] = field(default_factory=list)
