"""Notification store service: write, query and deliver patient notifications."""

import uuid
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Protocol

from ..logging_config import get_logger
from ..models import (
    DeviceRegistration,
    Notification,
    NotificationPage,
    NotificationPreferences,
    SyncResult,
    pick_locale,
)
from ..models.notifications import Text
from ..push import IPushRelay
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)

PREFERENCE_FIELDS = {f.name for f in fields(NotificationPreferences)} - {"updated_at"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class INotificationService(Protocol):
    """Notification CRUD, device registration and delivery preferences."""

    async def send(self, patient_id: str, title: Text, message: Text, **options) -> Notification:
        """Store a notification and push it unless it is scheduled."""
        ...

    async def list_notifications(self, patient_id: str, **filters) -> NotificationPage:
        """Filtered, paged notifications of a patient, newest first."""
        ...


class NotificationService:
    """Stores notifications per patient and pushes them to registered devices."""

    def __init__(
        self,
        storage: IStorage,
        push_relay: IPushRelay,
        tracker: ITracker | None = None,
    ):
        self._storage = storage
        self._push = push_relay
        self._tracker = tracker

    # Writes
    async def send(
        self,
        patient_id: str,
        title: Text,
        message: Text,
        type: str = "general",
        priority: str = "normal",
        data: dict | None = None,
        action_url: str | None = None,
        image_url: str | None = None,
        expires_at: str | None = None,
        scheduled_for: str | None = None,
        notification_id: str | None = None,
    ) -> Notification:
        """Store a notification and push it unless it is scheduled."""
        notification = Notification(
            id=notification_id or f"N{uuid.uuid4().hex[:12]}",
            patient_id=patient_id,
            title=title,
            message=message,
            created_at=_now(),
            type=type,
            priority=priority,
            data=dict(data or {}),
            action_url=action_url,
            image_url=image_url,
            expires_at=expires_at,
            scheduled_for=scheduled_for,
        )
        await self._storage.save_notification(notification)
        await self._track(
            "notification_stored",
            {"notification_id": notification.id, "patient_id": patient_id, "type": type},
        )

        if not scheduled_for:
            await self.deliver(notification)
        return notification

    async def send_bulk(
        self, patient_ids: list[str], title: Text, message: Text, **options
    ) -> list[dict]:
        """Send the same notification to each patient."""
        results = []
        for patient_id in patient_ids:
            notification = await self.send(patient_id, title, message, **options)
            results.append(
                {"patient_id": patient_id, "notification_id": notification.id, "success": True}
            )
        return results

    async def broadcast(
        self,
        title: Text,
        message: Text,
        exclude_patient_ids: list[str] | None = None,
        **options,
    ) -> dict:
        """Send to every patient with a registered device."""
        excluded = set(exclude_patient_ids or [])
        recipients = [
            patient_id
            for patient_id in await self._storage.get_device_patient_ids()
            if patient_id not in excluded
        ]

        broadcast_id = f"B{uuid.uuid4().hex[:12]}"
        delivered = 0
        for patient_id in recipients:
            await self.send(
                patient_id,
                title,
                message,
                notification_id=f"{broadcast_id}_{patient_id}",
                **options,
            )
            delivered += 1

        logger.info("Broadcast %s sent to %s patient(s)", broadcast_id, delivered)
        return {
            "broadcast_id": broadcast_id,
            "total_recipients": len(recipients),
            "delivered_count": delivered,
        }

    # Reads
    async def list_notifications(
        self,
        patient_id: str,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
        types: list[str] | None = None,
        since: datetime | None = None,
    ) -> NotificationPage:
        """Filtered, paged notifications of a patient, newest first."""
        notifications = await self._storage.get_notifications(
            patient_id, unread_only=unread_only, types=types, since=since
        )
        return NotificationPage(
            total=len(notifications),
            unread_count=sum(1 for n in notifications if not n.read),
            notifications=notifications[offset : offset + limit],
        )

    async def sync(
        self, patient_id: str, last_sync_time: datetime | None = None
    ) -> SyncResult:
        """Notifications created after the client's last sync."""
        sync_time = _now()
        notifications = await self._storage.get_notifications(
            patient_id, since=last_sync_time
        )
        return SyncResult(notifications=notifications, sync_time=sync_time)

    # Read state
    async def mark_read(self, notification_id: str, patient_id: str) -> bool:
        return await self._storage.mark_notification_read(
            notification_id, patient_id, _now()
        )

    async def mark_all_read(self, patient_id: str) -> int:
        return await self._storage.mark_all_read(patient_id, _now())

    async def delete(self, notification_id: str, patient_id: str) -> bool:
        return await self._storage.delete_notification(notification_id, patient_id)

    async def clear_all(self, patient_id: str) -> int:
        return await self._storage.delete_notifications(patient_id)

    # Devices
    async def register_device(
        self,
        patient_id: str,
        token: str,
        platform: str | None = None,
        app_version: str | None = None,
    ) -> DeviceRegistration:
        """Register a token; a token already held by someone else moves over."""
        device = DeviceRegistration(
            token=token,
            patient_id=patient_id,
            registered_at=_now(),
            platform=platform or "unknown",
            app_version=app_version or "1.0.0",
        )
        await self._storage.save_device(device)
        return device

    async def unregister_device(self, patient_id: str, token: str) -> bool:
        return await self._storage.delete_device(patient_id, token)

    # Preferences
    async def get_preferences(self, patient_id: str) -> NotificationPreferences:
        """Stored preferences, or the defaults."""
        return await self._storage.get_preferences(patient_id) or NotificationPreferences()

    async def update_preferences(
        self, patient_id: str, changes: dict
    ) -> NotificationPreferences:
        """Merge changes into the stored preferences. Unknown keys are ignored."""
        current = await self._storage.get_preferences(patient_id) or NotificationPreferences()
        known = {k: v for k, v in changes.items() if k in PREFERENCE_FIELDS}
        updated = replace(current, **known, updated_at=_now())
        await self._storage.save_preferences(patient_id, updated)
        return updated

    # Delivery
    async def deliver(self, notification: Notification) -> int:
        """Push a stored notification to the patient's devices.

        Returns the number of devices reached. Delivery problems are logged;
        the notification stays stored either way.
        """
        patient_id = notification.patient_id
        devices = await self._storage.get_devices(patient_id)
        if not devices:
            logger.info("No registered devices for patient %s", patient_id)
            return 0

        prefs = await self._storage.get_preferences(patient_id)
        if prefs and not prefs.enabled:
            logger.info("Notifications disabled for patient %s", patient_id)
            return 0
        if prefs and not prefs.allows(notification.type):
            logger.info(
                "Notification type %s disabled for patient %s",
                notification.type,
                patient_id,
            )
            return 0

        data = {
            "notificationId": notification.id,
            "type": notification.type,
            "actionUrl": notification.action_url or "",
            **notification.data,
        }
        reached = 0
        for device in devices:
            result = await self._push.deliver(
                device.token,
                pick_locale(notification.title),
                pick_locale(notification.message),
                data,
            )
            if result.success:
                reached += 1
            else:
                logger.warning(
                    "Push to a device of patient %s failed: %s",
                    patient_id,
                    result.reason,
                )

        await self._track(
            "notification_delivered",
            {
                "notification_id": notification.id,
                "patient_id": patient_id,
                "devices": len(devices),
                "reached": reached,
            },
        )
        return reached

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type, "notification_service", data)
