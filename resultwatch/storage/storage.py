"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    DeviceRegistration,
    Notification,
    NotificationPreferences,
    TraceEvent,
)


def _to_db_time(value: datetime | None) -> str | None:
    """Serialize a timestamp as a sortable UTC ISO string."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IStorage(Protocol):
    """Storage for notifications, devices, preferences and trace events."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Notifications
    async def save_notification(self, notification: Notification) -> None:
        """Append a notification."""
        ...

    async def get_notification(
        self, notification_id: str, patient_id: str
    ) -> Notification | None:
        """Get one notification owned by a patient."""
        ...

    async def get_notifications(
        self,
        patient_id: str,
        unread_only: bool = False,
        types: list[str] | None = None,
        since: datetime | None = None,
    ) -> list[Notification]:
        """Get a patient's notifications, newest first."""
        ...

    async def mark_notification_read(
        self, notification_id: str, patient_id: str, read_at: datetime
    ) -> bool:
        """Mark one notification read. False if it does not exist."""
        ...

    async def mark_all_read(self, patient_id: str, read_at: datetime) -> int:
        """Mark every unread notification of a patient read."""
        ...

    async def delete_notification(self, notification_id: str, patient_id: str) -> bool:
        """Delete one notification. False if it does not exist."""
        ...

    async def delete_notifications(self, patient_id: str) -> int:
        """Delete all notifications of a patient."""
        ...

    # Devices
    async def save_device(self, device: DeviceRegistration) -> None:
        """Register a device token, replacing any earlier owner."""
        ...

    async def delete_device(self, patient_id: str, token: str) -> bool:
        """Remove a patient's device token."""
        ...

    async def get_devices(self, patient_id: str) -> list[DeviceRegistration]:
        """Get the devices registered to a patient."""
        ...

    async def get_device_patient_ids(self) -> list[str]:
        """Get every patient with at least one registered device."""
        ...

    # Preferences
    async def save_preferences(
        self, patient_id: str, preferences: NotificationPreferences
    ) -> None:
        """Save a patient's preferences."""
        ...

    async def get_preferences(self, patient_id: str) -> NotificationPreferences | None:
        """Get a patient's preferences, None if never set."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Notifications
    async def save_notification(self, notification: Notification) -> None:
        """Append a notification."""
        conn = self._require_conn()

        if not notification.id:
            notification.id = f"N{uuid.uuid4().hex[:12]}"

        await conn.execute(
            """
            INSERT INTO notifications (
                id, patient_id, type, priority, title, message, data,
                action_url, image_url, expires_at, scheduled_for,
                read, read_at, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification.id,
                notification.patient_id,
                notification.type,
                notification.priority,
                json.dumps(notification.title, ensure_ascii=False),
                json.dumps(notification.message, ensure_ascii=False),
                json.dumps(notification.data, ensure_ascii=False),
                notification.action_url,
                notification.image_url,
                notification.expires_at,
                notification.scheduled_for,
                int(notification.read),
                _to_db_time(notification.read_at),
                _to_db_time(notification.created_at),
            ),
        )
        await conn.commit()

    async def get_notification(
        self, notification_id: str, patient_id: str
    ) -> Notification | None:
        """Get one notification owned by a patient."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_NOTIFICATION_COLUMNS}
            FROM notifications
            WHERE id = ? AND patient_id = ?
            """,
            (notification_id, patient_id),
        )
        row = await cursor.fetchone()
        return _row_to_notification(row) if row else None

    async def get_notifications(
        self,
        patient_id: str,
        unread_only: bool = False,
        types: list[str] | None = None,
        since: datetime | None = None,
    ) -> list[Notification]:
        """Get a patient's notifications, newest first."""
        conn = self._require_conn()

        conditions = ["patient_id = ?"]
        params: list = [patient_id]

        if unread_only:
            conditions.append("read = 0")
        if types:
            placeholders = ",".join("?" * len(types))
            conditions.append(f"type IN ({placeholders})")
            params.extend(types)
        if since:
            conditions.append("created_at > ?")
            params.append(_to_db_time(since))

        query = f"""
            SELECT {_NOTIFICATION_COLUMNS}
            FROM notifications
            WHERE {' AND '.join(conditions)}
            ORDER BY created_at DESC, rowid DESC
        """
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_notification(row) for row in rows]

    async def mark_notification_read(
        self, notification_id: str, patient_id: str, read_at: datetime
    ) -> bool:
        """Mark one notification read. False if it does not exist."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            UPDATE notifications SET read = 1, read_at = ?
            WHERE id = ? AND patient_id = ?
            """,
            (_to_db_time(read_at), notification_id, patient_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def mark_all_read(self, patient_id: str, read_at: datetime) -> int:
        """Mark every unread notification of a patient read."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            UPDATE notifications SET read = 1, read_at = ?
            WHERE patient_id = ? AND read = 0
            """,
            (_to_db_time(read_at), patient_id),
        )
        await conn.commit()
        return cursor.rowcount

    async def delete_notification(self, notification_id: str, patient_id: str) -> bool:
        """Delete one notification. False if it does not exist."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM notifications WHERE id = ? AND patient_id = ?",
            (notification_id, patient_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def delete_notifications(self, patient_id: str) -> int:
        """Delete all notifications of a patient."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM notifications WHERE patient_id = ?", (patient_id,)
        )
        await conn.commit()
        return cursor.rowcount

    # Devices
    async def save_device(self, device: DeviceRegistration) -> None:
        """Register a device token, replacing any earlier owner."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO devices
            (token, patient_id, platform, app_version, registered_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                device.token,
                device.patient_id,
                device.platform,
                device.app_version,
                _to_db_time(device.registered_at),
            ),
        )
        await conn.commit()

    async def delete_device(self, patient_id: str, token: str) -> bool:
        """Remove a patient's device token."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM devices WHERE patient_id = ? AND token = ?",
            (patient_id, token),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def get_devices(self, patient_id: str) -> list[DeviceRegistration]:
        """Get the devices registered to a patient."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT token, patient_id, platform, app_version, registered_at
            FROM devices
            WHERE patient_id = ?
            ORDER BY registered_at ASC
            """,
            (patient_id,),
        )
        rows = await cursor.fetchall()

        return [
            DeviceRegistration(
                token=row[0],
                patient_id=row[1],
                platform=row[2],
                app_version=row[3],
                registered_at=_from_db_time(row[4]),
            )
            for row in rows
        ]

    async def get_device_patient_ids(self) -> list[str]:
        """Get every patient with at least one registered device."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT patient_id FROM devices
            GROUP BY patient_id
            ORDER BY MIN(registered_at) ASC
            """
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    # Preferences
    async def save_preferences(
        self, patient_id: str, preferences: NotificationPreferences
    ) -> None:
        """Save a patient's preferences."""
        conn = self._require_conn()

        data = preferences.to_dict()
        data.pop("updated_at", None)
        await conn.execute(
            """
            INSERT OR REPLACE INTO preferences (patient_id, data, updated_at)
            VALUES (?, ?, ?)
            """,
            (patient_id, json.dumps(data), _to_db_time(preferences.updated_at)),
        )
        await conn.commit()

    async def get_preferences(self, patient_id: str) -> NotificationPreferences | None:
        """Get a patient's preferences, None if never set."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT data, updated_at FROM preferences WHERE patient_id = ?",
            (patient_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return NotificationPreferences(
            **json.loads(row[0]), updated_at=_from_db_time(row[1])
        )

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, ensure_ascii=False, default=str),
                _to_db_time(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conn = self._require_conn()

        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_to_db_time(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_from_db_time(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ["notifications", "devices", "preferences", "trace_events"]:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()


_NOTIFICATION_COLUMNS = """
    id, patient_id, type, priority, title, message, data,
    action_url, image_url, expires_at, scheduled_for,
    read, read_at, created_at
"""


def _row_to_notification(row) -> Notification:
    return Notification(
        id=row[0],
        patient_id=row[1],
        type=row[2],
        priority=row[3],
        title=json.loads(row[4]),
        message=json.loads(row[5]),
        data=json.loads(row[6]),
        action_url=row[7],
        image_url=row[8],
        expires_at=row[9],
        scheduled_for=row[10],
        read=bool(row[11]),
        read_at=_from_db_time(row[12]),
        created_at=_from_db_time(row[13]),
    )
