"""Notification store API routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...logging_config import get_logger
from ..schemas import (
    BroadcastRequest,
    BulkSendRequest,
    DeviceRequest,
    PatientRequest,
    PreferencesRequest,
    SendRequest,
    SyncRequest,
    camelize,
    snakify,
)

logger = get_logger(__name__)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "NOT_FOUND", "message": "Notification not found"},
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_notifications_router(app: Application) -> APIRouter:
    """Create notification store router."""
    router = APIRouter(prefix="/api/v1", tags=["notifications"])

    @router.get("/health")
    async def health() -> dict:
        return {"status": "ok", "timestamp": _now_iso()}

    @router.post("/notifications/send")
    async def send_notification(request: SendRequest) -> dict:
        """Store a notification for one patient and push it."""
        notification = await app.notification_service.send(
            request.patient_id, request.title, request.message, **request.options()
        )
        return {
            "success": True,
            "notificationId": notification.id,
            "deliveredAt": _now_iso(),
        }

    @router.post("/notifications/send-bulk")
    async def send_bulk(request: BulkSendRequest) -> dict:
        """Send the same notification to several patients."""
        results = await app.notification_service.send_bulk(
            request.patient_ids, request.title, request.message, **request.options()
        )
        return {"success": True, "results": [camelize(r) for r in results]}

    @router.post("/notifications/broadcast")
    async def broadcast(request: BroadcastRequest) -> dict:
        """Send to every patient with a registered device."""
        summary = await app.notification_service.broadcast(
            request.title,
            request.message,
            exclude_patient_ids=request.exclude_patient_ids,
            **request.options(),
        )
        return {"success": True, **camelize(summary)}

    @router.get("/notifications/preferences/{patient_id}")
    async def get_preferences(patient_id: str) -> dict:
        prefs = await app.notification_service.get_preferences(patient_id)
        return camelize(prefs.to_dict())

    @router.put("/notifications/preferences")
    async def update_preferences(request: PreferencesRequest) -> dict:
        await app.notification_service.update_preferences(
            request.patient_id, snakify(request.preferences)
        )
        return {"success": True}

    @router.get("/notifications/{patient_id}")
    async def list_notifications(
        patient_id: str,
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
        unread: bool = Query(False, description="Only unread notifications"),
        types: str | None = Query(None, description="Comma-separated types"),
        since: datetime | None = Query(None, description="ISO timestamp filter"),
    ) -> dict:
        """A patient's notifications, newest first."""
        type_list = [t for t in types.split(",") if t] if types else None
        page = await app.notification_service.list_notifications(
            patient_id,
            limit=limit,
            offset=offset,
            unread_only=unread,
            types=type_list,
            since=since,
        )
        return {
            "success": True,
            "total": page.total,
            "unreadCount": page.unread_count,
            "notifications": [camelize(n.to_dict()) for n in page.notifications],
        }

    @router.put("/notifications/read-all")
    async def mark_all_read(request: PatientRequest) -> dict:
        count = await app.notification_service.mark_all_read(request.patient_id)
        return {"success": True, "updated": count}

    @router.put("/notifications/{notification_id}/read")
    async def mark_read(notification_id: str, request: PatientRequest) -> dict:
        if not await app.notification_service.mark_read(
            notification_id, request.patient_id
        ):
            raise _not_found()
        return {"success": True}

    @router.delete("/notifications/clear-all")
    async def clear_all(request: PatientRequest) -> dict:
        count = await app.notification_service.clear_all(request.patient_id)
        return {"success": True, "deleted": count}

    @router.delete("/notifications/{notification_id}")
    async def delete_notification(notification_id: str, request: PatientRequest) -> dict:
        if not await app.notification_service.delete(
            notification_id, request.patient_id
        ):
            raise _not_found()
        return {"success": True}

    @router.post("/notifications/sync")
    async def sync(request: SyncRequest) -> dict:
        """Notifications created since the client's last sync."""
        result = await app.notification_service.sync(
            request.patient_id, request.last_sync_time
        )
        return {
            "success": True,
            "notifications": [camelize(n.to_dict()) for n in result.notifications],
            "deletedIds": result.deleted_ids,
            "syncTime": result.sync_time.isoformat(),
        }

    @router.post("/devices/register")
    async def register_device(request: DeviceRequest) -> dict:
        await app.notification_service.register_device(
            request.patient_id,
            request.token,
            platform=request.platform,
            app_version=request.app_version,
        )
        return {"success": True}

    @router.delete("/devices/unregister")
    async def unregister_device(request: DeviceRequest) -> dict:
        await app.notification_service.unregister_device(
            request.patient_id, request.token
        )
        return {"success": True}

    return router
