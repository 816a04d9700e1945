"""Portal check and push API routes."""

from fastapi import APIRouter, HTTPException

from ...app import Application
from ...models import AccountResult, BatchResult
from ..schemas import CheckRequest, PushRequest

VERSION = "1.0.0"


def _accounts_or_400(request: CheckRequest):
    if not request.users:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_DATA", "message": "Invalid users array"},
        )
    return [user.to_account() for user in request.users]


def _notify_summary(result: AccountResult) -> dict:
    """Per-account line of a check-and-notify response."""
    summary = {"userId": result.account_id, "userName": result.display_name}
    if not result.success:
        summary["errorKind"] = result.error_kind
        summary["error"] = result.error
    elif not result.is_new:
        summary.update({"notificationsFound": 0, "isNew": False})
    elif not result.deliveries:
        summary.update(
            {
                "notificationsFound": len(result.new_items),
                "pushSent": False,
                "reason": "No push token",
            }
        )
    else:
        summary.update(
            {
                "notificationsFound": len(result.new_items),
                "pushSent": result.delivered,
                "resultsUrl": result.candidates[0].result_url,
                "deliveries": [d.to_dict() for d in result.deliveries],
            }
        )
    return summary


def _check_response(batch: BatchResult) -> dict:
    return {
        "success": True,
        "totalUsers": batch.total,
        "successCount": batch.success_count,
        "newNotificationsCount": len(batch.new_notifications),
        "results": [r.to_dict() for r in batch.results],
        "newNotifications": [r.to_dict() for r in batch.new_notifications],
    }


def create_portal_router(app: Application) -> APIRouter:
    """Create portal router."""
    router = APIRouter(prefix="/api", tags=["portal"])

    @router.post("/check-notifications")
    async def check_notifications(request: CheckRequest) -> dict:
        """Check each user's portal account; report new items without pushing."""
        accounts = _accounts_or_400(request)
        batch = await app.reconciler.run_batch(accounts, forward=False)
        return _check_response(batch)

    @router.post("/check-and-notify")
    async def check_and_notify(request: CheckRequest) -> dict:
        """Check each user's portal account and push new results."""
        accounts = _accounts_or_400(request)
        batch = await app.reconciler.run_batch(accounts, forward=True)
        return {
            "success": True,
            "pushedCount": batch.pushed_count,
            "results": [_notify_summary(r) for r in batch.results],
        }

    @router.post("/send-push")
    async def send_push(request: PushRequest) -> dict:
        """Send one push through the relay."""
        result = await app.push_relay.deliver(
            request.push_token, request.title, request.body, request.data
        )
        return result.to_dict()

    @router.get("/info")
    async def info() -> dict:
        return {
            "name": "resultwatch",
            "version": VERSION,
            "portal": app.site.base_url,
            "endpoints": {
                "health": "GET /health",
                "checkNotifications": "POST /api/check-notifications",
                "checkAndNotify": "POST /api/check-and-notify",
                "sendPush": "POST /api/send-push",
                "traceEvents": "GET /api/trace-events",
                "info": "GET /api/info",
            },
            "example": {
                "method": "POST",
                "url": "/api/check-notifications",
                "body": {
                    "users": [
                        {
                            "id": "user1",
                            "name": "Ahmed",
                            "username": "<portal id>",
                            "password": "<portal password>",
                            "pushToken": "ExponentPushToken[...]",
                        }
                    ]
                },
            },
        }

    return router
