"""Tests for the HTTP API."""

import pytest
from conftest import FakePortalClient, FakePushRelay, make_document
from fastapi.testclient import TestClient

from resultwatch.api import create_fastapi_app
from resultwatch.app import Application
from resultwatch.config import PortalSite, ReconcilerConfig
from resultwatch.portal import DocumentEntry

TOKEN = "ExponentPushToken[api]"


@pytest.fixture
def portal_client():
    return FakePortalClient()


@pytest.fixture
def push_relay():
    return FakePushRelay()


@pytest.fixture
def client(portal_client, push_relay):
    """TestClient running the full application lifespan."""
    application = Application(
        db_path=":memory:",
        portal_client=portal_client,
        push_relay=push_relay,
        site=PortalSite(base_url="https://portal.test"),
        reconciler_config=ReconcilerConfig(settle_delay_ms=0),
    )
    with TestClient(create_fastapi_app(application)) as test_client:
        yield test_client


def portal_user(user_id: str, **extra) -> dict:
    return {
        "id": user_id,
        "name": user_id.title(),
        "username": user_id,
        "password": "secret",
        **extra,
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_store_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestNotificationStore:
    """Tests for /api/v1 notification routes."""

    def test_send_and_list(self, client, push_relay):
        client.post(
            "/api/v1/devices/register",
            json={"patientId": "p1", "token": TOKEN, "platform": "ios"},
        )

        response = client.post(
            "/api/v1/notifications/send",
            json={
                "patientId": "p1",
                "title": {"ar": "نتيجتك جاهزة", "en": "Your result is ready"},
                "message": "CBC",
                "type": "result_ready",
                "actionUrl": "/results/1",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["notificationId"].startswith("N")
        assert len(push_relay.sent) == 1

        listed = client.get("/api/v1/notifications/p1").json()
        assert listed["total"] == 1
        assert listed["unreadCount"] == 1
        notification = listed["notifications"][0]
        assert notification["id"] == body["notificationId"]
        assert notification["patientId"] == "p1"
        assert notification["actionUrl"] == "/results/1"
        assert notification["read"] is False

    def test_send_missing_fields(self, client):
        """Missing required fields are a 400 with an error envelope."""
        response = client.post("/api/v1/notifications/send", json={"patientId": "p1"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_DATA"

    def test_list_query_filters(self, client):
        for kind in ("offer", "result_ready", "offer"):
            client.post(
                "/api/v1/notifications/send",
                json={"patientId": "p1", "title": kind, "message": "m", "type": kind},
            )

        offers = client.get("/api/v1/notifications/p1", params={"types": "offer"}).json()
        page = client.get("/api/v1/notifications/p1", params={"limit": 1, "offset": 1}).json()

        assert offers["total"] == 2
        assert page["total"] == 3
        assert len(page["notifications"]) == 1

    def test_mark_read_and_read_all(self, client):
        ids = [
            client.post(
                "/api/v1/notifications/send",
                json={"patientId": "p1", "title": f"n{i}", "message": "m"},
            ).json()["notificationId"]
            for i in range(3)
        ]

        response = client.put(
            f"/api/v1/notifications/{ids[0]}/read", json={"patientId": "p1"}
        )
        assert response.json() == {"success": True}

        response = client.put("/api/v1/notifications/read-all", json={"patientId": "p1"})
        assert response.json() == {"success": True, "updated": 2}

        unread = client.get("/api/v1/notifications/p1", params={"unread": True}).json()
        assert unread["total"] == 0

    def test_mark_read_unknown_is_404(self, client):
        response = client.put(
            "/api/v1/notifications/missing/read", json={"patientId": "p1"}
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_delete_and_clear_all(self, client):
        ids = [
            client.post(
                "/api/v1/notifications/send",
                json={"patientId": "p1", "title": f"n{i}", "message": "m"},
            ).json()["notificationId"]
            for i in range(3)
        ]

        response = client.request(
            "DELETE", f"/api/v1/notifications/{ids[0]}", json={"patientId": "p1"}
        )
        assert response.status_code == 200

        response = client.request(
            "DELETE", f"/api/v1/notifications/{ids[0]}", json={"patientId": "p1"}
        )
        assert response.status_code == 404

        response = client.request(
            "DELETE", "/api/v1/notifications/clear-all", json={"patientId": "p1"}
        )
        assert response.json() == {"success": True, "deleted": 2}

    def test_bulk_and_broadcast(self, client):
        for patient in ("p1", "p2", "p3"):
            client.post(
                "/api/v1/devices/register",
                json={"patientId": patient, "token": f"ExponentPushToken[{patient}]"},
            )

        bulk = client.post(
            "/api/v1/notifications/send-bulk",
            json={"patientIds": ["p1", "p2"], "title": "t", "message": "m"},
        ).json()
        broadcast = client.post(
            "/api/v1/notifications/broadcast",
            json={"title": "t", "message": "m", "excludePatientIds": ["p3"]},
        ).json()

        assert [r["patientId"] for r in bulk["results"]] == ["p1", "p2"]
        assert broadcast["totalRecipients"] == 2
        assert broadcast["deliveredCount"] == 2
        assert broadcast["broadcastId"].startswith("B")

    def test_preferences(self, client):
        defaults = client.get("/api/v1/notifications/preferences/p1").json()
        assert defaults["enabled"] is True
        assert defaults["quietHoursStart"] == "22:00"

        response = client.put(
            "/api/v1/notifications/preferences",
            json={"patientId": "p1", "preferences": {"offers": False, "quietHoursEnabled": True}},
        )
        assert response.json() == {"success": True}

        updated = client.get("/api/v1/notifications/preferences/p1").json()
        assert updated["offers"] is False
        assert updated["quietHoursEnabled"] is True
        assert updated["updatedAt"] is not None

    def test_sync(self, client):
        client.post(
            "/api/v1/notifications/send",
            json={"patientId": "p1", "title": "t", "message": "m"},
        )

        body = client.post("/api/v1/notifications/sync", json={"patientId": "p1"}).json()

        assert len(body["notifications"]) == 1
        assert body["deletedIds"] == []
        assert body["syncTime"]

    def test_unregister_device(self, client, push_relay):
        client.post("/api/v1/devices/register", json={"patientId": "p1", "token": TOKEN})
        response = client.request(
            "DELETE", "/api/v1/devices/unregister", json={"patientId": "p1", "token": TOKEN}
        )
        assert response.json() == {"success": True}

        client.post(
            "/api/v1/notifications/send",
            json={"patientId": "p1", "title": "t", "message": "m"},
        )
        assert push_relay.sent == []


class TestPortalRoutes:
    """Tests for /api portal check routes."""

    def test_check_notifications_does_not_push(self, client, portal_client, push_relay):
        portal_client.documents["alice"] = make_document(
            entries=[DocumentEntry(text="Result A ready for pickup")]
        )
        users = [portal_user("alice", pushToken=TOKEN)]

        first = client.post("/api/check-notifications", json={"users": users}).json()

        assert first["success"] is True
        assert first["totalUsers"] == 1
        assert first["successCount"] == 1
        # Cold start: the first check only records what is there
        assert first["newNotificationsCount"] == 0
        assert first["results"][0]["totalCount"] == 1
        assert push_relay.sent == []

    def test_check_and_notify_pushes_new_results(self, client, portal_client, push_relay):
        users = [portal_user("alice", pushToken=TOKEN)]
        client.post("/api/check-notifications", json={"users": users})
        portal_client.documents["alice"] = make_document(
            entries=[DocumentEntry(text="Result B ready for pickup")]
        )

        body = client.post("/api/check-and-notify", json={"users": users}).json()

        assert body["success"] is True
        assert body["pushedCount"] == 1
        summary = body["results"][0]
        assert summary["userId"] == "alice"
        assert summary["notificationsFound"] == 1
        assert summary["pushSent"] is True
        assert push_relay.sent[0]["token"] == TOKEN

        again = client.post("/api/check-and-notify", json={"users": users}).json()
        assert again["pushedCount"] == 0
        assert again["results"][0]["isNew"] is False

    def test_failed_account_is_reported(self, client, portal_client):
        portal_client.auth_failures.add("bob")
        users = [portal_user("alice"), portal_user("bob"), portal_user("carol")]

        body = client.post("/api/check-notifications", json={"users": users}).json()

        assert body["totalUsers"] == 3
        assert body["successCount"] == 2
        failed = body["results"][1]
        assert failed["success"] is False
        assert failed["errorKind"] == "AuthError"

    @pytest.mark.parametrize("payload", [{}, {"users": []}, {"users": "alice"}])
    def test_invalid_users(self, client, payload):
        response = client.post("/api/check-notifications", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATA"

    def test_send_push(self, client, push_relay):
        response = client.post(
            "/api/send-push",
            json={"pushToken": TOKEN, "title": "Hello", "body": "World", "data": {"a": 1}},
        )

        assert response.json()["success"] is True
        assert push_relay.sent[0]["data"] == {"a": 1}

    def test_info(self, client):
        body = client.get("/api/info").json()

        assert body["portal"] == "https://portal.test"
        assert "checkAndNotify" in body["endpoints"]


class TestTraceEvents:
    def test_trace_events_after_check(self, client):
        client.post("/api/check-notifications", json={"users": [portal_user("alice")]})

        events = client.get("/api/trace-events", params={"actor": "reconciler"}).json()

        assert {e["event_type"] for e in events} >= {"reconcile_started", "reconcile_completed"}

    def test_invalid_after(self, client):
        response = client.get("/api/trace-events", params={"after": "yesterday"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATA"

    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["success"] is False
