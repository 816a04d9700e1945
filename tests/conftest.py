"""Pytest configuration and fixtures."""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from resultwatch.errors import AcknowledgmentError, AuthError, FetchError
from resultwatch.models import (
    Account,
    DeliveryResult,
    ItemCategory,
    ObservedItem,
    PortalCredentials,
)
from resultwatch.portal import DocumentEntry, DocumentModel

FETCHED_AT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_item(text: str, local_id: str = "keyword_0", **kwargs) -> ObservedItem:
    """Build an ObservedItem with sensible defaults."""
    kwargs.setdefault("category", ItemCategory.KEYWORD)
    kwargs.setdefault("timestamp", FETCHED_AT)
    return ObservedItem(local_id=local_id, text=text, **kwargs)


def make_document(
    lines: list[str] | None = None,
    entries: list[DocumentEntry] | None = None,
    rows: list[list[str]] | None = None,
    visit_links: list[str] | None = None,
) -> DocumentModel:
    """Build a DocumentModel as if parsed from a notifications page."""
    return DocumentModel(
        url="https://portal.test/Patient/Notification",
        fetched_at=FETCHED_AT,
        body_text="\n".join(lines or []),
        notification_entries=entries or [],
        table_rows=rows or [],
        visit_links=visit_links or [],
    )


def make_account(
    account_id: str, tokens: list[str] | None = None, name: str | None = None
) -> Account:
    return Account(
        account_id=account_id,
        display_name=name or account_id.title(),
        credentials=PortalCredentials(username=account_id, password="secret"),
        push_tokens=tokens or [],
    )


class FakePortalSession:
    """Serves a fixed document and records visits."""

    def __init__(self, client: "FakePortalClient", username: str):
        self._client = client
        self._username = username
        self.closed = False

    async def fetch_rendered_page(self, url: str) -> DocumentModel:
        self._client.fetched.append((self._username, url))
        self._client.active += 1
        self._client.max_active = max(self._client.max_active, self._client.active)
        try:
            await asyncio.sleep(self._client.fetch_delay)
        finally:
            self._client.active -= 1
        if self._username in self._client.fetch_failures:
            raise FetchError(f"Timed out loading {url}")
        return self._client.documents.get(self._username, make_document())

    async def visit(self, url: str) -> None:
        self._client.visited.append((self._username, url))
        if any(part in url for part in self._client.visit_failures):
            raise AcknowledgmentError(f"Failed to visit {url}")

    async def close(self) -> None:
        self.closed = True
        self._client.closed_sessions += 1


class FakePortalClient:
    """In-memory stand-in for the Playwright portal client."""

    def __init__(self, documents: dict[str, DocumentModel] | None = None):
        self.documents = documents or {}
        self.auth_failures: set[str] = set()
        self.fetch_failures: set[str] = set()
        self.visit_failures: list[str] = []
        self.fetch_delay: float = 0.0
        self.logins: list[str] = []
        self.fetched: list[tuple[str, str]] = []
        self.visited: list[tuple[str, str]] = []
        self.closed_sessions = 0
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def authenticate(self, credentials: PortalCredentials) -> FakePortalSession:
        self.logins.append(credentials.username)
        if credentials.username in self.auth_failures:
            raise AuthError("Portal rejected login")
        return FakePortalSession(self, credentials.username)

    async def close(self) -> None:
        self.closed = True


class FakePushRelay:
    """Records pushes; tokens containing 'bad' fail."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False

    async def deliver(self, token, title, body, data=None) -> DeliveryResult:
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        if "bad" in token:
            return DeliveryResult(token=token, success=False, reason="invalid token")
        return DeliveryResult(token=token, success=True, ticket={"status": "ok"})

    async def close(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from resultwatch.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from resultwatch.tracker import Tracker

    return Tracker(storage)


@pytest.fixture
def portal_client():
    return FakePortalClient()


@pytest.fixture
def push_relay():
    return FakePushRelay()


@pytest.fixture
def snapshots():
    from resultwatch.reconciler import InMemorySnapshotStore

    return InMemorySnapshotStore()


@pytest.fixture
def site():
    from resultwatch.config import PortalSite

    return PortalSite(base_url="https://portal.test")


@pytest.fixture
def reconciler_config():
    from resultwatch.config import ReconcilerConfig

    return ReconcilerConfig(
        login_timeout_seconds=1.0,
        step_timeout_seconds=1.0,
        acknowledge_timeout_seconds=0.5,
        batch_timeout_seconds=5.0,
        settle_delay_ms=0,
    )


@pytest.fixture
def reconciler(portal_client, push_relay, snapshots, tracker, site, reconciler_config):
    """Create Reconciler wired to fakes."""
    from resultwatch.reconciler import Reconciler

    return Reconciler(
        portal_client=portal_client,
        push_relay=push_relay,
        snapshots=snapshots,
        tracker=tracker,
        site=site,
        config=reconciler_config,
    )


@pytest.fixture
def notification_service(storage, push_relay, tracker):
    from resultwatch.notifications import NotificationService

    return NotificationService(storage, push_relay, tracker)
