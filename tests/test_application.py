"""Tests for Application."""

import pytest
from conftest import FakePortalClient, FakePushRelay, make_account, make_item

from resultwatch.app import Application
from resultwatch.portal import PlaywrightPortalClient
from resultwatch.push import ExpoPushRelay
from resultwatch.reconciler import InMemorySnapshotStore


class TestApplicationStart:
    """Tests for Application.start()."""

    @pytest.mark.asyncio
    async def test_start_initializes_components(self):
        """Test that start initializes all components."""
        app = Application(
            db_path=":memory:",
            portal_client=FakePortalClient(),
            push_relay=FakePushRelay(),
        )
        await app.start()

        assert app._storage is not None
        assert app._tracker is not None
        assert app._notification_service is not None
        assert app._reconciler is not None
        assert app._snapshots is not None

        await app.stop()

    @pytest.mark.asyncio
    async def test_start_wires_dependencies(self):
        """Test that components share the same collaborators."""
        portal_client = FakePortalClient()
        push_relay = FakePushRelay()
        app = Application(
            db_path=":memory:", portal_client=portal_client, push_relay=push_relay
        )
        await app.start()

        assert app._tracker._storage is app._storage
        assert app._notification_service._storage is app._storage
        assert app._notification_service._push is push_relay
        assert app._reconciler._portal is portal_client
        assert app._reconciler._push is push_relay
        assert app._reconciler._snapshots is app._snapshots
        assert app._reconciler._tracker is app._tracker

        await app.stop()

    @pytest.mark.asyncio
    async def test_start_builds_defaults(self):
        """Test that missing collaborators are built from configuration."""
        app = Application(db_path=":memory:")
        await app.start()

        assert isinstance(app.push_relay, ExpoPushRelay)
        assert isinstance(app._portal_client, PlaywrightPortalClient)
        assert isinstance(app._snapshots, InMemorySnapshotStore)

        await app.stop()


class TestApplicationStop:
    """Tests for Application.stop()."""

    @pytest.mark.asyncio
    async def test_stop_closes_components(self):
        """Test that stop closes portal client, relay and storage."""
        portal_client = FakePortalClient()
        push_relay = FakePushRelay()
        app = Application(
            db_path=":memory:", portal_client=portal_client, push_relay=push_relay
        )
        await app.start()
        await app.stop()

        assert portal_client.closed
        assert push_relay.closed
        with pytest.raises(RuntimeError):
            await app._storage.get_trace_events()

    @pytest.mark.asyncio
    async def test_stop_before_start(self):
        """Test that stop without start does nothing."""
        app = Application(db_path=":memory:")
        await app.stop()


class TestApplicationReset:
    @pytest.mark.asyncio
    async def test_reset_clears_store_and_snapshots(self):
        snapshots = InMemorySnapshotStore({"alice": [make_item("Result A ready")]})
        app = Application(
            db_path=":memory:",
            portal_client=FakePortalClient(),
            push_relay=FakePushRelay(),
            snapshots=snapshots,
        )
        await app.start()
        await app.notification_service.send("p1", "Hi", "There")

        await app.reset()

        assert await app.storage.get_notifications("p1") == []
        assert await snapshots.get("alice") is None

        await app.stop()


class TestApplicationProperties:
    """Tests for accessors."""

    def test_properties_require_start(self):
        app = Application(db_path=":memory:")

        for name in ("storage", "notification_service", "reconciler", "push_relay"):
            with pytest.raises(RuntimeError, match="Application not started"):
                getattr(app, name)

    @pytest.mark.asyncio
    async def test_reconciler_runs_through_application(self):
        portal_client = FakePortalClient()
        app = Application(
            db_path=":memory:", portal_client=portal_client, push_relay=FakePushRelay()
        )
        await app.start()

        batch = await app.reconciler.run_batch([make_account("alice")])

        assert batch.success_count == 1
        assert portal_client.logins == ["alice"]

        await app.stop()
