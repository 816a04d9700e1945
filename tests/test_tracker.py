"""Tests for Tracker."""

from datetime import datetime, timezone

import pytest

from resultwatch.tracker import Tracker


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker, storage):
        """Test that track() creates a TraceEvent."""
        await tracker.track(
            event_type="reconcile_completed",
            actor="reconciler",
            data={"account_id": "alice"},
        )

        events = await storage.get_trace_events()
        assert len(events) == 1
        assert events[0].event_type == "reconcile_completed"
        assert events[0].actor == "reconciler"
        assert events[0].data == {"account_id": "alice"}

    @pytest.mark.asyncio
    async def test_track_generates_id(self, tracker, storage):
        """Test that track() generates an ID."""
        await tracker.track(event_type="test_event", actor="test_actor", data={})

        events = await storage.get_trace_events()
        assert events[0].id

    @pytest.mark.asyncio
    async def test_track_generates_timestamp(self, tracker, storage):
        """Test that track() stamps the current time."""
        before = datetime.now(timezone.utc)
        await tracker.track(event_type="test_event", actor="test_actor", data={})
        after = datetime.now(timezone.utc)

        events = await storage.get_trace_events()
        assert before <= events[0].timestamp <= after

    @pytest.mark.asyncio
    async def test_track_multiple_events(self, tracker, storage):
        """Test tracking multiple events."""
        await tracker.track(event_type="event1", actor="actor1", data={})
        await tracker.track(event_type="event2", actor="actor2", data={})
        await tracker.track(event_type="event3", actor="actor3", data={})

        events = await storage.get_trace_events()
        assert len(events) == 3


class TestTrackerFailures:
    """Tests for storage failures while tracking."""

    @pytest.mark.asyncio
    async def test_storage_failure_is_dropped(self, caplog):
        """Test that a broken storage does not raise out of track()."""

        class BrokenStorage:
            async def save_trace_event(self, event):
                raise RuntimeError("disk full")

        tracker = Tracker(BrokenStorage())

        await tracker.track(event_type="test_event", actor="test_actor", data={})

        assert "Dropped trace event test_event" in caplog.text
