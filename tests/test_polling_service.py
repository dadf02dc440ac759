"""Tests for the polling service tick handlers."""

import asyncio

import pytest

from squadron_tracker.adapters.warthunder.client import TransientFetchError
from squadron_tracker.application.polling_service import PollingService
from squadron_tracker.core.enums import BattleResult
from squadron_tracker.core.services import SnapshotDifferencer
from squadron_tracker.core.session import Active, Idle

from .factories import SnapshotFactory


@pytest.fixture
def polling_service(tracking_context, squadron_source, session_tracker, mock_event_publisher):
    return PollingService(
        context=tracking_context,
        client=squadron_source,
        differencer=SnapshotDifferencer(),
        session_tracker=session_tracker,
        event_publisher=mock_event_publisher,
        poll_interval_seconds=300,
        idle_check_interval_seconds=60,
    )


class TestPollingService:

    @pytest.mark.asyncio
    async def test_first_poll_sets_baseline_and_announces(self, polling_service, squadron_source, tracking_context, mock_event_publisher):
        baseline = SnapshotFactory.create(rating=1500, wins=10, losses=5)
        squadron_source.queue(baseline)

        events = await polling_service.poll_once()

        assert events == []
        assert tracking_context.previous_snapshot == baseline
        assert isinstance(tracking_context.session, Idle)
        status = mock_event_publisher.payloads("status")
        assert len(status) == 1
        assert status[0]["kind"] == "connected"
        assert status[0]["rating"] == 1500

    @pytest.mark.asyncio
    async def test_battle_detected_on_second_poll(self, polling_service, squadron_source, tracking_context, mock_event_publisher):
        baseline = SnapshotFactory.create(rating=1500, wins=10, losses=5)
        squadron_source.queue(baseline, SnapshotFactory.after(baseline, rating=15, wins=1))

        await polling_service.poll_once()
        events = await polling_service.poll_once()

        assert [e.result for e in events] == [BattleResult.VICTORY]
        assert isinstance(tracking_context.session, Active)
        assert tracking_context.session.session.starting_rating == 1500
        assert len(mock_event_publisher.payloads("battle")) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_before_baseline_announces_once(self, polling_service, squadron_source, tracking_context, mock_event_publisher):
        squadron_source.queue(TransientFetchError("timeout"), TransientFetchError("timeout"))

        assert await polling_service.poll_once() == []
        assert await polling_service.poll_once() == []

        assert tracking_context.previous_snapshot is None
        status = mock_event_publisher.payloads("status")
        assert [s["kind"] for s in status] == ["unavailable"]

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_previous_snapshot(self, polling_service, squadron_source, tracking_context, mock_event_publisher):
        baseline = SnapshotFactory.create()
        squadron_source.queue(baseline, TransientFetchError("boom"), SnapshotFactory.after(baseline, rating=-10, losses=1))

        await polling_service.poll_once()
        await polling_service.poll_once()
        events = await polling_service.poll_once()

        assert [e.result for e in events] == [BattleResult.DEFEAT]
        assert [s["kind"] for s in mock_event_publisher.payloads("status")] == ["connected"]

    @pytest.mark.asyncio
    async def test_decreasing_counters_rebaseline(self, polling_service, squadron_source, tracking_context):
        baseline = SnapshotFactory.create(wins=10, losses=5)
        reset = SnapshotFactory.after(baseline, wins=-10, losses=-5)
        squadron_source.queue(baseline, reset, SnapshotFactory.after(reset, rating=10, wins=1))

        await polling_service.poll_once()
        assert await polling_service.poll_once() == []
        assert tracking_context.previous_snapshot == reset

        events = await polling_service.poll_once()
        assert [e.result for e in events] == [BattleResult.VICTORY]

    @pytest.mark.asyncio
    async def test_overlapping_poll_is_skipped(self, polling_service, squadron_source, tracking_context):
        async with tracking_context.poll_lock:
            assert await polling_service.poll_once() == []

        assert squadron_source.snapshot_calls == 0

    @pytest.mark.asyncio
    async def test_idle_tick_closes_session(self, polling_service, squadron_source, tracking_context, mock_event_publisher, clock):
        baseline = SnapshotFactory.create()
        squadron_source.queue(baseline, SnapshotFactory.after(baseline, rating=15, wins=1))
        await polling_service.poll_once()
        await polling_service.poll_once()

        clock.advance(minutes=31)
        await polling_service.check_idle_once()

        assert isinstance(tracking_context.session, Idle)
        assert len(mock_event_publisher.payloads("session_ended")) == 1

    @pytest.mark.asyncio
    async def test_start_and_stop_polling(self, polling_service, squadron_source):
        squadron_source.queue(SnapshotFactory.create())

        await polling_service.start_polling()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        await polling_service.stop_polling()

        assert squadron_source.snapshot_calls == 1
