"""Polling service for the Squadron Tracker application.

Runs two independent loops against a shared ``TrackingContext``:
- Poll loop: fetches a snapshot, diffs it against the previous one and feeds
  inferred battles to the session tracker
- Idle loop: closes the session once it has been inactive long enough
"""

import asyncio
import logging
from typing import List, Optional

from ..core.entities import BattleEvent, Snapshot
from ..core.events import TrackerStatusEvent
from ..core.services import SnapshotDifferencer
from ..adapters.messaging.events import EventPublisher, PublishFailure
from ..adapters.warthunder.client import WarThunderAPIError, WarThunderClient
from .context import TrackingContext
from .session_tracker import SessionTracker


logger = logging.getLogger(__name__)


class PollingService:
    """Drives the poll tick and the idle-check tick.

    Poll ticks never overlap: the loop awaits each tick before sleeping, and
    a tick requested while another is in flight is skipped.
    """

    def __init__(
        self,
        context: TrackingContext,
        client: WarThunderClient,
        differencer: SnapshotDifferencer,
        session_tracker: SessionTracker,
        event_publisher: EventPublisher,
        poll_interval_seconds: float,
        idle_check_interval_seconds: float = 60,
        metrics=None,
    ):
        """Initialize the polling service.

        Args:
            context: Tracking context shared by both ticks
            client: Data source adapter
            differencer: Snapshot differencer
            session_tracker: Owner of session transitions
            event_publisher: Publisher for status events
            poll_interval_seconds: Poll cadence
            idle_check_interval_seconds: Idle-check cadence
            metrics: Optional metrics provider
        """
        self.context = context
        self.client = client
        self.differencer = differencer
        self.session_tracker = session_tracker
        self.event_publisher = event_publisher
        self.poll_interval_seconds = poll_interval_seconds
        self.idle_check_interval_seconds = idle_check_interval_seconds
        self.metrics = metrics

        # Polling state
        self._is_running = False
        self._poll_task: Optional[asyncio.Task] = None
        self._idle_task: Optional[asyncio.Task] = None

    # Public API

    async def start_polling(self) -> None:
        """Start both loops."""
        if self._is_running:
            logger.warning("Polling is already running")
            return

        self._is_running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._idle_task = asyncio.create_task(self._idle_loop())

        logger.info(
            f"Started polling - Snapshots: {self.poll_interval_seconds}s, "
            f"Idle checks: {self.idle_check_interval_seconds}s"
        )

    async def stop_polling(self) -> None:
        """Stop both loops gracefully."""
        if not self._is_running:
            logger.warning("Polling is not running")
            return

        self._is_running = False

        tasks_to_cancel = [
            task for task in (self._poll_task, self._idle_task) if task and not task.done()
        ]
        for task in tasks_to_cancel:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped polling")

    async def poll_once(self) -> List[BattleEvent]:
        """Execute a single poll tick.

        Returns:
            Battle events inferred during this tick
        """
        if self.context.poll_lock.locked():
            logger.warning("Previous poll still in flight, skipping tick")
            return []

        async with self.context.poll_lock:
            if self.metrics:
                self.metrics.record_polling_iteration("poll")
            return await self._execute_poll()

    async def check_idle_once(self) -> None:
        """Execute a single idle-check tick."""
        if self.metrics:
            self.metrics.record_polling_iteration("idle")
        await self.session_tracker.check_idle(self.context)

    # Loops

    async def _poll_loop(self) -> None:
        """Snapshot polling loop."""
        logger.info("Snapshot polling loop started")

        while self._is_running:
            try:
                await self.poll_once()
                await asyncio.sleep(self.poll_interval_seconds)

            except asyncio.CancelledError:
                logger.info("Snapshot polling loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in snapshot polling loop: {e}")
                if self.metrics:
                    self.metrics.record_polling_error("poll", type(e).__name__)
                # Wait before retrying on error
                await asyncio.sleep(min(self.poll_interval_seconds, 30))

        logger.info("Snapshot polling loop stopped")

    async def _idle_loop(self) -> None:
        """Session idle-check loop."""
        logger.info("Idle check loop started")

        while self._is_running:
            try:
                await asyncio.sleep(self.idle_check_interval_seconds)
                await self.check_idle_once()

            except asyncio.CancelledError:
                logger.info("Idle check loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in idle check loop: {e}")
                if self.metrics:
                    self.metrics.record_polling_error("idle", type(e).__name__)

        logger.info("Idle check loop stopped")

    # Tick implementation

    async def _execute_poll(self) -> List[BattleEvent]:
        context = self.context
        logger.debug(f"Checking squadron stats for {context.squadron_name}")

        try:
            snapshot = await self.client.fetch_snapshot()
        except WarThunderAPIError as e:
            logger.warning(f"Could not fetch snapshot for {context.squadron_name}: {e}")
            if self.metrics:
                self.metrics.record_polling_error("poll", type(e).__name__)
            if context.previous_snapshot is None and not context.unavailable_announced:
                context.unavailable_announced = True
                await self._announce(
                    TrackerStatusEvent.unavailable(
                        context.squadron_name, self.session_tracker.clock.now(), str(e)
                    )
                )
            return []

        logger.info(
            f"Current stats for {context.squadron_name}: rating {snapshot.rating}, {snapshot.record}"
        )

        previous = context.previous_snapshot
        context.previous_snapshot = snapshot

        if previous is None:
            # First reading only establishes the baseline
            if not context.connected_announced:
                context.connected_announced = True
                await self._announce(TrackerStatusEvent.connected(context.squadron_name, snapshot))
            return []

        return await self._process_snapshot(previous, snapshot)

    async def _process_snapshot(self, previous: Snapshot, current: Snapshot) -> List[BattleEvent]:
        outcome = self.differencer.diff(previous, current)

        if outcome.inconsistency is not None:
            logger.warning(
                f"Snapshot inconsistency {outcome.inconsistency.value}: "
                f"rating {previous.rating}->{current.rating}, "
                f"record {previous.record}->{current.record}"
            )
            if self.metrics:
                self.metrics.record_data_inconsistency(outcome.inconsistency.value)

        if not outcome.has_events:
            return []

        if self.metrics:
            for event in outcome.events:
                self.metrics.record_battles_detected(event.result.value, event.battles)

        await self.session_tracker.record_battles(self.context, outcome.events, previous.rating)
        return list(outcome.events)

    async def _announce(self, event: TrackerStatusEvent) -> None:
        try:
            await self.event_publisher.publish(event)
        except PublishFailure as e:
            logger.error(f"Failed to publish status event: {e}")
