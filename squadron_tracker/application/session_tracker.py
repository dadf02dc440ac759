"""Session tracking: single writer of the play-session state."""

import logging
from datetime import timedelta
from typing import List, Optional, Sequence

from ..core import session as session_fsm
from ..core.clock import Clock, SystemClock
from ..core.entities import BattleEvent, SessionSummary
from ..core.enums import SessionEndReason
from ..core.events import (
    BattleCompletedEvent,
    SessionEndedEvent,
    SessionStartedEvent,
    SquadronEvent,
)
from ..adapters.messaging.events import EventPublisher, PublishFailure
from .context import TrackingContext


logger = logging.getLogger(__name__)


class SessionTracker:
    """Applies battle events and timeouts to the session held in a context.

    State transitions are committed under the context's session lock and
    only then announced; a failed publish never undoes a transition.
    """

    def __init__(
        self,
        event_publisher: EventPublisher,
        idle_timeout: timedelta,
        clock: Optional[Clock] = None,
        summary_max_events: int = 20,
        metrics=None,
    ):
        self.event_publisher = event_publisher
        self.idle_timeout = idle_timeout
        self.clock = clock or SystemClock()
        self.summary_max_events = summary_max_events
        self.metrics = metrics

    async def record_battles(
        self,
        context: TrackingContext,
        events: Sequence[BattleEvent],
        previous_rating: int,
    ) -> None:
        """Fold battle events into the session, opening it when idle.

        Args:
            context: Tracking context owning the session
            events: Events inferred from the latest poll, in order
            previous_rating: Rating observed before the first event
        """
        notifications: List[SquadronEvent] = []

        async with context.session_lock:
            rating_before = previous_rating
            for event in events:
                transition = session_fsm.record_event(
                    context.session, event, rating_before, self.clock.now()
                )
                context.session = transition.state
                session = transition.state.session

                if transition.started:
                    logger.info(
                        f"Session started for {context.squadron_name} at rating {session.starting_rating}"
                    )
                    if self.metrics:
                        self.metrics.record_session_started()
                    notifications.append(
                        SessionStartedEvent(
                            squadron_name=context.squadron_name,
                            occurred_at=session.start_time,
                            starting_rating=session.starting_rating,
                        )
                    )

                logger.info(
                    f"Battle recorded for {context.squadron_name}: {event.result.value} "
                    f"({event.rating_delta:+d}), session {session.wins}W-{session.losses}L"
                )
                notifications.append(
                    BattleCompletedEvent.from_session(context.squadron_name, event, session)
                )
                rating_before = event.new_rating

        for notification in notifications:
            await self._notify(notification)

    async def check_idle(self, context: TrackingContext) -> Optional[SessionSummary]:
        """Close the session if it has been inactive for the idle timeout."""
        async with context.session_lock:
            transition = session_fsm.expire_if_idle(
                context.session,
                self.clock.now(),
                self.idle_timeout,
                self.summary_max_events,
            )
            context.session = transition.state

        if transition.ended:
            logger.info(
                f"Session for {context.squadron_name} timed out after "
                f"{self.idle_timeout.total_seconds() / 60:.0f} minutes of inactivity"
            )
            await self._announce_end(context, transition.summary)
        return transition.summary

    async def shutdown(self, context: TrackingContext) -> Optional[SessionSummary]:
        """Close any open session and wait for its summary to be published."""
        async with context.session_lock:
            transition = session_fsm.close(
                context.session,
                self.clock.now(),
                SessionEndReason.SHUTDOWN,
                self.summary_max_events,
            )
            context.session = transition.state

        if transition.ended:
            logger.info(f"Ending active session for {context.squadron_name} due to shutdown")
            await self._announce_end(context, transition.summary)
        return transition.summary

    async def _announce_end(self, context: TrackingContext, summary: SessionSummary) -> None:
        if self.metrics:
            self.metrics.record_session_ended(summary.reason.value)
        await self._notify(
            SessionEndedEvent(
                squadron_name=context.squadron_name,
                occurred_at=summary.ended_at,
                summary=summary,
            )
        )

    async def _notify(self, event: SquadronEvent) -> None:
        """Publish best-effort; failures are logged and swallowed."""
        try:
            await self.event_publisher.publish(event)
        except PublishFailure as e:
            logger.error(f"Failed to publish {event.get_event_type()} event: {e}")
