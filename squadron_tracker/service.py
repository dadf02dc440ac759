"""Main service class for Squadron Tracker."""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from squadron_tracker.config import Config
from squadron_tracker.core.clock import Clock, SystemClock
from squadron_tracker.core.entities import Player, RankQueryResult
from squadron_tracker.core.services import SnapshotDifferencer
from squadron_tracker.adapters.messaging.events import EventPublisher
from squadron_tracker.adapters.observability import initialize_metrics, shutdown_metrics
from squadron_tracker.adapters.warthunder.client import TransientFetchError, WarThunderClient
from squadron_tracker.adapters.warthunder.retry import RetryPolicy
from squadron_tracker.application.context import TrackingContext
from squadron_tracker.application.polling_service import PollingService
from squadron_tracker.application.rank_resolver import LeaderboardRankResolver
from squadron_tracker.application.roster_service import RosterService
from squadron_tracker.application.session_tracker import SessionTracker


logger = logging.getLogger(__name__)


class SquadronTrackerService:
    """Orchestrates squadron tracking.

    Builds the infrastructure, owns the tracking context and exposes the
    on-demand queries (rank, roster views) used by the chat front end.
    """

    def __init__(
        self,
        config: Config,
        event_publisher: Optional[EventPublisher] = None,
        client: Optional[WarThunderClient] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the Squadron Tracker service.

        Args:
            config: Service configuration
            event_publisher: Optional publisher for dependency injection.
                             If not provided, a NATS EventPublisher is created from config.
            client: Optional data source client for dependency injection
            clock: Optional time source
        """
        self.config = config
        self.clock = clock or SystemClock()
        self._running = False
        self._stopped = asyncio.Event()

        self._provided_event_publisher = event_publisher
        self._provided_client = client

        # Infrastructure components
        self._metrics_provider = None
        self._event_publisher: Optional[EventPublisher] = None
        self._client: Optional[WarThunderClient] = None

        # Tracking components
        self.context = TrackingContext(squadron_name=config.squadron_name)
        self.session_tracker: Optional[SessionTracker] = None
        self.polling_service: Optional[PollingService] = None
        self.rank_resolver: Optional[LeaderboardRankResolver] = None
        self.roster_service: Optional[RosterService] = None

    async def start(self):
        """Start the service and block until ``stop`` is called."""
        logger.info("Starting Squadron Tracker service")
        self._running = True
        self._stopped.clear()

        await self.initialize()
        await self.polling_service.start_polling()

        # Main service loop - message bus health checks until stopped
        while self._running:
            try:
                await asyncio.wait_for(
                    self._stopped.wait(), timeout=self.config.health_check_interval_seconds
                )
            except asyncio.TimeoutError:
                await self._check_health()
        await self._stopped.wait()

    async def _check_health(self) -> None:
        """Reconnect the event publisher if its connection was lost."""
        if not self._running or await self._event_publisher.is_healthy():
            return
        logger.warning("Message bus connection lost, attempting to reconnect...")
        try:
            await self._event_publisher.initialize()
            logger.info("Message bus reconnection successful")
        except Exception as e:
            logger.error(f"Failed to reconnect to message bus: {e}")

    async def stop(self):
        """Stop the service, flushing any open session first."""
        if not self._running:
            return
        logger.info("Stopping Squadron Tracker service")
        self._running = False

        if self.polling_service:
            try:
                await self.polling_service.stop_polling()
            except Exception as e:
                logger.error(f"Error stopping polling service: {e}")

        # The summary must go out before infrastructure is torn down
        if self.session_tracker:
            await self.session_tracker.shutdown(self.context)

        await self._cleanup_infrastructure()
        self._stopped.set()
        logger.info("Squadron Tracker service stopped")

    async def initialize(self) -> None:
        """Initialize infrastructure and tracking components."""
        logger.info("Initializing infrastructure components")

        self._metrics_provider = initialize_metrics(self.config)

        if self._provided_event_publisher is not None:
            self._event_publisher = self._provided_event_publisher
        else:
            self._event_publisher = EventPublisher(self.config, self._metrics_provider)
        await self._event_publisher.initialize()

        if self._provided_client is not None:
            self._client = self._provided_client
        else:
            self._client = self.build_client(self.config, self._metrics_provider)
        logger.info(f"Using data source at: {self._client.base_url}")

        self.session_tracker = SessionTracker(
            event_publisher=self._event_publisher,
            idle_timeout=timedelta(minutes=self.config.idle_timeout_minutes),
            clock=self.clock,
            summary_max_events=self.config.summary_max_events,
            metrics=self._metrics_provider,
        )
        self.polling_service = PollingService(
            context=self.context,
            client=self._client,
            differencer=SnapshotDifferencer(self.config.infer_result_from_rating),
            session_tracker=self.session_tracker,
            event_publisher=self._event_publisher,
            poll_interval_seconds=self.config.poll_interval_seconds,
            idle_check_interval_seconds=self.config.idle_check_interval_seconds,
            metrics=self._metrics_provider,
        )
        self.rank_resolver = self.build_rank_resolver(self.config, self._client, self._metrics_provider)
        self.roster_service = RosterService(self._client, self.config.low_rating_threshold)

        logger.info("Infrastructure initialization completed")

    @staticmethod
    def build_client(config: Config, metrics=None) -> WarThunderClient:
        """Create the data source client with the configured resilience settings."""
        retry_policy = RetryPolicy(
            max_attempts=config.max_retry_attempts,
            base_delay=config.retry_base_delay_seconds,
            multiplier=config.retry_backoff_multiplier,
            max_delay=config.retry_max_delay_seconds,
            retry_on=(TransientFetchError,),
        )
        return WarThunderClient(
            squadron_name=config.squadron_name,
            base_url=config.warthunder_base_url,
            request_timeout=config.request_timeout_seconds,
            retry_policy=retry_policy,
            page_size=config.leaderboard_page_size,
            metrics=metrics,
        )

    @staticmethod
    def build_rank_resolver(config: Config, client: WarThunderClient, metrics=None) -> LeaderboardRankResolver:
        return LeaderboardRankResolver(
            client,
            page_size=config.leaderboard_page_size,
            max_pages=config.leaderboard_max_pages,
            default_sort_key=config.leaderboard_default_sort_key,
            metrics=metrics,
        )

    # On-demand queries

    async def resolve_rank(self, team_name: Optional[str] = None) -> RankQueryResult:
        """Leaderboard position of ``team_name`` (defaults to the tracked squadron)."""
        return await self.rank_resolver.resolve(team_name or self.config.squadron_name)

    async def top_players(self, limit: int = 20) -> list[Player]:
        return await self.roster_service.top_players(limit)

    async def low_rating_players(self) -> list[Player]:
        return await self.roster_service.low_rating_players()

    async def match_member(self, display_name: str) -> Optional[Player]:
        return await self.roster_service.match_member(display_name)

    async def _cleanup_infrastructure(self) -> None:
        """Clean up all infrastructure components."""
        logger.info("Cleaning up infrastructure components")

        if self._client:
            await self._client.close()

        if self._event_publisher:
            try:
                await self._event_publisher.close()
            except Exception as e:
                logger.error(f"Error closing event publisher: {e}")

        shutdown_metrics()

        logger.info("Infrastructure cleanup completed")
