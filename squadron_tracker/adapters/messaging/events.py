"""NATS event publishing infrastructure layer."""

import json
import logging
from typing import Any, Dict, List, Optional

import nats
from nats.aio.client import Client as NATSClient
from nats.js import JetStreamContext
import nats.js.errors

from ...config import Config
from ...core.events import SquadronEvent

logger = logging.getLogger(__name__)


class PublishFailure(Exception):
    """An event could not be delivered to the message bus."""

    pass


class EventPublisher:
    """NATS JetStream publisher for squadron notification payloads."""

    def __init__(self, config: Config, metrics=None):
        """Initialize the event publisher.

        Args:
            config: Application configuration
            metrics: Optional metrics provider
        """
        self.config = config
        self.metrics = metrics
        self._client: Optional[NATSClient] = None
        self._js: Optional[JetStreamContext] = None
        self._connected = False

    async def initialize(self) -> None:
        """Initialize connection to NATS."""
        if self._connected:
            logger.warning("Event publisher already initialized")
            return

        try:
            logger.info(f"Connecting to NATS at {self.config.message_bus_url}")

            self._client = await nats.connect(
                servers=self.config.message_bus_url,
                connect_timeout=self.config.message_bus_timeout_seconds,
                max_reconnect_attempts=self.config.message_bus_max_reconnect_attempts,
                reconnect_time_wait=self.config.message_bus_reconnect_delay_seconds,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
            )

            # Enable JetStream
            self._js = self._client.jetstream()
            self._connected = True

            await self._create_streams()

            logger.info("Event publisher initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize event publisher: {e}")
            self._connected = False
            raise

    async def close(self) -> None:
        """Close connection to NATS."""
        if not self._connected or not self._client:
            return

        try:
            logger.info("Closing event publisher")
            await self._client.close()
            self._connected = False
            self._client = None
            self._js = None
            logger.info("Event publisher closed")
        except Exception as e:
            logger.error(f"Error closing event publisher: {e}")

    async def _create_streams(self) -> None:
        """Create the squadron events stream if it doesn't exist."""
        if not self._js:
            raise RuntimeError("Not connected to NATS JetStream")

        stream_name = self.config.squadron_events_stream
        try:
            await self._js.stream_info(stream_name)
            logger.info(f"JetStream stream '{stream_name}' already exists")
        except nats.js.errors.NotFoundError:
            logger.info(f"Creating JetStream stream '{stream_name}'")
            await self._js.add_stream(
                name=stream_name,
                subjects=[f"{self.config.squadron_events_subject}.*"],
                description="Squadron battle, session and status events",
                retention="limits",
                max_age=self.config.jetstream_max_age_hours * 60 * 60,  # Convert to seconds
                max_msgs=self.config.jetstream_max_msgs,
                storage=self.config.jetstream_storage,
            )
            logger.info(f"Successfully created JetStream stream '{stream_name}'")

    async def is_healthy(self) -> bool:
        """Check if the event publisher is healthy and can publish events."""
        return (
            self._connected and self._client is not None and self._client.is_connected
        )

    def subject_for(self, event: SquadronEvent) -> str:
        return f"{self.config.squadron_events_subject}.{event.get_event_type()}"

    async def publish(self, event: SquadronEvent) -> None:
        """Publish a squadron event as JSON.

        Raises:
            PublishFailure: If the event could not be delivered
        """
        subject = self.subject_for(event)
        if not self._connected:
            self._record(event, subject, success=False)
            raise PublishFailure("Cannot publish event - not connected to NATS")

        payload = event.to_dict()
        try:
            await self._publish_message(subject, payload)
        except PublishFailure:
            self._record(event, subject, success=False)
            raise
        except Exception as e:
            self._record(event, subject, success=False)
            raise PublishFailure(f"Failed to publish to {subject}: {e}") from e

        self._record(event, subject, success=True)
        logger.info(f"Published {event.get_event_type()} event for {event.squadron_name} to {subject}")

    async def _publish_message(self, subject: str, payload: Dict[str, Any]) -> None:
        """Serialize and publish a payload to a NATS subject."""
        if not self._js:
            raise PublishFailure("Not connected to NATS JetStream")

        data = json.dumps(payload).encode("utf-8")
        ack = await self._js.publish(subject, data)
        logger.debug(
            f"Published to NATS - Subject: {subject}, Size: {len(data)} bytes, "
            f"Stream: {ack.stream}, Seq: {ack.seq}"
        )

    def _record(self, event: SquadronEvent, subject: str, success: bool) -> None:
        if self.metrics:
            self.metrics.record_message_published(
                event_type=event.get_event_type(),
                subject=subject,
                stream=self.config.squadron_events_stream,
                success=success,
            )

    # NATS callbacks

    async def _error_callback(self, error):
        """Handle NATS connection errors."""
        logger.error(f"NATS error: {error}")

    async def _disconnected_callback(self):
        """Handle NATS disconnection."""
        logger.warning("Disconnected from NATS")
        self._connected = False

    async def _reconnected_callback(self):
        """Handle NATS reconnection."""
        logger.info("Reconnected to NATS")
        self._connected = True


class MockEventPublisher(EventPublisher):
    """Mock event publisher for testing that reuses the real JSON serialization."""

    def __init__(self, config: Config, metrics=None):
        super().__init__(config, metrics)
        self.published_messages: List[Dict[str, Any]] = []  # {"subject", "payload", "data"}
        self.fail_publishes = False

    async def initialize(self) -> None:
        """Mock initialize operation - skip NATS connection."""
        self._connected = True
        logger.info("Mock: Event publisher initialized")

    async def close(self) -> None:
        """Mock close operation - no NATS to close."""
        self._connected = False
        logger.info("Mock: Event publisher closed")

    async def is_healthy(self) -> bool:
        return self._connected

    async def _publish_message(self, subject: str, payload: Dict[str, Any]) -> None:
        """Capture messages instead of publishing to NATS."""
        if self.fail_publishes:
            raise PublishFailure(f"Mock: publishing to {subject} disabled")
        data = json.dumps(payload).encode("utf-8")
        self.published_messages.append({"subject": subject, "payload": payload, "data": data})
        logger.debug(f"Mock: Captured message to {subject}")

    def payloads(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Captured payloads, optionally filtered by event type."""
        return [
            message["payload"]
            for message in self.published_messages
            if event_type is None or message["payload"]["event_type"] == event_type
        ]
