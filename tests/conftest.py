"""Shared pytest fixtures for Squadron Tracker tests."""

from datetime import timedelta

import pytest
import pytest_asyncio

from squadron_tracker.config import Config, Environment
from squadron_tracker.adapters.messaging.events import MockEventPublisher
from squadron_tracker.application.context import TrackingContext
from squadron_tracker.application.session_tracker import SessionTracker

from .fakes import FakeClock, FakeSquadronSource


SQUADRON_NAME = "TestSquad"


@pytest.fixture
def test_config():
    """Configuration suitable for unit tests."""
    return Config(
        squadron_name=SQUADRON_NAME,
        environment=Environment.CI,
        warthunder_base_url="https://warthunder.test",
        poll_interval_minutes=5,
        idle_timeout_minutes=30,
        otel_enabled=False,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def mock_event_publisher(test_config):
    """Create mock event publisher."""
    publisher = MockEventPublisher(test_config)
    await publisher.initialize()
    yield publisher
    await publisher.close()


@pytest.fixture
def tracking_context():
    return TrackingContext(squadron_name=SQUADRON_NAME)


@pytest.fixture
def session_tracker(mock_event_publisher, clock):
    return SessionTracker(
        event_publisher=mock_event_publisher,
        idle_timeout=timedelta(minutes=30),
        clock=clock,
        summary_max_events=20,
    )


@pytest.fixture
def squadron_source():
    return FakeSquadronSource()
