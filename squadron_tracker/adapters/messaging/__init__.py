"""Messaging infrastructure for the Squadron Tracker service."""

from .events import EventPublisher, MockEventPublisher, PublishFailure

__all__ = ["EventPublisher", "MockEventPublisher", "PublishFailure"]
