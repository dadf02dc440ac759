"""Application layer for the Squadron Tracker service."""

from .context import TrackingContext
from .polling_service import PollingService
from .rank_resolver import LeaderboardRankResolver, TeamNotFoundError
from .roster_service import RosterService, SimilarityNameMatcher
from .session_tracker import SessionTracker

__all__ = [
    "TrackingContext",
    "PollingService",
    "LeaderboardRankResolver",
    "TeamNotFoundError",
    "RosterService",
    "SimilarityNameMatcher",
    "SessionTracker",
]
