"""War Thunder data-source adapter package."""

from .client import (
    WarThunderClient,
    WarThunderAPIError,
    TransientFetchError,
    RateLimitError,
    SnapshotUnavailableError,
    SquadronNotFoundError,
    parse_era_stats,
    parse_retry_after,
)
from .retry import RetryPolicy

__all__ = [
    # Client
    "WarThunderClient",
    "RetryPolicy",
    "parse_era_stats",
    "parse_retry_after",
    # Exceptions
    "WarThunderAPIError",
    "TransientFetchError",
    "RateLimitError",
    "SnapshotUnavailableError",
    "SquadronNotFoundError",
]
