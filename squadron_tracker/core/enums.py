"""Core enums for the squadron-tracker service."""

from enum import Enum


class BattleResult(Enum):
    """Outcome inferred for a battle event."""

    VICTORY = "VICTORY"
    DEFEAT = "DEFEAT"
    UNKNOWN = "UNKNOWN"
    MIXED = "MIXED"  # Several battles collapsed into one poll gap


class SessionStatus(Enum):
    """Lifecycle status of the squadron's play session."""

    IDLE = "IDLE"
    ACTIVE = "ACTIVE"

    @property
    def is_playing(self) -> bool:
        """Check if a session is currently open."""
        return self == SessionStatus.ACTIVE


class SessionEndReason(Enum):
    """Why a session was closed."""

    TIMEOUT = "TIMEOUT"
    SHUTDOWN = "SHUTDOWN"


class InconsistencyKind(Enum):
    """Data smells detected while diffing two snapshots."""

    # Rating moved while the win/loss counters did not
    RATING_WITHOUT_BATTLES = "RATING_WITHOUT_BATTLES"
    # A win or loss counter went backwards
    COUNTERS_DECREASED = "COUNTERS_DECREASED"
