"""Core layer for the squadron-tracker service.

Pure domain code: entities, the snapshot differencer and the session
state machine. Nothing in here performs I/O.
"""

from .entities import (
    BattleEvent,
    LeaderboardEntry,
    Player,
    RankQueryResult,
    SessionData,
    SessionSummary,
    Snapshot,
)
from .enums import BattleResult, InconsistencyKind, SessionEndReason, SessionStatus
from .services import DiffOutcome, SnapshotDifferencer

__all__ = [
    "BattleEvent",
    "LeaderboardEntry",
    "Player",
    "RankQueryResult",
    "SessionData",
    "SessionSummary",
    "Snapshot",
    "BattleResult",
    "InconsistencyKind",
    "SessionEndReason",
    "SessionStatus",
    "DiffOutcome",
    "SnapshotDifferencer",
]
