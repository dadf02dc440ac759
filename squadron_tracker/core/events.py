"""Notification payloads produced by the tracking core.

Each event carries already computed data; presentation is left to the
chat-side consumer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .entities import BattleEvent, SessionData, SessionSummary, Snapshot


@dataclass
class SquadronEvent(ABC):
    """Abstract base for all published squadron events."""

    squadron_name: str
    occurred_at: datetime

    @abstractmethod
    def get_event_type(self) -> str:
        """Get the event type identifier for routing."""
        pass

    @abstractmethod
    def _payload(self) -> Dict[str, Any]:
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form sent over the message bus."""
        data = {
            "event_type": self.get_event_type(),
            "squadron_name": self.squadron_name,
            "occurred_at": self.occurred_at.isoformat(),
        }
        data.update(self._payload())
        return data


@dataclass
class BattleCompletedEvent(SquadronEvent):
    """A battle (or a batch of battles) was detected for the squadron.

    Carries the running session record alongside the battle itself.
    """

    battle: Optional[BattleEvent] = None
    battle_number: int = 0
    session_wins: int = 0
    session_losses: int = 0
    session_battles: int = 0
    session_win_rate: int = 0
    session_rating_change: int = 0

    @classmethod
    def from_session(cls, squadron_name: str, battle: BattleEvent, session: SessionData) -> "BattleCompletedEvent":
        return cls(
            squadron_name=squadron_name,
            occurred_at=battle.timestamp,
            battle=battle,
            battle_number=session.total_battles,
            session_wins=session.wins,
            session_losses=session.losses,
            session_battles=session.total_battles,
            session_win_rate=session.win_rate,
            session_rating_change=session.rating_change,
        )

    def get_event_type(self) -> str:
        return "battle"

    def _payload(self) -> Dict[str, Any]:
        return {
            "battle": self.battle.to_dict() if self.battle else None,
            "battle_number": self.battle_number,
            "session": {
                "wins": self.session_wins,
                "losses": self.session_losses,
                "battles": self.session_battles,
                "win_rate": self.session_win_rate,
                "rating_change": self.session_rating_change,
            },
        }


@dataclass
class SessionStartedEvent(SquadronEvent):
    """A new play session was opened."""

    starting_rating: int = 0

    def get_event_type(self) -> str:
        return "session_started"

    def _payload(self) -> Dict[str, Any]:
        return {"starting_rating": self.starting_rating}


@dataclass
class SessionEndedEvent(SquadronEvent):
    """A play session was closed, with its summary."""

    summary: Optional[SessionSummary] = None

    def get_event_type(self) -> str:
        return "session_ended"

    def _payload(self) -> Dict[str, Any]:
        summary = self.summary
        if summary is None:
            return {"summary": None}
        return {
            "summary": {
                "reason": summary.reason.value,
                "started_at": summary.started_at.isoformat(),
                "ended_at": summary.ended_at.isoformat(),
                "duration_minutes": summary.duration_minutes,
                "wins": summary.wins,
                "losses": summary.losses,
                "total_battles": summary.total_battles,
                "win_rate": summary.win_rate,
                "starting_rating": summary.starting_rating,
                "final_rating": summary.final_rating,
                "rating_change": summary.rating_change,
                "events": [event.to_dict() for event in summary.events],
                "omitted_events": summary.omitted_events,
            }
        }


@dataclass
class TrackerStatusEvent(SquadronEvent):
    """Operational status of the tracker (connected, data unavailable)."""

    kind: str = "connected"
    message: str = ""
    rating: Optional[int] = None
    wins: Optional[int] = None
    losses: Optional[int] = None
    details: List[str] = field(default_factory=list)

    @classmethod
    def connected(cls, squadron_name: str, snapshot: Snapshot) -> "TrackerStatusEvent":
        return cls(
            squadron_name=squadron_name,
            occurred_at=snapshot.timestamp,
            kind="connected",
            message=f"Monitoring {squadron_name}",
            rating=snapshot.rating,
            wins=snapshot.wins,
            losses=snapshot.losses,
        )

    @classmethod
    def unavailable(cls, squadron_name: str, occurred_at: datetime, reason: str) -> "TrackerStatusEvent":
        return cls(
            squadron_name=squadron_name,
            occurred_at=occurred_at,
            kind="unavailable",
            message="Squadron data is currently unreachable; monitoring continues",
            details=[reason],
        )

    def get_event_type(self) -> str:
        return "status"

    def _payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "rating": self.rating,
            "wins": self.wins,
            "losses": self.losses,
            "details": list(self.details),
        }
