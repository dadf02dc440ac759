"""Core entities for the squadron-tracker service."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from .enums import BattleResult, SessionEndReason


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time read of the squadron's aggregate counters."""

    rating: int
    wins: int
    losses: int
    total_battles: int
    timestamp: datetime

    @classmethod
    def create(
        cls,
        rating: int,
        wins: int,
        losses: int,
        timestamp: datetime,
        total_battles: Optional[int] = None,
    ) -> "Snapshot":
        """Build a snapshot, deriving total battles when it was not observed."""
        if not total_battles:
            total_battles = wins + losses
        if total_battles < wins + losses:
            raise ValueError(
                f"Total battles {total_battles} is lower than wins+losses {wins + losses}"
            )
        return cls(
            rating=rating,
            wins=wins,
            losses=losses,
            total_battles=total_battles,
            timestamp=timestamp,
        )

    @property
    def record(self) -> str:
        return f"{self.wins}W-{self.losses}L"


@dataclass(frozen=True)
class BattleEvent:
    """A battle outcome inferred from two consecutive snapshots.

    MIXED events stand for several battles that happened between two polls;
    ``wins`` and ``losses`` then hold how many of each were observed.
    """

    result: BattleResult
    rating_delta: int
    new_rating: int
    timestamp: datetime
    wins: int = 0
    losses: int = 0
    inferred: bool = False  # Result guessed from the rating sign only

    @classmethod
    def victory(cls, rating_delta: int, new_rating: int, timestamp: datetime, inferred: bool = False) -> "BattleEvent":
        return cls(BattleResult.VICTORY, rating_delta, new_rating, timestamp, wins=1, inferred=inferred)

    @classmethod
    def defeat(cls, rating_delta: int, new_rating: int, timestamp: datetime, inferred: bool = False) -> "BattleEvent":
        return cls(BattleResult.DEFEAT, rating_delta, new_rating, timestamp, losses=1, inferred=inferred)

    @classmethod
    def unknown(cls, rating_delta: int, new_rating: int, timestamp: datetime) -> "BattleEvent":
        return cls(BattleResult.UNKNOWN, rating_delta, new_rating, timestamp, inferred=True)

    @classmethod
    def mixed(cls, wins: int, losses: int, rating_delta: int, new_rating: int, timestamp: datetime) -> "BattleEvent":
        return cls(BattleResult.MIXED, rating_delta, new_rating, timestamp, wins=wins, losses=losses)

    @property
    def battles(self) -> int:
        """Number of battles this event accounts for."""
        if self.result == BattleResult.MIXED:
            return self.wins + self.losses
        return 1

    def contribution(self) -> Tuple[int, int, int]:
        """(wins, losses, battles) added to a session by this event."""
        return self.wins, self.losses, self.battles

    def to_dict(self) -> Dict:
        return {
            "result": self.result.value,
            "wins": self.wins,
            "losses": self.losses,
            "rating_delta": self.rating_delta,
            "new_rating": self.new_rating,
            "timestamp": self.timestamp.isoformat(),
            "inferred": self.inferred,
        }


@dataclass(frozen=True)
class SessionData:
    """Aggregated state of an open play session."""

    start_time: datetime
    starting_rating: int
    last_activity: datetime
    wins: int = 0
    losses: int = 0
    total_battles: int = 0
    events: Tuple[BattleEvent, ...] = ()

    @property
    def current_rating(self) -> int:
        if self.events:
            return self.events[-1].new_rating
        return self.starting_rating

    @property
    def rating_change(self) -> int:
        return self.current_rating - self.starting_rating

    @property
    def win_rate(self) -> int:
        """Win rate as a rounded integer percentage."""
        if self.total_battles == 0:
            return 0
        return round(self.wins / self.total_battles * 100)


@dataclass(frozen=True)
class SessionSummary:
    """Closing report of a play session."""

    started_at: datetime
    ended_at: datetime
    reason: SessionEndReason
    wins: int
    losses: int
    total_battles: int
    win_rate: int
    starting_rating: int
    final_rating: int
    events: Tuple[BattleEvent, ...]
    omitted_events: int = 0

    @property
    def duration_minutes(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds() // 60)

    @property
    def rating_change(self) -> int:
        return self.final_rating - self.starting_rating

    @classmethod
    def from_session(
        cls,
        session: SessionData,
        ended_at: datetime,
        reason: SessionEndReason,
        max_events: int,
    ) -> "SessionSummary":
        kept = session.events[:max_events]
        return cls(
            started_at=session.start_time,
            ended_at=ended_at,
            reason=reason,
            wins=session.wins,
            losses=session.losses,
            total_battles=session.total_battles,
            win_rate=session.win_rate,
            starting_rating=session.starting_rating,
            final_rating=session.current_rating,
            events=kept,
            omitted_events=len(session.events) - len(kept),
        )


@dataclass(frozen=True)
class Player:
    """A squadron roster member."""

    name: str
    rating: int


@dataclass(frozen=True)
class LeaderboardEntry:
    """A squadron row on the global leaderboard.

    ``era_stats`` maps an era index to the cumulative rating value the
    leaderboard reports for that era.
    """

    team_id: str
    name: str
    position: int
    tag: str = ""
    era_stats: Dict[int, int] = field(default_factory=dict)

    def matches(self, team_name: str) -> bool:
        """Case-insensitive match against the squadron's name or tag."""
        wanted = team_name.strip().lower()
        if not wanted:
            return False
        tag = self.tag.strip().strip("[]=").lower()
        return self.name.strip().lower() == wanted or (bool(tag) and tag == wanted)

    def era_value(self, era: int) -> int:
        return self.era_stats.get(era, 0)

    def to_dict(self) -> Dict:
        return {
            "team_id": self.team_id,
            "name": self.name,
            "tag": self.tag,
            "position": self.position,
            "era_stats": {str(k): v for k, v in self.era_stats.items()},
        }


@dataclass(frozen=True)
class RankQueryResult:
    """Located leaderboard position of a squadron and its neighbours."""

    team: LeaderboardEntry
    position: int
    era: int
    rating_value: int
    neighbor_above: Optional[LeaderboardEntry] = None
    neighbor_below: Optional[LeaderboardEntry] = None

    def to_dict(self) -> Dict:
        return {
            "team": self.team.to_dict(),
            "position": self.position,
            "era": self.era,
            "rating_value": self.rating_value,
            "neighbor_above": self.neighbor_above.to_dict() if self.neighbor_above else None,
            "neighbor_below": self.neighbor_below.to_dict() if self.neighbor_below else None,
        }
