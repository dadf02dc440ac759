"""In-memory stand-ins for the clock and the data source."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from squadron_tracker.core.entities import LeaderboardEntry, Player, Snapshot

from .factories import START_TIME


class FakeClock:
    """Manually advanced clock for timeout tests."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeSquadronSource:
    """Stand-in for the data source that replays queued results.

    Each queued item is either a Snapshot or an exception instance to raise.
    """

    def __init__(self):
        self.snapshots: List = []
        self.players: List[Player] = []
        self.snapshot_calls = 0
        self.base_url = "https://warthunder.test"

    def queue(self, *items) -> None:
        self.snapshots.extend(items)

    async def fetch_snapshot(self) -> Snapshot:
        self.snapshot_calls += 1
        item = self.snapshots.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def fetch_players(self) -> List[Player]:
        return list(self.players)

    async def close(self) -> None:
        pass


class FakeLeaderboardSource:
    """Serves fixed leaderboard pages and records every request."""

    def __init__(self, pages: Dict[int, List[LeaderboardEntry]], errors: Optional[Dict[int, Exception]] = None):
        self.pages = pages
        self.errors = errors or {}
        self.calls: List[Tuple[int, str]] = []

    async def fetch_leaderboard_page(self, page: int, sort_key: str) -> List[LeaderboardEntry]:
        self.calls.append((page, sort_key))
        if page in self.errors:
            raise self.errors[page]
        return list(self.pages.get(page, []))
