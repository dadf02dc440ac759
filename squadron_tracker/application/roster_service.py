"""Roster reporting views: top players, low-rating members, name lookup."""

import difflib
import logging
import re
from typing import Iterable, List, Optional, Protocol, Sequence

from ..core.entities import Player
from ..adapters.warthunder.parsing import MAX_SQUADRON_SIZE


logger = logging.getLogger(__name__)


class NameMatcher(Protocol):
    """Maps a free-form display name onto one of the roster names."""

    def match(self, name: str, candidates: Sequence[str]) -> Optional[str]:
        ...


def normalize_name(name: str) -> str:
    """Lowercase and drop clan tags, whitespace and punctuation."""
    name = re.sub(r"\[[^\]]*\]|=[^=]*=", "", name)
    return re.sub(r"[\W_]+", "", name.lower())


class SimilarityNameMatcher:
    """Fuzzy matcher based on difflib's similarity ratio."""

    def __init__(self, cutoff: float = 0.6):
        self.cutoff = cutoff

    def match(self, name: str, candidates: Sequence[str]) -> Optional[str]:
        wanted = normalize_name(name)
        if not wanted:
            return None

        by_normalized = {}
        for candidate in candidates:
            by_normalized.setdefault(normalize_name(candidate), candidate)

        if wanted in by_normalized:
            return by_normalized[wanted]

        close = difflib.get_close_matches(wanted, list(by_normalized), n=1, cutoff=self.cutoff)
        return by_normalized[close[0]] if close else None


def rank_roster(players: Iterable[Player]) -> List[Player]:
    """Deduplicate by name (case-insensitive), sort by rating, cap to squadron size."""
    unique = {}
    for player in players:
        key = player.name.lower()
        if key not in unique or player.rating > unique[key].rating:
            unique[key] = player
    ranked = sorted(unique.values(), key=lambda p: (-p.rating, p.name.lower()))
    if len(ranked) > MAX_SQUADRON_SIZE:
        logger.warning(
            f"Found {len(ranked)} players, limiting to top {MAX_SQUADRON_SIZE}"
        )
    return ranked[:MAX_SQUADRON_SIZE]


class RosterService:
    """On-demand roster views backed by the data source."""

    def __init__(self, client, low_rating_threshold: int, matcher: Optional[NameMatcher] = None):
        self.client = client
        self.low_rating_threshold = low_rating_threshold
        self.matcher = matcher or SimilarityNameMatcher()

    async def roster(self) -> List[Player]:
        return rank_roster(await self.client.fetch_players())

    async def top_players(self, limit: int = 20) -> List[Player]:
        """Highest rated members, best first."""
        return (await self.roster())[:limit]

    async def low_rating_players(self, threshold: Optional[int] = None) -> List[Player]:
        """Members rated strictly below the threshold, lowest first."""
        if threshold is None:
            threshold = self.low_rating_threshold
        low = [player for player in await self.roster() if player.rating < threshold]
        return sorted(low, key=lambda p: (p.rating, p.name.lower()))

    async def match_member(self, display_name: str) -> Optional[Player]:
        """Resolve a display name (e.g. from voice presence) to a roster member."""
        players = await self.roster()
        name = self.matcher.match(display_name, [player.name for player in players])
        if name is None:
            logger.debug(f"No roster member matches '{display_name}'")
            return None
        return next(player for player in players if player.name == name)
