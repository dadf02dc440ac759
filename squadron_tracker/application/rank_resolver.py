"""Leaderboard rank resolution for a squadron.

The leaderboard is only reachable page by page and its effective ordering
field changes with every scoring era, so resolution first detects the
current era, then scans pages linearly up to a fixed ceiling.
"""

import logging
import re
from typing import Dict, List, Optional, Protocol, Tuple

from ..core.entities import LeaderboardEntry, RankQueryResult
from ..adapters.warthunder.client import TransientFetchError, WarThunderAPIError


logger = logging.getLogger(__name__)

_SORT_KEY_PATTERN = re.compile(r"^dr_era(\d+)$")


class TeamNotFoundError(Exception):
    """The squadron was not found within the scanned leaderboard pages."""

    pass


class LeaderboardSource(Protocol):
    """Anything that can serve leaderboard pages."""

    async def fetch_leaderboard_page(self, page: int, sort_key: str) -> List[LeaderboardEntry]:
        ...


def sort_key_for_era(era: int) -> str:
    return f"dr_era{era}"


def era_from_sort_key(sort_key: str) -> int:
    match = _SORT_KEY_PATTERN.match(sort_key)
    if not match:
        raise ValueError(f"Unrecognised leaderboard sort key: {sort_key}")
    return int(match.group(1))


def compute_position(page: int, page_size: int, index: int) -> int:
    """Absolute 1-based rank of the entry at 0-based ``index`` on ``page``."""
    return (page - 1) * page_size + index + 1


def detect_current_era(entries: List[LeaderboardEntry], default_era: int) -> int:
    """Highest era index holding a positive value on the leading entry."""
    if not entries:
        return default_era
    active = [era for era, value in entries[0].era_stats.items() if value > 0]
    return max(active) if active else default_era


class LeaderboardRankResolver:
    """Locates a squadron's rank and its direct neighbours.

    Stateless between calls: every resolution keeps its fetched pages in a
    local dict, so concurrent resolutions never share mutable state.
    """

    def __init__(
        self,
        source: LeaderboardSource,
        page_size: int = 20,
        max_pages: int = 20,
        default_sort_key: str = "dr_era5",
        metrics=None,
    ):
        self.source = source
        self.page_size = page_size
        self.max_pages = max_pages
        self.default_sort_key = default_sort_key
        self.default_era = era_from_sort_key(default_sort_key)
        self.metrics = metrics

    async def resolve(self, team_name: str) -> RankQueryResult:
        """Find ``team_name`` on the leaderboard.

        Raises:
            TeamNotFoundError: Squadron absent from the first ``max_pages`` pages
            TransientFetchError: A scan page could not be fetched. Any data-source
                error on a scan page is reported this way.
        """
        try:
            result = await self._resolve(team_name)
        except TeamNotFoundError:
            self._record("not_found")
            raise
        except TransientFetchError:
            self._record("error")
            raise
        except WarThunderAPIError as e:
            self._record("error")
            raise TransientFetchError(f"Leaderboard page unavailable: {e}") from e
        self._record("found")
        return result

    async def _resolve(self, team_name: str) -> RankQueryResult:
        pages: Dict[int, List[LeaderboardEntry]] = {}

        first_page = await self.source.fetch_leaderboard_page(1, self.default_sort_key)
        era = detect_current_era(first_page, self.default_era)
        sort_key = sort_key_for_era(era)
        if sort_key == self.default_sort_key:
            pages[1] = first_page
        logger.debug(f"Leaderboard era detected: {era} (sort key {sort_key})")

        page, index = await self._scan(team_name, sort_key, pages)
        entries = pages[page]
        team = entries[index]
        position = compute_position(page, self.page_size, index)

        above = self._neighbor_above(pages, page, index)
        below = await self._neighbor_below(pages, page, index, sort_key)

        logger.info(f"Resolved {team.name} at position {position} in era {era}")
        return RankQueryResult(
            team=team,
            position=position,
            era=era,
            rating_value=team.era_value(era),
            neighbor_above=above,
            neighbor_below=below,
        )

    async def _scan(
        self,
        team_name: str,
        sort_key: str,
        pages: Dict[int, List[LeaderboardEntry]],
    ) -> Tuple[int, int]:
        """Linear page scan; returns (page, index) of the first match."""
        for page in range(1, self.max_pages + 1):
            if page not in pages:
                pages[page] = await self.source.fetch_leaderboard_page(page, sort_key)
            entries = pages[page]
            if not entries:
                break
            for index, entry in enumerate(entries):
                if entry.matches(team_name):
                    return page, index

        raise TeamNotFoundError(
            f"{team_name} not found in the top {self.max_pages * self.page_size} squadrons"
        )

    def _neighbor_above(
        self,
        pages: Dict[int, List[LeaderboardEntry]],
        page: int,
        index: int,
    ) -> Optional[LeaderboardEntry]:
        if index > 0:
            return pages[page][index - 1]
        previous = pages.get(page - 1)
        return previous[-1] if previous else None

    async def _neighbor_below(
        self,
        pages: Dict[int, List[LeaderboardEntry]],
        page: int,
        index: int,
        sort_key: str,
    ) -> Optional[LeaderboardEntry]:
        entries = pages[page]
        if index + 1 < len(entries):
            return entries[index + 1]

        try:
            next_page = await self.source.fetch_leaderboard_page(page + 1, sort_key)
        except WarThunderAPIError as e:
            logger.warning(f"Could not fetch page {page + 1} for the lower neighbour: {e}")
            return None
        return next_page[0] if next_page else None

    def _record(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_rank_query(outcome)
