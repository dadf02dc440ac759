"""Tests for leaderboard rank resolution."""

from unittest.mock import Mock

import pytest

from squadron_tracker.adapters.warthunder.client import SquadronNotFoundError, TransientFetchError, WarThunderAPIError
from squadron_tracker.application.rank_resolver import (
    LeaderboardRankResolver,
    TeamNotFoundError,
    compute_position,
    detect_current_era,
    era_from_sort_key,
    sort_key_for_era,
)

from .factories import LeaderboardFactory
from .fakes import FakeLeaderboardSource


def test_position_arithmetic():
    # position = (page - 1) * page_size + index + 1 with a 0-based index.
    # Page 3 of 20 starts at 41, so 0-based index 4 is position 45 and
    # position 44 is index 3.
    assert compute_position(page=3, page_size=20, index=4) == 45
    assert compute_position(page=3, page_size=20, index=3) == 44
    assert compute_position(page=1, page_size=20, index=0) == 1


def test_sort_key_round_trip():
    assert sort_key_for_era(6) == "dr_era6"
    assert era_from_sort_key("dr_era5") == 5
    with pytest.raises(ValueError):
        era_from_sort_key("rating")


def test_detect_current_era_uses_highest_active_era():
    leader = LeaderboardFactory.entry(1, era_stats={4: 900, 5: 1200, 6: 0})
    assert detect_current_era([leader], default_era=3) == 5
    assert detect_current_era([], default_era=3) == 3
    assert detect_current_era([LeaderboardFactory.entry(1, era_stats={})], default_era=3) == 3


class TestLeaderboardRankResolver:

    @pytest.mark.asyncio
    async def test_finds_team_on_third_page(self):
        pages = LeaderboardFactory.pages(5, named={44: "TestSquad"})
        source = FakeLeaderboardSource(pages)
        resolver = LeaderboardRankResolver(source, page_size=20, max_pages=20)

        result = await resolver.resolve("TestSquad")

        assert result.position == 44
        assert result.era == 5
        assert result.team.name == "TestSquad"
        assert result.rating_value == pages[3][3].era_value(5)
        assert result.neighbor_above.position == 43
        assert result.neighbor_below.position == 45
        # Page 1 from era detection is reused for the scan
        assert source.calls == [(1, "dr_era5"), (2, "dr_era5"), (3, "dr_era5")]

    @pytest.mark.asyncio
    async def test_matches_by_tag_case_insensitively(self):
        pages = LeaderboardFactory.pages(2)
        source = FakeLeaderboardSource(pages)
        resolver = LeaderboardRankResolver(source)

        result = await resolver.resolve("sq27")

        assert result.position == 27

    @pytest.mark.asyncio
    async def test_not_found_is_deterministic(self):
        source = FakeLeaderboardSource(LeaderboardFactory.pages(10))
        resolver = LeaderboardRankResolver(source, page_size=20, max_pages=4)

        for _ in range(3):
            source.calls.clear()
            with pytest.raises(TeamNotFoundError):
                await resolver.resolve("Nobody")
            assert [page for page, _ in source.calls] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_scan_stops_at_end_of_leaderboard(self):
        source = FakeLeaderboardSource(LeaderboardFactory.pages(2, last_page_size=7))
        resolver = LeaderboardRankResolver(source, max_pages=20)

        with pytest.raises(TeamNotFoundError):
            await resolver.resolve("Nobody")

        assert [page for page, _ in source.calls] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_new_era_rescans_with_detected_sort_key(self):
        pages = LeaderboardFactory.pages(2, named={5: "TestSquad"})
        pages[1][0] = LeaderboardFactory.entry(1, era_stats={5: 1000, 6: 250})
        source = FakeLeaderboardSource(pages)
        resolver = LeaderboardRankResolver(source, default_sort_key="dr_era5")

        result = await resolver.resolve("TestSquad")

        assert result.era == 6
        assert source.calls == [(1, "dr_era5"), (1, "dr_era6")]

    @pytest.mark.asyncio
    async def test_leader_has_no_upper_neighbor(self):
        source = FakeLeaderboardSource(LeaderboardFactory.pages(1, named={1: "TestSquad"}))
        resolver = LeaderboardRankResolver(source)

        result = await resolver.resolve("TestSquad")

        assert result.position == 1
        assert result.neighbor_above is None
        assert result.neighbor_below.position == 2

    @pytest.mark.asyncio
    async def test_neighbors_across_page_boundaries(self):
        pages = LeaderboardFactory.pages(3, named={21: "TestSquad", 40: "Other"})
        resolver = LeaderboardRankResolver(FakeLeaderboardSource(pages))

        first = await resolver.resolve("TestSquad")
        assert first.neighbor_above.position == 20

        last = await resolver.resolve("Other")
        assert last.neighbor_below.position == 41

    @pytest.mark.asyncio
    async def test_lower_neighbor_missing_when_next_page_fails(self):
        pages = LeaderboardFactory.pages(1, named={20: "TestSquad"})
        source = FakeLeaderboardSource(pages, errors={2: TransientFetchError("down")})
        resolver = LeaderboardRankResolver(source)

        result = await resolver.resolve("TestSquad")

        assert result.position == 20
        assert result.neighbor_below is None

    @pytest.mark.asyncio
    async def test_scan_failure_propagates_and_is_recorded(self):
        metrics = Mock()
        source = FakeLeaderboardSource(LeaderboardFactory.pages(3), errors={2: TransientFetchError("down")})
        resolver = LeaderboardRankResolver(source, metrics=metrics)

        with pytest.raises(TransientFetchError):
            await resolver.resolve("Nobody")

        metrics.record_rank_query.assert_called_once_with("error")

    @pytest.mark.asyncio
    async def test_lower_neighbor_missing_when_next_page_is_not_found(self):
        metrics = Mock()
        pages = LeaderboardFactory.pages(1, named={20: "TestSquad"})
        source = FakeLeaderboardSource(pages, errors={2: SquadronNotFoundError("404")})
        resolver = LeaderboardRankResolver(source, metrics=metrics)

        result = await resolver.resolve("TestSquad")

        assert result.position == 20
        assert result.neighbor_above.position == 19
        assert result.neighbor_below is None
        metrics.record_rank_query.assert_called_once_with("found")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [SquadronNotFoundError("404"), WarThunderAPIError("API error: 403")])
    async def test_client_error_on_scan_page_reported_as_transient(self, error):
        metrics = Mock()
        source = FakeLeaderboardSource(LeaderboardFactory.pages(3), errors={2: error})
        resolver = LeaderboardRankResolver(source, metrics=metrics)

        with pytest.raises(TransientFetchError) as exc_info:
            await resolver.resolve("Nobody")

        assert exc_info.value.__cause__ is error
        metrics.record_rank_query.assert_called_once_with("error")
