"""Tests for roster reporting views."""

import pytest

from squadron_tracker.application.roster_service import (
    RosterService,
    SimilarityNameMatcher,
    normalize_name,
    rank_roster,
)
from squadron_tracker.core.entities import Player

from .factories import PlayerFactory


class TestNameMatching:

    def test_normalize_strips_tags_and_punctuation(self):
        assert normalize_name("[TEST] Pilot_Alpha") == "pilotalpha"
        assert normalize_name("=TEST= Pilot.Alpha") == "pilotalpha"

    def test_exact_match_after_normalization(self):
        matcher = SimilarityNameMatcher()
        assert matcher.match("pilot alpha", ["Bravo", "Pilot_Alpha"]) == "Pilot_Alpha"

    def test_close_match(self):
        matcher = SimilarityNameMatcher()
        assert matcher.match("PilotAlfa", ["PilotAlpha", "Bravo"]) == "PilotAlpha"

    def test_no_match(self):
        matcher = SimilarityNameMatcher()
        assert matcher.match("Zulu", ["PilotAlpha", "Bravo"]) is None
        assert matcher.match("!!!", ["PilotAlpha"]) is None


def test_rank_roster_dedupes_and_caps():
    players = PlayerFactory.create_multiple(list(range(1000, 1140)))
    players.append(Player(name="pilot1", rating=5000))

    ranked = rank_roster(players)

    assert len(ranked) == 128
    assert ranked[0] == Player(name="pilot1", rating=5000)
    assert sum(1 for p in ranked if p.name.lower() == "pilot1") == 1
    assert [p.rating for p in ranked] == sorted((p.rating for p in ranked), reverse=True)


class TestRosterService:

    @pytest.fixture
    def roster_service(self, squadron_source):
        squadron_source.players = [
            Player("Alpha", 1500),
            Player("Bravo", 800),
            Player("Charlie", 1200),
            Player("Delta", 950),
            Player("Echo", 1000),
        ]
        return RosterService(squadron_source, low_rating_threshold=1000)

    @pytest.mark.asyncio
    async def test_top_players(self, roster_service):
        top = await roster_service.top_players(limit=2)
        assert [p.name for p in top] == ["Alpha", "Charlie"]

    @pytest.mark.asyncio
    async def test_low_rating_players_strictly_below_threshold(self, roster_service):
        low = await roster_service.low_rating_players()
        assert [p.name for p in low] == ["Bravo", "Delta"]

        low = await roster_service.low_rating_players(threshold=1300)
        assert [p.name for p in low] == ["Bravo", "Delta", "Echo", "Charlie"]

    @pytest.mark.asyncio
    async def test_match_member(self, roster_service):
        member = await roster_service.match_member("[SQD] charlie")
        assert member == Player("Charlie", 1200)
        assert await roster_service.match_member("Xylophone") is None
