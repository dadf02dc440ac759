"""Tests for the snapshot differencer."""

import pytest

from squadron_tracker.core.enums import BattleResult, InconsistencyKind
from squadron_tracker.core.services import SnapshotDifferencer, diff

from .factories import SnapshotFactory


class TestSnapshotDifferencer:
    """Battle inference from consecutive snapshots."""

    def setup_method(self):
        self.differencer = SnapshotDifferencer()
        self.previous = SnapshotFactory.create(rating=1500, wins=10, losses=5)

    def test_no_change_yields_no_event(self):
        current = SnapshotFactory.after(self.previous)

        outcome = self.differencer.diff(self.previous, current)

        assert outcome.events == ()
        assert outcome.inconsistency is None
        assert not outcome.has_events

    def test_single_win_is_victory(self):
        """One more win, rating up 15."""
        current = SnapshotFactory.create(rating=1515, wins=11, losses=5)

        outcome = self.differencer.diff(self.previous, current)

        assert len(outcome.events) == 1
        event = outcome.events[0]
        assert event.result == BattleResult.VICTORY
        assert event.rating_delta == 15
        assert event.new_rating == 1515
        assert event.inferred is False
        assert outcome.inconsistency is None

    @pytest.mark.parametrize("rating_delta", [-20, 0, 35])
    def test_victory_delta_is_exact_rating_difference(self, rating_delta):
        current = SnapshotFactory.after(self.previous, rating=rating_delta, wins=1)

        outcome = self.differencer.diff(self.previous, current)

        assert [e.result for e in outcome.events] == [BattleResult.VICTORY]
        assert outcome.events[0].rating_delta == current.rating - self.previous.rating

    def test_single_loss_is_defeat(self):
        current = SnapshotFactory.after(self.previous, rating=-12, losses=1)

        outcome = self.differencer.diff(self.previous, current)

        assert len(outcome.events) == 1
        assert outcome.events[0].result == BattleResult.DEFEAT
        assert outcome.events[0].rating_delta == -12
        assert outcome.events[0].losses == 1

    def test_win_and_loss_collapse_into_mixed(self):
        """Rating down 10 with one win and one loss."""
        current = SnapshotFactory.create(rating=1490, wins=11, losses=6)

        outcome = self.differencer.diff(self.previous, current)

        assert len(outcome.events) == 1
        event = outcome.events[0]
        assert event.result == BattleResult.MIXED
        assert (event.wins, event.losses) == (1, 1)
        assert event.rating_delta == -10
        assert event.battles == 2

    def test_two_wins_one_loss_is_single_mixed_event(self):
        current = SnapshotFactory.after(self.previous, rating=18, wins=2, losses=1)

        outcome = self.differencer.diff(self.previous, current)

        assert len(outcome.events) == 1
        assert outcome.events[0].result == BattleResult.MIXED
        assert (outcome.events[0].wins, outcome.events[0].losses) == (2, 1)

    def test_rating_only_change_infers_from_sign(self):
        current = SnapshotFactory.after(self.previous, rating=8)

        outcome = self.differencer.diff(self.previous, current)

        assert outcome.inconsistency == InconsistencyKind.RATING_WITHOUT_BATTLES
        assert len(outcome.events) == 1
        assert outcome.events[0].result == BattleResult.VICTORY
        assert outcome.events[0].inferred is True

        current = SnapshotFactory.after(self.previous, rating=-8)
        outcome = self.differencer.diff(self.previous, current)
        assert outcome.events[0].result == BattleResult.DEFEAT
        assert outcome.events[0].inferred is True

    def test_rating_only_change_without_inference_is_unknown(self):
        differencer = SnapshotDifferencer(infer_from_rating=False)
        current = SnapshotFactory.after(self.previous, rating=-8)

        outcome = differencer.diff(self.previous, current)

        assert outcome.inconsistency == InconsistencyKind.RATING_WITHOUT_BATTLES
        assert outcome.events[0].result == BattleResult.UNKNOWN
        assert outcome.events[0].rating_delta == -8

    @pytest.mark.parametrize("wins,losses", [(-1, 0), (0, -2), (-1, 3)])
    def test_decreasing_counters_are_flagged_without_events(self, wins, losses):
        current = SnapshotFactory.after(self.previous, rating=5, wins=wins, losses=losses)

        outcome = self.differencer.diff(self.previous, current)

        assert outcome.events == ()
        assert outcome.inconsistency == InconsistencyKind.COUNTERS_DECREASED

    def test_event_carries_current_timestamp(self):
        current = SnapshotFactory.after(self.previous, rating=10, wins=1, minutes=7)

        outcome = diff(self.previous, current)

        assert outcome.events[0].timestamp == current.timestamp


class TestSnapshot:
    """Snapshot construction rules."""

    def test_total_battles_derived_when_missing(self):
        snapshot = SnapshotFactory.create(wins=3, losses=4)
        assert snapshot.total_battles == 7
        assert snapshot.record == "3W-4L"

    def test_total_below_wins_plus_losses_rejected(self):
        with pytest.raises(ValueError):
            SnapshotFactory.create(wins=3, losses=4, total_battles=5)
