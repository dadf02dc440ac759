"""Core services for the squadron-tracker service."""

from dataclasses import dataclass
from typing import Optional, Tuple

from .entities import BattleEvent, Snapshot
from .enums import InconsistencyKind


@dataclass(frozen=True)
class DiffOutcome:
    """Events inferred between two snapshots plus any data smell spotted."""

    events: Tuple[BattleEvent, ...] = ()
    inconsistency: Optional[InconsistencyKind] = None

    @property
    def has_events(self) -> bool:
        return bool(self.events)


class SnapshotDifferencer:
    """Infers battle outcomes from the delta between two snapshots.

    Only aggregate counters are available, so the inference is best effort:
    a single counted battle is classified exactly, several battles inside
    one poll gap collapse into a MIXED event, and a rating move with no
    counter move falls back to the sign of the rating change.
    """

    def __init__(self, infer_from_rating: bool = True):
        self.infer_from_rating = infer_from_rating

    def diff(self, previous: Snapshot, current: Snapshot) -> DiffOutcome:
        wins_delta = current.wins - previous.wins
        losses_delta = current.losses - previous.losses
        rating_delta = current.rating - previous.rating
        total_delta = wins_delta + losses_delta

        if wins_delta < 0 or losses_delta < 0:
            # Counters never go backwards on a healthy page; callers re-baseline.
            return DiffOutcome(inconsistency=InconsistencyKind.COUNTERS_DECREASED)

        if total_delta == 0:
            if rating_delta == 0:
                return DiffOutcome()
            return DiffOutcome(
                events=(self._rating_only_event(rating_delta, current),),
                inconsistency=InconsistencyKind.RATING_WITHOUT_BATTLES,
            )

        if total_delta == 1:
            if wins_delta == 1:
                event = BattleEvent.victory(rating_delta, current.rating, current.timestamp)
            else:
                event = BattleEvent.defeat(rating_delta, current.rating, current.timestamp)
            return DiffOutcome(events=(event,))

        return DiffOutcome(
            events=(
                BattleEvent.mixed(
                    wins=wins_delta,
                    losses=losses_delta,
                    rating_delta=rating_delta,
                    new_rating=current.rating,
                    timestamp=current.timestamp,
                ),
            )
        )

    def _rating_only_event(self, rating_delta: int, current: Snapshot) -> BattleEvent:
        if not self.infer_from_rating:
            return BattleEvent.unknown(rating_delta, current.rating, current.timestamp)
        if rating_delta > 0:
            return BattleEvent.victory(rating_delta, current.rating, current.timestamp, inferred=True)
        return BattleEvent.defeat(rating_delta, current.rating, current.timestamp, inferred=True)


def diff(previous: Snapshot, current: Snapshot) -> DiffOutcome:
    """Diff two snapshots with the default fallback inference enabled."""
    return SnapshotDifferencer().diff(previous, current)
