"""Play-session state machine.

The session is either ``Idle`` or ``Active(session)``. All transitions are
pure functions that take the current state and the current time and return
a ``Transition`` describing the new state and anything worth announcing.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional, Union

from .entities import BattleEvent, SessionData, SessionSummary
from .enums import SessionEndReason, SessionStatus


@dataclass(frozen=True)
class Idle:
    """No session is open."""

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.IDLE


@dataclass(frozen=True)
class Active:
    """A session is open and accumulating battles."""

    session: SessionData

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.ACTIVE


SessionState = Union[Idle, Active]

IDLE = Idle()


@dataclass(frozen=True)
class Transition:
    """Result of applying an input to the session state."""

    state: SessionState
    started: bool = False
    summary: Optional[SessionSummary] = None

    @property
    def ended(self) -> bool:
        return self.summary is not None


def record_event(
    state: SessionState,
    event: BattleEvent,
    previous_rating: int,
    now: datetime,
) -> Transition:
    """Fold a battle event into the session, opening one if needed.

    ``previous_rating`` is the rating observed before the event and becomes
    the starting rating when the event opens a new session.
    """
    wins, losses, battles = event.contribution()

    if isinstance(state, Idle):
        session = SessionData(
            start_time=now,
            starting_rating=previous_rating,
            last_activity=now,
            wins=wins,
            losses=losses,
            total_battles=battles,
            events=(event,),
        )
        return Transition(state=Active(session), started=True)

    session = replace(
        state.session,
        wins=state.session.wins + wins,
        losses=state.session.losses + losses,
        total_battles=state.session.total_battles + battles,
        events=state.session.events + (event,),
        last_activity=now,
    )
    return Transition(state=Active(session))


def is_expired(state: SessionState, now: datetime, idle_timeout: timedelta) -> bool:
    """True when an open session has seen no activity for ``idle_timeout``."""
    if not isinstance(state, Active):
        return False
    return now - state.session.last_activity >= idle_timeout


def expire_if_idle(
    state: SessionState,
    now: datetime,
    idle_timeout: timedelta,
    max_events: int,
) -> Transition:
    """Close the session on inactivity, otherwise leave it untouched."""
    if not is_expired(state, now, idle_timeout):
        return Transition(state=state)
    return close(state, now, SessionEndReason.TIMEOUT, max_events)


def close(
    state: SessionState,
    now: datetime,
    reason: SessionEndReason,
    max_events: int,
) -> Transition:
    """Close an open session and produce its summary. Idle stays idle."""
    if not isinstance(state, Active):
        return Transition(state=IDLE)
    summary = SessionSummary.from_session(state.session, now, reason, max_events)
    return Transition(state=IDLE, summary=summary)
