"""Explicit tracking state shared by the poll and idle-check handlers."""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from ..core.entities import Snapshot
from ..core.session import IDLE, SessionState


@dataclass
class TrackingContext:
    """Everything the tick handlers mutate, created once at start-up.

    ``session`` is only ever replaced while ``session_lock`` is held, so the
    poll tick and the idle tick never write it concurrently. ``poll_lock``
    keeps poll ticks from overlapping.
    """

    squadron_name: str
    previous_snapshot: Optional[Snapshot] = None
    session: SessionState = IDLE
    session_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    poll_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    # First-check status announcements
    connected_announced: bool = False
    unavailable_announced: bool = False
