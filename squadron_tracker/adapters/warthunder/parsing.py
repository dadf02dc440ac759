"""Best-effort extraction of squadron numbers from the public squadron page.

The page markup is not a stable contract. These helpers try a handful of
known selectors and fall back to loose text patterns; anything that cannot
be read is reported as a ``PageParseError`` so the caller can treat the
fetch as transient.
"""

import re
from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup

from ...core.entities import Player, Snapshot

# War Thunder caps squadrons at 128 members
MAX_SQUADRON_SIZE = 128

MEMBER_GRID_COLUMNS = 6  # num, nickname, rating, activity, role, date of entry

CHALLENGE_MARKERS = ("Just a moment", "Checking your browser")

_RATING_SELECTORS = (
    ".squadrons-counter__value",
    ".squadron-info__rating-value",
    ".rating-value",
)
_RATING_TEXT_PATTERNS = (
    re.compile(r"rating[:\s]*(\d[\d,]*)", re.IGNORECASE),
    re.compile(r"points[:\s]*(\d[\d,]*)", re.IGNORECASE),
)
_WINS_PATTERN = re.compile(r"(?:wins?|victories)[:\s]*(\d+)", re.IGNORECASE)
_LOSSES_PATTERN = re.compile(r"(?:losses|defeats?)[:\s]*(\d+)", re.IGNORECASE)


class PageParseError(ValueError):
    """The page did not contain readable squadron data."""


def _to_int(text: str) -> int:
    digits = re.sub(r"[^\d]", "", text or "")
    return int(digits) if digits else 0


def is_challenge_page(soup: BeautifulSoup) -> bool:
    """Detect an anti-bot interstitial instead of real content."""
    title = soup.title.get_text() if soup.title else ""
    body = soup.get_text(" ", strip=True)
    return any(marker in title or marker in body for marker in CHALLENGE_MARKERS)


def _extract_rating(soup: BeautifulSoup, text: str) -> Optional[int]:
    for selector in _RATING_SELECTORS:
        element = soup.select_one(selector)
        if element:
            rating = _to_int(element.get_text())
            if rating:
                return rating
    for pattern in _RATING_TEXT_PATTERNS:
        match = pattern.search(text)
        if match:
            return _to_int(match.group(1))
    return None


def _extract_battle_counts(soup: BeautifulSoup, text: str):
    wins = losses = total = None
    for item in soup.select(".squadron-battles-info__item, .battle-stats .stat-item"):
        label = item.get_text(" ", strip=True).lower()
        value_el = item.select_one(".squadron-battles-info__value, .stat-value") or item
        number = _to_int(value_el.get_text())
        if ("win" in label or "victor" in label) and "loss" not in label:
            wins = number
        elif "loss" in label or "defeat" in label:
            losses = number
        elif "battle" in label and "total" in label:
            total = number

    if wins is None:
        match = _WINS_PATTERN.search(text)
        wins = int(match.group(1)) if match else None
    if losses is None:
        match = _LOSSES_PATTERN.search(text)
        losses = int(match.group(1)) if match else None
    return wins, losses, total


def parse_squadron_snapshot(html: str, timestamp: datetime) -> Snapshot:
    """Read rating and battle counters from a squadron page."""
    soup = BeautifulSoup(html, "html.parser")
    if is_challenge_page(soup):
        raise PageParseError("Anti-bot challenge page returned")

    text = soup.get_text(" ", strip=True)
    rating = _extract_rating(soup, text)
    wins, losses, total = _extract_battle_counts(soup, text)

    if rating is None:
        raise PageParseError("Squadron rating not found on squadron page")
    if wins is None or losses is None:
        raise PageParseError("Win/loss counters not found on squadron page")
    if rating == 0 and wins == 0 and losses == 0:
        raise PageParseError("Squadron page contained no usable numbers")

    try:
        return Snapshot.create(
            rating=rating,
            wins=wins,
            losses=losses,
            total_battles=total,
            timestamp=timestamp,
        )
    except ValueError as e:
        raise PageParseError(str(e))


def _looks_like_member_name(name: str) -> bool:
    return (
        2 <= len(name) <= 30
        and re.search(r"[^\W\d_]", name) is not None
        and not name.isdigit()
    )


def parse_squadron_roster(html: str) -> List[Player]:
    """Rebuild member rows from the flat members grid.

    The grid is a flat list of cells; rows start at the first small number
    (the member index) and span six cells each.
    """
    soup = BeautifulSoup(html, "html.parser")
    if is_challenge_page(soup):
        raise PageParseError("Anti-bot challenge page returned")

    cells = [item.get_text(strip=True) for item in soup.select(".squadrons-members__grid-item")]
    start: Optional[int] = None
    for index, cell in enumerate(cells):
        if cell.isdigit() and int(cell) <= MAX_SQUADRON_SIZE:
            start = index
            break
    if start is None:
        raise PageParseError("Members grid not found on squadron page")

    players = []
    for offset in range(start, len(cells) - MEMBER_GRID_COLUMNS + 1, MEMBER_GRID_COLUMNS):
        row = cells[offset:offset + MEMBER_GRID_COLUMNS]
        name = row[1]
        if _looks_like_member_name(name):
            players.append(Player(name=name, rating=_to_int(row[2])))
    return players
