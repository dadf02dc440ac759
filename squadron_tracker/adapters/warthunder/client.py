"""War Thunder community site client with timeouts, retries and error mapping."""

import asyncio
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import httpx
import structlog

from ...core.entities import LeaderboardEntry, Player, Snapshot
from .parsing import PageParseError, parse_squadron_roster, parse_squadron_snapshot
from .retry import RetryPolicy

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_BASE_URL = "https://warthunder.com"
DEFAULT_PAGE_SIZE = 20
DEFAULT_RETRY_AFTER_SECONDS = 60

_ERA_KEY_PATTERN = re.compile(r"^dr_era(\d+)(?:_hist)?$")


class WarThunderAPIError(Exception):
    """Base exception for data-source errors."""

    pass


class TransientFetchError(WarThunderAPIError):
    """Network failure, timeout or server error; safe to retry."""

    pass


class RateLimitError(TransientFetchError):
    """Rate limit exceeded error."""

    pass


class SnapshotUnavailableError(TransientFetchError):
    """The page loaded but carried no readable squadron data."""

    pass


class SquadronNotFoundError(WarThunderAPIError):
    """Squadron page does not exist."""

    pass


def parse_retry_after(value: Optional[str]) -> int:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0, int((retry_at - datetime.now(timezone.utc)).total_seconds()))


def parse_era_stats(astat: Dict[str, Any]) -> Dict[int, int]:
    """Map era index to value from a leaderboard row's ``astat`` block."""
    stats: Dict[int, int] = {}
    for key, value in (astat or {}).items():
        match = _ERA_KEY_PATTERN.match(key)
        if not match:
            continue
        try:
            stats[int(match.group(1))] = int(value or 0)
        except (TypeError, ValueError):
            continue
    return stats


class WarThunderClient:
    """Data-source adapter for squadron snapshots, rosters and the leaderboard.

    Every call is bounded by a hard timeout and wrapped in the retry policy,
    so a stalled request can never hold the poll loop indefinitely.
    """

    def __init__(
        self,
        squadron_name: str,
        base_url: Optional[str] = None,
        request_timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        min_request_interval: float = 1.0,
        metrics=None,
    ):
        """Initialize the client.

        Args:
            squadron_name: Squadron whose page is polled
            base_url: Base URL of the community site
            request_timeout: Hard per-call timeout in seconds
            retry_policy: Retry policy for transient failures
            page_size: Entries per leaderboard page
            min_request_interval: Minimum spacing between requests in seconds
            metrics: Optional metrics provider
        """
        self.squadron_name = squadron_name
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.request_timeout = request_timeout
        self.retry_policy = retry_policy or RetryPolicy(retry_on=(TransientFetchError,))
        self.page_size = page_size
        self.metrics = metrics
        self.client = httpx.AsyncClient(
            timeout=request_timeout,
            follow_redirects=True,
            headers={"User-Agent": "squadron-tracker/0.1"},
        )

        self._last_request_time = 0.0
        self._min_request_interval = min_request_interval

        # Rate limit tracking for 429 responses
        self._rate_limit_reset_time = 0.0

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.client.aclose()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def squadron_url(self) -> str:
        return f"{self.base_url}/en/community/claninfo/{quote(self.squadron_name)}"

    def leaderboard_url(self, page: int, sort_key: str) -> str:
        return f"{self.base_url}/en/community/getclansleaderboard/dif/_hist/page/{page}/sort/{sort_key}"

    async def _rate_limit_delay(self):
        """Apply rate limiting delay."""
        current_time = time.time()

        # Check if we're in a rate limit cooldown
        if current_time < self._rate_limit_reset_time:
            wait_time = self._rate_limit_reset_time - current_time
            logger.info("Rate limit cooldown active", wait_time=wait_time)
            await asyncio.sleep(wait_time)

        # Apply minimum interval between requests
        time_since_last = current_time - self._last_request_time
        if time_since_last < self._min_request_interval:
            await asyncio.sleep(self._min_request_interval - time_since_last)

        self._last_request_time = time.time()

    async def _make_request(self, url: str) -> httpx.Response:
        """Perform a single GET with a hard timeout and map failures to errors."""
        await self._rate_limit_delay()

        try:
            response = await asyncio.wait_for(self.client.get(url), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning("Request timed out", url=url, timeout=self.request_timeout)
            raise TransientFetchError(f"Request timed out after {self.request_timeout}s")
        except httpx.RequestError as e:
            logger.warning("HTTP request failed", url=url, error=str(e))
            raise TransientFetchError(f"Request failed: {e}")

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            self._rate_limit_reset_time = time.time() + retry_after
            logger.warning("Rate limited by community site", retry_after=retry_after)
            raise RateLimitError(f"Rate limited. Retry after {retry_after} seconds")

        if response.status_code == 404:
            raise SquadronNotFoundError(f"Resource not found: {url}")

        if response.status_code >= 500:
            logger.warning("Server error", url=url, status_code=response.status_code)
            raise TransientFetchError(f"Server error: {response.status_code}")

        if response.status_code >= 400:
            logger.error(
                "Community site error",
                url=url,
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise WarThunderAPIError(f"API error: {response.status_code}")

        return response

    async def _fetch(self, endpoint: str, operation: Callable[[], Any]) -> T:
        """Run one logical fetch through the retry policy and record metrics."""
        start = time.time()
        try:
            result = await self.retry_policy.run(
                operation, description=endpoint, on_retry=lambda attempt, e: self._record_retry(endpoint, e)
            )
        except WarThunderAPIError as e:
            if self.metrics:
                self.metrics.record_source_call(endpoint, success=False, error_type=type(e).__name__,
                                                duration_seconds=time.time() - start)
            raise
        if self.metrics:
            self.metrics.record_source_call(endpoint, success=True, duration_seconds=time.time() - start)
        return result

    def _record_retry(self, endpoint: str, error: BaseException) -> None:
        if self.metrics:
            self.metrics.record_source_retry(endpoint, type(error).__name__)

    async def fetch_snapshot(self) -> Snapshot:
        """Fetch the squadron's current rating and win/loss counters.

        Raises:
            TransientFetchError: When all attempts failed
            SquadronNotFoundError: If the squadron page does not exist
        """
        async def attempt() -> Snapshot:
            response = await self._make_request(self.squadron_url())
            try:
                return parse_squadron_snapshot(response.text, datetime.now(timezone.utc))
            except PageParseError as e:
                raise SnapshotUnavailableError(str(e))

        snapshot = await self._fetch("snapshot", attempt)
        logger.debug(
            "Fetched squadron snapshot",
            squadron=self.squadron_name,
            rating=snapshot.rating,
            wins=snapshot.wins,
            losses=snapshot.losses,
        )
        return snapshot

    async def fetch_players(self) -> List[Player]:
        """Fetch the squadron roster as (name, rating) pairs."""
        async def attempt() -> List[Player]:
            response = await self._make_request(self.squadron_url())
            try:
                return parse_squadron_roster(response.text)
            except PageParseError as e:
                raise SnapshotUnavailableError(str(e))

        players = await self._fetch("players", attempt)
        logger.debug("Fetched squadron roster", squadron=self.squadron_name, members=len(players))
        return players

    async def fetch_leaderboard_page(self, page: int, sort_key: str) -> List[LeaderboardEntry]:
        """Fetch one leaderboard page ordered by ``sort_key``.

        Returns an empty list past the end of the leaderboard.
        """
        if page < 1:
            raise ValueError("Leaderboard pages start at 1")

        async def attempt() -> List[LeaderboardEntry]:
            response = await self._make_request(self.leaderboard_url(page, sort_key))
            try:
                payload = response.json()
            except ValueError as e:
                raise TransientFetchError(f"Invalid leaderboard payload: {e}")
            return self._parse_leaderboard(payload, page)

        return await self._fetch("leaderboard", attempt)

    def _parse_leaderboard(self, payload: Dict[str, Any], page: int) -> List[LeaderboardEntry]:
        if payload.get("status") not in (None, "ok"):
            raise TransientFetchError(f"Leaderboard returned status {payload.get('status')}")

        entries = []
        for index, row in enumerate(payload.get("data") or []):
            entries.append(
                LeaderboardEntry(
                    team_id=str(row.get("_id", "")),
                    name=str(row.get("name", "")),
                    tag=str(row.get("tag", "")),
                    position=(page - 1) * self.page_size + index + 1,
                    era_stats=parse_era_stats(row.get("astat", {})),
                )
            )
        return entries
