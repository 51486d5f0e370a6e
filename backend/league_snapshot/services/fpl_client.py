"""FPL API client with retry/backoff and in-flight request sharing."""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from league_snapshot.services.request_pool import InFlightRequests, SleepFn

logger = logging.getLogger(__name__)

FPL_BASE_URL = "https://fantasy.premierleague.com/api"

# How much of a failed response body is kept for diagnostics
BODY_PREVIEW_CHARS = 200


def _safe_int(val: Any) -> int | None:
    """Convert API value to int, returning None for missing or non-numeric values."""
    if val is None or val == "" or isinstance(val, bool):
        return None
    try:
        return int(val)
    except (ValueError, TypeError):
        return None


class UpstreamError(Exception):
    """A logical GET against the upstream API failed.

    Carries what was captured from the last failed attempt: HTTP status
    (None for network or decode failures), a truncated body and headers.
    """

    def __init__(
        self,
        message: str,
        url: str,
        status_code: int | None = None,
        body_preview: str = "",
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body_preview = body_preview
        self.headers = headers or {}


@dataclass(frozen=True, slots=True)
class FetchOptions:
    """Per-call fetch options; also part of the in-flight sharing key."""

    retries: int = 2
    backoff: float = 0.6  # Seconds; attempt n waits backoff * 2**n
    headers: tuple[tuple[str, str], ...] = ()

    def cache_key(self, url: str) -> tuple[str, str]:
        return url, json.dumps(asdict(self), sort_keys=True)


# =============================================================================
# Upstream data models
# =============================================================================


@dataclass(slots=True)
class PeriodEntry:
    """One gameweek row from a manager's history.

    Numeric fields the API omitted or sent as garbage are None, not 0.
    """

    event: int
    points: int | None = None
    total_points: int | None = None
    rank: int | None = None
    overall_rank: int | None = None
    value: int | None = None
    points_on_bench: int | None = None


# Participant name -> that participant's gameweek rows
SeriesMap = dict[str, list[PeriodEntry]]


@dataclass(slots=True)
class ChipUsage:
    """A chip played by a manager."""

    name: str  # "wildcard", "bboost", "3xc", "freehit", ...
    event: int  # Gameweek number when used
    time: str | None = None


@dataclass(slots=True)
class EntryHistory:
    """A manager's season history: gameweek rows plus chips played."""

    current: list[PeriodEntry] = field(default_factory=list)
    chips: list[ChipUsage] = field(default_factory=list)


@dataclass(slots=True)
class LiveElement:
    """A player's live stats for one gameweek."""

    id: int | None
    minutes: int
    total_points: int


@dataclass(slots=True)
class Pick:
    """One squad slot in a manager's gameweek selection."""

    element: int  # Player id
    multiplier: int  # 0 = bench, 1 = playing, 2 = captain, 3 = triple captain
    position: int | None = None
    is_captain: bool = False


@dataclass(slots=True)
class SquadSelection:
    """A manager's picks for a gameweek."""

    event: int
    picks: list[Pick] = field(default_factory=list)
    active_chip: str | None = None


@dataclass(slots=True)
class Fixture:
    """A fixture with its completion flags."""

    id: int | None
    event: int | None
    finished: bool = False
    finished_provisional: bool = False

    @property
    def is_complete(self) -> bool:
        return self.finished or self.finished_provisional


def _parse_period_entries(rows: Any) -> list[PeriodEntry]:
    """Parse history rows, dropping rows without a usable gameweek.

    A repeated gameweek keeps its last occurrence; input order is preserved
    otherwise.
    """
    if not isinstance(rows, list):
        return []

    by_event: dict[int, PeriodEntry] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        event = _safe_int(row.get("event"))
        if event is None or event <= 0:
            continue
        if event in by_event:
            logger.warning(f"Duplicate gameweek {event} in history, keeping last row")
            del by_event[event]
        by_event[event] = PeriodEntry(
            event=event,
            points=_safe_int(row.get("points")),
            total_points=_safe_int(row.get("total_points")),
            rank=_safe_int(row.get("rank")),
            overall_rank=_safe_int(row.get("overall_rank")),
            value=_safe_int(row.get("value")),
            points_on_bench=_safe_int(row.get("points_on_bench")),
        )
    return list(by_event.values())


def _parse_chips(rows: Any) -> list[ChipUsage]:
    if not isinstance(rows, list):
        return []

    chips = []
    for chip in rows:
        if not isinstance(chip, dict):
            continue
        name = chip.get("name") or ""
        event = _safe_int(chip.get("event"))
        if name and event is not None and event > 0:
            chips.append(ChipUsage(name=str(name), event=event, time=chip.get("time")))
    return chips


class FplApiClient:
    """
    FPL API client for aggregation runs.

    Every GET goes through the in-flight map, so identical concurrent
    requests (same URL and options) hit the API once. Failed attempts are
    retried with exponential backoff plus jitter; the last failure is
    re-raised as UpstreamError.
    """

    def __init__(
        self,
        base_url: str = FPL_BASE_URL,
        retries: int = 2,
        backoff: float = 0.6,
        jitter: float = 0.25,
        timeout: float = 30.0,
        user_agent: str | None = None,
        in_flight: InFlightRequests | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root without trailing slash
            retries: Default retry count (attempts = retries + 1)
            backoff: Base backoff in seconds before the first retry
            jitter: Upper bound of the random extra wait per retry, seconds
            timeout: Per-request HTTP timeout in seconds
            user_agent: Optional User-Agent header
            in_flight: Shared request map; a fresh one is created if omitted
            sleep: Coroutine used for backoff waits (tests pass a no-op)
        """
        self.base_url = base_url.rstrip("/")
        self.default_options = FetchOptions(retries=retries, backoff=backoff)
        self.jitter = jitter
        self.timeout = timeout
        self.user_agent = user_agent
        self.in_flight = in_flight if in_flight is not None else InFlightRequests()
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._client: httpx.AsyncClient | None = None
        self._closed = False

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization, coroutine-safe).

        Raises:
            RuntimeError: If the client has been closed
        """
        if self._closed:
            raise RuntimeError("FplApiClient is closed")
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    headers = {"User-Agent": self.user_agent} if self.user_agent else None
                    self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    async def close(self) -> None:
        """Cancel pending requests and close the HTTP client (coroutine-safe).

        A closed client never reopens, so requests still retrying after a
        timeout can't create a new connection pool.
        """
        self._closed = True
        await self.in_flight.cancel_all()
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self) -> "FplApiClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager and close client."""
        await self.close()

    def options(
        self,
        retries: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> FetchOptions:
        """Build FetchOptions from the client defaults."""
        return FetchOptions(
            retries=self.default_options.retries if retries is None else retries,
            backoff=self.default_options.backoff,
            headers=tuple(sorted((headers or {}).items())),
        )

    async def fetch_json(self, url: str, options: FetchOptions | None = None) -> Any:
        """GET ``url`` and parse JSON, sharing identical in-flight requests."""
        options = options or self.default_options
        return await self.in_flight.run(
            options.cache_key(url),
            lambda: self._get_with_retry(url, options),
        )

    async def _get_with_retry(self, url: str, options: FetchOptions) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.retries + 1),
            wait=wait_exponential(multiplier=options.backoff, exp_base=2)
            + wait_random(0, self.jitter),
            retry=retry_if_exception_type(UpstreamError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._get_once, url, dict(options.headers))

    async def _get_once(self, url: str, headers: dict[str, str]) -> Any:
        """Single GET attempt; every failure becomes an UpstreamError."""
        client = await self._get_client()
        try:
            response = await client.get(url, headers=headers or None)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Request failed for {url}: {e!r}", url=url) from e

        if not response.is_success:
            raise UpstreamError(
                f"HTTP {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
                body_preview=response.text[:BODY_PREVIEW_CHARS],
                headers=dict(response.headers),
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Malformed JSON body for {url}",
                url=url,
                status_code=response.status_code,
                body_preview=response.text[:BODY_PREVIEW_CHARS],
                headers=dict(response.headers),
            ) from e

    async def _fetch_dict(self, url: str, options: FetchOptions | None = None) -> dict[str, Any]:
        data = await self.fetch_json(url, options)
        if not isinstance(data, dict):
            raise UpstreamError(
                f"Expected a JSON object from {url}, got {type(data).__name__}",
                url=url,
                body_preview=str(data)[:BODY_PREVIEW_CHARS],
            )
        return data

    async def get_entry_history(self, code: str) -> EntryHistory:
        """
        Fetch a manager's season history.

        The /entry/{id}/history endpoint returns:
        - current: gameweek entries for current season
        - past: summary of past seasons (unused)
        - chips: list of chips used (name, time, event)
        """
        data = await self._fetch_dict(f"{self.base_url}/entry/{code}/history/")
        return EntryHistory(
            current=_parse_period_entries(data.get("current")),
            chips=_parse_chips(data.get("chips")),
        )

    async def get_event_live(self, event: int, retries: int | None = None) -> list[LiveElement]:
        """Fetch live per-player stats for a gameweek (in upstream array order)."""
        data = await self._fetch_dict(
            f"{self.base_url}/event/{event}/live/", self.options(retries)
        )

        elements = []
        for el in data.get("elements") or []:
            if not isinstance(el, dict):
                continue
            stats = el.get("stats") if isinstance(el.get("stats"), dict) else {}
            elements.append(
                LiveElement(
                    id=_safe_int(el.get("id")),
                    minutes=_safe_int(stats.get("minutes")) or 0,
                    total_points=_safe_int(stats.get("total_points")) or 0,
                )
            )
        return elements

    async def get_entry_picks(
        self, code: str, event: int, retries: int | None = None
    ) -> SquadSelection:
        """Fetch a manager's squad selection for a gameweek."""
        data = await self._fetch_dict(
            f"{self.base_url}/entry/{code}/event/{event}/picks/", self.options(retries)
        )

        picks = []
        for p in data.get("picks") or []:
            if not isinstance(p, dict):
                continue
            element = _safe_int(p.get("element"))
            if element is None:
                continue
            multiplier = _safe_int(p.get("multiplier"))
            picks.append(
                Pick(
                    element=element,
                    multiplier=1 if multiplier is None else multiplier,
                    position=_safe_int(p.get("position")),
                    is_captain=bool(p.get("is_captain")),
                )
            )

        return SquadSelection(event=event, picks=picks, active_chip=data.get("active_chip"))

    async def get_fixtures(self, event: int) -> list[Fixture]:
        """Fetch fixtures for one gameweek."""
        url = f"{self.base_url}/fixtures/?event={event}"
        data = await self.fetch_json(url)
        if not isinstance(data, list):
            raise UpstreamError(
                f"Expected a JSON array from {url}, got {type(data).__name__}",
                url=url,
                body_preview=str(data)[:BODY_PREVIEW_CHARS],
            )

        return [
            Fixture(
                id=_safe_int(f.get("id")),
                event=_safe_int(f.get("event")),
                finished=f.get("finished") is True,
                finished_provisional=f.get("finished_provisional") is True,
            )
            for f in data
            if isinstance(f, dict)
        ]
