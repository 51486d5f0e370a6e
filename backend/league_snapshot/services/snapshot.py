"""Snapshot service - builds the whole league payload in one call.

Order of work:
    1. Collect every participant's history (bounded, failures recorded)
    2. Override the latest gameweek with live scores (never fatal)
    3. Derive record boards (fixture check fails open)
    4. Merge series into chart rows

Each service instance owns its client, in-flight map and worker pool, so
separate runs never share request state.
"""

import logging
from dataclasses import dataclass, field

from league_snapshot.config import Participant, Settings
from league_snapshot.services.calculations import (
    LeagueRecord,
    MergedRow,
    merge_cumulative,
    merge_league_rank,
    merge_overall_rank,
)
from league_snapshot.services.collector import CollectedHistories, collect_histories
from league_snapshot.services.fpl_client import FplApiClient, SeriesMap
from league_snapshot.services.live import LiveOverrideResult, apply_live_override, latest_event
from league_snapshot.services.records import (
    BIGGEST_STINKER,
    RECORD_DEFINITIONS,
    derive_records,
    rank_records,
    unfinished_latest_event,
)
from league_snapshot.services.request_pool import BoundedWorkerPool, InFlightRequests

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LeagueSnapshot:
    """Consolidated league payload."""

    cumulative_rows: list[MergedRow] = field(default_factory=list)
    overall_rank_rows: list[MergedRow] = field(default_factory=list)
    league_rank_rows: list[MergedRow] = field(default_factory=list)
    series_keys: list[str] = field(default_factory=list)
    series_by_participant: SeriesMap = field(default_factory=dict)
    chips_by_participant: dict[str, list[int]] = field(default_factory=dict)
    chips_meta_by_participant: dict[str, dict[int, list[str]]] = field(default_factory=dict)
    chips_by_period: dict[int, list[str]] = field(default_factory=dict)
    codes_by_participant: dict[str, str] = field(default_factory=dict)
    best_periods: list[LeagueRecord] = field(default_factory=list)
    worst_periods: list[LeagueRecord] = field(default_factory=list)
    bench_waste: list[LeagueRecord] = field(default_factory=list)
    latest_period: int | None = None
    live_override_applied: bool = False
    failures: list[str] = field(default_factory=list)


class SnapshotService:
    """Service for building the league snapshot payload."""

    def __init__(
        self,
        client: FplApiClient,
        pool: BoundedWorkerPool,
        participants: list[Participant],
        record_limit: int = 3,
        live_retries: int | None = 1,
    ):
        self.client = client
        self.pool = pool
        self.participants = participants
        self.record_limit = record_limit
        self.live_retries = live_retries

    @classmethod
    def from_settings(cls, settings: Settings) -> "SnapshotService":
        """Build a service with a fresh client and in-flight map."""
        client = FplApiClient(
            base_url=settings.fpl_api_base_url,
            retries=settings.fetch_retries,
            backoff=settings.fetch_backoff_seconds,
            jitter=settings.fetch_jitter_seconds,
            timeout=settings.fetch_timeout_seconds,
            user_agent=settings.user_agent,
            in_flight=InFlightRequests(),
        )
        pool = BoundedWorkerPool(
            max_concurrent=settings.max_concurrent,
            delay_min=settings.dispatch_delay_min_seconds,
            delay_max=settings.dispatch_delay_max_seconds,
        )
        return cls(
            client=client,
            pool=pool,
            participants=settings.participants,
            record_limit=settings.record_limit,
            live_retries=settings.live_fetch_retries,
        )

    @property
    def codes_by_participant(self) -> dict[str, str]:
        return {p.name: p.code for p in self.participants}

    async def _collect_with_live(self) -> tuple[CollectedHistories, LiveOverrideResult]:
        """Collect histories, then apply the live override if possible."""
        collected = await collect_histories(self.client, self.pool, self.participants)

        try:
            live = await apply_live_override(
                self.client,
                self.pool,
                collected.series,
                self.participants,
                retries=self.live_retries,
            )
        except Exception:
            # Never let the live override kill the payload
            logger.exception("Live override failed, using provisional scores")
            live = LiveOverrideResult(series=collected.series, event=latest_event(collected.series))

        return collected, live

    async def build_snapshot(self) -> LeagueSnapshot:
        """Build the full league snapshot.

        Never raises for upstream problems: failed participants end up in
        ``failures`` and the rest of the payload is built from whoever
        succeeded.
        """
        collected, live = await self._collect_with_live()
        series = live.series

        records = await derive_records(self.client, series, limit=self.record_limit)

        snapshot = LeagueSnapshot(
            cumulative_rows=merge_cumulative(series),
            overall_rank_rows=merge_overall_rank(series),
            league_rank_rows=merge_league_rank(series),
            series_keys=list(series),
            series_by_participant=series,
            chips_by_participant=collected.chips_by_participant,
            chips_meta_by_participant=collected.chips_meta_by_participant,
            chips_by_period=collected.chips_by_period,
            codes_by_participant=self.codes_by_participant,
            best_periods=records.best_periods,
            worst_periods=records.worst_periods,
            bench_waste=records.bench_waste,
            latest_period=latest_event(series),
            live_override_applied=live.applied,
            failures=collected.failures,
        )

        logger.info(
            f"Built snapshot: {len(snapshot.series_keys)}/{len(self.participants)} participants, "
            f"{len(snapshot.cumulative_rows)} gameweeks, latest GW{snapshot.latest_period}"
        )
        return snapshot

    async def build_record_listing(self, key: str, limit: int) -> list[LeagueRecord]:
        """Build one record board with a custom length.

        Raises:
            KeyError: If ``key`` is not a known record
        """
        if key not in RECORD_DEFINITIONS:
            raise KeyError(key)

        _, live = await self._collect_with_live()
        series = live.series

        excluded = None
        if key == BIGGEST_STINKER:
            excluded = await unfinished_latest_event(self.client, series)
        return rank_records(key, series, limit, exclude_event=excluded)

    async def close(self) -> None:
        await self.client.close()
