"""League records - best gameweek, biggest stinker and bench waste.

The "biggest stinker" board leaves out the latest gameweek while any of
its fixtures is still unfinished: a score that is still going up would
otherwise count as a worst week. If the fixtures can't be fetched the
gameweek stays in.
"""

import logging
from dataclasses import dataclass, field

from league_snapshot.services.calculations import (
    LeagueRecord,
    bench_waste_candidates,
    best_periods,
    period_candidates,
    top_bench_waste,
    worst_periods,
)
from league_snapshot.services.fpl_client import FplApiClient, SeriesMap
from league_snapshot.services.live import latest_event

logger = logging.getLogger(__name__)

BEST_WEEK = "best-week"
BIGGEST_STINKER = "biggest-stinker"
BENCH = "bench"


@dataclass(frozen=True, slots=True)
class RecordDefinition:
    """Display metadata for one record board."""

    key: str
    title: str
    unit: str  # "pts" or "%"
    value_label: str


RECORD_DEFINITIONS: dict[str, RecordDefinition] = {
    BEST_WEEK: RecordDefinition(BEST_WEEK, "Best Week", "pts", "Points"),
    BIGGEST_STINKER: RecordDefinition(BIGGEST_STINKER, "Biggest Stinker", "pts", "Points"),
    BENCH: RecordDefinition(BENCH, "Most Points on Bench", "%", "Bench %"),
}


@dataclass(slots=True)
class LeagueRecords:
    """The three record boards for one snapshot."""

    best_periods: list[LeagueRecord] = field(default_factory=list)
    worst_periods: list[LeagueRecord] = field(default_factory=list)
    bench_waste: list[LeagueRecord] = field(default_factory=list)
    excluded_event: int | None = None


async def has_unfinished_fixtures(client: FplApiClient, event: int) -> bool:
    """True if any fixture in ``event`` is unfinished.

    Fails open: a failed lookup reports False so the gameweek is kept.
    """
    try:
        fixtures = await client.get_fixtures(event)
    except Exception as e:
        logger.warning(f"Fixture lookup for GW{event} failed, not excluding it: {e}")
        return False
    return any(not fixture.is_complete for fixture in fixtures)


async def unfinished_latest_event(client: FplApiClient, series: SeriesMap) -> int | None:
    """The latest gameweek if it still has unfinished fixtures, else None."""
    event = latest_event(series)
    if event is None:
        return None
    return event if await has_unfinished_fixtures(client, event) else None


def rank_records(
    key: str,
    series: SeriesMap,
    limit: int,
    exclude_event: int | None = None,
) -> list[LeagueRecord]:
    """Build one record board by key.

    ``exclude_event`` only applies to the biggest-stinker board.

    Raises:
        KeyError: If ``key`` is not a known record
    """
    if key == BEST_WEEK:
        return best_periods(period_candidates(series), limit)
    if key == BIGGEST_STINKER:
        return worst_periods(period_candidates(series), limit, exclude_event=exclude_event)
    if key == BENCH:
        return top_bench_waste(bench_waste_candidates(series), limit)
    raise KeyError(key)


async def derive_records(
    client: FplApiClient,
    series: SeriesMap,
    limit: int = 3,
) -> LeagueRecords:
    """Build all three boards, checking fixture completion for the worst board."""
    excluded = await unfinished_latest_event(client, series)
    if excluded is not None:
        logger.info(f"GW{excluded} still in progress, excluded from worst-week records")

    return LeagueRecords(
        best_periods=rank_records(BEST_WEEK, series, limit),
        worst_periods=rank_records(BIGGEST_STINKER, series, limit, exclude_event=excluded),
        bench_waste=rank_records(BENCH, series, limit),
        excluded_event=excluded,
    )
