"""Pure calculation functions for league snapshot series and records.

These functions are stateless and have no network dependencies, making
them easy to test in isolation. None of them mutate their inputs.

Merged rows use ``math.nan`` for "no data", never 0, so chart consumers
can tell a missing gameweek from a zero-point one.
"""

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from league_snapshot.services.fpl_client import PeriodEntry, SeriesMap

MergedRow = dict[str, float]

# Sentinel for a participant with no value in a row
MISSING = math.nan

# Key holding the gameweek in every merged row
EVENT_KEY = "event"


# =============================================================================
# Series merging
# =============================================================================


def collect_events(series: SeriesMap) -> list[int]:
    """Sorted union of every gameweek seen across all participants."""
    return sorted({entry.event for entries in series.values() for entry in entries})


def _as_number(value: int | float | None) -> float:
    if value is None:
        return MISSING
    return value


def _merge_by_event(
    series: SeriesMap,
    pick: Callable[[PeriodEntry], int | float | None],
) -> list[MergedRow]:
    """Build one row per gameweek with ``pick(entry)`` for every participant.

    Input entries may be unsorted and gameweeks need not be contiguous.
    """
    lookup = {name: {e.event: e for e in entries} for name, entries in series.items()}

    rows: list[MergedRow] = []
    for event in collect_events(series):
        row: MergedRow = {EVENT_KEY: event}
        for name, by_event in lookup.items():
            entry = by_event.get(event)
            row[name] = _as_number(pick(entry)) if entry is not None else MISSING
        rows.append(row)
    return rows


def merge_cumulative(series: SeriesMap) -> list[MergedRow]:
    """Rows of cumulative points (``total_points``) per gameweek."""
    return _merge_by_event(series, lambda e: e.total_points)


def merge_overall_rank(series: SeriesMap) -> list[MergedRow]:
    """Rows of upstream overall rank per gameweek (passed through as-is)."""
    return _merge_by_event(series, lambda e: e.overall_rank)


def calculate_league_positions(points_by_name: dict[str, float]) -> dict[str, int]:
    """Rank participants by points, highest first.

    Uses standard competition ranking: ties share a rank and the next
    distinct score gets its position + 1 (1, 1, 3, 4). Non-finite scores
    are left out.

    Args:
        points_by_name: Participant name -> cumulative points

    Returns:
        Dict mapping name -> rank (1 = first place)
    """
    standings = [
        (name, points) for name, points in points_by_name.items() if _is_finite(points)
    ]
    # Name as secondary key keeps equal scores in a deterministic order
    standings.sort(key=lambda x: (-x[1], x[0]))

    result: dict[str, int] = {}
    current_rank = 1
    for i, (name, points) in enumerate(standings):
        if i > 0 and points < standings[i - 1][1]:
            current_rank = i + 1
        result[name] = current_rank

    return result


def merge_league_rank(series: SeriesMap) -> list[MergedRow]:
    """Rows of intra-league rank per gameweek, computed from cumulative points.

    Participants without a finite cumulative score for a gameweek get the
    missing sentinel instead of a rank.
    """
    rows: list[MergedRow] = []
    for points_row in merge_cumulative(series):
        event = points_row[EVENT_KEY]
        points_by_name = {name: value for name, value in points_row.items() if name != EVENT_KEY}
        positions = calculate_league_positions(points_by_name)

        row: MergedRow = {EVENT_KEY: event}
        for name in series:
            row[name] = positions.get(name, MISSING)
        rows.append(row)
    return rows


def _is_finite(value: int | float | None) -> bool:
    return value is not None and math.isfinite(value)


# =============================================================================
# League records
# =============================================================================


@dataclass(slots=True)
class LeagueRecord:
    """A single leaderboard entry: who, which gameweek, and the value."""

    name: str
    event: int
    value: float


def bench_waste_percentage(points: int | None, bench: int | None) -> float | None:
    """Bench points as a percentage of gameweek points, one decimal place.

    Only defined when ``points`` is strictly positive. Halves round up
    (12.25 -> 12.3), not to even.
    """
    if not _is_finite(points) or not _is_finite(bench) or points <= 0:
        return None
    return math.floor(bench / points * 1000 + 0.5) / 10


def period_candidates(series: SeriesMap) -> list[LeagueRecord]:
    """Every (participant, gameweek, points) with a usable points value."""
    return [
        LeagueRecord(name=name, event=entry.event, value=entry.points)
        for name, entries in series.items()
        for entry in entries
        if _is_finite(entry.points)
    ]


def bench_waste_candidates(series: SeriesMap) -> list[LeagueRecord]:
    """Every (participant, gameweek, bench %) where gameweek points > 0."""
    records = []
    for name, entries in series.items():
        for entry in entries:
            pct = bench_waste_percentage(entry.points, entry.points_on_bench)
            if pct is not None:
                records.append(LeagueRecord(name=name, event=entry.event, value=pct))
    return records


def best_periods(candidates: Iterable[LeagueRecord], limit: int = 3) -> list[LeagueRecord]:
    """Highest gameweek scores; ties keep input order."""
    return sorted(candidates, key=lambda r: r.value, reverse=True)[:limit]


def worst_periods(
    candidates: Iterable[LeagueRecord],
    limit: int = 3,
    exclude_event: int | None = None,
) -> list[LeagueRecord]:
    """Lowest gameweek scores, optionally ignoring one (unfinished) gameweek."""
    pool = [r for r in candidates if exclude_event is None or r.event != exclude_event]
    return sorted(pool, key=lambda r: r.value)[:limit]


def top_bench_waste(candidates: Iterable[LeagueRecord], limit: int = 3) -> list[LeagueRecord]:
    """Highest bench-waste percentages; ties keep input order."""
    return sorted(candidates, key=lambda r: r.value, reverse=True)[:limit]
