"""Live gameweek override.

While the latest gameweek is in progress the history endpoint still holds
provisional numbers. This module recomputes that gameweek for every
participant from the live per-player scores and their actual picks:

    live score = sum(player live points * pick multiplier)
    total      = previous gameweek total + live score

The collected series map is never mutated; a new one is returned.
"""

import logging
from dataclasses import dataclass, field, replace

from league_snapshot.config import Participant
from league_snapshot.services.fpl_client import (
    FplApiClient,
    LiveElement,
    PeriodEntry,
    Pick,
    SeriesMap,
)
from league_snapshot.services.request_pool import BoundedWorkerPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LiveOverrideResult:
    """Outcome of the override step."""

    series: SeriesMap
    event: int | None = None
    applied: bool = False
    overridden: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def latest_event(series: SeriesMap) -> int | None:
    """Highest gameweek across all participants, or None without data."""
    events = [entry.event for entries in series.values() for entry in entries]
    return max(events) if events else None


def is_live_snapshot(elements: list[LiveElement]) -> bool:
    """Heuristic: has the gameweek started?

    Live if any player has played minutes (> 0) or has non-zero points
    (negative counts). An all-zero snapshot means nothing has kicked off.
    FPL exposes no explicit "in progress" flag on this endpoint.
    """
    return any(el.minutes > 0 or el.total_points != 0 for el in elements)


def build_points_map(elements: list[LiveElement]) -> dict[int, int]:
    """Player id -> live points."""
    return {el.id: el.total_points for el in elements if el.id is not None}


def sum_live_points(elements: list[LiveElement], picks: list[Pick]) -> int:
    """Sum live points x multiplier over a squad.

    Points are looked up by player id. When an id is missing from the
    snapshot, fall back to ``elements[id - 1]``: the live array is ordered
    by player id, so the position usually still matches. Best effort only.
    """
    points_map = build_points_map(elements)

    total = 0
    for pick in picks:
        points = points_map.get(pick.element)
        if points is None:
            index = pick.element - 1
            if 0 <= index < len(elements):
                points = elements[index].total_points
                logger.debug(f"Live points for player {pick.element} taken by array position")
            else:
                points = 0
        total += points * pick.multiplier
    return total


def override_event(entries: list[PeriodEntry], event: int, live_points: int) -> list[PeriodEntry]:
    """Return a copy of ``entries`` with ``event`` set from live points.

    The previous gameweek's total (0 if absent) plus the live points gives
    the new total. A missing gameweek row is added with rank and value
    fields unknown; the result is sorted by gameweek.

    Provisional bench points are cleared, so a live gameweek stays off the
    bench-waste board until the history endpoint has final numbers.
    """
    previous = next((e for e in entries if e.event == event - 1), None)
    previous_total = previous.total_points if previous and previous.total_points is not None else 0

    updated = [replace(e) for e in entries if e.event != event]
    existing = next((e for e in entries if e.event == event), None)
    if existing is not None:
        updated.append(
            replace(
                existing,
                points=live_points,
                total_points=previous_total + live_points,
                points_on_bench=None,
            )
        )
    else:
        updated.append(
            PeriodEntry(event=event, points=live_points, total_points=previous_total + live_points)
        )

    updated.sort(key=lambda e: e.event)
    return updated


async def apply_live_override(
    client: FplApiClient,
    pool: BoundedWorkerPool,
    series: SeriesMap,
    participants: list[Participant],
    retries: int | None = 1,
) -> LiveOverrideResult:
    """Override the latest gameweek with live scores if it is in progress.

    No-ops (returning the input map) when there is no data, the live
    snapshot can't be fetched, or the snapshot shows nothing has started.
    A participant whose picks can't be fetched keeps their provisional row.

    Args:
        client: FPL API client for this run
        pool: Bounded worker pool for per-participant picks
        series: Collected series map (not modified)
        participants: Roster, used to map names to entry ids
        retries: Retry budget for live and picks requests

    Returns:
        LiveOverrideResult with the (possibly new) series map
    """
    event = latest_event(series)
    if event is None or event <= 0:
        return LiveOverrideResult(series=series)

    try:
        elements = await client.get_event_live(event, retries=retries)
    except Exception as e:
        logger.info(f"Live data for GW{event} unavailable, keeping provisional scores: {e}")
        return LiveOverrideResult(series=series, event=event)

    if not is_live_snapshot(elements):
        logger.info(f"GW{event} live snapshot shows no activity yet, skipping override")
        return LiveOverrideResult(series=series, event=event)

    targets = [p for p in participants if p.name in series]

    async def live_points_for(participant: Participant) -> int:
        selection = await client.get_entry_picks(participant.code, event, retries=retries)
        return sum_live_points(elements, selection.picks)

    outcomes = await pool.map(targets, live_points_for)

    result = LiveOverrideResult(series=dict(series), event=event, applied=True)
    for outcome in outcomes:
        name = outcome.item.name
        if not outcome.ok or outcome.value is None:
            logger.warning(
                f"Picks for {name} in GW{event} unavailable, "
                f"keeping provisional score: {outcome.error}"
            )
            result.skipped.append(name)
            continue
        result.series[name] = override_event(series[name], event, outcome.value)
        result.overridden.append(name)

    logger.info(
        f"Applied live GW{event} scores for "
        f"{len(result.overridden)}/{len(targets)} participants"
    )
    return result
