"""History collector - fetches every participant's season history.

One participant failing never affects the others: the failure is logged,
the name goes on the failures list and collection carries on.
"""

import logging
from dataclasses import dataclass, field

from league_snapshot.config import Participant
from league_snapshot.services.fpl_client import ChipUsage, EntryHistory, FplApiClient, SeriesMap
from league_snapshot.services.request_pool import BoundedWorkerPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CollectedHistories:
    """Everything gathered from the history endpoint for one run."""

    series: SeriesMap = field(default_factory=dict)
    chips_by_participant: dict[str, list[int]] = field(default_factory=dict)
    chips_meta_by_participant: dict[str, dict[int, list[str]]] = field(default_factory=dict)
    chips_by_period: dict[int, list[str]] = field(default_factory=dict)
    failures: list[str] = field(default_factory=list)


def index_chips_by_period(chips: list[ChipUsage]) -> dict[int, list[str]]:
    """Group chip names by the gameweek they were played in."""
    by_period: dict[int, list[str]] = {}
    for chip in chips:
        by_period.setdefault(chip.event, []).append(chip.name)
    return by_period


async def collect_histories(
    client: FplApiClient,
    pool: BoundedWorkerPool,
    participants: list[Participant],
) -> CollectedHistories:
    """Fetch history and chips for every participant through the worker pool.

    Args:
        client: FPL API client for this run
        pool: Bounded worker pool
        participants: Roster, in display order

    Returns:
        CollectedHistories keyed by participant name (roster order); names
        whose fetch failed are listed in ``failures`` and nowhere else
    """

    async def fetch_one(participant: Participant) -> EntryHistory:
        return await client.get_entry_history(participant.code)

    outcomes = await pool.map(participants, fetch_one)

    collected = CollectedHistories()
    for outcome in outcomes:
        participant = outcome.item
        if not outcome.ok or outcome.value is None:
            logger.error(f"FPL history fetch failed for {participant.name}: {outcome.error}")
            collected.failures.append(participant.name)
            continue

        history = outcome.value
        collected.series[participant.name] = history.current
        collected.chips_by_participant[participant.name] = [c.event for c in history.chips]
        collected.chips_meta_by_participant[participant.name] = index_chips_by_period(history.chips)
        for chip in history.chips:
            collected.chips_by_period.setdefault(chip.event, []).append(chip.name)

    if collected.failures:
        logger.warning(
            f"History collection completed with {len(collected.failures)}/{len(participants)} "
            f"participant failures: {', '.join(collected.failures)}"
        )

    return collected
