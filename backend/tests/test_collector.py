"""Tests for history collection across the roster."""

import respx
from httpx import Response

from league_snapshot.config import Participant
from league_snapshot.services.collector import collect_histories, index_chips_by_period
from league_snapshot.services.fpl_client import ChipUsage, FplApiClient
from league_snapshot.services.request_pool import BoundedWorkerPool
from tests.conftest import FPL_BASE, gw, history_payload


def mock_history(code: str, payload: dict) -> respx.Route:
    return respx.get(f"{FPL_BASE}/entry/{code}/history/").mock(
        return_value=Response(200, json=payload)
    )


class TestIndexChipsByPeriod:
    """Tests for index_chips_by_period."""

    def test_groups_by_gameweek(self):
        chips = [ChipUsage("wildcard", 3), ChipUsage("bboost", 7), ChipUsage("3xc", 3)]

        assert index_chips_by_period(chips) == {3: ["wildcard", "3xc"], 7: ["bboost"]}

    def test_empty(self):
        assert index_chips_by_period([]) == {}


class TestCollectHistories:
    """Tests for collect_histories."""

    @respx.mock
    async def test_collects_every_participant(
        self,
        fpl_client: FplApiClient,
        pool: BoundedWorkerPool,
        participants: list[Participant],
    ):
        """Series are keyed by name in roster order."""
        for i, p in enumerate(participants):
            mock_history(p.code, history_payload(gw(1, 40 + i, 40 + i), gw(2, 50, 90 + i)))

        collected = await collect_histories(fpl_client, pool, participants)

        assert list(collected.series) == ["Alice", "Bob", "Carol", "Dave"]
        assert collected.series["Carol"][1].total_points == 92
        assert collected.failures == []

    @respx.mock
    async def test_one_failure_does_not_affect_others(
        self,
        fpl_client: FplApiClient,
        pool: BoundedWorkerPool,
        participants: list[Participant],
    ):
        """A participant failing every attempt is recorded and skipped."""
        for p in participants:
            if p.name != "Bob":
                mock_history(p.code, history_payload(gw(1, 40, 40)))
        bob = respx.get(f"{FPL_BASE}/entry/102/history/").mock(return_value=Response(503))

        collected = await collect_histories(fpl_client, pool, participants)

        assert bob.call_count == 3
        assert collected.failures == ["Bob"]
        assert list(collected.series) == ["Alice", "Carol", "Dave"]
        assert "Bob" not in collected.chips_by_participant
        assert "Bob" not in collected.chips_meta_by_participant

    @respx.mock
    async def test_all_failures(
        self,
        fpl_client: FplApiClient,
        pool: BoundedWorkerPool,
        participants: list[Participant],
    ):
        respx.get(url__regex=rf"{FPL_BASE}/entry/\d+/history/").mock(return_value=Response(500))

        collected = await collect_histories(fpl_client, pool, participants)

        assert collected.series == {}
        assert collected.failures == ["Alice", "Bob", "Carol", "Dave"]

    @respx.mock
    async def test_chip_indexes(self, fpl_client: FplApiClient, pool: BoundedWorkerPool):
        """Chips are indexed per participant and per gameweek."""
        roster = [Participant("Alice", "101"), Participant("Bob", "102")]
        mock_history(
            "101",
            history_payload(gw(1, 40, 40), chips=[("wildcard", 2), ("bboost", 5)]),
        )
        mock_history(
            "102",
            history_payload(gw(1, 40, 40), chips=[("3xc", 2), ("freehit", 9)]),
        )

        collected = await collect_histories(fpl_client, pool, roster)

        assert collected.chips_by_participant == {"Alice": [2, 5], "Bob": [2, 9]}
        assert collected.chips_meta_by_participant["Alice"] == {2: ["wildcard"], 5: ["bboost"]}
        assert collected.chips_by_period == {2: ["wildcard", "3xc"], 5: ["bboost"], 9: ["freehit"]}

    @respx.mock
    async def test_empty_history_is_not_a_failure(
        self, fpl_client: FplApiClient, pool: BoundedWorkerPool
    ):
        """A manager with no gameweeks yet contributes an empty series."""
        mock_history("101", history_payload())

        collected = await collect_histories(fpl_client, pool, [Participant("Alice", "101")])

        assert collected.series == {"Alice": []}
        assert collected.failures == []
