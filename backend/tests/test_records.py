"""Tests for league record boards and the fixture-completion check."""

import pytest
import respx
from httpx import Response

from league_snapshot.services.fpl_client import FplApiClient, PeriodEntry
from league_snapshot.services.records import (
    BENCH,
    BEST_WEEK,
    BIGGEST_STINKER,
    RECORD_DEFINITIONS,
    derive_records,
    has_unfinished_fixtures,
    rank_records,
    unfinished_latest_event,
)
from tests.conftest import FPL_BASE, fixtures_payload


@pytest.fixture
def series() -> dict[str, list[PeriodEntry]]:
    """GW2 has the lowest scores of the season for everyone."""
    return {
        "Alice": [
            PeriodEntry(event=1, points=80, total_points=80, points_on_bench=20),
            PeriodEntry(event=2, points=12, total_points=92, points_on_bench=1),
        ],
        "Bob": [
            PeriodEntry(event=1, points=40, total_points=40, points_on_bench=10),
            PeriodEntry(event=2, points=15, total_points=55, points_on_bench=9),
        ],
    }


class TestRankRecords:
    """Tests for rank_records."""

    def test_best_week(self, series):
        records = rank_records(BEST_WEEK, series, limit=2)

        assert [(r.name, r.event, r.value) for r in records] == [("Alice", 1, 80), ("Bob", 1, 40)]

    def test_biggest_stinker_with_exclusion(self, series):
        records = rank_records(BIGGEST_STINKER, series, limit=2, exclude_event=2)

        assert [(r.name, r.event) for r in records] == [("Bob", 1), ("Alice", 1)]

    def test_bench(self, series):
        records = rank_records(BENCH, series, limit=3)

        # 9/15 = 60%, 20/80 = 25%, 10/40 = 25%
        assert [(r.name, r.event, r.value) for r in records] == [
            ("Bob", 2, 60.0),
            ("Alice", 1, 25.0),
            ("Bob", 1, 25.0),
        ]

    def test_unknown_key(self, series):
        with pytest.raises(KeyError):
            rank_records("most-transfers", series, limit=3)

    def test_definitions(self):
        assert set(RECORD_DEFINITIONS) == {BEST_WEEK, BIGGEST_STINKER, BENCH}
        assert RECORD_DEFINITIONS[BENCH].unit == "%"
        assert RECORD_DEFINITIONS[BIGGEST_STINKER].title == "Biggest Stinker"


class TestFixtureCompletion:
    """Tests for the unfinished-gameweek check."""

    @respx.mock
    async def test_unfinished_fixture(self, fpl_client: FplApiClient):
        respx.get(f"{FPL_BASE}/fixtures/?event=2").mock(
            return_value=Response(200, json=fixtures_payload(2, True, True, False))
        )

        assert await has_unfinished_fixtures(fpl_client, 2) is True

    @respx.mock
    async def test_all_finished(self, fpl_client: FplApiClient):
        respx.get(f"{FPL_BASE}/fixtures/?event=2").mock(
            return_value=Response(200, json=fixtures_payload(2, True, True))
        )

        assert await has_unfinished_fixtures(fpl_client, 2) is False

    @respx.mock
    async def test_provisionally_finished_counts_as_complete(self, fpl_client: FplApiClient):
        fixtures = fixtures_payload(2, False)
        fixtures[0]["finished_provisional"] = True
        respx.get(f"{FPL_BASE}/fixtures/?event=2").mock(return_value=Response(200, json=fixtures))

        assert await has_unfinished_fixtures(fpl_client, 2) is False

    @respx.mock
    async def test_lookup_failure_fails_open(self, fpl_client: FplApiClient):
        """A failed fixture lookup keeps the gameweek in."""
        respx.get(f"{FPL_BASE}/fixtures/?event=2").mock(return_value=Response(500))

        assert await has_unfinished_fixtures(fpl_client, 2) is False

    async def test_no_data(self, fpl_client: FplApiClient):
        assert await unfinished_latest_event(fpl_client, {}) is None


class TestDeriveRecords:
    """Tests for derive_records."""

    @respx.mock
    async def test_excludes_unfinished_latest_gameweek(self, fpl_client: FplApiClient, series):
        """Worst board skips GW2 while it is in progress; best and bench don't."""
        respx.get(f"{FPL_BASE}/fixtures/?event=2").mock(
            return_value=Response(200, json=fixtures_payload(2, True, False))
        )

        records = await derive_records(fpl_client, series, limit=3)

        assert records.excluded_event == 2
        assert all(r.event != 2 for r in records.worst_periods)
        assert [r.name for r in records.worst_periods] == ["Bob", "Alice"]
        assert records.bench_waste[0].event == 2

    @respx.mock
    async def test_includes_finished_latest_gameweek(self, fpl_client: FplApiClient, series):
        respx.get(f"{FPL_BASE}/fixtures/?event=2").mock(
            return_value=Response(200, json=fixtures_payload(2, True, True))
        )

        records = await derive_records(fpl_client, series, limit=3)

        assert records.excluded_event is None
        assert [(r.name, r.value) for r in records.worst_periods] == [
            ("Alice", 12),
            ("Bob", 15),
            ("Bob", 40),
        ]
        assert [r.value for r in records.best_periods] == [80, 40, 15]
