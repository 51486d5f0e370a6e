"""Shared pytest fixtures and FPL payload builders for backend tests."""

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from league_snapshot.config import Participant
from league_snapshot.main import app
from league_snapshot.services.fpl_client import FplApiClient
from league_snapshot.services.request_pool import BoundedWorkerPool

FPL_BASE = "https://fantasy.premierleague.com/api"


# =============================================================================
# Payload builders (shapes match the FPL API)
# =============================================================================


def gw(
    event: int,
    points: int,
    total_points: int,
    points_on_bench: int = 0,
    overall_rank: int | None = 100_000,
    rank: int | None = 50_000,
    value: int = 1000,
) -> dict[str, Any]:
    """One row of /entry/{id}/history/ 'current'."""
    return {
        "event": event,
        "points": points,
        "total_points": total_points,
        "rank": rank,
        "overall_rank": overall_rank,
        "value": value,
        "points_on_bench": points_on_bench,
    }


def history_payload(*rows: dict[str, Any], chips: list[tuple[str, int]] = ()) -> dict[str, Any]:
    """Body of /entry/{id}/history/."""
    return {
        "current": list(rows),
        "past": [],
        "chips": [
            {"name": name, "time": "2024-09-01T10:00:00Z", "event": event}
            for name, event in chips
        ],
    }


def live_payload(*players: tuple[int, int, int]) -> dict[str, Any]:
    """Body of /event/{gw}/live/ from (id, minutes, total_points) tuples."""
    return {
        "elements": [
            {"id": pid, "stats": {"minutes": minutes, "total_points": points}, "explain": []}
            for pid, minutes, points in players
        ]
    }


def picks_payload(event: int, *picks: tuple[int, int], active_chip: str | None = None) -> dict[str, Any]:
    """Body of /entry/{id}/event/{gw}/picks/ from (element, multiplier) tuples."""
    return {
        "active_chip": active_chip,
        "entry_history": {"event": event},
        "picks": [
            {
                "element": element,
                "position": i + 1,
                "multiplier": multiplier,
                "is_captain": multiplier >= 2,
                "is_vice_captain": False,
                "element_type": 3,
            }
            for i, (element, multiplier) in enumerate(picks)
        ],
    }


def fixtures_payload(event: int, *finished: bool) -> list[dict[str, Any]]:
    """Body of /fixtures/?event={gw}; one fixture per flag."""
    return [
        {
            "id": event * 100 + i,
            "event": event,
            "finished": flag,
            "finished_provisional": flag,
            "started": True,
        }
        for i, flag in enumerate(finished)
    ]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def async_client():
    """Async HTTP client for testing the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def fpl_client():
    """FPL client with no backoff waits."""
    client = FplApiClient(retries=2, backoff=0.0, jitter=0.0)
    yield client
    await client.close()


@pytest.fixture
def pool() -> BoundedWorkerPool:
    """Worker pool with no dispatch delay."""
    return BoundedWorkerPool(max_concurrent=2, delay_min=0.0, delay_max=0.0)


@pytest.fixture
def participants() -> list[Participant]:
    """Four-member roster."""
    return [
        Participant(name="Alice", code="101"),
        Participant(name="Bob", code="102"),
        Participant(name="Carol", code="103"),
        Participant(name="Dave", code="104"),
    ]
