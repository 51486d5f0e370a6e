"""Shared FastAPI dependencies for API routes."""

from collections.abc import AsyncIterator

from league_snapshot.config import get_settings
from league_snapshot.services.snapshot import SnapshotService


async def get_snapshot_service() -> AsyncIterator[SnapshotService]:
    """FastAPI dependency yielding a per-request SnapshotService.

    Every request gets its own HTTP client and in-flight map, closed once
    the response is produced.

    Usage:
        @router.get("/endpoint")
        async def endpoint(service: SnapshotService = Depends(get_snapshot_service)):
            ...
    """
    service = SnapshotService.from_settings(get_settings())
    try:
        yield service
    finally:
        await service.close()
