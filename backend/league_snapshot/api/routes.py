"""League snapshot API routes."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Response

from league_snapshot.config import get_settings
from league_snapshot.dependencies import get_snapshot_service
from league_snapshot.schemas.league import LeagueSnapshotResponse, RecordListingResponse
from league_snapshot.services.records import RECORD_DEFINITIONS
from league_snapshot.services.snapshot import SnapshotService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/league", tags=["league"])

NO_STORE_HEADER = "no-store"


@router.get("", response_model=LeagueSnapshotResponse)
async def get_league_snapshot(
    response: Response,
    service: SnapshotService = Depends(get_snapshot_service),
) -> LeagueSnapshotResponse:
    """
    Get the full league snapshot: chart rows, raw series, chips and records.

    Participants whose history could not be fetched are listed in
    ``failures``; the rest of the payload is still returned.
    """
    timeout = get_settings().aggregation_timeout_seconds
    try:
        snapshot = await asyncio.wait_for(service.build_snapshot(), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"League snapshot timed out after {timeout}s")
        raise HTTPException(status_code=504, detail="Timed out building payload") from e
    except Exception as e:
        logger.exception("Failed to build league snapshot")
        raise HTTPException(status_code=500, detail="Failed to build payload") from e

    response.headers["Cache-Control"] = NO_STORE_HEADER
    return LeagueSnapshotResponse.from_snapshot(snapshot)


@router.get("/records/{record}", response_model=RecordListingResponse)
async def get_league_record(
    response: Response,
    record: str = Path(description="best-week, biggest-stinker or bench"),
    service: SnapshotService = Depends(get_snapshot_service),
) -> RecordListingResponse:
    """Get a longer listing for one record board."""
    definition = RECORD_DEFINITIONS.get(record)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Unknown record '{record}'")

    settings = get_settings()
    try:
        records = await asyncio.wait_for(
            service.build_record_listing(record, settings.record_page_limit),
            timeout=settings.aggregation_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        logger.error(f"Record listing '{record}' timed out")
        raise HTTPException(status_code=504, detail="Timed out building payload") from e
    except Exception as e:
        logger.exception(f"Failed to build record listing '{record}'")
        raise HTTPException(status_code=500, detail="Failed to build payload") from e

    response.headers["Cache-Control"] = NO_STORE_HEADER
    return RecordListingResponse.build(definition, records, service.codes_by_participant)
