"""API response schemas."""

from league_snapshot.schemas.league import (
    LeagueRecordResponse,
    LeagueSnapshotResponse,
    RecordListingResponse,
    SeriesPointResponse,
)

__all__ = [
    "LeagueRecordResponse",
    "LeagueSnapshotResponse",
    "RecordListingResponse",
    "SeriesPointResponse",
]
