"""Service layer for league snapshot aggregation."""

from league_snapshot.services.fpl_client import FplApiClient
from league_snapshot.services.snapshot import LeagueSnapshot, SnapshotService

__all__ = ["FplApiClient", "LeagueSnapshot", "SnapshotService"]
