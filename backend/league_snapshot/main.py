"""Main FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from league_snapshot.api.routes import router
from league_snapshot.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Validate the roster before serving; a bad LEAGUE_ROSTER fails startup."""
    participants = settings.participants
    if not participants:
        logger.warning("League roster is empty, snapshots will have no series")
    logger.info(
        f"League Snapshot tracking {len(participants)} participants: "
        f"{', '.join(p.name for p in participants)} (FPL API {settings.fpl_api_base_url})"
    )
    yield
    logger.info("League Snapshot stopped")


app = FastAPI(
    title="League Snapshot",
    description="Aggregated FPL mini-league history, live gameweek scores and records",
    version="0.1.0",
    lifespan=lifespan,
)

# Read-only API: browsers only need GET and preflight
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
async def health_check() -> dict[str, str | int]:
    """Health check with the size of the configured roster."""
    return {"status": "healthy", "participants": len(get_settings().participants)}
