#!/usr/bin/env python
"""
Build one league snapshot and write it as JSON.

Usage:
    python -m scripts.dump_snapshot
    python -m scripts.dump_snapshot --output snapshot.json --indent 2
    LEAGUE_ROSTER="Alice:123,Bob:456" python -m scripts.dump_snapshot
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from league_snapshot.config import Settings
from league_snapshot.schemas.league import LeagueSnapshotResponse
from league_snapshot.services.snapshot import SnapshotService

# Load environment
load_dotenv(".env.local")
load_dotenv(".env")

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dump the league snapshot as JSON")
    parser.add_argument("--output", "-o", type=Path, help="Write to file instead of stdout")
    parser.add_argument("--indent", type=int, default=None, help="JSON indent level")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    service = SnapshotService.from_settings(settings)
    try:
        snapshot = await asyncio.wait_for(
            service.build_snapshot(), timeout=settings.aggregation_timeout_seconds
        )
    finally:
        await service.close()

    payload = LeagueSnapshotResponse.from_snapshot(snapshot).model_dump_json(indent=args.indent)

    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info(f"✓ Wrote snapshot to {args.output}")
    else:
        sys.stdout.write(payload + "\n")

    if snapshot.failures:
        logger.warning(f"Failed participants: {', '.join(snapshot.failures)}")
    if not snapshot.series_keys and settings.participants:
        logger.error("✗ Every participant failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
