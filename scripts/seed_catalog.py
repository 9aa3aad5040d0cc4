#!/usr/bin/env python3
"""
VidEarn Catalog Seeder

Loads plans and videos from a JSON file into the catalog. Intended for
local development and fresh staging databases.

Usage:
    python3 scripts/seed_catalog.py catalog.json

    # Validate the file without writing anything
    python3 scripts/seed_catalog.py catalog.json --dry-run

File format:
    {
      "plans": [
        {"name": "Starter", "price_minor": 100000, "daily_earning_minor": 5000,
         "videos_per_day": 5, "validity_days": 30}
      ],
      "videos": [
        {"title": "Intro", "description": "", "video_url": "https://...",
         "watch_duration_seconds": 30}
      ]
    }
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from videarn.db.session import close_engines, get_write_session
from videarn.exceptions import PlanNameTakenError, VideoValidationError
from videarn.models.domain import PlanData, VideoDraft
from videarn.observability import setup_logging
from videarn.services.catalog import CatalogService, validate_video_draft

logger = structlog.get_logger()


def load_catalog(path: Path) -> tuple[list[dict], list[VideoDraft]]:
    """Read and validate the seed file before any database access."""
    data = json.loads(path.read_text())

    plans = data.get("plans", [])
    for plan in plans:
        PlanData(plan_id=0, **plan)

    videos = [
        validate_video_draft(
            VideoDraft(
                title=video["title"],
                description=video.get("description", ""),
                video_url=video["video_url"],
                watch_duration_seconds=video.get("watch_duration_seconds", 30),
            )
        )
        for video in data.get("videos", [])
    ]
    return plans, videos


async def seed(plans: list[dict], videos: list[VideoDraft]) -> None:
    """Insert plans (skipping existing names) and videos."""
    async with get_write_session() as session:
        catalog = CatalogService(session)

        for plan in plans:
            try:
                created = await catalog.create_plan(**plan)
            except PlanNameTakenError:
                logger.info("seed_plan_exists", name=plan["name"])
                continue
            logger.info("seed_plan_created", plan_id=created.plan_id, name=created.name)

        for draft in videos:
            video = await catalog.create_video(draft)
            logger.info("seed_video_created", video_id=video.video_id, title=video.title)

    await close_engines()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the VidEarn plan and video catalog")
    parser.add_argument("catalog", type=Path, help="JSON file with plans and videos")
    parser.add_argument(
        "--dry-run", action="store_true", help="Validate the file without writing"
    )
    args = parser.parse_args()

    setup_logging()

    try:
        plans, videos = load_catalog(args.catalog)
    except (OSError, KeyError, TypeError, ValueError, VideoValidationError) as e:
        logger.error("seed_file_invalid", path=str(args.catalog), error=str(e))
        sys.exit(1)

    logger.info("seed_file_loaded", plans=len(plans), videos=len(videos))
    if args.dry_run:
        return

    asyncio.run(seed(plans, videos))


if __name__ == "__main__":
    main()
