"""cityharvest CLI.

Import locations around the tile centers of a city:
    python -m cityharvest locations --city-id 7 --tiles tiles.json

Import photos of the city's recent events:
    python -m cityharvest photos --city-id 7

Run both periodically:
    python -m cityharvest schedule --city-id 7 --tiles tiles.json

Create the harvest tables:
    python -m cityharvest init-db

Environment Variables:
    DATABASE_URL - PostgreSQL connection URL
    GRAPH_ACCESS_TOKEN - Graph API access token
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def resolve_log_level(verbose: bool, log_level: str | None, default: str) -> str:
    """Pick the log level from the flags, falling back to LOG_LEVEL."""
    if verbose:
        return "DEBUG"
    level = (log_level or default or "INFO").upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level {level!r}, expected one of {LOG_LEVELS}")
    return level


def load_tiles(path: Path) -> List["AreaTile"]:
    """Read tile centers from a JSON file.

    Accepts `[{"latitude": ..., "longitude": ...}, ...]` or `[[lat, lon], ...]`.
    """
    from .harvester import AreaTile

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    tiles = []
    for entry in data:
        if isinstance(entry, dict):
            tiles.append(AreaTile(float(entry["latitude"]), float(entry["longitude"])))
        else:
            latitude, longitude = entry
            tiles.append(AreaTile(float(latitude), float(longitude)))
    return tiles


async def _init_db(config) -> None:
    from .harvester import HarvestStore

    store = await HarvestStore.connect(config.database_url)
    try:
        await store.ensure_schema()
    finally:
        await store.close()


async def _run_scheduler(config, city_id: int, tiles) -> None:
    from .harvester import HarvestScheduler

    scheduler = HarvestScheduler(config, city_id, tiles)
    scheduler.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await scheduler.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cityharvest",
        description="Harvest Graph API locations and event photos for a city",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Log level (default: LOG_LEVEL env var or INFO)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # locations
    locations_parser = subparsers.add_parser("locations", help="Import city locations")
    locations_parser.add_argument("--city-id", type=int, required=True, help="City ID")
    locations_parser.add_argument(
        "--tiles", type=Path, required=True, help="JSON file of tile centers"
    )

    # photos
    photos_parser = subparsers.add_parser("photos", help="Import recent event photos")
    photos_parser.add_argument("--city-id", type=int, required=True, help="City ID")

    # schedule
    schedule_parser = subparsers.add_parser("schedule", help="Run harvests periodically")
    schedule_parser.add_argument("--city-id", type=int, required=True, help="City ID")
    schedule_parser.add_argument(
        "--tiles", type=Path, default=None, help="JSON file of tile centers"
    )

    # init-db
    subparsers.add_parser("init-db", help="Create the harvest tables")

    return parser


def main():
    """CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args()

    from .config import get_config
    from .harvester import run_location_harvest, run_photo_harvest

    config = get_config()
    try:
        level = resolve_log_level(args.verbose, args.log_level, config.log_level)
    except ValueError as e:
        parser.error(str(e))
    setup_logging(level)

    try:
        if args.command == "locations":
            tiles = load_tiles(args.tiles)
            logger.info(f"Loaded {len(tiles)} tile centers from {args.tiles}")
            stats = asyncio.run(run_location_harvest(args.city_id, tiles, config))
            logger.info(f"Location harvest complete: {stats.to_dict()}")

        elif args.command == "photos":
            stats = asyncio.run(run_photo_harvest(args.city_id, config))
            logger.info(f"Photo harvest complete: {stats.to_dict()}")

        elif args.command == "schedule":
            tiles = load_tiles(args.tiles) if args.tiles else []
            try:
                asyncio.run(_run_scheduler(config, args.city_id, tiles))
            except KeyboardInterrupt:
                logger.info("Shutting down...")
                sys.exit(0)

        elif args.command == "init-db":
            asyncio.run(_init_db(config))

    except KeyboardInterrupt:
        logger.info("Harvest interrupted")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Harvest failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
