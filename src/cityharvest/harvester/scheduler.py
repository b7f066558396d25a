"""
Scheduler for periodic city harvests.

Uses APScheduler to periodically:
1. Re-import the locations around a city's tile centers
2. Import photos of the city's recent events
"""

import logging
from typing import List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import HarvestConfig
from .orchestrator import run_location_harvest, run_photo_harvest
from .types import AreaTile

logger = logging.getLogger(__name__)


class HarvestScheduler:
    """Scheduler for the location and photo harvest jobs of one city."""

    def __init__(self, config: HarvestConfig, city_id: int, tiles: List[AreaTile]):
        self.config = config
        self.city_id = city_id
        self.tiles = tiles
        self.scheduler = AsyncIOScheduler()

    def start(self):
        """Start the scheduler."""
        schedule = self.config.schedule

        if self.tiles:
            self.scheduler.add_job(
                self._harvest_locations,
                trigger=IntervalTrigger(seconds=schedule.location_interval),
                id=f"locations_{self.city_id}",
                name=f"Location harvest for city {self.city_id}",
                replace_existing=True,
            )
        else:
            logger.warning("No tile centers given, location harvest not scheduled")

        self.scheduler.add_job(
            self._harvest_photos,
            trigger=IntervalTrigger(seconds=schedule.photo_interval),
            id=f"photos_{self.city_id}",
            name=f"Photo harvest for city {self.city_id}",
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info(
            f"Harvest scheduler started for city {self.city_id}. "
            f"Photos every {schedule.photo_interval}s, "
            f"locations every {schedule.location_interval}s"
        )

    async def stop(self):
        """Stop the scheduler."""
        self.scheduler.shutdown()
        logger.info("Harvest scheduler stopped")

    async def _harvest_locations(self):
        try:
            await run_location_harvest(self.city_id, self.tiles, self.config)
        except Exception as e:
            logger.exception(f"Location harvest failed: {e}")

    async def _harvest_photos(self):
        try:
            await run_photo_harvest(self.city_id, self.config)
        except Exception as e:
            logger.exception(f"Photo harvest failed: {e}")
