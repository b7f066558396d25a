"""
cityharvest - Graph API location and photo harvesting for a city.

Imports the places around a city's tile centers and the photos of its recent
events into PostgreSQL, without duplicating rows across runs.

Usage:
    from cityharvest import AreaTile, run_location_harvest, run_photo_harvest

    await run_location_harvest(city_id=7, tiles=[AreaTile(44.43, 26.10)])
    await run_photo_harvest(city_id=7)
"""

__version__ = "0.1.0"

from .config import HarvestConfig, get_config
from .harvester import (
    AreaTile,
    HarvestScheduler,
    HarvestStats,
    run_location_harvest,
    run_photo_harvest,
)

__all__ = [
    "__version__",
    # Config
    "HarvestConfig",
    "get_config",
    # Harvest
    "AreaTile",
    "HarvestScheduler",
    "HarvestStats",
    "run_location_harvest",
    "run_photo_harvest",
]
