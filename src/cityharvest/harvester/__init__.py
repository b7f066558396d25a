"""
Harvester module for city locations and event photos.

Components:
- fetcher: Paginated Graph API retrieval with retry
- normalizer: Raw item -> persisted record
- store: Dedup persistence (PostgreSQL)
- matcher: Event -> album name matching
- orchestrator: Fetch -> Normalize -> Upsert flow
- scheduler: APScheduler for periodic harvests
"""

from .fetcher import GraphAPIError, PaginatedFetcher
from .matcher import AlbumMatcher, MatchAccumulator
from .normalizer import MalformedItemError, normalize_location, normalize_photo
from .orchestrator import (
    LocationHarvestOrchestrator,
    PhotoHarvestOrchestrator,
    run_location_harvest,
    run_photo_harvest,
)
from .scheduler import HarvestScheduler
from .store import HarvestStore
from .types import Album, AlbumMatch, AreaTile, EventTarget, HarvestStats

__all__ = [
    "GraphAPIError",
    "PaginatedFetcher",
    "AlbumMatcher",
    "MatchAccumulator",
    "MalformedItemError",
    "normalize_location",
    "normalize_photo",
    "LocationHarvestOrchestrator",
    "PhotoHarvestOrchestrator",
    "run_location_harvest",
    "run_photo_harvest",
    "HarvestScheduler",
    "HarvestStore",
    "Album",
    "AlbumMatch",
    "AreaTile",
    "EventTarget",
    "HarvestStats",
]
