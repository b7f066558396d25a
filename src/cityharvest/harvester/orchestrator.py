"""
Harvest orchestrators.

Drive the Fetch -> Normalize -> Upsert flow over a city's work items:
area tiles for locations, recent events for photos.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..config import HarvestConfig
from .fetcher import PaginatedFetcher
from .matcher import AlbumMatcher, MatchAccumulator
from .normalizer import MalformedItemError, normalize_location, normalize_photo
from .store import LOCATION_TABLE, PHOTO_TABLE, HarvestStore
from .types import Album, AlbumMatch, AreaTile, EventTarget, HarvestStats

logger = logging.getLogger(__name__)


class LocationHarvestOrchestrator:
    """Imports every place found around the tile centers of a city."""

    def __init__(
        self,
        fetcher: PaginatedFetcher,
        store: HarvestStore,
        city_id: int,
        search_distance: int = 4000,
    ):
        self.fetcher = fetcher
        self.store = store
        self.city_id = city_id
        # Larger than the tiling radius so neighbouring circles overlap
        self.search_distance = search_distance

    async def run(self, tiles: Iterable[AreaTile]) -> HarvestStats:
        stats = HarvestStats()
        logger.info(f"Starting location harvest for city {self.city_id}")

        for tile in tiles:
            stats.work_items += 1
            await self._harvest_tile(tile, stats)

        logger.info(f"Location harvest complete for city {self.city_id}: {stats.to_dict()}")
        return stats

    async def _harvest_tile(self, tile: AreaTile, stats: HarvestStats) -> None:
        params = {
            "q": "",
            "type": "place",
            "center": tile.center,
            "distance": str(self.search_distance),
        }
        async for raw in self.fetcher.items("search", params):
            stats.fetched += 1
            try:
                record = normalize_location(raw, self.city_id)
            except MalformedItemError as e:
                stats.skipped += 1
                logger.warning(f"Skipping place: {e}")
                continue

            inserted = await self.store.upsert_if_absent(
                LOCATION_TABLE, "location_id", record["location_id"], record
            )
            if inserted:
                stats.inserted += 1
            else:
                stats.duplicates += 1


class PhotoHarvestOrchestrator:
    """Imports photos of a city's recent events.

    Photos come from the event page itself and from the event's album on its
    location page. The album is found by name once and cached on the event.
    """

    def __init__(
        self,
        fetcher: PaginatedFetcher,
        store: HarvestStore,
        city_id: int,
        matcher: Optional[AlbumMatcher] = None,
        activity_window: timedelta = timedelta(days=14),
    ):
        self.fetcher = fetcher
        self.store = store
        self.city_id = city_id
        self.matcher = matcher or AlbumMatcher()
        self.activity_window = activity_window

    async def run(self, now: Optional[datetime] = None) -> HarvestStats:
        stats = HarvestStats()
        since = (now or datetime.now(timezone.utc)) - self.activity_window
        events = await self.store.get_recent_events(self.city_id, since)
        logger.info(f"Starting photo harvest for city {self.city_id}: {len(events)} events")

        for event in events:
            stats.work_items += 1
            await self._harvest_event(event, stats)

        logger.info(f"Photo harvest complete for city {self.city_id}: {stats.to_dict()}")
        return stats

    async def _harvest_event(self, event: EventTarget, stats: HarvestStats) -> None:
        # 1. Photos posted on the event page
        await self._harvest_photos(event.event_id, event, stats)

        # 2. Photos from the event's album on the location page
        if event.album_id is None:
            match = await self._resolve_album(event)
            if match is None:
                logger.info(f"No album matched event {event.event_id} ({event.name!r})")
                return

            await self.store.set_event_album(event.event_id, match.album_id)
            event.album_id = match.album_id
            stats.albums_resolved += 1
            logger.info(
                f"Event {event.event_id} matched album {match.album_name!r}"
                f" ({match.score:.1f}%)"
            )

        await self._harvest_photos(event.album_id, event, stats)

    async def _harvest_photos(
        self, source_id: str, event: EventTarget, stats: HarvestStats
    ) -> None:
        async for raw in self.fetcher.items(f"{source_id}/photos", {"fields": "images"}):
            stats.fetched += 1
            try:
                record = normalize_photo(raw)
            except MalformedItemError as e:
                stats.skipped += 1
                logger.warning(f"Skipping photo from {source_id}: {e}")
                continue

            record["event_id"] = event.id
            record["location_id"] = event.location_pk
            inserted = await self.store.upsert_if_absent(
                PHOTO_TABLE, "photo_url", record["photo_url"], record
            )
            if inserted:
                stats.inserted += 1
            else:
                stats.duplicates += 1

    async def _resolve_album(self, event: EventTarget) -> Optional[AlbumMatch]:
        """Walk the location's albums until they predate the event."""

        def stop_when(page: Dict[str, Any]) -> bool:
            return self.matcher.should_stop(_parse_albums(page), event)

        best = MatchAccumulator()
        async for page in self.fetcher.pages(
            f"{event.location_id}/albums", stop_when=stop_when
        ):
            best = self.matcher.score_page(_parse_albums(page), event, best)

        return self.matcher.decide(best)


def _parse_albums(page: Dict[str, Any]) -> List[Album]:
    albums = []
    for raw in page.get("data", []):
        try:
            albums.append(Album.from_api(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed album {raw.get('id')!r}: {e}")
    return albums


def _build_client(config: HarvestConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.graph_base_url, timeout=config.request_timeout
    )


def _build_fetcher(client: httpx.AsyncClient, config: HarvestConfig) -> PaginatedFetcher:
    if not config.graph_access_token:
        raise ValueError("GRAPH_ACCESS_TOKEN not configured")
    return PaginatedFetcher(
        client,
        access_token=config.graph_access_token,
        api_version=config.graph_api_version,
        retry_max=config.retry.retry_max,
        retry_base_delay=config.retry.retry_base_delay,
    )


async def run_location_harvest(
    city_id: int,
    tiles: Iterable[AreaTile],
    config: Optional[HarvestConfig] = None,
) -> HarvestStats:
    """Run a location harvest for a city.

    CLI and scheduler entry point.
    """
    config = config or HarvestConfig.from_env()
    store = await HarvestStore.connect(config.database_url)
    try:
        async with _build_client(config) as client:
            orchestrator = LocationHarvestOrchestrator(
                _build_fetcher(client, config),
                store,
                city_id,
                search_distance=config.search_distance,
            )
            return await orchestrator.run(tiles)
    finally:
        await store.close()


async def run_photo_harvest(
    city_id: int,
    config: Optional[HarvestConfig] = None,
) -> HarvestStats:
    """Run a photo harvest for a city's recent events."""
    config = config or HarvestConfig.from_env()
    store = await HarvestStore.connect(config.database_url)
    try:
        async with _build_client(config) as client:
            orchestrator = PhotoHarvestOrchestrator(
                _build_fetcher(client, config),
                store,
                city_id,
                matcher=AlbumMatcher(threshold=config.match_threshold),
                activity_window=timedelta(days=config.activity_window_days),
            )
            return await orchestrator.run()
    finally:
        await store.close()
