"""Shared fixtures: an in-memory Graph API and an in-memory store."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from cityharvest.harvester.fetcher import PaginatedFetcher
from cityharvest.harvester.types import EventTarget

BASE_URL = "https://graph.test"
API_VERSION = "v2.7"
ACCESS_TOKEN = "test-token"


def graph_time(value: datetime) -> str:
    """Format a datetime the way the Graph API does."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+0000")


class FakeGraph:
    """Serves registered pages per path, chained with `after` cursors."""

    def __init__(self):
        self.routes: Dict[str, List[List[Dict[str, Any]]]] = {}
        self.requests: List[tuple] = []
        self._clients: List[httpx.AsyncClient] = []

    def add(self, endpoint: str, *pages: List[Dict[str, Any]]) -> None:
        self.routes[f"/{API_VERSION}/{endpoint}"] = list(pages)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((path, dict(request.url.params)))

        pages = self.routes.get(path)
        if pages is None:
            return httpx.Response(404, json={"error": {"message": f"Unknown path {path}"}})

        index = int(request.url.params.get("after", "0"))
        body: Dict[str, Any] = {"data": pages[index] if pages else []}
        if index + 1 < len(pages):
            body["paging"] = {
                "cursors": {"after": str(index + 1)},
                "next": (
                    f"{BASE_URL}{path}?access_token=other-token"
                    f"&limit=25&after={index + 1}"
                ),
            }
        return httpx.Response(200, json=body)

    def requested(self, endpoint: str) -> List[Dict[str, str]]:
        """Query params of every request made to `endpoint`."""
        path = f"/{API_VERSION}/{endpoint}"
        return [params for p, params in self.requests if p == path]

    def client(self) -> httpx.AsyncClient:
        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(self.handler))
        self._clients.append(client)
        return client

    async def aclose(self) -> None:
        for client in self._clients:
            await client.aclose()

    def fetcher(self) -> PaginatedFetcher:
        return PaginatedFetcher(
            self.client(),
            access_token=ACCESS_TOKEN,
            api_version=API_VERSION,
            retry_max=3,
            retry_base_delay=0,
        )


class FakeStore:
    """In-memory stand-in for HarvestStore with the same natural-key semantics."""

    def __init__(self, events: Optional[List[EventTarget]] = None):
        self.tables: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self.events = list(events or [])
        self.album_writes: List[tuple] = []
        self.last_query: Optional[tuple] = None

    async def upsert_if_absent(self, table, key_field, key_value, record) -> bool:
        rows = self.tables.setdefault(table, {})
        if key_value in rows:
            return False
        rows[key_value] = {**record, key_field: key_value}
        return True

    async def get_recent_events(self, city_id, since) -> List[EventTarget]:
        self.last_query = (city_id, since)
        return [dataclasses.replace(e) for e in self.events if e.start_time > since]

    async def set_event_album(self, event_id, album_id) -> bool:
        for event in self.events:
            if event.event_id == event_id and event.album_id is None:
                event.album_id = album_id
                self.album_writes.append((event_id, album_id))
                return True
        return False

    def rows(self, table: str) -> Dict[Any, Dict[str, Any]]:
        return self.tables.get(table, {})


@pytest_asyncio.fixture
async def graph():
    fake = FakeGraph()
    yield fake
    await fake.aclose()


@pytest_asyncio.fixture
async def make_fetcher():
    """Build fetchers over a request handler; their clients are closed afterwards."""
    clients = []

    def build(handler, retry_max=5, retry_base_delay=0):
        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        clients.append(client)
        return PaginatedFetcher(
            client,
            ACCESS_TOKEN,
            api_version=API_VERSION,
            retry_max=retry_max,
            retry_base_delay=retry_base_delay,
        )

    yield build

    for client in clients:
        await client.aclose()


@pytest.fixture
def now():
    return datetime(2026, 10, 10, 20, 0, tzinfo=timezone.utc)
