"""Data types shared by the harvest components."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with API timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class AreaTile:
    """Center of one search circle covering part of a city."""

    latitude: float
    longitude: float

    @property
    def center(self) -> str:
        return f"{self.latitude},{self.longitude}"


@dataclass(frozen=True)
class Album:
    """Photo album listed on a location page. Never persisted."""

    id: str
    name: str
    created_time: datetime

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Album":
        """Build from a Graph API album item.

        Raises:
            KeyError, TypeError or ValueError if `id`, `name` or `created_time`
            is missing or unparseable.
        """
        return cls(
            id=str(raw["id"]),
            name=raw["name"],
            created_time=as_utc(
                datetime.strptime(raw["created_time"], "%Y-%m-%dT%H:%M:%S%z")
            ),
        )


@dataclass
class EventTarget:
    """An event that needs photos, joined with its location.

    `id` and `location_pk` are the store's surrogate keys; `event_id` and
    `location_id` are the Graph API identifiers.
    """

    id: int
    event_id: str
    name: str
    start_time: datetime
    location_pk: int
    location_id: str
    album_id: Optional[str] = None


@dataclass(frozen=True)
class AlbumMatch:
    """An album accepted as the event's own album."""

    album_id: str
    album_name: str
    score: float


@dataclass
class HarvestStats:
    """Summary of a harvest run."""

    work_items: int = 0
    fetched: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    albums_resolved: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
