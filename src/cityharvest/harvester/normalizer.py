"""Reshape raw Graph API items into persisted records."""

import re
from typing import Any, Dict


class MalformedItemError(ValueError):
    """A raw item lacks a field required to build its record."""


_INSECURE_SCHEME = re.compile(r"^http:", re.IGNORECASE)


def secure_url(url: str) -> str:
    """Rewrite an `http:` URL to `https:`."""
    return _INSECURE_SCHEME.sub("https:", url)


def normalize_location(raw: Dict[str, Any], city_id: int) -> Dict[str, Any]:
    """Map a place search result to a `fb_location` record."""
    try:
        coordinates = raw["location"]
        return {
            "location_id": str(raw["id"]),
            "name": raw.get("name", ""),
            "latitude": coordinates["latitude"],
            "longitude": coordinates["longitude"],
            "city_id": city_id,
        }
    except (KeyError, TypeError) as e:
        raise MalformedItemError(f"Place {raw.get('id')!r} missing {e}") from e


def normalize_photo(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a photo item to a `fb_photo` record.

    The first entry of `images` is the highest resolution variant.
    """
    images = raw.get("images") or []
    if not images or not images[0].get("source"):
        raise MalformedItemError(f"Photo {raw.get('id')!r} has no image variants")

    return {"photo_url": secure_url(images[0]["source"])}
