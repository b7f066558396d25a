"""
Album matching for events without a direct photo album.

Albums of a location page are listed newest first. An album whose name sounds
like the event name is taken as the event's album. Once an album created before
the event shows up, older pages cannot hold the event's album, so listing stops.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from difflib import SequenceMatcher
from typing import Iterable, Optional

import jellyfish

from .types import Album, AlbumMatch, EventTarget, as_utc

logger = logging.getLogger(__name__)

# Albums every page has; they are out of chronological order and never an event album
GENERIC_ALBUM_NAMES = frozenset(
    {"Profile Pictures", "Timeline Photos", "Cover Photos", "Mobile Uploads"}
)

DEFAULT_THRESHOLD = 70.0

_NON_LETTERS = re.compile(r"[^A-Z]")


def _phonetic_code(name: str) -> str:
    """Metaphone code of a name as one run of letters, without word breaks."""
    return _NON_LETTERS.sub("", jellyfish.metaphone(name or "").upper())


def phonetic_similarity(first: str, second: str) -> float:
    """Percentage of matching characters between the metaphone codes of two names."""
    first_code = _phonetic_code(first)
    second_code = _phonetic_code(second)
    if not first_code and not second_code:
        return 0.0
    return SequenceMatcher(None, first_code, second_code).ratio() * 100


def is_generic(album: Album) -> bool:
    return album.name in GENERIC_ALBUM_NAMES


def predates_event(album: Album, event_start: datetime) -> bool:
    """True for a non-generic album created strictly before the event started."""
    return not is_generic(album) and album.created_time < as_utc(event_start)


@dataclass(frozen=True)
class MatchAccumulator:
    """Best candidate seen so far across album pages."""

    album_id: Optional[str] = None
    album_name: Optional[str] = None
    score: Optional[float] = None

    def consider(self, album: Album, score: float) -> "MatchAccumulator":
        if self.score is None or score > self.score:
            return MatchAccumulator(album.id, album.name, score)
        return self


class AlbumMatcher:
    """Scores albums against an event name and decides on the best one."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        self.threshold = threshold

    def score_page(
        self,
        albums: Iterable[Album],
        event: EventTarget,
        best: MatchAccumulator,
    ) -> MatchAccumulator:
        """Fold one page of albums into the accumulator."""
        for album in albums:
            if is_generic(album):
                continue
            score = phonetic_similarity(album.name, event.name)
            logger.debug(f"Album {album.name!r} vs event {event.name!r}: {score:.1f}")
            best = best.consider(album, score)
        return best

    def should_stop(self, albums: Iterable[Album], event: EventTarget) -> bool:
        """Whether the page proves the remaining pages are older than the event."""
        return any(predates_event(album, event.start_time) for album in albums)

    def decide(self, best: MatchAccumulator) -> Optional[AlbumMatch]:
        """Accept the best candidate only above the threshold."""
        if best.score is None or best.score <= self.threshold:
            return None
        return AlbumMatch(album_id=best.album_id, album_name=best.album_name, score=best.score)

    def resolve_album(
        self,
        candidate_albums: Iterable[Album],
        target_event: EventTarget,
    ) -> Optional[AlbumMatch]:
        """Resolve over an already collected album list."""
        return self.decide(self.score_page(candidate_albums, target_event, MatchAccumulator()))
