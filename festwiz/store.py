"""
In-memory event store, ratings map and the persisted local state.

Sources are merged in precedence order (official catalog, curated
unofficial list, then the user's own shows); the first record seen for a
natural key wins and later duplicates are dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from festwiz.identity import resolve_key
from festwiz.models import RATING_MAX, RATING_MIN, Artist, Event, parse_records

logger = logging.getLogger(__name__)

TIER_VALUES = ("high", "medium", "low", "hide")


class ImmutableEventError(ValueError):
    """Catalog shows cannot be deleted."""


@dataclass
class ImportResult:
    parsed: int
    added: int
    skipped: int
    events: list[Event] = field(default_factory=list, repr=False)

    @property
    def summary(self) -> str:
        return f"Added {self.added} shows ({self.skipped} duplicates skipped)."


class EventStore:
    def __init__(self, events: Iterable[Event] = ()):
        self._events: list[Event] = []
        self._keys: set[tuple] = set()
        self.extend(events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def add(self, event: Event) -> bool:
        """Append unless the natural key is already present; returns whether it was added."""
        if event.natural_key in self._keys:
            return False
        self._keys.add(event.natural_key)
        self._events.append(event)
        return True

    def extend(self, events: Iterable[Event]) -> int:
        return sum(1 for event in events if self.add(event))

    def import_events(self, events: Iterable[Event]) -> ImportResult:
        events = list(events)
        added = [e for e in events if self.add(e)]
        result = ImportResult(parsed=len(events), added=len(added), skipped=len(events) - len(added), events=added)
        logger.info("Import: %d parsed, %d added, %d skipped", result.parsed, result.added, result.skipped)
        return result

    def remove(self, event: Event) -> bool:
        if not event.is_deletable:
            raise ImmutableEventError(f"{event.artist_name} @ {event.venue} comes from the {event.source} catalog")
        key = event.natural_key
        if key not in self._keys:
            return False
        self._keys.discard(key)
        self._events = [e for e in self._events if e.natural_key != key]
        return True

    def find(self, artist_name: str, venue: str, day: str, start_time: Optional[str]) -> Optional[Event]:
        key = (artist_name, venue, day, start_time)
        return next((e for e in self._events if e.natural_key == key), None)

    def events_for_day(self, day: str) -> list[Event]:
        return [e for e in self._events if e.day == day]

    def days(self) -> list[str]:
        return sorted({e.day for e in self._events if e.day})

    def venues(self) -> list[str]:
        return sorted({e.venue for e in self._events})

    @classmethod
    def merged(cls, *sources: Iterable[Event]) -> "EventStore":
        """Union sources in precedence order, first one wins on a shared natural key."""
        store = cls()
        for source in sources:
            source = list(source)
            added = store.extend(source)
            if added < len(source):
                logger.debug("Dropped %d duplicate show(s) while merging", len(source) - added)
        return store


class Ratings:
    """Ratings by identity key, resolved through the catalog name lookup."""

    def __init__(self, values: Optional[dict] = None, entity_ids: Optional[dict] = None):
        self.values = values if values is not None else {}
        self.entity_ids = entity_ids or {}

    def key_for(self, entity) -> str:
        return resolve_key(entity, self.entity_ids)

    def get(self, key: str) -> int:
        return int(self.values.get(key) or 0)

    def rating_for(self, entity) -> int:
        return self.get(self.key_for(entity))

    def __call__(self, entity) -> int:
        return self.rating_for(entity)

    def set(self, key: str, value: Optional[int]) -> None:
        if not value:
            self.values.pop(key, None)
            return
        value = int(value)
        if not RATING_MIN <= value <= RATING_MAX:
            raise ValueError(f"Rating must be between {RATING_MIN} and {RATING_MAX}, got {value}")
        self.values[key] = value

    def rate(self, entity, value: Optional[int]) -> str:
        key = self.key_for(entity)
        self.set(key, value)
        return key


@dataclass
class LocalState:
    ratings: dict = field(default_factory=dict)
    notes: dict = field(default_factory=dict)
    genre_tiers: dict = field(default_factory=dict)
    subgenre_tiers: dict = field(default_factory=dict)
    user_artists: list[Artist] = field(default_factory=list)
    user_events: list[Event] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ratings": self.ratings,
            "notes": self.notes,
            "genreTiers": self.genre_tiers,
            "subgenreTiers": self.subgenre_tiers,
            "userArtists": [a.to_dict() for a in self.user_artists],
            "userAddedEvents": [e.to_dict() for e in self.user_events],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LocalState":
        """Rebuild state from its stored form; invalid entries are dropped with a warning."""
        state = cls(
            ratings=_valid_ratings(data.get("ratings")),
            notes=_valid_notes(data.get("notes")),
            genre_tiers=_valid_tiers(data.get("genreTiers")),
            subgenre_tiers=_valid_tiers(data.get("subgenreTiers")),
            user_artists=parse_records(data.get("userArtists") or [], Artist.from_dict, "user artist"),
        )
        state.add_user_events(parse_records(data.get("userAddedEvents") or [], Event.from_dict, "user show"))
        return state

    def add_user_events(self, events: Iterable[Event]) -> int:
        keys = {e.natural_key for e in self.user_events}
        added = 0
        for event in events:
            if event.natural_key in keys:
                continue
            keys.add(event.natural_key)
            self.user_events.append(event)
            added += 1
        return added

    def remove_user_event(self, event: Event) -> None:
        self.user_events = [e for e in self.user_events if e.natural_key != event.natural_key]

    def hidden_genres(self) -> set[str]:
        """Genres and subgenres whose tier is "hide"."""
        tiers = {**self.genre_tiers, **self.subgenre_tiers}
        return {name for name, tier in tiers.items() if tier == "hide"}

    def set_tier(self, name: str, tier: Optional[str], subgenre: bool = False) -> None:
        tiers = self.subgenre_tiers if subgenre else self.genre_tiers
        if not tier:
            tiers.pop(name, None)
            return
        if tier not in TIER_VALUES:
            raise ValueError(f"Tier must be one of {', '.join(TIER_VALUES)}, got {tier!r}")
        tiers[name] = tier

    def add_user_artist(self, artist: Artist) -> bool:
        if any(a.name.lower() == artist.name.lower() for a in self.user_artists):
            return False
        self.user_artists.append(artist)
        return True


def _mapping(value, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring %s: expected an object, got %s", what, type(value).__name__)
        return {}
    return value


def _valid_ratings(values) -> dict:
    """Whole-number ratings from RATING_MIN to RATING_MAX; anything else is dropped."""
    ratings = {}
    for key, value in _mapping(values, "ratings").items():
        if isinstance(value, bool) or not isinstance(value, int) or not RATING_MIN <= value <= RATING_MAX:
            logger.warning("Dropping invalid rating %r for %s", value, key)
            continue
        ratings[key] = value
    return ratings


def _valid_notes(values) -> dict:
    notes = {}
    for key, value in _mapping(values, "notes").items():
        if not isinstance(value, str):
            logger.warning("Dropping invalid note for %s", key)
            continue
        if value:
            notes[key] = value
    return notes


def _valid_tiers(values) -> dict:
    tiers = {}
    for name, tier in _mapping(values, "tiers").items():
        # "skip" was renamed to "hide"
        tier = "hide" if tier == "skip" else tier
        if tier not in TIER_VALUES:
            logger.warning("Dropping invalid tier %r for %s", tier, name)
            continue
        tiers[name] = tier
    return tiers


def _user_artist(raw: dict) -> Artist:
    return Artist.from_dict({**raw, "source": raw.get("source") or "user"})


def merge_backup(state: LocalState, data: dict) -> LocalState:
    """
    Merge a backup or shared state into `state` in place.

    Last write wins: incoming ratings, notes and tiers overwrite local ones.
    User artists and shows are unioned; existing entries are kept. Entries
    that fail validation (a rating outside 1-4, a show without a day) are
    logged and skipped, never stored.
    """
    state.ratings.update(_valid_ratings(data.get("ratings")))
    state.notes.update(_valid_notes(data.get("notes")))
    state.genre_tiers.update(_valid_tiers(data.get("genreTiers")))
    state.subgenre_tiers.update(_valid_tiers(data.get("subgenreTiers")))

    # Older backups used "unofficialArtists"
    raw_artists = data.get("userArtists") or data.get("unofficialArtists") or []
    for artist in parse_records(raw_artists, _user_artist, "user artist"):
        state.add_user_artist(artist)

    state.add_user_events(parse_records(data.get("userAddedEvents") or [], Event.from_dict, "user show"))
    return state
