"""
Load the festival catalog and merge it with the user's local state.

Static data files (official artists and shows, a curated unofficial list and
the venue layout) are fetched concurrently. Each read succeeds or fails on
its own; a failed source is treated as empty so the rest of the festival
still loads.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import requests

from festwiz.identity import build_entity_lookup, migrate_rating_keys
from festwiz.models import Artist, Event, parse_records
from festwiz.store import EventStore, LocalState, Ratings

logger = logging.getLogger(__name__)

_HEADERS = {"User-Agent": "festwiz/0.1"}
_TIMEOUT = 15


@dataclass
class SourceResult:
    name: str
    data: Any = None
    ok: bool = True
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.data) if isinstance(self.data, (list, dict)) else 0

    @property
    def status_line(self) -> str:
        if not self.ok:
            return f"{self.name}: FAILED ({self.error})"
        return f"{self.name}: {self.count} record(s)"


@dataclass
class Festival:
    artists: list[Artist]
    store: EventStore
    ratings: Ratings
    venue_data: dict = field(default_factory=dict)
    sources: list[SourceResult] = field(default_factory=list)
    migrated: int = 0

    @property
    def artist_meta(self) -> dict[str, Artist]:
        return {a.name.lower(): a for a in self.artists}

    @property
    def failed_sources(self) -> list[SourceResult]:
        return [s for s in self.sources if not s.ok]


def _read(location: str, session: requests.Session) -> Any:
    if location.startswith(("http://", "https://")):
        response = session.get(location, timeout=_TIMEOUT)
        response.raise_for_status()
        return response.json()
    with open(Path(location), encoding="utf-8") as f:
        return json.load(f)


def fetch_sources(sources: dict[str, str], max_workers: int = 5) -> dict[str, SourceResult]:
    """Read every source concurrently; completion order does not matter."""
    session = requests.Session()
    session.headers.update(_HEADERS)

    results: dict[str, SourceResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        future_map = {
            pool.submit(_read, location, session): name
            for name, location in sources.items()
        }
        for future in as_completed(future_map):
            name = future_map[future]
            try:
                results[name] = SourceResult(name, data=future.result())
            except (requests.RequestException, OSError, ValueError) as exc:
                logger.warning("Source %s unavailable: %s", name, exc)
                results[name] = SourceResult(name, ok=False, error=str(exc)[:100])
    return results


def _records(result: Optional[SourceResult]) -> list:
    if result is None or not result.ok or not isinstance(result.data, list):
        return []
    return result.data


def _unofficial_artist(raw: dict) -> Artist:
    return Artist.from_dict({**raw, "source": raw.get("source") or "unofficial"})


def merge_artists(official: list[Artist], unofficial: list[Artist], user: list[Artist] = ()) -> list[Artist]:
    """
    Union the artist lists.

    An unofficial artist who also has an official listing only contributes
    links the official record lacks; official data wins for everything else.
    User-submitted artists are added when no artist of that name exists.
    """
    artists = list(official)
    by_name = {a.name.lower(): a for a in artists}

    for ua in unofficial:
        match = by_name.get(ua.name.lower())
        if match is None:
            artists.append(ua)
            by_name[ua.name.lower()] = ua
            continue
        for link_type, url in ua.links.items():
            if url and not match.links.get(link_type):
                match.links[link_type] = url

    for ua in user:
        if ua.name.lower() not in by_name:
            artists.append(ua)
            by_name[ua.name.lower()] = ua
    return artists


def build_festival(results: dict[str, SourceResult], state: LocalState) -> Festival:
    """Assemble artists, shows and ratings from fetched sources and local state."""
    official = parse_records(_records(results.get("artists")), Artist.from_dict, "artist")
    unofficial = parse_records(_records(results.get("unofficial_artists")), _unofficial_artist, "unofficial artist")
    artists = merge_artists(official, unofficial, state.user_artists)

    migrated = migrate_rating_keys(state.ratings, artists, state.notes)

    store = EventStore.merged(
        parse_records(_records(results.get("shows")), Event.from_dict, "show"),
        parse_records(_records(results.get("unofficial_shows")), Event.from_dict, "unofficial show"),
        state.user_events,
    )

    venues = results.get("venues")
    venue_data = venues.data if venues is not None and venues.ok and isinstance(venues.data, dict) else {}

    logger.info("Loaded %d artists and %d shows", len(artists), len(store))
    return Festival(
        artists=artists,
        store=store,
        ratings=Ratings(state.ratings, build_entity_lookup(artists)),
        venue_data=venue_data,
        sources=sorted(results.values(), key=lambda r: r.name),
        migrated=migrated,
    )


def load_festival(sources: dict[str, str], state: LocalState) -> Festival:
    return build_festival(fetch_sources(sources), state)
