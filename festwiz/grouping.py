"""Conflicts, now/next buckets, venue ordering and the schedule filters."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from festwiz.models import ADMISSIONS, Artist, Event
from festwiz.times import (
    DAY_START_HOUR,
    LAYOUT_DEFAULT_MINUTES,
    NOW_NEXT_DEFAULT_MINUTES,
    event_bounds,
    instant_offset,
    overlaps,
)

LOOKAHEAD_MINUTES = 120
IMMINENT_MINUTES = 45

SHOW_FILTERS = ("all", "rated", "top")
TOP_RATING = 3

RatingOf = Callable[[Event], int]


# --- Conflicts ---

def find_conflicts(
    events: Iterable[Event],
    rating_of: RatingOf,
    day_start_hour: int = DAY_START_HOUR,
    default_minutes: int = LAYOUT_DEFAULT_MINUTES,
) -> set[str]:
    """
    Identities of rated shows that overlap another rated show.

    Unrated shows never conflict. Uses the layout default duration so a
    conflict warning always matches what the timeline draws.
    """
    rated = [e for e in events if e.start_time and rating_of(e) > 0]
    bounds = [event_bounds(e, default_minutes, day_start_hour) for e in rated]

    conflicting: set[str] = set()
    for i in range(len(rated)):
        for j in range(i + 1, len(rated)):
            if overlaps(bounds[i], bounds[j]):
                conflicting.add(rated[i].identity)
                conflicting.add(rated[j].identity)
    return conflicting


# --- Now / next ---

@dataclass
class NowNext:
    current: list[Event] = field(default_factory=list)
    imminent: list[Event] = field(default_factory=list)
    upcoming: list[Event] = field(default_factory=list)

    def sections(self) -> list[tuple[str, list[Event]]]:
        """Buckets in display order."""
        return [("NOW", self.current), ("SOON", self.imminent), ("LATER", self.upcoming)]

    def __len__(self) -> int:
        return len(self.current) + len(self.imminent) + len(self.upcoming)


def bucket_now_next(
    events: Iterable[Event],
    now: datetime,
    day_start_hour: int = DAY_START_HOUR,
    default_minutes: int = NOW_NEXT_DEFAULT_MINUTES,
    lookahead_minutes: int = LOOKAHEAD_MINUTES,
    imminent_minutes: int = IMMINENT_MINUTES,
) -> NowNext:
    """
    Classify shows around `now` into current / imminent / upcoming.

    Only shows that have not ended and start within the lookahead window are
    considered. Missing end times use the one-hour now/next default.
    """
    candidates: list[tuple[float, float, Event]] = []
    for event in events:
        if not event.start_time or not event.day:
            continue
        start, end = event_bounds(event, default_minutes, day_start_hour)
        now_offset = instant_offset(event.day, now, day_start_hour)
        if end > now_offset and start <= now_offset + lookahead_minutes:
            # relative to now, so shows from adjacent days sort together
            candidates.append((start - now_offset, end - now_offset, event))

    candidates.sort(key=lambda c: c[0])

    result = NowNext()
    for until_start, until_end, event in candidates:
        if until_start <= 0 < until_end:
            result.current.append(event)
        elif until_start <= imminent_minutes:
            result.imminent.append(event)
        else:
            result.upcoming.append(event)
    return result


def countdown(event: Event, now: datetime, day_start_hour: int = DAY_START_HOUR) -> str:
    """Short label such as "in 20m", "in 2h", "15m left" or "Now"."""
    now_offset = instant_offset(event.day, now, day_start_hour)
    start, _ = event_bounds(event, NOW_NEXT_DEFAULT_MINUTES, day_start_hour)
    mins_until = round(start - now_offset)
    if mins_until <= 0:
        if not event.end_time:
            return "Now"
        _, end = event_bounds(event, NOW_NEXT_DEFAULT_MINUTES, day_start_hour)
        return f"{round(end - now_offset)}m left"
    if mins_until < 60:
        return f"in {mins_until}m"
    return f"in {round(mins_until / 60)}h"


# --- Venue ordering ---

def order_venues(
    events: Iterable[Event],
    clusters: Optional[list[list[str]]],
    rating_of: RatingOf,
) -> list[str]:
    """
    Venue column order for the grid.

    Venues in the same cluster stay adjacent. Each group is ranked by the
    highest rating given to any of its shows (0 when none), best first;
    ties fall back to alphabetical order.
    """
    events = list(events)
    present = {e.venue for e in events}

    best: dict[str, int] = {}
    for e in events:
        best[e.venue] = max(best.get(e.venue, 0), rating_of(e))

    cluster_of: dict[str, list[str]] = {}
    for cluster in clusters or []:
        for venue in cluster:
            cluster_of.setdefault(venue, cluster)

    groups: list[list[str]] = []
    seen: set[str] = set()
    for venue in sorted(present):
        if venue in seen:
            continue
        members = [m for m in cluster_of.get(venue, [venue]) if m in present and m not in seen]
        seen.update(members)
        groups.append(members)

    groups.sort(key=lambda g: (-max(best.get(v, 0) for v in g), min(g)))
    return [venue for group in groups for venue in group]


# --- Filters ---

def matches_search(event: Event, query: str, artist_meta: Optional[dict[str, Artist]] = None) -> bool:
    if not query:
        return True
    q = query.lower()
    if q in event.artist_name.lower():
        return True
    meta = (artist_meta or {}).get(event.artist_name.lower())
    if meta is None:
        return False
    haystack = (meta.genre or "", meta.subgenre or "", meta.display_location)
    return any(q in part.lower() for part in haystack)


def filter_events(
    events: Iterable[Event],
    rating_of: RatingOf,
    day: Optional[str] = None,
    show_filter: str = "all",
    admissions: Optional[Iterable[str]] = None,
    search: str = "",
    artist_meta: Optional[dict[str, Artist]] = None,
    hidden_genres: Optional[set[str]] = None,
) -> list[Event]:
    """Shows passing every active filter, in input order. `hidden_genres` needs `artist_meta`."""
    if show_filter not in SHOW_FILTERS:
        raise ValueError(f"Unknown show filter {show_filter!r}")
    allowed = set(admissions) if admissions is not None else set(ADMISSIONS)

    result = []
    for event in events:
        if day and event.day != day:
            continue
        rating = rating_of(event)
        if show_filter == "rated" and rating <= 0:
            continue
        if show_filter == "top" and rating < TOP_RATING:
            continue
        if event.effective_admission not in allowed:
            continue
        if not matches_search(event, search, artist_meta):
            continue
        if hidden_genres and _is_hidden(event, hidden_genres, artist_meta):
            continue
        result.append(event)
    return result


def _is_hidden(event: Event, hidden_genres: set[str], artist_meta: Optional[dict[str, Artist]]) -> bool:
    meta = (artist_meta or {}).get(event.artist_name.lower())
    if meta is None:
        return False
    return meta.genre in hidden_genres or meta.subgenre in hidden_genres


def split_no_set_time(events: Iterable[Event]) -> tuple[list[Event], list[Event]]:
    """(timed, no_set_time) shows, both in input order."""
    timed, untimed = [], []
    for event in events:
        (untimed if event.no_set_time else timed).append(event)
    return timed, untimed
