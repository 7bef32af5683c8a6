"""
Column packing for overlapping shows.

Shows sharing a visual track (one venue on one day, or a whole day on the
timeline) are assigned side-by-side columns so that no two overlapping shows
share a column. Assignment is first-fit: a show takes the lowest column not
held by a show that is still running when it starts.

total_columns is then recomputed per show as one plus the highest column of
any show overlapping it, so a block is sized by the true concurrency it
touches rather than by the columns active at its own start.
"""

from dataclasses import dataclass
from typing import Callable, Iterable

from festwiz.models import Event
from festwiz.times import DAY_START_HOUR, LAYOUT_DEFAULT_MINUTES, event_bounds, overlaps


@dataclass(frozen=True)
class Placement:
    event: Event
    column: int
    total_columns: int
    start: int      # minute offsets from the day start
    end: int


def layout_columns(
    events: Iterable[Event],
    day_start_hour: int = DAY_START_HOUR,
    default_minutes: int = LAYOUT_DEFAULT_MINUTES,
) -> list[Placement]:
    """Pack events into columns. Shows without a start time are left out."""
    timed = [e for e in events if e.start_time]
    bounds = [event_bounds(e, default_minutes, day_start_hour) for e in timed]

    # sorted() is stable, so equal starts keep their input order
    order = sorted(range(len(timed)), key=lambda i: bounds[i][0])

    columns: dict[int, int] = {}
    active: list[tuple[int, int]] = []   # (end, column)
    for i in order:
        start, end = bounds[i]
        active = [(a_end, col) for a_end, col in active if a_end > start]
        used = {col for _, col in active}
        col = 0
        while col in used:
            col += 1
        active.append((end, col))
        columns[i] = col

    placements = []
    for i in order:
        max_col = columns[i]
        for j in order:
            if overlaps(bounds[i], bounds[j]):
                max_col = max(max_col, columns[j])
        start, end = bounds[i]
        placements.append(Placement(timed[i], columns[i], max_col + 1, start, end))
    return placements


def venue_day_track(event: Event) -> tuple:
    return (event.venue, event.day)


def day_track(event: Event) -> tuple:
    return (event.day,)


def layout_by_track(
    events: Iterable[Event],
    track: Callable[[Event], tuple] = venue_day_track,
    day_start_hour: int = DAY_START_HOUR,
    default_minutes: int = LAYOUT_DEFAULT_MINUTES,
) -> dict[str, tuple[int, int]]:
    """Run the packer once per track; returns identity -> (column, total_columns)."""
    tracks: dict[tuple, list[Event]] = {}
    for event in events:
        tracks.setdefault(track(event), []).append(event)

    assignments: dict[str, tuple[int, int]] = {}
    for track_events in tracks.values():
        for p in layout_columns(track_events, day_start_hour, default_minutes):
            assignments[p.event.identity] = (p.column, p.total_columns)
    return assignments
