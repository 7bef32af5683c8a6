import random

from festwiz.layout import day_track, layout_by_track, layout_columns
from festwiz.models import Event
from festwiz.times import add_minutes


def _at(offset_start, offset_end, name):
    # offsets are minutes after 09:00
    return Event(name, "Stage", "2026-03-12",
                 start_time=add_minutes("09:00", offset_start),
                 end_time=add_minutes("09:00", offset_end))


def _columns(placements):
    return {p.event.artist_name: (p.column, p.total_columns) for p in placements}


def test_three_way_overlap():
    events = [_at(0, 60, "a"), _at(30, 90, "b"), _at(45, 75, "c")]
    assert _columns(layout_columns(events)) == {"a": (0, 3), "b": (1, 3), "c": (2, 3)}


def test_back_to_back_shows_share_a_column():
    events = [_at(0, 60, "a"), _at(60, 120, "b")]
    assert _columns(layout_columns(events)) == {"a": (0, 1), "b": (0, 1)}


def test_first_fit_reuses_lowest_free_column():
    events = [_at(0, 60, "a"), _at(10, 120, "b"), _at(70, 100, "c")]
    assert _columns(layout_columns(events)) == {"a": (0, 2), "b": (1, 2), "c": (0, 2)}


def test_total_columns_reflects_concurrency_touching_the_show():
    # "d" starts after "b" and "c" are gone but still overlaps "a"
    events = [_at(0, 200, "a"), _at(0, 30, "b"), _at(0, 30, "c"), _at(100, 130, "d")]
    cols = _columns(layout_columns(events))
    assert cols["a"] == (0, 3)
    assert cols["d"] == (1, 2)


def test_missing_end_defaults_to_45_minutes():
    a = Event("a", "Stage", "2026-03-12", start_time="20:00")
    b = Event("b", "Stage", "2026-03-12", start_time="20:44")
    c = Event("c", "Stage", "2026-03-12", start_time="20:45")
    assert _columns(layout_columns([a, b, c])) == {"a": (0, 2), "b": (1, 2), "c": (0, 2)}


def test_sort_is_by_offset_across_midnight_and_stable():
    late = Event("late", "Stage", "2026-03-12", start_time="00:30")
    early = Event("early", "Stage", "2026-03-12", start_time="23:45")
    tie = Event("tie", "Stage", "2026-03-12", start_time="23:45")
    placements = layout_columns([late, early, tie])
    assert [p.event.artist_name for p in placements] == ["early", "tie", "late"]


def test_shows_without_start_are_left_out():
    events = [Event("x", "Stage", "2026-03-12"), _at(0, 30, "a")]
    assert [p.event.artist_name for p in layout_columns(events)] == ["a"]


def _random_events(rng, n):
    events = []
    for i in range(n):
        start = rng.randrange(0, 900, 5)
        events.append(_at(start, start + rng.randrange(15, 120, 5), f"s{i}"))
    return events


def test_no_overlapping_shows_share_a_column():
    rng = random.Random(7)
    for _ in range(50):
        placements = layout_columns(_random_events(rng, 25))
        for p in placements:
            for q in placements:
                if p is q:
                    continue
                if p.start < q.end and p.end > q.start:
                    assert p.column != q.column
            assert 0 <= p.column < p.total_columns


def test_layout_is_deterministic():
    events = _random_events(random.Random(11), 40)
    first = [(p.event.artist_name, p.column, p.total_columns) for p in layout_columns(events)]
    for _ in range(5):
        assert [(p.event.artist_name, p.column, p.total_columns) for p in layout_columns(events)] == first


def test_layout_by_track_keeps_venues_apart():
    a = Event("a", "Mohawk", "2026-03-12", start_time="20:00")
    b = Event("b", "Parish", "2026-03-12", start_time="20:00")
    assert layout_by_track([a, b]) == {a.identity: (0, 1), b.identity: (0, 1)}
    assert layout_by_track([a, b], track=day_track) == {a.identity: (0, 2), b.identity: (1, 2)}
