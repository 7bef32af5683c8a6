import pytest

from festwiz.importer import (
    DataRow,
    HourMarkerRow,
    ScheduleImportError,
    SkipRow,
    classify_row,
    import_schedule_file,
    parse_cell,
    parse_schedule,
    split_fields,
)
from festwiz.store import EventStore

DAY = "2026-03-12"


def _triples(events):
    return [(e.artist_name, e.venue, e.start_time) for e in events]


def test_basic_grid():
    text = "Time,Venue A,Venue B\n9:00 AM,Band X,Band Y\n,Band Z,\n"
    events = parse_schedule(text, DAY)
    assert _triples(events) == [
        ("Band X", "Venue A", "09:00"),
        ("Band Y", "Venue B", "09:00"),
        ("Band Z", "Venue A", "09:30"),
    ]
    assert all(e.source == "csv-import" for e in events)
    assert all(e.end_time is None and e.day == DAY for e in events)
    assert len({e.id for e in events}) == 3


def test_time_override_suffix():
    text = "Time,Stage\n2:00 PM,Combo (215)\n"
    (event,) = parse_schedule(text, DAY)
    assert event.artist_name == "Combo"
    assert event.start_time == "14:15"


def test_time_override_four_digits_stays_morning():
    assert parse_cell("Early Bird (1130)", "09:00") == ("Early Bird", "11:30")


def test_time_override_cutoff_is_configurable():
    assert parse_cell("Late (215)", "09:00", pm_cutoff_hour=0) == ("Late", "02:15")
    assert parse_cell("Late (215)", "09:00") == ("Late", "14:15")


def test_consecutive_hour_markers_emit_no_phantoms():
    text = "Time,A,B\n9:00 AM,,\n10:00 AM,Band,\n,,\n11:00 AM,,Other\n"
    assert _triples(parse_schedule(text, DAY)) == [
        ("Band", "A", "10:00"),
        ("Other", "B", "11:00"),
    ]


def test_rows_before_first_hour_marker_are_dropped():
    text = "Time,A\n,Too Early\nNotes,Also Early\n9:00 AM,Real\n"
    assert _triples(parse_schedule(text, DAY)) == [("Real", "A", "09:00")]


def test_annotations_and_navigation_are_skipped():
    text = (
        "Venue / Time,< Venue A >,> Venue B\n"
        "< < scroll for more,,\n"
        "8:00 PM,(no set times yet),> see next tab\n"
        ",Doors TBA - no set times,Real Act\n"
        "Day 2,Ignored,Ignored\n"
    )
    assert _triples(parse_schedule(text, DAY)) == [("Real Act", "Venue B", "20:30")]


def test_quoted_commas_and_whitespace():
    text = 'Time,A,B\n9:00 PM,"Smith, Jones & Co.",   \n'
    events = parse_schedule(text, DAY)
    assert _triples(events) == [("Smith, Jones & Co.", "A", "21:00")]


def test_midnight_hour_and_second_slot_wrap():
    text = "Time,A\n11:00 PM,\n,Late\n12:00 AM,Later\n,Latest\n"
    assert _triples(parse_schedule(text, DAY)) == [
        ("Late", "A", "23:30"),
        ("Later", "A", "00:00"),
        ("Latest", "A", "00:30"),
    ]


def test_other_labels_keep_the_current_slot():
    text = "Time,A\n9:00 PM,\n,First\nShowcase Night,Second\n"
    assert _triples(parse_schedule(text, DAY)) == [
        ("First", "A", "21:30"),
        ("Second", "A", "21:30"),
    ]


def test_cells_beyond_header_are_ignored():
    assert _triples(parse_schedule("Time,A\n9:00 PM,One,Extra\n", DAY)) == [("One", "A", "21:00")]


def test_empty_input():
    assert parse_schedule("", DAY) == []


def test_row_classification():
    assert classify_row(["", "", ""]) == SkipRow("blank")
    assert classify_row(["12:30 pm", "X"]) == HourMarkerRow("12:30", ("X",))
    assert classify_row(["", "X"]) == DataRow(("X",), second_half=True)
    assert isinstance(classify_row(["day 3", "X"]), SkipRow)


def test_split_fields_toggles_quotes():
    assert split_fields('a,"b,c",d') == ["a", "b,c", "d"]
    assert split_fields("  a , b ") == ["a", "b"]


def test_reimport_adds_nothing(tmp_path):
    path = tmp_path / "day1.csv"
    path.write_text("Time,A,B\n9:00 PM,One,Two\n,Three,\n", encoding="utf-8")

    store = EventStore()
    first = store.import_events(import_schedule_file(path, DAY))
    second = store.import_events(import_schedule_file(path, DAY))

    assert (first.parsed, first.added, first.skipped) == (3, 3, 0)
    assert (second.parsed, second.added, second.skipped) == (3, 0, 3)
    assert len(store) == 3


def test_unreadable_file_raises(tmp_path):
    with pytest.raises(ScheduleImportError):
        import_schedule_file(tmp_path / "missing.csv", DAY)

    bad = tmp_path / "latin1.csv"
    bad.write_bytes("Time,Caf\xe9\n".encode("latin-1"))
    with pytest.raises(ScheduleImportError):
        import_schedule_file(bad, DAY)
