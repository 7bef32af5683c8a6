import json
from pathlib import Path

from festwiz.catalog import Festival
from festwiz.generator.build import build_day, build_site
from festwiz.store import EventStore, Ratings

TEMPLATES = Path(__file__).parent.parent / "templates"
DAY = "2026-03-12"


def _festival(make_event):
    store = EventStore([
        make_event("Early", "Mohawk", start="20:00", end="21:00"),
        make_event("Overlap", "Mohawk", start="20:30", end="21:30"),
        make_event("Elsewhere", "Parish", start="20:15", end="21:00", admission="cover"),
        make_event("Secret", "Yard", start="18:00", no_set_time=True),
        make_event("Tomorrow", "Parish", day="2026-03-13"),
    ])
    ratings = Ratings({"name_early": 4, "name_overlap": 2})
    return Festival(artists=[], store=store, ratings=ratings)


def test_build_day(make_event):
    day = build_day(_festival(make_event), DAY, {})

    assert [(s["artist_name"], s["column"], s["total_columns"]) for s in day["timeline"]] == [
        ("Early", 0, 3), ("Elsewhere", 1, 3), ("Overlap", 2, 3),
    ]
    by_name = {s["artist_name"]: s for s in day["timeline"]}
    assert (by_name["Overlap"]["venue_column"], by_name["Overlap"]["venue_columns"]) == (1, 2)
    assert (by_name["Elsewhere"]["venue_column"], by_name["Elsewhere"]["venue_columns"]) == (0, 1)
    assert by_name["Early"]["conflict"] and by_name["Overlap"]["conflict"]
    assert not by_name["Elsewhere"]["conflict"]
    assert by_name["Early"]["time_label"] == "8–9"
    assert by_name["Early"]["start_offset"] == 660

    assert [s["artist_name"] for s in day["no_set_time"]] == ["Secret"]
    assert day["venues"] == ["Mohawk", "Parish", "Yard"]


def test_build_site_writes_json_and_html(make_event, tmp_path):
    cfg = {
        "site": {"title": "Test Fest", "templates_dir": str(TEMPLATES)},
        "venues": {"aliases": {"Mohawk": "The Mohawk"}},
    }
    build_site(_festival(make_event), cfg, tmp_path / "out")

    data = json.loads((tmp_path / "out" / "schedule.json").read_text(encoding="utf-8"))
    assert [d["day"] for d in data["days"]] == [DAY, "2026-03-13"]

    html = (tmp_path / "out" / "index.html").read_text(encoding="utf-8")
    assert "Test Fest" in html
    assert "The Mohawk" in html
    assert 'class="show rated-4 conflict"' in html
