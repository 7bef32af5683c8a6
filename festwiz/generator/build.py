import json
from datetime import date
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

import festwiz.config as cfg_module
from festwiz.catalog import Festival
from festwiz.grouping import find_conflicts, order_venues, split_no_set_time
from festwiz.layout import layout_by_track, layout_columns, venue_day_track
from festwiz.models import Event
from festwiz.times import format_range, format_time12


def _event_to_dict(event: Event, festival: Festival) -> dict:
    """Serialise an Event to a plain dict for JSON embedding in the page."""
    return {
        "identity": event.identity,
        "artist_name": event.artist_name,
        "venue": event.venue,
        "day": event.day,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "time_label": format_range(event) or format_time12(event.start_time),
        "no_set_time": event.no_set_time,
        "admission": event.effective_admission,
        "source": event.source,
        "showcase": event.showcase,
        "rating": festival.ratings.rating_for(event),
    }


def build_day(festival: Festival, day: str, cfg: dict) -> dict:
    """Everything the page needs for one day: timeline columns, conflicts, venue order."""
    festival_cfg = cfg_module.get_festival(cfg)
    durations = cfg_module.get_durations(cfg)
    clusters = cfg_module.get_venue_config(cfg)["clusters"] or festival.venue_data.get("clusters", [])
    start_hour = festival_cfg["day_start_hour"]
    minutes = durations["layout_minutes"]

    events = festival.store.events_for_day(day)
    timed, untimed = split_no_set_time(events)
    timed = [e for e in timed if e.start_time]
    conflicts = find_conflicts(timed, festival.ratings, start_hour, minutes)
    by_venue = layout_by_track(timed, venue_day_track, start_hour, minutes)

    timeline = []
    for p in layout_columns(timed, start_hour, minutes):
        entry = _event_to_dict(p.event, festival)
        entry.update({
            "column": p.column,
            "total_columns": p.total_columns,
            "start_offset": p.start,
            "end_offset": p.end,
            "venue_column": by_venue[p.event.identity][0],
            "venue_columns": by_venue[p.event.identity][1],
            "conflict": p.event.identity in conflicts,
        })
        timeline.append(entry)

    return {
        "day": day,
        "venues": order_venues(events, clusters, festival.ratings),
        "timeline": timeline,
        "no_set_time": [_event_to_dict(e, festival) for e in untimed],
        "conflicts": sorted(conflicts),
    }


def build_site(festival: Festival, cfg: dict, output_dir: Path) -> None:
    site_cfg = cfg_module.get_site(cfg)
    site_title = site_cfg.get("title", "FestWiz Schedule")
    templates_dir = Path(site_cfg.get("templates_dir", "templates"))

    output_dir.mkdir(parents=True, exist_ok=True)

    days = [build_day(festival, day, cfg) for day in festival.store.days()]
    (output_dir / "schedule.json").write_text(
        json.dumps({"days": days}, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )

    env = Environment(
        loader=FileSystemLoader(templates_dir),
        autoescape=select_autoescape(["html"]),
    )
    env.globals["site_title"] = site_title
    env.globals["generated_date"] = date.today().isoformat()

    _render(env, "index.html", output_dir / "index.html", {
        "days": days,
        "aliases": cfg_module.get_venue_config(cfg)["aliases"] or festival.venue_data.get("aliases", {}),
        "page_title": site_title,
    })


def _render(env: Environment, template_name: str, dest: Path, context: dict) -> None:
    template = env.get_template(template_name)
    dest.write_text(template.render(**context), encoding="utf-8")
