import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path

from dateutil import parser as dateparser

from festwiz import __version__
import festwiz.config as cfg_module
import festwiz.db as db_module
from festwiz.artists import (
    ARTIST_SORTS,
    LINK_TYPES,
    RATED_FILTERS,
    SOURCE_FILTERS,
    artist_stats,
    filter_artists,
    genre_counts,
    new_user_artist,
    subgenre_counts,
)
from festwiz.catalog import Festival, load_festival
from festwiz.generator.build import build_site
from festwiz.grouping import (
    SHOW_FILTERS,
    bucket_now_next,
    countdown,
    filter_events,
    find_conflicts,
    order_venues,
    split_no_set_time,
)
from festwiz.importer import ScheduleImportError, import_schedule_file
from festwiz.layout import day_track, layout_columns, venue_day_track
from festwiz.models import ADMISSIONS, Artist, Event
from festwiz.refresh import RefreshLoop
from festwiz.sharing import decode_share, encode_share, export_backup, share_payload, shortlist_csv, shortlist_rows
from festwiz.store import TIER_VALUES, ImmutableEventError, merge_backup
from festwiz.times import (
    TimeFormatError,
    day_slots,
    festival_day,
    format_time12,
    hour_label,
    nearest_slot,
    parse_user_time,
)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


class Session:
    """Config, persisted state and the loaded festival for one CLI invocation."""

    def __init__(self, cfg: dict):
        self.cfg = cfg
        self.conn = db_module.connect(cfg_module.get_database_path(cfg))
        self.state = db_module.load_state(self.conn)
        self.festival: Festival = load_festival(cfg_module.get_data_sources(cfg), self.state)
        for source in self.festival.failed_sources:
            print(f"Warning: {source.status_line}", file=sys.stderr)
        # The rating migration runs on every load; persist it when it moved anything
        if self.festival.migrated:
            self.save()

    def save(self) -> None:
        db_module.save_state(self.conn, self.state)

    @property
    def day_start_hour(self) -> int:
        return cfg_module.get_festival(self.cfg)["day_start_hour"]

    @property
    def layout_minutes(self) -> int:
        return cfg_module.get_durations(self.cfg)["layout_minutes"]

    def filtered(self, args, day=None) -> list[Event]:
        return filter_events(
            self.festival.store,
            self.festival.ratings,
            day=day,
            show_filter=getattr(args, "filter", "all"),
            admissions=getattr(args, "admission", None),
            search=getattr(args, "search", "") or "",
            artist_meta=self.festival.artist_meta,
            hidden_genres=None if getattr(args, "show_hidden", False) else self.state.hidden_genres(),
        )


def _show_line(event: Event, rating: int) -> str:
    stars = str(rating) if rating else "?"
    when = "no set time" if event.no_set_time else format_time12(event.start_time)
    if event.end_time and not event.no_set_time:
        when += f" – {format_time12(event.end_time)}"
    line = f"[{stars}] {when:<20} {event.artist_name} @ {event.venue}"
    if event.showcase:
        line += f" ({event.showcase})"
    return line


def _festival_day(text: str, session: Session) -> str:
    """Validate a --day argument: an ISO date inside the configured festival dates."""
    try:
        day = date.fromisoformat(text).isoformat()
    except ValueError:
        _fail(f"Invalid day {text!r}. Use YYYY-MM-DD.")
    festival = cfg_module.get_festival(session.cfg)
    first, last = festival["first_day"], festival["last_day"]
    if (first and day < first) or (last and day > last):
        _fail(f"{day} is outside the festival ({first or '?'} to {last or '?'}).")
    return day


# --- Commands ---

def _load(args, session: Session):
    for source in session.festival.sources:
        print(f"  {source.status_line}")
    festival = session.festival
    print(f"{len(festival.artists)} artists, {len(festival.store)} shows over {len(festival.store.days())} days.")
    if festival.migrated:
        print(f"Migrated {festival.migrated} rating(s) to catalog keys.")
    saved = db_module.last_saved(session.conn)
    if saved:
        print(f"Local state last saved {saved:%Y-%m-%d %H:%M}.")


def _import_csv(args, session: Session):
    pm_cutoff = cfg_module.get_festival(session.cfg)["pm_cutoff_hour"]
    try:
        events = import_schedule_file(Path(args.file), _festival_day(args.day, session), pm_cutoff)
    except ScheduleImportError as exc:
        _fail(f"Failed to parse CSV: {exc}")

    print(f"Parsed {len(events)} shows. First 5:")
    for e in events[:5]:
        print(f"  {format_time12(e.start_time)}  {e.artist_name}  @  {e.venue}")
    if args.dry_run:
        return

    result = session.festival.store.import_events(events)
    session.state.add_user_events(result.events)
    session.save()
    print(result.summary)


def _add(args, session: Session):
    try:
        start = parse_user_time(args.start)
        end = parse_user_time(args.end) if args.end else None
    except TimeFormatError as exc:
        _fail(str(exc))

    event = Event(
        artist_name=args.artist.strip(),
        venue=args.venue.strip(),
        day=_festival_day(args.day, session),
        start_time=start,
        end_time=end,
        no_set_time=args.no_set_time,
        admission=args.admission,
        source="user",
        showcase=args.showcase or None,
        website=args.website or None,
        id=f"manual_{int(datetime.now().timestamp() * 1000)}",
    )
    if not event.artist_name or not event.venue:
        _fail("Artist, venue, day, and start time are required.")
    if not session.festival.store.add(event):
        print("That show is already on the schedule.")
        return
    session.state.add_user_events([event])
    session.save()
    print(f"Added {_show_line(event, session.festival.ratings.rating_for(event))}")


def _delete(args, session: Session):
    try:
        start = parse_user_time(args.start)
    except TimeFormatError as exc:
        _fail(str(exc))
    event = session.festival.store.find(args.artist, args.venue, _festival_day(args.day, session), start)
    if event is None:
        _fail("No such show.")
    try:
        session.festival.store.remove(event)
    except ImmutableEventError as exc:
        _fail(f"Cannot delete: {exc}")
    session.state.remove_user_event(event)
    session.save()
    print(f"Deleted {event.artist_name} @ {event.venue}.")


def _rate(args, session: Session):
    by_name = session.festival.artist_meta
    artist = by_name.get(args.name.lower()) or Artist(name=args.name, source="user")
    try:
        key = session.festival.ratings.rate(artist, args.rating)
    except ValueError as exc:
        _fail(str(exc))
    if args.note is not None:
        if args.note:
            session.state.notes[key] = args.note
        else:
            session.state.notes.pop(key, None)
    session.save()
    print(f"{artist.name}: {args.rating or 'unrated'} ({key})")


def _tier(args, session: Session):
    try:
        session.state.set_tier(args.name, None if args.tier == "none" else args.tier, subgenre=args.subgenre)
    except ValueError as exc:
        _fail(str(exc))
    session.save()
    kind = "Subgenre" if args.subgenre else "Genre"
    print(f"{kind} {args.name}: {args.tier}")


def _artist_line(artist: Artist, rating: int) -> str:
    stars = str(rating) if rating else "?"
    genre = " / ".join(part for part in (artist.genre, artist.subgenre) if part)
    line = f"[{stars}] {artist.name}"
    if genre:
        line += f"  {genre}"
    if artist.display_location:
        line += f"  ({artist.display_location})"
    if artist.source != "official":
        line += f"  [{artist.source}]"
    return line


def _artists(args, session: Session):
    festival = session.festival
    artists = filter_artists(
        festival.artists,
        festival.ratings,
        session.state.genre_tiers,
        session.state.subgenre_tiers,
        genre=args.genre,
        subgenre=args.subgenre,
        search=args.search,
        rated=args.rated,
        source=args.source,
        sort=args.sort,
    )
    for artist in artists:
        print(_artist_line(artist, festival.ratings.rating_for(artist)))
    stats = artist_stats(festival.artists, festival.ratings)
    print(f"{len(artists)} shown · {stats.total} artists, {stats.rated} rated, {stats.remaining} remaining.")


def _genres(args, session: Session):
    artists = session.festival.artists
    if args.subgenres:
        tiers, counts = session.state.subgenre_tiers, subgenre_counts(artists, session.state.subgenre_tiers)
    else:
        tiers, counts = session.state.genre_tiers, genre_counts(artists, session.state.genre_tiers)
    for name, count in counts:
        print(f"{tiers.get(name, '-'):<7} {count:>4}  {name}")


def _add_artist(args, session: Session):
    links = {}
    for item in args.link or []:
        link_type, sep, url = item.partition("=")
        if not sep:
            _fail(f"Links look like TYPE=URL, got {item!r}.")
        links[link_type.strip()] = url
    try:
        artist = new_user_artist(args.name, args.genre, args.subgenre, args.location, links)
    except ValueError as exc:
        _fail(str(exc))
    if artist.name.lower() in session.festival.artist_meta or not session.state.add_user_artist(artist):
        print(f"{artist.name} is already listed.")
        return
    session.save()
    print(f"Added {_artist_line(artist, 0)}")


def _now(args, session: Session):
    now_cfg = cfg_module.get_now_next(session.cfg)
    durations = cfg_module.get_durations(session.cfg)
    fixed = dateparser.parse(args.at) if args.at else None

    def render():
        now = fixed or datetime.now()
        buckets = bucket_now_next(
            session.filtered(args),
            now,
            session.day_start_hour,
            durations["now_next_minutes"],
            now_cfg["lookahead_minutes"],
            now_cfg["imminent_minutes"],
        )
        print(f"— {now:%a %m/%d · %I:%M %p} —")
        if not len(buckets):
            print("Nothing playing in the next 2 hours.")
            return
        for label, events in buckets.sections():
            if not events:
                continue
            print(label)
            for e in events:
                rating = session.festival.ratings.rating_for(e)
                print(f"  {_show_line(e, rating)}  {countdown(e, now, session.day_start_hour)}")

    if not args.watch:
        render()
        return
    loop = RefreshLoop(render, now_cfg["refresh_seconds"])
    try:
        loop.run()
    except KeyboardInterrupt:
        loop.cancel()


def _day_arg(args, session: Session) -> str:
    day = _festival_day(args.day, session) if args.day else festival_day(datetime.now(), session.day_start_hour)
    if day not in session.festival.store.days():
        print(f"No shows for {day}.")
    return day


def _timeline(args, session: Session):
    day = _day_arg(args, session)
    events = [e for e in session.filtered(args, day) if e.start_time and not e.no_set_time]
    ratings = session.festival.ratings
    conflicts = find_conflicts(events, ratings, session.day_start_hour, session.layout_minutes)

    track = venue_day_track if args.by_venue else day_track
    tracks: dict[tuple, list[Event]] = {}
    for e in events:
        tracks.setdefault(track(e), []).append(e)

    for key in sorted(tracks):
        if args.by_venue:
            print(f"== {key[0]}")
        for p in layout_columns(tracks[key], session.day_start_hour, session.layout_minutes):
            flag = " !" if p.event.identity in conflicts else ""
            lane = f"{p.column + 1}/{p.total_columns}"
            print(f"{lane:>5} {_show_line(p.event, ratings.rating_for(p.event))}{flag}")


def _grid(args, session: Session):
    day = _day_arg(args, session)
    events = [e for e in session.filtered(args, day) if e.start_time]
    timed, untimed = split_no_set_time(events)
    ratings = session.festival.ratings
    venue_cfg = cfg_module.get_venue_config(session.cfg)
    clusters = venue_cfg["clusters"] or session.festival.venue_data.get("clusters", [])
    aliases = venue_cfg["aliases"] or session.festival.venue_data.get("aliases", {})

    venues = order_venues(events, clusters, ratings)
    for venue in venues:
        best = max((ratings.rating_for(e) for e in events if e.venue == venue), default=0)
        print(f"[{best or '-'}] {aliases.get(venue, venue)}")

    by_slot: dict[str, list[Event]] = {}
    for e in timed:
        by_slot.setdefault(nearest_slot(e.start_time), []).append(e)
    for slot in day_slots(session.day_start_hour):
        hour, minute = slot.split(":")
        shows = sorted(by_slot.get(slot, []), key=lambda e: venues.index(e.venue))
        if minute == "00":
            print(hour_label(int(hour)))
        for e in shows:
            print(f"    {aliases.get(e.venue, e.venue)}: {_show_line(e, ratings.rating_for(e))}")

    if untimed:
        print("No set times")
        for e in untimed:
            print(f"    {_show_line(e, ratings.rating_for(e))}")


def _conflicts(args, session: Session):
    day = _day_arg(args, session)
    events = [e for e in session.festival.store.events_for_day(day) if not e.no_set_time]
    conflicts = find_conflicts(events, session.festival.ratings, session.day_start_hour, session.layout_minutes)
    if not conflicts:
        print("No conflicts between rated shows.")
        return
    for e in events:
        if e.identity in conflicts:
            print(_show_line(e, session.festival.ratings.rating_for(e)))


def _export(args, session: Session):
    Path(args.file).write_text(json.dumps(export_backup(session.state), indent=2), encoding="utf-8")
    print(f"Backup written to {args.file}.")


def _restore(args, session: Session):
    try:
        data = json.loads(Path(args.file).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _fail(f"Error importing file: {exc}")
    if not isinstance(data, dict):
        _fail("Error importing file: not a backup")
    merge_backup(session.state, data)
    session.save()
    print("Import successful!")


def _shortlist(args, session: Session):
    rows = shortlist_rows(session.festival.artists, session.festival.ratings, args.min_rating)
    Path(args.file).write_text(shortlist_csv(rows), encoding="utf-8")
    print(f"{len(rows)} artists written to {args.file}.")


def _share(args, session: Session):
    if not args.decode:
        print(encode_share(share_payload(session.state)))
        return
    data = decode_share(args.decode)
    if data is None:
        _fail("Could not decode shared ratings.")
    incoming = sum(1 for v in (data.get("ratings") or {}).values() if v)
    merge_backup(session.state, data)
    session.save()
    print(f"Merged {incoming} shared ratings.")


def _generate(args, session: Session):
    output_dir = Path(cfg_module.get_site(session.cfg).get("output_dir", "output"))
    build_site(session.festival, session.cfg, output_dir)
    print(f"Site generated in '{output_dir}/'.")


def _add_filters(sp):
    sp.add_argument("--filter", choices=SHOW_FILTERS, default="all", help="Only rated or top (3+) shows")
    sp.add_argument("--admission", choices=ADMISSIONS, action="append", help="Repeatable; default all")
    sp.add_argument("--search", default="", help="Match artist name, genre, subgenre or location")
    sp.add_argument("--show-hidden", action="store_true", help="Include genres tiered as hide")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="festwiz",
        description="Festival schedule planner",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", default="config.toml", metavar="PATH",
        help="Path to config.toml (default: config.toml)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("load", help="Fetch the catalog and migrate stored ratings")

    sp = subparsers.add_parser("import-csv", help="Import a venue × time schedule grid")
    sp.add_argument("file")
    sp.add_argument("--day", required=True, help="Festival day, YYYY-MM-DD")
    sp.add_argument("--dry-run", action="store_true", help="Parse and preview only")

    sp = subparsers.add_parser("add", help="Add a show manually")
    sp.add_argument("--artist", required=True)
    sp.add_argument("--venue", required=True)
    sp.add_argument("--day", required=True)
    sp.add_argument("--start", required=True, help='e.g. "9:30 PM" or 21:30')
    sp.add_argument("--end")
    sp.add_argument("--showcase")
    sp.add_argument("--website")
    sp.add_argument("--admission", choices=ADMISSIONS, default="free")
    sp.add_argument("--no-set-time", action="store_true", help="Start time is only a placeholder")

    sp = subparsers.add_parser("delete", help="Delete a user-added or imported show")
    sp.add_argument("--artist", required=True)
    sp.add_argument("--venue", required=True)
    sp.add_argument("--day", required=True)
    sp.add_argument("--start", required=True)

    sp = subparsers.add_parser("rate", help="Rate an artist 1-4 (0 clears)")
    sp.add_argument("name")
    sp.add_argument("rating", type=int)
    sp.add_argument("--note", help="Attach a note (empty string removes it)")

    sp = subparsers.add_parser("artists", help="Browse artists with filters and sorts")
    sp.add_argument("--genre")
    sp.add_argument("--subgenre")
    sp.add_argument("--search", default="", help="Match name, genre, subgenre or location")
    sp.add_argument("--rated", choices=RATED_FILTERS, default="all")
    sp.add_argument("--source", choices=SOURCE_FILTERS, default="all")
    sp.add_argument("--sort", choices=ARTIST_SORTS, default="name")

    sp = subparsers.add_parser("genres", help="Genre counts, ordered by tier")
    sp.add_argument("--subgenres", action="store_true")

    sp = subparsers.add_parser("add-artist", help="Add an artist missing from the catalog")
    sp.add_argument("name")
    sp.add_argument("--genre", default="")
    sp.add_argument("--subgenre", default="")
    sp.add_argument("--location", default="")
    sp.add_argument("--link", action="append", metavar="TYPE=URL", help=f"Repeatable; TYPE is one of {', '.join(LINK_TYPES)}")

    sp = subparsers.add_parser("tier", help="Set a genre or subgenre tier")
    sp.add_argument("name")
    sp.add_argument("tier", choices=TIER_VALUES + ("none",))
    sp.add_argument("--subgenre", action="store_true")

    sp = subparsers.add_parser("now", help="What's on now and in the next two hours")
    sp.add_argument("--at", help="Pretend it is this time (ISO or free-form)")
    sp.add_argument("--watch", action="store_true", help="Refresh until interrupted")
    _add_filters(sp)

    for name, help_text in (
        ("timeline", "Shows of a day packed into overlap columns"),
        ("grid", "Venue order and half-hour slots for a day"),
        ("conflicts", "Rated shows that overlap"),
    ):
        sp = subparsers.add_parser(name, help=help_text)
        sp.add_argument("--day", help="Festival day (default: today)")
        if name != "conflicts":
            _add_filters(sp)
        if name == "timeline":
            sp.add_argument("--by-venue", action="store_true", help="One track per venue")

    sp = subparsers.add_parser("export", help="Write a JSON backup of local state")
    sp.add_argument("file")
    sp = subparsers.add_parser("restore", help="Merge a JSON backup into local state")
    sp.add_argument("file")
    sp = subparsers.add_parser("shortlist", help="Write a CSV of top-rated artists")
    sp.add_argument("file")
    sp.add_argument("--min-rating", type=int, default=3)
    sp = subparsers.add_parser("share", help="Print a share string, or merge one with --decode")
    sp.add_argument("--decode", metavar="TEXT")

    subparsers.add_parser("generate", help="Render the static schedule page")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    cfg = cfg_module.load(Path(args.config))
    session = Session(cfg)

    commands = {
        "load": _load,
        "import-csv": _import_csv,
        "add": _add,
        "delete": _delete,
        "rate": _rate,
        "tier": _tier,
        "artists": _artists,
        "genres": _genres,
        "add-artist": _add_artist,
        "now": _now,
        "timeline": _timeline,
        "grid": _grid,
        "conflicts": _conflicts,
        "export": _export,
        "restore": _restore,
        "shortlist": _shortlist,
        "share": _share,
        "generate": _generate,
    }
    commands[args.command](args, session)


if __name__ == "__main__":
    main()
