"""
Import a hand-maintained "venue × time" schedule grid exported as CSV.

Layout of the sheet:
  - Row 0: a corner label, then one venue name per column (venue names may
    carry "<" / ">" navigation arrows).
  - First column: an hour marker ("9:00 AM") on the first half-hour row of
    each hour, empty on the second half-hour row. Day labels ("Day 2") and
    navigation hints are mixed in and skipped.
  - Cells: artist names. "Name (315)" pins an exact start time; cells such
    as "(no set times yet)" are annotations, not shows.

Parsing is split in two: every row is classified into an HourMarkerRow,
DataRow or SkipRow, then a single pass over the classified rows emits
events. Shape problems never raise; only unreadable input does.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from festwiz.models import Event
from festwiz.times import add_minutes, to_24h

logger = logging.getLogger(__name__)

DEFAULT_PM_CUTOFF_HOUR = 9
SOURCE = "csv-import"

_HOUR_MARKER_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
_SKIP_LABEL_RE = re.compile(r"^(day\s*\d|<|>)", re.IGNORECASE)
_TIME_OVERRIDE_RE = re.compile(r"\((\d{3,4})\)\s*$")
_TIME_OVERRIDE_STRIP_RE = re.compile(r"\s*\(\d{3,4}\)\s*$")
_ARROWS_RE = re.compile(r"[<>]")


class ScheduleImportError(Exception):
    """The schedule file could not be read or decoded."""


@dataclass(frozen=True)
class HourMarkerRow:
    base_time: str          # "HH:MM", 24-hour
    cells: tuple = ()       # shows in the first half-hour slot


@dataclass(frozen=True)
class DataRow:
    cells: tuple
    second_half: bool       # empty time label: second half-hour of the block


@dataclass(frozen=True)
class SkipRow:
    reason: str


Row = Union[HourMarkerRow, DataRow, SkipRow]


# --- Tokenizer ---

def split_fields(line: str) -> list[str]:
    """Split one CSV line; a double quote toggles quoted mode, where commas are literal."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    fields.append("".join(current).strip())
    return fields


def split_rows(text: str) -> list[list[str]]:
    return [split_fields(line) for line in re.split(r"\r?\n", text)]


# --- Row classification ---

def classify_row(fields: list[str]) -> Row:
    if not fields or not any(fields):
        return SkipRow("blank")

    label = fields[0].strip()
    m = _HOUR_MARKER_RE.match(label)
    if m:
        return HourMarkerRow(to_24h(int(m.group(1)), int(m.group(2)), m.group(3)), tuple(fields[1:]))
    if label == "":
        return DataRow(cells=tuple(fields[1:]), second_half=True)
    if _SKIP_LABEL_RE.match(label):
        return SkipRow(f"label {label!r}")
    # Other labels (a showcase name spanning the row, say) keep the current slot
    return DataRow(cells=tuple(fields[1:]), second_half=False)


def is_annotation(cell: str) -> bool:
    return (
        cell.startswith("(")
        or cell.startswith("<")
        or cell.startswith(">")
        or "no set times" in cell.lower()
    )


def parse_cell(cell: str, slot_time: str, pm_cutoff_hour: int = DEFAULT_PM_CUTOFF_HOUR) -> Optional[tuple[str, str]]:
    """Return (artist_name, start_time) for a grid cell, or None if it is not a show."""
    cell = cell.strip()
    if not cell or is_annotation(cell):
        return None

    m = _TIME_OVERRIDE_RE.search(cell)
    if not m:
        return cell, slot_time

    artist = _TIME_OVERRIDE_STRIP_RE.sub("", cell).strip()
    digits = m.group(1).zfill(4)
    hour, minute = int(digits[:2]), digits[2:]
    # The grid covers roughly 9 AM - 2 AM, so a bare hour below the cutoff is PM
    if hour < pm_cutoff_hour:
        hour += 12
    if not artist:
        return None
    return artist, f"{hour:02d}:{minute}"


# --- Emission ---

def parse_header(fields: list[str]) -> list[str]:
    return [_ARROWS_RE.sub("", name).strip() for name in fields[1:]]


def parse_schedule(
    text: str,
    day: str,
    pm_cutoff_hour: int = DEFAULT_PM_CUTOFF_HOUR,
    batch: Optional[str] = None,
) -> list[Event]:
    """Parse a venue × time grid into csv-import events for `day`, in sheet order."""
    rows = split_rows(text)
    if not rows or not any(rows[0]):
        return []

    venues = parse_header(rows[0])
    batch = batch or str(int(time.time() * 1000))
    events: list[Event] = []
    base_time: Optional[str] = None
    slot_offset = 0

    for line_no, fields in enumerate(rows[1:], start=2):
        row = classify_row(fields)

        if isinstance(row, SkipRow):
            logger.debug("Row %d skipped (%s)", line_no, row.reason)
            continue
        if isinstance(row, HourMarkerRow):
            base_time = row.base_time
            slot_offset = 0
        elif row.second_half:
            slot_offset = 1
        if base_time is None:
            logger.debug("Row %d dropped: no hour marker yet", line_no)
            continue

        slot_time = add_minutes(base_time, slot_offset * 30)
        for col, cell in enumerate(row.cells):
            if col >= len(venues) or not venues[col]:
                continue
            parsed = parse_cell(cell, slot_time, pm_cutoff_hour)
            if parsed is None:
                continue
            artist, start_time = parsed
            events.append(Event(
                artist_name=artist,
                venue=venues[col],
                day=day,
                start_time=start_time,
                end_time=None,
                source=SOURCE,
                id=f"csv_{batch}_{len(events)}",
            ))

    logger.info("Parsed %d show(s) for %s across %d venue(s)", len(events), day, len(venues))
    return events


def read_schedule_file(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ScheduleImportError(f"Could not read schedule file {path}: {exc}") from exc


def import_schedule_file(path: Path, day: str, pm_cutoff_hour: int = DEFAULT_PM_CUTOFF_HOUR) -> list[Event]:
    return parse_schedule(read_schedule_file(path), day, pm_cutoff_hour)
