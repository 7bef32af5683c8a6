"""
Festival time axis.

A festival "day" runs from DAY_START_HOUR through the following early
morning, so a show at 00:30 belongs to the night that started the previous
calendar day. All interval arithmetic (layout, conflicts, now/next) happens on
minute offsets from the day start, never on raw "HH:MM" strings, because
string order breaks at midnight.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil import parser as dateparser

DAY_START_HOUR = 9
GRID_HOURS = 17     # 9 AM through 2 AM

# Default show lengths when end_time is missing. Layout and conflict
# detection use the shorter one; now/next urgency uses the longer one.
LAYOUT_DEFAULT_MINUTES = 45
NOW_NEXT_DEFAULT_MINUTES = 60

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_TWELVE_HOUR_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(AM|PM)$", re.IGNORECASE)


class TimeFormatError(ValueError):
    pass


def _split(time_str: str) -> tuple[int, int]:
    hours, _, minutes = time_str.partition(":")
    return int(hours), int(minutes or 0)


def to_minute_offset(time_str: str, day_start_hour: int = DAY_START_HOUR) -> int:
    """Minutes since the day start; times before it continue the previous night."""
    hour, minute = _split(time_str)
    if hour < day_start_hour:
        hour += 24
    return (hour - day_start_hour) * 60 + minute


def event_bounds(
    event,
    default_minutes: int,
    day_start_hour: int = DAY_START_HOUR,
) -> tuple[int, int]:
    """Return (start, end) offsets for an event that has a start_time."""
    start = to_minute_offset(event.start_time, day_start_hour)
    if event.end_time:
        end = to_minute_offset(event.end_time, day_start_hour)
    else:
        end = start + default_minutes
    return start, end


def overlaps(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] < b[1] and a[1] > b[0]


def day_start(day: str, day_start_hour: int = DAY_START_HOUR) -> datetime:
    return datetime.combine(date.fromisoformat(day), datetime.min.time()) + timedelta(hours=day_start_hour)


def instant_offset(day: str, when: datetime, day_start_hour: int = DAY_START_HOUR) -> float:
    """Minutes between the start of `day` and the instant `when` (naive local time)."""
    if when.tzinfo is not None:
        when = when.replace(tzinfo=None)
    return (when - day_start(day, day_start_hour)).total_seconds() / 60


def festival_day(when: datetime, day_start_hour: int = DAY_START_HOUR) -> str:
    """The festival day an instant belongs to (early morning counts as the night before)."""
    if when.hour < day_start_hour:
        when = when - timedelta(days=1)
    return when.date().isoformat()


def to_24h(hour: int, minute: int, period: str) -> str:
    period = period.upper()
    if period == "PM" and hour != 12:
        hour += 12
    elif period == "AM" and hour == 12:
        hour = 0
    return f"{hour:02d}:{minute:02d}"


def add_minutes(time_str: str, minutes: int) -> str:
    hour, minute = _split(time_str)
    total = (hour * 60 + minute + minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_user_time(text: str) -> str:
    """
    Parse a manually typed time into "HH:MM".

    Accepts 24-hour "21:30", or 12-hour "9:30 PM" / "9 pm".
    """
    text = (text or "").strip()
    m = _HHMM_RE.match(text)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            raise TimeFormatError(f"Could not parse time {text!r}")
        return f"{hour:02d}:{minute:02d}"
    if _TWELVE_HOUR_RE.match(text):
        try:
            return dateparser.parse(text).strftime("%H:%M")
        except (ValueError, OverflowError) as exc:
            raise TimeFormatError(f"Could not parse time {text!r}") from exc
    raise TimeFormatError(f'Could not parse time {text!r}. Try "9:30 PM" or "21:30".')


def format_time12(time_str: Optional[str]) -> str:
    if not time_str:
        return ""
    hour, minute = _split(time_str)
    period = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {period}"


def format_compact(time_str: Optional[str]) -> str:
    """Compact 12-hour form without AM/PM: "9", "9:40", "12"."""
    if not time_str:
        return ""
    hour, minute = _split(time_str)
    h12 = hour % 12 or 12
    return f"{h12}" if minute == 0 else f"{h12}:{minute:02d}"


def format_range(event) -> str:
    if event.no_set_time:
        return ""
    start = format_compact(event.start_time)
    if not event.end_time:
        return start
    return f"{start}–{format_compact(event.end_time)}"


def hour_label(hour: int) -> str:
    if hour == 0:
        return "12am"
    if hour < 12:
        return f"{hour}am"
    if hour == 12:
        return "12pm"
    return f"{hour - 12}pm"


def nearest_slot(time_str: str) -> str:
    """Round down to the half-hour grid slot."""
    hour, minute = _split(time_str)
    return f"{hour:02d}:{'00' if minute < 30 else '30'}"


def day_slots(day_start_hour: int = DAY_START_HOUR, hours: int = GRID_HOURS) -> list[str]:
    slots = []
    for h in range(day_start_hour, day_start_hour + hours):
        slots.append(f"{h % 24:02d}:00")
        slots.append(f"{h % 24:02d}:30")
    return slots
