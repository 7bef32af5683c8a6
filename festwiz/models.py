import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

ADMISSIONS = ("badge", "cover", "free")
DELETABLE_SOURCES = frozenset({"user", "csv-import"})

RATING_MIN = 1
RATING_MAX = 4

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class Event:
    """A single scheduled performance."""
    artist_name: str
    venue: str
    day: str                        # ISO date, e.g. "2026-03-12"
    start_time: Optional[str] = None    # "HH:MM", 24-hour
    end_time: Optional[str] = None
    no_set_time: bool = False       # start_time is only a placeholder
    admission: Optional[str] = None     # badge | cover | free
    source: str = "official"
    showcase: Optional[str] = None
    entity_id: Optional[str] = None     # catalog id, official artists only
    website: Optional[str] = None
    id: Optional[str] = field(default=None, compare=False)
    notes: str = field(default="", compare=False)

    @property
    def natural_key(self) -> tuple:
        return (self.artist_name, self.venue, self.day, self.start_time)

    @property
    def identity(self) -> str:
        """Natural key as a JSON array, used to key derived view data.

        JSON quoting keeps the key unambiguous whatever characters the
        artist or venue names contain.
        """
        return json.dumps(list(self.natural_key), ensure_ascii=False)

    @property
    def effective_admission(self) -> str:
        if self.admission:
            return self.admission
        return "badge" if self.source == "official" else "free"

    @property
    def is_deletable(self) -> bool:
        return self.source in DELETABLE_SOURCES

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        entity_id = data.get("entity_id")
        return cls(
            artist_name=_required_text(data, "artist_name"),
            venue=_required_text(data, "venue"),
            day=date.fromisoformat(data["day"]).isoformat(),
            start_time=_clock_time(data.get("start_time")),
            end_time=_clock_time(data.get("end_time")),
            no_set_time=bool(data.get("no_set_time", False)),
            admission=data.get("admission") or None,
            source=data.get("source") or "official",
            showcase=data.get("showcase") or None,
            entity_id=str(entity_id) if entity_id else None,
            website=data.get("website") or None,
            id=data.get("id"),
            notes=data.get("notes") or "",
        )


def _required_text(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _clock_time(value) -> Optional[str]:
    if not value:
        return None
    if not isinstance(value, str) or not _CLOCK_RE.match(value):
        raise ValueError(f"Invalid time {value!r}")
    return value


@dataclass
class Artist:
    name: str
    entity_id: Optional[str] = None
    genre: Optional[str] = None
    subgenre: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    location: Optional[str] = None
    links: dict = field(default_factory=dict)   # link type -> url
    source: str = "official"
    detail_url: Optional[str] = None

    @property
    def display_location(self) -> str:
        if self.location:
            return self.location
        return ", ".join(part for part in (self.city, self.country) if part)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Artist":
        entity_id = data.get("entity_id")
        links = data.get("links") or {}
        if not isinstance(links, dict):
            raise TypeError(f"links must be an object, got {type(links).__name__}")
        return cls(
            name=_required_text(data, "name"),
            entity_id=str(entity_id) if entity_id else None,
            genre=data.get("genre") or None,
            subgenre=data.get("subgenre") or None,
            country=data.get("country") or None,
            city=data.get("city") or None,
            location=data.get("location") or None,
            links=dict(links),
            source=data.get("source") or "official",
            detail_url=data.get("detail_url") or None,
        )


def parse_records(records: Iterable, parse: Callable, what: str) -> list:
    """Parse raw dicts with `parse`, skipping (and logging) malformed ones."""
    parsed = []
    for raw in records:
        try:
            parsed.append(parse(raw))
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning("Skipping malformed %s record: %r", what, raw)
    return parsed
