"""Backups, shortlist export and compact share strings."""

import base64
import binascii
import csv
import gzip
import io
import json
import zlib
from datetime import datetime
from typing import Iterable, Optional

from festwiz.models import Artist
from festwiz.store import LocalState, Ratings

# First link found in this order is used for the shortlist
LINK_ORDER = ("bandcamp", "youtube", "apple_music", "soundcloud", "spotify", "website", "official")


def export_backup(state: LocalState, now: Optional[datetime] = None) -> dict:
    return {"exportDate": (now or datetime.now()).isoformat(), **state.to_dict()}


def preferred_link(artist: Artist) -> str:
    links = dict(artist.links)
    if artist.detail_url:
        links["official"] = artist.detail_url
    return next((links[t] for t in LINK_ORDER if links.get(t)), "")


def shortlist_rows(artists: Iterable[Artist], ratings: Ratings, min_rating: int = 3) -> list[tuple[str, str]]:
    """(name, url) for artists rated at least `min_rating`, best rated first."""
    rated = [(ratings.rating_for(a), a) for a in artists]
    rated = [(r, a) for r, a in rated if r >= min_rating]
    rated.sort(key=lambda ra: (-ra[0], ra[1].name))
    return [(a.name, preferred_link(a)) for _, a in rated]


def shortlist_csv(rows: list[tuple[str, str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Artist", "URL"])
    writer.writerows(rows)
    return buf.getvalue()


def encode_share(data: dict) -> str:
    """Gzip then base64 a JSON document so it fits in a URL parameter."""
    raw = json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.b64encode(gzip.compress(raw)).decode("ascii")


def decode_share(encoded: str) -> Optional[dict]:
    """Inverse of encode_share; returns None for anything that does not decode."""
    try:
        data = json.loads(gzip.decompress(base64.b64decode(encoded, validate=True)))
    except (binascii.Error, OSError, EOFError, ValueError, zlib.error):
        return None
    return data if isinstance(data, dict) else None


def share_payload(state: LocalState) -> dict:
    """The part of the state worth sharing: opinions, not the user's own show list."""
    return {
        "ratings": state.ratings,
        "notes": state.notes,
        "genreTiers": state.genre_tiers,
        "subgenreTiers": state.subgenre_tiers,
    }
