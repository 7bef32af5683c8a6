"""
Rating identity keys.

A performer can be known by a catalog entity id, by a free-text name, or
both. Ratings are stored by key, so the key has to stay stable when an
unofficial artist is later promoted into the official catalog:

  eid_<entity_id>      catalog-linked artists
  name_<normalized>    everyone else
"""

import logging
import re
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

_NON_KEY_CHARS = re.compile(r"[^a-z0-9]")


def normalize_name(name: str) -> str:
    return _NON_KEY_CHARS.sub("_", (name or "").lower())


def entity_key(entity_id) -> str:
    return f"eid_{entity_id}"


def name_key(name: str) -> str:
    return f"name_{normalize_name(name)}"


def _fields(entity) -> tuple[Optional[str], str]:
    """Pull (entity_id, name) out of an Artist, an Event or a raw dict."""
    if isinstance(entity, dict):
        name = entity.get("name") or entity.get("artist_name") or ""
        return entity.get("entity_id"), name
    name = getattr(entity, "name", None) or getattr(entity, "artist_name", "") or ""
    return getattr(entity, "entity_id", None), name


def resolve_key(entity, entity_ids: Optional[dict] = None) -> str:
    """
    Resolve the rating key for an artist or a show.

    A show without its own entity id still resolves to the catalog key when
    its artist name matches a catalog artist, so unofficial and user-added
    shows share the rating bucket of the official listing.
    """
    eid, name = _fields(entity)
    if eid:
        return entity_key(eid)
    if entity_ids:
        eid = entity_ids.get(name.lower())
        if eid:
            return entity_key(eid)
    return name_key(name)


def build_entity_lookup(artists: Iterable) -> dict[str, str]:
    """Lower-cased artist name -> catalog entity id."""
    lookup: dict[str, str] = {}
    for artist in artists:
        eid, name = _fields(artist)
        if name and eid:
            lookup[name.lower()] = str(eid)
    return lookup


def migrate_rating_keys(ratings: dict, artists: Iterable, *companions: dict) -> int:
    """
    Move values stored under a legacy name_ key to the artist's eid_ key.

    Runs on every load. A name_ entry is only moved when nothing is stored
    under the eid_ key yet, and is removed afterwards, so a second run is a
    no-op. `companions` are further key-indexed maps (notes) migrated the
    same way. Returns the number of rating keys moved.
    """
    moved = 0
    for artist in artists:
        eid, name = _fields(artist)
        if not eid:
            continue
        new_key, old_key = entity_key(eid), name_key(name)
        if not ratings.get(new_key) and ratings.get(old_key):
            ratings[new_key] = ratings.pop(old_key)
            moved += 1
        for mapping in companions:
            if not mapping.get(new_key) and mapping.get(old_key):
                mapping[new_key] = mapping.pop(old_key)
    if moved:
        logger.info("Migrated %d rating(s) from name keys to catalog keys", moved)
    return moved
