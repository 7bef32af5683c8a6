import copy

from festwiz.identity import (
    build_entity_lookup,
    migrate_rating_keys,
    normalize_name,
    resolve_key,
)
from festwiz.models import Artist, Event


def test_normalize_replaces_everything_outside_lowercase_alnum():
    assert normalize_name("Band X!") == "band_x_"
    assert normalize_name("Sigur Rós") == "sigur_r_s"


def test_catalog_id_wins():
    assert resolve_key(Artist(name="Band X", entity_id="42")) == "eid_42"
    assert resolve_key({"name": "Band X", "entity_id": 42}) == "eid_42"


def test_name_key_fallback():
    assert resolve_key(Artist(name="Band X")) == "name_band_x"
    assert resolve_key({"artist_name": "Foo-Bar"}) == "name_foo_bar"


def test_unofficial_show_of_catalog_artist_shares_rating_bucket():
    lookup = build_entity_lookup([Artist(name="Band X", entity_id="42"), Artist(name="Nobody")])
    show = Event("band x", "Backyard", "2026-03-12", start_time="15:00", source="unofficial")
    assert lookup == {"band x": "42"}
    assert resolve_key(show, lookup) == "eid_42"
    assert resolve_key(Event("Other", "Backyard", "2026-03-12"), lookup) == "name_other"


def test_migration_moves_name_key_to_entity_key():
    ratings = {"name_bandx": 3}
    moved = migrate_rating_keys(ratings, [Artist(name="BandX", entity_id="42")])
    assert moved == 1
    assert ratings == {"eid_42": 3}


def test_migration_is_idempotent():
    artists = [Artist(name="Band X", entity_id="42"), Artist(name="Solo", entity_id="7")]
    once = {"name_band_x": 4, "name_solo": 2, "eid_7": 1, "name_unknown": 3}
    migrate_rating_keys(once, artists)
    twice = copy.deepcopy(once)
    assert migrate_rating_keys(twice, artists) == 0
    assert twice == once
    assert once == {"eid_42": 4, "eid_7": 1, "name_solo": 2, "name_unknown": 3}


def test_migration_carries_notes_along():
    ratings, notes = {"name_band_x": 2}, {"name_band_x": "saw them in 2019"}
    migrate_rating_keys(ratings, [Artist(name="Band X", entity_id="42")], notes)
    assert notes == {"eid_42": "saw them in 2019"}
