import base64
import csv
import gzip
import io
from datetime import datetime

from festwiz.models import Artist, Event
from festwiz.sharing import (
    decode_share,
    encode_share,
    export_backup,
    preferred_link,
    share_payload,
    shortlist_csv,
    shortlist_rows,
)
from festwiz.store import LocalState, Ratings, merge_backup


def test_backup_restores_into_a_fresh_state():
    state = LocalState(ratings={"eid_1": 4}, notes={"eid_1": "must see"}, genre_tiers={"Rock": "high"})
    state.add_user_events([Event("Mine", "Yard", "2026-03-12", start_time="18:00", source="user")])

    backup = export_backup(state, now=datetime(2026, 3, 10, 12, 0))
    assert backup["exportDate"] == "2026-03-10T12:00:00"

    restored = merge_backup(LocalState(), backup)
    assert restored == state


def test_share_string_decodes_to_the_same_document():
    state = LocalState(ratings={"eid_1": 4, "name_café_tacvba": 2}, subgenre_tiers={"Shoegaze": "hide"})
    payload = share_payload(state)
    assert "userAddedEvents" not in payload
    assert decode_share(encode_share(payload)) == payload


def test_garbage_share_string_is_rejected():
    assert decode_share("not base64 at all!") is None
    assert decode_share(base64.b64encode(b"plain bytes").decode()) is None
    assert decode_share(encode_share({"a": 1})[:-8]) is None


def test_share_string_must_hold_an_object():
    encoded = base64.b64encode(gzip.compress(b"[1, 2, 3]")).decode()
    assert decode_share(encoded) is None


def test_preferred_link_order():
    artist = Artist("X", links={"spotify": "sp", "youtube": "yt"})
    assert preferred_link(artist) == "yt"
    assert preferred_link(Artist("Y", detail_url="https://fest/y")) == "https://fest/y"
    assert preferred_link(Artist("Z")) == ""


def test_shortlist_keeps_top_rated_best_first():
    artists = [
        Artist("Alpha", entity_id="1", links={"bandcamp": "bc-a"}),
        Artist("Beta", entity_id="2"),
        Artist("Gamma", links={"website": "g.example"}),
    ]
    ratings = Ratings({"eid_1": 3, "eid_2": 1, "name_gamma": 4})

    rows = shortlist_rows(artists, ratings)
    assert rows == [("Gamma", "g.example"), ("Alpha", "bc-a")]

    parsed = list(csv.reader(io.StringIO(shortlist_csv(rows + [("Comma, Band", "")]))))
    assert parsed[0] == ["Artist", "URL"]
    assert parsed[-1] == ["Comma, Band", ""]
