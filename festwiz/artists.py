"""
Artist browser: filtering, tier-aware sorting, genre counts and rating stats.

Genre tiers (high / medium / low / hide) steer the browser. Artists in a
hidden genre or subgenre are left out unless that genre is selected
explicitly or a search is active, and every sort puts higher tiers first.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from festwiz.models import Artist
from festwiz.store import Ratings

UNKNOWN_GENRE = "Unknown"

RATED_FILTERS = ("all", "rated", "unrated", "3+")
SOURCE_FILTERS = ("all", "official", "unofficial", "user")
ARTIST_SORTS = ("name", "genre", "subgenre", "rating", "country")
LINK_TYPES = ("bandcamp", "youtube", "apple_music", "soundcloud", "spotify", "website")

TIER_ORDER = {"high": 0, "medium": 1, "low": 2, None: 3, "hide": 4}


@dataclass(frozen=True)
class ArtistStats:
    total: int
    rated: int

    @property
    def remaining(self) -> int:
        return self.total - self.rated


def _tier_rank(tiers: dict, name: Optional[str]) -> int:
    return TIER_ORDER.get(tiers.get(name) if name else None, TIER_ORDER[None])


def _fold(text: Optional[str]) -> str:
    return (text or "").casefold()


def genre_counts(artists: Iterable[Artist], genre_tiers: dict) -> list[tuple[str, int]]:
    """(genre, artist count) pairs, ordered by tier, then by count descending."""
    counts: dict[str, int] = {}
    for artist in artists:
        genre = artist.genre or UNKNOWN_GENRE
        counts[genre] = counts.get(genre, 0) + 1
    return sorted(counts.items(), key=lambda gc: (_tier_rank(genre_tiers, gc[0]), -gc[1], _fold(gc[0])))


def subgenre_counts(artists: Iterable[Artist], subgenre_tiers: dict) -> list[tuple[str, int]]:
    """Like genre_counts, for artists that have a subgenre."""
    counts: dict[str, int] = {}
    for artist in artists:
        if artist.subgenre:
            counts[artist.subgenre] = counts.get(artist.subgenre, 0) + 1
    return sorted(counts.items(), key=lambda sc: (_tier_rank(subgenre_tiers, sc[0]), -sc[1], _fold(sc[0])))


def matches_artist_search(artist: Artist, query: str) -> bool:
    q = query.casefold()
    fields = (artist.name, artist.genre, artist.subgenre, artist.location, artist.country, artist.city)
    return any(q in _fold(f) for f in fields)


def filter_artists(
    artists: Iterable[Artist],
    ratings: Ratings,
    genre_tiers: Optional[dict] = None,
    subgenre_tiers: Optional[dict] = None,
    genre: Optional[str] = None,
    subgenre: Optional[str] = None,
    search: str = "",
    rated: str = "all",
    source: str = "all",
    sort: str = "name",
) -> list[Artist]:
    """
    Artists passing every active filter, sorted for display.

    Sorts:
      name      genre tier, then name
      genre     genre tier, genre, name
      subgenre  subgenre tier, subgenre, name
      rating    rating (highest first), name
      country   country, name
    """
    if rated not in RATED_FILTERS:
        raise ValueError(f"Unknown rated filter {rated!r}")
    if source not in SOURCE_FILTERS:
        raise ValueError(f"Unknown source filter {source!r}")
    if sort not in ARTIST_SORTS:
        raise ValueError(f"Unknown sort {sort!r}")
    genre_tiers = genre_tiers or {}
    subgenre_tiers = subgenre_tiers or {}

    result = []
    for artist in artists:
        if genre and artist.genre != genre:
            continue
        if subgenre and artist.subgenre != subgenre:
            continue
        if not genre and not search and genre_tiers.get(artist.genre) == "hide":
            continue
        if not subgenre and not search and artist.subgenre and subgenre_tiers.get(artist.subgenre) == "hide":
            continue
        if search and not matches_artist_search(artist, search):
            continue

        rating = ratings.rating_for(artist)
        if rated == "rated" and not rating:
            continue
        if rated == "unrated" and rating:
            continue
        if rated == "3+" and rating < 3:
            continue

        if source == "official" and artist.source not in ("", "official"):
            continue
        if source in ("unofficial", "user") and artist.source != source:
            continue
        result.append(artist)

    sort_keys = {
        "name": lambda a: (_tier_rank(genre_tiers, a.genre), _fold(a.name)),
        "genre": lambda a: (_tier_rank(genre_tiers, a.genre), _fold(a.genre), _fold(a.name)),
        "subgenre": lambda a: (_tier_rank(subgenre_tiers, a.subgenre), _fold(a.subgenre), _fold(a.name)),
        "rating": lambda a: (-ratings.rating_for(a), _fold(a.name)),
        "country": lambda a: (_fold(a.country), _fold(a.name)),
    }
    return sorted(result, key=sort_keys[sort])


def artist_stats(artists: Iterable[Artist], ratings: Ratings) -> ArtistStats:
    artists = list(artists)
    return ArtistStats(total=len(artists), rated=sum(1 for a in artists if ratings.rating_for(a)))


def new_user_artist(
    name: str,
    genre: str = "",
    subgenre: str = "",
    location: str = "",
    links: Optional[dict] = None,
) -> Artist:
    """Build an artist entered by the user. Raises ValueError for a blank name or unknown link type."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Artist name is required.")
    links = {k: v.strip() for k, v in (links or {}).items() if v and v.strip()}
    unknown = sorted(set(links) - set(LINK_TYPES))
    if unknown:
        raise ValueError(f"Unknown link type(s): {', '.join(unknown)}")
    return Artist(
        name=name,
        genre=genre.strip() or UNKNOWN_GENRE,
        subgenre=subgenre.strip() or None,
        location=location.strip() or None,
        links=links,
        source="user",
    )
