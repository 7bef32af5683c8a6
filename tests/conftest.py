import pytest

from festwiz.models import Event


@pytest.fixture
def make_event():
    """Build a show with sensible defaults; override any field by keyword."""
    def _make(artist="Band", venue="Stage", start="20:00", end=None, day="2026-03-12", **kwargs):
        return Event(artist_name=artist, venue=venue, day=day, start_time=start, end_time=end, **kwargs)
    return _make
