"""Shared fakes for the recommendation tests."""

import random
from typing import List, Optional

import pytest

from recommendation_api.services.sources import EnrichedTrack, Track


class FakeLibrary:
    """In-memory LibrarySource that records calls."""

    def __init__(self, songs: Optional[List[Track]] = None, error: Optional[Exception] = None):
        self.songs = list(songs or [])
        self.error = error
        self.list_calls = []
        self.search_calls = []

    async def list_songs(self, offset, limit):
        self.list_calls.append((offset, limit))
        if self.error is not None:
            raise self.error
        return self.songs[offset : offset + limit]

    async def search(self, text, offset=0, limit=50):
        self.search_calls.append(text)
        if self.error is not None:
            raise self.error
        terms = text.lower().split()
        hits = [s for s in self.songs if all(t in f"{s.artist} {s.title} {s.album}".lower() for t in terms)]
        return hits[offset : offset + limit]


class FakeSocial:
    """SocialMusicClient returning canned similar tracks."""

    def __init__(self, tracks: Optional[List[EnrichedTrack]] = None, error: Optional[Exception] = None):
        self.tracks = list(tracks or [])
        self.error = error
        self.calls = []

    async def get_similar_tracks(self, artist, title, count):
        self.calls.append((artist, title, count))
        if self.error is not None:
            raise self.error
        return list(self.tracks)


def make_track(song_id, title, artist, **kwargs):
    return Track(id=song_id, title=title, artist=artist, **kwargs)


@pytest.fixture
def library_factory():
    return FakeLibrary


@pytest.fixture
def social_factory():
    return FakeSocial


@pytest.fixture
def track_factory():
    return make_track


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def sample_library():
    """A small library spanning a few genres and decades."""
    return FakeLibrary(
        [
            make_track("lib-1", "Karma Police", "Radiohead", album="OK Computer", genre="Alternative Rock",
                       year=1997, play_count=12, rating=5, loved=True, duration=264, track_number=6),
            make_track("lib-2", "Bitter Sweet Symphony", "The Verve", album="Urban Hymns", genre="Britpop",
                       year=1997, play_count=3, rating=4, duration=358, track_number=1),
            make_track("lib-3", "So What", "Miles Davis", album="Kind of Blue", genre="Jazz",
                       year=1959, play_count=0, rating=5, duration=562, track_number=1),
            make_track("lib-4", "Windowlicker", "Aphex Twin", album="Windowlicker", genre="Electronic; Ambient",
                       year=1999, play_count=7, rating=3, duration=367, track_number=1),
            make_track("lib-5", "Teardrop", "Massive Attack", album="Mezzanine", genre="Trip-Hop",
                       year=1998, play_count=0, rating=0, duration=330, track_number=3),
            make_track("lib-6", "Take On Me", "a-ha", album="Hunting High and Low", genre="Synth-Pop",
                       year=1985, play_count=20, rating=4, loved=True, duration=225, track_number=1),
        ]
    )
