"""
Conversions from provider shapes to the song shape returned to callers.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, TypeVar

from recommendation_api.schemas.recommendations import Song
from recommendation_api.services.diversity import normalize_artist
from recommendation_api.services.sources import EnrichedTrack, Track

_WHITESPACE = re.compile(r"\s+")

T = TypeVar("T")


def stream_url(song_id: str) -> str:
    return f"/stream/{song_id}"


def discovery_id(artist: str, title: str) -> str:
    """Synthesized id for a track that is not in the library; never contains whitespace."""
    raw = f"discovery-{artist.strip()}-{title.strip()}".lower()
    return _WHITESPACE.sub("-", raw)


# PUBLIC_INTERFACE
def enriched_track_to_song(track: EnrichedTrack) -> Song:
    """Library-matched similarity candidate -> playable song."""
    if not track.library_id:
        raise ValueError(f"Track '{track.artist} - {track.title}' has no library id")
    return Song(
        id=track.library_id,
        title=track.title,
        artist=track.artist,
        album=track.library_album or "",
        duration=track.duration or 0,
        track=0,
        url=stream_url(track.library_id),
    )


# PUBLIC_INTERFACE
def enriched_track_to_discovery_song(track: EnrichedTrack) -> Song:
    """Non-library similarity candidate -> song pointing at the external page."""
    return Song(
        id=discovery_id(track.artist, track.title),
        title=track.title,
        artist=track.artist,
        album="",
        duration=track.duration or 0,
        track=0,
        url=track.url or "",
    )


# PUBLIC_INTERFACE
def library_track_to_song(track: Track) -> Song:
    return Song(
        id=track.id,
        title=track.title,
        artist=track.artist,
        album=track.album,
        album_id=track.album_id,
        duration=track.duration,
        track=track.track_number,
        url=stream_url(track.id),
    )


def excluded_artist_keys(artists: Iterable[str]) -> frozenset:
    return frozenset(normalize_artist(a) for a in artists if a and a.strip())


# PUBLIC_INTERFACE
def apply_exclusions(
    items: Sequence[T],
    song_ids: Iterable[str],
    artists: Iterable[str],
    id_of,
    artist_of,
) -> List[T]:
    """
    Drop items whose id is in song_ids or whose normalized artist is in artists.

    id_of/artist_of extract the identifier and artist name from an item so the same
    rule applies to library tracks and similarity candidates alike.
    """
    excluded_ids = frozenset(song_ids)
    excluded_artists = excluded_artist_keys(artists)
    if not excluded_ids and not excluded_artists:
        return list(items)
    return [
        item
        for item in items
        if id_of(item) not in excluded_ids and normalize_artist(artist_of(item)) not in excluded_artists
    ]
