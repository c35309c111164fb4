"""
Data shapes and collaborator interfaces the recommendation core consumes.

- Track: a library-resident song as reported by the library data source.
- EnrichedTrack: a similarity candidate from the social-music provider, annotated
  with library membership.
- LibrarySource / SocialMusicClient / MoodTranslator: the external collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from recommendation_api.services.smart_playlist import SmartPlaylistRules


@dataclass(frozen=True)
class Track:
    """Read-only view of a song in the local library."""
    id: str
    title: str
    artist: str
    album: str = ""
    album_id: str = ""
    duration: int = 0
    track_number: int = 0
    genre: str = ""
    year: int = 0
    play_count: int = 0
    rating: int = 0
    loved: bool = False
    bitrate: int = 0
    url: str = ""


@dataclass(frozen=True)
class EnrichedTrack:
    """Similarity candidate returned by the social-music provider."""
    title: str
    artist: str
    url: str = ""
    match: float = 0.0
    in_library: bool = False
    library_id: Optional[str] = None
    library_album: Optional[str] = None
    duration: Optional[int] = None


class LibrarySource(Protocol):
    """Library data source. Implementations raise LibraryUnavailableError on failure."""

    async def search(self, text: str, offset: int = 0, limit: int = 50) -> List[Track]:
        ...

    async def list_songs(self, offset: int, limit: int) -> List[Track]:
        ...


class SocialMusicClient(Protocol):
    async def get_similar_tracks(self, artist: str, title: str, count: int) -> List[EnrichedTrack]:
        ...


class MoodTranslator(Protocol):
    async def translate_mood_to_query(self, text: str) -> "SmartPlaylistRules":
        ...
