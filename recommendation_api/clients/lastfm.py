"""
Last.fm client for similar-track lookups.

Calls ``track.getsimilar`` and enriches every candidate with library membership by
searching the library for "<artist> <title>". A candidate is in the library when a
search hit's artist and title each contain (or are contained in) the candidate's.

Error mapping:
- HTTP 429 -> RATE_LIMITED (service marked unavailable for Retry-After seconds)
- HTTP 5xx -> SERVICE_UNAVAILABLE (service marked unavailable for 60 seconds)
- other non-2xx, transport errors, timeouts -> NETWORK_ERROR
- API error payloads -> code from API_ERROR_CODES
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Mapping, Optional

import httpx

from recommendation_api.core.config import Settings
from recommendation_api.core.errors import LastFmError, ProviderError
from recommendation_api.core.logging import get_logger
from recommendation_api.services.sources import EnrichedTrack, LibrarySource, Track

logger = get_logger("clients.lastfm")

API_ERROR_CODES = {
    6: "NOT_FOUND",
    10: "INVALID_API_KEY",
    26: "INVALID_API_KEY",
    29: "RATE_LIMITED",
    11: "SERVICE_UNAVAILABLE",
    16: "SERVICE_UNAVAILABLE",
}
SERVER_ERROR_COOLDOWN_SECONDS = 60.0
LIBRARY_MATCH_CANDIDATES = 5


def _artist_name(artist: Any) -> str:
    if isinstance(artist, str):
        return artist
    if isinstance(artist, Mapping):
        return artist.get("name") or "Unknown Artist"
    return "Unknown Artist"


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _score(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _is_library_match(song: Track, artist: str, title: str) -> bool:
    song_artist, song_title = song.artist.strip().lower(), (song.title or "").strip().lower()
    artist, title = artist.strip().lower(), title.strip().lower()
    # An empty name is a substring of everything
    if not (song_artist and song_title and artist and title):
        return False
    artist_match = artist in song_artist or song_artist in artist
    title_match = title in song_title or song_title in title
    return artist_match and title_match


class LastFmClient:
    """Async Last.fm client implementing the SocialMusicClient interface."""

    def __init__(
        self,
        api_key: str,
        library: LibrarySource,
        base_url: str = "https://ws.audioscrobbler.com/2.0/",
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._library = library
        self._base_url = base_url
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._unavailable_until = 0.0

    async def aclose(self) -> None:
        await self._http.aclose()

    def is_available(self) -> bool:
        return time.monotonic() >= self._unavailable_until

    async def _request(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.is_available():
            raise LastFmError("SERVICE_UNAVAILABLE", "Last.fm service is temporarily unavailable")

        query = {"method": method, "api_key": self._api_key, "format": "json"}
        query.update({k: str(v) for k, v in params.items()})

        try:
            response = await self._http.get(self._base_url, params=query)
        except httpx.HTTPError as exc:
            raise LastFmError("NETWORK_ERROR", f"Failed to connect to Last.fm: {exc}") from exc

        if response.status_code == 429:
            retry_after = _score(response.headers.get("Retry-After")) or 60.0
            self._unavailable_until = time.monotonic() + retry_after
            raise LastFmError("RATE_LIMITED", "Last.fm rate limit exceeded", retry_after=retry_after)
        if response.status_code >= 500:
            self._unavailable_until = time.monotonic() + SERVER_ERROR_COOLDOWN_SECONDS
            raise LastFmError("SERVICE_UNAVAILABLE", f"Last.fm server error: {response.status_code}")
        if response.is_error:
            raise LastFmError("NETWORK_ERROR", f"HTTP {response.status_code}: {response.reason_phrase}")

        try:
            data = response.json()
        except ValueError as exc:
            raise LastFmError("INVALID_RESPONSE", "Last.fm returned a non-JSON body") from exc

        if isinstance(data, Mapping) and data.get("error"):
            code = API_ERROR_CODES.get(_optional_int(data.get("error")) or 0, "INVALID_RESPONSE")
            raise LastFmError(code, data.get("message") or "Unknown Last.fm API error")
        if not isinstance(data, dict):
            raise LastFmError("INVALID_RESPONSE", "Unexpected Last.fm payload")
        return data

    async def _enrich(self, raw: Mapping[str, Any]) -> EnrichedTrack:
        artist = _artist_name(raw.get("artist"))
        title = raw.get("name") or ""
        match: Optional[Track] = None
        try:
            results = await self._library.search(f"{artist} {title}", 0, LIBRARY_MATCH_CANDIDATES)
            match = next((song for song in results if _is_library_match(song, artist, title)), None)
        except ProviderError as exc:
            # Continue without library match on error
            logger.warning("Library lookup failed during enrichment", extra={"query": f"{artist} {title}", "error": str(exc)})

        return EnrichedTrack(
            title=title,
            artist=artist,
            url=raw.get("url") or "",
            match=_score(raw.get("match")),
            in_library=match is not None,
            library_id=match.id if match else None,
            library_album=match.album if match else None,
            duration=_optional_int(raw.get("duration")) or (match.duration if match else None),
        )

    # PUBLIC_INTERFACE
    async def get_similar_tracks(self, artist: str, title: str, count: int) -> List[EnrichedTrack]:
        """Tracks similar to artist/title, annotated with library membership."""
        logger.info("Fetching similar tracks", extra={"artist": artist, "title": title, "count": count})
        data = await self._request("track.getsimilar", {"artist": artist, "track": title, "limit": count})
        tracks = (data.get("similartracks") or {}).get("track") or []
        if isinstance(tracks, Mapping):
            # Last.fm collapses single-item lists into an object
            tracks = [tracks]
        logger.info("Last.fm returned similar tracks", extra={"count": len(tracks)})
        return list(await asyncio.gather(*(self._enrich(t) for t in tracks if isinstance(t, Mapping))))


# PUBLIC_INTERFACE
def get_lastfm_client(settings: Settings, library: LibrarySource) -> Optional[LastFmClient]:
    """Build the Last.fm client, or None when no API key is configured."""
    if not settings.lastfm_configured:
        return None
    return LastFmClient(
        api_key=settings.LASTFM_API_KEY.strip(),
        library=library,
        base_url=settings.LASTFM_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
