"""
Navidrome library client.

Reads songs through Navidrome's native REST API:
- POST {base}/auth/login -> JWT token, sent back as ``x-nd-authorization: Bearer <token>``
- GET  {base}/api/song?_start=&_end= for listing and filtered search

Every call is bounded by the configured provider timeout. Transport errors, timeouts
and non-2xx responses surface as LibraryUnavailableError.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import httpx

from recommendation_api.core.errors import LibraryUnavailableError
from recommendation_api.core.logging import get_logger
from recommendation_api.services.sources import Track

logger = get_logger("clients.navidrome")

# Song filters tried in order by search(); the first one returning songs wins
SEARCH_FILTERS = ("title", "fullText", "name")


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def raw_song_to_track(raw: Mapping[str, Any]) -> Track:
    """Map a Navidrome song payload to a Track."""
    song_id = str(raw.get("id") or "")
    return Track(
        id=song_id,
        title=raw.get("title") or raw.get("name") or "",
        artist=raw.get("artist") or "",
        album=raw.get("album") or "",
        album_id=str(raw.get("albumId") or ""),
        duration=_as_int(raw.get("duration")),
        track_number=_as_int(raw.get("trackNumber") or raw.get("track")),
        genre=raw.get("genre") or "",
        year=_as_int(raw.get("year")),
        play_count=_as_int(raw.get("playCount")),
        rating=_as_int(raw.get("rating")),
        loved=bool(raw.get("starred") or raw.get("loved")),
        bitrate=_as_int(raw.get("bitRate") or raw.get("bitrate")),
        url=f"/stream/{song_id}",
    )


class NavidromeClient:
    """Async Navidrome client implementing the LibrarySource interface."""

    def __init__(
        self,
        base_url: Optional[str],
        username: Optional[str],
        password: Optional[str],
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._username = username
        self._password = password
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._token: Optional[str] = None
        self._login_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._username and self._password)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _ensure_token(self) -> str:
        if self._token:
            return self._token
        async with self._login_lock:
            if self._token:
                return self._token
            try:
                response = await self._http.post(
                    f"{self._base_url}/auth/login",
                    json={"username": self._username, "password": self._password},
                )
                response.raise_for_status()
                token = response.json().get("token")
            except (httpx.HTTPError, ValueError) as exc:
                raise LibraryUnavailableError(f"Navidrome login failed: {exc}") from exc
            if not token:
                raise LibraryUnavailableError("Navidrome login returned no token")
            self._token = token
            return token

    async def _get_songs(self, params: Dict[str, Any]) -> List[Track]:
        if not self.configured:
            raise LibraryUnavailableError("Navidrome is not configured")
        token = await self._ensure_token()
        try:
            response = await self._http.get(
                f"{self._base_url}/api/song",
                params=params,
                headers={"x-nd-authorization": f"Bearer {token}"},
            )
            if response.status_code == 401:
                # Expired session; the next call logs in again
                self._token = None
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LibraryUnavailableError(f"Failed to fetch songs from Navidrome: {exc}") from exc

        if not isinstance(data, list):
            raise LibraryUnavailableError("Unexpected Navidrome song payload")
        return [raw_song_to_track(item) for item in data if isinstance(item, Mapping)]

    # PUBLIC_INTERFACE
    async def list_songs(self, offset: int, limit: int) -> List[Track]:
        """List library songs in Navidrome's default order."""
        return await self._get_songs({"_start": offset, "_end": offset + limit})

    # PUBLIC_INTERFACE
    async def search(self, text: str, offset: int = 0, limit: int = 50) -> List[Track]:
        """Search songs, trying each filter in SEARCH_FILTERS until one returns results."""
        songs: List[Track] = []
        for name in SEARCH_FILTERS:
            songs = await self._get_songs({name: text, "_start": offset, "_end": offset + limit})
            if songs:
                logger.debug("Navidrome search matched", extra={"filter": name, "count": len(songs)})
                break
        return songs
