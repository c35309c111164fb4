"""
Recommendation strategies, one per mode.

Each strategy validates its own request requirements and owns its fallback policy:

- SimilarStrategy: Last.fm similar tracks that are in the library. Falls back to a
  library sample when Last.fm is not configured, fails, or yields no library matches.
- DiscoveryStrategy: Last.fm similar tracks that are NOT in the library, best match
  first. Only the "not configured" case has a fallback; provider failures propagate.
- MoodStrategy: mood text -> smart playlist rules -> library evaluation. Exclusions
  run before the rule limit. Falls back to a library sample when translation or
  evaluation fails.

If the fallback listing itself fails, the result is empty with reason
``fallback_failed: <cause>``.
"""

from __future__ import annotations

import dataclasses
import random
from abc import ABC, abstractmethod
from typing import List, Optional

from recommendation_api.core.errors import RecommendationValidationError
from recommendation_api.core.logging import get_logger
from recommendation_api.schemas.recommendations import (
    RecommendationMetadata,
    RecommendationRequest,
    RecommendationResult,
)
from recommendation_api.services.diversity import apply_diversity
from recommendation_api.services.normalization import (
    apply_exclusions,
    discovery_id,
    enriched_track_to_discovery_song,
    enriched_track_to_song,
    library_track_to_song,
)
from recommendation_api.services.smart_playlist import EvaluationDiagnostics, evaluate_smart_playlist
from recommendation_api.services.sources import LibrarySource, MoodTranslator, SocialMusicClient, Track

logger = get_logger("services.strategies")

# Raw similarity candidates requested per result slot
CANDIDATE_MULTIPLIER = 3
# Library sample size per result slot for fallbacks
FALLBACK_SAMPLE_MULTIPLIER = 2

FALLBACK_LASTFM_NOT_CONFIGURED = "lastfm_not_configured"
FALLBACK_LASTFM_ERROR = "lastfm_error"
FALLBACK_NO_LIBRARY_MATCHES = "no_library_matches"
FALLBACK_SMART_PLAYLIST_ERROR = "smart_playlist_error"
FALLBACK_FAILED_PREFIX = "fallback_failed"


def _require_seed(request: RecommendationRequest) -> None:
    seed = request.current_song
    if seed is None or not seed.artist.strip() or not seed.title.strip():
        raise RecommendationValidationError(f"currentSong required for {request.mode} mode", field="currentSong")


async def library_fallback(
    library: LibrarySource,
    request: RecommendationRequest,
    reason: str,
    rng: random.Random,
    avoid_artist: Optional[str] = None,
) -> RecommendationResult:
    """
    Random sample of library songs used when a strategy cannot produce results.

    avoid_artist drops songs whose artist contains that name (case-insensitive).
    """
    logger.info("Falling back to library sample", extra={"mode": request.mode, "reason": reason})
    try:
        songs = await library.list_songs(0, request.limit * FALLBACK_SAMPLE_MULTIPLIER)
    except Exception as exc:
        logger.error("Fallback listing failed", extra={"mode": request.mode, "reason": reason, "error": str(exc)})
        return RecommendationResult(
            mode=request.mode,
            source="fallback",
            songs=[],
            metadata=RecommendationMetadata(fallback_reason=f"{FALLBACK_FAILED_PREFIX}: {exc}"),
        )

    avoid = (avoid_artist or "").strip().lower()
    if avoid:
        songs = [s for s in songs if avoid not in s.artist.lower()]
    songs = apply_exclusions(
        songs, request.exclude_song_ids, request.exclude_artists, id_of=lambda t: t.id, artist_of=lambda t: t.artist
    )
    rng.shuffle(songs)

    return RecommendationResult(
        mode=request.mode,
        source="fallback",
        songs=[library_track_to_song(t) for t in songs[: request.limit]],
        metadata=RecommendationMetadata(fallback_reason=reason),
    )


class RecommendationStrategy(ABC):
    """Produces recommendations for one mode."""

    mode: str = ""

    @abstractmethod
    def validate(self, request: RecommendationRequest) -> None:
        """Raise RecommendationValidationError if the request lacks what this mode needs."""

    @abstractmethod
    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        """Produce a result; only failures this strategy does not handle propagate."""


class SimilarStrategy(RecommendationStrategy):
    """Songs from the library that Last.fm considers similar to the seed."""

    mode = "similar"

    def __init__(self, social: Optional[SocialMusicClient], library: LibrarySource, rng: random.Random) -> None:
        self._social = social
        self._library = library
        self._rng = rng

    def validate(self, request: RecommendationRequest) -> None:
        _require_seed(request)

    async def _fallback(self, request: RecommendationRequest, reason: str) -> RecommendationResult:
        return await library_fallback(self._library, request, reason, self._rng, avoid_artist=request.current_song.artist)

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        seed = request.current_song
        if self._social is None:
            logger.warning("Last.fm not configured, using fallback")
            return await self._fallback(request, FALLBACK_LASTFM_NOT_CONFIGURED)

        try:
            similar = await self._social.get_similar_tracks(seed.artist, seed.title, request.limit * CANDIDATE_MULTIPLIER)
        except Exception as exc:
            logger.error("Last.fm lookup failed", extra={"mode": self.mode, "error": str(exc)})
            return await self._fallback(request, FALLBACK_LASTFM_ERROR)

        in_library = [t for t in similar if t.in_library and t.library_id]
        in_library = apply_exclusions(
            in_library,
            request.exclude_song_ids,
            request.exclude_artists,
            id_of=lambda t: t.library_id,
            artist_of=lambda t: t.artist,
        )
        logger.info(
            "Similar tracks filtered to library", extra={"candidates": len(similar), "in_library": len(in_library)}
        )

        diverse = apply_diversity(in_library)
        if not diverse:
            return await self._fallback(request, FALLBACK_NO_LIBRARY_MATCHES)

        return RecommendationResult(
            mode=self.mode,
            source="lastfm",
            songs=[enriched_track_to_song(t) for t in diverse[: request.limit]],
            metadata=RecommendationMetadata(total_candidates=len(similar), filtered_count=len(in_library)),
        )


class DiscoveryStrategy(RecommendationStrategy):
    """
    Similar songs the library does not have yet, best match first.

    Last.fm failures are not caught here; there is no fallback for them.
    """

    mode = "discovery"

    def __init__(self, social: Optional[SocialMusicClient]) -> None:
        self._social = social

    def validate(self, request: RecommendationRequest) -> None:
        _require_seed(request)

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        seed = request.current_song
        if self._social is None:
            logger.warning("Last.fm not configured, discovery has no candidates")
            return RecommendationResult(
                mode=self.mode,
                source="fallback",
                songs=[],
                metadata=RecommendationMetadata(fallback_reason=FALLBACK_LASTFM_NOT_CONFIGURED),
            )

        try:
            similar = await self._social.get_similar_tracks(seed.artist, seed.title, request.limit * CANDIDATE_MULTIPLIER)
        except Exception as exc:
            logger.error("Last.fm lookup failed in discovery mode", extra={"error": str(exc)})
            raise

        not_in_library = [t for t in similar if not t.in_library]
        not_in_library = apply_exclusions(
            not_in_library,
            request.exclude_song_ids,
            request.exclude_artists,
            id_of=lambda t: discovery_id(t.artist, t.title),
            artist_of=lambda t: t.artist,
        )
        ranked = apply_diversity(sorted(not_in_library, key=lambda t: t.match or 0.0, reverse=True))
        logger.info("Discovery candidates ranked", extra={"candidates": len(not_in_library)})

        return RecommendationResult(
            mode=self.mode,
            source="lastfm",
            songs=[enriched_track_to_discovery_song(t) for t in ranked[: request.limit]],
            metadata=RecommendationMetadata(total_candidates=len(similar), filtered_count=len(not_in_library)),
        )


class MoodStrategy(RecommendationStrategy):
    """Library songs matching the smart playlist rules a mood translates to."""

    mode = "mood"

    def __init__(self, translator: MoodTranslator, library: LibrarySource, rng: random.Random) -> None:
        self._translator = translator
        self._library = library
        self._rng = rng

    def validate(self, request: RecommendationRequest) -> None:
        if not (request.mood_description or "").strip():
            raise RecommendationValidationError("moodDescription required for mood mode", field="moodDescription")

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        mood = request.mood_description.strip()
        logger.info("Processing mood", extra={"mood": mood})

        try:
            rules = await self._translator.translate_mood_to_query(mood)
            # Rule limit applies after exclusions.
            matched: List[Track] = await evaluate_smart_playlist(
                dataclasses.replace(rules, limit=None), self._library, EvaluationDiagnostics(), self._rng
            )
        except Exception as exc:
            logger.error("Smart playlist evaluation failed", extra={"mood": mood, "error": str(exc)})
            return await library_fallback(self._library, request, FALLBACK_SMART_PLAYLIST_ERROR, self._rng)

        kept = apply_exclusions(
            matched, request.exclude_song_ids, request.exclude_artists, id_of=lambda t: t.id, artist_of=lambda t: t.artist
        )
        selected = kept[: rules.limit] if rules.limit else kept
        return RecommendationResult(
            mode=self.mode,
            source="smart-playlist",
            songs=[library_track_to_song(t) for t in selected[: request.limit]],
            metadata=RecommendationMetadata(total_candidates=len(matched), filtered_count=len(kept)),
        )
