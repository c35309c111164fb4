"""
Recommendation service.

Single entry point for every recommendation mode:
- similar:   library songs similar to a seed track (Last.fm + library intersection)
- discovery: similar songs that are not in the library yet
- mood:      library songs matching a mood, via smart playlist rules

The service validates the request, dispatches to the strategy registered for the
mode and returns the strategy's result. Fallback handling lives in the strategies
(see services.strategies); only request validation errors and discovery-mode
provider failures reach the caller.

Design notes:
- Stateless between requests; the only shared objects are the provider clients.
- No retries here. Each provider is called at most once per request.
"""

from __future__ import annotations

import random
from typing import Dict, Iterable, Optional

from recommendation_api.core.errors import RecommendationValidationError
from recommendation_api.core.logging import get_logger
from recommendation_api.schemas.recommendations import RecommendationRequest, RecommendationResult
from recommendation_api.services.strategies import (
    DiscoveryStrategy,
    MoodStrategy,
    RecommendationStrategy,
    SimilarStrategy,
)
from recommendation_api.services.sources import LibrarySource, MoodTranslator, SocialMusicClient

logger = get_logger("services.recommendations")


class RecommendationService:
    """Dispatches recommendation requests to per-mode strategies."""

    def __init__(self, strategies: Iterable[RecommendationStrategy]) -> None:
        self._strategies: Dict[str, RecommendationStrategy] = {s.mode: s for s in strategies}

    # PUBLIC_INTERFACE
    async def get_recommendations(self, request: RecommendationRequest) -> RecommendationResult:
        """
        Produce recommendations for request.

        Raises:
        - RecommendationValidationError for an unknown mode or a missing seed/mood.
        - The provider error in discovery mode when Last.fm fails.

        Returns:
        - RecommendationResult with provenance metadata (source, fallbackReason).
        """
        strategy = self._strategies.get(request.mode)
        if strategy is None:
            raise RecommendationValidationError(f"Unknown recommendation mode: {request.mode}", field="mode")
        strategy.validate(request)

        logger.info("Getting recommendations", extra={"mode": request.mode, "limit": request.limit})
        result = await strategy.recommend(request)
        logger.info(
            "Recommendations ready",
            extra={
                "mode": result.mode,
                "source": result.source,
                "count": len(result.songs),
                "fallback_reason": result.metadata.fallback_reason,
            },
        )
        return result


# PUBLIC_INTERFACE
def build_recommendation_service(
    library: LibrarySource,
    social: Optional[SocialMusicClient],
    translator: MoodTranslator,
    rng: Optional[random.Random] = None,
) -> RecommendationService:
    """Wire the three strategies to their collaborators. social=None means Last.fm is not configured."""
    rng = rng or random.Random()
    return RecommendationService(
        [
            SimilarStrategy(social, library, rng),
            DiscoveryStrategy(social),
            MoodStrategy(translator, library, rng),
        ]
    )
