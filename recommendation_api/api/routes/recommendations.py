"""
Recommendations routes.

Exposes:
- POST /recommendations: Returns recommended songs for a mode (similar, discovery, mood)
  along with provenance metadata (source, fallbackReason).
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException, status

from recommendation_api.api.deps import get_recommendation_service
from recommendation_api.core.errors import ProviderError, RecommendationValidationError
from recommendation_api.schemas.recommendations import RecommendationRequest, RecommendationResult
from recommendation_api.services.observability import record_recommendation
from recommendation_api.services.recommendations import RecommendationService

router = APIRouter(prefix="", tags=["Recommendations"])


@router.post(
    "/recommendations",
    summary="Get recommendations",
    response_model=RecommendationResult,
    response_model_exclude_none=True,
    responses={
        200: {"description": "Recommendations with provenance metadata"},
        400: {"description": "Invalid request (unknown mode, missing seed or mood)"},
        502: {"description": "Last.fm failed in discovery mode"},
    },
)
async def get_recommendations(
    payload: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResult:
    """
    Return recommendations for the requested mode.

    Parameters:
    - mode: similar | discovery | mood
    - currentSong: seed {artist, title} (similar, discovery)
    - moodDescription: free text (mood)
    - excludeSongIds / excludeArtists: results to leave out
    - limit: maximum number of songs (default 10)

    Behavior:
    - Falls back to library songs when Last.fm or the smart playlist path cannot deliver;
      metadata.fallbackReason names the cause.
    - Discovery mode has no fallback for Last.fm failures; they return 502.
    """
    start = time.perf_counter()
    try:
        result = await service.get_recommendations(payload)
    except RecommendationValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    await record_recommendation(result, (time.perf_counter() - start) * 1000.0)
    return result
