"""
Smart playlist routes.

Exposes:
- POST /playlists/smart/preview: Evaluate a rule document against the library and return
  the matching songs plus any diagnostics about ignored conditions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from recommendation_api.api.deps import get_library_source
from recommendation_api.core.errors import ProviderError, RuleDocumentError
from recommendation_api.schemas.recommendations import SmartPlaylistPreviewRequest, SmartPlaylistPreviewResponse
from recommendation_api.services.normalization import library_track_to_song
from recommendation_api.services.smart_playlist import EvaluationDiagnostics, evaluate_smart_playlist, parse_rules
from recommendation_api.services.sources import LibrarySource

router = APIRouter(prefix="/playlists/smart", tags=["Smart Playlists"])


@router.post(
    "/preview",
    summary="Preview smart playlist",
    response_model=SmartPlaylistPreviewResponse,
    responses={
        200: {"description": "Songs matching the rules"},
        400: {"description": "Invalid rule document"},
        502: {"description": "Library unavailable"},
    },
)
async def preview_smart_playlist(
    payload: SmartPlaylistPreviewRequest,
    library: LibrarySource = Depends(get_library_source),
) -> SmartPlaylistPreviewResponse:
    """
    Evaluate smart playlist rules (Navidrome .nsp JSON shape) against the library.

    Returns:
    - songs matching the rules after sort/limit, and diagnostics for conditions the
      library cannot evaluate (they match everything).
    """
    try:
        rules = parse_rules(payload.rules)
    except RuleDocumentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    diagnostics = EvaluationDiagnostics()
    try:
        tracks = await evaluate_smart_playlist(rules, library, diagnostics)
    except ProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    return SmartPlaylistPreviewResponse(
        name=payload.name or rules.name,
        count=len(tracks),
        songs=[library_track_to_song(t) for t in tracks],
        diagnostics=diagnostics.notes,
    )
