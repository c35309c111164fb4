"""
FastAPI dependencies for the provider clients and the recommendation service.

Provides:
- build_providers: construct library source (creating the snapshot tables for the database backend), Last.fm client, mood translator and service from Settings
- get_library_source: library data source for the current app
- get_recommendation_service: recommendation service for the current app

Providers are created once in the app lifespan and stored on app.state so that the
HTTP connection pools are shared by concurrent requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from recommendation_api.clients.lastfm import LastFmClient, get_lastfm_client
from recommendation_api.clients.navidrome import NavidromeClient
from recommendation_api.core.config import Settings
from recommendation_api.core.logging import get_logger
from recommendation_api.db.init_db import create_all_tables
from recommendation_api.db.library_source import DbLibrarySource
from recommendation_api.db.session import get_session_factory
from recommendation_api.services.mood_translator import KeywordMoodTranslator
from recommendation_api.services.recommendations import RecommendationService, build_recommendation_service
from recommendation_api.services.sources import LibrarySource

logger = get_logger("api.deps")


@dataclass
class Providers:
    library: LibrarySource
    lastfm: Optional[LastFmClient]
    service: RecommendationService

    async def aclose(self) -> None:
        if self.lastfm is not None:
            await self.lastfm.aclose()
        if isinstance(self.library, NavidromeClient):
            await self.library.aclose()


# PUBLIC_INTERFACE
def build_providers(settings: Settings) -> Providers:
    """Create provider clients according to settings."""
    library: LibrarySource
    if settings.LIBRARY_BACKEND == "database":
        # Snapshot rows come from `python -m recommendation_api.db.sync`
        create_all_tables()
        library = DbLibrarySource(get_session_factory())
    else:
        library = NavidromeClient(
            base_url=settings.NAVIDROME_URL,
            username=settings.NAVIDROME_USER,
            password=settings.NAVIDROME_PASSWORD,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )

    lastfm = get_lastfm_client(settings, library)
    if lastfm is None:
        logger.warning("LASTFM_API_KEY not set; similar and discovery modes will use fallbacks")

    service = build_recommendation_service(library, lastfm, KeywordMoodTranslator())
    logger.info(
        "Providers ready",
        extra={"library_backend": settings.LIBRARY_BACKEND, "lastfm_configured": lastfm is not None},
    )
    return Providers(library=library, lastfm=lastfm, service=service)


# PUBLIC_INTERFACE
def get_library_source(request: Request) -> LibrarySource:
    """Library data source created at startup."""
    return request.app.state.providers.library


# PUBLIC_INTERFACE
def get_recommendation_service(request: Request) -> RecommendationService:
    """Recommendation service created at startup."""
    return request.app.state.providers.service
