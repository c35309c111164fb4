"""
Library data source backed by the local database snapshot.

Queries run in Starlette's threadpool so the event loop is never blocked by the
synchronous SQLAlchemy session.
"""

from __future__ import annotations

from typing import Callable, List, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from recommendation_api.core.errors import LibraryUnavailableError
from recommendation_api.db.crud import list_tracks, search_tracks
from recommendation_api.services.sources import Track

T = TypeVar("T")


class DbLibrarySource:
    """LibrarySource implementation over the library_tracks table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _run(self, query: Callable[[Session], T]) -> T:
        db = self._session_factory()
        try:
            return query(db)
        except SQLAlchemyError as exc:
            raise LibraryUnavailableError(f"Library database query failed: {exc}") from exc
        finally:
            db.close()

    # PUBLIC_INTERFACE
    async def list_songs(self, offset: int, limit: int) -> List[Track]:
        return await run_in_threadpool(self._run, lambda db: list_tracks(db, offset, limit))

    # PUBLIC_INTERFACE
    async def search(self, text: str, offset: int = 0, limit: int = 50) -> List[Track]:
        return await run_in_threadpool(self._run, lambda db: search_tracks(db, text, offset, limit))
