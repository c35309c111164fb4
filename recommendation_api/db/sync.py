"""
Copy the media server library into the local snapshot table.

Run this before starting the API with LIBRARY_BACKEND=database, and again whenever
the library changes:

    python -m recommendation_api.db.sync [--page-size 500]
"""

from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from recommendation_api.clients.navidrome import NavidromeClient
from recommendation_api.core.config import Settings, get_settings
from recommendation_api.core.errors import ProviderError
from recommendation_api.core.logging import get_logger
from recommendation_api.db.crud import upsert_tracks
from recommendation_api.db.init_db import create_all_tables
from recommendation_api.db.session import get_session_factory
from recommendation_api.services.sources import LibrarySource, Track

logger = get_logger("db.sync")

SYNC_PAGE_SIZE = 500


def _write_page(session_factory: sessionmaker, page: List[Track]) -> int:
    with session_factory() as db:
        return upsert_tracks(db, page)


# PUBLIC_INTERFACE
async def sync_library(source: LibrarySource, session_factory: sessionmaker, page_size: int = SYNC_PAGE_SIZE) -> int:
    """
    Page through source.list_songs and upsert every page into library_tracks.

    Stops at the first page shorter than page_size.

    Returns:
        Number of rows written.
    Raises:
        ValueError: page_size is not positive.
        ProviderError: the source failed; pages written so far stay committed.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    written = 0
    offset = 0
    while True:
        page = await source.list_songs(offset, page_size)
        if page:
            written += await run_in_threadpool(_write_page, session_factory, page)
        logger.debug("Synced library page", extra={"offset": offset, "count": len(page)})
        if len(page) < page_size:
            break
        offset += page_size

    logger.info("Library sync complete", extra={"tracks": written})
    return written


async def _sync_from_navidrome(settings: Settings, page_size: int) -> int:
    create_all_tables()
    client = NavidromeClient(
        base_url=settings.NAVIDROME_URL,
        username=settings.NAVIDROME_USER,
        password=settings.NAVIDROME_PASSWORD,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
    try:
        return await sync_library(client, get_session_factory(), page_size)
    finally:
        await client.aclose()


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point. Returns the process exit code."""
    parser = argparse.ArgumentParser(description="Copy the Navidrome library into the recommendation database.")
    parser.add_argument("--page-size", type=int, default=SYNC_PAGE_SIZE, help="Songs fetched per request")
    args = parser.parse_args(argv)

    try:
        asyncio.run(_sync_from_navidrome(get_settings(), args.page_size))
    except (ProviderError, ValueError) as exc:
        logger.error("Library sync failed", extra={"error": str(exc)})
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
