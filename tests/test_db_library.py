"""Tests for the database-backed library source (in-memory SQLite)."""

from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recommendation_api.api.deps import build_providers
from recommendation_api.core.config import Settings
from recommendation_api.core.errors import LibraryUnavailableError
from recommendation_api.db.crud import list_tracks, search_tracks, upsert_tracks
from recommendation_api.db.init_db import create_all_tables
from recommendation_api.db.library_source import DbLibrarySource
from recommendation_api.db.sync import sync_library


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine, sample_library):
    create_all_tables(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with factory() as db:
        upsert_tracks(db, sample_library.songs)
    return factory


def test_list_tracks_is_ordered_by_artist(session_factory):
    with session_factory() as db:
        tracks = list_tracks(db, 0, 10)
    assert [t.artist for t in tracks] == ["Aphex Twin", "Massive Attack", "Miles Davis", "Radiohead", "The Verve", "a-ha"]
    assert tracks[3].url == "/stream/lib-1"
    assert tracks[3].loved is True


def test_list_tracks_pages(session_factory):
    with session_factory() as db:
        assert [t.id for t in list_tracks(db, 1, 2)] == ["lib-5", "lib-3"]


def test_search_requires_every_term(session_factory):
    with session_factory() as db:
        assert [t.id for t in search_tracks(db, "radiohead karma")] == ["lib-1"]
        assert [t.id for t in search_tracks(db, "KIND blue")] == ["lib-3"]
        assert search_tracks(db, "radiohead teardrop") == []
        assert search_tracks(db, "   ") == []


def test_upsert_updates_existing_rows(session_factory, track_factory):
    with session_factory() as db:
        written = upsert_tracks(db, [track_factory("lib-1", "Karma Police (Live)", "Radiohead", play_count=99)])
        assert written == 1
        tracks = search_tracks(db, "karma")
    assert len(tracks) == 1
    assert tracks[0].title == "Karma Police (Live)"
    assert tracks[0].play_count == 99


@pytest.mark.asyncio
async def test_library_source(session_factory):
    source = DbLibrarySource(session_factory)
    assert len(await source.list_songs(0, 100)) == 6
    assert [t.id for t in await source.search("verve", 0, 5)] == ["lib-2"]


@pytest.mark.asyncio
async def test_database_errors_become_library_unavailable(engine):
    # No tables created
    source = DbLibrarySource(sessionmaker(bind=engine))
    with pytest.raises(LibraryUnavailableError):
        await source.list_songs(0, 10)


@pytest.mark.asyncio
async def test_listed_ids_resolve_back_to_the_same_track(session_factory):
    source = DbLibrarySource(session_factory)
    listed = await source.list_songs(0, 100)
    assert listed
    for track in listed:
        assert track in await source.search(f"{track.artist} {track.title}", 0, 10)


@pytest.fixture
def empty_session_factory(engine):
    create_all_tables(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.mark.asyncio
async def test_sync_pages_until_short_page(empty_session_factory, sample_library):
    written = await sync_library(sample_library, empty_session_factory, page_size=4)
    assert written == 6
    assert sample_library.list_calls == [(0, 4), (4, 4)]
    source = DbLibrarySource(empty_session_factory)
    assert sorted(t.id for t in await source.list_songs(0, 100)) == [f"lib-{i}" for i in range(1, 7)]


@pytest.mark.asyncio
async def test_sync_stops_after_empty_page(empty_session_factory, sample_library):
    assert await sync_library(sample_library, empty_session_factory, page_size=3) == 6
    assert sample_library.list_calls == [(0, 3), (3, 3), (6, 3)]


@pytest.mark.asyncio
async def test_resync_updates_in_place(empty_session_factory, sample_library):
    await sync_library(sample_library, empty_session_factory)
    await sync_library(sample_library, empty_session_factory)
    with empty_session_factory() as db:
        assert len(list_tracks(db, 0, 100)) == 6


@pytest.mark.asyncio
async def test_sync_propagates_source_errors(empty_session_factory, library_factory):
    with pytest.raises(LibraryUnavailableError):
        await sync_library(library_factory(error=LibraryUnavailableError("down")), empty_session_factory)


@pytest.mark.asyncio
async def test_sync_rejects_non_positive_page_size(empty_session_factory, sample_library):
    with pytest.raises(ValueError):
        await sync_library(sample_library, empty_session_factory, page_size=0)


@pytest.mark.asyncio
async def test_database_backend_creates_tables_on_startup(engine):
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    with patch("recommendation_api.db.init_db.get_engine", return_value=engine), patch(
        "recommendation_api.api.deps.get_session_factory", return_value=factory
    ):
        providers = build_providers(Settings(LIBRARY_BACKEND="database", LASTFM_API_KEY=None))
    assert inspect(engine).has_table("library_tracks")
    assert isinstance(providers.library, DbLibrarySource)
    assert await providers.library.list_songs(0, 10) == []
    await providers.aclose()
