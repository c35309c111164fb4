"""
Data-access helpers for the library snapshot.

Contains functions for:
- Upserting tracks mirrored from the media server
- Listing tracks in a stable order
- Token-based search across title, artist and album

All functions expect a SQLAlchemy Session (2.0 style).
"""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from recommendation_api.db.models import LibraryTrack
from recommendation_api.services.sources import Track

_TRACK_COLUMNS = (
    "title", "artist", "album", "album_id", "duration", "track_number",
    "genre", "year", "play_count", "rating", "loved", "bitrate",
)


def row_to_track(row: LibraryTrack) -> Track:
    return Track(
        id=row.id,
        title=row.title,
        artist=row.artist,
        album=row.album,
        album_id=row.album_id,
        duration=row.duration,
        track_number=row.track_number,
        genre=row.genre,
        year=row.year,
        play_count=row.play_count,
        rating=row.rating,
        loved=row.loved,
        bitrate=row.bitrate,
        url=f"/stream/{row.id}",
    )


def _ordered():
    return select(LibraryTrack).order_by(
        LibraryTrack.artist, LibraryTrack.album, LibraryTrack.track_number, LibraryTrack.id
    )


# PUBLIC_INTERFACE
def upsert_tracks(db: Session, tracks: Iterable[Track]) -> int:
    """Insert or update tracks by id. Returns the number of rows written."""
    count = 0
    for track in tracks:
        row = db.get(LibraryTrack, track.id)
        if row is None:
            row = LibraryTrack(id=track.id)
            db.add(row)
        for column in _TRACK_COLUMNS:
            setattr(row, column, getattr(track, column))
        count += 1
    db.commit()
    return count


# PUBLIC_INTERFACE
def list_tracks(db: Session, offset: int, limit: int) -> List[Track]:
    """Page through the library ordered by artist, album and track number."""
    stmt = _ordered().offset(offset).limit(limit)
    return [row_to_track(r) for r in db.execute(stmt).scalars().all()]


# PUBLIC_INTERFACE
def search_tracks(db: Session, text: str, offset: int = 0, limit: int = 50) -> List[Track]:
    """
    Case-insensitive search: every whitespace-separated term must appear in the
    title, artist or album.
    """
    terms = [t for t in text.split() if t]
    if not terms:
        return []
    clauses = [
        or_(
            LibraryTrack.title.ilike(f"%{term}%"),
            LibraryTrack.artist.ilike(f"%{term}%"),
            LibraryTrack.album.ilike(f"%{term}%"),
        )
        for term in terms
    ]
    stmt = _ordered().where(and_(*clauses)).offset(offset).limit(limit)
    return [row_to_track(r) for r in db.execute(stmt).scalars().all()]
