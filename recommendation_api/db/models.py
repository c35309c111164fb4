"""
SQLAlchemy ORM models for the local library snapshot.

This module defines:
- library_tracks: songs mirrored from the media server, read by the database-backed library source

All timestamps are in UTC. Identifiers are the media server's song ids.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import TIMESTAMP, Boolean, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for ORM models."""

    pass


class LibraryTrack(Base):
    """A song in the library snapshot."""

    __tablename__ = "library_tracks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    artist: Mapped[str] = mapped_column(String(512), nullable=False, default="", index=True)
    album: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    album_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    track_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    genre: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    year: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    play_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    loved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bitrate: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_library_tracks_title", "title"),
    )
