"""
Pydantic schemas for recommendation requests and results.

Field aliases (camelCase) are part of the public contract consumed by the dashboard.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

RecommendationSource = Literal["lastfm", "smart-playlist", "fallback"]


class SeedTrack(BaseModel):
    artist: str = Field(..., description="Seed artist name")
    title: str = Field(..., description="Seed track title")


class RecommendationRequest(BaseModel):
    mode: str = Field(..., description="Recommendation mode: similar, discovery or mood")
    current_song: Optional[SeedTrack] = Field(
        None, alias="currentSong", description="Seed track (required for similar and discovery)"
    )
    mood_description: Optional[str] = Field(
        None, alias="moodDescription", description="Free-text mood (required for mood)"
    )
    exclude_song_ids: List[str] = Field(
        default_factory=list, alias="excludeSongIds", description="Song IDs to exclude from results"
    )
    exclude_artists: List[str] = Field(
        default_factory=list, alias="excludeArtists", description="Artist names to exclude from results"
    )
    limit: int = Field(10, ge=1, le=100, description="Maximum number of songs to return")

    class Config:
        populate_by_name = True


class Song(BaseModel):
    id: str = Field(..., description="Library id, or a synthesized discovery id")
    title: str
    artist: str
    album: str = ""
    album_id: str = Field("", alias="albumId")
    duration: int = Field(0, description="Duration in seconds")
    track: int = Field(0, description="Track number")
    url: str = Field(..., description="Stream URL for library songs, external page for discovery songs")

    class Config:
        populate_by_name = True
        frozen = True


class RecommendationMetadata(BaseModel):
    total_candidates: Optional[int] = Field(None, alias="totalCandidates")
    filtered_count: Optional[int] = Field(None, alias="filteredCount")
    fallback_reason: Optional[str] = Field(None, alias="fallbackReason")

    class Config:
        populate_by_name = True
        frozen = True


class RecommendationResult(BaseModel):
    mode: str
    source: RecommendationSource
    songs: List[Song] = Field(default_factory=list)
    metadata: RecommendationMetadata = Field(default_factory=RecommendationMetadata)

    class Config:
        populate_by_name = True
        frozen = True


class SmartPlaylistPreviewRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=100, description="Optional playlist name, echoed back")
    rules: dict = Field(..., description="Smart playlist rule document (Navidrome .nsp JSON shape)")


class SmartPlaylistPreviewResponse(BaseModel):
    name: Optional[str] = None
    count: int
    songs: List[Song] = Field(default_factory=list)
    diagnostics: List[str] = Field(default_factory=list)
