"""
Artist diversity cap for recommendation candidates.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Protocol, Sequence, TypeVar

MAX_PER_ARTIST = 2


class _HasArtist(Protocol):
    artist: str


T = TypeVar("T", bound=_HasArtist)


def normalize_artist(name: str) -> str:
    """Trimmed, case-folded artist name used for artist comparisons."""
    return (name or "").strip().casefold()


# PUBLIC_INTERFACE
def apply_diversity(tracks: Sequence[T]) -> List[T]:
    """
    Keep at most MAX_PER_ARTIST tracks per artist, preserving input order.

    Artists are compared case-insensitively after trimming. The third and later
    tracks of an artist are dropped.
    """
    counts: Dict[str, int] = defaultdict(int)
    kept: List[T] = []
    for track in tracks:
        key = normalize_artist(track.artist)
        if counts[key] >= MAX_PER_ARTIST:
            continue
        counts[key] += 1
        kept.append(track)
    return kept
