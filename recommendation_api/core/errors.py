"""
Exception hierarchy for the recommendation core.

- RecommendationValidationError: the request itself is malformed (surfaced to callers).
- ProviderError and subclasses: an external collaborator failed or is unreachable.
- RuleDocumentError: a smart playlist rule document cannot be decoded.
"""

from __future__ import annotations

from typing import Optional


class RecommendationError(Exception):
    """Base class for recommendation core errors."""


class RecommendationValidationError(RecommendationError):
    """Raised when a recommendation request is missing required fields or names an unknown mode."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class RuleDocumentError(RecommendationError):
    """Raised when a smart playlist rule document has an invalid shape."""


class ProviderError(RecommendationError):
    """An external data provider failed."""

    provider = "provider"


class LibraryUnavailableError(ProviderError):
    """The library data source could not be reached or returned an error."""

    provider = "navidrome"


class LastFmError(ProviderError):
    """Last.fm request failure with a coarse error code."""

    provider = "lastfm"

    def __init__(self, code: str, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.code = code
        self.retry_after = retry_after

    def __str__(self) -> str:
        return f"{self.code}: {self.args[0]}"
