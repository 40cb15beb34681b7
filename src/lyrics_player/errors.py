"""Exception hierarchy for lyrics lookup, caching and import."""

from __future__ import annotations


class LyricsError(Exception):
    """Base class for every error raised by lyrics-player."""


class LyricsValidationError(LyricsError, ValueError):
    """Raised when a track is missing the title or artist needed for lookup."""


class LyricsNetworkError(LyricsError):
    """Raised when the lyrics provider cannot be reached or times out."""


class LyricsParseError(LyricsError):
    """Raised when a provider response body cannot be decoded."""


class LyricsFileError(LyricsError, OSError):
    """Raised when a cache or import file operation fails (e.g. disk full)."""
