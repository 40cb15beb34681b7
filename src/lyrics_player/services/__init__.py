"""Lyrics services: cache store, remote sources and the orchestrating manager."""

from __future__ import annotations

from lyrics_player.services.cache import LyricsCache
from lyrics_player.services.lrclib import LRCLibSource, LyricsSource
from lyrics_player.services.lyrics import LyricsEvent, LyricsManager, LyricsState

__all__ = [
    "LyricsCache",
    "LyricsSource",
    "LRCLibSource",
    "LyricsManager",
    "LyricsEvent",
    "LyricsState",
]
