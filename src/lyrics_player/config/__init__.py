"""Configuration management for lyrics-player."""

from __future__ import annotations

from lyrics_player.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
