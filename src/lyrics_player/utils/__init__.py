"""Utility modules."""

from __future__ import annotations

from lyrics_player.utils.formatting import (
    format_duration,
    format_size,
    format_time_tag,
    sanitize_filename,
)

__all__ = [
    "format_duration",
    "format_size",
    "format_time_tag",
    "sanitize_filename",
]
