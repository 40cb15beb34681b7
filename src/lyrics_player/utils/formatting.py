"""Formatting utilities for display values and cache file names."""

from __future__ import annotations

import re

# Characters that are unsafe in file names on at least one supported platform.
_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')


def format_duration(seconds: int) -> str:
    if seconds < 0:
        seconds = 0

    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_size(bytes_val: int) -> str:
    size = float(bytes_val)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


def format_time_tag(seconds: float) -> str:
    """Render *seconds* as an LRC ``MM:SS.fff`` time tag body (no brackets)."""
    millis = max(0, round(seconds * 1000))
    minutes, remainder = divmod(millis, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{minutes:02d}:{secs:02d}.{millis:03d}"


def sanitize_filename(text: str) -> str:
    """Replace each of ``/ \\ : * ? " < > |`` with an underscore."""
    return _UNSAFE_FILENAME_CHARS.sub("_", text)


def extract_duration(track: dict) -> int | None:
    """Extract duration in seconds from various track dict formats.

    Returns None when the track carries no usable duration.
    """
    dur = track.get("duration_seconds")
    if isinstance(dur, (int, float)) and not isinstance(dur, bool):
        return int(dur)
    dur = track.get("duration")
    if isinstance(dur, (int, float)) and not isinstance(dur, bool):
        return int(dur)
    if isinstance(dur, str) and ":" in dur:
        parts = dur.split(":")
        try:
            if len(parts) == 2:
                return int(parts[0]) * 60 + int(parts[1])
            if len(parts) == 3:
                return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
        except ValueError:
            pass
    return None
