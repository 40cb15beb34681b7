"""Centralized path definitions for lyrics-player.

Single source of truth for all filesystem paths used across the application.
Respects $XDG_CONFIG_HOME and $XDG_CACHE_HOME when set.
"""

from __future__ import annotations

import os
from pathlib import Path

_xdg_config = os.environ.get("XDG_CONFIG_HOME")
_xdg_cache = os.environ.get("XDG_CACHE_HOME")

SECURE_FILE_MODE = 0o600
SECURE_DIR_MODE = 0o700

CONFIG_DIR = (
    (Path(_xdg_config) / "lyrics-player")
    if _xdg_config
    else (Path.home() / ".config" / "lyrics-player")
)
CONFIG_FILE = CONFIG_DIR / "config.toml"

CACHE_ROOT = (
    (Path(_xdg_cache) / "lyrics-player")
    if _xdg_cache
    else (Path.home() / ".cache" / "lyrics-player")
)
# The lyrics store creates only this last component itself.
LYRICS_CACHE_DIR = CACHE_ROOT / "lyrics"

_dirs_ensured = False


def ensure_dirs() -> None:
    """Create the application's config and cache roots with secure permissions.

    Called lazily on first invocation (not at import time) so that merely
    importing the module does not create directories on disk, which keeps
    tests isolated.
    """
    global _dirs_ensured
    if _dirs_ensured:
        return
    for _dir in (CONFIG_DIR, CACHE_ROOT):
        _dir.mkdir(parents=True, exist_ok=True)
        os.chmod(_dir, SECURE_DIR_MODE)
    _dirs_ensured = True
