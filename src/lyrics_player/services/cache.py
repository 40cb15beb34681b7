"""On-disk LRC cache keyed by track identity."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from pathlib import Path

from lyrics_player.errors import LyricsFileError
from lyrics_player.models import LyricDocument, TrackIdentity
from lyrics_player.utils.formatting import sanitize_filename
from lyrics_player.utils.lrc import parse_lrc, serialize_lrc

logger = logging.getLogger(__name__)

_CACHE_SUFFIX = ".lrc"

# Writes are serialized per lock stripe; names sharing a stripe wait on each other.
_LOCK_STRIPES = 32


def cache_file_name(track: TrackIdentity) -> str:
    """Deterministic ``"{artist} - {title}.lrc"`` name with unsafe chars replaced."""
    return f"{sanitize_filename(track.artist)} - {sanitize_filename(track.title)}{_CACHE_SUFFIX}"


class LyricsCache:
    """Stores one LRC file per track in a flat directory.

    A file's existence is the cache-hit signal; there is no index and no
    expiry. Every write goes to a temporary file that is renamed over the
    target, and writes to the same file are serialized by a striped lock
    keyed on the file name.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = cache_dir
        self._locks = tuple(threading.Lock() for _ in range(_LOCK_STRIPES))

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def path_for(self, track: TrackIdentity) -> Path:
        return self._cache_dir / cache_file_name(track)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def get(self, track: TrackIdentity) -> LyricDocument | None:
        """Return the cached document for *track*, or None on a miss.

        Unreadable files are treated as a miss.
        """
        return await asyncio.to_thread(self._read_sync, self.path_for(track))

    async def has(self, track: TrackIdentity) -> bool:
        return await asyncio.to_thread(self.path_for(track).is_file)

    async def put(self, document: LyricDocument, track: TrackIdentity) -> Path:
        """Serialize *document* and write it as the cache entry for *track*."""
        return await self.put_raw(serialize_lrc(document), track)

    async def put_raw(self, text: str, track: TrackIdentity) -> Path:
        """Write *text* verbatim as the cache entry for *track*."""
        dest = self.path_for(track)
        try:
            await asyncio.to_thread(self._write_sync, dest, text)
        except OSError as exc:
            logger.debug("Lyrics cache write failed for %s: %s", dest.name, exc)
            raise LyricsFileError(f"Failed to cache lyrics to {dest}: {exc}") from exc
        logger.debug("Cached lyrics to %s", dest)
        return dest

    async def remove(self, track: TrackIdentity) -> None:
        """Remove the cache entry for *track* if there is one."""
        path = self.path_for(track)
        try:
            await asyncio.to_thread(self._remove_sync, path)
        except OSError as exc:
            logger.warning("Lyrics cache remove failed for %s: %s", path.name, exc)
            raise LyricsFileError(f"Failed to remove {path}: {exc}") from exc

    async def clear(self) -> int:
        """Delete every cached file. Returns the number of files removed."""
        try:
            removed = await asyncio.to_thread(self._clear_sync)
        except OSError as exc:
            logger.warning("Lyrics cache clear failed: %s", exc)
            raise LyricsFileError(f"Failed to clear lyrics cache: {exc}") from exc
        logger.info("Lyrics cache cleared (%d files)", removed)
        return removed

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def size(self) -> int:
        """Total size in bytes of all cached files."""
        return sum(size for _name, size in await asyncio.to_thread(self._list_sync))

    async def get_status(self) -> dict:
        """Return a summary of cache usage."""
        entries = await asyncio.to_thread(self._list_sync)
        return {
            "file_count": len(entries),
            "total_size": sum(size for _name, size in entries),
            "cache_dir": str(self._cache_dir),
        }

    # ------------------------------------------------------------------
    # Internal helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _lock_for(self, path: Path) -> threading.Lock:
        return self._locks[hash(path.name) % _LOCK_STRIPES]

    def _ensure_dir(self) -> None:
        # Only our own directory; the parent belongs to the host application.
        self._cache_dir.mkdir(exist_ok=True)

    def _read_sync(self, path: Path) -> LyricDocument | None:
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read cached lyrics %s: %s", path.name, exc)
            return None
        logger.debug("Loaded cached lyrics from %s", path)
        return parse_lrc(text)

    def _write_sync(self, dest: Path, text: str) -> None:
        self._ensure_dir()
        with self._lock_for(dest):
            fd, tmp_name = tempfile.mkstemp(
                dir=self._cache_dir, prefix=".tmp-", suffix=_CACHE_SUFFIX
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                    f.write(text)
                os.replace(tmp_name, dest)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def _remove_sync(self, path: Path) -> None:
        with self._lock_for(path):
            path.unlink(missing_ok=True)

    def _iter_entries(self) -> list[Path]:
        if not self._cache_dir.is_dir():
            return []
        return [
            p
            for p in self._cache_dir.iterdir()
            if p.is_file() and p.suffix == _CACHE_SUFFIX and not p.name.startswith(".tmp-")
        ]

    def _list_sync(self) -> list[tuple[str, int]]:
        return [(p.name, p.stat().st_size) for p in self._iter_entries()]

    def _clear_sync(self) -> int:
        removed = 0
        for path in self._iter_entries():
            self._remove_sync(path)
            removed += 1
        return removed
