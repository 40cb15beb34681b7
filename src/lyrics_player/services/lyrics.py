"""Lyrics orchestration: cache first, then network, with observable state."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum, auto
from pathlib import Path
from typing import Any

from lyrics_player.errors import (
    LyricsError,
    LyricsFileError,
    LyricsValidationError,
)
from lyrics_player.models import (
    DEFAULT_SEARCH_LIMIT,
    LyricDocument,
    SearchRequest,
    TrackIdentity,
)
from lyrics_player.services.cache import LyricsCache
from lyrics_player.services.lrclib import LyricsSource

logger = logging.getLogger(__name__)

# Lower bound on the pause between provider requests during bulk prefetch.
_MIN_PREFETCH_DELAY = 0.5


class LyricsEvent(StrEnum):
    """Events emitted by the LyricsManager."""

    STATE_CHANGE = auto()
    LINE_CHANGE = auto()


# Type alias for callback functions.
LyricsCallback = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class LyricsState:
    """Immutable snapshot published on every state transition."""

    track: TrackIdentity | None = None
    document: LyricDocument | None = None
    is_loading: bool = False
    error: LyricsError | None = None


@dataclass
class PrefetchResult:
    """Outcome counts of a bulk prefetch run."""

    fetched: int = 0
    cached: int = 0
    missing: int = 0
    skipped: int = 0
    failed: list[TrackIdentity] = field(default_factory=list)
    cancelled: bool = False


class LyricsManager:
    """Coordinates the lyrics cache and a remote source for the current track.

    All methods are meant to be called from a single event loop. State is
    replaced wholesale and published to ``STATE_CHANGE`` subscribers. A newer
    ``load_lyrics`` call supersedes older ones: their results may still be
    cached but never reach the published state.
    """

    def __init__(
        self,
        cache: LyricsCache,
        source: LyricsSource,
        prefetch_delay: float = _MIN_PREFETCH_DELAY,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> None:
        self._cache = cache
        self._source = source
        self._prefetch_delay = max(prefetch_delay, _MIN_PREFETCH_DELAY)
        self._search_limit = search_limit
        self._state = LyricsState()
        self._generation = 0
        self._line_index: int | None = None
        self._prefetch_cancelled = False
        self._callbacks: dict[LyricsEvent, list[LyricsCallback]] = {
            event: [] for event in LyricsEvent
        }

    # ── Callback registration ───────────────────────────────────────

    def on(self, event: LyricsEvent, callback: LyricsCallback) -> None:
        """Register a callback for a lyrics event (no duplicates)."""
        if callback not in self._callbacks[event]:
            self._callbacks[event].append(callback)

    def off(self, event: LyricsEvent, callback: LyricsCallback) -> None:
        """Unregister a callback for a lyrics event."""
        try:
            self._callbacks[event].remove(callback)
        except ValueError:
            pass

    def clear_callbacks(self) -> None:
        """Remove all registered callbacks."""
        for event in LyricsEvent:
            self._callbacks[event].clear()

    def _dispatch(self, event: LyricsEvent, *args: Any) -> None:
        """Call every callback for *event*; coroutine callbacks become tasks."""
        for cb in list(self._callbacks[event]):
            try:
                if inspect.iscoroutinefunction(cb):
                    asyncio.get_running_loop().create_task(cb(*args))
                else:
                    cb(*args)
            except Exception:
                logger.exception("Error in %s callback", event)

    # ── Properties ──────────────────────────────────────────────────

    @property
    def state(self) -> LyricsState:
        return self._state

    @property
    def current_document(self) -> LyricDocument | None:
        return self._state.document

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def error(self) -> LyricsError | None:
        return self._state.error

    @property
    def cache(self) -> LyricsCache:
        return self._cache

    @property
    def current_line_index(self) -> int | None:
        return self._line_index

    def _set_state(self, state: LyricsState) -> None:
        self._state = state
        self._line_index = None
        self._dispatch(LyricsEvent.STATE_CHANGE, state)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    # ── Loading ─────────────────────────────────────────────────────

    async def load_lyrics(self, track: TrackIdentity) -> LyricDocument | None:
        """Load lyrics for *track*, from the cache if possible, else the network.

        Returns the resulting document, or None when the track cannot be
        looked up or the load failed or was superseded.
        """
        token = self._next_generation()

        if not track.is_searchable:
            logger.debug("Track has empty title or artist, skipping lyrics lookup")
            self._set_state(LyricsState(track=track))
            return None

        logger.info("Loading lyrics for %r by %r", track.title, track.artist)
        self._set_state(
            LyricsState(track=track, document=self._state.document, is_loading=True)
        )

        cached = await self._cache.get(track)
        if token != self._generation:
            return None
        if cached is not None:
            logger.debug("Lyrics cache hit for %r", track.title)
            self._set_state(LyricsState(track=track, document=cached))
            return cached

        request = SearchRequest.from_track(track, limit=self._search_limit)
        try:
            document = await self._source.fetch(request)
        except LyricsError as exc:
            if token != self._generation:
                logger.debug("Discarding stale lyrics error for %r", track.title)
                return None
            logger.warning("Lyrics lookup failed for %r: %s", track.title, exc)
            self._set_state(
                LyricsState(track=track, document=self._state.document, error=exc)
            )
            return None
        except Exception as exc:
            if token == self._generation:
                logger.exception("Unexpected error loading lyrics for %r", track.title)
                self._set_state(
                    LyricsState(
                        track=track,
                        document=self._state.document,
                        error=LyricsError(f"Lyrics lookup failed: {exc}"),
                    )
                )
            raise

        if not document.is_empty:
            await self._store(document, track)

        if token != self._generation:
            logger.debug("Discarding stale lyrics result for %r", track.title)
            return None
        logger.info("Loaded %d lyric lines for %r", len(document), track.title)
        self._set_state(LyricsState(track=track, document=document))
        return document

    async def _store(self, document: LyricDocument, track: TrackIdentity) -> bool:
        """Persist *document*; failures are logged, never raised."""
        try:
            await self._cache.put(document, track)
        except LyricsFileError as exc:
            logger.warning("Could not cache lyrics for %r: %s", track.title, exc)
            return False
        return True

    # ── Manual import & selection ───────────────────────────────────

    async def import_manual(self, track: TrackIdentity, source_path: Path) -> LyricDocument:
        """Copy a user-chosen LRC file into the cache and make it current.

        The file is stored verbatim, then re-read through the cache.
        """
        if not track.is_searchable:
            raise LyricsValidationError("Track needs a title and artist to import lyrics")

        token = self._next_generation()
        try:
            try:
                text = await asyncio.to_thread(Path(source_path).read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise LyricsFileError(f"Failed to read {source_path}: {exc}") from exc
            await self._cache.put_raw(text, track)
            document = await self._cache.get(track)
            if document is None:
                raise LyricsFileError(f"Imported lyrics for {track.title!r} could not be read back")
        except LyricsFileError as exc:
            logger.warning("Manual lyrics import failed: %s", exc)
            if token == self._generation:
                self._set_state(
                    LyricsState(track=track, document=self._state.document, error=exc)
                )
            raise

        logger.info("Imported lyrics for %r from %s", track.title, source_path)
        if token == self._generation:
            self._set_state(LyricsState(track=track, document=document))
        return document

    async def save_selected(self, track: TrackIdentity, document: LyricDocument) -> None:
        """Persist a search result the user picked and make it current."""
        if not track.is_searchable:
            raise LyricsValidationError("Track needs a title and artist to save lyrics")
        self._next_generation()
        await self._cache.put(document, track)
        self._set_state(LyricsState(track=track, document=document))

    async def search_online(self, request: SearchRequest) -> list[LyricDocument]:
        """Candidate lyrics for an interactive search UI."""
        return await self._source.search(request)

    # ── Bulk prefetch ───────────────────────────────────────────────

    def cancel_prefetch(self) -> None:
        """Stop a running prefetch before its next track."""
        self._prefetch_cancelled = True

    async def prefetch_all(self, tracks: Iterable[TrackIdentity]) -> PrefetchResult:
        """Fetch and cache lyrics for every uncached track, one at a time.

        Best effort: a failing track is logged and the run continues.
        """
        self._prefetch_cancelled = False
        result = PrefetchResult()
        tracks = list(tracks)
        logger.info("Starting lyrics prefetch for %d tracks", len(tracks))

        for index, track in enumerate(tracks, start=1):
            if self._prefetch_cancelled:
                logger.info("Lyrics prefetch cancelled after %d tracks", index - 1)
                result.cancelled = True
                break
            if not track.is_searchable:
                result.skipped += 1
                continue
            if await self._cache.has(track):
                result.cached += 1
                continue

            logger.debug("Prefetching lyrics %d/%d: %r", index, len(tracks), track.title)
            try:
                document = await self._source.fetch(
                    SearchRequest.from_track(track, limit=self._search_limit)
                )
                if document.is_empty:
                    result.missing += 1
                elif await self._store(document, track):
                    result.fetched += 1
                else:
                    result.failed.append(track)
            except Exception:
                logger.warning("Prefetch failed for %r", track.title, exc_info=True)
                result.failed.append(track)

            await asyncio.sleep(self._prefetch_delay)

        logger.info(
            "Lyrics prefetch done: %d fetched, %d cached, %d missing, %d failed",
            result.fetched,
            result.cached,
            result.missing,
            len(result.failed),
        )
        return result

    # ── Timeline ────────────────────────────────────────────────────

    def update_position(self, position: float) -> int | None:
        """Feed the playback position; emits LINE_CHANGE when the active line moves."""
        document = self._state.document
        if document is None or document.is_empty:
            return None
        index = document.current_line_index(position)
        if index != self._line_index:
            self._line_index = index
            line = document.lines[index] if index is not None else None
            self._dispatch(LyricsEvent.LINE_CHANGE, index, line)
        return index

    # ── Cache diagnostics ───────────────────────────────────────────

    async def clear_cache(self) -> int:
        return await self._cache.clear()

    async def cache_size(self) -> int:
        return await self._cache.size()
