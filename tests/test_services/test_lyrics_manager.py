"""Tests for lyrics_player.services.lyrics.LyricsManager."""

import asyncio
import http.client
import logging
from unittest.mock import MagicMock, patch

import pytest

from lyrics_player.errors import (
    LyricsError,
    LyricsFileError,
    LyricsNetworkError,
    LyricsParseError,
    LyricsValidationError,
)
from lyrics_player.models import SearchRequest, TrackIdentity
from lyrics_player.services.cache import LyricsCache
from lyrics_player.services.lrclib import LRCLibSource, LyricsSource
from lyrics_player.services.lyrics import LyricsEvent, LyricsManager, LyricsState
from lyrics_player.utils.lrc import parse_lrc

LRC_A = "[00:00.00]alpha one\n[00:05.00]alpha two"
LRC_B = "[00:00.00]bravo one\n[00:05.00]bravo two\n[00:10.00]bravo three"


class FakeSource(LyricsSource):
    """In-memory source; lyrics keyed by title, optional per-title gates."""

    name = "fake"

    def __init__(self, lyrics=None, errors=None):
        self.lyrics: dict[str, str] = lyrics or {}
        self.errors: dict[str, Exception] = errors or {}
        self.gates: dict[str, asyncio.Event] = {}
        self.started: dict[str, asyncio.Event] = {}
        self.requests: list[SearchRequest] = []

    def gate(self, title: str) -> asyncio.Event:
        self.started[title] = asyncio.Event()
        self.gates[title] = asyncio.Event()
        return self.gates[title]

    async def fetch(self, request):
        self.requests.append(request)
        if request.title in self.started:
            self.started[request.title].set()
        if request.title in self.gates:
            await self.gates[request.title].wait()
        if request.title in self.errors:
            raise self.errors[request.title]
        return parse_lrc(self.lyrics.get(request.title, ""), source=self.name)

    async def search(self, request):
        self.requests.append(request)
        text = self.lyrics.get(request.title)
        return [parse_lrc(text, source=self.name)] if text else []


@pytest.fixture
def cache(tmp_cache_dir):
    return LyricsCache(tmp_cache_dir)


@pytest.fixture
def source():
    return FakeSource({"A": LRC_A, "B": LRC_B})


@pytest.fixture
def manager(cache, source):
    return LyricsManager(cache=cache, source=source)


TRACK_A = TrackIdentity("A", "Artist", duration_seconds=100)
TRACK_B = TrackIdentity("B", "Artist", duration_seconds=200)


class TestLoadLyrics:
    async def test_network_then_cached(self, manager, source, cache):
        doc = await manager.load_lyrics(TRACK_A)
        assert [line.text for line in doc.lines] == ["alpha one", "alpha two"]
        assert manager.current_document is doc
        assert manager.is_loading is False
        assert manager.error is None
        assert await cache.has(TRACK_A)
        assert len(source.requests) == 1
        assert source.requests[0].duration_seconds == 100

    async def test_cache_hit_skips_network(self, manager, source, cache):
        await cache.put(parse_lrc("[00:01.00]from cache"), TRACK_A)
        doc = await manager.load_lyrics(TRACK_A)
        assert doc.lines[0].text == "from cache"
        assert source.requests == []

    @pytest.mark.parametrize("track", [
        TrackIdentity("", "Artist"),
        TrackIdentity("Title", ""),
    ])
    async def test_invalid_track_is_silent_noop(self, manager, source, cache, track):
        result = await manager.load_lyrics(track)
        assert result is None
        assert manager.current_document is None
        assert manager.error is None
        assert manager.is_loading is False
        assert source.requests == []
        assert not cache.cache_dir.exists()

    async def test_no_lyrics_is_empty_document_not_error(self, manager, cache):
        track = TrackIdentity("Unknown Song", "Nobody")
        doc = await manager.load_lyrics(track)
        assert doc is not None and doc.is_empty
        assert manager.current_document.is_empty
        assert manager.error is None
        assert not await cache.has(track)

    @pytest.mark.parametrize("exc", [LyricsNetworkError("down"), LyricsParseError("junk")])
    async def test_source_failure_sets_error(self, cache, exc):
        manager = LyricsManager(cache=cache, source=FakeSource(errors={"A": exc}))
        result = await manager.load_lyrics(TRACK_A)
        assert result is None
        assert manager.error is exc
        assert manager.current_document is None
        assert manager.is_loading is False

    async def test_cache_write_failure_does_not_fail_load(self, tmp_path, source):
        cache = LyricsCache(tmp_path / "no-such-parent" / "lyrics")
        manager = LyricsManager(cache=cache, source=source)
        doc = await manager.load_lyrics(TRACK_A)
        assert len(doc) == 2
        assert manager.error is None
        assert manager.current_document is doc

    async def test_state_transitions(self, manager):
        states: list[LyricsState] = []
        manager.on(LyricsEvent.STATE_CHANGE, states.append)
        await manager.load_lyrics(TRACK_A)
        assert [s.is_loading for s in states] == [True, False]
        assert states[-1].track == TRACK_A
        assert states[-1].document is not None

    async def test_loading_flag_visible_while_fetching(self, manager, source):
        release = source.gate("A")
        task = asyncio.create_task(manager.load_lyrics(TRACK_A))
        await source.started["A"].wait()
        assert manager.is_loading is True
        release.set()
        await task
        assert manager.is_loading is False

    async def test_unexpected_failure_still_ends_loading(self, cache):
        source = FakeSource(errors={"A": RuntimeError("bug")})
        manager = LyricsManager(cache=cache, source=source)
        with pytest.raises(RuntimeError):
            await manager.load_lyrics(TRACK_A)
        assert manager.is_loading is False
        assert isinstance(manager.error, LyricsError)
        assert "bug" in str(manager.error)

    async def test_truncated_response_from_lrclib(self, cache):
        resp = MagicMock()
        resp.__enter__.return_value = resp
        resp.__exit__.return_value = False
        resp.read.side_effect = http.client.IncompleteRead(b"[", 100)
        manager = LyricsManager(cache=cache, source=LRCLibSource())
        with patch("lyrics_player.services.lrclib.urllib.request.urlopen", return_value=resp):
            assert await manager.load_lyrics(TrackIdentity("Song", "Band")) is None
        assert manager.is_loading is False
        assert isinstance(manager.error, LyricsNetworkError)


class TestStaleResponseGuard:
    async def test_later_track_wins(self, manager, source, cache):
        release_a = source.gate("A")
        release_b = source.gate("B")

        task_a = asyncio.create_task(manager.load_lyrics(TRACK_A))
        await source.started["A"].wait()
        task_b = asyncio.create_task(manager.load_lyrics(TRACK_B))
        await source.started["B"].wait()

        release_b.set()
        await task_b
        assert manager.state.track == TRACK_B

        release_a.set()
        assert await task_a is None
        assert manager.state.track == TRACK_B
        assert manager.current_document.lines[0].text == "bravo one"
        assert manager.is_loading is False
        # The superseded result is still cached for next time.
        assert await cache.has(TRACK_A)

    async def test_stale_error_is_discarded(self, cache):
        source = FakeSource({"B": LRC_B}, errors={"A": LyricsNetworkError("late")})
        manager = LyricsManager(cache=cache, source=source)
        release_a = source.gate("A")

        task_a = asyncio.create_task(manager.load_lyrics(TRACK_A))
        await source.started["A"].wait()
        await manager.load_lyrics(TRACK_B)
        release_a.set()
        await task_a

        assert manager.error is None
        assert manager.state.track == TRACK_B


class TestImportManual:
    async def test_import_copies_verbatim_and_loads(self, manager, cache, tmp_path):
        raw = "[ti:Mine]\n[00:02.00]  hand written  \n[00:01.00]earlier\n"
        lrc_file = tmp_path / "mine.lrc"
        lrc_file.write_text(raw, encoding="utf-8")

        doc = await manager.import_manual(TRACK_A, lrc_file)

        assert cache.path_for(TRACK_A).read_text(encoding="utf-8") == raw
        assert [line.text for line in doc.lines] == ["earlier", "hand written"]
        assert manager.current_document is doc
        assert manager.error is None

    async def test_import_overwrites_existing_entry(self, manager, cache, tmp_path):
        await manager.load_lyrics(TRACK_A)
        lrc_file = tmp_path / "new.lrc"
        lrc_file.write_text("[00:01.00]replacement", encoding="utf-8")
        await manager.import_manual(TRACK_A, lrc_file)
        cached = await cache.get(TRACK_A)
        assert [line.text for line in cached.lines] == ["replacement"]

    async def test_missing_file_reports_error(self, manager, tmp_path):
        with pytest.raises(LyricsFileError):
            await manager.import_manual(TRACK_A, tmp_path / "nope.lrc")
        assert isinstance(manager.error, LyricsFileError)

    async def test_invalid_track_rejected(self, manager, tmp_path):
        with pytest.raises(LyricsValidationError):
            await manager.import_manual(TrackIdentity("", ""), tmp_path / "x.lrc")

    async def test_write_failure_warns_once(self, tmp_path, source, caplog):
        lrc_file = tmp_path / "mine.lrc"
        lrc_file.write_text("[00:01.00]line", encoding="utf-8")
        manager = LyricsManager(cache=LyricsCache(tmp_path / "gone" / "lyrics"), source=source)
        caplog.set_level(logging.DEBUG, logger="lyrics_player")

        with pytest.raises(LyricsFileError):
            await manager.import_manual(TRACK_A, lrc_file)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1


class TestSaveSelectedAndSearch:
    async def test_search_online_passthrough(self, manager, source):
        results = await manager.search_online(SearchRequest("B"))
        assert len(results) == 1
        assert len(results[0]) == 3

    async def test_save_selected(self, manager, cache):
        doc = parse_lrc("[ti:Picked]\n[00:01.00]picked line")
        await manager.save_selected(TRACK_B, doc)
        assert manager.current_document is doc
        cached = await cache.get(TRACK_B)
        assert cached.metadata == {"ti": "Picked"}
        assert cached.lines[0].text == "picked line"


class TestPrefetch:
    async def test_prefetch_skips_cached_and_invalid(self, cache):
        source = FakeSource({"A": LRC_A, "B": LRC_B})
        manager = LyricsManager(cache=cache, source=source)
        await cache.put(parse_lrc(LRC_A), TRACK_A)

        result = await manager.prefetch_all([TRACK_A, TrackIdentity("", "x"), TRACK_B])

        assert result.cached == 1
        assert result.skipped == 1
        assert result.fetched == 1
        assert [r.title for r in source.requests] == ["B"]
        assert await cache.has(TRACK_B)

    async def test_prefetch_continues_after_failure(self, cache):
        source = FakeSource({"B": LRC_B}, errors={"A": LyricsNetworkError("down")})
        manager = LyricsManager(cache=cache, source=source)

        result = await manager.prefetch_all([TRACK_A, TRACK_B])

        assert result.failed == [TRACK_A]
        assert result.fetched == 1
        assert await cache.has(TRACK_B)

    async def test_prefetch_counts_missing(self, manager):
        result = await manager.prefetch_all([TrackIdentity("Nothing", "Here")])
        assert result.missing == 1
        assert result.fetched == 0

    async def test_prefetch_does_not_touch_state(self, manager):
        await manager.prefetch_all([TRACK_A])
        assert manager.current_document is None

    async def test_cancel_before_next_track(self, cache):
        source = FakeSource({"A": LRC_A, "B": LRC_B})
        manager = LyricsManager(cache=cache, source=source)
        release = source.gate("A")

        task = asyncio.create_task(manager.prefetch_all([TRACK_A, TRACK_B]))
        await source.started["A"].wait()
        manager.cancel_prefetch()
        release.set()
        result = await task

        assert result.cancelled is True
        assert result.fetched == 1
        assert not await cache.has(TRACK_B)

    async def test_delay_has_lower_bound(self, cache, source):
        manager = LyricsManager(cache=cache, source=source, prefetch_delay=0.0)
        assert manager._prefetch_delay == 0.5


class TestPositionTracking:
    async def test_line_change_events(self, manager):
        await manager.load_lyrics(TRACK_B)
        changes = []
        manager.on(LyricsEvent.LINE_CHANGE, lambda index, line: changes.append(index))

        for position in (0.0, 0.1, 0.2, 5.0, 5.5, 11.0, 20.0):
            manager.update_position(position)

        assert changes == [0, 1, 2, None]
        assert manager.current_line_index is None

    async def test_no_document_returns_none(self, manager):
        assert manager.update_position(3.0) is None

    async def test_state_change_resets_cursor(self, manager):
        await manager.load_lyrics(TRACK_A)
        manager.update_position(6.0)
        assert manager.current_line_index == 1
        await manager.load_lyrics(TRACK_B)
        assert manager.current_line_index is None


class TestCallbacks:
    async def test_off_and_duplicates(self, manager):
        calls = []
        cb = calls.append
        manager.on(LyricsEvent.STATE_CHANGE, cb)
        manager.on(LyricsEvent.STATE_CHANGE, cb)
        await manager.load_lyrics(TRACK_A)
        assert len(calls) == 2
        manager.off(LyricsEvent.STATE_CHANGE, cb)
        manager.off(LyricsEvent.STATE_CHANGE, cb)
        await manager.load_lyrics(TRACK_A)
        assert len(calls) == 2

    async def test_failing_callback_does_not_break_load(self, manager):
        def boom(_state):
            raise RuntimeError("callback bug")

        manager.on(LyricsEvent.STATE_CHANGE, boom)
        doc = await manager.load_lyrics(TRACK_A)
        assert doc is not None

    async def test_coroutine_callback_scheduled(self, manager):
        seen = asyncio.Event()

        async def on_state(state):
            if not state.is_loading:
                seen.set()

        manager.on(LyricsEvent.STATE_CHANGE, on_state)
        await manager.load_lyrics(TRACK_A)
        await asyncio.wait_for(seen.wait(), timeout=1)


class TestCacheDiagnostics:
    async def test_size_and_clear(self, manager):
        await manager.load_lyrics(TRACK_A)
        assert await manager.cache_size() > 0
        assert await manager.clear_cache() == 1
        assert await manager.cache_size() == 0
