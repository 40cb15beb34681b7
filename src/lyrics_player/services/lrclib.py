"""Lyrics sources: the provider interface and the LRCLIB.net implementation."""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any

from lyrics_player import __version__
from lyrics_player.errors import LyricsError, LyricsNetworkError, LyricsParseError
from lyrics_player.models import LyricDocument, SearchRequest
from lyrics_player.utils.lrc import parse_lrc

logger = logging.getLogger(__name__)

_BASE_URL = "https://lrclib.net/api"
_TIMEOUT = 10
_USER_AGENT = f"lyrics-player/{__version__}"

# LRCLIB requires an album name on /get; we rarely know it.
_PLACEHOLDER_ALBUM = "Unknown Album"

SOURCE_NAME = "LRCLIB"


class LyricsSource(ABC):
    """A remote provider that can look up synced lyrics."""

    name: str = "unknown"

    @abstractmethod
    async def fetch(self, request: SearchRequest) -> LyricDocument:
        """Return the best lyrics for *request*.

        An empty document means the provider has no lyrics for the track.
        Raises LyricsNetworkError or LyricsParseError on failure.
        """

    @abstractmethod
    async def search(self, request: SearchRequest) -> list[LyricDocument]:
        """Return ranked candidate documents for interactive selection."""


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def matches_request(track_name: str, artist_name: str, request: SearchRequest) -> bool:
    """Loose match: title and artist each contain, or are contained by, the request's."""
    if not _contains_either(track_name.lower().strip(), request.normalized_title):
        return False
    if request.normalized_artist is None:
        return True
    return _contains_either(artist_name.lower().strip(), request.normalized_artist)


class LRCLibSource(LyricsSource):
    """Fetches synced lyrics from LRCLIB.net.

    Keyword search runs first since it tolerates small differences in
    titles ("Song (Remastered)"); the exact ``/get`` lookup by duration is
    the fallback when no search candidate matches.
    """

    name = SOURCE_NAME

    def __init__(
        self,
        base_url: str = _BASE_URL,
        timeout: float = _TIMEOUT,
        user_agent: str = _USER_AGENT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent

    # ------------------------------------------------------------------
    # LyricsSource
    # ------------------------------------------------------------------

    async def fetch(self, request: SearchRequest) -> LyricDocument:
        document: LyricDocument | None = None
        try:
            document = await self._search_best(request)
        except LyricsError:
            if not self._can_lookup_exact(request):
                raise
            logger.info("LRCLIB search failed for %r, trying exact match", request.query)

        if document is not None and not document.is_empty:
            return document

        if self._can_lookup_exact(request):
            return await self._get_exact(request)

        logger.debug("No LRCLIB lyrics for %r", request.query)
        return LyricDocument(source=SOURCE_NAME)

    async def search(self, request: SearchRequest) -> list[LyricDocument]:
        results: list[LyricDocument] = []
        for item in await self._search_candidates(request):
            synced = item.get("syncedLyrics")
            if not isinstance(synced, str) or not synced.strip():
                continue
            document = parse_lrc(synced, source=SOURCE_NAME)
            for key, field_name in (("ti", "trackName"), ("ar", "artistName"), ("al", "albumName")):
                value = item.get(field_name)
                if isinstance(value, str) and value:
                    document.metadata.setdefault(key, value)
            results.append(document)
            if len(results) >= request.limit:
                break
        return results

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    @staticmethod
    def _can_lookup_exact(request: SearchRequest) -> bool:
        return request.duration_seconds is not None and request.artist is not None

    async def _search_best(self, request: SearchRequest) -> LyricDocument | None:
        """Return the first search candidate that matches *request*, else None."""
        candidates = await self._search_candidates(request)
        logger.debug("LRCLIB returned %d search results for %r", len(candidates), request.query)
        for index, item in enumerate(candidates):
            track_name = item.get("trackName")
            artist_name = item.get("artistName")
            if not isinstance(track_name, str) or not isinstance(artist_name, str):
                logger.debug("Skipping result %d: missing trackName or artistName", index)
                continue
            synced = item.get("syncedLyrics")
            if not isinstance(synced, str) or not synced:
                continue
            if matches_request(track_name, artist_name, request):
                logger.debug("Matched %r by %r", track_name, artist_name)
                return parse_lrc(synced, source=SOURCE_NAME)
        return None

    async def _search_candidates(self, request: SearchRequest) -> list[dict[str, Any]]:
        data = await self._get_json("/search", {"q": request.query})
        if data is None:
            return []
        if not isinstance(data, list):
            raise LyricsParseError("LRCLIB search response is not a list")
        return [item for item in data if isinstance(item, dict)]

    async def _get_exact(self, request: SearchRequest) -> LyricDocument:
        params = {
            "track_name": request.title,
            "artist_name": request.artist or "",
            "album_name": request.album or _PLACEHOLDER_ALBUM,
            "duration": str(round(request.duration_seconds or 0)),
        }
        data = await self._get_json("/get", params)
        if data is None:
            return LyricDocument(source=SOURCE_NAME)
        if not isinstance(data, dict):
            raise LyricsParseError("LRCLIB get response is not an object")
        if data.get("code") == 404:
            logger.debug("LRCLIB has no exact match for %r", request.query)
            return LyricDocument(source=SOURCE_NAME)
        synced = data.get("syncedLyrics")
        if not isinstance(synced, str) or not synced:
            return LyricDocument(source=SOURCE_NAME)
        return parse_lrc(synced, source=SOURCE_NAME)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        """GET ``base_url + path`` and decode JSON. Returns None on HTTP 404."""
        url = f"{self._base_url}{path}?{urllib.parse.urlencode(params)}"
        return await asyncio.to_thread(self._fetch_json, url)

    def _fetch_json(self, url: str) -> Any:
        req = urllib.request.Request(
            url,
            headers={
                "User-Agent": self._user_agent,
                "Accept": "application/json",
                "Cache-Control": "no-cache",
            },
        )
        logger.debug("LRCLIB request: %s", url)
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                return None
            raise LyricsNetworkError(f"LRCLIB returned HTTP {exc.code}") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise LyricsNetworkError(f"LRCLIB request failed: {exc}") from exc

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise LyricsParseError(f"Undecodable LRCLIB response: {exc}") from exc
