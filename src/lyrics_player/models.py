"""Core lyrics data types: track identity, search requests and LRC documents."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Self

from lyrics_player.utils.formatting import extract_duration, format_time_tag

# How long a line stays active when nothing follows it.
DEFAULT_LINE_DURATION = 3.0

DEFAULT_SEARCH_LIMIT = 5


@dataclass(frozen=True, slots=True)
class TrackIdentity:
    """The subset of a library track needed to key cache and search lookups."""

    title: str
    artist: str
    album: str | None = None
    duration_seconds: float | None = None

    @property
    def is_searchable(self) -> bool:
        """True when both title and artist are non-empty."""
        return bool(self.title.strip()) and bool(self.artist.strip())

    @classmethod
    def from_dict(cls, track: dict[str, Any]) -> Self:
        """Build an identity from a host track dict."""
        album = track.get("album")
        if isinstance(album, dict):
            album = album.get("name")
        return cls(
            title=str(track.get("title") or ""),
            artist=str(track.get("artist") or ""),
            album=album or None,
            duration_seconds=extract_duration(track),
        )


@dataclass(frozen=True, slots=True)
class SearchRequest:
    """A lyrics provider query. Artist is optional for broader matching."""

    title: str
    artist: str | None = None
    album: str | None = None
    duration_seconds: float | None = None
    limit: int = DEFAULT_SEARCH_LIMIT

    @property
    def query(self) -> str:
        artist_part = f" {self.artist}" if self.artist is not None else ""
        return f"{self.title}{artist_part}".strip()

    @property
    def normalized_title(self) -> str:
        return self.title.lower().strip()

    @property
    def normalized_artist(self) -> str | None:
        if self.artist is None:
            return None
        return self.artist.lower().strip()

    @classmethod
    def from_track(cls, track: TrackIdentity, limit: int = DEFAULT_SEARCH_LIMIT) -> Self:
        return cls(
            title=track.title,
            artist=track.artist,
            album=track.album,
            duration_seconds=track.duration_seconds,
            limit=limit,
        )


@dataclass(slots=True)
class LyricLine:
    """A single timed lyric line.

    ``end_time`` is back-filled from the next line's start once known.
    """

    text: str
    start_time: float
    end_time: float | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False, repr=False)

    @property
    def effective_end(self) -> float:
        if self.end_time is not None:
            return self.end_time
        return self.start_time + DEFAULT_LINE_DURATION

    @property
    def time_tag(self) -> str:
        return format_time_tag(self.start_time)

    def is_active(self, position: float) -> bool:
        return self.start_time <= position < self.effective_end

    def __str__(self) -> str:
        return f"[{self.time_tag}]{self.text}"


@dataclass(slots=True)
class LyricDocument:
    """Parsed lyrics for one track.

    ``lines`` is kept sorted by ``start_time``. A document with no lines means
    "no lyrics exist", which is distinct from ``None`` ("not loaded yet").
    """

    lines: list[LyricLine] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    source: str | None = None

    def __post_init__(self) -> None:
        # list.sort is stable, so lines sharing a timestamp keep their order.
        self.lines.sort(key=lambda line: line.start_time)

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    # ── Timeline index ────────────────────────────────────────────────

    def current_line_index(self, position: float) -> int | None:
        """Index of the first line whose ``[start, end)`` contains *position*."""
        for index, line in enumerate(self.lines):
            if line.is_active(position):
                # Lines sharing a start time resolve to the earliest of them.
                while index > 0 and self.lines[index - 1].start_time == line.start_time:
                    index -= 1
                return index
        return None

    def current_line(self, position: float) -> LyricLine | None:
        index = self.current_line_index(position)
        if index is None:
            return None
        return self.lines[index]

    def previous_line(self, position: float) -> LyricLine | None:
        index = self.current_line_index(position)
        if index is None or index == 0:
            return None
        return self.lines[index - 1]

    def next_line(self, position: float) -> LyricLine | None:
        index = self.current_line_index(position)
        if index is None or index >= len(self.lines) - 1:
            return None
        return self.lines[index + 1]

    def lines_around_current(self, position: float, window_size: int = 3) -> list[LyricLine]:
        """Return up to *window_size* lines centred on the current line."""
        index = self.current_line_index(position)
        if index is None:
            return []
        start = max(0, index - window_size // 2)
        end = min(len(self.lines), start + window_size)
        return self.lines[start:end]

    def __str__(self) -> str:
        meta = [f"[{key}: {value}]" for key, value in self.metadata.items()]
        return "\n".join(meta + [str(line) for line in self.lines])
