"""LRC timed-lyrics parsing and serialization.

A timed line carries one or more ``[MM:SS.fff]`` tags followed by its text;
every tag yields its own :class:`LyricLine` with the shared text, so a chorus
written once with several tags expands to several lines. Lines of the form
``[key:value]`` without a time tag are metadata (``ar``, ``ti``, ``offset``...).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from lyrics_player.errors import LyricsFileError
from lyrics_player.models import LyricDocument, LyricLine
from lyrics_player.utils.formatting import format_time_tag

logger = logging.getLogger(__name__)

# Anything shaped like a time tag. Each match is validated against the
# strict grammar below; the last match marks where the lyric text begins.
_TIME_LIKE_RE = re.compile(r"\[(\d+):(\d+)(?:\.(\d+))?\]")

# [M:SS.f] .. [MM:SS.fff]
_TIME_TAG_RE = re.compile(r"(\d{1,2}):(\d{2})\.(\d{1,3})")


def parse_time_tag(tag: str) -> float | None:
    """Parse a time tag body (``MM:SS.fff``, brackets optional) into seconds.

    Returns None when *tag* does not follow the grammar.
    """
    match = _TIME_TAG_RE.fullmatch(tag.strip().removeprefix("[").removesuffix("]"))
    if match is None:
        return None
    minutes = int(match.group(1))
    seconds = int(match.group(2))
    frac = match.group(3)
    return minutes * 60 + seconds + int(frac) / (10 ** len(frac))


def parse_lrc(text: str, source: str | None = None) -> LyricDocument:
    """Parse LRC *text* into a :class:`LyricDocument`.

    Never raises on malformed content: bad tags and unrecognised lines are
    skipped, and input without usable lines produces an empty document.
    """
    lines: list[LyricLine] = []
    metadata: dict[str, str] = {}

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        tags = list(_TIME_LIKE_RE.finditer(line))
        if tags:
            lyric = line[tags[-1].end():].strip()
            if not lyric:
                continue
            for tag in tags:
                start = parse_time_tag(tag.group(0))
                if start is None:
                    logger.debug("Dropping malformed time tag %r", tag.group(0))
                    continue
                lines.append(LyricLine(text=lyric, start_time=start))
        elif line.startswith("[") and line.endswith("]") and ":" in line:
            key, _, value = line[1:-1].partition(":")
            metadata[key.strip()] = value.strip()

    lines.sort(key=lambda item: item.start_time)
    for current, following in zip(lines, lines[1:]):
        current.end_time = following.start_time

    logger.debug("Parsed %d lyric lines, %d metadata tags", len(lines), len(metadata))
    return LyricDocument(lines=lines, metadata=metadata, source=source)


def parse_lrc_file(path: Path, source: str | None = None) -> LyricDocument:
    """Read a UTF-8 LRC file and parse it."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LyricsFileError(f"Failed to read lyrics file {path}: {exc}") from exc
    return parse_lrc(text, source=source)


def serialize_lrc(document: LyricDocument) -> str:
    """Render *document* as LRC text: metadata first, then lines in order."""
    out: list[str] = [f"[{key}:{value}]" for key, value in document.metadata.items()]
    out.extend(f"[{format_time_tag(line.start_time)}]{line.text}" for line in document.lines)
    if not out:
        return ""
    return "\n".join(out) + "\n"
