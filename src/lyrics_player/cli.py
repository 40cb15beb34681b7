"""CLI entry point for lyrics-player.

Headless commands for looking up, caching and importing synced lyrics,
for scripting and shell integration.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from lyrics_player import __version__
from lyrics_player.config.paths import LYRICS_CACHE_DIR, ensure_dirs
from lyrics_player.config.settings import Settings, get_settings
from lyrics_player.errors import LyricsError
from lyrics_player.models import LyricDocument, SearchRequest, TrackIdentity
from lyrics_player.services.cache import LyricsCache
from lyrics_player.services.lrclib import LRCLibSource
from lyrics_player.services.lyrics import LyricsManager
from lyrics_player.utils.formatting import extract_duration, format_duration, format_size
from lyrics_player.utils.lrc import serialize_lrc

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_output(data: Any, *, compact: bool = False) -> None:
    """Print *data* as JSON to stdout."""
    indent = None if compact else 2
    click.echo(json.dumps(data, indent=indent, default=str))


def _error(msg: str) -> NoReturn:
    """Print an error message to stderr and exit with code 1."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _manager(ctx: click.Context) -> LyricsManager:
    """Build a LyricsManager from the resolved settings and cache directory."""
    settings: Settings = ctx.obj["settings"]
    provider = settings.provider
    return LyricsManager(
        cache=LyricsCache(ctx.obj["cache_dir"]),
        source=LRCLibSource(
            base_url=provider.base_url,
            timeout=provider.timeout,
            user_agent=provider.user_agent,
        ),
        prefetch_delay=settings.lyrics.prefetch_delay,
        search_limit=provider.search_limit,
    )


def _document_to_dict(document: LyricDocument) -> dict[str, Any]:
    return {
        "source": document.source,
        "metadata": document.metadata,
        "lines": [
            {"time": line.start_time, "end": line.end_time, "text": line.text}
            for line in document.lines
        ],
    }


def _parse_duration(value: str | None) -> int | None:
    """Accept plain seconds or ``m:ss`` / ``h:mm:ss``."""
    if not value:
        return None
    if ":" not in value:
        try:
            return int(float(value))
        except ValueError:
            _error(f"Invalid duration: {value!r}")
    seconds = extract_duration({"duration": value})
    if seconds is None:
        _error(f"Invalid duration: {value!r}")
    return seconds


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="lyrics-player")
@click.option("--json", "compact_json", is_flag=True, help="Compact JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Use this config file instead of the default.",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Use this lyrics cache directory.",
)
@click.pass_context
def main(
    ctx: click.Context,
    compact_json: bool,
    verbose: bool,
    config_path: Path | None,
    cache_dir: Path | None,
) -> None:
    """lyrics-player -- synced lyrics lookup and cache management."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    settings = Settings.load(config_path) if config_path else get_settings()
    cache_dir = cache_dir or settings.cache_dir
    if cache_dir == LYRICS_CACHE_DIR:
        ensure_dirs()
    else:
        cache_dir.parent.mkdir(parents=True, exist_ok=True)

    ctx.ensure_object(dict)
    ctx.obj["compact"] = compact_json
    ctx.obj["settings"] = settings
    ctx.obj["cache_dir"] = cache_dir


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


@main.command()
@click.argument("title")
@click.argument("artist")
@click.option("--album", default=None, help="Album name.")
@click.option("--duration", default=None, help="Track length in seconds or m:ss.")
@click.option(
    "--at",
    "position",
    type=float,
    default=None,
    help="Show only the lines around this playback position (seconds).",
)
@click.pass_context
def fetch(
    ctx: click.Context,
    title: str,
    artist: str,
    album: str | None,
    duration: str | None,
    position: float | None,
) -> None:
    """Print lyrics for a track, from the cache or LRCLIB."""
    manager = _manager(ctx)
    track = TrackIdentity(title, artist, album, _parse_duration(duration))
    if not track.is_searchable:
        _error("Both TITLE and ARTIST are required.")

    document = asyncio.run(manager.load_lyrics(track))
    if manager.error is not None:
        _error(str(manager.error))
    if document is None or document.is_empty:
        click.echo("No lyrics found. Try `lyrics-player search` or `lyrics-player import`.")
        return

    if position is not None:
        window = ctx.obj["settings"].lyrics.window_size
        current = document.current_line(position)
        around = document.lines_around_current(position, window)
        if ctx.obj["compact"]:
            _json_output(
                {
                    "current": current.text if current else None,
                    "lines": [line.text for line in around],
                },
                compact=True,
            )
            return
        if not around:
            click.echo(f"No line active at {format_duration(int(position))}.")
            return
        for line in around:
            marker = ">" if line is current else " "
            click.echo(f"{marker} [{line.time_tag}] {line.text}")
        return

    if ctx.obj["compact"]:
        _json_output(_document_to_dict(document), compact=True)
    else:
        click.echo(serialize_lrc(document), nl=False)


@main.command()
@click.argument("title")
@click.option("--artist", default=None, help="Narrow the search to an artist.")
@click.option("--limit", type=int, default=None, help="Maximum number of results.")
@click.pass_context
def search(ctx: click.Context, title: str, artist: str | None, limit: int | None) -> None:
    """Search LRCLIB for candidate lyrics."""
    manager = _manager(ctx)
    request = SearchRequest(
        title=title,
        artist=artist,
        limit=limit or ctx.obj["settings"].provider.search_limit,
    )
    try:
        results = asyncio.run(manager.search_online(request))
    except LyricsError as exc:
        _error(str(exc))

    if ctx.obj["compact"]:
        _json_output([_document_to_dict(doc) for doc in results], compact=True)
        return
    if not results:
        click.echo("No lyrics found for your search.")
        return
    for index, doc in enumerate(results, start=1):
        title_tag = doc.metadata.get("ti", "Unknown Title")
        artist_tag = doc.metadata.get("ar", "Unknown Artist")
        first = next((line.text for line in doc.lines if line.text), "")
        click.echo(f"{index}. {title_tag} - {artist_tag} ({len(doc)} lines)  {first}")


# ---------------------------------------------------------------------------
# Import & prefetch
# ---------------------------------------------------------------------------


@main.command("import")
@click.argument("title")
@click.argument("artist")
@click.argument("lrc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_lyrics(ctx: click.Context, title: str, artist: str, lrc_file: Path) -> None:
    """Store LRC_FILE as the lyrics for a track."""
    manager = _manager(ctx)
    track = TrackIdentity(title=title, artist=artist)
    try:
        document = asyncio.run(manager.import_manual(track, lrc_file))
    except LyricsError as exc:
        _error(str(exc))
    click.echo(f"Imported {len(document)} lines to {manager.cache.path_for(track)}")


@main.command()
@click.argument("tracks_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def prefetch(ctx: click.Context, tracks_file: Path) -> None:
    """Cache lyrics for every track in TRACKS_FILE.

    TRACKS_FILE is a JSON array of objects with ``title``, ``artist`` and
    optional ``album`` and ``duration`` keys.
    """
    try:
        raw = json.loads(tracks_file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        _error(f"Could not read {tracks_file}: {exc}")
    if not isinstance(raw, list):
        _error("TRACKS_FILE must contain a JSON array.")

    tracks = [TrackIdentity.from_dict(item) for item in raw if isinstance(item, dict)]
    manager = _manager(ctx)
    result = asyncio.run(manager.prefetch_all(tracks))

    data = {
        "fetched": result.fetched,
        "cached": result.cached,
        "missing": result.missing,
        "skipped": result.skipped,
        "failed": [f"{t.artist} - {t.title}" for t in result.failed],
    }
    if ctx.obj["compact"]:
        _json_output(data, compact=True)
    else:
        click.echo(
            f"Fetched {result.fetched}, already cached {result.cached}, "
            f"not found {result.missing}, skipped {result.skipped}, "
            f"failed {len(result.failed)}."
        )


# ---------------------------------------------------------------------------
# Cache group
# ---------------------------------------------------------------------------


@main.group(invoke_without_command=True)
@click.pass_context
def cache(ctx: click.Context) -> None:
    """Manage the lyrics cache."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(cache_status)


@cache.command("status")
@click.pass_context
def cache_status(ctx: click.Context) -> None:
    """Show cache size and statistics."""
    status = asyncio.run(LyricsCache(ctx.obj["cache_dir"]).get_status())
    if ctx.obj["compact"]:
        _json_output(status, compact=True)
    else:
        click.echo(f"Cache directory: {status['cache_dir']}")
        click.echo(f"Cached files:    {status['file_count']}")
        click.echo(f"Total size:      {format_size(status['total_size'])}")


@cache.command("path")
@click.argument("title")
@click.argument("artist")
@click.pass_context
def cache_path(ctx: click.Context, title: str, artist: str) -> None:
    """Print the cache file path for a track."""
    click.echo(LyricsCache(ctx.obj["cache_dir"]).path_for(TrackIdentity(title, artist)))


@cache.command("remove")
@click.argument("title")
@click.argument("artist")
@click.pass_context
def cache_remove(ctx: click.Context, title: str, artist: str) -> None:
    """Delete the cached lyrics for one track."""
    try:
        asyncio.run(LyricsCache(ctx.obj["cache_dir"]).remove(TrackIdentity(title, artist)))
    except LyricsError as exc:
        _error(str(exc))
    click.echo("Removed.")


@cache.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear the lyrics cache?")
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Clear the lyrics cache."""
    try:
        removed = asyncio.run(LyricsCache(ctx.obj["cache_dir"]).clear())
    except LyricsError as exc:
        _error(str(exc))
    click.echo(f"Cleared {removed} cached file(s).")
