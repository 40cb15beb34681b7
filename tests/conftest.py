"""Shared test fixtures for lyrics-player."""


import pytest

from lyrics_player.models import TrackIdentity

SAMPLE_LRC = """\
[ar:Rick Astley]
[ti:Never Gonna Give You Up]
[al:Whenever You Need Somebody]
[00:18.680]We're no strangers to love
[00:22.820]You know the rules and so do I
[00:27.040]A full commitment's what I'm thinking of
[00:31.480]You wouldn't get this from any other guy
"""


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def tmp_cache_dir(tmp_path):
    """Path for a lyrics cache directory (not yet created)."""
    return tmp_path / "lyrics"


@pytest.fixture
def sample_lrc() -> str:
    return SAMPLE_LRC


def _make_track(
    title: str = "Never Gonna Give You Up",
    artist: str = "Rick Astley",
    duration: float | None = 213,
    album: str | None = "Whenever You Need Somebody",
) -> TrackIdentity:
    return TrackIdentity(title=title, artist=artist, album=album, duration_seconds=duration)


@pytest.fixture
def sample_track() -> TrackIdentity:
    return _make_track()


@pytest.fixture
def sample_tracks() -> list[TrackIdentity]:
    return [
        _make_track("Track One", "Artist A", 180),
        _make_track("Track Two", "Artist B", 240),
        _make_track("Track Three", "Artist C", 120),
    ]
