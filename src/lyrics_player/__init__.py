"""lyrics-player -- synced lyrics lookup, caching and timeline tracking."""

__version__ = "0.1.0"
