"""Settings management using TOML configuration."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Self

from lyrics_player import __version__
from lyrics_player.config.paths import CONFIG_FILE, LYRICS_CACHE_DIR


@dataclass
class LyricsSettings:
    cache_location: str = ""
    prefetch_delay: float = 0.5
    window_size: int = 5


@dataclass
class ProviderSettings:
    base_url: str = "https://lrclib.net/api"
    timeout: int = 10
    user_agent: str = f"lyrics-player/{__version__}"
    search_limit: int = 5


SECTION_MAP: dict[str, type] = {
    "lyrics": LyricsSettings,
    "provider": ProviderSettings,
}


@dataclass
class Settings:
    lyrics: LyricsSettings = field(default_factory=LyricsSettings)
    provider: ProviderSettings = field(default_factory=ProviderSettings)

    @classmethod
    def load(cls, path: Path = CONFIG_FILE) -> Self:
        settings = cls()

        if not path.exists():
            settings._create_default(path)
            return settings

        with open(path, "rb") as f:
            data = tomllib.load(f)

        for section_name in SECTION_MAP:
            if section_name in data:
                section_data = data[section_name]
                section_instance = getattr(settings, section_name)
                for f_info in fields(section_instance):
                    if f_info.name in section_data:
                        setattr(section_instance, f_info.name, section_data[f_info.name])

        return settings

    def save(self, path: Path = CONFIG_FILE) -> None:
        import os

        from lyrics_player.config.paths import SECURE_FILE_MODE

        path.parent.mkdir(parents=True, exist_ok=True)
        lines: list[str] = []

        for section_name in SECTION_MAP:
            section = getattr(self, section_name)
            lines.append(f"[{section_name}]")
            for f_info in fields(section):
                value = getattr(section, f_info.name)
                lines.append(f"{f_info.name} = {_format_toml_value(value)}")
            lines.append("")

        path.write_text("\n".join(lines))
        os.chmod(path, SECURE_FILE_MODE)

    def _create_default(self, path: Path) -> None:
        self.save(path)

    @property
    def cache_dir(self) -> Path:
        if self.lyrics.cache_location:
            return Path(self.lyrics.cache_location).expanduser()
        return LYRICS_CACHE_DIR


def _format_toml_value(value: object) -> str:
    match value:
        case bool():
            return "true" if value else "false"
        case int():
            return str(value)
        case float():
            return repr(value)
        case str():
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        case list():
            items = ", ".join(_format_toml_value(v) for v in value)
            return f"[{items}]"
        case _:
            return repr(value)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
