"""Application settings and the defaults shared by the core and the GUI."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .errors import SettingsError
from .utils.jsonio import JsonFileError, read_json, write_json

BACKEND_KINDS = ("cpu", "opengl")
"""Render backends that can be requested explicitly."""

DEFAULT_MAX_PREVIEW_WIDTH = 2000
DEFAULT_THUMBNAIL_SIZE = 96
DEFAULT_TICK_INTERVAL_MS = 0
DEFAULT_EXPORT_NAME = "filtered.png"

DEFAULT_SETTINGS_PATH = Path.home() / ".iGrade" / "settings.json"


@dataclass(frozen=True)
class Settings:
    """User configurable knobs for rendering and thumbnail generation."""

    backend: str = "cpu"
    max_preview_width: int = DEFAULT_MAX_PREVIEW_WIDTH
    thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS
    log_level: str = "INFO"
    preset_files: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.backend not in BACKEND_KINDS:
            raise SettingsError(
                f"backend must be one of {', '.join(BACKEND_KINDS)}; got {self.backend!r}"
            )
        for name in ("max_preview_width", "thumbnail_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise SettingsError(f"{name} must be a positive integer; got {value!r}")
        if (
            isinstance(self.tick_interval_ms, bool)
            or not isinstance(self.tick_interval_ms, int)
            or self.tick_interval_ms < 0
        ):
            raise SettingsError(
                f"tick_interval_ms must be a non-negative integer; got {self.tick_interval_ms!r}"
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Settings":
        """Build settings from a decoded JSON object, rejecting unknown keys."""

        known = {item.name for item in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise SettingsError(f"Unknown settings key(s): {', '.join(unknown)}")
        payload = dict(values)
        preset_files = payload.get("preset_files")
        if preset_files is not None:
            if isinstance(preset_files, str) or not isinstance(preset_files, (list, tuple)):
                raise SettingsError("preset_files must be a list of paths")
            payload["preset_files"] = tuple(str(item) for item in preset_files)
        return cls(**payload)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["preset_files"] = list(self.preset_files)
        return data


def load_settings(path: Path | None = None) -> Settings:
    """Return settings stored at *path*, or defaults when the file is absent."""

    target = DEFAULT_SETTINGS_PATH if path is None else Path(path)
    if not target.exists():
        return Settings()
    try:
        data = read_json(target)
    except JsonFileError as exc:
        raise SettingsError(str(exc)) from exc
    try:
        return Settings.from_mapping(data)
    except TypeError as exc:
        raise SettingsError(f"Invalid settings in {target}: {exc}") from exc


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Persist *settings* atomically and return the written path."""

    target = DEFAULT_SETTINGS_PATH if path is None else Path(path)
    write_json(target, settings.to_dict())
    return target


__all__ = [
    "BACKEND_KINDS",
    "DEFAULT_EXPORT_NAME",
    "DEFAULT_MAX_PREVIEW_WIDTH",
    "DEFAULT_SETTINGS_PATH",
    "DEFAULT_THUMBNAIL_SIZE",
    "DEFAULT_TICK_INTERVAL_MS",
    "Settings",
    "load_settings",
    "save_settings",
]
