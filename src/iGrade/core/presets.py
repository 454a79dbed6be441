"""Named filter presets.

The catalog is append-only and iterates in insertion order: the thumbnail strip
is laid out in that order, so reordering entries would shuffle the UI.
"""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

from ..errors import InvalidParamsError, PresetError, PresetNotFoundError
from ..utils.jsonio import JsonFileError, read_json, write_json
from .params import FilterParams, NEUTRAL_PARAMS

NORMAL_PRESET = "Normal"

# (strength, exposure, contrast, saturation, temperature, tint, fade, vignette, grain)
_BUILTIN_PRESETS: tuple[tuple[str, tuple[float, ...]], ...] = (
    # Instagram-ish
    ("Clarendon-ish", (0.85, 0.03, 1.22, 1.18, 0.05, 0.0, 0.06, 0.18, 0.06)),
    ("Gingham-ish", (0.9, 0.06, 0.98, 0.92, 0.02, -0.02, 0.2, 0.15, 0.07)),
    ("Juno-ish", (0.85, 0.04, 1.1, 1.28, 0.1, 0.0, 0.08, 0.18, 0.07)),
    ("Lark-ish", (0.85, 0.08, 1.05, 1.06, -0.02, 0.0, 0.1, 0.12, 0.05)),
    ("Valencia-ish", (0.9, 0.05, 0.96, 1.1, 0.12, 0.02, 0.16, 0.1, 0.06)),
    ("Lo-Fi-ish", (0.9, 0.02, 1.4, 1.25, 0.04, 0.0, 0.04, 0.38, 0.08)),
    ("Inkwell-ish(BW)", (1.0, 0.02, 1.35, 0.0, 0.0, 0.0, 0.1, 0.22, 0.08)),
    ("X-Pro-ish", (0.9, 0.0, 1.25, 1.12, 0.06, 0.04, 0.06, 0.3, 0.1)),
    ("Reyes-ish", (0.9, 0.1, 0.9, 0.75, 0.1, -0.02, 0.0, 0.0, 0.0)),
    ("Slumber-ish", (0.9, 0.05, 0.95, 0.66, 0.05, 0.05, 0.15, 0.2, 0.0)),
    ("Crema-ish", (0.9, 0.05, 1.0, 0.9, -0.05, 0.0, 0.1, 0.2, 0.05)),
    ("Ludwig-ish", (0.9, 0.05, 1.05, 0.95, 0.03, 0.0, 0.05, 0.05, 0.0)),
    ("Aden-ish", (0.9, 0.04, 0.9, 0.85, 0.08, 0.08, 0.12, 0.1, 0.0)),
    ("Perpetua-ish", (0.9, 0.0, 1.1, 1.1, -0.05, 0.0, 0.05, 0.15, 0.05)),
    # Google Photos-ish
    ("West-ish", (0.9, 0.05, 1.15, 0.9, 0.08, 0.02, 0.1, 0.15, 0.05)),
    ("Palma-ish", (0.9, 0.1, 1.05, 1.3, 0.06, -0.02, 0.0, 0.05, 0.0)),
    ("Metro-ish", (0.95, 0.02, 1.2, 1.05, -0.05, 0.08, 0.0, 0.1, 0.0)),
    ("Eiffel-ish", (0.9, 0.0, 1.1, 0.95, -0.04, 0.04, 0.12, 0.15, 0.04)),
    ("Blush-ish", (0.9, 0.05, 0.95, 1.1, 0.05, 0.12, 0.05, 0.0, 0.0)),
    ("Modena-ish", (0.9, 0.08, 1.15, 0.9, 0.1, 0.0, 0.0, 0.1, 0.0)),
    ("Reel-ish", (0.9, 0.05, 1.1, 1.0, 0.0, 0.0, 0.0, 0.0, 0.12)),  # film grain focus
    ("Vogue-ish (BW)", (1.0, 0.05, 1.3, 0.0, 0.0, 0.0, 0.05, 0.15, 0.0)),
    ("Ollie-ish (BW)", (1.0, 0.0, 1.05, 0.0, 0.0, 0.0, 0.25, 0.1, 0.08)),
    ("Bazaar-ish", (0.95, 0.02, 1.25, 1.15, 0.02, -0.05, 0.0, 0.2, 0.0)),
)


class PresetCatalog(Mapping[str, FilterParams]):
    """Read-only view of ``name -> FilterParams`` that can only grow."""

    def __init__(self, presets: Mapping[str, FilterParams] | None = None) -> None:
        self._presets: dict[str, FilterParams] = {}
        self._view = MappingProxyType(self._presets)
        for name, params in (presets or {}).items():
            self.append(name, params)

    # Mapping protocol -------------------------------------------------
    def __getitem__(self, name: str) -> FilterParams:
        try:
            return self._presets[name]
        except KeyError:
            raise PresetNotFoundError(f"Unknown preset: {name}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._view)

    def __len__(self) -> int:
        return len(self._presets)

    # ------------------------------------------------------------------
    def names(self) -> tuple[str, ...]:
        return tuple(self._presets)

    def append(self, name: str, params: FilterParams) -> None:
        """Add a new preset; existing names cannot be replaced."""

        if not isinstance(name, str) or not name.strip():
            raise PresetError("Preset names must be non-empty strings")
        if name in self._presets:
            raise PresetError(f"Preset already exists: {name}")
        if not isinstance(params, FilterParams):
            raise PresetError(f"Preset {name!r} must map to FilterParams")
        self._presets[name] = params

    def extend_from_file(self, path: Path) -> tuple[str, ...]:
        """Append every preset stored in the JSON file at *path*.

        The file maps preset names to ``{knob: value}`` objects.  Missing knobs
        take their neutral value.  The whole file is validated before anything is
        appended, so a bad entry never leaves the catalog half-extended.
        """

        try:
            data = read_json(Path(path))
        except JsonFileError as exc:
            raise PresetError(str(exc)) from exc

        staged: list[tuple[str, FilterParams]] = []
        for name, values in data.items():
            if not isinstance(values, Mapping):
                raise PresetError(f"Preset {name!r} in {path} must be an object")
            if name in self._presets or any(name == existing for existing, _ in staged):
                raise PresetError(f"Preset already exists: {name}")
            try:
                staged.append((name, FilterParams.from_mapping(values).ensure_finite()))
            except InvalidParamsError as exc:
                raise PresetError(f"Preset {name!r} in {path}: {exc}") from exc

        for name, params in staged:
            self.append(name, params)
        return tuple(name for name, _ in staged)

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {name: params.to_dict() for name, params in self._presets.items()}

    def save(self, path: Path) -> None:
        """Write the catalog to *path* in the format read by :meth:`extend_from_file`."""

        write_json(Path(path), self.to_dict())


def builtin_catalog() -> PresetCatalog:
    """Return a fresh catalog holding ``Normal`` followed by the built-in looks."""

    catalog = PresetCatalog({NORMAL_PRESET: NEUTRAL_PARAMS})
    for name, values in _BUILTIN_PRESETS:
        catalog.append(name, FilterParams(*values))
    return catalog


__all__ = ["NORMAL_PRESET", "PresetCatalog", "builtin_catalog"]
