"""The nine-knob filter parameter record consumed by every render backend."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping

from ..errors import InvalidParamsError

# The order matches the pipeline stages (strength is applied last but listed first, mirroring
# the slider layout).  Preset files, uniforms and CLI overrides all iterate this tuple.
FILTER_KEYS = (
    "strength",
    "exposure",
    "contrast",
    "saturation",
    "temperature",
    "tint",
    "fade",
    "vignette",
    "grain",
)

# Older preset files spell the temperature knob ``temp``, matching the shader uniform.
_KEY_ALIASES = {"temp": "temperature"}

_UNIFORM_NAMES = {
    "strength": "u_strength",
    "exposure": "u_exposure",
    "contrast": "u_contrast",
    "saturation": "u_saturation",
    "temperature": "u_temp",
    "tint": "u_tint",
    "fade": "u_fade",
    "vignette": "u_vignette",
    "grain": "u_grain",
}


@dataclass(frozen=True)
class FilterParams:
    """Immutable colour grading parameters.

    ``strength``, ``contrast`` and ``saturation`` are multiplicative (``1.0`` is
    neutral); the remaining knobs are additive offsets or amounts where ``0.0``
    is neutral.  The defaults therefore describe the identity transform.  Ranges
    are a UI concern: the pipeline clamps its own outputs instead of rejecting
    values.
    """

    strength: float = 1.0
    exposure: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0
    temperature: float = 0.0
    tint: float = 0.0
    fade: float = 0.0
    vignette: float = 0.0
    grain: float = 0.0

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, float],
        *,
        base: "FilterParams | None" = None,
    ) -> "FilterParams":
        """Return params built from *values*, taking missing knobs from *base*.

        Keys must be field names (or the ``temp`` alias).  Anything else raises
        :class:`InvalidParamsError` so misspelt preset entries are not silently
        ignored.
        """

        resolved = (base or NEUTRAL_PARAMS).to_dict()
        for key, value in values.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in resolved:
                raise InvalidParamsError(f"Unknown filter parameter: {key}")
            try:
                resolved[name] = float(value)
            except (TypeError, ValueError) as exc:
                raise InvalidParamsError(f"{key} must be a number; got {value!r}") from exc
        return cls(**resolved)

    def replace(self, **changes: float) -> "FilterParams":
        """Return a copy with *changes* applied (``temp`` is accepted too)."""

        return FilterParams.from_mapping(changes, base=self)

    def to_dict(self) -> dict[str, float]:
        return {key: float(getattr(self, key)) for key in FILTER_KEYS}

    def as_tuple(self) -> tuple[float, ...]:
        """Return the knobs in :data:`FILTER_KEYS` order, as fed to the CPU kernel."""

        return tuple(float(getattr(self, key)) for key in FILTER_KEYS)

    def uniforms(self) -> dict[str, float]:
        """Return the GLSL uniform values keyed by uniform name."""

        return {_UNIFORM_NAMES[key]: float(getattr(self, key)) for key in FILTER_KEYS}

    def ensure_finite(self) -> "FilterParams":
        """Return ``self`` or raise :class:`InvalidParamsError` on NaN/inf knobs.

        The colour functions are undefined for non-finite input, so callers run
        this guard before handing params to a renderer.
        """

        for key in FILTER_KEYS:
            if not math.isfinite(getattr(self, key)):
                raise InvalidParamsError(f"{key} must be finite; got {getattr(self, key)!r}")
        return self


NEUTRAL_PARAMS = FilterParams()
"""The identity parameter set (the ``Normal`` preset)."""


__all__ = ["FILTER_KEYS", "FilterParams", "NEUTRAL_PARAMS"]
