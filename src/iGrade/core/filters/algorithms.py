"""Pure colour grading maths shared by every CPU execution path.

The functions operate on normalised floats (``0.0`` - ``1.0``) and plain
integers, with no dependency on Qt, Pillow or a particular buffer layout.  They
are compiled with Numba so the per-pixel kernel in :mod:`.jit_executor` can fuse
them, and they remain callable from regular Python for tests and for the scalar
:func:`~iGrade.core.filters.facade.execute` entry point.  The OpenGL fragment
program in :mod:`iGrade.core.preview_backends` implements the same formulas in
the same order.
"""

from __future__ import annotations

import math

from numba import jit

LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

_MASK32 = 0xFFFFFFFF


@jit(nopython=True, inline="always")
def clamp01(x: float) -> float:
    """Clamp *x* to the inclusive ``[0.0, 1.0]`` range."""

    if x < 0.0:
        return 0.0
    if x > 1.0:
        return 1.0
    return x


@jit(nopython=True, inline="always")
def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation; *t* is not clamped."""

    return a + (b - a) * t


@jit(nopython=True, inline="always")
def rgb_to_hsl(r: float, g: float, b: float) -> tuple[float, float, float]:
    """Return ``(h, s, l)`` with the hue normalised to ``[0, 1)``."""

    mx = max(r, g, b)
    mn = min(r, g, b)
    h = 0.0
    s = 0.0
    l = (mx + mn) / 2.0
    if mx != mn:
        d = mx - mn
        s = d / (2.0 - mx - mn) if l > 0.5 else d / (mx + mn)
        if mx == r:
            h = (g - b) / d + (6.0 if g < b else 0.0)
        elif mx == g:
            h = (b - r) / d + 2.0
        else:
            h = (r - g) / d + 4.0
        h /= 6.0
    return h, s, l


@jit(nopython=True, inline="always")
def _hue_to_rgb(p: float, q: float, t: float) -> float:
    if t < 0.0:
        t += 1.0
    if t > 1.0:
        t -= 1.0
    if t < 1.0 / 6.0:
        return p + (q - p) * 6.0 * t
    if t < 0.5:
        return q
    if t < 2.0 / 3.0:
        return p + (q - p) * (2.0 / 3.0 - t) * 6.0
    return p


@jit(nopython=True, inline="always")
def hsl_to_rgb(h: float, s: float, l: float) -> tuple[float, float, float]:
    """Inverse of :func:`rgb_to_hsl`."""

    if s == 0.0:
        return l, l, l
    q = l * (1.0 + s) if l < 0.5 else l + s - l * s
    p = 2.0 * l - q
    return (
        _hue_to_rgb(p, q, h + 1.0 / 3.0),
        _hue_to_rgb(p, q, h),
        _hue_to_rgb(p, q, h - 1.0 / 3.0),
    )


@jit(nopython=True, inline="always")
def apply_exposure(x: float, exposure: float) -> float:
    return clamp01(x + exposure)


@jit(nopython=True, inline="always")
def apply_contrast(x: float, c: float) -> float:
    """Pivot *x* around mid-grey by factor *c* (``1`` is identity, ``0`` flat grey)."""

    return clamp01((x - 0.5) * c + 0.5)


@jit(nopython=True, inline="always")
def apply_saturation(r: float, g: float, b: float, saturation: float) -> tuple[float, float, float]:
    """Scale HSL saturation by *saturation*; ``0`` collapses to the HSL lightness."""

    h, s, l = rgb_to_hsl(r, g, b)
    return hsl_to_rgb(h, clamp01(s * saturation), l)


@jit(nopython=True, inline="always")
def apply_fade(x: float, amount: float) -> float:
    """Matte curve: lift the blacks, then soften the highlight roll-off.

    *amount* is expected in ``[0, 0.5]``.
    """

    y = x * (1.0 - 0.25 * amount) + 0.08 * amount
    y = lerp(y, math.pow(max(y, 0.0), 0.9), 0.35 * amount)
    return clamp01(y)


@jit(nopython=True, inline="always")
def apply_temperature(r: float, g: float, b: float, t: float) -> tuple[float, float, float]:
    """Warm (``t > 0``: more red, less blue) or cool the colour; green is untouched."""

    return clamp01(r * (1.0 + t)), g, clamp01(b * (1.0 - t))


@jit(nopython=True, inline="always")
def apply_tint(r: float, g: float, b: float, t: float) -> tuple[float, float, float]:
    """Shift toward magenta (``t > 0``) or green (``t < 0``)."""

    return (
        clamp01(r * (1.0 + 0.5 * t)),
        clamp01(g * (1.0 - t)),
        clamp01(b * (1.0 + 0.5 * t)),
    )


@jit(nopython=True, inline="always")
def vignette_factor(x: float, y: float, w: int, h: int, strength: float) -> float:
    """Return the radial darkening multiplier for pixel ``(x, y)``.

    Exactly ``1.0`` when *strength* is not positive.
    """

    if strength <= 0.0:
        return 1.0
    nx = (x / (w - 1)) * 2.0 - 1.0 if w > 1 else 0.0
    ny = (y / (h - 1)) * 2.0 - 1.0 if h > 1 else 0.0
    d = math.sqrt(nx * nx + ny * ny)
    v = 1.0 - strength * math.pow(min(1.0, d), 1.7)
    return max(0.0, v)


@jit(nopython=True, inline="always")
def noise2d(x: int, y: int, seed: int) -> float:
    """Deterministic integer hash of ``(x, y, seed)`` mapped to ``[0, 1)``."""

    n = (int(x) * 374761393 + int(y) * 668265263 + int(seed) * 1442695041) & _MASK32
    n = ((n ^ (n >> 13)) * 1274126177) & _MASK32
    n = n ^ (n >> 16)
    return n / 4294967296.0


@jit(nopython=True, inline="always")
def apply_grain(
    r: float,
    g: float,
    b: float,
    amount: float,
    noise: float,
) -> tuple[float, float, float]:
    """Add midtone-weighted noise; *noise* is a ``[0, 1)`` sample from :func:`noise2d`."""

    if amount <= 0.0:
        return r, g, b
    n = noise * 2.0 - 1.0
    lum = LUMA_R * r + LUMA_G * g + LUMA_B * b
    mid_w = 1.0 - abs(lum - 0.5) * 2.0
    gn = n * (0.03 + 0.12 * amount) * mid_w
    return clamp01(r + gn), clamp01(g + gn), clamp01(b + gn)


@jit(nopython=True, inline="always")
def grade_pixel(
    r0: float,
    g0: float,
    b0: float,
    x: int,
    y: int,
    width: int,
    height: int,
    strength: float,
    exposure: float,
    contrast: float,
    saturation: float,
    temperature: float,
    tint: float,
    fade: float,
    vignette: float,
    grain: float,
    seed: int,
) -> tuple[float, float, float]:
    """Run the nine grading stages on one pixel.

    The order is fixed: later stages are tuned on the output of earlier ones.
    """

    r = apply_exposure(r0, exposure)
    g = apply_exposure(g0, exposure)
    b = apply_exposure(b0, exposure)

    r = apply_contrast(r, contrast)
    g = apply_contrast(g, contrast)
    b = apply_contrast(b, contrast)

    r, g, b = apply_saturation(r, g, b, saturation)
    r, g, b = apply_temperature(r, g, b, temperature)
    r, g, b = apply_tint(r, g, b, tint)

    if fade > 0.0:
        r = apply_fade(r, fade)
        g = apply_fade(g, fade)
        b = apply_fade(b, fade)

    v = vignette_factor(x, y, width, height, vignette)
    r *= v
    g *= v
    b *= v

    if grain > 0.0:
        r, g, b = apply_grain(r, g, b, grain, noise2d(x, y, seed))

    return lerp(r0, r, strength), lerp(g0, g, strength), lerp(b0, b, strength)


@jit(nopython=True, inline="always")
def float_to_uint8(value: float) -> int:
    """Quantise *value* from ``[0.0, 1.0]`` to the nearest 8-bit channel value."""

    scaled = round(value * 255.0)
    if scaled < 0:
        return 0
    if scaled > 255:
        return 255
    return int(scaled)


__all__ = [
    "LUMA_B",
    "LUMA_G",
    "LUMA_R",
    "apply_contrast",
    "apply_exposure",
    "apply_fade",
    "apply_grain",
    "apply_saturation",
    "apply_temperature",
    "apply_tint",
    "clamp01",
    "float_to_uint8",
    "grade_pixel",
    "hsl_to_rgb",
    "lerp",
    "noise2d",
    "rgb_to_hsl",
    "vignette_factor",
]
