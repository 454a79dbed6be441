"""Public entry points for the CPU grading pipeline."""

from __future__ import annotations

from typing import Sequence

from ..params import FilterParams
from ..pixel_buffer import PixelBuffer
from .algorithms import grade_pixel
from .jit_executor import render_cpu


def render(buffer: PixelBuffer, params: FilterParams, seed: int = 0) -> PixelBuffer:
    """Return *buffer* graded with *params*; the input buffer is never mutated.

    The result always has the dimensions of *buffer* and a fully opaque alpha
    channel.  *seed* drives the grain pattern: the same seed reproduces the same
    grain, a different seed produces a different one.
    """

    return render_cpu(buffer, params, seed)


def execute(
    color: Sequence[float],
    params: FilterParams,
    x: int,
    y: int,
    width: int,
    height: int,
    seed: int = 0,
) -> tuple[float, float, float]:
    """Grade a single normalised RGB *color* located at ``(x, y)``.

    The pixel position and image size only feed the vignette and grain stages;
    no other pixel is consulted.  Output channels stay in ``[0, 1]``.
    """

    r, g, b = (float(channel) for channel in color)
    return grade_pixel(r, g, b, int(x), int(y), int(width), int(height), *params.as_tuple(), int(seed))
