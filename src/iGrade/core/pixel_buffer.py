"""Immutable 8-bit RGBA pixel storage shared between render backends."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Row-major ``(height, width, 4)`` ``uint8`` image, rows ordered top to bottom.

    The array is frozen (``writeable=False``) so a buffer can be handed to a
    worker thread and read concurrently without anyone mutating it.  Renderers
    always allocate a new output array; the source of a render is never touched,
    which keeps repeated renders with different parameters reproducible.
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        array = np.array(self.data, dtype=np.uint8, order="C", copy=True)
        _validate_shape(array)
        array.setflags(write=False)
        object.__setattr__(self, "data", array)

    # ------------------------------------------------------------------
    @classmethod
    def adopt(cls, array: np.ndarray) -> "PixelBuffer":
        """Wrap *array* without copying, taking ownership of it.

        The caller relinquishes the array: it is frozen in place and must not be
        written again.  Renderers use this to hand freshly allocated output
        buffers back without duplicating large pixel arrays.
        """

        if array.dtype != np.uint8 or not array.flags.c_contiguous:
            return cls(array)
        _validate_shape(array)
        array.setflags(write=False)
        buffer = object.__new__(cls)
        object.__setattr__(buffer, "data", array)
        return buffer

    @classmethod
    def from_rgb(cls, array: np.ndarray) -> "PixelBuffer":
        """Return a buffer from an ``(h, w, 3)`` or ``(h, w, 4)`` array with opaque alpha."""

        source = np.asarray(array)
        if source.ndim != 3 or source.shape[2] not in (3, 4):
            raise ValueError(f"Expected an (h, w, 3) or (h, w, 4) array; got shape {source.shape}")
        height, width = source.shape[:2]
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[..., :3] = source[..., :3]
        rgba[..., 3] = 255
        return cls.adopt(rgba)

    @classmethod
    def blank(
        cls,
        width: int,
        height: int,
        color: tuple[int, int, int] = (0, 0, 0),
    ) -> "PixelBuffer":
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[..., 0] = color[0]
        rgba[..., 1] = color[1]
        rgba[..., 2] = color[2]
        rgba[..., 3] = 255
        return cls.adopt(rgba)

    # ------------------------------------------------------------------
    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        """Return ``(width, height)``."""

        return self.width, self.height

    def to_array(self) -> np.ndarray:
        """Return a writeable copy of the pixels."""

        return self.data.copy()

    def same_pixels(self, other: "PixelBuffer") -> bool:
        """Return ``True`` when *other* has identical dimensions and bytes."""

        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self.width}, height={self.height})"


def _validate_shape(array: np.ndarray) -> None:
    if array.ndim != 3 or array.shape[2] != 4:
        raise ValueError(f"PixelBuffer expects an (h, w, 4) array; got shape {array.shape}")
    if array.shape[0] < 1 or array.shape[1] < 1:
        raise ValueError("PixelBuffer cannot be empty")


__all__ = ["PixelBuffer"]
