"""Conversion between Qt images and :class:`~iGrade.core.pixel_buffer.PixelBuffer`.

Qt bindings expose the raw pixel memory of a ``QImage`` slightly differently,
so the helpers below normalise the view before handing it to NumPy.  Only the
GUI layer imports this module; the core pipeline never depends on Qt.
"""

from __future__ import annotations

import numpy as np
from PySide6.QtGui import QImage

from ..pixel_buffer import PixelBuffer


def _resolve_pixel_buffer(image: QImage) -> tuple[memoryview, object]:
    """Return a 1-D :class:`memoryview` over *image*'s pixels.

    PyQt returns a ``sip.voidptr`` that requires an explicit ``setsize`` call
    before Python can view the memory, while PySide exposes a ready-to-use
    ``memoryview``.  The tuple's second element must be kept alive for as long
    as the view is used; dropping it lets Qt reclaim the wrapper and leaves the
    view dangling.
    """

    bytes_per_line = image.bytesPerLine()
    height = image.height()
    buffer = image.constBits()
    expected_size = bytes_per_line * height

    guard: object = buffer

    if isinstance(buffer, memoryview):
        view = buffer
    else:
        try:
            view = memoryview(buffer)
        except TypeError:
            if hasattr(buffer, "setsize"):
                buffer.setsize(expected_size)
                view = memoryview(buffer)
            else:
                raise RuntimeError("Unsupported QImage.constBits() buffer wrapper") from None

    try:
        view = view.cast("B")
    except TypeError:
        # Older interpreters want the shape when recasting a multi-dimensional view.
        view = view.cast("B", (view.nbytes,))

    if len(view) > expected_size:
        view = view[:expected_size]

    return view, guard


def qimage_to_pixel_buffer(image: QImage) -> PixelBuffer:
    """Copy *image* into a new :class:`PixelBuffer` (alpha forced opaque)."""

    if image.isNull():
        raise ValueError("Cannot convert a null QImage")

    converted = image.convertToFormat(QImage.Format.Format_RGBA8888)
    width = converted.width()
    height = converted.height()
    bytes_per_line = converted.bytesPerLine()

    view, guard = _resolve_pixel_buffer(converted)
    _ = guard  # keep the Qt wrapper alive while NumPy reads the memory

    raw = np.frombuffer(view, dtype=np.uint8, count=bytes_per_line * height)
    rows = raw.reshape((height, bytes_per_line))
    return PixelBuffer.from_rgb(rows[:, : width * 4].reshape((height, width, 4)))


def pixel_buffer_to_qimage(buffer: PixelBuffer) -> QImage:
    """Return a detached ``QImage`` holding a copy of *buffer*'s pixels."""

    data = buffer.data
    height, width = data.shape[:2]
    image = QImage(data.tobytes(), width, height, width * 4, QImage.Format.Format_RGBA8888)
    # ``QImage`` does not own memory passed to its constructor; ``copy`` detaches it
    # before the temporary ``bytes`` object is collected.
    return image.copy()


__all__ = ["pixel_buffer_to_qimage", "qimage_to_pixel_buffer"]
