"""Pillow helpers for moving pixels between files and :class:`PixelBuffer`."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from ..config import DEFAULT_MAX_PREVIEW_WIDTH
from ..errors import ImageLoadError
from .pixel_buffer import PixelBuffer

PLACEHOLDER_SIZE = (1200, 800)
_PLACEHOLDER_STOPS = (
    (0.0, (0x2B, 0x58, 0x76)),
    (0.45, (0x4E, 0x43, 0x76)),
    (1.0, (0xF7, 0x97, 0x1E)),
)

_RGB_ONLY_SUFFIXES = {".jpg", ".jpeg", ".bmp"}


def buffer_to_image(buffer: PixelBuffer) -> Image.Image:
    return Image.fromarray(buffer.to_array())


def image_to_buffer(image: Image.Image) -> PixelBuffer:
    """Return an opaque buffer holding *image*'s pixels."""

    return PixelBuffer.from_rgb(np.asarray(image.convert("RGB")))


def fit_to_width(width: int, height: int, max_width: int = DEFAULT_MAX_PREVIEW_WIDTH) -> tuple[int, int]:
    """Return ``(width, height)`` capped at *max_width* with the aspect ratio kept.

    Images narrower than *max_width* are never enlarged.
    """

    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive; got {width}x{height}")
    ratio = width / height
    fitted_width = min(max_width, width)
    fitted_height = max(1, round(fitted_width / ratio))
    return fitted_width, fitted_height


def load_image(path: Path, *, max_width: int = DEFAULT_MAX_PREVIEW_WIDTH) -> PixelBuffer:
    """Decode *path*, honour its EXIF orientation and fit it to *max_width*."""

    try:
        with Image.open(path) as handle:
            image = ImageOps.exif_transpose(handle)
            image.load()
    except FileNotFoundError as exc:
        raise ImageLoadError(f"Image not found: {path}") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"Cannot decode image {path}: {exc}") from exc

    size = fit_to_width(image.width, image.height, max_width)
    if size != image.size:
        image = image.convert("RGB").resize(size, Image.Resampling.LANCZOS)
    return image_to_buffer(image)


def save_image(buffer: PixelBuffer, path: Path) -> Path:
    """Encode *buffer* to *path*; the format follows the file suffix."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    image = buffer_to_image(buffer)
    if target.suffix.lower() in _RGB_ONLY_SUFFIXES:
        image = image.convert("RGB")
    image.save(target)
    return target


def center_square_crop(buffer: PixelBuffer) -> PixelBuffer:
    """Crop the longer dimension so the centred square remains."""

    side = min(buffer.width, buffer.height)
    left = (buffer.width - side) // 2
    top = (buffer.height - side) // 2
    return PixelBuffer(buffer.data[top : top + side, left : left + side])


def resize(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    if buffer.size == (width, height):
        return buffer
    image = buffer_to_image(buffer).convert("RGB").resize((width, height), Image.Resampling.LANCZOS)
    return image_to_buffer(image)


def make_thumbnail_sample(buffer: PixelBuffer, size: int) -> PixelBuffer:
    """Return the ``size`` x ``size`` centred square sample used for preset previews."""

    if size < 1:
        raise ValueError(f"Thumbnail size must be positive; got {size}")
    return resize(center_square_crop(buffer), size, size)


def encode_png(buffer: PixelBuffer) -> bytes:
    stream = io.BytesIO()
    buffer_to_image(buffer).save(stream, format="PNG")
    return stream.getvalue()


def placeholder_buffer(width: int = PLACEHOLDER_SIZE[0], height: int = PLACEHOLDER_SIZE[1]) -> PixelBuffer:
    """Return the gradient card shown before any image has been loaded."""

    # Position along the top-left to bottom-right diagonal, in [0, 1].
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    t = (xs * width + ys * height) / float(width * width + height * height)

    positions = np.array([stop for stop, _ in _PLACEHOLDER_STOPS])
    rgb = np.empty((height, width, 3), dtype=np.float64)
    for channel in range(3):
        values = np.array([color[channel] for _, color in _PLACEHOLDER_STOPS], dtype=np.float64)
        rgb[..., channel] = np.interp(t, positions, values)

    base = Image.fromarray(np.rint(rgb).astype(np.uint8)).convert("RGBA")
    overlay = Image.new("RGBA", base.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    draw.text(
        (70, 120),
        "Upload an image to test filters",
        font=ImageFont.load_default(size=48),
        fill=(255, 255, 255, round(0.85 * 255)),
        anchor="ls",
    )
    draw.text(
        (70, 170),
        "This is a placeholder canvas.",
        font=ImageFont.load_default(size=22),
        fill=(255, 255, 255, round(0.65 * 255)),
        anchor="ls",
    )
    return image_to_buffer(Image.alpha_composite(base, overlay))


__all__ = [
    "PLACEHOLDER_SIZE",
    "buffer_to_image",
    "center_square_crop",
    "encode_png",
    "fit_to_width",
    "image_to_buffer",
    "load_image",
    "make_thumbnail_sample",
    "placeholder_buffer",
    "resize",
    "save_image",
]
