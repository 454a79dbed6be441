import io

import numpy as np
import pytest
from PIL import Image

from iGrade.core.imaging import (
    PLACEHOLDER_SIZE,
    center_square_crop,
    encode_png,
    fit_to_width,
    load_image,
    make_thumbnail_sample,
    placeholder_buffer,
    save_image,
)
from iGrade.core.pixel_buffer import PixelBuffer
from iGrade.errors import ImageLoadError


def test_fit_to_width_caps_and_keeps_ratio():
    assert fit_to_width(4000, 3000, 2000) == (2000, 1500)
    assert fit_to_width(1000, 333, 2000) == (1000, 333)
    assert fit_to_width(3001, 1000, 2000) == (2000, 666)


def test_fit_to_width_rejects_empty():
    with pytest.raises(ValueError):
        fit_to_width(0, 10)


def test_load_image_downscales_wide_images(tmp_path):
    path = tmp_path / "wide.png"
    Image.new("RGB", (300, 100), (10, 20, 30)).save(path)
    buffer = load_image(path, max_width=150)
    assert buffer.size == (150, 50)
    assert tuple(buffer.data[25, 75]) == (10, 20, 30, 255)


def test_load_image_keeps_small_images(tmp_path):
    path = tmp_path / "small.png"
    Image.new("RGBA", (5, 7), (1, 2, 3, 0)).save(path)
    buffer = load_image(path)
    assert buffer.size == (5, 7)
    assert np.all(buffer.data[..., 3] == 255)


def test_load_image_errors(tmp_path):
    with pytest.raises(ImageLoadError):
        load_image(tmp_path / "missing.png")
    junk = tmp_path / "junk.png"
    junk.write_bytes(b"not an image")
    with pytest.raises(ImageLoadError):
        load_image(junk)


def test_save_image_round_trips_png(tmp_path):
    buffer = PixelBuffer.blank(3, 2, (200, 100, 50))
    target = save_image(buffer, tmp_path / "out" / "filtered.png")
    with Image.open(target) as image:
        assert image.size == (3, 2)
        assert image.convert("RGB").getpixel((0, 0)) == (200, 100, 50)


def test_save_image_as_jpeg(tmp_path):
    target = save_image(PixelBuffer.blank(4, 4, (90, 90, 90)), tmp_path / "out.jpg")
    with Image.open(target) as image:
        assert image.mode == "RGB"


def test_center_square_crop_portrait():
    array = np.zeros((9, 3, 4), dtype=np.uint8)
    array[3:6, :, 1] = 255
    cropped = center_square_crop(PixelBuffer(array))
    assert cropped.size == (3, 3)
    assert np.all(cropped.data[..., 1] == 255)


def test_make_thumbnail_sample_size():
    sample = make_thumbnail_sample(PixelBuffer.blank(50, 20), 16)
    assert sample.size == (16, 16)


def test_encode_png():
    data = encode_png(PixelBuffer.blank(2, 2, (5, 6, 7)))
    with Image.open(io.BytesIO(data)) as image:
        assert image.format == "PNG"
        assert image.getpixel((1, 1))[:3] == (5, 6, 7)


def test_placeholder_gradient_endpoints():
    buffer = placeholder_buffer()
    assert buffer.size == PLACEHOLDER_SIZE
    assert tuple(buffer.data[0, 0, :3]) == (0x2B, 0x58, 0x76)
    assert tuple(int(v) for v in buffer.data[-1, -1, :3]) == pytest.approx((0xF7, 0x97, 0x1E), abs=1)
