import numpy as np
import pytest
from PySide6.QtGui import QColor, QImage

from iGrade.core.filters.utils import pixel_buffer_to_qimage, qimage_to_pixel_buffer
from iGrade.core.pixel_buffer import PixelBuffer


def test_buffer_survives_qimage_conversion(gradient_buffer):
    image = pixel_buffer_to_qimage(gradient_buffer)
    assert (image.width(), image.height()) == gradient_buffer.size
    assert qimage_to_pixel_buffer(image).same_pixels(gradient_buffer)


def test_padded_rows_and_other_formats():
    # A 3 pixel wide RGB888 image has 9 bytes per row, padded to 12 by Qt.
    image = QImage(3, 2, QImage.Format.Format_RGB888)
    image.fill(QColor(12, 34, 56))
    image.setPixelColor(2, 1, QColor(200, 100, 0))
    buffer = qimage_to_pixel_buffer(image)
    assert buffer.size == (3, 2)
    assert tuple(buffer.data[0, 0]) == (12, 34, 56, 255)
    assert tuple(buffer.data[1, 2]) == (200, 100, 0, 255)


def test_alpha_is_forced_opaque():
    image = QImage(2, 2, QImage.Format.Format_RGBA8888)
    image.fill(QColor(10, 20, 30, 0))
    assert np.all(qimage_to_pixel_buffer(image).data[..., 3] == 255)


def test_qimage_is_detached_from_buffer():
    buffer = PixelBuffer.blank(2, 2, (1, 2, 3))
    image = pixel_buffer_to_qimage(buffer)
    image.setPixelColor(0, 0, QColor(255, 255, 255))
    assert tuple(buffer.data[0, 0, :3]) == (1, 2, 3)


def test_null_qimage_is_rejected():
    with pytest.raises(ValueError):
        qimage_to_pixel_buffer(QImage())
