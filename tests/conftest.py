import os
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Headless test runs must never try to open a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture
def gradient_buffer():
    """A small non-square buffer with varied colours in every channel."""

    from iGrade.core.pixel_buffer import PixelBuffer

    height, width = 6, 9
    ys, xs = np.mgrid[0:height, 0:width]
    rgb = np.stack(
        [
            (xs * 255) // (width - 1),
            (ys * 255) // (height - 1),
            ((xs + ys) * 17) % 256,
        ],
        axis=-1,
    ).astype(np.uint8)
    return PixelBuffer.from_rgb(rgb)
