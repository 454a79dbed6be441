from PySide6.QtGui import QColor, QImage

from iGrade.config import Settings
from iGrade.core.pixel_buffer import PixelBuffer
from iGrade.core.presets import builtin_catalog
from iGrade.core.preview_backends import create_preview_backend
from iGrade.core.ticker import ManualTicker
from iGrade.gui.ui.controllers.thumbnail_controller import ThumbnailController
from iGrade.gui.ui.tasks.frame_ticker import QtFrameTicker


def test_thumbnails_ready_with_qimages(qtbot):
    ticker = ManualTicker()
    controller = ThumbnailController(create_preview_backend("cpu"), size=10, ticker=ticker)
    received = []
    controller.thumbnailsReady.connect(received.append)

    controller.load_image(PixelBuffer.blank(30, 20, (100, 150, 200)))
    ticker.drain()

    assert len(received) == 1
    names = [thumb.name for thumb in received[0]]
    assert names == list(builtin_catalog().names())
    first = received[0][0]
    assert isinstance(first.encoded, QImage)
    assert (first.encoded.width(), first.encoded.height()) == (10, 10)
    assert controller.thumbnails() == received[0]


def test_cancel_discards_running_batch(qtbot):
    ticker = ManualTicker()
    controller = ThumbnailController(create_preview_backend("cpu"), size=6, ticker=ticker)
    received = []
    controller.thumbnailsReady.connect(received.append)

    controller.load_image(PixelBuffer.blank(6, 6))
    ticker.run_next()
    controller.cancel()
    ticker.drain()
    assert received == []
    assert controller.thumbnails() == []


def test_failures_are_signalled(qtbot):
    class _Broken:
        def render_buffer(self, buffer, params, seed):
            raise RuntimeError("out of memory")

    ticker = ManualTicker()
    controller = ThumbnailController(_Broken(), size=4, ticker=ticker)
    with qtbot.waitSignal(controller.thumbnailsFailed) as blocker:
        controller.load_image(PixelBuffer.blank(4, 4))
        ticker.drain()
    assert blocker.args == ["Normal: out of memory"]


def test_settings_and_qimage_input(qtbot):
    ticker = ManualTicker()
    controller = ThumbnailController(
        create_preview_backend("cpu"),
        settings=Settings(thumbnail_size=7),
        ticker=ticker,
    )
    assert controller.generator.size == 7
    assert controller.ticker is ticker

    image = QImage(21, 14, QImage.Format.Format_RGB32)
    image.fill(QColor(40, 80, 120))
    controller.load_qimage(image)
    ticker.drain()

    normal = controller.thumbnails()[0]
    assert normal.image.size == (7, 7)
    assert tuple(normal.image.data[3, 3, :3]) == (40, 80, 120)


def test_tick_interval_from_settings(qtbot):
    controller = ThumbnailController(create_preview_backend("cpu"), settings=Settings(tick_interval_ms=5))
    assert isinstance(controller.ticker, QtFrameTicker)
    assert controller.ticker.interval_ms == 5
