"""Controller publishing the per-preset thumbnail strip to the GUI."""

from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage

from ....config import Settings
from ....core.filters.utils import pixel_buffer_to_qimage, qimage_to_pixel_buffer
from ....core.pixel_buffer import PixelBuffer
from ....core.presets import PresetCatalog, builtin_catalog
from ....core.preview_backends import PreviewBackend
from ....core.thumbnails import Thumbnail, ThumbnailGenerator
from ....core.ticker import TickScheduler
from ..tasks.frame_ticker import QtFrameTicker


class ThumbnailController(QObject):
    """Drive a :class:`ThumbnailGenerator` from the Qt event loop."""

    thumbnailsReady = Signal(list)
    """Emitted with the complete ``list[Thumbnail]`` (``encoded`` is a ``QImage``)."""

    thumbnailsFailed = Signal(str)

    def __init__(
        self,
        backend: PreviewBackend,
        *,
        settings: Optional[Settings] = None,
        catalog: Optional[PresetCatalog] = None,
        size: Optional[int] = None,
        ticker: Optional[TickScheduler] = None,
        seed_factory: Optional[Callable[[], int]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        settings = settings if settings is not None else Settings()
        self._ticker = ticker if ticker is not None else QtFrameTicker(settings.tick_interval_ms)
        self._generator: ThumbnailGenerator[QImage] = ThumbnailGenerator(
            backend.render_buffer,
            catalog if catalog is not None else builtin_catalog(),
            self._ticker,
            size=size if size is not None else settings.thumbnail_size,
            encoder=pixel_buffer_to_qimage,
            on_ready=self._handle_ready,
            on_error=self.thumbnailsFailed.emit,
            seed_factory=seed_factory,
        )

    @property
    def ticker(self) -> TickScheduler:
        return self._ticker

    @property
    def generator(self) -> ThumbnailGenerator[QImage]:
        return self._generator

    def load_image(self, buffer: PixelBuffer) -> int:
        """Start generating thumbnails for *buffer*; returns the batch epoch."""

        return self._generator.load_image(buffer)

    def load_qimage(self, image: QImage) -> int:
        if image.isNull():
            raise ValueError("Cannot load a null QImage")
        return self._generator.load_image(qimage_to_pixel_buffer(image))

    def cancel(self) -> None:
        self._generator.cancel()

    def thumbnails(self) -> list[Thumbnail[QImage]]:
        return list(self._generator.thumbnails)

    def _handle_ready(self, thumbnails: tuple[Thumbnail[QImage], ...]) -> None:
        self.thumbnailsReady.emit(list(thumbnails))


__all__ = ["ThumbnailController"]
