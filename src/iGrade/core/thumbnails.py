"""Per-preset thumbnail strip generation, one preset per tick."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from ..config import DEFAULT_THUMBNAIL_SIZE
from .imaging import encode_png, make_thumbnail_sample
from .params import FilterParams
from .pixel_buffer import PixelBuffer
from .presets import PresetCatalog
from .preview_backends import new_seed
from .ticker import TickScheduler

_LOGGER = logging.getLogger(__name__)

EncodedT = TypeVar("EncodedT")

RenderFn = Callable[[PixelBuffer, FilterParams, int], PixelBuffer]


@dataclass(frozen=True)
class Thumbnail(Generic[EncodedT]):
    name: str
    image: PixelBuffer
    encoded: EncodedT


@dataclass
class _Batch:
    epoch: int
    sample: PixelBuffer
    seed: int
    names: tuple[str, ...]
    staged: list[Thumbnail[Any]] = field(default_factory=list)


class ThumbnailGenerator(Generic[EncodedT]):
    """Render every catalog preset against a square sample of the loaded image.

    :meth:`load_image` starts a batch tagged with a fresh epoch and returns
    immediately; each tick renders a single preset.  Before every step the batch
    checks that its epoch is still the latest one, so loading another image
    mid-batch makes the old batch stop without output.  The visible
    :attr:`thumbnails` are replaced in one assignment once every preset has
    rendered, never piecemeal.

    All grain in one batch shares a seed so the thumbnails are comparable.
    """

    def __init__(
        self,
        render_fn: RenderFn,
        catalog: PresetCatalog,
        ticker: TickScheduler,
        *,
        size: int = DEFAULT_THUMBNAIL_SIZE,
        encoder: Callable[[PixelBuffer], EncodedT] = encode_png,  # type: ignore[assignment]
        on_ready: Optional[Callable[[tuple[Thumbnail[EncodedT], ...]], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        seed_factory: Optional[Callable[[], int]] = None,
    ) -> None:
        if size < 1:
            raise ValueError(f"Thumbnail size must be positive; got {size}")
        self._render_fn = render_fn
        self._catalog = catalog
        self._ticker = ticker
        self._size = size
        self._encoder = encoder
        self._on_ready = on_ready
        self._on_error = on_error
        self._seed_factory = seed_factory or new_seed

        self._epoch = 0
        self._running_epoch: Optional[int] = None
        self._thumbnails: tuple[Thumbnail[EncodedT], ...] = ()

    # ------------------------------------------------------------------
    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def size(self) -> int:
        return self._size

    @property
    def thumbnails(self) -> tuple[Thumbnail[EncodedT], ...]:
        """The last fully generated strip, in catalog order."""

        return self._thumbnails

    def is_running(self) -> bool:
        return self._running_epoch is not None and self._running_epoch == self._epoch

    # ------------------------------------------------------------------
    def load_image(self, buffer: PixelBuffer) -> int:
        """Start a batch for *buffer*, superseding any running batch."""

        self._epoch += 1
        batch = _Batch(
            epoch=self._epoch,
            sample=make_thumbnail_sample(buffer, self._size),
            seed=int(self._seed_factory()),
            names=self._catalog.names(),
        )
        self._running_epoch = batch.epoch
        _LOGGER.debug("Thumbnail batch %d started (%d presets)", batch.epoch, len(batch.names))
        self._ticker.call_soon(lambda: self._step(batch))
        return batch.epoch

    def cancel(self) -> None:
        """Abandon the running batch; the visible thumbnails stay as they are."""

        self._epoch += 1
        self._running_epoch = None

    # ------------------------------------------------------------------
    def _step(self, batch: _Batch) -> None:
        if batch.epoch != self._epoch:
            _LOGGER.debug("Thumbnail batch %d superseded by %d", batch.epoch, self._epoch)
            return

        index = len(batch.staged)
        if index < len(batch.names):
            name = batch.names[index]
            try:
                image = self._render_fn(batch.sample, self._catalog[name], batch.seed)
                encoded = self._encoder(image)
            except Exception as exc:
                _LOGGER.exception("Failed to render thumbnail for preset %s", name)
                self._running_epoch = None
                if self._on_error is not None:
                    self._on_error(f"{name}: {exc}")
                return
            batch.staged.append(Thumbnail(name, image, encoded))

        if len(batch.staged) < len(batch.names):
            self._ticker.call_soon(lambda: self._step(batch))
            return

        self._thumbnails = tuple(batch.staged)
        self._running_epoch = None
        _LOGGER.debug("Thumbnail batch %d committed", batch.epoch)
        if self._on_ready is not None:
            self._on_ready(self._thumbnails)


__all__ = ["RenderFn", "Thumbnail", "ThumbnailGenerator"]
