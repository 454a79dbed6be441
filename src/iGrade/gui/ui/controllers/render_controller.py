"""Controller binding the render scheduler to a preview backend and Qt."""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Callable, Optional

from PySide6.QtCore import QObject, Qt, QThreadPool, Signal
from PySide6.QtGui import QImage

from ....config import Settings
from ....core.filters.utils import pixel_buffer_to_qimage, qimage_to_pixel_buffer
from ....core.imaging import fit_to_width, placeholder_buffer
from ....core.params import FilterParams, NEUTRAL_PARAMS
from ....core.pixel_buffer import PixelBuffer
from ....core.presets import NORMAL_PRESET, PresetCatalog, builtin_catalog
from ....core.preview_backends import PreviewBackend, PreviewSession, new_seed
from ....core.render_scheduler import RenderJob, RenderScheduler
from ....core.ticker import TickScheduler
from ...performance_monitor import RenderTimingMonitor, render_monitor
from ..tasks.frame_ticker import QtFrameTicker
from ..tasks.preview_render_worker import PreviewRenderWorker

_LOGGER = logging.getLogger(__name__)


class RenderController(QObject):
    """Keep the full-resolution preview in sync with the latest parameters.

    The controller owns the current :class:`FilterParams` snapshot and one
    backend session per loaded image.  Renders go through a
    :class:`RenderScheduler`, so at most one is in flight; how a render runs
    depends on the backend:

    * backends that cannot render in real time (CPU) run each job on the
      thread pool through a :class:`PreviewRenderWorker`;
    * realtime backends (OpenGL) render synchronously on the next frame tick.

    A session stays alive until the image is replaced *and* no in-flight job
    still renders from it.  Until the first image is loaded the controller
    presents the placeholder card.
    """

    frameReady = Signal(QImage, PixelBuffer)
    """Emitted with the display image and the buffer it was converted from."""

    renderFailed = Signal(str)
    renderTimed = Signal(str, float)
    """Emitted with the backend tier and the render duration in milliseconds."""

    def __init__(
        self,
        backend: PreviewBackend,
        *,
        settings: Optional[Settings] = None,
        catalog: Optional[PresetCatalog] = None,
        ticker: Optional[TickScheduler] = None,
        thread_pool: Optional[QThreadPool] = None,
        monitor: Optional[RenderTimingMonitor] = None,
        seed_factory: Optional[Callable[[], int]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._backend = backend
        self._catalog = catalog if catalog is not None else builtin_catalog()
        self._settings = settings if settings is not None else Settings()
        self._ticker = (
            ticker if ticker is not None else QtFrameTicker(self._settings.tick_interval_ms)
        )
        self._thread_pool = thread_pool if thread_pool is not None else QThreadPool.globalInstance()
        self._monitor = monitor if monitor is not None else render_monitor

        self._params: FilterParams = NEUTRAL_PARAMS
        self._current_frame: Optional[PixelBuffer] = None
        self._placeholder: Optional[PixelBuffer] = None
        self._has_image = False
        self._sessions: dict[int, PreviewSession] = {}
        self._in_flight: dict[int, tuple[RenderJob[PreviewSession], float]] = {}
        self._workers: dict[int, PreviewRenderWorker] = {}
        self._closed = False

        self._scheduler: RenderScheduler[PreviewSession, PixelBuffer] = RenderScheduler(
            self._dispatch,
            self.params,
            seed_factory=seed_factory or new_seed,
            present=self._present,
            on_failure=self._report_failure,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def backend(self) -> PreviewBackend:
        return self._backend

    @property
    def catalog(self) -> PresetCatalog:
        return self._catalog

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def ticker(self) -> TickScheduler:
        return self._ticker

    @property
    def scheduler(self) -> RenderScheduler[PreviewSession, PixelBuffer]:
        return self._scheduler

    def params(self) -> FilterParams:
        """Return the latest parameter snapshot."""

        return self._params

    def current_frame(self) -> Optional[PixelBuffer]:
        """Return the most recently presented frame.

        Before any image has been loaded this is the placeholder card.
        """

        if not self._has_image:
            return self._placeholder_frame()
        return self._current_frame

    def has_image(self) -> bool:
        return self._has_image

    def show_placeholder(self) -> bool:
        """Emit ``frameReady`` with the placeholder if no image is loaded yet."""

        if self._has_image or self._closed:
            return False
        placeholder = self._placeholder_frame()
        self.frameReady.emit(pixel_buffer_to_qimage(placeholder), placeholder)
        return True

    def load_image(self, buffer: PixelBuffer) -> None:
        """Make *buffer* the render source and render it with the current params."""

        if self._closed:
            raise RuntimeError("RenderController has been shut down")
        session = self._backend.create_session(buffer)
        token = self._scheduler.set_source(session)
        self._sessions[token] = session
        self._current_frame = None
        self._has_image = True
        self._release_unused_sessions()
        self._scheduler.request_render()

    def load_qimage(self, image: QImage) -> None:
        """Load a Qt image, scaled down to the configured preview width."""

        if image.isNull():
            raise ValueError("Cannot load a null QImage")
        size = fit_to_width(image.width(), image.height(), self._settings.max_preview_width)
        if size != (image.width(), image.height()):
            image = image.scaled(
                size[0],
                size[1],
                Qt.AspectRatioMode.IgnoreAspectRatio,
                Qt.TransformationMode.SmoothTransformation,
            )
        self.load_image(qimage_to_pixel_buffer(image))

    def set_params(self, params: FilterParams) -> None:
        """Replace the parameter snapshot and request a render.

        Non-finite values are rejected here, before anything is dispatched.
        """

        if self._closed:
            raise RuntimeError("RenderController has been shut down")
        self._params = params.ensure_finite()
        self._scheduler.request_render()

    def apply_preset(self, name: str) -> FilterParams:
        params = self._catalog[name]
        self.set_params(params)
        return params

    def reset(self) -> FilterParams:
        """Return to the neutral ``Normal`` look."""

        return self.apply_preset(NORMAL_PRESET)

    def shutdown(self) -> None:
        """Stop rendering and release every session no in-flight job still uses.

        Results of jobs still in flight are dropped when they arrive.
        """

        self._closed = True
        self._scheduler.clear_source()
        self._release_unused_sessions()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def _dispatch(self, job: RenderJob[PreviewSession]) -> None:
        if self._closed:
            raise RuntimeError("RenderController has been shut down")
        self._in_flight[job.job_id] = (job, time.perf_counter())
        if self._backend.supports_realtime:
            self._ticker.call_soon(partial(self._render_on_tick, job))
            return

        worker = PreviewRenderWorker(self._backend, job)
        worker.signals.finished.connect(self._handle_worker_finished)
        worker.signals.failed.connect(self._handle_worker_failed)
        self._workers[job.job_id] = worker
        self._thread_pool.start(worker)

    def _render_on_tick(self, job: RenderJob[PreviewSession]) -> None:
        try:
            result = self._backend.render(job.source, job.params, job.seed)
        except Exception as exc:
            _LOGGER.exception("Preview render %d failed", job.job_id)
            self._handle_failure(job.job_id, str(exc) or exc.__class__.__name__)
            return
        self._handle_result(job.job_id, result)

    # ------------------------------------------------------------------
    # Completion handlers
    # ------------------------------------------------------------------
    def _handle_worker_finished(self, result: PixelBuffer, job_id: int) -> None:
        self._workers.pop(job_id, None)
        self._handle_result(job_id, result)

    def _handle_worker_failed(self, job_id: int, message: str) -> None:
        self._workers.pop(job_id, None)
        self._handle_failure(job_id, message)

    def _handle_result(self, job_id: int, result: PixelBuffer) -> None:
        entry = self._in_flight.pop(job_id, None)
        if entry is None:
            return
        job, started = entry
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        tier = self._backend.tier_name
        self._monitor.record(tier, elapsed_ms)
        _LOGGER.debug("Render: %dms (%s)", round(elapsed_ms), tier)
        self.renderTimed.emit(tier, elapsed_ms)

        self._scheduler.complete(job, result)
        self._release_unused_sessions()

    def _handle_failure(self, job_id: int, message: str) -> None:
        entry = self._in_flight.pop(job_id, None)
        if entry is None:
            return
        job, _ = entry
        self._scheduler.fail(job, message)
        self._release_unused_sessions()

    def _present(self, job: RenderJob[PreviewSession], result: PixelBuffer) -> None:
        self._current_frame = result
        self.frameReady.emit(pixel_buffer_to_qimage(result), result)

    def _report_failure(self, job: RenderJob[PreviewSession], message: str) -> None:
        _LOGGER.warning("Render %d failed: %s", job.job_id, message)
        self.renderFailed.emit(message)

    def _placeholder_frame(self) -> PixelBuffer:
        if self._placeholder is None:
            self._placeholder = placeholder_buffer()
        return self._placeholder

    # ------------------------------------------------------------------
    # Session lifetime
    # ------------------------------------------------------------------
    def _release_unused_sessions(self) -> None:
        referenced = {job.source_token for job, _ in self._in_flight.values()}
        if not self._closed:
            referenced.add(self._scheduler.source_token)
        for token in [token for token in self._sessions if token not in referenced]:
            self._backend.dispose_session(self._sessions.pop(token))


__all__ = ["RenderController"]
