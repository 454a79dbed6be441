"""Worker that executes full-resolution renders on a background thread."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QRunnable, Signal

from ....core.pixel_buffer import PixelBuffer
from ....core.preview_backends import PreviewBackend, PreviewSession
from ....core.render_scheduler import RenderJob

_LOGGER = logging.getLogger(__name__)


class PreviewRenderSignals(QObject):
    """Signals emitted by :class:`PreviewRenderWorker`."""

    finished = Signal(PixelBuffer, int)
    """Emitted with the rendered frame and the job identifier."""

    failed = Signal(int, str)
    """Emitted with the job identifier and an error message."""


class PreviewRenderWorker(QRunnable):
    """Run ``PreviewBackend.render`` for one :class:`RenderJob`.

    The job carries the session, an immutable parameter snapshot and the seed,
    so the worker shares no mutable state with the GUI thread.  The rendered
    buffer is freshly allocated by the backend and handed over through the
    ``finished`` signal; the worker keeps no reference to it.
    """

    def __init__(self, backend: PreviewBackend, job: RenderJob[PreviewSession]) -> None:
        super().__init__()
        self._backend = backend
        self._job = job
        self.signals = PreviewRenderSignals()

    @property
    def job(self) -> RenderJob[PreviewSession]:
        return self._job

    def run(self) -> None:  # type: ignore[override]
        """Render the frame and notify listeners when done."""

        job = self._job
        try:
            result = self._backend.render(job.source, job.params, job.seed)
        except Exception as exc:
            _LOGGER.exception("Preview render %d failed", job.job_id)
            self.signals.failed.emit(job.job_id, str(exc) or exc.__class__.__name__)
            return
        self.signals.finished.emit(result, job.job_id)


__all__ = ["PreviewRenderSignals", "PreviewRenderWorker"]
