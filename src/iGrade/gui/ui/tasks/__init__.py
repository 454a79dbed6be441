"""Background worker helpers for GUI tasks."""

from .frame_ticker import QtFrameTicker
from .preview_render_worker import PreviewRenderSignals, PreviewRenderWorker

__all__ = [
    "PreviewRenderSignals",
    "PreviewRenderWorker",
    "QtFrameTicker",
]
