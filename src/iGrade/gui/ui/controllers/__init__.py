"""Controllers connecting the grading core to Qt signals."""

from .render_controller import RenderController
from .thumbnail_controller import ThumbnailController

__all__ = ["RenderController", "ThumbnailController"]
