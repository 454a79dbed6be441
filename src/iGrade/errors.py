"""Exception hierarchy shared by the iGrade core, GUI controllers and CLI."""

from __future__ import annotations


class IGradeError(Exception):
    """Base class for every error raised deliberately by iGrade."""


class InvalidParamsError(IGradeError, ValueError):
    """Raised when a filter parameter set cannot be dispatched to a renderer."""


class PresetError(IGradeError):
    """Raised when the preset catalog cannot be read or extended."""


class PresetNotFoundError(PresetError, KeyError):
    """Raised when a preset name is not part of the catalog."""

    def __str__(self) -> str:  # KeyError quotes its argument otherwise
        return str(self.args[0]) if self.args else ""


class BackendUnavailableError(IGradeError, RuntimeError):
    """Raised when the requested render backend cannot be initialised."""


class RenderError(IGradeError):
    """Raised (or reported) when a render job fails while processing pixels."""


class SettingsError(IGradeError):
    """Raised when the settings file is missing required structure."""


class ImageLoadError(IGradeError):
    """Raised when an input image cannot be decoded."""


__all__ = [
    "BackendUnavailableError",
    "IGradeError",
    "ImageLoadError",
    "InvalidParamsError",
    "PresetError",
    "PresetNotFoundError",
    "RenderError",
    "SettingsError",
]
