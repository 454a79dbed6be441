"""iGrade: Instagram-style colour grading with CPU and OpenGL render backends."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
