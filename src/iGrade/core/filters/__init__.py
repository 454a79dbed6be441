"""Colour grading filters.

- algorithms: pure per-channel and per-pixel maths (Numba compiled)
- jit_executor: CPU executor running the fused pipeline over a whole buffer
- facade: ``render`` / ``execute`` entry points
- utils: conversion between Qt images and pixel buffers
"""

from __future__ import annotations

from .facade import execute, render

__all__ = ["execute", "render"]
