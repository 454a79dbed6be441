"""Tests for backend selection and the CPU/OpenGL backends."""

import random

import numpy as np
import pytest

from iGrade.core.params import NEUTRAL_PARAMS, FilterParams
from iGrade.core.pixel_buffer import PixelBuffer
from iGrade.core.presets import builtin_catalog
from iGrade.core.preview_backends import (
    SEED_LIMIT,
    available_backends,
    create_preview_backend,
    new_seed,
)
from iGrade.errors import BackendUnavailableError


def test_new_seed_domain():
    rng = random.Random(3)
    seeds = [new_seed(rng) for _ in range(200)]
    assert all(0 <= seed < SEED_LIMIT for seed in seeds)
    assert len(set(seeds)) > 190


def test_cpu_backend_is_always_available():
    assert "cpu" in available_backends()
    backend = create_preview_backend("cpu")
    assert backend.tier_name == "CPU"
    assert not backend.supports_realtime


def test_unknown_backend_raises():
    with pytest.raises(BackendUnavailableError):
        create_preview_backend("cuda")


def test_cpu_session_renders_repeatedly(gradient_buffer):
    backend = create_preview_backend("cpu")
    session = backend.create_session(gradient_buffer)
    first = backend.render(session, builtin_catalog()["Aden-ish"], 4)
    second = backend.render(session, builtin_catalog()["Aden-ish"], 4)
    identity = backend.render(session, NEUTRAL_PARAMS, 4)
    backend.dispose_session(session)
    assert first.same_pixels(second)
    assert identity.same_pixels(gradient_buffer)


def test_render_buffer_convenience(gradient_buffer):
    backend = create_preview_backend("cpu")
    result = backend.render_buffer(gradient_buffer, FilterParams(strength=0.0, fade=0.5), 0)
    assert result.same_pixels(gradient_buffer)


# ----------------------------------------------------------------------
# OpenGL: exercised only where a GL 3.3 context can be created
# ----------------------------------------------------------------------


@pytest.fixture
def gl_backend(qapp):
    try:
        backend = create_preview_backend("opengl")
    except BackendUnavailableError as exc:
        pytest.skip(f"OpenGL backend unavailable: {exc}")
    yield backend
    backend.close()


def test_opengl_identity_and_strength_zero(gl_backend, gradient_buffer):
    assert gl_backend.supports_realtime
    identity = gl_backend.render_buffer(gradient_buffer, NEUTRAL_PARAMS, 1)
    assert identity.size == gradient_buffer.size
    assert np.abs(identity.data.astype(int) - gradient_buffer.data.astype(int)).max() <= 1

    params = builtin_catalog()["Lo-Fi-ish"].replace(strength=0.0)
    blended = gl_backend.render_buffer(gradient_buffer, params, 1)
    assert np.abs(blended.data.astype(int) - gradient_buffer.data.astype(int)).max() <= 1


def test_opengl_keeps_row_order(gl_backend):
    array = np.zeros((4, 3, 4), dtype=np.uint8)
    array[0, :, 0] = 255
    result = gl_backend.render_buffer(PixelBuffer(array), NEUTRAL_PARAMS, 0)
    assert np.all(result.data[0, :, 0] >= 254)
    assert np.all(result.data[-1, :, 0] <= 1)


def test_opengl_matches_cpu_visually(gl_backend, gradient_buffer):
    cpu = create_preview_backend("cpu")
    params = builtin_catalog()["Clarendon-ish"].replace(grain=0.0)
    gpu_result = gl_backend.render_buffer(gradient_buffer, params, 9)
    cpu_result = cpu.render_buffer(gradient_buffer, params, 9)
    assert np.all(gpu_result.data[..., 3] == 255)
    diff = np.abs(gpu_result.data.astype(int) - cpu_result.data.astype(int))
    assert diff.max() <= 3
