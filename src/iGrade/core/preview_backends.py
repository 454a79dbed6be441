"""CPU and OpenGL render backends behind a common preview interface."""

from __future__ import annotations

import ctypes
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

import numpy as np

from ..errors import BackendUnavailableError, RenderError
from .filters import render as render_cpu
from .params import FilterParams
from .pixel_buffer import PixelBuffer

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from PySide6.QtGui import QOffscreenSurface, QOpenGLContext

_LOGGER = logging.getLogger(__name__)

SEED_LIMIT = 1 << 24
"""Exclusive upper bound of noise seeds; every seed is exact as a 32-bit float."""


def new_seed(rng: random.Random | None = None) -> int:
    """Draw a fresh grain seed in ``[0, SEED_LIMIT)``."""

    source = rng if rng is not None else random
    return source.randrange(SEED_LIMIT)


class PreviewSession(ABC):
    """Backend specific state kept alive for one source image.

    The CPU session simply wraps the immutable source buffer, while the OpenGL
    session owns the uploaded texture and the framebuffer rendered into.  A
    session is created once per loaded image and reused for every render of it.
    """

    width: int
    height: int

    @abstractmethod
    def dispose(self) -> None:
        """Release resources associated with the session."""


class PreviewBackend(ABC):
    """Abstract render backend running the grading pipeline over a whole image."""

    tier_name: str = "unknown"
    """Human readable tier label (e.g. ``"OpenGL"`` or ``"CPU"``)."""

    supports_realtime: bool = False
    """Whether the backend can render fast enough to run on the UI thread."""

    @classmethod
    def is_available(cls) -> bool:
        """Return ``True`` when the backend can be constructed on this system."""

        return True

    @abstractmethod
    def create_session(self, buffer: PixelBuffer) -> PreviewSession:
        """Create a rendering session for *buffer*."""

    @abstractmethod
    def render(self, session: PreviewSession, params: FilterParams, seed: int) -> PixelBuffer:
        """Grade the session's source with *params* and return a new buffer."""

    def dispose_session(self, session: PreviewSession) -> None:
        """Release resources owned by *session*.

        Backends override this hook when they allocate handles that must be
        explicitly freed.  The default delegates to the session.
        """

        session.dispose()

    def render_buffer(self, buffer: PixelBuffer, params: FilterParams, seed: int) -> PixelBuffer:
        """Render *buffer* once, creating and disposing a throwaway session."""

        session = self.create_session(buffer)
        try:
            return self.render(session, params, seed)
        finally:
            self.dispose_session(session)

    def close(self) -> None:
        """Release backend wide resources; the backend is unusable afterwards."""


@dataclass
class _CpuPreviewSession(PreviewSession):
    """Hold the source buffer for the CPU backend."""

    buffer: PixelBuffer

    @property
    def width(self) -> int:  # type: ignore[override]
        return self.buffer.width

    @property
    def height(self) -> int:  # type: ignore[override]
        return self.buffer.height

    def dispose(self) -> None:  # pragma: no cover - nothing to free
        # The buffer is immutable and shared; dropping the session reference is
        # enough for it to be reclaimed.
        return


class _CpuPreviewBackend(PreviewBackend):
    """CPU implementation driving the Numba compiled pipeline."""

    tier_name = "CPU"
    supports_realtime = False

    def create_session(self, buffer: PixelBuffer) -> PreviewSession:
        return _CpuPreviewSession(buffer)

    def render(self, session: PreviewSession, params: FilterParams, seed: int) -> PixelBuffer:
        cpu_session = cast(_CpuPreviewSession, session)
        return render_cpu(cpu_session.buffer, params, seed)


@dataclass
class _OpenGlPreviewSession(PreviewSession):
    """Hold the OpenGL objects tied to one source image."""

    width: int
    height: int
    source_texture: int
    target_texture: int
    framebuffer: int

    def dispose(self) -> None:  # pragma: no cover - real cleanup happens in backend
        self.source_texture = 0
        self.target_texture = 0
        self.framebuffer = 0


class _OpenGlPreviewBackend(PreviewBackend):
    """OpenGL backend evaluating the grading pipeline in a fragment shader.

    All GL calls run on the thread that created the backend (the GUI thread),
    which is why the backend reports itself as realtime: renders are executed
    synchronously from a frame tick rather than on the worker pool.
    """

    tier_name = "OpenGL"
    supports_realtime = True

    def __init__(self) -> None:
        # Import the Qt GUI and OpenGL modules lazily so headless environments
        # can import this module and still use the CPU backend.
        from OpenGL import GL as gl
        from PySide6.QtGui import QGuiApplication, QOffscreenSurface, QOpenGLContext

        if QGuiApplication.instance() is None:
            raise BackendUnavailableError("OpenGL backend requires a running QGuiApplication")

        self._gl = gl
        self._context: QOpenGLContext = QOpenGLContext()
        self._context.setFormat(_surface_format())
        if not self._context.create():
            raise BackendUnavailableError("Failed to create OpenGL context")

        self._surface: QOffscreenSurface = QOffscreenSurface()
        self._surface.setFormat(self._context.format())
        self._surface.create()
        if not self._surface.isValid():
            raise BackendUnavailableError("OpenGL offscreen surface is invalid")

        if not self._context.makeCurrent(self._surface):
            raise BackendUnavailableError("Failed to make OpenGL context current")

        try:
            # Compile and link the program once; every session shares it.
            self._program = self._link_program(
                self._compile_shader(gl.GL_VERTEX_SHADER, self._vertex_shader_source()),
                self._compile_shader(gl.GL_FRAGMENT_SHADER, self._fragment_shader_source()),
            )

            # Cache uniform locations so renders avoid repeated string lookups.
            # Locations of uniforms optimised away by the driver are ``-1``.
            uniform_names = ["u_image", "u_resolution", "u_seed", *FilterParams().uniforms()]
            self._uniforms = {
                name: gl.glGetUniformLocation(self._program, name.encode("ascii"))
                for name in uniform_names
            }

            # Full screen triangle strip; the fragment shader addresses texels by
            # ``gl_FragCoord`` so no texture coordinates are needed.
            quad = np.array([-1.0, -1.0, 1.0, -1.0, -1.0, 1.0, 1.0, 1.0], dtype=np.float32)
            self._vao = gl.glGenVertexArrays(1)
            self._vbo = gl.glGenBuffers(1)
            gl.glBindVertexArray(self._vao)
            gl.glBindBuffer(gl.GL_ARRAY_BUFFER, self._vbo)
            gl.glBufferData(gl.GL_ARRAY_BUFFER, quad.nbytes, quad, gl.GL_STATIC_DRAW)
            gl.glEnableVertexAttribArray(0)
            gl.glVertexAttribPointer(0, 2, gl.GL_FLOAT, False, 8, ctypes.c_void_p(0))
            gl.glBindBuffer(gl.GL_ARRAY_BUFFER, 0)
            gl.glBindVertexArray(0)
        finally:
            self._context.doneCurrent()

    @staticmethod
    def _vertex_shader_source() -> str:
        """Return the GLSL source code for the fullscreen quad vertex shader."""
        return """
#version 330 core
layout (location = 0) in vec2 a_position;
void main() {
    gl_Position = vec4(a_position, 0.0, 1.0);
}
"""

    @staticmethod
    def _fragment_shader_source() -> str:
        """Return the GLSL source code of the nine stage grading pipeline."""
        return """
#version 330 core
out vec4 FragColor;
uniform sampler2D u_image;
uniform vec2 u_resolution;
uniform float u_strength;
uniform float u_exposure;
uniform float u_contrast;
uniform float u_saturation;
uniform float u_temp;
uniform float u_tint;
uniform float u_fade;
uniform float u_vignette;
uniform float u_grain;
uniform float u_seed;

const vec3 LUMA = vec3(0.2126, 0.7152, 0.0722);

vec3 rgb_to_hsl(vec3 c) {
    float mx = max(max(c.r, c.g), c.b);
    float mn = min(min(c.r, c.g), c.b);
    float h = 0.0;
    float s = 0.0;
    float l = (mx + mn) * 0.5;
    if (mx != mn) {
        float d = mx - mn;
        s = l > 0.5 ? d / (2.0 - mx - mn) : d / (mx + mn);
        if (mx == c.r) {
            h = (c.g - c.b) / d + (c.g < c.b ? 6.0 : 0.0);
        } else if (mx == c.g) {
            h = (c.b - c.r) / d + 2.0;
        } else {
            h = (c.r - c.g) / d + 4.0;
        }
        h /= 6.0;
    }
    return vec3(h, s, l);
}

float hue_to_rgb(float p, float q, float t) {
    if (t < 0.0) t += 1.0;
    if (t > 1.0) t -= 1.0;
    if (t < 1.0 / 6.0) return p + (q - p) * 6.0 * t;
    if (t < 0.5) return q;
    if (t < 2.0 / 3.0) return p + (q - p) * (2.0 / 3.0 - t) * 6.0;
    return p;
}

vec3 hsl_to_rgb(vec3 hsl) {
    if (hsl.y == 0.0) {
        return vec3(hsl.z);
    }
    float q = hsl.z < 0.5 ? hsl.z * (1.0 + hsl.y) : hsl.z + hsl.y - hsl.z * hsl.y;
    float p = 2.0 * hsl.z - q;
    return vec3(
        hue_to_rgb(p, q, hsl.x + 1.0 / 3.0),
        hue_to_rgb(p, q, hsl.x),
        hue_to_rgb(p, q, hsl.x - 1.0 / 3.0)
    );
}

vec3 apply_fade(vec3 c, float amount) {
    vec3 y = c * (1.0 - 0.25 * amount) + 0.08 * amount;
    y = mix(y, pow(max(y, vec3(0.0)), vec3(0.9)), 0.35 * amount);
    return clamp(y, 0.0, 1.0);
}

float vignette_factor(vec2 pos, float strength) {
    vec2 span = u_resolution - 1.0;
    vec2 uv = vec2(
        span.x > 0.0 ? (pos.x / span.x) * 2.0 - 1.0 : 0.0,
        span.y > 0.0 ? (pos.y / span.y) * 2.0 - 1.0 : 0.0
    );
    float d = length(uv);
    return max(0.0, 1.0 - strength * pow(min(1.0, d), 1.7));
}

float noise2d(uvec2 p, uint seed) {
    uint n = p.x * 374761393u + p.y * 668265263u + seed * 1442695041u;
    n = (n ^ (n >> 13u)) * 1274126177u;
    n = n ^ (n >> 16u);
    // Keep 24 bits so the quotient stays below 1.0 at single precision.
    return float(n >> 8u) / 16777216.0;
}

void main() {
    ivec2 pixel = ivec2(gl_FragCoord.xy);
    vec3 src = texelFetch(u_image, pixel, 0).rgb;

    vec3 c = clamp(src + u_exposure, 0.0, 1.0);
    c = clamp((c - 0.5) * u_contrast + 0.5, 0.0, 1.0);

    vec3 hsl = rgb_to_hsl(c);
    hsl.y = clamp(hsl.y * u_saturation, 0.0, 1.0);
    c = hsl_to_rgb(hsl);

    c.r = clamp(c.r * (1.0 + u_temp), 0.0, 1.0);
    c.b = clamp(c.b * (1.0 - u_temp), 0.0, 1.0);
    c = clamp(c * vec3(1.0 + 0.5 * u_tint, 1.0 - u_tint, 1.0 + 0.5 * u_tint), 0.0, 1.0);

    if (u_fade > 0.0) {
        c = apply_fade(c, u_fade);
    }
    if (u_vignette > 0.0) {
        c *= vignette_factor(vec2(pixel), u_vignette);
    }
    if (u_grain > 0.0) {
        float n = noise2d(uvec2(pixel), uint(u_seed)) * 2.0 - 1.0;
        float mid_w = 1.0 - abs(dot(c, LUMA) - 0.5) * 2.0;
        c = clamp(c + n * (0.03 + 0.12 * u_grain) * mid_w, 0.0, 1.0);
    }

    FragColor = vec4(mix(src, c, u_strength), 1.0);
}
"""

    def _compile_shader(self, kind: int, source: str) -> int:
        gl = self._gl
        shader = gl.glCreateShader(kind)
        gl.glShaderSource(shader, source)
        gl.glCompileShader(shader)
        if gl.glGetShaderiv(shader, gl.GL_COMPILE_STATUS) != gl.GL_TRUE:
            message = _decode_log(gl.glGetShaderInfoLog(shader)) or "unknown shader error"
            gl.glDeleteShader(shader)
            raise BackendUnavailableError(f"Failed to compile OpenGL shader: {message}")
        return shader

    def _link_program(self, vertex_shader: int, fragment_shader: int) -> int:
        gl = self._gl
        program = gl.glCreateProgram()
        gl.glAttachShader(program, vertex_shader)
        gl.glAttachShader(program, fragment_shader)
        gl.glLinkProgram(program)
        gl.glDeleteShader(vertex_shader)
        gl.glDeleteShader(fragment_shader)
        if gl.glGetProgramiv(program, gl.GL_LINK_STATUS) != gl.GL_TRUE:
            message = _decode_log(gl.glGetProgramInfoLog(program)) or "unknown shader link error"
            gl.glDeleteProgram(program)
            raise BackendUnavailableError(f"Failed to link OpenGL shader program: {message}")
        return program

    @classmethod
    def is_available(cls) -> bool:
        """Return ``True`` if an OpenGL 3.3 context can be made current."""

        try:
            from OpenGL import GL  # noqa: F401
            from PySide6.QtGui import QGuiApplication, QOffscreenSurface, QOpenGLContext
        except ImportError as exc:
            _LOGGER.warning("OpenGL backend unavailable: %s", exc)
            return False

        if QGuiApplication.instance() is None:
            _LOGGER.warning("OpenGL backend unavailable: no QGuiApplication instance")
            return False

        context = QOpenGLContext()
        context.setFormat(_surface_format())
        if not context.create():
            _LOGGER.warning("OpenGL backend unavailable: context creation failed")
            return False

        surface = QOffscreenSurface()
        surface.setFormat(context.format())
        surface.create()
        if not surface.isValid() or not context.makeCurrent(surface):
            _LOGGER.warning("OpenGL backend unavailable: offscreen surface cannot be activated")
            return False
        context.doneCurrent()
        return True

    def _make_current(self) -> None:
        if not self._context.makeCurrent(self._surface):
            raise RenderError("Failed to activate OpenGL context")

    def create_session(self, buffer: PixelBuffer) -> PreviewSession:
        gl = self._gl
        width, height = buffer.size
        self._make_current()
        try:
            source_texture = self._allocate_texture(width, height, buffer.data)
            target_texture = self._allocate_texture(width, height, None)

            framebuffer = gl.glGenFramebuffers(1)
            gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, framebuffer)
            gl.glFramebufferTexture2D(
                gl.GL_FRAMEBUFFER, gl.GL_COLOR_ATTACHMENT0, gl.GL_TEXTURE_2D, target_texture, 0
            )
            status = gl.glCheckFramebufferStatus(gl.GL_FRAMEBUFFER)
            gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, 0)
            session = _OpenGlPreviewSession(width, height, source_texture, target_texture, framebuffer)
            if status != gl.GL_FRAMEBUFFER_COMPLETE:
                self._release_session(session)
                raise RenderError(f"OpenGL framebuffer incomplete (status 0x{int(status):x})")
        finally:
            self._context.doneCurrent()
        return session

    def _allocate_texture(self, width: int, height: int, pixels: np.ndarray | None) -> int:
        """Create an RGBA8 texture; row 0 of *pixels* becomes texel row 0."""

        gl = self._gl
        texture = gl.glGenTextures(1)
        gl.glBindTexture(gl.GL_TEXTURE_2D, texture)
        # ``texelFetch`` ignores filtering, but the texture is incomplete under the
        # default mipmapped minification filter.
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_MIN_FILTER, gl.GL_NEAREST)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_MAG_FILTER, gl.GL_NEAREST)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_WRAP_S, gl.GL_CLAMP_TO_EDGE)
        gl.glTexParameteri(gl.GL_TEXTURE_2D, gl.GL_TEXTURE_WRAP_T, gl.GL_CLAMP_TO_EDGE)
        gl.glPixelStorei(gl.GL_UNPACK_ALIGNMENT, 1)
        gl.glTexImage2D(
            gl.GL_TEXTURE_2D, 0, gl.GL_RGBA8, width, height, 0, gl.GL_RGBA, gl.GL_UNSIGNED_BYTE, pixels
        )
        gl.glBindTexture(gl.GL_TEXTURE_2D, 0)
        return texture

    def render(self, session: PreviewSession, params: FilterParams, seed: int) -> PixelBuffer:
        gl = self._gl
        gl_session = cast(_OpenGlPreviewSession, session)
        if gl_session.framebuffer == 0:
            raise RenderError("OpenGL session has already been disposed")

        self._make_current()
        try:
            gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, gl_session.framebuffer)
            gl.glViewport(0, 0, gl_session.width, gl_session.height)
            gl.glDisable(gl.GL_DEPTH_TEST)
            gl.glDisable(gl.GL_BLEND)

            gl.glUseProgram(self._program)
            gl.glActiveTexture(gl.GL_TEXTURE0)
            gl.glBindTexture(gl.GL_TEXTURE_2D, gl_session.source_texture)
            self._set_uniforms(gl_session, params, seed)

            gl.glBindVertexArray(self._vao)
            gl.glDrawArrays(gl.GL_TRIANGLE_STRIP, 0, 4)
            gl.glBindVertexArray(0)

            # Framebuffer row 0 holds the fragments for texel row 0, which is the
            # buffer's top row, so the read back needs no vertical flip.
            gl.glPixelStorei(gl.GL_PACK_ALIGNMENT, 1)
            raw = gl.glReadPixels(
                0, 0, gl_session.width, gl_session.height, gl.GL_RGBA, gl.GL_UNSIGNED_BYTE
            )

            gl.glBindTexture(gl.GL_TEXTURE_2D, 0)
            gl.glUseProgram(0)
            gl.glBindFramebuffer(gl.GL_FRAMEBUFFER, 0)
        finally:
            self._context.doneCurrent()

        pixels = np.frombuffer(raw, dtype=np.uint8).reshape((gl_session.height, gl_session.width, 4))
        return PixelBuffer.adopt(pixels)

    def _set_uniforms(self, session: _OpenGlPreviewSession, params: FilterParams, seed: int) -> None:
        gl = self._gl
        locations = self._uniforms
        if locations["u_image"] != -1:
            gl.glUniform1i(locations["u_image"], 0)
        if locations["u_resolution"] != -1:
            gl.glUniform2f(locations["u_resolution"], float(session.width), float(session.height))
        if locations["u_seed"] != -1:
            gl.glUniform1f(locations["u_seed"], float(int(seed) % SEED_LIMIT))
        for name, value in params.uniforms().items():
            if locations[name] != -1:
                gl.glUniform1f(locations[name], value)

    def dispose_session(self, session: PreviewSession) -> None:
        gl_session = cast(_OpenGlPreviewSession, session)
        if gl_session.framebuffer == 0:
            return
        self._make_current()
        try:
            self._release_session(gl_session)
        finally:
            self._context.doneCurrent()
        gl_session.dispose()

    def _release_session(self, session: _OpenGlPreviewSession) -> None:
        """Delete the session's GL objects; the context must be current."""

        gl = self._gl
        gl.glDeleteFramebuffers(1, [session.framebuffer])
        gl.glDeleteTextures([session.source_texture, session.target_texture])

    def close(self) -> None:
        if self._program == 0:
            return
        gl = self._gl
        self._make_current()
        try:
            gl.glDeleteVertexArrays(1, [self._vao])
            gl.glDeleteBuffers(1, [self._vbo])
            gl.glDeleteProgram(self._program)
        finally:
            self._context.doneCurrent()
        self._program = 0


def _surface_format():
    from PySide6.QtGui import QSurfaceFormat

    format_hint = QSurfaceFormat()
    format_hint.setVersion(3, 3)
    format_hint.setProfile(QSurfaceFormat.OpenGLContextProfile.CoreProfile)
    format_hint.setRenderableType(QSurfaceFormat.RenderableType.OpenGL)
    return format_hint


def _decode_log(log: bytes | str) -> str:
    if isinstance(log, bytes):
        return log.decode("utf-8", errors="replace").strip()
    return str(log).strip()


_BACKENDS: dict[str, type[PreviewBackend]] = {
    "cpu": _CpuPreviewBackend,
    "opengl": _OpenGlPreviewBackend,
}


def available_backends() -> tuple[str, ...]:
    """Return the backend kinds that can be constructed right now."""

    return tuple(kind for kind, factory in _BACKENDS.items() if factory.is_available())


def create_preview_backend(kind: str = "cpu") -> PreviewBackend:
    """Return the backend registered as *kind*.

    Exactly the requested backend is built.  When it cannot be initialised a
    :class:`BackendUnavailableError` is raised; choosing another backend is left
    to the caller.
    """

    try:
        factory = _BACKENDS[kind]
    except KeyError:
        known = ", ".join(_BACKENDS)
        raise BackendUnavailableError(f"Unknown preview backend {kind!r}; expected one of {known}") from None

    if not factory.is_available():
        raise BackendUnavailableError(f"{factory.tier_name} preview backend is not available")

    try:
        backend = factory()
    except BackendUnavailableError:
        raise
    except Exception as exc:
        raise BackendUnavailableError(
            f"Failed to initialise {factory.tier_name} preview backend: {exc}"
        ) from exc

    _LOGGER.info("Using %s preview backend", backend.tier_name)
    return backend


__all__ = [
    "PreviewBackend",
    "PreviewSession",
    "SEED_LIMIT",
    "available_backends",
    "create_preview_backend",
    "new_seed",
]
