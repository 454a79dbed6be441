"""Command line interface for grading images with the preset catalog."""

from __future__ import annotations

import argparse
import json
import re
import sys
import time
from pathlib import Path
from typing import Iterable, Optional, Sequence

from . import __version__
from .config import BACKEND_KINDS, DEFAULT_EXPORT_NAME, Settings, load_settings
from .core.imaging import encode_png, load_image, save_image
from .core.params import FILTER_KEYS
from .core.presets import NORMAL_PRESET, PresetCatalog, builtin_catalog
from .core.preview_backends import SEED_LIMIT, PreviewBackend, create_preview_backend, new_seed
from .core.thumbnails import ThumbnailGenerator
from .core.ticker import ManualTicker
from .errors import IGradeError
from .utils.logging import configure_logging, get_logger

LOGGER = get_logger("cli")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

# Kept alive for the lifetime of the process once an OpenGL backend is requested.
_QT_APP = None


def _parse_override(text: str) -> tuple[str, float]:
    key, sep, value = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {text!r}")
    if key != "temp" and key not in FILTER_KEYS:
        raise argparse.ArgumentTypeError(
            f"unknown parameter {key!r}; expected one of {', '.join(FILTER_KEYS)}"
        )
    try:
        return key, float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{key} must be a number, got {value!r}") from None


def _parse_seed(text: str) -> int:
    try:
        seed = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"seed must be an integer, got {text!r}") from None
    if not 0 <= seed < SEED_LIMIT:
        raise argparse.ArgumentTypeError(f"seed must be in [0, {SEED_LIMIT})")
    return seed


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="igrade",
        description="Apply Instagram-style colour grading presets to images.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--settings", type=Path, help="Settings JSON file (default: ~/.iGrade/settings.json).")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG or WARNING.")

    commands = parser.add_subparsers(dest="command", required=True)

    presets = commands.add_parser("presets", help="List the available presets.")
    presets.add_argument("--json", action="store_true", help="Print every preset's parameters as JSON.")

    apply = commands.add_parser("apply", help="Grade an image and write the result.")
    apply.add_argument("input", type=Path, help="Image to grade.")
    apply.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path(DEFAULT_EXPORT_NAME),
        help=f"Destination file (default: {DEFAULT_EXPORT_NAME}).",
    )
    apply.add_argument("--preset", default=NORMAL_PRESET, help="Preset to start from.")
    apply.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        type=_parse_override,
        action="append",
        default=[],
        help="Override one parameter of the preset; may be repeated.",
    )
    apply.add_argument("--seed", type=_parse_seed, help="Grain seed (random when omitted).")
    apply.add_argument("--backend", choices=BACKEND_KINDS, help="Render backend (default from settings).")

    thumbs = commands.add_parser("thumbnails", help="Render one square thumbnail per preset.")
    thumbs.add_argument("input", type=Path, help="Image to sample.")
    thumbs.add_argument("outdir", type=Path, help="Directory receiving the PNG thumbnails.")
    thumbs.add_argument("--size", type=_positive_int, help="Thumbnail edge length in pixels.")
    thumbs.add_argument("--backend", choices=BACKEND_KINDS, help="Render backend (default from settings).")

    export = commands.add_parser("export-presets", help="Write the preset catalog to a JSON file.")
    export.add_argument("path", type=Path, help="Destination JSON file.")

    return parser


def _load_catalog(settings: Settings) -> PresetCatalog:
    catalog = builtin_catalog()
    for preset_file in settings.preset_files:
        added = catalog.extend_from_file(Path(preset_file).expanduser())
        LOGGER.info("Loaded %d preset(s) from %s", len(added), preset_file)
    return catalog


def _open_backend(kind: str) -> PreviewBackend:
    global _QT_APP
    if kind == "opengl":
        # The OpenGL backend renders through a Qt offscreen surface, which needs
        # a GUI application object even without any window.
        from PySide6.QtGui import QGuiApplication

        if QGuiApplication.instance() is None:
            _QT_APP = QGuiApplication([sys.argv[0] if sys.argv else "igrade"])
    return create_preview_backend(kind)


def thumbnail_filename(name: str) -> str:
    """Return a filesystem safe PNG name for preset *name*."""

    stem = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("_") or "preset"
    return f"{stem}.png"


def _cmd_presets(args: argparse.Namespace, catalog: PresetCatalog) -> int:
    if args.json:
        print(json.dumps(catalog.to_dict(), indent=2))
    else:
        for name in catalog:
            print(name)
    return 0


def _cmd_apply(args: argparse.Namespace, settings: Settings, catalog: PresetCatalog) -> int:
    params = catalog[args.preset]
    if args.overrides:
        params = params.replace(**dict(args.overrides))
    params.ensure_finite()
    seed = args.seed if args.seed is not None else new_seed()

    buffer = load_image(args.input, max_width=settings.max_preview_width)
    backend = _open_backend(args.backend or settings.backend)
    try:
        started = time.perf_counter()
        result = backend.render_buffer(buffer, params, seed)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
    finally:
        backend.close()
    LOGGER.info("Render: %dms (%s)", round(elapsed_ms), backend.tier_name)

    target = save_image(result, args.output)
    print(target)
    return 0


def _cmd_thumbnails(args: argparse.Namespace, settings: Settings, catalog: PresetCatalog) -> int:
    buffer = load_image(args.input, max_width=settings.max_preview_width)
    backend = _open_backend(args.backend or settings.backend)
    failures: list[str] = []
    ticker = ManualTicker()
    generator: ThumbnailGenerator[bytes] = ThumbnailGenerator(
        backend.render_buffer,
        catalog,
        ticker,
        size=args.size or settings.thumbnail_size,
        encoder=encode_png,
        on_error=failures.append,
    )
    try:
        generator.load_image(buffer)
        ticker.drain()
    finally:
        backend.close()
    if failures:
        raise IGradeError(f"Thumbnail generation failed: {failures[0]}")

    args.outdir.mkdir(parents=True, exist_ok=True)
    for thumbnail in generator.thumbnails:
        (args.outdir / thumbnail_filename(thumbnail.name)).write_bytes(thumbnail.encoded)
    print(f"Wrote {len(generator.thumbnails)} thumbnails to {args.outdir}")
    return 0


def _cmd_export_presets(args: argparse.Namespace, catalog: PresetCatalog) -> int:
    catalog.save(args.path)
    print(args.path)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = load_settings(args.settings)
        try:
            configure_logging(args.log_level or settings.log_level)
        except ValueError as exc:
            parser.error(str(exc))

        catalog = _load_catalog(settings)
        if args.command == "presets":
            return _cmd_presets(args, catalog)
        if args.command == "apply":
            return _cmd_apply(args, settings, catalog)
        if args.command == "thumbnails":
            return _cmd_thumbnails(args, settings, catalog)
        if args.command == "export-presets":
            return _cmd_export_presets(args, catalog)
    except IGradeError as exc:
        print(f"igrade: error: {exc}", file=sys.stderr)
        return 1
    parser.error(f"unknown command {args.command!r}")
    return 2


def run(argv: Optional[Iterable[str]] = None) -> None:
    """Console script entry point."""

    sys.exit(main(list(argv) if argv is not None else None))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    run()
