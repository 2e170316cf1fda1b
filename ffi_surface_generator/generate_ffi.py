#!/usr/bin/env python3
"""
FFI surface generator entrypoint.

This entrypoint wires together:
- Loading the JSON type database written by the upstream header parser
- The core transform (eligibility, FFI translation, naming, slot wrappers)
- Output of the header descriptors as a JSON manifest and a Markdown report

Outputs:
- <output_dir>/ffi_manifest.json (consumed by downstream wrapper emitters)
- <output_dir>/ffi_surface.md (human-readable listing of exported symbols)

Usage (example):
  python -m ffi_surface_generator.generate_ffi \
    --database build/qt_types.json \
    --library-name qtcore_ffi \
    --exclude-regex "::d_func$" \
    --output-dir build/ffi
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

# Local modules
from .assembler import generate_ffi_headers
from .emitters.report_emitter import SurfaceReportEmitter
from .errors import DatabaseFormatError, FfiGenerationError
from .filtering import exclude_classes, exclude_methods_matching
from .manifest import emit_manifest
from .models import FfiGeneratorConfig, FilterFn, GenerationContext
from .parsing.database_loader import load_type_database
from .utils import TemplateRenderer, configure_logging


# --------------------------
# CLI
# --------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate a flat C FFI surface from a native API type database")

    p.add_argument(
        "--database",
        required=True,
        help="JSON type database produced by the header parser.",
    )
    p.add_argument(
        "--library-name",
        required=True,
        help="Name of the wrapper library; prefixed onto every exported symbol.",
    )
    p.add_argument(
        "--exclude-regex",
        action="append",
        default=[],
        help="Regex over 'Class::method' names to exclude from the FFI surface (repeatable).",
    )
    p.add_argument(
        "--exclude-class",
        action="append",
        default=[],
        help="Exclude every member of this class (repeatable).",
    )
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for the manifest and the report.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory overriding the package report template.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest.",
    )
    p.add_argument(
        "--no-report",
        action="store_true",
        help="Do not emit the Markdown surface report.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the transform and report results without writing files.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG, shows every skipped method)."
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (-q for WARNING, -qq for ERROR)."
    )
    p.add_argument(
        "--log-level",
        choices=["CRITICAL","ERROR","WARNING","INFO","DEBUG","NOTSET","critical","error","warning","info","debug","notset"],
        default=None,
        help="Explicit log level (overrides -v/-q)."
    )
    p.add_argument(
        "--log-format",
        default="%(levelname)s: %(message)s",
        help="Logging format string."
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional file to write logs to."
    )

    return p.parse_args(argv)


def build_filters(ns: argparse.Namespace) -> List[FilterFn]:
    filters: List[FilterFn] = [exclude_methods_matching(re.compile(r)) for r in ns.exclude_regex]
    if ns.exclude_class:
        filters.append(exclude_classes(ns.exclude_class))
    return filters


def _resolve_log_level(ns: argparse.Namespace) -> int:
    if ns.log_level:
        return getattr(logging, str(ns.log_level).upper(), logging.INFO)
    if ns.verbose >= 1:
        return logging.DEBUG
    if ns.quiet >= 2:
        return logging.ERROR
    if ns.quiet == 1:
        return logging.WARNING
    return logging.INFO


# --------------------------
# Main
# --------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)

    configure_logging(
        level=_resolve_log_level(ns),
        to_file=ns.log_file,
        fmt=ns.log_format,
    )

    ctx = GenerationContext(
        output_dir=Path(ns.output_dir).resolve(),
        templates_dir=Path(ns.templates_dir).resolve() if ns.templates_dir else None,
        library_name=ns.library_name,
        dry_run=ns.dry_run,
    )

    renderer = None
    if not ns.no_report:
        try:
            renderer = TemplateRenderer(ctx.templates_dir)
        except Exception:
            logger.exception("Failed to initialize templating")
            return 1

    try:
        database = load_type_database(ns.database)
    except (OSError, DatabaseFormatError):
        logger.exception("Failed to load type database %s", ns.database)
        return 2

    try:
        config = FfiGeneratorConfig(library_name=ns.library_name, filters=tuple(build_filters(ns)))
        headers = generate_ffi_headers(database, config)
    except (FfiGenerationError, ValueError, re.error):
        logger.exception("FFI generation failed")
        return 3

    logger.info("Generated %d header(s)", len(headers))
    for h in headers:
        logger.debug("Header %s: %d method(s), %d slot wrapper(s)", h.include_file_base_name, len(h.methods), len(h.slot_wrappers))

    if renderer is not None:
        try:
            SurfaceReportEmitter(ctx, renderer).emit(headers)
        except Exception:
            logger.exception("Failed to emit surface report")
            return 4

    if not ns.no_manifest:
        try:
            emit_manifest(ctx, headers)
        except Exception:
            logger.exception("Failed to emit generation manifest")
            return 5

    if ctx.dry_run:
        logger.info("Dry-run complete (no files written).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
