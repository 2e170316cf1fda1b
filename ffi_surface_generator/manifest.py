import sys
import os
import platform
import shlex
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata

import json
from typing import Optional, Sequence
from .models import GenerationContext, HeaderDescriptor
from .utils import write_text

import logging
logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "ffi_manifest.json"


def generator_version() -> Optional[str]:
    for dist_name in ("ffi-surface-generator", "ffi_surface_generator"):
        try:
            return importlib_metadata.version(dist_name)
        except importlib_metadata.PackageNotFoundError:
            continue
    # Not installed: fall back to the package attribute
    from . import __version__
    return __version__


def build_manifest(ctx: GenerationContext, headers: Sequence[HeaderDescriptor]) -> dict:
    """
    JSON-ready description of a run: generator metadata, invocation and every
    header descriptor with its named FFI methods and slot wrappers.
    """
    argv = list(getattr(sys, "argv", []) or [])
    command_line = " ".join(shlex.quote(a) for a in argv) if argv else ""

    env_info = {
        "python_version": sys.version,
        "platform": platform.platform(),
        "cwd": os.getcwd(),
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }

    return {
        "generator": {
            "name": "ffi-surface-generator",
            "version": generator_version() or "unknown",
        },
        "invocation": {
            "argv": argv,
            "command_line": command_line,
        },
        "environment": env_info,
        "library_name": ctx.library_name,
        "output_dir": str(ctx.output_dir),
        "header_count": len(headers),
        "method_count": sum(len(h.methods) for h in headers),
        "headers": [h.to_dict() for h in headers],
    }


def emit_manifest(ctx: GenerationContext, headers: Sequence[HeaderDescriptor]) -> None:
    """
    Write the manifest next to the other outputs. A write failure is logged
    and does not fail the run.
    """
    manifest_path = ctx.output_dir / MANIFEST_FILE_NAME
    content = json.dumps(build_manifest(ctx, headers), indent=2)
    try:
        write_text(manifest_path, content, dry_run=ctx.dry_run)
    except OSError:
        logger.exception("Failed to write manifest to %s; continuing without manifest", manifest_path)
