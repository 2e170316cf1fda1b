#!/usr/bin/env python3
"""
Emitter for the human-readable FFI surface report.

This module takes the header descriptors of a run and uses the Jinja2-based
renderer to emit `<output_dir>/ffi_surface.md`, listing per compilation unit
every exported symbol, its C prototype and the native method it wraps, plus
the synthesized slot wrapper classes.

The report is meant for review and diffing between runs; wrapper sources
themselves are produced by downstream emitters from the manifest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from ..models import GenerationContext, HeaderDescriptor
from ..utils import TemplateRenderer, ensure_dir, write_text

logger = logging.getLogger(__name__)


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class ReportConfig:
    """
    Template and output names for the surface report. Templates are looked up
    in the user templates directory first, then in the package templates.
    """
    report_template: str = "ffi_surface.md.j2"
    report_file_name: str = "ffi_surface.md"


# --------------------------
# Emitter
# --------------------------

class SurfaceReportEmitter:
    """
    Usage:
        emitter = SurfaceReportEmitter(ctx, renderer)
        emitter.emit(headers)
    """

    def __init__(self, ctx: GenerationContext, renderer: TemplateRenderer, config: Optional[ReportConfig] = None) -> None:
        self.ctx = ctx
        self.renderer = renderer
        self.config = config or ReportConfig()

    def render(self, headers: Sequence[HeaderDescriptor]) -> str:
        context: Dict = {
            "library_name": self.ctx.library_name,
            "headers": [h.to_dict() for h in headers],
            "method_count": sum(len(h.methods) for h in headers),
        }
        return self.renderer.render(self.config.report_template, context)

    def emit(self, headers: Sequence[HeaderDescriptor]) -> None:
        ensure_dir(self.ctx.output_dir)
        try:
            content = self.render(headers)
        except Exception:
            logger.exception("Failed to render %s; aborting report", self.config.report_template)
            raise
        write_text(self.ctx.output_dir / self.config.report_file_name, content, dry_run=self.ctx.dry_run)
        logger.info("Surface report written under: %s", self.ctx.output_dir)


__all__ = [
    "ReportConfig",
    "SurfaceReportEmitter",
]
