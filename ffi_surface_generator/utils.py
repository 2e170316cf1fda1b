#!/usr/bin/env python3
"""
Utilities for logging, templating (Jinja2), identifiers and file I/O.

This module provides:
- Project-wide logging configuration.
- A layered Jinja2 environment (user templates over package templates) with
  a few filters that keep report templates concise.
- Identifier helpers used when building exported C symbol names.
- Production-grade file writing helpers (atomic writes, newline normalization, idempotency).

The goal is to keep the rest of the codebase focused on the transform itself.
"""

from __future__ import annotations

import hashlib
import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union
import logging

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
)

logger = logging.getLogger(__name__)

PACKAGE_NAME = "ffi_surface_generator"

def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)

def configure_logging(
    level: Optional[Union[int, str]] = None,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route all generator logs through the root logger: console (stderr by
    default) and optionally a log file, both with the same format.

    Existing root handlers are replaced so that repeated CLI invocations in
    one process do not duplicate output.
    """
    resolved_level = _resolve_level(level)
    formatter = logging.Formatter(fmt or "%(levelname)s: %(message)s")

    handlers: List[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if to_file:
        handlers.append(logging.FileHandler(str(to_file), mode="w", encoding="utf-8"))

    root = logging.getLogger()
    root.handlers[:] = []
    root.setLevel(resolved_level)
    for h in handlers:
        h.setLevel(resolved_level)
        h.setFormatter(formatter)
        root.addHandler(h)

    # -v must reach modules that log below the root default
    pkg_logger = logging.getLogger(PACKAGE_NAME)
    pkg_logger.setLevel(resolved_level)
    pkg_logger.propagate = True


# ----------------------------------------
# Identifier helpers
# ----------------------------------------

_NON_IDENTIFIER_RE = re.compile(r"[^A-Za-z0-9_]+")

def sanitize_identifier(text: str) -> str:
    """
    Turn arbitrary text (type spellings, operator symbols) into a C identifier
    fragment: runs of invalid characters become one underscore, edges are trimmed.
    Case is preserved so that captions stay recognizable.

      'QVector< int >' -> 'QVector_int'
      'unsigned int'   -> 'unsigned_int'
    """
    s = _NON_IDENTIFIER_RE.sub("_", text or "")
    s = re.sub(r"__+", "_", s).strip("_")
    if s and s[0].isdigit():
        s = f"_{s}"
    return s

def join_identifier(*parts: str) -> str:
    """
    Join non-empty identifier fragments with a single underscore.
    """
    return "_".join(p for p in parts if p)

def stable_signature_hash(text: str) -> str:
    """
    Short hash of a signature, stable across runs and platforms.
    """
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:12]


# ----------------------------------------
# Jinja environment helpers
# ----------------------------------------

class TemplateRenderer:
    """
    A thin wrapper over a Jinja2 Environment with layered loaders and useful filters.
    - templates_dir: user-provided templates directory (highest precedence)
    - package templates: ffi_surface_generator/templates
    """

    def __init__(self, templates_dir: Optional[Path]) -> None:
        loaders: List[Any] = []

        # 1) User-provided directory
        if templates_dir:
            p = Path(templates_dir)
            if p.is_dir():
                loaders.append(FileSystemLoader(str(p)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", p)

        # 2) Package templates (installed alongside this module)
        loaders.append(PackageLoader(PACKAGE_NAME, "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )

        self._register_filters()
        self._register_globals()

    # ---- Filters and globals registration ----

    def _register_filters(self) -> None:
        self.env.filters["sanitize"] = sanitize_identifier
        self.env.filters["md_code"] = _filter_md_code

    def _register_globals(self) -> None:
        self.env.globals["len"] = len

    # ---- Rendering ----

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise RuntimeError(f"Template not found: {template_name}") from e
        return template.render(**context)


def _filter_md_code(text: Any) -> str:
    """
    Wrap text in a Markdown code span usable inside a table cell.
    """
    s = str(text).replace("|", "\\|")
    fence = "``" if "`" in s else "`"
    return f"{fence}{s}{fence}"


# ----------------------------------------
# File I/O helpers
# ----------------------------------------

def ensure_dir(p: Path) -> None:
    Path(p).mkdir(parents=True, exist_ok=True)

def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")

def atomic_write_text(path: Path, content: str, only_if_changed: bool = True) -> bool:
    """
    Write UTF-8 text with Unix newlines through a temp file in the target
    directory, then os.replace() it into place. Outputs that are already
    up to date are left untouched so their mtime stays stable.

    Returns True if the file was (re)written.
    """
    content = normalize_newlines(content)
    ensure_dir(path.parent)

    if only_if_changed and path.is_file():
        if normalize_newlines(path.read_text(encoding="utf-8")) == content:
            logger.debug("[skip] %s (unchanged)", path)
            return False

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    logger.info("[write] %s", path)
    return True

def write_text(path: Path, content: str, dry_run: bool = False) -> None:
    """
    atomic_write_text, or only a log line when dry_run is set.
    """
    if dry_run:
        logger.info("[dry-run] write %s", path)
        return
    atomic_write_text(path, content)


__all__ = [
    "TemplateRenderer",
    "configure_logging",
    "sanitize_identifier",
    "join_identifier",
    "stable_signature_hash",
    "ensure_dir",
    "normalize_newlines",
    "atomic_write_text",
    "write_text",
]
