#!/usr/bin/env python3
"""
Utilities for templating (Jinja2) and file I/O for the C ABI binding generator.

This module provides:
- Layered Jinja2 environment creation with user templates taking precedence
  over the package templates.
- A few template filters for laying out generated C and C++ text.
- File writing helpers (atomic writes, newline normalization, idempotency).

The goal is to keep the rest of the codebase focused on emission logic.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO, Union
import logging

logger = logging.getLogger(__name__)

PACKAGE_NAME = "cabi_binding_generator"

# One indentation level of the generated code.
CINDENT = "  "


def configure_logging(
    level: Optional[Union[int, str]] = None,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
    propagate_package_loggers: bool = True,
) -> None:
    """
    Configure project-wide logging with consistent formatting and optional file output.

    Parameters:
    - level: int or name (e.g., 'INFO', 'DEBUG'). Defaults to INFO.
    - to_file: path to a log file; if provided, logs are also written there.
    - fmt: logging format string. Defaults to '%(levelname)s: %(message)s'.
    - stream: stream for console logs (defaults to sys.stderr).
    - propagate_package_loggers: whether the package logger propagates to root.
    """
    if level is None:
        resolved_level = logging.INFO
    elif isinstance(level, str):
        resolved_level = getattr(logging, level.upper(), logging.INFO)
    else:
        resolved_level = int(level)

    log_format = fmt or "%(levelname)s: %(message)s"
    stream = stream or sys.stderr

    # Reset root handlers for deterministic setup
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(resolved_level)

    handlers: List[logging.Handler] = []

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(resolved_level)
    stream_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(stream_handler)

    if to_file:
        file_handler = logging.FileHandler(str(to_file), mode="w")
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    for h in handlers:
        root.addHandler(h)

    pkg_logger = logging.getLogger(PACKAGE_NAME)
    pkg_logger.setLevel(resolved_level)
    pkg_logger.propagate = propagate_package_loggers


try:
    from jinja2 import (
        ChoiceLoader,
        Environment,
        FileSystemLoader,
        PackageLoader,
        StrictUndefined,
        TemplateNotFound,
    )
except Exception:  # pragma: no cover
    Environment = None  # type: ignore
    ChoiceLoader = None  # type: ignore
    FileSystemLoader = None  # type: ignore
    PackageLoader = None  # type: ignore
    StrictUndefined = None  # type: ignore
    TemplateNotFound = Exception  # type: ignore

# ----------------------------------------
# Jinja environment helpers
# ----------------------------------------

class TemplateRenderer:
    """
    A thin wrapper over a Jinja2 Environment with layered loaders.
    - templates_dir: user-provided templates directory (highest precedence)
    - package templates: cabi_binding_generator/templates
    """

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        if (
            Environment is None
            or ChoiceLoader is None
            or FileSystemLoader is None
            or PackageLoader is None
            or StrictUndefined is None
        ):
            raise RuntimeError("jinja2 is not available or failed to import components. Install with: pip install Jinja2")

        loaders: List[Any] = []

        if templates_dir:
            p = Path(templates_dir)
            if p.is_dir():
                loaders.append(FileSystemLoader(str(p)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", p)

        # Package templates, from the installed package or the source tree.
        pkg_templates_fs = Path(__file__).parent / "templates"
        if pkg_templates_fs.is_dir():
            loaders.append(FileSystemLoader(str(pkg_templates_fs)))
        else:
            loaders.append(PackageLoader(PACKAGE_NAME, "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )

    # ---- Rendering ----

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise RuntimeError(f"Template not found: {template_name}") from e
        return template.render(**context)


# ----------------------------------------
# Text helpers
# ----------------------------------------

def join_section(chunks: Iterable[str]) -> str:
    """
    Concatenate the text chunks of an output section. Empty sections render
    as nothing so templates can test the result.
    """
    return "".join(chunks)


def include_guard_name(module: str) -> str:
    """
    Include guard of the header generated for `module`:
    'SWIG_<module>_WRAP_H_'
    """
    return f"SWIG_{module}_WRAP_H_"


def indent_block(text: str, level: int = 1) -> str:
    """
    Indent every non-empty line of a multi-line code fragment.
    """
    pad = CINDENT * level
    return "\n".join((pad + line) if line.strip() else line for line in text.split("\n"))


def strip_braces(code: str) -> str:
    """
    Remove one pair of enclosing braces from a code fragment: `{ foo(); }`
    and `foo();` are accepted interchangeably for user code snippets.
    """
    s = code.strip()
    if s.startswith("{") and s.endswith("}"):
        s = s[1:-1].strip()
    return s


# ----------------------------------------
# File I/O helpers
# ----------------------------------------

def ensure_dir(p: Path) -> None:
    """
    Ensure directory exists (mkdir -p).
    """
    Path(p).mkdir(parents=True, exist_ok=True)

def normalize_newlines(text: str) -> str:
    """
    Normalize to Unix newlines for reproducible diffs and consistent build environments.
    """
    return text.replace("\r\n", "\n").replace("\r", "\n")

def _read_text_if_exists(path: Path, encoding: str = "utf-8") -> Optional[str]:
    try:
        with open(path, "r", encoding=encoding, newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None


def atomic_write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    make_parents: bool = True,
    mode: Optional[int] = 0o644,
    log: bool = True,
    only_if_changed: bool = True,
) -> bool:
    """
    Write text atomically to the given path:
    - Optionally avoid writing if the content is unchanged.
    - Write to a temp file in the same directory and os.replace to final path.
    - Set POSIX file mode if provided.

    Returns True if a write occurred, False if skipped due to idempotency.
    """
    content = normalize_newlines(content)
    if make_parents:
        ensure_dir(path.parent)

    if only_if_changed:
        old = _read_text_if_exists(path, encoding=encoding)
        if old is not None and normalize_newlines(old) == content:
            if log:
                logger.debug("[skip] %s (unchanged)", path)
            return False

    tmp_path = None
    try:
        # Temp file in the same directory so the replace stays atomic
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
        if log:
            logger.info("[write] %s", path)
        return True
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp_path)

def write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    dry_run: bool = False,
    log: bool = True,
) -> bool:
    """
    Convenience wrapper over atomic_write_text with optional dry-run support.
    """
    if dry_run:
        if log:
            logger.info("[dry-run] write %s", path)
        return False
    return atomic_write_text(path, content, encoding=encoding, log=log)


__all__ = [
    "CINDENT",
    "TemplateRenderer",
    "configure_logging",
    "ensure_dir",
    "include_guard_name",
    "indent_block",
    "join_section",
    "normalize_newlines",
    "atomic_write_text",
    "strip_braces",
    "write_text",
]
