#!/usr/bin/env python3
"""
C ABI binding generator.

This entrypoint wires together:
- Loading of a resolved declaration tree (JSON, produced by a front-end)
- Emitting (Jinja2-based) of the flat C ABI and its header-only C++ facade

Outputs:
- <output_dir>/<module>_wrap.h    (C declarations, C++ facade)
- <output_dir>/<module>_wrap.cxx  (wrapper definitions; <module>_wrap.c with --c)
- <optional> <output_dir>/manifest.json (for introspection)

Usage (example):
  python -m cabi_binding_generator.generate_bindings \
    --input gfx.json \
    --namespace gfx::c \
    --import-header base=include/base_wrap.h \
    --output-dir src/generated

Exit codes: 0 success, 1 templating setup failed, 2 invalid input, 3 errors
were reported while generating, 4 files could not be written, 5 the manifest
could not be written.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .emitters.module_emitter import EmitterConfig, ModuleEmitter
from .manifest import emit_manifest
from .models import GenerationContext, GeneratorConfig
from .parsing.tree_loader import TreeLoadError, load_tree
from .utils import TemplateRenderer, configure_logging

logger = logging.getLogger(__name__)


# --------------------------
# Helpers
# --------------------------

def parse_import_headers(values: List[str]) -> Tuple[Tuple[str, str], ...]:
    """
    Parse repeated `module=header` options. Later options win.
    """
    mapping = {}
    for v in values:
        module, sep, header = v.partition("=")
        if not sep or not module.strip() or not header.strip():
            raise ValueError("Invalid --import-header %r, expected MODULE=HEADER" % v)
        mapping[module.strip()] = header.strip()
    return tuple(sorted(mapping.items()))


def _log_level(ns: argparse.Namespace) -> int:
    if getattr(ns, "log_level", None):
        return getattr(logging, str(ns.log_level).upper(), logging.INFO)
    if getattr(ns, "verbose", 0) >= 1:
        return logging.DEBUG
    if getattr(ns, "quiet", 0) >= 2:
        return logging.ERROR
    if getattr(ns, "quiet", 0) == 1:
        return logging.WARNING
    return logging.INFO


# --------------------------
# CLI
# --------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate a C ABI and a header-only C++ facade from a resolved C++ API")

    p.add_argument(
        "--input",
        required=True,
        help="JSON file with the resolved declaration tree and optional typemaps.",
    )
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for the generated header and implementation files.",
    )
    p.add_argument(
        "--module",
        default=None,
        help="Module name (defaults to the name of the module node in the input).",
    )
    p.add_argument(
        "--namespace",
        default=None,
        help="C++ namespace of the facade, may be nested (a::b). Its mangled form prefixes every C symbol.",
    )
    p.add_argument(
        "--nocxx",
        action="store_true",
        help="Do not generate the C++ facade.",
    )
    p.add_argument(
        "--noexcept",
        action="store_true",
        help="Do not generate exception propagation code.",
    )
    p.add_argument(
        "--c",
        dest="plain_c",
        action="store_true",
        help="The input declares a plain C API.",
    )
    p.add_argument(
        "--header-name",
        default=None,
        help="File name of the generated header (default: <module>_wrap.h).",
    )
    p.add_argument(
        "--import-header",
        action="append",
        default=[],
        metavar="MODULE=HEADER",
        help="Header generated for an imported module (repeatable). Overrides the name derived from this module's header.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory. If omitted, package templates are used.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest alongside generated sources.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate and report diagnostics without writing files.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG)."
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


# --------------------------
# Main
# --------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)

    configure_logging(
        level=_log_level(ns),
        to_file=ns.log_file,
        fmt=getattr(ns, "log_format", "%(levelname)s: %(message)s"),
    )

    templates_dir = Path(ns.templates_dir).resolve() if ns.templates_dir else None
    try:
        renderer = TemplateRenderer(templates_dir)
    except Exception:
        logger.exception("Failed to initialize templating")
        return 1

    input_path = Path(ns.input).resolve()
    try:
        loaded = load_tree(input_path)
        import_headers = parse_import_headers(ns.import_header)
    except (OSError, TreeLoadError, ValueError) as e:
        logger.error("%s", e)
        return 2

    config = GeneratorConfig(
        module=ns.module or loaded.module.name,
        namespace=ns.namespace,
        cxx_wrappers=not ns.nocxx,
        exceptions=not ns.noexcept,
        cplusplus=not ns.plain_c,
        header_name=ns.header_name,
        import_headers=import_headers,
    )
    ctx = GenerationContext(
        input_path=input_path,
        output_dir=Path(ns.output_dir).resolve(),
        templates_dir=templates_dir,
        config=config,
        dry_run=ns.dry_run,
    )

    emitter = ModuleEmitter(config, renderer=renderer, emitter_config=EmitterConfig(), typemaps=loaded.typemaps)
    try:
        result = emitter.emit(loaded.module, ctx)
    except OSError:
        logger.exception("Failed to write generated files")
        return 4

    if ctx.dry_run:
        logger.info("Dry-run complete (no files written).")

    if not ns.no_manifest:
        try:
            emit_manifest(ctx, result)
        except OSError:
            logger.exception("Failed to emit generation manifest")
            return 5

    if result.has_errors:
        logger.error("%d error(s) reported for module %s", len(result.diagnostics.errors), config.module)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
