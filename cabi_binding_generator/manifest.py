#!/usr/bin/env python3
"""
JSON manifest of one generation run: generator metadata, invocation, the
configuration, every wrapper symbol emitted and the diagnostics. Useful for
debugging and for build systems that need the list of exported symbols.

The manifest carries no timestamp so that regenerating an unchanged module
leaves it untouched on disk.
"""

from __future__ import annotations

import json
import logging
import platform
import shlex
import sys
from importlib import metadata as importlib_metadata

from .emitters.module_emitter import GeneratedModule
from .models import GenerationContext
from .utils import write_text

logger = logging.getLogger(__name__)

DIST_NAME = "cabi-binding-generator"


def generator_version() -> str:
    try:
        return importlib_metadata.version(DIST_NAME)
    except importlib_metadata.PackageNotFoundError:
        return "unknown"


def emit_manifest(ctx: GenerationContext, result: GeneratedModule) -> None:
    """
    Write `<output_dir>/manifest.json`. Raises OSError when it can't be
    written.
    """
    argv = list(getattr(sys, "argv", []) or [])
    manifest = {
        "generator": {
            "name": DIST_NAME,
            "version": generator_version(),
        },
        "invocation": {
            "argv": argv,
            "command_line": " ".join(shlex.quote(a) for a in argv) if argv else "",
        },
        "environment": {
            "python_version": platform.python_version(),
            "system": platform.system(),
        },
        "input": str(ctx.input_path),
        "output_dir": str(ctx.output_dir),
        "files": [ctx.config.output_header, ctx.config.output_source],
        "symbol_count": len(result.symbols),
        **result.to_dict(),
    }

    manifest_path = ctx.output_dir / "manifest.json"
    content = json.dumps(manifest, indent=2) + "\n"
    write_text(manifest_path, content, dry_run=ctx.dry_run)


__all__ = ["emit_manifest", "generator_version"]
