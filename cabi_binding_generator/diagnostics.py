#!/usr/bin/env python3
"""
Diagnostics collected while generating a module.

Every problem is attached to the declaration it was found in (file and line)
and reported twice: to the `logging` system, formatted like a compiler
message, and to the `DiagnosticLog` returned to the driver.

Errors raised as `EmissionError` abort the emission of the enclosing
declaration only; the traversal catches them, records them and moves on to the
next declaration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional

from .models import Node

logger = logging.getLogger(__name__)


class Severity(Enum):
    WARNING = auto()
    ERROR = auto()


class EmissionError(Exception):
    """
    A declaration cannot be wrapped. Carries the node it happened in when the
    raiser knows it; otherwise the traversal fills it in.
    """

    def __init__(self, message: str, node: Optional[Node] = None) -> None:
        super().__init__(message)
        self.message = message
        self.node = node


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    file: str = ""
    line: int = 0
    symbol: str = ""

    def format(self) -> str:
        label = "Warning" if self.severity == Severity.WARNING else "Error"
        return "%s:%d: %s: %s" % (self.file or "<input>", self.line, label, self.message)

    def to_dict(self) -> Dict:
        return {
            "severity": self.severity.name.lower(),
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "symbol": self.symbol,
        }


@dataclass
class DiagnosticLog:
    """Ordered record of the diagnostics of one generation run."""
    entries: List[Diagnostic] = field(default_factory=list)

    def _add(self, severity: Severity, node: Optional[Node], message: str) -> Diagnostic:
        d = Diagnostic(
            severity=severity,
            message=message,
            file=node.file if node is not None else "",
            line=node.line if node is not None else 0,
            symbol=(node.sym_name or node.name) if node is not None else "",
        )
        self.entries.append(d)
        if severity == Severity.ERROR:
            logger.error("%s", d.format())
        else:
            logger.warning("%s", d.format())
        return d

    def warning(self, node: Optional[Node], message: str) -> Diagnostic:
        return self._add(Severity.WARNING, node, message)

    def error(self, node: Optional[Node], message: str) -> Diagnostic:
        return self._add(Severity.ERROR, node, message)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.entries if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.entries if d.severity == Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


__all__ = [
    "Diagnostic",
    "DiagnosticLog",
    "EmissionError",
    "Severity",
]
