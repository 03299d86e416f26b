#!/usr/bin/env python3
"""
Shared state of one generation run: the ordered output sections and the
collaborators every emitter needs (names, types, typemaps, diagnostics).

A new `EmissionContext` is built for every run, so nothing leaks from one
module, or one run over the same module, to the next.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List

from ..diagnostics import DiagnosticLog
from ..inheritance import InheritanceFlattener
from ..models import GeneratorConfig, Node
from ..naming import NamePolicy
from ..type_mapping import SymbolTable, TypeResolver
from ..typemaps import TypemapTable
from ..utils import join_section


class ExceptionsSupport(Enum):
    ENABLED = auto()  # defined and used by this module
    DISABLED = auto()
    IMPORTED = auto()  # used, but defined by an imported module


@dataclass
class OutputSections:
    """
    Text sections, in output order. Header: cheader, types, decls, then the
    C++ facade (cxx_types, cxx_decls, cxx_impls). Implementation unit: begin,
    runtime, header, wrapper, init.
    """
    cheader: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    decls: List[str] = field(default_factory=list)
    cxx_types: List[str] = field(default_factory=list)
    cxx_decls: List[str] = field(default_factory=list)
    cxx_impls: List[str] = field(default_factory=list)
    begin: List[str] = field(default_factory=list)
    runtime: List[str] = field(default_factory=list)
    header: List[str] = field(default_factory=list)
    wrapper: List[str] = field(default_factory=list)
    init: List[str] = field(default_factory=list)

    def by_name(self, name: str) -> List[str]:
        """Section targeted by a user insert, e.g. `%header`."""
        if name not in self.__dataclass_fields__:
            raise KeyError(name)
        return getattr(self, name)

    def to_dict(self) -> Dict[str, str]:
        return {name: join_section(getattr(self, name)) for name in self.__dataclass_fields__}


@dataclass
class EmissionContext:
    config: GeneratorConfig
    sections: OutputSections
    names: NamePolicy
    symbols: SymbolTable
    resolver: TypeResolver
    typemaps: TypemapTable
    diagnostics: DiagnosticLog
    flattener: InheritanceFlattener
    exceptions: ExceptionsSupport = ExceptionsSupport.DISABLED
    # Emitted wrapper symbols, in emission order.
    symbols_emitted: List[Dict] = field(default_factory=list)
    # Nodes synthesized during the run. Names are cached by node identity,
    # so these must outlive the run.
    synthesized: List[Node] = field(default_factory=list)

    def is_defined(self, name: str) -> bool:
        return any(s["name"] == name for s in self.symbols_emitted)

    def record_symbol(self, kind: str, name: str, node: Node) -> None:
        self.symbols_emitted.append(
            {
                "kind": kind,
                "name": name,
                "declaration": node.qualified_name,
                "file": node.file,
                "line": node.line,
            }
        )


__all__ = [
    "EmissionContext",
    "ExceptionsSupport",
    "OutputSections",
]
