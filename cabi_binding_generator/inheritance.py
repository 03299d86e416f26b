#!/usr/bin/env python3
"""
Flattening of inherited members for the C ABI.

C has no inheritance, so every wrapped class re-exports the public, non-static
member functions and variables of its bases as if they were its own. Each of
them is described by a `ShadowMember` remembering the class it really comes
from, so that the C wrapper can cast `self` to that class before calling it.

When two different bases contribute members with the same name, every one of
them is renamed `<Origin>_<name>` and keeps the name to call in `base_name`.
Members redeclared by the derived class itself hide the inherited ones.

The tree is never modified: shadows live in the flattener, memoized per class.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import Node, NodeKind
from .type_mapping import SymbolTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShadowMember:
    """An inherited member re-exported by a derived class."""
    node: Node
    origin: Node
    sym_name: str
    base_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.node.name.split("::")[-1]


def _is_assignment(node: Node) -> bool:
    return node.name.replace(" ", "") == "operator="


def _inheritable(node: Node) -> bool:
    if node.kind not in (NodeKind.FUNCTION, NodeKind.VARIABLE):
        return False
    if not node.is_public or node.is_static or node.storage == "friend":
        return False
    if node.is_ignored or not node.sym_name:
        return False
    return not _is_assignment(node)


class InheritanceFlattener:
    def __init__(self, symbols: SymbolTable) -> None:
        self.symbols = symbols
        self._cache: Dict[int, List[ShadowMember]] = {}

    def usable_bases(self, cls: Node) -> List[Node]:
        """Bases known to the tree and not ignored, in declaration order."""
        out: List[Node] = []
        for b in cls.bases:
            base = self.symbols.lookup_class(b, cls.scope_name)
            if base is None:
                logger.debug("Base %s of %s is not wrapped", b, cls.name)
                continue
            if base.is_ignored or base is cls:
                continue
            out.append(base)
        return out

    def flatten(self, cls: Node) -> List[ShadowMember]:
        key = id(cls)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        # Guards against cyclic base lists.
        self._cache[key] = []

        own = {c.sym_name for c in cls.children if c.kind in (NodeKind.FUNCTION, NodeKind.VARIABLE)}
        collected: List[ShadowMember] = []
        seen_nodes = set()

        for base in self.usable_bases(cls):
            candidates = [ShadowMember(n, base, n.sym_name or n.name) for n in base.children if _inheritable(n)]
            candidates.extend(self.flatten(base))
            for m in candidates:
                if m.sym_name in own or id(m.node) in seen_nodes:
                    continue
                seen_nodes.add(id(m.node))
                collected.append(m)

        result = self._disambiguate(collected)
        self._cache[key] = result
        return result

    @staticmethod
    def _disambiguate(members: List[ShadowMember]) -> List[ShadowMember]:
        origins: Dict[str, set] = {}
        for m in members:
            origins.setdefault(m.sym_name, set()).add(id(m.origin))

        out: List[ShadowMember] = []
        for m in members:
            if len(origins[m.sym_name]) < 2:
                out.append(m)
                continue
            origin_name = m.origin.sym_name or m.origin.name
            out.append(
                ShadowMember(
                    node=m.node,
                    origin=m.origin,
                    sym_name="%s_%s" % (origin_name, m.sym_name),
                    base_name=m.base_name or m.name,
                )
            )
        return out

    def is_abstract(self, cls: Node) -> bool:
        """
        True if the class declares, or inherits without overriding, a pure
        virtual function.
        """
        if cls.attr("abstract"):
            return True
        if any(c.attr("pure_virtual") for c in cls.children if c.kind == NodeKind.FUNCTION):
            return True
        return any(s.node.attr("pure_virtual") for s in self.flatten(cls))


__all__ = [
    "InheritanceFlattener",
    "ShadowMember",
]
