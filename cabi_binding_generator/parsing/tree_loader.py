#!/usr/bin/env python3
"""
Loader for resolved declaration trees.

The generator doesn't parse C++ itself: a front-end resolves the declarations
(names, types, access, overload sets) and hands over a JSON document:

    {
      "module": {
        "kind": "module", "name": "gfx",
        "children": [
          {"kind": "function", "name": "add", "type": "int",
           "parms": [{"name": "a", "type": "int"}, {"name": "b", "type": "int"}],
           "file": "gfx.h", "line": 3}
        ]
      },
      "typemaps": [
        {"method": "in", "type": "std::string const &", "code": "..."}
      ]
    }

Types are C++ spellings, parsed with `CppType.from_spelling`. Keys without a
`Node` field of their own are kept in the node attributes, and `file` is
inherited from the parent when omitted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import CppType, Node, NodeKind, Parm, TypeSyntaxError
from ..typemaps import TypemapRule, TypemapTable

logger = logging.getLogger(__name__)

_NODE_KEYS = frozenset(
    (
        "kind",
        "name",
        "sym_name",
        "type",
        "parms",
        "bases",
        "access",
        "storage",
        "const",
        "noexcept",
        "throws",
        "features",
        "attrs",
        "children",
        "file",
        "line",
    )
)

_ACCESS = ("public", "protected", "private")
_STORAGE = (None, "static", "virtual", "friend")


class TreeLoadError(ValueError):
    """Raised when the input document is malformed."""


@dataclass
class LoadedInput:
    module: Node
    typemaps: TypemapTable


# --------------------------
# Helpers
# --------------------------

def _type(value: Any, where: str) -> Optional[CppType]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TreeLoadError("%s: type must be a string, got %r" % (where, value))
    try:
        return CppType.from_spelling(value)
    except TypeSyntaxError as e:
        raise TreeLoadError("%s: %s" % (where, e)) from e


def _parms(values: Any, where: str) -> List[Parm]:
    if not isinstance(values, list):
        raise TreeLoadError("%s: parms must be a list" % where)
    out: List[Parm] = []
    for i, p in enumerate(values):
        if isinstance(p, str):
            p = {"type": p}
        if not isinstance(p, dict) or "type" not in p:
            raise TreeLoadError("%s: parameter %d needs a type" % (where, i + 1))
        out.append(Parm(p.get("name"), _type(p["type"], where), p.get("default")))
    return out


def _node(data: Any, parent_file: str, path: str) -> Node:
    if not isinstance(data, dict):
        raise TreeLoadError("%s: expected an object, got %r" % (path, type(data).__name__))
    kind_name = str(data.get("kind", "")).upper()
    try:
        kind = NodeKind[kind_name]
    except KeyError:
        raise TreeLoadError("%s: unknown node kind %r" % (path, data.get("kind"))) from None

    name = data.get("name") or ""
    where = "%s(%s %s)" % (path, kind.name.lower(), name or "<anonymous>")

    access = data.get("access", "public")
    if access not in _ACCESS:
        raise TreeLoadError("%s: unknown access %r" % (where, access))
    storage = data.get("storage")
    if storage not in _STORAGE:
        raise TreeLoadError("%s: unknown storage %r" % (where, storage))

    attrs: Dict[str, Any] = dict(data.get("attrs") or {})
    for key, value in data.items():
        if key not in _NODE_KEYS:
            attrs[key] = value

    throws = data.get("throws")
    node = Node(
        kind=kind,
        name=name,
        sym_name=data.get("sym_name"),
        type=_type(data.get("type"), where),
        parms=_parms(data.get("parms", []), where),
        bases=list(data.get("bases", [])),
        access=access,
        storage=storage,
        is_const=bool(data.get("const", False)),
        noexcept=bool(data.get("noexcept", False)),
        throws=list(throws) if throws is not None else None,
        features=dict(data.get("features") or {}),
        attrs=attrs,
        file=data.get("file") or parent_file,
        line=int(data.get("line", 0)),
    )
    for i, child in enumerate(data.get("children", [])):
        node.add_child(_node(child, node.file, "%s/%d" % (path, i)))
    return node


def _typemap_rule(data: Any, index: int) -> TypemapRule:
    if not isinstance(data, dict):
        raise TreeLoadError("typemaps[%d]: expected an object" % index)
    try:
        return TypemapRule(
            method=data["method"],
            code=data.get("code", ""),
            type=_type(data.get("type"), "typemaps[%d]" % index),
            category=data.get("category"),
            numinputs=int(data.get("numinputs", 1)),
        )
    except KeyError as e:
        raise TreeLoadError("typemaps[%d]: missing %s" % (index, e)) from None
    except ValueError as e:
        raise TreeLoadError("typemaps[%d]: %s" % (index, e)) from e


# --------------------------
# Public API
# --------------------------

def load_tree_data(data: Dict[str, Any], use_default_typemaps: bool = True) -> LoadedInput:
    """
    Build the module tree and the typemap table from an already decoded
    document.
    """
    if not isinstance(data, dict) or "module" not in data:
        raise TreeLoadError('Input must be an object with a "module" key')
    module = _node(data["module"], "", "module")
    if module.kind != NodeKind.MODULE:
        raise TreeLoadError("Root node must be a module, got %s" % module.kind.name.lower())
    if not module.name:
        raise TreeLoadError("Module has no name")

    rules = [_typemap_rule(r, i) for i, r in enumerate(data.get("typemaps", []))]
    table = TypemapTable(rules, use_defaults=use_default_typemaps)
    logger.debug("Loaded module %s (%d nodes, %d typemaps)", module.name, sum(1 for _ in module.walk()), len(rules))
    return LoadedInput(module, table)


def load_tree(path: Path) -> LoadedInput:
    """Read and load a JSON tree file."""
    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TreeLoadError("%s: invalid JSON: %s" % (p, e)) from e
    return load_tree_data(data)


__all__ = [
    "LoadedInput",
    "TreeLoadError",
    "load_tree",
    "load_tree_data",
]
