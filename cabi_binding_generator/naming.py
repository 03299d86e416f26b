#!/usr/bin/env python3
"""
Naming policy for the generated C symbols.

Rules:
- Classes and enums are exposed under a "proxy" name: the class name, prefixed
  with the mangled namespace when the nspace feature applies to it, or with the
  global prefix (mangled facade namespace) when one is configured.
- Members, constructors, destructors and accessors of a class start with the
  proxy name of the class and never get any other prefix.
- Everything else is prefixed, by priority, with the mangled enclosing
  namespace (nspace feature), the global prefix, or the module name.
- Overloaded functions get a suffix made of one code per parameter type, see
  `type_mapping.TypeResolver.mangle()`.

Derived names are memoized in a `NameCache` owned by the generation run,
never stored on the declaration nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from .models import FunctionRole, FunctionSpec, GeneratorConfig, Node, NodeKind, mangle_identifier


@dataclass
class NameCache:
    """Side table of derived names, keyed by node identity."""
    proxies: Dict[int, str] = field(default_factory=dict)
    enums: Dict[int, Optional[str]] = field(default_factory=dict)
    wrappers: Dict[Tuple[int, int, str, str], str] = field(default_factory=dict)

    def clear(self) -> None:
        self.proxies.clear()
        self.enums.clear()
        self.wrappers.clear()


def _uses_nspace(node: Node) -> bool:
    p: Optional[Node] = node
    while p is not None:
        if p.feature("nspace"):
            return True
        p = p.parent
    return False


class NamePolicy:
    def __init__(self, config: GeneratorConfig, cache: Optional[NameCache] = None) -> None:
        self.config = config
        self.cache = cache if cache is not None else NameCache()

    @property
    def global_prefix(self) -> Optional[str]:
        return self.config.global_prefix

    # ---- Prefixes ----

    def scope_prefix(self, node: Node) -> Optional[str]:
        """Mangled namespace of the enclosing scope if it uses nspace."""
        scope = node.scope
        if scope is None or scope.kind != NodeKind.NAMESPACE or not _uses_nspace(scope):
            return None
        return mangle_identifier(scope.qualified_name)

    def free_prefix(self, node: Node) -> str:
        """Prefix of any symbol not belonging to a class."""
        return self.scope_prefix(node) or self.global_prefix or self.config.module

    # ---- Classes and enums ----

    def proxy_name(self, node: Node) -> str:
        key = id(node)
        cached = self.cache.proxies.get(key)
        if cached is not None:
            return cached
        sym = node.sym_name or node.name
        ns = node.namespace_name
        if ns and _uses_nspace(node):
            proxy = "%s_%s" % (mangle_identifier(ns), sym)
        elif self.global_prefix:
            proxy = "%s_%s" % (self.global_prefix, sym)
        else:
            proxy = sym
        self.cache.proxies[key] = proxy
        return proxy

    def c_class_ptr(self, node: Node) -> str:
        """Pointer type to the opaque C struct of a class."""
        return "SwigObj_%s*" % self.proxy_name(node)

    def enum_prefix(self, enum: Node) -> str:
        owner = enum.enclosing_class
        return self.proxy_name(owner) if owner is not None else self.free_prefix(enum)

    def enum_c_name(self, enum: Node) -> Optional[str]:
        """
        Flattened C name of a named enum (without the `enum` keyword), None for
        an anonymous one.
        """
        if enum.attr("unnamed") or not enum.name:
            return None
        return "%s_%s" % (self.enum_prefix(enum), enum.name.split("::")[-1])

    def enum_type_name(self, enum: Node) -> Optional[str]:
        """
        How C code refers to the enum type: `enum gfx_Color`, the prefixed
        typedef name, or None when it can't be referenced.
        """
        key = id(enum)
        if key in self.cache.enums:
            return self.cache.enums[key]
        tdname = enum.attr("tdname")
        if tdname:
            name: Optional[str] = "%s_%s" % (self.enum_prefix(enum), tdname)
        else:
            cname = self.enum_c_name(enum)
            name = "enum %s" % cname if cname else None
        self.cache.enums[key] = name
        return name

    # ---- Functions ----

    def overload_suffix(self, codes: Sequence[str], const_overloaded: bool = False) -> str:
        suffix = "_const" if const_overloaded else ""
        return suffix + "".join("_" + c for c in codes)

    def wrapper_name(self, spec: FunctionSpec, codes: Sequence[str] = ()) -> str:
        """
        C symbol of the wrapper for `spec`. `codes` are the mangled parameter
        types, used only when the function is overloaded.
        """
        key = (id(spec.node), id(spec.owner), spec.role.name, spec.sym_name)
        cached = self.cache.wrappers.get(key)
        if cached is not None:
            return cached

        role = spec.role
        suffix = ""
        if spec.overloaded and role != FunctionRole.COPY_CONSTRUCTOR:
            suffix = self.overload_suffix(codes, spec.const_overloaded)

        if spec.owner is not None:
            proxy = self.proxy_name(spec.owner)
            if role == FunctionRole.CONSTRUCTOR:
                name = "%s_new" % proxy
            elif role == FunctionRole.COPY_CONSTRUCTOR:
                name = "%s_copy" % proxy
            elif role == FunctionRole.DESTRUCTOR:
                name = "%s_delete" % proxy
            elif role in (FunctionRole.MEMBER_GET, FunctionRole.STATIC_GET):
                name = "%s_%s_get" % (proxy, spec.sym_name)
            elif role in (FunctionRole.MEMBER_SET, FunctionRole.STATIC_SET):
                name = "%s_%s_set" % (proxy, spec.sym_name)
            else:
                name = "%s_%s" % (proxy, spec.sym_name)
            name += suffix
        elif role in (FunctionRole.GLOBAL_GET, FunctionRole.GLOBAL_SET):
            sym = spec.sym_name
            if self.global_prefix:
                sym = "%s_%s" % (self.global_prefix, sym)
            name = "%s_%s" % (sym, "get" if role == FunctionRole.GLOBAL_GET else "set")
        else:
            name = "%s_%s%s" % (self.free_prefix(spec.node), spec.sym_name, suffix)

        self.cache.wrappers[key] = name
        return name


__all__ = [
    "NameCache",
    "NamePolicy",
]
