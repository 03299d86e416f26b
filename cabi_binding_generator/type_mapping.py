#!/usr/bin/env python3
"""
Type resolution and mangling for the C ABI wrappers.

This module decides how every C++ type crosses the C boundary:

- builtins (and scalar typedefs such as `int32_t`) pass through unchanged;
  using `bool` pulls `<stdbool.h>` into the header once
- enums travel as their flattened C enum in the header and as `int` in the
  implementation unit
- classes known to the tree (including classes of imported modules) become a
  pointer to their opaque proxy struct in the header and to `SwigObj` in the
  implementation unit, whether they are passed by pointer, reference or value
- anything else becomes a pointer to an opaque `SWIGTYPE<mangled>` struct,
  declared once in the header types section before its first use

Typical usage:

    symbols = SymbolTable.from_tree(module)
    resolver = TypeResolver(symbols, names, types_section)
    resolver.c_type(CppType.from_spelling("const Foo &"), scope, TypeContext.DECL)
    # -> 'Foo *'
    resolver.mangle(CppType.from_spelling("double"))
    # -> 'd'

The C++ facade uses `cxx_parm()` / `cxx_return()`, which also return the text
to put around an expression to convert it between facade objects and the
opaque pointers of the C functions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, List, Optional, Set

from .diagnostics import EmissionError
from .models import SCALAR_TYPEDEFS, CppType, Node, NodeKind, is_builtin_name, mangle_identifier
from .naming import NamePolicy

logger = logging.getLogger(__name__)


# --------------------------
# Helpers
# --------------------------

def _normalize_name(name: str) -> str:
    n = name.strip()
    for kw in ("enum ", "struct ", "class ", "union "):
        if n.startswith(kw):
            n = n[len(kw):].strip()
    if n.startswith("::"):
        n = n[2:]
    return n


def _candidates(name: str, scope: str) -> List[str]:
    """`N` seen from `a::b` may be `a::b::N`, `a::N` or `N`."""
    out: List[str] = []
    parts = [p for p in scope.split("::") if p] if scope else []
    while parts:
        out.append("::".join(parts + [name]))
        parts.pop()
    out.append(name)
    return out


def _mangle_decl(d: str) -> str:
    if d.startswith("q("):
        quals = d[2:-1].split()
        return "".join("c" if q == "const" else "v" for q in quals)
    if d.startswith("a("):
        return "a" + mangle_identifier(d[2:-1])
    if d.startswith("m("):
        return "m" + mangle_identifier(d[2:-1])
    if d.startswith("f("):
        return "f"
    return d


class TypeContext(Enum):
    DECL = auto()  # the public header
    IMPL = auto()  # the implementation unit


@dataclass
class TypeRendering:
    """
    A type as spelled in the C++ facade, and the text to wrap around an
    expression of it: parameters get converted to the opaque pointer expected
    by the C function, return values to facade objects.
    """
    type: str
    wrap_start: str = ""
    wrap_end: str = ""

    @property
    def is_void(self) -> bool:
        return self.type == "void"

    def wrap(self, expr: str) -> str:
        return "%s%s%s" % (self.wrap_start, expr, self.wrap_end)


# --------------------------
# Symbol table
# --------------------------

class SymbolTable:
    """
    Classes, enums and typedefs of the tree, imported modules included,
    indexed by qualified name.
    """

    def __init__(self) -> None:
        self.classes: Dict[str, Node] = {}
        self.enums: Dict[str, Node] = {}
        self.typedefs: Dict[str, Node] = {}

    @classmethod
    def from_tree(cls, root: Node) -> SymbolTable:
        table = cls()
        for n in root.walk():
            table.register(n)
        return table

    def register(self, node: Node) -> None:
        if node.kind == NodeKind.CLASS and node.name:
            self.classes.setdefault(node.qualified_name, node)
            tdname = node.attr("tdname")
            if tdname:
                scope = node.scope_name
                self.classes.setdefault("%s::%s" % (scope, tdname) if scope else tdname, node)
        elif node.kind == NodeKind.ENUM:
            if node.name and not node.attr("unnamed"):
                self.enums.setdefault(node.qualified_name, node)
            tdname = node.attr("tdname")
            if tdname:
                scope = node.scope_name
                self.enums.setdefault("%s::%s" % (scope, tdname) if scope else tdname, node)
        elif node.kind == NodeKind.TYPEDEF and node.name and node.type is not None:
            self.typedefs.setdefault(node.qualified_name, node)

    @staticmethod
    def _lookup(table: Dict[str, Node], name: str, scope: str) -> Optional[Node]:
        n = _normalize_name(name)
        for c in _candidates(n, scope):
            found = table.get(c)
            if found is not None:
                return found
        return None

    def lookup_class(self, name: str, scope: str = "") -> Optional[Node]:
        return self._lookup(self.classes, name, scope)

    def lookup_enum(self, name: str, scope: str = "") -> Optional[Node]:
        return self._lookup(self.enums, name, scope)

    def lookup_typedef(self, name: str, scope: str = "") -> Optional[Node]:
        return self._lookup(self.typedefs, name, scope)


# --------------------------
# Resolver
# --------------------------

class TypeResolver:
    """
    Resolve types for the C header, the implementation unit and the C++
    facade. Opaque types and the `<stdbool.h>` include are appended to
    `types_sink`, the header types section, the first time they are needed.
    """

    def __init__(
        self,
        symbols: SymbolTable,
        names: NamePolicy,
        types_sink: List[str],
        cplusplus: bool = True,
    ) -> None:
        self.symbols = symbols
        self.names = names
        self.types_sink = types_sink
        self.cplusplus = cplusplus
        self._declared: Set[str] = set()
        self._bool_included = False

    # ---- Lookups ----

    def resolve_typedefs(self, t: CppType, scope: str = "") -> CppType:
        seen: Set[str] = set()
        cur = t
        while True:
            if cur.is_builtin or cur.base in seen:
                return cur
            td = self.symbols.lookup_typedef(cur.base, scope)
            if td is None or td.type is None:
                return cur
            seen.add(cur.base)
            cur = td.type.with_prefix(cur.decls)
            scope = td.scope_name

    def enum_node(self, t: CppType, scope: str = "") -> Optional[Node]:
        r = self.resolve_typedefs(t, scope)
        if r.is_builtin:
            return None
        return self.symbols.lookup_enum(r.base, scope)

    def qualified(self, t: CppType, scope: str = "") -> CppType:
        """
        `t` with typedefs resolved and a class or enum base spelled with its
        fully qualified name, usable anywhere in the implementation unit.
        """
        r = self.resolve_typedefs(t, scope)
        if r.is_builtin:
            return r
        node = self.symbols.lookup_class(r.base, scope) or self.symbols.lookup_enum(r.base, scope)
        if node is None or not node.name or node.attr("unnamed"):
            return r
        return r.with_base(node.qualified_name)

    def _is_enum(self, r: CppType, scope: str) -> bool:
        return r.is_enum or self.symbols.lookup_enum(r.base, scope) is not None

    def category(self, t: CppType, scope: str = "") -> str:
        """
        Classify a type for typemap selection, see `typemaps.CATEGORIES`.
        """
        r = self.resolve_typedefs(t, scope)
        if r.is_void:
            return "void"
        if r.is_pointer or r.is_member_pointer:
            target = r.pop()
            if target.is_function:
                return "funcptr" if self._is_c_signature(target, scope) else "unknown_ptr"
        ds = r.strip_qualifiers().decls
        is_ref = len(ds) == 1 and ds[0] in ("r", "z")
        if r.is_builtin or self._is_enum(r, scope):
            kind = "builtin" if r.is_builtin else "enum"
            if not ds:
                return kind
            if is_ref:
                if r.pop().is_const:
                    return kind + "_cref"
                return "builtin_ref" if kind == "builtin" else "enum_ptr"
            return kind + "_ptr"
        if self.symbols.lookup_class(r.base, scope) is not None:
            if not ds:
                return "class_value"
            if ds == ("p",) or (len(ds) == 1 and ds[0].startswith("a(")):
                return "class_ptr"
            if is_ref:
                return "class_ref"
            return "unknown_ptr"
        if not ds:
            return "unknown_value"
        if is_ref:
            return "unknown_ref"
        return "unknown_ptr"

    def _is_c_signature(self, fn: CppType, scope: str) -> bool:
        ret = self.resolve_typedefs(fn.pop(), scope)
        types = [ret] + [self.resolve_typedefs(a, scope) for a in fn.function_args]
        return all(x.is_builtin for x in types)

    # ---- C types ----

    def _note_bool(self, r: CppType, context: TypeContext) -> None:
        if context == TypeContext.DECL and "bool" in r.base.split():
            self.include_stdbool()

    def include_stdbool(self) -> None:
        if not self._bool_included:
            self._bool_included = True
            self.types_sink.append("#include <stdbool.h>\n\n")

    def declare_opaque(self, name: str) -> None:
        if name not in self._declared:
            self._declared.add(name)
            self.types_sink.append("typedef struct %s %s;\n\n" % (name, name))

    def opaque_name(self, t: CppType, scope: str = "") -> str:
        r = self.resolve_typedefs(t, scope).strip_qualifiers()
        if not r.decls:
            handle = r.add_pointer()
        elif r.decls[0] in ("r", "z"):
            handle = CppType(r.base, ("p",) + r.decls[1:])
        else:
            handle = r
        return "SWIGTYPE%s" % handle.manglestr()

    def enum_c_type(self, enum: Optional[Node], context: TypeContext) -> str:
        if context == TypeContext.IMPL or enum is None:
            return "int"
        return self.names.enum_type_name(enum) or "int"

    def c_type(self, t: CppType, scope: str = "", context: TypeContext = TypeContext.DECL) -> str:
        """
        The C type of a wrapper parameter or return value of type `t`.
        """
        r = self.resolve_typedefs(t, scope)
        if not self.cplusplus:
            # Plain C declarations are usable as they are.
            self._note_bool(r, context)
            return t.to_spelling()

        cat = self.category(t, scope)
        if cat == "void":
            return "void"
        if cat in ("builtin", "builtin_cref"):
            self._note_bool(r, context)
            return r.base
        if cat == "builtin_ref":
            self._note_bool(r, context)
            return r.ltype().to_spelling()
        if cat == "builtin_ptr":
            self._note_bool(r, context)
            if r.is_array:
                return CppType(r.base, ("p",) + r._unqualified().decls[1:]).to_spelling()
            return r.to_spelling()
        if cat in ("enum", "enum_cref"):
            return self.enum_c_type(self.symbols.lookup_enum(r.base, scope), context)
        if cat == "enum_ptr":
            base = self.enum_c_type(self.symbols.lookup_enum(r.base, scope), context)
            return r.ltype().with_base(base).to_spelling()
        if cat == "funcptr":
            return r.to_spelling()
        if context == TypeContext.IMPL:
            return "SwigObj *"
        if cat.startswith("class_"):
            cls = self.symbols.lookup_class(r.base, scope)
            assert cls is not None
            return "%s *" % self.names.proxy_name(cls)
        name = self.opaque_name(t, scope)
        self.declare_opaque(name)
        return "%s *" % name

    @staticmethod
    def declare(ctype: str, name: str) -> str:
        """A declaration of `name` with the C type spelling `ctype`."""
        if "(*)" in ctype:
            return ctype.replace("(*)", "(*%s)" % name, 1)
        if ctype.endswith("*"):
            return "%s%s" % (ctype, name)
        return "%s %s" % (ctype, name)

    # ---- C++ facade types ----

    def cxx_parm(self, t: CppType, scope: str = "") -> TypeRendering:
        r = self.resolve_typedefs(t, scope)
        cat = self.category(t, scope)
        cls = self.symbols.lookup_class(r.base, scope) if cat.startswith("class_") else None
        if cls is None:
            return TypeRendering(self.c_type(t, scope, TypeContext.DECL))
        sym = cls.sym_name or cls.name
        if cat == "class_ptr":
            return TypeRendering(r.with_base(sym).to_spelling(), "", "->swig_self()")
        if cat == "class_ref":
            return TypeRendering(r.with_base(sym).to_spelling(), "", ".swig_self()")
        return TypeRendering("%s const&" % sym, "", ".swig_self()")

    def cxx_return(self, t: CppType, scope: str = "") -> TypeRendering:
        r = self.resolve_typedefs(t, scope)
        cat = self.category(t, scope)
        if cat == "void":
            return TypeRendering("void")
        if cat in ("unknown_ref", "unknown_value"):
            raise EmissionError('Unknown reference return type "%s"' % t.to_spelling())
        cls = self.symbols.lookup_class(r.base, scope) if cat.startswith("class_") else None
        if cls is None:
            return TypeRendering(self.c_type(t, scope, TypeContext.DECL))
        sym = cls.sym_name or cls.name
        if cat == "class_ptr":
            return TypeRendering(
                r.with_base(sym).to_spelling(),
                "[=] { auto swig_res = ",
                "; return swig_res ? new %s(swig_res) : nullptr; }()" % sym,
            )
        if cat == "class_ref":
            return TypeRendering(sym, "%s{" % sym, ", false}")
        return TypeRendering(sym, "%s(" % sym, ")")

    # ---- Mangling ----

    def mangle(self, t: CppType, scope: str = "") -> str:
        """
        Short code of a parameter type for overloaded wrapper names.
        """
        r = self.resolve_typedefs(t, scope)
        if r.is_member_pointer:
            u = r._unqualified()
            r = CppType(u.base, ("p",) + u.decls[1:])
        if r.is_pointer and r.pop().is_function:
            return "f"
        prefix = "".join(_mangle_decl(d) for d in r.decls)
        if r.base in SCALAR_TYPEDEFS:
            # Fixed width typedefs would collide on their first letter.
            return prefix + r.base
        if r.is_builtin:
            return prefix + r.base[0]
        if self._is_enum(r, scope):
            return prefix + "e" + _normalize_name(r.base).split("::")[-1]
        return prefix + mangle_identifier(_normalize_name(r.base))


__all__ = [
    "SymbolTable",
    "TypeContext",
    "TypeRendering",
    "TypeResolver",
]
