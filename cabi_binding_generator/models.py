#!/usr/bin/env python3
"""
Data models for the C ABI binding generator.

This module provides the structures shared by the loader, the emitters and the
templates:
- C++ types, stored as a base name plus a declarator chain (pointer, reference,
  array, member pointer, function, qualifiers), outermost first
- Declaration tree nodes (module, classes, functions, variables, enums, ...)
- Per-wrapper function records handed to the C and C++ facade emitters
- Generator configuration and the generation context of a single run

Nodes are owned by the tree and are never modified by the emitters: everything
that is derived from them (proxy names, wrapper names, flattened members) lives
in side tables owned by one generation run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

# --------------------------
# C++ Type model
# --------------------------

BUILTIN_WORDS = frozenset(
    ("void", "short", "int", "long", "char", "float", "double", "bool", "signed", "unsigned")
)

# Scalar typedefs that travel through C unchanged, like the builtins.
SCALAR_TYPEDEFS = frozenset(
    (
        "size_t",
        "ptrdiff_t",
        "intptr_t",
        "uintptr_t",
        "int8_t",
        "uint8_t",
        "int16_t",
        "uint16_t",
        "int32_t",
        "uint32_t",
        "int64_t",
        "uint64_t",
        "wchar_t",
    )
)

_TOKEN_RE = re.compile(r"\s*(\.\.\.|&&|[*&]|[A-Za-z_~$][\w$]*(?:\s*::\s*[A-Za-z_~$][\w$]*)*(?:\s*<[^()]*>)?|::\s*[A-Za-z_][\w:]*)")
_FUNC_PTR_RE = re.compile(r"^(?P<ret>.*?)\(\s*(?P<kind>\*|&|[\w:]+::\*)\s*\)\s*\((?P<args>.*)\)\s*(?P<cv>const)?\s*$")
_ARRAY_RE = re.compile(r"\[\s*([^\]]*)\s*\]\s*$")


class TypeSyntaxError(ValueError):
    """Raised when a type spelling cannot be understood."""


@dataclass(frozen=True)
class CppType:
    """
    A C++ type as a base name and a declarator chain.

    Declarator elements, outermost first:
      "p"            pointer
      "r"            lvalue reference
      "z"            rvalue reference
      "a(N)"         array of N elements (N may be empty)
      "m(C)"         pointer to member of C
      "f(args)"      function taking args (comma separated spellings)
      "q(const)"     qualifier, also "q(volatile)" and "q(const volatile)"

    `const char *` is ("p", "q(const)") over "char", `char * const` is
    ("q(const)", "p") over "char".
    """
    base: str
    decls: Tuple[str, ...] = ()

    # ---- Construction ----

    @staticmethod
    def from_spelling(spelling: str) -> CppType:
        """
        Parse a C++ type spelling such as `const Foo &`, `int [4]`,
        `void (*)(int, double)` or `unsigned long long`.
        """
        s = " ".join((spelling or "").split())
        if not s:
            raise TypeSyntaxError("empty type spelling")

        m = _FUNC_PTR_RE.match(s)
        if m:
            ret = CppType.from_spelling(m.group("ret"))
            args = ",".join(a.strip() for a in _split_args(m.group("args")))
            kind = m.group("kind")
            fdecl = ["f(%s)" % args]
            if m.group("cv"):
                fdecl.insert(0, "q(const)")
            if kind == "*":
                outer = ["p"]
            elif kind == "&":
                outer = ["r"]
            else:
                outer = ["m(%s)" % kind[:-3]]
            return CppType(ret.base, tuple(outer + fdecl) + ret.decls)

        dims: List[str] = []
        while True:
            am = _ARRAY_RE.search(s)
            if not am:
                break
            dims.insert(0, am.group(1).strip())
            s = s[: am.start()].rstrip()

        tokens = _tokenize(s)
        base_words: List[str] = []
        inner: List[str] = []  # innermost first
        base_quals: List[str] = []
        seen_declarator = False
        for tok in tokens:
            if tok in ("const", "volatile"):
                if seen_declarator:
                    inner.append("q(%s)" % tok)
                else:
                    base_quals.append(tok)
            elif tok == "*":
                seen_declarator = True
                inner.append("p")
            elif tok == "&":
                seen_declarator = True
                inner.append("r")
            elif tok == "&&":
                seen_declarator = True
                inner.append("z")
            elif tok in ("class", "struct", "union", "typename"):
                continue
            else:
                if seen_declarator:
                    raise TypeSyntaxError("unexpected %r in type %r" % (tok, spelling))
                base_words.append(tok)

        if not base_words:
            raise TypeSyntaxError("no base type in %r" % spelling)
        if base_words[0] == "enum" and len(base_words) > 1:
            base = "enum " + " ".join(base_words[1:])
        else:
            base = " ".join(base_words)

        chain: List[str] = []
        if base_quals:
            chain.append("q(%s)" % " ".join(sorted(set(base_quals))))
        chain.extend(inner)
        for d in reversed(dims):
            chain.append("a(%s)" % d)
        return CppType(base, tuple(reversed(chain)))

    @staticmethod
    def void() -> CppType:
        return CppType("void")

    # ---- Queries ----

    def _first(self) -> str:
        return self.decls[0] if self.decls else ""

    def _unqualified(self) -> CppType:
        """Drop outermost qualifiers only."""
        i = 0
        while i < len(self.decls) and self.decls[i].startswith("q("):
            i += 1
        return CppType(self.base, self.decls[i:])

    @property
    def is_pointer(self) -> bool:
        return self._unqualified()._first() == "p"

    @property
    def is_reference(self) -> bool:
        return self._unqualified()._first() in ("r", "z")

    @property
    def is_rvalue_reference(self) -> bool:
        return self._unqualified()._first() == "z"

    @property
    def is_array(self) -> bool:
        return self._unqualified()._first().startswith("a(")

    @property
    def is_function(self) -> bool:
        return self._unqualified()._first().startswith("f(")

    @property
    def is_member_pointer(self) -> bool:
        return self._unqualified()._first().startswith("m(")

    @property
    def is_const(self) -> bool:
        """True if the outermost level is const qualified."""
        for d in self.decls:
            if not d.startswith("q("):
                return False
            if "const" in d:
                return True
        return False

    @property
    def is_varargs(self) -> bool:
        return self.base == "..." and not self.decls

    @property
    def is_void(self) -> bool:
        return self.base == "void" and not self.strip_qualifiers().decls

    @property
    def is_enum(self) -> bool:
        return self.base.startswith("enum ")

    @property
    def is_builtin(self) -> bool:
        return is_builtin_name(self.base)

    @property
    def array_dim(self) -> str:
        d = self._unqualified()._first()
        return d[2:-1] if d.startswith("a(") else ""

    @property
    def function_args(self) -> List[CppType]:
        d = self._unqualified()._first()
        if not d.startswith("f("):
            return []
        return [CppType.from_spelling(a) for a in _split_args(d[2:-1]) if a.strip() and a.strip() != "void"]

    # ---- Transformations ----

    def strip_qualifiers(self) -> CppType:
        return CppType(self.base, tuple(d for d in self.decls if not d.startswith("q(")))

    def pop(self) -> CppType:
        """Remove the outermost non-qualifier declarator."""
        u = self._unqualified()
        if not u.decls:
            return u
        return CppType(u.base, u.decls[1:])

    def add_pointer(self) -> CppType:
        return CppType(self.base, ("p",) + self.decls)

    def with_base(self, base: str) -> CppType:
        return CppType(base, self.decls)

    def with_prefix(self, decls: Tuple[str, ...]) -> CppType:
        return CppType(self.base, tuple(decls) + self.decls)

    def ltype(self) -> CppType:
        """
        The type usable as an assignable local: references and arrays decay to
        pointers and every qualifier is dropped.
        """
        out: List[str] = []
        for d in self.decls:
            if d.startswith("q("):
                continue
            if not out and (d in ("r", "z") or d.startswith("a(")):
                out.append("p")
            else:
                out.append(d)
        return CppType(self.base, tuple(out))

    # ---- Rendering ----

    def to_spelling(self, name: str = "") -> str:
        """
        Render a C/C++ declaration of `name` with this type, or an abstract
        declarator when `name` is empty.
        """
        decl = name
        prev_is_prefix = False
        decls = list(self.decls)
        base_quals = ""
        if decls and decls[-1].startswith("q("):
            base_quals = decls.pop()[2:-1]
        for d in decls:
            if d == "p":
                decl = "*" + decl
                prev_is_prefix = True
            elif d == "r":
                decl = "&" + decl
                prev_is_prefix = True
            elif d == "z":
                decl = "&&" + decl
                prev_is_prefix = True
            elif d.startswith("m("):
                decl = d[2:-1] + "::*" + decl
                prev_is_prefix = True
            elif d.startswith("q("):
                decl = " " + d[2:-1] + " " + decl if decl else " " + d[2:-1]
                prev_is_prefix = True
            elif d.startswith("a("):
                if prev_is_prefix:
                    decl = "(" + decl + ")"
                decl = decl + "[" + d[2:-1] + "]"
                prev_is_prefix = False
            elif d.startswith("f("):
                if prev_is_prefix:
                    decl = "(" + decl + ")"
                decl = decl + "(" + ", ".join(a.strip() for a in _split_args(d[2:-1])) + ")"
                prev_is_prefix = False
        head = (base_quals + " " + self.base) if base_quals else self.base
        decl = decl.strip()
        if not decl:
            return head
        if decl[0] in "*&(" or decl[0].isalpha() or decl[0] == "_":
            return head + " " + decl
        return head + decl

    def manglestr(self) -> str:
        """
        Identifier-safe encoding of the whole type, used to name opaque types
        (`_p_Foo` for `Foo *`).
        """
        parts: List[str] = []
        for d in self.strip_qualifiers().decls:
            if d.startswith("a("):
                parts.append("a_" + mangle_identifier(d[2:-1]))
            elif d.startswith("m("):
                parts.append("m_" + mangle_identifier(d[2:-1]))
            elif d.startswith("f("):
                parts.append("f")
            else:
                parts.append(d)
        parts.append(mangle_identifier(self.base))
        return "_" + "_".join(p for p in parts if p)

    def __str__(self) -> str:
        return self.to_spelling()


def is_builtin_name(base: str) -> bool:
    words = base.split()
    if not words:
        return False
    if all(w in BUILTIN_WORDS for w in words):
        return True
    return len(words) == 1 and words[0] in SCALAR_TYPEDEFS


def mangle_identifier(name: str) -> str:
    """`ns::Foo<int>` -> `ns_Foo_int_`, `a::b` -> `a_b`."""
    s = name.replace("::", "_")
    s = re.sub(r"[^A-Za-z0-9_]", "_", s.replace(" ", ""))
    return s


def _tokenize(s: str) -> List[str]:
    out: List[str] = []
    pos = 0
    while pos < len(s):
        m = _TOKEN_RE.match(s, pos)
        if not m or m.end() == pos:
            if s[pos:].strip():
                raise TypeSyntaxError("cannot parse type %r near %r" % (s, s[pos:]))
            break
        out.append(" ".join(m.group(1).split()).replace(" ::", "::").replace(":: ", "::"))
        pos = m.end()
    return out


def _split_args(s: str) -> List[str]:
    """Split a parameter list on top-level commas."""
    out: List[str] = []
    depth = 0
    cur: List[str] = []
    for ch in s:
        if ch in "(<[":
            depth += 1
        elif ch in ")>]":
            depth -= 1
        if ch == "," and depth == 0:
            out.append("".join(cur).strip())
            cur = []
        else:
            cur.append(ch)
    if "".join(cur).strip():
        out.append("".join(cur).strip())
    return out


# --------------------------
# Declaration tree
# --------------------------

class NodeKind(Enum):
    MODULE = auto()
    INCLUDE = auto()
    IMPORT = auto()
    NAMESPACE = auto()
    CLASS = auto()
    FUNCTION = auto()
    CONSTRUCTOR = auto()
    DESTRUCTOR = auto()
    VARIABLE = auto()
    ENUM = auto()
    ENUMVALUE = auto()
    CONSTANT = auto()
    TYPEDEF = auto()
    INSERT = auto()


@dataclass
class Parm:
    name: Optional[str]
    type: CppType
    default: Optional[str] = None

    @property
    def is_varargs(self) -> bool:
        return self.type.is_varargs


@dataclass(eq=False)
class Node:
    """
    One declaration of the resolved tree.

    `name` is the declared (unqualified) name; `qualified_name` walks the
    enclosing namespaces and classes. `sym_name` is the symbol name chosen by
    the front-end (after renaming), defaulting to `name`.
    """
    kind: NodeKind
    name: str = ""
    sym_name: Optional[str] = None
    type: Optional[CppType] = None
    parms: List[Parm] = field(default_factory=list)
    bases: List[str] = field(default_factory=list)
    access: str = "public"
    storage: Optional[str] = None  # "static", "virtual", "friend"
    is_const: bool = False
    noexcept: bool = False
    throws: Optional[List[str]] = None  # None: no throw specification, []: throw()
    features: Dict[str, Any] = field(default_factory=dict)
    attrs: Dict[str, Any] = field(default_factory=dict)
    children: List[Node] = field(default_factory=list)
    parent: Optional[Node] = field(default=None, repr=False)
    file: str = ""
    line: int = 0

    def __post_init__(self) -> None:
        if self.sym_name is None and self.name:
            self.sym_name = self.name.split("::")[-1]
        for c in self.children:
            c.parent = self

    # ---- Tree navigation ----

    def add_child(self, child: Node) -> Node:
        child.parent = self
        self.children.append(child)
        return child

    @property
    def next_sibling(self) -> Optional[Node]:
        if self.parent is None:
            return None
        sibs = self.parent.children
        for i, c in enumerate(sibs):
            if c is self:
                return sibs[i + 1] if i + 1 < len(sibs) else None
        return None

    def walk(self) -> Iterator[Node]:
        yield self
        for c in self.children:
            yield from c.walk()

    def children_of(self, *kinds: NodeKind) -> List[Node]:
        return [c for c in self.children if c.kind in kinds]

    @property
    def enclosing_class(self) -> Optional[Node]:
        p = self.parent
        while p is not None and p.kind in (NodeKind.INCLUDE,):
            p = p.parent
        return p if p is not None and p.kind == NodeKind.CLASS else None

    @property
    def scope(self) -> Optional[Node]:
        """The closest enclosing namespace or class, skipping include nodes."""
        p = self.parent
        while p is not None and p.kind in (NodeKind.INCLUDE, NodeKind.IMPORT):
            p = p.parent
        if p is not None and p.kind in (NodeKind.NAMESPACE, NodeKind.CLASS):
            return p
        return None

    @property
    def scope_name(self) -> str:
        """Qualified name of the enclosing scope, empty at global scope."""
        s = self.scope
        return s.qualified_name if s is not None else ""

    @property
    def namespace_name(self) -> str:
        """Qualified name of the enclosing namespaces only."""
        parts: List[str] = []
        p = self.parent
        while p is not None:
            if p.kind == NodeKind.NAMESPACE and p.name:
                parts.insert(0, p.name)
            p = p.parent
        return "::".join(parts)

    @property
    def qualified_name(self) -> str:
        if "::" in self.name:
            return self.name
        prefix = self.scope_name
        return "%s::%s" % (prefix, self.name) if prefix and self.name else self.name

    # ---- Attributes ----

    @property
    def is_member(self) -> bool:
        return self.enclosing_class is not None

    @property
    def is_static(self) -> bool:
        return self.storage == "static"

    @property
    def is_virtual(self) -> bool:
        return self.storage == "virtual" or bool(self.attrs.get("pure_virtual"))

    @property
    def is_public(self) -> bool:
        return self.access == "public"

    @property
    def is_ignored(self) -> bool:
        return bool(self.features.get("ignore"))

    def feature(self, name: str, default: Any = None) -> Any:
        return self.features.get(name, default)

    def attr(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)


# --------------------------
# Wrapper records
# --------------------------

class FunctionRole(Enum):
    FUNCTION = auto()  # free function
    METHOD = auto()
    STATIC_METHOD = auto()
    CONSTRUCTOR = auto()
    COPY_CONSTRUCTOR = auto()
    DESTRUCTOR = auto()
    MEMBER_GET = auto()
    MEMBER_SET = auto()
    STATIC_GET = auto()
    STATIC_SET = auto()
    GLOBAL_GET = auto()
    GLOBAL_SET = auto()


@dataclass
class FunctionSpec:
    """
    Everything the emitters need to wrap one callable: the originating node,
    its role, the C symbol base name and the parameters without `this`.

    Inherited shadows carry the class they come from (`inherited_from`) and,
    when renamed because of a collision, the member name to call
    (`base_name`).
    """
    node: Node
    role: FunctionRole
    sym_name: str
    return_type: CppType
    parms: List[Parm] = field(default_factory=list)
    owner: Optional[Node] = None
    inherited_from: Optional[Node] = None
    base_name: Optional[str] = None
    overloaded: bool = False
    const_overloaded: bool = False
    synthesized: bool = False

    @property
    def is_member(self) -> bool:
        return self.owner is not None

    @property
    def has_self(self) -> bool:
        return self.role in (
            FunctionRole.METHOD,
            FunctionRole.DESTRUCTOR,
            FunctionRole.MEMBER_GET,
            FunctionRole.MEMBER_SET,
        )

    @property
    def is_const(self) -> bool:
        return self.node.is_const and self.role == FunctionRole.METHOD

    @property
    def call_name(self) -> str:
        """Name of the wrapped member or function as written in the call."""
        return self.base_name or self.node.name.split("::")[-1]

    @property
    def cannot_throw(self) -> bool:
        return self.node.noexcept or self.node.throws == []


# --------------------------
# Configuration and context
# --------------------------

@dataclass(frozen=True)
class GeneratorConfig:
    """
    Options gating the generation of one module.

    - namespace: C++ namespace of the facade (may be `a::b`); its mangled form
      also becomes the global prefix of every C symbol
    - cxx_wrappers: generate the header-only C++ facade
    - exceptions: generate exception propagation code
    - cplusplus: the input is C++ (False wraps plain C declarations)
    - header_name: file name of the generated header, used for imports
    - import_headers: explicit module -> header mapping for imported modules
    """
    module: str
    namespace: Optional[str] = None
    cxx_wrappers: bool = True
    exceptions: bool = True
    cplusplus: bool = True
    header_name: Optional[str] = None
    import_headers: Tuple[Tuple[str, str], ...] = ()

    @property
    def global_prefix(self) -> Optional[str]:
        return mangle_identifier(self.namespace) if self.namespace else None

    @property
    def cxx_namespace(self) -> str:
        return self.namespace or self.module

    @property
    def output_header(self) -> str:
        return self.header_name or "%s_wrap.h" % self.module

    @property
    def output_source(self) -> str:
        return "%s_wrap.%s" % (self.module, "cxx" if self.cplusplus else "c")

    def to_dict(self) -> Dict:
        return {
            "module": self.module,
            "namespace": self.namespace,
            "cxx_wrappers": self.cxx_wrappers,
            "exceptions": self.exceptions,
            "cplusplus": self.cplusplus,
            "header_name": self.output_header,
            "import_headers": dict(self.import_headers),
        }


@dataclass
class GenerationContext:
    """
    Parameters for a single generation run.

    Paths are absolute. Emitters should rely on these rather than guessing.
    """
    input_path: Path
    output_dir: Path
    templates_dir: Optional[Path]
    config: GeneratorConfig
    dry_run: bool = False

    @property
    def header_path(self) -> Path:
        return self.output_dir / self.config.output_header

    @property
    def source_path(self) -> Path:
        return self.output_dir / self.config.output_source


__all__ = [
    "CppType",
    "TypeSyntaxError",
    "NodeKind",
    "Node",
    "Parm",
    "FunctionRole",
    "FunctionSpec",
    "GeneratorConfig",
    "GenerationContext",
    "is_builtin_name",
    "mangle_identifier",
]
