#!/usr/bin/env python3
"""
Enums, constants and directly exported variables.

Enums are flattened for C: every element gets the prefix of its scope (the
class proxy name, the scoped enum's own name, or the module/namespace prefix),
while the C++ facade redeclares them with their bare names inside the facade
class or namespace. Elements are collected first and nothing is written for
an enum without any surviving element.

Constants become `#define`s. Global variables of a type C can represent are
exported as they are (`SWIGIMPORT int counter;`); the others get accessor
functions, emitted by the module emitter.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..diagnostics import EmissionError
from ..models import CppType, Node, NodeKind
from ..utils import CINDENT
from .context import EmissionContext
from .cxx_facade_emitter import CxxClassWrapper

logger = logging.getLogger(__name__)


# --------------------------
# Enums
# --------------------------

def _quote_char(value: str) -> str:
    v = value
    if len(v) >= 2 and v[0] == "'" and v[-1] == "'":
        return v
    v = v.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n").replace("\t", "\\t")
    return "'%s'" % v


def enum_value(item: Node, value: str) -> str:
    """
    C spelling of an explicit enum element value. Only the `true` and `false`
    literals are accepted for boolean values.
    """
    vtype = item.type.base if item.type is not None else (item.attr("valuetype") or "")
    if vtype == "bool":
        if value == "true":
            return "1"
        if value == "false":
            return "0"
        raise EmissionError('Unsupported boolean enum value "%s".' % value, item)
    if vtype == "char":
        return _quote_char(value)
    return value


def emit_enum(ctx: EmissionContext, enum: Node, cxx_class: Optional[CxxClassWrapper] = None) -> bool:
    """
    Emit the C declaration of `enum` into the types section and, when the
    facade is generated, its C++ declaration: inside `cxx_class` for nested
    enums, in the facade types section for the others.

    Returns False when nothing was emitted.
    """
    if enum.attr("forward"):
        return False
    owner = enum.enclosing_class
    if owner is not None and not enum.is_public:
        return False

    names = ctx.names
    tdname = enum.attr("tdname")
    cname = names.enum_c_name(enum)
    bare = None if enum.attr("unnamed") or not enum.name else enum.name.split("::")[-1]
    if enum.attr("scopedenum") and cname:
        elem_prefix = cname
    else:
        elem_prefix = names.enum_prefix(enum)

    cxx_indent = CINDENT if owner is not None else ""

    items: List[str] = []
    cxx_items: List[str] = []
    for item in enum.children_of(NodeKind.ENUMVALUE):
        if item.is_ignored:
            continue
        if owner is not None and not item.is_public:
            continue
        sym = item.sym_name or item.name
        c_item = "%s%s_%s" % (CINDENT, elem_prefix, sym)
        cxx_item = "%s%s%s" % (cxx_indent, CINDENT, sym)
        value = item.attr("enumvalue")
        if value is not None:
            cvalue = enum_value(item, str(value))
            c_item += " = %s" % cvalue
            cxx_item += " = %s" % cvalue
        items.append(c_item)
        cxx_items.append(cxx_item)

    if not items:
        logger.debug("Enum %s has no elements, not emitted", enum.qualified_name or "<anonymous>")
        return False

    c_text = "%senum%s {\n%s\n}" % ("typedef " if tdname else "", " " + cname if cname else "", ",\n".join(items))
    if tdname:
        c_text += " %s" % names.enum_type_name(enum)
    ctx.sections.types.append(c_text + ";\n\n")

    facade_on = ctx.config.cxx_wrappers and ctx.config.cplusplus
    if owner is not None and (cxx_class is None or not cxx_class.enabled):
        facade_on = False
    if facade_on:
        cxx_text = "%s%senum%s {\n%s\n%s}" % (
            cxx_indent,
            "typedef " if tdname else "",
            " " + bare if bare else "",
            ",\n".join(cxx_items),
            cxx_indent,
        )
        if tdname:
            cxx_text += " %s" % tdname
        target = ctx.sections.cxx_decls if owner is not None else ctx.sections.cxx_types
        target.append(cxx_text + ";\n\n")
    return True


# --------------------------
# Constants
# --------------------------

def emit_constant(ctx: EmissionContext, node: Node) -> None:
    value = node.attr("rawval")
    if value is None and node.is_member and node.attr("valuetype") == "char" and node.attr("value"):
        c = str(node.attr("value")).strip("'")[:1]
        value = "'%s'" % c if c.isalnum() else "'\\x%02x'" % ord(c)
    if value is None:
        value = node.attr("value")
    if value is None:
        raise EmissionError("Constant %s has no value" % node.qualified_name, node)

    name = node.sym_name or node.name
    owner = node.enclosing_class
    if owner is not None:
        name = "%s_%s" % (ctx.names.proxy_name(owner), name)
    ctx.sections.decls.append("#define %s %s\n" % (name, value))
    ctx.record_symbol("constant", name, node)


# --------------------------
# Variables
# --------------------------

def c_var_decl(ctx: EmissionContext, node: Node) -> Optional[str]:
    """
    C declaration of a variable, or None when its type can't be represented
    in C. Anonymous enums become `int` and array bounds are dropped.
    """
    resolver = ctx.resolver
    scope = node.scope_name
    name = node.name.split("::")[-1]
    t = node.type
    if t is None:
        raise EmissionError("Variable %s has no type" % node.qualified_name, node)

    if node.attr("unnamedinstance"):
        if not (t.is_enum or resolver.enum_node(t, scope) is not None):
            raise EmissionError("Variables of anonymous non-enum types are not supported.", node)
        t = t.with_base("int")
    else:
        r = resolver.resolve_typedefs(t, scope) if ctx.config.cplusplus else t
        enum = resolver.enum_node(r, scope)
        if r.is_enum or enum is not None:
            known = resolver.names.enum_type_name(enum) if enum is not None else None
            t = r.with_base(known or "int")
        elif ctx.config.cplusplus:
            if r.is_reference or not r.is_builtin:
                return None
            t = r
        if t.base == "bool":
            resolver.include_stdbool()

    if t.is_array:
        u = t._unqualified()
        t = CppType(u.base, ("a()",) + u.decls[1:])
    return t.to_spelling(name)


def emit_global_variable(ctx: EmissionContext, node: Node) -> bool:
    """
    Export a global variable directly when possible. Returns False when
    accessor functions are needed instead.
    """
    if node.is_static:
        return True
    if ctx.config.global_prefix is None and not node.namespace_name:
        decl = c_var_decl(ctx, node)
        if decl is not None:
            ctx.sections.decls.append("SWIGIMPORT %s;\n\n" % decl)
            ctx.record_symbol("variable", node.name.split("::")[-1], node)
            return True
    return False


# --------------------------
# Plain C structs
# --------------------------

def emit_c_struct(ctx: EmissionContext, cls: Node) -> None:
    """Define a C struct in the header, members as they are declared."""
    name = ctx.names.proxy_name(cls)
    tdname = cls.attr("tdname")
    members: List[str] = []
    for child in cls.children:
        if child.is_ignored:
            continue
        if child.kind == NodeKind.VARIABLE:
            try:
                decl = c_var_decl(ctx, child)
            except EmissionError as e:
                ctx.diagnostics.error(e.node or child, e.message)
                continue
            if decl is not None:
                members.append("%s%s;\n" % (CINDENT, decl))
        elif child.kind == NodeKind.FUNCTION:
            spelled = child.type.to_spelling(child.name) if child.type is not None else child.name
            ctx.diagnostics.warning(child, "Extending C struct with %s is not currently supported, ignored." % spelled)
        elif child.kind == NodeKind.ENUM:
            emit_enum(ctx, child)

    head = "typedef struct {\n" if tdname else "struct %s {\n" % name
    tail = "} %s;\n\n" % tdname if tdname else "};\n\n"
    ctx.sections.types.append(head + "".join(members) + tail)


__all__ = [
    "c_var_decl",
    "emit_c_struct",
    "emit_constant",
    "emit_enum",
    "emit_global_variable",
    "enum_value",
]
