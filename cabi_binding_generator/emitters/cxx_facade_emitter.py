#!/usr/bin/env python3
"""
Header-only C++ facade over the C ABI.

Every wrapped class gets a C++ class of the same name holding the opaque
pointer returned by the C functions and a flag telling whether it owns it:

    class Circle : public Shape {
    public:
      Circle(double r);
      virtual double area() const;
      ...
      explicit Circle(SwigObj_Circle* swig_self, bool swig_owns_self = true) noexcept : ...
      Circle(Circle const&) = delete;
      Circle& operator=(Circle const&) = delete;
      Circle(Circle&& obj) = default;
      Circle& operator=(Circle&& obj) = default;
      SwigObj_Circle* swig_self() const noexcept { ... }
    };

Members forward to the C functions, converting facade objects to opaque
pointers and back (see `TypeResolver.cxx_parm()` / `cxx_return()`), and check
for a pending C++ exception after each call unless the member can't throw.

Classes with more than one usable base get no facade at all; their C
functions are still emitted.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..models import FunctionRole, Node
from ..type_mapping import TypeRendering
from ..utils import CINDENT
from .c_wrapper_emitter import EmittedWrapper
from .context import EmissionContext, ExceptionsSupport

logger = logging.getLogger(__name__)

EXCEPTION_CLASS = "SWIG_CException"

_SWIG_CHECK = (
    "inline void swig_check() {{\n"
    "{i}if (SWIG_CException* swig_ex = SWIG_CException::get_pending()) {{\n"
    "{i}{i}SWIG_CException swig_ex_copy{{*swig_ex}};\n"
    "{i}{i}SWIG_CException::reset_pending();\n"
    "{i}{i}throw swig_ex_copy;\n"
    "{i}}}\n"
    "}}\n\n"
    "template <typename T> T swig_check(T x) {{\n"
    "{i}swig_check();\n"
    "{i}return x;\n"
    "}}\n\n"
)


def _declare(type_: str, name: str) -> str:
    if type_.endswith(" *") or type_.endswith(" &"):
        return type_ + name
    return "%s %s" % (type_, name)


class CxxFacadeEmitter:
    """
    Module level state of the facade: whether it is generated at all and
    the text put around calls to check for exceptions.
    """

    def __init__(self, ctx: EmissionContext) -> None:
        self.ctx = ctx
        self.enabled = ctx.config.cxx_wrappers and ctx.config.cplusplus
        self.except_check_start = ""
        self.except_check_end = ""

    def initialize_exceptions(self, support: ExceptionsSupport) -> None:
        if not self.enabled:
            return
        if support == ExceptionsSupport.ENABLED:
            # Imported modules already define these.
            self.ctx.sections.cxx_impls.append(_SWIG_CHECK.format(i=CINDENT))
        if support in (ExceptionsSupport.ENABLED, ExceptionsSupport.IMPORTED):
            self.except_check_start = "swig_check("
            self.except_check_end = ")"
        else:
            self.except_check_start = self.except_check_end = ""

    def open_class(self, cls: Node) -> CxxClassWrapper:
        return CxxClassWrapper(self, cls)


class CxxClassWrapper:
    """
    Facade of one class, from its opening to `close()`. When disabled (no
    facade, or multiple inheritance) every call is a no-op.
    """

    def __init__(self, facade: CxxFacadeEmitter, cls: Node) -> None:
        self.facade = facade
        self.ctx = facade.ctx
        self.cls = cls
        self.enabled = False
        self.first_base: Optional[Node] = None
        self.has_copy_ctor = False

        if not facade.enabled:
            return

        bases = self.ctx.flattener.usable_bases(cls)
        if len(bases) > 1:
            self.ctx.diagnostics.warning(
                cls,
                "Multiple inheritance not supported yet, skipping C++ wrapper generation for %s" % self.classname,
            )
            return
        self.first_base = bases[0] if bases else None

        base_clause = ""
        if self.first_base is not None:
            base_clause = " : public %s" % self._sym(self.first_base)
        self.ctx.sections.cxx_types.append("class %s;\n" % self.classname)
        self.ctx.sections.cxx_decls.append("class %s%s {\npublic:\n" % (self.classname, base_clause))
        self.enabled = True

    @staticmethod
    def _sym(node: Node) -> str:
        return node.sym_name or node.name

    @property
    def classname(self) -> str:
        return self._sym(self.cls)

    @property
    def indent(self) -> str:
        return CINDENT

    # ---- Members ----

    def _except_check(self, emitted: EmittedWrapper):
        spec = emitted.spec
        if spec.cannot_throw or self.cls.name == EXCEPTION_CLASS:
            return "", ""
        return self.facade.except_check_start, self.facade.except_check_end

    def emit_member(self, emitted: EmittedWrapper) -> None:
        """
        Declare and implement the facade member forwarding to `emitted`.
        """
        if not self.enabled:
            return
        spec = emitted.spec
        node = spec.node
        # Inherited members come from the base facade.
        if spec.inherited_from is not None or node.storage == "friend":
            return

        resolver = self.ctx.resolver
        scope = node.scope_name
        decls = self.ctx.sections.cxx_decls
        impls = self.ctx.sections.cxx_impls
        i = self.indent
        cn = self.classname
        wname = emitted.name
        name = node.name.split("::")[-1]

        rtype = TypeRendering("void")
        if not spec.return_type.is_void:
            rtype = resolver.cxx_return(spec.return_type, scope)

        parms_cxx: List[str] = []
        parms_call: List[str] = []
        for inp in emitted.inputs:
            ptype = resolver.cxx_parm(inp.parm.type, scope)
            parms_cxx.append(_declare(ptype.type, inp.name))
            parms_call.append(ptype.wrap(inp.name))
        pcxx = ", ".join(parms_cxx)
        pcall = ", ".join(parms_call)

        ecs, ece = self._except_check(emitted)
        role = spec.role
        virtual = "virtual " if node.is_virtual else ""
        const = " const" if spec.is_const else ""

        if role == FunctionRole.MEMBER_GET:
            decls.append(
                "%s%s() const { return %s; }\n" % (i, _declare(rtype.type, name), rtype.wrap("%s(swig_self())" % wname))
            )
        elif role == FunctionRole.MEMBER_SET:
            decls.append("%svoid %s(%s) { %s(swig_self(), %s); }\n" % (i, name, pcxx, wname, pcall))
        elif role == FunctionRole.STATIC_GET:
            decls.append("%sstatic %s() { return %s; }\n" % (i, _declare(rtype.type, name), rtype.wrap("%s()" % wname)))
        elif role == FunctionRole.STATIC_SET:
            decls.append("%sstatic void %s(%s) { %s(%s); }\n" % (i, name, pcxx, wname, pcall))
        elif role in (FunctionRole.CONSTRUCTOR, FunctionRole.COPY_CONSTRUCTOR):
            decls.append("%s%s(%s);\n" % (i, cn, pcxx))
            impls.append(
                "inline %s::%s(%s) : %s{%s%s(%s)%s} {}\n" % (cn, cn, pcxx, cn, ecs, wname, pcall, ece)
            )
            if role == FunctionRole.COPY_CONSTRUCTOR:
                self.has_copy_ctor = True
        elif role == FunctionRole.DESTRUCTOR:
            if self.first_base is not None:
                decls.append(
                    "%s%s~%s() {\n"
                    "%s%sif (swig_owns_self_) {\n"
                    "%s%s%s%s(swig_self());\n"
                    "%s%s%sswig_owns_self_ = false;\n"
                    "%s%s}\n"
                    "%s}\n" % (i, virtual, cn, i, i, i, i, i, wname, i, i, i, i, i, i)
                )
            else:
                decls.append(
                    "%s%s~%s() {\n"
                    "%s%sif (swig_owns_self_)\n"
                    "%s%s%s%s(swig_self_);\n"
                    "%s}\n" % (i, virtual, cn, i, i, i, i, i, wname, i)
                )
        elif role in (FunctionRole.METHOD, FunctionRole.STATIC_METHOD):
            is_static = role == FunctionRole.STATIC_METHOD
            wparms = [] if is_static else ["swig_self()"]
            if pcall:
                wparms.append(pcall)
            call = "%s(%s)" % (wname, ", ".join(wparms))

            decls.append(
                "%s%s%s(%s)%s;\n" % (i, "static " if is_static else virtual, _declare(rtype.type, name), pcxx, const)
            )
            if rtype.is_void:
                body = call
                if ecs:
                    body += "; %s%s" % (ecs, ece)
            else:
                body = "return %s" % rtype.wrap("%s%s%s" % (ecs, call, ece))
            impls.append(
                "inline %s%s::%s(%s)%s { %s; }\n" % (_declare(rtype.type, ""), cn, name, pcxx, const, body)
            )
        else:
            self.ctx.diagnostics.warning(node, "Not generating C++ wrappers for %s" % spec.sym_name)

    # ---- Closing ----

    def close(self) -> None:
        """
        Finish the class: constructor from the C pointer, copy and move
        policy, and the pointer accessor.
        """
        if not self.enabled:
            return
        names = self.ctx.names
        decls = self.ctx.sections.cxx_decls
        i = self.indent
        cn = self.classname
        ptr = names.c_class_ptr(self.cls)
        base = self.first_base

        text = "\n%sexplicit %s(%s swig_self, bool swig_owns_self = true) noexcept : " % (i, cn, ptr)
        if base is not None:
            text += "%s{(%s)swig_self, swig_owns_self}" % (self._sym(base), names.c_class_ptr(base))
        else:
            text += "swig_self_{swig_self}, swig_owns_self_{swig_owns_self}"
        text += " {}\n"

        if not self.has_copy_ctor:
            text += "%s%s(%s const&) = delete;\n" % (i, cn, cn)
        text += "%s%s& operator=(%s const&) = delete;\n" % (i, cn, cn)

        if base is not None:
            text += "%s%s(%s&& obj) = default;\n" % (i, cn, cn)
            text += "%s%s& operator=(%s&& obj) = default;\n" % (i, cn, cn)
        else:
            text += (
                "%s%s(%s&& obj) noexcept : swig_self_{obj.swig_self_}, swig_owns_self_{obj.swig_owns_self_} "
                "{ obj.swig_owns_self_ = false; }\n" % (i, cn, cn)
            )
            text += (
                "%s%s& operator=(%s&& obj) noexcept { swig_self_ = obj.swig_self_; "
                "swig_owns_self_ = obj.swig_owns_self_; obj.swig_owns_self_ = false; return *this; }\n" % (i, cn, cn)
            )

        text += "%s%s swig_self() const noexcept " % (i, ptr)
        if base is not None:
            text += "{ return (%s)%s::swig_self(); }\n" % (ptr, self._sym(base))
        else:
            text += "{ return swig_self_; }\n"
            text += "%s%s swig_self_;\n" % (i, ptr)
            text += "%sbool swig_owns_self_;\n" % i

        text += "};\n\n"
        decls.append(text)
        self.enabled = False


__all__ = [
    "CxxClassWrapper",
    "CxxFacadeEmitter",
    "EXCEPTION_CLASS",
]
