#!/usr/bin/env python3
"""
C wrapper emitter.

For every callable (function, method, constructor, destructor, variable
accessor) this emitter writes one flat C function into the implementation
unit and its `SWIGIMPORT` prototype into the header. A C++ wrapper goes
through these steps:

- collect the parameters, with `self` first for non-static members
- look up the "in", "check", "out" and "freearg" typemaps (see typemaps.py)
- build the call expression and wrap it in the exception handler
- convert the result and return it

Both texts use the same symbol, parameter names and parameter order; only the
types differ (`Foo *` in the header, `SwigObj *` in the implementation unit).

Usage:
    emitter = CWrapperEmitter(ctx)
    emitted = emitter.emit(spec)   # None if the wrapper was skipped
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..diagnostics import EmissionError
from ..models import CppType, FunctionRole, FunctionSpec, Parm
from ..type_mapping import TypeContext
from ..typemaps import Typemap, expand_typemap, insert_result_cast
from ..utils import indent_block, strip_braces
from .context import EmissionContext, ExceptionsSupport

logger = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_]\w*$")
_LOCAL_RE = re.compile(r"^c?arg\d+$")
_RESERVED = frozenset(
    """
    auto break case char const continue default do double else enum extern float
    for goto if inline int long register restrict return short signed sizeof
    static struct switch typedef union unsigned void volatile while bool true
    false new delete class this template typename namespace operator private
    protected public virtual friend result cppresult self
    """.split()
)

_DEFAULT_HANDLER = """try {
  $action
} catch (const std::exception& e) {
  SWIG_CException_Raise(SWIG_RuntimeError, e.what());
  return $null;
} catch (...) {
  SWIG_CException_Raise(SWIG_UnknownError, "unknown C++ exception thrown");
  return $null;
}"""

# Categories passed through a pointer local and dereferenced in the call.
_BY_VALUE_OBJECT = ("class_value", "unknown_value")


@dataclass
class WrapperInput:
    """One parameter of the C signature, `self` excluded."""
    name: str
    parm: Parm


@dataclass
class EmittedWrapper:
    name: str
    spec: FunctionSpec
    inputs: List[WrapperInput] = field(default_factory=list)


@dataclass
class _Arg:
    lname: str
    cname: str
    parm: Parm
    category: str
    local_type: CppType
    typemaps: Dict[str, Typemap]

    @property
    def numinputs(self) -> int:
        tm = self.typemaps.get("in")
        return tm.numinputs if tm is not None else 1


def _parm_names(parms: List[Parm], first_index: int) -> List[str]:
    """
    C names of the parameters: the declared name when usable, `carg<N>`
    otherwise.
    """
    used = set()
    out: List[str] = []
    for i, p in enumerate(parms):
        name = (p.name or "").split("::")[-1]
        if not name or not _IDENT_RE.match(name) or name in _RESERVED or _LOCAL_RE.match(name) or name.startswith("swig_") or name in used:
            name = "carg%d" % (first_index + i)
        used.add(name)
        out.append(name)
    return out


class CWrapperEmitter:
    def __init__(self, ctx: EmissionContext) -> None:
        self.ctx = ctx

    # ---- Public API ----

    def emit(self, spec: FunctionSpec) -> Optional[EmittedWrapper]:
        """
        Emit the wrapper of `spec`. Returns None when it was skipped with a
        warning; raises EmissionError when it can't be wrapped at all.
        """
        for p in spec.parms:
            if p.is_varargs:
                raise EmissionError("Vararg function %s not supported." % spec.node.qualified_name, spec.node)

        if self.ctx.config.cplusplus:
            return self._emit_cxx(spec)
        return self._emit_c(spec)

    # ---- C++ wrappers ----

    def _scope(self, spec: FunctionSpec) -> str:
        return spec.node.scope_name

    def _typemap(self, method: str, t: CppType, scope: str, category: str) -> Optional[Typemap]:
        resolver = self.ctx.resolver
        types = [t, resolver.resolve_typedefs(t, scope)]
        return self.ctx.typemaps.lookup(method, types, category)

    def _collect_args(self, spec: FunctionSpec, scope: str) -> Optional[List[_Arg]]:
        resolver = self.ctx.resolver
        first = 2 if spec.has_self else 1
        names = _parm_names(spec.parms, first)
        args: List[_Arg] = []
        for i, (p, cname) in enumerate(zip(spec.parms, names)):
            category = resolver.category(p.type, scope)
            q = resolver.qualified(p.type, scope)
            local_type = q.strip_qualifiers().add_pointer() if category in _BY_VALUE_OBJECT else q.ltype()
            typemaps: Dict[str, Typemap] = {}
            for method in ("in", "check", "freearg", "ctype"):
                tm = self._typemap(method, p.type, scope, category)
                if tm is not None:
                    typemaps[method] = tm
            if "in" not in typemaps:
                self.ctx.diagnostics.warning(
                    spec.node,
                    'No "in" typemap defined for the parameter "%s" of type "%s" of %s, wrapper skipped'
                    % (p.name or cname, p.type.to_spelling(), spec.sym_name),
                )
                return None
            args.append(_Arg("arg%d" % (first + i), cname, p, category, local_type, typemaps))
        return args

    def _c_type(self, t: CppType, scope: str, category: str, context: TypeContext) -> str:
        tm = self._typemap("ctype", t, scope, category)
        if tm is not None:
            q = self.ctx.resolver.qualified(t, scope)
            return expand_typemap(
                tm.code.strip(),
                {"1_ltype": q.ltype().to_spelling(), "1_type": q.to_spelling(), "1_basetype": q.base},
            )
        return self.ctx.resolver.c_type(t, scope, context)

    def _emit_cxx(self, spec: FunctionSpec) -> Optional[EmittedWrapper]:
        ctx = self.ctx
        resolver = ctx.resolver
        node = spec.node
        scope = self._scope(spec)

        args = self._collect_args(spec, scope)
        if args is None:
            return None

        rtype = spec.return_type
        is_void = rtype.is_void
        rcategory = "void" if is_void else resolver.category(rtype, scope)
        out_tm: Optional[Typemap] = None
        if not is_void:
            out_tm = self._typemap("out", rtype, scope, rcategory)
            if out_tm is None:
                ctx.diagnostics.warning(
                    node,
                    'No "out" typemap defined for the return type "%s" of %s, wrapper skipped'
                    % (rtype.to_spelling(), spec.sym_name),
                )
                return None

        codes = [resolver.mangle(p.type, scope) for p in spec.parms]
        wname = ctx.names.wrapper_name(spec, codes)
        if ctx.is_defined(wname):
            ctx.diagnostics.warning(node, "Wrapper %s already defined, %s skipped" % (wname, node.qualified_name))
            return None

        # Signatures
        impl_parms: List[str] = []
        decl_parms: List[str] = []
        if spec.has_self:
            impl_parms.append("SwigObj *self")
            decl_parms.append("%s *self" % ctx.names.proxy_name(spec.owner))
        inputs: List[WrapperInput] = []
        for a in args:
            if a.numinputs == 0:
                continue
            impl_parms.append(resolver.declare(self._c_type(a.parm.type, scope, a.category, TypeContext.IMPL), a.cname))
            decl_parms.append(resolver.declare(self._c_type(a.parm.type, scope, a.category, TypeContext.DECL), a.cname))
            inputs.append(WrapperInput(a.cname, a.parm))

        impl_rtype = "void" if is_void else self._c_type(rtype, scope, rcategory, TypeContext.IMPL)
        decl_rtype = "void" if is_void else self._c_type(rtype, scope, rcategory, TypeContext.DECL)

        # Locals and input conversions
        body: List[str] = []
        if not is_void:
            body.append("%s;" % resolver.declare(impl_rtype, "result"))
        if spec.has_self:
            self_type = CppType(spec.owner.qualified_name, ("p",))
            body.append("%s = 0;" % self_type.to_spelling("arg1"))
        for a in args:
            init = " = 0" if a.local_type.is_pointer else ""
            body.append("%s%s;" % (a.local_type.to_spelling(a.lname), init))

        result_local: Optional[CppType] = None
        if not is_void:
            qr = resolver.qualified(rtype, scope)
            if rcategory in _BY_VALUE_OBJECT:
                result_local = qr.strip_qualifiers().add_pointer()
            else:
                result_local = qr.ltype()
            init = " = 0" if result_local.is_pointer else ""
            body.append("%s%s;" % (result_local.to_spelling("cppresult"), init))

        if spec.has_self:
            body.append("arg1 = (%s) self;" % CppType(spec.owner.qualified_name, ("p",)).to_spelling())
        for a in args:
            values = self._values(a, spec)
            body.append(expand_typemap(a.typemaps["in"].code, values))

        for a in args:
            tm = a.typemaps.get("check")
            if tm is not None:
                body.append(expand_typemap(tm.code, self._values(a, spec)).replace("$name", spec.sym_name))

        prepend = node.feature("prepend")
        if prepend:
            body.append(strip_braces(prepend))

        action = self._action(spec, args, scope, result_local, rcategory)
        body.append(self._wrap_action(spec, action))

        append = node.feature("append")
        if append:
            body.append(strip_braces(append))

        if out_tm is not None:
            code = insert_result_cast(out_tm.code, impl_rtype)
            q = resolver.qualified(rtype, scope)
            body.append(
                expand_typemap(
                    code,
                    {
                        "1": "cppresult",
                        "result": "result",
                        "owner": "1" if node.feature("new") else "0",
                        "1_ltype": q.ltype().to_spelling(),
                        "1_type": q.to_spelling(),
                        "1_basetype": q.base,
                        "symname": spec.sym_name,
                    },
                )
            )

        for a in args:
            tm = a.typemaps.get("freearg")
            if tm is not None and tm.code.strip():
                values = self._values(a, spec)
                values["source"] = a.lname
                body.append(expand_typemap(tm.code, values))

        if not is_void:
            body.append("return result;")

        text = "\n".join(body)
        if is_void:
            text = text.replace("return $null;", "return;").replace("$null", "")
        else:
            text = text.replace("$null", "0")

        proto_impl = "%s(%s)" % (wname, ", ".join(impl_parms) or "void")
        proto_decl = "%s(%s)" % (wname, ", ".join(decl_parms) or "void")
        ctx.sections.wrapper.append(
            "SWIGEXPORTC %s {\n%s\n}\n\n" % (resolver.declare(impl_rtype, proto_impl), indent_block(text))
        )
        ctx.sections.decls.append("SWIGIMPORT %s;\n\n" % resolver.declare(decl_rtype, proto_decl))
        ctx.record_symbol("function", wname, node)
        logger.debug("Wrapped %s as %s", node.qualified_name, wname)
        return EmittedWrapper(wname, spec, inputs)

    def _values(self, a: _Arg, spec: FunctionSpec) -> Dict[str, str]:
        q = a.local_type
        return {
            "1": a.lname,
            "input": a.cname,
            "target": a.lname,
            "1_ltype": q.to_spelling(),
            "1_type": self.ctx.resolver.qualified(a.parm.type, self._scope(spec)).to_spelling(),
            "1_basetype": q.base,
            "symname": spec.sym_name,
        }

    # ---- Call expression ----

    def _call_args(self, args: List[_Arg]) -> str:
        out: List[str] = []
        for a in args:
            t = a.parm.type
            if t.is_rvalue_reference:
                out.append("std::move(*%s)" % a.lname)
            elif t.is_reference or a.category in _BY_VALUE_OBJECT:
                out.append("*%s" % a.lname)
            else:
                out.append(a.lname)
        return ", ".join(out)

    def _self_expr(self, spec: FunctionSpec) -> str:
        if spec.inherited_from is not None:
            return "((%s *)arg1)->" % spec.inherited_from.qualified_name
        return "(arg1)->"

    def _action(
        self,
        spec: FunctionSpec,
        args: List[_Arg],
        scope: str,
        result_local: Optional[CppType],
        rcategory: str,
    ) -> str:
        role = spec.role
        node = spec.node
        call_args = self._call_args(args)
        owner_name = spec.owner.qualified_name if spec.owner is not None else ""

        if role in (FunctionRole.CONSTRUCTOR, FunctionRole.COPY_CONSTRUCTOR):
            return "cppresult = (%s) new %s(%s);" % (result_local.to_spelling(), owner_name, call_args)
        if role == FunctionRole.DESTRUCTOR:
            return "delete arg1;"

        if role == FunctionRole.METHOD:
            call = "%s%s(%s)" % (self._self_expr(spec), spec.call_name, call_args)
        elif role == FunctionRole.STATIC_METHOD:
            call = "%s::%s(%s)" % (owner_name, spec.call_name, call_args)
        elif role == FunctionRole.FUNCTION:
            call = "%s(%s)" % (node.qualified_name, call_args)
        elif role in (FunctionRole.MEMBER_GET, FunctionRole.MEMBER_SET):
            call = "%s%s" % (self._self_expr(spec), spec.call_name)
        elif role in (FunctionRole.STATIC_GET, FunctionRole.STATIC_SET):
            call = "%s::%s" % (owner_name, spec.call_name)
        else:
            call = node.qualified_name

        if role in (FunctionRole.MEMBER_SET, FunctionRole.STATIC_SET, FunctionRole.GLOBAL_SET):
            return "%s = %s;" % (call, call_args)
        if role in (FunctionRole.MEMBER_GET, FunctionRole.STATIC_GET, FunctionRole.GLOBAL_GET):
            var_category = self.ctx.resolver.category(node.type, scope) if node.type is not None else ""
            if var_category in _BY_VALUE_OBJECT:
                return "cppresult = (%s) &(%s);" % (result_local.to_spelling(), call)

        if result_local is None:
            return "%s;" % call
        if rcategory in _BY_VALUE_OBJECT:
            return "cppresult = new %s(%s);" % (result_local.pop().to_spelling(), call)
        if spec.return_type.is_reference:
            return "cppresult = (%s) &(%s);" % (result_local.to_spelling(), call)
        return "cppresult = (%s) %s;" % (result_local.to_spelling(), call)

    def _wrap_action(self, spec: FunctionSpec, action: str) -> str:
        handler = spec.node.feature("except")
        if handler:
            return strip_braces(handler).replace("$action", action)
        if self.ctx.exceptions == ExceptionsSupport.DISABLED or spec.cannot_throw:
            return action
        return _DEFAULT_HANDLER.replace("$action", action)

    # ---- Plain C wrappers ----

    def _emit_c(self, spec: FunctionSpec) -> Optional[EmittedWrapper]:
        """
        Wrap a C function: no typemaps, the wrapper calls the original
        directly with its own types.
        """
        ctx = self.ctx
        node = spec.node
        wname = ctx.names.wrapper_name(spec)
        if ctx.is_defined(wname):
            ctx.diagnostics.warning(node, "Wrapper %s already defined, %s skipped" % (wname, node.qualified_name))
            return None

        names = _parm_names(spec.parms, 1)
        rtype = spec.return_type
        is_void = rtype.is_void
        rspelled = rtype.to_spelling()
        proto = ", ".join(p.type.to_spelling(n) for p, n in zip(spec.parms, names)) or "void"
        for p in spec.parms:
            if p.type.base == "bool" or rtype.base == "bool":
                ctx.resolver.include_stdbool()

        body: List[str] = []
        for p, n in zip(spec.parms, names):
            tm = self._typemap("check", p.type, self._scope(spec), "")
            if tm is not None:
                body.append(tm.code.replace("$target", n).replace("$name", spec.sym_name))
        prepend = node.feature("prepend")
        if prepend:
            body.append(strip_braces(prepend))
        if spec.role == FunctionRole.GLOBAL_GET:
            by_address = rtype.is_pointer and node.type is not None and not node.type.is_pointer
            call = "%s%s;" % ("&" if by_address else "", node.name)
        elif spec.role == FunctionRole.GLOBAL_SET:
            call = "%s = %s;" % (node.name, names[0])
        else:
            call = "%s(%s);" % (node.name, ", ".join(names))
        if is_void:
            body.append(call)
        else:
            body.append("%s;" % rtype.to_spelling("result"))
            body.append("result = %s" % call)
        append = node.feature("append")
        if append:
            body.append(strip_braces(append))
        if not is_void:
            body.append("return result;")

        signature = rtype.to_spelling("%s(%s)" % (wname, proto)) if rtype.decls else "%s %s(%s)" % (rspelled, wname, proto)
        ctx.sections.wrapper.append("%s {\n%s\n}\n\n" % (signature, indent_block("\n".join(body))))
        ctx.sections.decls.append("SWIGIMPORT %s;\n\n" % signature)
        ctx.record_symbol("function", wname, node)
        return EmittedWrapper(wname, spec, [WrapperInput(n, p) for p, n in zip(spec.parms, names)])


__all__ = [
    "CWrapperEmitter",
    "EmittedWrapper",
    "WrapperInput",
]
