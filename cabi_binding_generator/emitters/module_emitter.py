#!/usr/bin/env python3
"""
Module emitter: drives the generation of the C ABI for one module.

The declaration tree is traversed once, top-down. Every declaration is handed
to the emitter in charge of it (C wrappers, enums and constants, the C++
facade), which appends text to the ordered output sections. After the
traversal the sections are assembled into the two artifacts with Jinja2:

- <module>_wrap.h    (c_header.h.j2): opaque types, prototypes, constants,
                     enums and, for C++ compilers only, the facade classes
- <module>_wrap.cxx  (c_source.j2): the wrapper definitions and the runtime

A failure to wrap one declaration (`EmissionError`) is recorded as an error
diagnostic and only that declaration is dropped.

Usage:
    emitter = ModuleEmitter(GeneratorConfig(module="gfx"))
    result = emitter.generate(module_node)   # in memory
    emitter.emit(module_node, ctx)           # and written to ctx.output_dir
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..diagnostics import DiagnosticLog, EmissionError
from ..inheritance import InheritanceFlattener, ShadowMember
from ..models import (
    CppType,
    FunctionRole,
    FunctionSpec,
    GenerationContext,
    GeneratorConfig,
    Node,
    NodeKind,
    Parm,
)
from ..naming import NameCache, NamePolicy
from ..type_mapping import SymbolTable, TypeResolver
from ..typemaps import TypemapTable
from ..utils import TemplateRenderer, ensure_dir, include_guard_name, write_text
from .c_wrapper_emitter import CWrapperEmitter
from .context import EmissionContext, ExceptionsSupport, OutputSections
from .cxx_facade_emitter import EXCEPTION_CLASS, CxxClassWrapper, CxxFacadeEmitter
from .enum_emitter import emit_c_struct, emit_constant, emit_enum, emit_global_variable

logger = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_]\w*$")


# --------------------------
# Configuration and results
# --------------------------

@dataclass(frozen=True)
class EmitterConfig:
    """
    Template names, looked up in the user templates directory first and then
    in the package templates (see utils.TemplateRenderer).
    """
    header_template: str = "c_header.h.j2"
    source_template: str = "c_source.j2"


@dataclass
class GeneratedModule:
    config: GeneratorConfig
    header: str
    source: str
    symbols: List[Dict] = field(default_factory=list)
    diagnostics: DiagnosticLog = field(default_factory=DiagnosticLog)

    @property
    def has_errors(self) -> bool:
        return self.diagnostics.has_errors

    def to_dict(self) -> Dict:
        return {
            "config": self.config.to_dict(),
            "header": self.config.output_header,
            "source": self.config.output_source,
            "symbols": list(self.symbols),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# --------------------------
# Helpers
# --------------------------

def find_first_named_import(node: Node) -> Optional[Node]:
    """
    First import of a named module directly under `node` or under its
    (possibly nested) include nodes.
    """
    for child in node.children:
        if child.kind == NodeKind.IMPORT and (child.attr("module") or child.name):
            return child
        if child.kind == NodeKind.INCLUDE:
            found = find_first_named_import(child)
            if found is not None:
                return found
    return None


def import_header_name(config: GeneratorConfig, module: str) -> str:
    """
    Header generated for the imported `module`: the configured one, else this
    module's header name with this module's name replaced by the other one.
    """
    explicit = dict(config.import_headers)
    if module in explicit:
        return explicit[module]
    return config.output_header.replace(config.module, module, 1)


def build_exception_class(module: Node) -> Node:
    """
    Declaration of the runtime class carrying C++ exceptions across the C
    ABI. Every member is noexcept so that it's never checked itself.
    """
    cls = Node(kind=NodeKind.CLASS, name=EXCEPTION_CLASS, file="<runtime>")
    cls.parent = module
    t = CppType.from_spelling
    cls.add_child(
        Node(
            kind=NodeKind.CONSTRUCTOR,
            name=EXCEPTION_CLASS,
            parms=[Parm("ex", t("const %s &" % EXCEPTION_CLASS))],
            noexcept=True,
            attrs={"copy_constructor": True},
        )
    )
    cls.add_child(Node(kind=NodeKind.DESTRUCTOR, name="~" + EXCEPTION_CLASS, noexcept=True))
    cls.add_child(Node(kind=NodeKind.VARIABLE, name="code", type=t("int"), noexcept=True, features={"immutable": True}))
    cls.add_child(
        Node(kind=NodeKind.VARIABLE, name="msg", type=t("const char *"), noexcept=True, features={"immutable": True})
    )
    cls.add_child(
        Node(kind=NodeKind.FUNCTION, name="get_pending", type=t("%s *" % EXCEPTION_CLASS), storage="static", noexcept=True)
    )
    cls.add_child(Node(kind=NodeKind.FUNCTION, name="reset_pending", type=t("void"), storage="static", noexcept=True))
    return cls


def _has_setter(node: Node) -> bool:
    t = node.type
    if t is None or node.feature("immutable"):
        return False
    return not (t.is_const or t.is_array or t.is_reference)


def _same_parms(a: FunctionSpec, b: FunctionSpec) -> bool:
    return [p.type for p in a.parms] == [p.type for p in b.parms]


# --------------------------
# Emitter
# --------------------------

class ModuleEmitter:
    def __init__(
        self,
        config: GeneratorConfig,
        renderer: Optional[TemplateRenderer] = None,
        emitter_config: Optional[EmitterConfig] = None,
        typemaps: Optional[TypemapTable] = None,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.emitter_config = emitter_config or EmitterConfig()
        self.typemaps = typemaps if typemaps is not None else TypemapTable()

    # ---- Public API ----

    def generate(self, module: Node) -> GeneratedModule:
        """
        Generate both artifacts in memory. Every call starts from scratch, so
        generating the same tree twice gives identical text.
        """
        run = _ModuleRun(self.config, module, self.typemaps)
        run.run()
        ctx = run.ctx
        renderer = self.renderer or TemplateRenderer()
        tctx = self._template_context(ctx)
        try:
            header = renderer.render(self.emitter_config.header_template, tctx)
            source = renderer.render(self.emitter_config.source_template, tctx)
        except Exception:
            logger.exception("Failed to render templates for module %s", self.config.module)
            raise

        diags = ctx.diagnostics
        logger.info(
            "Module %s: %d symbols, %d warnings, %d errors",
            self.config.module,
            len(ctx.symbols_emitted),
            len(diags.warnings),
            len(diags.errors),
        )
        return GeneratedModule(self.config, header, source, list(ctx.symbols_emitted), diags)

    def emit(self, module: Node, gen: GenerationContext) -> GeneratedModule:
        """Generate and write `<module>_wrap.h` and the implementation unit."""
        result = self.generate(module)
        if not gen.dry_run:
            ensure_dir(gen.output_dir)
        try:
            write_text(gen.header_path, result.header, dry_run=gen.dry_run)
            write_text(gen.source_path, result.source, dry_run=gen.dry_run)
        except Exception:
            logger.exception("Failed to write generated files to %s", gen.output_dir)
            raise
        return result

    # ---- Internals ----

    def _template_context(self, ctx: EmissionContext) -> Dict:
        config = self.config
        namespaces = [n for n in config.cxx_namespace.split("::") if n]
        return {
            "module": config.module,
            "header_name": config.output_header,
            "guard": include_guard_name(config.module),
            "cplusplus": config.cplusplus,
            "cxx_wrappers": config.cxx_wrappers and config.cplusplus,
            "namespaces": namespaces,
            "exceptions_runtime": ctx.exceptions != ExceptionsSupport.DISABLED,
            "exceptions_defined": ctx.exceptions == ExceptionsSupport.ENABLED,
            "sections": ctx.sections.to_dict(),
        }


class _ModuleRun:
    """One traversal of a module tree, with its own context and caches."""

    def __init__(self, config: GeneratorConfig, module: Node, typemaps: TypemapTable) -> None:
        self.module = module
        sections = OutputSections()
        names = NamePolicy(config, NameCache())
        symbols = SymbolTable.from_tree(module)
        self.ctx = EmissionContext(
            config=config,
            sections=sections,
            names=names,
            symbols=symbols,
            resolver=TypeResolver(symbols, names, sections.types, cplusplus=config.cplusplus),
            typemaps=typemaps,
            diagnostics=DiagnosticLog(),
            flattener=InheritanceFlattener(symbols),
        )
        self.cwrapper = CWrapperEmitter(self.ctx)
        self.facade = CxxFacadeEmitter(self.ctx)
        self.exception_class: Optional[Node] = None
        self._free_groups: Dict[Tuple[int, str], int] = {}

    # ---- Setup ----

    def _setup_exceptions(self) -> None:
        ctx = self.ctx
        config = ctx.config
        if not (config.exceptions and config.cplusplus):
            ctx.exceptions = ExceptionsSupport.DISABLED
        else:
            imported = find_first_named_import(self.module)
            if imported is not None:
                ctx.exceptions = ExceptionsSupport.IMPORTED
                prefix = imported.attr("module") or imported.name
            else:
                ctx.exceptions = ExceptionsSupport.ENABLED
                prefix = config.global_prefix or config.module
            ctx.sections.runtime.append("#define SWIG_CException_Raise %s_SWIG_CException_Raise\n" % prefix)
            if ctx.exceptions == ExceptionsSupport.IMPORTED:
                ctx.sections.runtime.append("#define SWIG_CException_DEFINED 1\n")
        self.facade.initialize_exceptions(ctx.exceptions)

        if ctx.exceptions == ExceptionsSupport.ENABLED:
            self.exception_class = build_exception_class(self.module)
            ctx.synthesized.append(self.exception_class)
            ctx.symbols.register(self.exception_class)

    def _count_free_overloads(self, node: Node) -> None:
        for child in node.children:
            if child.kind == NodeKind.FUNCTION and not child.is_ignored:
                scope = child.scope
                key = (id(scope) if scope is not None else 0, child.sym_name or "")
                self._free_groups[key] = self._free_groups.get(key, 0) + 1
            elif child.kind in (NodeKind.INCLUDE, NodeKind.NAMESPACE):
                self._count_free_overloads(child)

    def run(self) -> None:
        self._setup_exceptions()
        self._count_free_overloads(self.module)
        if self.exception_class is not None:
            self._guarded(self.exception_class, self._emit_class)
        self._emit_children(self.module)

    # ---- Traversal ----

    def _guarded(self, node: Node, fn, *args) -> None:
        try:
            fn(node, *args)
        except EmissionError as e:
            self.ctx.diagnostics.error(e.node or node, e.message)

    def _emit_children(self, node: Node) -> None:
        for child in node.children:
            if child.is_ignored:
                continue
            kind = child.kind
            if kind in (NodeKind.INCLUDE, NodeKind.NAMESPACE):
                self._emit_children(child)
            elif kind == NodeKind.IMPORT:
                self._emit_import(child)
            elif kind == NodeKind.INSERT:
                self._emit_insert(child)
            elif kind == NodeKind.CLASS:
                self._guarded(child, self._emit_class)
            elif kind == NodeKind.FUNCTION:
                self._guarded(child, self._emit_free_function)
            elif kind == NodeKind.VARIABLE:
                self._guarded(child, self._emit_global_variable)
            elif kind == NodeKind.ENUM:
                self._guarded(child, emit_enum_node, self.ctx)
            elif kind == NodeKind.CONSTANT:
                self._guarded(child, emit_constant_node, self.ctx)
            elif kind == NodeKind.TYPEDEF:
                continue
            else:
                self.ctx.diagnostics.warning(child, "Unsupported declaration %s ignored" % kind.name.lower())

    def _emit_import(self, node: Node) -> None:
        module = node.attr("module") or node.name
        if not module:
            return
        header = import_header_name(self.ctx.config, module)
        self.ctx.sections.cheader.append('#include "%s"\n' % header)

    def _emit_insert(self, node: Node) -> None:
        section = node.attr("section") or "header"
        code = node.attr("code") or ""
        try:
            target = self.ctx.sections.by_name(section)
        except KeyError:
            self.ctx.diagnostics.warning(node, "Unknown section %s, code ignored" % section)
            return
        target.append(code if code.endswith("\n") else code + "\n")

    def _wrap(self, spec: FunctionSpec, cxx_class: Optional[CxxClassWrapper] = None) -> None:
        if not _IDENT_RE.match(spec.sym_name or ""):
            self.ctx.diagnostics.warning(spec.node, "Invalid symbol name %r, %s not wrapped" % (spec.sym_name, spec.node.name))
            return
        emitted = self.cwrapper.emit(spec)
        if emitted is not None and cxx_class is not None:
            cxx_class.emit_member(emitted)

    # ---- Free declarations ----

    def _emit_free_function(self, node: Node) -> None:
        if node.storage == "friend":
            return
        scope = node.scope
        count = self._free_groups.get((id(scope) if scope is not None else 0, node.sym_name or ""), 1)
        spec = FunctionSpec(
            node=node,
            role=FunctionRole.FUNCTION,
            sym_name=node.sym_name or node.name,
            return_type=node.type or CppType.void(),
            parms=list(node.parms),
            overloaded=count > 1,
        )
        self._wrap(spec)

    def _accessor_specs(
        self,
        node: Node,
        get_role: FunctionRole,
        set_role: FunctionRole,
        owner: Optional[Node] = None,
        sym_name: Optional[str] = None,
        inherited_from: Optional[Node] = None,
        base_name: Optional[str] = None,
    ) -> List[FunctionSpec]:
        t = node.type
        if t is None:
            raise EmissionError("Variable %s has no type" % node.qualified_name, node)
        category = self.ctx.resolver.category(t, node.scope_name)
        # Object members are returned by address; the facade doesn't own them.
        if category == "class_value" and self.ctx.config.cplusplus:
            rtype = t.strip_qualifiers().with_prefix(("r",))
        elif category in ("class_value", "unknown_value"):
            rtype = t.strip_qualifiers().add_pointer()
        else:
            rtype = t
        sym = sym_name or node.sym_name or node.name
        specs = [
            FunctionSpec(
                node=node,
                role=get_role,
                sym_name=sym,
                return_type=rtype,
                owner=owner,
                inherited_from=inherited_from,
                base_name=base_name,
            )
        ]
        if _has_setter(node):
            specs.append(
                FunctionSpec(
                    node=node,
                    role=set_role,
                    sym_name=sym,
                    return_type=CppType.void(),
                    parms=[Parm("value", t)],
                    owner=owner,
                    inherited_from=inherited_from,
                    base_name=base_name,
                )
            )
        return specs

    def _emit_global_variable(self, node: Node) -> None:
        if emit_global_variable(self.ctx, node):
            return
        for spec in self._accessor_specs(node, FunctionRole.GLOBAL_GET, FunctionRole.GLOBAL_SET):
            self._wrap(spec)

    # ---- Classes ----

    def _emit_class(self, cls: Node) -> None:
        ctx = self.ctx
        if cls.name == EXCEPTION_CLASS and cls is not self.exception_class:
            # Provided by the runtime, or by an imported module.
            return
        if not ctx.config.cplusplus:
            emit_c_struct(ctx, cls)
            return
        if cls.enclosing_class is not None:
            ctx.diagnostics.warning(cls, "Nested class %s not supported, ignored" % cls.qualified_name)
            return

        proxy = ctx.names.proxy_name(cls)
        ctx.sections.types.append("typedef struct SwigObj_%s %s;\n\n" % (proxy, proxy))
        ctx.record_symbol("type", proxy, cls)

        wrapper = self.facade.open_class(cls)
        abstract = ctx.flattener.is_abstract(cls)
        specs = self._class_specs(cls, abstract)

        for item in self._class_items(cls, specs):
            if isinstance(item, FunctionSpec):
                try:
                    self._wrap(item, wrapper)
                except EmissionError as e:
                    ctx.diagnostics.error(e.node or item.node, e.message)
            elif item.kind == NodeKind.ENUM:
                self._guarded(item, emit_enum_node, ctx, wrapper)
            elif item.kind == NodeKind.CONSTANT:
                self._guarded(item, emit_constant_node, ctx)

        wrapper.close()

    def _class_specs(self, cls: Node, abstract: bool) -> Dict[int, List[FunctionSpec]]:
        """
        Function specs of the class members, keyed by node identity, with
        the overload flags computed over the whole class.
        """
        out: Dict[int, List[FunctionSpec]] = {}
        ctors: List[FunctionSpec] = []
        methods: Dict[str, List[FunctionSpec]] = {}
        ptr_type = CppType(cls.qualified_name, ("p",))

        for child in cls.children:
            if child.is_ignored or not child.is_public:
                continue
            if child.kind == NodeKind.CONSTRUCTOR:
                if abstract:
                    continue
                role = FunctionRole.COPY_CONSTRUCTOR if child.attr("copy_constructor") else FunctionRole.CONSTRUCTOR
                spec = FunctionSpec(child, role, cls.sym_name or cls.name, ptr_type, list(child.parms), owner=cls)
                ctors.append(spec)
                out[id(child)] = [spec]
            elif child.kind == NodeKind.DESTRUCTOR:
                out[id(child)] = [FunctionSpec(child, FunctionRole.DESTRUCTOR, cls.sym_name or cls.name, CppType.void(), owner=cls)]
            elif child.kind == NodeKind.FUNCTION and child.storage != "friend":
                role = FunctionRole.STATIC_METHOD if child.is_static else FunctionRole.METHOD
                spec = FunctionSpec(
                    child, role, child.sym_name or child.name, child.type or CppType.void(), list(child.parms), owner=cls
                )
                methods.setdefault(spec.sym_name, []).append(spec)
                out[id(child)] = [spec]
            elif child.kind == NodeKind.VARIABLE:
                if child.is_static:
                    out[id(child)] = self._accessor_specs(child, FunctionRole.STATIC_GET, FunctionRole.STATIC_SET, owner=cls)
                else:
                    out[id(child)] = self._accessor_specs(child, FunctionRole.MEMBER_GET, FunctionRole.MEMBER_SET, owner=cls)

        shadows: List[FunctionSpec] = []
        for m in self.ctx.flattener.flatten(cls):
            shadows.extend(self._shadow_specs(cls, m))
        for spec in shadows:
            if spec.role == FunctionRole.METHOD:
                methods.setdefault(spec.sym_name, []).append(spec)
        out[id(cls)] = shadows

        for spec in ctors:
            spec.overloaded = len(ctors) > 1 or bool(spec.node.feature("extend"))
        for group in methods.values():
            if len(group) < 2:
                continue
            for spec in group:
                spec.overloaded = True
                if spec.node.is_const:
                    spec.const_overloaded = any(
                        o is not spec and not o.node.is_const and _same_parms(o, spec) for o in group
                    )
        return out

    def _shadow_specs(self, cls: Node, m: ShadowMember) -> List[FunctionSpec]:
        node = m.node
        if node.kind == NodeKind.VARIABLE:
            return self._accessor_specs(
                node,
                FunctionRole.MEMBER_GET,
                FunctionRole.MEMBER_SET,
                owner=cls,
                sym_name=m.sym_name,
                inherited_from=m.origin,
                base_name=m.base_name,
            )
        return [
            FunctionSpec(
                node=node,
                role=FunctionRole.METHOD,
                sym_name=m.sym_name,
                return_type=node.type or CppType.void(),
                parms=list(node.parms),
                owner=cls,
                inherited_from=m.origin,
                base_name=m.base_name,
            )
        ]

    def _class_items(self, cls: Node, specs: Dict[int, List[FunctionSpec]]) -> List:
        """
        Members in emission order: own members as declared, inherited
        members, then the implicit default constructor and destructor.
        """
        ctx = self.ctx
        items: List = []
        for child in cls.children:
            if child.is_ignored:
                continue
            if id(child) in specs:
                items.extend(specs[id(child)])
            elif child.kind in (NodeKind.ENUM, NodeKind.CONSTANT):
                items.append(child)
            elif child.kind == NodeKind.CLASS:
                ctx.diagnostics.warning(child, "Nested class %s not supported, ignored" % child.qualified_name)
            elif child.kind in (NodeKind.NAMESPACE, NodeKind.IMPORT, NodeKind.INCLUDE, NodeKind.INSERT):
                ctx.diagnostics.warning(child, "Unsupported member %s of %s ignored" % (child.kind.name.lower(), cls.name))
        items.extend(specs.get(id(cls), []))

        has_ctor = any(c.kind == NodeKind.CONSTRUCTOR for c in cls.children)
        has_dtor = any(c.kind == NodeKind.DESTRUCTOR for c in cls.children)
        short = cls.name.split("::")[-1]
        if not has_ctor and not cls.feature("nodefaultctor") and not ctx.flattener.is_abstract(cls):
            ctor = Node(kind=NodeKind.CONSTRUCTOR, name=short, file=cls.file, line=cls.line)
            ctor.parent = cls
            ctx.synthesized.append(ctor)
            items.append(
                FunctionSpec(ctor, FunctionRole.CONSTRUCTOR, cls.sym_name or short, CppType(cls.qualified_name, ("p",)), owner=cls, synthesized=True)
            )
        if not has_dtor and not cls.feature("nodefaultdtor"):
            dtor = Node(kind=NodeKind.DESTRUCTOR, name="~" + short, noexcept=True, file=cls.file, line=cls.line)
            dtor.parent = cls
            ctx.synthesized.append(dtor)
            items.append(
                FunctionSpec(dtor, FunctionRole.DESTRUCTOR, cls.sym_name or short, CppType.void(), owner=cls, synthesized=True)
            )
        return items


def emit_enum_node(node: Node, ctx: EmissionContext, cxx_class: Optional[CxxClassWrapper] = None) -> None:
    emit_enum(ctx, node, cxx_class)


def emit_constant_node(node: Node, ctx: EmissionContext) -> None:
    emit_constant(ctx, node)


__all__ = [
    "EmitterConfig",
    "GeneratedModule",
    "ModuleEmitter",
    "build_exception_class",
    "find_first_named_import",
    "import_header_name",
]
