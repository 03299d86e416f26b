from builders import T, enum, klass, module
from cabi_binding_generator.models import GeneratorConfig, Node, NodeKind
from cabi_binding_generator.naming import NamePolicy
from cabi_binding_generator.type_mapping import SymbolTable, TypeContext, TypeResolver


def _resolver(mod, **config):
    sink = []
    symbols = SymbolTable.from_tree(mod)
    names = NamePolicy(GeneratorConfig(module=mod.name, **config))
    return TypeResolver(symbols, names, sink), sink


def _tree():
    return module(
        "gfx",
        klass("Widget"),
        enum("Color", "RED", "GREEN"),
        Node(kind=NodeKind.TYPEDEF, name="real", type=T("double")),
        Node(kind=NodeKind.TYPEDEF, name="WidgetRef", type=T("Widget &")),
    )


def test_type_spelling_parses_declarators():
    """Spellings are parsed into a base and an outermost-first declarator chain."""
    assert T("const char *").decls == ("p", "q(const)"), "pointer to const char"
    assert T("char * const").decls == ("q(const)", "p"), "const pointer to char"
    assert T("int [4]").is_array and T("int [4]").array_dim == "4"
    fp = T("void (*)(int, double)")
    assert fp.is_pointer and fp.pop().is_function, "function pointer"
    assert T("unsigned long long").is_builtin
    assert T("Foo &&").is_rvalue_reference


def test_ltype_decays_only_outermost_reference():
    assert T("const Foo &").ltype().to_spelling() == "Foo *"
    assert T("int [2][3]").ltype().decls == ("p", "a(3)"), "only the first array dimension decays"


def test_mangle_builtins_and_declarators():
    """Builtins use their first letter, declarators and qualifiers fold into a prefix."""
    r, _ = _resolver(_tree())
    assert r.mangle(T("int")) == "i"
    assert r.mangle(T("double")) == "d"
    assert r.mangle(T("const int &")) == "rci"
    assert r.mangle(T("int *")) == "pi"
    assert r.mangle(T("real")) == "d", "typedefs are resolved before mangling"
    assert r.mangle(T("Color")) == "eColor"
    assert r.mangle(T("Widget const *")) == "pcWidget"
    assert r.mangle(T("void (*)(int)")) == "f"
    assert r.mangle(T("int32_t")) == "int32_t"
    assert r.mangle(T("const uint8_t *")) == "pcuint8_t"


def test_categories():
    r, _ = _resolver(_tree())
    assert r.category(T("int")) == "builtin"
    assert r.category(T("const int &")) == "builtin_cref"
    assert r.category(T("Widget")) == "class_value"
    assert r.category(T("Widget *")) == "class_ptr"
    assert r.category(T("WidgetRef")) == "class_ref"
    assert r.category(T("Unknown *")) == "unknown_ptr"
    assert r.category(T("Unknown")) == "unknown_value"
    assert r.category(T("void (*)(int)")) == "funcptr"


def test_class_types_differ_between_header_and_implementation():
    r, _ = _resolver(_tree())
    assert r.c_type(T("Widget *"), "", TypeContext.DECL) == "Widget *"
    assert r.c_type(T("Widget *"), "", TypeContext.IMPL) == "SwigObj *"
    assert r.c_type(T("Color"), "", TypeContext.DECL) == "enum gfx_Color"
    assert r.c_type(T("Color"), "", TypeContext.IMPL) == "int", "enums travel as int in the implementation"


def test_unknown_types_are_declared_once():
    r, sink = _resolver(_tree())
    assert r.c_type(T("Opaque *")) == "SWIGTYPE_p_Opaque *"
    assert r.c_type(T("Opaque &")) == "SWIGTYPE_p_Opaque *"
    assert sink.count("typedef struct SWIGTYPE_p_Opaque SWIGTYPE_p_Opaque;\n\n") == 1


def test_bool_includes_stdbool_once():
    r, sink = _resolver(_tree())
    r.c_type(T("bool"))
    r.c_type(T("const bool &"))
    assert sink == ["#include <stdbool.h>\n\n"]


def test_facade_return_renderings():
    """Pointers give owning facades, references non-owning ones, values a copy."""
    r, _ = _resolver(_tree())
    ptr = r.cxx_return(T("Widget *"))
    assert ptr.type == "Widget *"
    assert ptr.wrap("f()") == "[=] { auto swig_res = f(); return swig_res ? new Widget(swig_res) : nullptr; }()"
    ref = r.cxx_return(T("Widget &"))
    assert ref.wrap("f()") == "Widget{f(), false}"
    val = r.cxx_return(T("Widget"))
    assert val.wrap("f()") == "Widget(f())"
    assert r.cxx_parm(T("Widget")).type == "Widget const&"
