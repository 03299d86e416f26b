from builders import ctor, function, generate, klass, method, module, var
from cabi_binding_generator.emitters.module_emitter import (
    ModuleEmitter,
    find_first_named_import,
    import_header_name,
)
from cabi_binding_generator.models import GeneratorConfig, Node, NodeKind


def _import(name, *children):
    return Node(kind=NodeKind.IMPORT, name=name, children=list(children))


def _include(*children):
    return Node(kind=NodeKind.INCLUDE, name="inc.i", children=list(children))


def test_header_layout():
    result = generate(module("gfx", function("add", "int", [("a", "int")])))
    h = result.header
    assert h.startswith("/* ---")
    assert "#ifndef SWIG_gfx_WRAP_H_\n#define SWIG_gfx_WRAP_H_\n" in h
    assert h.rstrip().endswith("#endif /* SWIG_gfx_WRAP_H_ */")
    assert h.index('extern "C" {') < h.index("SWIGIMPORT int gfx_add") < h.index("namespace gfx {")
    assert "#  define SWIGIMPORT extern\n" in h


def test_source_layout():
    result = generate(
        module(
            "gfx",
            Node(kind=NodeKind.INSERT, attrs={"section": "header", "code": '#include "gfx.h"'}),
            Node(kind=NodeKind.INSERT, attrs={"section": "begin", "code": "#define GFX_BUILD\n"}),
            function("add", "int", [("a", "int")]),
        )
    )
    s = result.source
    assert s.index("#define GFX_BUILD") < s.index("#define SWIGEXPORT") < s.index('#include "gfx.h"')
    assert s.index('#include "gfx.h"') < s.index('extern "C" {') < s.index("gfx_add(int a)")
    assert "#define SWIG_CException_Raise gfx_SWIG_CException_Raise\n" in s
    assert "typedef struct SwigObj SwigObj;" in s


def test_unknown_insert_section_warns():
    result = generate(module("gfx", Node(kind=NodeKind.INSERT, attrs={"section": "nowhere", "code": "x"})))
    assert any("Unknown section nowhere" in d.message for d in result.diagnostics.warnings)


def test_cheader_insert_goes_to_header():
    result = generate(module("gfx", Node(kind=NodeKind.INSERT, attrs={"section": "cheader", "code": "#include <stdint.h>"})))
    assert "#include <stdint.h>\n" in result.header


def test_generation_is_idempotent(gfx_module):
    """Generating the same tree twice gives byte-identical output."""
    emitter = ModuleEmitter(GeneratorConfig(module="gfx"))
    first = emitter.generate(gfx_module)
    second = emitter.generate(gfx_module)
    assert first.header == second.header
    assert first.source == second.source
    assert first.symbols == second.symbols
    assert len(gfx_module.children[1].children) == 2, "the tree is not modified"


def test_default_constructor_and_destructor_are_synthesized():
    result = generate(module("gfx", klass("Point", var("x", "int"))))
    assert "SWIGIMPORT Point *Point_new(void);" in result.header
    assert "SWIGIMPORT void Point_delete(Point *self);" in result.header
    assert "cppresult = (Point *) new Point();" in result.source
    assert "delete arg1;" in result.source


def test_nodefaultctor_feature():
    result = generate(module("gfx", klass("Handle", features={"nodefaultctor": True, "nodefaultdtor": True})))
    assert "Handle_new" not in result.header
    assert "Handle_delete" not in result.header


def test_overloaded_constructors_are_mangled():
    result = generate(module("gfx", klass("Vec", ctor("Vec"), ctor("Vec", [("x", "double"), ("y", "double")]))))
    assert "SWIGIMPORT Vec *Vec_new(void);" in result.header
    assert "SWIGIMPORT Vec *Vec_new_d_d(double x, double y);" in result.header


def test_extend_constructor_is_always_mangled():
    result = generate(module("gfx", klass("Vec", ctor("Vec", [("x", "int")], features={"extend": True}))))
    assert "SWIGIMPORT Vec *Vec_new_i(int x);" in result.header


def test_members_skipped_by_access_and_kind():
    result = generate(
        module(
            "gfx",
            klass(
                "Widget",
                method("hidden", "void", access="private"),
                method("helper", "void", storage="friend"),
                method("skipped", "void", features={"ignore": True}),
                klass("Inner"),
            ),
        )
    )
    h = result.header
    assert "Widget_hidden" not in h and "Widget_helper" not in h and "Widget_skipped" not in h
    assert "Inner" not in h
    assert any("Nested class" in d.message for d in result.diagnostics.warnings)


def test_named_import_is_found_through_includes():
    mod = module("gfx", _include(_include(Node(kind=NodeKind.IMPORT, attrs={"module": "base"}))))
    found = find_first_named_import(mod)
    assert found is not None and found.attr("module") == "base"
    assert find_first_named_import(module("gfx", Node(kind=NodeKind.IMPORT))) is None


def test_import_header_names():
    config = GeneratorConfig(module="gfx", header_name="include/gfx_wrap.h", import_headers=(("core", "core/api.h"),))
    assert import_header_name(config, "base") == "include/base_wrap.h"
    assert import_header_name(config, "core") == "core/api.h", "the explicit mapping wins"


def test_imported_module_provides_exception_support():
    mod = module(
        "gfx",
        _import("base", klass("Base", method("id", "int"))),
        klass("Derived", method("run", "void"), bases=["Base"]),
    )
    result = generate(mod)
    h, s = result.header, result.source
    assert '#include "base_wrap.h"\n' in h
    assert "#define SWIG_CException_Raise base_SWIG_CException_Raise\n" in s
    assert "#define SWIG_CException_DEFINED 1\n" in s
    assert "inline void swig_check()" not in h
    assert "SWIG_CException_copy" not in h, "the exception class is wrapped by the imported module"
    assert "Base_id" not in h, "imported declarations are not wrapped again"
    assert "class Derived : public Base {" in h
    assert "inline void Derived::run() { Derived_run(swig_self()); swig_check(); }" in h
    assert "SWIGIMPORT int Derived_id(Derived *self);" in h


def test_explicit_import_header():
    result = generate(module("gfx", _import("base")), import_headers=(("base", "base/api.h"),))
    assert '#include "base/api.h"\n' in result.header


def test_invalid_symbol_names_are_skipped():
    result = generate(module("gfx", function("operator+", "int", [("a", "int")])))
    assert "gfx_operator" not in result.header
    assert "gfx_operator" not in result.source
    assert any("Invalid symbol name" in d.message for d in result.diagnostics.warnings)


def test_plain_c_module():
    mod = module(
        "gfx",
        function("add", "int", [("a", "int"), ("b", "int")]),
        klass("Point", var("x", "int"), var("y", "int")),
        klass("Pair", var("ok", "bool"), attrs={"tdname": "Pair_t"}),
    )
    config = GeneratorConfig(module="gfx", cplusplus=False)
    result = ModuleEmitter(config).generate(mod)
    assert config.output_source == "gfx_wrap.c"
    assert "SWIGIMPORT int gfx_add(int a, int b);" in result.header
    assert "int gfx_add(int a, int b) {" in result.source
    assert "result = add(a, b);" in result.source
    assert "struct Point {\n  int x;\n  int y;\n};\n" in result.header
    assert "typedef struct {\n  bool ok;\n} Pair_t;\n" in result.header
    assert "#include <stdbool.h>" in result.header
    assert "class " not in result.header
    assert "SWIG_CException" not in result.source


def test_symbols_are_recorded(gfx_module):
    result = generate(gfx_module)
    by_name = {s["name"]: s for s in result.symbols}
    assert by_name["gfx_add"]["kind"] == "function"
    assert by_name["gfx_add"]["file"] == "gfx.h"
    assert by_name["Circle"]["kind"] == "type"
    data = result.to_dict()
    assert data["header"] == "gfx_wrap.h" and data["source"] == "gfx_wrap.cxx"


def test_default_configuration_emits_exception_helpers():
    result = generate(module("gfx", klass("Widget", method("draw"))))
    h = result.header
    assert not result.has_errors
    assert "inline void swig_check() {\n" in h
    assert "template <typename T> T swig_check(T x) {\n" in h
    assert h.count("inline void swig_check()") == 1
    assert "inline void Widget::draw() { Widget_draw(swig_self()); swig_check(); }" in h
