from builders import T, function, generate, klass, method, module, namespace, var
from cabi_binding_generator.typemaps import TypemapRule, TypemapTable


def test_free_function_gets_module_prefix():
    """A non-overloaded free function is wrapped as MODULE_name with no suffix."""
    result = generate(module("gfx", function("add", "int", [("a", "int"), ("b", "int")])))
    assert "SWIGIMPORT int gfx_add(int a, int b);" in result.header
    assert "SWIGEXPORTC int gfx_add(int a, int b) {" in result.source
    assert "cppresult = (int) add(arg1, arg2);" in result.source
    assert "return result;" in result.source
    assert not result.has_errors


def test_overloads_get_distinct_suffixes():
    result = generate(
        module(
            "gfx",
            function("f", "void", [("x", "int")]),
            function("f", "void", [("x", "double")]),
        )
    )
    assert "SWIGIMPORT void gfx_f_i(int x);" in result.header
    assert "SWIGIMPORT void gfx_f_d(double x);" in result.header
    assert "void gfx_f_i(int x) {" in result.source and "void gfx_f_d(double x) {" in result.source
    names = [s["name"] for s in result.symbols if s["kind"] == "function"]
    assert len(names) == len(set(names)), "wrapper names must not collide: %s" % names


def test_const_overload_gets_const_suffix():
    result = generate(
        module(
            "gfx",
            klass(
                "Buffer",
                method("data", "int *"),
                method("data", "const int *", is_const=True),
            ),
        )
    )
    assert "SWIGIMPORT int *Buffer_data(Buffer *self);" in result.header
    assert "SWIGIMPORT const int *Buffer_data_const(Buffer *self);" in result.header


def test_void_wrapper_has_no_result_local():
    result = generate(module("gfx", function("reset")))
    body = result.source.split("void gfx_reset(void) {")[1].split("\n}\n")[0]
    assert "result" not in body.replace("cppresult", ""), "void wrappers declare no result"
    assert "return;" in body, "the exception handler returns nothing for void"


def test_exception_handler_wraps_call():
    result = generate(module("gfx", function("risky", "int")))
    assert "catch (const std::exception& e)" in result.source
    assert "SWIG_CException_Raise(SWIG_RuntimeError, e.what());" in result.source
    assert "return 0;" in result.source


def test_noexcept_and_throw_spec_skip_handler():
    result = generate(
        module(
            "gfx",
            function("safe", "int", noexcept=True),
            function("safe_too", "int", throws=[]),
        ),
        exceptions=True,
    )
    for name in ("gfx_safe(void)", "gfx_safe_too(void)"):
        body = result.source.split(name + " {")[1].split("\n}\n")[0]
        assert "try {" not in body, "%s must not catch exceptions" % name


def test_noexcept_option_disables_handlers_and_runtime():
    result = generate(module("gfx", function("risky", "int")), exceptions=False)
    assert "try {" not in result.source
    assert "SWIG_CException" not in result.source
    assert "swig_check" not in result.header


def test_except_feature_replaces_handler():
    result = generate(
        module("gfx", function("risky", "int", features={"except": "{ guard(); $action }"})),
    )
    assert "guard(); cppresult = (int) risky();" in result.source


def test_prepend_and_append_surround_call():
    result = generate(
        module("gfx", function("paint", "void", features={"prepend": "before();", "append": "{ after(); }"})),
    )
    src = result.source
    assert src.index("before();") < src.index("paint();") < src.index("after();")


def test_vararg_function_is_an_error():
    result = generate(module("gfx", function("log", "void", [("fmt", "const char *"), (None, "...")])))
    assert result.has_errors
    assert "Vararg function log not supported." in [d.message for d in result.diagnostics.errors]
    assert "gfx_log" not in result.header and "gfx_log" not in result.source


def test_missing_typemap_skips_wrapper_with_warning():
    result = generate(
        module("gfx", function("f", "void", [("x", "int")]), function("g")),
        typemaps=TypemapTable(use_defaults=False),
    )
    assert "gfx_f" not in result.header
    assert "SWIGIMPORT void gfx_g(void);" in result.header, "other declarations are still wrapped"
    assert any('"in" typemap' in d.message and "int" in d.message for d in result.diagnostics.warnings)
    assert not result.has_errors


def test_numinputs_zero_parameter_is_hidden_but_initialized():
    table = TypemapTable([TypemapRule(method="in", code="$1 = 42;", type=T("int"), numinputs=0)])
    result = generate(module("gfx", function("f", "int", [("hidden", "int"), ("x", "double")])), typemaps=table)
    assert "SWIGIMPORT int gfx_f(double x);" in result.header
    assert "arg1 = 42;" in result.source
    assert "cppresult = (int) f(arg1, arg2);" in result.source


def test_check_and_freearg_typemaps():
    table = TypemapTable(
        [
            TypemapRule(method="check", code="if (!$target) return $null;", type=T("const char *")),
            TypemapRule(method="freearg", code="release($source);", type=T("const char *")),
        ]
    )
    result = generate(module("gfx", function("put", "int", [("s", "const char *")])), typemaps=table)
    src = result.source
    assert "if (!arg1) return 0;" in src
    assert src.index("put(arg1)") < src.index("release(arg1);")


def test_unknown_types_declared_once_in_header():
    result = generate(
        module(
            "gfx",
            function("use", "void", [("a", "Opaque *"), ("b", "Opaque *")]),
            function("make", "Opaque *"),
        )
    )
    assert result.header.count("typedef struct SWIGTYPE_p_Opaque SWIGTYPE_p_Opaque;") == 1
    assert "SWIGIMPORT void gfx_use(SWIGTYPE_p_Opaque *a, SWIGTYPE_p_Opaque *b);" in result.header
    assert "SWIGEXPORTC void gfx_use(SwigObj *a, SwigObj *b) {" in result.source


def test_class_value_parameters_and_returns():
    result = generate(
        module(
            "gfx",
            klass("Vec"),
            function("scale", "Vec", [("v", "Vec"), ("k", "double")]),
        )
    )
    assert "SWIGIMPORT Vec *gfx_scale(Vec *v, double k);" in result.header
    assert "cppresult = new Vec(scale(*arg1, arg2));" in result.source


def test_reference_return_is_taken_by_address():
    result = generate(module("gfx", klass("Vec"), function("origin", "Vec &")))
    assert "cppresult = (Vec *) &(origin());" in result.source


def test_invalid_parameter_names_are_replaced():
    result = generate(module("gfx", function("f", "void", [("int", "int"), (None, "double"), ("x", "int")])))
    assert "SWIGIMPORT void gfx_f(int carg1, double carg2, int x);" in result.header


def test_global_prefix_and_nspace():
    result = generate(
        module(
            "gfx",
            function("add", "int", [("a", "int")]),
            namespace("geo", function("area", "double"), features={"nspace": True}),
        ),
        namespace="lib::v1",
    )
    assert "SWIGIMPORT int lib_v1_add(int a);" in result.header
    assert "SWIGIMPORT double geo_area(void);" in result.header
    assert "cppresult = (double) geo::area();" in result.source


def test_member_variables_get_accessors():
    result = generate(module("gfx", klass("Point", var("x", "double"), var("id", "const int"))))
    assert "SWIGIMPORT double Point_x_get(Point *self);" in result.header
    assert "SWIGIMPORT void Point_x_set(Point *self, double value);" in result.header
    assert "(arg1)->x = arg2;" in result.source
    assert "Point_id_get" in result.header
    assert "Point_id_set" not in result.header, "const variables have no setter"


def test_global_variables():
    result = generate(
        module(
            "gfx",
            var("counter", "int"),
            var("hidden", "int", storage="static"),
            namespace("geo", var("scale", "double")),
        )
    )
    assert "SWIGIMPORT int counter;" in result.header
    assert "hidden" not in result.header, "static globals are never exported"
    assert "SWIGIMPORT double scale_get(void);" in result.header
    assert "SWIGIMPORT void scale_set(double value);" in result.header
    assert "geo::scale = arg1;" in result.source


def test_plain_c_global_variable_accessors():
    result = generate(module("gfx", var("counter", "int")), namespace="x", cplusplus=False)
    assert "SWIGIMPORT int x_counter_get(void);" in result.header
    assert "SWIGIMPORT void x_counter_set(int value);" in result.header
    assert "result = counter;" in result.source
    assert "counter = value;" in result.source
    assert "counter(" not in result.source


def test_fixed_width_overloads_stay_distinct():
    result = generate(
        module(
            "gfx",
            function("f", "void", [("x", "int32_t")]),
            function("f", "void", [("x", "int64_t")]),
            function("f", "void", [("x", "short")]),
            function("f", "void", [("x", "size_t")]),
        )
    )
    assert "SWIGIMPORT void gfx_f_int32_t(int32_t x);" in result.header
    assert "SWIGIMPORT void gfx_f_int64_t(int64_t x);" in result.header
    assert "SWIGIMPORT void gfx_f_s(short x);" in result.header
    assert "SWIGIMPORT void gfx_f_size_t(size_t x);" in result.header
    assert not result.diagnostics.warnings
