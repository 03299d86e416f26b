from cabi_binding_generator.models import FunctionRole, FunctionSpec, GeneratorConfig
from cabi_binding_generator.naming import NamePolicy

from builders import T, enum, function, klass, module, namespace


def _policy(**config):
    return NamePolicy(GeneratorConfig(module="gfx", **config))


def test_proxy_names():
    plain = klass("Widget")
    spaced = klass("Point")
    module("gfx", plain, namespace("geo", spaced, features={"nspace": True}))
    names = _policy()
    assert names.proxy_name(plain) == "Widget"
    assert names.proxy_name(spaced) == "geo_Point"
    assert names.c_class_ptr(plain) == "SwigObj_Widget*"
    assert _policy(namespace="lib::v1").proxy_name(plain) == "lib_v1_Widget"


def test_free_function_prefixes():
    top = function("add")
    inner = function("norm")
    module("gfx", top, namespace("geo", inner, features={"nspace": True}))
    names = _policy()
    assert names.free_prefix(top) == "gfx"
    assert names.free_prefix(inner) == "geo"
    assert _policy(namespace="lib").free_prefix(top) == "lib"


def test_enum_names():
    free = enum("Color", "RED")
    nested = enum("Mode", "ON")
    typedefd = enum("", "A", attrs={"tdname": "Flags"})
    anon = enum("", "X", attrs={"unnamed": True})
    module("gfx", free, typedefd, anon, klass("Widget", nested))
    names = _policy()
    assert names.enum_c_name(free) == "gfx_Color"
    assert names.enum_type_name(free) == "enum gfx_Color"
    assert names.enum_c_name(nested) == "Widget_Mode"
    assert names.enum_type_name(typedefd) == "gfx_Flags"
    assert names.enum_c_name(anon) is None
    assert names.enum_type_name(anon) is None


def test_wrapper_names_by_role():
    cls = klass("Widget", function("draw"))
    module("gfx", cls)
    draw = cls.children[0]
    names = _policy()

    def name(role, sym="draw", **kw):
        spec = FunctionSpec(draw, role, sym, T("void"), owner=cls, **kw)
        return names.wrapper_name(spec, ("i", "d"))

    assert name(FunctionRole.CONSTRUCTOR, "Widget") == "Widget_new"
    assert name(FunctionRole.COPY_CONSTRUCTOR, "Widget", overloaded=True) == "Widget_copy"
    assert name(FunctionRole.DESTRUCTOR, "Widget") == "Widget_delete"
    assert name(FunctionRole.MEMBER_GET, "size") == "Widget_size_get"
    assert name(FunctionRole.STATIC_SET, "count") == "Widget_count_set"
    assert name(FunctionRole.METHOD, overloaded=True) == "Widget_draw_i_d"
    assert name(FunctionRole.METHOD, "paint", overloaded=True, const_overloaded=True) == "Widget_paint_const_i_d"


def test_global_accessor_names():
    node = function("counter")
    module("gfx", node)
    spec = FunctionSpec(node, FunctionRole.GLOBAL_GET, "counter", T("int"))
    assert _policy().wrapper_name(spec) == "counter_get"
    spec = FunctionSpec(node, FunctionRole.GLOBAL_SET, "counter", T("void"))
    assert _policy(namespace="lib").wrapper_name(spec) == "lib_counter_set"


def test_wrapper_names_are_cached_per_run():
    node = function("add")
    module("gfx", node)
    names = _policy()
    spec = FunctionSpec(node, FunctionRole.FUNCTION, "add", T("int"), overloaded=True)
    first = names.wrapper_name(spec, ("i",))
    assert names.wrapper_name(spec, ("d",)) == first == "gfx_add_i"
    names.cache.clear()
    assert names.wrapper_name(spec, ("d",)) == "gfx_add_d"
