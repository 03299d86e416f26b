from builders import generate, klass, method, module, var
from cabi_binding_generator.inheritance import InheritanceFlattener
from cabi_binding_generator.type_mapping import SymbolTable


def _flattener(mod):
    return InheritanceFlattener(SymbolTable.from_tree(mod))


def test_public_members_are_inherited():
    base = klass(
        "Base",
        method("run", "void"),
        var("size", "int"),
        method("secret", "void", access="protected"),
        method("make", "Base *", storage="static"),
        method("operator=", "Base &"),
    )
    derived = klass("Derived", bases=["Base"])
    shadows = _flattener(module("gfx", base, derived)).flatten(derived)
    assert [(s.sym_name, s.origin.name) for s in shadows] == [("run", "Base"), ("size", "Base")]


def test_redeclared_members_hide_inherited_ones():
    base = klass("Base", method("run", "void"), method("stop", "void"))
    derived = klass("Derived", method("run", "void"), bases=["Base"])
    shadows = _flattener(module("gfx", base, derived)).flatten(derived)
    assert [s.sym_name for s in shadows] == ["stop"]


def test_members_of_indirect_bases_keep_their_origin():
    a = klass("A", method("a", "void"))
    b = klass("B", method("b", "void"), bases=["A"])
    c = klass("C", bases=["B"])
    shadows = _flattener(module("gfx", a, b, c)).flatten(c)
    assert [(s.sym_name, s.origin.name) for s in shadows] == [("b", "B"), ("a", "A")]


def test_name_collisions_are_qualified_with_origin():
    a = klass("A", method("f", "int"), method("only_a", "int"))
    b = klass("B", method("f", "int"))
    c = klass("C", bases=["A", "B"])
    shadows = _flattener(module("gfx", a, b, c)).flatten(c)
    names = {s.sym_name: s.base_name for s in shadows}
    assert names == {"A_f": "f", "only_a": None, "B_f": "f"}


def test_diamond_members_appear_once():
    root = klass("Root", method("id", "int"))
    left = klass("Left", bases=["Root"])
    right = klass("Right", bases=["Root"])
    bottom = klass("Bottom", bases=["Left", "Right"])
    shadows = _flattener(module("gfx", root, left, right, bottom)).flatten(bottom)
    assert [s.sym_name for s in shadows] == ["id"]


def test_cyclic_bases_terminate():
    a = klass("A", method("f"), bases=["B"])
    b = klass("B", method("g"), bases=["A"])
    flat = _flattener(module("gfx", a, b))
    assert [s.sym_name for s in flat.flatten(a)] == ["g"]


def test_unknown_and_ignored_bases_are_not_usable():
    hidden = klass("Hidden", method("h"), features={"ignore": True})
    derived = klass("Derived", bases=["std::exception", "Hidden"])
    flat = _flattener(module("gfx", hidden, derived))
    assert flat.usable_bases(derived) == []
    assert flat.flatten(derived) == []


def test_abstract_detection():
    shape = klass("Shape", method("area", "double", attrs={"pure_virtual": True}))
    square = klass("Square", bases=["Shape"])
    circle = klass("Circle", method("area", "double"), bases=["Shape"])
    flat = _flattener(module("gfx", shape, square, circle))
    assert flat.is_abstract(shape)
    assert flat.is_abstract(square), "an inherited pure virtual function keeps the class abstract"
    assert not flat.is_abstract(circle)


def test_renamed_shadow_calls_base_member():
    result = generate(
        module(
            "gfx",
            klass("A", method("f", "int")),
            klass("B", method("f", "int")),
            klass("C", bases=["A", "B"]),
        )
    )
    assert "cppresult = (int) ((A *)arg1)->f();" in result.source
    assert "cppresult = (int) ((B *)arg1)->f();" in result.source
