import pytest

from builders import T
from cabi_binding_generator.typemaps import TypemapRule, TypemapTable, expand_typemap, insert_result_cast


def test_user_rule_by_type_wins_over_category():
    table = TypemapTable([TypemapRule(method="in", code="$1 = convert($input);", type=T("std::string const &"))])
    tm = table.lookup("in", [T("std::string const &")], "unknown_ref")
    assert tm is not None and tm.code == "$1 = convert($input);"
    default = table.lookup("in", [T("int")], "builtin")
    assert default is not None and default.code == "$1 = ($1_ltype) $input;"


def test_lookup_tries_resolved_spelling():
    table = TypemapTable([TypemapRule(method="out", code="$result = wrap($1);", type=T("double"))])
    tm = table.lookup("out", [T("real"), T("double")], "builtin")
    assert tm.code == "$result = wrap($1);"


def test_category_rule_and_missing_defaults():
    table = TypemapTable([TypemapRule(method="check", code="assert($target);", category="class_ptr")], use_defaults=False)
    assert table.lookup("check", [T("Foo *")], "class_ptr").code == "assert($target);"
    assert table.lookup("in", [T("int")], "builtin") is None
    assert table.has_user_rule("check", [T("Foo *")], "class_ptr")
    assert len(table) == 1


def test_invalid_rules_are_rejected():
    with pytest.raises(ValueError):
        TypemapRule(method="frobnicate", code="")
    with pytest.raises(ValueError):
        TypemapRule(method="in", code="", type=T("int"), category="builtin")
    with pytest.raises(ValueError):
        TypemapRule(method="in", code="", category="nonsense")


def test_expand_special_variables():
    code = "$1 = ($1_ltype) $input; /* $1_type $1_basetype $symname $unknown */"
    out = expand_typemap(
        code,
        {"1": "arg2", "1_ltype": "Foo *", "input": "x", "1_type": "Foo const &", "1_basetype": "Foo", "symname": "f"},
    )
    assert out == "arg2 = (Foo *) x; /* Foo const & Foo f $unknown */"


def test_result_cast_is_inserted():
    assert insert_result_cast("$result = $1;", "int") == "$result = (int) $1;"
    assert insert_result_cast("if (x) $result = $1;", "int") == "if (x) $result = (int) $1;"
    assert insert_result_cast("foo$result = $1;", "int") == "foo$result = $1;"
