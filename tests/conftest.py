import json

import pytest

from builders import ctor, function, klass, method, module, var


@pytest.fixture
def gfx_module():
    """A small graphics module: free functions, a class hierarchy and a value type."""
    return module(
        "gfx",
        function("add", "int", [("a", "int"), ("b", "int")]),
        klass(
            "Shape",
            method("area", "double", is_const=True, storage="virtual", attrs={"pure_virtual": True}),
            method("name", "const char *", is_const=True),
        ),
        klass(
            "Circle",
            ctor("Circle", [("r", "double")]),
            method("area", "double", is_const=True, storage="virtual"),
            var("radius", "double"),
            bases=["Shape"],
        ),
    )


@pytest.fixture
def write_input(tmp_path):
    """Write a JSON input document and return its path."""

    def _write(data, name="input.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write
