import json

from cabi_binding_generator.generate_bindings import main, parse_import_headers

import pytest

DOCUMENT = {
    "module": {
        "kind": "module",
        "name": "gfx",
        "children": [
            {"kind": "function", "name": "add", "type": "int", "parms": [{"name": "a", "type": "int"}], "file": "gfx.h", "line": 3},
            {"kind": "class", "name": "Widget", "children": [{"kind": "function", "name": "draw", "type": "void"}]},
        ],
    }
}


def test_generates_files_and_manifest(write_input, tmp_path):
    out = tmp_path / "out"
    rc = main(["--input", str(write_input(DOCUMENT)), "--output-dir", str(out), "-q"])
    assert rc == 0
    header = (out / "gfx_wrap.h").read_text(encoding="utf-8")
    assert "SWIGIMPORT int gfx_add(int a);" in header
    assert "class Widget {" in header
    assert (out / "gfx_wrap.cxx").is_file()
    manifest = json.loads((out / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["generator"]["name"] == "cabi-binding-generator"
    assert "gfx_add" in [s["name"] for s in manifest["symbols"]]
    assert manifest["diagnostics"] == []


def test_dry_run_writes_nothing(write_input, tmp_path):
    out = tmp_path / "out"
    rc = main(["--input", str(write_input(DOCUMENT)), "--output-dir", str(out), "--dry-run", "-q"])
    assert rc == 0
    assert not out.exists()


def test_options_shape_the_output(write_input, tmp_path):
    out = tmp_path / "out"
    rc = main(
        [
            "--input", str(write_input(DOCUMENT)),
            "--output-dir", str(out),
            "--module", "shapes",
            "--namespace", "lib::gfx",
            "--nocxx",
            "--noexcept",
            "--header-name", "shapes.h",
            "--no-manifest",
            "-q",
        ]
    )
    assert rc == 0
    header = (out / "shapes.h").read_text(encoding="utf-8")
    assert "SWIGIMPORT int lib_gfx_add(int a);" in header
    assert "class Widget" not in header
    assert "try {" not in (out / "shapes_wrap.cxx").read_text(encoding="utf-8")
    assert not (out / "manifest.json").exists()


def test_plain_c_output_name(write_input, tmp_path):
    doc = {"module": {"kind": "module", "name": "m", "children": [DOCUMENT["module"]["children"][0]]}}
    out = tmp_path / "out"
    assert main(["--input", str(write_input(doc)), "--output-dir", str(out), "--c", "--no-manifest", "-q"]) == 0
    assert (out / "m_wrap.c").is_file()


def test_errors_give_non_zero_exit(write_input, tmp_path):
    doc = {
        "module": {
            "kind": "module",
            "name": "gfx",
            "children": [{"kind": "function", "name": "log", "type": "void", "parms": [{"type": "..."}]}],
        }
    }
    rc = main(["--input", str(write_input(doc)), "--output-dir", str(tmp_path / "out"), "--no-manifest", "-qq"])
    assert rc == 3


def test_invalid_input_exit_code(write_input, tmp_path):
    rc = main(["--input", str(write_input({"nope": 1})), "--output-dir", str(tmp_path / "out"), "-qq"])
    assert rc == 2
    rc = main(["--input", str(tmp_path / "missing.json"), "--output-dir", str(tmp_path / "out"), "-qq"])
    assert rc == 2


def test_import_header_option():
    assert parse_import_headers(["base=base/api.h", "core = core.h", "base=b.h"]) == (("base", "b.h"), ("core", "core.h"))
    with pytest.raises(ValueError):
        parse_import_headers(["nothing"])


def test_manifest_write_failure_exit_code(write_input, tmp_path):
    out = tmp_path / "out"
    (out / "manifest.json").mkdir(parents=True)
    rc = main(["--input", str(write_input(DOCUMENT)), "--output-dir", str(out), "-qq"])
    assert rc == 5
    assert (out / "gfx_wrap.h").is_file()
