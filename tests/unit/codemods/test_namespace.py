"""Tests for the namespace-import splitter."""

import logging

from tsdual.codemods.namespace import (
    separate_namespace_import,
    separate_namespace_imports,
    split_namespace_source,
)

SOURCE = """\
import * as foo from "foobar"

function doSomething (x: foo.Bar = new foo.Bar()): foo.Baz {
  return x
}
"""

EXPECTED = """\
import * as __foo from "foobar"

import type * as _foo from "foobar"
//@ts-ignore
const foo = __foo['default']

function doSomething (x: _foo.Bar = new foo.Bar()): _foo.Baz {
  return x
}
"""


class TestSplitNamespaceSource:
    def test_split(self):
        assert split_namespace_source(SOURCE.encode(), "foobar").decode() == EXPECTED

    def test_idempotent(self):
        assert split_namespace_source(EXPECTED.encode(), "foobar").decode() == EXPECTED

    def test_generic_and_nested_types(self):
        source = (
            "import * as ns from 'pkg'\n"
            "let a: ns.List<ns.Item>\n"
            "let b: ns.inner.Deep\n"
            "let c: other.Type\n"
        )
        result = split_namespace_source(source.encode(), "pkg").decode()

        assert "let a: _ns.List<_ns.Item>\n" in result
        assert "let b: _ns.inner.Deep\n" in result
        assert "let c: other.Type\n" in result
        assert "import type * as _ns from 'pkg'\n" in result

    def test_missing_import(self, caplog):
        caplog.set_level(logging.WARNING)
        source = b"import * as foo from 'other'\n"

        assert split_namespace_source(source, "foobar") == source
        assert 'no namespace import of "foobar"' in caplog.text

    def test_warns_about_commonjs_assumption(self, caplog):
        caplog.set_level(logging.WARNING)
        split_namespace_source(SOURCE.encode(), "foobar")
        assert "CommonJS" in caplog.text


class TestSeparateNamespaceImports:
    def test_writes_file(self, tmp_path):
        path = tmp_path / "index.ts"
        path.write_text(SOURCE)

        assert separate_namespace_import(path, "foobar", dry_run=False) == EXPECTED
        assert path.read_text() == EXPECTED

    def test_dry_run(self, tmp_path):
        path = tmp_path / "index.ts"
        path.write_text(SOURCE)

        assert separate_namespace_import(path, "foobar") == EXPECTED
        assert path.read_text() == SOURCE

    def test_several_packages(self, tmp_path):
        path = tmp_path / "index.ts"
        path.write_text("import * as a from 'pa'\nimport * as b from 'pb'\nlet x: a.T\nlet y: b.U\n")

        result = separate_namespace_imports(path, ["pa", "pb"], dry_run=False)

        assert "const a = __a['default']" in result
        assert "const b = __b['default']" in result
        assert "let x: _a.T\nlet y: _b.U\n" in result
