"""Tests for the declaration extractor."""

import pytest

from tsdual.core.errors import CircularReexport
from tsdual.core.resolver import Resolver
from tsdual.core.types import ParseState


def declarations_of(root, relpath):
    resolver = Resolver(root).load()
    return resolver.entries[relpath].module.declarations


class TestImports:
    def test_value_and_type_imports(self, make_package):
        root = make_package({
            "index.ts": (
                "import Def, { a, b as c } from './m'\n"
                "import type { T } from './m'\n"
                "import { x } from 'lodash'\n"
            ),
            "m.ts": "",
        })
        decls = declarations_of(root, "index.ts")

        assert decls.value_imports == {
            "./m": {"Def": "default", "a": "a", "c": "b"},
            "lodash": {"x": "x"},
        }
        assert decls.type_imports == {"./m": {"T": "T"}}

    def test_namespace_import_binds_nothing(self, make_package):
        root = make_package({"index.ts": "import * as ns from './m'\n", "m.ts": ""})
        decls = declarations_of(root, "index.ts")

        assert decls.value_imports == {"./m": {}}

    def test_side_effect_import(self, make_package):
        root = make_package({"index.ts": "import './polyfill'\n", "polyfill.ts": ""})
        assert declarations_of(root, "index.ts").value_imports == {"./polyfill": {}}


class TestExports:
    def test_declarations(self, make_package):
        root = make_package({
            "index.ts": (
                "export const a = 1, b = 2\n"
                "export function f() {}\n"
                "export class C {}\n"
                "export enum E { X }\n"
                "export interface I {}\n"
                "export type T = string\n"
                "export default f\n"
            ),
        })
        decls = declarations_of(root, "index.ts")

        assert decls.value_exports == {"a", "b", "f", "C", "E", "default"}
        assert decls.type_exports == {"I", "T"}

    def test_destructured_exports(self, make_package):
        root = make_package({"index.ts": "export const { a, b: c } = obj\n"})
        assert declarations_of(root, "index.ts").value_exports == {"a", "c"}

    def test_local_export_clause(self, make_package):
        root = make_package({
            "index.ts": "const a = 1\ninterface I {}\nexport { a as b }\nexport type { I }\n",
        })
        decls = declarations_of(root, "index.ts")

        assert decls.value_exports == {"b"}
        assert decls.type_exports == {"I"}

    def test_named_reexports(self, make_package):
        root = make_package({
            "index.ts": "export { v as w } from './m'\nexport type { A } from './m'\n",
            "m.ts": "export const v = 1\nexport interface A {}\n",
        })
        decls = declarations_of(root, "index.ts")

        assert decls.value_exports == {"w"}
        assert decls.type_exports == {"A"}
        assert decls.value_reexports == {"./m": {"w": "v"}}
        assert decls.type_reexports == {"./m": {"A": "A"}}

    def test_namespace_reexport(self, make_package):
        root = make_package({"index.ts": "export * as utils from './m'\n", "m.ts": ""})
        assert declarations_of(root, "index.ts").value_exports == {"utils"}


class TestExportAll:
    def test_propagates_names_except_default(self, make_package):
        root = make_package({
            "index.ts": "export * from './b'\n",
            "b.ts": "export const x = 1\nexport interface Y {}\nexport default 3\n",
        })
        decls = declarations_of(root, "index.ts")

        assert decls.value_exports == {"x"}
        assert decls.type_exports == {"Y"}
        assert decls.value_reexports == {"./b": {"x": "x"}}
        assert decls.type_reexports == {"./b": {"Y": "Y"}}

    def test_chains(self, make_package):
        root = make_package({
            "index.ts": "export * from './lib'\n",
            "lib/index.ts": "export * from './leaf'\n",
            "lib/leaf.ts": "export function deep() {}\n",
        })
        assert declarations_of(root, "index.ts").value_exports == {"deep"}

    def test_type_only_star_keeps_values_out(self, make_package):
        root = make_package({
            "b.ts": "export type * from './m'\n",
            "m.ts": "export interface T {}\nexport const v = 1\n",
        })
        decls = declarations_of(root, "b.ts")

        assert decls.value_exports == set()
        assert decls.value_reexports == {}
        assert decls.type_exports == {"T"}
        assert decls.type_reexports == {"./m": {"T": "T"}}

    def test_package_targets_are_ignored(self, make_package):
        root = make_package({"index.ts": "export * from 'react'\n"})
        decls = declarations_of(root, "index.ts")

        assert decls.value_exports == set()
        assert decls.value_reexports == {}

    def test_circular_chain(self, make_package):
        root = make_package({
            "a.ts": "export * from './b'\n",
            "b.ts": "export * from './a'\n",
        })
        resolver = Resolver(root).load()
        module = resolver.entries["a.ts"].module

        with pytest.raises(CircularReexport):
            module.declarations
        assert module.state is ParseState.UNPARSED


class TestModuleSource:
    def test_parsed_once(self, make_package):
        root = make_package({"index.ts": "export const a = 1\n"})
        module = Resolver(root).load().entries["index.ts"].module

        assert module.state is ParseState.UNPARSED
        first = module.declarations
        assert module.state is ParseState.PARSED
        assert module.declarations is first

    def test_update_requires_parse(self, make_package):
        root = make_package({"index.ts": ""})
        module = Resolver(root).load().entries["index.ts"].module

        with pytest.raises(RuntimeError):
            module.update(None)

    def test_non_module_entry(self, make_package):
        root = make_package({"data.json": "{}"})
        with pytest.raises(TypeError):
            Resolver(root).load().entries["data.json"].module
