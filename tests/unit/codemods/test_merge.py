"""Tests for the package merge codemod."""

import pytest

from tsdual.codemods.merge import merge_packages, package_names
from tsdual.core.errors import ManifestError
from tsdual.core.resolver import Resolver
from tsdual.core.types import EntryKind


@pytest.fixture
def workspace(make_package):
    return make_package({
        "packages/utils/package.json": {"name": "@acme/utils", "version": "1.0.0"},
        "packages/utils/lib/x.ts": "export const x = 1\n",
        "src/app.ts": (
            "import { x } from '@acme/utils/lib/x'\n"
            'export { y } from "@acme/utils-extra/y"\n'
            "import React from 'react'\n"
        ),
        "index.ts": "export * from '@acme/utils/lib/x'\n",
    })


class TestPackageNames:
    def test_reads_names(self, workspace):
        resolver = Resolver(workspace)
        assert package_names(resolver, ["packages/utils"]) == {"@acme/utils": "packages/utils"}

    def test_nameless_manifest(self, make_package):
        root = make_package({"sub/package.json": {"version": "1.0.0"}})
        with pytest.raises(ManifestError):
            package_names(Resolver(root), ["sub"])

    def test_manifest_comes_from_the_graph(self, workspace):
        resolver = Resolver(workspace)
        package_names(resolver, ["packages/utils"])

        entry = resolver.get("packages/utils/package.json")
        assert entry.kind is EntryKind.DATA
        assert entry.load_data()["name"] == "@acme/utils"

    def test_manifest_that_is_not_data(self, make_package):
        root = make_package({"sub/package.json/readme.txt": "not a manifest\n"})
        with pytest.raises(ManifestError):
            package_names(Resolver(root), ["sub"])

    def test_missing_manifest(self, make_package):
        root = make_package({"sub/index.ts": ""})
        with pytest.raises(FileNotFoundError):
            package_names(Resolver(root), ["sub"])


class TestMergePackages:
    def test_rewrites_to_relative_paths(self, workspace):
        resolver = Resolver(workspace).load(["src", "index.ts"])
        record = merge_packages(resolver, ["packages/utils"], dry_run=False)

        assert (workspace / "src" / "app.ts").read_text() == (
            "import { x } from '../packages/utils/lib/x'\n"
            'export { y } from "@acme/utils-extra/y"\n'
            "import React from 'react'\n"
        )
        assert (workspace / "index.ts").read_text() == "export * from './packages/utils/lib/x'\n"
        assert len(record) == 2

    def test_dry_run(self, workspace):
        resolver = Resolver(workspace).load(["src"])
        record = merge_packages(resolver, ["packages/utils"], dry_run=True)

        assert list(record) == [str(workspace / "src" / "app.ts")]
        assert "'@acme/utils/lib/x'" in (workspace / "src" / "app.ts").read_text()
