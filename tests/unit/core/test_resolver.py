"""Unit tests for the module graph resolver."""

import logging

import pytest

from tsdual.core.errors import InvalidSpecifier, UnresolvedSpecifier
from tsdual.core.resolver import Resolver, index_specifier
from tsdual.core.types import EntryKind


class TestLoad:
    def test_classifies_entries(self, make_package):
        root = make_package({
            "index.ts": "export const a = 1\n",
            "data.json": "{}",
            "README.md": "# readme",
            "lib/util.ts": "export const b = 2\n",
        })
        resolver = Resolver(root).load()

        assert resolver.entries["index.ts"].kind is EntryKind.MODULE
        assert resolver.entries["data.json"].kind is EntryKind.DATA
        assert resolver.entries["README.md"].kind is EntryKind.FILE
        assert resolver.entries["lib"].kind is EntryKind.DIRECTORY
        assert resolver.entries["lib"].children == ["lib/util.ts"]
        assert [e.relpath for e in resolver.modules()] == ["index.ts", "lib/util.ts"]

    def test_skips_node_modules(self, make_package):
        root = make_package({
            "index.ts": "",
            "node_modules/dep/index.ts": "",
            "src/node_modules/other/index.ts": "",
        })
        resolver = Resolver(root).load()

        assert not any("node_modules" in key for key in resolver.entries)

    def test_load_subset_then_extend(self, make_package):
        root = make_package({"src/a.ts": "", "lib/b.ts": ""})
        resolver = Resolver(root).load(["src"])
        assert "lib/b.ts" not in resolver.entries

        entry = resolver.entries["src/a.ts"]
        resolver.load(["lib", "src"])
        assert "lib/b.ts" in resolver.entries
        assert resolver.entries["src/a.ts"] is entry

    def test_root_must_be_directory(self, tmp_path):
        file = tmp_path / "file.ts"
        file.write_text("")
        with pytest.raises(NotADirectoryError):
            Resolver(file)

    def test_load_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Resolver(tmp_path).load(["missing"])


class TestResolve:
    @pytest.fixture
    def resolver(self, make_package):
        root = make_package({
            "index.ts": "",
            "flat.ts": "",
            "flat/index.ts": "",
            "dir/index.ts": "",
            "config.json": "{}",
            "src/nested.ts": "",
        })
        return Resolver(root).load()

    def test_non_relative_is_none(self, resolver):
        assert resolver.resolve("index.ts", "lodash") is None
        assert resolver.resolve("index.ts", "@scope/pkg/sub") is None

    def test_source_extension_is_rejected(self, resolver):
        with pytest.raises(InvalidSpecifier):
            resolver.resolve("index.ts", "./flat.ts")

    def test_flat_file(self, resolver):
        assert resolver.resolve("src/nested.ts", "../dir/index").relpath == "dir/index.ts"

    def test_flat_file_wins_over_directory(self, resolver, caplog):
        caplog.set_level(logging.WARNING)
        entry = resolver.resolve("index.ts", "./flat")

        assert entry.relpath == "flat.ts"
        assert "flat/index.ts" in caplog.text

    def test_directory_falls_back_to_index(self, resolver, caplog):
        caplog.set_level(logging.WARNING)
        entry = resolver.resolve("index.ts", "./dir")

        assert entry.relpath == "dir/index.ts"
        assert "directory import" in caplog.text

    def test_data_file(self, resolver, caplog):
        caplog.set_level(logging.WARNING)
        entry = resolver.resolve("index.ts", "./config.json")

        assert entry.kind is EntryKind.DATA
        assert entry.load_data() == {}
        assert "non-TS import" in caplog.text

    def test_parent_directory(self, resolver):
        assert resolver.resolve("src/nested.ts", "..").relpath == "index.ts"

    def test_absolute_source_path(self, resolver):
        source = resolver.root / "src" / "nested.ts"
        assert resolver.resolve(source, "../flat").relpath == "flat.ts"

    def test_unresolved(self, resolver):
        with pytest.raises(UnresolvedSpecifier) as exc:
            resolver.resolve("src/nested.ts", "./missing")

        assert exc.value.specifier == "./missing"
        assert exc.value.source == "src/nested.ts"

    def test_resolve_does_not_mutate_graph(self, resolver):
        before = dict(resolver.entries)
        resolver.resolve("index.ts", "./dir")
        assert resolver.entries == before


def test_index_specifier():
    assert index_specifier("./dir") == "./dir/index"
    assert index_specifier("./dir/") == "./dir/index"
    assert index_specifier(".") == "./index"
