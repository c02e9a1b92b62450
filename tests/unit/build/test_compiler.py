"""Tests for the compile orchestrator, using a fake compiler."""

import json
import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from tsdual.build.compiler import BuildState, TypeScriptCompiler, cjs_format, esm_format
from tsdual.build.manifest import PackageManifest
from tsdual.config import BuildSettings
from tsdual.core.errors import AlreadyProcessed, CompileFailed, InvalidTransition, PatchNotImplemented

MANIFEST = {"name": "pkg", "version": "1.0.0", "main": "index.ts", "files": ["index.ts", "lib.ts"]}

EMITTED = {
    "esnext": {
        "index.js": "import { a } from './lib'\n",
        "index.js.map": "{}",
        "lib.js": "export const a = 1\n",
        "index.d.ts": "export * from './lib';\n",
        "index.d.ts.map": "{}",
        "lib.d.ts": "export declare const a = 1;\n",
    },
    "commonjs": {
        "index.js": "const lib = require('./lib')\n",
        "index.js.map": "{}",
        "lib.js": "exports.a = 1\n",
    },
}

ORIGINAL_FILES = ["index.ts", "lib.ts", "package.json"]


class FakeTsc:
    """Writes canned outputs into each command's --outDir."""

    def __init__(self, emitted=EMITTED, error=None):
        self.emitted = emitted
        self.error = error
        self.commands = []

    def __call__(self, commands, cwd):
        for command in commands:
            self.commands.append(list(command))
            out_dir = Path(command[command.index("--outDir") + 1])
            module = command[command.index("--module") + 1]
            for relpath, text in self.emitted[module].items():
                path = out_dir / relpath
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(text)
        if self.error is not None:
            raise self.error

    def out_dirs(self):
        return [Path(c[c.index("--outDir") + 1]) for c in self.commands]


@pytest.fixture
def package(make_package):
    return make_package({
        "package.json": MANIFEST,
        "index.ts": "import { a } from './lib'\n",
        "lib.ts": "export const a = 1\n",
    })


@pytest.fixture
def settings():
    return BuildSettings()


def names(root):
    return sorted(p.name for p in root.iterdir())


class TestCompileAndPatch:
    def test_builds_both_formats(self, package, settings):
        tsc = FakeTsc()
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=tsc)

        generated = compiler.compile_and_patch()

        assert compiler.state is BuildState.COMMITTED
        assert sorted(p.name for p in generated) == [
            "index.dist.cjs",
            "index.dist.cjs.map",
            "index.dist.d.mts",
            "index.dist.d.mts.map",
            "index.dist.mjs",
            "index.dist.mjs.map",
            "lib.dist.cjs",
            "lib.dist.d.mts",
            "lib.dist.mjs",
        ]
        assert (package / "index.dist.mjs").read_text() == 'import { a } from "./lib.dist.mjs"\n'
        assert (package / "index.dist.d.mts").read_text() == 'export * from "./lib.dist";\n'
        assert (package / "index.dist.cjs").read_text() == 'const lib = require("./lib.dist.cjs")\n'

    def test_rewrites_manifest(self, package, settings):
        original = (package / "package.json").read_bytes()
        TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc()).compile_and_patch()

        data = json.loads((package / "package.json").read_text())
        assert data["tsdual"] is True
        assert data["main"] == "index.dist.cjs"
        assert data["exports"]["."] == {
            "source": "./index.ts",
            "types": "./index.dist.d.mts",
            "import": "./index.dist.mjs",
            "default": "./index.dist.cjs",
        }
        assert "index.dist.mjs" in data["files"]
        assert (package / "package.json.bak").read_bytes() == original

    def test_compile_commands(self, package, settings):
        tsc = FakeTsc()
        TypeScriptCompiler(package, settings=settings, dry_run=False, runner=tsc,
                           extra_args=["--project", "tsconfig.build.json"]).compile_and_patch()

        esm_dir, cjs_dir = tsc.out_dirs()
        assert tsc.commands[0] == [
            "tsc", "--outDir", str(esm_dir), "--rootDir", ".",
            "--target", "esnext", "--module", "esnext",
            "--sourceMap", "--declaration", "--declarationMap",
            "--project", "tsconfig.build.json",
        ]
        assert tsc.commands[1] == [
            "tsc", "--outDir", str(cjs_dir), "--rootDir", ".",
            "--target", "esnext", "--module", "commonjs",
            "--sourceMap", "--project", "tsconfig.build.json",
        ]
        assert esm_dir.parent == cjs_dir.parent
        assert package not in esm_dir.parents

    def test_scratch_is_removed(self, package, settings):
        tsc = FakeTsc()
        TypeScriptCompiler(package, settings=settings, dry_run=False, runner=tsc).compile_and_patch()

        assert all(not d.exists() for d in tsc.out_dirs())

    def test_esm_only(self, package, settings):
        compiler = TypeScriptCompiler(
            package, formats=[esm_format(settings)], settings=settings, dry_run=False, runner=FakeTsc(),
        )
        generated = compiler.compile_and_patch()

        assert not any(p.name.endswith(".cjs") for p in generated)
        assert json.loads((package / "package.json").read_text())["main"] == "index.dist.mjs"

    def test_dry_run_changes_nothing(self, package, settings):
        original = (package / "package.json").read_bytes()
        tsc = FakeTsc()
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=True, runner=tsc)

        planned = compiler.compile_and_patch()

        assert package / "index.dist.mjs" in planned
        assert compiler.generated == []
        assert names(package) == ORIGINAL_FILES
        assert (package / "package.json").read_bytes() == original
        assert all(not d.exists() for d in tsc.out_dirs())


class TestSkipping:
    def test_private_package(self, make_package, settings):
        root = make_package({"package.json": {"name": "pkg", "private": True}})
        tsc = FakeTsc()
        compiler = TypeScriptCompiler(root, settings=settings, dry_run=False, runner=tsc)

        assert compiler.compile_and_patch() == []
        assert compiler.state is BuildState.SKIPPED
        assert tsc.commands == []

    def test_processed_package_is_skipped_on_request(self, make_package):
        root = make_package({"package.json": {"name": "pkg", "tsdual": True}})
        compiler = TypeScriptCompiler(root, settings=BuildSettings(skip_fixed=True), runner=FakeTsc())

        assert compiler.compile_and_patch() == []
        assert compiler.state is BuildState.SKIPPED

    def test_processed_package_fails(self, make_package, settings):
        root = make_package({"package.json": {"name": "pkg", "tsdual": True}})
        compiler = TypeScriptCompiler(root, settings=settings, runner=FakeTsc())

        with pytest.raises(AlreadyProcessed):
            compiler.compile_and_patch()
        compiler.revert()
        assert compiler.state is BuildState.MANIFEST_LOADED


class TestRevert:
    def test_compile_failure(self, package, settings):
        original = (package / "package.json").read_bytes()
        tsc = FakeTsc(error=CompileFailed([["tsc"]], ["error TS2304"]))
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=tsc)

        with pytest.raises(CompileFailed):
            compiler.compile_and_patch()

        assert compiler.state is BuildState.REVERTED
        assert names(package) == ORIGINAL_FILES
        assert (package / "package.json").read_bytes() == original
        assert all(not d.exists() for d in tsc.out_dirs())

    def test_unsupported_cjs_declarations(self, package, settings):
        formats = [esm_format(settings), cjs_format(settings, declarations=True)]
        compiler = TypeScriptCompiler(package, formats=formats, settings=settings, dry_run=False, runner=FakeTsc())

        with pytest.raises(PatchNotImplemented):
            compiler.compile_and_patch()

        assert compiler.state is BuildState.REVERTED
        assert names(package) == ORIGINAL_FILES

    def test_failure_after_relocation(self, package, settings):
        original = (package / "package.json").read_bytes()
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc())

        with patch.object(PackageManifest, "write", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                compiler.compile_and_patch()

        assert compiler.state is BuildState.REVERTED
        assert names(package) == ORIGINAL_FILES
        assert (package / "package.json").read_bytes() == original

    def test_revert_committed_build(self, package, settings):
        original = (package / "package.json").read_bytes()
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc())
        compiler.compile_and_patch()

        compiler.revert()

        assert compiler.state is BuildState.REVERTED
        assert names(package) == ORIGINAL_FILES
        assert (package / "package.json").read_bytes() == original

    def test_failure_during_relocation(self, package, settings):
        original = (package / "package.json").read_bytes()
        copyfile = shutil.copyfile
        calls = []

        def copy_once(src, dst):
            calls.append(dst)
            if len(calls) == 2:
                raise OSError("disk full")
            return copyfile(src, dst)

        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc())
        with patch("tsdual.build.compiler.shutil.copyfile", side_effect=copy_once):
            with pytest.raises(OSError):
                compiler.compile_and_patch()

        assert len(calls) == 2
        assert compiler.state is BuildState.REVERTED
        assert names(package) == ORIGINAL_FILES
        assert (package / "package.json").read_bytes() == original

    def test_existing_backup_survives_failure(self, package, settings):
        (package / "package.json.bak").write_text('{"name": "pkg", "version": "0.1.0"}\n')
        original = (package / "package.json").read_bytes()
        stale = (package / "package.json.bak").read_bytes()
        tsc = FakeTsc(error=CompileFailed([["tsc"]], ["error TS2304"]))

        with pytest.raises(CompileFailed):
            TypeScriptCompiler(package, settings=settings, dry_run=False, runner=tsc).compile_and_patch()

        assert names(package) == ORIGINAL_FILES + ["package.json.bak"]
        assert (package / "package.json").read_bytes() == original
        assert (package / "package.json.bak").read_bytes() == stale

    def test_existing_backup_survives_revert_after_write(self, package, settings):
        (package / "package.json.bak").write_text('{"name": "pkg", "version": "0.1.0"}\n')
        original = (package / "package.json").read_bytes()
        stale = (package / "package.json.bak").read_bytes()
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc())
        compiler.compile_and_patch()

        compiler.revert()

        assert (package / "package.json").read_bytes() == original
        assert (package / "package.json.bak").read_bytes() == stale

    def test_existing_output_is_given_back(self, package, settings):
        (package / "index.dist.mjs").write_text("// hand-written shim\n")
        compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc())

        with patch.object(PackageManifest, "write", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                compiler.compile_and_patch()

        assert names(package) == ["index.dist.mjs"] + ORIGINAL_FILES
        assert (package / "index.dist.mjs").read_text() == "// hand-written shim\n"

    def test_revert_before_build_is_a_no_op(self, package, settings):
        compiler = TypeScriptCompiler(package, settings=settings, runner=FakeTsc())
        compiler.revert()
        assert compiler.state is BuildState.IDLE


def test_cannot_build_twice(package, settings):
    compiler = TypeScriptCompiler(package, settings=settings, dry_run=False, runner=FakeTsc())
    compiler.compile_and_patch()

    with pytest.raises(InvalidTransition):
        compiler.compile_and_patch()
