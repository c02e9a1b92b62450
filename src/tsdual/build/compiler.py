"""
Compile orchestrator.

Drives one compiler invocation per output format, patches the emitted
files, moves them next to the sources under their output extensions and
rewrites package.json to describe the dual-format package.

The run is an explicit state machine:

    IDLE -> MANIFEST_LOADED -> COMPILING -> PATCHING -> RELOCATING
         -> MANIFEST_REWRITTEN -> COMMITTED

A failure in any step from COMPILING on moves to REVERTED: every
generated file is deleted, or given back its previous contents when it
existed before the run. The scratch directories are removed and the
manifest is restored from its backup, then the error is re-raised.
A committed build can be reverted too (the publisher does this after
publishing). A package that should not be built moves to SKIPPED.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Type

from ..config import (
    CJS_CODE_EXT,
    CJS_MAP_EXT,
    CJS_TYPES_EXT,
    CJS_TYPES_MAP_EXT,
    ESM_CODE_EXT,
    ESM_MAP_EXT,
    ESM_TYPES_EXT,
    ESM_TYPES_MAP_EXT,
    SCRATCH_PREFIX,
    BuildSettings,
)
from ..core.errors import InvalidTransition, SkipPackage
from ..patching.patcher import (
    CjsCodePatcher,
    CjsDeclarationsPatcher,
    EsmCodePatcher,
    EsmDeclarationsPatcher,
    Patcher,
)
from .manifest import PackageManifest
from .runner import run_concurrently

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[Sequence[str]], Path], object]


class BuildState(StrEnum):
    IDLE = "idle"
    MANIFEST_LOADED = "manifest_loaded"
    SKIPPED = "skipped"
    COMPILING = "compiling"
    PATCHING = "patching"
    RELOCATING = "relocating"
    MANIFEST_REWRITTEN = "manifest_rewritten"
    COMMITTED = "committed"
    REVERTED = "reverted"


TRANSITIONS: Dict[BuildState, Set[BuildState]] = {
    BuildState.IDLE: {BuildState.MANIFEST_LOADED},
    BuildState.MANIFEST_LOADED: {BuildState.COMPILING, BuildState.SKIPPED},
    BuildState.SKIPPED: set(),
    BuildState.COMPILING: {BuildState.PATCHING, BuildState.REVERTED},
    BuildState.PATCHING: {BuildState.RELOCATING, BuildState.REVERTED},
    BuildState.RELOCATING: {BuildState.MANIFEST_REWRITTEN, BuildState.REVERTED},
    BuildState.MANIFEST_REWRITTEN: {BuildState.COMMITTED, BuildState.REVERTED},
    BuildState.COMMITTED: {BuildState.REVERTED},
    BuildState.REVERTED: set(),
}

# States after which files on disk may have changed
MUTATING_STATES = {
    BuildState.COMPILING,
    BuildState.PATCHING,
    BuildState.RELOCATING,
    BuildState.MANIFEST_REWRITTEN,
    BuildState.COMMITTED,
}


@dataclass(frozen=True)
class OutputFormat:
    """
    One compiler output and the names its files receive.

    ``types_ext`` is None when declarations are not emitted for the format.
    """

    name: str
    module: str
    target: str
    code_ext: str
    map_ext: str
    code_patcher: Type[Patcher]
    types_patcher: Type[Patcher]
    types_ext: Optional[str] = None
    types_map_ext: Optional[str] = None

    def renames(self) -> List[tuple]:
        """``(compiler suffix, output extension)`` pairs, longest suffix first."""
        return [
            (".d.ts.map", self.types_map_ext),
            (".d.ts", self.types_ext),
            (".js.map", self.map_ext),
            (".js", self.code_ext),
        ]


def esm_format(settings: BuildSettings, declarations: bool = True) -> OutputFormat:
    return OutputFormat(
        name="esm",
        module=settings.esm_module,
        target=settings.esm_target,
        code_ext=ESM_CODE_EXT,
        map_ext=ESM_MAP_EXT,
        code_patcher=EsmCodePatcher,
        types_patcher=EsmDeclarationsPatcher,
        types_ext=ESM_TYPES_EXT if declarations else None,
        types_map_ext=ESM_TYPES_MAP_EXT if declarations else None,
    )


def cjs_format(settings: BuildSettings, declarations: bool = False) -> OutputFormat:
    return OutputFormat(
        name="cjs",
        module=settings.cjs_module,
        target=settings.cjs_target,
        code_ext=CJS_CODE_EXT,
        map_ext=CJS_MAP_EXT,
        code_patcher=CjsCodePatcher,
        types_patcher=CjsDeclarationsPatcher,
        types_ext=CJS_TYPES_EXT if declarations else None,
        types_map_ext=CJS_TYPES_MAP_EXT if declarations else None,
    )


class TypeScriptCompiler:
    """
    Compiles a package into side-by-side ESM and CommonJS outputs.

    Attributes:
        cwd: Package root (where package.json lives).
        formats: Output formats to build.
        dry_run: Compile and patch in scratch only; nothing in the package changes.
        state: Current BuildState.
        generated: Files written in the package (for revert).
        replaced: Previous bytes of generated files that already existed.
        planned: Files a dry run would have created.
    """

    def __init__(
        self,
        cwd: Path,
        formats: Optional[Sequence[OutputFormat]] = None,
        settings: Optional[BuildSettings] = None,
        dry_run: bool = True,
        extra_args: Sequence[str] = (),
        source_maps: bool = True,
        runner: Runner = run_concurrently,
    ):
        self.cwd = Path(cwd).resolve()
        self.settings = settings or BuildSettings.from_env()
        self.formats = list(formats) if formats is not None else [
            esm_format(self.settings),
            cjs_format(self.settings),
        ]
        self.dry_run = dry_run
        self.extra_args = list(extra_args)
        self.source_maps = source_maps
        self.runner = runner

        self.state = BuildState.IDLE
        self.manifest: Optional[PackageManifest] = None
        self.generated: List[Path] = []
        self.replaced: Dict[Path, bytes] = {}
        self.planned: List[Path] = []
        self.patched: Dict[str, str] = {}
        self._scratch_root: Optional[Path] = None

    def __repr__(self) -> str:
        return f"TypeScriptCompiler({self.cwd}, {[f.name for f in self.formats]}, {self.state})"

    # --- State machine ---

    def _advance(self, state: BuildState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state, state)
        logger.debug(f"{self.cwd.name}: {self.state} -> {state}")
        self.state = state

    def compile_and_patch(self) -> List[Path]:
        """
        Run the whole build.

        Returns:
            Paths of the generated files (planned paths in dry-run mode),
            or an empty list when the package is skipped.

        Raises:
            AlreadyProcessed, WrongMainExtension: The manifest forbids a build.
            CompileFailed, PatchError: A step failed; the package was reverted.
        """
        self._advance(BuildState.MANIFEST_LOADED)
        manifest = PackageManifest.load(self.cwd)
        try:
            manifest.validate(self.settings.skip_fixed, self.settings.force_ts)
        except SkipPackage as e:
            self._advance(BuildState.SKIPPED)
            logger.info(f"Skipping {self.cwd}: {e}")
            return []
        self.manifest = manifest

        steps = [
            (BuildState.COMPILING, self._compile),
            (BuildState.PATCHING, self._patch),
            (BuildState.RELOCATING, self._relocate),
            (BuildState.MANIFEST_REWRITTEN, self._rewrite_manifest),
        ]
        for state, step in steps:
            self._advance(state)
            try:
                step()
            except Exception:
                logger.error(f"Build of {self.cwd} failed while {state}, reverting")
                self.revert()
                raise

        self._advance(BuildState.COMMITTED)
        self._remove_scratch()
        return list(self.planned if self.dry_run else self.generated)

    def revert(self) -> None:
        """Undo every change made to the package so far."""
        if self.state not in MUTATING_STATES:
            logger.debug(f"Nothing to revert in state {self.state}")
            return
        self._advance(BuildState.REVERTED)

        for path in reversed(self.generated):
            if path in self.replaced:
                path.write_bytes(self.replaced[path])
                logger.debug(f"Restored {path}")
            elif path.exists():
                path.unlink()
                logger.debug(f"Removed {path}")
        self.generated.clear()
        self.replaced.clear()
        self._remove_scratch()
        if self.manifest is not None:
            self.manifest.restore()
        logger.info(f"Reverted {self.cwd}")

    # --- Steps ---

    @property
    def scratch_root(self) -> Path:
        if self._scratch_root is None:
            self._scratch_root = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX))
        return self._scratch_root

    def scratch(self, output: OutputFormat) -> Path:
        return self.scratch_root / output.name

    def _remove_scratch(self) -> None:
        if self._scratch_root is not None and self._scratch_root.exists():
            shutil.rmtree(self._scratch_root)
        self._scratch_root = None

    def compile_command(self, output: OutputFormat) -> List[str]:
        command = [
            self.settings.tsc,
            "--outDir", str(self.scratch(output)),
            "--rootDir", ".",
            "--target", output.target,
            "--module", output.module,
        ]
        if self.source_maps:
            command.append("--sourceMap")
        if output.types_ext:
            command.append("--declaration")
            if self.source_maps:
                command.append("--declarationMap")
        return command + self.extra_args

    def _compile(self) -> None:
        commands = [self.compile_command(output) for output in self.formats]
        logger.info(f"Compiling {', '.join(o.name for o in self.formats)}")
        self.runner(commands, self.cwd)

    def _patchers(self, output: OutputFormat) -> List[Patcher]:
        scratch = self.scratch(output)
        if issubclass(output.code_patcher, CjsCodePatcher):
            code = output.code_patcher(scratch, ext=output.code_ext, dry_run=self.dry_run, source_dir=self.cwd)
        else:
            code = output.code_patcher(scratch, ext=output.code_ext, dry_run=self.dry_run)
        patchers = [code]
        if output.types_ext:
            patchers.append(output.types_patcher(scratch, ext=output.types_ext, dry_run=self.dry_run))
        return patchers

    def _patch(self) -> None:
        for output in self.formats:
            for patcher in self._patchers(output):
                self.patched.update(patcher.patch_all())

    def _relocate(self) -> None:
        for output in self.formats:
            scratch = self.scratch(output)
            if not scratch.exists():
                logger.warning(f"Compiler produced no {output.name} output")
                continue
            for path in sorted(scratch.rglob("*")):
                if not path.is_file():
                    continue
                relative = path.relative_to(scratch).as_posix()
                target = self._target_for(output, relative)
                if target is None:
                    logger.debug(f"Ignoring {output.name} output {relative}")
                    continue
                if self.dry_run:
                    self.planned.append(target)
                    logger.info(f"(dry run) would write {target.relative_to(self.cwd)}")
                    continue
                if target.exists() and target not in self.replaced:
                    self.replaced[target] = target.read_bytes()
                    logger.warning(f"Overwriting existing {target.relative_to(self.cwd)}")
                self.generated.append(target)
                shutil.copyfile(path, target)
                path.unlink()
                logger.debug(f"Wrote {target.relative_to(self.cwd)}")

    def _target_for(self, output: OutputFormat, relative: str) -> Optional[Path]:
        for suffix, ext in output.renames():
            if relative.endswith(suffix):
                return self.cwd / (relative[: -len(suffix)] + ext) if ext else None
        return None

    def _rewrite_manifest(self) -> None:
        names = {output.name for output in self.formats}
        types_ext = next((o.types_ext for o in self.formats if o.types_ext), None)
        produced = self.planned if self.dry_run else self.generated
        self.manifest.describe_outputs(
            esm="esm" in names,
            cjs="cjs" in names,
            types_ext=types_ext,
            generated=[p.relative_to(self.cwd).as_posix() for p in produced],
        )
        if self.dry_run:
            logger.info(f"(dry run) package.json would be:\n{self.manifest.dumps()}")
        else:
            self.manifest.write()
