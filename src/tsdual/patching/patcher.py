"""
Output Patchers.

After the compiler has emitted a format, every relative module reference
in the emitted files still points at the extensionless source name
(``./lib``). Node's ESM loader and the dual-package layout need the real
output name (``./lib.dist.mjs``), so each output format gets a patcher:

- ``EsmCodePatcher``: ``import``/``export ... from`` and ``import("...")``
  in ``.js`` files emitted as ES modules.
- ``EsmDeclarationsPatcher``: the same declarations in ``.d.ts`` files;
  they point at ``./lib.dist`` so TypeScript picks ``lib.dist.d.mts``.
- ``CjsCodePatcher``: ``require("./lib")`` calls, only when ``lib.ts``
  exists next to the source; other argument shapes are reported.
- ``CjsDeclarationsPatcher``: not implemented.

Patchers collect a record of ``absolute path -> new text`` and only write
when not in dry-run mode. Rewritten literals are double-quoted.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from tree_sitter import Tree

from ..config import (
    CJS_CODE_EXT,
    CJS_TYPES_EXT,
    DIST_SUFFIX,
    ESM_CODE_EXT,
    ESM_TYPES_EXT,
    SOURCE_EXTENSION,
    is_ignored_directory,
)
from ..core.errors import PatchNotImplemented
from ..parsing.base import (
    RELATIVE_PREFIXES,
    SourceEdit,
    apply_edits,
    double_quoted,
    language,
    node_text,
    parse_source,
    specifier_statements,
    string_value,
)

logger = logging.getLogger(__name__)

# Dynamic import("...") with a string literal as first argument
DYNAMIC_IMPORT_QUERY = """
(call_expression
  function: (import)
  arguments: (arguments . (string) @specifier))
"""

# Every require(...) call
REQUIRE_QUERY = """
(call_expression
  function: (identifier) @_require
  arguments: (arguments) @arguments
  (#eq? @_require "require"))
"""

PathLike = Union[str, Path]


@dataclass
class UnsupportedLoad:
    """A module load the CommonJS patcher could not interpret."""

    file: str
    line: int
    column: int
    text: str


class Patcher(ABC):
    """
    Base class for output patchers.

    Attributes:
        cwd: Directory the glob is evaluated in and relative files resolve against.
        glob: Pattern selecting the files to patch.
        ext: Output extension appended to matching specifiers.
        dry_run: When True nothing is written.
        patched: Record of absolute path -> rewritten text.
    """

    language_name = "javascript"
    default_glob = "**/*.js"
    default_ext = ""

    def __init__(
        self,
        cwd: PathLike,
        ext: Optional[str] = None,
        glob: Optional[str] = None,
        dry_run: bool = True,
    ):
        self.cwd = Path(cwd)
        self.ext = ext or self.default_ext
        self.glob = glob or self.default_glob
        self.dry_run = dry_run
        self.patched: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cwd}, {self.glob!r} -> {self.ext!r})"

    def files(self) -> List[Path]:
        """Files matched by the glob, excluding ignored directories."""
        matches = []
        for path in sorted(self.cwd.glob(self.glob)):
            parts = path.relative_to(self.cwd).parts[:-1]
            if path.is_file() and not any(is_ignored_directory(p) for p in parts):
                matches.append(path)
        return matches

    def patch_all(self) -> dict[str, str]:
        """Patch every matching file and return the accumulated record."""
        files = self.files()
        total = len(files)
        for index, path in enumerate(files, start=1):
            self.patch(path, index=index, total=total)
        logger.info(f"{type(self).__name__}: patched {len(self.patched)} of {total} files")
        return self.patched

    def patch(
        self,
        file: PathLike,
        source: Optional[str] = None,
        index: int = 0,
        total: int = 0,
    ) -> dict[str, str]:
        """
        Patch one file.

        Args:
            file: Path of the file, absolute or relative to ``cwd``.
            source: File contents; read from disk when omitted.
            index: Position of the file in the current batch (for logging).
            total: Size of the current batch (for logging).

        Returns:
            The accumulated patch record.
        """
        path = self.cwd / file
        if source is None:
            source = path.read_text(encoding="utf-8")

        data = source.encode("utf-8")
        tree = parse_source(data, self.language_name, label=str(path))
        edits = list(self.edits(path, tree))
        if not edits:
            logger.debug(f"[{index}/{total}] {path}: nothing to patch")
            return self.patched

        rewritten = apply_edits(data, edits).decode("utf-8")
        self.patched[str(path)] = rewritten
        if self.dry_run:
            logger.info(f"[{index}/{total}] (dry run) would patch {path}")
        else:
            path.write_text(rewritten, encoding="utf-8")
            logger.info(f"[{index}/{total}] patched {path}")
        return self.patched

    @abstractmethod
    def edits(self, path: Path, tree: Tree) -> Iterator[SourceEdit]:
        """Yield the edits for one parsed file."""


class EsmCodePatcher(Patcher):
    """Appends the ESM output extension to relative imports and exports."""

    default_ext = ESM_CODE_EXT

    def wants(self, specifier: str) -> bool:
        return specifier.startswith(RELATIVE_PREFIXES) and not specifier.endswith(self.ext)

    def edits(self, path: Path, tree: Tree) -> Iterator[SourceEdit]:
        for _, source in specifier_statements(tree):
            specifier = string_value(source)
            if self.wants(specifier):
                yield SourceEdit.replace(source, double_quoted(specifier + self.ext))

        query = language(self.language_name).query(DYNAMIC_IMPORT_QUERY)
        for node, _ in query.captures(tree.root_node):
            specifier = string_value(node)
            if self.wants(specifier):
                yield SourceEdit.replace(node, double_quoted(specifier + self.ext))


class EsmDeclarationsPatcher(Patcher):
    """Points relative references in declaration files at the ``.dist`` outputs."""

    language_name = "typescript"
    default_glob = "**/*.d.ts"
    default_ext = ESM_TYPES_EXT

    def wants(self, specifier: str) -> bool:
        return (
            specifier.startswith(RELATIVE_PREFIXES)
            and not specifier.endswith(self.ext)
            and not specifier.endswith(DIST_SUFFIX)
        )

    def edits(self, path: Path, tree: Tree) -> Iterator[SourceEdit]:
        for _, source in specifier_statements(tree):
            specifier = string_value(source)
            if self.wants(specifier):
                yield SourceEdit.replace(source, double_quoted(specifier + DIST_SUFFIX))


class CjsCodePatcher(Patcher):
    """
    Appends the CommonJS output extension to ``require`` calls.

    Only a single string-literal argument is understood, and it is only
    patched when the ``.ts`` file it names exists under ``source_dir``
    (defaults to ``cwd``), mirroring the emitted file's own location.
    Every other shape is left untouched and collected in ``unsupported``.
    """

    default_ext = CJS_CODE_EXT

    def __init__(
        self,
        cwd: PathLike,
        ext: Optional[str] = None,
        glob: Optional[str] = None,
        dry_run: bool = True,
        source_dir: Optional[PathLike] = None,
    ):
        super().__init__(cwd, ext=ext, glob=glob, dry_run=dry_run)
        self.source_dir = Path(source_dir) if source_dir is not None else self.cwd
        self.unsupported: List[UnsupportedLoad] = []

    def _source_candidate(self, path: Path, specifier: str) -> Path:
        relative_dir = os.path.relpath(path.parent, self.cwd)
        return Path(os.path.normpath(self.source_dir / relative_dir / (specifier + SOURCE_EXTENSION)))

    def edits(self, path: Path, tree: Tree) -> Iterator[SourceEdit]:
        query = language(self.language_name).query(REQUIRE_QUERY)
        for node, capture in query.captures(tree.root_node):
            if capture != "arguments":
                continue
            if node_text(node.parent.child_by_field_name("function")) != "require":
                continue
            arguments = [a for a in node.named_children if a.type != "comment"]

            if len(arguments) != 1 or arguments[0].type != "string":
                call = node.parent
                load = UnsupportedLoad(
                    file=str(path),
                    line=call.start_point[0] + 1,
                    column=call.start_point[1],
                    text=node_text(call),
                )
                self.unsupported.append(load)
                logger.warning(f"{path}:{load.line}: unsupported dynamic require: {load.text}")
                continue

            literal = arguments[0]
            specifier = string_value(literal)
            if not specifier.startswith(RELATIVE_PREFIXES) or specifier.endswith(self.ext):
                continue

            candidate = self._source_candidate(path, specifier)
            if not candidate.exists():
                logger.warning(f"{path}: require(\"{specifier}\") has no source at {candidate}, not patching")
                continue
            yield SourceEdit.replace(literal, double_quoted(specifier + self.ext))


class CjsDeclarationsPatcher(Patcher):
    """CommonJS declaration outputs cannot be patched yet."""

    language_name = "typescript"
    default_glob = "**/*.d.ts"
    default_ext = CJS_TYPES_EXT

    def patch_all(self) -> dict[str, str]:
        raise PatchNotImplemented("CommonJS declaration")

    def edits(self, path: Path, tree: Tree) -> Iterator[SourceEdit]:
        raise PatchNotImplemented("CommonJS declaration")
