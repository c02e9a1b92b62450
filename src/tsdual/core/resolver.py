"""
Module Graph Resolver.

Indexes a package directory into a graph of entries keyed by their
package-relative path, and maps relative module specifiers onto those
entries the way the TypeScript compiler would for a bundler-less package.

Resolution Strategy (for a relative specifier ``S`` imported from ``F``):
    1. ``dirname(F)/S`` is an indexed non-module file: return it (warning).
    2. ``dirname(F)/S.ts`` exists: return it. If ``S/index.ts`` also exists
       the flat file wins and a collision warning is logged.
    3. ``dirname(F)/S/index.ts`` exists: resolve ``S/index`` (warning).
    4. Otherwise the specifier is unresolved and an error is raised.

Non-relative specifiers (packages) always resolve to ``None``.
"""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..config import DATA_EXTENSION, INDEX_FILE, SOURCE_EXTENSION, is_ignored_directory
from ..parsing.base import is_relative
from .errors import InvalidSpecifier, UnresolvedSpecifier
from .types import Entry, EntryKind

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _kind_for(path: Path) -> EntryKind:
    if path.is_dir():
        return EntryKind.DIRECTORY
    if path.name.endswith(SOURCE_EXTENSION):
        return EntryKind.MODULE
    if path.name.endswith(DATA_EXTENSION):
        return EntryKind.DATA
    return EntryKind.FILE


class Resolver:
    """
    Graph of the files in one package.

    Attributes:
        root: Absolute package root directory.
        entries: Package-relative POSIX path -> Entry.
    """

    def __init__(self, root: PathLike):
        root = Path(root).resolve()
        if not root.is_dir():
            raise NotADirectoryError(f"Resolver root must be a directory: {root}")
        self.root = root
        self.entries: Dict[str, Entry] = {}

    def __repr__(self) -> str:
        return f"Resolver({self.root}, {len(self.entries)} entries)"

    # --- Loading ---

    def load(self, paths: Optional[Iterable[PathLike]] = None) -> "Resolver":
        """
        Index ``paths`` (default: every entry of the root) recursively.

        Calling ``load`` again extends the graph; already indexed entries
        keep their parse state.
        """
        if paths is None:
            paths = sorted(os.listdir(self.root))
        for path in paths:
            self._load_one(self.relative(path))
        return self

    def _load_one(self, relpath: str) -> Optional[Entry]:
        name = posixpath.basename(relpath)
        absolute = self.root / relpath
        if relpath in self.entries:
            entry = self.entries[relpath]
        elif not absolute.exists():
            raise FileNotFoundError(f"Cannot load {relpath}: no such file or directory")
        elif absolute.is_dir() and is_ignored_directory(name):
            logger.debug(f"Skipping {relpath}")
            return None
        else:
            entry = Entry(kind=_kind_for(absolute), relpath=relpath, resolver=self)
            self.entries[relpath] = entry
            logger.debug(f"Indexed {entry.kind} {relpath}")

        if entry.kind is EntryKind.DIRECTORY:
            for child in sorted(os.listdir(absolute)):
                child_path = posixpath.join(relpath, child) if relpath else child
                if self._load_one(child_path) is not None and child_path not in entry.children:
                    entry.children.append(child_path)
        return entry

    def relative(self, path: PathLike) -> str:
        """Convert a path (absolute or relative to the root) into a graph key."""
        path = Path(path)
        if path.is_absolute():
            path = path.resolve().relative_to(self.root)
        key = posixpath.normpath(path.as_posix())
        return "" if key == "." else key

    # --- Queries ---

    def get(self, path: PathLike) -> Optional[Entry]:
        return self.entries.get(self.relative(path))

    def modules(self) -> List[Entry]:
        """Every MODULE entry, in path order."""
        return [
            entry for key, entry in sorted(self.entries.items())
            if entry.kind is EntryKind.MODULE
        ]

    def _module_at(self, relpath: str) -> Optional[Entry]:
        entry = self.entries.get(relpath)
        if entry is not None and entry.kind is EntryKind.MODULE:
            return entry
        return None

    def resolve(self, source: PathLike, specifier: str) -> Optional[Entry]:
        """
        Resolve ``specifier`` as imported from the module at ``source``.

        Args:
            source: Path of the importing module (absolute or package-relative).
            specifier: The module specifier as written.

        Returns:
            The resolved leaf entry, or None for non-relative specifiers.

        Raises:
            InvalidSpecifier: If the specifier ends in the source extension.
            UnresolvedSpecifier: If no candidate exists.
        """
        if not is_relative(specifier):
            return None

        source_key = self.relative(source)
        if specifier.endswith(SOURCE_EXTENSION):
            raise InvalidSpecifier(specifier, source_key)

        joined = posixpath.normpath(posixpath.join(posixpath.dirname(source_key), specifier))
        key = "" if joined == "." else joined
        index_key = posixpath.join(key, INDEX_FILE) if key else INDEX_FILE

        entry = self.entries.get(key)
        if entry is not None and entry.kind in (EntryKind.FILE, EntryKind.DATA):
            logger.warning(f'{source_key}: non-TS import "{specifier}" -> {key}')
            return entry

        module = self._module_at(key + SOURCE_EXTENSION) if key else None
        if module is not None:
            if self._module_at(index_key) is not None:
                logger.warning(
                    f'{source_key}: "{specifier}" matches both {key}{SOURCE_EXTENSION} '
                    f"and {index_key}; using {key}{SOURCE_EXTENSION}"
                )
            return module

        if self._module_at(index_key) is not None:
            logger.warning(f'{source_key}: directory import "{specifier}" -> {index_key}')
            return self.resolve(source_key, index_specifier(specifier))

        raise UnresolvedSpecifier(specifier, source_key)


def index_specifier(specifier: str) -> str:
    """Append the explicit ``index`` segment to a directory specifier."""
    if specifier.endswith("/"):
        return specifier + "index"
    return specifier + "/index"
