"""
Core Type Definitions.

Defines the entries of the module graph and the per-module declaration
sets shared by the resolver, the declaration extractor and the binding
classifier.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

if TYPE_CHECKING:
    from ..parsing.declarations import ModuleSource
    from .resolver import Resolver

# specifier -> {local or exported name -> remote name}
BindingMap = Dict[str, Dict[str, str]]


class EntryKind(StrEnum):
    """
    Kinds of filesystem entries in the module graph.

    Attributes:
        FILE: Any file that is neither a module nor data.
        DATA: A parseable ``.json`` file.
        MODULE: A ``.ts`` source module with declarations.
        DIRECTORY: A directory whose children are indexed recursively.
    """

    FILE = "file"
    DATA = "data"
    MODULE = "module"
    DIRECTORY = "directory"


class ParseState(StrEnum):
    """Lifecycle of a module's declaration sets."""

    UNPARSED = "unparsed"
    PARSING = "parsing"
    PARSED = "parsed"


@dataclass(frozen=True)
class DeclarationSets:
    """
    Import/export bindings of one module, partitioned into values and types.

    Instances are snapshots: the classifier returns a new instance built
    with ``with_maps`` instead of editing one in place.
    """

    value_imports: BindingMap = field(default_factory=dict)
    type_imports: BindingMap = field(default_factory=dict)
    value_exports: Set[str] = field(default_factory=set)
    type_exports: Set[str] = field(default_factory=set)
    value_reexports: BindingMap = field(default_factory=dict)
    type_reexports: BindingMap = field(default_factory=dict)

    def with_maps(self, **changes: Any) -> "DeclarationSets":
        return replace(self, **changes)


def copy_bindings(bindings: BindingMap) -> BindingMap:
    return {specifier: dict(names) for specifier, names in bindings.items()}


@dataclass(eq=False)
class Entry:
    """
    A node of the module graph.

    Attributes:
        kind: Which kind of filesystem entry this is.
        relpath: Package-relative POSIX path; the entry's identity.
        resolver: The owning graph (not owned by the entry).
        children: Package-relative paths of a directory's children.
    """

    kind: EntryKind
    relpath: str
    resolver: "Resolver" = field(repr=False)
    children: List[str] = field(default_factory=list, repr=False)
    _module: Optional["ModuleSource"] = field(default=None, repr=False)

    @property
    def path(self) -> Path:
        """Absolute filesystem path."""
        return self.resolver.root / self.relpath

    @property
    def module(self) -> "ModuleSource":
        """The parsed-on-demand source of a MODULE entry."""
        if self.kind is not EntryKind.MODULE:
            raise TypeError(f"{self.relpath} is a {self.kind} entry, not a module")
        if self._module is None:
            from ..parsing.declarations import ModuleSource

            self._module = ModuleSource(self)
        return self._module

    def load_data(self) -> Any:
        """Parse a DATA entry as JSON."""
        if self.kind is not EntryKind.DATA:
            raise TypeError(f"{self.relpath} is a {self.kind} entry, not data")
        return json.loads(self.path.read_text(encoding="utf-8"))
