"""
Package merge codemod.

When sub-packages are folded into their parent, imports of the form
``"<sub-package name>/lib/x"`` have to become relative paths into the
sub-package directory. Each sub-package's name is read from its own
package.json.
"""

import logging
import posixpath
from typing import Dict, Iterable, List, Optional

from ..config import MANIFEST_NAME
from ..core.errors import ManifestError
from ..core.resolver import Resolver
from ..core.types import Entry, EntryKind
from ..parsing.base import SourceEdit, apply_edits, quote_like, specifier_statements, string_value
from .base import PatchRecord, commit

logger = logging.getLogger(__name__)


def package_names(resolver: Resolver, directories: Iterable[str]) -> Dict[str, str]:
    """
    Map each sub-package name to its package-relative directory.

    Raises:
        FileNotFoundError: If a directory has no package.json.
        ManifestError: If a package.json is not in the graph or has no name.
    """
    names: Dict[str, str] = {}
    for directory in directories:
        relpath = resolver.relative(directory)
        manifest = posixpath.join(relpath, MANIFEST_NAME) if relpath else MANIFEST_NAME
        entry = resolver.get(manifest)
        if entry is None:
            entry = resolver.load([manifest]).get(manifest)
        if entry is None or entry.kind is not EntryKind.DATA:
            raise ManifestError(f"{manifest} is missing from the package graph")
        name = entry.load_data().get("name")
        if not name:
            raise ManifestError(f"{manifest} has no \"name\"")
        names[name] = relpath
        logger.debug(f"{name} -> {relpath}")
    return names


def redirect(entry: Entry, specifier: str, names: Dict[str, str]) -> Optional[str]:
    """Return the relative replacement for ``specifier``, or None."""
    for name, directory in names.items():
        prefix = name + "/"
        if not specifier.startswith(prefix):
            continue
        target = posixpath.join(directory, specifier[len(prefix):])
        relative = posixpath.relpath(target, posixpath.dirname(entry.relpath) or ".")
        return relative if relative.startswith(".") else "./" + relative
    return None


def rewrite_package_imports(entry: Entry, names: Dict[str, str]) -> bytes:
    module = entry.module
    edits: List[SourceEdit] = []
    for _, source in specifier_statements(module.tree):
        specifier = string_value(source)
        replacement = redirect(entry, specifier, names)
        if replacement is not None:
            logger.debug(f'{entry.relpath}: "{specifier}" -> "{replacement}"')
            edits.append(SourceEdit.replace(source, quote_like(source, replacement)))
    return apply_edits(module.source, edits)


def merge_packages(resolver: Resolver, directories: Iterable[str], dry_run: bool = True) -> PatchRecord:
    """Rewrite imports of the given sub-packages into relative paths."""
    names = package_names(resolver, directories)
    record: PatchRecord = {}
    for entry in resolver.modules():
        commit(entry, rewrite_package_imports(entry, names), dry_run, record)
    return record
