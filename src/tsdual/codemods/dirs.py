"""
Directory-index normalizer.

Rewrites ``import x from "./dir"`` into ``import x from "./dir/index"``
whenever the specifier only resolves through the directory fallback, since
ES modules have no implicit directory index.
"""

import logging
import posixpath
from typing import Optional

from ..config import INDEX_FILE
from ..core.resolver import Resolver, index_specifier
from ..core.types import Entry
from ..parsing.base import SourceEdit, apply_edits, quote_like, specifier_statements, string_value
from .base import PatchRecord, commit

logger = logging.getLogger(__name__)


def normalized_specifier(entry: Entry, specifier: str) -> Optional[str]:
    """
    Return the explicit ``/index`` form of ``specifier``, or None if it is fine.

    Raises:
        UnresolvedSpecifier: If a relative specifier resolves to nothing.
    """
    target = entry.resolver.resolve(entry.relpath, specifier)
    if target is None:
        return None
    if posixpath.basename(target.relpath) != INDEX_FILE:
        return None
    if specifier.endswith("/index"):
        return None
    return index_specifier(specifier)


def rewrite_dirs(entry: Entry) -> bytes:
    """Return the module source with every directory specifier made explicit."""
    module = entry.module
    edits = []
    for _, source in specifier_statements(module.tree):
        specifier = string_value(source)
        fixed = normalized_specifier(entry, specifier)
        if fixed is not None:
            logger.debug(f'{entry.relpath}: "{specifier}" -> "{fixed}"')
            edits.append(SourceEdit.replace(source, quote_like(source, fixed)))
    return apply_edits(module.source, edits)


def fix_import_dirs(resolver: Resolver, dry_run: bool = True) -> PatchRecord:
    """
    Normalize directory imports in every module of ``resolver``.

    Only modules that change are recorded and written.
    """
    record: PatchRecord = {}
    for entry in resolver.modules():
        commit(entry, rewrite_dirs(entry), dry_run, record)
    return record
