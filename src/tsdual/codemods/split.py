"""
Binding Classifier and Type-Import Splitter.

Cross-checks every value import and value re-export of a module against
what the target module really exports. Bindings that only exist as types
in the target move into the type maps, and the module is re-printed so
those bindings get their own ``import type`` / ``export type`` declaration:

    import { Foo, Bar, Baz } from './mixed'

becomes, when ``Bar`` and ``Baz`` are types in ``mixed.ts``:

    import { Foo } from './mixed'
    import type { Bar, Baz } from './mixed'

Directory specifiers are made explicit on the way (see ``dirs``).
"""

import logging
from typing import List, Optional, Set

from tree_sitter import Node

from ..core.errors import UnresolvedBinding
from ..core.resolver import Resolver
from ..core.types import BindingMap, DeclarationSets, Entry, EntryKind, copy_bindings
from ..parsing.base import (
    SourceEdit,
    apply_edits,
    first_child_of_type,
    has_keyword,
    line_indent,
    node_text,
    quote_like,
    specifier_statements,
    string_value,
)
from ..parsing.declarations import is_inline_type, specifier_names
from .base import PatchRecord, commit
from .dirs import normalized_specifier

logger = logging.getLogger(__name__)

IMPORTING = "importing from"
REEXPORTING = "re-exporting through"


# --- Classification ---


def classify(entry: Entry) -> DeclarationSets:
    """
    Return a new snapshot of ``entry``'s declarations with misfiled bindings moved.

    Raises:
        UnresolvedSpecifier: If a relative target does not exist.
        UnresolvedBinding: If a name is exported neither as value nor as type.
    """
    declarations = entry.module.declarations
    value_imports = copy_bindings(declarations.value_imports)
    type_imports = copy_bindings(declarations.type_imports)
    value_reexports = copy_bindings(declarations.value_reexports)
    type_reexports = copy_bindings(declarations.type_reexports)

    _reclassify(entry, declarations.value_imports, value_imports, type_imports, IMPORTING)
    moved = _reclassify(entry, declarations.value_reexports, value_reexports, type_reexports, REEXPORTING)

    return declarations.with_maps(
        value_imports=value_imports,
        type_imports=type_imports,
        value_exports=declarations.value_exports - moved,
        type_exports=declarations.type_exports | moved,
        value_reexports=value_reexports,
        type_reexports=type_reexports,
    )


def _reclassify(
    entry: Entry,
    original: BindingMap,
    values: BindingMap,
    types: BindingMap,
    mode: str,
) -> Set[str]:
    """Move type-only bindings from ``values`` to ``types``; return the moved local names."""
    moved: Set[str] = set()
    for specifier, bindings in original.items():
        target = entry.resolver.resolve(entry.relpath, specifier)
        if target is None or target.kind is not EntryKind.MODULE:
            continue

        exported = target.module.declarations
        for local, remote in bindings.items():
            if remote in exported.value_exports:
                continue
            if remote not in exported.type_exports:
                raise UnresolvedBinding(remote, target.relpath, mode, entry.relpath)

            logger.debug(f"{entry.relpath}: {local} ({mode} {target.relpath}) is a type")
            del values[specifier][local]
            types.setdefault(specifier, {})[local] = remote
            moved.add(local)
    return moved


# --- Printing ---


def _terminator(statement: Node) -> str:
    return ";" if node_text(statement).rstrip().endswith(";") else ""


def _literal(entry: Entry, source: Node) -> Optional[str]:
    """Directory-normalized replacement literal, or None when unchanged."""
    fixed = normalized_specifier(entry, string_value(source))
    return quote_like(source, fixed) if fixed is not None else None


def _split_import(entry: Entry, statement: Node, source: Node, declarations: DeclarationSets) -> List[SourceEdit]:
    literal = _literal(entry, source)
    edits = [SourceEdit.replace(source, literal)] if literal else []
    literal = literal or node_text(source)

    moved_names = declarations.type_imports.get(string_value(source), {})
    clause = first_child_of_type(statement, "import_clause")
    if has_keyword(statement, "type") or clause is None or not moved_names:
        return edits

    default = first_child_of_type(clause, "identifier")
    namespace = first_child_of_type(clause, "namespace_import")
    named = first_child_of_type(clause, "named_imports")
    specifiers = [s for s in named.named_children if s.type == "import_specifier"] if named else []

    default_moved = default is not None and node_text(default) in moved_names
    moved = [s for s in specifiers if not is_inline_type(s) and specifier_names(s)[1] in moved_names]
    moved_at = {s.start_byte for s in moved}
    kept = [s for s in specifiers if s.start_byte not in moved_at]
    if not default_moved and not moved:
        return edits

    only_default = default is not None and named is None and namespace is None
    only_named = default is None and namespace is None and not kept
    if (only_default and default_moved) or (only_named and moved):
        keyword = statement.children[0]
        return [SourceEdit.insert(keyword.end_byte, " type")] + edits

    end = _terminator(statement)
    value_parts = []
    if default is not None and not default_moved:
        value_parts.append(node_text(default))
    if namespace is not None:
        value_parts.append(node_text(namespace))
    if kept:
        value_parts.append("{ " + ", ".join(node_text(s) for s in kept) + " }")

    lines = []
    if value_parts:
        lines.append(f"import {', '.join(value_parts)} from {literal}{end}")
    if default_moved:
        lines.append(f"import type {node_text(default)} from {literal}{end}")
    if moved:
        lines.append(f"import type {{ {', '.join(node_text(s) for s in moved)} }} from {literal}{end}")

    indent = line_indent(entry.module.source, statement)
    return [SourceEdit.replace(statement, ("\n" + indent).join(lines))]


def _split_reexport(entry: Entry, statement: Node, source: Node, declarations: DeclarationSets) -> List[SourceEdit]:
    literal = _literal(entry, source)
    edits = [SourceEdit.replace(source, literal)] if literal else []
    literal = literal or node_text(source)

    moved_names = declarations.type_reexports.get(string_value(source), {})
    clause = first_child_of_type(statement, "export_clause")
    if has_keyword(statement, "type") or clause is None or not moved_names:
        return edits

    specifiers = [s for s in clause.named_children if s.type == "export_specifier"]
    moved = [s for s in specifiers if not is_inline_type(s) and specifier_names(s)[1] in moved_names]
    moved_at = {s.start_byte for s in moved}
    kept = [s for s in specifiers if s.start_byte not in moved_at]
    if not moved:
        return edits
    if not kept:
        keyword = statement.children[0]
        return [SourceEdit.insert(keyword.end_byte, " type")] + edits

    end = _terminator(statement)
    indent = line_indent(entry.module.source, statement)
    lines = [
        f"export {{ {', '.join(node_text(s) for s in kept)} }} from {literal}{end}",
        f"export type {{ {', '.join(node_text(s) for s in moved)} }} from {literal}{end}",
    ]
    return [SourceEdit.replace(statement, ("\n" + indent).join(lines))]


def render_split(entry: Entry) -> bytes:
    """Print ``entry`` with type bindings separated, according to its current snapshot."""
    module = entry.module
    declarations = module.declarations
    edits: List[SourceEdit] = []
    for statement, source in specifier_statements(module.tree):
        if statement.type == "import_statement":
            edits.extend(_split_import(entry, statement, source, declarations))
        else:
            edits.extend(_split_reexport(entry, statement, source, declarations))
    return apply_edits(module.source, edits)


def split_types(resolver: Resolver, dry_run: bool = True) -> PatchRecord:
    """
    Classify every module of ``resolver`` and rewrite the ones that change.

    All modules are classified before any is printed, so a failure leaves
    every file untouched. Classification repeats until no snapshot
    changes: a re-export that turns out to be a type makes the name a type
    export of its module, which can move bindings in the modules importing it.
    """
    modules = resolver.modules()
    passes = 0
    changed = True
    while changed:
        changed = False
        passes += 1
        for entry in modules:
            declarations = classify(entry)
            if declarations != entry.module.declarations:
                entry.module.update(declarations)
                changed = True
    logger.debug(f"Classification settled after {passes} passes")

    record: PatchRecord = {}
    for entry in modules:
        commit(entry, render_split(entry), dry_run, record)
    logger.info(f"Split types in {len(record)} of {len(modules)} modules")
    return record
