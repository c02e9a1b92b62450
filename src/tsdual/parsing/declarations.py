"""
Declaration Extractor.

Walks the top-level statements of a TypeScript module and records which
names it imports and exports, and whether each binding is a value or a
type, into a ``DeclarationSets`` snapshot:

- ``import x, { a as b } from "./m"`` -> value_imports["./m"] = {x: default, b: a}
- ``import type { T } from "./m"``    -> type_imports["./m"] = {T: T}
- ``export const a = 1``              -> value_exports {a}
- ``export interface I {}``           -> type_exports {I}
- ``export { a as b } from "./m"``    -> value_exports {b}, value_reexports["./m"] = {b: a}
- ``export * from "./m"``             -> the target's export sets, name for name

Namespace imports (``* as ns``) bind no individual names and are not
recorded.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node, Tree

from ..core.errors import CircularReexport
from ..core.types import BindingMap, DeclarationSets, EntryKind, ParseState
from .base import (
    first_child_of_type,
    has_keyword,
    node_text,
    parse_source,
    string_value,
    top_level_statements,
)

if TYPE_CHECKING:
    from ..core.types import Entry

logger = logging.getLogger(__name__)

TYPE_DECLARATIONS = {"interface_declaration", "type_alias_declaration"}
VARIABLE_DECLARATIONS = {"lexical_declaration", "variable_declaration"}


def binding_name(node: Node) -> str:
    """Name of an identifier or string-literal module export name."""
    if node.type == "string":
        return string_value(node)
    return node_text(node)


def specifier_names(specifier: Node) -> Tuple[str, str]:
    """
    Return ``(remote, local)`` for an import or export specifier.

    For ``a as b`` that is ``("a", "b")``; without an alias both are ``a``.
    """
    name = specifier.child_by_field_name("name")
    alias = specifier.child_by_field_name("alias")
    remote = binding_name(name) if name is not None else ""
    local = binding_name(alias) if alias is not None else remote
    return remote, local


def is_inline_type(specifier: Node) -> bool:
    """Check for ``{ type X }`` style specifiers."""
    return has_keyword(specifier, "type")


def recovered_tokens(node: Node) -> List[str]:
    """
    Tokens the grammar could not place under ``node``.

    The bundled grammar predates ``export type * from "m"`` and parses the
    ``type`` (and sometimes the ``*``) into an ERROR child.
    """
    tokens: List[str] = []
    for child in node.children:
        if child.type == "ERROR":
            tokens.extend(re.findall(r"[\w$]+|\*", node_text(child)))
    return tokens


def _pattern_names(node: Node) -> Iterator[str]:
    if node.type in ("identifier", "shorthand_property_identifier_pattern"):
        yield node_text(node)
    elif node.type == "pair_pattern":
        value = node.child_by_field_name("value")
        if value is not None:
            yield from _pattern_names(value)
    elif node.type == "assignment_pattern":
        left = node.child_by_field_name("left")
        if left is not None:
            yield from _pattern_names(left)
    elif node.type in ("object_pattern", "array_pattern", "rest_pattern", "object_assignment_pattern"):
        for child in node.named_children:
            yield from _pattern_names(child)


def declared_names(declaration: Node) -> Iterator[Tuple[str, bool]]:
    """Yield ``(name, is_type)`` for every name a declaration introduces."""
    kind = declaration.type
    if kind == "ambient_declaration":
        for child in declaration.named_children:
            yield from declared_names(child)
    elif kind in TYPE_DECLARATIONS:
        name = declaration.child_by_field_name("name")
        if name is not None:
            yield node_text(name), True
    elif kind in VARIABLE_DECLARATIONS:
        for declarator in declaration.named_children:
            if declarator.type == "variable_declarator":
                pattern = declarator.child_by_field_name("name")
                if pattern is not None:
                    for name in _pattern_names(pattern):
                        yield name, False
    else:
        name = declaration.child_by_field_name("name")
        if name is None or name.type == "string":
            return
        if name.type == "nested_identifier":
            # namespace a.b.c {} exports a
            name = name.named_children[0]
            while name.type == "nested_identifier":
                name = name.named_children[0]
        yield node_text(name), False


class ModuleSource:
    """
    Source text, syntax tree and declaration sets of one MODULE entry.

    Declarations are extracted on first access. While extraction is in
    progress the module is in the PARSING state; reaching it again through
    an ``export *`` chain means the chain is circular.
    """

    def __init__(self, entry: "Entry"):
        self.entry = entry
        self.state = ParseState.UNPARSED
        self._source: Optional[bytes] = None
        self._tree: Optional[Tree] = None
        self._declarations: Optional[DeclarationSets] = None

    def __repr__(self) -> str:
        return f"ModuleSource({self.entry.relpath}, {self.state})"

    @property
    def source(self) -> bytes:
        if self._source is None:
            self._source = self.entry.path.read_bytes()
        return self._source

    @property
    def tree(self) -> Tree:
        if self._tree is None:
            self._tree = parse_source(self.source, "typescript", label=self.entry.relpath)
        return self._tree

    @property
    def declarations(self) -> DeclarationSets:
        if self.state is ParseState.PARSED:
            return self._declarations
        if self.state is ParseState.PARSING:
            raise CircularReexport(self.entry.relpath)

        self.state = ParseState.PARSING
        try:
            declarations = DeclarationExtractor(self).extract()
        except Exception:
            self.state = ParseState.UNPARSED
            raise
        self._declarations = declarations
        self.state = ParseState.PARSED
        return declarations

    def update(self, declarations: DeclarationSets) -> None:
        """Replace the declaration snapshot (after classification)."""
        if self.state is not ParseState.PARSED:
            raise RuntimeError(f"{self.entry.relpath} must be parsed before it is updated")
        self._declarations = declarations

    def replace_source(self, source: bytes) -> None:
        """Adopt rewritten source text; the syntax tree is rebuilt lazily."""
        self._source = source
        self._tree = None


class DeclarationExtractor:
    """Collects the declaration sets of a single module."""

    def __init__(self, module: ModuleSource):
        self.module = module
        self.entry = module.entry
        self.value_imports: BindingMap = {}
        self.type_imports: BindingMap = {}
        self.value_exports: Set[str] = set()
        self.type_exports: Set[str] = set()
        self.value_reexports: BindingMap = {}
        self.type_reexports: BindingMap = {}

    def extract(self) -> DeclarationSets:
        for statement in top_level_statements(self.module.tree):
            if statement.type == "import_statement":
                self._import(statement)
            elif statement.type == "export_statement":
                self._export(statement)

        logger.debug(f"{self.entry.relpath}: {len(self.value_exports)} value exports, "
                     f"{len(self.type_exports)} type exports")
        return DeclarationSets(
            value_imports=self.value_imports,
            type_imports=self.type_imports,
            value_exports=self.value_exports,
            type_exports=self.type_exports,
            value_reexports=self.value_reexports,
            type_reexports=self.type_reexports,
        )

    def _import(self, node: Node) -> None:
        source = node.child_by_field_name("source")
        if source is None:
            # import x = require("...")
            return
        specifier = string_value(source)
        type_only = has_keyword(node, "type")
        bindings = (self.type_imports if type_only else self.value_imports).setdefault(specifier, {})

        clause = first_child_of_type(node, "import_clause")
        if clause is None:
            return

        for child in clause.named_children:
            if child.type == "identifier":
                bindings[node_text(child)] = "default"
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    remote, local = specifier_names(spec)
                    if is_inline_type(spec) and not type_only:
                        self.type_imports.setdefault(specifier, {})[local] = remote
                    else:
                        bindings[local] = remote

    def _export(self, node: Node) -> None:
        declaration = node.child_by_field_name("declaration")
        source = node.child_by_field_name("source")

        if has_keyword(node, "default"):
            if declaration is not None and declaration.type in TYPE_DECLARATIONS:
                self.type_exports.add("default")
            else:
                self.value_exports.add("default")
            return

        if declaration is not None:
            for name, is_type in declared_names(declaration):
                (self.type_exports if is_type else self.value_exports).add(name)
            return

        recovered = recovered_tokens(node)
        type_only = has_keyword(node, "type") or "type" in recovered
        exports = self.type_exports if type_only else self.value_exports
        clause = first_child_of_type(node, "export_clause")
        namespace = first_child_of_type(node, "namespace_export")

        if source is None:
            if clause is not None:
                for spec in clause.named_children:
                    if spec.type == "export_specifier":
                        _, exported = specifier_names(spec)
                        target = self.type_exports if is_inline_type(spec) else exports
                        target.add(exported)
            return

        specifier = string_value(source)
        star = has_keyword(node, "*") or "*" in recovered
        if namespace is None and star and "as" in recovered[:-1]:
            # export type * as ns from "m", with the alias swallowed by ERROR
            exports.add(recovered[recovered.index("as") + 1])
        elif namespace is not None:
            exports.add(binding_name(namespace.named_children[-1]))
        elif clause is not None:
            reexports = (self.type_reexports if type_only else self.value_reexports).setdefault(specifier, {})
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                remote, exported = specifier_names(spec)
                if is_inline_type(spec) and not type_only:
                    self.type_exports.add(exported)
                    self.type_reexports.setdefault(specifier, {})[exported] = remote
                else:
                    exports.add(exported)
                    reexports[exported] = remote
        elif star:
            self._export_all(specifier, type_only)

    def _export_all(self, specifier: str, type_only: bool) -> None:
        target = self.entry.resolver.resolve(self.entry.relpath, specifier)
        if target is None or target.kind is not EntryKind.MODULE:
            logger.debug(f"{self.entry.relpath}: cannot propagate exports of {specifier}")
            return

        exported = target.module.declarations
        type_names = {name: name for name in exported.type_exports if name != "default"}
        self.type_exports.update(type_names)
        self.type_reexports.setdefault(specifier, {}).update(type_names)

        if not type_only:
            value_names = {name: name for name in exported.value_exports if name != "default"}
            self.value_exports.update(value_names)
            self.value_reexports.setdefault(specifier, {}).update(value_names)
