"""
Namespace-import splitter.

CommonJS packages loaded from ESM through interop arrive wrapped: their
``module.exports`` is the ``default`` property of the namespace object.
For a package like that, this codemod turns

    import * as foo from "foobar"

    function f (x: foo.Bar = new foo.Bar()): foo.Baz {}

into

    import * as __foo from "foobar"

    import type * as _foo from "foobar"
    //@ts-ignore
    const foo = __foo['default']

    function f (x: _foo.Bar = new foo.Bar()): _foo.Baz {}

so values come from the unwrapped default and types from the typed
namespace. Whether the package really is CommonJS is not checked.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from tree_sitter import Node, Tree

from ..parsing.base import (
    SourceEdit,
    apply_edits,
    first_child_of_type,
    has_keyword,
    language_for,
    line_indent,
    node_text,
    parse_source,
    string_value,
    top_level_statements,
    walk,
)

logger = logging.getLogger(__name__)


def find_namespace_import(tree: Tree, package: str) -> Optional[Tuple[Node, Node]]:
    """Return ``(statement, local identifier)`` of the first value ``import * as x from package``."""
    for statement in top_level_statements(tree):
        if statement.type != "import_statement" or has_keyword(statement, "type"):
            continue
        source = statement.child_by_field_name("source")
        if source is None or string_value(source) != package:
            continue
        clause = first_child_of_type(statement, "import_clause")
        namespace = first_child_of_type(clause, "namespace_import") if clause is not None else None
        if namespace is not None and namespace.named_children:
            return statement, namespace.named_children[-1]
    return None


def _leftmost(node: Node) -> Node:
    while node.type == "nested_identifier" and node.named_children:
        node = node.named_children[0]
    return node


def split_namespace_source(source: bytes, package: str, lang_name: str = "typescript", label: str = "<source>") -> bytes:
    """Apply the split to ``source``; returns it unchanged if the import is absent."""
    tree = parse_source(source, lang_name, label=label)
    found = find_namespace_import(tree, package)
    if found is None:
        logger.warning(f'{label}: no namespace import of "{package}" found')
        return source

    statement, identifier = found
    name = node_text(identifier)
    if name.startswith("__"):
        logger.debug(f'{label}: namespace import of "{package}" is already split')
        return source

    logger.warning(f'{label}: assuming "{package}" is a CommonJS module (not checked)')
    literal = node_text(statement.child_by_field_name("source"))
    indent = line_indent(source, statement)

    edits = [
        SourceEdit.replace(identifier, f"__{name}"),
        SourceEdit.insert(
            statement.end_byte,
            f"\n\n{indent}import type * as _{name} from {literal}"
            f"\n{indent}//@ts-ignore"
            f"\n{indent}const {name} = __{name}['default']",
        ),
    ]
    for node in walk(tree.root_node):
        if node.type != "nested_type_identifier":
            continue
        module = node.child_by_field_name("module")
        if module is None:
            continue
        leftmost = _leftmost(module)
        if leftmost.type == "identifier" and node_text(leftmost) == name:
            edits.append(SourceEdit.replace(leftmost, f"_{name}"))

    return apply_edits(source, edits)


def separate_namespace_imports(path: Union[str, Path], packages: Iterable[str], dry_run: bool = True) -> str:
    """
    Split the namespace imports of each of ``packages`` in the file at ``path``.

    Returns:
        The (possibly unchanged) file text. The file is only written when
        it changed and ``dry_run`` is False.
    """
    path = Path(path)
    source = path.read_bytes()
    rewritten = source
    for package in packages:
        rewritten = split_namespace_source(rewritten, package, language_for(path), label=str(path))
    if rewritten != source:
        if dry_run:
            logger.info(f"(dry run) would update {path}")
        else:
            path.write_bytes(rewritten)
            logger.info(f"Updated {path}")
    return rewritten.decode("utf-8")


def separate_namespace_import(path: Union[str, Path], package: str, dry_run: bool = True) -> str:
    """Split the namespace import of a single ``package`` in the file at ``path``."""
    return separate_namespace_imports(path, [package], dry_run=dry_run)
