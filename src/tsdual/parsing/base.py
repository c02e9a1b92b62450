"""
Base Parsing Infrastructure.

Wraps tree-sitter (through ``tree_sitter_languages``) for the TypeScript and
JavaScript grammars, and provides the byte-range edit primitives every
rewriter uses. Sources are never re-printed from the syntax tree: rewrites
splice replacement text into the original bytes, so unmodified regions
(comments, whitespace, quoting) survive exactly.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from tree_sitter import Node, Parser, Tree
from tree_sitter_languages import get_language, get_parser

logger = logging.getLogger(__name__)

RELATIVE_PREFIXES = ("./", "../")

_LANGUAGES = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
}


def language_for(path: Union[str, Path]) -> str:
    """
    Pick the grammar for a file.

    Declaration files (``.d.ts``) use the TypeScript grammar; everything
    unknown falls back to JavaScript.
    """
    suffix = Path(path).suffix.lower()
    return _LANGUAGES.get(suffix, "javascript")


@lru_cache(maxsize=None)
def _parser(lang_name: str) -> Parser:
    return get_parser(lang_name)


@lru_cache(maxsize=None)
def language(lang_name: str):
    """Return the tree-sitter Language for queries."""
    return get_language(lang_name)


def parse_source(source: bytes, lang_name: str = "typescript", label: str = "<source>") -> Tree:
    """
    Parse source bytes into a tree-sitter tree.

    Syntax errors do not abort parsing: tree-sitter recovers and the
    statements it could not understand are left alone by the rewriters.
    """
    tree = _parser(lang_name).parse(source)
    if tree.root_node.has_error:
        logger.warning(f"{label}: syntax errors found, unparsed regions are left untouched")
    return tree


def node_text(node: Node) -> str:
    return node.text.decode("utf-8")


def string_value(node: Node) -> str:
    """Return the contents of a string literal node without its quotes."""
    return node_text(node)[1:-1]


def quote_like(node: Node, value: str) -> str:
    """Render ``value`` as a string literal using the quote character of ``node``."""
    quote = node_text(node)[:1] or '"'
    if quote not in ("'", '"'):
        quote = '"'
    return f"{quote}{value}{quote}"


def double_quoted(value: str) -> str:
    """Render ``value`` as a double-quoted string literal."""
    return json.dumps(value)


def is_relative(specifier: str) -> bool:
    return specifier.startswith(RELATIVE_PREFIXES) or specifier in (".", "..")


def has_keyword(node: Node, keyword: str) -> bool:
    """Check whether ``keyword`` appears as an anonymous direct child of ``node``."""
    return any(not child.is_named and child.type == keyword for child in node.children)


def top_level_statements(tree: Tree) -> Iterator[Node]:
    for child in tree.root_node.named_children:
        if child.type != "comment":
            yield child


def walk(node: Node) -> Iterator[Node]:
    """Depth-first pre-order traversal."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def line_indent(source: bytes, node: Node) -> str:
    """Return the leading whitespace of the line ``node`` starts on."""
    line_start = source.rfind(b"\n", 0, node.start_byte) + 1
    prefix = source[line_start:node.start_byte]
    return "".join(ch for ch in prefix.decode("utf-8") if ch in " \t")


@dataclass(frozen=True)
class SourceEdit:
    """Replace the byte range ``[start, end)`` with ``text``."""

    start: int
    end: int
    text: str

    @classmethod
    def replace(cls, node: Node, text: str) -> "SourceEdit":
        return cls(node.start_byte, node.end_byte, text)

    @classmethod
    def insert(cls, offset: int, text: str) -> "SourceEdit":
        return cls(offset, offset, text)


def apply_edits(source: bytes, edits: Iterable[SourceEdit]) -> bytes:
    """
    Apply non-overlapping edits to ``source``.

    Edits are applied back to front so earlier offsets stay valid.

    Raises:
        ValueError: If two edits overlap.
    """
    ordered: List[SourceEdit] = sorted(edits, key=lambda e: (e.start, e.end))
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise ValueError(f"Overlapping edits at bytes {previous.start}-{previous.end} and {current.start}")

    result = source
    for edit in reversed(ordered):
        result = result[:edit.start] + edit.text.encode("utf-8") + result[edit.end:]
    return result


def first_child_of_type(node: Node, *types: str) -> Optional[Node]:
    for child in node.children:
        if child.type in types:
            return child
    return None


SPECIFIER_STATEMENTS = ("import_statement", "export_statement")


def specifier_statements(tree: Tree) -> Iterator[Tuple[Node, Node]]:
    """Yield ``(statement, source string node)`` for top-level imports and re-exports."""
    for statement in top_level_statements(tree):
        if statement.type not in SPECIFIER_STATEMENTS:
            continue
        source = statement.child_by_field_name("source")
        if source is not None and source.type == "string":
            yield statement, source
