"""
Parsing for tsdual.

Tree-sitter based parsing of TypeScript and JavaScript sources, byte-range
source edits, and extraction of per-module declaration sets.
"""
