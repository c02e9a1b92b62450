"""
Source codemods.

Each codemod rewrites TypeScript sources in place (or reports what it
would rewrite in dry-run mode):

- split: separate type-only bindings into ``import type`` / ``export type``
- dirs: make directory imports point at their ``index`` explicitly
- namespace: unwrap namespace imports of interop-wrapped CommonJS packages
- merge: turn imports of merged sub-packages into relative paths
"""

from .dirs import fix_import_dirs
from .merge import merge_packages
from .namespace import separate_namespace_import
from .split import split_types

__all__ = ["fix_import_dirs", "merge_packages", "separate_namespace_import", "split_types"]
