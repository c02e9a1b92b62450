"""
Import Map Generator.

Builds a browser import map (``{"imports": ..., "scopes": ...}``) from the
installed dependency tree that the package manager reports with
``ls --json``. For every dependency:

    1. Its entry point (``exports["."]``, then "module", "browser" and
       "main", then ``index.js``) is mapped under the dependency's name.
    2. Every subpath in its "exports" is mapped under ``<name>/<subpath>``,
       both in the current scope and in the dependency's own scope
       ``/<path>/``, so the package can import itself by name.
    3. Its own dependencies are added to that scope, recursively.

Targets are package-root-relative URLs (``./node_modules/...``).
"""

from __future__ import annotations

import json
import logging
import os
import posixpath
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import MANIFEST_NAME, BuildSettings
from ..core.errors import DependencyListingFailed, ManifestError
from .publisher import detect_package_manager

logger = logging.getLogger(__name__)

IMPORT_MAP_NAME = "importmap.json"

LIST_COMMANDS: Dict[str, List[str]] = {
    "pnpm": ["pnpm", "ls", "--json", "--depth", "Infinity"],
    "npm": ["npm", "ls", "--json", "--all", "--long"],
}

CONDITIONS = ("module", "import", "default")
LEGACY_FIELDS = ("module", "browser", "main")
FALLBACK_ENTRYPOINT = "index.js"

Scope = Dict[str, str]


def list_command(manager: str) -> List[str]:
    if manager not in LIST_COMMANDS:
        logger.warning(f"{manager} cannot list dependencies as JSON, using npm")
        manager = "npm"
    return list(LIST_COMMANDS[manager])


def list_dependencies(cwd: Path, command: Sequence[str]) -> Dict[str, Any]:
    """
    Run ``command`` and return the root node of the dependency tree.

    pnpm prints a list with one node per workspace package; the first one
    is the package in ``cwd``.

    Raises:
        DependencyListingFailed: If the command fails or prints no JSON.
    """
    logger.info(f"$ {' '.join(command)}")
    try:
        result = subprocess.run(list(command), cwd=cwd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise DependencyListingFailed(command, str(e))

    # npm ls exits non-zero for unmet peers but still prints the tree
    if result.returncode != 0 and not result.stdout.strip():
        raise DependencyListingFailed(command, result.stderr.strip() or f"exit status {result.returncode}")
    try:
        tree = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise DependencyListingFailed(command, f"invalid JSON output ({e})")

    if isinstance(tree, list):
        if not tree:
            raise DependencyListingFailed(command, "empty dependency tree")
        tree = tree[0]
    return tree


def condition_target(entry: Any, conditions: Sequence[str] = CONDITIONS) -> Optional[str]:
    """
    Pick a path out of one "exports" entry.

    Strings are returned as they are; condition objects are searched in
    ``conditions`` order, descending into nested objects.
    """
    while isinstance(entry, dict):
        entry = next((entry[c] for c in conditions if entry.get(c)), None)
    return entry if isinstance(entry, str) else None


def subpath_exports(manifest: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize "exports" into a ``{subpath: entry}`` mapping."""
    exports = manifest.get("exports")
    if isinstance(exports, str):
        return {".": exports}
    if not isinstance(exports, dict) or not exports:
        return {}
    if all(key.startswith(".") for key in exports):
        return exports
    # Conditions at the top level describe "." only
    return {".": exports}


class ImportMap:
    """
    An import map under construction.

    Attributes:
        root: Directory the targets are relative to.
        imports: Top-level specifier -> URL mappings.
        scopes: ``/<dependency path>/`` -> specifier -> URL mappings.
    """

    def __init__(
        self,
        root: Path,
        conditions: Sequence[str] = CONDITIONS,
        legacy_fields: Sequence[str] = LEGACY_FIELDS,
    ):
        self.root = Path(root).resolve()
        self.conditions = tuple(conditions)
        self.legacy_fields = tuple(legacy_fields)
        self.imports: Scope = {}
        self.scopes: Dict[str, Scope] = {}

    def __repr__(self) -> str:
        return f"ImportMap({self.root}, {len(self.imports)} imports, {len(self.scopes)} scopes)"

    def to_dict(self) -> Dict[str, Any]:
        return {"imports": self.imports, "scopes": self.scopes}

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    def write(self, path: Path) -> None:
        Path(path).write_text(self.dumps(), encoding="utf-8")
        logger.info(f"Wrote {path}")

    def relative(self, path: str) -> str:
        """``path`` relative to the root, in POSIX form."""
        relative = os.path.relpath(Path(path).resolve(), self.root)
        return Path(relative).as_posix()

    def url(self, *parts: str) -> str:
        return "./" + posixpath.normpath(posixpath.join(*parts))

    def add(self, dependencies: Mapping[str, Any], scope: Optional[Scope] = None, depth: int = 0) -> "ImportMap":
        """Add ``dependencies`` (a ``ls --json`` "dependencies" object) to ``scope``."""
        scope = self.imports if scope is None else scope
        indent = " " * depth
        for name, info in dependencies.items():
            path = info.get("path")
            if not path:
                logger.warning(f"{indent}{name}: no installation path reported, skipping")
                continue
            relpath = self.relative(path)
            manifest = self.load_manifest(relpath)
            logger.info(f"{indent}{name} {info.get('version', '')} ({relpath})")

            self.add_main(scope, name, relpath, manifest, depth)
            self_refs = self.add_exports(scope, name, relpath, manifest, depth)
            self.add(info.get("dependencies") or {}, self_refs, depth + 2)
        return self

    def load_manifest(self, relpath: str) -> Dict[str, Any]:
        """
        Raises:
            ManifestError: If the dependency has no readable package.json.
        """
        path = self.root / relpath / MANIFEST_NAME
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ManifestError(f"Cannot read {path}: {e}")

    def entrypoint(self, manifest: Mapping[str, Any]) -> str:
        exported = subpath_exports(manifest).get(".")
        target = condition_target(exported, self.conditions) if exported is not None else None
        if target:
            return target
        for field in self.legacy_fields:
            value = manifest.get(field)
            if isinstance(value, str) and value:
                return value
        return FALLBACK_ENTRYPOINT

    def add_main(self, scope: Scope, name: str, relpath: str, manifest: Mapping[str, Any], depth: int = 0) -> str:
        """Map ``name`` to the dependency's entry point and return the URL."""
        entrypoint = self.entrypoint(manifest)
        target = posixpath.normpath(posixpath.join(relpath, entrypoint))
        absolute = self.root / target
        if not absolute.exists() and absolute.with_name(absolute.name + ".js").exists():
            target += ".js"
        elif absolute.is_dir():
            target = posixpath.join(target, FALLBACK_ENTRYPOINT)

        scope[name] = url = self.url(target)
        logger.info(f"{' ' * depth}  * {entrypoint} -> {url}")
        return url

    def add_exports(self, scope: Scope, name: str, relpath: str, manifest: Mapping[str, Any], depth: int = 0) -> Scope:
        """
        Map every subpath export of the dependency.

        Returns:
            The dependency's own scope, where its dependencies go.
        """
        self_refs = self.scopes.setdefault(f"/{relpath}/", {})
        for subpath, entry in subpath_exports(manifest).items():
            if "*" in subpath:
                logger.debug(f"{name}: pattern export {subpath} has no import map form")
                continue
            target = condition_target(entry, self.conditions)
            if not target:
                logger.warning(f"{' ' * depth}  export {subpath} of {name} is unresolved: {json.dumps(entry)}")
                continue
            specifier = posixpath.normpath(posixpath.join(name, subpath))
            url = self.url(relpath, target)
            scope[specifier] = self_refs[specifier] = url
            logger.debug(f"{' ' * depth}  + {specifier} -> {url}")
        return self_refs


def generate_import_map(cwd: Path, settings: Optional[BuildSettings] = None) -> ImportMap:
    """
    List the dependencies of the package in ``cwd`` and map them.

    Raises:
        DependencyListingFailed: The package manager could not list them.
        ManifestError: A dependency has no readable package.json.
    """
    settings = settings or BuildSettings.from_env()
    cwd = Path(cwd).resolve()
    tree = list_dependencies(cwd, list_command(detect_package_manager(settings)))
    logger.info(f"Dependencies of {tree.get('name') or '(unnamed package)'} {tree.get('version') or ''}")
    return ImportMap(cwd).add(tree.get("dependencies") or {})
