"""
Global Configuration and Defaults.

This module centralizes the naming conventions shared by the codemods, the
output patchers and the build orchestrator: which directories are never
indexed, which extensions the compiled outputs receive, and where the
scratch and backup files live. Runtime knobs are read from ``TSDUAL_*``
environment variables into a ``BuildSettings`` model.
"""

import os
from typing import Mapping, Optional, Set

from pydantic import BaseModel

# --- Sources ---

SOURCE_EXTENSION = ".ts"
DATA_EXTENSION = ".json"
INDEX_FILE = "index.ts"

# Directories that are never indexed or globbed
IGNORE_DIRECTORIES: Set[str] = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
}

# --- Outputs ---

DIST_SUFFIX = ".dist"

ESM_CODE_EXT = ".dist.mjs"
ESM_MAP_EXT = ".dist.mjs.map"
ESM_TYPES_EXT = ".dist.d.mts"
ESM_TYPES_MAP_EXT = ".dist.d.mts.map"

CJS_CODE_EXT = ".dist.cjs"
CJS_MAP_EXT = ".dist.cjs.map"
CJS_TYPES_EXT = ".dist.d.cts"
CJS_TYPES_MAP_EXT = ".dist.d.cts.map"

# --- Build bookkeeping ---

MANIFEST_NAME = "package.json"
MANIFEST_BACKUP_NAME = "package.json.bak"
PROCESSED_MARKER = "tsdual"
SCRATCH_PREFIX = "tsdual-"
DEFAULT_MAIN = "index.ts"

NPM_REGISTRY = "https://registry.npmjs.org"
ENV_PREFIX = "TSDUAL_"

_TRUTHY = {"1", "true", "yes", "on"}


def is_ignored_directory(name: str) -> bool:
    """Check if a directory name should never be traversed."""
    return name in IGNORE_DIRECTORIES


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(ENV_PREFIX + name, "").strip().lower() in _TRUTHY


class BuildSettings(BaseModel):
    """
    Runtime settings for compiling and releasing a package.

    Every field can be overridden through a ``TSDUAL_<FIELD>`` environment
    variable (see ``from_env``).
    """

    tsc: str = "tsc"
    esm_module: str = "esnext"
    esm_target: str = "esnext"
    cjs_module: str = "commonjs"
    cjs_target: str = "esnext"
    force_ts: bool = False
    skip_fixed: bool = False
    verbose: bool = False
    package_manager: Optional[str] = None
    no_tag: bool = False
    no_push: bool = False
    registry: str = NPM_REGISTRY

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BuildSettings":
        """Build settings from ``TSDUAL_*`` environment variables."""
        env = os.environ if env is None else env
        defaults = cls()

        def text(name: str, default: Optional[str]) -> Optional[str]:
            return env.get(ENV_PREFIX + name) or default

        return cls(
            tsc=text("TSC", defaults.tsc),
            esm_module=text("ESM_MODULE", defaults.esm_module),
            esm_target=text("ESM_TARGET", defaults.esm_target),
            cjs_module=text("CJS_MODULE", defaults.cjs_module),
            cjs_target=text("CJS_TARGET", defaults.cjs_target),
            force_ts=_flag(env, "FORCE_TS"),
            skip_fixed=_flag(env, "SKIP_FIXED"),
            verbose=_flag(env, "VERBOSE"),
            package_manager=text("PACKAGE_MANAGER", None),
            no_tag=_flag(env, "NO_TAG"),
            no_push=_flag(env, "NO_PUSH"),
            registry=text("REGISTRY", defaults.registry).rstrip("/"),
        )
