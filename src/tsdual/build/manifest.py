"""
package.json handling for builds.

The manifest is read once per run and mutated in place so that unknown
fields and key order survive. Before it is written, the original bytes are
copied to ``package.json.bak``; ``restore`` puts them back.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..config import (
    CJS_CODE_EXT,
    DEFAULT_MAIN,
    ESM_CODE_EXT,
    MANIFEST_BACKUP_NAME,
    MANIFEST_NAME,
    PROCESSED_MARKER,
    SOURCE_EXTENSION,
)
from ..core.errors import (
    AlreadyProcessed,
    PrivatePackage,
    ProcessedSkipped,
    WrongMainExtension,
)

logger = logging.getLogger(__name__)


def dotted(path: str) -> str:
    """Prefix a package-relative path with ``./`` as export maps require."""
    path = path[2:] if path.startswith("./") else path
    return f"./{path}"


def output_path(source: str, ext: str) -> str:
    """``src/index.ts`` -> ``src/index`` + ``ext``."""
    source = source[2:] if source.startswith("./") else source
    if source.endswith(SOURCE_EXTENSION):
        source = source[: -len(SOURCE_EXTENSION)]
    elif source.endswith(".js"):
        source = source[:-3]
    return source + ext


class PackageManifest:
    """
    A loaded package.json.

    Attributes:
        path: Location of package.json.
        data: Parsed contents, mutated in place.
        original: Bytes as read from disk.
    """

    def __init__(self, path: Path, data: Dict[str, Any], original: bytes = b""):
        self.path = Path(path)
        self.data = data
        self.original = original
        self.written = False
        # Bytes of a package.json.bak that predates this run, if any
        self._previous_backup: Optional[bytes] = None

    @classmethod
    def load(cls, cwd: Path) -> "PackageManifest":
        path = Path(cwd) / MANIFEST_NAME
        original = path.read_bytes()
        return cls(path, json.loads(original.decode("utf-8")), original)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(MANIFEST_BACKUP_NAME)

    @property
    def name(self) -> str:
        return self.data.get("name", "")

    @property
    def version(self) -> str:
        return self.data.get("version", "")

    @property
    def is_private(self) -> bool:
        return bool(self.data.get("private"))

    @property
    def is_module(self) -> bool:
        return self.data.get("type") == "module"

    @property
    def is_processed(self) -> bool:
        return bool(self.data.get(PROCESSED_MARKER))

    @property
    def main(self) -> str:
        main = self.data.get("main")
        if not main:
            logger.warning(f'{self.path}: no "main" field, assuming {DEFAULT_MAIN}')
            self.data["main"] = main = DEFAULT_MAIN
        return main

    @property
    def is_typescript(self) -> bool:
        return self.main.endswith(SOURCE_EXTENSION)

    def validate(self, skip_processed: bool = False, force_ts: bool = False) -> None:
        """
        Check that the package can be built.

        Raises:
            ProcessedSkipped: Already processed and ``skip_processed`` is set.
            AlreadyProcessed: Already processed otherwise.
            PrivatePackage: The package is private.
            WrongMainExtension: ``force_ts`` is set and "main" ends in ``.js``.
        """
        if self.is_processed:
            if skip_processed:
                raise ProcessedSkipped(str(self.path))
            raise AlreadyProcessed(str(self.path))
        if self.is_private:
            raise PrivatePackage(self.name or str(self.path.parent))
        if force_ts and self.main.endswith(".js"):
            raise WrongMainExtension(self.main)

    # --- Mutation ---

    def describe_outputs(
        self,
        esm: bool,
        cjs: bool,
        types_ext: Optional[str],
        generated: Iterable[str] = (),
    ) -> None:
        """
        Point main, types, browser and exports["."] at the compiled outputs.

        Args:
            esm: Whether the ESM format was emitted.
            cjs: Whether the CommonJS format was emitted.
            types_ext: Extension of the declarations to advertise, if any.
            generated: Package-relative paths of every generated file.
        """
        main = self.main
        esm_main = output_path(main, ESM_CODE_EXT) if esm else None
        cjs_main = output_path(main, CJS_CODE_EXT) if cjs else None

        self.data[PROCESSED_MARKER] = True

        exports = self.data.get("exports")
        if not isinstance(exports, dict) or (exports and not all(k.startswith(".") for k in exports)):
            exports = {}
        previous = exports.get(".") if isinstance(exports.get("."), dict) else {}

        entry: Dict[str, Any] = {"source": dotted(main)}
        if types_ext:
            types = output_path(main, types_ext)
            self.data["types"] = types
            entry["types"] = dotted(types)

        browser = self.data.get("browser")
        if browser and isinstance(browser, str) and esm_main:
            self.data["browser"] = output_path(browser, ESM_CODE_EXT)
            entry["browser"] = dotted(self.data["browser"])

        if esm_main and cjs_main:
            if self.is_module:
                entry["require"] = dotted(cjs_main)
                default = esm_main
            else:
                entry["import"] = dotted(esm_main)
                default = cjs_main
        else:
            default = esm_main or cjs_main

        for key, value in previous.items():
            entry.setdefault(key, value)
        entry.pop("default", None)
        if default:
            entry["default"] = dotted(default)
            self.data["main"] = default

        exports["."] = entry
        self.data["exports"] = exports

        files = self.data.get("files")
        if isinstance(files, list):
            for path in generated:
                if path not in files:
                    files.append(path)

    def dumps(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"

    def write(self) -> None:
        """Back up the original bytes, then write the mutated manifest."""
        if not self.written and self.backup_path.exists():
            self._previous_backup = self.backup_path.read_bytes()
        self.backup_path.write_bytes(self.original)
        self.written = True
        logger.debug(f"Backed up {self.path} to {self.backup_path}")
        self.path.write_text(self.dumps(), encoding="utf-8")
        logger.info(f"Updated {self.path}")

    def restore(self) -> bool:
        """
        Undo ``write``: put the original bytes back and leave any
        package.json.bak as it was before this manifest was written.

        Returns:
            True if this manifest had been written.
        """
        if not self.written:
            return False
        os.replace(self.backup_path, self.path)
        if self._previous_backup is not None:
            self.backup_path.write_bytes(self._previous_backup)
            self._previous_backup = None
        self.written = False
        logger.info(f"Restored {self.path}")
        return True
