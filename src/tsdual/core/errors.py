"""
Error taxonomy for tsdual.

Every failure raised by the resolver, the codemods, the patchers and the
build orchestrator derives from ``TsdualError`` so that the command line
can report it uniformly. ``SkipPackage`` and its subclasses are not
failures: they signal that a package was intentionally left alone.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class TsdualError(Exception):
    """Base class for all tsdual errors."""


# --- Module graph ---


class ResolutionError(TsdualError):
    """Raised when a module specifier cannot be mapped onto the graph."""


class UnresolvedSpecifier(ResolutionError):
    """
    Raised when a relative specifier has no matching file or index.

    Attributes:
        specifier: The literal specifier as written in the source.
        source: Package-relative path of the importing module.
    """

    def __init__(self, specifier: str, source: str):
        self.specifier = specifier
        self.source = source
        super().__init__(f'Module "{specifier}" not found (from {source})')


class InvalidSpecifier(ResolutionError):
    """
    Raised for specifiers that name the source extension explicitly.

    Attributes:
        specifier: The offending specifier.
        source: Package-relative path of the importing module.
    """

    def __init__(self, specifier: str, source: str):
        self.specifier = specifier
        self.source = source
        super().__init__(
            f'Import of "{specifier}" from {source} must not end in .ts'
        )


class CircularReexport(ResolutionError):
    """Raised when ``export *`` declarations form a cycle."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Circular re-export through {path}")


class UnresolvedBinding(TsdualError):
    """
    Raised when a bound name is exported neither as a value nor as a type.

    Attributes:
        name: The remote (exported) name that could not be found.
        target: Package-relative path of the target module.
        mode: "importing from" or "re-exporting through".
        source: Package-relative path of the module doing the binding.
    """

    def __init__(self, name: str, target: str, mode: str, source: str = ""):
        self.name = name
        self.target = target
        self.mode = mode
        self.source = source
        where = f" ({mode} {target})"
        origin = f" in {source}" if source else ""
        super().__init__(f'"{name}" not found in {target}{where}{origin}')


# --- Output patching ---


class PatchError(TsdualError):
    """Raised when a compiled output cannot be patched."""


class PatchNotImplemented(PatchError, NotImplementedError):
    """Raised by output formats whose patcher does not exist yet."""

    def __init__(self, output_format: str):
        self.output_format = output_format
        super().__init__(f"Patching {output_format} outputs is not implemented")


# --- Build ---


class CompileFailed(TsdualError):
    """
    Raised when one or more compiler invocations exit non-zero.

    Attributes:
        commands: The failed command lines.
        outputs: Combined stdout/stderr of each failed command.
    """

    def __init__(self, commands: Sequence[Sequence[str]], outputs: Optional[List[str]] = None):
        self.commands = [list(c) for c in commands]
        self.outputs = outputs or []
        joined = "; ".join(" ".join(c) for c in self.commands)
        super().__init__(f"Compilation failed: {joined}")


class ManifestError(TsdualError):
    """Raised when package.json is unusable for a build."""


class AlreadyProcessed(ManifestError):
    """Raised when package.json already carries the processed marker."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"{path} was already modified by tsdual. "
            "Restore it from the backup or set TSDUAL_SKIP_FIXED=1"
        )


class WrongMainExtension(ManifestError):
    """Raised when TypeScript is forced but "main" points at a .js file."""

    def __init__(self, main: str):
        self.main = main
        super().__init__(
            f'"main" is "{main}"; when forcing TypeScript it must point to the .ts source'
        )


class InvalidTransition(TsdualError):
    """Raised when the build state machine is driven out of order."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move build from {current} to {requested}")


class RegistryError(TsdualError):
    """Raised when the package registry answers with an unexpected status."""

    def __init__(self, status: int, name: str, version: str):
        self.status = status
        self.name = name
        self.version = version
        super().__init__(f"Registry returned {status} for {name}@{version}")


class PublishFailed(TsdualError):
    """Raised when the package manager or git exits non-zero."""

    def __init__(self, command: Sequence[str], returncode: int):
        self.command = list(command)
        self.returncode = returncode
        super().__init__(f"{' '.join(self.command)} exited with {returncode}")


class DependencyListingFailed(TsdualError):
    """Raised when the package manager cannot list the dependency tree."""

    def __init__(self, command: Sequence[str], detail: str):
        self.command = list(command)
        self.detail = detail
        super().__init__(f"{' '.join(self.command)} failed: {detail}")


# --- Intentional short-circuits ---


class SkipPackage(TsdualError):
    """Signals that a package is intentionally left untouched."""


class PrivatePackage(SkipPackage):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is private")


class ProcessedSkipped(SkipPackage):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} was already processed, skipping")


class TagAlreadyExists(SkipPackage):
    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Tag {tag} already exists")


class AlreadyPublished(SkipPackage):
    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(f"{name}@{version} is already published")
