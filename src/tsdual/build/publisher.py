"""
Package Publisher.

Releases a package once per version:

    1. Skip private and already-processed packages.
    2. Skip if the git tag ``npm/<name>/<version>`` already exists.
    3. Skip if the registry already has ``<name>@<version>``.
    4. Wet runs do a preliminary ``publish --dry-run``; dry runs force
       ``--dry-run`` into the real publish arguments.
    5. Compile TypeScript packages, publish, tag and push.
    6. Revert the compile output, whatever happened.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config import BuildSettings
from ..core.errors import (
    AlreadyPublished,
    PublishFailed,
    RegistryError,
    SkipPackage,
    TagAlreadyExists,
)
from .compiler import TypeScriptCompiler
from .manifest import PackageManifest

logger = logging.getLogger(__name__)

PACKAGE_MANAGERS = ("pnpm", "yarn", "npm")


def release_tag(name: str, version: str) -> str:
    return f"npm/{name}/{version}"


def detect_package_manager(settings: BuildSettings) -> str:
    """Configured package manager, else the first one installed."""
    if settings.package_manager:
        return settings.package_manager
    for candidate in PACKAGE_MANAGERS:
        if shutil.which(candidate):
            return candidate
    return "npm"


class Publisher:
    """
    Publishes one package directory.

    Attributes:
        cwd: Package root.
        dry_run: Publish with ``--dry-run`` and do not tag.
        keep: Leave the compiled outputs and rewritten manifest in place.
        args: Extra arguments for ``<package manager> publish``.
    """

    def __init__(
        self,
        cwd: Path,
        settings: Optional[BuildSettings] = None,
        dry_run: bool = True,
        keep: bool = False,
        args: Sequence[str] = (),
        compiler_factory: Callable[..., TypeScriptCompiler] = TypeScriptCompiler,
    ):
        self.cwd = Path(cwd).resolve()
        self.settings = settings or BuildSettings.from_env()
        self.dry_run = dry_run
        self.keep = keep
        self.args = list(args)
        self.compiler_factory = compiler_factory

    def package_manager(self) -> str:
        return detect_package_manager(self.settings)

    def run(self, *command: str) -> None:
        """
        Run a command in the package directory, streaming its output.

        Raises:
            PublishFailed: If the command exits non-zero.
        """
        logger.info(f"$ {' '.join(command)}")
        try:
            subprocess.run(list(command), cwd=self.cwd, check=True)
        except subprocess.CalledProcessError as e:
            raise PublishFailed(command, e.returncode)

    def ensure_fresh_tag(self, tag: str) -> None:
        """
        Raises:
            TagAlreadyExists: If ``tag`` exists in the repository.
        """
        result = subprocess.run(
            ["git", "rev-parse", "--verify", "--quiet", f"refs/tags/{tag}"],
            cwd=self.cwd,
            capture_output=True,
            text=True,
        )
        if result.returncode == 0:
            raise TagAlreadyExists(tag)

    def is_published(self, name: str, version: str) -> bool:
        """
        Ask the registry whether ``name@version`` exists.

        Raises:
            RegistryError: For any status other than 200 or 404.
        """
        url = f"{self.settings.registry}/{name}/{version}"
        logger.debug(f"GET {url}")
        try:
            with urllib.request.urlopen(url, timeout=30) as response:
                status = response.status
        except urllib.error.HTTPError as e:
            status = e.code

        if status == 200:
            return True
        if status == 404:
            return False
        raise RegistryError(status, name, version)

    def publish_args(self) -> List[str]:
        args = list(self.args)
        if self.dry_run and "--dry-run" not in args:
            args.append("--dry-run")
        return args

    def release(self) -> Optional[str]:
        """
        Release the package.

        Returns:
            The release tag, or None when the package was skipped.
        """
        manifest = PackageManifest.load(self.cwd)
        try:
            manifest.validate(skip_processed=self.settings.skip_fixed)
            tag = release_tag(manifest.name, manifest.version)
            self.ensure_fresh_tag(tag)
            if self.is_published(manifest.name, manifest.version):
                raise AlreadyPublished(manifest.name, manifest.version)
        except SkipPackage as e:
            logger.warning(f"Not releasing {self.cwd.name}: {e}")
            return None

        manager = self.package_manager()
        args = self.publish_args()
        if manager == "pnpm":
            args.append("--no-git-checks")
        if not self.dry_run:
            self.run(manager, "publish", "--dry-run", *args)

        compiler = None
        if manifest.is_typescript or self.settings.force_ts:
            compiler = self.compiler_factory(self.cwd, settings=self.settings, dry_run=False)

        try:
            if compiler is not None:
                compiler.compile_and_patch()
            self.run(manager, "publish", *args)
            if not self.dry_run:
                self.tag_release(tag)
        finally:
            if compiler is not None and not self.keep:
                compiler.revert()
        return tag

    def tag_release(self, tag: str) -> None:
        if self.settings.no_tag:
            logger.info(f"Not tagging {tag}")
            return
        self.run("git", "tag", "-f", tag)
        if self.settings.no_push:
            logger.info("Not pushing tags")
            return
        self.run("git", "push", "--tags")
