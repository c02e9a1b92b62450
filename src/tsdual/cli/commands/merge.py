"""
Merge Package Command - Inline sub-package imports as relative paths.

Usage:
    tsdual merge-package -p packages/utils -p packages/core src
"""

from pathlib import Path
from typing import Tuple

import click

from ...codemods.merge import merge_packages
from ...core.errors import TsdualError
from ...core.resolver import Resolver
from ..utils import fail, report_rewrites


@click.command("merge-package")
@click.argument("directories", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option("-p", "--package-dir", "package_dirs", multiple=True, required=True,
              type=click.Path(exists=True, file_okay=False),
              help="Directory of a sub-package to merge (repeatable)")
@click.option("--dry", "--dry-run", "dry_run", is_flag=True, help="Report changes without writing files")
def merge_package(directories: Tuple[str, ...], package_dirs: Tuple[str, ...], dry_run: bool):
    """
    Rewrite `<sub-package>/path` imports into relative paths.

    The name of each sub-package is read from its package.json; every
    import in DIRECTORIES that starts with that name is pointed at the
    sub-package directory instead.
    """
    try:
        resolver = Resolver(Path.cwd()).load(directories)
        record = merge_packages(resolver, package_dirs, dry_run=dry_run)
    except (TsdualError, FileNotFoundError) as e:
        fail(e)
    report_rewrites(record, dry_run, "modules")
