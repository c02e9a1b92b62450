"""
Fix Import Dirs Command - Make directory imports explicit.

Usage:
    tsdual fix-import-dirs src
"""

from pathlib import Path
from typing import Tuple

import click

from ...codemods.dirs import fix_import_dirs as fix_module_dirs
from ...core.errors import TsdualError
from ...core.resolver import Resolver
from ..utils import fail, report_rewrites


@click.command("fix-import-dirs")
@click.argument("directories", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option("--dry", "--dry-run", "dry_run", is_flag=True, help="Report changes without writing files")
def fix_import_dirs(directories: Tuple[str, ...], dry_run: bool):
    """
    Rewrite `from "./dir"` into `from "./dir/index"`.

    ES modules have no implicit directory index, so every relative import
    that only resolves to a directory's index.ts gets the /index suffix.
    """
    try:
        resolver = Resolver(Path.cwd()).load(directories)
        record = fix_module_dirs(resolver, dry_run=dry_run)
    except TsdualError as e:
        fail(e)
    report_rewrites(record, dry_run, "modules")
