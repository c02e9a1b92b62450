"""
Split Types Command - Separate type-only bindings from value imports.

Usage:
    tsdual split-types src
    tsdual split-types --dry src lib
"""

import logging
from pathlib import Path
from typing import Tuple

import click

from ...codemods.split import split_types as split_module_types
from ...core.errors import TsdualError
from ...core.resolver import Resolver
from ..utils import fail, report_rewrites

logger = logging.getLogger(__name__)


@click.command("split-types")
@click.argument("directories", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option("--dry", "--dry-run", "dry_run", is_flag=True, help="Report changes without writing files")
def split_types(directories: Tuple[str, ...], dry_run: bool):
    """
    Move type-only imports and re-exports into `import type` declarations.

    Every imported or re-exported name is checked against what its target
    module exports. Names that are only types are moved to a separate
    `import type` / `export type` declaration, and directory imports are
    made to point at their index file.
    """
    try:
        resolver = Resolver(Path.cwd()).load(directories)
        logger.debug(f"Loaded {len(resolver.modules())} modules")
        record = split_module_types(resolver, dry_run=dry_run)
    except TsdualError as e:
        fail(e)
    report_rewrites(record, dry_run, "modules")
