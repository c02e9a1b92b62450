"""
Split Stars Command - Unwrap namespace imports of CommonJS packages.

Usage:
    tsdual split-stars -p lodash -p moment src
"""

from typing import Dict, Tuple

import click

from ...codemods.namespace import separate_namespace_imports
from ..utils import collect_sources, echo_warning, report_rewrites


@click.command("split-stars")
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-p", "--package", "packages", multiple=True, required=True,
              help="Package whose namespace import to split (repeatable)")
@click.option("--dry", "--dry-run", "dry_run", is_flag=True, help="Report changes without writing files")
def split_stars(sources: Tuple[str, ...], packages: Tuple[str, ...], dry_run: bool):
    """
    Split `import * as x` of CommonJS packages into value and type halves.

    The namespace import is renamed to `__x`, the value binding becomes
    `__x['default']` and type references use a separate
    `import type * as _x`. The packages are assumed to be CommonJS.
    """
    files = collect_sources(sources)
    if not files:
        echo_warning("No TypeScript sources found")
        return

    record: Dict[str, str] = {}
    for path in files:
        original = path.read_text(encoding="utf-8")
        text = separate_namespace_imports(path, packages, dry_run=dry_run)
        if text != original:
            record[str(path.resolve())] = text
    report_rewrites(record, dry_run, "files")
