"""
Import Map Command - Map installed dependencies for the browser.

Usage:
    tsdual make-import-map
    tsdual make-import-map --output public/importmap.json
    tsdual make-import-map --dry
"""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ...build.importmap import IMPORT_MAP_NAME, generate_import_map
from ...config import BuildSettings
from ...core.errors import TsdualError
from ..utils import echo_success, fail

console = Console()


@click.command("make-import-map")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              default=IMPORT_MAP_NAME, show_default=True, help="Where to write the import map")
@click.option("--dry", "--dry-run", "dry_run", is_flag=True, help="Print the import map instead of writing it")
def make_import_map(output: Path, dry_run: bool):
    """
    Generate an import map for the dependencies of the current package.

    The dependency tree comes from `<package manager> ls --json`. Each
    dependency's entry point and "exports" subpaths are mapped, and its
    own dependencies go into a scope for its directory.
    """
    try:
        import_map = generate_import_map(Path.cwd(), settings=BuildSettings.from_env())
    except TsdualError as e:
        fail(e)

    if dry_run:
        click.echo(import_map.dumps(), nl=False)
        return

    import_map.write(output)
    table = Table(title=str(output))
    table.add_column("Specifier", style="cyan")
    table.add_column("Target")
    for specifier, target in sorted(import_map.imports.items()):
        table.add_row(specifier, target)
    console.print(table)
    echo_success(f"Mapped {len(import_map.imports)} imports in {len(import_map.scopes)} scopes")
