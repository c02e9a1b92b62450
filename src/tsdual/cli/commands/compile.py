"""
Compile Command - Build side-by-side ESM and CommonJS outputs.

Usage:
    tsdual compile
    tsdual compile --dry --json
    tsdual compile --no-cjs -- --project tsconfig.build.json
"""

import logging
from pathlib import Path
from typing import List, Tuple

import click
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from ...build.compiler import TypeScriptCompiler, cjs_format, esm_format
from ...config import BuildSettings
from ...core.errors import TsdualError
from ..utils import echo_success, echo_warning, fail

logger = logging.getLogger(__name__)
console = Console()


# --- API Models ---
class CompileSummary(BaseModel):
    """
    Structured response for the compile command.
    """
    package: str
    dry_run: bool
    state: str
    formats: List[str]
    generated: List[str]
    patched_files: int


@click.command("compile")
@click.argument("tsc_args", nargs=-1, type=click.UNPROCESSED)
@click.option("--dry", "--dry-run", "dry_run", is_flag=True,
              help="Compile and patch in a scratch directory only")
@click.option("--esm/--no-esm", default=True, help="Emit the ES module build")
@click.option("--cjs/--no-cjs", default=True, help="Emit the CommonJS build")
@click.option("--cjs-types", is_flag=True, help="Also emit CommonJS declarations (not supported yet)")
@click.option("--source-maps/--no-source-maps", default=True, help="Emit source and declaration maps")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def compile_package(
    tsc_args: Tuple[str, ...],
    dry_run: bool,
    esm: bool,
    cjs: bool,
    cjs_types: bool,
    source_maps: bool,
    as_json: bool,
):
    """
    Compile the package in the current directory for ESM and CommonJS.

    Outputs are written next to the sources as *.dist.mjs / *.dist.cjs
    (plus maps and declarations), and package.json is rewritten to point
    at them. A backup is kept in package.json.bak. Any failure removes
    the outputs and restores package.json.
    """
    settings = BuildSettings.from_env()
    formats = []
    if esm:
        formats.append(esm_format(settings))
    if cjs:
        formats.append(cjs_format(settings, declarations=cjs_types))
    if not formats:
        fail(click.UsageError("Nothing to build: both --no-esm and --no-cjs given"))

    compiler = TypeScriptCompiler(
        Path.cwd(),
        formats=formats,
        settings=settings,
        dry_run=dry_run,
        extra_args=tsc_args,
        source_maps=source_maps,
    )
    try:
        generated = compiler.compile_and_patch()
    except TsdualError as e:
        fail(e)

    cwd = compiler.cwd
    relative = [p.relative_to(cwd).as_posix() for p in generated]
    if as_json:
        summary = CompileSummary(
            package=compiler.manifest.name if compiler.manifest else cwd.name,
            dry_run=dry_run,
            state=str(compiler.state),
            formats=[f.name for f in formats],
            generated=relative,
            patched_files=len(compiler.patched),
        )
        click.echo(summary.model_dump_json(indent=2))
        return

    if not compiler.manifest:
        echo_warning(f"Skipped {cwd.name}")
        return

    table = Table(title="Dry run (nothing written)" if dry_run else "Generated files")
    table.add_column("File", style="cyan")
    for path in relative:
        table.add_row(path)
    console.print(table)
    verb = "Would build" if dry_run else "Built"
    echo_success(f"{verb} {compiler.manifest.name or cwd.name}: {len(relative)} files")
