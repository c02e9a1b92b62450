"""
Release Command - Compile, publish and tag a package version once.

Usage:
    tsdual release --dry
    tsdual release -- --tag next
"""

from pathlib import Path
from typing import Tuple

import click

from ...build.publisher import Publisher
from ...config import BuildSettings
from ...core.errors import TsdualError
from ..utils import echo_success, echo_warning, fail


@click.command("release")
@click.argument("publish_args", nargs=-1, type=click.UNPROCESSED)
@click.option("--dry", "--dry-run", "dry_run", is_flag=True,
              help="Publish with --dry-run and skip tagging")
@click.option("--keep", is_flag=True, help="Keep the compiled outputs after publishing")
def release(publish_args: Tuple[str, ...], dry_run: bool, keep: bool):
    """
    Publish the package in the current directory if its version is new.

    Private packages and versions that are already tagged
    (npm/<name>/<version>) or already on the registry are skipped.
    TypeScript packages are compiled first and restored afterwards.
    """
    publisher = Publisher(
        Path.cwd(),
        settings=BuildSettings.from_env(),
        dry_run=dry_run,
        keep=keep,
        args=publish_args,
    )
    try:
        tag = publisher.release()
    except TsdualError as e:
        fail(e)

    if tag is None:
        echo_warning("Nothing released")
    elif dry_run:
        echo_success(f"Dry run of {tag} complete")
    else:
        echo_success(f"Released {tag}")
