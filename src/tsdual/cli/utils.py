"""
CLI Utilities - Shared helper functions for command line operations.

Formatted printing, logging setup, source file collection and the
uniform error exit used by every command.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, List, NoReturn

import click

from ..config import SOURCE_EXTENSION, is_ignored_directory


def echo_success(message: str) -> None:
    """
    Print a success message with a green checkmark.

    Args:
        message (str): The message to display.
    """
    click.echo(click.style(f"✅ {message}", fg="green"))


def echo_error(message: str) -> None:
    """
    Print an error message with a red cross.

    Args:
        message (str): The error message to display.
    """
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def echo_warning(message: str) -> None:
    """
    Print a warning message with a yellow alert symbol.

    Args:
        message (str): The warning message to display.
    """
    click.echo(click.style(f"⚠️  {message}", fg="yellow"))


def echo_info(message: str) -> None:
    """
    Print an informational message, dimmed.

    Args:
        message (str): The info message to display.
    """
    click.echo(click.style(f"   {message}", dim=True))


def fail(error: Exception) -> NoReturn:
    """Report ``error`` and exit with status 1."""
    echo_error(str(error))
    sys.exit(1)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="[%X]",
    )


def collect_sources(paths: Iterable[str]) -> List[Path]:
    """
    Expand files and directories into a sorted list of TypeScript sources.

    Directories are searched recursively, skipping ignored directories.
    """
    found = set()
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            found.add(path)
            continue
        for candidate in path.rglob(f"*{SOURCE_EXTENSION}"):
            parts = candidate.relative_to(path).parts[:-1]
            if not any(is_ignored_directory(p) for p in parts):
                found.add(candidate)
    return sorted(found)


def report_rewrites(record: Dict[str, str], dry_run: bool, what: str = "files") -> None:
    """Summarize a patch record for the user."""
    if not record:
        echo_success(f"No {what} needed changes")
        return
    verb = "Would update" if dry_run else "Updated"
    echo_success(f"{verb} {len(record)} {what}")
    cwd = Path.cwd().resolve()
    for path in sorted(record):
        try:
            shown = Path(path).relative_to(cwd)
        except ValueError:
            shown = Path(path)
        echo_info(str(shown))
