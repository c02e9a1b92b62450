"""Shared helpers for the source codemods."""

import logging
from typing import Dict

from ..core.types import Entry

logger = logging.getLogger(__name__)

# Absolute file path -> rewritten text
PatchRecord = Dict[str, str]


def commit(entry: Entry, rewritten: bytes, dry_run: bool, record: PatchRecord) -> bool:
    """
    Record and (unless ``dry_run``) write a rewritten module.

    Returns:
        True if the module changed.
    """
    module = entry.module
    if rewritten == module.source:
        return False

    record[str(entry.path)] = rewritten.decode("utf-8")
    if dry_run:
        logger.info(f"(dry run) would update {entry.relpath}")
    else:
        entry.path.write_bytes(rewritten)
        module.replace_source(rewritten)
        logger.info(f"Updated {entry.relpath}")
    return True
