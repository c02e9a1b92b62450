"""
Concurrent command runner.

Runs one compiler invocation per output format at the same time with
asyncio subprocesses. Invocations share nothing but the working directory.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from ..core.errors import CompileFailed

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one command."""

    command: List[str]
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def _run_one(command: Sequence[str], cwd: Path) -> CommandResult:
    logger.debug(f"Running: {' '.join(command)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        return CommandResult(list(command), 127, str(e))

    stdout, _ = await process.communicate()
    return CommandResult(list(command), process.returncode, stdout.decode("utf-8", errors="replace"))


async def _run_all(commands: Sequence[Sequence[str]], cwd: Path) -> List[CommandResult]:
    return list(await asyncio.gather(*(_run_one(command, cwd) for command in commands)))


def run_concurrently(commands: Sequence[Sequence[str]], cwd: Path) -> List[CommandResult]:
    """
    Run ``commands`` concurrently in ``cwd`` and wait for all of them.

    Raises:
        CompileFailed: If any command exits non-zero or cannot be started.
    """
    results = asyncio.run(_run_all(commands, Path(cwd)))
    failed = [r for r in results if not r.ok]
    for result in results:
        level = logging.ERROR if not result.ok else logging.DEBUG
        if result.output.strip():
            logger.log(level, f"{' '.join(result.command)}:\n{result.output.rstrip()}")
    if failed:
        raise CompileFailed([r.command for r in failed], [r.output for r in failed])
    return results
