"""Async wrapper around ffmpeg/ffprobe subprocesses.

Each call awaits its own child process, so concurrent jobs never block one
another. A timeout or task cancellation kills the child before the error
propagates.
"""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandTimeout(Exception):
    pass


def summarize_stderr(stderr: str) -> str:
    """Pick the most useful line from ffmpeg's stderr for an error message."""
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    for keyword in ("error", "invalid", "failed", "no such file"):
        for line in reversed(lines):
            if keyword in line.lower():
                return line
    return lines[-1] if lines else "no output"


async def run_command(args: list[str], timeout: float | None = None) -> CommandResult:
    """Run an external command and collect its output.

    Raises OSError if the binary cannot be started and CommandTimeout if
    the command outlives ``timeout``.
    """
    if timeout is None:
        timeout = settings.FFMPEG_TIMEOUT_SECONDS
    logger.debug("Running %s", " ".join(args))
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(process)
        raise CommandTimeout(f"{Path(args[0]).name} timed out after {timeout}s")
    except asyncio.CancelledError:
        await _kill(process)
        raise
    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()
