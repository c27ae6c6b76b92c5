"""Async subprocess helpers for CLI-based adapters."""

import asyncio
import contextlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..models.adapter import ProbeResult
from .cancellation import CancellationToken
from .exceptions import CancelledError, UnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ToolOutput:
    """Captured result of one tool invocation."""

    returncode: int
    stdout: str
    stderr: str


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    try:
        await asyncio.wait_for(process.wait(), timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning(f"Process {process.pid} did not exit after kill")


async def run_tool(
    cmd: list[str],
    cwd: str | Path | None = None,
    token: CancellationToken | None = None,
    ok_returncodes: tuple[int, ...] = (0,),
) -> ToolOutput:
    """Run a CLI tool and capture its output.

    The child process is killed if the surrounding task is cancelled (for
    example by the harness deadline) or if the token fires.

    Raises:
        UnavailableError: If the executable cannot be started or exits with
            a return code outside ok_returncodes
        CancelledError: If the token was cancelled while the tool ran
    """
    if token is not None:
        token.raise_if_cancelled()

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise UnavailableError(f"Cannot start {cmd[0]}: {e}") from e

    communicate = asyncio.ensure_future(process.communicate())
    waiters: set[asyncio.Future] = {communicate}
    cancel_wait = None
    if token is not None:
        cancel_wait = asyncio.ensure_future(token.wait())
        waiters.add(cancel_wait)

    try:
        done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        communicate.cancel()
        await _terminate(process)
        raise
    finally:
        if cancel_wait is not None and not cancel_wait.done():
            cancel_wait.cancel()

    if communicate not in done:
        communicate.cancel()
        await _terminate(process)
        raise CancelledError(f"{cmd[0]} cancelled: {token.reason if token else ''}")

    stdout, stderr = communicate.result()
    output = ToolOutput(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )

    if output.returncode not in ok_returncodes:
        raise UnavailableError(
            f"{cmd[0]} exited with code {output.returncode}: {output.stderr.strip()[:500]}"
        )
    return output


async def probe_executable(executable: str, version_args: tuple[str, ...] = ("--version",)) -> ProbeResult:
    """Check whether a CLI tool is installed and report its version."""
    if shutil.which(executable) is None:
        return ProbeResult(
            available=False,
            diagnostics=[f"{executable} not found on PATH"],
        )

    try:
        output = await run_tool([executable, *version_args])
    except UnavailableError as e:
        return ProbeResult(available=False, diagnostics=[str(e)])

    text = (output.stdout or output.stderr).strip()
    version = text.splitlines()[0] if text else None
    return ProbeResult(available=True, version=version)
