"""Subprocess runner for external collaborators (report generator, signer).

Commands run synchronously with a timeout and captured output.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process."""

    stderr: str
    """Standard error captured from the process."""

    success: bool
    """True if returncode is 0."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""


class SubprocessError(Exception):
    """Exception raised when subprocess execution fails."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        super().__init__(message)
        self.result = result


def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float = 120.0,
    env: dict[str, str] | None = None,
    check: bool = False,
) -> SubprocessResult:
    """Execute *command* and capture its output.

    Args:
        command: Command and arguments, e.g. ``['java', '-jar', 'jacococli.jar', 'report']``.
        cwd: Working directory. Defaults to the current directory.
        timeout: Maximum seconds to wait for completion.
        env: Environment for the child process (inherits the current one when None).
        check: If True, raise SubprocessError on a non-zero exit code.

    Raises:
        SubprocessError: the command is missing, or *check* is set and it failed.
        ValueError: *command* is empty, *timeout* is not positive, or *cwd*
            does not exist.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    printable = " ".join(str(c) for c in command)
    logger.debug("Running subprocess: %s (cwd=%s, timeout=%s)", printable, work_dir, timeout)

    start_time = time.perf_counter()
    try:
        completed = subprocess.run(
            [str(c) for c in command],
            cwd=work_dir,
            env=env,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Subprocess timed out after %s seconds: %s", timeout, printable)
        result = SubprocessResult(
            returncode=-1,
            stdout="",
            stderr="Process timed out and was killed",
            success=False,
            timed_out=True,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(returncode=-1, stdout="", stderr=str(exc), success=False),
        ) from exc
    else:
        result = SubprocessResult(
            returncode=completed.returncode,
            stdout=completed.stdout.decode("utf-8", errors="replace"),
            stderr=completed.stderr.decode("utf-8", errors="replace"),
            success=completed.returncode == 0,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
        result.returncode,
        result.duration_ms,
        result.success,
    )

    if check and not result.success:
        raise SubprocessError(
            f"Command failed with exit code {result.returncode}: {printable}",
            result=result,
        )
    return result
