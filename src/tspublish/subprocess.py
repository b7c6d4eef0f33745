"""Subprocess helpers used by the collaborator adapters."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """
    Result from running a subprocess.

    Attributes:
        returncode: The exit code of the process.
        stdout: Captured stdout.
        stderr: Captured stderr.
        command: The command that was executed.

    """

    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if the command succeeded (exit code 0)."""
        return self.returncode == 0

    @property
    def failed(self) -> bool:
        """True if the command failed (non-zero exit code)."""
        return self.returncode != 0


class SubprocessError(Exception):
    """Raised when a subprocess fails and check=True."""

    def __init__(self, result: RunResult):
        self.result = result
        cmd_str = " ".join(result.command)
        super().__init__(f"Command '{cmd_str}' failed with exit code {result.returncode}")


def run(
    *args: str | Path,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    check: bool = False,
) -> RunResult:
    """
    Run a subprocess command and capture its output.

    Values in `env` are merged into the current environment and never appear
    in the command line or the debug log, which makes it the channel for
    secrets (`docker exec -e NAME` reads NAME from here).

    Args:
        *args: Command and arguments to run (e.g., "docker", "exec", ...)
        cwd: Working directory for the command
        env: Additional environment variables (merged with current environment)
        check: If True, raise SubprocessError on non-zero exit code

    Returns:
        RunResult with exit code and captured output

    Raises:
        SubprocessError: If check=True and the command fails
        FileNotFoundError: If the command is not found

    Example:
        >>> result = run("git", "ls-remote", "--tags", url)
        >>> result.ok
        True

    """
    cmd = [str(arg) for arg in args]

    run_env = os.environ.copy()
    if env:
        run_env.update(env)

    logger.debug("> %s", " ".join(cmd))
    completed = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        env=run_env,
        capture_output=True,
        text=True,
    )
    result = RunResult(
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        command=cmd,
    )

    if check and result.failed:
        raise SubprocessError(result)

    return result
