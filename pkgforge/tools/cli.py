"""Async subprocess runner for pkgforge.

Everything that invokes an external command (npm, nix, the editor, the
migration launcher) goes through this module. It provides:

- Structured results (stdout, stderr, returncode) via CommandResult
- Async execution via asyncio.create_subprocess_exec
- Configurable timeouts with automatic process cleanup
- Stripped output for clean parsing
- run_interactive for children that own the terminal (editor, migrations):
  stdio is inherited and there is no timeout
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

# Default timeout for captured commands (seconds).
# nix eval completes in seconds; npm builds override this.
DEFAULT_TIMEOUT_SECONDS = 60


@dataclass
class CommandResult:
    """Structured result from a CLI invocation."""

    stdout: str
    stderr: str
    returncode: int

    def __post_init__(self) -> None:
        self.stdout = self.stdout.strip()
        self.stderr = self.stderr.strip()

    @property
    def success(self) -> bool:
        """True if the command exited with code 0."""
        return self.returncode == 0


async def run_command(
    *args: str,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    cwd: str | None = None,
) -> CommandResult:
    """Run a CLI command asynchronously and return a structured result.

    Args:
        *args: Command and arguments (e.g. "npm", "run", "build").
        timeout_seconds: Maximum runtime before the process is killed.
            Defaults to DEFAULT_TIMEOUT_SECONDS.
        cwd: Working directory for the child. Defaults to the current one.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        TimeoutError: If the command exceeds timeout_seconds. The process is killed.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            proc.communicate(),
            timeout=timeout_seconds,
        )
    except TimeoutError:
        proc.kill()
        await proc.wait()
        cmd_str = " ".join(args)
        msg = f"Command timed out after {timeout_seconds}s: {cmd_str}"
        raise TimeoutError(msg) from None

    return CommandResult(
        stdout=stdout_bytes.decode() if stdout_bytes else "",
        stderr=stderr_bytes.decode() if stderr_bytes else "",
        returncode=proc.returncode or 0,
    )


async def run_interactive(*args: str, cwd: str | None = None) -> int:
    """Run a command attached to the caller's terminal and return its exit status.

    The child's diagnostics go straight to the user; nothing is captured.
    """
    proc = await asyncio.create_subprocess_exec(*args, cwd=cwd)
    return await proc.wait()
