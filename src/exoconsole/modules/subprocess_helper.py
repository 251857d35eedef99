"""Blocking subprocess execution for short-lived PowerShell commands.

Philosophy:
- Single responsibility: Run one command to completion and capture output
- Standard library only (no external dependencies)
- Never raises for a missing executable or OS error; reports it in the result

Public API (the "studs"):
    SubprocessResult: Result dataclass
    safe_run: Main execution function
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Exit code used by shells for "command not found"
COMMAND_NOT_FOUND = 127


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """True when the command exited 0 within its timeout."""
        return self.returncode == 0 and not self.timed_out

    def error_text(self) -> str:
        """Best single-line description of why the command failed."""
        if self.timed_out:
            return "command timed out"
        text = (self.stderr or self.stdout).strip()
        if not text:
            return f"exit code {self.returncode}"
        return text.splitlines()[-1]


def _drain(pipe, sink: list[bytes]) -> None:
    """Read a pipe to EOF so the child never blocks on a full buffer."""
    try:
        data = pipe.read()
        if data:
            sink.append(data)
    except OSError:
        # Pipe closed during termination
        pass


def safe_run(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: int | None = None,
    env: dict | None = None,
) -> SubprocessResult:
    """Run a command and capture its output.

    stdout and stderr are drained on background threads, so a chatty
    command (Install-Module progress output, for example) cannot deadlock.

    Args:
        cmd: Command and arguments
        cwd: Working directory
        timeout: Timeout in seconds (None = wait indefinitely)
        env: Environment variables

    Returns:
        SubprocessResult with output and exit code

    Example:
        >>> result = safe_run(["pwsh", "-NoProfile", "-Command", "$PSVersionTable.PSVersion"])
        >>> result.ok
        True
    """
    logger.debug("Running: %s", cmd[0] if cmd else "<empty>")

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=env,
        )
    except FileNotFoundError:
        return SubprocessResult(
            returncode=COMMAND_NOT_FOUND,
            stdout="",
            stderr=f"Command not found: {cmd[0] if cmd else 'unknown'}",
        )
    except OSError as e:
        return SubprocessResult(
            returncode=1,
            stdout="",
            stderr=f"Error executing command: {e!s}",
        )

    stdout_data: list[bytes] = []
    stderr_data: list[bytes] = []
    readers = [
        threading.Thread(target=_drain, args=(process.stdout, stdout_data), daemon=True),
        threading.Thread(target=_drain, args=(process.stderr, stderr_data), daemon=True),
    ]
    for reader in readers:
        reader.start()

    timed_out = False
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.warning("Command exceeded %ss, terminating: %s", timeout, cmd[0])
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()

    for reader in readers:
        reader.join(timeout=1)

    return SubprocessResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=b"".join(stdout_data).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr_data).decode("utf-8", errors="replace"),
        timed_out=timed_out,
    )


__all__ = ["COMMAND_NOT_FOUND", "SubprocessResult", "safe_run"]
