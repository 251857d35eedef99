"""Long-lived PowerShell host process.

Exchange Online sessions live inside a PowerShell runspace, so a session only
survives as long as the process that created it. This module keeps one
``pwsh`` child process alive for the whole console run and sends it one
script at a time.

Wire format:
- Python writes each script as a single base64 (UTF-8) line on stdin.
- The host loop decodes it, runs it with ``$ErrorActionPreference = 'Stop'``
  and writes a JSON envelope between BEGIN/END sentinel lines on stdout.
- Anything printed outside the sentinels (device-code instructions, warnings
  written with Write-Host) is relayed to ``on_output`` as it arrives.

Calls block until the script finishes. No client-side timeout is applied.
"""

import base64
import json
import logging
import subprocess
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

BEGIN_SENTINEL = "<<<EXOCONSOLE-BEGIN>>>"
END_SENTINEL = "<<<EXOCONSOLE-END>>>"

HOST_LOOP = r"""
$ErrorActionPreference = 'Stop'
$ProgressPreference = 'SilentlyContinue'
while ($true) {
    $line = [Console]::In.ReadLine()
    if ($null -eq $line) { break }
    $script = [Text.Encoding]::UTF8.GetString([Convert]::FromBase64String($line))
    try {
        $output = @(& ([scriptblock]::Create($script)))
        $payload = @{ ok = $true; output = $output } | ConvertTo-Json -Depth 5 -Compress
    } catch {
        $payload = @{
            ok = $false
            error = @{
                message = $_.Exception.Message
                category = "$($_.CategoryInfo.Category)"
                error_id = "$($_.FullyQualifiedErrorId)"
                exception_type = $_.Exception.GetType().FullName
            }
        } | ConvertTo-Json -Depth 3 -Compress
    }
    [Console]::Out.WriteLine('__BEGIN__')
    [Console]::Out.WriteLine($payload)
    [Console]::Out.WriteLine('__END__')
    [Console]::Out.Flush()
}
""".replace("__BEGIN__", BEGIN_SENTINEL).replace("__END__", END_SENTINEL)


class PowerShellHostError(Exception):
    """Raised when the PowerShell process cannot be started or stops responding."""

    pass


class PowerShellError(Exception):
    """Raised when a script run by the host throws.

    Attributes:
        category: PowerShell ErrorCategory name (e.g. ObjectNotFound)
        error_id: FullyQualifiedErrorId of the error record
        exception_type: .NET type of the underlying exception
    """

    def __init__(
        self,
        message: str,
        category: str = "",
        error_id: str = "",
        exception_type: str = "",
    ):
        super().__init__(message)
        self.category = category
        self.error_id = error_id
        self.exception_type = exception_type


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal.

    Example:
        >>> ps_quote("o'brien@contoso.com")
        "'o''brien@contoso.com'"
    """
    return "'" + value.replace("'", "''") + "'"


class PowerShellHost:
    """One persistent PowerShell process executing scripts sequentially.

    Example:
        >>> with PowerShellHost("pwsh") as host:
        ...     host.invoke("$PSVersionTable.PSVersion.Major")
        [7]
    """

    def __init__(
        self,
        executable: str = "pwsh",
        on_output: Callable[[str], None] | None = None,
    ):
        self.executable = executable
        self.on_output = on_output or logger.info
        self._process: subprocess.Popen | None = None
        self._stderr_thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        """Start the host process if it is not already running.

        Raises:
            PowerShellHostError: If the executable cannot be launched
        """
        if self.is_running:
            return

        # -EncodedCommand (UTF-16LE base64) sidesteps Windows argument quoting
        encoded_loop = base64.b64encode(HOST_LOOP.encode("utf-16-le")).decode("ascii")
        cmd = [
            self.executable,
            "-NoLogo",
            "-NoProfile",
            "-NonInteractive",
            "-EncodedCommand",
            encoded_loop,
        ]
        logger.debug(f"Starting PowerShell host: {self.executable}")
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise PowerShellHostError(f"Cannot start {self.executable}: {e}") from e

        self._stderr_thread = threading.Thread(
            target=self._drain_stderr, args=(self._process.stderr,), daemon=True
        )
        self._stderr_thread.start()

    def invoke(self, script: str) -> list[Any]:
        """Run a script and return its pipeline output.

        Args:
            script: PowerShell script text

        Returns:
            Output objects decoded from JSON (always a list)

        Raises:
            PowerShellError: If the script throws
            PowerShellHostError: If the host is not running or exits mid-call
        """
        if not self.is_running:
            raise PowerShellHostError("PowerShell host is not running")

        logger.debug(f"PowerShell: {script}")
        encoded = base64.b64encode(script.encode("utf-8")).decode("ascii")
        try:
            self._process.stdin.write(encoded + "\n")
            self._process.stdin.flush()
        except (BrokenPipeError, OSError) as e:
            raise PowerShellHostError(f"PowerShell host stopped accepting input: {e}") from e

        envelope = self._read_envelope()
        if envelope.get("ok"):
            output = envelope.get("output")
            if output is None:
                return []
            return output if isinstance(output, list) else [output]

        error = envelope.get("error") or {}
        raise PowerShellError(
            error.get("message") or "PowerShell command failed",
            category=error.get("category") or "",
            error_id=error.get("error_id") or "",
            exception_type=error.get("exception_type") or "",
        )

    def close(self) -> None:
        """Stop the host process. Safe to call more than once."""
        if self._process is None:
            return

        process, self._process = self._process, None
        try:
            if process.stdin and not process.stdin.closed:
                process.stdin.close()
            process.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired):
            process.kill()
            process.wait()
        logger.debug("PowerShell host stopped")

    def __enter__(self) -> "PowerShellHost":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _read_envelope(self) -> dict:
        stdout = self._process.stdout
        in_payload = False
        payload_lines: list[str] = []

        for raw in stdout:
            line = raw.rstrip("\r\n")
            if not in_payload:
                if line == BEGIN_SENTINEL:
                    in_payload = True
                elif line.strip():
                    self.on_output(line)
                continue
            if line == END_SENTINEL:
                try:
                    return json.loads("\n".join(payload_lines))
                except json.JSONDecodeError as e:
                    raise PowerShellHostError(f"Malformed response from PowerShell host: {e}") from e
            payload_lines.append(line)

        raise PowerShellHostError("PowerShell host exited unexpectedly")

    @staticmethod
    def _drain_stderr(pipe) -> None:
        try:
            for line in pipe:
                if line.strip():
                    logger.debug(f"pwsh stderr: {line.rstrip()}")
        except (OSError, ValueError):
            # Pipe closed during shutdown
            pass


__all__ = ["PowerShellError", "PowerShellHost", "PowerShellHostError", "ps_quote"]
