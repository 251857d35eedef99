"""Host environment and PowerShell detection.

Philosophy:
- Single responsibility: Classify the host and locate PowerShell
- Standard library only (no external dependencies)
- Read-only checks; nothing here changes the system

Public API (the "studs"):
    Platform: Operating system enum
    EnvironmentClass: Interactive-display vs headless enum
    EnvironmentInfo: Detection result dataclass
    EnvironmentDetector: Main detector class
"""

import os
import platform
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Platform(Enum):
    """Operating system families."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    WSL2 = "wsl2"
    UNKNOWN = "unknown"


class EnvironmentClass(Enum):
    """Whether a browser can be opened on this host."""

    INTERACTIVE_DISPLAY = "interactive_display"
    HEADLESS = "headless"


@dataclass
class EnvironmentInfo:
    """Complete environment detection result."""

    platform: Platform
    environment_class: EnvironmentClass
    powershell_path: Path | None

    @property
    def has_display(self) -> bool:
        return self.environment_class == EnvironmentClass.INTERACTIVE_DISPLAY


class EnvironmentDetector:
    """Detects the runtime platform, display availability and PowerShell."""

    # PowerShell 7 first; Windows PowerShell 5.1 only as a fallback on Windows
    POWERSHELL_CANDIDATES = ["pwsh", "powershell"]

    SSH_VARIABLES = ["SSH_CONNECTION", "SSH_CLIENT", "SSH_TTY"]
    DISPLAY_VARIABLES = ["DISPLAY", "WAYLAND_DISPLAY"]

    def detect(self) -> EnvironmentInfo:
        """Perform complete detection of platform, display and PowerShell.

        Returns:
            EnvironmentInfo with all detection results

        Example:
            >>> info = EnvironmentDetector().detect()
            >>> info.environment_class
            <EnvironmentClass.INTERACTIVE_DISPLAY: 'interactive_display'>
        """
        host_platform = self._detect_platform()
        return EnvironmentInfo(
            platform=host_platform,
            environment_class=self._classify(host_platform),
            powershell_path=self.find_powershell(),
        )

    def find_powershell(self, preferred: str | None = None) -> Path | None:
        """Locate a PowerShell executable.

        Args:
            preferred: Explicit executable name or path from configuration

        Returns:
            Path to the executable, or None if not found
        """
        candidates = [preferred] if preferred else self.POWERSHELL_CANDIDATES
        for candidate in candidates:
            found = shutil.which(candidate)
            if found:
                return Path(found)
        return None

    def _detect_platform(self) -> Platform:
        system = platform.system()

        if system == "Windows":
            return Platform.WINDOWS
        if system == "Darwin":
            return Platform.MACOS
        if system == "Linux":
            if self._is_wsl2():
                return Platform.WSL2
            return Platform.LINUX
        return Platform.UNKNOWN

    def _classify(self, host_platform: Platform) -> EnvironmentClass:
        """Decide whether an interactive browser sign-in is possible."""
        # A remote shell cannot pop a browser on the operator's screen
        if any(os.environ.get(var) for var in self.SSH_VARIABLES):
            return EnvironmentClass.HEADLESS

        if host_platform in (Platform.WINDOWS, Platform.MACOS, Platform.WSL2):
            return EnvironmentClass.INTERACTIVE_DISPLAY

        if any(os.environ.get(var) for var in self.DISPLAY_VARIABLES):
            return EnvironmentClass.INTERACTIVE_DISPLAY

        return EnvironmentClass.HEADLESS

    def _is_wsl2(self) -> bool:
        """Check if running in WSL2."""
        if os.environ.get("WSL_DISTRO_NAME") or os.environ.get("WSL_INTEROP"):
            return True

        try:
            proc_version = Path("/proc/version")
            if proc_version.exists():
                content = proc_version.read_text().lower()
                return "microsoft" in content or "wsl2" in content
        except OSError:
            pass

        return Path("/run/WSL").exists()


__all__ = ["EnvironmentClass", "EnvironmentDetector", "EnvironmentInfo", "Platform"]
