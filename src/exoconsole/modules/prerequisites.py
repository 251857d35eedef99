"""
Prerequisites Checker Module

Verifies a PowerShell host is available before provisioning or connecting.

Security Requirements:
- Read-only system checks
- No shell=True in subprocess calls
- No elevation; install hints are user-scoped where the platform allows
"""

import logging
from dataclasses import dataclass

from .environment_detector import EnvironmentDetector, EnvironmentInfo, Platform

logger = logging.getLogger(__name__)


@dataclass
class PrerequisiteResult:
    """Result of prerequisite checks."""

    all_available: bool
    missing: list[str]
    powershell: str | None
    platform_name: str
    environment: EnvironmentInfo | None = None


_INSTALL_HINTS = {
    Platform.WINDOWS: ["  winget install --id Microsoft.PowerShell --source winget"],
    Platform.MACOS: ["  brew install --cask powershell"],
    Platform.LINUX: [
        "  See: https://learn.microsoft.com/powershell/scripting/install/installing-powershell-on-linux",
        "  or:  sudo snap install powershell --classic",
    ],
    Platform.WSL2: [
        "  See: https://learn.microsoft.com/powershell/scripting/install/installing-powershell-on-linux",
    ],
}


class PrerequisiteChecker:
    """
    Check required external tools are installed.

    Required tools:
    - pwsh (PowerShell 7+) or Windows PowerShell
    """

    def __init__(self, detector: EnvironmentDetector | None = None):
        self.detector = detector or EnvironmentDetector()

    def check_all(self, preferred_powershell: str | None = None) -> PrerequisiteResult:
        """
        Check all prerequisites and return comprehensive result.

        Args:
            preferred_powershell: Executable configured by the operator, if any

        Returns:
            PrerequisiteResult: Detailed check results

        Example:
            >>> result = PrerequisiteChecker().check_all()
            >>> if not result.all_available:
            ...     print(f"Missing: {result.missing}")
        """
        info = self.detector.detect()
        if preferred_powershell:
            powershell = self.detector.find_powershell(preferred_powershell)
        else:
            powershell = info.powershell_path

        missing: list[str] = []
        if powershell is None:
            missing.append(preferred_powershell or "pwsh")

        result = PrerequisiteResult(
            all_available=not missing,
            missing=missing,
            powershell=str(powershell) if powershell else None,
            platform_name=info.platform.value,
            environment=info,
        )

        if result.all_available:
            logger.debug(f"PowerShell found at {result.powershell} ({result.platform_name})")
        else:
            logger.error(f"Missing prerequisites: {', '.join(missing)}")

        return result

    @staticmethod
    def format_missing_message(missing: list[str], platform_name: str) -> str:
        """
        Format user-friendly installation instructions for missing tools.

        Args:
            missing: List of missing tool names
            platform_name: Platform value from EnvironmentDetector

        Returns:
            str: Formatted installation instructions
        """
        if not missing:
            return "All prerequisites are installed."

        lines: list[str] = ["Missing required tools:", ""]
        lines.extend(f"  - {tool}" for tool in missing)
        lines.extend(["", f"Platform: {platform_name}", "", "Install PowerShell 7:"])

        try:
            hints = _INSTALL_HINTS.get(Platform(platform_name))
        except ValueError:
            hints = None
        lines.extend(hints or ["  See: https://aka.ms/powershell"])

        lines.extend(["", "After installing, run 'exoconsole' again."])
        return "\n".join(lines)


def check_prerequisites(preferred_powershell: str | None = None) -> PrerequisiteResult:
    """
    Check all prerequisites (convenience function).

    Example:
        >>> from exoconsole.modules.prerequisites import check_prerequisites
        >>> result = check_prerequisites()
    """
    return PrerequisiteChecker().check_all(preferred_powershell)
