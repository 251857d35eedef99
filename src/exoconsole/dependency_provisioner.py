"""Dependency provisioning for the Exchange Online client module.

Philosophy:
- Idempotent: running twice leaves the same installed state
- User-scoped: never installs system-wide, never elevates
- Stale beats blocked: a registry, lookup or update failure never stops the session

Public API (the "studs"):
    DependencyRecord: What is known about the dependency
    ProvisionStatus: Outcome enum
    ProvisionResult: Result dataclass
    ProvisionError: Raised when a missing dependency cannot be installed
    PackageRegistry: Registry capability protocol
    PowerShellGalleryRegistry: PowerShellGet-backed registry
    DependencyProvisioner: Main provisioner class
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from packaging.version import InvalidVersion, Version

from exoconsole.modules.subprocess_helper import safe_run
from exoconsole.powershell_host import ps_quote

logger = logging.getLogger(__name__)


class ProvisionErrorKind(Enum):
    UNREACHABLE = "unreachable"
    LOOKUP_FAILED = "lookup_failed"
    INSTALL_FAILED = "install_failed"
    UPDATE_FAILED = "update_failed"


class ProvisionError(Exception):
    """Raised when a registry or install/update step fails."""

    def __init__(self, message: str, kind: ProvisionErrorKind):
        super().__init__(message)
        self.kind = kind


class ProvisionStatus(Enum):
    """Provisioning outcome."""

    INSTALLED = "installed"
    UPDATED = "updated"
    UP_TO_DATE = "up_to_date"
    UPDATE_FAILED = "update_failed"
    UPDATE_CHECK_SKIPPED = "update_check_skipped"
    LOOKUP_FAILED = "lookup_failed"


@dataclass
class DependencyRecord:
    """Installed and published versions of one dependency."""

    name: str
    installed_version: str | None = None
    latest_available_version: str | None = None

    @property
    def is_installed(self) -> bool:
        return self.installed_version is not None

    @property
    def update_available(self) -> bool:
        """True only when both versions parse and the published one is strictly newer."""
        if not (self.installed_version and self.latest_available_version):
            return False
        try:
            return Version(self.latest_available_version) > Version(self.installed_version)
        except InvalidVersion:
            logger.warning(
                f"Cannot compare {self.name} versions "
                f"'{self.installed_version}' and '{self.latest_available_version}'"
            )
            return False


@dataclass
class ProvisionResult:
    """Result of ensure_dependency."""

    status: ProvisionStatus
    record: DependencyRecord
    message: str | None = None


@runtime_checkable
class PackageRegistry(Protocol):
    """Local package state plus the remote registry it installs from."""

    def get_installed_version(self, name: str) -> str | None:
        """Return the highest installed version, or None if absent.

        Raises:
            ProvisionError: kind LOOKUP_FAILED if local state cannot be read
        """
        ...

    def find_latest_version(self, name: str) -> str | None:
        """Return the latest published version, or None if unpublished.

        Raises:
            ProvisionError: kind UNREACHABLE if the registry cannot be queried
        """
        ...

    def install(self, name: str, scope: str = "user") -> None:
        """Raises ProvisionError (INSTALL_FAILED) on failure."""
        ...

    def update(self, name: str, scope: str = "user") -> None:
        """Raises ProvisionError (UPDATE_FAILED) on failure."""
        ...


class PowerShellGalleryRegistry:
    """PackageRegistry backed by PowerShellGet and the PowerShell Gallery.

    Each call runs a short-lived PowerShell process, separate from the
    session host, so module install/update never touches a loaded session.
    """

    SCOPES = {"user": "CurrentUser"}

    def __init__(self, executable: str = "pwsh", timeout: int | None = 600):
        self.executable = executable
        self.timeout = timeout

    def get_installed_version(self, name: str) -> str | None:
        script = (
            f"Get-Module -ListAvailable -Name {ps_quote(name)} | Sort-Object Version -Descending "
            "| Select-Object -First 1 | ForEach-Object { $_.Version.ToString() }"
        )
        result = self._run(script)
        if not result.ok:
            raise ProvisionError(
                f"Cannot list installed modules: {result.error_text()}",
                ProvisionErrorKind.LOOKUP_FAILED,
            )
        version = result.stdout.strip()
        return version or None

    def find_latest_version(self, name: str) -> str | None:
        script = (
            f"Find-Module -Name {ps_quote(name)} -Repository PSGallery -ErrorAction Stop "
            "| Select-Object -Property Name, @{n='Version';e={\"$($_.Version)\"}} "
            "| ConvertTo-Json -Compress"
        )
        result = self._run(script)
        if not result.ok:
            if "No match was found" in result.stderr or "No match was found" in result.stdout:
                return None
            raise ProvisionError(
                f"Cannot query PowerShell Gallery: {result.error_text()}",
                ProvisionErrorKind.UNREACHABLE,
            )
        if not result.stdout.strip():
            return None
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ProvisionError(
                f"Unexpected Find-Module output: {e}", ProvisionErrorKind.UNREACHABLE
            ) from e
        if isinstance(data, list):
            data = data[0] if data else {}
        return data.get("Version") or None

    def install(self, name: str, scope: str = "user") -> None:
        script = (
            f"Install-Module -Name {ps_quote(name)} -Scope {self.SCOPES[scope]} "
            "-Repository PSGallery -Force -AllowClobber"
        )
        result = self._run(script)
        if not result.ok:
            raise ProvisionError(
                f"Install-Module {name} failed: {result.error_text()}",
                ProvisionErrorKind.INSTALL_FAILED,
            )

    def update(self, name: str, scope: str = "user") -> None:
        script = f"Update-Module -Name {ps_quote(name)} -Scope {self.SCOPES[scope]} -Force"
        result = self._run(script)
        if not result.ok:
            raise ProvisionError(
                f"Update-Module {name} failed: {result.error_text()}",
                ProvisionErrorKind.UPDATE_FAILED,
            )

    def _run(self, script: str):
        return safe_run(
            [self.executable, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", script],
            timeout=self.timeout,
        )


class DependencyProvisioner:
    """Make sure the client module is installed and reasonably current.

    Example:
        >>> provisioner = DependencyProvisioner(PowerShellGalleryRegistry())
        >>> result = provisioner.ensure_dependency("ExchangeOnlineManagement")
        >>> result.status
        <ProvisionStatus.UP_TO_DATE: 'up_to_date'>
    """

    def __init__(self, registry: PackageRegistry, skip_update_check: bool = False):
        self.registry = registry
        self.skip_update_check = skip_update_check

    def ensure_dependency(self, name: str) -> ProvisionResult:
        """Install the dependency if absent, otherwise update it if a newer version exists.

        Args:
            name: Dependency name (e.g. "ExchangeOnlineManagement")

        Returns:
            ProvisionResult describing what happened

        Raises:
            ValueError: If name is empty
            ProvisionError: Only if the dependency is known to be absent and
                installation fails
        """
        if not name or not name.strip():
            raise ValueError("Dependency name cannot be empty")

        record = DependencyRecord(name=name)
        try:
            record.installed_version = self.registry.get_installed_version(name)
        except ProvisionError as e:
            # Unknown is not absent: never force-install over a module we could not see
            logger.warning(f"Could not tell whether {name} is installed ({e}); leaving it as is")
            return ProvisionResult(status=ProvisionStatus.LOOKUP_FAILED, record=record, message=str(e))

        if not record.is_installed:
            logger.info(f"{name} is not installed; installing for the current user...")
            self.registry.install(name, scope="user")
            try:
                record.installed_version = self.registry.get_installed_version(name)
            except ProvisionError as e:
                logger.warning(f"Installed {name} but could not read its version: {e}")
                return ProvisionResult(status=ProvisionStatus.INSTALLED, record=record, message=str(e))
            if not record.is_installed:
                raise ProvisionError(
                    f"{name} was installed but cannot be found afterwards",
                    ProvisionErrorKind.INSTALL_FAILED,
                )
            logger.info(f"Installed {name} {record.installed_version}")
            return ProvisionResult(status=ProvisionStatus.INSTALLED, record=record)

        if self.skip_update_check:
            logger.debug(f"Skipping update check for {name} {record.installed_version}")
            return ProvisionResult(status=ProvisionStatus.UPDATE_CHECK_SKIPPED, record=record)

        try:
            record.latest_available_version = self.registry.find_latest_version(name)
        except ProvisionError as e:
            logger.warning(f"Could not check for {name} updates ({e}); using {record.installed_version}")
            return ProvisionResult(
                status=ProvisionStatus.UPDATE_CHECK_SKIPPED, record=record, message=str(e)
            )

        if not record.update_available:
            logger.debug(f"{name} {record.installed_version} is up to date")
            return ProvisionResult(status=ProvisionStatus.UP_TO_DATE, record=record)

        logger.info(
            f"Updating {name} {record.installed_version} -> {record.latest_available_version}..."
        )
        try:
            self.registry.update(name, scope="user")
        except ProvisionError as e:
            logger.warning(f"Update failed, keeping {name} {record.installed_version}: {e}")
            return ProvisionResult(
                status=ProvisionStatus.UPDATE_FAILED, record=record, message=str(e)
            )

        record.installed_version = record.latest_available_version
        return ProvisionResult(status=ProvisionStatus.UPDATED, record=record)


__all__ = [
    "DependencyProvisioner",
    "DependencyRecord",
    "PackageRegistry",
    "PowerShellGalleryRegistry",
    "ProvisionError",
    "ProvisionErrorKind",
    "ProvisionResult",
    "ProvisionStatus",
]
