"""
Fake Exchange Online service and package registry for testing.

Both fakes record every call so tests can assert exactly which remote
actions happened, and can be told to fail on demand.
"""

from typing import Any

from exoconsole.auth_strategy import AuthMethod
from exoconsole.dependency_provisioner import ProvisionError, ProvisionErrorKind
from exoconsole.exchange_service import (
    ConnectFailedError,
    OperationError,
    OperationErrorKind,
    ProbeFailedError,
)

SAMPLE_CALENDAR_PERMISSION = {
    "FolderName": "Calendar",
    "User": "Bob Example",
    "AccessRights": "Editor",
    "SharingPermissionFlags": "Delegate",
}

SAMPLE_MAILBOX_PERMISSION = {
    "Identity": "Alice Example",
    "User": "CONTOSO\\bob",
    "AccessRights": "FullAccess",
    "IsInherited": "False",
    "Deny": "False",
}

SAMPLE_FOLDER_STATS = {
    "Name": "Calendar",
    "FolderPath": "/Calendar",
    "FolderType": "Calendar",
    "ItemsInFolder": "42",
    "FolderSize": "1.2 MB (1,234,567 bytes)",
}


class FakeExchangeService:
    """In-memory ExchangeService.

    Args:
        probe_results: Sequence of booleans returned by successive probes
            (the last value repeats once exhausted)
        connect_error: Exception raised by connect(), if any
        failures: Method name -> exception raised when that method is called
    """

    def __init__(
        self,
        probe_results: list[bool] | None = None,
        connect_error: Exception | None = None,
        failures: dict[str, Exception] | None = None,
    ):
        self.probe_results = list(probe_results) if probe_results is not None else [False, True]
        self.connect_error = connect_error
        self.failures = failures or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._probe_index = 0

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self.failures:
            raise self.failures[method]

    def connect(self, auth_method: AuthMethod) -> None:
        self.calls.append(("connect", (auth_method,)))
        if self.connect_error is not None:
            raise self.connect_error

    def probe(self) -> None:
        self.calls.append(("probe", ()))
        index = min(self._probe_index, len(self.probe_results) - 1)
        self._probe_index += 1
        if not self.probe_results[index]:
            raise ProbeFailedError("No active session")

    def disconnect(self) -> None:
        self._record("disconnect")

    def grant_calendar_access(self, mailbox: str, grantee: str, delegate: bool = False):
        self._record("grant_calendar_access", mailbox, grantee, delegate)
        return [SAMPLE_CALENDAR_PERMISSION]

    def revoke_calendar_access(self, mailbox: str, grantee: str) -> None:
        self._record("revoke_calendar_access", mailbox, grantee)

    def grant_mailbox_access(self, mailbox: str, grantee: str):
        self._record("grant_mailbox_access", mailbox, grantee)
        return [SAMPLE_MAILBOX_PERMISSION]

    def revoke_mailbox_access(self, mailbox: str, grantee: str) -> None:
        self._record("revoke_mailbox_access", mailbox, grantee)

    def get_folder_stats(self, mailbox: str, detailed: bool = False):
        self._record("get_folder_stats", mailbox, detailed)
        return [SAMPLE_FOLDER_STATS]

    def get_folder_permissions(self, mailbox: str):
        self._record("get_folder_permissions", mailbox)
        return [SAMPLE_CALENDAR_PERMISSION]

    def get_mailbox_permissions(self, mailbox: str):
        self._record("get_mailbox_permissions", mailbox)
        return [SAMPLE_MAILBOX_PERMISSION]


def not_found(message: str = "The operation couldn't be performed because object couldn't be found"):
    return OperationError(message, OperationErrorKind.NOT_FOUND)


def connect_failure(unreachable: bool = False) -> ConnectFailedError:
    if unreachable:
        return ConnectFailedError("No such host is known", unreachable=True)
    return ConnectFailedError("AADSTS50126: Invalid username or password")


class FakePackageRegistry:
    """In-memory PackageRegistry.

    Args:
        installed: Installed version, or None if absent
        latest: Published version, or None if unpublished
        registry_error: Raise UNREACHABLE from find_latest_version
        install_error: Make install() fail
        update_error: Make update() fail
        lookup_error: Make get_installed_version() fail
    """

    def __init__(
        self,
        installed: str | None = None,
        latest: str | None = None,
        registry_error: bool = False,
        install_error: bool = False,
        update_error: bool = False,
        lookup_error: bool = False,
    ):
        self.installed = installed
        self.latest = latest
        self.registry_error = registry_error
        self.install_error = install_error
        self.update_error = update_error
        self.lookup_error = lookup_error
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def get_installed_version(self, name: str) -> str | None:
        self.calls.append(("get_installed_version", (name,)))
        if self.lookup_error:
            raise ProvisionError("Get-Module failed", ProvisionErrorKind.LOOKUP_FAILED)
        return self.installed

    def find_latest_version(self, name: str) -> str | None:
        self.calls.append(("find_latest_version", (name,)))
        if self.registry_error:
            raise ProvisionError("Unable to resolve package source", ProvisionErrorKind.UNREACHABLE)
        return self.latest

    def install(self, name: str, scope: str = "user") -> None:
        self.calls.append(("install", (name, scope)))
        if self.install_error:
            raise ProvisionError("Install-Module failed", ProvisionErrorKind.INSTALL_FAILED)
        self.installed = self.latest or "3.5.0"

    def update(self, name: str, scope: str = "user") -> None:
        self.calls.append(("update", (name, scope)))
        if self.update_error:
            raise ProvisionError("Update-Module failed", ProvisionErrorKind.UPDATE_FAILED)
        self.installed = self.latest
