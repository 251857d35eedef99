"""Exchange Online administration service.

This module defines the remote administration capability the console depends
on (``ExchangeService``) and its implementation on top of the
ExchangeOnlineManagement PowerShell module (``ExchangeOnlineService``).

Every method maps to exactly one cmdlet call. Results are flattened to plain
string properties inside PowerShell so the JSON crossing the process boundary
stays shallow.

Errors:
- ConnectFailedError: Connect-ExchangeOnline failed (auth or network)
- ProbeFailedError: the liveness probe failed (no usable session)
- OperationError: an administration call failed; ``kind`` classifies why
"""

import logging
import re
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from exoconsole.auth_strategy import AuthMethod
from exoconsole.powershell_host import PowerShellError, PowerShellHost, PowerShellHostError, ps_quote

logger = logging.getLogger(__name__)

MODULE_NAME = "ExchangeOnlineManagement"


class ExchangeServiceError(Exception):
    """Base class for remote administration failures."""

    pass


class ConnectFailedError(ExchangeServiceError):
    """Raised when a session cannot be established.

    Attributes:
        unreachable: True when the service could not be reached at all,
            False when it was reached but sign-in failed
    """

    def __init__(self, message: str, unreachable: bool = False):
        super().__init__(message)
        self.unreachable = unreachable


class ProbeFailedError(ExchangeServiceError):
    """Raised when the liveness probe does not get a response."""

    pass


class OperationErrorKind(Enum):
    """Why an administration call failed."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    ALREADY_EXISTS = "already_exists"
    UNKNOWN = "unknown"

    @property
    def hint(self) -> str:
        return _HINTS[self]


_HINTS = {
    OperationErrorKind.NOT_FOUND: "check the mailbox and user identifiers",
    OperationErrorKind.PERMISSION_DENIED: "your account may lack the required Exchange admin role",
    OperationErrorKind.ALREADY_EXISTS: "the permission is already in place",
    OperationErrorKind.UNKNOWN: "the session may have expired or the service rejected the request",
}


class OperationError(ExchangeServiceError):
    """Raised when an administration call fails."""

    def __init__(self, message: str, kind: OperationErrorKind = OperationErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind


# Order matters: "no existing permission entry" must win over "existing permission entry"
_KIND_PATTERNS: list[tuple[OperationErrorKind, re.Pattern]] = [
    (
        OperationErrorKind.NOT_FOUND,
        re.compile(
            r"couldn't be found|could not be found|no existing permission|doesn't exist"
            r"|does not exist|ManagementObjectNotFound|UserNotFound",
            re.IGNORECASE,
        ),
    ),
    (
        OperationErrorKind.ALREADY_EXISTS,
        re.compile(
            r"already exists|existing permission entry|UserAlreadyExists|already has",
            re.IGNORECASE,
        ),
    ),
    (
        OperationErrorKind.PERMISSION_DENIED,
        re.compile(
            r"access is denied|access denied|not authorized|unauthorized|write scope"
            r"|insufficient|not allowed",
            re.IGNORECASE,
        ),
    ),
]

_CATEGORY_KINDS = {
    "ObjectNotFound": OperationErrorKind.NOT_FOUND,
    "ResourceExists": OperationErrorKind.ALREADY_EXISTS,
    "PermissionDenied": OperationErrorKind.PERMISSION_DENIED,
    "SecurityError": OperationErrorKind.PERMISSION_DENIED,
}

_UNREACHABLE_PATTERN = re.compile(
    r"No such host|name resolution|network|timed out|timeout|Unable to connect"
    r"|connection (was )?(refused|reset|closed)|proxy",
    re.IGNORECASE,
)


def classify_error(error: Exception) -> OperationErrorKind:
    """Map a PowerShell failure to an operation error kind.

    Message text is checked before the error category because Exchange
    reports most failures with a generic category.
    """
    message = str(error)
    error_id = getattr(error, "error_id", "")
    for kind, pattern in _KIND_PATTERNS:
        if pattern.search(message) or (error_id and pattern.search(error_id)):
            return kind
    category = getattr(error, "category", "")
    return _CATEGORY_KINDS.get(category, OperationErrorKind.UNKNOWN)


@runtime_checkable
class ExchangeService(Protocol):
    """Remote administration capability used by the session manager and operations."""

    def connect(self, auth_method: AuthMethod) -> None: ...

    def probe(self) -> None: ...

    def disconnect(self) -> None: ...

    def grant_calendar_access(
        self, mailbox: str, grantee: str, delegate: bool = False
    ) -> list[dict[str, Any]]: ...

    def revoke_calendar_access(self, mailbox: str, grantee: str) -> None: ...

    def grant_mailbox_access(self, mailbox: str, grantee: str) -> list[dict[str, Any]]: ...

    def revoke_mailbox_access(self, mailbox: str, grantee: str) -> None: ...

    def get_folder_stats(self, mailbox: str, detailed: bool = False) -> list[dict[str, Any]]: ...

    def get_folder_permissions(self, mailbox: str) -> list[dict[str, Any]]: ...

    def get_mailbox_permissions(self, mailbox: str) -> list[dict[str, Any]]: ...


def _select_as_text(properties: list[str]) -> str:
    """Select-Object clause that renders each property as a string."""
    columns = ", ".join(f'@{{n={ps_quote(p)};e={{"$($_.{p})"}}}}' for p in properties)
    return f"Select-Object -Property {columns}"


# Every property of every object, rendered as strings, for detailed views
_ALL_PROPERTIES_AS_TEXT = (
    "ForEach-Object { $o = [ordered]@{}; "
    'foreach ($p in $_.PSObject.Properties) { $o[$p.Name] = "$($p.Value)" }; '
    "[pscustomobject]$o }"
)

CALENDAR_PERMISSION_FIELDS = ["FolderName", "User", "AccessRights", "SharingPermissionFlags"]
MAILBOX_PERMISSION_FIELDS = ["Identity", "User", "AccessRights", "IsInherited", "Deny"]
FOLDER_STATS_FIELDS = ["Name", "FolderPath", "FolderType", "ItemsInFolder", "FolderSize"]


def calendar_folder(mailbox: str) -> str:
    """Folder identity of a mailbox's default calendar."""
    return f"{mailbox}:\\Calendar"


class ExchangeOnlineService:
    """ExchangeService backed by the ExchangeOnlineManagement module.

    All calls run in one PowerShellHost, which holds the session between calls.
    """

    def __init__(
        self,
        host: PowerShellHost,
        user_principal_name: str | None = None,
        organization: str | None = None,
        module_name: str = MODULE_NAME,
    ):
        self.host = host
        self.user_principal_name = user_principal_name
        self.organization = organization
        self.module_name = module_name

    def connect(self, auth_method: AuthMethod) -> None:
        """Run Connect-ExchangeOnline with the chosen sign-in flow.

        Raises:
            ConnectFailedError: If sign-in fails or the service is unreachable
        """
        parts = ["Connect-ExchangeOnline", "-ShowBanner:$false"]
        if auth_method == AuthMethod.DEVICE_CODE:
            parts.append("-Device")
        if self.user_principal_name:
            parts.append(f"-UserPrincipalName {ps_quote(self.user_principal_name)}")
        if self.organization:
            parts.append(f"-Organization {ps_quote(self.organization)}")

        script = f"Import-Module {ps_quote(self.module_name)}; {' '.join(parts)}"
        logger.debug(f"Connecting with {auth_method.display_name} sign-in")
        try:
            self.host.invoke(script)
        except PowerShellHostError as e:
            raise ConnectFailedError(str(e), unreachable=True) from e
        except PowerShellError as e:
            raise ConnectFailedError(str(e), unreachable=bool(_UNREACHABLE_PATTERN.search(str(e)))) from e

    def probe(self) -> None:
        """Single-item mailbox lookup; an empty result still counts as alive.

        Raises:
            ProbeFailedError: If the call fails for any reason
        """
        try:
            self.host.invoke("$null = Get-EXOMailbox -ResultSize 1")
        except (PowerShellError, PowerShellHostError) as e:
            raise ProbeFailedError(str(e)) from e

    def disconnect(self) -> None:
        self._call("Disconnect-ExchangeOnline -Confirm:$false")

    def grant_calendar_access(
        self, mailbox: str, grantee: str, delegate: bool = False
    ) -> list[dict[str, Any]]:
        script = (
            f"Add-MailboxFolderPermission -Identity {ps_quote(calendar_folder(mailbox))} "
            f"-User {ps_quote(grantee)} -AccessRights Editor"
        )
        if delegate:
            script += " -SharingPermissionFlags Delegate"
        return self._call(f"{script} | {_select_as_text(CALENDAR_PERMISSION_FIELDS)}")

    def revoke_calendar_access(self, mailbox: str, grantee: str) -> None:
        self._call(
            f"Remove-MailboxFolderPermission -Identity {ps_quote(calendar_folder(mailbox))} "
            f"-User {ps_quote(grantee)} -Confirm:$false"
        )

    def grant_mailbox_access(self, mailbox: str, grantee: str) -> list[dict[str, Any]]:
        script = (
            f"Add-MailboxPermission -Identity {ps_quote(mailbox)} -User {ps_quote(grantee)} "
            f"-AccessRights FullAccess -InheritanceType All"
        )
        return self._call(f"{script} | {_select_as_text(MAILBOX_PERMISSION_FIELDS)}")

    def revoke_mailbox_access(self, mailbox: str, grantee: str) -> None:
        self._call(
            f"Remove-MailboxPermission -Identity {ps_quote(mailbox)} -User {ps_quote(grantee)} "
            f"-AccessRights FullAccess -InheritanceType All -Confirm:$false"
        )

    def get_folder_stats(self, mailbox: str, detailed: bool = False) -> list[dict[str, Any]]:
        script = f"Get-EXOMailboxFolderStatistics -Identity {ps_quote(mailbox)} -FolderScope Calendar"
        if detailed:
            return self._call(f"{script} -IncludeOldestAndNewestItems | {_ALL_PROPERTIES_AS_TEXT}")
        return self._call(f"{script} | {_select_as_text(FOLDER_STATS_FIELDS)}")

    def get_folder_permissions(self, mailbox: str) -> list[dict[str, Any]]:
        return self._call(
            f"Get-EXOMailboxFolderPermission -Identity {ps_quote(calendar_folder(mailbox))} "
            f"| {_select_as_text(CALENDAR_PERMISSION_FIELDS)}"
        )

    def get_mailbox_permissions(self, mailbox: str) -> list[dict[str, Any]]:
        return self._call(
            f"Get-EXOMailboxPermission -Identity {ps_quote(mailbox)} "
            f"| {_select_as_text(MAILBOX_PERMISSION_FIELDS)}"
        )

    def _call(self, script: str) -> list[dict[str, Any]]:
        try:
            output = self.host.invoke(script)
        except PowerShellHostError as e:
            raise OperationError(str(e), OperationErrorKind.UNKNOWN) from e
        except PowerShellError as e:
            raise OperationError(str(e), classify_error(e)) from e
        return [item for item in output if isinstance(item, dict)]


__all__ = [
    "ConnectFailedError",
    "ExchangeOnlineService",
    "ExchangeService",
    "ExchangeServiceError",
    "OperationError",
    "OperationErrorKind",
    "ProbeFailedError",
    "calendar_folder",
    "classify_error",
]
