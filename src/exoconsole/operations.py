"""Operation registry: the fixed catalog of mailbox administration commands.

Each operation asks for its identifiers, makes exactly one remote call and
returns a Report. ``execute`` is the failure boundary: whatever goes wrong
inside an operation is reported to the operator and never escapes, so one bad
identifier cannot end the console session.

Adding a command means adding one row to ``CATALOG``.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

import click

from exoconsole.exchange_service import (
    CALENDAR_PERMISSION_FIELDS,
    FOLDER_STATS_FIELDS,
    MAILBOX_PERMISSION_FIELDS,
    ExchangeService,
    OperationError,
)
from exoconsole.modules.interaction_handler import InteractionHandler
from exoconsole.report import Report

logger = logging.getLogger(__name__)

MAILBOX_PROMPT = "Target mailbox (e.g. room@contoso.com)"
GRANTEE_PROMPT = "User to grant or revoke (e.g. jane@contoso.com)"

Handler = Callable[[ExchangeService, Sequence[str]], Report]


@dataclass(frozen=True)
class Operation:
    """Immutable catalog entry."""

    key: str
    label: str
    prompts: tuple[str, ...]
    handler: Handler
    mutates: bool = False


@dataclass
class OperationOutcome:
    """What happened when an operation ran."""

    operation: Operation
    identifiers: tuple[str, ...]
    report: Report | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _grant_calendar_editor_delegate(service: ExchangeService, ids: Sequence[str]) -> Report:
    mailbox, grantee = ids
    records = service.grant_calendar_access(mailbox, grantee, delegate=True)
    return Report.from_records(
        f"Calendar permission added on {mailbox}",
        records,
        CALENDAR_PERMISSION_FIELDS,
        empty_message=f"{grantee} now has Editor (Delegate) access to {mailbox}'s calendar.",
    )


def _grant_calendar_editor(service: ExchangeService, ids: Sequence[str]) -> Report:
    mailbox, grantee = ids
    records = service.grant_calendar_access(mailbox, grantee, delegate=False)
    return Report.from_records(
        f"Calendar permission added on {mailbox}",
        records,
        CALENDAR_PERMISSION_FIELDS,
        empty_message=f"{grantee} now has Editor access to {mailbox}'s calendar.",
    )


def _revoke_calendar(service: ExchangeService, ids: Sequence[str]) -> Report:
    mailbox, grantee = ids
    service.revoke_calendar_access(mailbox, grantee)
    return Report.confirmation(
        "Calendar permission removed",
        f"{grantee} no longer has access to {mailbox}'s calendar.",
    )


def _grant_full_access(service: ExchangeService, ids: Sequence[str]) -> Report:
    mailbox, grantee = ids
    records = service.grant_mailbox_access(mailbox, grantee)
    return Report.from_records(
        f"Mailbox permission added on {mailbox}",
        records,
        MAILBOX_PERMISSION_FIELDS,
        empty_message=f"{grantee} now has FullAccess to {mailbox}.",
    )


def _revoke_full_access(service: ExchangeService, ids: Sequence[str]) -> Report:
    mailbox, grantee = ids
    service.revoke_mailbox_access(mailbox, grantee)
    return Report.confirmation(
        "Mailbox permission removed",
        f"{grantee} no longer has FullAccess to {mailbox}.",
    )


def _calendar_stats_summary(service: ExchangeService, ids: Sequence[str]) -> Report:
    (mailbox,) = ids
    return Report.from_records(
        f"Calendar folders of {mailbox}",
        service.get_folder_stats(mailbox),
        FOLDER_STATS_FIELDS,
    )


def _calendar_stats_detailed(service: ExchangeService, ids: Sequence[str]) -> Report:
    (mailbox,) = ids
    return Report.from_properties(
        f"Calendar folder details for {mailbox}",
        service.get_folder_stats(mailbox, detailed=True),
    )


def _calendar_permissions(service: ExchangeService, ids: Sequence[str]) -> Report:
    (mailbox,) = ids
    return Report.from_records(
        f"Calendar permissions of {mailbox}",
        service.get_folder_permissions(mailbox),
        CALENDAR_PERMISSION_FIELDS,
    )


def _mailbox_permissions(service: ExchangeService, ids: Sequence[str]) -> Report:
    (mailbox,) = ids
    return Report.from_records(
        f"Mailbox permissions of {mailbox}",
        service.get_mailbox_permissions(mailbox),
        MAILBOX_PERMISSION_FIELDS,
    )


_PAIR = (MAILBOX_PROMPT, GRANTEE_PROMPT)
_SINGLE = (MAILBOX_PROMPT,)

CATALOG: tuple[Operation, ...] = (
    Operation("1", "Grant calendar access (Editor + Delegate)", _PAIR, _grant_calendar_editor_delegate, True),
    Operation("2", "Grant calendar access (Editor)", _PAIR, _grant_calendar_editor, True),
    Operation("3", "Revoke calendar access", _PAIR, _revoke_calendar, True),
    Operation("4", "Grant full mailbox access", _PAIR, _grant_full_access, True),
    Operation("5", "Revoke full mailbox access", _PAIR, _revoke_full_access, True),
    Operation("6", "Calendar folder statistics (summary)", _SINGLE, _calendar_stats_summary),
    Operation("7", "Calendar folder statistics (detailed)", _SINGLE, _calendar_stats_detailed),
    Operation("8", "List calendar folder permissions", _SINGLE, _calendar_permissions),
    Operation("9", "List mailbox permissions", _SINGLE, _mailbox_permissions),
)


def build_registry(catalog: Sequence[Operation] = CATALOG) -> Mapping[str, Operation]:
    """Build the read-only selector -> operation mapping.

    Raises:
        ValueError: If two operations share a key
    """
    registry: dict[str, Operation] = {}
    for operation in catalog:
        key = operation.key.upper()
        if key in registry:
            raise ValueError(f"Duplicate operation key: {key}")
        registry[key] = operation
    return MappingProxyType(registry)


def collect_identifiers(operation: Operation, interaction: InteractionHandler) -> tuple[str, ...]:
    """Prompt for each identifier of an operation.

    Raises:
        ValueError: If an identifier is left blank
    """
    identifiers = []
    for prompt in operation.prompts:
        value = interaction.prompt(prompt).strip()
        if not value:
            raise ValueError(f"{prompt.split(' (')[0]} is required")
        identifiers.append(value)
    return tuple(identifiers)


def execute(
    operation: Operation,
    service: ExchangeService,
    interaction: InteractionHandler,
) -> OperationOutcome:
    """Run one operation end to end. Never raises.

    Args:
        operation: Catalog entry to run
        service: Remote administration service
        interaction: Where prompts are read and results are shown

    Returns:
        OperationOutcome with the report or the failure message
    """
    try:
        identifiers = collect_identifiers(operation, interaction)
    except ValueError as e:
        return _fail(operation, (), interaction, f"{operation.label}: {e}.")
    except click.Abort:
        return _fail(operation, (), interaction, f"{operation.label}: cancelled.")

    logger.debug(f"Running '{operation.label}' with {identifiers}")
    try:
        report = operation.handler(service, identifiers)
        interaction.show_report(report)
    except OperationError as e:
        message = f"{operation.label} failed: {e} ({e.kind.hint})."
        return _fail(operation, identifiers, interaction, message)
    except Exception as e:
        logger.debug(f"Unexpected error in '{operation.label}'", exc_info=True)
        message = f"{operation.label} failed unexpectedly: {e}."
        return _fail(operation, identifiers, interaction, message)

    return OperationOutcome(operation=operation, identifiers=identifiers, report=report)


def _fail(
    operation: Operation,
    identifiers: tuple[str, ...],
    interaction: InteractionHandler,
    message: str,
) -> OperationOutcome:
    interaction.show_error(message)
    return OperationOutcome(operation=operation, identifiers=identifiers, error=message)


__all__ = [
    "CATALOG",
    "Operation",
    "OperationOutcome",
    "build_registry",
    "collect_identifiers",
    "execute",
]
