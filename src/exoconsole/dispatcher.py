"""Interactive command dispatcher.

Shows the operation catalog, reads one selector, runs it, and repeats until
the operator exits. Each iteration is independent: no batching, no retries,
no concurrency.

Selectors (case-insensitive):
    1-9  run the matching operation
    D    disconnect the session, then exit
    X    exit, leaving the session as it is
"""

import logging
from collections import deque
from collections.abc import Mapping
from enum import Enum

import click

from exoconsole.exchange_service import ExchangeService
from exoconsole.modules.interaction_handler import InteractionHandler
from exoconsole.operations import Operation, OperationOutcome, execute
from exoconsole.session_manager import SessionManager

logger = logging.getLogger(__name__)

DISCONNECT_KEY = "D"
EXIT_KEY = "X"
MENU_TITLE = "Exchange Online mailbox administration"

# Outcomes kept for the current run; older ones are dropped
HISTORY_LIMIT = 20


class Action(Enum):
    RUN = "run"
    DISCONNECT = "disconnect"
    EXIT = "exit"
    INVALID = "invalid"


def resolve_choice(
    selector: str, registry: Mapping[str, Operation]
) -> tuple[Action, Operation | None]:
    """Map raw operator input to an action.

    Example:
        >>> resolve_choice(" x ", registry)
        (<Action.EXIT: 'exit'>, None)
    """
    key = selector.strip().upper()
    if key == EXIT_KEY:
        return Action.EXIT, None
    if key == DISCONNECT_KEY:
        return Action.DISCONNECT, None
    operation = registry.get(key)
    if operation is not None:
        return Action.RUN, operation
    return Action.INVALID, None


class CommandDispatcher:
    """Operator menu loop over a fixed operation registry."""

    def __init__(
        self,
        registry: Mapping[str, Operation],
        service: ExchangeService,
        session_manager: SessionManager,
        interaction: InteractionHandler,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.registry = registry
        self.service = service
        self.session_manager = session_manager
        self.interaction = interaction
        self.history: deque[OperationOutcome] = deque(maxlen=history_limit)

    def menu_entries(self) -> list[tuple[str, str]]:
        entries = [(op.key, op.label) for op in self.registry.values()]
        entries.append((DISCONNECT_KEY, "Disconnect and exit"))
        entries.append((EXIT_KEY, "Exit"))
        return entries

    def run(self) -> None:
        """Loop until the operator chooses D or X."""
        while True:
            self.interaction.show_menu(MENU_TITLE, self.menu_entries())
            try:
                selector = self.interaction.prompt("Select an option")
            except click.Abort:
                logger.debug("Input closed at menu prompt; exiting")
                return

            action, operation = resolve_choice(selector, self.registry)

            if action == Action.EXIT:
                return
            if action == Action.DISCONNECT:
                self.session_manager.disconnect()
                self.interaction.show_info("Session disconnected.")
                return
            if action == Action.INVALID:
                self.interaction.show_warning(f"Invalid choice '{selector.strip()}'. Try again.")
                continue

            self.history.append(execute(operation, self.service, self.interaction))


__all__ = ["Action", "CommandDispatcher", "DISCONNECT_KEY", "EXIT_KEY", "resolve_choice"]
