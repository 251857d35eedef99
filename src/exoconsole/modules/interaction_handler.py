"""Operator interaction abstraction for the console and for tests.

This module provides a protocol-based approach to operator interaction, so the
dispatcher and the operations never talk to the terminal directly. The CLI
implementation uses click for prompts and Rich for report tables; the mock
implementation replays scripted answers and records everything shown.

Example:
    >>> handler = CLIInteractionHandler()
    >>> handler.show_menu("Mailbox administration", [("1", "Grant access"), ("X", "Exit")])
    >>> choice = handler.prompt("Select an option")

    Testing example:
    >>> test_handler = MockInteractionHandler(prompt_responses=["1", "a@x.com", "X"])
    >>> test_handler.prompt("Select an option")
    '1'
"""

from typing import Protocol, runtime_checkable

import click
from rich.console import Console

from exoconsole.report import Report


@runtime_checkable
class InteractionHandler(Protocol):
    """Protocol for operator interaction."""

    def show_menu(self, title: str, entries: list[tuple[str, str]]) -> None:
        """Display a menu of (selector, label) entries."""
        ...

    def prompt(self, message: str) -> str:
        """Read one line of operator input.

        Raises:
            click.Abort: If the operator cancels or input is closed (CLI implementation)
        """
        ...

    def show_report(self, report: Report) -> None:
        """Display an operation report."""
        ...

    def show_info(self, message: str) -> None:
        """Display an informational message."""
        ...

    def show_warning(self, message: str) -> None:
        """Display a warning message."""
        ...

    def show_error(self, message: str) -> None:
        """Display an error message."""
        ...


class CLIInteractionHandler:
    """Click and Rich based console interaction handler.

    Menu selectors in cyan, warnings in yellow, errors in red, reports as
    Rich tables.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def show_menu(self, title: str, entries: list[tuple[str, str]]) -> None:
        click.echo()
        click.secho(title, fg="green", bold=True)
        click.echo("=" * 60)
        for selector, label in entries:
            click.echo(f"  {click.style(selector, fg='cyan')}. {label}")
        click.echo("=" * 60)

    def prompt(self, message: str) -> str:
        # click.prompt raises click.Abort on Ctrl+C or closed stdin
        return click.prompt(message, type=str, default="", show_default=False)

    def show_report(self, report: Report) -> None:
        if report.is_tabular and report.rows:
            self.console.print(report.to_table())
            return
        click.secho(report.title, fg="green", bold=True)
        if report.message:
            click.echo(report.message)

    def show_info(self, message: str) -> None:
        click.secho(message, fg="green")

    def show_warning(self, message: str) -> None:
        click.secho(f"Warning: {message}", fg="yellow", err=True)

    def show_error(self, message: str) -> None:
        click.secho(f"Error: {message}", fg="red", err=True)


class MockInteractionHandler:
    """Mock interaction handler for testing with pre-programmed responses.

    Provides deterministic answers without a terminal and tracks every
    interaction for verification in tests.

    Example:
        >>> handler = MockInteractionHandler(prompt_responses=["9", "a@x.com", "X"])
        >>> handler.prompt("Select an option")
        '9'
        >>> handler.show_info("done")
        >>> len(handler.interactions)
        2
    """

    def __init__(self, prompt_responses: list[str] | None = None):
        self.prompt_responses = list(prompt_responses or [])
        self.interactions: list[dict] = []
        self._prompt_index = 0

    def show_menu(self, title: str, entries: list[tuple[str, str]]) -> None:
        self.interactions.append({"type": "menu", "message": title, "entries": list(entries)})

    def prompt(self, message: str) -> str:
        """Return the next pre-programmed response.

        Raises:
            IndexError: If no more responses are available
        """
        if self._prompt_index >= len(self.prompt_responses):
            raise IndexError(
                f"No more prompt responses available. "
                f"Provided {len(self.prompt_responses)}, "
                f"needed {self._prompt_index + 1}"
            )

        response = self.prompt_responses[self._prompt_index]
        self._prompt_index += 1
        self.interactions.append({"type": "prompt", "message": message, "response": response})
        return response

    def show_report(self, report: Report) -> None:
        self.interactions.append({"type": "report", "message": report.title, "report": report})

    def show_info(self, message: str) -> None:
        self.interactions.append({"type": "info", "message": message})

    def show_warning(self, message: str) -> None:
        self.interactions.append({"type": "warning", "message": message})

    def show_error(self, message: str) -> None:
        self.interactions.append({"type": "error", "message": message})

    @property
    def remaining_responses(self) -> int:
        return len(self.prompt_responses) - self._prompt_index

    def get_interactions_by_type(self, interaction_type: str) -> list[dict]:
        """Get all interactions of one type ("menu", "prompt", "report", "info", "warning", "error")."""
        return [
            interaction
            for interaction in self.interactions
            if interaction["type"] == interaction_type
        ]
