"""Operation report model and Rich rendering.

A Report is what an operation hands back on success: either a table of
records returned by the remote service or a one-line confirmation for a
mutation.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from rich.table import Table
from rich.text import Text


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(_cell(item) for item in value)
    return str(value)


@dataclass(frozen=True)
class Report:
    """Structured result of a successful operation."""

    title: str
    columns: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = field(default_factory=tuple)
    message: str | None = None

    @property
    def is_tabular(self) -> bool:
        return bool(self.columns)

    @classmethod
    def from_records(
        cls,
        title: str,
        records: Iterable[Mapping[str, Any]],
        columns: Sequence[str],
        empty_message: str = "No entries found.",
    ) -> "Report":
        """Build a tabular report, keeping only the named columns.

        Args:
            title: Table title
            records: Objects returned by the remote service
            columns: Property names to show, in order
            empty_message: Message used when there are no records

        Returns:
            Report with one row per record
        """
        rows = tuple(tuple(_cell(record.get(col)) for col in columns) for record in records)
        return cls(
            title=title,
            columns=tuple(columns),
            rows=rows,
            message=None if rows else empty_message,
        )

    @classmethod
    def from_properties(cls, title: str, records: Iterable[Mapping[str, Any]]) -> "Report":
        """Build a property/value report listing every field of every record."""
        rows: list[tuple[str, ...]] = []
        for index, record in enumerate(records):
            if index:
                rows.append(("", ""))
            rows.extend((str(key), _cell(value)) for key, value in record.items())
        return cls(
            title=title,
            columns=("Property", "Value"),
            rows=tuple(rows),
            message=None if rows else "No entries found.",
        )

    @classmethod
    def confirmation(cls, title: str, message: str) -> "Report":
        return cls(title=title, message=message)

    def to_table(self) -> Table:
        """Render as a Rich table.

        Titles and cells carry remote and operator-typed strings, so they are
        wrapped in Text and never parsed as console markup.
        """
        table = Table(title=Text(self.title), show_header=True, header_style="bold cyan")
        for column in self.columns:
            table.add_column(column)
        for row in self.rows:
            table.add_row(*(Text(cell) for cell in row))
        return table


__all__ = ["Report"]
