"""Output formatting for the command-line tools."""

import json
from typing import Any, Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Writes user-facing messages as plain text or JSON."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine readable JSON instead of text
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet

    def print(self, message: str = "") -> None:
        if not self.json_output:
            click.echo(message)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            click.echo(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            click.secho(message, fg="green")

    def warning(self, message: str) -> None:
        if not self.json_output:
            click.secho(message, fg="yellow", err=True)

    def error(self, message: str) -> None:
        # Errors are shown even in JSON mode, on stderr
        click.secho(f"Error: {message}", fg="red", err=True)

    def output_json(self, data: Any) -> None:
        click.echo(json.dumps(data, indent=2, default=str))

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a rich table (or as JSON in JSON mode).

        Args:
            rows: One dict per row
            columns: Keys to show, in order
            headers: Optional display names for the columns
        """
        if self.json_output:
            self.output_json(rows)
            return

        headers = headers or {}
        table = Table(box=box.SIMPLE_HEAD, show_edge=False, pad_edge=False)
        for col in columns:
            table.add_column(headers.get(col, col), no_wrap=True)
        for row in rows:
            table.add_row(
                *["" if row.get(col) is None else str(row[col]) for col in columns]
            )
        Console(highlight=False).print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled block of ``label: value`` lines."""
        if self.json_output:
            return
        click.echo("")
        click.secho(title, bold=True)
        click.echo("=" * len(title))
        width = max((len(label) for label, _ in items), default=0)
        for label, value in items:
            click.echo(f"{label.ljust(width)}  {value}")

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)
