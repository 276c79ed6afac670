"""Terminal output for deploy progress and the info command, using Rich."""

import json
from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"
    RAW = "raw"


def summarize_value(value: Any) -> str:
    """Shorten multi-line values (PEM blocks, keys) to fit a table cell."""
    text = str(value)
    lines = text.strip().splitlines()
    if len(lines) <= 1:
        return text
    return f"{lines[0]} ... ({len(lines)} lines)"


class OutputFormatter:
    """Writes command output in the configured format.

    Deploy progress and command output go to stdout. Warnings and errors go
    to stderr so that `eval "$(concourse-up info --env ...)"` stays clean.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.TABLE,
        color: bool = True,
        quiet: bool = False,
        console: Console | None = None,
        error_console: Console | None = None,
    ):
        self.format = format
        self.color = color
        self.quiet = quiet
        self._console = console or Console(force_terminal=color, no_color=not color)
        self._error_console = error_console or Console(
            stderr=True, force_terminal=color, no_color=not color
        )

    def print(self, message: str, style: str | None = None) -> None:
        """Print a progress message to stdout."""
        if not self.quiet:
            self._console.print(message, style=style, highlight=False)

    def write(self, text: str) -> None:
        """Write text verbatim to stdout, without markup or wrapping."""
        self._console.out(text, end="", highlight=False)

    def print_error(self, message: str) -> None:
        """Print an error message to stderr. Never suppressed."""
        self._error_console.print(f"[red]Error:[/red] {message}", highlight=False)

    def print_warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            self._error_console.print(f"[yellow]WARNING:[/yellow] {message}", highlight=False)

    def print_data(self, data: dict[str, Any], title: str | None = None) -> None:
        """Print a single record in the configured format."""
        if self.format == OutputFormat.JSON:
            self._print_structured(json.dumps(data, indent=2, default=str), "json")
        elif self.format == OutputFormat.YAML:
            self._print_structured(
                yaml.safe_dump(data, default_flow_style=False, sort_keys=False), "yaml"
            )
        elif self.format == OutputFormat.RAW:
            for key, value in data.items():
                self._console.out(f"{key}: {value}", highlight=False)
        else:
            self._print_table(data, title)

    def _print_structured(self, text: str, lexer: str) -> None:
        # Piped output must stay parseable, so only highlight in color mode
        if self.color:
            self._console.print(Syntax(text, lexer, theme="monokai"))
        else:
            self._console.out(text.rstrip("\n"), highlight=False)

    def _print_table(self, data: dict[str, Any], title: str | None) -> None:
        if not data:
            self._console.print("[dim]No data to display[/dim]")
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Field", style="dim")
        table.add_column("Value", overflow="fold")
        for key, value in data.items():
            table.add_row(str(key), summarize_value(value))
        self._console.print(table)


def format_duration(seconds: float) -> str:
    """Format seconds to human-readable duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    elif seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    return f"{seconds / 86400:.1f}d"
