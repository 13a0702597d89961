"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from address_book.models.record import ContactRecord
from address_book.storage.config_manager import SENSITIVE_KEYS

from .interpreter import CommandResult


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `address-book init` to create a configuration file.",
            "• Check the values with `address-book show-config`.",
        ],
        "DecryptionError": [
            "• The password may be wrong for this user.",
            "• The record file may have been modified or corrupted.",
        ],
        "StorageReadError": [
            "• Check that the data directory exists and is readable.",
            "• Exporting requires the user to have saved at least one record.",
        ],
        "StorageWriteError": [
            "• Check that the data directory is writable.",
            "• Make sure the disk is not full.",
        ],
        "DuplicateRecordError": [
            "• Records imported before the duplicate were kept.",
            "• Remove the duplicate line from the input file and import the rest.",
        ],
        "CapacityExceededError": [
            "• Delete records you no longer need before adding new ones.",
        ],
        "InvalidIdentifierError": [
            "• User IDs must be valid file names.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key in SENSITIVE_KEYS:
            value = "********"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def build_records_table(
    records: list[ContactRecord], field_names: list[str] | None = None
) -> Table:
    """Builds a table with one row per record and one column per field."""
    if field_names:
        columns = list(field_names)
    else:
        columns = list(
            dict.fromkeys(name for record in records for name in record.fields)
        )

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Record ID", style="bold cyan", no_wrap=True)
    for name in columns:
        table.add_column(name)
    for record in records:
        values = record.project(columns)
        table.add_row(
            Text(record.record_id), *(Text(values.get(n, "")) for n in columns)
        )
    return table


def print_result(console: Console, result: CommandResult) -> None:
    """Renders the outcome of one interpreter command."""
    if result.records:
        console.print(build_records_table(result.records, result.fields))
    if not result.message:
        return
    if result.ok:
        console.print(Text(result.message, style="green"))
    elif result.error is not None:
        console.print(Text(f"{type(result.error).__name__}: {result.message}", "red"))
    else:
        console.print(Text(result.message, style="red"))
