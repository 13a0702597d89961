"""
Defines the command-line interface for the application using Typer.
"""

import logging
import os
import sys
from collections.abc import Iterator
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from address_book import __version__
from address_book.exceptions import AddressBookError
from address_book.models.config import AddressBookConfig
from address_book.security.cipher import FernetCipher, generate_salt
from address_book.storage.config_manager import ConfigManager
from address_book.storage.record_store import RecordStore

from .formatters import format_error_with_suggestions, print_config, print_result
from .interpreter import CipherFactory, CommandInterpreter

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("address_book")

app = typer.Typer(
    name="address-book",
    help=(
        "An encrypted, file-backed address book. Use 'address-book <command>"
        " --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "address-book"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _config_file(ctx: typer.Context) -> Path:
    return (ctx.obj or {}).get("config_file", CONFIG_FILE)


def _load_config(ctx: typer.Context) -> AddressBookConfig:
    try:
        return ConfigManager(_config_file(ctx)).load_config()
    except AddressBookError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def build_store(config: AddressBookConfig) -> RecordStore:
    """Creates the process-wide record store from the configuration."""
    return RecordStore(config.data_path, file_prefix=config.file_prefix)


def make_cipher_factory(config: AddressBookConfig) -> CipherFactory:
    """
    Returns a factory deriving each user's cipher from their password.
    The user ID is appended to the configured salt so keys differ per user.
    """

    def factory(user_id: str, password: str) -> FernetCipher:
        salt = config.salt_bytes + user_id.encode("utf-8")
        return FernetCipher.from_password(password, salt, config.kdf_iterations)

    return factory


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    config_file: Path = typer.Option(  # noqa: B008
        CONFIG_FILE,
        "--config",
        "-c",
        help="Path to the configuration file.",
    ),
):
    """Address Book CLI"""
    if version:
        console.print(f"[bold]address-book[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("address_book").setLevel(log_level)

    ctx.obj = {"config_file": config_file}

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    data_dir: str | None = typer.Option(
        None, "--data-dir", "-d", help="Directory where record files are stored."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Create a configuration file with a fresh encryption salt."""
    config_file = _config_file(ctx)
    if (
        config_file.exists()
        and not force
        and not typer.confirm(
            "Configuration file already exists. A new salt makes existing records"
            " unreadable. Overwrite it?"
        )
    ):
        raise typer.Abort()

    settings = {"salt": generate_salt()}
    if data_dir:
        settings["data_dir"] = data_dir

    try:
        ConfigManager(config_file).save_new_config(settings)
    except AddressBookError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(
        f"\n[bold green]✓ Configuration saved to '{config_file}'[/bold green]"
    )
    console.print("Start a session with: [cyan]address-book shell[/cyan]")


@app.command(name="show-config")
def show_config(ctx: typer.Context):
    """Display the current configuration."""
    config = _load_config(ctx)
    print_config(_config_file(ctx), config.model_dump(exclude={"config_path"}))


def _read_command_lines() -> Iterator[str]:
    """Yields command lines from the terminal prompt or from piped stdin."""
    if sys.stdin.isatty():
        console.print("[dim]Type HLP for help, Ctrl-D to quit.[/dim]")
        while True:
            try:
                yield console.input("[bold cyan]>[/bold cyan] ")
            except EOFError:
                console.print()
                return
    else:
        yield from sys.stdin


@app.command()
def shell(ctx: typer.Context):
    """Run the interactive command interpreter."""
    config = _load_config(ctx)
    interpreter = CommandInterpreter(build_store(config), make_cipher_factory(config))
    for line in _read_command_lines():
        if not line.strip():
            continue
        print_result(console, interpreter.execute(line))


@app.command(name="export")
def export_command(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="The user whose records to export."),
    output: Path = typer.Argument(  # noqa: B008
        ..., help="File to write the records to."
    ),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="User password."
    ),
):
    """Export all records of a user to a plain text file."""
    config = _load_config(ctx)
    cipher = make_cipher_factory(config)(user_id, password)
    try:
        text = build_store(config).export_all(user_id, cipher.decrypt)
        output.write_text(text, encoding="ascii")
    except AddressBookError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    except OSError as e:
        console.print(f"[red]✗ Could not write '{output}': {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Exported records of '{user_id}' to '{output}'.[/green]")


@app.command(name="import")
def import_command(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="The user whose records to extend."),
    input_file: Path = typer.Argument(  # noqa: B008
        ..., help="Plain text file with one record per line."
    ),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="User password."
    ),
):
    """Import records from a plain text file."""
    config = _load_config(ctx)
    cipher = make_cipher_factory(config)(user_id, password)
    try:
        text = input_file.read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]✗ Could not read '{input_file}': {e}[/red]")
        raise typer.Exit(code=1) from e

    try:
        imported = build_store(config).import_all(
            user_id, cipher.decrypt, cipher.encrypt, text
        )
    except AddressBookError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Imported {imported} records for '{user_id}'.[/green]")
