"""CLI entry point for the secure filesystem server."""

import asyncio
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.table import Table

from secure_fs import __version__
from secure_fs.cli.constants import ExitCodes
from secure_fs.cli.utils import get_console, setup_logging
from secure_fs.config import (
    ConfigurationError,
    ServerSettings,
    check_allowed_directories,
    create_sample_config,
    resolve_settings,
    validate_config,
)

app = typer.Typer(help="Secure filesystem server - sandboxed file access over MCP")

# stdout belongs to the protocol stream once the server runs
console = get_console()
err_console = get_console(stderr=True)

logger = logging.getLogger(__name__)


@app.command()
def main(
    directories: list[str] = typer.Argument(
        None, help="Allowed directories (used when the configuration lists none)"
    ),
    config: Path = typer.Option(None, "--config", "-c", help="Path to a JSON configuration file"),
    create_config: Path = typer.Option(
        None, "--create-config", help="Write a sample configuration file and exit"
    ),
    check: bool = typer.Option(False, "--check", help="Show the effective configuration and exit"),
    version_flag: bool = typer.Option(False, "--version", help="Show version"),
) -> None:
    """Serve a sandboxed filesystem over the Model Context Protocol (stdio).

    \b
    Examples:
        secure-fs ~/projects                      # Expose one directory
        secure-fs /srv/data /srv/docs             # Expose several directories
        secure-fs --config ~/.secure-fs/config.json
        secure-fs --create-config config.json     # Write a sample configuration
        secure-fs ~/projects --check              # Show effective settings
    """
    if version_flag:
        console.print(f"secure-fs version {__version__}")
        return

    if create_config:
        try:
            create_sample_config(create_config)
        except ConfigurationError as e:
            err_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(ExitCodes.GENERAL_ERROR) from e
        console.print(f"[green]Sample configuration written to {create_config}[/green]")
        return

    load_dotenv()

    try:
        settings = resolve_settings(config, directories or [])
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(ExitCodes.GENERAL_ERROR) from e

    if check:
        show_configuration(settings)
        if validate_config(settings):
            raise typer.Exit(ExitCodes.GENERAL_ERROR)
        return

    setup_logging(settings.log_level, settings.log_file)

    try:
        check_allowed_directories(settings.allowed_directories)
    except ConfigurationError as e:
        logger.error(str(e))
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(ExitCodes.GENERAL_ERROR) from e

    # Deferred so --version and --check stay fast
    from secure_fs.server import create_context, serve

    context = create_context(settings)
    try:
        asyncio.run(serve(context))
    except KeyboardInterrupt:
        logger.info("Server interrupted")
        raise typer.Exit(ExitCodes.INTERRUPTED)


def show_configuration(settings: ServerSettings) -> None:
    """Print the effective configuration and any validation problems."""
    table = Table(title=f"{settings.server_name} {settings.server_version}", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("allowed_directories", "\n".join(settings.allowed_directories) or "-")
    table.add_row("log_level", settings.log_level)
    table.add_row("log_file", settings.log_file or "stderr")
    table.add_row(
        "cache",
        f"enabled={settings.cache.enabled} max_size={settings.cache.max_size} "
        f"ttl={settings.cache.ttl_seconds}s",
    )
    table.add_row(
        "metrics",
        f"enabled={settings.metrics.enabled} "
        f"report_interval={settings.metrics.report_interval_seconds}s",
    )
    max_size = settings.security.max_file_size
    table.add_row(
        "security",
        f"max_file_size={max_size or 'unlimited'} allow_symlinks={settings.security.allow_symlinks} "
        f"writes_enabled={settings.security.writes_enabled}",
    )
    console.print(table)

    errors = validate_config(settings)
    if errors:
        for error in errors:
            console.print(f"[red]✗[/red] {error}")
    else:
        console.print("[green]✓ Configuration is valid[/green]")
