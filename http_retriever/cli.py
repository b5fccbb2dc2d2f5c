"""Command line entry point for the HTTP library retriever.

This module defines the Typer application used to retrieve a library or
validate a library version outside of a host, e.g. from a CI script.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigManager
from .errors import RetrieverError
from .interfaces import LibraryRetriever
from .models import ExecutionContext, LogLevel
from .registry import get_registry
from .retriever import HttpRetriever

app = typer.Typer(
    name="http-retriever",
    help="Retrieve versioned library archives over HTTP(S).",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Manage the retriever configuration file.",
    no_args_is_help=True,
)
app.add_typer(config_app)

console = Console()
err_console = Console(stderr=True)


def configure_logging(log_level: str) -> None:
    """Configure structlog and standard logging with the specified level.

    Args:
        log_level: Log level string (debug, info, warning, error).
    """
    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    level = level_map.get(log_level.lower(), logging.WARNING)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        stream=sys.stderr,
        force=True,
    )

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]http-retriever[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="Log level (debug, info, warning, error)."),
    ] = None,
) -> None:
    """HTTP library retriever."""
    ctx.obj = {"log_level": log_level}
    configure_logging(log_level or LogLevel.WARNING.value)


def _build_retriever(
    ctx: typer.Context,
    config_path: Path | None,
    name: str,
    url: str | None,
    credentials_id: str | None,
    preemptive_auth: bool | None,
) -> LibraryRetriever:
    """Create a retriever from the configuration file and command line overrides."""
    manager = ConfigManager(config_path)
    if not (ctx.obj or {}).get("log_level"):
        configure_logging(manager.get_settings().log_level.value)
    library = manager.get_library_config(name)

    overrides: dict[str, object] = {}
    if url is not None:
        overrides["http_url"] = url
    if credentials_id is not None:
        overrides["credentials_id"] = credentials_id
    if preemptive_auth is not None:
        overrides["preemptive_auth"] = preemptive_auth

    return get_registry().create(
        HttpRetriever.symbol,
        library.model_copy(update=overrides),
        credential_store=manager.build_credential_store(),
        settings=manager.get_settings(),
    )


ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to the configuration file."),
]
UrlOption = Annotated[
    str | None,
    typer.Option("--url", "-u", help="URL template, overrides the configuration."),
]
CredentialsOption = Annotated[
    str | None,
    typer.Option("--credentials-id", help="Credential reference, overrides the configuration."),
]
PreemptiveOption = Annotated[
    bool | None,
    typer.Option(
        "--preemptive-auth/--no-preemptive-auth",
        help="Send Basic credentials on the first request.",
    ),
]


@app.command()
def retrieve(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Library name.")],
    version: Annotated[str, typer.Argument(help="Library version.")],
    target: Annotated[Path, typer.Argument(help="Directory receiving the library.")],
    url: UrlOption = None,
    credentials_id: CredentialsOption = None,
    preemptive_auth: PreemptiveOption = None,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Base workspace (default: current directory)."),
    ] = None,
    owner: Annotated[str, typer.Option("--owner", help="Name of the requesting job.")] = "cli",
    config: ConfigOption = None,
) -> None:
    """Retrieve a library version into TARGET."""
    retriever = _build_retriever(ctx, config, name, url, credentials_id, preemptive_auth)
    context = ExecutionContext(owner=owner, workspace=workspace or Path.cwd())

    try:
        outcome = asyncio.run(retriever.retrieve(name, version, target, context, sys.stdout))
    except RetrieverError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if outcome.target is None:
        console.print(f"[yellow]No URL configured for library '{name}', nothing retrieved[/yellow]")
    else:
        console.print(f"[green]Library {name} retrieved into {outcome.target}[/green]")


@app.command()
def validate(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Library name.")],
    version: Annotated[str, typer.Argument(help="Library version.")],
    url: UrlOption = None,
    credentials_id: CredentialsOption = None,
    preemptive_auth: PreemptiveOption = None,
    config: ConfigOption = None,
) -> None:
    """Check that a library version can be downloaded."""
    retriever = _build_retriever(ctx, config, name, url, credentials_id, preemptive_auth)
    result = asyncio.run(retriever.validate_version(name, version))

    if result.ok:
        console.print(f"[green]{result.message}[/green]")
        return

    console.print(f"[yellow]Warning: {result.message}[/yellow]")
    if result.cause:
        console.print(f"[dim]{result.cause}[/dim]")
    raise typer.Exit(1)


@config_app.command("init")
def config_init(
    config: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite existing file.")] = False,
) -> None:
    """Create a configuration file with defaults."""
    manager = ConfigManager(config)
    if manager.init_config(force=force):
        console.print(f"[green]Configuration created at {manager.config_path}[/green]")
    else:
        console.print(f"[yellow]Configuration already exists at {manager.config_path}[/yellow]")


@config_app.command("show")
def config_show(config: ConfigOption = None) -> None:
    """Show configured libraries."""
    manager = ConfigManager(config)
    app_config = manager.get_config()

    table = Table(title="Libraries", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    table.add_column("Credentials")
    table.add_column("Preemptive auth", justify="center")

    for name, library in sorted(app_config.libraries.items()):
        table.add_row(
            name,
            library.http_url or "-",
            library.credentials_id or "-",
            "yes" if library.preemptive_auth else "no",
        )

    console.print(table)
    console.print(f"Credentials: {', '.join(sorted(app_config.credentials)) or '-'}")


if __name__ == "__main__":
    app()
