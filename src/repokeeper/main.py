from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter

import typer
from rich import box
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core.config import AppConfig, ConfigLoadResult, load_config
from .core.console import console, get_logger, setup_logging
from .core.registry import discover_commands

app = typer.Typer(help="repokeeper: GitHub repository housekeeping and commit history repair.")
logger = get_logger(__name__)

_registered = False


@dataclass
class AppState:
    config: AppConfig
    config_meta: ConfigLoadResult
    logger: logging.Logger


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to a repokeeper config file (TOML or JSON)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Plan rewrites without creating commits or moving refs."
    ),
) -> None:
    # load_config never raises; errors come back in meta.error
    loaded_config, meta = load_config(config_path=config)
    if dry_run:
        updated_user = loaded_config.user.model_copy(update={"dry_run": True})
        loaded_config = loaded_config.model_copy(update={"user": updated_user})

    logger = setup_logging(level=loaded_config.user.log_level, verbose=verbose)

    ctx.obj = AppState(config=loaded_config, config_meta=meta, logger=logger)

    if meta.error:
        console.print(
            Panel(
                f"[bold red]Configuration Error - Safe Mode Active[/bold red]\n\n"
                f"Failed to load {meta.path}:\n{escape(meta.error)}\n\n"
                f"[yellow]Using default settings.[/yellow]",
                border_style="red",
            )
        )
    else:
        logger.debug(
            "Loaded configuration from %s (env overrides: %s)",
            meta.path,
            sorted(meta.env_overrides),
        )


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the active settings and where each one came from."""
    state: AppState = ctx.obj
    meta = state.config_meta
    explicit = state.config.model_dump(exclude_defaults=True)

    table = Table(title=f"repokeeper settings ({meta.path})", box=box.SIMPLE, expand=True)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_column("Source", style="dim", no_wrap=True)

    # model_dump() keeps SecretStr masked
    for group, values in state.config.model_dump().items():
        for key, value in values.items():
            dotted = f"{group}.{key}"
            if dotted in meta.env_overrides:
                source = "env"
            elif key in explicit.get(group, {}):
                source = "config"
            else:
                source = "default"
            table.add_row(dotted, escape(str(value)), source)

    console.print(table)
    if not meta.file_loaded and meta.error is None:
        console.print(f"[dim]No config file at {meta.path}; using defaults and environment.[/dim]")


@app.command("version")
def show_version() -> None:
    """Print the repokeeper version."""
    console.print(__version__)


def _register_commands() -> None:
    global _registered
    if _registered:
        return

    commands_path = Path(__file__).resolve().parent / "commands"
    for spec in discover_commands(commands_path):
        app.command(spec.name)(spec.handler)

    _registered = True


def _register_commands_with_timing() -> None:
    start = perf_counter()
    _register_commands()
    elapsed = perf_counter() - start
    logger.debug("Command registry initialized in %.3f seconds", elapsed)


_register_commands_with_timing()


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
