"""
Root Typer application for the syncspine CLI.

``PROVIDER`` arguments are import paths (``package.module:provider``).
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from syncspine.cli.utils import console, fail, load_config, load_provider, print_summary, print_table_tree
from syncspine.core.errors import SyncSpineError
from syncspine.core.logging import configure_logging
from syncspine.core.settings import get_settings
from syncspine.execution.models import ALL_RESOURCES, FetchRequest, FetchStatus

app = Typer(
    name="syncspine",
    help="syncspine: fetch hierarchical resources and sync them into a relational store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("syncspine")
        except PackageNotFoundError:
            v = "unknown"
        typer.echo(f"syncspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override SYNCSPINE_LOG_LEVEL."),
) -> None:
    """syncspine CLI: inspect providers, create tables and run fetches."""
    settings = get_settings()
    try:
        configure_logging(
            level=log_level or settings.log_level,
            json_format=settings.log_format == "json",
        )
    except SyncSpineError as e:
        fail(e)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("tables")
def tables(
    provider: str = typer.Argument(..., help="Provider import path, module:attribute"),
) -> None:
    """Show the table tree of every resource a provider offers."""
    try:
        print_table_tree(load_provider(provider))
    except SyncSpineError as e:
        fail(e)


@app.command("create-tables")
def create_tables(
    provider: str = typer.Argument(..., help="Provider import path, module:attribute"),
    recreate: bool = typer.Option(False, "--recreate", help="Drop existing tables first."),
    resources: list[str] = typer.Option([ALL_RESOURCES], "--resource", "-r"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL."),
    config: Path | None = typer.Option(None, "--config", "-c", help="JSON provider config."),
) -> None:
    """Create backing tables for a provider's resources."""
    try:
        loaded = load_provider(provider)
        loaded.configure_provider(load_config(config), connection_url=database)
        try:
            loaded.create_tables(recreate=recreate, resources=resources)
        finally:
            loaded.close()
    except SyncSpineError as e:
        fail(e)
    console.print(f"[green]Tables created[/green] for {', '.join(resources)}")


@app.command("fetch")
def fetch(
    provider: str = typer.Argument(..., help="Provider import path, module:attribute"),
    resources: list[str] = typer.Option([ALL_RESOURCES], "--resource", "-r"),
    parallelism: int | None = typer.Option(None, "--parallelism", "-p", min=0),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL."),
    config: Path | None = typer.Option(None, "--config", "-c", help="JSON provider config."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Fetch resources and sync them into the store."""
    try:
        loaded = load_provider(provider)
        loaded.configure_provider(load_config(config), connection_url=database)
        request = FetchRequest(resources=resources, parallel_fetching_limit=parallelism)
        try:
            summary = asyncio.run(loaded.fetch_resources(request))
        finally:
            loaded.close()
    except SyncSpineError as e:
        fail(e)
        return

    print_summary(summary, as_json=json_out)
    if summary.status in (FetchStatus.FAILED, FetchStatus.CANCELED):
        raise typer.Exit(code=1)
