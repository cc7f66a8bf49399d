"""
CLI utility helpers: provider loading and output formatting.
"""

from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table as RichTable
from rich.tree import Tree

from syncspine.core.errors import ConfigError, SyncSpineError
from syncspine.execution.models import FetchStatus, FetchSummary
from syncspine.execution.policy import SyncPolicy
from syncspine.provider import Provider
from syncspine.schema.table import Table

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {
    FetchStatus.SUCCEEDED: "green",
    FetchStatus.PARTIAL: "yellow",
    FetchStatus.FAILED: "red",
    FetchStatus.CANCELED: "magenta",
}


# ── Loading ──────────────────────────────────────────────────────────────


def load_provider(spec: str) -> Provider:
    """Import ``module:attribute``; the attribute is a Provider or a factory returning one."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"provider must be given as module:attribute, got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"cannot import provider module {module_name!r}: {e}", cause=e) from e
    target = getattr(module, attr, None)
    if target is None:
        raise ConfigError(f"module {module_name!r} has no attribute {attr!r}")
    provider = target() if callable(target) and not isinstance(target, Provider) else target
    if not isinstance(provider, Provider):
        raise ConfigError(f"{spec} is not a Provider")
    return provider


def load_config(path: Path | None) -> Any:
    """Read a JSON provider config file; ``None`` when no file is given."""
    if path is None:
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read provider config {path}: {e}", cause=e) from e


def fail(error: SyncSpineError) -> None:
    """Print an error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


# ── Output ───────────────────────────────────────────────────────────────


def _add_table_node(parent: Tree, table: Table) -> None:
    keys = ", ".join(table.primary_keys) or "sync_id"
    node = parent.add(
        f"[bold]{table.name}[/bold] [dim]({len(table.columns)} columns, key: {keys}, "
        f"policy: {SyncPolicy.for_table(table).value})[/dim]"
    )
    for relation in table.relations:
        _add_table_node(node, relation)


def print_table_tree(provider: Provider) -> None:
    tree = Tree(f"[cyan]{provider.name}[/cyan] {provider.version}")
    for name, table in sorted(provider.resource_map.items()):
        resource = tree.add(f"[green]{name}[/green]")
        _add_table_node(resource, table)
    console.print(tree)


def print_summary(summary: FetchSummary, *, as_json: bool = False) -> None:
    """Render a fetch summary as a Rich table or as JSON."""
    if as_json:
        console.print_json(json.dumps(summary.to_dict(), default=str))
        return

    table = RichTable(title=f"Fetch {summary.fetch_id}", show_lines=False, pad_edge=False)
    for column in ("resource", "status", "resources", "diagnostics", "seconds"):
        table.add_column(column, overflow="fold")
    for item in summary.tables:
        style = _STATUS_STYLE[item.status]
        table.add_row(
            item.resource_name,
            f"[{style}]{item.status.value}[/{style}]",
            str(item.resource_count),
            str(len(item.diagnostics)),
            f"{item.duration_seconds:.2f}",
        )
    console.print(table)

    for diag in summary.diagnostics:
        console.print(f"  [yellow]{diag.severity.value}[/yellow] {diag.resource}: {diag.summary}")
    style = _STATUS_STYLE[summary.status]
    console.print(
        f"\n[{style}]{summary.status.value}[/{style}] "
        f"{summary.resource_count} resources in {summary.duration_seconds:.2f}s"
    )
