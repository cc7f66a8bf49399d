"""Reusable column resolvers and table hook helpers.

The engine resolves a column in this order: the column's ``resolver``, else
its ``path``, else its name.  Paths are dotted (``"placement.zone"``) and
walk dict keys or attributes; a missing step yields ``None``.

The factories here cover the common cases so providers rarely write column
resolvers by hand::

    Column("account_id", ColumnType.STRING, resolver=parent_value_resolver("id"))
    Column("created", ColumnType.TIMESTAMP, resolver=date_resolver("meta.created", "%d/%m/%Y"))
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from syncspine.core.errors import ResourceValueError
from syncspine.schema.column import Column, ColumnResolver
from syncspine.schema.resource import Resource
from syncspine.schema.table import IgnoreErrorFunc

_MISSING = object()


def get_path(item: Any, path: str) -> Any:
    """Read a dotted ``path`` from ``item``; ``None`` if any step is missing."""
    current = item
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return None
    return current


def path_resolver(path: str) -> ColumnResolver:
    """Resolve a column from a dotted path of the raw item."""

    def _resolve(ctx: Any, client: Any, resource: Resource, column: Column) -> Any:
        return get_path(resource.item, path)

    return _resolve


def parent_value_resolver(name: str) -> ColumnResolver:
    """Copy column ``name`` of the parent resource."""

    def _resolve(ctx: Any, client: Any, resource: Resource, column: Column) -> Any:
        parent = resource.parent
        return parent.get(name) if parent is not None else None

    return _resolve


def parent_sync_id_resolver() -> ColumnResolver:
    """Copy the parent's ``sync_id`` into a user column."""

    def _resolve(ctx: Any, client: Any, resource: Resource, column: Column) -> Any:
        parent = resource.parent
        return parent.sync_id if parent is not None else None

    return _resolve


def date_resolver(path: str, *formats: str) -> ColumnResolver:
    """Parse a string date at ``path`` with the first matching ``strptime`` format.

    Without formats the value is handed to the TIMESTAMP coercion (ISO-8601).
    """

    def _resolve(ctx: Any, client: Any, resource: Resource, column: Column) -> Any:
        value = get_path(resource.item, path)
        if not isinstance(value, str) or not formats:
            return value
        for fmt in formats:
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        raise ResourceValueError(
            f"{value!r} matches none of the formats {list(formats)}",
            column=column.name,
            value=value,
        )

    return _resolve


def ignore_errors_of(*exc_types: type[BaseException]) -> IgnoreErrorFunc:
    """``ignore_error`` hook that swallows the given exception types."""

    def _ignore(exc: BaseException) -> bool:
        cause = exc.__cause__ or exc
        return isinstance(exc, exc_types) or isinstance(cause, exc_types)

    return _ignore


__all__ = [
    "date_resolver",
    "get_path",
    "ignore_errors_of",
    "parent_sync_id_resolver",
    "parent_value_resolver",
    "path_resolver",
]
