"""Registration-time validation of table trees.

Everything that can be checked without data is checked here, once, when a
provider is built, so resolver tasks never discover a malformed table halfway
through a run.
"""

from __future__ import annotations

from collections.abc import Iterable

from syncspine.core.errors import SchemaError
from syncspine.schema.resource import SYSTEM_COLUMNS
from syncspine.schema.table import Table

_HOOKS = ("resolver", "ignore_error", "multiplex", "delete_filter", "post_resource_resolver")


def validate_tables(tables: Iterable[Table]) -> None:
    """Validate a forest of root tables.

    Raises:
        SchemaError: on the first invalid definition found.
    """
    seen_names: dict[str, Table] = {}
    seen_ids: set[int] = set()
    for root in tables:
        _validate_tree(root, seen_names, seen_ids, ancestors=())


def _validate_tree(
    table: Table,
    seen_names: dict[str, Table],
    seen_ids: set[int],
    ancestors: tuple[int, ...],
) -> None:
    if id(table) in ancestors:
        raise SchemaError(f"table {table.name!r} is its own ancestor")
    if id(table) in seen_ids:
        raise SchemaError(f"table {table.name!r} appears more than once in the tree")
    if table.name in seen_names:
        raise SchemaError(f"duplicate table name {table.name!r}")
    seen_ids.add(id(table))
    seen_names[table.name] = table

    validate_table(table)
    for relation in table.relations:
        _validate_tree(relation, seen_names, seen_ids, ancestors + (id(table),))


def validate_table(table: Table) -> None:
    """Validate one table's own definition (not its relations)."""
    if not table.name or not table.name.replace("_", "").isalnum():
        raise SchemaError(f"invalid table name {table.name!r}")
    if table.resolver is None:
        raise SchemaError(f"table {table.name!r} has no resolver")
    for hook in _HOOKS:
        value = getattr(table, hook)
        if value is not None and not callable(value):
            raise SchemaError(f"table {table.name!r}: {hook} is not callable")
    if table.always_delete and table.is_global:
        raise SchemaError(f"table {table.name!r} cannot be both global and always_delete")

    names: set[str] = set()
    for column in table.columns:
        if column.name in SYSTEM_COLUMNS:
            raise SchemaError(f"table {table.name!r}: column name {column.name!r} is reserved")
        if column.name in names:
            raise SchemaError(f"table {table.name!r}: duplicate column {column.name!r}")
        if column.path is not None and not all(column.path.split(".")):
            raise SchemaError(f"table {table.name!r}: column {column.name!r} has an invalid path")
        if column.resolver is not None and not callable(column.resolver):
            raise SchemaError(f"table {table.name!r}: resolver of {column.name!r} is not callable")
        names.add(column.name)

    for key in table.primary_keys:
        if key not in names:
            raise SchemaError(f"table {table.name!r}: primary key {key!r} is not a column")


__all__ = ["validate_table", "validate_tables"]
