"""
Declarative table tree.

Manifesto:
    A provider describes *what* it syncs as a tree of ``Table`` objects and
    nothing else.  The engine walks the tree, the storage layer derives DDL
    from it and the verification harness audits against it.  Because tables
    are frozen and shared read-only by every concurrent resolver task, all
    behaviour hangs off per-table configuration: there are no global flags.

Architecture:
    ::

        Table("aws_accounts")                    root, multiplexed per account
          ├── columns   [Column("account_id"), Column("alias")]
          ├── resolver  async (ctx, client, parent, res) -> None
          └── relations
                └── Table("aws_account_users")   fetched once per account row
                      └── relations
                            └── Table("aws_account_user_keys")

    Hooks:
    ┌───────────────────────────┬───────────────────────────────────────────┐
    │ resolver                  │ push raw items into the result queue      │
    │ multiplex                 │ client -> [client, ...]                   │
    │ ignore_error              │ exception -> bool (swallow as diagnostic)  │
    │ delete_filter             │ (client, parent) -> {column: value}       │
    │ post_resource_resolver    │ (ctx, client, resource) -> None           │
    └───────────────────────────┴───────────────────────────────────────────┘

    Flags ``always_delete`` / ``global_`` choose the sync policy, see
    :class:`syncspine.execution.policy.SyncPolicy`.

Examples:
    >>> users = Table(
    ...     "users",
    ...     resolver=fetch_users,
    ...     columns=[Column("id", ColumnType.INT), Column("name", ColumnType.STRING)],
    ...     options=TableCreationOptions(primary_keys=["id"]),
    ... )
    >>> users.column("name")
    Column('name', string)
    >>> users.column("missing") is None
    True

Tags:
    schema, table, tree, declarative, syncspine

Doc-Types:
    - API Reference
    - Provider Authoring Guide
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from syncspine.schema.column import Column

if TYPE_CHECKING:
    import asyncio

    from syncspine.schema.resource import Resource

# async (ctx, client, parent, res) -> None
TableResolver = Callable[[Any, Any, "Resource | None", "asyncio.Queue[Any]"], Awaitable[None]]
IgnoreErrorFunc = Callable[[BaseException], bool]
MultiplexFunc = Callable[[Any], Sequence[Any]]
DeleteFilterFunc = Callable[[Any, "Resource | None"], "dict[str, Any] | Sequence[Any] | None"]
# (ctx, client, resource) -> None | awaitable
RowResolver = Callable[[Any, Any, "Resource"], Any]


@dataclass(frozen=True)
class TableCreationOptions:
    """How the backing table is created.

    Attributes:
        primary_keys: Columns forming the primary key.  Empty means the
            synthetic ``sync_id`` column is the key.
    """

    primary_keys: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "primary_keys", tuple(self.primary_keys))


@dataclass(frozen=True, eq=False)
class Table:
    """One node of the table tree.

    Tables compare by identity; two tables with the same name in different
    trees are different tables.
    """

    name: str
    resolver: TableResolver | None = None
    columns: Sequence[Column] = ()
    description: str = ""
    relations: Sequence[Table] = ()
    ignore_error: IgnoreErrorFunc | None = None
    multiplex: MultiplexFunc | None = None
    delete_filter: DeleteFilterFunc | None = None
    post_resource_resolver: RowResolver | None = None
    options: TableCreationOptions = field(default_factory=TableCreationOptions)
    always_delete: bool = False
    ignore_in_tests: bool = False
    global_: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "relations", tuple(self.relations))

    # ── Lookup ────────────────────────────────────────────────────────

    def column(self, name: str) -> Column | None:
        """Return the column called ``name`` or ``None``."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    # Declared columns only; system columns are added by the storage layer
    user_column_names = column_names

    @property
    def primary_keys(self) -> tuple[str, ...]:
        return self.options.primary_keys

    @property
    def is_global(self) -> bool:
        return self.global_

    def walk(self) -> Iterator[Table]:
        """Yield this table and every descendant, depth-first."""
        yield self
        for relation in self.relations:
            yield from relation.walk()

    def __repr__(self) -> str:
        return f"Table({self.name!r}, columns={len(self.columns)}, relations={len(self.relations)})"


def tables_from_root(table: Table) -> list[Table]:
    """Flatten a table tree into a depth-first list."""
    return list(table.walk())


__all__ = [
    "DeleteFilterFunc",
    "IgnoreErrorFunc",
    "MultiplexFunc",
    "RowResolver",
    "Table",
    "TableCreationOptions",
    "TableResolver",
    "tables_from_root",
]
