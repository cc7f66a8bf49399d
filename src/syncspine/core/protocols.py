"""
Canonical protocol definitions for syncspine.

The resolution engine talks to the store only through ``Storage``; anything
with the same shape (the SQLAlchemy ``Database``, an in-memory fake in a
test) can back a fetch run.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── QueryExecer  : raw statements and queries
        ├── Copier       : JSON-lines copy in / copy out
        └── Storage      : QueryExecer + Copier + resource sync operations

    Consumers:
        execution/executor.py, provider.py, testing/harness.py

Guardrails:
    ❌ DON'T: Call storage methods from the event loop directly
    ✅ DO: Run them through ``asyncio.to_thread``; they block

Tags:
    protocol, storage, contracts, syncspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from datetime import datetime
from typing import IO, TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from syncspine.core.dialect import Dialect
    from syncspine.schema.resource import Resource
    from syncspine.schema.table import Table


@runtime_checkable
class QueryExecer(Protocol):
    """Raw SQL access, bound parameters by name (``:name``)."""

    def exec(self, sql: str, params: Mapping[str, Any] | None = None) -> None:
        """Execute a statement in its own transaction."""
        ...

    def query(self, sql: str, params: Mapping[str, Any] | None = None) -> Iterator[Mapping[str, Any]]:
        """Run a query and iterate its rows as mappings."""
        ...


@runtime_checkable
class Copier(Protocol):
    """Bulk copy of a whole table as JSON lines."""

    def raw_copy_to(self, stream: IO[str], table: str) -> int:
        """Write every row of ``table`` to ``stream``; return the row count."""
        ...

    def raw_copy_from(self, stream: IO[str], table: str) -> int:
        """Load JSON lines from ``stream`` into ``table``; return the row count."""
        ...


@runtime_checkable
class Storage(QueryExecer, Copier, Protocol):
    """
    Sink of a fetch run.

    All methods are synchronous and thread-safe; writes to one table are
    serialized, writes to different tables may run concurrently.
    """

    @property
    def dialect(self) -> Dialect:
        ...

    def insert(self, table: Table, resources: Sequence[Resource]) -> None:
        """Write resources one row at a time in a single transaction."""
        ...

    def copy_from(
        self,
        table: Table,
        resources: Sequence[Resource],
        should_cascade: bool = False,
        cascade_delete_filters: Mapping[str, Any] | None = None,
        upsert: bool = True,
        *,
        execution_start: datetime | None = None,
    ) -> None:
        """Bulk-load resources; optionally delete the filtered scope first.

        With ``execution_start`` the delete only reaches rows last seen
        before it.
        """
        ...

    def delete(self, table: Table, kv_filters: Mapping[str, Any]) -> int:
        """Delete rows matching ``kv_filters`` and their descendants."""
        ...

    def remove_stale_data(
        self,
        table: Table,
        execution_start: datetime,
        kv_filters: Mapping[str, Any] | None = None,
    ) -> int:
        """Delete rows matching ``kv_filters`` last seen before ``execution_start``."""
        ...

    def create_tables(self, tables: Sequence[Table], recreate: bool = False) -> None:
        """Create backing tables of each root tree, dropping them first with ``recreate``."""
        ...

    def close(self) -> None:
        ...


__all__ = ["Copier", "QueryExecer", "Storage"]
