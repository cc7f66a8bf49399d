"""Resources and the per-run resource arena.

A ``Resource`` is one resolved row waiting to be persisted.  Resources never
hold a pointer to their parent; they hold the parent's index in the
``ResourceArena`` owned by the fetch run, and the arena is dropped as a whole
when the run ends.

System columns
--------------
Every backing table carries three columns besides the declared ones:

==================  ===================================================
``sync_id``         synthetic row identifier (UUID string)
``parent_sync_id``  ``sync_id`` of the parent row (relation tables only)
``sync_fetch_date`` last-seen timestamp, compared against the fence
==================  ===================================================
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from syncspine.core.errors import ResourceValueError, SchemaError
from syncspine.core.timestamps import utc_now
from syncspine.schema.table import Table

SYNC_ID = "sync_id"
PARENT_SYNC_ID = "parent_sync_id"
SYNC_FETCH_DATE = "sync_fetch_date"
SYSTEM_COLUMNS = (SYNC_ID, PARENT_SYNC_ID, SYNC_FETCH_DATE)

# Namespace for deterministic ids of tables that declare primary keys
SYNC_ID_NAMESPACE = uuid.UUID("8f2c36a4-5a0e-4c51-9d35-6f4fd0b9d1e2")


class Resource:
    """One resolved row of ``table``.

    ``item`` is the raw value the table resolver produced; ``data`` holds the
    coerced column values, every declared column present (``None`` until
    resolved).
    """

    def __init__(
        self,
        table: Table,
        item: Any,
        *,
        arena: ResourceArena | None = None,
        parent_index: int | None = None,
        fetch_date: datetime | None = None,
    ) -> None:
        self.table = table
        self.item = item
        self.data: dict[str, Any] = {c.name: None for c in table.columns}
        self.fetch_date = fetch_date or utc_now()
        self.index: int | None = None
        self.sync_id: str | None = None
        self._arena = arena
        self._parent_index = parent_index

    # ── Parent linkage ───────────────────────────────────────────────

    @property
    def parent(self) -> Resource | None:
        """The parent resource, looked up in the owning arena."""
        if self._parent_index is None or self._arena is None:
            return None
        return self._arena.get(self._parent_index)

    @property
    def parent_sync_id(self) -> str | None:
        parent = self.parent
        return parent.sync_id if parent is not None else None

    # ── Column access ────────────────────────────────────────────────

    def get(self, name: str) -> Any:
        """Return the value of column ``name`` (``None`` if unresolved)."""
        if name not in self.data:
            raise SchemaError(f"table {self.table.name} has no column {name!r}")
        return self.data[name]

    def set(self, name: str, value: Any) -> None:
        """Coerce ``value`` to the column type and store it."""
        column = self.table.column(name)
        if column is None:
            raise SchemaError(f"table {self.table.name} has no column {name!r}")
        try:
            self.data[name] = column.type.coerce(value)
        except ResourceValueError as exc:
            exc.column = name
            exc.with_context(table=self.table.name)
            raise

    def keys(self) -> list[str]:
        return list(self.data.keys())

    def values(self) -> list[Any]:
        return list(self.data.values())

    def primary_key_values(self) -> list[Any]:
        return [self.data.get(k) for k in self.table.primary_keys]

    # ── Persistence ──────────────────────────────────────────────────

    def generate_sync_id(self) -> str:
        """Assign ``sync_id``.

        Tables with declared primary keys get a UUID5 over the table name and
        key values, so a row re-fetched in a later run keeps its id.  The
        parent's id is part of the name for relation tables.
        """
        if self.table.primary_keys:
            parts = [self.table.name, str(self.parent_sync_id or "")]
            parts.extend(repr(v) for v in self.primary_key_values())
            self.sync_id = str(uuid.uuid5(SYNC_ID_NAMESPACE, "\x1f".join(parts)))
        else:
            self.sync_id = str(uuid.uuid4())
        return self.sync_id

    def to_row(self) -> dict[str, Any]:
        """System and user columns as one mapping, ready for insert."""
        if self.sync_id is None:
            self.generate_sync_id()
        row: dict[str, Any] = {SYNC_ID: self.sync_id, SYNC_FETCH_DATE: self.fetch_date}
        if self._parent_index is not None:
            row[PARENT_SYNC_ID] = self.parent_sync_id
        row.update(self.data)
        return row

    def __repr__(self) -> str:
        return f"Resource(table={self.table.name!r}, index={self.index}, sync_id={self.sync_id!r})"


class ResourceArena:
    """Append-only store of every resource created during one fetch run."""

    def __init__(self) -> None:
        self._resources: list[Resource] = []

    def create(
        self,
        table: Table,
        item: Any,
        parent: Resource | None = None,
        fetch_date: datetime | None = None,
    ) -> Resource:
        """Create a resource owned by this arena."""
        if parent is not None and parent.index is None:
            raise ValueError("parent resource does not belong to an arena")
        resource = Resource(
            table,
            item,
            arena=self,
            parent_index=parent.index if parent is not None else None,
            fetch_date=fetch_date,
        )
        resource.index = len(self._resources)
        self._resources.append(resource)
        return resource

    def get(self, index: int) -> Resource:
        return self._resources[index]

    def clear(self) -> None:
        self._resources.clear()

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources)


__all__ = [
    "PARENT_SYNC_ID",
    "Resource",
    "ResourceArena",
    "SYNC_FETCH_DATE",
    "SYNC_ID",
    "SYNC_ID_NAMESPACE",
    "SYSTEM_COLUMNS",
]
