"""
SQLAlchemy-backed storage for fetched resources.

Manifesto:
    The engine hands the store one table scope at a time and expects it to
    be all-or-nothing: a scope's rows land in one transaction, a cascade
    reload deletes and loads in the same transaction, and a stale-row sweep
    never touches a row stamped at or after the fence.

Architecture:
    ::

        Database
        ├── create_tables(tables, recreate)   DDL from TableCreator
        ├── insert(table, resources)          row-at-a-time, one transaction
        ├── copy_from(table, resources, …)    executemany, optional cascade delete
        ├── delete(table, kv_filters)         filtered delete + descendants
        ├── remove_stale_data(table, fence, kv_filters)
        ├── exec / query                      raw SQL
        └── raw_copy_to / raw_copy_from       JSON lines

    Concurrency:
        one ``threading.Lock`` per table name → writes to a table are
        serialized, different tables write concurrently.  Deletes that
        cascade hold the locks of the whole subtree, taken depth-first.
        Methods block;
        the fetch engine calls them through ``asyncio.to_thread``.

    Cascade:
        rows are removed children-first by walking ``Table.relations``
        with ``parent_sync_id IN (SELECT sync_id …)`` subqueries, so the
        result does not depend on the backend enforcing foreign keys.

Tags:
    storage, sqlalchemy, upsert, cascade, stale-data, syncspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import ExitStack, contextmanager
from datetime import date, datetime
from typing import IO, Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from syncspine.core.dialect import Dialect, dialect_for_engine
from syncspine.core.errors import PersistenceError, SchemaError, StaleDataError
from syncspine.core.logging import get_logger
from syncspine.core.settings import SyncSettings, get_settings
from syncspine.core.timestamps import from_iso8601
from syncspine.schema.resource import PARENT_SYNC_ID, SYNC_FETCH_DATE, SYNC_ID, Resource
from syncspine.schema.table import Table
from syncspine.storage.migration import TableCreator
from syncspine.storage.session import create_sync_engine

logger = get_logger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


class Database:
    """Relational store reached through a SQLAlchemy engine."""

    def __init__(
        self,
        engine: Engine | str,
        *,
        echo: bool = False,
        dialect: Dialect | None = None,
    ):
        self.engine = create_sync_engine(engine, echo=echo) if isinstance(engine, str) else engine
        self._dialect = dialect or dialect_for_engine(self.engine)
        self._creator = TableCreator(self._dialect)
        self._metadata = sa.MetaData()
        self._registry_lock = threading.Lock()
        self._table_locks: dict[str, threading.Lock] = {}

    @classmethod
    def from_settings(cls, settings: SyncSettings | None = None) -> Database:
        settings = settings or get_settings()
        return cls(settings.database_url, echo=settings.database_echo)

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    # ── Registry ──────────────────────────────────────────────────────

    def register(self, table: Table, parent: Table | None = None) -> None:
        """Make ``table`` and its descendants known to this store."""
        with self._registry_lock:
            self._creator.build(table, self._metadata, parent=parent)

    def sa_table(self, table: Table) -> sa.Table:
        """SQLAlchemy table backing ``table``.

        An unknown table is registered as a root along with its descendants.
        """
        sa_table = self._metadata.tables.get(table.name)
        if sa_table is None:
            self.register(table)
            sa_table = self._metadata.tables[table.name]
        return sa_table

    def _lock(self, name: str) -> threading.Lock:
        with self._registry_lock:
            return self._table_locks.setdefault(name, threading.Lock())

    @contextmanager
    def _locked_tree(self, table: Table) -> Iterator[None]:
        """Hold the write locks of ``table`` and every descendant.

        Locks are taken in depth-first order, the order every caller uses,
        so overlapping subtrees never deadlock.
        """
        with ExitStack() as stack:
            for node in table.walk():
                stack.enter_context(self._lock(node.name))
            yield

    # ── Table creation ────────────────────────────────────────────────

    def create_tables(self, tables: Sequence[Table], recreate: bool = False) -> None:
        """Create backing tables for each root table tree.

        Raises:
            SchemaError: if any DDL statement fails.
        """
        for table in tables:
            ups, downs = self._creator.create_table_definitions(table)
            try:
                with self.engine.begin() as conn:
                    if recreate:
                        for statement in downs:
                            conn.exec_driver_sql(statement)
                    for statement in ups:
                        conn.exec_driver_sql(statement)
            except SQLAlchemyError as e:
                raise SchemaError(f"creating tables for {table.name} failed", cause=e).with_context(
                    table=table.name
                ) from e
            self.register(table)
            logger.info("storage.tables_created", table=table.name, statements=len(ups), recreate=recreate)

    # ── Writes ────────────────────────────────────────────────────────

    def _conflict_keys(self, table: Table) -> tuple[str, ...]:
        return table.primary_keys or (SYNC_ID,)

    def _rows(self, table: Table, resources: Sequence[Resource]) -> list[dict[str, Any]]:
        # Last occurrence wins when a scope yields the same key twice
        keys = self._conflict_keys(table)
        rows: dict[tuple, dict[str, Any]] = {}
        for resource in resources:
            row = resource.to_row()
            rows[tuple(row.get(k) for k in keys)] = row
        return list(rows.values())

    def _insert_stmt(self, table: Table, sa_table: sa.Table, upsert: bool):
        if upsert:
            return self._dialect.upsert(sa_table, self._conflict_keys(table))
        return sa.insert(sa_table)

    def insert(self, table: Table, resources: Sequence[Resource], upsert: bool = True) -> None:
        """Write resources one statement per row, in a single transaction."""
        if not resources:
            return
        sa_table = self.sa_table(table)
        stmt = self._insert_stmt(table, sa_table, upsert)
        try:
            with self._lock(table.name), self.engine.begin() as conn:
                for resource in resources:
                    conn.execute(stmt, resource.to_row())
        except SQLAlchemyError as e:
            raise PersistenceError(f"insert into {table.name} failed", cause=e).with_context(
                table=table.name, rows=len(resources)
            ) from e
        logger.debug("storage.insert", table=table.name, rows=len(resources))

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
        """Bulk-load resources with ``executemany``.

        With ``should_cascade`` the rows matching ``cascade_delete_filters``
        (and all their descendants) are deleted first, in the same
        transaction.  Given ``execution_start``, only rows last seen before
        it are deleted, so scopes of the same run never remove each other's
        rows.
        """
        sa_table = self.sa_table(table)
        rows = self._rows(table, resources)
        where = self._where(sa_table, cascade_delete_filters)
        if execution_start is not None:
            where = sa.and_(where, sa_table.c[SYNC_FETCH_DATE] < execution_start)
        locks = self._locked_tree(table) if should_cascade else self._lock(table.name)
        try:
            with locks, self.engine.begin() as conn:
                if should_cascade:
                    deleted = self._cascade_delete(conn, table, where)
                    logger.debug("storage.cascade_delete", table=table.name, rows=deleted)
                if rows:
                    conn.execute(self._insert_stmt(table, sa_table, upsert), rows)
        except SQLAlchemyError as e:
            raise PersistenceError(f"copy into {table.name} failed", cause=e).with_context(
                table=table.name, rows=len(rows)
            ) from e
        logger.debug("storage.copy_from", table=table.name, rows=len(rows), cascade=should_cascade)

    def delete(self, table: Table, kv_filters: Mapping[str, Any] | None = None) -> int:
        """Delete rows matching ``kv_filters`` (all rows if empty) and their descendants."""
        sa_table = self.sa_table(table)
        try:
            with self._locked_tree(table), self.engine.begin() as conn:
                deleted = self._cascade_delete(conn, table, self._where(sa_table, kv_filters))
        except SQLAlchemyError as e:
            raise PersistenceError(f"delete from {table.name} failed", cause=e).with_context(
                table=table.name
            ) from e
        logger.debug("storage.delete", table=table.name, rows=deleted)
        return deleted

    def remove_stale_data(
        self,
        table: Table,
        execution_start: datetime,
        kv_filters: Mapping[str, Any] | None = None,
    ) -> int:
        """Delete rows matching ``kv_filters`` whose ``sync_fetch_date`` is before the fence."""
        sa_table = self.sa_table(table)
        where = sa.and_(
            self._where(sa_table, kv_filters),
            sa_table.c[SYNC_FETCH_DATE] < execution_start,
        )
        try:
            with self._locked_tree(table), self.engine.begin() as conn:
                removed = self._cascade_delete(conn, table, where)
        except SQLAlchemyError as e:
            raise StaleDataError(f"removing stale rows of {table.name} failed", cause=e).with_context(
                table=table.name
            ) from e
        logger.debug("storage.remove_stale_data", table=table.name, rows=removed)
        return removed

    def _where(self, sa_table: sa.Table, kv_filters: Mapping[str, Any] | None):
        clauses = []
        for key, value in (kv_filters or {}).items():
            if key not in sa_table.c:
                raise PersistenceError(f"filter column {key!r} is not a column of {sa_table.name}")
            clauses.append(sa_table.c[key] == value)
        return sa.and_(sa.true(), *clauses)

    def _cascade_delete(self, conn: sa.Connection, table: Table, where) -> int:
        sa_table = self.sa_table(table)
        if table.relations:
            ids = sa.select(sa_table.c[SYNC_ID]).where(where)
            for relation in table.relations:
                child = self.sa_table(relation)
                self._cascade_delete(conn, relation, child.c[PARENT_SYNC_ID].in_(ids))
        return conn.execute(sa.delete(sa_table).where(where)).rowcount

    # ── Raw access ────────────────────────────────────────────────────

    def exec(self, sql: str, params: Mapping[str, Any] | None = None) -> None:
        with self.engine.begin() as conn:
            conn.execute(sa.text(sql), dict(params or {}))

    def query(self, sql: str, params: Mapping[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        with self.engine.connect() as conn:
            rows = conn.execute(sa.text(sql), dict(params or {})).mappings().all()
        return iter([dict(row) for row in rows])

    def _table_by_name(self, name: str) -> sa.Table:
        sa_table = self._metadata.tables.get(name)
        if sa_table is not None:
            return sa_table
        return sa.Table(name, sa.MetaData(), autoload_with=self.engine)

    def raw_copy_to(self, stream: IO[str], table: str) -> int:
        """Write every row of ``table`` to ``stream`` as JSON lines."""
        sa_table = self._table_by_name(table)
        count = 0
        with self.engine.connect() as conn:
            for row in conn.execute(sa.select(sa_table)).mappings():
                stream.write(json.dumps(dict(row), default=_json_default) + "\n")
                count += 1
        logger.debug("storage.raw_copy_to", table=table, rows=count)
        return count

    def raw_copy_from(self, stream: IO[str], table: str) -> int:
        """Insert JSON lines from ``stream`` into ``table``."""
        sa_table = self._table_by_name(table)
        timestamp_columns = [c.name for c in sa_table.columns if isinstance(c.type, sa.DateTime)]
        rows = []
        for line in stream:
            if not line.strip():
                continue
            row = json.loads(line)
            for name in timestamp_columns:
                if isinstance(row.get(name), str):
                    row[name] = from_iso8601(row[name])
            rows.append(row)
        if rows:
            with self._lock(table), self.engine.begin() as conn:
                conn.execute(sa.insert(sa_table), rows)
        logger.debug("storage.raw_copy_from", table=table, rows=len(rows))
        return len(rows)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


__all__ = ["Database"]
