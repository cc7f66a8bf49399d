"""SQL dialect abstraction for the storage layer.

Provides a ``Dialect`` protocol and concrete implementations for every
supported backend.  The storage layer never writes backend-specific SQL: it
asks the dialect for column types and for the upsert statement, and SQLAlchemy
compiles everything else.

Manifesto:
    Providers and the engine must be portable across SQLite (tests, local
    runs) and PostgreSQL (production).  The only places the two differ for
    syncspine are the native types available and the ``ON CONFLICT`` syntax,
    so that is all a dialect owns.

    - **One interface:** Dialect protocol for type mapping and upserts
    - **Zero coupling:** Storage code never imports driver modules
    - **Auto-detection:** ``dialect_for_engine(engine)`` picks the dialect

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    Storage Code:
    ┌────────────────────────────────────────────────────────────────┐
    │  sa_table = Table(name, md, *[Column(c, d.column_type(t))])     │
    │  conn.execute(d.upsert(sa_table, keys), rows)                   │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
          ┌───────────────────────┐   ┌───────────────────────────┐
          │ SQLite                │   │ PostgreSQL                │
          │ JSON for arrays       │   │ ARRAY / JSONB / INET      │
          │ ON CONFLICT DO UPDATE │   │ ON CONFLICT DO UPDATE     │
          └───────────────────────┘   └───────────────────────────┘

Examples:
    >>> from syncspine.core.dialect import get_dialect
    >>> get_dialect("sqlite").name
    'sqlite'
    >>> get_dialect("postgres").name
    'postgresql'

Guardrails:
    ❌ DON'T: Build raw INSERT strings in the storage layer
    ✅ DO: Use ``Dialect.upsert`` / SQLAlchemy constructs

Tags:
    dialect, sql, abstraction, portability, database, syncspine

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Dialect as SADialect
from sqlalchemy.engine import Engine
from sqlalchemy.sql.dml import Insert
from sqlalchemy.types import TypeEngine

from syncspine.core.errors import ConfigError
from syncspine.schema.column import ColumnType


@runtime_checkable
class Dialect(Protocol):
    """Storage dialect contract."""

    @property
    def name(self) -> str:
        """Dialect name, equal to SQLAlchemy's ``engine.dialect.name``."""
        ...

    def column_type(self, column_type: ColumnType) -> TypeEngine:
        """SQLAlchemy type backing a portable column type."""
        ...

    def id_type(self) -> TypeEngine:
        """Type of ``sync_id`` / ``parent_sync_id``."""
        ...

    def sql_dialect(self) -> SADialect:
        """SQLAlchemy dialect used to compile DDL for this backend."""
        ...

    def upsert(self, table: sa.Table, key_columns: Sequence[str]) -> Insert:
        """``INSERT … ON CONFLICT (keys) DO UPDATE SET …`` for ``table``.

        The statement carries no values; execute it with a list of row
        mappings for a bulk upsert.
        """
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


def _conflict_update(stmt, table: sa.Table, key_columns: Sequence[str]):
    update_cols = [c.name for c in table.columns if c.name not in key_columns]
    if not update_cols:
        return stmt.on_conflict_do_nothing(index_elements=list(key_columns))
    return stmt.on_conflict_do_update(
        index_elements=list(key_columns),
        set_={name: stmt.excluded[name] for name in update_cols},
    )


class SQLiteDialect:
    """SQLite dialect: arrays and JSON stored as JSON text."""

    _TYPES: dict[ColumnType, TypeEngine] = {
        ColumnType.BOOL: sa.Boolean(),
        ColumnType.SMALLINT: sa.SmallInteger(),
        ColumnType.INT: sa.Integer(),
        ColumnType.BIGINT: sa.BigInteger(),
        ColumnType.FLOAT: sa.Float(),
        ColumnType.UUID: sa.String(36),
        ColumnType.STRING: sa.Text(),
        ColumnType.BYTE_ARRAY: sa.LargeBinary(),
        ColumnType.STRING_ARRAY: sa.JSON(none_as_null=True),
        ColumnType.INT_ARRAY: sa.JSON(none_as_null=True),
        ColumnType.TIMESTAMP: sa.DateTime(timezone=True),
        ColumnType.JSON: sa.JSON(none_as_null=True),
        ColumnType.INET: sa.Text(),
        ColumnType.CIDR: sa.Text(),
        ColumnType.MAC_ADDR: sa.Text(),
    }

    @property
    def name(self) -> str:
        return "sqlite"

    def column_type(self, column_type: ColumnType) -> TypeEngine:
        return self._TYPES[column_type]

    def id_type(self) -> TypeEngine:
        return sa.String(36)

    def sql_dialect(self) -> SADialect:
        return sqlite.dialect()

    def upsert(self, table: sa.Table, key_columns: Sequence[str]) -> Insert:
        return _conflict_update(sqlite.insert(table), table, key_columns)


class PostgreSQLDialect:
    """PostgreSQL dialect: native UUID, ARRAY, JSONB and network types."""

    _TYPES: dict[ColumnType, TypeEngine] = {
        ColumnType.BOOL: sa.Boolean(),
        ColumnType.SMALLINT: sa.SmallInteger(),
        ColumnType.INT: sa.Integer(),
        ColumnType.BIGINT: sa.BigInteger(),
        ColumnType.FLOAT: sa.Float(),
        ColumnType.UUID: postgresql.UUID(as_uuid=False),
        ColumnType.STRING: sa.Text(),
        ColumnType.BYTE_ARRAY: postgresql.BYTEA(),
        ColumnType.STRING_ARRAY: postgresql.ARRAY(sa.Text()),
        ColumnType.INT_ARRAY: postgresql.ARRAY(sa.BigInteger()),
        ColumnType.TIMESTAMP: postgresql.TIMESTAMP(timezone=True),
        ColumnType.JSON: postgresql.JSONB(none_as_null=True),
        ColumnType.INET: postgresql.INET(),
        ColumnType.CIDR: postgresql.CIDR(),
        ColumnType.MAC_ADDR: postgresql.MACADDR(),
    }

    @property
    def name(self) -> str:
        return "postgresql"

    def column_type(self, column_type: ColumnType) -> TypeEngine:
        return self._TYPES[column_type]

    def id_type(self) -> TypeEngine:
        return postgresql.UUID(as_uuid=False)

    def sql_dialect(self) -> SADialect:
        return postgresql.dialect()

    def upsert(self, table: sa.Table, key_columns: Sequence[str]) -> Insert:
        return _conflict_update(postgresql.insert(table), table, key_columns)


# =========================================================================
# Registry
# =========================================================================

_DIALECTS: dict[str, type] = {
    "sqlite": SQLiteDialect,
    "postgresql": PostgreSQLDialect,
    "postgres": PostgreSQLDialect,
}


def register_dialect(name: str, dialect_cls: type) -> None:
    """Register a dialect class under ``name`` (case-insensitive)."""
    _DIALECTS[name.lower()] = dialect_cls


def get_dialect(name: str) -> Dialect:
    """Return a dialect instance by name.

    Raises:
        ConfigError: if no dialect is registered under ``name``.
    """
    try:
        return _DIALECTS[name.lower()]()
    except KeyError:
        raise ConfigError(
            f"unsupported database dialect {name!r}; known: {sorted(_DIALECTS)}"
        ) from None


def dialect_for_engine(engine: Engine) -> Dialect:
    """Pick the dialect matching an SQLAlchemy engine."""
    return get_dialect(engine.dialect.name)


__all__ = [
    "Dialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "dialect_for_engine",
    "get_dialect",
    "register_dialect",
]
