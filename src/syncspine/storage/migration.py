"""
Backing-table definitions for a table tree.

``TableCreator`` turns a ``Table`` (and its relations) into SQLAlchemy
``Table`` objects and into compiled DDL.  It only knows how to create and
drop; diffing an existing schema is not its job.

Layout of a backing table::

    sync_id          id type   PK when no primary keys are declared, else UNIQUE
    parent_sync_id   id type   relation tables only, FK → parent.sync_id
                               ON DELETE CASCADE ON UPDATE CASCADE
    sync_fetch_date  timestamp NOT NULL
    <user columns>   mapped through the dialect

Examples:
    >>> from syncspine.core.dialect import get_dialect
    >>> ups, downs = TableCreator(get_dialect("sqlite")).create_table_definitions(accounts)
    >>> ups[0].startswith("CREATE TABLE")
    True
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.schema import CreateIndex, CreateTable, DropTable

from syncspine.core.dialect import Dialect
from syncspine.core.logging import get_logger
from syncspine.schema.column import ColumnType
from syncspine.schema.resource import PARENT_SYNC_ID, SYNC_FETCH_DATE, SYNC_ID
from syncspine.schema.table import Table

logger = get_logger(__name__)


class TableCreator:
    """Builds SQLAlchemy tables and DDL for one dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    # ── SQLAlchemy objects ────────────────────────────────────────────

    def build(
        self,
        table: Table,
        metadata: sa.MetaData,
        parent: Table | None = None,
    ) -> list[sa.Table]:
        """Add ``table`` and its descendants to ``metadata``, depth-first.

        Tables already present in ``metadata`` are reused, not redefined.
        """
        built = [self._sa_table(table, metadata, parent)]
        for relation in table.relations:
            built.extend(self.build(relation, metadata, parent=table))
        return built

    def _sa_table(self, table: Table, metadata: sa.MetaData, parent: Table | None) -> sa.Table:
        if table.name in metadata.tables:
            return metadata.tables[table.name]

        id_type = self.dialect.id_type()
        has_keys = bool(table.primary_keys)
        columns: list[sa.Column] = [
            sa.Column(SYNC_ID, id_type, primary_key=not has_keys, unique=has_keys, nullable=False),
        ]
        indexes: list[sa.Index] = []
        if parent is not None:
            columns.append(
                sa.Column(
                    PARENT_SYNC_ID,
                    id_type,
                    sa.ForeignKey(f"{parent.name}.{SYNC_ID}", ondelete="CASCADE", onupdate="CASCADE"),
                    nullable=True,
                )
            )
            indexes.append(sa.Index(f"ix_{table.name}_{PARENT_SYNC_ID}", PARENT_SYNC_ID))
        columns.append(
            sa.Column(SYNC_FETCH_DATE, self.dialect.column_type(ColumnType.TIMESTAMP), nullable=False)
        )

        for column in table.columns:
            is_key = column.name in table.primary_keys
            columns.append(
                sa.Column(
                    column.name,
                    self.dialect.column_type(column.type),
                    primary_key=is_key,
                    nullable=not (column.not_null or is_key),
                    unique=column.unique and not is_key,
                    comment=column.description or None,
                )
            )

        return sa.Table(table.name, metadata, *columns, *indexes, comment=table.description or None)

    # ── DDL ───────────────────────────────────────────────────────────

    def create_table_definitions(
        self,
        table: Table,
        parent: Table | None = None,
    ) -> tuple[list[str], list[str]]:
        """Return ``(ups, downs)`` DDL for ``table`` and its descendants.

        ``ups`` create parents before children; ``downs`` drop children
        before parents.  Both are idempotent (``IF NOT EXISTS`` / ``IF
        EXISTS``).
        """
        metadata = sa.MetaData()
        if parent is not None:
            # Only the referenced column is needed to compile the foreign key
            sa.Table(parent.name, metadata, sa.Column(SYNC_ID, self.dialect.id_type(), unique=True))
        sa_tables = self.build(table, metadata, parent=parent)
        compiler = self.dialect.sql_dialect()

        ups: list[str] = []
        for sa_table in sa_tables:
            ups.append(self._compile(CreateTable(sa_table, if_not_exists=True), compiler))
            for index in sorted(sa_table.indexes, key=lambda i: i.name or ""):
                ups.append(self._compile(CreateIndex(index, if_not_exists=True), compiler))
        downs = [self._compile(DropTable(t, if_exists=True), compiler) for t in reversed(sa_tables)]

        logger.debug("storage.table_definitions", table=table.name, ups=len(ups), downs=len(downs))
        return ups, downs

    @staticmethod
    def _compile(element, compiler) -> str:
        return str(element.compile(dialect=compiler)).strip()


__all__ = ["TableCreator"]
