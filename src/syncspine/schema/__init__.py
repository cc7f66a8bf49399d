"""Schema model: tables, columns, resources and resolver helpers."""

from syncspine.schema.column import Column, ColumnResolver, ColumnType
from syncspine.schema.resolvers import (
    date_resolver,
    get_path,
    ignore_errors_of,
    parent_sync_id_resolver,
    parent_value_resolver,
    path_resolver,
)
from syncspine.schema.resource import (
    PARENT_SYNC_ID,
    SYNC_FETCH_DATE,
    SYNC_ID,
    SYSTEM_COLUMNS,
    Resource,
    ResourceArena,
)
from syncspine.schema.table import Table, TableCreationOptions, tables_from_root
from syncspine.schema.validation import validate_table, validate_tables

__all__ = [
    "Column",
    "ColumnResolver",
    "ColumnType",
    "PARENT_SYNC_ID",
    "Resource",
    "ResourceArena",
    "SYNC_FETCH_DATE",
    "SYNC_ID",
    "SYSTEM_COLUMNS",
    "Table",
    "TableCreationOptions",
    "date_resolver",
    "get_path",
    "ignore_errors_of",
    "parent_sync_id_resolver",
    "parent_value_resolver",
    "path_resolver",
    "tables_from_root",
    "validate_table",
    "validate_tables",
]
