"""
syncspine - table-driven fetching of hierarchical resources into a relational store.

Declare a tree of ``Table``s with resolvers, hand it to a ``Provider`` (or
directly to ``fetch``) and the engine resolves every table concurrently,
persists each scope as soon as it completes and removes rows that the source
no longer returns.
"""

__version__ = "0.1.0"

from syncspine.core.errors import (
    ConfigError,
    PersistenceError,
    ResolverError,
    SchemaError,
    SyncSpineError,
    TableNotFoundError,
    VerificationError,
)
from syncspine.core.settings import ErrorPolicy, SyncSettings, get_settings
from syncspine.execution import (
    FetchContext,
    FetchRequest,
    FetchStatus,
    FetchSummary,
    TableExecutor,
    fetch,
)
from syncspine.provider import Provider
from syncspine.schema import Column, ColumnType, Resource, Table, TableCreationOptions
from syncspine.storage import Database

__all__ = [
    "Column",
    "ColumnType",
    "ConfigError",
    "Database",
    "ErrorPolicy",
    "FetchContext",
    "FetchRequest",
    "FetchStatus",
    "FetchSummary",
    "PersistenceError",
    "Provider",
    "ResolverError",
    "Resource",
    "SchemaError",
    "SyncSettings",
    "SyncSpineError",
    "Table",
    "TableCreationOptions",
    "TableExecutor",
    "TableNotFoundError",
    "VerificationError",
    "__version__",
    "fetch",
    "get_settings",
]
