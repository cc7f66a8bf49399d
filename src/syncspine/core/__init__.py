"""
Ambient building blocks shared by every syncspine package.

Errors, logging, settings and timestamps are re-exported here.  The dialect
and protocol modules depend on the schema model and are imported from their
own modules (``syncspine.core.dialect``, ``syncspine.core.protocols``).
"""

from syncspine.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    FetchCanceledError,
    PersistenceError,
    ResolverError,
    ResourceValueError,
    SchemaError,
    StaleDataError,
    SyncSpineError,
    TableNotFoundError,
    VerificationError,
    categorize_error,
)
from syncspine.core.logging import LogContext, configure_logging, get_logger
from syncspine.core.settings import ErrorPolicy, SyncSettings, get_settings
from syncspine.core.timestamps import ensure_utc, utc_now

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorPolicy",
    "FetchCanceledError",
    "LogContext",
    "PersistenceError",
    "ResolverError",
    "ResourceValueError",
    "SchemaError",
    "StaleDataError",
    "SyncSettings",
    "SyncSpineError",
    "TableNotFoundError",
    "VerificationError",
    "categorize_error",
    "configure_logging",
    "ensure_utc",
    "get_logger",
    "get_settings",
    "utc_now",
]
