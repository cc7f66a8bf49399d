"""
Structured error types for syncspine.

Every failure the sync pipeline can produce is a ``SyncSpineError`` subclass
carrying a category, structured context and an optional chained cause.  The
execution layer converts these errors into run diagnostics, so the category
decides how a failure is reported (resolver problem, storage problem, schema
problem) and the context records where it happened.

Manifesto:
    - **Typed Error Hierarchy:** One error type per pipeline stage
    - **Rich Context:** Errors know the table, fetch and client they came from
    - **Error Chaining:** The original exception is kept as ``cause``
    - **Serializable:** ``to_dict()`` feeds structured logs and diagnostics

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                       SyncSpineError                          │
        │          (category, context, cause, to_dict())                │
        ├───────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ResolverError       PersistenceError     SchemaError         │
        │  (RESOLVER)          (STORAGE)            (SCHEMA)            │
        │       │                    │                                  │
        │  ResourceValueError  StaleDataError       ConfigError         │
        │                                           (CONFIG)            │
        │                                                │              │
        │  VerificationError   FetchCanceledError   TableNotFoundError  │
        │  (VERIFICATION)      (INTERNAL)                               │
        └───────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ResolverError("list instances failed").with_context(table="aws_ec2_instances")
    >>> error.context.table
    'aws_ec2_instances'
    >>> error.to_dict()["category"]
    'RESOLVER'

Guardrails:
    ❌ DON'T: Raise bare Exception from storage or resolvers
    ✅ DO: Wrap with the stage error and pass ``cause=``

Tags:
    error-handling, exception-hierarchy, diagnostics, syncspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories used for diagnostics and log routing.

    Attributes:
        RESOLVER: Producing rows for a table failed
        STORAGE: Writing to or deleting from the store failed
        SCHEMA: Table definitions are invalid or could not be created
        CONFIG: Settings or the fetch request are invalid
        VERIFICATION: A post-fetch completeness check failed
        INTERNAL: Bugs, cancellation, unexpected state
    """

    RESOLVER = "RESOLVER"
    STORAGE = "STORAGE"
    SCHEMA = "SCHEMA"
    CONFIG = "CONFIG"
    VERIFICATION = "VERIFICATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that were set are serialized by ``to_dict()``; anything
    without a dedicated field lands in ``metadata``.

    Attributes:
        table: Name of the table being fetched or written
        fetch_id: Identifier of the fetch run
        client: ``repr`` of the client handle the resolver ran with
        metadata: Additional key-value pairs
    """

    table: str | None = None
    fetch_id: str | None = None
    client: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("table", "fetch_id", "client"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SyncSpineError(Exception):
    """
    Base exception for all syncspine errors.

    Subclasses set ``default_category``; callers may override it per
    instance.  When ``cause`` is given it is also chained as ``__cause__`` so
    tracebacks show the root failure.

    Examples:
        >>> try:
        ...     raise ConnectionError("reset by peer")
        ... except ConnectionError as e:
        ...     error = ResolverError("fetch failed", cause=e)
        >>> error.cause
        ConnectionError('reset by peer')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SyncSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PersistenceError("copy failed").with_context(
                table="users", rows=120
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# RESOLUTION ERRORS
# =============================================================================


class ResolverError(SyncSpineError):
    """A table resolver (or a column/post resolver) failed for one scope."""

    default_category = ErrorCategory.RESOLVER


class ResourceValueError(ResolverError):
    """A resolved value could not be assigned to a resource column."""

    def __init__(
        self,
        message: str,
        *,
        column: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.column = column
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.column:
            result["column"] = self.column
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class PersistenceError(SyncSpineError):
    """Insert or bulk copy of fetched resources failed."""

    default_category = ErrorCategory.STORAGE


class StaleDataError(PersistenceError):
    """Removing stale rows failed; fresh rows are kept."""


# =============================================================================
# SCHEMA / CONFIG ERRORS
# =============================================================================


class SchemaError(SyncSpineError):
    """Invalid table definition or table creation failure."""

    default_category = ErrorCategory.SCHEMA


class ConfigError(SyncSpineError):
    """Invalid settings, provider configuration or fetch request."""

    default_category = ErrorCategory.CONFIG


class TableNotFoundError(ConfigError):
    """A requested resource name is not provided."""

    def __init__(self, name: str, **kwargs: Any):
        super().__init__(f"provider does not provide resource {name!r}", **kwargs)
        self.name = name


# =============================================================================
# VERIFICATION / RUN ERRORS
# =============================================================================


class VerificationError(SyncSpineError):
    """One or more completeness checks failed."""

    default_category = ErrorCategory.VERIFICATION


class FetchCanceledError(SyncSpineError):
    """The fetch run was cancelled or hit its deadline."""

    default_category = ErrorCategory.INTERNAL


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SyncSpineError):
        return error.category
    # SQLAlchemy errors come from the store
    module = type(error).__module__
    if module.startswith("sqlalchemy"):
        return ErrorCategory.STORAGE
    if isinstance(error, (KeyError, AttributeError, ValueError, TypeError, LookupError)):
        return ErrorCategory.RESOLVER
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SyncSpineError",
    "ResolverError",
    "ResourceValueError",
    "PersistenceError",
    "StaleDataError",
    "SchemaError",
    "ConfigError",
    "TableNotFoundError",
    "VerificationError",
    "FetchCanceledError",
    "categorize_error",
]
