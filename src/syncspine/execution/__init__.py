"""Resolution engine: concurrent table-tree traversal and storage sync."""

from syncspine.execution.context import FetchContext
from syncspine.execution.diagnostics import Diagnostic, DiagnosticType, Severity
from syncspine.execution.executor import TableExecutor, fetch, normalize_filters
from syncspine.execution.models import (
    ALL_RESOURCES,
    FetchRequest,
    FetchResponse,
    FetchStatus,
    FetchSummary,
    TableFetchSummary,
)
from syncspine.execution.policy import SyncPolicy

__all__ = [
    "ALL_RESOURCES",
    "Diagnostic",
    "DiagnosticType",
    "FetchContext",
    "FetchRequest",
    "FetchResponse",
    "FetchStatus",
    "FetchSummary",
    "Severity",
    "SyncPolicy",
    "TableExecutor",
    "TableFetchSummary",
    "fetch",
    "normalize_filters",
]
