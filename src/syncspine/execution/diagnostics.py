"""Diagnostics reported by a fetch run.

A diagnostic is the only form in which a failure leaves the engine: it
carries a severity, a type derived from the error category, a one-line
summary and a detail string.  Raw exception objects and internal state are
never exposed.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from syncspine.core.errors import ErrorCategory, SyncSpineError, categorize_error


class Severity(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"


class DiagnosticType(str, Enum):
    RESOLVING = "RESOLVING"
    DATABASE = "DATABASE"
    SCHEMA = "SCHEMA"
    USER = "USER"
    INTERNAL = "INTERNAL"


_TYPE_BY_CATEGORY = {
    ErrorCategory.RESOLVER: DiagnosticType.RESOLVING,
    ErrorCategory.STORAGE: DiagnosticType.DATABASE,
    ErrorCategory.SCHEMA: DiagnosticType.SCHEMA,
    ErrorCategory.CONFIG: DiagnosticType.USER,
    ErrorCategory.VERIFICATION: DiagnosticType.INTERNAL,
    ErrorCategory.INTERNAL: DiagnosticType.INTERNAL,
}


class Diagnostic(BaseModel):
    """One reportable problem of a fetch run."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    type: DiagnosticType
    summary: str
    detail: str = ""
    resource: str = ""

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        *,
        resource: str,
        severity: Severity = Severity.ERROR,
        summary: str | None = None,
    ) -> Diagnostic:
        """Build a diagnostic from an exception, keeping only its text."""
        category = categorize_error(error)
        message = error.message if isinstance(error, SyncSpineError) else str(error)
        detail = ""
        cause = error.__cause__
        if cause is not None:
            detail = f"{type(cause).__name__}: {cause}"
        return cls(
            severity=severity,
            type=_TYPE_BY_CATEGORY[category],
            summary=summary or message or type(error).__name__,
            detail=detail,
            resource=resource,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    return any(d.severity is Severity.ERROR for d in diagnostics)


__all__ = ["Diagnostic", "DiagnosticType", "Severity", "has_errors"]
