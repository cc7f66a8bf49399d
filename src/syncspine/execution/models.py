"""Request, response and summary models of a fetch run.

Pydantic v2 models so a run can be inspected programmatically
(``summary.status is FetchStatus.SUCCEEDED``) or dumped with
``model_dump_json()`` by the CLI.

Key Concepts:
    FetchRequest: which resources to fetch (``"*"`` = all) and how many
        resolvers may run at once.
    TableFetchSummary: outcome of one requested root table, including its
        whole subtree.  ``compute_status()`` derives the status from
        diagnostics and counts.
    FetchSummary: outcome of the run.  ``mark_complete()`` stamps the end
        time and rolls table statuses up.
    FetchResponse: what is streamed to a sender as each root table ends.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from syncspine.core.timestamps import utc_now
from syncspine.execution.diagnostics import Diagnostic, has_errors

ALL_RESOURCES = "*"


class FetchStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    PARTIAL = "PARTIAL"  # succeeded with diagnostics
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class FetchRequest(BaseModel):
    resources: list[str] = Field(default_factory=lambda: [ALL_RESOURCES])
    parallel_fetching_limit: int | None = Field(default=None, ge=0)


class TableFetchSummary(BaseModel):
    """Outcome of one root table and its relations."""

    resource_name: str
    status: FetchStatus = FetchStatus.SUCCEEDED
    resource_count: int = 0
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    duration_seconds: float = 0.0

    def compute_status(self, *, canceled: bool = False, aborted: bool = False) -> FetchStatus:
        if canceled:
            self.status = FetchStatus.CANCELED
        elif aborted or (has_errors(self.diagnostics) and self.resource_count == 0):
            self.status = FetchStatus.FAILED
        elif self.diagnostics:
            self.status = FetchStatus.PARTIAL
        else:
            self.status = FetchStatus.SUCCEEDED
        return self.status


class FetchSummary(BaseModel):
    """Outcome of a whole fetch run; ``started_at`` is the execution fence."""

    fetch_id: str
    started_at: datetime
    finished_at: datetime | None = None
    tables: list[TableFetchSummary] = Field(default_factory=list)
    status: FetchStatus = FetchStatus.SUCCEEDED

    @property
    def resource_count(self) -> int:
        return sum(t.resource_count for t in self.tables)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [d for t in self.tables for d in t.diagnostics]

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def table(self, name: str) -> TableFetchSummary | None:
        for summary in self.tables:
            if summary.resource_name == name:
                return summary
        return None

    def mark_complete(self, status: FetchStatus | None = None) -> None:
        """Stamp ``finished_at`` and derive the run status from its tables."""
        self.finished_at = utc_now()
        if status is not None:
            self.status = status
            return
        statuses = {t.status for t in self.tables}
        if FetchStatus.CANCELED in statuses:
            self.status = FetchStatus.CANCELED
        elif not statuses or statuses == {FetchStatus.SUCCEEDED}:
            self.status = FetchStatus.SUCCEEDED
        elif statuses == {FetchStatus.FAILED}:
            self.status = FetchStatus.FAILED
        else:
            self.status = FetchStatus.PARTIAL

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["resource_count"] = self.resource_count
        data["duration_seconds"] = self.duration_seconds
        return data


class FetchResponse(BaseModel):
    """Streamed to the sender when a root table finishes."""

    resource_name: str
    finished_resources: dict[str, bool] = Field(default_factory=dict)
    resource_count: int = 0
    error: str = ""
    summary: TableFetchSummary


__all__ = [
    "ALL_RESOURCES",
    "FetchRequest",
    "FetchResponse",
    "FetchStatus",
    "FetchSummary",
    "TableFetchSummary",
]
