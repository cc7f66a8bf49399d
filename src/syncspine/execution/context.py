"""Context handed to every table resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from syncspine.core.settings import SyncSettings
from syncspine.schema.table import Table


@dataclass(frozen=True)
class FetchContext:
    """Read-only view of the run a resolver is part of.

    Attributes:
        fetch_id: Identifier of the run, also bound on every log line.
        execution_start: The fence; rows stamped before it are stale.
        table: Table being resolved.
        logger: structlog logger bound to ``fetch_id`` and ``table``.
        settings: Settings the run was started with.
        metadata: Free-form values the caller passed to the run.
    """

    fetch_id: str
    execution_start: datetime
    table: Table
    logger: Any
    settings: SyncSettings
    metadata: dict[str, Any] = field(default_factory=dict)

    def for_table(self, table: Table) -> FetchContext:
        return FetchContext(
            fetch_id=self.fetch_id,
            execution_start=self.execution_start,
            table=table,
            logger=self.logger.bind(table=table.name),
            settings=self.settings,
            metadata=self.metadata,
        )


__all__ = ["FetchContext"]
