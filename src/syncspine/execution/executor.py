"""Table executor: resolves a table tree concurrently and syncs it to storage.

ARCHITECTURE
────────────
::

    TableExecutor.fetch(client, tables)
      │  fence = utc_now()               captured once, before any worker
      │
      └─ TaskGroup: one task per root table
           │
           _resolve_table(table, client, parent)
             │  clients = table.multiplex(client) or [client]
             └─ one scope per client, concurrently
                  │
                  _resolve_scope
                    ├── producer: table.resolver(ctx, client, parent, queue)
                    │             holds a slot of the shared Semaphore
                    ├── consumer: queue → Resource (column resolution,
                    │             post_resource_resolver)
                    ├── persist:  SyncPolicy → storage (asyncio.to_thread)
                    └── children: every relation × every persisted resource

    queue = asyncio.Queue(result_buffer_size)   producer blocks when full

Failures never escape a scope bare: they become diagnostics on the root
table's summary.  Under ``ErrorPolicy.ABORT_RUN`` a non-ignored failure
cancels every in-flight task instead; tables already written stay written.

Example::

    executor = TableExecutor(Database("sqlite:///data/sync.db"))
    summary = await executor.fetch(client, [accounts], parallelism_limit=8)
    print(summary.status, summary.resource_count)
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import time
import uuid
from collections.abc import AsyncIterator, Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from syncspine.core.errors import (
    ConfigError,
    FetchCanceledError,
    PersistenceError,
    ResolverError,
    categorize_error,
)
from syncspine.core.logging import LogContext, get_logger
from syncspine.core.protocols import Storage
from syncspine.core.settings import ErrorPolicy, SyncSettings, get_settings
from syncspine.core.timestamps import ensure_utc, utc_now
from syncspine.execution.context import FetchContext
from syncspine.execution.diagnostics import Diagnostic, Severity
from syncspine.execution.models import FetchResponse, FetchStatus, FetchSummary, TableFetchSummary
from syncspine.execution.policy import SyncPolicy
from syncspine.schema.column import Column
from syncspine.schema.resolvers import get_path
from syncspine.schema.resource import PARENT_SYNC_ID, Resource, ResourceArena
from syncspine.schema.table import Table
from syncspine.schema.validation import validate_tables

logger = get_logger(__name__)

Sender = Callable[[FetchResponse], Any]

_DONE = object()


class _RunAborted(Exception):
    """Raised inside the task tree to cancel the whole run."""

    def __init__(self, table: str):
        super().__init__(f"run aborted by a failure in {table}")
        self.table = table


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _first_error(group: BaseExceptionGroup) -> BaseException:
    first: BaseException = group
    while isinstance(first, BaseExceptionGroup):
        first = first.exceptions[0]
    return first


def normalize_filters(raw: Mapping[str, Any] | Sequence[Any] | None) -> dict[str, Any]:
    """Turn a delete filter into a column → value mapping.

    Accepts a mapping or a flat ``[key, value, key, value]`` sequence.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    items = list(raw)
    if len(items) % 2:
        raise ResolverError(f"delete filter needs key/value pairs, got {len(items)} items")
    return {str(items[i]): items[i + 1] for i in range(0, len(items), 2)}


class _RootState:
    """Mutable outcome of one requested root table."""

    def __init__(self, table: Table):
        self.table = table
        self.diagnostics: list[Diagnostic] = []
        self.resource_count = 0
        self.canceled = False
        self.aborted = False
        self.sent = False
        self.started = time.monotonic()
        self.finished: float | None = None

    def summary(self) -> TableFetchSummary:
        summary = TableFetchSummary(
            resource_name=self.table.name,
            resource_count=self.resource_count,
            diagnostics=list(self.diagnostics),
            duration_seconds=(self.finished or time.monotonic()) - self.started,
        )
        summary.compute_status(canceled=self.canceled, aborted=self.aborted)
        return summary


class TableExecutor:
    """Fetches table trees through a client and syncs them into ``storage``.

    Parameters
    ----------
    storage : Storage
        Destination store (``syncspine.storage.Database`` or compatible).
    fence : datetime, optional
        Execution start.  Captured at the start of each ``fetch`` if omitted.
    settings : SyncSettings, optional
        Defaults for parallelism, buffer size, error policy and fallback.
    """

    def __init__(
        self,
        storage: Storage,
        fence: datetime | None = None,
        settings: SyncSettings | None = None,
        *,
        error_policy: ErrorPolicy | str | None = None,
        insert_fallback: bool | None = None,
        result_buffer_size: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.storage = storage
        self.fence = ensure_utc(fence) if fence is not None else None
        self.settings = settings or get_settings()
        self.error_policy = ErrorPolicy(error_policy) if error_policy else self.settings.error_policy
        self.insert_fallback = self.settings.insert_fallback if insert_fallback is None else insert_fallback
        self.result_buffer_size = result_buffer_size or self.settings.result_buffer_size
        self.metadata = metadata or {}

    async def fetch(
        self,
        client: Any,
        tables: Iterable[Table],
        parallelism_limit: int | None = None,
        sender: Sender | None = None,
    ) -> FetchSummary:
        """Fetch every table in ``tables`` (and their relations).

        Args:
            client: Opaque client handed to multiplex and resolvers.
            tables: Root tables to fetch.
            parallelism_limit: Max concurrent resolvers; ``0`` is unbounded,
                ``None`` takes the settings value.
            sender: Called with a ``FetchResponse`` as each root finishes.

        Returns:
            :class:`FetchSummary` of the run.
        """
        tables = list(tables)
        validate_tables(tables)
        limit = self.settings.parallel_fetching_limit if parallelism_limit is None else parallelism_limit
        if limit < 0:
            raise ConfigError(f"parallelism limit must be >= 0, got {limit}")
        run = _FetchRun(self, fence=self.fence or utc_now(), limit=limit, sender=sender)
        return await run.execute(client, tables)


class _FetchRun:
    """State of one ``TableExecutor.fetch`` call."""

    def __init__(self, executor: TableExecutor, fence: datetime, limit: int, sender: Sender | None):
        self.executor = executor
        self.storage = executor.storage
        self.fence = fence
        self.limit = limit
        self.sender = sender
        self.fetch_id = str(uuid.uuid4())
        self.semaphore = asyncio.Semaphore(limit) if limit > 0 else None
        self.arena = ResourceArena()
        self.states: dict[str, _RootState] = {}
        self.aborted_by: str | None = None
        self._contexts: dict[str, FetchContext] = {}

    # ── Run ───────────────────────────────────────────────────────────

    async def execute(self, client: Any, tables: list[Table]) -> FetchSummary:
        summary = FetchSummary(fetch_id=self.fetch_id, started_at=self.fence)
        self.states = {table.name: _RootState(table) for table in tables}
        timeout = self.executor.settings.fetch_timeout_seconds
        run_status: FetchStatus | None = None

        async with LogContext(fetch_id=self.fetch_id):
            logger.info(
                "fetch.start",
                tables=[t.name for t in tables],
                parallelism=self.limit,
                error_policy=self.executor.error_policy.value,
                fence=self.fence.isoformat(),
            )
            try:
                try:
                    async with asyncio.timeout(timeout):
                        await self._run_roots(client, tables)
                except TimeoutError:
                    run_status = FetchStatus.CANCELED
                    error = FetchCanceledError(f"fetch deadline of {timeout}s exceeded")
                    for state in self.states.values():
                        if state.canceled:
                            state.diagnostics.append(Diagnostic.from_error(error, resource=state.table.name))
                    logger.error("fetch.timeout", timeout_seconds=timeout)

                if self.aborted_by is not None:
                    run_status = FetchStatus.FAILED

                for state in self.states.values():
                    summary.tables.append(state.summary())
                    if not state.sent:
                        await self._send(state)
                summary.mark_complete(run_status)
            finally:
                self.arena.clear()

            logger.info(
                "fetch.complete",
                status=summary.status.value,
                resources=summary.resource_count,
                diagnostics=len(summary.diagnostics),
                duration_seconds=summary.duration_seconds,
            )
        return summary

    async def _run_roots(self, client: Any, tables: list[Table]) -> None:
        try:
            async with asyncio.TaskGroup() as tg:
                for table in tables:
                    tg.create_task(self._fetch_root(table, client))
        except* _RunAborted:
            logger.error("fetch.aborted", table=self.aborted_by)

    async def _fetch_root(self, table: Table, client: Any) -> None:
        state = self.states[table.name]
        try:
            await self._resolve_table(state, table, client, parent=None)
        except asyncio.CancelledError:
            if not state.aborted:
                state.canceled = True
            raise
        finally:
            state.finished = time.monotonic()
        await self._send(state)

    async def _send(self, state: _RootState) -> None:
        state.sent = True
        if self.sender is None:
            return
        table_summary = state.summary()
        response = FetchResponse(
            resource_name=state.table.name,
            finished_resources={name: s.finished is not None for name, s in self.states.items()},
            resource_count=state.resource_count,
            error="; ".join(d.summary for d in table_summary.diagnostics if d.severity is Severity.ERROR),
            summary=table_summary,
        )
        try:
            await _maybe_await(self.sender(response))
        except Exception as e:
            logger.warning("fetch.sender_failed", table=state.table.name, error=str(e))

    # ── Traversal ─────────────────────────────────────────────────────

    def _context(self, table: Table) -> FetchContext:
        ctx = self._contexts.get(table.name)
        if ctx is None:
            ctx = FetchContext(
                fetch_id=self.fetch_id,
                execution_start=self.fence,
                table=table,
                logger=logger.bind(table=table.name),
                settings=self.executor.settings,
                metadata=self.executor.metadata,
            )
            self._contexts[table.name] = ctx
        return ctx

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self.semaphore is None:
            yield
            return
        async with self.semaphore:
            yield

    async def _resolve_table(
        self,
        state: _RootState,
        table: Table,
        client: Any,
        parent: Resource | None,
    ) -> None:
        ctx = self._context(table)
        try:
            clients = list(table.multiplex(client)) if table.multiplex is not None else [client]
        except Exception as e:
            self._handle_error(state, table, e)
            return
        if not clients:
            ctx.logger.info("fetch.table.no_clients")
            return
        if len(clients) == 1:
            await self._resolve_scope(state, ctx, table, clients[0], parent)
            return
        async with asyncio.TaskGroup() as tg:
            for scoped_client in clients:
                tg.create_task(self._resolve_scope(state, ctx, table, scoped_client, parent))

    async def _resolve_scope(
        self,
        state: _RootState,
        ctx: FetchContext,
        table: Table,
        client: Any,
        parent: Resource | None,
    ) -> None:
        started = time.monotonic()
        try:
            resources = await self._collect(ctx, table, client, parent)
            filters = self._scope_filters(table, client, parent)
        except Exception as e:
            self._handle_error(state, table, e)
            return

        persisted = await self._persist(state, ctx, table, resources, filters)
        if persisted is None:
            return
        state.resource_count += len(persisted)
        ctx.logger.debug(
            "fetch.table.resolved",
            resources=len(persisted),
            parent=parent.sync_id if parent is not None else None,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )

        if not table.relations or not persisted:
            return
        async with asyncio.TaskGroup() as tg:
            for resource in persisted:
                for relation in table.relations:
                    tg.create_task(self._resolve_table(state, relation, client, resource))

    async def _collect(
        self,
        ctx: FetchContext,
        table: Table,
        client: Any,
        parent: Resource | None,
    ) -> list[Resource]:
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self.executor.result_buffer_size)
        resources: list[Resource] = []

        async def produce() -> None:
            async with self._slot():
                await table.resolver(ctx, client, parent, queue)
            await queue.put(_DONE)

        async def consume() -> None:
            while True:
                item = await queue.get()
                if item is _DONE:
                    return
                for raw in item if isinstance(item, list) else [item]:
                    resources.append(await self._build_resource(ctx, table, client, parent, raw))

        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(produce())
                tg.create_task(consume())
        except BaseExceptionGroup as group:
            raise _first_error(group)
        return resources

    async def _build_resource(
        self,
        ctx: FetchContext,
        table: Table,
        client: Any,
        parent: Resource | None,
        item: Any,
    ) -> Resource:
        resource = self.arena.create(table, item, parent=parent, fetch_date=max(utc_now(), self.fence))
        for column in table.columns:
            await self._resolve_column(ctx, client, resource, column)
        if table.post_resource_resolver is not None:
            await _maybe_await(table.post_resource_resolver(ctx, client, resource))
        return resource

    async def _resolve_column(self, ctx: FetchContext, client: Any, resource: Resource, column: Column) -> None:
        if column.resolver is not None:
            value = await _maybe_await(column.resolver(ctx, client, resource, column))
            if value is not None:
                resource.set(column.name, value)
            return
        resource.set(column.name, get_path(resource.item, column.source_path))

    def _scope_filters(self, table: Table, client: Any, parent: Resource | None) -> dict[str, Any]:
        filters = normalize_filters(table.delete_filter(client, parent)) if table.delete_filter else {}
        if parent is not None:
            filters.setdefault(PARENT_SYNC_ID, parent.sync_id)
        return filters

    # ── Persistence ───────────────────────────────────────────────────

    async def _persist(
        self,
        state: _RootState,
        ctx: FetchContext,
        table: Table,
        resources: list[Resource],
        filters: dict[str, Any],
    ) -> list[Resource] | None:
        """Write one scope; ``None`` means nothing was written and children are skipped."""
        policy = SyncPolicy.for_table(table)
        complete = True
        # Children link to these ids, so they must exist before any write
        for resource in resources:
            if resource.sync_id is None:
                resource.generate_sync_id()
        try:
            if policy is SyncPolicy.CASCADE_RELOAD:
                await asyncio.to_thread(
                    self.storage.copy_from, table, resources, True, filters, execution_start=self.fence
                )
            else:
                await asyncio.to_thread(self.storage.copy_from, table, resources)
            persisted = resources
        except Exception as e:
            error = self._as_persistence_error(table, e)
            if not self.executor.insert_fallback:
                self._handle_error(state, table, error, ignorable=False)
                return None
            ctx.logger.warning("fetch.table.copy_failed_fallback", error=str(error), rows=len(resources))
            persisted = await self._insert_each(state, table, resources, filters, policy)
            if persisted is None:
                return None
            complete = len(persisted) == len(resources)

        if policy is SyncPolicy.STALE_REMOVAL and complete:
            try:
                removed = await asyncio.to_thread(self.storage.remove_stale_data, table, self.fence, filters)
            except Exception as e:
                error = self._as_persistence_error(table, e)
                state.diagnostics.append(
                    Diagnostic.from_error(error, resource=table.name, severity=Severity.WARNING)
                )
                ctx.logger.warning("fetch.table.stale_removal_failed", error=str(error))
            else:
                ctx.logger.debug("fetch.table.stale_removed", rows=removed, filters=list(filters))
        return persisted

    async def _insert_each(
        self,
        state: _RootState,
        table: Table,
        resources: list[Resource],
        filters: dict[str, Any],
        policy: SyncPolicy,
    ) -> list[Resource] | None:
        if policy is SyncPolicy.CASCADE_RELOAD:
            try:
                await asyncio.to_thread(self.storage.remove_stale_data, table, self.fence, filters)
            except Exception as e:
                self._handle_error(state, table, self._as_persistence_error(table, e), ignorable=False)
                return None

        persisted: list[Resource] = []
        last_error: BaseException | None = None
        for resource in resources:
            try:
                await asyncio.to_thread(self.storage.insert, table, [resource])
            except Exception as e:
                last_error = e
            else:
                persisted.append(resource)

        failed = len(resources) - len(persisted)
        if failed:
            error = PersistenceError(
                f"{failed} of {len(resources)} rows could not be inserted into {table.name}",
                cause=last_error,
            ).with_context(table=table.name)
            self._handle_error(state, table, error, ignorable=False)
        return persisted

    @staticmethod
    def _as_persistence_error(table: Table, error: Exception) -> PersistenceError:
        if isinstance(error, PersistenceError):
            return error
        return PersistenceError(f"writing {table.name} failed: {error}", cause=error).with_context(
            table=table.name
        )

    # ── Errors ────────────────────────────────────────────────────────

    def _ignored(self, table: Table, error: BaseException) -> bool:
        if table.ignore_error is None:
            return False
        try:
            return bool(table.ignore_error(error))
        except Exception as e:
            self._context(table).logger.warning("fetch.table.ignore_error_failed", error=str(e))
            return False

    def _handle_error(
        self,
        state: _RootState,
        table: Table,
        error: Exception,
        *,
        ignorable: bool = True,
    ) -> None:
        """Record ``error`` for ``table``; raise ``_RunAborted`` under ABORT_RUN."""
        log = self._context(table).logger
        if ignorable and self._ignored(table, error):
            state.diagnostics.append(Diagnostic.from_error(error, resource=table.name, severity=Severity.WARNING))
            log.warning("fetch.table.error_ignored", error=str(error), error_type=type(error).__name__)
            return

        state.diagnostics.append(Diagnostic.from_error(error, resource=table.name))
        log.error(
            "fetch.table.failed",
            error=str(error),
            error_type=type(error).__name__,
            category=categorize_error(error).value,
        )
        if self.executor.error_policy is ErrorPolicy.ABORT_RUN:
            state.aborted = True
            self.aborted_by = table.name
            raise _RunAborted(table.name) from error


async def fetch(
    storage: Storage,
    client: Any,
    tables: Iterable[Table],
    parallelism_limit: int = 0,
    *,
    settings: SyncSettings | None = None,
    fence: datetime | None = None,
    error_policy: ErrorPolicy | str | None = None,
    sender: Sender | None = None,
) -> FetchSummary:
    """Fetch ``tables`` through ``client`` into ``storage`` with a one-off executor."""
    executor = TableExecutor(storage, fence=fence, settings=settings, error_policy=error_policy)
    return await executor.fetch(client, tables, parallelism_limit, sender=sender)


__all__ = ["Sender", "TableExecutor", "fetch", "normalize_filters"]
