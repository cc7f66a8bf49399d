"""Engine factory for the sync store.

SQLite engines are tuned for the fetch engine, which writes from several
worker threads at once: connections may cross threads, the journal is WAL,
``busy_timeout`` waits out a concurrent writer and ``foreign_keys`` is on so
``parent_sync_id`` cascades fire.  An in-memory SQLite database is shared by
all threads through a single static connection.

Tags:
    syncspine, sqlalchemy, engine, sqlite, postgresql
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.pool import StaticPool

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=30000",
)


def _apply_sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def create_sync_engine(url: str | URL, *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create the engine behind a :class:`~syncspine.storage.Database`.

    Parent directories of a file-backed SQLite database are created.  Extra
    keyword arguments go to :func:`sqlalchemy.create_engine`, e.g. pool
    sizing for a PostgreSQL store.
    """
    sa_url = make_url(url)
    if sa_url.get_backend_name() != "sqlite":
        return sa.create_engine(sa_url, echo=echo, **kwargs)

    database = sa_url.database
    in_memory = not database or database == ":memory:"
    if in_memory:
        kwargs.setdefault("poolclass", StaticPool)
    else:
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = sa.create_engine(sa_url, echo=echo, **kwargs)
    event.listen(engine, "connect", _apply_sqlite_pragmas)
    return engine


__all__ = ["SQLITE_PRAGMAS", "create_sync_engine"]
