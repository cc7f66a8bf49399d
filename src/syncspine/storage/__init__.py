"""Storage sync layer: SQLAlchemy store, table creation and engine factory."""

from syncspine.storage.database import Database
from syncspine.storage.migration import TableCreator
from syncspine.storage.session import create_sync_engine

__all__ = ["Database", "TableCreator", "create_sync_engine"]
