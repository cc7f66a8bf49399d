"""
Shared pytest fixtures and configuration for syncspine tests.

This module provides:
- A file-backed SQLite store per test (worker threads need real connections)
- Settings isolated from the developer's environment
- The sample ``accounts → instances`` tree and its fake client
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from syncspine.core.settings import SyncSettings, get_settings
from syncspine.schema import Table
from syncspine.storage import Database
from tests._support.sync_tables import FakeClient, FakeCloud, build_tree


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings / Storage
# =============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """CLI tests reconfigure logging onto the runner's streams."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'sync.db'}"


@pytest.fixture
def settings(db_url: str) -> SyncSettings:
    return SyncSettings(_env_file=None, database_url=db_url)


@pytest.fixture
def database(db_url: str) -> Generator[Database, None, None]:
    db = Database(db_url)
    yield db
    db.close()


# =============================================================================
# Sample tree
# =============================================================================


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def client(cloud: FakeCloud) -> FakeClient:
    return FakeClient(cloud)


@pytest.fixture
def accounts() -> Table:
    return build_tree()
