"""
Provider: a named set of root tables plus the code that builds their client.

Manifesto:
    A provider is what a host process loads.  It declares which resources it
    can fetch, turns the host's configuration into a client, creates the
    backing tables and runs fetches.  Table trees are validated once, when the
    provider is built, so a malformed definition never reaches a fetch.

Examples:
    >>> provider = Provider(
    ...     name="demo",
    ...     version="1.0.0",
    ...     resource_map={"accounts": accounts},
    ...     configure=lambda config, logger: DemoClient(config["token"]),
    ... )
    >>> provider.configure_provider({"token": "x"}, connection_url="sqlite:///data/demo.db")
    >>> provider.create_tables()
    >>> summary = await provider.fetch_resources(FetchRequest(resources=["*"]))

Tags:
    provider, boundary, configure, fetch, syncspine
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from syncspine.core.errors import ConfigError, SyncSpineError, TableNotFoundError
from syncspine.core.logging import get_logger
from syncspine.core.protocols import Storage
from syncspine.core.settings import SyncSettings, get_settings
from syncspine.execution.executor import Sender, TableExecutor
from syncspine.execution.models import ALL_RESOURCES, FetchRequest, FetchSummary
from syncspine.schema.table import Table
from syncspine.schema.validation import validate_tables
from syncspine.storage.database import Database

# (config, logger) -> client
ConfigureFunc = Callable[[Any, Any], Any]


class Provider:
    """Resource map, client factory and entry points of one data source."""

    def __init__(
        self,
        name: str,
        version: str,
        resource_map: Mapping[str, Table],
        configure: ConfigureFunc | None = None,
        *,
        settings: SyncSettings | None = None,
        storage: Storage | None = None,
    ):
        validate_tables(resource_map.values())
        self.name = name
        self.version = version
        self.resource_map: dict[str, Table] = dict(resource_map)
        self.configure = configure
        self.settings = settings or get_settings()
        self.storage = storage
        self.client: Any = None
        self.logger = get_logger(__name__).bind(provider=name, version=version)

    # ── Configuration ─────────────────────────────────────────────────

    def configure_provider(self, config: Any, connection_url: str | None = None) -> Any:
        """Open the store and build the client from ``config``.

        Without a ``configure`` callable the config itself is the client.

        Raises:
            ConfigError: if the client cannot be built.
        """
        if connection_url is not None or self.storage is None:
            if self.storage is not None:
                self.storage.close()
            self.storage = Database(
                connection_url or self.settings.database_url,
                echo=self.settings.database_echo,
            )
        if self.configure is None:
            self.client = config
        else:
            try:
                self.client = self.configure(config, self.logger)
            except SyncSpineError:
                raise
            except Exception as e:
                raise ConfigError(f"configuring provider {self.name} failed: {e}", cause=e) from e
        self.logger.info("provider.configured", resources=len(self.resource_map))
        return self.client

    def _require_storage(self) -> Storage:
        if self.storage is None:
            raise ConfigError(f"provider {self.name} has no storage; call configure_provider first")
        return self.storage

    # ── Resources ─────────────────────────────────────────────────────

    def tables(self, names: Iterable[str] = (ALL_RESOURCES,)) -> list[Table]:
        """Root tables for resource ``names``; ``"*"`` selects every resource.

        Raises:
            TableNotFoundError: for the first unknown name.
        """
        selected: dict[str, Table] = {}
        for name in names:
            if name == ALL_RESOURCES:
                selected.update(self.resource_map)
            elif name in self.resource_map:
                selected[name] = self.resource_map[name]
            else:
                raise TableNotFoundError(name)
        return list(selected.values())

    def create_tables(self, recreate: bool = False, resources: Iterable[str] = (ALL_RESOURCES,)) -> None:
        """Create backing tables of the selected resources (drop first with ``recreate``)."""
        storage = self._require_storage()
        storage.create_tables(self.tables(resources), recreate=recreate)

    async def fetch_resources(self, request: FetchRequest, sender: Sender | None = None) -> FetchSummary:
        """Fetch the requested resources into storage.

        Unknown resource names fail before anything is fetched.
        """
        tables = self.tables(request.resources)
        storage = self._require_storage()
        if self.client is None:
            raise ConfigError(f"provider {self.name} is not configured")

        executor = TableExecutor(
            storage,
            settings=self.settings,
            metadata={"provider": self.name, "version": self.version},
        )
        summary = await executor.fetch(
            self.client,
            tables,
            parallelism_limit=request.parallel_fetching_limit,
            sender=sender,
        )
        self.logger.info(
            "provider.fetch_complete",
            fetch_id=summary.fetch_id,
            status=summary.status.value,
            resources=summary.resource_count,
        )
        return summary

    def close(self) -> None:
        if self.storage is not None:
            self.storage.close()

    def __repr__(self) -> str:
        return f"Provider({self.name!r}, version={self.version!r}, resources={sorted(self.resource_map)})"


__all__ = ["ConfigureFunc", "Provider"]
