"""Tests for Provider: resource selection, configuration and fetch."""

from __future__ import annotations

import pytest

from syncspine.core.errors import ConfigError, SchemaError, TableNotFoundError
from syncspine.execution import FetchRequest, FetchStatus
from syncspine.provider import Provider
from syncspine.schema import Table
from syncspine.storage import Database
from tests._support.sync_tables import FakeClient, FakeCloud, build_tree, build_users, table_rows


@pytest.fixture
def provider(settings):
    p = Provider(
        name="fakecloud",
        version="1.0.0",
        resource_map={"accounts": build_tree(), "users": build_users([{"id": 1, "name": "ada"}])},
        configure=lambda config, logger: FakeClient(FakeCloud()),
        settings=settings,
    )
    yield p
    p.close()


class TestSelection:
    def test_star_selects_everything(self, provider):
        assert [t.name for t in provider.tables(["*"])] == ["accounts", "users"]

    def test_named_selection(self, provider):
        assert [t.name for t in provider.tables(["users"])] == ["users"]

    def test_star_and_name_not_duplicated(self, provider):
        assert len(provider.tables(["users", "*"])) == 2

    def test_unknown_resource(self, provider):
        with pytest.raises(TableNotFoundError) as exc_info:
            provider.tables(["accounts", "buckets"])
        assert exc_info.value.name == "buckets"

    def test_invalid_tree_rejected_at_construction(self):
        with pytest.raises(SchemaError):
            Provider("bad", "1", {"t": Table(name="t")})

    def test_repr(self, provider):
        assert repr(provider) == "Provider('fakecloud', version='1.0.0', resources=['accounts', 'users'])"


class TestConfigure:
    def test_configure_builds_client_and_storage(self, provider):
        client = provider.configure_provider({"token": "x"})

        assert isinstance(client, FakeClient)
        assert provider.client is client
        assert isinstance(provider.storage, Database)

    def test_config_is_client_without_configure(self, settings):
        p = Provider("raw", "1", {"users": build_users([])}, settings=settings)
        try:
            assert p.configure_provider({"token": "x"}) == {"token": "x"}
        finally:
            p.close()

    def test_configure_failure_wrapped(self, settings):
        def configure(config, logger):
            return config["missing"]

        p = Provider("raw", "1", {"users": build_users([])}, configure=configure, settings=settings)
        try:
            with pytest.raises(ConfigError, match="configuring provider raw failed") as exc_info:
                p.configure_provider({})
            assert isinstance(exc_info.value.cause, KeyError)
        finally:
            p.close()

    def test_connection_url_overrides_settings(self, provider, tmp_path):
        url = f"sqlite:///{tmp_path / 'other.db'}"

        provider.configure_provider({}, connection_url=url)

        assert str(provider.storage.engine.url) == url

    def test_reconfigure_closes_previous_storage(self, provider, tmp_path):
        closed = []
        provider.configure_provider({}, connection_url=f"sqlite:///{tmp_path / 'first.db'}")
        first = provider.storage
        dispose = first.close

        def close():
            closed.append(first)
            dispose()

        first.close = close

        provider.configure_provider({}, connection_url=f"sqlite:///{tmp_path / 'second.db'}")

        assert closed == [first]
        assert provider.storage is not first

    def test_create_tables_requires_storage(self, provider):
        with pytest.raises(ConfigError, match="call configure_provider first"):
            provider.create_tables()


class TestFetchResources:
    @pytest.mark.asyncio
    async def test_fetch_all(self, provider):
        provider.configure_provider({})
        provider.create_tables()

        summary = await provider.fetch_resources(FetchRequest())

        assert summary.status is FetchStatus.SUCCEEDED
        assert [t.resource_name for t in summary.tables] == ["accounts", "users"]
        assert len(table_rows(provider.storage, "instances")) == 3

    @pytest.mark.asyncio
    async def test_fetch_selected_with_sender(self, provider):
        provider.configure_provider({})
        provider.create_tables(resources=["users"])
        responses = []

        summary = await provider.fetch_resources(FetchRequest(resources=["users"]), sender=responses.append)

        assert [t.resource_name for t in summary.tables] == ["users"]
        assert [r.resource_name for r in responses] == ["users"]

    @pytest.mark.asyncio
    async def test_unknown_resource_fails_before_fetch(self, provider):
        provider.configure_provider({})

        with pytest.raises(TableNotFoundError):
            await provider.fetch_resources(FetchRequest(resources=["buckets"]))

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, provider):
        with pytest.raises(ConfigError):
            await provider.fetch_resources(FetchRequest())
