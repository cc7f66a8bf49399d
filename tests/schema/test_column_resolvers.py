"""Tests for path lookup and the column resolver factories."""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest

from syncspine.core.errors import PersistenceError, ResourceValueError
from syncspine.schema import (
    Column,
    ColumnType,
    ResourceArena,
    date_resolver,
    get_path,
    ignore_errors_of,
    parent_sync_id_resolver,
    parent_value_resolver,
    path_resolver,
)


class TestGetPath:
    def test_nested_mapping(self):
        assert get_path({"placement": {"zone": "a"}}, "placement.zone") == "a"

    def test_attributes(self):
        item = SimpleNamespace(placement=SimpleNamespace(zone="b"))
        assert get_path(item, "placement.zone") == "b"

    def test_list_index(self):
        assert get_path({"ips": ["10.0.0.1", "10.0.0.2"]}, "ips.1") == "10.0.0.2"
        assert get_path({"ips": []}, "ips.0") is None

    @pytest.mark.parametrize("item", [{}, {"placement": None}, {"placement": {}}, None])
    def test_missing_is_none(self, item):
        assert get_path(item, "placement.zone") is None

    def test_falsy_values_kept(self):
        assert get_path({"count": 0}, "count") == 0


class TestResolverFactories:
    def _tree(self, accounts):
        arena = ResourceArena()
        parent = arena.create(accounts, {"id": "a1"})
        parent.set("id", "a1")
        parent.generate_sync_id()
        child = arena.create(accounts.relations[0], {"meta": {"launched": "05/03/2024"}}, parent=parent)
        return parent, child

    def test_path_resolver(self, accounts):
        _, child = self._tree(accounts)
        resolve = path_resolver("meta.launched")

        assert resolve(None, None, child, Column("x", ColumnType.STRING)) == "05/03/2024"

    def test_parent_value_resolver(self, accounts):
        parent, child = self._tree(accounts)

        assert parent_value_resolver("id")(None, None, child, Column("account_id", ColumnType.STRING)) == "a1"
        assert parent_value_resolver("id")(None, None, parent, Column("x", ColumnType.STRING)) is None

    def test_parent_sync_id_resolver(self, accounts):
        parent, child = self._tree(accounts)

        assert parent_sync_id_resolver()(None, None, child, Column("p", ColumnType.UUID)) == parent.sync_id

    def test_date_resolver_with_format(self, accounts):
        _, child = self._tree(accounts)
        resolve = date_resolver("meta.launched", "%Y-%m-%d", "%d/%m/%Y")

        assert resolve(None, None, child, Column("launched", ColumnType.TIMESTAMP)) == datetime(
            2024, 3, 5, tzinfo=UTC
        )

    def test_date_resolver_no_match(self, accounts):
        _, child = self._tree(accounts)
        resolve = date_resolver("meta.launched", "%Y-%m-%d")

        with pytest.raises(ResourceValueError) as exc_info:
            resolve(None, None, child, Column("launched", ColumnType.TIMESTAMP))
        assert exc_info.value.column == "launched"

    def test_date_resolver_without_formats_passes_value(self, accounts):
        _, child = self._tree(accounts)

        assert date_resolver("meta.launched")(None, None, child, Column("l", ColumnType.TIMESTAMP)) == "05/03/2024"


class TestIgnoreErrorsOf:
    def test_matches_type(self):
        assert ignore_errors_of(TimeoutError, PermissionError)(PermissionError("denied"))

    def test_matches_cause(self):
        try:
            raise PersistenceError("wrapped") from TimeoutError("slow")
        except PersistenceError as e:
            error = e

        assert ignore_errors_of(TimeoutError)(error)

    def test_other_errors_not_ignored(self):
        assert not ignore_errors_of(TimeoutError)(ValueError("nope"))
