"""Tests for Resource and ResourceArena."""

from __future__ import annotations

import pytest

from syncspine.core.errors import ResourceValueError, SchemaError
from syncspine.schema import PARENT_SYNC_ID, SYNC_FETCH_DATE, SYNC_ID, Resource, ResourceArena
from syncspine.schema.resource import SYNC_ID_NAMESPACE
from tests._support.sync_tables import build_users


@pytest.fixture
def users():
    return build_users([])


class TestResource:
    def test_every_column_starts_unset(self, users):
        resource = Resource(users, {"id": 1})

        assert resource.keys() == ["id", "name", "email", "phone"]
        assert resource.values() == [None, None, None, None]

    def test_set_coerces(self, users):
        resource = Resource(users, {})
        resource.set("id", "7")

        assert resource.get("id") == 7

    def test_unknown_column(self, users):
        resource = Resource(users, {})

        with pytest.raises(SchemaError):
            resource.set("age", 3)
        with pytest.raises(SchemaError):
            resource.get("age")

    def test_bad_value_names_column_and_table(self, users):
        resource = Resource(users, {})

        with pytest.raises(ResourceValueError) as exc_info:
            resource.set("id", "seven")
        assert exc_info.value.column == "id"
        assert exc_info.value.context.table == "users"

    def test_sync_id_stable_for_declared_keys(self, users):
        first = Resource(users, {})
        first.set("id", 1)
        second = Resource(users, {})
        second.set("id", 1)

        assert first.generate_sync_id() == second.generate_sync_id()

    def test_sync_id_random_without_keys(self, accounts):
        from syncspine.schema import Table

        table = Table(name="events", resolver=accounts.resolver)

        assert Resource(table, {}).generate_sync_id() != Resource(table, {}).generate_sync_id()

    def test_to_row_of_root(self, users):
        resource = Resource(users, {})
        resource.set("id", 1)
        row = resource.to_row()

        assert row[SYNC_ID] == resource.sync_id
        assert row[SYNC_FETCH_DATE] == resource.fetch_date
        assert PARENT_SYNC_ID not in row
        assert row["id"] == 1

    def test_namespace_is_fixed(self):
        assert str(SYNC_ID_NAMESPACE) == "8f2c36a4-5a0e-4c51-9d35-6f4fd0b9d1e2"


class TestArena:
    def test_parent_resolved_through_arena(self, accounts):
        arena = ResourceArena()
        parent = arena.create(accounts, {"id": "a1"})
        parent.set("id", "a1")
        child = arena.create(accounts.relations[0], {"id": "i-1"}, parent=parent)

        assert child.parent is parent
        assert parent.parent is None
        assert (parent.index, child.index) == (0, 1)
        assert len(arena) == 2

    def test_child_row_carries_parent_sync_id(self, accounts):
        arena = ResourceArena()
        parent = arena.create(accounts, {})
        parent.set("id", "a1")
        parent.generate_sync_id()
        child = arena.create(accounts.relations[0], {})
        child_of_parent = arena.create(accounts.relations[0], {}, parent=parent)

        assert child_of_parent.to_row()[PARENT_SYNC_ID] == parent.sync_id
        assert PARENT_SYNC_ID not in child.to_row()

    def test_child_ids_scoped_by_parent(self, accounts):
        arena = ResourceArena()
        instances = accounts.relations[0]
        ids = []
        for account in ("a1", "a2"):
            parent = arena.create(accounts, {})
            parent.set("id", account)
            parent.generate_sync_id()
            child = arena.create(instances, {}, parent=parent)
            child.set("id", "i-1")
            ids.append(child.generate_sync_id())

        assert ids[0] != ids[1]

    def test_foreign_parent_rejected(self, users):
        with pytest.raises(ValueError):
            ResourceArena().create(users, {}, parent=Resource(users, {}))

    def test_clear_drops_everything(self, users):
        arena = ResourceArena()
        arena.create(users, {})
        arena.clear()

        assert list(arena) == []
