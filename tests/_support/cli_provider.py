"""Provider factories importable as ``tests._support.cli_provider:<name>``."""

from __future__ import annotations

from syncspine.provider import Provider
from tests._support.sync_tables import FakeClient, FakeCloud, build_tree, build_users

USERS = [
    {"id": 1, "name": "ada", "email": "ada@example.com"},
    {"id": 2, "name": "bob", "phone": "555-0100"},
]


def build_provider() -> Provider:
    return Provider(
        name="fakecloud",
        version="1.2.3",
        resource_map={"accounts": build_tree(), "users": build_users(USERS)},
        configure=lambda config, logger: FakeClient(FakeCloud()),
    )


def build_failing_provider() -> Provider:
    async def broken(ctx, client, parent, res):
        raise RuntimeError("source offline")

    return Provider(
        name="broken",
        version="0.0.1",
        resource_map={"accounts": build_tree(accounts_resolver=broken)},
        configure=lambda config, logger: FakeClient(FakeCloud()),
    )


not_a_provider = object()
