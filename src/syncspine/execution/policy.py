"""How a fetched table scope is written to storage.

Exactly one policy applies to a table for the whole run:

=================  =========================================================
``REPLACE``        global tables: upsert by key, nothing is ever deleted
``CASCADE_RELOAD`` ``always_delete`` tables: delete the filtered scope and
                   its descendants, then load, in one transaction
``STALE_REMOVAL``  everything else: upsert by key, then delete rows of the
                   filtered scope last seen before the fence
=================  =========================================================
"""

from __future__ import annotations

from enum import Enum

from syncspine.schema.table import Table


class SyncPolicy(str, Enum):
    REPLACE = "replace"
    CASCADE_RELOAD = "cascade_reload"
    STALE_REMOVAL = "stale_removal"

    @classmethod
    def for_table(cls, table: Table) -> SyncPolicy:
        if table.is_global:
            return cls.REPLACE
        if table.always_delete:
            return cls.CASCADE_RELOAD
        return cls.STALE_REMOVAL


__all__ = ["SyncPolicy"]
