"""In-process DataStore.

Rows live in a dict of lists, one per table. Reads return copies so callers
can't mutate stored rows behind the store's back. Lost on restart.
"""

import copy
import logging
import uuid
from typing import Any

from store.base import TABLES, DataStoreError

logger = logging.getLogger(__name__)


class InMemoryStore:
    """DataStore backed by Python lists.

    Rows without an "id" get a uuid4 on insert. Unknown table names raise
    DataStoreError, the same as a real backend would for a missing relation.
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLES}

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._table(table)
        stored = copy.deepcopy(row)
        if not stored.get("id"):
            stored["id"] = str(uuid.uuid4())
        rows.append(stored)
        return copy.deepcopy(stored)

    async def insert_many(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [await self.insert(table, row) for row in rows]

    async def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        return [copy.deepcopy(row) for row in self._table(table) if _matches(row, filters)]

    async def update(self, table: str, values: dict[str, Any], **filters: Any) -> int:
        updated = 0
        for row in self._table(table):
            if _matches(row, filters):
                row.update(copy.deepcopy(values))
                updated += 1
        logger.debug("Updated %d rows in %s", updated, table)
        return updated

    def _table(self, table: str) -> list[dict[str, Any]]:
        if table not in self._tables:
            raise DataStoreError(table, "no such table")
        return self._tables[table]


def _matches(row: dict[str, Any], filters: dict[str, Any]) -> bool:
    return all(row.get(column) == value for column, value in filters.items())
