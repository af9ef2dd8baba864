"""Datastore interface.

The core talks to persistence through this narrow, table-oriented protocol:
rows are plain dicts, filters are column equality (a None filter matches a
null or missing column). Any relational backend (Postgres via Supabase,
SQLite, ...) can sit behind it. InMemoryStore is the in-process
implementation used by tests, the CLI and local runs.

Tables used by the core:
    signals, incidents, incident_signals, incident_lifecycle, agent_traces
"""

from typing import Any, Protocol

TABLES = frozenset({
    "signals",
    "incidents",
    "incident_signals",
    "incident_lifecycle",
    "agent_traces",
})


class DataStoreError(Exception):
    """Raised when a datastore operation fails.

    Attributes:
        table: The table the operation targeted.
    """

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


class DataStore(Protocol):
    """Async table store."""

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored, with its id filled in."""
        ...

    async def insert_many(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert several rows at once."""
        ...

    async def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        """Return rows whose columns equal every given filter value."""
        ...

    async def update(self, table: str, values: dict[str, Any], **filters: Any) -> int:
        """Set values on every matching row. Returns the number of rows updated."""
        ...
