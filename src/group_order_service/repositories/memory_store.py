"""In-memory remote store for local development and tests.

Mimics the hosted store closely enough for the state store: generated ids,
``created_at`` stamps, column defaults, embedded child rows, cascade deletes
and a change notification after every mutation.
"""

import copy
import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from group_order_service.repositories.remote_store import (
    INDIVIDUAL_ORDERS_TABLE,
    MENU_ITEMS_TABLE,
    ORDERS_TABLE,
    RemoteStore,
    RemoteStoreError,
)

logger = logging.getLogger(__name__)

# (parent table, child table) -> foreign key column on the child
FOREIGN_KEYS = {(ORDERS_TABLE, INDIVIDUAL_ORDERS_TABLE): "order_id"}

COLUMN_DEFAULTS: dict[str, dict[str, Any]] = {
    MENU_ITEMS_TABLE: {"description": None, "image": None},
    ORDERS_TABLE: {"venmo_id": None, "status": "active", "tip": 0},
    INDIVIDUAL_ORDERS_TABLE: {
        "three_roll_combo": None,
        "single_roll": None,
        "beverage": None,
        "miso_soup": False,
        "total": 0,
        "packaged": False,
        "paid": False,
    },
}


class InMemoryRemoteStore(RemoteStore):
    """Remote store that keeps every table in process memory."""

    def __init__(self) -> None:
        """Initialize empty tables."""
        super().__init__()
        self.tables: dict[str, dict[str, dict[str, Any]]] = {
            table: {} for table in COLUMN_DEFAULTS
        }
        self.failing_operations: set[tuple[str, str | None]] = set()
        self._last_created_at: datetime | None = None

    def fail_on(self, operation: str, table: str | None = None) -> None:
        """Make an operation raise RemoteStoreError until ``recover`` is called.

        Args:
            operation: One of "select", "insert", "update", "delete"
            table: Restrict the failure to one table (all tables when None)
        """
        self.failing_operations.add((operation, table))

    def recover(self) -> None:
        """Clear all injected failures."""
        self.failing_operations.clear()

    def _check_failure(self, operation: str, table: str) -> None:
        if (operation, None) in self.failing_operations or (
            operation,
            table,
        ) in self.failing_operations:
            raise RemoteStoreError(f"Simulated {operation} failure on {table}", table=table)

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        if table not in self.tables:
            raise RemoteStoreError(f"Unknown table {table}", table=table)
        return self.tables[table]

    def _next_created_at(self) -> str:
        # Strictly increasing so ordering by created_at matches insertion order
        now = datetime.now(UTC)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now.isoformat()

    async def select(
        self,
        table: str,
        order_by: str | None = None,
        descending: bool = False,
        embed: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return copies of every row, optionally ordered and joined."""
        self._check_failure("select", table)
        rows = [copy.deepcopy(row) for row in self._table(table).values()]

        if order_by:
            rows.sort(key=lambda row: str(row.get(order_by) or ""), reverse=descending)

        if embed:
            foreign_key = FOREIGN_KEYS.get((table, embed))
            if foreign_key is None:
                raise RemoteStoreError(f"No relationship between {table} and {embed}", table=table)
            children = list(self._table(embed).values())
            for row in rows:
                row[embed] = [
                    copy.deepcopy(child) for child in children if child[foreign_key] == row["id"]
                ]

        return rows

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Store a row with generated id and ``created_at``, then notify."""
        self._check_failure("insert", table)
        rows = self._table(table)

        stored = dict(COLUMN_DEFAULTS[table])
        stored.update({key: value for key, value in row.items() if value is not None})
        stored.setdefault("id", str(uuid.uuid4()))
        stored["created_at"] = self._next_created_at()
        rows[stored["id"]] = stored

        logger.debug(f"Inserted {table} row {stored['id']}")
        await self.notify(table)
        return copy.deepcopy(stored)

    async def update(self, table: str, row_id: str, fields: dict[str, Any]) -> None:
        """Update the given columns of a row, then notify.

        Updating a missing row matches zero rows and is not an error.
        """
        self._check_failure("update", table)
        row = self._table(table).get(row_id)
        if row is not None:
            row.update(copy.deepcopy(fields))
        await self.notify(table)

    async def delete(self, table: str, row_id: str) -> None:
        """Delete a row and its children, then notify."""
        self._check_failure("delete", table)
        self._table(table).pop(row_id, None)

        for (parent, child), foreign_key in FOREIGN_KEYS.items():
            if parent != table:
                continue
            children = self._table(child)
            for child_id in [cid for cid, c in children.items() if c[foreign_key] == row_id]:
                del children[child_id]
            await self.notify(child)

        await self.notify(table)
