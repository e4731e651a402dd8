"""Base class for the hosted data store collaborator.

The remote store offers select/insert/update/delete per table and a change
feed that fires whenever something in a table changed. Notifications carry
no payload guarantees beyond the table name.

Every remote call signals failure by raising RemoteStoreError.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

MENU_ITEMS_TABLE = "menu_items"
ORDERS_TABLE = "orders"
INDIVIDUAL_ORDERS_TABLE = "individual_orders"

WATCHED_TABLES = (MENU_ITEMS_TABLE, ORDERS_TABLE, INDIVIDUAL_ORDERS_TABLE)

ChangeCallback = Callable[[str], Awaitable[None]]


class RemoteStoreError(Exception):
    """Raised when a call to the remote store fails."""

    def __init__(self, message: str, table: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Description of the failure
            table: Table the failed call targeted
        """
        super().__init__(message)
        self.table = table


class RemoteStore(ABC):
    """Abstract base class for remote store implementations.

    Subclasses implement the four table operations. The change feed is shared:
    subscribers register per table and ``notify`` fans a change out to them.
    """

    def __init__(self) -> None:
        """Initialize the subscriber registry."""
        self._subscribers: dict[str, list[ChangeCallback]] = {}

    @abstractmethod
    async def select(
        self,
        table: str,
        order_by: str | None = None,
        descending: bool = False,
        embed: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every row of a table.

        Args:
            table: Table name
            order_by: Column to order by
            descending: Whether to order descending
            embed: Child table whose rows are joined onto each row

        Returns:
            list: Rows as dictionaries

        Raises:
            RemoteStoreError: If the call fails
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored, including generated columns.

        Raises:
            RemoteStoreError: If the call fails
        """
        pass

    @abstractmethod
    async def update(self, table: str, row_id: str, fields: dict[str, Any]) -> None:
        """Update the given columns of a row by id.

        Raises:
            RemoteStoreError: If the call fails
        """
        pass

    @abstractmethod
    async def delete(self, table: str, row_id: str) -> None:
        """Delete a row by id.

        Raises:
            RemoteStoreError: If the call fails
        """
        pass

    def subscribe(self, table: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register a callback fired on any change to a table.

        Args:
            table: Table to watch
            callback: Coroutine function receiving the table name

        Returns:
            Callable that removes the subscription
        """
        self._subscribers.setdefault(table, []).append(callback)
        logger.debug(f"Subscribed to changes on {table}")

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(table, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def notify(self, table: str) -> None:
        """Fan a change notification out to the table's subscribers.

        Args:
            table: Table that changed
        """
        for callback in list(self._subscribers.get(table, [])):
            await callback(table)
