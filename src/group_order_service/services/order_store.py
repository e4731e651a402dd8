"""State store keeping orders and menu items in sync with the remote store."""

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from group_order_service.models.menu_models import MenuItem, MenuItemUpdate, NewMenuItem
from group_order_service.models.order_models import (
    IndividualOrder,
    IndividualOrderUpdate,
    NewIndividualOrder,
    Order,
    OrderStatus,
)
from group_order_service.observability import traced
from group_order_service.observability.metrics import record_cache_refresh, record_remote_failure
from group_order_service.repositories.remote_store import (
    INDIVIDUAL_ORDERS_TABLE,
    MENU_ITEMS_TABLE,
    ORDERS_TABLE,
    WATCHED_TABLES,
    RemoteStore,
    RemoteStoreError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse_rows(
    table: str, rows: list[dict[str, Any]], parse: Callable[[dict[str, Any]], T]
) -> list[T]:
    """Parse fetched rows, reporting a malformed row as a failed read.

    Raises:
        RemoteStoreError: If any row cannot be parsed
    """
    try:
        return [parse(row) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise RemoteStoreError(f"Malformed {table} row: {e}", table=table) from e



class OrderStore:
    """Process-wide cache of group orders and menu items.

    The cache is loaded once at startup and then kept aligned with the remote
    store in two ways:

    - Every mutation calls the remote store first. If that call fails the
      RemoteStoreError propagates and the cache is left untouched; otherwise
      the same change is applied to the cache right away.
    - Change notifications from the remote store trigger a re-fetch that
      replaces the affected collection wholesale.

    Local patches are idempotent by id, so a re-fetch landing before or after
    a patch converges on the same state.

    Attributes:
        orders: Cached orders, newest first as fetched
        menu_items: Cached menu items ordered by name
        loading: True until the initial load completes
    """

    def __init__(self, remote_store: RemoteStore) -> None:
        """Initialize an empty store.

        Args:
            remote_store: Remote store to read from and write to
        """
        self.remote_store = remote_store
        self.orders: list[Order] = []
        self.menu_items: list[MenuItem] = []
        self.loading = True
        self._unsubscribers: list[Callable[[], None]] = []

    async def start(self) -> None:
        """Subscribe to change notifications and perform the initial load."""
        for table in WATCHED_TABLES:
            self._unsubscribers.append(self.remote_store.subscribe(table, self.handle_change))
        await self.load()

    async def stop(self) -> None:
        """Remove all change subscriptions."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    @traced("order_store.load")
    async def load(self) -> None:
        """Fetch menu items and orders and populate the cache.

        A failed read is logged and leaves both collections empty; it is not
        retried automatically.
        """
        self.loading = True
        try:
            menu_items = await self._fetch_menu_items()
            orders = await self._fetch_orders()
        except RemoteStoreError as e:
            logger.error(f"Error fetching data: {e}")
            menu_items, orders = [], []

        self.menu_items = menu_items
        self.orders = orders
        self.loading = False
        logger.info(f"Loaded {len(orders)} orders and {len(menu_items)} menu items")

    async def handle_change(self, table: str) -> None:
        """Re-fetch the collection backing a table that reported a change.

        Args:
            table: Table named by the change notification
        """
        if table == MENU_ITEMS_TABLE:
            await self.refetch_menu_items()
        elif table in (ORDERS_TABLE, INDIVIDUAL_ORDERS_TABLE):
            await self.refetch_orders()
        else:
            logger.warning(f"Ignoring change notification for unknown table {table}")

    async def refetch_menu_items(self) -> None:
        """Replace the cached menu items with a fresh fetch, keeping them on failure."""
        try:
            self.menu_items = await self._fetch_menu_items()
        except RemoteStoreError as e:
            logger.error(f"Failed to refetch menu items: {e}")

    async def refetch_orders(self) -> None:
        """Replace the cached orders with a fresh fetch, keeping them on failure."""
        try:
            self.orders = await self._fetch_orders()
        except RemoteStoreError as e:
            logger.error(f"Failed to refetch orders: {e}")

    async def _fetch_menu_items(self) -> list[MenuItem]:
        started = time.perf_counter()
        rows = await self.remote_store.select(MENU_ITEMS_TABLE, order_by="name")
        record_cache_refresh(MENU_ITEMS_TABLE, time.perf_counter() - started)
        return _parse_rows(MENU_ITEMS_TABLE, rows, MenuItem.from_row)

    async def _fetch_orders(self) -> list[Order]:
        started = time.perf_counter()
        rows = await self.remote_store.select(
            ORDERS_TABLE,
            order_by="created_at",
            descending=True,
            embed=INDIVIDUAL_ORDERS_TABLE,
        )
        record_cache_refresh(ORDERS_TABLE, time.perf_counter() - started)
        return _parse_rows(ORDERS_TABLE, rows, Order.from_row)


    async def _call_remote(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except RemoteStoreError as e:
            logger.error(f"Remote call failed during {operation}: {e}")
            record_remote_failure(operation)
            raise

    def _patch_order(self, order_id: str, patch: Callable[[Order], Order]) -> None:
        self.orders = [patch(order) if order.id == order_id else order for order in self.orders]

    # Orders

    def get_order(self, order_id: str) -> Order | None:
        """Look up an order in the cache; never fetches.

        While ``loading`` is True a None result means "not yet known".

        Args:
            order_id: Order identifier

        Returns:
            Order if cached, None otherwise
        """
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def active_orders(self) -> list[Order]:
        """Return cached orders that are still active."""
        return [order for order in self.orders if order.status == OrderStatus.ACTIVE]

    def completed_orders(self) -> list[Order]:
        """Return cached orders that were completed."""
        return [order for order in self.orders if order.status == OrderStatus.COMPLETED]

    @traced("order_store.create_order")
    async def create_order(self, venmo_id: str) -> Order:
        """Open a new group order dated today.

        Args:
            venmo_id: Organizer payment handle

        Returns:
            Order: The created order with no line items

        Raises:
            RemoteStoreError: If the insert fails
        """
        row = {
            "date": datetime.now(UTC).date().isoformat(),
            "venmo_id": venmo_id,
            "status": OrderStatus.ACTIVE.value,
            "tip": 0,
        }
        inserted = await self._call_remote(
            "create_order", self.remote_store.insert(ORDERS_TABLE, row)
        )

        order = Order.from_row(inserted)
        cached = self.get_order(order.id)
        if cached is not None:
            return cached

        self.orders = [*self.orders, order]
        logger.info(f"Created order {order.id} for {venmo_id}")
        return order

    @traced("order_store.add_individual_order")
    async def add_individual_order(
        self, order_id: str, individual_order: NewIndividualOrder
    ) -> IndividualOrder:
        """Add a participant's line item to an order.

        Args:
            order_id: Owning order
            individual_order: Line item without an id

        Returns:
            IndividualOrder: The line item as stored, with its generated id

        Raises:
            RemoteStoreError: If the insert fails
        """
        inserted = await self._call_remote(
            "add_individual_order",
            self.remote_store.insert(INDIVIDUAL_ORDERS_TABLE, individual_order.to_row(order_id)),
        )
        created = IndividualOrder.from_row(inserted)

        def append(order: Order) -> Order:
            if order.find_individual_order(created.id) is not None:
                return order
            return order.model_copy(
                update={"individual_orders": [*order.individual_orders, created]}
            )

        self._patch_order(order_id, append)
        logger.info(f"Added individual order {created.id} to order {order_id}")
        return created

    @traced("order_store.update_individual_order")
    async def update_individual_order(
        self,
        order_id: str,
        individual_order_id: str,
        updates: IndividualOrderUpdate,
    ) -> None:
        """Apply a partial update to a line item.

        Only the fields explicitly set on ``updates`` are written, remotely
        and locally.

        Raises:
            RemoteStoreError: If the update fails
        """
        fields = updates.to_fields()
        if not fields:
            logger.debug(f"No fields to update on individual order {individual_order_id}")
            return

        await self._call_remote(
            "update_individual_order",
            self.remote_store.update(INDIVIDUAL_ORDERS_TABLE, individual_order_id, fields),
        )

        def merge(order: Order) -> Order:
            return order.model_copy(
                update={
                    "individual_orders": [
                        io.model_copy(update=fields) if io.id == individual_order_id else io
                        for io in order.individual_orders
                    ]
                }
            )

        self._patch_order(order_id, merge)

    async def toggle_packaged(self, order_id: str, individual_order_id: str) -> bool | None:
        """Flip a line item's packaged flag.

        Returns:
            The new flag value, or None if the line item is not cached

        Raises:
            RemoteStoreError: If the update fails
        """
        individual_order = self._find_individual_order(order_id, individual_order_id)
        if individual_order is None:
            return None

        packaged = not individual_order.packaged
        await self.update_individual_order(
            order_id, individual_order_id, IndividualOrderUpdate(packaged=packaged)
        )
        return packaged

    async def toggle_paid(self, order_id: str, individual_order_id: str) -> bool | None:
        """Flip a line item's paid flag.

        Returns:
            The new flag value, or None if the line item is not cached

        Raises:
            RemoteStoreError: If the update fails
        """
        individual_order = self._find_individual_order(order_id, individual_order_id)
        if individual_order is None:
            return None

        paid = not individual_order.paid
        await self.update_individual_order(
            order_id, individual_order_id, IndividualOrderUpdate(paid=paid)
        )
        return paid

    def _find_individual_order(
        self, order_id: str, individual_order_id: str
    ) -> IndividualOrder | None:
        order = self.get_order(order_id)
        if order is None:
            return None
        return order.find_individual_order(individual_order_id)

    @traced("order_store.delete_individual_order")
    async def delete_individual_order(self, order_id: str, individual_order_id: str) -> None:
        """Remove a line item, leaving its siblings and order intact.

        Raises:
            RemoteStoreError: If the delete fails
        """
        await self._call_remote(
            "delete_individual_order",
            self.remote_store.delete(INDIVIDUAL_ORDERS_TABLE, individual_order_id),
        )

        self._patch_order(
            order_id,
            lambda order: order.model_copy(
                update={
                    "individual_orders": [
                        io for io in order.individual_orders if io.id != individual_order_id
                    ]
                }
            ),
        )
        logger.info(f"Deleted individual order {individual_order_id} from order {order_id}")

    @traced("order_store.update_tip")
    async def update_tip(self, order_id: str, tip: float) -> None:
        """Set the tip shared by an order's participants.

        Raises:
            ValueError: If tip is negative
            RemoteStoreError: If the update fails
        """
        if tip < 0:
            raise ValueError("tip must be non-negative")

        await self._call_remote(
            "update_tip", self.remote_store.update(ORDERS_TABLE, order_id, {"tip": tip})
        )
        self._patch_order(order_id, lambda order: order.model_copy(update={"tip": tip}))

    @traced("order_store.complete_order")
    async def complete_order(self, order_id: str) -> None:
        """Mark an order completed. There is no transition back to active.

        Raises:
            RemoteStoreError: If the update fails
        """
        await self._call_remote(
            "complete_order",
            self.remote_store.update(
                ORDERS_TABLE, order_id, {"status": OrderStatus.COMPLETED.value}
            ),
        )
        self._patch_order(
            order_id, lambda order: order.model_copy(update={"status": OrderStatus.COMPLETED})
        )
        logger.info(f"Completed order {order_id}")

    @traced("order_store.delete_order")
    async def delete_order(self, order_id: str) -> None:
        """Delete an order and, through the remote cascade, its line items.

        Raises:
            RemoteStoreError: If the delete fails
        """
        await self._call_remote("delete_order", self.remote_store.delete(ORDERS_TABLE, order_id))
        self.orders = [order for order in self.orders if order.id != order_id]
        logger.info(f"Deleted order {order_id}")

    # Menu items

    def _set_menu_items(self, menu_items: list[MenuItem]) -> None:
        self.menu_items = sorted(menu_items, key=lambda item: item.name)

    @traced("order_store.add_menu_item")
    async def add_menu_item(self, item: NewMenuItem) -> MenuItem:
        """Add a roll option to the menu.

        Raises:
            RemoteStoreError: If the insert fails
        """
        inserted = await self._call_remote(
            "add_menu_item", self.remote_store.insert(MENU_ITEMS_TABLE, item.to_row())
        )
        created = MenuItem.from_row(inserted)

        if all(existing.id != created.id for existing in self.menu_items):
            self._set_menu_items([*self.menu_items, created])
        return created

    @traced("order_store.update_menu_item")
    async def update_menu_item(self, item_id: str, updates: MenuItemUpdate) -> None:
        """Apply a partial update to a menu item.

        Raises:
            RemoteStoreError: If the update fails
        """
        fields = updates.to_fields()
        if not fields:
            return

        await self._call_remote(
            "update_menu_item", self.remote_store.update(MENU_ITEMS_TABLE, item_id, fields)
        )
        self._set_menu_items(
            [
                item.model_copy(update=fields) if item.id == item_id else item
                for item in self.menu_items
            ]
        )

    @traced("order_store.delete_menu_item")
    async def delete_menu_item(self, item_id: str) -> None:
        """Remove a menu item. Past line items naming it are unaffected.

        Raises:
            RemoteStoreError: If the delete fails
        """
        await self._call_remote(
            "delete_menu_item", self.remote_store.delete(MENU_ITEMS_TABLE, item_id)
        )
        self.menu_items = [item for item in self.menu_items if item.id != item_id]
