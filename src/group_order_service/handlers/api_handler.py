"""FastAPI application for the group order endpoints."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from group_order_service.handlers.change_handler import ChangeEventHandler
from group_order_service.models.menu_models import MenuItem, MenuItemUpdate, NewMenuItem
from group_order_service.models.order_models import (
    IndividualOrder,
    IndividualOrderUpdate,
    Order,
    PriceTable,
)
from group_order_service.repositories.remote_store import RemoteStoreError
from group_order_service.services.aggregation import OrderSummary, summarize_order
from group_order_service.services.order_store import OrderStore
from group_order_service.services.submission import (
    IndividualOrderSubmission,
    build_individual_order,
    validate_submission,
)

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    loading: bool


class PricesResponse(BaseModel):
    """Price table and beverages on offer."""

    prices: PriceTable
    beverages: list[str]


class OrdersResponse(BaseModel):
    """Cached orders split by status."""

    active: list[Order]
    completed: list[Order]


class CreateOrderRequest(BaseModel):
    """Request model for opening a group order."""

    venmo_id: str

    @field_validator("venmo_id")
    @classmethod
    def validate_venmo_id(cls, v: str) -> str:
        """Validate that the organizer handle is not blank."""
        if not v.strip():
            raise ValueError("Please enter your Venmo ID")
        return v.strip()


class TipRequest(BaseModel):
    """Request model for setting an order's tip."""

    tip: float = Field(..., ge=0)


class ShareLinkResponse(BaseModel):
    """Participant link for an order."""

    order_id: str
    url: str


def remote_failure(action: str, e: RemoteStoreError) -> HTTPException:
    """Build the generic response for a failed remote call.

    Args:
        action: What the user tried to do, e.g. "create order"
        e: The remote store failure

    Returns:
        HTTPException with status 502
    """
    logger.error(f"Failed to {action}: {e}")
    return HTTPException(status_code=502, detail=f"Failed to {action}. Please try again.")


def create_app(
    order_store: OrderStore,
    change_handler: ChangeEventHandler,
    price_table: PriceTable,
    beverages: list[str],
    public_base_url: str,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The order store is started (subscriptions and initial load) when the
    application starts and stopped when it shuts down.

    Args:
        order_store: State store shared by all endpoints
        change_handler: Handler for table change webhooks
        price_table: Prices applied to new submissions
        beverages: Beverage names on offer
        public_base_url: Base URL used to build participant links

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await app.state.order_store.start()
        yield
        await app.state.order_store.stop()

    app = FastAPI(
        title="Group Order Service API",
        description="Coordinate group food orders: submissions, packaging and payments",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Store collaborators in app state for access in route handlers
    app.state.order_store = order_store
    app.state.change_handler = change_handler
    app.state.price_table = price_table
    app.state.beverages = beverages
    app.state.public_base_url = public_base_url.rstrip("/")

    def require_order(order_id: str) -> Order:
        """Resolve an order id against the cache.

        Raises:
            HTTPException: 503 while the initial load is running, 404 if absent
        """
        store: OrderStore = app.state.order_store
        order = store.get_order(order_id)
        if order is not None:
            return order
        if store.loading:
            raise HTTPException(status_code=503, detail="Order not yet known")
        raise HTTPException(status_code=404, detail="Order not found")

    def require_individual_order(order_id: str, individual_order_id: str) -> IndividualOrder:
        """Resolve a line item within a cached order.

        Raises:
            HTTPException: 404 if the order or line item is absent
        """
        individual_order = require_order(order_id).find_individual_order(individual_order_id)
        if individual_order is None:
            raise HTTPException(status_code=404, detail="Individual order not found")
        return individual_order

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", loading=app.state.order_store.loading)

    @app.get("/prices", response_model=PricesResponse, tags=["Menu"])
    async def get_prices() -> PricesResponse:
        """Return the price table and beverages used for new submissions."""
        return PricesResponse(prices=app.state.price_table, beverages=app.state.beverages)

    @app.get("/orders", response_model=OrdersResponse, tags=["Orders"])
    async def list_orders() -> OrdersResponse:
        """List cached orders split into active and completed."""
        store: OrderStore = app.state.order_store
        return OrdersResponse(active=store.active_orders(), completed=store.completed_orders())

    @app.post("/orders", response_model=Order, status_code=201, tags=["Orders"])
    async def create_order(request: CreateOrderRequest) -> Order:
        """Open a new group order for an organizer."""
        try:
            order: Order = await app.state.order_store.create_order(request.venmo_id)
        except RemoteStoreError as e:
            raise remote_failure("create order", e) from e
        return order

    @app.get("/orders/{order_id}", response_model=Order, tags=["Orders"])
    async def get_order(order_id: str) -> Order:
        """Resolve an order, e.g. from a participant link."""
        return require_order(order_id)

    @app.get("/orders/{order_id}/summary", response_model=OrderSummary, tags=["Orders"])
    async def get_order_summary(order_id: str) -> OrderSummary:
        """Totals, tip split, payment and packaging progress for an order."""
        return summarize_order(require_order(order_id))

    @app.get("/orders/{order_id}/share-link", response_model=ShareLinkResponse, tags=["Orders"])
    async def get_share_link(order_id: str) -> ShareLinkResponse:
        """Build the link participants use to submit their orders."""
        order = require_order(order_id)
        return ShareLinkResponse(
            order_id=order.id, url=f"{app.state.public_base_url}/order/{order.id}"
        )

    @app.put("/orders/{order_id}/tip", response_model=Order, tags=["Orders"])
    async def update_tip(order_id: str, request: TipRequest) -> Order:
        """Set the tip shared by all participants."""
        require_order(order_id)
        try:
            await app.state.order_store.update_tip(order_id, request.tip)
        except RemoteStoreError as e:
            raise remote_failure("update tip", e) from e
        return require_order(order_id)

    @app.post("/orders/{order_id}/complete", response_model=Order, tags=["Orders"])
    async def complete_order(order_id: str) -> Order:
        """Close an order. Completed orders cannot be reopened."""
        require_order(order_id)
        try:
            await app.state.order_store.complete_order(order_id)
        except RemoteStoreError as e:
            raise remote_failure("complete order", e) from e
        return require_order(order_id)

    @app.delete("/orders/{order_id}", status_code=204, tags=["Orders"])
    async def delete_order(order_id: str) -> None:
        """Delete an order and all of its individual orders."""
        require_order(order_id)
        try:
            await app.state.order_store.delete_order(order_id)
        except RemoteStoreError as e:
            raise remote_failure("delete order", e) from e

    @app.post(
        "/orders/{order_id}/individual-orders",
        response_model=IndividualOrder,
        status_code=201,
        tags=["Individual Orders"],
    )
    async def submit_individual_order(
        order_id: str, submission: IndividualOrderSubmission
    ) -> IndividualOrder:
        """Submit a participant's order through the shared link.

        Raises:
            HTTPException: 422 with field errors when the submission is incomplete
        """
        require_order(order_id)

        errors = validate_submission(submission, app.state.beverages)
        if errors:
            raise HTTPException(status_code=422, detail={"errors": errors})

        individual_order = build_individual_order(submission, app.state.price_table)
        try:
            created: IndividualOrder = await app.state.order_store.add_individual_order(
                order_id, individual_order
            )
        except RemoteStoreError as e:
            raise remote_failure("submit order", e) from e
        return created

    @app.patch(
        "/orders/{order_id}/individual-orders/{individual_order_id}",
        response_model=IndividualOrder,
        tags=["Individual Orders"],
    )
    async def update_individual_order(
        order_id: str, individual_order_id: str, updates: IndividualOrderUpdate
    ) -> IndividualOrder:
        """Apply a partial update; only fields present in the body are written."""
        require_individual_order(order_id, individual_order_id)
        try:
            await app.state.order_store.update_individual_order(
                order_id, individual_order_id, updates
            )
        except RemoteStoreError as e:
            raise remote_failure("update order", e) from e
        return require_individual_order(order_id, individual_order_id)

    @app.post(
        "/orders/{order_id}/individual-orders/{individual_order_id}/toggle-packaged",
        response_model=IndividualOrder,
        tags=["Individual Orders"],
    )
    async def toggle_packaged(order_id: str, individual_order_id: str) -> IndividualOrder:
        """Flip the packaged flag of a line item."""
        require_individual_order(order_id, individual_order_id)
        try:
            await app.state.order_store.toggle_packaged(order_id, individual_order_id)
        except RemoteStoreError as e:
            raise remote_failure("update order", e) from e
        return require_individual_order(order_id, individual_order_id)

    @app.post(
        "/orders/{order_id}/individual-orders/{individual_order_id}/toggle-paid",
        response_model=IndividualOrder,
        tags=["Individual Orders"],
    )
    async def toggle_paid(order_id: str, individual_order_id: str) -> IndividualOrder:
        """Flip the paid flag of a line item."""
        require_individual_order(order_id, individual_order_id)
        try:
            await app.state.order_store.toggle_paid(order_id, individual_order_id)
        except RemoteStoreError as e:
            raise remote_failure("update payment status", e) from e
        return require_individual_order(order_id, individual_order_id)

    @app.delete(
        "/orders/{order_id}/individual-orders/{individual_order_id}",
        status_code=204,
        tags=["Individual Orders"],
    )
    async def delete_individual_order(order_id: str, individual_order_id: str) -> None:
        """Remove one participant's order."""
        require_individual_order(order_id, individual_order_id)
        try:
            await app.state.order_store.delete_individual_order(order_id, individual_order_id)
        except RemoteStoreError as e:
            raise remote_failure("delete order", e) from e

    @app.get("/menu-items", response_model=list[MenuItem], tags=["Menu"])
    async def list_menu_items() -> list[MenuItem]:
        """List roll options ordered by name."""
        menu_items: list[MenuItem] = app.state.order_store.menu_items
        return menu_items

    @app.post("/menu-items", response_model=MenuItem, status_code=201, tags=["Menu"])
    async def add_menu_item(item: NewMenuItem) -> MenuItem:
        """Add a roll option."""
        try:
            created: MenuItem = await app.state.order_store.add_menu_item(item)
        except RemoteStoreError as e:
            raise remote_failure("add menu item", e) from e
        return created

    @app.patch("/menu-items/{item_id}", status_code=204, tags=["Menu"])
    async def update_menu_item(item_id: str, updates: MenuItemUpdate) -> None:
        """Edit a roll option."""
        try:
            await app.state.order_store.update_menu_item(item_id, updates)
        except RemoteStoreError as e:
            raise remote_failure("update menu item", e) from e

    @app.delete("/menu-items/{item_id}", status_code=204, tags=["Menu"])
    async def delete_menu_item(item_id: str) -> None:
        """Delete a roll option. Past orders naming it are unaffected."""
        try:
            await app.state.order_store.delete_menu_item(item_id)
        except RemoteStoreError as e:
            raise remote_failure("delete menu item", e) from e

    @app.post("/webhooks/table-changes", tags=["Webhooks"])
    async def table_changed(request: Request) -> JSONResponse:
        """Receive a change notification from the hosted store."""
        try:
            payload: Any = await request.json()
        except ValueError:
            payload = None

        result = await app.state.change_handler.handle_webhook(payload)
        return JSONResponse(status_code=result["statusCode"], content={"detail": result["body"]})

    return app
