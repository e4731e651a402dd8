"""Group order data models.

These models represent group orders, participants' individual orders and the
price table used to compute line totals. Rows exchanged with the remote store
use the column names of the ``orders`` and ``individual_orders`` tables.
"""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_BEVERAGES = [
    "Matcha lemonade",
    "Yuzu lemonade",
    "Lemon lime & bitters",
]

COMBO_SIZE = 3

INDIVIDUAL_ORDER_COLUMNS = (
    "name",
    "three_roll_combo",
    "single_roll",
    "beverage",
    "miso_soup",
    "total",
    "packaged",
    "paid",
)


def parse_amount(value: Any) -> float:
    """Parse a monetary amount returned by the remote store.

    Amounts may arrive as numbers, decimals or text. Null and unparsable
    values are treated as zero.

    Args:
        value: Raw column value

    Returns:
        float: Parsed amount
    """
    if value is None:
        return 0.0

    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0

    if math.isnan(amount):
        return 0.0
    return amount


class OrderStatus(str, Enum):
    """Enumeration of group order status values."""

    ACTIVE = "active"
    COMPLETED = "completed"


class PriceTable(BaseModel):
    """Prices applied when a line item is submitted.

    Prices include 8.875% sales tax.
    """

    combo_price: float = Field(default=13.07, description="Three roll combo price", ge=0)
    single_roll_price: float = Field(default=5.44, description="Single roll price", ge=0)
    beverage_price: float = Field(default=3.27, description="Beverage price", ge=0)
    miso_soup_price: float = Field(default=2.18, description="Miso soup price", ge=0)


class NewIndividualOrder(BaseModel):
    """A participant's line item before the remote store assigns its id."""

    name: str = Field(..., description="Participant name")
    three_roll_combo: list[str] | None = Field(None, description="Exactly three roll names")
    single_roll: str | None = Field(None, description="Single roll name")
    beverage: str | None = Field(None, description="Beverage name")
    miso_soup: bool = Field(default=False, description="Whether miso soup was ordered")
    total: float = Field(default=0.0, description="Line total frozen at submission", ge=0)
    packaged: bool = Field(default=False, description="Whether the food has been bagged")
    paid: bool = Field(default=False, description="Whether payment was received")

    def to_row(self, order_id: str) -> dict[str, Any]:
        """Convert to an ``individual_orders`` insert row.

        Args:
            order_id: Owning group order

        Returns:
            dict: Row for the remote store
        """
        row: dict[str, Any] = {"order_id": order_id}
        row.update(self.model_dump(include=set(INDIVIDUAL_ORDER_COLUMNS)))
        return row


class IndividualOrder(NewIndividualOrder):
    """A participant's line item within a group order."""

    id: str = Field(..., description="Unique identifier for the line item")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "IndividualOrder":
        """Create IndividualOrder from an ``individual_orders`` row.

        Args:
            row: Remote store row

        Returns:
            IndividualOrder: Parsed model instance
        """
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            three_roll_combo=row.get("three_roll_combo"),
            single_roll=row.get("single_roll"),
            beverage=row.get("beverage"),
            miso_soup=bool(row.get("miso_soup")),
            total=max(parse_amount(row.get("total")), 0.0),
            packaged=bool(row.get("packaged")),
            paid=bool(row.get("paid")),
        )


class IndividualOrderUpdate(BaseModel):
    """Partial update for a line item.

    Only fields explicitly set are sent to the remote store, so a field set
    to a falsy value (``False``, ``0``) is still written. ``None`` clears the
    optional item columns and is rejected for every other column.
    """

    name: str | None = Field(None, min_length=1)
    three_roll_combo: list[str] | None = None
    single_roll: str | None = None
    beverage: str | None = None
    miso_soup: bool | None = None
    total: float | None = Field(None, ge=0)
    packaged: bool | None = None
    paid: bool | None = None

    @field_validator("name", "miso_soup", "total", "packaged", "paid")
    @classmethod
    def reject_null(cls, v: Any, info: ValidationInfo) -> Any:
        """Reject an explicit null on a non-nullable column."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("three_roll_combo")
    @classmethod
    def validate_three_roll_combo(cls, v: list[str] | None) -> list[str] | None:
        """Validate that a combo names exactly three rolls."""
        if v is not None and len([roll for roll in v if roll.strip()]) != COMBO_SIZE:
            raise ValueError(f"three_roll_combo must contain exactly {COMBO_SIZE} rolls")
        return v

    def to_fields(self) -> dict[str, Any]:
        """Return the explicitly set fields keyed by column name."""
        return self.model_dump(exclude_unset=True)


class Order(BaseModel):
    """A group ordering session owned by one organizer.

    Line items are kept in arrival order. Stored in the remote store's
    ``orders`` table with line items in ``individual_orders``.
    """

    id: str = Field(..., description="Unique identifier for the order")
    date: str = Field(..., description="Calendar day of creation (YYYY-MM-DD)")
    venmo_id: str | None = Field(None, description="Organizer payment handle")
    status: OrderStatus = Field(default=OrderStatus.ACTIVE, description="Order status")
    tip: float = Field(default=0.0, description="Tip shared by all participants", ge=0)
    individual_orders: list[IndividualOrder] = Field(
        default_factory=list, description="Line items in arrival order"
    )

    def find_individual_order(self, individual_order_id: str) -> IndividualOrder | None:
        """Find a line item by id.

        Args:
            individual_order_id: Line item identifier

        Returns:
            IndividualOrder if present, None otherwise
        """
        for individual_order in self.individual_orders:
            if individual_order.id == individual_order_id:
                return individual_order
        return None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Order":
        """Create Order from an ``orders`` row.

        Embedded ``individual_orders`` rows are sorted by ``created_at`` so
        line items keep their arrival order.

        Args:
            row: Remote store row, optionally with embedded line items

        Returns:
            Order: Parsed model instance
        """
        line_rows = sorted(
            row.get("individual_orders") or [],
            key=lambda line_row: str(line_row.get("created_at") or ""),
        )

        return cls(
            id=str(row["id"]),
            date=str(row["date"]),
            venmo_id=row.get("venmo_id"),
            status=OrderStatus(row.get("status") or OrderStatus.ACTIVE.value),
            tip=max(parse_amount(row.get("tip")), 0.0),
            individual_orders=[IndividualOrder.from_row(line_row) for line_row in line_rows],
        )
