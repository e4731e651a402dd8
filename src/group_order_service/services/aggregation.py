"""Monetary aggregation and item tallies over a group order snapshot.

All functions are pure and operate only on the values handed to them.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

from group_order_service.models.order_models import IndividualOrder, Order, PriceTable


class Selection(Protocol):
    """Anything carrying a participant's item selections."""

    three_roll_combo: list[str] | None
    single_roll: str | None
    beverage: str | None
    miso_soup: bool


@dataclass
class ItemCount:
    """How many times an item name appears in an order."""

    name: str
    count: int


@dataclass
class ItemFrequency:
    """Item tallies for an order, each sorted by descending frequency.

    Attributes:
        rolls: Roll names from three roll combos and single rolls
        beverages: Beverage names
        miso_soup_count: Number of line items with miso soup
    """

    rolls: list[ItemCount] = field(default_factory=list)
    beverages: list[ItemCount] = field(default_factory=list)
    miso_soup_count: int = 0


@dataclass
class LineAmount:
    """What one participant owes and whether it was paid."""

    individual_order_id: str
    name: str
    total: float
    amount_due: float
    paid: bool


@dataclass
class OrderSummary:
    """Derived totals and counts for one group order.

    Attributes:
        order_id: The summarized order
        participant_count: Number of line items
        grand_total: Sum of line totals
        tip: Order tip
        grand_total_with_tip: Sum of line totals plus tip
        tip_per_person: Tip split evenly across line items
        collected: Amount received from paid line items, tip share included
        outstanding: Amount still owed
        packaged_count: Line items already bagged
        paid_count: Line items already paid
        packaged_progress: "count/total" for packaging
        paid_progress: "count/total" for payment
        item_frequency: Item tallies
        line_amounts: Amount due per line item in arrival order
    """

    order_id: str
    participant_count: int
    grand_total: float
    tip: float
    grand_total_with_tip: float
    tip_per_person: float
    collected: float
    outstanding: float
    packaged_count: int
    paid_count: int
    packaged_progress: str
    paid_progress: str
    item_frequency: ItemFrequency
    line_amounts: list[LineAmount]


def line_total(selection: Selection, prices: PriceTable) -> float:
    """Price a participant's selections.

    Computed once at submission and stored as the line item's ``total``.

    Args:
        selection: Participant selections
        prices: Price table in effect at submission

    Returns:
        float: Line total rounded to cents
    """
    total = 0.0
    if selection.three_roll_combo:
        total += prices.combo_price
    if selection.single_roll:
        total += prices.single_roll_price
    if selection.beverage:
        total += prices.beverage_price
    if selection.miso_soup:
        total += prices.miso_soup_price
    return round(total, 2)


def grand_total(order: Order) -> float:
    """Sum of all line totals."""
    return sum((io.total for io in order.individual_orders), 0.0)


def grand_total_with_tip(order: Order) -> float:
    """Sum of all line totals plus the tip."""
    return grand_total(order) + order.tip


def tip_per_person(order: Order) -> float:
    """Tip split evenly across line items; 0 when there are none."""
    if not order.individual_orders:
        return 0.0
    return order.tip / len(order.individual_orders)


def amount_due(order: Order, individual_order: IndividualOrder) -> float:
    """What one participant owes, tip share included."""
    return individual_order.total + tip_per_person(order)


def collected_amount(order: Order) -> float:
    """Amount received from paid line items, tip share included."""
    share = tip_per_person(order)
    return sum((io.total + share for io in order.individual_orders if io.paid), 0.0)


def outstanding_amount(order: Order) -> float:
    """Grand total with tip minus what was collected."""
    return grand_total_with_tip(order) - collected_amount(order)


def packaged_count(order: Order) -> int:
    return sum(1 for io in order.individual_orders if io.packaged)


def paid_count(order: Order) -> int:
    return sum(1 for io in order.individual_orders if io.paid)


def progress(count: int, total: int) -> str:
    """Render a count against the participant total, e.g. "2/5"."""
    return f"{count}/{total}"


def item_frequency(order: Order) -> ItemFrequency:
    """Tally rolls, beverages and miso soups across an order's line items.

    Rolls from three roll combos and single rolls are counted together.
    Equal counts keep the order in which the names first appear.
    """
    rolls: Counter[str] = Counter()
    beverages: Counter[str] = Counter()
    miso_soups = 0

    for io in order.individual_orders:
        if io.three_roll_combo:
            rolls.update(roll for roll in io.three_roll_combo if roll)
        if io.single_roll:
            rolls[io.single_roll] += 1
        if io.beverage:
            beverages[io.beverage] += 1
        if io.miso_soup:
            miso_soups += 1

    return ItemFrequency(
        rolls=[ItemCount(name=name, count=count) for name, count in rolls.most_common()],
        beverages=[ItemCount(name=name, count=count) for name, count in beverages.most_common()],
        miso_soup_count=miso_soups,
    )


def summarize_order(order: Order) -> OrderSummary:
    """Derive every total and count shown for an order.

    Args:
        order: Order snapshot

    Returns:
        OrderSummary: Derived view of the order
    """
    participants = len(order.individual_orders)
    packaged = packaged_count(order)
    paid = paid_count(order)

    return OrderSummary(
        order_id=order.id,
        participant_count=participants,
        grand_total=grand_total(order),
        tip=order.tip,
        grand_total_with_tip=grand_total_with_tip(order),
        tip_per_person=tip_per_person(order),
        collected=collected_amount(order),
        outstanding=outstanding_amount(order),
        packaged_count=packaged,
        paid_count=paid,
        packaged_progress=progress(packaged, participants),
        paid_progress=progress(paid, participants),
        item_frequency=item_frequency(order),
        line_amounts=[
            LineAmount(
                individual_order_id=io.id,
                name=io.name,
                total=io.total,
                amount_due=amount_due(order, io),
                paid=io.paid,
            )
            for io in order.individual_orders
        ],
    )
