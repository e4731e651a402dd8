"""Participant order submission: validation and line item construction.

Validation runs before any call to the state store; a submission with errors
never reaches the remote store.
"""

from pydantic import BaseModel, Field

from group_order_service.models.order_models import COMBO_SIZE, NewIndividualOrder, PriceTable
from group_order_service.services.aggregation import line_total


class IndividualOrderSubmission(BaseModel):
    """A participant's order as entered through the shared link."""

    name: str = Field(default="", description="Participant name")
    three_roll_combo: list[str] | None = Field(
        None, description="Rolls for the three roll combo, None when not ordered"
    )
    single_roll: str | None = Field(None, description="Single roll, None when not ordered")
    beverage: str | None = Field(None, description="Beverage name")
    miso_soup: bool = Field(default=False, description="Whether miso soup is ordered")


def _selected_rolls(submission: IndividualOrderSubmission) -> list[str]:
    return [roll.strip() for roll in submission.three_roll_combo or [] if roll.strip()]


def validate_submission(
    submission: IndividualOrderSubmission, beverages: list[str]
) -> dict[str, str]:
    """Check a submission before it is priced and stored.

    Args:
        submission: Participant submission
        beverages: Beverage names on offer

    Returns:
        dict: Field name to error message, empty when the submission is valid
    """
    errors: dict[str, str] = {}

    if not submission.name.strip():
        errors["name"] = "Name is required"

    has_combo = submission.three_roll_combo is not None
    if has_combo and len(_selected_rolls(submission)) != COMBO_SIZE:
        errors["three_roll_combo"] = f"Please select exactly {COMBO_SIZE} rolls"

    has_single_roll = submission.single_roll is not None
    if has_single_roll and not submission.single_roll.strip():
        errors["single_roll"] = "Please select a roll"

    if submission.beverage and submission.beverage not in beverages:
        errors["beverage"] = "Please select a valid beverage"

    if not (has_combo or has_single_roll or submission.beverage or submission.miso_soup):
        errors["items"] = "Please select at least one item"

    return errors


def build_individual_order(
    submission: IndividualOrderSubmission, prices: PriceTable
) -> NewIndividualOrder:
    """Turn a valid submission into a line item priced at today's prices.

    Args:
        submission: Validated participant submission
        prices: Price table in effect now

    Returns:
        NewIndividualOrder: Unpaid, unpackaged line item with its frozen total
    """
    has_combo = submission.three_roll_combo is not None
    individual_order = NewIndividualOrder(
        name=submission.name.strip(),
        three_roll_combo=_selected_rolls(submission) if has_combo else None,
        single_roll=submission.single_roll.strip() if submission.single_roll else None,
        beverage=submission.beverage or None,
        miso_soup=submission.miso_soup,
        packaged=False,
        paid=False,
    )
    individual_order.total = line_total(individual_order, prices)
    return individual_order
