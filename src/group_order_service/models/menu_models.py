"""Menu data models.

Menu items are the roll options shown to participants. Line items store roll
names as plain strings, so these records can change without touching
historical orders.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class NewMenuItem(BaseModel):
    """Menu item before the remote store assigns its id."""

    name: str = Field(..., description="Roll name", min_length=1)
    description: str | None = Field(None, description="Roll description")
    image: str | None = Field(None, description="URL to roll image")

    def to_row(self) -> dict[str, Any]:
        """Convert to a ``menu_items`` insert row."""
        return self.model_dump()


class MenuItem(NewMenuItem):
    """Menu item model."""

    id: str = Field(..., description="Unique identifier for the menu item")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from a ``menu_items`` row."""
        return cls(
            id=str(row["id"]),
            name=row["name"],
            description=row.get("description") or None,
            image=row.get("image") or None,
        )


class MenuItemUpdate(BaseModel):
    """Partial update for a menu item."""

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    image: str | None = None

    @field_validator("name")
    @classmethod
    def reject_null_name(cls, v: str | None) -> str:
        """Validate that an explicitly set name is not null."""
        if v is None:
            raise ValueError("name cannot be null")
        return v

    def to_fields(self) -> dict[str, Any]:
        """Return the explicitly set fields keyed by column name."""
        return self.model_dump(exclude_unset=True)
