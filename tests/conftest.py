"""Shared pytest fixtures and configuration for all tests."""

import os

import pytest

# Keep src/main.py from building the real application on import
os.environ.setdefault("ENVIRONMENT", "test")

from group_order_service.models.order_models import PriceTable  # noqa: E402


@pytest.fixture
def mock_order_id() -> str:
    """Fixture providing a standard test order ID."""
    return "order_123456"


@pytest.fixture
def price_table() -> PriceTable:
    """Fixture providing the default price table."""
    return PriceTable()


@pytest.fixture
def mock_menu_rows() -> list[dict]:
    """Fixture providing menu_items rows as returned by the remote store."""
    return [
        {"id": "menu_1", "name": "California", "description": "Crab and avocado", "image": None},
        {"id": "menu_2", "name": "Salmon", "description": None, "image": "https://example.com/s.jpg"},
    ]


@pytest.fixture
def mock_order_rows() -> list[dict]:
    """Fixture providing orders rows with embedded individual_orders."""
    return [
        {
            "id": "order_2",
            "date": "2025-10-07",
            "venmo_id": "bob",
            "status": "completed",
            "tip": "3.00",
            "created_at": "2025-10-07T18:00:00+00:00",
            "individual_orders": [],
        },
        {
            "id": "order_1",
            "date": "2025-10-06",
            "venmo_id": "alice",
            "status": "active",
            "tip": None,
            "created_at": "2025-10-06T18:00:00+00:00",
            "individual_orders": [
                {
                    "id": "io_2",
                    "order_id": "order_1",
                    "name": "Dana",
                    "three_roll_combo": None,
                    "single_roll": None,
                    "beverage": "Yuzu lemonade",
                    "miso_soup": True,
                    "total": "5.45",
                    "packaged": False,
                    "paid": True,
                    "created_at": "2025-10-06T18:05:00+00:00",
                },
                {
                    "id": "io_1",
                    "order_id": "order_1",
                    "name": "Carol",
                    "three_roll_combo": ["Salmon", "Tuna", "California"],
                    "single_roll": "Salmon",
                    "beverage": None,
                    "miso_soup": False,
                    "total": "18.51",
                    "packaged": True,
                    "paid": False,
                    "created_at": "2025-10-06T18:01:00+00:00",
                },
            ],
        },
    ]
