"""Main application entry point for the group order service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os

from fastapi import FastAPI

from group_order_service.handlers.api_handler import create_app
from group_order_service.handlers.change_handler import ChangeEventHandler
from group_order_service.models.order_models import DEFAULT_BEVERAGES, PriceTable
from group_order_service.observability import configure_logging, setup_observability
from group_order_service.repositories.memory_store import InMemoryRemoteStore
from group_order_service.repositories.remote_store import RemoteStore
from group_order_service.repositories.rest_store import RestRemoteStore
from group_order_service.services.order_store import OrderStore

logger = logging.getLogger(__name__)

PRICE_ENV_VARS = {
    "combo_price": "PRICE_THREE_ROLL_COMBO",
    "single_roll_price": "PRICE_SINGLE_ROLL",
    "beverage_price": "PRICE_BEVERAGE",
    "miso_soup_price": "PRICE_MISO_SOUP",
}


def create_remote_store() -> RemoteStore:
    """Create the remote store from environment variables.

    Returns:
        RestRemoteStore when REMOTE_STORE_URL and REMOTE_STORE_API_KEY are set,
        otherwise an InMemoryRemoteStore for local development
    """
    base_url = os.getenv("REMOTE_STORE_URL")
    api_key = os.getenv("REMOTE_STORE_API_KEY")

    if base_url and api_key:
        logger.info(f"Using remote store at {base_url}")
        return RestRemoteStore(base_url=base_url, api_key=api_key)

    logger.warning("REMOTE_STORE_URL or REMOTE_STORE_API_KEY not set - using in-memory store")
    return InMemoryRemoteStore()


def load_price_table() -> PriceTable:
    """Build the price table, letting environment variables override defaults.

    Returns:
        PriceTable with configured prices

    Raises:
        ValueError: If a configured price is not a non-negative number
    """
    overrides: dict[str, float] = {}
    for field_name, env_var in PRICE_ENV_VARS.items():
        raw = os.getenv(env_var)
        if raw is None or not raw.strip():
            continue
        try:
            overrides[field_name] = float(raw)
        except ValueError as e:
            raise ValueError(f"{env_var} must be a number, got {raw!r}") from e
        if overrides[field_name] < 0:
            raise ValueError(f"{env_var} must be non-negative, got {raw!r}")

    return PriceTable(**overrides)


def load_beverages() -> list[str]:
    """Read the comma-separated BEVERAGES list, falling back to the defaults."""
    beverages_str = os.getenv("BEVERAGES", "")
    beverages = [name.strip() for name in beverages_str.split(",") if name.strip()]
    return beverages or list(DEFAULT_BEVERAGES)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the remote store
    3. Creates the order store and change handler
    4. Loads prices and beverages
    5. Creates the FastAPI app
    6. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing group order service...")

    remote_store = create_remote_store()
    order_store = OrderStore(remote_store=remote_store)
    change_handler = ChangeEventHandler(remote_store=remote_store)

    price_table = load_price_table()
    beverages = load_beverages()
    logger.info(f"Prices configured: {price_table.model_dump()}")

    public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:5173")

    app = create_app(
        order_store=order_store,
        change_handler=change_handler,
        price_table=price_table,
        beverages=beverages,
        public_base_url=public_base_url,
    )

    setup_observability(app)

    logger.info("Group order service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
