"""Handler for table change notifications sent by the hosted store.

The hosted store delivers database webhooks shaped like::

    {"type": "UPDATE", "table": "individual_orders", "schema": "public",
     "record": {...}, "old_record": {...}}

Only the table name matters: the state store re-fetches the affected
collection rather than applying the record.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from group_order_service.observability.metrics import record_change_notification
from group_order_service.repositories.remote_store import WATCHED_TABLES, RemoteStore

logger = logging.getLogger(__name__)


class TableChangedEvent(BaseModel):
    """Model for a table change webhook.

    Attributes:
        type: INSERT, UPDATE or DELETE
        table: Table that changed
        db_schema: Database schema of the table
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str
    table: str
    db_schema: str = Field(default="public", alias="schema")


def parse_change_event(payload: dict[str, Any]) -> TableChangedEvent | None:
    """Parse a webhook payload into a TableChangedEvent.

    Args:
        payload: Raw webhook body

    Returns:
        TableChangedEvent if parsing succeeds, None otherwise
    """
    try:
        return TableChangedEvent(**payload)
    except (ValidationError, TypeError) as e:
        logger.error(f"Failed to parse change notification: {e}")
        return None


class ChangeEventHandler:
    """Feeds change notifications into the remote store's change feed."""

    def __init__(self, remote_store: RemoteStore) -> None:
        """Initialize the change handler.

        Args:
            remote_store: Remote store whose subscribers are notified
        """
        self.remote_store = remote_store

    async def handle_change(self, event: TableChangedEvent) -> bool:
        """Notify subscribers of a changed table.

        Args:
            event: The parsed change notification

        Returns:
            True if the table is watched and subscribers were notified
        """
        if event.table not in WATCHED_TABLES:
            logger.warning(f"Ignoring change notification for unwatched table {event.table}")
            return False

        logger.info(f"Processing {event.type} change on {event.table}")
        record_change_notification(event.table)
        await self.remote_store.notify(event.table)
        return True

    async def handle_webhook(self, payload: Any) -> dict[str, Any]:
        """Entry point for the table change webhook.

        Args:
            payload: Webhook body

        Returns:
            Dictionary with statusCode and body
        """
        event = parse_change_event(payload) if isinstance(payload, dict) else None
        if not event:
            logger.error("Received invalid change notification format")
            return {
                "statusCode": 400,
                "body": "Invalid change notification format",
            }

        if await self.handle_change(event):
            return {
                "statusCode": 200,
                "body": f"Processed change on {event.table}",
            }
        return {
            "statusCode": 202,
            "body": f"Ignored change on {event.table}",
        }
