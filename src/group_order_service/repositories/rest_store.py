"""Remote store backed by a PostgREST-style REST API (e.g. Supabase)."""

import logging
from typing import Any

import httpx

from group_order_service.repositories.remote_store import RemoteStore, RemoteStoreError

logger = logging.getLogger(__name__)


class RestRemoteStore(RemoteStore):
    """HTTP client for the hosted relational data store.

    Table operations map onto the PostgREST dialect: filters as ``id=eq.<id>``,
    joins via ``select=*,child(*)`` and ``Prefer: return=representation`` to
    get inserted rows back. Change notifications are delivered separately by
    database webhooks and fed into ``notify``.
    """

    def __init__(self, base_url: str, api_key: str) -> None:
        """Initialize the REST remote store.

        Args:
            base_url: Project URL (e.g., "https://project.supabase.co")
            api_key: API key sent as both ``apikey`` and bearer token
        """
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }
        headers.update(extra)
        return headers

    async def select(
        self,
        table: str,
        order_by: str | None = None,
        descending: bool = False,
        embed: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every row of a table, optionally ordered and joined.

        Args:
            table: Table name
            order_by: Column to order by
            descending: Whether to order descending
            embed: Child table to join onto each row

        Returns:
            list: Rows as dictionaries

        Raises:
            RemoteStoreError: If the request fails
        """
        params = {"select": f"*,{embed}(*)" if embed else "*"}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self._table_url(table), params=params, headers=self._headers()
                )
                response.raise_for_status()
                data: list[dict[str, Any]] = response.json() or []
                return data

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to select from {table}: {e}")
            raise RemoteStoreError(f"Failed to select from {table}", table=table) from e

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return the stored representation.

        Raises:
            RemoteStoreError: If the request fails or returns no row
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._table_url(table),
                    json=row,
                    headers=self._headers(Prefer="return=representation"),
                )
                response.raise_for_status()
                data = response.json()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to insert into {table}: {e}")
            raise RemoteStoreError(f"Failed to insert into {table}", table=table) from e

        # PostgREST returns the inserted rows as a list
        if isinstance(data, list):
            if not data:
                raise RemoteStoreError(f"Insert into {table} returned no row", table=table)
            inserted: dict[str, Any] = data[0]
            return inserted
        return dict(data)

    async def update(self, table: str, row_id: str, fields: dict[str, Any]) -> None:
        """Update the given columns of a row.

        Raises:
            RemoteStoreError: If the request fails
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.patch(
                    self._table_url(table),
                    params={"id": f"eq.{row_id}"},
                    json=fields,
                    headers=self._headers(),
                )
                response.raise_for_status()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to update {table} row {row_id}: {e}")
            raise RemoteStoreError(f"Failed to update {table} row {row_id}", table=table) from e

    async def delete(self, table: str, row_id: str) -> None:
        """Delete a row.

        Raises:
            RemoteStoreError: If the request fails
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.delete(
                    self._table_url(table),
                    params={"id": f"eq.{row_id}"},
                    headers=self._headers(),
                )
                response.raise_for_status()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to delete {table} row {row_id}: {e}")
            raise RemoteStoreError(f"Failed to delete {table} row {row_id}", table=table) from e
