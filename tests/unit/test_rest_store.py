"""Unit tests for RestRemoteStore."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from group_order_service.repositories.remote_store import RemoteStoreError
from group_order_service.repositories.rest_store import RestRemoteStore


def _response(json_data: object = None, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    return response


def _error_response(status_code: int = 500) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "Server error", request=MagicMock(), response=response
    )
    return response


@pytest.mark.unit
class TestRestRemoteStore:
    """Test suite for RestRemoteStore."""

    @pytest.fixture
    def store(self) -> RestRemoteStore:
        """Create a RestRemoteStore with test configuration."""
        return RestRemoteStore(base_url="https://project.test.co/", api_key="test-api-key")

    def test_initialization_strips_trailing_slash(self, store: RestRemoteStore) -> None:
        """Test that the base URL is normalized."""
        assert store.base_url == "https://project.test.co"
        assert store.api_key == "test-api-key"

    @pytest.mark.asyncio
    async def test_select_with_order_and_embed(self, store: RestRemoteStore) -> None:
        """Test selecting orders joined with their line items."""
        mock_get = AsyncMock(return_value=_response([{"id": "order_1", "individual_orders": []}]))

        with patch("httpx.AsyncClient.get", mock_get):
            rows = await store.select(
                "orders", order_by="created_at", descending=True, embed="individual_orders"
            )

        assert rows == [{"id": "order_1", "individual_orders": []}]
        mock_get.assert_called_once()
        assert mock_get.call_args.args[0] == "https://project.test.co/rest/v1/orders"
        assert mock_get.call_args.kwargs["params"] == {
            "select": "*,individual_orders(*)",
            "order": "created_at.desc",
        }

    @pytest.mark.asyncio
    async def test_select_includes_auth_headers(self, store: RestRemoteStore) -> None:
        """Test that the API key is sent as apikey and bearer token."""
        mock_get = AsyncMock(return_value=_response([]))

        with patch("httpx.AsyncClient.get", mock_get):
            await store.select("menu_items", order_by="name")

        headers = mock_get.call_args.kwargs["headers"]
        assert headers["apikey"] == "test-api-key"
        assert headers["Authorization"] == "Bearer test-api-key"
        assert mock_get.call_args.kwargs["params"] == {"select": "*", "order": "name.asc"}

    @pytest.mark.asyncio
    async def test_select_api_error_raises(self, store: RestRemoteStore) -> None:
        """Test that HTTP errors raise RemoteStoreError."""
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_error_response()):
            with pytest.raises(RemoteStoreError) as exc_info:
                await store.select("menu_items")

        assert exc_info.value.table == "menu_items"

    @pytest.mark.asyncio
    async def test_select_network_error_raises(self, store: RestRemoteStore) -> None:
        """Test that network errors raise RemoteStoreError."""
        with patch(
            "httpx.AsyncClient.get",
            new_callable=AsyncMock,
            side_effect=httpx.RequestError("Connection failed", request=MagicMock()),
        ):
            with pytest.raises(RemoteStoreError):
                await store.select("orders")

    @pytest.mark.asyncio
    async def test_insert_returns_first_row(self, store: RestRemoteStore) -> None:
        """Test that insert returns the stored representation."""
        mock_post = AsyncMock(return_value=_response([{"id": "order_1", "tip": "0"}]))

        with patch("httpx.AsyncClient.post", mock_post):
            row = await store.insert("orders", {"venmo_id": "alice"})

        assert row == {"id": "order_1", "tip": "0"}
        assert mock_post.call_args.kwargs["json"] == {"venmo_id": "alice"}
        assert mock_post.call_args.kwargs["headers"]["Prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_insert_empty_response_raises(self, store: RestRemoteStore) -> None:
        """Test that an insert returning no row is a failure."""
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=_response([])):
            with pytest.raises(RemoteStoreError):
                await store.insert("orders", {"venmo_id": "alice"})

    @pytest.mark.asyncio
    async def test_insert_api_error_raises(self, store: RestRemoteStore) -> None:
        """Test that a rejected insert raises RemoteStoreError."""
        with patch(
            "httpx.AsyncClient.post", new_callable=AsyncMock, return_value=_error_response(409)
        ):
            with pytest.raises(RemoteStoreError):
                await store.insert("individual_orders", {"order_id": "missing"})

    @pytest.mark.asyncio
    async def test_update_filters_by_id(self, store: RestRemoteStore) -> None:
        """Test that update sends only the given fields for one row."""
        mock_patch = AsyncMock(return_value=_response())

        with patch("httpx.AsyncClient.patch", mock_patch):
            await store.update("individual_orders", "io_1", {"paid": False})

        assert mock_patch.call_args.kwargs["params"] == {"id": "eq.io_1"}
        assert mock_patch.call_args.kwargs["json"] == {"paid": False}

    @pytest.mark.asyncio
    async def test_update_error_raises(self, store: RestRemoteStore) -> None:
        """Test that a failed update raises RemoteStoreError."""
        with patch(
            "httpx.AsyncClient.patch",
            new_callable=AsyncMock,
            side_effect=httpx.RequestError("timeout", request=MagicMock()),
        ):
            with pytest.raises(RemoteStoreError):
                await store.update("orders", "order_1", {"tip": 2})

    @pytest.mark.asyncio
    async def test_delete_filters_by_id(self, store: RestRemoteStore) -> None:
        """Test that delete targets one row."""
        mock_delete = AsyncMock(return_value=_response())

        with patch("httpx.AsyncClient.delete", mock_delete):
            await store.delete("orders", "order_1")

        assert mock_delete.call_args.args[0] == "https://project.test.co/rest/v1/orders"
        assert mock_delete.call_args.kwargs["params"] == {"id": "eq.order_1"}

    @pytest.mark.asyncio
    async def test_delete_error_raises(self, store: RestRemoteStore) -> None:
        """Test that a failed delete raises RemoteStoreError."""
        with patch(
            "httpx.AsyncClient.delete", new_callable=AsyncMock, return_value=_error_response()
        ):
            with pytest.raises(RemoteStoreError):
                await store.delete("menu_items", "menu_1")

    @pytest.mark.asyncio
    async def test_notify_calls_subscribers(self, store: RestRemoteStore) -> None:
        """Test that notifications reach the table's subscribers only."""
        orders_callback = AsyncMock()
        menu_callback = AsyncMock()
        store.subscribe("orders", orders_callback)
        store.subscribe("menu_items", menu_callback)

        await store.notify("orders")

        orders_callback.assert_awaited_once_with("orders")
        menu_callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, store: RestRemoteStore) -> None:
        """Test that an unsubscribed callback is no longer notified."""
        callback = AsyncMock()
        unsubscribe = store.subscribe("orders", callback)

        unsubscribe()
        unsubscribe()
        await store.notify("orders")

        callback.assert_not_called()
