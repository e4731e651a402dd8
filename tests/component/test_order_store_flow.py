"""Component tests wiring the state store, aggregation and API to an in-memory remote store."""

import pytest
from fastapi.testclient import TestClient

from group_order_service.handlers.api_handler import create_app
from group_order_service.handlers.change_handler import ChangeEventHandler
from group_order_service.models.menu_models import NewMenuItem
from group_order_service.models.order_models import (
    DEFAULT_BEVERAGES,
    NewIndividualOrder,
    OrderStatus,
    PriceTable,
)
from group_order_service.repositories.memory_store import InMemoryRemoteStore
from group_order_service.repositories.remote_store import RemoteStoreError
from group_order_service.services.aggregation import summarize_order
from group_order_service.services.order_store import OrderStore
from group_order_service.services.submission import (
    IndividualOrderSubmission,
    build_individual_order,
)


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    """Empty in-memory remote store."""
    return InMemoryRemoteStore()


@pytest.mark.component
class TestOrderLifecycle:
    """End-to-end order flows against the in-memory remote store."""

    @pytest.mark.asyncio
    async def test_single_participant(
        self, remote: InMemoryRemoteStore, price_table: PriceTable
    ) -> None:
        """Test one participant ordering a single roll."""
        store = OrderStore(remote_store=remote)
        await store.start()

        order = await store.create_order("alice")
        submission = IndividualOrderSubmission(name="Bob", single_roll="Salmon")
        await store.add_individual_order(order.id, build_individual_order(submission, price_table))

        summary = summarize_order(store.get_order(order.id))
        assert summary.participant_count == 1
        assert summary.grand_total == 5.44
        assert summary.tip_per_person == 0.0
        assert summary.outstanding == 5.44
        assert summary.paid_progress == "0/1"

    @pytest.mark.asyncio
    async def test_tip_split_and_payment(self, remote: InMemoryRemoteStore) -> None:
        """Test a tip split across two participants after one pays."""
        store = OrderStore(remote_store=remote)
        await store.start()

        order = await store.create_order("alice")
        first = await store.add_individual_order(
            order.id, NewIndividualOrder(name="Bob", three_roll_combo=["A", "B", "C"], total=10.0)
        )
        await store.add_individual_order(
            order.id, NewIndividualOrder(name="Cleo", single_roll="D", total=15.0)
        )
        await store.update_tip(order.id, 3.0)
        await store.toggle_paid(order.id, first.id)

        summary = summarize_order(store.get_order(order.id))
        assert summary.grand_total_with_tip == 28.0
        assert summary.tip_per_person == 1.5
        assert summary.collected == 11.5
        assert summary.outstanding == 16.5
        assert summary.paid_progress == "1/2"
        assert [line.amount_due for line in summary.line_amounts] == [11.5, 16.5]

    @pytest.mark.asyncio
    async def test_line_items_keep_arrival_order(self, remote: InMemoryRemoteStore) -> None:
        """Test that line items stay in submission order after re-fetches."""
        store = OrderStore(remote_store=remote)
        await store.start()
        order = await store.create_order("alice")

        for name in ["Bob", "Cleo", "Dev"]:
            await store.add_individual_order(order.id, NewIndividualOrder(name=name, miso_soup=True))
        await store.refetch_orders()

        names = [io.name for io in store.get_order(order.id).individual_orders]
        assert names == ["Bob", "Cleo", "Dev"]

    @pytest.mark.asyncio
    async def test_delete_order_cascades(self, remote: InMemoryRemoteStore) -> None:
        """Test that deleting an order removes its line items everywhere."""
        store = OrderStore(remote_store=remote)
        await store.start()
        order = await store.create_order("alice")
        await store.add_individual_order(order.id, NewIndividualOrder(name="Bob", miso_soup=True))

        await store.delete_order(order.id)

        assert store.get_order(order.id) is None
        assert await remote.select("individual_orders") == []

    @pytest.mark.asyncio
    async def test_complete_order_moves_to_history(self, remote: InMemoryRemoteStore) -> None:
        """Test that a completed order leaves the active list."""
        store = OrderStore(remote_store=remote)
        await store.start()
        order = await store.create_order("alice")

        await store.complete_order(order.id)

        assert store.active_orders() == []
        assert store.completed_orders()[0].status == OrderStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_menu_deletion_keeps_history(
        self, remote: InMemoryRemoteStore, price_table: PriceTable
    ) -> None:
        """Test that removing a roll from the menu leaves past line items unchanged."""
        store = OrderStore(remote_store=remote)
        await store.start()
        salmon = await store.add_menu_item(NewMenuItem(name="Salmon"))
        order = await store.create_order("alice")
        await store.add_individual_order(
            order.id,
            build_individual_order(
                IndividualOrderSubmission(name="Bob", single_roll="Salmon"), price_table
            ),
        )

        await store.delete_menu_item(salmon.id)

        assert store.menu_items == []
        assert store.get_order(order.id).individual_orders[0].single_roll == "Salmon"


@pytest.mark.component
class TestChangeConvergence:
    """Caches converge through change notifications and survive failures."""

    @pytest.mark.asyncio
    async def test_second_store_sees_changes(self, remote: InMemoryRemoteStore) -> None:
        """Test that another store on the same remote re-fetches after each change."""
        organizer = OrderStore(remote_store=remote)
        participant = OrderStore(remote_store=remote)
        await organizer.start()
        await participant.start()

        order = await organizer.create_order("alice")
        created = await participant.add_individual_order(
            order.id, NewIndividualOrder(name="Bob", miso_soup=True, total=2.18)
        )
        await organizer.toggle_packaged(order.id, created.id)

        assert organizer.get_order(order.id) == participant.get_order(order.id)
        assert participant.get_order(order.id).individual_orders[0].packaged is True

    @pytest.mark.asyncio
    async def test_stopped_store_is_not_refreshed(self, remote: InMemoryRemoteStore) -> None:
        """Test that a stopped store no longer follows changes."""
        watcher = OrderStore(remote_store=remote)
        writer = OrderStore(remote_store=remote)
        await watcher.start()
        await writer.start()
        await watcher.stop()

        await writer.create_order("alice")

        assert watcher.orders == []

    @pytest.mark.asyncio
    async def test_webhook_triggers_refetch(self, remote: InMemoryRemoteStore) -> None:
        """Test that a webhook for a changed table refreshes the cache."""
        store = OrderStore(remote_store=remote)
        await store.start()
        # Written behind the store's back, as another client would
        remote.tables["menu_items"]["menu_1"] = {"id": "menu_1", "name": "Tuna"}
        assert store.menu_items == []

        await ChangeEventHandler(remote_store=remote).handle_webhook(
            {"type": "INSERT", "table": "menu_items", "schema": "public"}
        )

        assert [item.name for item in store.menu_items] == ["Tuna"]

    @pytest.mark.asyncio
    async def test_failed_write_leaves_cache(self, remote: InMemoryRemoteStore) -> None:
        """Test that a failed update changes neither the cache nor the remote row."""
        store = OrderStore(remote_store=remote)
        await store.start()
        order = await store.create_order("alice")
        created = await store.add_individual_order(
            order.id, NewIndividualOrder(name="Bob", miso_soup=True)
        )
        remote.fail_on("update", "individual_orders")

        with pytest.raises(RemoteStoreError):
            await store.toggle_paid(order.id, created.id)

        assert store.get_order(order.id).individual_orders[0].paid is False
        rows = await remote.select("individual_orders")
        assert rows[0]["paid"] is False

    @pytest.mark.asyncio
    async def test_failed_initial_load(self, remote: InMemoryRemoteStore) -> None:
        """Test that a failed initial load ends loading with empty collections."""
        await remote.insert("menu_items", {"name": "Tuna"})
        remote.fail_on("select", "orders")
        store = OrderStore(remote_store=remote)

        await store.start()

        assert store.loading is False
        assert store.menu_items == []
        assert store.orders == []

    @pytest.mark.asyncio
    async def test_malformed_menu_row_does_not_break_mutations(
        self, remote: InMemoryRemoteStore
    ) -> None:
        """Test that a menu row without a name fails the load and later re-fetches cleanly."""
        remote.tables["menu_items"]["menu_1"] = {"id": "menu_1", "name": None}
        store = OrderStore(remote_store=remote)

        await store.start()
        assert store.loading is False
        assert store.menu_items == []

        created = await store.add_menu_item(NewMenuItem(name="Dragon"))

        assert [item.id for item in store.menu_items] == [created.id]

    @pytest.mark.asyncio
    async def test_unknown_status_row_does_not_break_mutations(
        self, remote: InMemoryRemoteStore
    ) -> None:
        """Test that an order row with an unknown status is survived by later writes."""
        store = OrderStore(remote_store=remote)
        await store.start()
        order = await store.create_order("alice")
        remote.tables["orders"]["order_x"] = {
            "id": "order_x",
            "date": "2025-10-06",
            "venmo_id": "zed",
            "status": "archived",
            "tip": 0,
        }

        await store.update_tip(order.id, 4.0)
        created = await store.add_individual_order(
            order.id, NewIndividualOrder(name="Bob", miso_soup=True, total=2.18)
        )

        cached = store.get_order(order.id)
        assert cached.tip == 4.0
        assert [io.id for io in cached.individual_orders] == [created.id]
        assert store.get_order("order_x") is None



@pytest.mark.component
class TestApiFlow:
    """Drive the HTTP API against the in-memory remote store."""

    @pytest.fixture
    def client(self, remote: InMemoryRemoteStore) -> TestClient:
        """Application wired to the in-memory remote store."""
        app = create_app(
            order_store=OrderStore(remote_store=remote),
            change_handler=ChangeEventHandler(remote_store=remote),
            price_table=PriceTable(),
            beverages=list(DEFAULT_BEVERAGES),
            public_base_url="http://localhost:5173",
        )
        return TestClient(app)

    def test_organizer_and_participant_flow(self, client: TestClient) -> None:
        """Test opening an order, submitting, paying and completing it."""
        with client:
            assert client.get("/health").json()["loading"] is False

            order = client.post("/orders", json={"venmo_id": "alice"}).json()
            link = client.get(f"/orders/{order['id']}/share-link").json()
            assert link["url"] == f"http://localhost:5173/order/{order['id']}"

            response = client.post(
                f"/orders/{order['id']}/individual-orders",
                json={
                    "name": "Bob",
                    "three_roll_combo": ["Salmon", "Tuna", "Salmon"],
                    "beverage": "Yuzu lemonade",
                },
            )
            assert response.status_code == 201
            line = response.json()
            assert line["total"] == 16.34

            paid = client.post(f"/orders/{order['id']}/individual-orders/{line['id']}/toggle-paid")
            assert paid.json()["paid"] is True

            summary = client.get(f"/orders/{order['id']}/summary").json()
            assert summary["collected"] == 16.34
            assert summary["outstanding"] == 0.0
            assert summary["item_frequency"]["rolls"][0] == {"name": "Salmon", "count": 2}

            assert client.post(f"/orders/{order['id']}/complete").json()["status"] == "completed"
            orders = client.get("/orders").json()
            assert orders["active"] == []
            assert [o["id"] for o in orders["completed"]] == [order["id"]]

    def test_remote_failure_surfaces_as_502(
        self, client: TestClient, remote: InMemoryRemoteStore
    ) -> None:
        """Test that a remote failure produces the generic retry message."""
        with client:
            remote.fail_on("insert", "orders")

            response = client.post("/orders", json={"venmo_id": "alice"})

            assert response.status_code == 502
            assert client.get("/orders").json() == {"active": [], "completed": []}
