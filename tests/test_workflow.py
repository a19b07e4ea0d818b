import asyncio
from datetime import timedelta
from typing import Optional

import httpx
import pytest

from qrmenu.core.clock import ManualClock
from qrmenu.core.exceptions import (
    EmptyCart,
    InvalidOrder,
    LocationFailure,
    LocationUnavailable,
    SubmissionFailed,
    TooFar,
)
from qrmenu.main import app
from qrmenu.models import OrderStatus
from qrmenu.schemas import GuestOrderCreate, OrderFilter, OrderResponse
from qrmenu.services.geo import Coordinate, GeofenceValidator, MockLocationProvider
from qrmenu.services.orders import (
    GuestOrderService,
    MemoryOrderRepository,
    MemoryShopDirectory,
    get_order_service,
)
from qrmenu.services.orders.http import HttpOrderRepository, HttpShopDirectory
from qrmenu.services.session import MemoryKeyValueStore, SessionStore
from qrmenu.services.workflow import OrderingWorkflow, WorkflowStage


class FailingOrderRepository(MemoryOrderRepository):
    """Order creation fails the way a dropped connection does."""

    async def create_order(self, data: GuestOrderCreate) -> OrderResponse:
        raise ConnectionError("connection reset by peer")


class FlakyOrderRepository(MemoryOrderRepository):
    """Order lookups fail while `down` is set."""

    down = False

    async def find_orders(self, criteria: OrderFilter) -> list[OrderResponse]:
        if self.down:
            raise ConnectionError("timed out")
        return await super().find_orders(criteria)


class StallingKeyValueStore(MemoryKeyValueStore):
    """Reads time out once on a held file lock, then recover."""

    stall_next_read = False

    def get(self, key: str) -> Optional[str]:
        if self.stall_next_read:
            self.stall_next_read = False
            raise TimeoutError("session file lock held by another process")
        return super().get(key)


class SteppedSleep:
    """Sleep that only returns when the test advances time past it."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.pending: list[tuple[float, asyncio.Future]] = []

    async def __call__(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self.pending.append((seconds, future))
        await future

    def tick(self, seconds: float) -> None:
        self.clock.advance(timedelta(seconds=seconds))
        for entry in list(self.pending):
            waited, future = entry
            if waited <= seconds:
                self.pending.remove(entry)
                if not future.done():
                    future.set_result(None)


async def settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def make_workflow(
    shops,
    orders,
    sessions: SessionStore,
    clock: ManualClock,
    position: Optional[Coordinate],
    **kwargs,
) -> tuple[OrderingWorkflow, MockLocationProvider]:
    location = MockLocationProvider(position)
    workflow = OrderingWorkflow(
        "shop-1",
        shops=shops,
        orders=orders,
        location=location,
        sessions=sessions,
        clock=clock,
        browse_geofence=GeofenceValidator(10_000, name="browse"),
        **kwargs,
    )
    return workflow, location


# =============================================================================
# ADMISSION
# =============================================================================

@pytest.mark.asyncio
async def test_first_visit_asks_for_identity(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        assert await workflow.open() == WorkflowStage.IDENTITY_REQUIRED
        assert workflow.error is None
        assert workflow.browse_check.distance_meters < 20
        assert not workflow.background_tasks_running

    assert workflow.stage == WorkflowStage.CLOSED


@pytest.mark.asyncio
async def test_unknown_shop(repository, sessions, clock, at_table) -> None:
    workflow, location = make_workflow(MemoryShopDirectory(), repository, sessions, clock, at_table)

    async with workflow:
        assert await workflow.open() == WorkflowStage.SHOP_NOT_FOUND
        assert workflow.error.code == "shop_not_found"
        assert location.calls == 0


@pytest.mark.asyncio
async def test_inactive_shop_stops_before_location(shops, repository, sessions, clock, at_table) -> None:
    shops.set_active("shop-1", False)
    workflow, location = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        assert await workflow.open() == WorkflowStage.SHOP_INACTIVE
        assert "inactive" in workflow.error.message
        assert location.calls == 0


@pytest.mark.asyncio
async def test_denied_location_then_retry(shops, repository, sessions, clock, at_table) -> None:
    workflow, location = make_workflow(shops, repository, sessions, clock, at_table)
    location.deny()

    async with workflow:
        assert await workflow.open() == WorkflowStage.LOCATION_REQUIRED
        assert workflow.error.reason == LocationFailure.PERMISSION_DENIED
        assert "enable location" in workflow.error.message

        # Retrying without granting permission stays blocked
        assert await workflow.retry_location() == WorkflowStage.LOCATION_REQUIRED

        location.move_to(at_table)
        assert await workflow.retry_location() == WorkflowStage.IDENTITY_REQUIRED
        assert workflow.error is None


@pytest.mark.asyncio
async def test_no_geolocation_support(shops, repository, sessions, clock) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, None)

    async with workflow:
        assert await workflow.open() == WorkflowStage.LOCATION_REQUIRED
        assert workflow.error.reason == LocationFailure.UNAVAILABLE


@pytest.mark.asyncio
async def test_wrong_city_is_too_far(shops, repository, sessions, clock, other_city, across_town) -> None:
    workflow, location = make_workflow(shops, repository, sessions, clock, other_city)

    async with workflow:
        assert await workflow.open() == WorkflowStage.TOO_FAR
        assert isinstance(workflow.error, TooFar)
        assert workflow.error.distance_meters > 800_000
        assert "km away" in workflow.error.message

        location.move_to(across_town)
        assert await workflow.retry_location() == WorkflowStage.IDENTITY_REQUIRED


@pytest.mark.asyncio
async def test_returning_diner_goes_straight_to_ordering(shops, repository, sessions, clock, at_table) -> None:
    existing = sessions.create("shop-1", "Asha")
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        assert await workflow.open() == WorkflowStage.ORDERING
        assert workflow.session == existing
        assert workflow.background_tasks_running

    assert not workflow.background_tasks_running


@pytest.mark.asyncio
async def test_identity_requires_admission(shops, repository, sessions, clock, other_city) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, other_city)

    async with workflow:
        await workflow.open()
        with pytest.raises(RuntimeError):
            await workflow.start_session("Asha")

    assert sessions.load("shop-1") is None


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

@pytest.mark.asyncio
async def test_start_and_edit_identity(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        first = await workflow.start_session("Asha", "555-0100")
        assert workflow.stage == WorkflowStage.ORDERING
        assert workflow.remaining_label() == "120m 00s"

        workflow.add_item("prod-idli", 60.0, 2)
        clock.advance(timedelta(minutes=45))

        edited = await workflow.edit_identity("Asha K")
        assert edited.session_id != first.session_id
        assert edited.created_at_ms == clock.now_ms()
        assert workflow.remaining_label() == "120m 00s"
        assert workflow.cart.item_count == 2
        assert sessions.load("shop-1") == edited


@pytest.mark.asyncio
async def test_reset_session(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)

        workflow.reset_session()

        assert workflow.stage == WorkflowStage.IDENTITY_REQUIRED
        assert workflow.session is None
        assert workflow.cart.is_empty
        assert not workflow.background_tasks_running
        assert sessions.load("shop-1") is None


@pytest.mark.asyncio
async def test_countdown(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        assert workflow.remaining_label() is None

        await workflow.open()
        await workflow.start_session("Asha")

        clock.advance(timedelta(hours=1, minutes=59, seconds=55))
        assert workflow.remaining_label() == "0m 05s"

        clock.advance(timedelta(seconds=5))
        assert workflow.remaining_label() == "Expired"


@pytest.mark.asyncio
async def test_expiry_check_tears_down_visit(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)

        clock.advance(timedelta(hours=2) - timedelta(milliseconds=1))
        assert workflow.check_expiry()
        assert workflow.stage == WorkflowStage.ORDERING

        clock.advance(timedelta(milliseconds=2))
        assert not workflow.check_expiry()

        assert workflow.stage == WorkflowStage.IDENTITY_REQUIRED
        assert workflow.session is None
        assert workflow.cart.is_empty
        assert not workflow.background_tasks_running


@pytest.mark.asyncio
async def test_background_expiry_loop(shops, repository, sessions, clock, at_table) -> None:
    sleeps: list[float] = []

    async def fast_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.advance(timedelta(seconds=seconds))
        await asyncio.sleep(0)

    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table, sleep=fast_sleep)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)
        assert workflow.background_tasks_running

        for _ in range(10_000):
            if not workflow.background_tasks_running:
                break
            await asyncio.sleep(0)

        assert workflow.stage == WorkflowStage.IDENTITY_REQUIRED
        assert workflow.cart.is_empty
        assert sessions.load("shop-1") is None
        assert 60 in sleeps
        assert 15 in sleeps


@pytest.mark.asyncio
async def test_session_replaced_by_another_client(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")

        replacement = sessions.create("shop-1", "Ravi")

        assert workflow.check_expiry()
        assert workflow.session == replacement


# =============================================================================
# ORDERING
# =============================================================================

@pytest.mark.asyncio
async def test_submit_places_order_and_clears_cart(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        session = await workflow.start_session("Table 4", "555-0100")
        workflow.add_item("prod-masala-dosa", 120.0, 2)
        workflow.add_item("prod-paneer-tikka", 210.0)
        assert workflow.cart_total == 450.0

        order = await workflow.submit()

        assert order.session_id == session.session_id
        assert order.customer_name == "Table 4"
        assert order.customer_contact == "555-0100"
        assert order.total_amount == 450.0
        assert workflow.cart.is_empty
        assert [o.id for o in workflow.orders] == [order.id]


@pytest.mark.asyncio
async def test_empty_cart(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")

        with pytest.raises(EmptyCart):
            await workflow.submit()


@pytest.mark.asyncio
async def test_submit_after_expiry_prompts_identity(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)
        clock.advance(timedelta(hours=3))

        assert await workflow.submit() is None

        assert workflow.stage == WorkflowStage.IDENTITY_REQUIRED
        assert await repository.find_orders(OrderFilter()) == []


@pytest.mark.asyncio
async def test_submit_without_location_fails_closed(shops, repository, sessions, clock, at_table) -> None:
    workflow, location = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)
        location.deny()

        with pytest.raises(LocationUnavailable):
            await workflow.submit()

        assert workflow.cart.item_count == 1
        assert not workflow.submitting
        assert await repository.find_orders(OrderFilter()) == []


@pytest.mark.asyncio
async def test_submission_failure_keeps_cart(shops, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, FailingOrderRepository(clock), sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0, 3)

        with pytest.raises(SubmissionFailed) as exc_info:
            await workflow.submit()

        assert exc_info.value.retryable
        assert workflow.cart.item_count == 3
        assert not workflow.submitting


@pytest.mark.asyncio
async def test_refresh_failure_keeps_last_orders(shops, sessions, clock, at_table) -> None:
    repository = FlakyOrderRepository(clock)
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)
        order = await workflow.submit()

        repository.down = True
        await repository.update_order_status(order.id, OrderStatus.PREPARING)

        orders = await workflow.refresh_orders()

        assert [o.status for o in orders] == [OrderStatus.PENDING]
        assert isinstance(workflow.last_refresh_error, ConnectionError)

        repository.down = False
        orders = await workflow.refresh_orders()
        assert [o.status for o in orders] == [OrderStatus.PREPARING]
        assert workflow.last_refresh_error is None


# =============================================================================
# END TO END OVER HTTP
# =============================================================================

@pytest.mark.asyncio
async def test_guest_and_staff_over_http(
    service: GuestOrderService, sessions, clock, at_table, across_town
) -> None:
    app.dependency_overrides[get_order_service] = lambda: service
    transport = httpx.ASGITransport(app=app)

    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            shops = HttpShopDirectory(client=client)
            orders = HttpOrderRepository(client=client)
            workflow, location = make_workflow(shops, orders, sessions, clock, at_table)

            async with workflow:
                assert await workflow.open() == WorkflowStage.IDENTITY_REQUIRED
                session = await workflow.start_session("Table 4", "555-0100")

                workflow.add_item("prod-masala-dosa", 120.0, 2)
                workflow.add_item("prod-paneer-tikka", 210.0)
                order = await workflow.submit()

                assert order.status == OrderStatus.PENDING
                assert order.total_amount == 450.0
                assert order.session_id == session.session_id

                # Staff work the order from their own view
                staff = HttpOrderRepository(client=client)
                queue = await staff.find_orders(OrderFilter(shop_id="shop-1", status=OrderStatus.PENDING))
                assert [o.id for o in queue] == [order.id]
                await staff.update_order_status(order.id, OrderStatus.PREPARING)
                await staff.update_order_status(order.id, OrderStatus.READY)

                seen = await workflow.refresh_orders()
                assert [(o.id, o.status) for o in seen] == [(order.id, OrderStatus.READY)]

                # Walking away: the menu stays open but the kitchen refuses the order
                location.move_to(across_town)
                workflow.add_item("prod-filter-coffee", 40.0)
                with pytest.raises(TooFar) as exc_info:
                    await workflow.submit()

                assert exc_info.value.radius_meters == 200
                assert workflow.cart.item_count == 1
                assert len(await service.find_shop_orders("shop-1")) == 1
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# FAILURES AND BACKGROUND WORK
# =============================================================================

@pytest.mark.asyncio
async def test_shop_lookup_network_failure(repository, sessions, clock, at_table) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(refuse)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        workflow, location = make_workflow(
            HttpShopDirectory(client=client), repository, sessions, clock, at_table
        )

        async with workflow:
            assert await workflow.open() == WorkflowStage.SHOP_NOT_FOUND
            assert workflow.error.message == "Failed to load shop information."
            assert location.calls == 0


@pytest.mark.asyncio
async def test_large_quantity_is_ordered(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Party of twelve")
        workflow.add_item("prod-idli", 60.0, 100)

        order = await workflow.submit()

        assert order.items[0].quantity == 100
        assert order.total_amount == 6000.0


@pytest.mark.asyncio
async def test_identity_too_long_for_an_order(shops, repository, sessions, clock, at_table) -> None:
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table)

    async with workflow:
        await workflow.open()
        await workflow.start_session("A" * 150)
        workflow.add_item("prod-idli", 60.0)

        with pytest.raises(InvalidOrder):
            await workflow.submit()

        assert workflow.cart.item_count == 1
        assert not workflow.submitting
        assert await repository.find_orders(OrderFilter()) == []


@pytest.mark.asyncio
async def test_poll_picks_up_staff_transition(shops, repository, sessions, clock, at_table) -> None:
    sleep = SteppedSleep(clock)
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table, sleep=sleep)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Table 4")
        await settle()

        workflow.add_item("prod-masala-dosa", 120.0, 2)
        order = await workflow.submit()

        # Staff work the order between two polls
        await repository.update_order_status(order.id, OrderStatus.PREPARING)
        await repository.update_order_status(order.id, OrderStatus.READY)
        assert [o.status for o in workflow.orders] == [OrderStatus.PENDING]

        sleep.tick(15)
        await settle()

        assert [(o.id, o.status) for o in workflow.orders] == [(order.id, OrderStatus.READY)]
        assert 15 in [waited for waited, _ in sleep.pending]


@pytest.mark.asyncio
async def test_expiry_check_survives_store_failure(shops, repository, clock, at_table) -> None:
    kv = StallingKeyValueStore()
    sessions = SessionStore(kv, clock=clock)
    sleep = SteppedSleep(clock)
    workflow, _ = make_workflow(shops, repository, sessions, clock, at_table, sleep=sleep)

    async with workflow:
        await workflow.open()
        await workflow.start_session("Asha")
        workflow.add_item("prod-idli", 60.0)
        await settle()

        kv.stall_next_read = True
        sleep.tick(60)
        await settle()

        assert workflow.stage == WorkflowStage.ORDERING
        assert 60 in [waited for waited, _ in sleep.pending]

        sleep.tick(3 * 60 * 60)
        await settle()

        assert workflow.stage == WorkflowStage.IDENTITY_REQUIRED
        assert workflow.cart.is_empty
        assert not workflow.background_tasks_running


def test_explicit_intervals_are_kept(shops, repository, sessions, clock) -> None:
    workflow, _ = make_workflow(
        shops, repository, sessions, clock, None, poll_interval=0, expiry_check_interval=0.5
    )
    assert workflow.poll_interval == 0
    assert workflow.expiry_check_interval == 0.5

    defaults, _ = make_workflow(shops, repository, sessions, clock, None)
    assert defaults.poll_interval == 15
    assert defaults.expiry_check_interval == 60
