from typing import Callable, Optional

import pytest

from qrmenu.core.clock import ManualClock
from qrmenu.core.config import get_settings
from qrmenu.schemas import GuestOrderCreate, OrderItemCreate, ShopResponse
from qrmenu.services.geo import Coordinate, GeofenceValidator, reset_geofences
from qrmenu.services.orders import (
    GuestOrderService,
    MemoryOrderRepository,
    MemoryShopDirectory,
    reset_order_services,
)
from qrmenu.services.session import MemoryKeyValueStore, SessionStore, reset_session_store

SHOP_ID = "shop-1"


@pytest.fixture(autouse=True)
def clear_cached_services():
    get_settings.cache_clear()
    reset_geofences()
    reset_order_services()
    reset_session_store()
    yield
    get_settings.cache_clear()
    reset_geofences()
    reset_order_services()
    reset_session_store()


# Positions around a shop in Bengaluru
@pytest.fixture
def shop_location() -> Coordinate:
    return Coordinate(12.9716, 77.5946)


@pytest.fixture
def at_table() -> Coordinate:
    # ~11 m north of the shop
    return Coordinate(12.9717, 77.5946)


@pytest.fixture
def across_town() -> Coordinate:
    # ~1.08 km east: fine for browsing, too far to order
    return Coordinate(12.9716, 77.6046)


@pytest.fixture
def other_city() -> Coordinate:
    # Mumbai
    return Coordinate(19.0760, 72.8777)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start_ms=1_700_000_000_000)


@pytest.fixture
def shop(shop_location: Coordinate) -> ShopResponse:
    return ShopResponse(
        id=SHOP_ID,
        name="Dosa Corner",
        latitude=shop_location.latitude,
        longitude=shop_location.longitude,
        is_active=True,
    )


@pytest.fixture
def shops(shop: ShopResponse) -> MemoryShopDirectory:
    return MemoryShopDirectory([shop])


@pytest.fixture
def repository(clock: ManualClock) -> MemoryOrderRepository:
    return MemoryOrderRepository(clock=clock)


@pytest.fixture
def service(repository: MemoryOrderRepository, shops: MemoryShopDirectory) -> GuestOrderService:
    return GuestOrderService(
        repository=repository,
        shops=shops,
        order_geofence=GeofenceValidator(200, name="order"),
    )


@pytest.fixture
def sessions(clock: ManualClock) -> SessionStore:
    return SessionStore(MemoryKeyValueStore(), clock=clock)


@pytest.fixture
def make_order(at_table: Coordinate) -> Callable[..., GuestOrderCreate]:
    """Build a guest order payload: 2 x masala dosa + 1 x paneer tikka = 450.00."""

    def _make(
        shop_id: str = SHOP_ID,
        session_id: Optional[str] = "session-1",
        position: Optional[Coordinate] = at_table,
    ) -> GuestOrderCreate:
        items = [
            OrderItemCreate(product_id="prod-masala-dosa", quantity=2, unit_price=120.0),
            OrderItemCreate(product_id="prod-paneer-tikka", quantity=1, unit_price=210.0),
        ]
        return GuestOrderCreate(
            shop_id=shop_id,
            session_id=session_id,
            customer_name="Table 4",
            customer_contact="555-0100",
            items=items,
            total_amount=450.0,
            latitude=position.latitude if position else None,
            longitude=position.longitude if position else None,
        )

    return _make
