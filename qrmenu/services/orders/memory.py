"""
In-Memory Order Repository

Keeps orders and shops in process memory. Used in development mode
(ENV_MODE=development) and in tests.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
import uuid
from typing import Iterable, Optional

from qrmenu.core.clock import Clock, SystemClock
from qrmenu.core.exceptions import OrderNotFound, ShopNotFound
from qrmenu.models import OrderStatus
from qrmenu.schemas import (
    GuestOrderCreate,
    OrderFilter,
    OrderItemResponse,
    OrderResponse,
    ShopResponse,
)
from qrmenu.services.orders.base import BaseOrderRepository, BaseShopDirectory
from qrmenu.services.orders.status import INITIAL_STATUS

logger = logging.getLogger(__name__)


class MemoryOrderRepository(BaseOrderRepository):
    """
    Order storage backed by a dict.

    Orders are stored as immutable snapshots; a status update stores a new
    copy with only status and updated_at changed.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._orders: dict[str, OrderResponse] = {}
        # Insertion order breaks ties between orders created in the same millisecond
        self._positions: dict[str, int] = {}
        self._sequence = 0

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "memory"

    async def create_order(self, data: GuestOrderCreate) -> OrderResponse:
        self._sequence += 1
        order = OrderResponse(
            id=str(uuid.uuid4()),
            shop_id=data.shop_id,
            session_id=data.session_id,
            customer_name=data.customer_name,
            customer_contact=data.customer_contact,
            items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in data.items
            ],
            total_amount=data.total_amount,
            status=INITIAL_STATUS,
            created_at=self._clock.now(),
        )
        self._orders[order.id] = order
        self._positions[order.id] = self._sequence

        logger.info(f"Memory: Order {order.id} stored for shop {order.shop_id}")
        return order

    async def find_orders(self, criteria: OrderFilter) -> list[OrderResponse]:
        matches = [
            order
            for order in self._orders.values()
            if (criteria.shop_id is None or order.shop_id == criteria.shop_id)
            and (criteria.session_id is None or order.session_id == criteria.session_id)
            and (criteria.owner_user_id is None or order.owner_user_id == criteria.owner_user_id)
            and (criteria.status is None or order.status == criteria.status)
        ]
        return sorted(
            matches,
            key=lambda o: (o.created_at, self._positions[o.id]),
            reverse=True,
        )

    async def get_order(self, order_id: str) -> OrderResponse:
        try:
            return self._orders[order_id]
        except KeyError:
            raise OrderNotFound(order_id) from None

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        order = await self.get_order(order_id)
        updated = order.model_copy(
            update={"status": OrderStatus(status), "updated_at": self._clock.now()}
        )
        self._orders[order_id] = updated
        return updated


class MemoryShopDirectory(BaseShopDirectory):
    """Shop lookup backed by a dict."""

    def __init__(self, shops: Iterable[ShopResponse] = ()):
        self._shops = {shop.id: shop for shop in shops}

    @property
    def provider_name(self) -> str:
        return "memory"

    def add_shop(self, shop: ShopResponse) -> None:
        self._shops[shop.id] = shop

    def set_active(self, shop_id: str, is_active: bool) -> None:
        shop = self._shops.get(shop_id)
        if shop is None:
            raise ShopNotFound(shop_id)
        self._shops[shop_id] = shop.model_copy(update={"is_active": is_active})

    async def get_shop(self, shop_id: str) -> ShopResponse:
        shop = self._shops.get(shop_id)
        if shop is None:
            raise ShopNotFound(shop_id)
        return shop
