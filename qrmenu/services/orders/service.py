"""
Guest Order Service

Server-side rules for guest orders, sitting between the API routes and the
order repository:

    - placing an order requires an active shop and a diner position within
      the order radius (missing position rejects the order)
    - guest queries need both shopId and sessionId
    - staff status changes go through the order status machine

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from qrmenu.core.exceptions import LocationFailure, LocationUnavailable, ShopInactive
from qrmenu.models import OrderStatus
from qrmenu.schemas import GuestOrderCreate, OrderFilter, OrderResponse
from qrmenu.services.geo.geofence import GeofenceValidator
from qrmenu.services.orders.base import BaseOrderRepository, BaseShopDirectory
from qrmenu.services.orders.status import OrderStatusMachine

logger = logging.getLogger(__name__)


class GuestOrderService:
    """
    Example:
        >>> service = GuestOrderService(repository, shops, get_order_geofence())
        >>> order = await service.place_guest_order(payload)
        >>> await service.transition(order.id, OrderStatus.PREPARING)
    """

    def __init__(
        self,
        repository: BaseOrderRepository,
        shops: BaseShopDirectory,
        order_geofence: GeofenceValidator,
        status_machine: Optional[OrderStatusMachine] = None,
    ):
        self.repository = repository
        self.shops = shops
        self.order_geofence = order_geofence
        self.status_machine = status_machine or OrderStatusMachine()

    async def place_guest_order(self, data: GuestOrderCreate) -> OrderResponse:
        """
        Validate and persist a guest order.

        Raises:
            ShopNotFound: Unknown shop
            ShopInactive: Shop has its QR menu switched off
            LocationUnavailable: No diner position in the payload
            TooFar: Diner outside the order radius
        """
        shop = await self.shops.get_shop(data.shop_id)
        if not shop.is_active:
            raise ShopInactive(shop.id)

        diner = data.coordinates
        if diner is None:
            logger.info(f"Rejected order for shop {shop.id}: no diner location")
            raise LocationUnavailable(LocationFailure.MISSING)

        self.order_geofence.validate(diner, shop.coordinates)

        order = await self.repository.create_order(data)
        logger.info(
            f"Order {order.id} placed: shop={order.shop_id} "
            f"session={order.session_id} total={order.total_amount:.2f}"
        )
        return order

    async def find_guest_orders(
        self,
        shop_id: Optional[str],
        session_id: Optional[str],
    ) -> list[OrderResponse]:
        """Orders of one guest session; empty unless both ids are given."""
        if not shop_id or not session_id:
            return []
        return await self.repository.find_orders(
            OrderFilter(shop_id=shop_id, session_id=session_id)
        )

    async def find_shop_orders(
        self,
        shop_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> list[OrderResponse]:
        """Staff view: all orders of a shop, newest first."""
        return await self.repository.find_orders(OrderFilter(shop_id=shop_id, status=status))

    async def get_order(self, order_id: str) -> OrderResponse:
        return await self.repository.get_order(order_id)

    async def allowed_transitions(self, order_id: str) -> tuple[OrderResponse, list[OrderStatus]]:
        order = await self.repository.get_order(order_id)
        return order, self.status_machine.allowed_transitions(order.status)

    async def transition(self, order_id: str, status: OrderStatus) -> OrderResponse:
        """
        Raises:
            OrderNotFound: Unknown order
            InvalidTransition: Move not allowed from the current status
        """
        return await self.status_machine.apply(self.repository, order_id, status)
