"""
Database Order Repository

SQLAlchemy async implementation over PostgreSQL.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - DATABASE_URL must be set in environment

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qrmenu.core.exceptions import OrderNotFound, ShopNotFound
from qrmenu.database import get_session_maker
from qrmenu.models import Order, OrderItem, OrderStatus, Shop
from qrmenu.schemas import GuestOrderCreate, OrderFilter, OrderResponse, ShopResponse
from qrmenu.services.orders.base import BaseOrderRepository, BaseShopDirectory
from qrmenu.services.orders.status import INITIAL_STATUS

logger = logging.getLogger(__name__)


class DatabaseOrderRepository(BaseOrderRepository):
    """
    Production order storage.

    Each call opens its own session; status updates are plain overwrites
    (last write wins).
    """

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker or get_session_maker()
        logger.info("DatabaseOrderRepository initialized")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "database"

    async def create_order(self, data: GuestOrderCreate) -> OrderResponse:
        async with self._session_maker() as session:
            order = Order(
                shop_id=data.shop_id,
                session_id=data.session_id,
                customer_name=data.customer_name,
                customer_contact=data.customer_contact,
                total_amount=data.total_amount,
                status=INITIAL_STATUS,
                items=[
                    OrderItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                    )
                    for item in data.items
                ],
            )
            session.add(order)
            await session.commit()
            await session.refresh(order, attribute_names=["items", "created_at", "updated_at"])

            logger.info(f"Database: Order {order.id} created for shop {order.shop_id}")
            return OrderResponse.model_validate(order)

    async def find_orders(self, criteria: OrderFilter) -> list[OrderResponse]:
        query = select(Order).order_by(Order.created_at.desc())

        if criteria.shop_id is not None:
            query = query.where(Order.shop_id == criteria.shop_id)
        if criteria.session_id is not None:
            query = query.where(Order.session_id == criteria.session_id)
        if criteria.owner_user_id is not None:
            query = query.where(Order.owner_user_id == criteria.owner_user_id)
        if criteria.status is not None:
            query = query.where(Order.status == criteria.status)

        async with self._session_maker() as session:
            result = await session.execute(query)
            return [OrderResponse.model_validate(o) for o in result.scalars().all()]

    async def get_order(self, order_id: str) -> OrderResponse:
        async with self._session_maker() as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return OrderResponse.model_validate(order)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        async with self._session_maker() as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)

            order.status = OrderStatus(status)
            await session.commit()
            await session.refresh(order, attribute_names=["items", "updated_at"])
            return OrderResponse.model_validate(order)

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(select(func.now()))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class DatabaseShopDirectory(BaseShopDirectory):
    """Shop lookup over the shops table."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker or get_session_maker()

    @property
    def provider_name(self) -> str:
        return "database"

    async def get_shop(self, shop_id: str) -> ShopResponse:
        async with self._session_maker() as session:
            shop = await session.get(Shop, shop_id)
            if shop is None:
                raise ShopNotFound(shop_id)
            return ShopResponse.model_validate(shop)
