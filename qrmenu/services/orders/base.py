"""
Order Repository Abstract Base Classes

Defines the interface contract for order storage and shop lookup. The
relational store lives behind these interfaces; the diner client talks to
the same interfaces over HTTP.

Implementations:
    - Memory: development mode and tests
    - Database: SQLAlchemy async, staging/production
    - Http: diner-side client of the order API

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod

from qrmenu.models import OrderStatus
from qrmenu.schemas import GuestOrderCreate, OrderFilter, OrderResponse, ShopResponse


class BaseOrderRepository(ABC):
    """
    Abstract order storage.

    Example:
        >>> repository = get_order_repository()
        >>> order = await repository.create_order(payload)
        >>> orders = await repository.find_orders(
        ...     OrderFilter(shop_id=order.shop_id, session_id=order.session_id)
        ... )
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the storage provider.

        Returns:
            str: Provider name (e.g., "memory", "database", "http")
        """
        pass

    @abstractmethod
    async def create_order(self, data: GuestOrderCreate) -> OrderResponse:
        """
        Persist a new order with status pending.

        Item prices and the total are stored as submitted.
        """
        pass

    @abstractmethod
    async def find_orders(self, criteria: OrderFilter) -> list[OrderResponse]:
        """List orders matching every set field, newest first."""
        pass

    @abstractmethod
    async def get_order(self, order_id: str) -> OrderResponse:
        """
        Fetch one order.

        Raises:
            OrderNotFound: If no order has this id
        """
        pass

    @abstractmethod
    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        """
        Overwrite an order's status. Legality is checked by the caller.

        Raises:
            OrderNotFound: If no order has this id
        """
        pass

    async def health_check(self) -> bool:
        """Verify the storage is reachable."""
        return True


class BaseShopDirectory(ABC):
    """Abstract read-only shop lookup."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get_shop(self, shop_id: str) -> ShopResponse:
        """
        Fetch a shop by id.

        Raises:
            ShopNotFound: If no shop has this id
        """
        pass
