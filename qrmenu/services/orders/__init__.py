"""
Order Service Factory

Provides a single entry point for obtaining the order repository, the shop
directory and the guest order service. The factory pattern keeps the API
routes agnostic about which storage is in use.

Environment Switching:
    - ENV_MODE=development → MemoryOrderRepository + demo shop
    - ENV_MODE=staging → DatabaseOrderRepository
    - ENV_MODE=production → DatabaseOrderRepository

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from qrmenu.core.config import get_settings
from qrmenu.schemas import ShopResponse
from qrmenu.services.geo import extract_coordinates_from_maps_url, get_order_geofence
from qrmenu.services.orders.base import BaseOrderRepository, BaseShopDirectory
from qrmenu.services.orders.memory import MemoryOrderRepository, MemoryShopDirectory
from qrmenu.services.orders.service import GuestOrderService
from qrmenu.services.orders.status import OrderStatusMachine, TRANSITIONS

logger = logging.getLogger(__name__)


def build_demo_shop() -> ShopResponse:
    """The development shop, located from DEMO_SHOP_MAPS_URL."""
    settings = get_settings()

    coordinate = extract_coordinates_from_maps_url(settings.demo_shop_maps_url)
    if coordinate is None:
        raise ValueError(
            f"DEMO_SHOP_MAPS_URL has no usable coordinates: {settings.demo_shop_maps_url}"
        )

    return ShopResponse(
        id=settings.demo_shop_id,
        name=settings.demo_shop_name,
        latitude=coordinate.latitude,
        longitude=coordinate.longitude,
        is_active=settings.demo_shop_active,
    )


@lru_cache()
def get_order_repository() -> BaseOrderRepository:
    """
    Get the configured order repository instance.

    Returns:
        BaseOrderRepository: Memory in development, database otherwise
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Order Repository: Using MemoryOrderRepository (development mode)")
        return MemoryOrderRepository()

    from qrmenu.services.orders.database import DatabaseOrderRepository

    logger.info(
        f"Order Repository: Using DatabaseOrderRepository "
        f"({settings.env_mode.value} mode)"
    )
    return DatabaseOrderRepository()


@lru_cache()
def get_shop_directory() -> BaseShopDirectory:
    """Get the configured shop directory instance."""
    settings = get_settings()

    if settings.is_development:
        demo_shop = build_demo_shop()
        logger.info(
            f"Shop Directory: Using MemoryShopDirectory with demo shop "
            f"{demo_shop.id} at ({demo_shop.latitude}, {demo_shop.longitude})"
        )
        return MemoryShopDirectory([demo_shop])

    from qrmenu.services.orders.database import DatabaseShopDirectory

    logger.info(f"Shop Directory: Using DatabaseShopDirectory ({settings.env_mode.value} mode)")
    return DatabaseShopDirectory()


def get_order_service() -> GuestOrderService:
    """FastAPI dependency returning the guest order service."""
    return GuestOrderService(
        repository=get_order_repository(),
        shops=get_shop_directory(),
        order_geofence=get_order_geofence(),
    )


def reset_order_services() -> None:
    """
    Clear the cached repository and shop directory.

    Useful for testing or when configuration changes at runtime.
    """
    get_order_repository.cache_clear()
    get_shop_directory.cache_clear()
    logger.debug("Order service caches cleared")


__all__ = [
    "build_demo_shop",
    "get_order_repository",
    "get_shop_directory",
    "get_order_service",
    "reset_order_services",
    "BaseOrderRepository",
    "BaseShopDirectory",
    "GuestOrderService",
    "MemoryOrderRepository",
    "MemoryShopDirectory",
    "OrderStatusMachine",
    "TRANSITIONS",
]
