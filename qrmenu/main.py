"""
FastAPI Application Entry Point

QR Menu Ordering - guest ordering API.
Supports both in-memory services (development) and PostgreSQL (production).

Endpoints:
    - GET /api/shops/{shop_id}: Shop lookup for the diner client
    - POST /api/orders/guest: Place a guest order (order geofence applies)
    - GET /api/orders/guest: Orders of one guest session
    - GET /api/orders: Staff order list for a shop
    - GET /api/orders/{order_id}: Single order
    - GET /api/orders/{order_id}/transitions: Next statuses staff may pick
    - PATCH /api/orders/{order_id}/status: Staff status change
    - GET /health: System health check

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, status as http_status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from qrmenu.core.config import get_settings, setup_logging
from qrmenu.core.exceptions import OrderingError
from qrmenu.database import dispose_engine, init_db
from qrmenu.models import OrderStatus
from qrmenu.schemas import (
    ErrorResponse,
    GuestOrderCreate,
    HealthResponse,
    OrderResponse,
    ShopResponse,
    StatusUpdate,
    TransitionsResponse,
)
from qrmenu.services.orders import (
    GuestOrderService,
    get_order_repository,
    get_order_service,
    get_shop_directory,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info(f"   Browse radius: {settings.browse_radius_meters:.0f} m")
    logger.info(f"   Order radius: {settings.order_radius_meters:.0f} m")
    logger.info("=" * 60)

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")
        await init_db()
        logger.info("Database initialized")

    logger.info(f"Order Repository: {get_order_repository().provider_name}")
    logger.info(f"Shop Directory: {get_shop_directory().provider_name}")
    logger.info("Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await dispose_engine()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Scan-to-order guest API: location-gated guest orders, "
        "session-scoped order tracking, and staff status updates."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    service: GuestOrderService = Depends(get_order_service),
) -> HealthResponse:
    """Verify the order storage is reachable."""
    repository_ok = await service.repository.health_check()

    return HealthResponse(
        status="operational" if repository_ok else "degraded",
        environment=settings.env_mode.value,
        order_repository=(
            f"{service.repository.provider_name}: "
            f"{'healthy' if repository_ok else 'unhealthy'}"
        ),
        shop_directory=service.shops.provider_name,
        browse_radius_meters=settings.browse_radius_meters,
        order_radius_meters=service.order_geofence.radius_meters,
        timestamp=datetime.now(),
    )


# =============================================================================
# SHOP ENDPOINTS
# =============================================================================

@app.get(
    "/api/shops/{shop_id}",
    response_model=ShopResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Shops"],
)
async def get_shop(
    shop_id: str,
    service: GuestOrderService = Depends(get_order_service),
) -> ShopResponse:
    """Shop location and availability, used by the diner client."""
    return await service.shops.get_shop(shop_id)


# =============================================================================
# GUEST ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders/guest",
    response_model=OrderResponse,
    status_code=http_status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Guest Orders"],
    summary="Place Guest Order",
)
async def create_guest_order(
    order_data: GuestOrderCreate,
    service: GuestOrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Place an order for an anonymous diner.

    The diner's current position must be within the order radius of the
    shop; orders without a position are rejected.
    """
    logger.info(
        f"Guest order for shop {order_data.shop_id} "
        f"from session {order_data.session_id} ({len(order_data.items)} items)"
    )
    return await service.place_guest_order(order_data)


@app.get(
    "/api/orders/guest",
    response_model=List[OrderResponse],
    tags=["Guest Orders"],
    summary="List Guest Session Orders",
)
async def list_guest_orders(
    shop_id: Optional[str] = Query(None, alias="shopId"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    service: GuestOrderService = Depends(get_order_service),
) -> List[OrderResponse]:
    """Orders of one guest session. Empty unless both ids are given."""
    return await service.find_guest_orders(shop_id, session_id)


# =============================================================================
# STAFF ORDER ENDPOINTS
# =============================================================================

@app.get(
    "/api/orders",
    response_model=List[OrderResponse],
    tags=["Orders"],
    summary="List Shop Orders",
)
async def list_orders(
    shop_id: Optional[str] = Query(None, alias="shopId"),
    status: Optional[OrderStatus] = Query(None),
    service: GuestOrderService = Depends(get_order_service),
) -> List[OrderResponse]:
    """Staff view of orders, newest first."""
    return await service.find_shop_orders(shop_id, status)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    service: GuestOrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get a specific order by ID."""
    return await service.get_order(order_id)


@app.get(
    "/api/orders/{order_id}/transitions",
    response_model=TransitionsResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order_transitions(
    order_id: str,
    service: GuestOrderService = Depends(get_order_service),
) -> TransitionsResponse:
    """Statuses the order can be moved to from where it is now."""
    order, allowed = await service.allowed_transitions(order_id)
    return TransitionsResponse(
        order_id=order.id,
        status=order.status,
        allowed=allowed,
        terminal=not allowed,
    )


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Update Order Status",
)
async def update_order_status(
    order_id: str,
    update: StatusUpdate,
    service: GuestOrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Move an order along pending → preparing → ready → completed,
    or cancel it before it completes.
    """
    return await service.transition(order_id, update.status)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    """Map workflow errors to their HTTP status and error body."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    content: dict[str, Any] = {
        "success": False,
        "error": "Internal Server Error",
        "detail": str(exc) if settings.debug else "An unexpected error occurred",
    }
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("qrmenu.main:app", host=settings.api_host, port=settings.api_port)
