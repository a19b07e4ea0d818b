"""
HTTP Order Repository

Diner-side client of the order API. Implements the same repository and
shop directory interfaces as the server-side storage, so the ordering
workflow does not care whether it runs in-process or on a device.

Error bodies from the API are turned back into the matching
OrderingError subclasses; network failures while creating an order become
SubmissionFailed.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

import httpx

from qrmenu.core.config import get_settings
from qrmenu.core.exceptions import (
    EmptyCart,
    InvalidOrder,
    InvalidTransition,
    LocationFailure,
    LocationUnavailable,
    OrderingError,
    OrderNotFound,
    SessionExpired,
    ShopInactive,
    ShopNotFound,
    SubmissionFailed,
    TooFar,
)
from qrmenu.models import OrderStatus
from qrmenu.schemas import (
    GuestOrderCreate,
    OrderFilter,
    OrderResponse,
    ShopResponse,
    StatusUpdate,
)
from qrmenu.services.orders.base import BaseOrderRepository, BaseShopDirectory

logger = logging.getLogger(__name__)


def error_from_response(response: httpx.Response, resource_id: str = "") -> OrderingError:
    """Rebuild the API's error as an OrderingError."""
    try:
        body: dict[str, Any] = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    code = body.get("error")
    detail = body.get("detail") if isinstance(body.get("detail"), str) else None

    if code == TooFar.code:
        return TooFar(
            distance_meters=float(body.get("distanceMeters") or 0.0),
            radius_meters=float(body.get("radiusMeters") or 0.0),
            message=detail,
        )
    if code == LocationUnavailable.code:
        try:
            reason = LocationFailure(body.get("reason"))
        except ValueError:
            reason = LocationFailure.MISSING
        return LocationUnavailable(reason, message=detail)
    if code == ShopInactive.code:
        return ShopInactive(resource_id, message=detail)
    if code == ShopNotFound.code:
        return ShopNotFound(resource_id, message=detail)
    if code == OrderNotFound.code:
        return OrderNotFound(resource_id, message=detail)
    if code == InvalidTransition.code:
        return InvalidTransition(
            body.get("currentStatus"), body.get("requestedStatus"), message=detail
        )
    if code == SessionExpired.code:
        return SessionExpired(detail)
    if code == EmptyCart.code:
        return EmptyCart(detail)
    if code == InvalidOrder.code:
        return InvalidOrder(detail)

    return SubmissionFailed(
        detail or f"Order service answered {response.status_code}"
    )


class _HttpClientMixin:
    """Shared httpx client handling."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.http_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HttpOrderRepository(_HttpClientMixin, BaseOrderRepository):
    """
    Order repository speaking to the order API.

    Example:
        >>> repository = HttpOrderRepository("http://localhost:8001")
        >>> orders = await repository.find_orders(
        ...     OrderFilter(shop_id="demo-shop", session_id=session.session_id)
        ... )
    """

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "http"

    async def create_order(self, data: GuestOrderCreate) -> OrderResponse:
        payload = data.model_dump(mode="json", by_alias=True, exclude_none=True)

        try:
            response = await self._client.post("/api/orders/guest", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"HTTP: Order submission failed - {e}")
            raise SubmissionFailed() from e

        if response.is_error:
            raise error_from_response(response, data.shop_id)

        return OrderResponse.model_validate(response.json())

    async def find_orders(self, criteria: OrderFilter) -> list[OrderResponse]:
        params = criteria.model_dump(mode="json", by_alias=True, exclude_none=True)
        guest_query = criteria.session_id is not None
        path = "/api/orders/guest" if guest_query else "/api/orders"

        response = await self._client.get(path, params=params)
        if response.is_error:
            raise error_from_response(response, criteria.shop_id or "")

        return [OrderResponse.model_validate(item) for item in response.json()]

    async def get_order(self, order_id: str) -> OrderResponse:
        response = await self._client.get(f"/api/orders/{order_id}")
        if response.is_error:
            raise error_from_response(response, order_id)
        return OrderResponse.model_validate(response.json())

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        body = StatusUpdate(status=status).model_dump(mode="json", by_alias=True)
        response = await self._client.patch(f"/api/orders/{order_id}/status", json=body)
        if response.is_error:
            raise error_from_response(response, order_id)
        return OrderResponse.model_validate(response.json())

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"HTTP: Health check failed - {e}")
            return False


class HttpShopDirectory(_HttpClientMixin, BaseShopDirectory):
    """Shop lookup through the API."""

    @property
    def provider_name(self) -> str:
        return "http"

    async def get_shop(self, shop_id: str) -> ShopResponse:
        try:
            response = await self._client.get(f"/api/shops/{shop_id}")
        except httpx.HTTPError as e:
            logger.error(f"HTTP: Shop lookup for {shop_id} failed - {e}")
            raise ShopNotFound(shop_id) from e

        if response.is_error:
            raise error_from_response(response, shop_id)
        return ShopResponse.model_validate(response.json())
