"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase JSON (shopId, sessionId, totalAmount, ...);
Python code uses the snake_case field names.

Author: Khalil Bannouri
Version: 1.0.0
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from qrmenu.models import OrderStatus
from qrmenu.services.geo.base import Coordinate

# Matches the order_items.product_id column
PRODUCT_ID_MAX_LENGTH = 100


def calculate_total(items: List["OrderItemCreate"]) -> float:
    """Sum of quantity x unit price, rounded to cents."""
    return round(sum(item.quantity * item.unit_price for item in items), 2)


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either form."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# SHOPS
# =============================================================================

class ShopResponse(CamelModel):
    """Shop as seen by the guest workflow."""
    id: str
    name: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_active: bool = True

    @property
    def coordinates(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(CamelModel):
    """Single item in an order."""
    product_id: str = Field(..., min_length=1, max_length=PRODUCT_ID_MAX_LENGTH, examples=["prod-masala-dosa"])
    quantity: int = Field(..., ge=1, examples=[2])
    unit_price: float = Field(..., ge=0, alias="price", examples=[120.0])

    @property
    def total_price(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class GuestOrderCreate(CamelModel):
    """
    Request schema for placing a guest order.

    latitude/longitude are the diner's position at submission time and are
    checked against the shop's order radius.
    """
    shop_id: str = Field(..., min_length=1, max_length=36)
    session_id: Optional[str] = Field(None, max_length=64)
    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Table 4"])
    customer_contact: Optional[str] = Field(None, max_length=100, examples=["555-0100"])
    items: List[OrderItemCreate] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0, examples=[450.0])
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_total(self) -> "GuestOrderCreate":
        expected = calculate_total(self.items)
        if abs(self.total_amount - expected) > 0.005:
            raise ValueError(
                f"totalAmount {self.total_amount:.2f} does not match items total {expected:.2f}"
            )
        return self

    @property
    def coordinates(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(self.latitude, self.longitude)


class OrderFilter(CamelModel):
    """Criteria for listing orders. Unset fields do not filter."""
    shop_id: Optional[str] = None
    session_id: Optional[str] = None
    owner_user_id: Optional[str] = None
    status: Optional[OrderStatus] = None


class StatusUpdate(CamelModel):
    """Staff request to move an order to a new status."""
    status: OrderStatus


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemResponse(CamelModel):
    product_id: str
    quantity: int
    unit_price: float = Field(..., alias="price")


class OrderResponse(CamelModel):
    """Response schema for a single order."""
    id: str
    shop_id: str
    session_id: Optional[str] = None
    owner_user_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    items: List[OrderItemResponse] = Field(default_factory=list)
    total_amount: float
    status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class TransitionsResponse(CamelModel):
    """Statuses staff may move an order to next."""
    order_id: str
    status: OrderStatus
    allowed: List[OrderStatus]
    terminal: bool


class ErrorResponse(CamelModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    reason: Optional[str] = None
    distance_meters: Optional[float] = None
    radius_meters: Optional[float] = None
    current_status: Optional[str] = None
    requested_status: Optional[str] = None


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    environment: str
    order_repository: str
    shop_directory: str
    browse_radius_meters: float
    order_radius_meters: float
    timestamp: datetime
