"""
Guest Ordering Errors

Every failure the guest workflow and the order API can report derives from
OrderingError. Each error carries a machine-readable code, the HTTP status
the API answers with, a user-facing message, and whether retrying can help.

Author: Khalil Bannouri
Version: 1.0.0
"""

from enum import Enum
from typing import Any, Optional


class OrderingError(Exception):
    """Base class for guest ordering failures."""

    code: str = "ordering_error"
    status_code: int = 400
    retryable: bool = False
    default_message: str = "The request could not be completed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        """Additional fields included in the API error body."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API error body."""
        body = {
            "success": False,
            "error": self.code,
            "detail": self.message,
        }
        body.update(self.extra())
        return body


class ShopNotFound(OrderingError):
    code = "shop_not_found"
    status_code = 404
    default_message = "Failed to load shop information."

    def __init__(self, shop_id: str, message: Optional[str] = None):
        self.shop_id = shop_id
        super().__init__(message)


class ShopInactive(OrderingError):
    """The shop has switched its QR menu off. Only staff can change this."""

    code = "shop_inactive"
    status_code = 403
    default_message = (
        "This QR Menu feature is currently inactive. "
        "Please contact the staff for assistance."
    )

    def __init__(self, shop_id: str, message: Optional[str] = None):
        self.shop_id = shop_id
        super().__init__(message)


class LocationFailure(str, Enum):
    """Why device coordinates could not be obtained."""
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    MISSING = "missing"


class LocationUnavailable(OrderingError):
    """Device coordinates were denied, unsupported, or not sent."""

    code = "location_unavailable"
    status_code = 400
    retryable = True

    MESSAGES = {
        LocationFailure.PERMISSION_DENIED: (
            "Location access is required to view the menu. "
            "Please enable location services."
        ),
        LocationFailure.UNAVAILABLE: "Geolocation is not supported by your device.",
        LocationFailure.MISSING: "Your location is required to place an order.",
    }

    def __init__(
        self,
        reason: LocationFailure = LocationFailure.UNAVAILABLE,
        message: Optional[str] = None,
    ):
        self.reason = LocationFailure(reason)
        super().__init__(message or self.MESSAGES[self.reason])

    def extra(self) -> dict[str, Any]:
        return {"reason": self.reason.value}


def format_distance(meters: float) -> str:
    """Render a distance for diners, e.g. "850 m" or "12.4 km"."""
    if meters < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000:.1f} km"


class TooFar(OrderingError):
    code = "too_far"
    status_code = 400
    retryable = True

    def __init__(
        self,
        distance_meters: float,
        radius_meters: float,
        message: Optional[str] = None,
    ):
        self.distance_meters = distance_meters
        self.radius_meters = radius_meters
        super().__init__(
            message
            or (
                f"You are too far from this restaurant "
                f"({format_distance(distance_meters)} away). "
                f"You must be within {format_distance(radius_meters)} to continue."
            )
        )

    def extra(self) -> dict[str, Any]:
        return {
            "distanceMeters": round(self.distance_meters, 1),
            "radiusMeters": self.radius_meters,
        }


class SessionExpired(OrderingError):
    """Raised when a guest session is gone; the workflow re-prompts silently."""

    code = "session_expired"
    status_code = 401
    retryable = True
    default_message = "Your session has expired. Please enter your details again."


class EmptyCart(OrderingError):
    code = "empty_cart"
    status_code = 400
    default_message = "Add at least one item before placing an order."


class OrderNotFound(OrderingError):
    code = "order_not_found"
    status_code = 404

    def __init__(self, order_id: str, message: Optional[str] = None):
        self.order_id = order_id
        super().__init__(message or f"Order {order_id} not found")


class InvalidTransition(OrderingError):
    """
    A staff member asked for a status change the order cannot make.

    Usually means the staff view is stale; refetching the order shows the
    current status.
    """

    code = "invalid_transition"
    status_code = 409
    retryable = True

    def __init__(self, current: Any, requested: Any, message: Optional[str] = None):
        self.current = getattr(current, "value", current)
        self.requested = getattr(requested, "value", requested)
        super().__init__(
            message
            or f"Cannot move order from '{self.current}' to '{self.requested}'"
        )

    def extra(self) -> dict[str, Any]:
        return {
            "currentStatus": self.current,
            "requestedStatus": self.requested,
        }


class InvalidOrder(OrderingError):
    """The cart or identity cannot be turned into a valid order."""

    code = "invalid_order"
    status_code = 400
    default_message = "Your order could not be placed. Please review your details and items."


class SubmissionFailed(OrderingError):
    """Order creation failed on the network or server. The cart is kept."""

    code = "submission_failed"
    status_code = 502
    retryable = True
    default_message = "Failed to place order. Please try again."
