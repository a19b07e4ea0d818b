"""
Geofence Validation

Great-circle distance between a diner and a shop using the haversine
formula, and the two checkpoints built on it:

    - browse checkpoint (default 10 km): run by the diner workflow before
      the menu is shown. Catches "wrong city" mistakes.
    - order checkpoint (default 200 m): run by the order API when a guest
      order arrives. Catches "ordering from across town".

Both use the same formula and differ only in radius.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
import math
from functools import lru_cache

from qrmenu.core.config import get_settings
from qrmenu.core.exceptions import TooFar
from qrmenu.services.geo.base import Coordinate, GeofenceResult

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance in meters between two coordinates.

    Example:
        >>> haversine_distance(Coordinate(12.9716, 77.5946), Coordinate(12.9716, 77.6046))
        1083.5...
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    # Floating point can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class GeofenceValidator:
    """
    Decides whether a diner is close enough to a shop.

    Attributes:
        radius_meters: Maximum accepted distance (inclusive)
        name: Label used in logs ("browse", "order")

    Example:
        >>> validator = GeofenceValidator(radius_meters=10_000, name="browse")
        >>> result = validator.validate(diner, shop)
        >>> result.distance_meters
        1083.5...
    """

    def __init__(self, radius_meters: float, name: str = "geofence"):
        if radius_meters <= 0:
            raise ValueError("radius_meters must be positive")
        self.radius_meters = float(radius_meters)
        self.name = name

    def measure(self, diner: Coordinate, shop: Coordinate) -> GeofenceResult:
        """Compute the distance and compare it to the radius without raising."""
        distance = haversine_distance(diner, shop)
        return GeofenceResult(
            within_radius=distance <= self.radius_meters,
            distance_meters=distance,
            radius_meters=self.radius_meters,
        )

    def validate(self, diner: Coordinate, shop: Coordinate) -> GeofenceResult:
        """
        Accept the diner's position or fail.

        Returns:
            GeofenceResult: The accepted measurement

        Raises:
            TooFar: If the distance exceeds the radius
        """
        result = self.measure(diner, shop)

        if not result.within_radius:
            logger.info(
                f"Geofence[{self.name}]: rejected at {result.distance_meters:.0f} m "
                f"(radius {self.radius_meters:.0f} m)"
            )
            raise TooFar(result.distance_meters, self.radius_meters)

        logger.debug(
            f"Geofence[{self.name}]: accepted at {result.distance_meters:.0f} m"
        )
        return result

    def __repr__(self) -> str:
        return f"<GeofenceValidator {self.name} radius={self.radius_meters:.0f}m>"


@lru_cache()
def get_browse_geofence() -> GeofenceValidator:
    """Geofence applied before the menu is shown."""
    return GeofenceValidator(get_settings().browse_radius_meters, name="browse")


@lru_cache()
def get_order_geofence() -> GeofenceValidator:
    """Geofence applied when a guest order is submitted."""
    return GeofenceValidator(get_settings().order_radius_meters, name="order")


def reset_geofences() -> None:
    """Clear cached validators so new settings take effect."""
    get_browse_geofence.cache_clear()
    get_order_geofence.cache_clear()
