"""
Geo Service Base Types

Defines the coordinate value type, the geofence result, and the interface
contract for device location providers. The diner workflow only ever asks a
provider for "where am I right now"; how the device answers (browser
geolocation, fixed test position, simulated latency) is up to the
implementation.

Use Cases:
    - Gating menu access on distance from the shop
    - Rejecting orders placed from too far away
    - Reporting the computed distance back to the diner

Author: Khalil Bannouri
Version: 1.0.0
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


def validate_coordinates(latitude: float, longitude: float) -> bool:
    """Check that a latitude/longitude pair is within realistic ranges."""
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return False
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


@dataclass(frozen=True)
class Coordinate:
    """
    A point on Earth in decimal degrees.

    Attributes:
        latitude: Degrees north, in [-90, 90]
        longitude: Degrees east, in [-180, 180]

    Raises:
        ValueError: If either value is out of range or not a finite number
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        if not validate_coordinates(self.latitude, self.longitude):
            raise ValueError(
                f"Invalid coordinate ({self.latitude}, {self.longitude}): "
                f"latitude must be in [-90, 90] and longitude in [-180, 180]"
            )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class GeofenceResult:
    """
    Outcome of measuring a diner against a shop's geofence.

    Attributes:
        within_radius: True when distance_meters <= radius_meters
        distance_meters: Great-circle distance between diner and shop
        radius_meters: Radius the distance was compared against
    """
    within_radius: bool
    distance_meters: float
    radius_meters: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "within_radius": self.within_radius,
            "distance_meters": self.distance_meters,
            "radius_meters": self.radius_meters,
        }


class BaseLocationProvider(ABC):
    """
    Abstract source of the diner's device coordinates.

    Implementations raise LocationUnavailable with reason
    PERMISSION_DENIED when the diner refused access, or UNAVAILABLE
    when the device has no way to produce a position.

    Example:
        >>> provider = MockLocationProvider(Coordinate(12.9716, 77.5946))
        >>> coordinate = await provider.get_current_coordinates()
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the location provider.

        Returns:
            str: Provider name (e.g., "mock", "fixed")
        """
        pass

    @abstractmethod
    async def get_current_coordinates(self) -> Coordinate:
        """
        Acquire the device's current position.

        Returns:
            Coordinate: Current device position

        Raises:
            LocationUnavailable: If the position cannot be obtained
        """
        pass
