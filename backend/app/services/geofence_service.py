"""
Restaurant Geofence Service
Decides whether a device position lies inside the restaurant's circular geofence.
"""
import math
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000
DEFAULT_RADIUS_METERS = 50.0


@dataclass(frozen=True)
class RestaurantGeofence:
    """Circular boundary around the restaurant.

    A fence without coordinates is unconfigured and lets every device through.
    """
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_meters: float = DEFAULT_RADIUS_METERS

    @property
    def configured(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius": self.radius_meters,
        }


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate great-circle distance between two points in meters."""
    phi1 = lat1 * math.pi / 180
    phi2 = lat2 * math.pi / 180
    dphi = (lat2 - lat1) * math.pi / 180
    dlambda = (lon2 - lon1) * math.pi / 180

    a = (math.sin(dphi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance_to_fence(latitude: float, longitude: float, fence: RestaurantGeofence) -> Optional[float]:
    """Distance from the fence centre, or None when the fence is unconfigured."""
    if not fence.configured:
        return None
    return haversine_distance(fence.latitude, fence.longitude, latitude, longitude)


def is_within_geofence(latitude: float, longitude: float, fence: RestaurantGeofence) -> bool:
    """Check whether a device position is inside the fence (boundary counts as inside)."""
    if not fence.configured:
        logger.debug("Restaurant location not configured, allowing usage")
        return True

    distance = haversine_distance(fence.latitude, fence.longitude, latitude, longitude)
    within = distance <= fence.radius_meters

    logger.debug(
        f"Geofence check: device=({latitude}, {longitude}) "
        f"restaurant=({fence.latitude}, {fence.longitude}) "
        f"distance={distance:.2f}m radius={fence.radius_meters}m within={within}"
    )
    return within
