"""Restaurant geofence settings routes."""

import logging

from fastapi import APIRouter

from app.api.deps import Runtime
from app.schemas.geofence import (
    GeofenceCheckRequest,
    GeofenceCheckResponse,
    GeofenceResponse,
    GeofenceUpdate,
)
from app.services.config_store import clear_geofence, load_geofence, save_geofence
from app.services.geofence_service import RestaurantGeofence, distance_to_fence, is_within_geofence

logger = logging.getLogger(__name__)

router = APIRouter()


def _response(fence: RestaurantGeofence) -> GeofenceResponse:
    return GeofenceResponse(
        latitude=fence.latitude,
        longitude=fence.longitude,
        radius=fence.radius_meters,
        configured=fence.configured,
    )


@router.get("/", response_model=GeofenceResponse)
def get_geofence(runtime: Runtime):
    """Get the restaurant geofence (unconfigured if never set)."""
    return _response(load_geofence(runtime.store))


@router.put("/", response_model=GeofenceResponse)
def set_geofence(body: GeofenceUpdate, runtime: Runtime):
    """Set the restaurant location and radius."""
    fence = save_geofence(runtime.store, body.latitude, body.longitude, body.radius)
    runtime.guards.set_fence(fence)
    logger.info(f"Geofence set to ({fence.latitude}, {fence.longitude}) radius {fence.radius_meters}m")
    return _response(fence)


@router.delete("/", response_model=GeofenceResponse)
def delete_geofence(runtime: Runtime):
    """Clear the geofence. Tablets will no longer be restricted by location."""
    fence = clear_geofence(runtime.store)
    logger.info("Geofence cleared")
    runtime.guards.set_fence(fence)
    return _response(fence)


@router.post("/check", response_model=GeofenceCheckResponse)
def check_location(body: GeofenceCheckRequest, runtime: Runtime):
    """Evaluate a position against the current geofence."""
    fence = load_geofence(runtime.store)
    distance = distance_to_fence(body.latitude, body.longitude, fence)
    return GeofenceCheckResponse(
        within=is_within_geofence(body.latitude, body.longitude, fence),
        configured=fence.configured,
        distance_meters=round(distance, 2) if distance is not None else None,
        radius=fence.radius_meters,
    )
