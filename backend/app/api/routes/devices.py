"""Tablet location reporting and geofence guard routes."""

import logging

from fastapi import APIRouter, HTTPException, Request

from app.api.deps import Runtime
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.geofence import DeviceLocationReport, GuardStatusResponse
from app.services.geofence_guard import GeofenceGuard, render_decision

logger = logging.getLogger(__name__)

router = APIRouter()


def _status(guard: GeofenceGuard) -> dict:
    snapshot = guard.snapshot()
    return {**snapshot, "decision": render_decision(snapshot)}


def _get_guard(runtime, device_id: str) -> GeofenceGuard:
    guard = runtime.guards.get(device_id)
    if guard is None:
        raise HTTPException(status_code=404, detail=f"Device '{device_id}' has not reported a location")
    return guard


@router.get("/")
def list_devices(runtime: Runtime):
    """All tablets with a running geofence guard."""
    devices = []
    for device_id in runtime.guards.device_ids():
        guard = runtime.guards.get(device_id)
        devices.append({"device_id": device_id, "state": guard.state.value, "location_error": guard.location_error})
    return devices


@router.post("/{device_id}/location", response_model=GuardStatusResponse)
@limiter.limit(settings.location_report_rate)
async def report_location(request: Request, device_id: str, body: DeviceLocationReport, runtime: Runtime):
    """Accept a GPS fix (or location failure) from a tablet."""
    if body.error is not None:
        guard = await runtime.guards.report_error(device_id, body.error, body.connection_type)
    else:
        guard = await runtime.guards.report_fix(
            device_id, body.latitude, body.longitude, body.accuracy, body.connection_type
        )
    return _status(guard)


@router.get("/{device_id}/guard", response_model=GuardStatusResponse)
def get_guard_status(device_id: str, runtime: Runtime):
    """Current in/out decision for a tablet."""
    return _status(_get_guard(runtime, device_id))


@router.post("/{device_id}/guard/recheck", response_model=GuardStatusResponse, status_code=202)
async def recheck_guard(device_id: str, runtime: Runtime):
    """Ask for a fresh fix ("Check Location Again"); resolves on the next report."""
    guard = _get_guard(runtime, device_id)
    if not guard.request_check():
        logger.warning(f"Recheck requested for stopped guard on device {device_id}")
    return _status(guard)
