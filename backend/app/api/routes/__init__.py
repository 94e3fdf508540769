"""API routes."""

from fastapi import APIRouter

from app.api.routes import alerts, devices, geofence, orders, preorder

api_router = APIRouter()

# Restaurant location and tablet guards
api_router.include_router(geofence.router, prefix="/geofence", tags=["geofence"])
api_router.include_router(devices.router, prefix="/devices", tags=["devices", "geofence"])

# Pre-order schedule
api_router.include_router(preorder.router, prefix="/preorder", tags=["preorder"])

# Kitchen display and waiter terminals
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(alerts.router, prefix="/alerts", tags=["alerts", "kitchen"])
