# Services module

from app.services.geofence_service import (
    RestaurantGeofence,
    haversine_distance,
    is_within_geofence,
)
from app.services.preorder_service import (
    PreOrderWindow,
    is_preorder_allowed,
    time_until_start,
    time_until_end,
    format_time_remaining,
)
from app.services.location_source import (
    DeviceLocationSample,
    LocationErrorReason,
    LocationSource,
    clear_location_watch,
)
from app.services.geofence_guard import GeofenceGuard, GuardRegistry, GuardState
from app.services.order_notifier import (
    OrderChangeNotifier,
    detect_new_orders,
    KITCHEN_FEED,
    WAITER_CASH_FEED,
)
from app.services.audio_alert import AudioSink, NEW_ORDER_CHIME
from app.services.notifications import AlertHub, DesktopNotifier
from app.services.order_signal import OrderSignalBus
from app.services.floor_runtime import FloorRuntime

__all__ = [
    "RestaurantGeofence",
    "haversine_distance",
    "is_within_geofence",
    "PreOrderWindow",
    "is_preorder_allowed",
    "time_until_start",
    "time_until_end",
    "format_time_remaining",
    "DeviceLocationSample",
    "LocationErrorReason",
    "LocationSource",
    "clear_location_watch",
    "GeofenceGuard",
    "GuardRegistry",
    "GuardState",
    "OrderChangeNotifier",
    "detect_new_orders",
    "KITCHEN_FEED",
    "WAITER_CASH_FEED",
    "AudioSink",
    "NEW_ORDER_CHIME",
    "AlertHub",
    "DesktopNotifier",
    "OrderSignalBus",
    "FloorRuntime",
]
