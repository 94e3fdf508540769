"""
Configuration Store
Durable key-value records for the geofence and the pre-order window.

Evaluators never read storage themselves; callers load a record through a
store and pass the typed value in.
"""
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import session_scope
from app.models.settings import AppSetting
from app.services.geofence_service import RestaurantGeofence
from app.services.preorder_service import PreOrderWindow

logger = logging.getLogger(__name__)

GEOFENCE_KEY = "restaurant_geofence"
PREORDER_KEY = "preorder_settings"
ORDER_SIGNAL_KEY = "nectarv_order_created"

CATEGORY_BY_KEY = {
    GEOFENCE_KEY: "geofence",
    PREORDER_KEY: "preorder",
    ORDER_SIGNAL_KEY: "signals",
}


class ConfigStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryConfigStore:
    """Process-local store, used by tests and single-process deployments."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class DatabaseConfigStore:
    """Store backed by the ``app_settings`` table.

    Each call opens its own short-lived session so the store can be shared by
    request handlers and background loops alike.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _category(key: str) -> str:
        return CATEGORY_BY_KEY.get(key, "general")

    def _row(self, db: Session, key: str) -> Optional[AppSetting]:
        return (
            db.query(AppSetting)
            .filter(AppSetting.category == self._category(key), AppSetting.key == key)
            .first()
        )

    def get(self, key: str) -> Optional[Any]:
        with session_scope(self.session_factory) as db:
            row = self._row(db, key)
            return row.value if row else None

    def set(self, key: str, value: Any) -> None:
        with session_scope(self.session_factory) as db:
            row = self._row(db, key)
            if row:
                row.value = value
            else:
                db.add(AppSetting(category=self._category(key), key=key, value=value))
            db.commit()

    def delete(self, key: str) -> None:
        with session_scope(self.session_factory) as db:
            row = self._row(db, key)
            if row:
                db.delete(row)
                db.commit()


# ============== Geofence record ==============

def default_geofence() -> RestaurantGeofence:
    return RestaurantGeofence(radius_meters=settings.geofence_default_radius_meters)


def load_geofence(store: ConfigStore) -> RestaurantGeofence:
    """Load the restaurant geofence, defaulting to unconfigured."""
    stored = store.get(GEOFENCE_KEY)
    if not stored:
        return default_geofence()
    try:
        latitude = stored.get("latitude")
        longitude = stored.get("longitude")
        return RestaurantGeofence(
            latitude=float(latitude) if latitude is not None else None,
            longitude=float(longitude) if longitude is not None else None,
            radius_meters=float(stored.get("radius", settings.geofence_default_radius_meters)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        logger.error(f"Error parsing stored geofence: {e}")
        return default_geofence()


def save_geofence(
    store: ConfigStore,
    latitude: float,
    longitude: float,
    radius: Optional[float] = None,
) -> RestaurantGeofence:
    fence = RestaurantGeofence(
        latitude=float(latitude),
        longitude=float(longitude),
        radius_meters=float(radius if radius is not None else settings.geofence_default_radius_meters),
    )
    store.set(GEOFENCE_KEY, fence.to_dict())
    logger.info(
        f"Restaurant geofence set to ({fence.latitude}, {fence.longitude}) "
        f"radius {fence.radius_meters}m"
    )
    return fence


def clear_geofence(store: ConfigStore) -> RestaurantGeofence:
    store.delete(GEOFENCE_KEY)
    logger.info("Restaurant geofence cleared, tablets are no longer location restricted")
    return default_geofence()


# ============== Pre-order record ==============

def load_preorder_window(store: ConfigStore) -> PreOrderWindow:
    """Load the pre-order window, defaulting to disabled."""
    stored = store.get(PREORDER_KEY)
    if not stored:
        return PreOrderWindow()
    try:
        return PreOrderWindow.from_dict(stored)
    except (AttributeError, TypeError, ValueError) as e:
        logger.error(f"Error parsing pre-order settings: {e}")
        return PreOrderWindow()


def save_preorder_window(store: ConfigStore, window: PreOrderWindow) -> PreOrderWindow:
    store.set(PREORDER_KEY, window.to_dict())
    logger.info(f"Pre-order settings saved: {window.to_dict()}")
    return window
