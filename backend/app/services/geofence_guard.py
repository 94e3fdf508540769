"""
Geofence Guard
Keeps a tablet's in/out-of-premises decision current for as long as it is in use.

The guard combines a continuous location watch with a periodic re-check. Both
paths go through the same evaluation, so whichever fires last decides the
state. Location failures never block the device: when no position can be
determined the guard resolves to INSIDE and records the reason.
"""
import asyncio
import inspect
import logging
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from app.core.config import settings
from app.services.geofence_service import RestaurantGeofence, distance_to_fence, is_within_geofence
from app.services.location_source import (
    DeviceLocationSample,
    LocationErrorReason,
    LocationSource,
    LocationWatch,
    PositionError,
    ReportedPositionProvider,
    clear_location_watch,
)

logger = logging.getLogger(__name__)

OutsideCallback = Callable[[DeviceLocationSample], Any]


class GuardState(str, Enum):
    CHECKING = "checking"
    INSIDE = "inside"
    OUTSIDE = "outside"


class GeofenceGuard:
    """Stateful in/out decision for one device."""

    def __init__(
        self,
        source: LocationSource,
        fence_loader: Callable[[], RestaurantGeofence],
        on_outside: Optional[OutsideCallback] = None,
        recheck_interval: Optional[float] = None,
        name: str = "device",
    ):
        self.source = source
        self.fence_loader = fence_loader
        self.on_outside = on_outside
        self.recheck_interval = (
            recheck_interval if recheck_interval is not None
            else settings.geofence_recheck_interval_seconds
        )
        self.name = name

        self.state = GuardState.CHECKING
        self.last_sample: Optional[DeviceLocationSample] = None
        self.location_error: Optional[str] = None
        self.distance_meters: Optional[float] = None
        self.last_checked_at: Optional[datetime] = None

        self._running = False
        self._watch: Optional[LocationWatch] = None
        self._initial_task: Optional[asyncio.Task] = None
        self._recheck_task: Optional[asyncio.Task] = None
        self._side_tasks: Set[asyncio.Task] = set()
        self._decided = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Begin watching. Must be called from a running event loop."""
        if self._running:
            return
        self._running = True

        self._watch = self.source.watch_location(self.apply_sample, self.apply_sample)
        self._initial_task = asyncio.create_task(self.check_location())
        self._recheck_task = asyncio.create_task(self._recheck_loop())
        logger.info(f"[Geofence] Guard started for {self.name}")

    async def stop(self) -> None:
        """Release the watch and cancel the re-check timer together."""
        if not self._running:
            return
        self._running = False

        clear_location_watch(self._watch)
        self._watch = None

        tasks = [t for t in (self._initial_task, self._recheck_task) if t is not None]
        tasks.extend(self._side_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._side_tasks.clear()
        logger.info(f"[Geofence] Guard stopped for {self.name}")

    async def _recheck_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.recheck_interval)
                await self.check_location()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[Geofence] Periodic re-check failed for {self.name}: {e}")

    async def check_location(self) -> GuardState:
        """One-shot location check (also the manual "check again" action)."""
        sample = await self.source.get_current_location()
        if not self._running:
            return self.state
        return self.apply_sample(sample)

    def request_check(self) -> bool:
        """Schedule a one-shot check without waiting for it."""
        if not self._running:
            return False
        self._track(asyncio.create_task(self.check_location()))
        return True

    async def wait_decided(self, timeout: Optional[float] = None) -> GuardState:
        """Wait until the guard has left CHECKING."""
        await asyncio.wait_for(self._decided.wait(), timeout=timeout)
        return self.state

    def apply_sample(self, sample: DeviceLocationSample) -> GuardState:
        """Evaluate one sample and update the state."""
        self.last_checked_at = datetime.now(timezone.utc)

        if sample.unavailable:
            # The previous fix no longer describes where the device is
            self.last_sample = None
            self.distance_meters = None
            on_wifi = self.source.check_wifi_connection()
            if on_wifi is True:
                logger.info(f"[Geofence] Using WiFi fallback for {self.name}, allowing usage")
                self.location_error = None
            else:
                self.location_error = sample.message
                logger.warning(
                    f"[Geofence] Location check failed for {self.name}, allowing usage: {sample.message}"
                )
            self._set_state(GuardState.INSIDE)
            return self.state

        fence = self.fence_loader()
        self.last_sample = sample
        self.distance_meters = distance_to_fence(sample.latitude, sample.longitude, fence)

        if is_within_geofence(sample.latitude, sample.longitude, fence):
            self.location_error = None
            self._set_state(GuardState.INSIDE)
        else:
            entering = self.state != GuardState.OUTSIDE
            self._set_state(GuardState.OUTSIDE)
            if entering:
                logger.warning(f"[Geofence] {self.name} is outside restaurant bounds")
                self._notify_outside(sample)
        return self.state

    def _set_state(self, state: GuardState) -> None:
        self.state = state
        self._decided.set()

    def _notify_outside(self, sample: DeviceLocationSample) -> None:
        if self.on_outside is None:
            return
        try:
            result = self.on_outside(sample)
            if inspect.isawaitable(result):
                self._track(asyncio.ensure_future(result))
        except Exception as e:
            logger.error(f"[Geofence] Outside callback failed for {self.name}: {e}")

    def _track(self, task: asyncio.Future) -> None:
        self._side_tasks.add(task)
        task.add_done_callback(self._side_task_done)

    def _side_task_done(self, task: asyncio.Future) -> None:
        self._side_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[Geofence] Background task failed for {self.name}: {task.exception()}")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "device_id": self.name,
            "state": self.state.value,
            "location_error": self.location_error,
            "distance_meters": round(self.distance_meters, 2) if self.distance_meters is not None else None,
            "last_sample": self.last_sample.to_dict() if self.last_sample else None,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "running": self._running,
        }


def render_decision(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """What the tablet should show for a guard snapshot.

    Only a confirmed OUTSIDE blocks the screen; location failures surface as a
    non-blocking warning at most.
    """
    state = snapshot["state"]
    if state == GuardState.OUTSIDE.value:
        decision = {
            "blocked": True,
            "overlay": "outside",
            "title": "Device Outside Restaurant",
            "message": "This tablet must remain within the restaurant premises to function.",
            "hint": "Please return the device to the restaurant location.",
            "location": None,
        }
        sample = snapshot.get("last_sample")
        if sample and sample.get("latitude") is not None:
            decision["location"] = (
                f"Lat: {sample['latitude']:.6f}, Lon: {sample['longitude']:.6f}"
            )
        return decision

    if state == GuardState.CHECKING.value:
        return {
            "blocked": False,
            "overlay": "checking",
            "title": "Verifying location...",
            "message": "Please allow location access if prompted",
        }

    return {"blocked": False, "overlay": None, "warning": snapshot.get("location_error")}


# ============== Per-device registry ==============

_REASON_CODES = {
    LocationErrorReason.PERMISSION_DENIED: PositionError.PERMISSION_DENIED,
    LocationErrorReason.POSITION_UNAVAILABLE: PositionError.POSITION_UNAVAILABLE,
    LocationErrorReason.TIMEOUT: PositionError.TIMEOUT,
    LocationErrorReason.UNKNOWN: 0,
}


class GuardRegistry:
    """One reported-position provider and one guard per tablet."""

    def __init__(
        self,
        fence_loader: Callable[[], RestaurantGeofence],
        on_outside: Optional[Callable[[str, DeviceLocationSample], Any]] = None,
        recheck_interval: Optional[float] = None,
    ):
        self.fence_loader = fence_loader
        self.on_outside = on_outside
        self.recheck_interval = recheck_interval
        self.fence = RestaurantGeofence()
        self._devices: Dict[str, Tuple[ReportedPositionProvider, GeofenceGuard]] = {}

    def current_fence(self) -> RestaurantGeofence:
        return self.fence

    def set_fence(self, fence: RestaurantGeofence) -> None:
        self.fence = fence

    async def refresh_fence(self) -> RestaurantGeofence:
        """Re-read the fence in a worker thread; keeps the last one if loading fails."""
        try:
            self.fence = await asyncio.to_thread(self.fence_loader)
        except Exception as e:
            logger.error(f"[Geofence] Could not load geofence, keeping the last one: {e}")
        return self.fence

    def get(self, device_id: str) -> Optional[GeofenceGuard]:
        entry = self._devices.get(device_id)
        return entry[1] if entry else None

    def get_provider(self, device_id: str) -> Optional[ReportedPositionProvider]:
        entry = self._devices.get(device_id)
        return entry[0] if entry else None

    def device_ids(self) -> List[str]:
        return sorted(self._devices)

    def ensure(self, device_id: str) -> Tuple[ReportedPositionProvider, GeofenceGuard]:
        entry = self._devices.get(device_id)
        if entry is None:
            provider = ReportedPositionProvider()
            guard = GeofenceGuard(
                LocationSource(provider),
                self.current_fence,
                on_outside=partial(self.on_outside, device_id) if self.on_outside else None,
                recheck_interval=self.recheck_interval,
                name=device_id,
            )
            entry = (provider, guard)
            self._devices[device_id] = entry
        if not entry[1].running:
            entry[1].start()
        return entry

    async def report_fix(
        self,
        device_id: str,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        connection_type: Optional[str] = None,
    ) -> GeofenceGuard:
        await self.refresh_fence()
        provider, guard = self.ensure(device_id)
        if connection_type is not None:
            provider.set_connection_type(connection_type)
        # Let a freshly started guard register its pending one-shot request
        await asyncio.sleep(0)
        provider.report(latitude, longitude, accuracy)
        return guard

    async def report_error(
        self,
        device_id: str,
        reason: LocationErrorReason,
        connection_type: Optional[str] = None,
    ) -> GeofenceGuard:
        await self.refresh_fence()
        provider, guard = self.ensure(device_id)
        if connection_type is not None:
            provider.set_connection_type(connection_type)
        await asyncio.sleep(0)
        provider.report_error(_REASON_CODES[reason])
        return guard

    async def stop_all(self) -> None:
        guards = [guard for _, guard in self._devices.values()]
        await asyncio.gather(*(guard.stop() for guard in guards), return_exceptions=True)
        self._devices.clear()
