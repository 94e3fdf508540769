"""
Floor Runtime
Wires the long-lived pieces together for one application instance: the
configuration store, per-tablet geofence guards, alert channels, the order
signal bus and the order pollers.
"""
import logging
from functools import partial
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.services.audio_alert import Broadcast
from app.services.config_store import ConfigStore, DatabaseConfigStore, load_geofence
from app.services.geofence_guard import GuardRegistry
from app.services.location_source import DeviceLocationSample
from app.services.notifications import AlertHub
from app.services.order_notifier import FEEDS, OrderChangeNotifier
from app.services.order_poller import OrderFeedPoller, fetch_active_orders
from app.services.order_signal import OrderSignalBus

logger = logging.getLogger(__name__)

DEVICES_CHANNEL = "devices"
ALERT_CHANNELS = sorted({feed.channel for feed in FEEDS.values()})


class FloorRuntime:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        broadcast: Broadcast,
        store: Optional[ConfigStore] = None,
        poll_interval: Optional[float] = None,
        recheck_interval: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.broadcast = broadcast
        self.store = store or DatabaseConfigStore(session_factory)

        self.guards = GuardRegistry(
            fence_loader=lambda: load_geofence(self.store),
            on_outside=self._device_outside,
            recheck_interval=recheck_interval,
        )
        self.alerts = AlertHub(broadcast, ALERT_CHANNELS)
        self.signals = OrderSignalBus(self.store, broadcast)

        self.pollers: Dict[str, OrderFeedPoller] = {}
        for name, feed in FEEDS.items():
            poller = OrderFeedPoller(
                OrderChangeNotifier(feed, alert=self.alerts.alert),
                partial(fetch_active_orders, session_factory),
                interval=poll_interval,
            )
            self.signals.add_listener(poller.trigger_refetch)
            self.pollers[name] = poller

    async def _device_outside(self, device_id: str, sample: DeviceLocationSample) -> None:
        logger.warning(
            f"[Geofence] Device {device_id} left the premises at "
            f"({sample.latitude}, {sample.longitude})",
            extra={"device_id": device_id},
        )
        await self.broadcast({
            "type": "device_outside",
            "device_id": device_id,
            "location": sample.to_dict(),
        }, DEVICES_CHANNEL)

    def start(self) -> None:
        for poller in self.pollers.values():
            poller.start()
        self.signals.start()

    async def stop(self) -> None:
        await self.signals.stop()
        for poller in self.pollers.values():
            await poller.stop()
        await self.guards.stop_all()
