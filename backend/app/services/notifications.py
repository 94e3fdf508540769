"""
Staff Notification Service
Desktop notifications and chimes for the kitchen display and waiter terminals.
"""
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.services.audio_alert import NEW_ORDER_CHIME, AudioSink, Broadcast, BroadcastAudioOutput
from app.services.order_notifier import OrderFeed

logger = logging.getLogger(__name__)


class NotificationPermission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class DesktopNotification:
    title: str
    body: str
    tag: str
    icon: str = "/favicon.ico"
    badge: str = "/favicon.ico"
    require_interaction: bool = False
    auto_dismiss_seconds: int = 5
    focus_on_click: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DesktopNotifier:
    """Desktop notifications for the screens on one channel.

    Permission lives in the screens' browsers. Screens report it; asking is
    lazy and never waits for an answer.
    """

    def __init__(self, channel: str, broadcast: Broadcast, supported: bool = True):
        self.channel = channel
        self.broadcast = broadcast
        self.supported = supported
        self.permission = NotificationPermission.DEFAULT

    def set_permission(self, permission: str) -> None:
        try:
            self.permission = NotificationPermission(permission)
        except ValueError:
            logger.warning(f"Ignoring unknown notification permission '{permission}'")

    async def request_permission(self) -> bool:
        if not self.supported:
            logger.info(f"Notifications not supported on channel '{self.channel}'")
            return False
        if self.permission == NotificationPermission.GRANTED:
            return True
        if self.permission == NotificationPermission.DEFAULT:
            await self.broadcast({"type": "request_notification_permission"}, self.channel)
        return False

    async def show(self, title: str, body: str, tag: str) -> Optional[DesktopNotification]:
        if self.permission != NotificationPermission.GRANTED:
            return None
        notification = DesktopNotification(
            title=title,
            body=body,
            tag=tag,
            auto_dismiss_seconds=settings.notification_auto_dismiss_seconds,
        )
        await self.broadcast({"type": "notification", **notification.to_dict()}, self.channel)
        return notification


async def notify_with_sound(
    sink: AudioSink,
    notifier: DesktopNotifier,
    title: str,
    body: str,
    tag: str,
) -> Dict[str, bool]:
    """Chime first, then the desktop notification if permitted."""
    result = {"sound": False, "notification": False}

    try:
        result["sound"] = await sink.play_tones(NEW_ORDER_CHIME)
    except Exception as e:
        logger.error(f"Error playing sound: {e}")

    try:
        if await notifier.request_permission():
            result["notification"] = await notifier.show(title, body, tag) is not None
    except Exception as e:
        logger.error(f"Error showing notification: {e}")

    return result


class AlertHub:
    """Audio sink and notifier per screen channel."""

    def __init__(self, broadcast: Broadcast, channels: List[str]):
        self.broadcast = broadcast
        self.sinks: Dict[str, AudioSink] = {}
        self.notifiers: Dict[str, DesktopNotifier] = {}
        for channel in channels:
            self.sinks[channel] = AudioSink(self._output_factory(channel))
            self.notifiers[channel] = DesktopNotifier(channel, broadcast)

    def _output_factory(self, channel: str):
        return lambda: BroadcastAudioOutput(channel, self.broadcast)

    def arm(self, channel: str) -> bool:
        sink = self.sinks.get(channel)
        if sink is None:
            raise KeyError(channel)
        return sink.arm()

    def status(self) -> Dict[str, Dict[str, str]]:
        return {
            channel: {
                "audio": self.sinks[channel].state.value,
                "notifications": self.notifiers[channel].permission.value,
            }
            for channel in self.sinks
        }

    async def alert(self, feed: OrderFeed, new_orders: List[Any], message: str) -> Dict[str, bool]:
        """Alert callback for ``OrderChangeNotifier``."""
        return await notify_with_sound(
            self.sinks[feed.channel],
            self.notifiers[feed.channel],
            feed.title,
            message,
            feed.tag,
        )
