"""
Screen Hub
WebSocket connections for the floor screens, grouped by channel.

Kitchen displays, waiter terminals and the admin view each hold one socket on
their channel. A screen can name itself with the ``screen`` query parameter
(``/ws/kitchen?screen=pass-1``) so logs and the readiness check can tell
screens apart.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)

FLOOR_CHANNELS = ("kitchen", "waiters", "orders", "devices")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScreenInfo:
    channel: str
    screen: str
    connected_at: datetime = field(default_factory=_utcnow)
    last_ping: datetime = field(default_factory=_utcnow)


class ScreenHub:
    MAX_SCREENS_PER_CHANNEL = 200
    MAX_MESSAGE_SIZE = 65536  # 64KB

    def __init__(self):
        self.channels: Dict[str, Set[WebSocket]] = {}
        self.screens: Dict[WebSocket, ScreenInfo] = {}
        self.stats = {"messages_broadcast": 0, "send_failures": 0}

    async def join(self, websocket: WebSocket, channel: str, screen: Optional[str] = None) -> bool:
        """Accept a screen onto a channel. Returns False if the channel is full."""
        members = self.channels.setdefault(channel, set())
        if len(members) >= self.MAX_SCREENS_PER_CHANNEL:
            logger.warning(f"Screen rejected, channel '{channel}' is full", extra={"channel": channel})
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False

        await websocket.accept()
        members.add(websocket)
        info = ScreenInfo(channel=channel, screen=screen or f"{channel}-{len(members)}")
        self.screens[websocket] = info
        logger.info(
            f"Screen '{info.screen}' joined {channel}",
            extra={"channel": channel, "screen": info.screen},
        )
        return True

    def leave(self, websocket: WebSocket) -> None:
        info = self.screens.pop(websocket, None)
        if info is None:
            return
        self.channels.get(info.channel, set()).discard(websocket)
        logger.info(
            f"Screen '{info.screen}' left {info.channel}",
            extra={"channel": info.channel, "screen": info.screen},
        )

    def touch(self, websocket: WebSocket) -> None:
        info = self.screens.get(websocket)
        if info is not None:
            info.last_ping = _utcnow()

    def channel_of(self, websocket: WebSocket) -> Optional[str]:
        info = self.screens.get(websocket)
        return info.channel if info else None

    async def broadcast(self, message: Dict[str, Any], channel: str) -> int:
        """Send to every screen on a channel; returns how many received it.

        Screens that fail a send are dropped from the hub.
        """
        members = list(self.channels.get(channel, ()))
        if not members:
            return 0

        delivered = 0
        for websocket in members:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                self.stats["send_failures"] += 1
                logger.debug(f"Send to screen failed: {e}", extra={"channel": channel})
                self.leave(websocket)

        self.stats["messages_broadcast"] += 1
        return delivered

    def count(self, channel: Optional[str] = None) -> int:
        if channel:
            return len(self.channels.get(channel, ()))
        return len(self.screens)

    def summary(self) -> Dict[str, Any]:
        return {
            "screens": {channel: self.count(channel) for channel in FLOOR_CHANNELS},
            **self.stats,
        }
