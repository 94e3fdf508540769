"""
Order Signal Bus
Tells every open screen to re-fetch orders now instead of at its next poll.

A signal goes out three ways. The storage record is for other processes and
for clients that poll it. In-process listeners wake the local pollers. A
WebSocket event goes to the open screens.

Each bus also watches the storage record, so a signal published by another
worker wakes this worker's listeners too.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional

from app.core.config import settings
from app.services.audio_alert import Broadcast
from app.services.config_store import ORDER_SIGNAL_KEY, ConfigStore

logger = logging.getLogger(__name__)

SIGNAL_CHANNEL = "orders"

Listener = Callable[[str], None]


class OrderSignalBus:
    def __init__(
        self,
        store: ConfigStore,
        broadcast: Optional[Broadcast] = None,
        check_interval: Optional[float] = None,
    ):
        self.store = store
        self.broadcast = broadcast
        self.check_interval = (
            check_interval if check_interval is not None
            else settings.order_signal_check_interval_seconds
        )
        self._listeners: List[Listener] = []
        self._last_token: Optional[str] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, token: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(token)
            except Exception as e:
                logger.error(f"Order signal listener failed: {e}")

    async def publish(self) -> str:
        token = str(int(time.time() * 1000))
        self._last_token = token
        self.store.set(ORDER_SIGNAL_KEY, {"token": token})

        self._notify(token)

        if self.broadcast is not None:
            try:
                await self.broadcast({"type": "order_created", "token": token}, SIGNAL_CHANNEL)
            except Exception as e:
                logger.warning(f"WebSocket broadcast error: {e}")

        logger.debug(f"Order created signal published ({token})")
        return token

    def peek(self) -> Optional[str]:
        value = self.store.get(ORDER_SIGNAL_KEY)
        return value.get("token") if value else None

    def consume(self) -> Optional[str]:
        """Read and clear the stored signal."""
        token = self.peek()
        if token is not None:
            self.store.delete(ORDER_SIGNAL_KEY)
        return token

    async def check_stored(self) -> Optional[str]:
        """Wake listeners if the stored token changed since this bus last saw it.

        Returns the new token, or None when there is nothing new.
        """
        token = await asyncio.to_thread(self.peek)
        if token is None or token == self._last_token:
            return None
        self._last_token = token
        logger.debug(f"Order created signal received from storage ({token})")
        self._notify(token)
        return token

    async def _watch_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.check_interval)
                await self.check_stored()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"Order signal check failed: {e}")

    def start(self) -> None:
        """Start watching the storage record. Must be called from a running event loop."""
        if self._running:
            return
        # Signals from before startup are covered by the pollers' first fetch
        self._last_token = self.peek()
        self._running = True
        self._task = asyncio.create_task(self._watch_loop())
        logger.info(f"Order signal watch started (every {self.check_interval}s)")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
