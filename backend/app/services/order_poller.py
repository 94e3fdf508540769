"""
Order Feed Poller
Re-fetches active orders on a fixed interval, or right away when signalled,
and hands each snapshot to an ``OrderChangeNotifier``.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import session_scope
from app.models.active_order import ActiveOrder
from app.services.order_notifier import OrderChangeNotifier

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("completed", "cancelled")


def fetch_active_orders(session_factory: Callable[[], Session]) -> List[Dict[str, Any]]:
    """All orders that are still open, oldest first."""
    with session_scope(session_factory) as db:
        orders = (
            db.query(ActiveOrder)
            .filter(ActiveOrder.status.notin_(CLOSED_STATUSES))
            .order_by(ActiveOrder.created_at)
            .all()
        )
        return [o.to_dict() for o in orders]


class OrderFeedPoller:
    def __init__(
        self,
        notifier: OrderChangeNotifier,
        fetch: Callable[[], List[Dict[str, Any]]],
        interval: Optional[float] = None,
    ):
        self.notifier = notifier
        self.fetch = fetch
        self.interval = interval if interval is not None else settings.order_poll_interval_seconds
        self.poll_count = 0
        self._wake = asyncio.Event()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return self.notifier.feed.name

    def trigger_refetch(self, token: Optional[str] = None) -> None:
        """Signal listener: poll now instead of waiting for the interval."""
        logger.debug(f"[{self.name}] Order created event received, refetching")
        self._wake.set()

    async def poll_once(self) -> List[Dict[str, Any]]:
        self.poll_count += 1
        try:
            orders = await asyncio.to_thread(self.fetch)
        except Exception as e:
            logger.error(f"[{self.name}] Failed to fetch orders: {e}")
            return []
        return await self.notifier.process(orders)

    async def run(self) -> None:
        while self._running:
            try:
                await self.poll_once()
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"[{self.name}] Order poll error: {e}")

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self.run())
        logger.info(f"[{self.name}] Order polling started (every {self.interval}s)")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
