"""
Order Change Notifier
Detects orders that appeared since the previous poll and raises one alert per batch.
"""
import logging
from dataclasses import dataclass
from typing import AbstractSet, Any, Awaitable, Callable, FrozenSet, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


def order_id(order: Any) -> str:
    if isinstance(order, dict):
        return str(order["id"])
    return str(order.id)


def short_order_ref(order: Any) -> str:
    """Last 8 characters of the id, upper-cased, as printed on tickets."""
    return order_id(order)[-8:].upper()


def _field(order: Any, name: str, default: Any = None) -> Any:
    if isinstance(order, dict):
        return order.get(name, default)
    return getattr(order, name, default)


@dataclass(frozen=True)
class OrderDelta:
    new_orders: List[Any]
    updated_ids: FrozenSet[str]


def detect_new_orders(previous_ids: AbstractSet[str], current_orders: Sequence[Any]) -> OrderDelta:
    """Diff a snapshot against the previously seen ids.

    The first non-empty snapshot after an empty id set only establishes the
    baseline. Otherwise every order whose id was not seen before is new. The
    returned ids replace the previous set, so finished orders drop out.
    """
    current_ids = frozenset(order_id(o) for o in current_orders)

    if not previous_ids and current_orders:
        return OrderDelta(new_orders=[], updated_ids=current_ids)

    new_orders = [o for o in current_orders if order_id(o) not in previous_ids]
    return OrderDelta(new_orders=new_orders, updated_ids=current_ids)


# ============== Tracker state ==============

class Uninitialized:
    """No snapshot seen yet."""

    def __repr__(self) -> str:
        return "Uninitialized()"


@dataclass(frozen=True)
class Tracking:
    ids: FrozenSet[str]


UNINITIALIZED = Uninitialized()
TrackerState = Union[Uninitialized, Tracking]


# ============== Feeds ==============

def _naira(amount: float) -> str:
    amount = float(amount or 0)
    if amount.is_integer():
        return f"₦{int(amount):,}"
    return f"₦{amount:,.2f}"


def is_kitchen_order(order: Any) -> bool:
    """Pending or preparing; cash orders only once payment is confirmed."""
    if _field(order, "status") not in ("pending", "preparing"):
        return False
    if _field(order, "payment_method") == "cash":
        return _field(order, "payment_confirmed") is True
    return True


def is_pending_cash_order(order: Any) -> bool:
    return (
        _field(order, "payment_method") == "cash"
        and not _field(order, "payment_confirmed")
        and _field(order, "status") in ("pending", "confirmed")
    )


def summarize_kitchen(new_orders: List[Any]) -> str:
    if len(new_orders) == 1:
        order = new_orders[0]
        return f"New order #{short_order_ref(order)} from {_field(order, 'customer')}"
    return f"{len(new_orders)} new orders received"


def summarize_cash(new_orders: List[Any]) -> str:
    if len(new_orders) == 1:
        order = new_orders[0]
        return (
            f"Cash payment needed for order #{short_order_ref(order)} - "
            f"{_naira(_field(order, 'total', 0))}"
        )
    total = sum(float(_field(o, "total", 0) or 0) for o in new_orders)
    return f"{len(new_orders)} cash orders need payment confirmation - Total: {_naira(total)}"


@dataclass(frozen=True)
class OrderFeed:
    name: str
    channel: str
    title: str
    tag: str
    include: Callable[[Any], bool]
    summarize: Callable[[List[Any]], str]


KITCHEN_FEED = OrderFeed(
    name="kitchen",
    channel="kitchen",
    title="🍽️ New Order Received!",
    tag="kitchen-new-order",
    include=is_kitchen_order,
    summarize=summarize_kitchen,
)

WAITER_CASH_FEED = OrderFeed(
    name="waiter-cash",
    channel="waiters",
    title="💰 Cash Payment Required!",
    tag="waiter-cash-payment",
    include=is_pending_cash_order,
    summarize=summarize_cash,
)

FEEDS = {feed.name: feed for feed in (KITCHEN_FEED, WAITER_CASH_FEED)}

AlertCallback = Callable[[OrderFeed, List[Any], str], Awaitable[Any]]


class OrderChangeNotifier:
    """Tracks one feed across polls and alerts once per batch of new orders.

    Only the first non-empty snapshot since startup is silent. An empty
    snapshot keeps the previous ids, so orders arriving after a quiet spell
    are still announced.
    """

    def __init__(self, feed: OrderFeed, alert: Optional[AlertCallback] = None):
        self.feed = feed
        self.alert = alert
        self.state: TrackerState = UNINITIALIZED

    def observe(self, orders: Sequence[Any]) -> List[Any]:
        """Advance the tracker with a fresh snapshot and return new orders."""
        current = [o for o in orders if self.feed.include(o)]

        if isinstance(self.state, Uninitialized):
            if current:
                logger.info(f"[{self.feed.name}] Initializing order tracking with {len(current)} orders")
                self.state = Tracking(frozenset(order_id(o) for o in current))
            return []

        if not current:
            return []

        delta = detect_new_orders(self.state.ids, current)
        logger.debug(
            f"[{self.feed.name}] Checking for new orders: total={len(current)} "
            f"previous={len(self.state.ids)} new={[order_id(o) for o in delta.new_orders]}"
        )
        self.state = Tracking(delta.updated_ids)
        return delta.new_orders

    async def process(self, orders: Sequence[Any]) -> List[Any]:
        """Observe a snapshot and fire the alert for any new batch."""
        new_orders = self.observe(orders)
        if new_orders and self.alert is not None:
            message = self.feed.summarize(new_orders)
            logger.info(f"[{self.feed.name}] New orders detected: {message}")
            try:
                await self.alert(self.feed, new_orders, message)
            except Exception as e:
                logger.error(f"[{self.feed.name}] Error sending new-order alert: {e}")
        return new_orders

    def reset(self) -> None:
        self.state = UNINITIALIZED
