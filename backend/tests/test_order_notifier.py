"""Tests for new-order detection on the kitchen and waiter feeds."""

import pytest

from app.services.order_notifier import (
    KITCHEN_FEED,
    WAITER_CASH_FEED,
    OrderChangeNotifier,
    Tracking,
    Uninitialized,
    detect_new_orders,
    is_kitchen_order,
    is_pending_cash_order,
    short_order_ref,
    summarize_cash,
    summarize_kitchen,
)


def order(order_id, **fields):
    data = {
        "id": order_id,
        "customer": "Guest",
        "status": "pending",
        "payment_method": "transfer",
        "payment_confirmed": True,
        "total": 0,
    }
    data.update(fields)
    return data


def cash(order_id, total=0, **fields):
    data = {"payment_method": "cash", "payment_confirmed": False, "total": total}
    data.update(fields)
    return order(order_id, **data)


class TestDetectNewOrders:

    def test_first_snapshot_is_baseline(self):
        delta = detect_new_orders(set(), [order("a"), order("b")])
        assert delta.new_orders == []
        assert delta.updated_ids == {"a", "b"}

    def test_reports_unseen_ids(self):
        delta = detect_new_orders({"a", "b"}, [order("a"), order("b"), order("c")])
        assert [o["id"] for o in delta.new_orders] == ["c"]
        assert delta.updated_ids == {"a", "b", "c"}

    def test_finished_orders_drop_out(self):
        delta = detect_new_orders({"a", "b"}, [order("b")])
        assert delta.new_orders == []
        assert delta.updated_ids == {"b"}

    def test_order_that_reappears_is_new_again(self):
        delta = detect_new_orders({"b"}, [order("a"), order("b")])
        assert [o["id"] for o in delta.new_orders] == ["a"]


class TestFeeds:

    def test_kitchen_excludes_unconfirmed_cash(self):
        assert is_kitchen_order(order("a")) is True
        assert is_kitchen_order(cash("b")) is False
        assert is_kitchen_order(cash("c", payment_confirmed=True)) is True
        assert is_kitchen_order(order("d", status="completed")) is False
        assert is_kitchen_order(order("e", status="preparing")) is True

    def test_waiter_cash_feed(self):
        assert is_pending_cash_order(cash("a")) is True
        assert is_pending_cash_order(cash("b", status="confirmed")) is True
        assert is_pending_cash_order(cash("c", payment_confirmed=True)) is False
        assert is_pending_cash_order(order("d")) is False

    def test_short_ref(self):
        assert short_order_ref(order("0f3a9c2b7d4e11eeabcd1234")) == "ABCD1234"

    def test_kitchen_message(self):
        assert summarize_kitchen([order("abc12345678", customer="Amaka")]) == "New order #12345678 from Amaka"
        assert summarize_kitchen([order("a"), order("b"), order("c")]) == "3 new orders received"

    def test_cash_message(self):
        assert summarize_cash([cash("ord00001", total=4500)]) == "Cash payment needed for order #ORD00001 - ₦4,500"
        assert (
            summarize_cash([cash("a", total=1000), cash("b", total=2500.5)])
            == "2 cash orders need payment confirmation - Total: ₦3,500.50"
        )


class TestOrderChangeNotifier:

    def test_starts_uninitialized(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        assert isinstance(notifier.state, Uninitialized)

    def test_first_non_empty_snapshot_is_silent(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        assert notifier.observe([order("a"), order("b")]) == []
        assert notifier.state == Tracking(frozenset({"a", "b"}))

    def test_empty_snapshots_before_first_order_stay_uninitialized(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        assert notifier.observe([]) == []
        assert isinstance(notifier.state, Uninitialized)

    def test_new_order_is_reported_once(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        notifier.observe([order("a")])
        assert [o["id"] for o in notifier.observe([order("a"), order("b")])] == ["b"]
        assert notifier.observe([order("a"), order("b")]) == []

    def test_order_after_quiet_spell_is_announced(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        notifier.observe([order("a")])
        assert notifier.observe([]) == []
        assert [o["id"] for o in notifier.observe([order("b")])] == ["b"]

    def test_feed_filter_applies_before_diff(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        notifier.observe([order("a")])
        # Unconfirmed cash order is not the kitchen's business yet
        assert notifier.observe([order("a"), cash("b")]) == []
        # Once the waiter confirms payment it shows up as new
        new = notifier.observe([order("a"), cash("b", payment_confirmed=True)])
        assert [o["id"] for o in new] == ["b"]

    def test_reset(self):
        notifier = OrderChangeNotifier(KITCHEN_FEED)
        notifier.observe([order("a")])
        notifier.reset()
        assert isinstance(notifier.state, Uninitialized)

    @pytest.mark.asyncio
    async def test_process_alerts_once_per_batch(self):
        calls = []

        async def alert(feed, new_orders, message):
            calls.append((feed.name, [o["id"] for o in new_orders], message))

        notifier = OrderChangeNotifier(WAITER_CASH_FEED, alert=alert)
        await notifier.process([cash("a", total=100)])
        await notifier.process([cash("a", total=100), cash("b", total=200), cash("c", total=300)])

        assert calls == [
            ("waiter-cash", ["b", "c"], "2 cash orders need payment confirmation - Total: ₦500"),
        ]

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_break_tracking(self):
        async def alert(feed, new_orders, message):
            raise RuntimeError("speaker unplugged")

        notifier = OrderChangeNotifier(KITCHEN_FEED, alert=alert)
        await notifier.process([order("a")])
        new = await notifier.process([order("a"), order("b")])

        assert [o["id"] for o in new] == ["b"]
        assert notifier.state == Tracking(frozenset({"a", "b"}))
