"""Tests for the floor screen hub and log formatting."""

import json
import logging

import pytest

from app.core.log_config import JSONFormatter, configure_logging
from app.services.screen_hub import ScreenHub


class FakeScreen:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.closed_with = None
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def close(self, code: int = 1000):
        self.closed_with = code

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


class TestScreenHub:

    @pytest.mark.asyncio
    async def test_join_names_screens(self):
        hub = ScreenHub()
        named, unnamed = FakeScreen(), FakeScreen()

        assert await hub.join(named, "kitchen", "pass-1") is True
        assert await hub.join(unnamed, "kitchen") is True

        assert named.accepted
        assert hub.screens[named].screen == "pass-1"
        assert hub.screens[unnamed].screen == "kitchen-2"
        assert hub.channel_of(named) == "kitchen"
        assert hub.count("kitchen") == 2

    @pytest.mark.asyncio
    async def test_broadcast_stays_on_channel(self):
        hub = ScreenHub()
        kitchen, waiter = FakeScreen(), FakeScreen()
        await hub.join(kitchen, "kitchen")
        await hub.join(waiter, "waiters")

        delivered = await hub.broadcast({"type": "play_tones"}, "kitchen")

        assert delivered == 1
        assert kitchen.sent == [{"type": "play_tones"}]
        assert waiter.sent == []
        assert await hub.broadcast({"type": "noop"}, "devices") == 0

    @pytest.mark.asyncio
    async def test_failed_screen_is_dropped(self):
        hub = ScreenHub()
        healthy, broken = FakeScreen(), FakeScreen(fail=True)
        await hub.join(healthy, "waiters")
        await hub.join(broken, "waiters")

        assert await hub.broadcast({"type": "notification"}, "waiters") == 1
        assert hub.count("waiters") == 1
        assert broken not in hub.screens
        assert hub.stats == {"messages_broadcast": 1, "send_failures": 1}

    @pytest.mark.asyncio
    async def test_full_channel_rejects(self):
        hub = ScreenHub()
        hub.MAX_SCREENS_PER_CHANNEL = 1
        await hub.join(FakeScreen(), "kitchen")

        extra = FakeScreen()
        assert await hub.join(extra, "kitchen") is False
        assert extra.accepted is False
        assert extra.closed_with == 1008
        assert hub.count("kitchen") == 1

    @pytest.mark.asyncio
    async def test_leave(self):
        hub = ScreenHub()
        screen = FakeScreen()
        await hub.join(screen, "devices")

        hub.leave(screen)
        hub.leave(screen)

        assert hub.count() == 0
        assert hub.channel_of(screen) is None

    def test_summary_lists_every_channel(self):
        summary = ScreenHub().summary()
        assert summary["screens"] == {"kitchen": 0, "waiters": 0, "orders": 0, "devices": 0}
        assert summary["messages_broadcast"] == 0


class TestLogConfig:

    @pytest.fixture
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield root
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_line_carries_device_context(self):
        record = logging.LogRecord(
            "app.services.floor_runtime", logging.WARNING, __file__, 10,
            "Device %s left the premises", ("bar-tablet",), None,
        )
        record.device_id = "bar-tablet"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["msg"] == "Device bar-tablet left the premises"
        assert entry["device_id"] == "bar-tablet"
        assert "channel" not in entry

    def test_production_uses_json(self, restore_root_logger):
        handler = configure_logging(debug=False, level="WARNING")

        assert restore_root_logger.handlers == [handler]
        assert isinstance(handler.formatter, JSONFormatter)
        assert restore_root_logger.level == logging.WARNING

    def test_debug_uses_plain_text(self, restore_root_logger):
        handler = configure_logging(debug=True, level="DEBUG")
        assert not isinstance(handler.formatter, JSONFormatter)
