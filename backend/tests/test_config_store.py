"""Tests for geofence and pre-order configuration records."""

from datetime import time

from app.models.settings import AppSetting
from app.services.config_store import (
    GEOFENCE_KEY,
    PREORDER_KEY,
    DatabaseConfigStore,
    InMemoryConfigStore,
    clear_geofence,
    load_geofence,
    load_preorder_window,
    save_geofence,
    save_preorder_window,
)
from app.services.preorder_service import PreOrderWindow


class TestGeofenceRecord:

    def test_missing_record_is_unconfigured(self, store):
        fence = load_geofence(store)
        assert fence.configured is False
        assert fence.radius_meters == 50

    def test_save_and_load(self, store):
        save_geofence(store, 9.8965, 8.8583, 75)
        assert store.get(GEOFENCE_KEY) == {"latitude": 9.8965, "longitude": 8.8583, "radius": 75.0}

        fence = load_geofence(store)
        assert fence.configured is True
        assert fence.radius_meters == 75

    def test_save_without_radius_uses_default(self, store):
        fence = save_geofence(store, 9.8965, 8.8583)
        assert fence.radius_meters == 50

    def test_record_without_radius(self):
        store = InMemoryConfigStore({GEOFENCE_KEY: {"latitude": 9.8965, "longitude": 8.8583}})
        assert load_geofence(store).radius_meters == 50

    def test_malformed_record_falls_back(self):
        store = InMemoryConfigStore({GEOFENCE_KEY: {"latitude": "north", "longitude": 8.8583}})
        assert load_geofence(store).configured is False

    def test_non_dict_record_falls_back(self):
        store = InMemoryConfigStore({GEOFENCE_KEY: "9.8965,8.8583"})
        assert load_geofence(store).configured is False

    def test_clear(self, store):
        save_geofence(store, 9.8965, 8.8583)
        fence = clear_geofence(store)
        assert fence.configured is False
        assert store.get(GEOFENCE_KEY) is None


class TestPreorderRecord:

    def test_missing_record_is_disabled(self, store):
        window = load_preorder_window(store)
        assert window.enabled is False
        assert window.days_of_week == frozenset(range(7))

    def test_save_and_load(self, store):
        window = PreOrderWindow(enabled=True, start=time(22, 0), end=time(2, 0), days_of_week=frozenset({5, 6}))
        save_preorder_window(store, window)
        assert store.get(PREORDER_KEY)["startTime"] == "22:00"
        assert load_preorder_window(store) == window

    def test_partial_record_fills_defaults(self):
        store = InMemoryConfigStore({PREORDER_KEY: {"enabled": True}})
        window = load_preorder_window(store)
        assert window.enabled is True
        assert window.start == time(0, 0)
        assert window.end == time(23, 59)

    def test_malformed_record_falls_back(self):
        store = InMemoryConfigStore({PREORDER_KEY: {"enabled": True, "startTime": "noon"}})
        assert load_preorder_window(store) == PreOrderWindow()


class TestDatabaseConfigStore:

    def test_set_get_delete(self, session_factory, db_session):
        store = DatabaseConfigStore(session_factory)
        assert store.get(GEOFENCE_KEY) is None

        store.set(GEOFENCE_KEY, {"latitude": 1.0, "longitude": 2.0, "radius": 50})
        assert store.get(GEOFENCE_KEY)["longitude"] == 2.0

        row = db_session.query(AppSetting).filter(AppSetting.key == GEOFENCE_KEY).one()
        assert row.category == "geofence"

        store.delete(GEOFENCE_KEY)
        assert store.get(GEOFENCE_KEY) is None

    def test_overwrite_keeps_single_row(self, session_factory, db_session):
        store = DatabaseConfigStore(session_factory)
        save_geofence(store, 1.0, 2.0)
        save_geofence(store, 3.0, 4.0, 100)

        assert db_session.query(AppSetting).filter(AppSetting.key == GEOFENCE_KEY).count() == 1
        assert load_geofence(store).latitude == 3.0

    def test_delete_missing_key_is_noop(self, session_factory):
        store = DatabaseConfigStore(session_factory)
        store.delete(PREORDER_KEY)
        assert store.get(PREORDER_KEY) is None
