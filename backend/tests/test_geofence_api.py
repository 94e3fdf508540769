"""Tests for geofence settings and tablet guard endpoints."""

from fastapi.testclient import TestClient

RESTAURANT_LAT = 9.8965
RESTAURANT_LON = 8.8583
FAR_LAT = RESTAURANT_LAT + 0.0045  # ~500 m north


class TestGeofenceSettings:

    def test_unconfigured_by_default(self, client: TestClient):
        response = client.get("/api/v1/geofence/")
        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is False
        assert data["latitude"] is None
        assert data["radius"] == 50

    def test_set_geofence(self, client: TestClient, configured_fence):
        assert configured_fence["configured"] is True

        data = client.get("/api/v1/geofence/").json()
        assert data["latitude"] == RESTAURANT_LAT
        assert data["longitude"] == RESTAURANT_LON

    def test_invalid_latitude(self, client: TestClient):
        response = client.put("/api/v1/geofence/", json={"latitude": 91, "longitude": 0})
        assert response.status_code == 422
        assert "Latitude must be between -90 and 90" in response.text

    def test_invalid_radius(self, client: TestClient):
        response = client.put(
            "/api/v1/geofence/",
            json={"latitude": RESTAURANT_LAT, "longitude": RESTAURANT_LON, "radius": 5000},
        )
        assert response.status_code == 422
        assert "Radius must be between 1 and 1000 meters" in response.text

    def test_clear_geofence(self, client: TestClient, configured_fence):
        response = client.delete("/api/v1/geofence/")
        assert response.status_code == 200
        assert response.json()["configured"] is False
        assert client.get("/api/v1/geofence/").json()["configured"] is False

    def test_check_without_fence_allows(self, client: TestClient):
        response = client.post("/api/v1/geofence/check", json={"latitude": 51.5, "longitude": -0.12})
        data = response.json()
        assert data["within"] is True
        assert data["configured"] is False
        assert data["distance_meters"] is None

    def test_check_outside(self, client: TestClient, configured_fence):
        response = client.post("/api/v1/geofence/check", json={"latitude": FAR_LAT, "longitude": RESTAURANT_LON})
        data = response.json()
        assert data["within"] is False
        assert 490 < data["distance_meters"] < 510

    def test_check_inside(self, client: TestClient, configured_fence):
        response = client.post(
            "/api/v1/geofence/check", json={"latitude": RESTAURANT_LAT, "longitude": RESTAURANT_LON}
        )
        assert response.json()["within"] is True


class TestDeviceGuard:

    def test_inside_report(self, client: TestClient, configured_fence):
        response = client.post(
            "/api/v1/devices/tablet-1/location",
            json={"latitude": RESTAURANT_LAT, "longitude": RESTAURANT_LON, "accuracy": 10},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "inside"
        assert data["decision"]["blocked"] is False

    def test_outside_report_blocks(self, client: TestClient, configured_fence):
        response = client.post(
            "/api/v1/devices/tablet-1/location",
            json={"latitude": FAR_LAT, "longitude": RESTAURANT_LON},
        )
        data = response.json()
        assert data["state"] == "outside"
        assert data["decision"]["blocked"] is True
        assert data["decision"]["location"] == f"Lat: {FAR_LAT:.6f}, Lon: {RESTAURANT_LON:.6f}"

    def test_no_fence_never_blocks(self, client: TestClient):
        response = client.post("/api/v1/devices/tablet-1/location", json={"latitude": 51.5, "longitude": -0.12})
        assert response.json()["state"] == "inside"

    def test_error_report_fails_open(self, client: TestClient, configured_fence):
        response = client.post("/api/v1/devices/tablet-1/location", json={"error": "permission_denied"})
        data = response.json()
        assert data["state"] == "inside"
        assert data["location_error"] == "Location permission denied"
        assert data["decision"]["warning"] == "Location permission denied"

    def test_error_on_wifi_has_no_warning(self, client: TestClient, configured_fence):
        response = client.post(
            "/api/v1/devices/tablet-1/location",
            json={"error": "timeout", "connection_type": "wifi"},
        )
        data = response.json()
        assert data["state"] == "inside"
        assert data["location_error"] is None

    def test_report_needs_fix_or_error(self, client: TestClient):
        response = client.post("/api/v1/devices/tablet-1/location", json={"latitude": 9.8})
        assert response.status_code == 422

    def test_guard_status(self, client: TestClient, configured_fence):
        client.post("/api/v1/devices/tablet-1/location", json={"latitude": FAR_LAT, "longitude": RESTAURANT_LON})

        response = client.get("/api/v1/devices/tablet-1/guard")
        assert response.status_code == 200
        assert response.json()["state"] == "outside"

        devices = client.get("/api/v1/devices/").json()
        assert devices == [{"device_id": "tablet-1", "state": "outside", "location_error": None}]

    def test_unknown_device(self, client: TestClient):
        assert client.get("/api/v1/devices/ghost/guard").status_code == 404
        assert client.post("/api/v1/devices/ghost/guard/recheck").status_code == 404

    def test_recheck(self, client: TestClient, configured_fence):
        client.post("/api/v1/devices/tablet-1/location", json={"latitude": RESTAURANT_LAT, "longitude": RESTAURANT_LON})

        response = client.post("/api/v1/devices/tablet-1/guard/recheck")
        assert response.status_code == 202
        assert response.json()["running"] is True

    def test_returning_device_is_unblocked(self, client: TestClient, configured_fence):
        client.post("/api/v1/devices/tablet-1/location", json={"latitude": FAR_LAT, "longitude": RESTAURANT_LON})
        response = client.post(
            "/api/v1/devices/tablet-1/location",
            json={"latitude": RESTAURANT_LAT, "longitude": RESTAURANT_LON},
        )
        assert response.json()["state"] == "inside"

    def test_outside_device_is_broadcast(self, client: TestClient, configured_fence):
        with client.websocket_connect("/ws/devices") as ws:
            client.post(
                "/api/v1/devices/bar-tablet/location",
                json={"latitude": FAR_LAT, "longitude": RESTAURANT_LON},
            )
            message = ws.receive_json()

        assert message["type"] == "device_outside"
        assert message["device_id"] == "bar-tablet"
        assert message["location"]["latitude"] == FAR_LAT
