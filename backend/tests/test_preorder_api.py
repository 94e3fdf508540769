"""Tests for pre-order settings and status endpoints."""

from fastapi.testclient import TestClient

BUSINESS_HOURS = {
    "enabled": True,
    "start_time": "09:00",
    "end_time": "17:00",
    "days_of_week": [6, 1, 2, 3, 4, 5, 5],
}


class TestPreorderSettings:

    def test_defaults(self, client: TestClient):
        response = client.get("/api/v1/preorder/settings")
        assert response.status_code == 200
        assert response.json() == {
            "enabled": False,
            "start_time": "00:00",
            "end_time": "23:59",
            "days_of_week": [0, 1, 2, 3, 4, 5, 6],
            "crosses_midnight": False,
        }

    def test_update(self, client: TestClient):
        response = client.put("/api/v1/preorder/settings", json=BUSINESS_HOURS)
        assert response.status_code == 200
        assert response.json()["days_of_week"] == [1, 2, 3, 4, 5, 6]

        saved = client.get("/api/v1/preorder/settings").json()
        assert saved["enabled"] is True
        assert saved["start_time"] == "09:00"

    def test_overnight_window(self, client: TestClient):
        response = client.put(
            "/api/v1/preorder/settings",
            json={"enabled": True, "start_time": "22:00", "end_time": "02:00"},
        )
        assert response.json()["crosses_midnight"] is True

    def test_enabled_needs_a_day(self, client: TestClient):
        response = client.put("/api/v1/preorder/settings", json={"enabled": True, "days_of_week": []})
        assert response.status_code == 422
        assert "Please select at least one day" in response.text

    def test_disabled_with_no_days_is_accepted(self, client: TestClient):
        response = client.put("/api/v1/preorder/settings", json={"enabled": False, "days_of_week": []})
        assert response.status_code == 200

    def test_invalid_time(self, client: TestClient):
        response = client.put("/api/v1/preorder/settings", json={"enabled": True, "start_time": "25:00"})
        assert response.status_code == 422

    def test_invalid_day(self, client: TestClient):
        response = client.put("/api/v1/preorder/settings", json={"days_of_week": [7]})
        assert response.status_code == 422


class TestPreorderStatus:

    def test_disabled(self, client: TestClient):
        data = client.get("/api/v1/preorder/status").json()
        assert data["enabled"] is False
        assert data["allowed"] is False
        assert data["opens_in"] is None

    def test_open(self, client: TestClient):
        client.put("/api/v1/preorder/settings", json=BUSINESS_HOURS)

        # 2024-01-02 is a Tuesday
        data = client.get("/api/v1/preorder/status", params={"at": "2024-01-02T15:00:00"}).json()
        assert data["allowed"] is True
        assert data["closes_in_seconds"] == 2 * 3600
        assert data["closes_in"] == "2 hours 0 minutes"
        assert data["now"].startswith("2024-01-02T15:00:00")

    def test_closed_opens_next_morning(self, client: TestClient):
        client.put("/api/v1/preorder/settings", json=BUSINESS_HOURS)

        data = client.get("/api/v1/preorder/status", params={"at": "2024-01-02T20:00:00"}).json()
        assert data["allowed"] is False
        assert data["opens_in_seconds"] == 13 * 3600
        assert data["opens_in"] == "13 hours 0 minutes"

    def test_aware_time_is_converted_to_restaurant_time(self, client: TestClient):
        client.put("/api/v1/preorder/settings", json=BUSINESS_HOURS)

        # 07:30 UTC is 08:30 in Lagos, half an hour before opening
        data = client.get("/api/v1/preorder/status", params={"at": "2024-01-02T07:30:00+00:00"}).json()
        assert data["allowed"] is False
        assert data["opens_in_seconds"] == 30 * 60
