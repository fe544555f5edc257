from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from twinfeed.api.forecast import to_local_naive
from twinfeed.main import app


@pytest.fixture
def client():
    return TestClient(app)


def _feed(id, subject, timestamp, volume_ml=130):
    return {"id": id, "subject": subject, "timestamp": timestamp, "type": "bottle", "volume_ml": volume_ml}


class TestProfilesEndpoint:
    def test_lists_both_twins(self, client):
        response = client.get("/forecast/profiles")

        assert response.status_code == 200
        profiles = response.json()["profiles"]
        assert [p["key"] for p in profiles] == ["colette", "isaure"]
        assert len(profiles[0]["slots"]) == 5


class TestForecastEndpoint:
    def test_empty_snapshot(self, client):
        response = client.post("/forecast", json={"now": "2026-03-10T10:00:00"})

        assert response.status_code == 200
        body = response.json()
        assert [s["subject"] for s in body["subjects"]] == ["colette", "isaure"]
        assert all(s["prediction"]["profile_fallback"] for s in body["subjects"])

    def test_forecast_with_events(self, client):
        payload = {
            "now": "2026-03-10T14:10:00",
            "feeds": [
                _feed("f1", "colette", "2026-03-10T07:00:00", 150),
                _feed("f2", "colette", "2026-03-10T10:30:00", 140),
                _feed("f3", "colette", "2026-03-10T14:00:00", 50),
                _feed("f4", "isaure", "2026-03-10T13:00:00"),
            ],
            "sleeps": [
                {"id": "s1", "subject": "colette", "start": "2026-03-10T12:00:00", "end": "2026-03-10T12:40:00"},
            ],
        }
        response = client.post("/forecast", json=payload)

        assert response.status_code == 200
        body = response.json()
        colette = body["subjects"][0]
        assert colette["prediction"]["timing"]["predicted_time"] >= "2026-03-10T14:10:00"
        assert colette["sleep"]["total_sleep_today_min"] == 40
        assert "VERY_SMALL_FEED" in [a["type"] for a in body["alerts"]]
        assert body["sync"] is not None

    def test_unknown_subject_in_events(self, client):
        payload = {"feeds": [_feed("f1", "bob", "2026-03-10T07:00:00")]}
        assert client.post("/forecast", json=payload).status_code == 400

    def test_negative_volume_rejected(self, client):
        payload = {"feeds": [_feed("f1", "colette", "2026-03-10T07:00:00", -10)]}
        assert client.post("/forecast", json=payload).status_code == 422

    def test_mixed_timezone_sleep_accepted(self, client):
        payload = {
            "now": "2026-03-10T14:00:00",
            "sleeps": [
                {"id": "s1", "subject": "colette", "start": "2026-03-10T12:00:00+01:00", "end": "2026-03-10T13:00:00"},
            ],
        }
        response = client.post("/forecast", json=payload)

        assert response.status_code == 200
        assert response.json()["subjects"][0]["sleep"]["total_sleep_today_min"] == 60

    def test_mixed_timezone_sleep_ending_before_start_rejected(self, client):
        payload = {"sleeps": [
            {"id": "s1", "subject": "colette", "start": "2026-03-10T12:00:00", "end": "2026-03-10T11:30:00+01:00"},
        ]}
        assert client.post("/forecast", json=payload).status_code == 422

    def test_sleep_ending_before_start_rejected(self, client):
        payload = {"sleeps": [
            {"id": "s1", "subject": "colette", "start": "2026-03-10T12:00:00", "end": "2026-03-10T11:00:00"},
        ]}
        assert client.post("/forecast", json=payload).status_code == 422


class TestNextFeedEndpoint:
    def test_next_feed(self, client):
        payload = {"now": "2026-03-10T14:10:00", "feeds": [_feed("f1", "isaure", "2026-03-10T13:00:00")]}
        response = client.post("/forecast/isaure/next-feed", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["subject"] == "isaure"
        assert body["profile_fallback"] is False

    def test_unknown_subject(self, client):
        assert client.post("/forecast/bob/next-feed", json={}).status_code == 404


class TestTimezone:
    def test_aware_timestamps_converted_to_household_time(self):
        assert to_local_naive(datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)) == datetime(2026, 3, 10, 14, 0)
        assert to_local_naive(datetime(2026, 7, 10, 13, 0, tzinfo=timezone.utc)) == datetime(2026, 7, 10, 15, 0)

    def test_naive_timestamps_untouched(self):
        assert to_local_naive(datetime(2026, 3, 10, 13, 0)) == datetime(2026, 3, 10, 13, 0)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
