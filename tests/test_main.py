"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from caltrain.client import CaltrainClient
from caltrain.constants import STOP_MONITORING_URL
from caltrain.errors import RateLimitError
from caltrain.main import create_app, format_seconds

from conftest import FakeApiClient


@pytest.fixture
def api(client: CaltrainClient) -> TestClient:
    return TestClient(create_app(client, refresh=False))


def test_format_seconds() -> None:
    assert format_seconds(9 * 3600 + 51 * 60) == "09:51:00"
    assert format_seconds(24 * 3600 + 25 * 60) == "24:25:00"


def test_health(api: TestClient) -> None:
    res = api.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["stations_loaded"]
    assert body["lines_loaded"] == ["Bullet", "Limited", "Local"]


def test_stations(api: TestClient) -> None:
    stations = api.get("/api/stations").json()["stations"]
    assert len(stations) == 32
    hillsdale = next(s for s in stations if s["name"] == "Hillsdale")
    assert hillsdale["north_code"] == "70111"
    gilroy = next(s for s in stations if s["name"] == "Gilroy")
    assert gilroy["north_code"] is None


def test_holiday(api: TestClient) -> None:
    assert api.get("/api/holidays/2019-11-28").json() == {"date": "2019-11-28", "holiday": True}
    assert api.get("/api/holidays/2019-11-27").json()["holiday"] is False


def test_routes_by_date(api: TestClient) -> None:
    res = api.get("/api/routes", params={"from": "San Jose Diridon", "to": "San Francisco", "date": "2019-11-28"})
    assert res.status_code == 200
    assert [r["train"] for r in res.json()["routes"]] == ["821"]


def test_routes_by_weekday(api: TestClient) -> None:
    res = api.get("/api/routes", params={"from": "San Francisco", "to": "San Jose Diridon", "weekday": "monday"})
    routes = res.json()["routes"]
    assert [r["train"] for r in routes] == ["802", "804"]
    assert routes[1]["stops"][-1]["arrival"] == "24:25:00"


def test_routes_errors(api: TestClient) -> None:
    res = api.get("/api/routes", params={"from": "Atlantis", "to": "San Francisco"})
    assert res.status_code == 404
    res = api.get("/api/routes", params={"from": "Hillsdale", "to": "Hillsdale"})
    assert res.status_code == 400


def test_station_timetable(api: TestClient) -> None:
    res = api.get("/api/stations/Hillsdale/timetable", params={"direction": "North", "weekday": "monday"})
    assert [r["train"] for r in res.json()["routes"]] == ["801", "803"]


def test_train_route(api: TestClient) -> None:
    body = api.get("/api/trains/801/route").json()
    assert body["stop_count"] == 9
    assert body["direction"] == "North"
    assert body["stops"][0]["station"] == "San Jose Diridon"
    assert api.get("/api/trains/000/route").status_code == 404


def test_station_status(api: TestClient) -> None:
    body = api.get("/api/stations/Hillsdale/status", params={"direction": "north"}).json()
    assert body["stale"] is False
    assert body["trains"][0]["train"] == "803"
    assert body["trains"][0]["delay_sec"] == 120


def test_delays(api: TestClient) -> None:
    body = api.get("/api/delays", params={"threshold_min": 10}).json()
    assert sorted(t["train"] for t in body["trains"]) == ["258", "263"]


def test_rate_limit_without_cache_is_503(api: TestClient, fake_api: FakeApiClient) -> None:
    fake_api.add(STOP_MONITORING_URL, RateLimitError())
    assert api.get("/api/delays").status_code == 503
