"""Tests for the client facade: refreshes, live status and the stale fallback."""

from datetime import date, timedelta

import pytest

from caltrain.client import CaltrainClient, new_client
from caltrain.config import Settings
from caltrain.constants import STATIONS_URL, STOP_MONITORING_URL, TIMETABLE_URL
from caltrain.errors import (
    ErrorKind,
    GenericAPIError,
    NotFoundError,
    ParseError,
    RateLimitError,
    TransportError,
)
from caltrain.models import Direction, Line, Station

from conftest import NOW, FakeApiClient, FakeClock, load_fixture


def _ids(items):
    return sorted(t.train_id for t in items)


def test_initialize_loads_everything(client: CaltrainClient) -> None:
    assert client.reference.has_stations
    assert client.reference.holidays() == [date(2019, 11, 28), date(2020, 1, 20)]
    assert client.index.lines() == [Line.BULLET, Line.LIMITED, Line.LOCAL]
    assert client.index.journey_count() == 8


def test_api_key_and_operator_are_sent(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    url, params, _ = fake_api.calls[0]
    assert url == STATIONS_URL
    assert params == {"api_key": "test-key", "operator_id": "CT"}

    timetable_params = [p for u, p, _ in fake_api.calls if u == TIMETABLE_URL]
    assert [p["line_id"] for p in timetable_params] == ["Bullet", "Limited", "Local"]


def test_timeout_is_passed_to_fetcher(fake_api: FakeApiClient, clock: FakeClock) -> None:
    c = CaltrainClient("k", api_client=fake_api, clock=clock)
    c.update_stations(timeout=2.5)
    assert fake_api.calls[-1][2] == 2.5


def test_get_trains_between_stations_accepts_names(client: CaltrainClient) -> None:
    routes = client.get_trains_between_stations("San Jose Diridon", "san francisco", "Monday")
    assert [r.train_id for r in routes] == ["801", "803"]


def test_get_trains_between_stations_defaults_to_today(client: CaltrainClient) -> None:
    """時計は 2019-11-21 (木) の太平洋時間"""
    assert client.today() == date(2019, 11, 21)
    routes = client.get_trains_between_stations(Station.SAN_JOSE_DIRIDON, Station.SAN_FRANCISCO)
    assert [r.train_id for r in routes] == ["801", "803"]


def test_get_trains_between_stations_on_holiday(client: CaltrainClient) -> None:
    routes = client.get_trains_between_stations(
        Station.SAN_JOSE_DIRIDON, Station.SAN_FRANCISCO, date(2019, 11, 28)
    )
    assert [r.train_id for r in routes] == ["821"]


def test_get_station_timetable(client: CaltrainClient) -> None:
    routes = client.get_station_timetable("Hillsdale", "south", "monday")
    assert [r.train_id for r in routes] == ["101", "802"]


def test_get_train_route(client: CaltrainClient) -> None:
    route = client.get_train_route("801")
    assert route.stop_count == 9
    assert route.stops[0].station == Station.SAN_JOSE_DIRIDON


def test_unknown_names(client: CaltrainClient) -> None:
    with pytest.raises(NotFoundError):
        client.get_trains_between_stations("Atlantis", "San Francisco", "monday")
    with pytest.raises(NotFoundError):
        client.get_station_timetable("Hillsdale", "east", "monday")


def test_queries_before_initialize_raise_not_found(fake_api: FakeApiClient, clock: FakeClock) -> None:
    c = CaltrainClient("k", api_client=fake_api, clock=clock)
    with pytest.raises(NotFoundError):
        c.get_trains_between_stations(Station.HILLSDALE, Station.PALO_ALTO, "monday")
    with pytest.raises(NotFoundError):
        c.get_train_route("801")


def test_list_stations_and_holidays(client: CaltrainClient) -> None:
    assert client.list_stations()[0] == Station.SAN_FRANCISCO
    assert client.is_holiday(date(2020, 1, 20))
    assert not client.is_holiday(date(2020, 1, 21))
    assert client.get_direction("Palo Alto", "Hillsdale") == Direction.NORTH


def test_failed_timetable_refresh_keeps_previous_data(
    client: CaltrainClient, fake_api: FakeApiClient
) -> None:
    """どれか1種別でも失敗したら、どの種別も差し替えない"""
    fake_api.add(TIMETABLE_URL, b"{}", line_id="Bullet")
    fake_api.add(TIMETABLE_URL, RateLimitError(), line_id="Local")

    with pytest.raises(ParseError):
        client.update_timetable()

    assert [r.train_id for r in client.get_trains_between_stations("San Jose Diridon", "San Francisco", "monday")] == ["801", "803"]


def test_failed_station_refresh_keeps_previous_data(
    client: CaltrainClient, fake_api: FakeApiClient
) -> None:
    fake_api.add(STATIONS_URL, b"not json")
    with pytest.raises(ParseError):
        client.update_stations()
    assert client.reference.station_code(Station.HILLSDALE, Direction.NORTH) == "70111"


# ============================================================================
# Live status
# ============================================================================

def test_get_delays(client: CaltrainClient) -> None:
    live = client.get_delays(timedelta(minutes=10))

    assert _ids(live.trains) == ["258", "263"]
    assert live.as_of == NOW
    assert not live.is_stale


def test_get_station_status(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    north = client.get_station_status(Station.HILLSDALE, Direction.NORTH)
    south = client.get_station_status("Hillsdale", "South")

    assert _ids(north.trains) == ["803"]
    assert _ids(south.trains) == ["101", "802"]
    assert fake_api.calls[-1][1]["stopCode"] == "70112"


def test_get_station_status_empty(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    fake_api.add(STOP_MONITORING_URL, load_fixture("status_empty.json"), stopCode="70011")
    live = client.get_station_status(Station.SAN_FRANCISCO, Direction.NORTH)
    assert live.trains == []


def test_get_station_status_unknown_station_does_not_fetch(
    client: CaltrainClient, fake_api: FakeApiClient
) -> None:
    before = fake_api.count(STOP_MONITORING_URL)
    with pytest.raises(NotFoundError):
        client.get_station_status(Station.GILROY, Direction.NORTH)
    assert fake_api.count(STOP_MONITORING_URL) == before


def test_cache_hit_skips_fetch(client: CaltrainClient, fake_api: FakeApiClient, clock: FakeClock) -> None:
    client.setup_cache(timedelta(minutes=5))

    first = client.get_delays()
    clock.advance(minutes=4, seconds=59)
    second = client.get_delays()

    assert fake_api.count(STOP_MONITORING_URL) == 1
    assert second.as_of == first.as_of == NOW
    assert _ids(second.trains) == _ids(first.trains)


def test_cache_is_keyed_per_stop_code(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    client.setup_cache(timedelta(minutes=5))

    north = client.get_station_status(Station.HILLSDALE, Direction.NORTH)
    south = client.get_station_status(Station.HILLSDALE, Direction.SOUTH)
    client.get_station_status(Station.HILLSDALE, Direction.NORTH)

    assert _ids(north.trains) != _ids(south.trains)
    assert fake_api.count(STOP_MONITORING_URL) == 2


def test_expired_cache_refetches(client: CaltrainClient, fake_api: FakeApiClient, clock: FakeClock) -> None:
    client.setup_cache(timedelta(minutes=5))
    client.get_delays()
    clock.advance(minutes=5, seconds=1)

    live = client.get_delays()

    assert fake_api.count(STOP_MONITORING_URL) == 2
    assert live.as_of == NOW + timedelta(minutes=5, seconds=1)


@pytest.mark.parametrize("error", [RateLimitError(retry_after=60), GenericAPIError(500, "Internal Server Error")])
def test_stale_fallback_on_upstream_failure(
    client: CaltrainClient, fake_api: FakeApiClient, clock: FakeClock, error
) -> None:
    """上流が失敗したら期限切れのキャッシュとエラーを一緒に返す"""
    client.setup_cache(timedelta(minutes=5))
    client.get_station_status(Station.HILLSDALE, Direction.NORTH)

    clock.advance(minutes=10)
    fake_api.add(STOP_MONITORING_URL, error, stopCode="70111")
    live = client.get_station_status(Station.HILLSDALE, Direction.NORTH)

    assert live.is_stale
    assert live.error is error
    assert live.as_of == NOW
    assert _ids(live.trains) == ["803"]


def test_no_fallback_for_transport_errors(
    client: CaltrainClient, fake_api: FakeApiClient, clock: FakeClock
) -> None:
    client.setup_cache(timedelta(minutes=5))
    client.get_delays()
    clock.advance(minutes=10)
    fake_api.add(STOP_MONITORING_URL, TransportError("connection refused"))

    with pytest.raises(TransportError):
        client.get_delays()


def test_no_fallback_without_cache(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    fake_api.add(STOP_MONITORING_URL, RateLimitError())
    with pytest.raises(RateLimitError) as excinfo:
        client.get_delays()
    assert excinfo.value.kind == ErrorKind.RATE_LIMIT


def test_no_fallback_without_cached_entry(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    client.setup_cache(timedelta(minutes=5))
    fake_api.add(STOP_MONITORING_URL, GenericAPIError(503, "Service Unavailable"))
    with pytest.raises(GenericAPIError):
        client.get_delays()


def test_parse_error_is_not_cached_or_masked(
    client: CaltrainClient, fake_api: FakeApiClient, clock: FakeClock
) -> None:
    client.setup_cache(timedelta(minutes=5))
    client.get_delays()
    clock.advance(minutes=10)
    fake_api.add(STOP_MONITORING_URL, b"not json")

    with pytest.raises(ParseError):
        client.get_delays()
    # 壊れたペイロードでキャッシュが上書きされていない
    assert client.cache.get(STOP_MONITORING_URL).payload == load_fixture("delays.json")


def test_setup_cache_zero_disables(client: CaltrainClient) -> None:
    client.setup_cache(300)
    assert client.cache is not None
    client.setup_cache(0)
    assert client.cache is None


def test_new_client_enables_cache(fake_api: FakeApiClient) -> None:
    c = new_client("k", settings=Settings(cache_timeout_sec=60), api_client=fake_api)
    assert c.cache is not None
    assert c.cache.ttl == timedelta(seconds=60)
    assert c.settings.api_key == "k"


def test_new_client_requires_api_key() -> None:
    with pytest.raises(ValueError):
        new_client(settings=Settings(api_key=""))
