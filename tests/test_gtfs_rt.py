"""Tests for GTFS-realtime feed normalization."""

from datetime import timedelta

import pytest
from google.transit import gtfs_realtime_pb2

from caltrain.client import CaltrainClient
from caltrain.constants import TRIP_UPDATES_URL, VEHICLE_POSITIONS_URL
from caltrain.errors import ParseError
from caltrain.gtfs_rt import get_direction, parse_trip_updates, parse_vehicle_positions
from caltrain.models import Direction

from conftest import NOW, FakeApiClient


def _trip_updates_feed() -> bytes:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = 1574382600

    entity = feed.entity.add()
    entity.id = "801"
    entity.trip_update.trip.trip_id = "801"
    stu = entity.trip_update.stop_time_update.add()
    stu.stop_sequence = 6
    stu.stop_id = "70111"
    stu.arrival.delay = 120
    stu.arrival.time = 1574382720
    stu = entity.trip_update.stop_time_update.add()
    stu.stop_sequence = 7
    stu.stop_id = "70091"

    canceled = feed.entity.add()
    canceled.id = "802"
    canceled.trip_update.trip.trip_id = "802"
    canceled.trip_update.trip.schedule_relationship = gtfs_realtime_pb2.TripDescriptor.CANCELED

    return feed.SerializeToString()


def _vehicle_positions_feed() -> bytes:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"

    entity = feed.entity.add()
    entity.id = "v1"
    entity.vehicle.trip.trip_id = "258"
    entity.vehicle.vehicle.id = "914"
    entity.vehicle.position.latitude = 37.378
    entity.vehicle.position.longitude = -122.031
    entity.vehicle.stop_id = "70222"
    entity.vehicle.current_stop_sequence = 12
    entity.vehicle.timestamp = 1574382600

    no_position = feed.entity.add()
    no_position.id = "v2"
    no_position.vehicle.trip.trip_id = "437"

    return feed.SerializeToString()


def test_get_direction() -> None:
    assert get_direction("801") == Direction.NORTH
    assert get_direction("802") == Direction.SOUTH
    assert get_direction("abc") is None


def test_parse_trip_updates() -> None:
    updates = parse_trip_updates(_trip_updates_feed())

    # 運休は除外
    assert [u.train_id for u in updates] == ["801"]
    update = updates[0]
    assert update.direction == Direction.NORTH
    assert [d.stop_code for d in update.stop_delays] == ["70111", "70091"]
    assert update.stop_delays[0].arrival_delay_sec == 120
    assert update.stop_delays[0].arrival_time == 1574382720
    assert update.stop_delays[1].arrival_delay_sec is None


def test_parse_vehicle_positions() -> None:
    positions = parse_vehicle_positions(_vehicle_positions_feed())

    assert len(positions) == 1
    pos = positions[0]
    assert pos.train_id == "258"
    assert pos.vehicle_id == "914"
    assert pos.latitude == pytest.approx(37.378)
    assert pos.stop_code == "70222"
    assert pos.current_stop_sequence == 12
    assert pos.timestamp == 1574382600


def test_garbage_feed_is_a_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_trip_updates(b"\xff\xff\xff\xff")


def test_client_gtfs_rt_goes_through_cache(client: CaltrainClient, fake_api: FakeApiClient) -> None:
    fake_api.add(TRIP_UPDATES_URL, _trip_updates_feed())
    fake_api.add(VEHICLE_POSITIONS_URL, _vehicle_positions_feed())
    client.setup_cache(timedelta(minutes=5))

    updates = client.get_trip_updates()
    client.get_trip_updates()
    positions = client.get_vehicle_positions()

    assert [u.train_id for u in updates.trains] == ["801"]
    assert updates.as_of == NOW
    assert [p.train_id for p in positions.trains] == ["258"]
    assert fake_api.count(TRIP_UPDATES_URL) == 1
    assert fake_api.calls[-1][1] == {"api_key": "test-key", "agency": "CT"}
