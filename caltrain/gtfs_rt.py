# caltrain/gtfs_rt.py
"""
GTFS-RT (TripUpdates / VehiclePositions) の protobuf を正規化する。

511 の GTFS-RT は operator 単位で配信される（agency=CT）。
"""
from __future__ import annotations

import logging
from typing import List, Optional

from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from .errors import ParseError
from .models import Direction
from .timetable_models import StopDelay, TripUpdate, VehiclePosition

logger = logging.getLogger(__name__)


def get_direction(train_id: str) -> Optional[Direction]:
    """
    列車番号の偶奇で方向を判定する。
    Caltrain: 北行き=奇数, 南行き=偶数
    """
    num_part = "".join(filter(str.isdigit, train_id))
    if not num_part:
        return None
    return Direction.NORTH if int(num_part) % 2 == 1 else Direction.SOUTH


def _parse_feed(raw: bytes, what: str) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(raw)
    except DecodeError as e:
        raise ParseError(f"failed to parse {what} protobuf: {e}") from e

    feed_timestamp = feed.header.timestamp if feed.header.HasField("timestamp") else None
    logger.info("%s feed: %d entities, timestamp=%s", what, len(feed.entity), feed_timestamp)
    return feed


def parse_trip_updates(raw: bytes) -> List[TripUpdate]:
    """
    TripUpdates フィードを列車ごとの TripUpdate に変換する。
    運休（CANCELED）の列車は除外する。
    """
    feed = _parse_feed(raw, "TripUpdate")

    results: List[TripUpdate] = []
    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        trip = trip_update.trip
        if trip.HasField("schedule_relationship"):
            if trip.schedule_relationship == gtfs_realtime_pb2.TripDescriptor.CANCELED:
                logger.debug("Skipping canceled trip: %s", trip.trip_id)
                continue

        stop_delays: List[StopDelay] = []
        for stu in trip_update.stop_time_update:
            arrival_delay: Optional[int] = None
            arrival_time: Optional[int] = None
            if stu.HasField("arrival"):
                if stu.arrival.HasField("delay"):
                    arrival_delay = stu.arrival.delay
                if stu.arrival.HasField("time"):
                    arrival_time = stu.arrival.time
            stop_delays.append(
                StopDelay(
                    stop_sequence=stu.stop_sequence,
                    stop_code=stu.stop_id,
                    arrival_delay_sec=arrival_delay,
                    arrival_time=arrival_time,
                )
            )

        results.append(
            TripUpdate(
                train_id=trip.trip_id,
                direction=get_direction(trip.trip_id),
                stop_delays=stop_delays,
            )
        )

    return results


def parse_vehicle_positions(raw: bytes) -> List[VehiclePosition]:
    """VehiclePositions フィードを VehiclePosition のリストに変換する（位置の無い車両は除外）"""
    feed = _parse_feed(raw, "VehiclePosition")

    positions: List[VehiclePosition] = []
    for entity in feed.entity:
        if not entity.HasField("vehicle"):
            continue
        vehicle = entity.vehicle
        if not vehicle.HasField("position"):
            continue

        positions.append(
            VehiclePosition(
                train_id=vehicle.trip.trip_id,
                vehicle_id=vehicle.vehicle.id or entity.id,
                latitude=vehicle.position.latitude,
                longitude=vehicle.position.longitude,
                stop_code=vehicle.stop_id or None,
                current_stop_sequence=(
                    vehicle.current_stop_sequence
                    if vehicle.HasField("current_stop_sequence")
                    else None
                ),
                timestamp=vehicle.timestamp if vehicle.HasField("timestamp") else None,
            )
        )
    return positions
