# caltrain/parser.py
"""
511.org の生データ（bytes）を内部モデルに変換する純粋関数群

どの関数もネットワークやロックに触れない。
不正なペイロードは ParseError として送出する。
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError

from .config import parse_line
from .constants import SECONDS_PER_DAY
from .day_types import WEEKDAYS
from .errors import NotFoundError, ParseError
from .models import Direction, Line, direction_from_marker, parse_direction, parse_station
from .timetable_models import Call, Frame, Journey, StopRecord, TrainStatus
from .wire_models import (
    CallTime,
    HolidaysResponse,
    MonitoredCall,
    StationsResponse,
    StopMonitoringResponse,
    TimetableResponse,
    WireCall,
    WireModel,
    WireTimetableFrame,
)

logger = logging.getLogger(__name__)

UTF8_BOM = b"\xef\xbb\xbf"
STATION_NAME_SUFFIX = " Caltrain"

M = TypeVar("M", bound=WireModel)


def strip_bom(raw: bytes) -> bytes:
    """511 のレスポンスは先頭に BOM が付くことがある"""
    return raw[len(UTF8_BOM):] if raw.startswith(UTF8_BOM) else raw


def _decode(model: Type[M], raw: bytes, what: str) -> M:
    try:
        return model.model_validate_json(strip_bom(raw))
    except ValidationError as e:
        raise ParseError(f"failed to parse {what}: {e}") from e


def _parse_time_to_seconds(time_str: str) -> Tuple[int, bool]:
    """
    "HH:MM:SS" を 00:00 からの秒数に変換する。

    戻り値は (秒数, 翌日フラグ)。"24:10:00" のような 24 時以降の表記は
    翌日の 00:10:00 として扱う。
    """
    parts = time_str.strip().split(":")
    if len(parts) == 2:
        parts.append("0")
    if len(parts) != 3:
        raise ParseError(f"Invalid time format: {time_str} (expected HH:MM:SS)")
    try:
        hour, minute, second = (int(p) for p in parts)
    except ValueError as e:
        raise ParseError(f"Invalid time components in '{time_str}': {e}") from e

    if not (0 <= hour <= 47) or not (0 <= minute <= 59) or not (0 <= second <= 59):
        raise ParseError(f"Invalid time {time_str}")

    sec = hour * 3600 + minute * 60 + second
    if sec >= SECONDS_PER_DAY:
        return sec - SECONDS_PER_DAY, True
    return sec, False


def _parse_date(value: Optional[str]) -> Optional[date]:
    """"2019-11-28T00:00:00-08:00" のような文字列から日付部分だけを取り出す"""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError as e:
        raise ParseError(f"Invalid date {value!r}") from e


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ============================================================================
# Timetable
# ============================================================================

def frame_direction(frame_name: str) -> Direction:
    """
    フレーム名に埋め込まれた方向を取り出す。

    例: "Bullet:N :Year Round Weekday (Weekday)" -> Direction.NORTH
    """
    parts = frame_name.split(":")
    if len(parts) < 2:
        raise ParseError(f"frame name has no direction marker: {frame_name!r}")
    try:
        return direction_from_marker(parts[1])
    except NotFoundError as e:
        raise ParseError(f"frame name has no direction marker: {frame_name!r}") from e


def _call_time(primary: Optional[CallTime], fallback: Optional[CallTime], order: str) -> Tuple[int, bool]:
    ct = primary or fallback
    if ct is None:
        raise ParseError(f"call {order} has neither arrival nor departure time")
    sec, next_day = _parse_time_to_seconds(ct.time)
    if ct.days_offset and ct.days_offset.strip() not in ("", "0"):
        # 翌日フラグは1日分しか表せない
        if next_day:
            raise ParseError(
                f"call {order} has time {ct.time} past 24:00 and DaysOffset {ct.days_offset}"
            )
        next_day = True
    return sec, next_day


def _to_call(wc: WireCall) -> Call:
    try:
        order = int(wc.order)
    except ValueError as e:
        raise ParseError(f"could not convert order {wc.order} to int") from e
    if not wc.stop_point_ref.ref:
        raise ParseError(f"call {order} has no ScheduledStopPointRef")

    # 始発駅は到着時刻、終着駅は発車時刻が欠けていることがある
    arr_sec, arr_next = _call_time(wc.arrival, wc.departure, wc.order)
    dep_sec, dep_next = _call_time(wc.departure, wc.arrival, wc.order)
    return Call(
        order=order,
        stop_code=wc.stop_point_ref.ref.strip(),
        arrival_sec=arr_sec,
        departure_sec=dep_sec,
        arrival_next_day=arr_next,
        departure_next_day=dep_next,
    )


def _to_frame(wf: WireTimetableFrame, line: Line) -> Frame:
    direction = frame_direction(wf.name)
    availability = wf.validity.availability

    journeys: List[Journey] = []
    for sj in wf.vehicle_journeys.journeys:
        calls = sorted((_to_call(c) for c in sj.calls.call), key=lambda c: c.order)
        orders = [c.order for c in calls]
        if orders != list(range(1, len(calls) + 1)):
            logger.warning("Journey %s has non-contiguous call order: %s", sj.id, orders)

        ref = sj.pattern.direction_ref.ref
        if ref:
            try:
                if direction_from_marker(ref) != direction:
                    logger.warning(
                        "Journey %s direction %r disagrees with frame %r", sj.id, ref, wf.name
                    )
            except NotFoundError:
                logger.debug("Journey %s has unrecognised DirectionRef %r", sj.id, ref)

        journeys.append(Journey(train_id=sj.id, line=line, direction=direction, calls=calls))

    return Frame(
        frame_id=wf.id,
        name=wf.name,
        line=line,
        direction=direction,
        day_type_ref=availability.day_types.day_type_ref.ref,
        from_date=_parse_date(availability.from_date),
        to_date=_parse_date(availability.to_date),
        journeys=journeys,
    )


def parse_timetable(raw: bytes, line: Line) -> Tuple[List[Frame], Dict[str, FrozenSet[str]]]:
    """
    timetable API のレスポンスを (Frame のリスト, 曜日種別の差分) に変換する。

    曜日種別は ServiceCalendarFrame から作る（DayType は配列でも単体でもよい）。
    値は小文字の曜日名の集合。
    """
    data = _decode(TimetableResponse, raw, "timetable")
    content = data.content

    services: Dict[str, FrozenSet[str]] = {}
    for day_type in content.service_calendar.day_types.day_type:
        days = day_type.properties.property_of_day.days_of_week.strip().lower().split()
        unknown = [d for d in days if d not in WEEKDAYS]
        if unknown:
            logger.warning("DayType %s has unknown weekday names: %s", day_type.id, unknown)
        services[day_type.id] = frozenset(d for d in days if d in WEEKDAYS)

    frames = [_to_frame(wf, line) for wf in content.frames]
    logger.info(
        "Parsed %d frames (%d journeys), %d day types for %s",
        len(frames),
        sum(len(f.journeys) for f in frames),
        len(services),
        line,
    )
    return frames, services


# ============================================================================
# Stations / Holidays
# ============================================================================

def station_name_from_stop(name: str) -> str:
    """"Hillsdale Caltrain" -> "Hillsdale" """
    return name.split(STATION_NAME_SUFFIX)[0].strip()


def parse_stations(raw: bytes) -> List[StopRecord]:
    """
    stops API のレスポンスを StopRecord のリストに変換する。

    駅そのもの（"... Station"）のレコードはホームではないので除外する。
    北側・南側の統合は reference_data.build_station_table() で行う。
    """
    data = _decode(StationsResponse, raw, "stations")

    records: List[StopRecord] = []
    for stop in data.contents.data_objects.stop_points:
        if stop.name.strip().endswith("Station"):
            continue
        name = station_name_from_stop(stop.name)
        records.append(
            StopRecord(
                code=stop.id.strip(),
                name=name,
                latitude=stop.location.latitude,
                longitude=stop.location.longitude,
            )
        )
    logger.info("Parsed %d stop records", len(records))
    return records


def parse_holidays(raw: bytes) -> List[date]:
    """holidays API の AvailabilityConditions の FromDate を祝日として返す"""
    data = _decode(HolidaysResponse, raw, "holidays")
    holidays: List[date] = []
    for cond in data.content.conditions:
        d = _parse_date(cond.from_date)
        if d is not None:
            holidays.append(d)
    logger.info("Parsed %d holidays", len(holidays))
    return sorted(set(holidays))


# ============================================================================
# StopMonitoring
# ============================================================================

def compute_delay(call: MonitoredCall, now: datetime) -> Tuple[timedelta, Optional[datetime]]:
    """
    予定到着時刻と見込み到着時刻の差（遅れ）と、見込み到着時刻を返す。

    - 予定到着時刻が無い: まだ始発駅を出ていないので遅れ 0
    - 見込み到着時刻が無い: 始発駅に停車中なので見込み発車時刻を使う
    - 予定到着時刻が現在より前: API の予定到着時刻が壊れていることがあるので
      予定発車時刻を使う
    """
    aimed = _as_utc(call.aimed_arrival)
    expected = _as_utc(call.expected_arrival)
    if aimed is None:
        return timedelta(0), expected
    if expected is None:
        expected = _as_utc(call.expected_departure)

    if aimed < now:
        aimed = _as_utc(call.aimed_departure)

    if expected is None or aimed is None:
        return timedelta(0), expected

    delay = expected - aimed
    if delay < timedelta(0):
        delay = timedelta(0)
    return delay, expected


def parse_train_statuses(raw: bytes, now: datetime) -> List[TrainStatus]:
    """
    StopMonitoring のレスポンスを TrainStatus のリストに変換する。
    該当する列車が無い場合は空リスト（エラーではない）。
    """
    data = _decode(StopMonitoringResponse, raw, "stop monitoring")
    now = _as_utc(now)

    statuses: List[TrainStatus] = []
    for visit in data.service_delivery.stop_monitoring.visits:
        journey = visit.journey
        call = journey.monitored_call
        delay, arrival = compute_delay(call, now)

        next_stop = None
        if call.stop_point_name:
            try:
                next_stop = parse_station(station_name_from_stop(call.stop_point_name))
            except NotFoundError:
                logger.warning("Unknown stop in StopMonitoring: %r", call.stop_point_name)

        direction = None
        if journey.direction_ref:
            try:
                direction = parse_direction(journey.direction_ref)
            except NotFoundError:
                logger.warning("Unknown DirectionRef in StopMonitoring: %r", journey.direction_ref)

        line = None
        if journey.line_ref:
            try:
                line = parse_line(journey.line_ref)
            except NotFoundError:
                logger.warning("Unknown LineRef in StopMonitoring: %r", journey.line_ref)

        statuses.append(
            TrainStatus(
                train_id=journey.framed_ref.dated_vehicle_journey_ref,
                direction=direction,
                line=line,
                delay=delay,
                arrival=arrival,
                next_stop=next_stop,
            )
        )
    return statuses


def filter_delayed(statuses: Iterable[TrainStatus], threshold: timedelta) -> List[TrainStatus]:
    """遅れが threshold を超える列車だけを返す"""
    return [s for s in statuses if s.delay > threshold]
