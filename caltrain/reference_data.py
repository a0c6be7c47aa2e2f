# caltrain/reference_data.py
"""
駅コード表と祝日の保持

駅は北行き・南行きで別々の stop code を持つ（例: Hillsdale 北行き 70111 / 南行き 70112）。
stop code の末尾が 1 以下なら北行き、それ以外は南行きとして分類する。
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Union

from readerwriterlock import rwlock

from .errors import NotFoundError, ParseError
from .models import Direction, Station, parse_station
from .timetable_models import StationInfo, StopRecord

logger = logging.getLogger(__name__)


def classify_stop_code(code: str) -> Direction:
    """stop code の末尾の数字から方向を決める"""
    code = code.strip()
    if not code or not code[-1].isdigit():
        raise ParseError(f"stop code {code!r} does not end with a digit")
    digit = int(code[-1])
    if digit not in (1, 2):
        logger.warning("Stop code %s has unexpected last digit %d", code, digit)
    return Direction.NORTH if digit <= 1 else Direction.SOUTH


def build_station_table(records: Iterable[StopRecord]) -> Dict[Station, StationInfo]:
    """
    StopRecord を駅ごとに統合する。

    方向の判定は stop code の末尾に頼っているので、ここで毎回検証する:
    - 同じ駅・同じ方向に別のコードが2つある -> ParseError
    - 同じコードが別の駅に使われている -> ParseError
    - 片方向のコードしか無い駅 -> warning
    """
    codes: Dict[Station, Dict[Direction, str]] = {}
    coords: Dict[Station, tuple] = {}
    owner: Dict[str, Station] = {}

    for rec in records:
        try:
            station = parse_station(rec.name)
        except NotFoundError:
            logger.warning("Skipping unknown station %r (code %s)", rec.name, rec.code)
            continue

        code = rec.code.strip()
        prev_owner = owner.get(code)
        if prev_owner is not None and prev_owner != station:
            raise ParseError(f"stop code {code} is used by both {prev_owner} and {station}")
        owner[code] = station

        direction = classify_stop_code(code)
        by_dir = codes.setdefault(station, {})
        existing = by_dir.get(direction)
        if existing is not None and existing != code:
            raise ParseError(
                f"{station} has two {direction} codes: {existing} and {code}"
            )
        by_dir[direction] = code

        if station not in coords and rec.latitude is not None and rec.longitude is not None:
            coords[station] = (rec.latitude, rec.longitude)

    table: Dict[Station, StationInfo] = {}
    for station in sorted(codes):
        by_dir = codes[station]
        for direction in Direction:
            if direction not in by_dir:
                logger.warning("%s has no %s stop code", station, direction)
        lat, lon = coords.get(station, (None, None))
        table[station] = StationInfo(
            station=station,
            north_code=by_dir.get(Direction.NORTH, ""),
            south_code=by_dir.get(Direction.SOUTH, ""),
            latitude=lat,
            longitude=lon,
        )
    return table


class ReferenceDataStore:
    """
    駅コード表と祝日の集合。

    どちらも更新時に丸ごと差し替える（読み取り側が中途半端な状態を見ることはない）。
    """

    def __init__(self) -> None:
        self._lock = rwlock.RWLockFair()
        self._stations: Dict[Station, StationInfo] = {}
        self._by_code: Dict[str, Station] = {}
        self._holidays: FrozenSet[date] = frozenset()

    # ------------------------------------------------------------------
    # 更新
    # ------------------------------------------------------------------

    def replace_stations(self, table: Dict[Station, StationInfo]) -> None:
        by_code: Dict[str, Station] = {}
        for info in table.values():
            for code in (info.north_code, info.south_code):
                if code:
                    by_code[code] = info.station

        with self._lock.gen_wlock():
            self._stations = dict(table)
            self._by_code = by_code
        logger.info("Loaded %d stations (%d stop codes)", len(table), len(by_code))

    def replace_holidays(self, holidays: Iterable[date]) -> None:
        days = frozenset(holidays)
        with self._lock.gen_wlock():
            self._holidays = days
        logger.info("Loaded %d holidays", len(days))

    # ------------------------------------------------------------------
    # 参照
    # ------------------------------------------------------------------

    def station_code(self, station: Station, direction: Direction) -> str:
        """駅・方向の stop code（未ロードや片方向しか無い駅は NotFoundError）"""
        with self._lock.gen_rlock():
            info = self._stations.get(station)
        if info is None:
            raise NotFoundError(f"{station} is not a recognized station")
        code = info.code_for(direction)
        if not code:
            raise NotFoundError(f"{station} has no {direction} stop code")
        return code

    def station_for_code(self, code: str) -> Station:
        with self._lock.gen_rlock():
            station = self._by_code.get(code.strip())
        if station is None:
            raise NotFoundError(f"stop code {code} is not a recognized station")
        return station

    def loaded_stations(self) -> List[StationInfo]:
        with self._lock.gen_rlock():
            return [self._stations[s] for s in sorted(self._stations)]

    def is_holiday(self, d: Union[date, datetime]) -> bool:
        """日単位で比較する（時刻は無視）"""
        if isinstance(d, datetime):
            d = d.date()
        with self._lock.gen_rlock():
            return d in self._holidays

    def holidays(self) -> List[date]:
        with self._lock.gen_rlock():
            return sorted(self._holidays)

    @staticmethod
    def all_stations() -> List[Station]:
        """全駅（北 → 南の順）"""
        return list(Station)

    @property
    def has_stations(self) -> bool:
        with self._lock.gen_rlock():
            return bool(self._stations)
