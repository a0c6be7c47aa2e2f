# caltrain/timetable.py
"""
種別ごとの時刻表（Frame）を保持し、曜日・方向・駅で列車を引く。

更新は種別単位の丸ごと差し替え。クエリは常にどれか1つの完成した
スナップショットを見る。
"""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from readerwriterlock import rwlock

from .constants import SECONDS_PER_DAY
from .day_types import DayTypeResolver, normalize_weekday
from .errors import NotFoundError
from .models import Direction, Line, Station, direction_between
from .reference_data import ReferenceDataStore
from .timetable_models import Call, Frame, Journey, Route, TrainStop

logger = logging.getLogger(__name__)


def _abs_seconds(sec: int, next_day: bool) -> int:
    """日跨ぎを含めた秒数"""
    return sec + SECONDS_PER_DAY if next_day else sec


def departure_at(journey: Journey, code: str) -> Optional[int]:
    for call in journey.calls:
        if call.stop_code == code:
            return _abs_seconds(call.departure_sec, call.departure_next_day)
    return None


class TimetableIndex:
    def __init__(self, reference: ReferenceDataStore, resolver: DayTypeResolver) -> None:
        self.reference = reference
        self.resolver = resolver
        self._lock = rwlock.RWLockFair()
        self._frames: Dict[Line, List[Frame]] = {}

    # ------------------------------------------------------------------
    # 更新
    # ------------------------------------------------------------------

    def replace_line(
        self,
        line: Line,
        frames: Iterable[Frame],
        services: Optional[Mapping[str, FrozenSet[str]]] = None,
    ) -> None:
        """
        line の Frame を丸ごと差し替える。

        services（dayTypeRef -> 曜日）は Frame より先に反映する。
        そうしないと新しい Frame の dayTypeRef が一瞬だけ未知になる。
        """
        frames = list(frames)
        if services:
            self.resolver.merge(services)

        with self._lock.gen_wlock():
            new_frames = dict(self._frames)
            new_frames[line] = frames
            self._frames = new_frames

        logger.info(
            "Loaded %d frames (%d journeys) for %s",
            len(frames),
            sum(len(f.journeys) for f in frames),
            line,
        )

    # ------------------------------------------------------------------
    # 参照
    # ------------------------------------------------------------------

    def _snapshot(self) -> List[Frame]:
        # 各 Line のリストは差し替えのみで変更されないので、参照だけ取ればよい
        with self._lock.gen_rlock():
            frames_by_line = self._frames
        frames: List[Frame] = []
        for line in Line:
            frames.extend(frames_by_line.get(line, ()))
        return frames

    def lines(self) -> List[Line]:
        with self._lock.gen_rlock():
            return [line for line in Line if line in self._frames]

    def journey_count(self) -> int:
        return sum(len(f.journeys) for f in self._snapshot())

    def get_route_for_train(self, train_id: str) -> Journey:
        """train_id の Journey（最初に見つかったもの）"""
        train_id = train_id.strip()
        for frame in self._snapshot():
            for journey in frame.journeys:
                if journey.train_id == train_id:
                    return journey
        raise NotFoundError(f"train {train_id} is not in the timetable")

    def get_timetable_for_station(
        self, code: str, direction: Direction, weekday: str
    ) -> List[Journey]:
        """weekday に code の駅（direction 側のホーム）に停車する列車（発車時刻順）"""
        weekday = normalize_weekday(weekday)
        results: List[Journey] = []
        for frame in self._snapshot():
            if frame.direction != direction:
                continue
            if not self.resolver.is_for_today(weekday, frame.day_type_ref):
                continue
            results.extend(j for j in frame.journeys if j.stops_at(code))
        results.sort(key=lambda j: departure_at(j, code))
        return results

    def get_train_routes_for_all_stops(
        self, stops: Sequence[str], direction: Direction, weekday: str
    ) -> List[Journey]:
        """stops のすべてに停車する列車（最初の駅の発車時刻順）"""
        weekday = normalize_weekday(weekday)
        wanted = frozenset(stops)
        results: List[Journey] = []
        for frame in self._snapshot():
            if frame.direction != direction:
                continue
            if not self.resolver.is_for_today(weekday, frame.day_type_ref):
                continue
            results.extend(j for j in frame.journeys if wanted <= j.stop_codes())
        if stops:
            results.sort(key=lambda j: departure_at(j, stops[0]))
        return results

    def get_train_routes_between_stations(
        self, src: Station, dst: Station, weekday: str
    ) -> List[Journey]:
        """
        src と dst の両方に停車する列車。

        方向は駅の並び順から決まるので、停車順の確認はしない。
        """
        direction = direction_between(src, dst)
        # ロックを取る前にコードを引く
        src_code = self.reference.station_code(src, direction)
        dst_code = self.reference.station_code(dst, direction)
        return self.get_train_routes_for_all_stops([src_code, dst_code], direction, weekday)

    def journey_to_route(self, journey: Journey) -> Route:
        """Journey を駅名・日跨ぎ補正済みの Route に変換する"""
        stops: List[TrainStop] = []
        calls: List[Call] = sorted(journey.calls, key=lambda c: c.order)
        for call in calls:
            stops.append(
                TrainStop(
                    order=call.order,
                    station=self.reference.station_for_code(call.stop_code),
                    arrival_sec=_abs_seconds(call.arrival_sec, call.arrival_next_day),
                    departure_sec=_abs_seconds(call.departure_sec, call.departure_next_day),
                )
            )
        return Route(
            train_id=journey.train_id,
            direction=journey.direction,
            line=journey.line,
            stop_count=len(stops),
            stops=stops,
        )
