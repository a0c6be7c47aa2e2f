# caltrain/routes.py
"""
駅間・駅単位・列車単位の経路クエリ

日付で問い合わせた場合、祝日は日曜ダイヤに読み替える。
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Sequence, Union

from .day_types import HOLIDAY_WEEKDAY, normalize_weekday, weekday_name
from .models import Direction, Station, direction_between
from .reference_data import ReferenceDataStore
from .timetable import TimetableIndex
from .timetable_models import Route

logger = logging.getLogger(__name__)

# 曜日名・曜日番号（0 = 月曜）・日付のいずれか
When = Union[str, int, date, datetime]


class RouteQueryEngine:
    def __init__(self, reference: ReferenceDataStore, index: TimetableIndex) -> None:
        self.reference = reference
        self.index = index

    @staticmethod
    def direction_between(src: Station, dst: Station) -> Direction:
        return direction_between(src, dst)

    def effective_weekday(self, d: Union[date, datetime]) -> str:
        """d に適用されるダイヤの曜日（祝日は日曜）"""
        if self.reference.is_holiday(d):
            logger.debug("%s is a holiday, using %s schedule", d, HOLIDAY_WEEKDAY)
            return HOLIDAY_WEEKDAY
        return weekday_name(d)

    def resolve_weekday(self, when: When) -> str:
        if isinstance(when, (date, datetime)):
            return self.effective_weekday(when)
        return normalize_weekday(when)

    def _to_routes(self, journeys) -> List[Route]:
        return [self.index.journey_to_route(j) for j in journeys]

    def routes_for_weekday(self, src: Station, dst: Station, weekday: Union[str, int]) -> List[Route]:
        weekday = normalize_weekday(weekday)
        return self._to_routes(self.index.get_train_routes_between_stations(src, dst, weekday))

    def routes_for_date(self, src: Station, dst: Station, d: Union[date, datetime]) -> List[Route]:
        return self.routes_for_weekday(src, dst, self.effective_weekday(d))

    def routes(self, src: Station, dst: Station, when: When) -> List[Route]:
        return self.routes_for_weekday(src, dst, self.resolve_weekday(when))

    def station_timetable(self, station: Station, direction: Direction, when: When) -> List[Route]:
        """station に停車する direction 方向の列車"""
        weekday = self.resolve_weekday(when)
        code = self.reference.station_code(station, direction)
        return self._to_routes(self.index.get_timetable_for_station(code, direction, weekday))

    def route_for_train(self, train_id: str) -> Route:
        return self.index.journey_to_route(self.index.get_route_for_train(train_id))

    def routes_through_stops(
        self, stations: Sequence[Station], direction: Direction, when: When
    ) -> List[Route]:
        """stations のすべてに停車する列車"""
        weekday = self.resolve_weekday(when)
        codes = [self.reference.station_code(s, direction) for s in stations]
        return self._to_routes(self.index.get_train_routes_for_all_stops(codes, direction, weekday))
