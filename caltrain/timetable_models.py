# caltrain/timetable_models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, FrozenSet, List, Optional

from .errors import CaltrainError
from .models import Direction, Line, Station


@dataclass(frozen=True)
class Call:
    """1駅分の停車（時刻は 00:00 からの秒数、日跨ぎ補正前）"""

    order: int
    stop_code: str
    arrival_sec: int
    departure_sec: int
    # 翌日扱い（DaysOffset = 1）なら True
    arrival_next_day: bool = False
    departure_next_day: bool = False


@dataclass
class Journey:
    """1本の列車の運行（Call は order の昇順）"""

    train_id: str
    # 種別・方向は所属する Frame から決まる
    line: Line
    direction: Direction
    calls: List[Call]

    def stop_codes(self) -> FrozenSet[str]:
        return frozenset(call.stop_code for call in self.calls)

    def stops_at(self, code: str) -> bool:
        return any(call.stop_code == code for call in self.calls)


@dataclass
class Frame:
    """有効期間・曜日種別・方向ごとの Journey の集まり"""

    frame_id: str
    name: str
    line: Line
    direction: Direction
    day_type_ref: str
    from_date: Optional[date]
    to_date: Optional[date]
    journeys: List[Journey] = field(default_factory=list)


@dataclass(frozen=True)
class TrainStop:
    """Route 上の1駅（日跨ぎを含めた秒数。86400〜 が翌日）"""

    order: int
    station: Station
    arrival_sec: int
    departure_sec: int

    @property
    def arrival(self) -> timedelta:
        return timedelta(seconds=self.arrival_sec)

    @property
    def departure(self) -> timedelta:
        return timedelta(seconds=self.departure_sec)


@dataclass
class Route:
    train_id: str
    direction: Direction
    line: Line
    stop_count: int
    stops: List[TrainStop]


@dataclass
class StopRecord:
    """stops API の1レコード（北側・南側で別レコード）"""

    code: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class StationInfo:
    station: Station
    north_code: str
    south_code: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def code_for(self, direction: Direction) -> str:
        return self.north_code if direction == Direction.NORTH else self.south_code


@dataclass
class TrainStatus:
    """列車のリアルタイム状況（StopMonitoring 由来）"""

    train_id: str
    direction: Optional[Direction]
    line: Optional[Line]
    # 遅れ（負の値は 0 に丸める）
    delay: timedelta
    # 次駅への到着見込み（UTC）
    arrival: Optional[datetime]
    next_stop: Optional[Station]


@dataclass
class StopDelay:
    stop_sequence: int
    stop_code: str
    arrival_delay_sec: Optional[int]
    arrival_time: Optional[int]  # unix timestamp (seconds)


@dataclass
class TripUpdate:
    """GTFS-RT TripUpdate の1列車分"""

    train_id: str
    direction: Optional[Direction]
    stop_delays: List[StopDelay] = field(default_factory=list)


@dataclass
class VehiclePosition:
    train_id: str
    vehicle_id: str
    latitude: float
    longitude: float
    stop_code: Optional[str]
    current_stop_sequence: Optional[int]
    timestamp: Optional[int]


@dataclass
class LiveStatus:
    """
    リアルタイム系クエリの戻り値。

    error が入っているのは、上流が失敗して期限切れキャッシュで代替した場合のみ。
    as_of はデータを取得した時刻（代替時は元の取得時刻）。
    """

    trains: List[Any]
    as_of: datetime
    error: Optional[CaltrainError] = None

    @property
    def is_stale(self) -> bool:
        return self.error is not None
