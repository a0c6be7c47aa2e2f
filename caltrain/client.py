# caltrain/client.py
"""
Caltrain クライアント（公開 API）

静的データ（駅・祝日・時刻表）は update_*() で明示的に取得し、
以降のクエリはメモリ上のデータだけで答える。
リアルタイム系（遅延・駅ステータス・GTFS-RT）は毎回 511 に問い合わせるが、
setup_cache() でキャッシュを有効にすると上流の失敗時に期限切れデータで代替する。
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Union

from zoneinfo import ZoneInfo

from .api_client import ApiClient, ApiClient511, Timeout
from .cache import Clock, TTLCache, utc_now
from .config import Settings, default_refresh_lines, get_line_config, load_settings
from .constants import (
    DEFAULT_DELAY_THRESHOLD,
    HOLIDAYS_URL,
    STATIONS_URL,
    STOP_MONITORING_URL,
    TIMETABLE_URL,
    TRIP_UPDATES_URL,
    VEHICLE_POSITIONS_URL,
)
from .day_types import DayTypeResolver
from .errors import CaltrainError, ParseError, is_stale_fallback_allowed
from .gtfs_rt import parse_trip_updates, parse_vehicle_positions
from .models import Direction, Line, Station, direction_between, parse_direction, parse_station
from .parser import filter_delayed, parse_holidays, parse_stations, parse_timetable, parse_train_statuses
from .reference_data import ReferenceDataStore, build_station_table
from .routes import RouteQueryEngine, When
from .timetable import TimetableIndex
from .timetable_models import LiveStatus, Route

logger = logging.getLogger(__name__)

StationLike = Union[Station, str]
DirectionLike = Union[Direction, str]


def _as_station(value: StationLike) -> Station:
    return value if isinstance(value, Station) else parse_station(value)


def _as_direction(value: DirectionLike) -> Direction:
    return value if isinstance(value, Direction) else parse_direction(value)


class CaltrainClient:
    def __init__(
        self,
        api_key: str,
        *,
        api_client: Optional[ApiClient] = None,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        lines: Optional[Iterable[Line]] = None,
    ) -> None:
        settings = settings or Settings()
        self.settings = settings.model_copy(update={"api_key": api_key})
        self.api_client = api_client or ApiClient511(timeout=self.settings.http_timeout)
        self.clock = clock
        self.lines: List[Line] = list(lines) if lines is not None else default_refresh_lines()

        self.reference = ReferenceDataStore()
        self.resolver = DayTypeResolver()
        self.index = TimetableIndex(self.reference, self.resolver)
        self.routes = RouteQueryEngine(self.reference, self.index)
        self.cache: Optional[TTLCache] = None

    # ========================================================================
    # 取得
    # ========================================================================

    def _fetch(self, url: str, params: Dict[str, str], timeout: Optional[Timeout] = None) -> bytes:
        query = {"api_key": self.settings.api_key, **params}
        return self.api_client.get(url, query, timeout=timeout)

    def initialize(self, timeout: Optional[Timeout] = None) -> None:
        """駅・祝日・時刻表をすべて取得する"""
        self.update_stations(timeout=timeout)
        self.update_holidays(timeout=timeout)
        self.update_timetable(timeout=timeout)

    def update_stations(self, timeout: Optional[Timeout] = None) -> None:
        raw = self._fetch(STATIONS_URL, {"operator_id": self.settings.operator_id}, timeout)
        table = build_station_table(parse_stations(raw))
        if not table:
            raise ParseError("stops response contained no Caltrain stations")
        self.reference.replace_stations(table)

    def update_holidays(self, timeout: Optional[Timeout] = None) -> None:
        raw = self._fetch(HOLIDAYS_URL, {"operator_id": self.settings.operator_id}, timeout)
        self.reference.replace_holidays(parse_holidays(raw))

    def update_timetable(
        self, lines: Optional[Iterable[Line]] = None, timeout: Optional[Timeout] = None
    ) -> None:
        """
        種別ごとの時刻表を取得して差し替える。

        すべての種別の取得・解析が終わってから差し替えるので、
        途中で失敗した場合は以前のデータがそのまま残る。
        """
        lines = list(lines) if lines is not None else self.lines
        parsed = []
        for line in lines:
            conf = get_line_config(line)
            raw = self._fetch(
                TIMETABLE_URL,
                {"operator_id": self.settings.operator_id, "line_id": conf.line_id},
                timeout,
            )
            frames, services = parse_timetable(raw, line)
            parsed.append((line, frames, services))

        for line, frames, services in parsed:
            self.index.replace_line(line, frames, services)

    # ========================================================================
    # キャッシュ
    # ========================================================================

    def setup_cache(self, ttl: Union[timedelta, int, float]) -> None:
        """
        リアルタイム系レスポンスのキャッシュを有効にする。
        ttl が 0 以下ならキャッシュを無効にする。
        """
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=ttl)
        if ttl <= timedelta(0):
            self.cache = None
            logger.info("Response cache disabled")
            return
        self.cache = TTLCache(ttl, clock=self.clock)
        logger.info("Response cache enabled (ttl=%s)", ttl)

    def _fetch_live(
        self,
        url: str,
        params: Dict[str, str],
        key: str,
        parse: Callable[[bytes], list],
        timeout: Optional[Timeout] = None,
    ) -> LiveStatus:
        cache = self.cache
        if cache is not None:
            cached = cache.get(key)
            if cached.is_valid:
                logger.debug("Cache hit for %s", key)
                return LiveStatus(parse(cached.payload), cached.inserted_at)

        try:
            raw = self._fetch(url, params, timeout)
        except CaltrainError as e:
            if cache is not None and is_stale_fallback_allowed(e.kind):
                cached = cache.get(key)
                if cached.payload is not None:
                    logger.warning(
                        "Upstream failed (%s), serving cached data from %s",
                        e.kind.value,
                        cached.inserted_at.isoformat(),
                    )
                    return LiveStatus(parse(cached.payload), cached.inserted_at, error=e)
            raise

        # 解析に失敗したペイロードはキャッシュしない
        trains = parse(raw)
        if cache is not None:
            as_of = cache.set(key, raw).inserted_at
        else:
            as_of = self.clock()
        return LiveStatus(trains, as_of)

    # ========================================================================
    # リアルタイム
    # ========================================================================

    def get_delays(
        self,
        threshold: timedelta = DEFAULT_DELAY_THRESHOLD,
        timeout: Optional[Timeout] = None,
    ) -> LiveStatus:
        """遅れが threshold を超えている列車"""
        return self._fetch_live(
            STOP_MONITORING_URL,
            {"agency": self.settings.operator_id},
            STOP_MONITORING_URL,
            lambda raw: filter_delayed(parse_train_statuses(raw, self.clock()), threshold),
            timeout,
        )

    def get_station_status(
        self,
        station: StationLike,
        direction: DirectionLike,
        timeout: Optional[Timeout] = None,
    ) -> LiveStatus:
        """station の direction 側ホームに向かっている列車"""
        code = self.reference.station_code(_as_station(station), _as_direction(direction))
        return self._fetch_live(
            STOP_MONITORING_URL,
            {"agency": self.settings.operator_id, "stopCode": code},
            f"{STOP_MONITORING_URL}:{code}",
            lambda raw: parse_train_statuses(raw, self.clock()),
            timeout,
        )

    def get_trip_updates(self, timeout: Optional[Timeout] = None) -> LiveStatus:
        return self._fetch_live(
            TRIP_UPDATES_URL,
            {"agency": self.settings.operator_id},
            TRIP_UPDATES_URL,
            parse_trip_updates,
            timeout,
        )

    def get_vehicle_positions(self, timeout: Optional[Timeout] = None) -> LiveStatus:
        return self._fetch_live(
            VEHICLE_POSITIONS_URL,
            {"agency": self.settings.operator_id},
            VEHICLE_POSITIONS_URL,
            parse_vehicle_positions,
            timeout,
        )

    # ========================================================================
    # 時刻表
    # ========================================================================

    def today(self) -> date:
        """時刻表のタイムゾーンでの今日"""
        return self.clock().astimezone(ZoneInfo(self.settings.timezone)).date()

    def get_trains_between_stations(
        self, src: StationLike, dst: StationLike, when: Optional[When] = None
    ) -> List[Route]:
        """
        src から dst へ行く列車。

        when は曜日名・曜日番号（0 = 月曜）・日付のいずれか。省略時は今日。
        日付の場合、祝日は日曜ダイヤになる。
        """
        if when is None:
            when = self.today()
        return self.routes.routes(_as_station(src), _as_station(dst), when)

    def get_station_timetable(
        self,
        station: StationLike,
        direction: DirectionLike,
        when: Optional[When] = None,
    ) -> List[Route]:
        if when is None:
            when = self.today()
        return self.routes.station_timetable(_as_station(station), _as_direction(direction), when)

    def get_train_route(self, train_id: str) -> Route:
        return self.routes.route_for_train(train_id)

    def get_direction(self, src: StationLike, dst: StationLike) -> Direction:
        return direction_between(_as_station(src), _as_station(dst))

    def is_holiday(self, d: Union[date, datetime]) -> bool:
        return self.reference.is_holiday(d)

    def list_stations(self) -> List[Station]:
        return self.reference.all_stations()


def new_client(
    api_key: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    **kwargs,
) -> CaltrainClient:
    """
    設定（.env / 環境変数）からクライアントを作る。

    cache_timeout_sec が正ならキャッシュを有効にした状態で返す。
    データの取得（initialize()）は呼び出し側で行う。
    """
    settings = settings or load_settings()
    api_key = api_key or settings.api_key
    if not api_key:
        raise ValueError("511.org API key is required (set CALTRAIN_API_KEY)")

    client = CaltrainClient(api_key, settings=settings, **kwargs)
    if settings.cache_timeout_sec > 0:
        client.setup_cache(timedelta(seconds=settings.cache_timeout_sec))
    return client
