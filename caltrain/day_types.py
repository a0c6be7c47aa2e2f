# caltrain/day_types.py
"""
曜日種別（DayType）の解決

時刻表の各 Frame は dayTypeRef（例: "8005"）を持ち、
それがどの曜日に運行されるかは ServiceCalendarFrame で定義される。
"""
from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Mapping, Union

from .errors import NotFoundError

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# 祝日は日曜ダイヤ
HOLIDAY_WEEKDAY = "sunday"


def weekday_name(d: Union[date, datetime]) -> str:
    return WEEKDAYS[d.weekday()]


def normalize_weekday(value: Union[str, int]) -> str:
    """
    "Monday" / "mon" / 0 (= 月曜) などを小文字の曜日名に変換する。
    """
    if isinstance(value, bool):
        raise NotFoundError(f"{value} is not a valid weekday")
    if isinstance(value, int):
        if not 0 <= value <= 6:
            raise NotFoundError(f"{value} is not a valid weekday index")
        return WEEKDAYS[value]

    v = value.strip().lower()
    for name in WEEKDAYS:
        if v == name or (len(v) >= 3 and name.startswith(v)):
            return name
    raise NotFoundError(f"{value} is not a valid weekday")


class DayTypeResolver:
    """
    dayTypeRef -> 運行曜日 の対応表。

    時刻表の取得ごとに merge() で差分を追加する。
    読み取り側は常に完成したスナップショットを見る（書き込みは差し替えのみ）。
    """

    def __init__(self) -> None:
        self._services: Mapping[str, FrozenSet[str]] = {}
        self._write_lock = threading.Lock()

    def merge(self, services: Mapping[str, FrozenSet[str]]) -> None:
        with self._write_lock:
            merged: Dict[str, FrozenSet[str]] = dict(self._services)
            for ref, days in services.items():
                old = merged.get(ref)
                if old is not None and old != days:
                    logger.warning(
                        "DayType %s redefined: %s -> %s", ref, sorted(old), sorted(days)
                    )
                merged[ref] = frozenset(days)
            self._services = merged
        logger.debug("DayTypeResolver now has %d entries", len(merged))

    def is_for_today(self, weekday: str, day_type_ref: str) -> bool:
        """
        day_type_ref が weekday に運行するか。
        未知の参照は運行しない扱い（該当列車を返さない）。
        """
        days = self._services.get(day_type_ref)
        if days is None:
            logger.debug("Unknown dayTypeRef %s", day_type_ref)
            return False
        return weekday in days

    def weekdays_for(self, day_type_ref: str) -> List[str]:
        days = self._services.get(day_type_ref, frozenset())
        return [d for d in WEEKDAYS if d in days]

    def __len__(self) -> int:
        return len(self._services)
