# caltrain/cache.py
"""
リアルタイム系レスポンスの TTL キャッシュ

期限切れのエントリも削除せずに残し、上流が失敗したときの代替に使う。
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, NamedTuple, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: bytes
    inserted_at: datetime
    expires_at: datetime


class CacheResult(NamedTuple):
    """キーが無いときは payload / inserted_at が None、is_valid は False"""

    payload: Optional[bytes]
    inserted_at: Optional[datetime]
    is_valid: bool


MISSING = CacheResult(None, None, False)


class TTLCache:
    """
    key -> 生レスポンス（bytes）のキャッシュ。

    期限切れの判定は get() のときだけ行う（掃除用のスレッドは持たない）。
    """

    def __init__(self, ttl: timedelta, clock: Clock = utc_now) -> None:
        if ttl <= timedelta(0):
            raise ValueError(f"cache ttl must be positive: {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def set(self, key: str, payload: bytes) -> CacheEntry:
        now = self._clock()
        entry = CacheEntry(key=key, payload=payload, inserted_at=now, expires_at=now + self.ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def get(self, key: str) -> CacheResult:
        """
        エントリが無ければ MISSING（payload は None）。
        期限切れでも payload と挿入時刻は返す（is_valid=False）。
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return MISSING
        is_valid = not self._clock() > entry.expires_at
        return CacheResult(entry.payload, entry.inserted_at, is_valid)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
