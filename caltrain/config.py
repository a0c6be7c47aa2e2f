# caltrain/config.py
"""
種別（Line）ごとの設定と実行時設定

新しい種別を追加する際は SUPPORTED_LINES に追記する。
"""
import os
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel

from .constants import (
    DEFAULT_CACHE_TIMEOUT,
    DEFAULT_REFRESH_INTERVAL_SEC,
    DEFAULT_TIMEZONE,
    HTTP_TIMEOUT,
    OPERATOR_ID,
)
from .errors import NotFoundError
from .models import Line


class LineConfig(BaseModel):
    """種別ごとの設定"""
    name: str                  # 表示名
    line_id: str               # 511 timetable API の line_id クエリ値
    aliases: List[str] = []    # StopMonitoring の LineRef などで使われる別表記
    refresh: bool = True       # update_timetable() の既定対象にするか


SUPPORTED_LINES: Dict[Line, LineConfig] = {
    Line.BULLET: LineConfig(
        name="Bullet",
        line_id="Bullet",
        aliases=["baby bullet", "express"],
    ),
    Line.LIMITED: LineConfig(
        name="Limited",
        line_id="Limited",
        aliases=["ltd"],
    ),
    Line.LIMITED_A: LineConfig(
        name="Limited A",
        line_id="Limited A",
        aliases=["ltd a", "limiteda"],
        refresh=False,
    ),
    Line.LIMITED_B: LineConfig(
        name="Limited B",
        line_id="Limited B",
        aliases=["ltd b", "limitedb"],
        refresh=False,
    ),
    Line.LOCAL: LineConfig(
        name="Local",
        line_id="Local",
        aliases=["loc"],
    ),
    Line.SPECIAL: LineConfig(
        name="Special",
        line_id="Special",
        refresh=False,
    ),
}

_LINE_BY_ALIAS: Dict[str, Line] = {}
for _line, _conf in SUPPORTED_LINES.items():
    for _alias in [_conf.name, _conf.line_id, _line.name, *_conf.aliases]:
        _LINE_BY_ALIAS[_alias.lower()] = _line


def get_line_config(line: Line) -> LineConfig:
    return SUPPORTED_LINES[line]


def parse_line(value: str) -> Line:
    """
    "Local" / "LTD A" / "limited_b" などを Line に変換する。
    見つからない場合は NotFoundError。
    """
    line = _LINE_BY_ALIAS.get(value.strip().lower())
    if line is None:
        raise NotFoundError(
            f"{value} is not a valid line. Must be Local, Limited, LTD A, LTD B, Bullet or Special"
        )
    return line


def default_refresh_lines() -> List[Line]:
    return [line for line, conf in SUPPORTED_LINES.items() if conf.refresh]


class Settings(BaseModel):
    """実行時設定（.env / 環境変数から読み込む）"""
    api_key: str = ""
    operator_id: str = OPERATOR_ID
    timezone: str = DEFAULT_TIMEZONE
    http_timeout: Tuple[float, float] = HTTP_TIMEOUT
    # 0 以下ならキャッシュを使わない
    cache_timeout_sec: int = int(DEFAULT_CACHE_TIMEOUT.total_seconds())
    refresh_interval_sec: int = DEFAULT_REFRESH_INTERVAL_SEC


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    環境変数から Settings を作る。

    - CALTRAIN_API_KEY: 511.org の API キー（必須）
    - CALTRAIN_CACHE_TIMEOUT: キャッシュ有効期間（秒）
    - CALTRAIN_TIMEZONE: 時刻表のタイムゾーン
    - CALTRAIN_REFRESH_INTERVAL: 時刻表・祝日の再取得間隔（秒）
    """
    load_dotenv(env_file)

    values: Dict[str, object] = {
        "api_key": os.getenv("CALTRAIN_API_KEY", "").strip(),
    }
    cache_timeout = os.getenv("CALTRAIN_CACHE_TIMEOUT")
    if cache_timeout:
        values["cache_timeout_sec"] = cache_timeout
    timezone = os.getenv("CALTRAIN_TIMEZONE")
    if timezone:
        values["timezone"] = timezone.strip()
    refresh_interval = os.getenv("CALTRAIN_REFRESH_INTERVAL")
    if refresh_interval:
        values["refresh_interval_sec"] = refresh_interval

    return Settings(**values)
