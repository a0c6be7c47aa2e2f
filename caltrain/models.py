# caltrain/models.py
"""
駅・方向・種別の列挙型

どれも閉じた列挙で、名前 <-> 値 の対応表は import 時に一度だけ構築する。
プロセス全体で共有してよいのはこの不変テーブルだけ。
"""
from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict

from .errors import NotFoundError


class Station(IntEnum):
    """
    Caltrain の駅。

    値の順序がそのまま北 → 南の並び順になっている
    （値が大きい駅へは南行きで向かう）。
    """

    SAN_FRANCISCO = 0
    TWENTY_SECOND_STREET = 1
    BAYSHORE = 2
    SOUTH_SAN_FRANCISCO = 3
    SAN_BRUNO = 4
    MILLBRAE = 5
    BROADWAY = 6
    BURLINGAME = 7
    SAN_MATEO = 8
    HAYWARD_PARK = 9
    HILLSDALE = 10
    BELMONT = 11
    SAN_CARLOS = 12
    REDWOOD_CITY = 13
    ATHERTON = 14
    MENLO_PARK = 15
    PALO_ALTO = 16
    STANFORD = 17
    CALIFORNIA_AVE = 18
    SAN_ANTONIO = 19
    MOUNTAIN_VIEW = 20
    SUNNYVALE = 21
    LAWRENCE = 22
    SANTA_CLARA = 23
    COLLEGE_PARK = 24
    SAN_JOSE_DIRIDON = 25
    TAMIEN = 26
    CAPITOL = 27
    BLOSSOM_HILL = 28
    MORGAN_HILL = 29
    SAN_MARTIN = 30
    GILROY = 31

    @property
    def display_name(self) -> str:
        return STATION_NAMES[self]

    def __str__(self) -> str:
        return self.display_name


STATION_NAMES: Dict[Station, str] = {
    Station.SAN_FRANCISCO: "San Francisco",
    Station.TWENTY_SECOND_STREET: "22nd Street",
    Station.BAYSHORE: "Bayshore",
    Station.SOUTH_SAN_FRANCISCO: "South San Francisco",
    Station.SAN_BRUNO: "San Bruno",
    Station.MILLBRAE: "Millbrae",
    Station.BROADWAY: "Broadway",
    Station.BURLINGAME: "Burlingame",
    Station.SAN_MATEO: "San Mateo",
    Station.HAYWARD_PARK: "Hayward Park",
    Station.HILLSDALE: "Hillsdale",
    Station.BELMONT: "Belmont",
    Station.SAN_CARLOS: "San Carlos",
    Station.REDWOOD_CITY: "Redwood City",
    Station.ATHERTON: "Atherton",
    Station.MENLO_PARK: "Menlo Park",
    Station.PALO_ALTO: "Palo Alto",
    Station.STANFORD: "Stanford",
    Station.CALIFORNIA_AVE: "California Ave",
    Station.SAN_ANTONIO: "San Antonio",
    Station.MOUNTAIN_VIEW: "Mountain View",
    Station.SUNNYVALE: "Sunnyvale",
    Station.LAWRENCE: "Lawrence",
    Station.SANTA_CLARA: "Santa Clara",
    Station.COLLEGE_PARK: "College Park",
    Station.SAN_JOSE_DIRIDON: "San Jose Diridon",
    Station.TAMIEN: "Tamien",
    Station.CAPITOL: "Capitol",
    Station.BLOSSOM_HILL: "Blossom Hill",
    Station.MORGAN_HILL: "Morgan Hill",
    Station.SAN_MARTIN: "San Martin",
    Station.GILROY: "Gilroy",
}

# 表示名・列挙名のどちらでも引けるようにする（小文字キー）
_STATION_BY_NAME: Dict[str, Station] = {}
for _station, _name in STATION_NAMES.items():
    _STATION_BY_NAME[_name.lower()] = _station
    _STATION_BY_NAME[_station.name.lower()] = _station
# 511 の表記揺れ
_STATION_BY_NAME["san jose"] = Station.SAN_JOSE_DIRIDON
_STATION_BY_NAME["california avenue"] = Station.CALIFORNIA_AVE
_STATION_BY_NAME["so. san francisco"] = Station.SOUTH_SAN_FRANCISCO


def parse_station(name: str) -> Station:
    """駅名（大文字小文字は区別しない）から Station を返す"""
    station = _STATION_BY_NAME.get(name.strip().lower())
    if station is None:
        raise NotFoundError(f"{name} is not a recognized station")
    return station


class Direction(str, Enum):
    NORTH = "North"
    SOUTH = "South"

    def __str__(self) -> str:
        return self.value


def parse_direction(value: str) -> Direction:
    """
    "North" / "north" / "N" / "N " などを Direction に変換する。

    511 のデータは末尾に空白が付くことがあるので先頭文字で判定する。
    """
    v = value.strip().lower()
    if v in ("north", "n"):
        return Direction.NORTH
    if v in ("south", "s"):
        return Direction.SOUTH
    raise NotFoundError(f"{value} is not a valid direction. Must be either North or South")


def direction_from_marker(marker: str) -> Direction:
    """"N" / "S" で始まる方向マーカー（"N :..." など）を変換する"""
    m = marker.strip().upper()
    if m.startswith("N"):
        return Direction.NORTH
    if m.startswith("S"):
        return Direction.SOUTH
    raise NotFoundError(f"unknown direction marker {marker!r}")


def direction_between(src: Station, dst: Station) -> Direction:
    """src から dst へ向かう方向を返す（同じ駅は不可）"""
    if src == dst:
        raise ValueError(f"The stations are the same: {src} to {dst}")
    # 南側の駅ほど値が大きい
    return Direction.NORTH if src > dst else Direction.SOUTH


class Line(str, Enum):
    """列車種別（値は表示名）"""

    BULLET = "Bullet"
    LIMITED = "Limited"
    LIMITED_A = "Limited A"
    LIMITED_B = "Limited B"
    LOCAL = "Local"
    SPECIAL = "Special"

    @property
    def display_name(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value
