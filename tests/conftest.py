"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple, Union

import pytest

from caltrain.client import CaltrainClient
from caltrain.constants import HOLIDAYS_URL, STATIONS_URL, STOP_MONITORING_URL, TIMETABLE_URL
from caltrain.errors import GenericAPIError
from caltrain.models import Line

FIXTURES = Path(__file__).parent / "fixtures"

# 2019-11-21 (木) 16:30 America/Los_Angeles
NOW = datetime(2019, 11, 22, 0, 30, tzinfo=timezone.utc)


def load_fixture(name: str) -> bytes:
    return (FIXTURES / name).read_bytes()


class FakeApiClient:
    """URL（timetable は line_id、StopMonitoring は stopCode も）ごとに用意したレスポンスを返す"""

    def __init__(self) -> None:
        self.responses: Dict[str, Union[bytes, Exception]] = {}
        self.calls: List[Tuple[str, Dict[str, str], Any]] = []

    @staticmethod
    def key(url: str, params: Mapping[str, str]) -> str:
        if "line_id" in params:
            return f"{url}#{params['line_id']}"
        if "stopCode" in params:
            return f"{url}#{params['stopCode']}"
        return url

    def add(self, url: str, response: Union[bytes, Exception], **params: str) -> None:
        self.responses[self.key(url, params)] = response

    def get(self, url: str, params: Mapping[str, str], timeout=None) -> bytes:
        self.calls.append((url, dict(params), timeout))
        response = self.responses.get(self.key(url, params))
        if response is None:
            raise GenericAPIError(404, "Not Found", url)
        if isinstance(response, Exception):
            raise response
        return response

    def count(self, url: str) -> int:
        return sum(1 for called, _, _ in self.calls if called == url)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def fake_api() -> FakeApiClient:
    """駅・祝日・3種別の時刻表を返す FakeApiClient"""
    api = FakeApiClient()
    api.add(STATIONS_URL, load_fixture("stations.json"))
    api.add(HOLIDAYS_URL, load_fixture("holidays.json"))
    api.add(TIMETABLE_URL, load_fixture("bullet.json"), line_id="Bullet")
    api.add(TIMETABLE_URL, load_fixture("limited.json"), line_id="Limited")
    api.add(TIMETABLE_URL, load_fixture("local.json"), line_id="Local")
    api.add(STOP_MONITORING_URL, load_fixture("delays.json"))
    api.add(STOP_MONITORING_URL, load_fixture("status_hillsdale_north.json"), stopCode="70111")
    api.add(STOP_MONITORING_URL, load_fixture("status_hillsdale_south.json"), stopCode="70112")
    return api


@pytest.fixture
def client(fake_api: FakeApiClient, clock: FakeClock) -> CaltrainClient:
    """initialize() 済みのクライアント（キャッシュなし）"""
    c = CaltrainClient(
        "test-key",
        api_client=fake_api,
        clock=clock,
        lines=[Line.BULLET, Line.LIMITED, Line.LOCAL],
    )
    c.initialize()
    return c
