# caltrain/main.py
"""
読み取り専用の HTTP API

    uvicorn caltrain.main:app

起動時に .env / 環境変数からクライアントを作り、静的データを取得する。
以降は refresh_interval_sec ごとにバックグラウンドで再取得する。
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query

from .client import CaltrainClient, new_client
from .errors import CaltrainError, ErrorKind
from .timetable_models import LiveStatus, Route, TrainStatus

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ============================================================================
# Serializers
# ============================================================================

def format_seconds(sec: int) -> str:
    """日跨ぎを含めた秒数を "HH:MM:SS" にする（翌日は 24 時以降で表す）"""
    h, rem = divmod(sec, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def route_to_dict(route: Route) -> Dict[str, Any]:
    return {
        "train": route.train_id,
        "direction": route.direction.value,
        "line": route.line.value,
        "stop_count": route.stop_count,
        "stops": [
            {
                "order": stop.order,
                "station": stop.station.display_name,
                "arrival": format_seconds(stop.arrival_sec),
                "departure": format_seconds(stop.departure_sec),
            }
            for stop in route.stops
        ],
    }


def status_to_dict(status: TrainStatus) -> Dict[str, Any]:
    return {
        "train": status.train_id,
        "direction": status.direction.value if status.direction else None,
        "line": status.line.value if status.line else None,
        "delay_sec": int(status.delay.total_seconds()),
        "arrival": status.arrival.isoformat() if status.arrival else None,
        "next_stop": status.next_stop.display_name if status.next_stop is not None else None,
    }


def live_to_dict(live: LiveStatus) -> Dict[str, Any]:
    return {
        "trains": [status_to_dict(s) for s in live.trains],
        "as_of": live.as_of.isoformat(),
        "stale": live.is_stale,
        "error": str(live.error) if live.error else None,
    }


def to_http_exception(e: Exception) -> HTTPException:
    if isinstance(e, CaltrainError):
        if e.kind == ErrorKind.NOT_FOUND:
            return HTTPException(status_code=404, detail=str(e))
        if e.kind == ErrorKind.RATE_LIMIT:
            return HTTPException(status_code=503, detail=str(e))
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


# ============================================================================
# App
# ============================================================================

def create_app(client: Optional[CaltrainClient] = None, *, refresh: bool = True) -> FastAPI:
    """
    client を渡した場合はそれをそのまま使う（テスト用）。
    refresh=False ならバックグラウンドの再取得を行わない。
    """
    app = FastAPI(title="Caltrain timetable")
    app.state.client = client
    app.state.refresh_task = None

    def get_client() -> CaltrainClient:
        if app.state.client is None:
            raise HTTPException(status_code=503, detail="client is not initialized")
        return app.state.client

    async def refresh_loop(c: CaltrainClient) -> None:
        interval = c.settings.refresh_interval_sec
        while True:
            try:
                await asyncio.to_thread(c.initialize)
                logger.info("Static data refreshed")
            except CaltrainError as e:
                logger.error("Static data refresh failed (%s): %s", e.kind.value, e)
            await asyncio.sleep(interval)

    @app.on_event("startup")
    async def startup_event():
        if app.state.client is None:
            app.state.client = new_client()
        if refresh:
            app.state.refresh_task = asyncio.create_task(refresh_loop(app.state.client))
            logger.info("Background refresh started")

    @app.on_event("shutdown")
    async def shutdown_event():
        task = app.state.refresh_task
        if task is not None:
            task.cancel()
            logger.info("Background refresh stopped")

    @app.get("/api/health")
    def health():
        c = app.state.client
        return {
            "status": "ok",
            "stations_loaded": bool(c and c.reference.has_stations),
            "lines_loaded": [line.value for line in c.index.lines()] if c else [],
        }

    @app.get("/api/stations")
    def list_stations():
        c = get_client()
        loaded = {info.station: info for info in c.reference.loaded_stations()}
        stations = []
        for station in c.list_stations():
            info = loaded.get(station)
            stations.append(
                {
                    "id": station.name.lower(),
                    "name": station.display_name,
                    "north_code": info.north_code if info else None,
                    "south_code": info.south_code if info else None,
                    "lat": info.latitude if info else None,
                    "lon": info.longitude if info else None,
                }
            )
        return {"stations": stations}

    @app.get("/api/holidays/{day}")
    def holiday(day: date):
        return {"date": day.isoformat(), "holiday": get_client().is_holiday(day)}

    @app.get("/api/routes")
    def routes(
        src: str = Query(..., alias="from"),
        dst: str = Query(..., alias="to"),
        on: Optional[date] = Query(None, alias="date"),
        weekday: Optional[str] = None,
    ):
        logger.info("GET /api/routes from=%s to=%s date=%s weekday=%s", src, dst, on, weekday)
        c = get_client()
        try:
            result = c.get_trains_between_stations(src, dst, weekday or on)
        except (CaltrainError, ValueError) as e:
            raise to_http_exception(e) from e
        return {"routes": [route_to_dict(r) for r in result]}

    @app.get("/api/stations/{station}/timetable")
    def station_timetable(
        station: str,
        direction: str,
        on: Optional[date] = Query(None, alias="date"),
        weekday: Optional[str] = None,
    ):
        c = get_client()
        try:
            result = c.get_station_timetable(station, direction, weekday or on)
        except (CaltrainError, ValueError) as e:
            raise to_http_exception(e) from e
        return {"routes": [route_to_dict(r) for r in result]}

    @app.get("/api/stations/{station}/status")
    def station_status(station: str, direction: str):
        c = get_client()
        try:
            live = c.get_station_status(station, direction)
        except (CaltrainError, ValueError) as e:
            raise to_http_exception(e) from e
        return live_to_dict(live)

    @app.get("/api/trains/{train}/route")
    def train_route(train: str):
        c = get_client()
        try:
            route = c.get_train_route(train)
        except CaltrainError as e:
            raise to_http_exception(e) from e
        return route_to_dict(route)

    @app.get("/api/delays")
    def delays(threshold_min: float = 10.0):
        c = get_client()
        try:
            live = c.get_delays(timedelta(minutes=threshold_min))
        except CaltrainError as e:
            raise to_http_exception(e) from e
        return live_to_dict(live)

    return app


app = create_app()
