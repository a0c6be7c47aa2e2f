"""
Caltrain timetable and live-status client for the 511.org transit API.
"""
from .cache import TTLCache
from .client import CaltrainClient, new_client
from .config import Settings, load_settings
from .errors import (
    CaltrainError,
    ErrorKind,
    GenericAPIError,
    NotFoundError,
    ParseError,
    RateLimitError,
    TransportError,
    classify_error,
)
from .models import Direction, Line, Station
from .timetable_models import LiveStatus, Route, TrainStatus, TrainStop

__all__ = [
    "CaltrainClient",
    "CaltrainError",
    "Direction",
    "ErrorKind",
    "GenericAPIError",
    "Line",
    "LiveStatus",
    "NotFoundError",
    "ParseError",
    "RateLimitError",
    "Route",
    "Settings",
    "Station",
    "TTLCache",
    "TrainStatus",
    "TrainStop",
    "TransportError",
    "classify_error",
    "load_settings",
    "new_client",
]
