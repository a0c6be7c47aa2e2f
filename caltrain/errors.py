# caltrain/errors.py
"""
エラー分類

上流 API の失敗は kind を持つ1つの例外階層で表し、
呼び出し側は classify_error() だけで判定する（型を個別に調べない）。
"""
from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional

import requests


class ErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"  # 上流のリクエスト上限
    API = "api"                # 200 以外のステータス
    TRANSPORT = "transport"    # 接続レベルの失敗
    PARSE = "parse"            # ペイロード不正
    NOT_FOUND = "not_found"    # 未知の駅・方向・種別・列車
    UNKNOWN = "unknown"


# 期限切れキャッシュで代替してよい失敗
STALE_FALLBACK_KINDS = frozenset({ErrorKind.RATE_LIMIT, ErrorKind.API})


class CaltrainError(Exception):
    """このパッケージが送出する例外の基底クラス"""

    default_kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        self.kind = kind or self.default_kind


class RateLimitError(CaltrainError):
    default_kind = ErrorKind.RATE_LIMIT

    def __init__(self, retry_after: Optional[int] = None) -> None:
        super().__init__("API call limit to 511.org has been reached")
        self.retry_after = retry_after


class GenericAPIError(CaltrainError):
    default_kind = ErrorKind.API

    def __init__(
        self,
        status_code: int,
        status: str = "",
        url: str = "",
        params: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(f"API error: {status_code} {status}".strip())
        self.status_code = status_code
        self.status = status
        self.url = url
        self.params = dict(params or {})


class TransportError(CaltrainError):
    default_kind = ErrorKind.TRANSPORT


class ParseError(CaltrainError, ValueError):
    default_kind = ErrorKind.PARSE


class NotFoundError(CaltrainError, LookupError):
    default_kind = ErrorKind.NOT_FOUND


def classify_error(exc: BaseException) -> ErrorKind:
    """
    任意の例外を ErrorKind に分類する。

    requests の例外がそのまま上がってきた場合もここで吸収する。
    """
    if isinstance(exc, CaltrainError):
        return exc.kind
    if isinstance(exc, requests.exceptions.HTTPError):
        response = exc.response
        if response is not None and response.status_code == 429:
            return ErrorKind.RATE_LIMIT
        return ErrorKind.API
    if isinstance(exc, requests.exceptions.RequestException):
        return ErrorKind.TRANSPORT
    if isinstance(exc, ValueError):
        # json.JSONDecodeError と pydantic.ValidationError はどちらも ValueError
        return ErrorKind.PARSE
    if isinstance(exc, LookupError):
        return ErrorKind.NOT_FOUND
    return ErrorKind.UNKNOWN


def is_stale_fallback_allowed(kind: ErrorKind) -> bool:
    return kind in STALE_FALLBACK_KINDS


def allows_stale_fallback(exc: BaseException) -> bool:
    return is_stale_fallback_allowed(classify_error(exc))
