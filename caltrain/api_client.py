"""
511.org API から生データ（bytes）を取得するクライアント

取得に失敗した場合は RateLimitError / GenericAPIError / TransportError を送出する。
リトライはしない（失敗は1回だけ上に返す）。
"""
import logging
from typing import Mapping, Optional, Protocol, Tuple, Union

import requests

from .constants import HTTP_TIMEOUT, TRIP_UPDATES_URL, VEHICLE_POSITIONS_URL
from .errors import GenericAPIError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

Timeout = Union[float, Tuple[float, float]]

# GTFS-Realtime (protobuf) を返すエンドポイント。format=json を付けない
PROTOBUF_URLS = frozenset({TRIP_UPDATES_URL, VEHICLE_POSITIONS_URL})


class ApiClient(Protocol):
    """生データ取得のインターフェース（テストではモックに差し替える）"""

    def get(
        self, url: str, params: Mapping[str, str], timeout: Optional[Timeout] = None
    ) -> bytes:
        ...


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value and value.strip().isdigit():
        return int(value.strip())
    return None


def _redact(params: Mapping[str, str]) -> dict:
    """ログ・例外に API キーを残さない"""
    return {k: ("***" if k == "api_key" else v) for k, v in params.items()}


class ApiClient511:
    """requests で 511.org にアクセスする ApiClient の実装"""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Timeout = HTTP_TIMEOUT,
    ) -> None:
        self._session = session or requests.Session()
        self.timeout = timeout

    def get(
        self, url: str, params: Mapping[str, str], timeout: Optional[Timeout] = None
    ) -> bytes:
        """
        GET リクエストを送り、レスポンスボディを返す。

        Args:
            url: エンドポイント URL
            params: クエリパラメータ（api_key を含む）
            timeout: 省略時はコンストラクタの値

        Returns:
            レスポンスボディ（BOM 付きのことがある）
        """
        query = dict(params)
        headers = {}
        if url not in PROTOBUF_URLS:
            query.setdefault("format", "json")
            headers["Accept"] = "application/json"

        logger.info("Fetching %s params=%s", url, _redact(query))
        try:
            resp = self._session.get(
                url,
                params=query,
                headers=headers,
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error("Request to %s timed out", url)
            raise TransportError(f"request to {url} timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error("Request to %s failed: %s", url, e)
            raise TransportError(f"request to {url} failed: {e}") from e

        # 残り回数はヘッダーに入っているが値が安定しないので記録のみ
        remaining = resp.headers.get("Ratelimit-Remaining")
        if remaining is not None:
            logger.debug("511.org rate limit remaining: %s", remaining)

        if resp.status_code == 429:
            logger.error("511.org API call limit reached")
            raise RateLimitError(retry_after=_parse_retry_after(resp.headers.get("Retry-After")))
        if resp.status_code != 200:
            logger.error("API error - %s %s", resp.status_code, resp.reason)
            raise GenericAPIError(resp.status_code, resp.reason or "", url, _redact(query))

        logger.info("Received %d bytes from %s", len(resp.content), url)
        return resp.content
