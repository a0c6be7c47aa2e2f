# caltrain/constants.py
"""
511.org API のエンドポイントと既定値
"""
from datetime import timedelta

BASE_URL = "http://api.511.org/transit/"

# 静的データ
STATIONS_URL = BASE_URL + "stops"
TIMETABLE_URL = BASE_URL + "timetable"
HOLIDAYS_URL = BASE_URL + "holidays"

# リアルタイム
# NOTE: 遅延一覧と駅ステータスは同じ StopMonitoring を使い、stopCode の有無で切り替える
STOP_MONITORING_URL = BASE_URL + "StopMonitoring"
TRIP_UPDATES_URL = BASE_URL + "TripUpdates"
VEHICLE_POSITIONS_URL = BASE_URL + "VehiclePositions"

OPERATOR_ID = "CT"
DEFAULT_TIMEZONE = "America/Los_Angeles"

# 接続タイムアウトと読み取りタイムアウト（秒）
HTTP_TIMEOUT = (5, 10)

# 無料キーは 60 リクエスト/時 なので 5 分キャッシュが目安
DEFAULT_CACHE_TIMEOUT = timedelta(minutes=5)
DEFAULT_DELAY_THRESHOLD = timedelta(minutes=10)

# 時刻表・祝日の再取得間隔（秒）
DEFAULT_REFRESH_INTERVAL_SEC = 24 * 3600

SECONDS_PER_DAY = 24 * 3600
