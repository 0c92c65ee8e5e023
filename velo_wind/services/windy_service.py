"""
Windy APIサービス

Windy point-forecast APIから風データ・風予報を取得し、
キャッシュ、監視、風警報の配信、サイクリスト向けの安全評価を行う。
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import aiohttp
from aiohttp import ClientError, ClientTimeout

from ..config import WindyConfig
from ..models.wind import (
    GeoLocation,
    MountainPassConditions,
    WindData,
    WindForecast,
    WindSafetyRecommendation,
    WindyApiOptions,
)
from ..utils.wind_safety import assess_wind_safety, normalize_direction
from .alert_service import WarningCallback, WindAlertManager
from .cache import CacheStore, InMemoryWeatherCache
from .forecast_processing import (
    aggregate_daily_forecast,
    convert_wind_speed,
    parse_point_payload,
    process_hourly_forecast,
)
from .monitoring import MonitoringSink, SafeMonitor


class WindyAPIError(Exception):
    """Windy API関連のエラー"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WindyAPIServerError(WindyAPIError):
    """サーバーエラー"""
    pass


class WindyAPITimeoutError(WindyAPIError):
    """タイムアウトエラー"""
    pass


# safety_level -> warning_level
WARNING_LEVELS = {
    'safe': 'none',
    'caution': 'info',
    'warning': 'warning',
    'danger': 'danger',
}

MOUNTAIN_PASS_ESCALATION_SPEED = 25.0  # km/h
ALTITUDE_WIND_RATIO = 1.3
ALTITUDE_LEVEL = '850h'  # 850 hPa, about 1500 m
MAX_FORECAST_DAYS = 16


def _now_ms() -> int:
    return int(time.time() * 1000)


class WindyService:
    """Windy APIサービス"""

    PROVIDER = 'windy'

    # 接続設定
    CONNECT_TIMEOUT = 10  # 秒

    def __init__(
        self,
        windy_config: Optional[WindyConfig] = None,
        cache: Optional[CacheStore] = None,
        monitoring: Optional[MonitoringSink] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        WindyServiceの初期化

        Args:
            windy_config: サービス設定（省略時は環境変数から生成）
            cache: キャッシュストア（共有、サービスは閉じない）
            monitoring: 監視シンク（共有、サービスは閉じない）
            clock: エポックミリ秒を返す関数
        """
        self.logger = logging.getLogger(__name__)
        self.config = windy_config or WindyConfig.from_env()
        self.cache: CacheStore = cache if cache is not None else InMemoryWeatherCache()
        self.monitor = SafeMonitor(monitoring)
        self.alerts = WindAlertManager(self.config.alert_thresholds, self.monitor, clock)
        self.session: Optional[aiohttp.ClientSession] = None
        self._clock = clock
        self._in_flight: Dict[str, asyncio.Task] = {}

        if not self.config.api_key:
            self.logger.error("Windy APIキーが設定されていません。風データ機能は利用できません")

        self.logger.info(
            f"WindyServiceを初期化しました - 警告閾値: {self.config.alert_thresholds.warning} km/h, "
            f"危険閾値: {self.config.alert_thresholds.danger} km/h"
        )
        self.monitor.track_event('windy_service_initialized', {
            'cacheDuration': self.config.cache_duration,
            'warningThreshold': self.config.alert_thresholds.warning,
            'dangerThreshold': self.config.alert_thresholds.danger,
        })

    async def __aenter__(self):
        """非同期コンテキストマネージャーの開始"""
        await self.start_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """非同期コンテキストマネージャーの終了"""
        await self.close_session()

    async def start_session(self):
        """HTTPセッションを開始"""
        if self.session is None or self.session.closed:
            timeout = ClientTimeout(
                total=self.config.request_timeout,
                connect=min(self.CONNECT_TIMEOUT, self.config.request_timeout)
            )
            connector = aiohttp.TCPConnector(
                limit=10,
                limit_per_host=5,
                ttl_dns_cache=300,
            )
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers={
                    'User-Agent': 'VeloAltitude-Wind/1.0',
                    'Accept': 'application/json',
                }
            )
            self.logger.info("HTTPセッションを開始しました")

    async def close_session(self):
        """HTTPセッションを終了"""
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.info("HTTPセッションを終了しました")

    def register_warning_callback(self, callback: WarningCallback) -> Callable[[], None]:
        """風警報のコールバックを登録し、登録解除用の関数を返す"""
        return self.alerts.register_warning_callback(callback)

    # ------------------------------------------------------------------
    # cache / request helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _point_cache_key(location: GeoLocation) -> str:
        return f"windy_data_{location.lat:.4f}_{location.lon:.4f}"

    @staticmethod
    def _forecast_cache_key(location: GeoLocation, days: int) -> str:
        return f"windy_forecast_{location.lat:.4f}_{location.lon:.4f}_{days}"

    async def _cache_get(self, key: str) -> Optional[str]:
        """キャッシュ障害はキャッシュミスとして扱う"""
        try:
            return await self.cache.get(key)
        except Exception as e:
            self.logger.warning(f"キャッシュの読み込みに失敗しました: {key} - {e}")
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value, self.config.cache_duration)
        except Exception as e:
            self.logger.warning(f"キャッシュへの保存に失敗しました: {key} - {e}")

    async def _single_flight(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """同一キーの同時リクエストを1つのタスクにまとめる"""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task

            def _release(done: asyncio.Task, key: str = key) -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]
                # 全ての呼び出し元がキャンセル済みでも例外を回収する
                if not done.cancelled():
                    done.exception()

            task.add_done_callback(_release)
        else:
            self.logger.debug(f"進行中のリクエストを共有します: {key}")
        return await asyncio.shield(task)

    def _build_params(
        self,
        location: GeoLocation,
        parameters: List[str],
        levels: List[str],
        options: Optional[WindyApiOptions],
        hours: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        """クエリパラメータを構築"""
        options = options or WindyApiOptions()
        params = [
            ('lat', str(location.lat)),
            ('lon', str(location.lon)),
            ('model', options.model or self.config.model),
        ]
        params.extend(('parameters[]', p) for p in parameters)
        params.extend(('levels[]', level) for level in levels)
        if hours is not None:
            params.append(('hours', str(hours)))
        params.append(('units', options.units or self.config.units))
        params.append(('key', self.config.api_key))
        return params

    async def _make_request(self, endpoint: str, params: List[Tuple[str, str]]) -> Dict[str, Any]:
        """
        HTTPリクエストを実行

        Args:
            endpoint: '/point' または '/forecast'
            params: クエリパラメータ

        Returns:
            APIレスポンスのJSONデータ

        Raises:
            WindyAPIError: API呼び出しに失敗した場合
        """
        if self.session is None or self.session.closed:
            await self.start_session()

        url = f"{self.config.base_url}{endpoint}"
        try:
            self.logger.debug(f"APIリクエスト開始: {url}")

            async with self.session.get(url, params=params) as response:
                if response.status == 200:
                    try:
                        data = await response.json(content_type=None)
                    except (json.JSONDecodeError, ValueError) as e:
                        raise WindyAPIError(f"レスポンスのJSONデコードに失敗しました: {e}") from e
                    if not isinstance(data, dict):
                        raise WindyAPIError("予期しない形式のレスポンスです")
                    self.logger.debug(f"APIリクエスト成功: {url}")
                    return data

                elif response.status >= 500:
                    raise WindyAPIServerError(
                        f"サーバーエラー (HTTP {response.status})",
                        status_code=response.status
                    )

                else:
                    raise WindyAPIError(
                        f"APIリクエスト失敗 (HTTP {response.status})",
                        status_code=response.status
                    )

        except WindyAPIError as e:
            self.logger.error(f"APIリクエスト失敗: {url} - {e}")
            self.monitor.track_error('windy_api_request_error', e)
            raise

        except asyncio.TimeoutError as e:
            self.logger.error(f"タイムアウトエラー: {url}")
            self.monitor.track_error('windy_api_request_error', e)
            raise WindyAPITimeoutError(f"リクエストがタイムアウトしました: {url}") from e

        except ClientError as e:
            self.logger.error(f"ネットワークエラー: {url} - {e}")
            self.monitor.track_error('windy_api_request_error', e)
            raise WindyAPIError(f"ネットワークエラー: {e}") from e

    @staticmethod
    def _wrap_error(prefix: str, error: Exception) -> WindyAPIError:
        error_cls = type(error) if isinstance(error, WindyAPIError) else WindyAPIError
        return error_cls(f"{prefix}: {error}", status_code=getattr(error, 'status_code', None))

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def get_detailed_wind_data(
        self,
        location: GeoLocation,
        options: Optional[WindyApiOptions] = None,
    ) -> WindData:
        """
        地点の現在の風データを取得

        Args:
            location: 緯度経度
            options: 単位・モデルの上書き

        Returns:
            WindData（km/h）

        Raises:
            WindyAPIError: API呼び出しに失敗した場合
        """
        cache_key = self._point_cache_key(location)

        cached = await self._cache_get(cache_key)
        if cached:
            try:
                wind_data = WindData.from_dict(json.loads(cached))
            except (ValueError, KeyError, TypeError) as e:
                self.logger.warning(f"壊れたキャッシュデータを無視します: {cache_key} - {e}")
            else:
                self.logger.debug("キャッシュの風データを使用します")
                self.monitor.track_event('windy_data_cache_hit')
                return wind_data

        return await self._single_flight(
            cache_key, lambda: self._fetch_wind_data(location, options, cache_key)
        )

    async def _fetch_wind_data(
        self,
        location: GeoLocation,
        options: Optional[WindyApiOptions],
        cache_key: str,
    ) -> WindData:
        try:
            start_time = time.monotonic()
            response = await self._make_request(
                '/point',
                self._build_params(location, ['wind', 'windGust'], ['surface'], options),
            )
            latency = (time.monotonic() - start_time) * 1000
            self.monitor.track_metric('windy_api_latency', latency)
        except Exception as e:
            self.logger.error(f"風データの取得に失敗しました: {location} - {e}")
            self.monitor.track_error('windy_api_error', e)
            raise self._wrap_error("Failed to fetch wind data", e) from e

        point = parse_point_payload(response.get('data'))
        wind_data = WindData(
            speed=max(0.0, convert_wind_speed(point.wind_speeds[0])),
            direction=normalize_direction(point.wind_directions[0]),
            gust=max(0.0, convert_wind_speed(point.gust_speeds[0])),
            timestamp=self._clock(),
            provider=self.PROVIDER,
        )

        # 危険な風の場合は警報を配信
        self.alerts.check_for_alerts(wind_data, location)

        await self._cache_set(cache_key, json.dumps(wind_data.to_dict()))
        return wind_data

    async def get_wind_forecast(
        self,
        location: GeoLocation,
        days: int = 3,
        options: Optional[WindyApiOptions] = None,
    ) -> WindForecast:
        """
        地点の風予報を取得

        Args:
            location: 緯度経度
            days: 予報日数（1〜16）
            options: 単位・モデルの上書き

        Returns:
            現在値・時間別・日別を含むWindForecast

        Raises:
            ValueError: daysが範囲外の場合
            WindyAPIError: API呼び出しに失敗した場合
        """
        if not 1 <= days <= MAX_FORECAST_DAYS:
            raise ValueError(f"days must be between 1 and {MAX_FORECAST_DAYS}, got {days}")

        cache_key = self._forecast_cache_key(location, days)

        cached = await self._cache_get(cache_key)
        if cached:
            try:
                forecast = WindForecast.from_dict(json.loads(cached))
            except (ValueError, KeyError, TypeError) as e:
                self.logger.warning(f"壊れたキャッシュデータを無視します: {cache_key} - {e}")
            else:
                self.logger.debug("キャッシュの風予報を使用します")
                self.monitor.track_event('windy_forecast_cache_hit')
                return forecast

        return await self._single_flight(
            cache_key, lambda: self._fetch_wind_forecast(location, days, options, cache_key)
        )

    async def _fetch_wind_forecast(
        self,
        location: GeoLocation,
        days: int,
        options: Optional[WindyApiOptions],
        cache_key: str,
    ) -> WindForecast:
        try:
            start_time = time.monotonic()
            response = await self._make_request(
                '/forecast',
                self._build_params(location, ['wind', 'windGust', 'temp'], ['surface'],
                                   options, hours=days * 24),
            )
            latency = (time.monotonic() - start_time) * 1000
            self.monitor.track_metric('windy_forecast_api_latency', latency)

            current = await self.get_detailed_wind_data(location, options)
        except Exception as e:
            self.logger.error(f"風予報の取得に失敗しました: {location} - {e}")
            self.monitor.track_error('windy_forecast_api_error', e)
            raise self._wrap_error("Failed to fetch wind forecast", e) from e

        hourly = process_hourly_forecast(response.get('data'))
        forecast = WindForecast(
            location=location,
            current=current,
            hourly=hourly,
            daily=aggregate_daily_forecast(hourly),
            update_time=self._clock(),
            source=self.PROVIDER,
        )

        self.logger.info(
            f"風予報を取得しました: {location.name or (location.lat, location.lon)} "
            f"- {len(hourly)}時間, {len(forecast.daily)}日"
        )
        await self._cache_set(cache_key, json.dumps(forecast.to_dict()))
        return forecast

    async def get_wind_safety_recommendation(
        self,
        location: GeoLocation,
        experience: str = 'intermediate',
        terrain: str = 'flat',
    ) -> WindSafetyRecommendation:
        """
        サイクリング向けの風の安全評価を取得

        safe_to_ride is False only at the danger level.
        """
        try:
            wind_data = await self.get_detailed_wind_data(location)
        except WindyAPIError as e:
            self.logger.error(f"安全評価の取得に失敗しました: {e}")
            self.monitor.track_error('windy_safety_recommendation_error', e)
            raise

        assessment = assess_wind_safety(wind_data, experience, terrain)
        return WindSafetyRecommendation(
            safe_to_ride=assessment.safety_level != 'danger',
            wind_data=wind_data,
            recommendation=assessment.recommendation,
            warning_level=WARNING_LEVELS[assessment.safety_level],
            assessment=assessment,
        )

    async def check_mountain_pass_wind_conditions(
        self,
        col_id: str,
        location: GeoLocation,
        experience: str = 'intermediate',
    ) -> MountainPassConditions:
        """
        峠（col）の風況をチェック

        Cols are judged more conservatively than the plain recommendation:
        moderate wind from 25 km/h is raised to a warning, and so is wind
        at altitude (850 hPa) more than 30% stronger than at the surface.
        The altitude probe is best effort.
        """
        try:
            safety = await self.get_wind_safety_recommendation(location, experience, 'mountain_col')
        except WindyAPIError as e:
            self.logger.error(f"峠の風況チェックに失敗しました: {col_id} - {e}")
            self.monitor.track_error('windy_mountain_pass_error', e)
            raise

        recommendation = safety.recommendation
        warning_level = safety.warning_level
        wind_data = safety.wind_data

        if wind_data.speed >= MOUNTAIN_PASS_ESCALATION_SPEED and warning_level == 'info':
            warning_level = 'warning'
            recommendation = ("Vents modérés à forts sur ce col. "
                              "Soyez particulièrement vigilant dans les descentes.")

        altitude_speed = None
        try:
            response = await self._make_request(
                '/point',
                self._build_params(location, ['wind'], [ALTITUDE_LEVEL], None),
            )
            altitude_speed = convert_wind_speed(parse_point_payload(response.get('data')).wind_speeds[0])
        except WindyAPIError as e:
            self.logger.warning(f"高度の風データを取得できませんでした: {col_id} - {e}")

        if altitude_speed is not None and altitude_speed > wind_data.speed * ALTITUDE_WIND_RATIO:
            recommendation += " Attention : le vent est significativement plus fort en altitude sur ce col."
            if warning_level == 'info':
                warning_level = 'warning'

        return MountainPassConditions(
            col_id=col_id,
            wind_data=wind_data,
            warning_level=warning_level,
            safe_to_ride=warning_level != 'danger',
            recommendation=recommendation,
            altitude_wind_speed=altitude_speed,
        )
