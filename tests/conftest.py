"""
pytest設定ファイル

全テストで共通して使用されるフィクスチャとセットアップを定義します。
"""

import os

import pytest

from velo_wind.config import WindyConfig
from velo_wind.models.wind import GeoLocation, Thresholds
from velo_wind.services.cache import InMemoryWeatherCache
from velo_wind.services.monitoring import InMemoryMonitoringSink

# 2024-01-15T00:00:00Z
BASE_EPOCH = 1705276800
FIXED_NOW_MS = 1705300000000


class FakeClock:
    """テスト用の時計（秒）"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_point_payload(speed_ms=5.0, direction=270.0, gust_ms=8.0):
    """/point レスポンスを作成"""
    return {
        "data": {
            "wind": [{"value": speed_ms, "direction": direction}],
            "windGust": [{"value": gust_ms}],
        }
    }


def make_forecast_payload(hours=48, start=BASE_EPOCH):
    """/forecast レスポンスを作成（1時間ごと）"""
    timestamps = [start + i * 3600 for i in range(hours)]
    return {
        "data": {
            "hours": timestamps,
            "wind": [{"value": 2 + (i % 24) * 0.5, "direction": 350 if i % 2 else 10}
                     for i in range(hours)],
            "windGust": [{"value": 4 + (i % 24) * 0.5} for i in range(hours)],
            "temp": [{"value": 5.0} for _ in range(hours)],
        }
    }


@pytest.fixture
def ventoux():
    return GeoLocation(lat=44.1741, lon=5.2785, name="Mont Ventoux")


@pytest.fixture
def madeleine():
    return GeoLocation(lat=45.4349, lon=6.3594, name="Col de la Madeleine")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def windy_config():
    return WindyConfig(
        api_key="test_api_key",
        cache_duration=1800,
        alert_thresholds=Thresholds(warning=30, danger=45),
    )


@pytest.fixture
def memory_cache(fake_clock):
    return InMemoryWeatherCache(clock=fake_clock)


@pytest.fixture
def monitoring_sink():
    return InMemoryMonitoringSink()


@pytest.fixture(autouse=True)
def setup_test_environment():
    """テスト環境のセットアップ"""
    original_env = {}
    test_env = {
        'LOG_LEVEL': 'ERROR',
    }

    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    yield

    # 環境変数を復元
    for key, value in original_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


def pytest_configure(config):
    """pytest設定"""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


def pytest_collection_modifyitems(config, items):
    """テスト収集時の処理"""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
