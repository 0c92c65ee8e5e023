"""Configuration management for the Velo-Altitude wind engine."""

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .models.wind import Thresholds

# 環境ごとの.envファイルを読み込む
env_files = ['.env', '.env.local']
for env_file in env_files:
    if os.path.exists(env_file):
        load_dotenv(env_file)
        break


DEFAULT_BASE_URL = 'https://api.windy.com/api/point-forecast/v2'
VALID_UNITS = ('metric', 'imperial')


class Config:
    """Process-wide configuration read from the environment."""

    ENVIRONMENT: str = os.getenv('ENVIRONMENT', 'development')

    # Windy API Configuration
    WINDY_API_KEY: str = os.getenv('WINDY_API_KEY', os.getenv('WINDY_PLUGINS_API', ''))
    WINDY_BASE_URL: str = os.getenv('WINDY_BASE_URL', DEFAULT_BASE_URL)
    WINDY_MODEL: str = os.getenv('WINDY_MODEL', 'gfs')
    WINDY_REQUEST_TIMEOUT: float = float(os.getenv('WINDY_REQUEST_TIMEOUT', '30'))

    # Wind engine behaviour
    WIND_CACHE_DURATION: int = int(os.getenv('WIND_CACHE_DURATION', '1800'))  # 30 minutes
    WIND_WARNING_THRESHOLD: float = float(os.getenv('WIND_WARNING_THRESHOLD', '30'))  # km/h
    WIND_DANGER_THRESHOLD: float = float(os.getenv('WIND_DANGER_THRESHOLD', '45'))  # km/h
    WIND_DEBOUNCE_MS: int = int(os.getenv('WIND_DEBOUNCE_MS', '500'))
    WIND_REFRESH_INTERVAL_MS: int = int(os.getenv('WIND_REFRESH_INTERVAL_MS', '900000'))  # 15 minutes
    WIND_UNITS: str = os.getenv('WIND_UNITS', 'metric')

    # Logging Configuration
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', '')
    LOG_FILE: str = os.getenv('LOG_FILE', 'logs/velo_wind.log')

    def __init__(self):
        """環境に応じた設定を初期化"""
        self._apply_environment_settings()

    def _apply_environment_settings(self):
        """環境に応じたログレベルを適用"""
        if not self.LOG_LEVEL:
            if self.ENVIRONMENT == 'production':
                self.LOG_LEVEL = 'WARNING'
            elif self.ENVIRONMENT == 'staging':
                self.LOG_LEVEL = 'INFO'
            else:
                self.LOG_LEVEL = 'DEBUG'

    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration values."""
        config_instance = cls()
        required_vars = ['WINDY_API_KEY']
        missing_vars = []

        for var in required_vars:
            if not getattr(config_instance, var):
                missing_vars.append(var)

        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

        if config_instance.WIND_UNITS not in VALID_UNITS:
            raise ValueError(f"WIND_UNITS must be one of {VALID_UNITS}, got {config_instance.WIND_UNITS!r}")

        return True

    def get_environment_info(self) -> Dict[str, Any]:
        """環境情報を取得"""
        return {
            "environment": self.ENVIRONMENT,
            "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            "log_level": self.LOG_LEVEL,
            "log_file": self.LOG_FILE,
            "windy_base_url": self.WINDY_BASE_URL,
            "api_key_configured": bool(self.WINDY_API_KEY),
        }


@dataclass
class WindyConfig:
    """
    Settings for a single WindyService instance.

    Every recognised option is listed here with its default and checked once
    when the object is built.

    Attributes:
        api_key: Windy point-forecast API key
        cache_duration: TTL in seconds for cached point data and forecasts
        alert_thresholds: global thresholds used by the ambient alert path
        debounce: milliseconds, reserved for alert debouncing (not used yet)
        refresh_interval: milliseconds, advisory polling period for hosts
        units: 'metric' or 'imperial', forwarded to the provider
        base_url: provider base URL
        model: forecast model identifier
        request_timeout: total HTTP timeout in seconds
    """
    api_key: str = ''
    cache_duration: int = 1800
    alert_thresholds: Thresholds = field(default_factory=lambda: Thresholds(warning=30.0, danger=45.0))
    debounce: int = 500
    refresh_interval: int = 900000
    units: str = 'metric'
    base_url: str = DEFAULT_BASE_URL
    model: str = 'gfs'
    request_timeout: float = 30.0

    def __post_init__(self):
        if isinstance(self.alert_thresholds, dict):
            self.alert_thresholds = Thresholds(
                warning=float(self.alert_thresholds.get('warning', 30.0)),
                danger=float(self.alert_thresholds.get('danger', 45.0)),
            )
        if self.cache_duration <= 0:
            raise ValueError(f"cache_duration must be positive, got {self.cache_duration}")
        if self.alert_thresholds.warning >= self.alert_thresholds.danger:
            raise ValueError(
                f"warning threshold ({self.alert_thresholds.warning}) must be below "
                f"danger threshold ({self.alert_thresholds.danger})"
            )
        if self.debounce < 0 or self.refresh_interval <= 0:
            raise ValueError("debounce must be >= 0 and refresh_interval > 0")
        if self.units not in VALID_UNITS:
            raise ValueError(f"units must be one of {VALID_UNITS}, got {self.units!r}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        self.base_url = self.base_url.rstrip('/')

    @classmethod
    def from_env(cls, source: Optional[Config] = None) -> 'WindyConfig':
        """Build a WindyConfig from the process configuration."""
        source = source or config
        return cls(
            api_key=source.WINDY_API_KEY,
            cache_duration=source.WIND_CACHE_DURATION,
            alert_thresholds=Thresholds(
                warning=source.WIND_WARNING_THRESHOLD,
                danger=source.WIND_DANGER_THRESHOLD,
            ),
            debounce=source.WIND_DEBOUNCE_MS,
            refresh_interval=source.WIND_REFRESH_INTERVAL_MS,
            units=source.WIND_UNITS,
            base_url=source.WINDY_BASE_URL,
            model=source.WINDY_MODEL,
            request_timeout=source.WINDY_REQUEST_TIMEOUT,
        )


# Global config instance
config = Config()
