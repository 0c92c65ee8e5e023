"""
風警報サービス

登録されたコールバックに風警報（WindWarning）を配信する。
"""

import time
from typing import Callable, List, Optional

from ..models.wind import GeoLocation, Thresholds, WindData, WindWarning
from ..utils.logging import get_logger
from ..utils.wind_safety import classify_wind_level
from .monitoring import SafeMonitor

WarningCallback = Callable[[WindWarning], None]

WARNING_LIFETIME_MS = 3600 * 1000  # 1時間

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class WindAlertManager:
    """Subscriber list and ambient alert evaluation for one WindyService."""

    def __init__(
        self,
        thresholds: Thresholds,
        monitor: Optional[SafeMonitor] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Args:
            thresholds: global warning/danger thresholds (km/h)
            monitor: monitoring sink wrapper
            clock: current time in epoch milliseconds
        """
        self.thresholds = thresholds
        self.monitor = monitor or SafeMonitor()
        self._clock = clock
        self._callbacks: List[WarningCallback] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def register_warning_callback(self, callback: WarningCallback) -> Callable[[], None]:
        """
        警報コールバックを登録

        Args:
            callback: WindWarningを受け取る関数

        Returns:
            登録を解除する関数。同じ関数が複数回登録されている場合は1件だけ解除する
        """
        self._callbacks.append(callback)
        removed = False

        def unregister() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            for i, registered in enumerate(self._callbacks):
                if registered is callback:
                    del self._callbacks[i]
                    break

        return unregister

    def _build_message(self, level: str, wind_data: WindData, col_id: Optional[str]) -> str:
        label = 'Vents dangereux' if level == 'danger' else 'Vents forts'
        where = f"sur le col {col_id}" if col_id else "détectés"
        return f"{label} ({wind_data.speed} km/h) {where}. Rafales à {wind_data.gust} km/h."

    def check_for_alerts(
        self,
        wind_data: WindData,
        location: GeoLocation,
        col_id: Optional[str] = None,
    ) -> Optional[WindWarning]:
        """
        風データを閾値と比較し、必要なら警報を配信

        Uses the global thresholds, not the experience/terrain ones.

        Returns:
            配信したWindWarning。購読者がいない場合や警報不要の場合はNone
        """
        if not self._callbacks:
            return None

        level = classify_wind_level(wind_data.speed, wind_data.gust, self.thresholds)
        if level not in ('danger', 'warning'):
            return None

        now = self._clock()
        warning = WindWarning(
            level=level,
            message=self._build_message(level, wind_data, col_id),
            speed=wind_data.speed,
            gust=wind_data.gust,
            col_id=col_id or '',
            location=location,
            timestamp=now,
            expires_at=now + WARNING_LIFETIME_MS,
        )

        alert_logger = logger.with_context(level=level, col_id=col_id or '')
        # 登録解除に備えてコピーを走査
        for callback in list(self._callbacks):
            try:
                callback(warning)
            except Exception as e:
                alert_logger.error(f"警報コールバックでエラーが発生しました: {e}", exc_info=True)

        alert_logger.info(f"風警報を配信しました: {warning.message}")
        self.monitor.track_event('wind_alert_triggered', {
            'level': level,
            'speed': wind_data.speed,
            'gust': wind_data.gust,
            'colId': col_id or 'unknown',
        })
        return warning
