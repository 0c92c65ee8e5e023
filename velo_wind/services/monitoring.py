"""
Monitoring sink for the wind engine.

The engine reports events, metrics and errors through a MonitoringSink.
SafeMonitor wraps any sink so a broken sink can never fail a wind request.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class MonitoringSink(Protocol):
    def track_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        ...

    def track_metric(self, name: str, value: float) -> None:
        ...

    def track_error(self, name: str, error: BaseException) -> None:
        ...


class InMemoryMonitoringSink:
    """Keeps the most recent records and logs them at debug level."""

    def __init__(self, max_records: int = 1000):
        self.events: Deque[Dict[str, Any]] = deque(maxlen=max_records)
        self.metrics: Deque[Dict[str, Any]] = deque(maxlen=max_records)
        self.errors: Deque[Dict[str, Any]] = deque(maxlen=max_records)

    def track_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        self.events.append({
            'name': name,
            'payload': payload or {},
            'timestamp': datetime.now().isoformat(),
        })
        logger.debug(f"event {name}: {payload or {}}")

    def track_metric(self, name: str, value: float) -> None:
        self.metrics.append({
            'name': name,
            'value': value,
            'timestamp': datetime.now().isoformat(),
        })
        logger.debug(f"metric {name}={value}")

    def track_error(self, name: str, error: BaseException) -> None:
        self.errors.append({
            'name': name,
            'type': type(error).__name__,
            'message': str(error),
            'timestamp': datetime.now().isoformat(),
        })
        logger.debug(f"error {name}: {type(error).__name__}: {error}")

    def event_names(self):
        return [event['name'] for event in self.events]

    def metric_values(self, name: str):
        return [metric['value'] for metric in self.metrics if metric['name'] == name]

    def error_names(self):
        return [error['name'] for error in self.errors]


class SafeMonitor:
    """Forwards to a sink and logs, instead of raising, any sink failure."""

    def __init__(self, sink: Optional[MonitoringSink] = None):
        self.sink = sink if sink is not None else InMemoryMonitoringSink()

    def track_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.sink.track_event(name, payload)
        except Exception as e:
            logger.warning(f"Monitoring sink failed on event {name}: {e}")

    def track_metric(self, name: str, value: float) -> None:
        try:
            self.sink.track_metric(name, value)
        except Exception as e:
            logger.warning(f"Monitoring sink failed on metric {name}: {e}")

    def track_error(self, name: str, error: BaseException) -> None:
        try:
            self.sink.track_error(name, error)
        except Exception as e:
            logger.warning(f"Monitoring sink failed on error {name}: {e}")
