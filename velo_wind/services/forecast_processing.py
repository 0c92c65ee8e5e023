"""
風予報データの整形

Windy APIの時系列レスポンスを時間別・日別の予報に変換する。
入力の欠損はすべて0として扱い、例外は送出しない。
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..models.wind import DailyForecastSummary, HourlyForecastEntry
from ..utils.wind_safety import (
    calculate_average_direction,
    calculate_wind_chill,
    normalize_direction,
)

MS_TO_KMH = 3.6
PROVIDER = 'windy'


@dataclass
class ParsedForecastSeries:
    """Forecast arrays aligned on `hours`, every slot filled."""
    hours: List[float] = field(default_factory=list)
    wind_speeds: List[float] = field(default_factory=list)
    wind_directions: List[float] = field(default_factory=list)
    gust_speeds: List[float] = field(default_factory=list)
    temperatures: List[float] = field(default_factory=list)


def convert_wind_speed(speed_ms: float) -> float:
    """m/s -> km/h, rounded to one decimal."""
    return round(speed_ms * MS_TO_KMH, 1)


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    return 0.0


def _entry_field(series: Sequence[Any], index: int, name: str) -> float:
    """Value of series[index][name]; bare numbers count as 'value'."""
    if index >= len(series):
        return 0.0
    entry = series[index]
    if isinstance(entry, dict):
        return _as_number(entry.get(name))
    if name == 'value':
        return _as_number(entry)
    return 0.0


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def parse_forecast_payload(data: Optional[Dict[str, Any]]) -> ParsedForecastSeries:
    """
    Parse a forecast payload into fully populated parallel lists.

    Arrays shorter than `hours`, missing keys, None and non-numeric entries
    all become 0.0 so later arithmetic never sees a gap.
    """
    if not isinstance(data, dict):
        return ParsedForecastSeries()

    hours = [_as_number(h) for h in _as_list(data.get('hours'))]
    wind = _as_list(data.get('wind'))
    gusts = _as_list(data.get('windGust'))
    temps = _as_list(data.get('temp'))

    parsed = ParsedForecastSeries(hours=hours)
    for i in range(len(hours)):
        parsed.wind_speeds.append(_entry_field(wind, i, 'value'))
        parsed.wind_directions.append(_entry_field(wind, i, 'direction'))
        parsed.gust_speeds.append(_entry_field(gusts, i, 'value'))
        parsed.temperatures.append(_entry_field(temps, i, 'value'))
    return parsed


def parse_point_payload(data: Optional[Dict[str, Any]]) -> ParsedForecastSeries:
    """
    Parse a /point payload: the first wind and gust samples, zero-defaulted.

    The result carries exactly one slot per list (no `hours`).
    """
    if not isinstance(data, dict):
        data = {}
    wind = _as_list(data.get('wind'))
    gusts = _as_list(data.get('windGust'))
    return ParsedForecastSeries(
        wind_speeds=[_entry_field(wind, 0, 'value')],
        wind_directions=[_entry_field(wind, 0, 'direction')],
        gust_speeds=[_entry_field(gusts, 0, 'value')],
        temperatures=[_entry_field(_as_list(data.get('temp')), 0, 'value')],
    )


def _iso_utc(epoch_seconds: float) -> str:
    try:
        moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        moment = datetime.fromtimestamp(0, tz=timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def process_hourly_forecast(data: Optional[Dict[str, Any]]) -> List[HourlyForecastEntry]:
    """
    時間別の風予報を生成

    Args:
        data: APIレスポンスの `data` 部分 (hours, wind, windGust, temp)

    Returns:
        HourlyForecastEntryのリスト（hoursの順）
    """
    series = parse_forecast_payload(data)
    hourly: List[HourlyForecastEntry] = []

    for i, hour in enumerate(series.hours):
        speed = convert_wind_speed(series.wind_speeds[i])
        hourly.append(HourlyForecastEntry(
            speed=speed,
            direction=normalize_direction(series.wind_directions[i]),
            gust=convert_wind_speed(series.gust_speeds[i]),
            timestamp=int(hour * 1000),
            provider=PROVIDER,
            date_time=_iso_utc(hour),
            feels_like=round(calculate_wind_chill(series.temperatures[i], speed), 1),
            probability=None,
        ))

    return hourly


def aggregate_daily_forecast(hourly: Sequence[HourlyForecastEntry]) -> List[DailyForecastSummary]:
    """
    日別サマリーに集約

    Groups by the UTC date of `date_time`, one summary per date in order of
    first appearance. Direction uses the circular mean.
    """
    groups: Dict[str, List[HourlyForecastEntry]] = {}
    for entry in hourly:
        date = entry.date_time.split('T')[0]
        groups.setdefault(date, []).append(entry)

    daily = []
    for date, entries in groups.items():
        speeds = [e.speed for e in entries]
        daily.append(DailyForecastSummary(
            date=date,
            min=min(speeds),
            max=max(speeds),
            avg_direction=calculate_average_direction(e.direction for e in entries),
            max_gust=max(e.gust for e in entries),
        ))
    return daily
