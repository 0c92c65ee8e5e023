"""風データ用のモデル定義"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class GeoLocation:
    """地点情報"""
    lat: float
    lon: float
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'lat': self.lat, 'lon': self.lon}
        if self.name is not None:
            data['name'] = self.name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeoLocation':
        return cls(lat=float(data['lat']), lon=float(data['lon']), name=data.get('name'))


@dataclass
class WindData:
    """
    One point-in-time wind reading.

    speed and gust are km/h, direction is degrees in [0, 360),
    timestamp is epoch milliseconds.
    """
    speed: float
    direction: float
    gust: float
    timestamp: int
    provider: str = 'windy'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'speed': self.speed,
            'direction': self.direction,
            'gust': self.gust,
            'timestamp': self.timestamp,
            'provider': self.provider,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WindData':
        return cls(
            speed=float(data.get('speed', 0)),
            direction=float(data.get('direction', 0)),
            gust=float(data.get('gust', 0)),
            timestamp=int(data.get('timestamp', 0)),
            provider=data.get('provider', 'windy'),
        )


@dataclass
class HourlyForecastEntry(WindData):
    """
    One forecast hour.

    probability is always None: the provider does not report a confidence
    figure for wind, so none is invented here.
    """
    date_time: str = ''
    feels_like: float = 0.0
    probability: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            'dateTime': self.date_time,
            'feelsLike': self.feels_like,
            'probability': self.probability,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HourlyForecastEntry':
        probability = data.get('probability')
        return cls(
            speed=float(data.get('speed', 0)),
            direction=float(data.get('direction', 0)),
            gust=float(data.get('gust', 0)),
            timestamp=int(data.get('timestamp', 0)),
            provider=data.get('provider', 'windy'),
            date_time=data.get('dateTime', ''),
            feels_like=float(data.get('feelsLike', 0)),
            probability=float(probability) if probability is not None else None,
        )


@dataclass
class DailyForecastSummary:
    """日別の風予報サマリー"""
    date: str
    min: float
    max: float
    avg_direction: float
    max_gust: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'min': self.min,
            'max': self.max,
            'avgDirection': self.avg_direction,
            'maxGust': self.max_gust,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyForecastSummary':
        return cls(
            date=data['date'],
            min=float(data['min']),
            max=float(data['max']),
            avg_direction=float(data['avgDirection']),
            max_gust=float(data['maxGust']),
        )


@dataclass
class WindForecast:
    """Snapshot of current, hourly and daily wind for one location."""
    location: GeoLocation
    current: WindData
    hourly: List[HourlyForecastEntry] = field(default_factory=list)
    daily: List[DailyForecastSummary] = field(default_factory=list)
    update_time: int = 0
    source: str = 'windy'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location': self.location.to_dict(),
            'current': self.current.to_dict(),
            'hourly': [entry.to_dict() for entry in self.hourly],
            'daily': [summary.to_dict() for summary in self.daily],
            'updateTime': self.update_time,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WindForecast':
        return cls(
            location=GeoLocation.from_dict(data['location']),
            current=WindData.from_dict(data['current']),
            hourly=[HourlyForecastEntry.from_dict(h) for h in data.get('hourly', [])],
            daily=[DailyForecastSummary.from_dict(d) for d in data.get('daily', [])],
            update_time=int(data.get('updateTime', 0)),
            source=data.get('source', 'windy'),
        )


@dataclass(frozen=True)
class BeaufortEntry:
    """ビューフォート風力階級の1行"""
    force: int
    name: str
    min_speed: float
    max_speed: float
    description: str


@dataclass(frozen=True)
class Thresholds:
    """Warning and danger wind speeds in km/h."""
    warning: float
    danger: float


@dataclass
class SafetyAssessment:
    """安全評価の結果"""
    safety_level: str
    recommendation: str
    beaufort: BeaufortEntry
    speed: float
    gust: float
    direction: float
    direction_name: str


@dataclass
class WindWarning:
    """
    Warning sent to subscribers when a threshold is crossed.

    expires_at is advisory: nothing in the engine removes expired warnings.
    """
    level: str
    message: str
    speed: float
    gust: float
    col_id: str
    location: GeoLocation
    timestamp: int
    expires_at: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level,
            'message': self.message,
            'speed': self.speed,
            'gust': self.gust,
            'colId': self.col_id,
            'location': self.location.to_dict(),
            'timestamp': self.timestamp,
            'expiresAt': self.expires_at,
        }


@dataclass
class WindSafetyRecommendation:
    """Ride / no-ride answer for a location."""
    safe_to_ride: bool
    wind_data: WindData
    recommendation: str
    warning_level: str
    assessment: Optional[SafetyAssessment] = None


@dataclass
class MountainPassConditions:
    """峠（col）の風況"""
    col_id: str
    wind_data: WindData
    warning_level: str
    safe_to_ride: bool
    recommendation: str
    altitude_wind_speed: Optional[float] = None


@dataclass
class WindyApiOptions:
    """Per-call overrides for provider requests."""
    units: Optional[str] = None
    model: Optional[str] = None
