"""
Wind safety utilities for cyclists.

Pure functions only: Beaufort classification, experience/terrain thresholds,
compass names, circular mean of bearings, wind chill and the combined safety
assessment. Nothing here performs I/O or raises for numeric input.

Speeds are km/h, bearings are degrees (0 = north, clockwise).
"""

import math
from typing import Any, Iterable, List, Optional

from ..models.wind import BeaufortEntry, SafetyAssessment, Thresholds

# Beaufort scale, km/h. Adjacent rows share their boundary so that the
# closed ranges cover [0, inf) without gaps; the lower force wins on a tie.
BEAUFORT_SCALE: List[BeaufortEntry] = [
    BeaufortEntry(0, 'Calme', 0, 1, "La fumée monte verticalement"),
    BeaufortEntry(1, 'Très légère brise', 1, 6, "La fumée indique la direction du vent"),
    BeaufortEntry(2, 'Légère brise', 6, 12, "Le vent est perçu au visage, les feuilles frémissent"),
    BeaufortEntry(3, 'Petite brise', 12, 20, "Les feuilles et les rameaux sont constamment agités"),
    BeaufortEntry(4, 'Jolie brise', 20, 29, "Le vent soulève la poussière, les petites branches s'agitent"),
    BeaufortEntry(5, 'Bonne brise', 29, 39, "Les arbustes se balancent, le vent se fait sentir sur le vélo"),
    BeaufortEntry(6, 'Vent frais', 39, 50, "Les grosses branches s'agitent, pédaler devient difficile"),
    BeaufortEntry(7, 'Grand frais', 50, 62, "Les arbres entiers s'agitent, la marche contre le vent est pénible"),
    BeaufortEntry(8, 'Coup de vent', 62, 75, "Des branches se cassent, le vélo est déstabilisé"),
    BeaufortEntry(9, 'Fort coup de vent', 75, 89, "Légers dégâts aux bâtiments, rouler est impossible"),
    BeaufortEntry(10, 'Tempête', 89, 103, "Arbres déracinés, dégâts importants"),
    BeaufortEntry(11, 'Violente tempête', 103, 118, "Ravages étendus"),
    BeaufortEntry(12, 'Ouragan', 118, math.inf, "Dévastation"),
]

EXPERIENCE_THRESHOLDS = {
    'beginner': Thresholds(warning=20, danger=30),
    'intermediate': Thresholds(warning=30, danger=45),
    'advanced': Thresholds(warning=40, danger=55),
}

# 'flat' has no cap
TERRAIN_CAPS = {
    'mountain_descent': Thresholds(warning=25, danger=35),
    'mountain_col': Thresholds(warning=30, danger=40),
    'exposed_road': Thresholds(warning=35, danger=50),
}

DEFAULT_EXPERIENCE = 'intermediate'
DEFAULT_TERRAIN = 'flat'

COMPASS_POINTS = [
    'N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
    'S', 'SSO', 'SO', 'OSO', 'O', 'ONO', 'NO', 'NNO',
]

DIRECTION_NAMES = {
    'N': 'Nord',
    'NNE': 'Nord-Nord-Est',
    'NE': 'Nord-Est',
    'ENE': 'Est-Nord-Est',
    'E': 'Est',
    'ESE': 'Est-Sud-Est',
    'SE': 'Sud-Est',
    'SSE': 'Sud-Sud-Est',
    'S': 'Sud',
    'SSO': 'Sud-Sud-Ouest',
    'SO': 'Sud-Ouest',
    'OSO': 'Ouest-Sud-Ouest',
    'O': 'Ouest',
    'ONO': 'Ouest-Nord-Ouest',
    'NO': 'Nord-Ouest',
    'NNO': 'Nord-Nord-Ouest',
}

DEGREES_PER_SECTOR = 22.5
GUST_ANOMALY_DELTA = 15.0  # km/h between gust and sustained speed
GUST_MARGIN = 10.0  # gusts trigger a level at threshold + margin
CAUTION_RATIO = 0.7

WIND_CHILL_MAX_TEMP = 10.0  # °C
WIND_CHILL_MIN_SPEED = 4.8  # km/h

TERRAIN_ADVICE = {
    'mountain_descent': "Les descentes sont particulièrement dangereuses : réduisez votre vitesse et tenez fermement le guidon.",
    'mountain_col': "Le passage du col est très exposé au vent, prévoyez un itinéraire de repli.",
    'exposed_road': "Évitez les routes exposées et privilégiez les parcours abrités.",
}


def get_beaufort_scale(speed: float) -> BeaufortEntry:
    """
    Classify a wind speed on the Beaufort scale.

    Args:
        speed: wind speed in km/h

    Returns:
        The first entry whose [min_speed, max_speed] contains speed, or
        force 12 when no row matches.
    """
    for entry in BEAUFORT_SCALE:
        if entry.min_speed <= speed <= entry.max_speed:
            return entry
    return BEAUFORT_SCALE[-1]


def get_wind_thresholds(experience: Optional[str] = DEFAULT_EXPERIENCE,
                        terrain: Optional[str] = DEFAULT_TERRAIN) -> Thresholds:
    """
    Effective warning/danger thresholds for a rider on a terrain.

    The terrain cap can only lower the experience baseline, never raise it.
    Unknown experience falls back to intermediate; unknown terrain has no cap.
    """
    base = EXPERIENCE_THRESHOLDS.get(experience or DEFAULT_EXPERIENCE,
                                     EXPERIENCE_THRESHOLDS[DEFAULT_EXPERIENCE])
    cap = TERRAIN_CAPS.get(terrain or DEFAULT_TERRAIN)
    if cap is None:
        return base
    return Thresholds(
        warning=min(base.warning, cap.warning),
        danger=min(base.danger, cap.danger),
    )


def normalize_direction(degrees: float) -> float:
    """Bring a bearing into [0, 360)."""
    if not math.isfinite(degrees):
        return 0.0
    normalized = ((degrees % 360) + 360) % 360
    # -1e-14 % 360 rounds up to 360.0
    return 0.0 if normalized >= 360 else normalized


def get_direction_abbreviation(degrees: float) -> str:
    """16-point compass abbreviation (French letters) for a bearing."""
    index = int(math.floor(normalize_direction(degrees) / DEGREES_PER_SECTOR + 0.5)) % len(COMPASS_POINTS)
    return COMPASS_POINTS[index]


def get_direction_name(degrees: float) -> str:
    """French compass name for a bearing, e.g. 270 -> 'Ouest'."""
    return DIRECTION_NAMES[get_direction_abbreviation(degrees)]


def calculate_average_direction(directions: Iterable[float]) -> float:
    """
    Circular mean of bearings.

    Each bearing becomes a unit vector; the mean vector's angle is the
    result. The arithmetic mean of 350 and 10 is 180, the circular mean is 0.
    """
    sum_sin = 0.0
    sum_cos = 0.0
    count = 0
    for direction in directions:
        rad = math.radians(direction)
        sum_sin += math.sin(rad)
        sum_cos += math.cos(rad)
        count += 1

    if count == 0:
        return 0.0

    mean = math.degrees(math.atan2(sum_sin / count, sum_cos / count))
    return normalize_direction(mean)


def calculate_wind_chill(temp_c: float, wind_speed_kmh: float) -> float:
    """
    Apparent temperature with wind chill (Environment Canada formula).

    Outside the formula's domain (above 10 °C or below 4.8 km/h) the air
    temperature is returned unchanged.
    """
    if temp_c > WIND_CHILL_MAX_TEMP or wind_speed_kmh < WIND_CHILL_MIN_SPEED:
        return temp_c

    v016 = math.pow(wind_speed_kmh, 0.16)
    return 13.12 + 0.6215 * temp_c - 11.37 * v016 + 0.3965 * temp_c * v016


def _read_field(wind_data: Any, name: str) -> float:
    """WindData, dict or any object exposing speed/gust/direction"""
    if isinstance(wind_data, dict):
        value = wind_data.get(name, 0)
    else:
        value = getattr(wind_data, name, 0)
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def classify_wind_level(speed: float, gust: float, thresholds: Thresholds) -> str:
    """'danger', 'warning', 'caution' or 'safe' for the given thresholds."""
    if speed >= thresholds.danger or gust >= thresholds.danger + GUST_MARGIN:
        return 'danger'
    if speed >= thresholds.warning or gust >= thresholds.warning + GUST_MARGIN:
        return 'warning'
    if speed >= CAUTION_RATIO * thresholds.warning:
        return 'caution'
    return 'safe'


def _build_recommendation(level: str, beaufort: BeaufortEntry, terrain: str,
                          gust_anomaly: bool, speed: float, gust: float,
                          direction: float, direction_name: str) -> str:
    description = beaufort.description.lower()
    if level == 'danger':
        parts = [f"Conditions de vent dangereuses ({beaufort.name.lower()} : {description}). "
                 "Il est recommandé de ne pas rouler aujourd'hui."]
    elif level == 'warning':
        parts = [f"Vents forts ({beaufort.name.lower()} : {description}). "
                 "Soyez vigilant et adaptez votre allure."]
    elif level == 'caution':
        parts = [f"Vents modérés ({beaufort.name.lower()}). "
                 "Adaptez votre parcours et votre rythme en fonction du vent."]
    else:
        parts = ["Conditions de vent favorables pour le cyclisme."]

    if level in ('warning', 'danger') and terrain in TERRAIN_ADVICE:
        parts.append(TERRAIN_ADVICE[terrain])

    if gust_anomaly and level != 'danger':
        parts.append(f"Attention aux rafales irrégulières jusqu'à {gust:.0f} km/h "
                     f"pour un vent moyen de {speed:.0f} km/h.")

    parts.append(f"Vent de direction {direction_name} ({direction:.0f}°).")
    return ' '.join(parts)


def assess_wind_safety(wind_data: Any, experience: Optional[str] = DEFAULT_EXPERIENCE,
                       terrain: Optional[str] = DEFAULT_TERRAIN) -> SafetyAssessment:
    """
    Safety verdict for a rider given current wind.

    Levels are checked in order, first match wins:
      danger  - speed >= danger, or gust >= danger + 10
      warning - speed >= warning, or gust >= warning + 10
      caution - speed >= 0.7 * warning
      safe    - otherwise

    Args:
        wind_data: WindData (or mapping) with speed, gust and direction
        experience: 'beginner', 'intermediate' or 'advanced'
        terrain: 'flat', 'mountain_descent', 'mountain_col' or 'exposed_road'

    Returns:
        SafetyAssessment with a French recommendation text
    """
    speed = max(0.0, _read_field(wind_data, 'speed'))
    gust = max(0.0, _read_field(wind_data, 'gust'))
    direction = normalize_direction(_read_field(wind_data, 'direction'))

    thresholds = get_wind_thresholds(experience, terrain)
    beaufort = get_beaufort_scale(speed)
    direction_name = get_direction_name(direction)
    gust_anomaly = (gust - speed) > GUST_ANOMALY_DELTA

    level = classify_wind_level(speed, gust, thresholds)
    recommendation = _build_recommendation(
        level, beaufort, terrain or DEFAULT_TERRAIN, gust_anomaly,
        speed, gust, direction, direction_name,
    )

    return SafetyAssessment(
        safety_level=level,
        recommendation=recommendation,
        beaufort=beaufort,
        speed=speed,
        gust=gust,
        direction=direction,
        direction_name=direction_name,
    )
