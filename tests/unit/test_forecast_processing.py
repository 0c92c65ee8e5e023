"""
風予報の整形処理のテスト
"""

import pytest

from conftest import BASE_EPOCH, make_forecast_payload
from velo_wind.models.wind import HourlyForecastEntry
from velo_wind.services.forecast_processing import (
    aggregate_daily_forecast,
    convert_wind_speed,
    parse_forecast_payload,
    parse_point_payload,
    process_hourly_forecast,
)
from velo_wind.utils.wind_safety import calculate_wind_chill


def hourly_entry(date_time, speed, gust, direction=0.0):
    return HourlyForecastEntry(
        speed=speed, direction=direction, gust=gust, timestamp=0,
        date_time=date_time, feels_like=0.0,
    )


class TestConversion:

    def test_convert_wind_speed(self):
        assert convert_wind_speed(10) == 36.0
        assert convert_wind_speed(1.234) == 4.4
        assert convert_wind_speed(0) == 0.0


class TestParseForecastPayload:
    """欠損データのパース"""

    def test_none_payload(self):
        parsed = parse_forecast_payload(None)
        assert parsed.hours == []
        assert parsed.wind_speeds == []

    def test_short_arrays_are_zero_padded(self):
        parsed = parse_forecast_payload({
            "hours": [BASE_EPOCH, BASE_EPOCH + 3600, BASE_EPOCH + 7200],
            "wind": [{"value": 4, "direction": 90}],
            "windGust": [],
        })
        assert parsed.wind_speeds == [4.0, 0.0, 0.0]
        assert parsed.wind_directions == [90.0, 0.0, 0.0]
        assert parsed.gust_speeds == [0.0, 0.0, 0.0]
        assert parsed.temperatures == [0.0, 0.0, 0.0]

    def test_garbage_entries_become_zero(self):
        parsed = parse_forecast_payload({
            "hours": [BASE_EPOCH, BASE_EPOCH + 3600],
            "wind": [{"value": None, "direction": "ouest"}, 3.5],
            "windGust": "not-a-list",
            "temp": [{"value": "7.5"}, {}],
        })
        assert parsed.wind_speeds == [0.0, 3.5]
        assert parsed.wind_directions == [0.0, 0.0]
        assert parsed.gust_speeds == [0.0, 0.0]
        assert parsed.temperatures == [7.5, 0.0]

    def test_point_payload(self):
        parsed = parse_point_payload({"wind": [{"value": 5, "direction": 180}]})
        assert parsed.wind_speeds == [5.0]
        assert parsed.wind_directions == [180.0]
        assert parsed.gust_speeds == [0.0]

    def test_point_payload_missing(self):
        parsed = parse_point_payload(None)
        assert parsed.wind_speeds == [0.0]


class TestProcessHourlyForecast:
    """時間別予報のテスト"""

    def test_entries(self):
        entries = process_hourly_forecast({
            "hours": [BASE_EPOCH, BASE_EPOCH + 3600],
            "wind": [{"value": 5, "direction": -90}],
            "windGust": [{"value": 10}],
            "temp": [{"value": 0}, {"value": 20}],
        })

        assert len(entries) == 2
        first, second = entries
        assert first.speed == 18.0
        assert first.gust == 36.0
        assert first.direction == 270.0
        assert first.timestamp == BASE_EPOCH * 1000
        assert first.date_time == "2024-01-15T00:00:00.000Z"
        assert first.provider == 'windy'
        assert first.feels_like < 0
        assert first.feels_like == round(calculate_wind_chill(0, 18.0), 1)
        assert first.probability is None

        assert second.speed == 0.0
        assert second.feels_like == 20.0
        assert second.date_time == "2024-01-15T01:00:00.000Z"

    def test_empty_and_malformed(self):
        assert process_hourly_forecast(None) == []
        assert process_hourly_forecast({}) == []
        assert process_hourly_forecast({"hours": "nope"}) == []

    def test_full_payload(self):
        entries = process_hourly_forecast(make_forecast_payload(hours=48)["data"])
        assert len(entries) == 48
        assert entries[-1].date_time.startswith("2024-01-16T23")


class TestAggregateDailyForecast:
    """日別集約のテスト"""

    def test_two_days_of_hours(self):
        hourly = []
        for hour in range(24):
            hourly.append(hourly_entry(f"2024-01-15T{hour:02d}:00:00.000Z",
                                       speed=10 + hour, gust=20 + hour,
                                       direction=350 if hour % 2 else 10))
        for hour in range(24):
            hourly.append(hourly_entry(f"2024-01-16T{hour:02d}:00:00.000Z",
                                       speed=5 + hour * 0.5, gust=60 - hour,
                                       direction=90))

        daily = aggregate_daily_forecast(hourly)

        assert len(daily) == 2
        first, second = daily
        assert first.date == "2024-01-15"
        assert first.min == 10
        assert first.max == 33
        assert first.max_gust == 43
        assert min(first.avg_direction, 360 - first.avg_direction) < 1e-6

        assert second.date == "2024-01-16"
        assert second.min == 5
        assert second.max == 16.5
        assert second.max_gust == 60
        assert second.avg_direction == pytest.approx(90)

    def test_order_of_first_appearance(self):
        hourly = [
            hourly_entry("2024-01-17T00:00:00.000Z", 1, 1),
            hourly_entry("2024-01-15T00:00:00.000Z", 2, 2),
            hourly_entry("2024-01-17T01:00:00.000Z", 3, 3),
        ]
        daily = aggregate_daily_forecast(hourly)
        assert [d.date for d in daily] == ["2024-01-17", "2024-01-15"]
        assert daily[0].max == 3

    def test_empty(self):
        assert aggregate_daily_forecast([]) == []

    def test_from_processed_payload(self):
        hourly = process_hourly_forecast(make_forecast_payload(hours=48)["data"])
        daily = aggregate_daily_forecast(hourly)
        assert [d.date for d in daily] == ["2024-01-15", "2024-01-16"]
        # 2 m/s + 0.5 m/s per hour of day
        assert daily[0].min == 7.2
        assert daily[0].max == convert_wind_speed(2 + 23 * 0.5)
        assert daily[1].max_gust == convert_wind_speed(4 + 23 * 0.5)
