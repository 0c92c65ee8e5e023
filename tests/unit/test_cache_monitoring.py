"""
キャッシュと監視シンクのテスト
"""

from unittest.mock import MagicMock

import pytest

from velo_wind.services.cache import InMemoryWeatherCache
from velo_wind.services.monitoring import InMemoryMonitoringSink, SafeMonitor


class TestInMemoryWeatherCache:
    """TTLキャッシュのテスト"""

    @pytest.mark.asyncio
    async def test_get_set(self, memory_cache):
        assert await memory_cache.get("key") is None

        await memory_cache.set("key", '{"speed": 10}', 60)
        assert await memory_cache.get("key") == '{"speed": 10}'
        assert len(memory_cache) == 1

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, memory_cache, fake_clock):
        await memory_cache.set("key", "value", 1800)

        fake_clock.advance(1799)
        assert await memory_cache.get("key") == "value"

        fake_clock.advance(1)
        assert await memory_cache.get("key") is None
        assert len(memory_cache) == 0

    @pytest.mark.asyncio
    async def test_overwrite_refreshes_ttl(self, memory_cache, fake_clock):
        await memory_cache.set("key", "old", 10)
        fake_clock.advance(8)
        await memory_cache.set("key", "new", 10)
        fake_clock.advance(8)
        assert await memory_cache.get("key") == "new"

    @pytest.mark.asyncio
    async def test_set_drops_expired_entries_for_other_keys(self, memory_cache, fake_clock):
        for i in range(1000):
            await memory_cache.set(f"windy_data_{i}", "value", 1800)
        assert len(memory_cache) == 1000

        fake_clock.advance(3600)
        await memory_cache.set("windy_data_new", "value", 1800)

        assert len(memory_cache) == 1
        assert await memory_cache.get("windy_data_new") == "value"

    @pytest.mark.asyncio
    async def test_set_keeps_live_entries(self, memory_cache, fake_clock):
        await memory_cache.set("short", "a", 10)
        await memory_cache.set("long", "b", 100)

        fake_clock.advance(50)
        await memory_cache.set("other", "c", 10)

        assert len(memory_cache) == 2
        assert await memory_cache.get("long") == "b"

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = InMemoryWeatherCache()
        await cache.set("a", "1", 60)
        cache.clear()
        assert await cache.get("a") is None


class TestMonitoring:
    """監視シンクのテスト"""

    def test_in_memory_sink_records(self, monitoring_sink):
        monitoring_sink.track_event("windy_data_cache_hit")
        monitoring_sink.track_metric("windy_api_latency", 12.5)
        monitoring_sink.track_error("windy_api_error", RuntimeError("boom"))

        assert monitoring_sink.event_names() == ["windy_data_cache_hit"]
        assert monitoring_sink.metric_values("windy_api_latency") == [12.5]
        assert monitoring_sink.error_names() == ["windy_api_error"]
        assert monitoring_sink.errors[0]['type'] == 'RuntimeError'

    def test_sink_keeps_most_recent(self):
        sink = InMemoryMonitoringSink(max_records=2)
        for i in range(3):
            sink.track_metric("m", i)
        assert sink.metric_values("m") == [1, 2]

    def test_safe_monitor_swallows_sink_failures(self):
        sink = MagicMock()
        sink.track_event.side_effect = RuntimeError("sink down")
        sink.track_metric.side_effect = RuntimeError("sink down")
        sink.track_error.side_effect = RuntimeError("sink down")
        monitor = SafeMonitor(sink)

        monitor.track_event("event", {"a": 1})
        monitor.track_metric("metric", 1.0)
        monitor.track_error("error", ValueError("x"))

        sink.track_event.assert_called_once_with("event", {"a": 1})
        sink.track_metric.assert_called_once_with("metric", 1.0)

    def test_safe_monitor_default_sink(self):
        monitor = SafeMonitor()
        monitor.track_event("hello")
        assert isinstance(monitor.sink, InMemoryMonitoringSink)
        assert monitor.sink.event_names() == ["hello"]
