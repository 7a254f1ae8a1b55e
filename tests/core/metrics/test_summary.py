"""
tests/core/metrics/test_summary.py - WindowedSummary / MetricsRegistry 테스트
"""

import math

import pytest
from prometheus_client import CollectorRegistry, generate_latest

from core.metrics.registry import MetricsRegistry
from core.metrics.summary import WindowedSummary


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def summary(clock):
    return WindowedSummary("test_latency_seconds", "Latency", ["api"], quantiles=(0.5, 0.9), max_age=600, clock=clock)


class TestWindowedSummary:
    """WindowedSummary 테스트"""

    def test_empty_quantiles_nan(self, summary):
        values = summary.quantile_values("batch")
        assert all(math.isnan(v) for v in values.values())

    def test_nearest_rank(self, summary):
        for v in range(1, 11):
            summary.observe(float(v), "batch")
        assert summary.quantile_values("batch") == {0.5: 5.0, 0.9: 9.0}

    def test_window_expiry(self, summary, clock):
        summary.observe(100.0, "batch")
        clock.now = 601
        summary.observe(1.0, "batch")
        assert summary.quantile_values("batch") == {0.5: 1.0, 0.9: 1.0}

    def test_sum_count_cumulative(self, summary, clock):
        registry = CollectorRegistry()
        registry.register(summary)
        summary.observe(2.0, "storage")
        clock.now = 1000
        summary.observe(3.0, "storage")

        assert registry.get_sample_value("test_latency_seconds_sum", {"api": "storage"}) == 5.0
        assert registry.get_sample_value("test_latency_seconds_count", {"api": "storage"}) == 2.0
        assert registry.get_sample_value("test_latency_seconds", {"api": "storage", "quantile": "0.5"}) == 3.0

    def test_label_count_mismatch(self, summary):
        with pytest.raises(ValueError):
            summary.observe(1.0)

    def test_invalid_quantile(self):
        with pytest.raises(ValueError):
            WindowedSummary("x", "x", quantiles=(1.5,))

    def test_buffer_cap(self, clock):
        summary = WindowedSummary("x", "x", ["api"], quantiles=(0.5,), buffer_cap=3, clock=clock)
        for v in (100.0, 1.0, 2.0, 3.0):
            summary.observe(v, "batch")
        assert summary.quantile_values("batch") == {0.5: 2.0}

    def test_exposition_type(self, summary):
        registry = CollectorRegistry()
        registry.register(summary)
        summary.observe(0.1, "batch")
        text = generate_latest(registry).decode()
        assert "# TYPE test_latency_seconds summary" in text
        assert 'test_latency_seconds{api="batch",quantile="0.9"}' in text


class TestMetricsRegistry:
    """MetricsRegistry 자체 관측 메트릭"""

    def test_observe_call(self, registry):
        registry.observe_call("batch", 0.05)
        registry.observe_call("batch", 0.5, failed=True)

        assert registry.sample("azure_api_calls_total", {"api": "batch"}) == 2.0
        assert registry.sample("azure_api_calls_failed_total", {"api": "batch"}) == 1.0
        assert registry.sample("azure_api_calls_duration_seconds_count", {"api": "batch"}) == 2.0
        assert registry.sample("azure_api_calls_duration_seconds_hist_count", {"api": "batch"}) == 2.0
        assert registry.sample("azure_api_calls_duration_seconds_hist_bucket", {"api": "batch", "le": "0.06"}) == 1.0

    def test_observe_cycle_success(self, registry):
        registry.observe_cycle("batch", "success", 1.5, finished_at=1700000000.0)
        assert registry.sample("azure_exporter_update_cycles_total", {"updater": "batch", "result": "success"}) == 1.0
        assert registry.sample("azure_exporter_update_duration_seconds", {"updater": "batch"}) == 1.5
        assert registry.sample("azure_exporter_last_success_timestamp_seconds", {"updater": "batch"}) == 1700000000.0

    def test_observe_cycle_failed_keeps_last_success(self, registry):
        registry.observe_cycle("batch", "failed", 0.2, finished_at=1700000000.0)
        assert registry.sample("azure_exporter_last_success_timestamp_seconds", {"updater": "batch"}) is None

    def test_cache_entries_function(self):
        registry = MetricsRegistry(cache_size=lambda: 7)
        assert registry.sample("azure_exporter_cache_entries") == 7.0

    def test_render(self, registry):
        registry.observe_call("storage", 0.01)
        text = registry.render().decode()
        assert 'azure_api_calls_total{api="storage"} 1.0' in text
