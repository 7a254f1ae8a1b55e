"""
core/metrics/registry.py - 메트릭 레지스트리

프로세스 전역 기본 레지스트리 대신 명시적인 레지스트리 값을 생성해 모든 컴포넌트에 전달합니다.
하나의 MetricsRegistry는 다음을 소유합니다:

- CollectorRegistry (prometheus_client, 익스포저 엔드포인트가 노출)
- Azure API 자체 관측 메트릭 (호출 수, 실패 수, 지연시간 요약/히스토그램)
- 업데이트 사이클 메트릭 (결과별 사이클 수, 소요 시간, 마지막 성공 시각)
- SnapshotPublisher + SnapshotCollector (리소스 메트릭)

Example:
    registry = MetricsRegistry()
    registry.observe_call("batch", 0.12)
    registry.observe_call("batch", 0.30, failed=True)

    start_http_server(9000, "0.0.0.0", registry=registry.registry)
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from core.config import settings

from .snapshot import SnapshotCollector, SnapshotPublisher
from .summary import WindowedSummary

logger = logging.getLogger(__name__)


class MetricsRegistry:
    """익스포터 메트릭 레지스트리

    Args:
        registry: 사용할 CollectorRegistry (None이면 새로 생성)
        cache_size: 캐시 엔트리 수를 반환하는 함수 (azure_exporter_cache_entries)
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        cache_size: Callable[[], float] | None = None,
    ):
        self.registry = registry or CollectorRegistry()
        self.publisher = SnapshotPublisher()

        # Azure API 자체 관측
        self.api_calls = Counter(
            "azure_api_calls_total",
            "Total number of calls to the Azure API",
            ["api"],
            registry=self.registry,
        )
        self.api_calls_failed = Counter(
            "azure_api_calls_failed_total",
            "Total number of failed calls to the Azure API",
            ["api"],
            registry=self.registry,
        )
        self.api_duration = WindowedSummary(
            "azure_api_calls_duration_seconds",
            "Percentiles of Azure API calls durations in seconds over last 10 minutes",
            ["api"],
        )
        self.registry.register(self.api_duration)
        self.api_duration_hist = Histogram(
            "azure_api_calls_duration_seconds_hist",
            "Histograms of Azure API calls durations in seconds",
            ["api"],
            buckets=settings.HISTOGRAM_BUCKETS,
            registry=self.registry,
        )

        # 업데이트 사이클
        self.update_cycles = Counter(
            "azure_exporter_update_cycles_total",
            "Total number of update cycles by result",
            ["updater", "result"],
            registry=self.registry,
        )
        self.update_duration = Gauge(
            "azure_exporter_update_duration_seconds",
            "Duration of the last update cycle in seconds",
            ["updater"],
            registry=self.registry,
        )
        self.last_success = Gauge(
            "azure_exporter_last_success_timestamp_seconds",
            "Unix timestamp of the last successful update cycle",
            ["updater"],
            registry=self.registry,
        )
        self.cache_entries = Gauge(
            "azure_exporter_cache_entries",
            "Number of live entries in the Azure API response cache",
            registry=self.registry,
        )
        if cache_size is not None:
            self.cache_entries.set_function(cache_size)

        self.registry.register(SnapshotCollector(self.publisher))

    # =========================================================================
    # Azure API 호출 관측
    # =========================================================================

    def observe_call(self, surface: str, duration: float, failed: bool = False) -> None:
        """완료된(취소되지 않은) API 호출 하나를 기록"""
        self.api_calls.labels(api=surface).inc()
        self.api_duration.observe(duration, surface)
        self.api_duration_hist.labels(api=surface).observe(duration)
        if failed:
            self.api_calls_failed.labels(api=surface).inc()

    # =========================================================================
    # 사이클 관측
    # =========================================================================

    def observe_cycle(self, updater: str, result: str, duration: float, finished_at: float | None = None) -> None:
        self.update_cycles.labels(updater=updater, result=result).inc()
        self.update_duration.labels(updater=updater).set(duration)
        if result == "success" and finished_at is not None:
            self.last_success.labels(updater=updater).set(finished_at)

    def sample(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        """레지스트리에서 샘플 값 조회"""
        return self.registry.get_sample_value(name, labels or {})

    def render(self) -> bytes:
        """Prometheus 텍스트 포맷 렌더링"""
        return generate_latest(self.registry)
