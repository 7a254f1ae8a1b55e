"""
core/metrics/summary.py - 윈도우 기반 quantile 요약 컬렉터

prometheus_client의 Summary는 quantile을 제공하지 않으므로,
최근 max_age초 동안의 관측값으로 quantile을 계산하는 커스텀 컬렉터를 제공합니다.

- quantile: 최근 윈도우(기본 10분) 관측값 기준
- _sum / _count: 프로세스 시작 이후 누적
- 라벨 조합별 버퍼는 buffer_cap 개로 제한 (초과 시 오래된 값부터 버림)
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator, Sequence

from prometheus_client.core import Metric
from prometheus_client.registry import Collector

from core.config import settings


class _Series:
    __slots__ = ("window", "total", "count")

    def __init__(self, buffer_cap: int):
        self.window: deque[tuple[float, float]] = deque(maxlen=buffer_cap)
        self.total = 0.0
        self.count = 0


class WindowedSummary(Collector):
    """최근 윈도우 quantile 요약

    Args:
        name: 메트릭 이름
        documentation: HELP 문자열
        labelnames: 라벨 이름 목록
        quantiles: 노출할 quantile 목록
        max_age: 윈도우 길이 (초)
        buffer_cap: 라벨 조합별 최대 보관 관측값 수
        clock: 시계 함수 (테스트용 주입)
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        labelnames: Sequence[str] = (),
        quantiles: Sequence[float] = settings.SUMMARY_QUANTILES,
        max_age: float = settings.SUMMARY_MAX_AGE_SECONDS,
        buffer_cap: int = settings.SUMMARY_BUFFER_CAP,
        clock: Callable[[], float] = time.monotonic,
    ):
        for q in quantiles:
            if not 0.0 <= q <= 1.0:
                raise ValueError(f"quantile 범위 오류: {q}")
        self.name = name
        self.documentation = documentation
        self.labelnames = tuple(labelnames)
        self.quantiles = tuple(quantiles)
        self.max_age = max_age
        self.buffer_cap = buffer_cap
        self._clock = clock
        self._series: dict[tuple[str, ...], _Series] = {}
        self._lock = threading.Lock()

    def observe(self, value: float, *labelvalues: str) -> None:
        if len(labelvalues) != len(self.labelnames):
            raise ValueError(f"{self.name}: 라벨 개수 불일치 (기대 {len(self.labelnames)}, 실제 {len(labelvalues)})")
        now = self._clock()
        with self._lock:
            series = self._series.get(labelvalues)
            if series is None:
                series = self._series[labelvalues] = _Series(self.buffer_cap)
            series.window.append((now, value))
            series.total += value
            series.count += 1

    def quantile_values(self, *labelvalues: str) -> dict[float, float]:
        """현재 윈도우의 quantile 값 (관측값 없으면 NaN)"""
        cutoff = self._clock() - self.max_age
        with self._lock:
            series = self._series.get(labelvalues)
            if series is None:
                return {q: math.nan for q in self.quantiles}
            while series.window and series.window[0][0] < cutoff:
                series.window.popleft()
            values = sorted(v for _, v in series.window)
        return {q: _quantile(values, q) for q in self.quantiles}

    def describe(self) -> Iterator[Metric]:
        yield Metric(self.name, self.documentation, "summary")

    def collect(self) -> Iterator[Metric]:
        metric = Metric(self.name, self.documentation, "summary")
        with self._lock:
            keys = sorted(self._series)
        for labelvalues in keys:
            labels = dict(zip(self.labelnames, labelvalues))
            for q, value in self.quantile_values(*labelvalues).items():
                metric.add_sample(self.name, {**labels, "quantile": _format_quantile(q)}, value)
            with self._lock:
                series = self._series[labelvalues]
                total, count = series.total, series.count
            metric.add_sample(self.name + "_sum", labels, total)
            metric.add_sample(self.name + "_count", labels, float(count))
        yield metric


def _quantile(sorted_values: list[float], q: float) -> float:
    """nearest-rank quantile"""
    if not sorted_values:
        return math.nan
    rank = max(1, math.ceil(q * len(sorted_values)))
    return sorted_values[rank - 1]


def _format_quantile(q: float) -> str:
    return repr(float(q))
