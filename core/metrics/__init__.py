"""
core/metrics - 메트릭 수집/노출 파이프라인

주요 구성 요소:
- MetricsRegistry: 명시적 CollectorRegistry + 자체 관측 메트릭 + 스냅샷 게시자
- SnapshotBuilder / MetricSnapshot / SnapshotPublisher: 사이클 단위 원자적 스냅샷
- instrumented_call: 타임아웃/지연시간/성공·실패 계측 원격 호출
- MetricsUpdater / UpdateScheduler: 리소스 종류별 사이클 오케스트레이션
"""

from .context import CycleContext
from .instrument import instrumented_call
from .registry import MetricsRegistry
from .snapshot import (
    FamilySpec,
    MetricKind,
    MetricSnapshot,
    SnapshotBuilder,
    SnapshotCollector,
    SnapshotPublisher,
)
from .summary import WindowedSummary
from .updater import CycleResult, CycleState, MetricsUpdater, UpdateScheduler

__all__: list[str] = [
    # Registry
    "MetricsRegistry",
    "WindowedSummary",
    # Snapshot
    "FamilySpec",
    "MetricKind",
    "MetricSnapshot",
    "SnapshotBuilder",
    "SnapshotCollector",
    "SnapshotPublisher",
    # Cycle
    "CycleContext",
    "CycleResult",
    "CycleState",
    "MetricsUpdater",
    "UpdateScheduler",
    "instrumented_call",
]
