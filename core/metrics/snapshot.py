"""
core/metrics/snapshot.py - 사이클 단위 메트릭 스냅샷

한 수집 사이클의 관측값을 새 스냅샷에 누적하고, 사이클 종료 시 원자적으로 교체합니다.

- SnapshotBuilder: 매 사이클 새로 생성. 이전 스냅샷을 수정하지 않으므로
  이번 사이클에 관측되지 않은 엔티티는 노출되지 않음
- MetricSnapshot: build() 결과. 게시 후 불변 (읽기 전용 매핑)
- SnapshotPublisher: 리소스 종류별 현재 스냅샷 보관, 락 안에서 참조만 교체
- SnapshotCollector: 스크레이프 시점에 게시된 스냅샷을 Prometheus 메트릭 패밀리로 렌더링

상태 라벨 패밀리 (예: azure_batch_pool_allocation_state):
    관측된 엔티티마다 선언된 모든 상태를 0으로 채운 뒤 관측 상태만 1 (또는 개수)로 설정합니다.
    series 없음 = 관측되지 않음, 0 = 관측되었고 해당 상태 아님.

Example:
    builder = SnapshotBuilder(BATCH_FAMILIES)
    builder.set("azure_batch_pool_quota", {"subscription": "S", "resource_group": "rg", "account": "a1"}, 100)
    builder.set_state("azure_batch_pool_allocation_state", {..., "pool": "p1"}, "steady")

    publisher.publish("batch", builder.build())
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Union

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

logger = logging.getLogger(__name__)

LabelValues = Union[Mapping[str, str], Sequence[str]]


class MetricKind(Enum):
    """스냅샷 메트릭 종류"""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class FamilySpec:
    """메트릭 패밀리 정의

    Attributes:
        name: 메트릭 이름
        documentation: HELP 문자열
        kind: gauge / counter
        labels: 라벨 이름 (고정 순서)
        state_label: 열거형 상태 라벨 이름 (상태 패밀리만)
        states: 선언된 상태 전체 집합
    """

    name: str
    documentation: str
    kind: MetricKind = MetricKind.GAUGE
    labels: tuple[str, ...] = ()
    state_label: str | None = None
    states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"{self.name}: 중복 라벨 {self.labels}")
        if self.state_label is not None:
            if self.state_label not in self.labels:
                raise ValueError(f"{self.name}: 상태 라벨 '{self.state_label}'이 labels에 없음")
            if not self.states:
                raise ValueError(f"{self.name}: 상태 목록이 비어있음")

    @property
    def entity_labels(self) -> tuple[str, ...]:
        """상태 라벨을 제외한 엔티티 라벨"""
        return tuple(label for label in self.labels if label != self.state_label)


class MetricSnapshot:
    """불변 메트릭 스냅샷

    패밀리 이름 → (라벨 값 튜플 → 값) 매핑입니다.
    """

    def __init__(
        self,
        families: Mapping[str, FamilySpec],
        series: Mapping[str, Mapping[tuple[str, ...], float]],
        built_at: float | None = None,
    ):
        self._families = MappingProxyType(dict(families))
        self._series = MappingProxyType(
            {name: MappingProxyType(dict(series.get(name, {}))) for name in self._families}
        )
        self.built_at = time.time() if built_at is None else built_at

    @property
    def families(self) -> Mapping[str, FamilySpec]:
        return self._families

    def series(self, family: str) -> Mapping[tuple[str, ...], float]:
        """패밀리의 전체 series (라벨 튜플 → 값)

        Raises:
            KeyError: 알 수 없는 패밀리
        """
        return self._series[family]

    def get(self, family: str, labels: Mapping[str, str]) -> float | None:
        """라벨 딕셔너리로 단일 값 조회 (없으면 None)"""
        spec = self._families[family]
        key = tuple(str(labels[name]) for name in spec.labels)
        return self._series[family].get(key)

    def find(self, family: str, **match: str) -> dict[tuple[str, ...], float]:
        """부분 라벨 매칭으로 series 조회"""
        spec = self._families[family]
        positions = {spec.labels.index(k): str(v) for k, v in match.items()}
        return {
            key: value
            for key, value in self._series[family].items()
            if all(key[pos] == v for pos, v in positions.items())
        }

    def series_count(self) -> int:
        return sum(len(s) for s in self._series.values())

    def __contains__(self, family: object) -> bool:
        return family in self._families


class SnapshotBuilder:
    """사이클 단위 스냅샷 빌더 (스레드 안전)

    모든 누적 연산은 짧게 잡히는 하나의 락으로 보호됩니다.
    build()는 한 번만 호출할 수 있으며, 이후 쓰기는 RuntimeError입니다.
    """

    def __init__(self, families: Iterable[FamilySpec]):
        self._families: dict[str, FamilySpec] = {}
        for spec in families:
            if spec.name in self._families:
                raise ValueError(f"중복 패밀리: {spec.name}")
            self._families[spec.name] = spec
        self._series: dict[str, dict[tuple[str, ...], float]] = {name: {} for name in self._families}
        self._lock = threading.Lock()
        self._built = False

    @property
    def families(self) -> Mapping[str, FamilySpec]:
        return MappingProxyType(self._families)

    def _spec(self, family: str) -> FamilySpec:
        try:
            return self._families[family]
        except KeyError:
            raise KeyError(f"알 수 없는 메트릭 패밀리: {family}") from None

    @staticmethod
    def _key(spec: FamilySpec, names: tuple[str, ...], labels: LabelValues) -> tuple[str, ...]:
        if isinstance(labels, Mapping):
            if set(labels) != set(names):
                raise ValueError(f"{spec.name}: 라벨 불일치 (기대 {sorted(names)}, 실제 {sorted(labels)})")
            return tuple(str(labels[name]) for name in names)
        values = tuple(str(v) for v in labels)
        if len(values) != len(names):
            raise ValueError(f"{spec.name}: 라벨 개수 불일치 (기대 {len(names)}, 실제 {len(values)})")
        return values

    def _check_writable(self) -> None:
        if self._built:
            raise RuntimeError("이미 build()된 스냅샷에는 쓸 수 없습니다")

    def set(self, family: str, labels: LabelValues, value: float) -> None:
        spec = self._spec(family)
        key = self._key(spec, spec.labels, labels)
        with self._lock:
            self._check_writable()
            self._series[family][key] = float(value)

    def inc(self, family: str, labels: LabelValues, amount: float = 1.0) -> None:
        spec = self._spec(family)
        key = self._key(spec, spec.labels, labels)
        with self._lock:
            self._check_writable()
            series = self._series[family]
            series[key] = series.get(key, 0.0) + amount

    def _state_keys(self, spec: FamilySpec, labels: LabelValues, state: str) -> tuple[list[tuple[str, ...]], tuple[str, ...]]:
        if spec.state_label is None:
            raise ValueError(f"{spec.name}: 상태 패밀리가 아님")
        entity = dict(zip(spec.entity_labels, self._key(spec, spec.entity_labels, labels)))

        def key_for(value: str) -> tuple[str, ...]:
            return tuple(value if name == spec.state_label else entity[name] for name in spec.labels)

        if state not in spec.states:
            logger.debug(f"{spec.name}: 선언되지 않은 상태 '{state}'")
        return [key_for(s) for s in spec.states], key_for(state)

    def init_states(self, family: str, labels: LabelValues) -> None:
        """관측된 엔티티의 선언 상태를 모두 0으로 채움 (이미 있는 값은 유지)"""
        spec = self._spec(family)
        zero_keys, _ = self._state_keys(spec, labels, spec.states[0] if spec.states else "")
        with self._lock:
            self._check_writable()
            series = self._series[family]
            for key in zero_keys:
                series.setdefault(key, 0.0)

    def set_state(self, family: str, labels: LabelValues, state: str) -> None:
        """엔티티의 관측 상태를 1로, 나머지 선언 상태를 0으로 설정

        Args:
            family: 상태 패밀리 이름
            labels: 상태 라벨을 제외한 엔티티 라벨
            state: 관측된 상태
        """
        spec = self._spec(family)
        zero_keys, observed = self._state_keys(spec, labels, state)
        with self._lock:
            self._check_writable()
            series = self._series[family]
            for key in zero_keys:
                series.setdefault(key, 0.0)
            series[observed] = 1.0

    def inc_state(self, family: str, labels: LabelValues, state: str, amount: float = 1.0) -> None:
        """엔티티의 관측 상태 값을 증가 (예: 상태별 노드 수)

        처음 관측된 엔티티는 선언된 모든 상태를 0으로 먼저 채웁니다.
        """
        spec = self._spec(family)
        zero_keys, observed = self._state_keys(spec, labels, state)
        with self._lock:
            self._check_writable()
            series = self._series[family]
            for key in zero_keys:
                series.setdefault(key, 0.0)
            series[observed] = series.get(observed, 0.0) + amount

    def build(self) -> MetricSnapshot:
        """불변 스냅샷 생성 (한 번만 호출 가능)"""
        with self._lock:
            self._check_writable()
            self._built = True
            series = {name: dict(values) for name, values in self._series.items()}
        return MetricSnapshot(self._families, series)


class SnapshotPublisher:
    """리소스 종류별 현재 스냅샷 보관소

    publish()와 current()는 같은 락을 참조 교체/획득 동안만 잡습니다.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, MetricSnapshot] = {}
        self._lock = threading.Lock()

    def publish(self, kind: str, snapshot: MetricSnapshot) -> None:
        with self._lock:
            self._snapshots[kind] = snapshot

    def current(self, kind: str) -> MetricSnapshot | None:
        with self._lock:
            return self._snapshots.get(kind)

    def current_all(self) -> dict[str, MetricSnapshot]:
        with self._lock:
            return dict(self._snapshots)


class SnapshotCollector(Collector):
    """게시된 스냅샷을 스크레이프 시점에 렌더링하는 커스텀 컬렉터"""

    def __init__(self, publisher: SnapshotPublisher):
        self.publisher = publisher

    def collect(self) -> Iterator[Metric]:
        seen: set[str] = set()
        snapshots = self.publisher.current_all()
        for kind in sorted(snapshots):
            snapshot = snapshots[kind]
            for name, spec in snapshot.families.items():
                if name in seen:
                    logger.warning(f"메트릭 패밀리 중복 ({kind}): {name} - 무시")
                    continue
                seen.add(name)
                yield _render(spec, snapshot.series(name))


def _render(spec: FamilySpec, series: Mapping[tuple[str, ...], float]) -> Metric:
    family: Metric
    if spec.kind is MetricKind.COUNTER:
        family = CounterMetricFamily(spec.name, spec.documentation, labels=list(spec.labels))
    else:
        family = GaugeMetricFamily(spec.name, spec.documentation, labels=list(spec.labels))
    for key in sorted(series):
        family.add_metric(list(key), series[key])
    return family
