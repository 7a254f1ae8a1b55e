"""
core/metrics/updater.py - 리소스 종류별 업데이트 오케스트레이터

하나의 수집 사이클을 구동하는 상태 머신과, 등록된 모든 업데이터를 주기적으로 실행하는
스케줄러를 제공합니다.

사이클 상태:
    IDLE → LISTING → FAN_OUT → JOINING → PUBLISHED → IDLE

    - LISTING 실패: IDLE로 복귀, 이전 스냅샷 유지, result="failed"
    - FAN_OUT: 포함 조건을 통과한 최상위 리소스마다 독립 서브트리 태스크 생성
      (한 브랜치의 실패는 형제 브랜치에 영향 없음)
    - JOINING: 모든 태스크 종료 대기 (항상 도달)
    - PUBLISHED: 스냅샷 교체, result="success"
    - join 완료 시점에 취소되어 있으면 스냅샷 폐기, result="cancelled"

Example:
    scheduler = UpdateScheduler(registry)
    scheduler.register(batch_updater, interval=60)
    scheduler.start()
    ...
    scheduler.stop()
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from core.exceptions import CallCancelledError, ListingError, MalformedResourceIDError
from core.parallel.cancel import CancelToken
from core.parallel.group import BoundedTaskGroup

from .context import CycleContext
from .registry import MetricsRegistry
from .snapshot import FamilySpec, SnapshotBuilder

logger = logging.getLogger(__name__)


class CycleState(Enum):
    """사이클 상태"""

    IDLE = "idle"
    LISTING = "listing"
    FAN_OUT = "fan_out"
    JOINING = "joining"
    PUBLISHED = "published"


class CycleResult(Enum):
    """사이클 결과 (azure_exporter_update_cycles_total의 result 라벨)"""

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MetricsUpdater(ABC):
    """리소스 종류별 업데이터 베이스

    하위 클래스는 name, families와 list_resources(), fan_out()을 구현합니다.

    Attributes:
        name: 업데이터 이름 (스냅샷 kind, 로그/메트릭 라벨)
        families: 이 업데이터가 기록하는 메트릭 패밀리
        max_concurrency: fan-out 동시 실행 상한 (None이면 settings.MAX_CONCURRENCY)
    """

    name: str = ""
    families: Sequence[FamilySpec] = ()

    def __init__(self, registry: MetricsRegistry, max_concurrency: int | None = None):
        self.registry = registry
        self.max_concurrency = max_concurrency
        self.state = CycleState.IDLE
        self.last_peak = 0

    @abstractmethod
    def list_resources(self, cycle: CycleContext) -> Iterable[Any]:
        """최상위 리소스 목록 조회 (LISTING)

        Raises:
            ListingError: 목록 조회 실패 (사이클 중단)
            CallCancelledError: 취소
        """

    def include(self, cycle: CycleContext, resource: Any) -> bool:
        """포함 조건 (기본: 전체 포함)"""
        return True

    @abstractmethod
    def fan_out(self, cycle: CycleContext, builder: SnapshotBuilder, group: BoundedTaskGroup, resource: Any) -> None:
        """리소스 하나에 대한 관측값 기록 및 서브트리 태스크 추가 (FAN_OUT)"""

    def run_cycle(self, cycle: CycleContext) -> CycleResult:
        """사이클 하나 실행

        Args:
            cycle: 사이클 컨텍스트

        Returns:
            사이클 결과
        """
        prefix = f"[{cycle.cycle_id}]"
        start = time.monotonic()
        builder = SnapshotBuilder(self.families)

        self.state = CycleState.LISTING
        try:
            resources = list(self.list_resources(cycle))
        except CallCancelledError:
            logger.info(f"{prefix} 목록 조회 중 취소됨")
            return self._finish(cycle, CycleResult.CANCELLED, start)
        except ListingError as e:
            logger.error(f"{prefix} {e} - 이전 스냅샷 유지")
            return self._finish(cycle, CycleResult.FAILED, start)
        except Exception as e:
            logger.exception(f"{prefix} 목록 조회 중 예기치 않은 오류: {e} - 이전 스냅샷 유지")
            return self._finish(cycle, CycleResult.FAILED, start)

        self.state = CycleState.FAN_OUT
        group = BoundedTaskGroup(cycle.token, self.max_concurrency, cycle_id=cycle.cycle_id)
        included = 0
        try:
            for resource in resources:
                if not self.include(cycle, resource):
                    continue
                included += 1
                try:
                    self.fan_out(cycle, builder, group, resource)
                except MalformedResourceIDError as e:
                    logger.error(f"{prefix} 리소스 스킵: {e}")
                except CallCancelledError:
                    logger.debug(f"{prefix} fan-out 취소됨")
                    break
                except Exception as e:
                    logger.error(f"{prefix} 리소스 처리 실패, 스킵: {e}")
        finally:
            self.state = CycleState.JOINING
            stats = group.wait()
        self.last_peak = stats.peak

        if cycle.token.cancelled:
            logger.info(f"{prefix} 사이클 취소됨 - 부분 스냅샷 폐기 ({stats.summary()})")
            return self._finish(cycle, CycleResult.CANCELLED, start)

        snapshot = builder.build()
        self.registry.publisher.publish(self.name, snapshot)
        self.state = CycleState.PUBLISHED
        logger.info(
            f"{prefix} 스냅샷 게시: 리소스 {included}/{len(resources)}개, "
            f"series {snapshot.series_count()}개, {stats.summary()}"
        )
        return self._finish(cycle, CycleResult.SUCCESS, start)

    def _finish(self, cycle: CycleContext, result: CycleResult, start: float) -> CycleResult:
        duration = time.monotonic() - start
        self.registry.observe_cycle(self.name, result.value, duration, finished_at=time.time())
        self.state = CycleState.IDLE
        logger.debug(f"[{cycle.cycle_id}] 사이클 종료: {result.value} ({duration:.2f}s)")
        return result


@dataclass
class _Scheduled:
    updater: MetricsUpdater
    interval: float
    next_run: float = 0.0


class UpdateScheduler:
    """업데이터 스케줄러

    하나의 드라이버 스레드가 실행 시점이 된 업데이터를 차례로 실행한 뒤,
    다음 실행 시점까지 프로세스 취소 토큰에서 대기합니다.

    Args:
        registry: 메트릭 레지스트리
        root_token: 프로세스 취소 토큰 (None이면 새로 생성)
    """

    def __init__(self, registry: MetricsRegistry, root_token: CancelToken | None = None):
        self.registry = registry
        self.root = root_token or CancelToken()
        self._entries: list[_Scheduled] = []
        self._sequence = itertools.count(1)
        self._thread: threading.Thread | None = None

    @property
    def updaters(self) -> list[MetricsUpdater]:
        return [entry.updater for entry in self._entries]

    def register(self, updater: MetricsUpdater, interval: float) -> None:
        if interval <= 0:
            raise ValueError(f"수집 주기는 양수여야 합니다: {interval}")
        if any(entry.updater.name == updater.name for entry in self._entries):
            raise ValueError(f"이미 등록된 업데이터: {updater.name}")
        self._entries.append(_Scheduled(updater=updater, interval=interval))
        logger.info(f"업데이터 등록: {updater.name} (주기 {interval}s)")

    def new_cycle(self, updater: MetricsUpdater) -> CycleContext:
        return CycleContext(
            cycle_id=f"{updater.name}-{next(self._sequence):06d}",
            updater=updater.name,
            token=self.root.child(),
            registry=self.registry,
        )

    def run_updater(self, updater: MetricsUpdater) -> CycleResult:
        cycle = self.new_cycle(updater)
        logger.info(f"[{cycle.cycle_id}] 사이클 시작")
        return updater.run_cycle(cycle)

    def run_once(self) -> dict[str, CycleResult]:
        """등록된 모든 업데이터를 한 번씩 실행"""
        results: dict[str, CycleResult] = {}
        for entry in self._entries:
            if self.root.cancelled:
                break
            results[entry.updater.name] = self.run_updater(entry.updater)
        return results

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("스케줄러가 이미 시작되었습니다")
        if not self._entries:
            logger.warning("등록된 업데이터가 없습니다")
        self._thread = threading.Thread(target=self._loop, name="update-driver", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        from core.tools.cache.ttl import get_cache

        while not self.root.cancelled:
            for entry in self._entries:
                if self.root.cancelled:
                    break
                if entry.next_run > time.monotonic():
                    continue
                try:
                    self.run_updater(entry.updater)
                except Exception as e:
                    logger.exception(f"업데이터 실행 오류 [{entry.updater.name}]: {e}")
                entry.next_run = time.monotonic() + entry.interval

            get_cache().purge_expired()
            if not self._entries:
                self.root.wait()
                break
            delay = min(entry.next_run for entry in self._entries) - time.monotonic()
            self.root.wait(max(0.0, delay))

        logger.info("업데이트 드라이버 종료")

    def stop(self, timeout: float | None = None) -> None:
        """프로세스 취소 토큰을 발화하고 드라이버 스레드 종료 대기"""
        self.root.cancel()
        if self._thread is not None:
            self._thread.join(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
