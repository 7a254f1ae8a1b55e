"""
core/metrics/context.py - 수집 사이클 컨텍스트

사이클마다 하나씩 생성되며, cycle_id는 해당 사이클의 모든 로그 라인 앞에 붙는
상관관계 ID입니다 (예: "[batch-000042] ...").
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.parallel.cancel import CancelToken

if TYPE_CHECKING:
    from .registry import MetricsRegistry


@dataclass
class CycleContext:
    """수집 사이클 컨텍스트

    Attributes:
        cycle_id: 사이클 상관관계 ID
        updater: 업데이터 이름 (리소스 종류)
        token: 사이클 취소 토큰 (프로세스 토큰에서 파생)
        registry: 메트릭 레지스트리
        started_at: 사이클 시작 시각 (epoch 초)
    """

    cycle_id: str
    updater: str
    token: CancelToken
    registry: MetricsRegistry
    started_at: float = field(default_factory=time.time)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def elapsed(self) -> float:
        return time.time() - self.started_at
