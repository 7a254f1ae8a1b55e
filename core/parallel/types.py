"""
core/parallel/types.py - 병렬 처리 공용 타입

에러 카테고리와 태스크 그룹 실행 통계를 정의합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ErrorCategory(Enum):
    """원격 호출 에러 카테고리"""

    THROTTLING = "throttling"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    EXPIRED_TOKEN = "expired_token"
    NETWORK = "network"
    SERVICE_ERROR = "service_error"
    INVALID_REQUEST = "invalid_request"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


# 일시적 장애로 취급하는 카테고리 (실패 카운터 증가, 브랜치만 버림)
TRANSIENT_CATEGORIES: frozenset[ErrorCategory] = frozenset(
    {
        ErrorCategory.THROTTLING,
        ErrorCategory.TIMEOUT,
        ErrorCategory.NETWORK,
        ErrorCategory.SERVICE_ERROR,
    }
)


@dataclass
class GroupStats:
    """BoundedTaskGroup 한 사이클의 실행 통계

    Attributes:
        added: 추가된 태스크 수
        succeeded: 정상 종료된 태스크 수
        failed: 예외로 종료된 태스크 수
        cancelled: 취소로 종료된 태스크 수
        peak: 동시에 실행된 최대 태스크 수
    """

    added: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    peak: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def finished(self) -> int:
        return self.succeeded + self.failed + self.cancelled

    def summary(self) -> str:
        return (
            f"태스크 {self.added}개 (성공 {self.succeeded}, 실패 {self.failed}, "
            f"취소 {self.cancelled}, 최대 동시 실행 {self.peak})"
        )
