"""
core/parallel/cancel.py - 협조적 취소 토큰

프로세스 단위 취소 소스, 사이클 단위 파생 토큰, 호출 단위 데드라인 스코프를 제공합니다.
취소는 협조적이며, 원격 호출 시작 전과 페이지 경계에서만 확인됩니다.

구조:
    CancelToken (프로세스, SIGTERM/SIGINT 시 cancel)
    └── CancelToken (사이클, child())
        └── CallScope (호출, 데드라인 = 시작 시각 + timeout)

Example:
    root = CancelToken()
    cycle_token = root.child()

    scope = CallScope(cycle_token, timeout=20, surface="batch", operation="pool.list")
    for page in client.pool.list(...).by_page():
        scope.check()
        ...
"""

from __future__ import annotations

import threading
import time
import weakref

from core.exceptions import CallCancelledError


class CancelToken:
    """취소 토큰

    cancel()은 멱등이며, 모든 파생(child) 토큰으로 전파됩니다.
    이미 취소된 토큰에서 파생된 토큰은 생성 즉시 취소 상태입니다.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[CancelToken] = weakref.WeakSet()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    def child(self) -> CancelToken:
        """이 토큰의 취소를 따르는 파생 토큰 생성"""
        token = CancelToken()
        with self._lock:
            if not self._event.is_set():
                self._children.add(token)
                return token
        token.cancel()
        return token

    def wait(self, timeout: float | None = None) -> bool:
        """취소될 때까지 최대 timeout초 대기

        Returns:
            취소되었으면 True
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self, surface: str = "exporter", operation: str = "cancelled") -> None:
        if self._event.is_set():
            raise CallCancelledError(surface, operation)


class CallScope:
    """원격 호출 하나의 데드라인 스코프

    Attributes:
        token: 사이클 취소 토큰
        timeout: 호출 제한 시간 (초)
        surface: 논리적 API 영역
        operation: API 작업 이름
    """

    def __init__(self, token: CancelToken, timeout: float, surface: str, operation: str):
        self.token = token
        self.timeout = timeout
        self.surface = surface
        self.operation = operation
        self._deadline = time.monotonic() + timeout

    def remaining(self) -> float:
        """데드라인까지 남은 시간 (초, 0 이상)"""
        return max(0.0, self._deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._deadline

    def remaining_seconds(self) -> int:
        """SDK의 정수 timeout 파라미터용 남은 시간 (최소 1초)"""
        return max(1, int(self.remaining()))

    def check(self) -> None:
        """취소 또는 데드라인 초과 여부 확인

        Raises:
            CallCancelledError: 사이클/프로세스가 취소된 경우
            TimeoutError: 데드라인을 초과한 경우
        """
        self.token.raise_if_cancelled(self.surface, self.operation)
        if self.expired:
            raise TimeoutError(f"{self.surface}.{self.operation}: {self.timeout}초 제한 시간 초과")
