"""
core/parallel/group.py - 동시 실행 수 제한 태스크 그룹

한 사이클의 fan-out 단계에서 사용하는 태스크 그룹입니다.
동시에 실행되는 태스크 수를 MAX_CONCURRENCY(50)로 제한하고,
모든 태스크가 끝날 때까지 join합니다.

- add(): 슬롯이 빌 때까지 호출자를 블로킹한 뒤 워커 스레드에서 태스크 실행
- 그룹의 태스크 안에서 add()하면 블로킹하지 않음: 빈 슬롯이 있으면 워커에 제출,
  없으면 호출한 태스크의 스레드에서 바로 실행 (상한 유지, 교착 없음)
- 태스크 예외는 로깅 후 격리 (형제 태스크에 영향 없음)
- wait(): 사이클당 한 번만 호출 가능, 태스크가 추가한 하위 태스크까지 join

Example:
    with BoundedTaskGroup(cycle.token, cycle_id=cycle.cycle_id) as group:
        for account in accounts:
            group.add(collect_pools, cycle, builder, group, account)
    # with 블록 종료 시 wait()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from core.config import settings
from core.exceptions import CallCancelledError

from .cancel import CancelToken
from .decorators import get_error_code
from .types import GroupStats

logger = logging.getLogger(__name__)


class BoundedTaskGroup:
    """동시 실행 수 제한 태스크 그룹

    Attributes:
        token: 태스크가 공유하는 취소 토큰 (사이클 토큰)
        capacity: 최대 동시 실행 태스크 수
        stats: 실행 통계
    """

    def __init__(
        self,
        parent_token: CancelToken,
        max_concurrency: int | None = None,
        cycle_id: str = "-",
    ):
        self.token = parent_token
        self.capacity = max_concurrency or settings.MAX_CONCURRENCY
        if self.capacity <= 0:
            raise ValueError(f"max_concurrency는 양수여야 합니다: {self.capacity}")
        self.cycle_id = cycle_id
        self.stats = GroupStats()

        self._slots = threading.BoundedSemaphore(self.capacity)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._running = 0
        self._pending = 0
        self._waited = False
        self._local = threading.local()
        self._executor = ThreadPoolExecutor(
            max_workers=self.capacity,
            thread_name_prefix=f"taskgroup-{cycle_id}",
        )

    @property
    def peak(self) -> int:
        return self.stats.peak

    @property
    def running(self) -> int:
        with self._lock:
            return self._running

    @property
    def in_task(self) -> bool:
        """현재 스레드가 이 그룹의 태스크를 실행 중인지 여부"""
        return getattr(self._local, "active", False)

    def add(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """태스크 추가

        그룹 밖에서는 슬롯이 빌 때까지 블로킹합니다. 그룹의 태스크 안에서는
        블로킹하지 않고, 빈 슬롯이 없으면 현재 스레드에서 바로 실행합니다.
        이미 취소된 경우에도 태스크는 실행되며, 태스크가 자신의 원격 호출 지점에서
        취소를 확인합니다.

        Raises:
            RuntimeError: 그룹 밖에서 wait() 이후 호출된 경우
        """
        nested = self.in_task
        with self._lock:
            if self._waited and not nested:
                raise RuntimeError("wait() 이후에는 태스크를 추가할 수 없습니다")
            self.stats.added += 1
            self._pending += 1

        if nested:
            if not self._slots.acquire(blocking=False):
                try:
                    self._execute(fn, args, kwargs)
                finally:
                    self._finish_pending()
                return
        else:
            self._slots.acquire()

        try:
            self._executor.submit(self._run, fn, args, kwargs)
        except BaseException:
            self._done()
            self._finish_pending()
            raise

    def _run(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        with self._lock:
            self._running += 1
            if self._running > self.stats.peak:
                self.stats.peak = self._running

        self._local.active = True
        try:
            self._execute(fn, args, kwargs)
        finally:
            self._local.active = False
            with self._lock:
                self._running -= 1
            self._done()
            self._finish_pending()

    def _execute(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        name = getattr(fn, "__name__", repr(fn))
        try:
            fn(*args, **kwargs)
        except CallCancelledError as e:
            logger.debug(f"[{self.cycle_id}] 태스크 취소됨 ({name}): {e}")
            with self._lock:
                self.stats.cancelled += 1
        except Exception as e:
            logger.error(f"[{self.cycle_id}] 태스크 실패 ({name}): {get_error_code(e)} - {e}")
            with self._lock:
                self.stats.failed += 1
                self.stats.errors.append(f"{name}: {e}")
        else:
            with self._lock:
                self.stats.succeeded += 1

    def _done(self) -> None:
        """슬롯 반환 (워커에 제출된 태스크당 정확히 한 번)"""
        self._slots.release()

    def _finish_pending(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    def wait(self) -> GroupStats:
        """추가된 모든 태스크(태스크가 추가한 하위 태스크 포함)가 끝날 때까지 대기

        Raises:
            RuntimeError: 두 번째 호출, 또는 그룹의 태스크 안에서 호출
        """
        if self.in_task:
            raise RuntimeError("그룹의 태스크 안에서는 wait()를 호출할 수 없습니다")
        with self._idle:
            if self._waited:
                raise RuntimeError("wait()는 한 번만 호출할 수 있습니다")
            self._waited = True
            while self._pending:
                self._idle.wait()

        self._executor.shutdown(wait=True)
        logger.debug(f"[{self.cycle_id}] 태스크 그룹 종료: {self.stats.summary()}")
        return self.stats

    def __enter__(self) -> BoundedTaskGroup:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        with self._lock:
            waited = self._waited
        if not waited:
            self.wait()
