"""캐시 TTL(Time To Live) 관리.

프로세스 전역 인메모리 TTL 캐시입니다. Azure API 응답(구독, 계정 목록, 풀 목록 등)을
짧은 기간 메모이제이션하여 동일 데이터에 대한 중복 원격 호출을 줄입니다.

- 조회 시 기대 타입(``expected_type``)을 지정하며, 저장된 값의 타입이 다르면
  미스로 처리하고 warning 로그를 남깁니다.
- 만료된 엔트리는 조회 시점에 지연 삭제되며, ``purge_expired()``로 일괄 정리할 수 있습니다.
- 락은 단일 맵 연산 동안만 잡으며, ``fetch`` 호출 중에는 잡지 않습니다.

Attributes:
    DEFAULT_TTL: 기본 TTL (5분).

Example:
    ::

        from core.tools.cache.ttl import get_cache

        cache = get_cache()
        accounts, found = cache.get("batch:accounts:sub-1", list)
        if not found:
            accounts = list_accounts()
            cache.set("batch:accounts:sub-1", accounts)

        # 또는 한 줄로:
        accounts = cache.get_or_fetch("batch:accounts:sub-1", list, list_accounts)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 기본 TTL (초)
DEFAULT_TTL: float = float(settings.CACHE_TTL_SECONDS)


@dataclass
class CacheEntry:
    """캐시 엔트리"""

    key: str
    value: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        return (time.monotonic() if now is None else now) >= self.expires_at


@dataclass
class CacheStats:
    """캐시 통계 (스레드 안전)

    Attributes:
        hits: 캐시 히트 횟수
        misses: 캐시 미스 횟수 (타입 불일치 포함)
        sets: 캐시 저장 횟수
        mismatches: 타입 불일치 횟수
        evictions: 만료로 삭제된 엔트리 수
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    hits: int = 0
    misses: int = 0
    sets: int = 0
    mismatches: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """캐시 히트율 (0.0 ~ 1.0)"""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def add(self, name: str, count: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + count)

    def summary(self) -> str:
        return (
            f"hits={self.hits}, misses={self.misses}, hit_rate={self.hit_rate:.1%}, "
            f"mismatches={self.mismatches}, evictions={self.evictions}"
        )


class TTLCache:
    """스레드 안전 TTL 캐시

    Args:
        default_ttl: set()에서 ttl 미지정 시 사용할 TTL (초)
        clock: 단조 시계 함수 (테스트용 주입)
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for entry in self._entries.values() if not entry.is_expired(now))

    def get(self, key: str, expected_type: type[T] | tuple[type, ...]) -> tuple[T | None, bool]:
        """캐시 조회

        Args:
            key: 캐시 키
            expected_type: 호출자가 기대하는 값의 타입

        Returns:
            (값, found). 없음/만료/타입 불일치면 (None, False)
        """
        now = self._clock()
        evicted = False
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(now):
                del self._entries[key]
                evicted = True
                entry = None
        if evicted:
            self.stats.add("evictions")

        if entry is None:
            self.stats.add("misses")
            return None, False

        if not isinstance(entry.value, expected_type):
            logger.warning(
                f"캐시 타입 불일치 [{key}]: 기대 {_type_name(expected_type)}, "
                f"실제 {type(entry.value).__name__} - 미스로 처리"
            )
            self.stats.add("mismatches")
            self.stats.add("misses")
            return None, False

        self.stats.add("hits")
        return entry.value, True

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """캐시 저장 (기존 엔트리 덮어쓰기)

        Args:
            key: 캐시 키
            value: 저장할 값
            ttl: 유효기간 (초, None이면 default_ttl)
        """
        ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, created_at=now, expires_at=now + ttl)
        self.stats.add("sets")

    def get_or_fetch(
        self,
        key: str,
        expected_type: type[T] | tuple[type, ...],
        fetch: Callable[[], T],
        ttl: float | None = None,
    ) -> T:
        """캐시 우선 조회, 미스면 fetch 실행 후 저장

        fetch가 예외를 던지면 캐시는 변경되지 않고 예외가 전파됩니다.
        """
        value, found = self.get(key, expected_type)
        if found:
            return value  # type: ignore[return-value]

        value = fetch()
        self.set(key, value, ttl)
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """만료된 엔트리 일괄 삭제

        Returns:
            삭제된 엔트리 수
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            self.stats.add("evictions", len(expired))
            logger.debug(f"만료 캐시 {len(expired)}개 정리")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def _type_name(expected_type: type | tuple[type, ...]) -> str:
    if isinstance(expected_type, tuple):
        return " | ".join(t.__name__ for t in expected_type)
    return expected_type.__name__


# =============================================================================
# 전역 캐시 접근 함수
# =============================================================================

_global_cache: TTLCache | None = None
_global_cache_lock = threading.Lock()


def get_cache() -> TTLCache:
    """프로세스 전역 TTL 캐시 반환 (최초 호출 시 생성)"""
    global _global_cache
    with _global_cache_lock:
        if _global_cache is None:
            _global_cache = TTLCache()
        return _global_cache


def reset_cache() -> None:
    """전역 캐시 초기화 (테스트용)"""
    global _global_cache
    with _global_cache_lock:
        _global_cache = None
