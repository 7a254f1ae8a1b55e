"""
core/tools/cache - 프로세스 전역 TTL 캐시

Azure API 응답을 짧은 기간(기본 5분) 메모이제이션합니다.

사용법:
    from core.tools.cache import get_cache

    cache = get_cache()
    value, found = cache.get("subscription:sub-1", Subscription)
"""

__all__ = [
    "CacheEntry",
    "CacheStats",
    "TTLCache",
    "DEFAULT_TTL",
    "get_cache",
    "reset_cache",
]


def __getattr__(name: str):
    """Lazy import - 실제 사용 시점에만 모듈 로드"""
    if name in __all__:
        from . import ttl

        return getattr(ttl, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
