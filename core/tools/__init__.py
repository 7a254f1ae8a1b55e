# core/tools - 캐시 및 업데이터 플러그인 관리
"""
TTL 캐시와 업데이터 플러그인 발견

Note:
    Lazy Import 패턴 사용 - CLI 시작 시간 최적화
"""

__all__ = [
    # Cache
    "TTLCache",
    "get_cache",
    "reset_cache",
    # Discovery
    "discover_updaters",
    "load_updater",
]

# Lazy import 매핑 테이블
_IMPORT_MAPPING = {
    # cache/ttl.py
    "TTLCache": (".cache.ttl", "TTLCache"),
    "get_cache": (".cache.ttl", "get_cache"),
    "reset_cache": (".cache.ttl", "reset_cache"),
    # discovery.py
    "discover_updaters": (".discovery", "discover_updaters"),
    "load_updater": (".discovery", "load_updater"),
}


def __getattr__(name: str):
    """Lazy import - 실제 사용 시점에만 모듈 로드"""
    if name in _IMPORT_MAPPING:
        import importlib

        module_name, attr_name = _IMPORT_MAPPING[name]
        module = importlib.import_module(module_name, __name__)
        return getattr(module, attr_name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
