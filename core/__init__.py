# core/__init__.py
"""
core - Azure 메트릭 익스포터 인프라

수집 파이프라인의 도메인 독립적인 기반을 포함하는 최상위 패키지입니다.
취소/병렬 처리, TTL 캐시, 메트릭 스냅샷, 업데이트 오케스트레이션을 통합합니다.

아키텍처:
    core/
    ├── parallel/       # 태스크 그룹, 취소 토큰, 에러 분류
    ├── tools/          # TTL 캐시, 업데이터 플러그인 발견
    ├── metrics/        # 레지스트리, 스냅샷, 계측 호출, 업데이터/스케줄러
    ├── config.py       # 중앙 설정 관리
    └── exceptions.py   # 통합 예외 계층

Usage:
    # 설정 사용
    from core.config import settings
    timeout = settings.API_TIMEOUT  # 20

    # 예외 처리
    from core.exceptions import RemoteCallError, is_throttling
    try:
        pools = list_pools(cycle, clients, account)
    except RemoteCallError as e:
        if is_throttling(e):
            logger.warning("API 스로틀링")

    # 플러그인 발견
    from core.tools.discovery import discover_updaters
    updaters = discover_updaters()
"""

from core import config, exceptions, parallel, tools

__all__: list[str] = [
    # 서브패키지
    "parallel",
    "tools",
    # 모듈
    "config",
    "exceptions",
]
