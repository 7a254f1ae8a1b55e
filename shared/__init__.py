"""공유 유틸리티 - plugins(업데이터)에서 공통 사용.

이 패키지는 다음 카테고리의 공유 유틸리티를 제공합니다:

- azure: Azure SDK 어댑터 (리소스 ID 파싱, 캐시/계측 적용 목록 조회, 태그 필터)

의존성 구조:
    core (인프라)
       ↑
    shared (공유 유틸리티)
       ↑
    plugins (업데이터)
"""

from . import azure

__all__ = ["azure"]
