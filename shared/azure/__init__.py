"""
shared/azure - Azure SDK 어댑터

- resource_id: 리소스 ID 파서
- types: SDK 객체 → 불변 엔티티 레코드
- clients: SDK 클라이언트 캐시 (AzureClients)
- subscription / batch / storage: 캐시 + 계측 적용 목록 조회
- tags: 자동 발견 태그 필터

SDK 모듈은 각 어댑터 함수 안에서 지연 import됩니다.
"""

from .clients import AzureClients
from .resource_id import ResourceIdentifier, parse_resource_id
from .tags import TagFilter, TagRule, parse_tag_filters

__all__ = [
    "AzureClients",
    "ResourceIdentifier",
    "parse_resource_id",
    "TagFilter",
    "TagRule",
    "parse_tag_filters",
]
