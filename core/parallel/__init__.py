"""
core/parallel - 병렬 처리 모듈

한 수집 사이클의 fan-out을 동시 실행 수 제한 하에 안전하게 처리합니다.

주요 구성 요소:
- BoundedTaskGroup: 동시 실행 수 제한 태스크 그룹
- CancelToken / CallScope: 협조적 취소와 호출 단위 데드라인
- categorize_error / is_transient / is_cancellation: Azure 에러 분류

Example:
    from core.parallel import BoundedTaskGroup, CancelToken

    root = CancelToken()
    cycle_token = root.child()

    with BoundedTaskGroup(cycle_token, cycle_id="batch-000001") as group:
        for account in accounts:
            group.add(collect_account, account)

    print(f"최대 동시 실행: {group.peak}")
"""

from .cancel import CallScope, CancelToken
from .decorators import categorize_error, get_error_code, is_cancellation, is_transient
from .group import BoundedTaskGroup
from .types import TRANSIENT_CATEGORIES, ErrorCategory, GroupStats

__all__: list[str] = [
    # Task group
    "BoundedTaskGroup",
    "GroupStats",
    # Cancellation
    "CancelToken",
    "CallScope",
    # Error classification
    "ErrorCategory",
    "TRANSIENT_CATEGORIES",
    "categorize_error",
    "get_error_code",
    "is_cancellation",
    "is_transient",
]
