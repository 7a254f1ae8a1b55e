"""
core/metrics/instrument.py - 계측된 원격 호출

원격 호출 하나를 데드라인 스코프로 감싸고, 지연시간과 성공/실패를 기록합니다.

- 취소된 사이클에서는 호출을 시작하지 않음 (CallCancelledError)
- 취소되지 않은 모든 완료: azure_api_calls_total 증가 + 지연시간 요약/히스토그램 기록
- 실패: azure_api_calls_failed_total 추가 증가
  단, 호출자 자신의 취소로 인한 실패는 어떤 카운터도 움직이지 않고 CallCancelledError
- 실패는 TransientRemoteError 또는 APICallError로 래핑

Example:
    def fetch(scope: CallScope):
        return client.batch_account.get_keys(resource_group_name=rg, account_name=name, timeout=scope.remaining())

    keys = instrumented_call(cycle, fetch, "batch", "batch_account.get_keys")

페이지 단위 목록 조회는 shared/azure/paging.py가 페이지마다 이 함수를 호출합니다.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from core.config import settings
from core.exceptions import APICallError, CallCancelledError, TransientRemoteError
from core.parallel.cancel import CallScope
from core.parallel.decorators import categorize_error, get_error_code, is_transient

from .context import CycleContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


def instrumented_call(
    cycle: CycleContext,
    call: Callable[[CallScope], T],
    surface: str,
    operation: str,
    timeout: float | None = None,
) -> T:
    """계측된 원격 호출 실행

    Args:
        cycle: 사이클 컨텍스트 (취소 토큰, 레지스트리, cycle_id)
        call: 스코프를 받아 원격 호출을 수행하는 함수
        surface: 논리적 API 영역 (batch, storage, subscription)
        operation: API 작업 이름
        timeout: 호출 제한 시간 (초, 기본 settings.API_TIMEOUT)

    Returns:
        call의 반환값

    Raises:
        CallCancelledError: 사이클/프로세스 취소
        TransientRemoteError: timeout, throttling, 서버 오류, 네트워크 오류
        APICallError: 그 외 원격 오류
    """
    timeout = settings.API_TIMEOUT if timeout is None else timeout
    scope = CallScope(cycle.token, timeout, surface, operation)
    scope.token.raise_if_cancelled(surface, operation)

    logger.debug(f"[{cycle.cycle_id}] API 호출: {surface}.{operation} (timeout={timeout}s)")
    start = time.perf_counter()
    try:
        result = call(scope)
    except CallCancelledError:
        logger.debug(f"[{cycle.cycle_id}] API 호출 취소: {surface}.{operation}")
        raise
    except Exception as e:
        duration = time.perf_counter() - start
        if cycle.token.cancelled:
            logger.debug(f"[{cycle.cycle_id}] API 호출 취소: {surface}.{operation} ({e.__class__.__name__})")
            raise CallCancelledError(surface, operation) from e

        cycle.registry.observe_call(surface, duration, failed=True)
        category = categorize_error(e)
        error_cls = TransientRemoteError if is_transient(e) else APICallError
        logger.debug(
            f"[{cycle.cycle_id}] API 호출 실패: {surface}.{operation} "
            f"({category.value}, {get_error_code(e)}, {duration:.3f}s)"
        )
        raise error_cls(
            surface=surface,
            operation=operation,
            error_code=get_error_code(e),
            error_message=str(e),
            cause=e,
        ) from e

    duration = time.perf_counter() - start
    cycle.registry.observe_call(surface, duration)
    logger.debug(f"[{cycle.cycle_id}] API 호출 완료: {surface}.{operation} ({duration:.3f}s)")
    return result
