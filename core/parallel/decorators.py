"""
core/parallel/decorators.py - Azure API 에러 분류 유틸리티

Azure SDK 호출에서 발생한 예외를 분류하고, 일시적 장애 여부와
호출자 자신의 취소 여부를 판단합니다.

주요 구성 요소:
- categorize_error: 예외를 ErrorCategory로 분류
- get_error_code: 예외에서 에러 코드 추출
- is_transient: 일시적 장애 (timeout, throttling, 5xx, network) 여부
- is_cancellation: 호출자 자신의 취소 여부
"""

import concurrent.futures
import logging

from azure.core.exceptions import ServiceRequestError, ServiceResponseError
from msrest.exceptions import ClientRequestError

from core.exceptions import (
    CallCancelledError,
    RemoteCallError,
    is_access_denied,
    is_not_found,
    is_throttling,
)

from .types import TRANSIENT_CATEGORIES, ErrorCategory

logger = logging.getLogger(__name__)

# 타임아웃으로 분류하는 Azure 에러 코드
TIMEOUT_ERROR_CODES: set[str] = {
    "OperationTimedOut",
    "RequestTimeout",
    "GatewayTimeout",
    "ServerTimeout",
}

EXPIRED_TOKEN_CODES: set[str] = {
    "ExpiredAuthenticationToken",
    "ExpiredToken",
}

NETWORK_ERRORS = (
    ServiceRequestError,
    ServiceResponseError,
    ClientRequestError,
    ConnectionError,
)


def _status_code(error: Exception) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_cancellation(error: BaseException) -> bool:
    """호출자 자신의 취소(셧다운/사이클 취소)로 인한 예외인지 확인"""
    return isinstance(error, CallCancelledError)


def categorize_error(error: Exception) -> ErrorCategory:
    """예외 객체를 분석하여 ErrorCategory로 분류

    HttpResponseError/BatchErrorException은 상태 코드와 에러 코드로,
    네트워크/타임아웃 에러는 타입으로 분류합니다.

    Args:
        error: 분류할 예외

    Returns:
        에러 카테고리
    """
    if is_cancellation(error):
        return ErrorCategory.CANCELLED

    # 래핑된 예외는 원인 예외로 분류
    if isinstance(error, RemoteCallError) and error.cause is not None:
        return categorize_error(error.cause)

    if is_throttling(error):
        return ErrorCategory.THROTTLING

    code = get_error_code(error)
    if code in EXPIRED_TOKEN_CODES:
        return ErrorCategory.EXPIRED_TOKEN
    if is_access_denied(error):
        return ErrorCategory.ACCESS_DENIED
    if is_not_found(error):
        return ErrorCategory.NOT_FOUND

    status = _status_code(error)
    if code in TIMEOUT_ERROR_CODES or status in (408, 504):
        return ErrorCategory.TIMEOUT
    if status is not None and status >= 500:
        return ErrorCategory.SERVICE_ERROR
    if status is not None and 400 <= status < 500:
        return ErrorCategory.INVALID_REQUEST

    if isinstance(error, (TimeoutError, concurrent.futures.TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, NETWORK_ERRORS):
        return ErrorCategory.NETWORK
    if isinstance(error, OSError):
        return ErrorCategory.NETWORK

    return ErrorCategory.UNKNOWN


def get_error_code(error: Exception) -> str:
    """예외 객체에서 에러 코드 문자열 추출

    RemoteCallError는 보관된 코드를, SDK 예외는 error.code 또는
    HTTP 상태 코드를, 그 외에는 예외 클래스명을 반환합니다.

    Args:
        error: 예외 객체

    Returns:
        에러 코드 문자열
    """
    if isinstance(error, RemoteCallError) and error.error_code:
        return error.error_code

    inner = getattr(error, "error", None)
    code = getattr(inner, "code", None)
    if isinstance(code, str) and code:
        return code

    status = _status_code(error)
    if status is not None:
        return str(status)
    return error.__class__.__name__


def is_transient(error: Exception) -> bool:
    """일시적 장애인지 확인

    Args:
        error: 확인할 예외

    Returns:
        throttling, timeout, 서버 오류, 네트워크 오류이면 True
    """
    return categorize_error(error) in TRANSIENT_CATEGORIES
