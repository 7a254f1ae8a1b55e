"""
core/exceptions.py - 통합 예외 계층 구조

익스포터 전체에서 사용되는 예외 클래스들을 정의합니다.
수집 경로의 예외는 태스크/브랜치 단위로 격리되며, 프로세스를 종료시키지 않습니다.

예외 계층 구조:
    ExporterError (베이스)
    ├── DiscoveryError (업데이터 플러그인 발견)
    │   ├── PluginLoadError
    │   └── MetadataValidationError
    ├── RemoteCallError (Azure API 호출)
    │   ├── TransientRemoteError   (timeout, throttling, 5xx, network)
    │   ├── APICallError           (그 외 원격 오류)
    │   └── CallCancelledError     (호출자 자신의 취소 - 실패로 집계하지 않음)
    ├── MalformedResourceIDError (리소스 ID 형식 오류)
    ├── ListingError (최상위 목록 조회 실패 - 사이클 중단)
    └── ConfigError (설정 관련)

Usage:
    from core.exceptions import TransientRemoteError, CallCancelledError

    try:
        pools = list_batch_account_pools(cycle, clients, account)
    except CallCancelledError:
        return
    except RemoteCallError as e:
        logger.error(f"[{cycle.cycle_id}] 풀 목록 조회 실패: {e}")
"""

from typing import Any, Dict, List, Optional

# =============================================================================
# 베이스 예외
# =============================================================================


class ExporterError(Exception):
    """익스포터 기본 예외 클래스

    모든 커스텀 예외의 베이스 클래스입니다.

    Attributes:
        message: 에러 메시지
        cause: 원인 예외 (체이닝용)
        details: 추가 상세 정보
    """

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details or {}

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


# =============================================================================
# 플러그인 발견 관련 예외
# =============================================================================


class DiscoveryError(ExporterError):
    """업데이터 플러그인 발견 관련 예외"""

    def __init__(
        self,
        message: str,
        plugin_path: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.plugin_path = plugin_path
        if plugin_path:
            self.details["plugin_path"] = plugin_path


class PluginLoadError(DiscoveryError):
    """플러그인 로드 실패 예외"""

    def __init__(
        self,
        plugin_name: str,
        reason: str,
        cause: Optional[Exception] = None,
    ):
        message = f"플러그인 로드 실패 [{plugin_name}]: {reason}"
        super().__init__(message, plugin_path=plugin_name, cause=cause)
        self.plugin_name = plugin_name
        self.reason = reason


class MetadataValidationError(DiscoveryError):
    """플러그인 메타데이터 검증 실패 예외"""

    def __init__(
        self,
        plugin_name: str,
        errors: List[str],
        cause: Optional[Exception] = None,
    ):
        message = f"메타데이터 검증 실패 [{plugin_name}]: {', '.join(errors)}"
        super().__init__(message, plugin_path=plugin_name, cause=cause)
        self.plugin_name = plugin_name
        self.validation_errors = errors
        self.details["validation_errors"] = errors


# =============================================================================
# 원격 호출 관련 예외
# =============================================================================


class RemoteCallError(ExporterError):
    """Azure API 호출 관련 예외 베이스

    Attributes:
        surface: 논리적 API 영역 (batch, storage, subscription)
        operation: API 작업 이름 (예: "batch_account.list")
        error_code: 원격 에러 코드 또는 예외 클래스명
    """

    def __init__(
        self,
        surface: str,
        operation: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        message = f"{surface}.{operation}"
        if error_code:
            message = f"{message} 실패 ({error_code})"
        if error_message:
            message = f"{message}: {error_message}"

        super().__init__(message, cause)
        self.surface = surface
        self.operation = operation
        self.error_code = error_code
        self.error_message = error_message
        self.details.update(
            {
                "surface": surface,
                "operation": operation,
                "error_code": error_code,
            }
        )

    def __str__(self) -> str:
        return self.message


class TransientRemoteError(RemoteCallError):
    """일시적 원격 오류 (timeout, throttling, 서버 오류, 네트워크)

    실패 호출 카운터를 증가시키며, 해당 브랜치는 이번 사이클에 관측값을 남기지 않습니다.
    """


class APICallError(RemoteCallError):
    """일시적이지 않은 원격 오류 (권한 없음, 리소스 없음 등)"""


class CallCancelledError(RemoteCallError):
    """호출자 자신의 취소로 중단된 호출

    셧다운 또는 사이클 취소로 발생하며, 실패 호출 카운터에서 제외됩니다.
    """

    def __init__(self, surface: str = "exporter", operation: str = "cancelled"):
        super().__init__(surface, operation, error_code="Cancelled")


# =============================================================================
# 수집 경로 예외
# =============================================================================


class MalformedResourceIDError(ExporterError):
    """Azure 리소스 ID 형식 오류

    subscriptions/{id}/resourceGroups/{name} 구조가 없는 경우 발생합니다.
    해당 엔티티는 스킵되고 error 레벨로 로깅됩니다.
    """

    def __init__(self, resource_id: str, reason: str = "subscriptions/{id}/resourceGroups/{name} 구조 없음"):
        super().__init__(f"잘못된 리소스 ID '{resource_id}': {reason}")
        self.resource_id = resource_id
        self.reason = reason
        self.details["resource_id"] = resource_id


class ListingError(ExporterError):
    """최상위 리소스 목록 조회 실패

    업데이터의 Listing 단계에서만 발생하며, 해당 사이클 전체를 중단시킵니다.
    이전에 게시된 스냅샷은 그대로 노출됩니다.
    """

    def __init__(self, updater: str, message: str, cause: Optional[Exception] = None):
        super().__init__(f"목록 조회 실패 [{updater}]: {message}", cause)
        self.updater = updater
        self.details["updater"] = updater


# =============================================================================
# 설정 관련 예외
# =============================================================================


class ConfigError(ExporterError):
    """설정 관련 예외"""

    def __init__(
        self,
        key: str,
        message: str,
        cause: Optional[Exception] = None,
    ):
        full_message = f"설정 오류 [{key}]: {message}"
        super().__init__(full_message, cause)
        self.config_key = key
        self.details["config_key"] = key


# =============================================================================
# 예외 유틸리티 함수
# =============================================================================

THROTTLING_CODES = {
    "TooManyRequests",
    "ThrottlingException",
    "ServerBusy",
    "SubscriptionRequestsThrottled",
}

ACCESS_DENIED_CODES = {
    "AuthorizationFailed",
    "AuthenticationFailed",
    "Forbidden",
    "InvalidAuthenticationToken",
    "AuthorizationPermissionMismatch",
}

NOT_FOUND_CODES = {
    "ResourceNotFound",
    "ResourceGroupNotFound",
    "NotFound",
    "PoolNotFound",
    "JobNotFound",
    "ContainerNotFound",
}


def _status_and_code(error: Exception) -> tuple[Optional[int], str]:
    """예외에서 HTTP 상태 코드와 에러 코드 추출"""
    if isinstance(error, RemoteCallError):
        cause = error.cause
        if cause is not None and cause is not error:
            status, code = _status_and_code(cause)
            return status, error.error_code or code
        return None, error.error_code or ""

    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    inner = getattr(error, "error", None)
    code = getattr(inner, "code", None) or ""
    return status, code


def is_access_denied(error: Exception) -> bool:
    """액세스 거부 오류인지 확인

    Args:
        error: 확인할 예외

    Returns:
        액세스 거부 오류이면 True
    """
    status, code = _status_and_code(error)
    return status in (401, 403) or code in ACCESS_DENIED_CODES


def is_throttling(error: Exception) -> bool:
    """스로틀링 오류인지 확인

    Args:
        error: 확인할 예외

    Returns:
        스로틀링 오류이면 True
    """
    status, code = _status_and_code(error)
    return status == 429 or code in THROTTLING_CODES


def is_not_found(error: Exception) -> bool:
    """리소스를 찾을 수 없는 오류인지 확인

    Args:
        error: 확인할 예외

    Returns:
        리소스 없음 오류이면 True
    """
    status, code = _status_and_code(error)
    return status == 404 or code in NOT_FOUND_CODES
