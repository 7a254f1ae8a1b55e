"""
core/config.py - 익스포터 설정

정책 상수(Settings), 환경변수 헬퍼, 로깅 설정(LogConfig),
실행 설정(ExporterConfig)과 업데이터 메타데이터 검증을 제공합니다.

환경변수:
    LISTENING_ADDRESS     익스포저 리스너 주소 (기본: 0.0.0.0)
    LISTENING_PORT        익스포저 리스너 포트 (기본: 9000)
    UPDATE_INTERVAL       수집 주기 (초, 기본: 60)
    UPDATE_INTERVAL_<NAME> 업데이터별 수집 주기 (예: UPDATE_INTERVAL_STORAGE=300)
    AZURE_SUBSCRIPTION_ID 대상 구독 ID (필수)
    AUTODISCOVERY_TAGS    자동 발견 태그 필터 (예: monitor=true,env=prod|stg)
    LOG_LEVEL, LOG_FORMAT 로깅 설정
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

from core.exceptions import ConfigError

DIST_NAME = "azure-exporter"

# =============================================================================
# 정책 상수
# =============================================================================


@dataclass(frozen=True)
class Settings:
    """정책 상수 (런타임 변경 불가)"""

    DEFAULT_UPDATE_INTERVAL: int = 60
    API_TIMEOUT: int = 20
    CACHE_TTL_SECONDS: int = 300
    MAX_CONCURRENCY: int = 50

    DEFAULT_LISTEN_ADDRESS: str = "0.0.0.0"
    DEFAULT_LISTEN_PORT: int = 9000

    # API 호출 지연시간 요약 (10분 윈도우)
    SUMMARY_MAX_AGE_SECONDS: int = 600
    SUMMARY_QUANTILES: tuple[float, ...] = (0.5, 0.9, 0.95, 0.99)
    SUMMARY_BUFFER_CAP: int = 50000

    HISTOGRAM_BUCKETS: tuple[float, ...] = (
        0.01,
        0.02,
        0.03,
        0.04,
        0.05,
        0.06,
        0.07,
        0.08,
        0.09,
        0.10,
        0.15,
        0.20,
        0.30,
        0.40,
        0.50,
        1.0,
        2.0,
    )


settings = Settings()

# 업데이터 플러그인 메타데이터 (plugins/<name>/__init__.py의 UPDATER)
UPDATER_REQUIRED_FIELDS = ("name", "description", "surface")
VALID_SURFACES = ("batch", "storage", "subscription")

# =============================================================================
# 경로
# =============================================================================


def get_project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def get_plugins_path() -> Path:
    return get_project_root() / "plugins"


# =============================================================================
# 환경변수 헬퍼
# =============================================================================


def get_env_int(key: str, default: int) -> int:
    """환경변수를 int로 읽기 (변환 실패 시 default)"""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_env_str(key: str, default: str | None = None) -> str | None:
    """환경변수를 문자열로 읽기 (빈 문자열은 default)"""
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_updater_interval(name: str, default: int) -> int:
    """업데이터별 수집 주기 (UPDATE_INTERVAL_<NAME>)"""
    key = "UPDATE_INTERVAL_" + re.sub(r"[^A-Za-z0-9]", "_", name).upper()
    interval = get_env_int(key, default)
    return interval if interval > 0 else default


@lru_cache(maxsize=1)
def get_version() -> str:
    """설치된 배포판 버전 (미설치 소스 트리면 pyproject 기본 버전)"""
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return "0.1.0"


# =============================================================================
# 로깅 설정
# =============================================================================


@dataclass
class LogConfig:
    """로깅 설정"""

    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_env(cls) -> LogConfig:
        config = cls()
        config.level = get_env_str("LOG_LEVEL", config.level).upper()
        config.format = get_env_str("LOG_FORMAT", config.format)
        return config


# =============================================================================
# 실행 설정
# =============================================================================


@dataclass
class ExporterConfig:
    """serve/collect 실행 설정

    Attributes:
        subscription_id: 대상 Azure 구독 ID
        address: 리스너 주소
        port: 리스너 포트
        interval: 기본 수집 주기 (초)
        discovery_tags: 자동 발견 태그 필터 표현식 (빈 값이면 전체 포함)
        verbose: DEBUG 로깅 여부
    """

    subscription_id: str = ""
    address: str = settings.DEFAULT_LISTEN_ADDRESS
    port: int = settings.DEFAULT_LISTEN_PORT
    interval: int = settings.DEFAULT_UPDATE_INTERVAL
    discovery_tags: str = ""
    verbose: bool = False

    def validate(self) -> None:
        """설정 검증

        Raises:
            ConfigError: 잘못된 설정값
        """
        if not self.subscription_id or not self.subscription_id.strip():
            raise ConfigError("AZURE_SUBSCRIPTION_ID", "구독 ID가 필요합니다")
        if not 0 < self.port < 65536:
            raise ConfigError("LISTENING_PORT", f"포트 범위 오류: {self.port}")
        if self.interval <= 0:
            raise ConfigError("UPDATE_INTERVAL", f"수집 주기는 양수여야 합니다: {self.interval}")
        if not self.address:
            raise ConfigError("LISTENING_ADDRESS", "리스너 주소가 비어있음")

    @property
    def listen_address(self) -> str:
        return f"{self.address}:{self.port}"


def validate_updater_metadata(updater: dict[str, Any]) -> list[str]:
    """업데이터 메타데이터 검증

    Args:
        updater: plugins/<name>/__init__.py의 UPDATER 딕셔너리

    Returns:
        오류 메시지 목록 (비어있으면 유효)
    """
    errors: list[str] = []

    for key in UPDATER_REQUIRED_FIELDS:
        if key not in updater:
            errors.append(f"필수 필드 누락: {key}")
        elif not updater[key]:
            errors.append(f"필수 필드 비어있음: {key}")

    surface = updater.get("surface")
    if surface and surface not in VALID_SURFACES:
        errors.append(f"유효하지 않은 surface: {surface} (허용: {', '.join(VALID_SURFACES)})")

    interval = updater.get("interval")
    if interval is not None and (not isinstance(interval, int) or isinstance(interval, bool) or interval <= 0):
        errors.append(f"interval은 양의 정수여야 함: {interval!r}")

    enabled = updater.get("enabled")
    if enabled is not None and not isinstance(enabled, bool):
        errors.append(f"enabled는 bool이어야 함: {enabled!r}")

    return errors
