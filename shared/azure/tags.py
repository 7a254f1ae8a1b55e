"""
shared/azure/tags.py - 태그 기반 자동 발견 필터

AUTODISCOVERY_TAGS 표현식으로 수집 대상 리소스를 결정합니다.

표현식:
    "monitor=true,env=prod|stg,team"
    - 쉼표로 구분된 규칙은 모두 만족해야 함 (AND)
    - key=v1|v2: 태그 값이 v1 또는 v2 (대소문자 무시)
    - key: 태그 키만 존재하면 됨
    - 빈 표현식: 모든 리소스 포함

필터를 통과하지 못한 리소스는 해당 사이클에서 완전히 제외됩니다 (0이 아니라 series 없음).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from core.exceptions import ConfigError


@dataclass(frozen=True)
class TagRule:
    """태그 규칙

    Attributes:
        key: 태그 키
        allowed_values: 허용된 값 목록 (None이면 키 존재만 확인)
        case_sensitive: 값 비교 시 대소문자 구분
    """

    key: str
    allowed_values: tuple[str, ...] | None = None
    case_sensitive: bool = False

    def matches_key(self, tag_key: str) -> bool:
        """태그 키가 이 규칙과 일치하는지 확인 (키는 항상 대소문자 무시)"""
        return tag_key.lower() == self.key.lower()

    def matches_value(self, value: str | None) -> bool:
        if self.allowed_values is None:
            return True
        if value is None:
            return False
        if self.case_sensitive:
            return value in self.allowed_values
        return value.lower() in {v.lower() for v in self.allowed_values}

    def matches(self, tags: Mapping[str, str | None]) -> bool:
        for tag_key, tag_value in tags.items():
            if self.matches_key(tag_key):
                return self.matches_value(tag_value)
        return False


@dataclass(frozen=True)
class TagFilter:
    """자동 발견 태그 필터 (규칙 AND)"""

    rules: tuple[TagRule, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.rules

    def must_discover(self, tags: Mapping[str, str | None] | None) -> bool:
        """리소스를 수집 대상에 포함할지 결정"""
        if not self.rules:
            return True
        tags = tags or {}
        return all(rule.matches(tags) for rule in self.rules)

    def __str__(self) -> str:
        parts = []
        for rule in self.rules:
            if rule.allowed_values is None:
                parts.append(rule.key)
            else:
                parts.append(f"{rule.key}={'|'.join(rule.allowed_values)}")
        return ",".join(parts)


def parse_tag_filters(expression: str | None) -> TagFilter:
    """AUTODISCOVERY_TAGS 표현식 파싱

    Raises:
        ConfigError: 키가 비어있거나 값 목록이 비어있는 규칙
    """
    if not expression or not expression.strip():
        return TagFilter()

    rules: list[TagRule] = []
    for raw in expression.split(","):
        raw = raw.strip()
        if not raw:
            continue
        if "=" in raw:
            key, _, values = raw.partition("=")
            key = key.strip()
            allowed = tuple(v.strip() for v in values.split("|") if v.strip())
            if not allowed:
                raise ConfigError("AUTODISCOVERY_TAGS", f"값 목록이 비어있음: '{raw}'")
        else:
            key, allowed = raw, None
        if not key:
            raise ConfigError("AUTODISCOVERY_TAGS", f"태그 키가 비어있음: '{raw}'")
        rules.append(TagRule(key=key, allowed_values=allowed))

    return TagFilter(rules=tuple(rules))
