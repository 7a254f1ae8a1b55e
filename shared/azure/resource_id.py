"""
shared/azure/resource_id.py - Azure 리소스 ID 파서

계층형 리소스 경로 문자열을 구조화된 식별자로 분해합니다.

형식:
    /subscriptions/{id}/resourceGroups/{name}/providers/{namespace}/{type}/{name}

경로는 subscriptions/{id}로 시작해야 하고, resourceGroups/{name}이 바로 뒤에,
providers가 (있다면) 그 바로 뒤에 와야 합니다.

키워드(subscriptions, resourceGroups, providers)는 대소문자를 구분하지 않습니다.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.exceptions import MalformedResourceIDError


@dataclass(frozen=True)
class ResourceIdentifier:
    """파싱된 Azure 리소스 식별자

    리소스 그룹에서 끝나는 경로는 provider/resource_type/name이 빈 문자열입니다.
    중첩 리소스(예: .../batchAccounts/a/pools/p)의 resource_type은
    "batchAccounts/pools", name은 마지막 이름("p")입니다.
    """

    subscription_id: str
    resource_group: str
    provider: str = ""
    resource_type: str = ""
    name: str = ""


def parse_resource_id(path: str) -> ResourceIdentifier:
    """리소스 ID 파싱

    Args:
        path: 슬래시로 구분된 리소스 경로

    Returns:
        ResourceIdentifier

    Raises:
        MalformedResourceIDError: subscriptions/{id}/resourceGroups/{name} 구조가 없는 경우
    """
    if not path:
        raise MalformedResourceIDError(str(path), "빈 경로")

    parts = path.strip("/").split("/")
    if len(parts) < 4 or parts[0].lower() != "subscriptions" or parts[2].lower() != "resourcegroups":
        raise MalformedResourceIDError(path)

    subscription_id, resource_group = parts[1], parts[3]
    if not subscription_id or not resource_group:
        raise MalformedResourceIDError(path, "빈 구독 ID 또는 리소스 그룹 이름")

    provider = ""
    resource_type = ""
    name = ""
    rest = parts[4:]
    if rest:
        if rest[0].lower() != "providers":
            raise MalformedResourceIDError(path, f"resourceGroups/{{name}} 다음 세그먼트가 providers가 아님: '{rest[0]}'")
        tail = rest[1:]
        if tail:
            provider = tail[0]
            segments = tail[1:]
            types = segments[0::2]
            names = segments[1::2]
            resource_type = "/".join(t for t in types if t)
            if names:
                name = names[-1]

    return ResourceIdentifier(
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        resource_type=resource_type,
        name=name,
    )
