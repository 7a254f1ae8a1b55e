"""
shared/azure/types.py - Azure 엔티티 레코드

Azure SDK 객체를 수집 경로에서 사용하는 불변 레코드로 변환합니다.
SDK 버전별 속성 차이(enum/str, None 값)는 여기서 흡수합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .resource_id import parse_resource_id

# =============================================================================
# 선언된 상태 집합
# =============================================================================

ALLOCATION_STATES: tuple[str, ...] = ("steady", "resizing", "stopping")

COMPUTE_NODE_STATES: tuple[str, ...] = (
    "idle",
    "rebooting",
    "reimaging",
    "running",
    "unusable",
    "creating",
    "starting",
    "waitingforstarttask",
    "starttaskfailed",
    "unknown",
    "leavingpool",
    "offline",
    "preempted",
)

JOB_STATES: tuple[str, ...] = (
    "active",
    "disabling",
    "disabled",
    "enabling",
    "terminating",
    "completed",
    "deleting",
)


def enum_value(value: Any, default: str = "") -> str:
    """SDK enum 또는 문자열을 소문자 문자열로 변환"""
    if value is None:
        return default
    value = getattr(value, "value", value)
    return str(value).lower()


def _int(value: Any) -> int:
    return int(value) if value is not None else 0


def _pairs(items: Any) -> tuple[tuple[str, str], ...]:
    """MetadataItem(name, value) 목록 → (name, value) 튜플"""
    if not items:
        return ()
    return tuple((str(item.name), str(item.value)) for item in items)


# =============================================================================
# 레코드
# =============================================================================


@dataclass(frozen=True)
class Subscription:
    subscription_id: str
    display_name: str

    @classmethod
    def from_sdk(cls, sub: Any, subscription_id: str) -> Subscription:
        return cls(
            subscription_id=getattr(sub, "subscription_id", None) or subscription_id,
            display_name=getattr(sub, "display_name", None) or subscription_id,
        )


@dataclass(frozen=True)
class BatchAccount:
    """Batch 계정 (batch_account.list() 항목)"""

    id: str
    name: str
    resource_group: str
    endpoint: str
    tags: dict[str, str] = field(default_factory=dict)
    pool_quota: int = 0
    dedicated_core_quota: int = 0
    low_priority_core_quota: int = 0

    @classmethod
    def from_sdk(cls, account: Any) -> BatchAccount:
        """SDK 객체 변환

        Raises:
            MalformedResourceIDError: 계정 ID 형식 오류
        """
        rid = parse_resource_id(account.id)
        return cls(
            id=account.id,
            name=account.name,
            resource_group=rid.resource_group,
            endpoint=account.account_endpoint or "",
            tags=dict(account.tags or {}),
            pool_quota=_int(account.pool_quota),
            dedicated_core_quota=_int(account.dedicated_core_quota),
            low_priority_core_quota=_int(account.low_priority_core_quota),
        )


@dataclass(frozen=True)
class BatchPool:
    name: str
    allocation_state: str
    current_dedicated_nodes: int = 0
    current_low_priority_nodes: int = 0
    vm_size: str = ""
    metadata: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_sdk(cls, pool: Any) -> BatchPool:
        return cls(
            name=pool.name,
            allocation_state=enum_value(pool.allocation_state, "unknown"),
            current_dedicated_nodes=_int(pool.current_dedicated_nodes),
            current_low_priority_nodes=_int(pool.current_low_priority_nodes),
            vm_size=(pool.vm_size or "").lower(),
            metadata=_pairs(pool.metadata),
        )


@dataclass(frozen=True)
class ComputeNode:
    id: str
    state: str

    @classmethod
    def from_sdk(cls, node: Any) -> ComputeNode:
        return cls(id=node.id, state=enum_value(node.state, "unknown"))


@dataclass(frozen=True)
class BatchJob:
    id: str
    display_name: str
    state: str
    pool_id: str = ""
    metadata: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_sdk(cls, job: Any) -> BatchJob:
        pool_info = getattr(job, "pool_info", None)
        return cls(
            id=job.id,
            display_name=job.display_name or job.id,
            state=enum_value(job.state, "unknown"),
            pool_id=(getattr(pool_info, "pool_id", None) or "") if pool_info else "",
            metadata=_pairs(job.metadata),
        )


@dataclass(frozen=True)
class TaskCounts:
    active: int = 0
    running: int = 0
    completed: int = 0
    succeeded: int = 0
    failed: int = 0

    @classmethod
    def from_sdk(cls, result: Any) -> TaskCounts:
        # azure-batch 버전에 따라 TaskCountsResult(task_counts=...) 또는 TaskCounts 반환
        counts = getattr(result, "task_counts", None) or result
        return cls(
            active=_int(counts.active),
            running=_int(counts.running),
            completed=_int(counts.completed),
            succeeded=_int(counts.succeeded),
            failed=_int(counts.failed),
        )


@dataclass(frozen=True)
class StorageAccount:
    id: str
    name: str
    resource_group: str
    tags: dict[str, str] = field(default_factory=dict)
    kind: str = ""
    sku: str = ""

    @classmethod
    def from_sdk(cls, account: Any) -> StorageAccount:
        """SDK 객체 변환

        Raises:
            MalformedResourceIDError: 계정 ID 형식 오류
        """
        rid = parse_resource_id(account.id)
        sku = getattr(account, "sku", None)
        return cls(
            id=account.id,
            name=account.name,
            resource_group=rid.resource_group,
            tags=dict(account.tags or {}),
            kind=enum_value(account.kind),
            sku=enum_value(getattr(sku, "name", None)),
        )


@dataclass(frozen=True)
class BlobContainer:
    name: str

    @classmethod
    def from_sdk(cls, container: Any) -> BlobContainer:
        return cls(name=container.name)


@dataclass(frozen=True)
class ContainerUsage:
    """컨테이너 하나의 blob 집계 (스냅샷은 blob_count/blob_bytes에서 제외)"""

    blob_count: int = 0
    blob_bytes: int = 0
    snapshot_count: int = 0
