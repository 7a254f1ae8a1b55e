"""
plugins/storage/metrics.py - Azure Storage 메트릭 업데이터

사이클 흐름:
    LISTING   구독 조회 + 스토리지 계정 목록 (실패 시 사이클 중단)
    FAN_OUT   태그 필터 통과 계정마다
              - 계정 정보 기록
              - 컨테이너 브랜치 태스크: 컨테이너 목록 → 컨테이너마다 하위 태스크 (blob 순회 집계)

컨테이너 목록 조회는 그룹 워커에서 실행되며 계정들은 동시에 처리됩니다.
"""

from __future__ import annotations

import logging
from typing import Any

from core.config import ExporterConfig
from core.exceptions import CallCancelledError, ListingError, RemoteCallError
from core.metrics.context import CycleContext
from core.metrics.registry import MetricsRegistry
from core.metrics.snapshot import FamilySpec, SnapshotBuilder
from core.metrics.updater import MetricsUpdater
from core.parallel.group import BoundedTaskGroup
from shared.azure.clients import AzureClients
from shared.azure.storage import list_storage_account_containers, list_storage_accounts, walk_container
from shared.azure.subscription import get_subscription
from shared.azure.tags import TagFilter, parse_tag_filters
from shared.azure.types import BlobContainer, StorageAccount, Subscription

logger = logging.getLogger(__name__)

ACCOUNT_LABELS = ("subscription", "resource_group", "account")
CONTAINER_LABELS = ACCOUNT_LABELS + ("container",)

ACCOUNT_INFO = "azure_storage_account_info"
CONTAINER_BLOB_COUNT = "azure_storage_container_blob_count"
CONTAINER_BLOB_SIZE = "azure_storage_container_blob_size_bytes"
CONTAINER_SNAPSHOT_COUNT = "azure_storage_container_snapshot_count"

STORAGE_FAMILIES: tuple[FamilySpec, ...] = (
    FamilySpec(ACCOUNT_INFO, "Info about storage account", labels=ACCOUNT_LABELS + ("kind", "sku")),
    FamilySpec(CONTAINER_BLOB_COUNT, "Number of blobs in storage container", labels=CONTAINER_LABELS),
    FamilySpec(CONTAINER_BLOB_SIZE, "Total size of blobs in storage container in bytes", labels=CONTAINER_LABELS),
    FamilySpec(CONTAINER_SNAPSHOT_COUNT, "Number of blob snapshots in storage container", labels=CONTAINER_LABELS),
)


class StorageUpdater(MetricsUpdater):
    """Azure Storage 업데이터"""

    name = "storage"
    families = STORAGE_FAMILIES

    def __init__(
        self,
        registry: MetricsRegistry,
        clients: AzureClients,
        subscription_id: str,
        tag_filter: TagFilter | None = None,
        max_concurrency: int | None = None,
    ):
        super().__init__(registry, max_concurrency)
        self.clients = clients
        self.subscription_id = subscription_id
        self.tag_filter = tag_filter or TagFilter()

    def list_resources(self, cycle: CycleContext) -> list[tuple[Subscription, StorageAccount]]:
        try:
            subscription = get_subscription(cycle, self.clients, self.subscription_id)
            accounts = list_storage_accounts(cycle, self.clients, self.subscription_id)
        except CallCancelledError:
            raise
        except RemoteCallError as e:
            raise ListingError(self.name, str(e), cause=e) from e
        return [(subscription, account) for account in accounts]

    def include(self, cycle: CycleContext, resource: tuple[Subscription, StorageAccount]) -> bool:
        _, account = resource
        if self.tag_filter.must_discover(account.tags):
            return True
        logger.debug(f"[{cycle.cycle_id}] 자동 발견 필터로 계정 스킵: {account.resource_group}/{account.name}")
        return False

    def fan_out(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        group: BoundedTaskGroup,
        resource: tuple[Subscription, StorageAccount],
    ) -> None:
        subscription, account = resource
        labels = {
            "subscription": subscription.display_name,
            "resource_group": account.resource_group,
            "account": account.name,
        }
        builder.set(ACCOUNT_INFO, {**labels, "kind": account.kind, "sku": account.sku}, 1)

        group.add(self.collect_containers, cycle, builder, group, labels, account)

    def collect_containers(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        group: BoundedTaskGroup,
        labels: dict[str, Any],
        account: StorageAccount,
    ) -> None:
        """컨테이너 브랜치: 컨테이너 목록 조회 후 컨테이너마다 하위 태스크 추가"""
        try:
            containers = list_storage_account_containers(cycle, self.clients, self.subscription_id, account)
        except CallCancelledError:
            raise
        except RemoteCallError as e:
            logger.error(f"[{cycle.cycle_id}] 계정 '{account.name}' 컨테이너 목록 조회 실패: {e}")
            return
        for container in containers:
            group.add(self.collect_container, cycle, builder, labels, account, container)

    def collect_container(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        labels: dict[str, Any],
        account: StorageAccount,
        container: BlobContainer,
    ) -> None:
        usage = walk_container(cycle, self.clients, self.subscription_id, account, container)

        container_labels = {**labels, "container": container.name}
        builder.set(CONTAINER_BLOB_COUNT, container_labels, usage.blob_count)
        builder.set(CONTAINER_BLOB_SIZE, container_labels, usage.blob_bytes)
        builder.set(CONTAINER_SNAPSHOT_COUNT, container_labels, usage.snapshot_count)

        logger.debug(
            f"[{cycle.cycle_id}] 컨테이너 {account.name}/{container.name}: "
            f"blobs={usage.blob_count}, bytes={usage.blob_bytes}, snapshots={usage.snapshot_count}"
        )


def create_updater(registry: MetricsRegistry, config: ExporterConfig, clients: AzureClients) -> StorageUpdater:
    """업데이터 팩토리 (discovery에서 호출)"""
    return StorageUpdater(
        registry,
        clients,
        config.subscription_id,
        tag_filter=parse_tag_filters(config.discovery_tags),
    )
