"""
shared/azure/storage.py - Azure Storage 목록 조회

스토리지 계정, 컨테이너, 계정 키를 관리 평면으로 조회하고,
컨테이너의 blob을 스냅샷 포함으로 순회하여 집계합니다.

캐시 정책:
    - 계정 목록, 컨테이너 목록, 계정 키: 5분 캐시
    - blob 순회: 매 사이클 수행 (페이지마다 별도 계측 호출, 전체 순회에는 시간 제한 없음)
"""

from __future__ import annotations

import logging

from core.exceptions import MalformedResourceIDError
from core.metrics.context import CycleContext
from core.metrics.instrument import instrumented_call
from core.parallel.cancel import CallScope
from core.tools.cache.ttl import get_cache

from .clients import AzureClients
from .paging import collect_pages, iter_pages
from .types import BlobContainer, ContainerUsage, StorageAccount

logger = logging.getLogger(__name__)

SURFACE = "storage"

CACHE_KEY_ACCOUNTS = "sub-{subscription}-storageaccounts"
CACHE_KEY_CONTAINERS = "sub-{subscription}-rg-{rg}-storageaccount-{account}-containers"
CACHE_KEY_KEYS = "sub-{subscription}-rg-{rg}-storageaccount-{account}-keys"


def list_storage_accounts(
    cycle: CycleContext, clients: AzureClients, subscription_id: str
) -> tuple[StorageAccount, ...]:
    """구독의 스토리지 계정 목록 (5분 캐시)"""

    def fetch() -> tuple[StorageAccount, ...]:
        def open_pager(scope: CallScope):
            return clients.storage_management(subscription_id).storage_accounts.list(timeout=scope.remaining())

        accounts = []
        for item in collect_pages(cycle, SURFACE, "storage_accounts.list", open_pager, lambda a: a):
            try:
                accounts.append(StorageAccount.from_sdk(item))
            except MalformedResourceIDError as e:
                logger.error(f"[{cycle.cycle_id}] 스토리지 계정 스킵: {e}")
        return tuple(accounts)

    return get_cache().get_or_fetch(
        CACHE_KEY_ACCOUNTS.format(subscription=subscription_id),
        tuple,
        fetch,
    )


def list_storage_account_containers(
    cycle: CycleContext, clients: AzureClients, subscription_id: str, account: StorageAccount
) -> tuple[BlobContainer, ...]:
    """계정의 blob 컨테이너 목록 (5분 캐시)"""

    def fetch() -> tuple[BlobContainer, ...]:
        def open_pager(scope: CallScope):
            client = clients.storage_management(subscription_id)
            return client.blob_containers.list(account.resource_group, account.name, timeout=scope.remaining())

        return tuple(collect_pages(cycle, SURFACE, "blob_containers.list", open_pager, BlobContainer.from_sdk))

    return get_cache().get_or_fetch(
        CACHE_KEY_CONTAINERS.format(subscription=subscription_id, rg=account.resource_group, account=account.name),
        tuple,
        fetch,
    )


def get_storage_account_key(
    cycle: CycleContext, clients: AzureClients, subscription_id: str, account: StorageAccount
) -> str:
    """계정의 첫 번째 키 (5분 캐시)"""

    def fetch() -> str:
        def call(scope: CallScope) -> str:
            client = clients.storage_management(subscription_id)
            result = client.storage_accounts.list_keys(account.resource_group, account.name, timeout=scope.remaining())
            if not result.keys:
                raise ValueError(f"스토리지 계정 키 없음: {account.name}")
            return result.keys[0].value

        return instrumented_call(cycle, call, SURFACE, "storage_accounts.list_keys")

    return get_cache().get_or_fetch(
        CACHE_KEY_KEYS.format(subscription=subscription_id, rg=account.resource_group, account=account.name),
        str,
        fetch,
    )


def walk_container(
    cycle: CycleContext,
    clients: AzureClients,
    subscription_id: str,
    account: StorageAccount,
    container: BlobContainer,
) -> ContainerUsage:
    """컨테이너의 blob을 스냅샷 포함으로 순회하여 집계

    스냅샷은 snapshot_count에만 집계되며, blob_count/blob_bytes는 기본 blob만 집계합니다.
    """
    key = get_storage_account_key(cycle, clients, subscription_id, account)
    service = clients.blob_service(account.name, key)

    def open_pager(scope: CallScope):
        container_client = service.get_container_client(container.name)
        return container_client.list_blobs(include=["snapshots"], timeout=scope.remaining_seconds())

    blob_count = blob_bytes = snapshot_count = 0
    for page in iter_pages(cycle, SURFACE, "container.list_blobs", open_pager):
        for blob in page:
            if getattr(blob, "snapshot", None):
                snapshot_count += 1
                continue
            blob_count += 1
            blob_bytes += blob.size or 0
    return ContainerUsage(blob_count=blob_count, blob_bytes=blob_bytes, snapshot_count=snapshot_count)
