"""
shared/azure/batch.py - Azure Batch 목록 조회

관리 평면(BatchManagementClient)으로 계정/풀/키를, 데이터 평면(BatchServiceClient)으로
노드/잡/태스크 카운트를 조회합니다. 모든 호출은 instrumented_call로 계측되며,
목록 조회는 페이지마다 별도의 호출로 계측됩니다.

캐시 정책:
    - 계정 목록, 계정 키: 5분 캐시
    - 풀, 노드, 잡, 태스크 카운트: 매 사이클 조회 (노드 수/상태가 자주 변함)
"""

from __future__ import annotations

import logging

from core.exceptions import MalformedResourceIDError
from core.metrics.context import CycleContext
from core.metrics.instrument import instrumented_call
from core.parallel.cancel import CallScope
from core.tools.cache.ttl import get_cache

from .clients import AzureClients
from .paging import collect_pages
from .types import BatchAccount, BatchJob, BatchPool, ComputeNode, TaskCounts

logger = logging.getLogger(__name__)

SURFACE = "batch"

CACHE_KEY_ACCOUNTS = "sub-{subscription}-batchaccounts"
CACHE_KEY_ACCOUNT_KEY = "sub-{subscription}-rg-{rg}-batchaccount-{account}-key"


def list_batch_accounts(cycle: CycleContext, clients: AzureClients, subscription_id: str) -> tuple[BatchAccount, ...]:
    """구독의 Batch 계정 목록 (5분 캐시)

    리소스 ID 형식이 잘못된 계정은 error 로그 후 제외됩니다.
    """

    def fetch() -> tuple[BatchAccount, ...]:
        def open_pager(scope: CallScope):
            return clients.batch_management(subscription_id).batch_account.list(timeout=scope.remaining())

        raw = collect_pages(cycle, SURFACE, "batch_account.list", open_pager, lambda a: a)
        accounts = []
        for item in raw:
            try:
                accounts.append(BatchAccount.from_sdk(item))
            except MalformedResourceIDError as e:
                logger.error(f"[{cycle.cycle_id}] Batch 계정 스킵: {e}")
        return tuple(accounts)

    return get_cache().get_or_fetch(
        CACHE_KEY_ACCOUNTS.format(subscription=subscription_id),
        tuple,
        fetch,
    )


def get_batch_account_key(
    cycle: CycleContext, clients: AzureClients, subscription_id: str, account: BatchAccount
) -> str:
    """Batch 계정 primary 키 (5분 캐시)"""

    def fetch() -> str:
        def call(scope: CallScope) -> str:
            client = clients.batch_management(subscription_id)
            keys = client.batch_account.get_keys(
                resource_group_name=account.resource_group,
                account_name=account.name,
                timeout=scope.remaining(),
            )
            return keys.primary

        return instrumented_call(cycle, call, SURFACE, "batch_account.get_keys")

    return get_cache().get_or_fetch(
        CACHE_KEY_ACCOUNT_KEY.format(subscription=subscription_id, rg=account.resource_group, account=account.name),
        str,
        fetch,
    )


def list_batch_account_pools(
    cycle: CycleContext, clients: AzureClients, subscription_id: str, account: BatchAccount
) -> list[BatchPool]:
    """계정의 풀 목록"""

    def open_pager(scope: CallScope):
        return clients.batch_management(subscription_id).pool.list_by_batch_account(
            resource_group_name=account.resource_group,
            account_name=account.name,
            timeout=scope.remaining(),
        )

    return collect_pages(cycle, SURFACE, "pool.list_by_batch_account", open_pager, BatchPool.from_sdk)


def batch_service_client(cycle: CycleContext, clients: AzureClients, subscription_id: str, account: BatchAccount):
    """계정 키로 인증한 BatchServiceClient (키는 5분 캐시, 교체되면 클라이언트도 재생성)"""
    key = get_batch_account_key(cycle, clients, subscription_id, account)
    return clients.batch_service(account.name, account.endpoint, key)


def list_batch_compute_nodes(
    cycle: CycleContext,
    clients: AzureClients,
    subscription_id: str,
    account: BatchAccount,
    pool: BatchPool,
) -> list[ComputeNode]:
    """풀의 컴퓨트 노드 목록"""
    from azure.batch.models import ComputeNodeListOptions

    client = batch_service_client(cycle, clients, subscription_id, account)

    def open_pager(scope: CallScope):
        options = ComputeNodeListOptions(select="id,state", timeout=scope.remaining_seconds())
        return client.compute_node.list(pool.name, compute_node_list_options=options)

    return collect_pages(cycle, SURFACE, "compute_node.list", open_pager, ComputeNode.from_sdk)


def list_batch_account_jobs(
    cycle: CycleContext, clients: AzureClients, subscription_id: str, account: BatchAccount
) -> list[BatchJob]:
    """계정의 잡 목록"""
    from azure.batch.models import JobListOptions

    client = batch_service_client(cycle, clients, subscription_id, account)

    def open_pager(scope: CallScope):
        return client.job.list(job_list_options=JobListOptions(timeout=scope.remaining_seconds()))

    return collect_pages(cycle, SURFACE, "job.list", open_pager, BatchJob.from_sdk)


def get_batch_job_task_counts(
    cycle: CycleContext,
    clients: AzureClients,
    subscription_id: str,
    account: BatchAccount,
    job: BatchJob,
) -> TaskCounts:
    """잡의 태스크 카운트"""
    from azure.batch.models import JobGetTaskCountsOptions

    client = batch_service_client(cycle, clients, subscription_id, account)

    def call(scope: CallScope) -> TaskCounts:
        options = JobGetTaskCountsOptions(timeout=scope.remaining_seconds())
        result = client.job.get_task_counts(job.id, job_get_task_counts_options=options)
        return TaskCounts.from_sdk(result)

    return instrumented_call(cycle, call, SURFACE, "job.get_task_counts")
