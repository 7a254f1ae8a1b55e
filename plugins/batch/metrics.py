"""
plugins/batch/metrics.py - Azure Batch 메트릭 업데이터

사이클 흐름:
    LISTING   구독 조회 + Batch 계정 목록 (실패 시 사이클 중단)
    FAN_OUT   태그 필터 통과 계정마다
              - 계정 쿼터 기록
              - 풀 브랜치 태스크: 풀 목록 → 풀마다 하위 태스크 (풀 메트릭 + 노드 상태 집계)
              - 잡 브랜치 태스크: 잡 목록 → 잡마다 하위 태스크 (잡 상태/메타데이터 + 태스크 카운트)

풀/잡 목록 조회는 그룹 워커에서 실행되며 계정들은 동시에 처리됩니다.

풀/잡 태스크는 원격 조회를 모두 마친 뒤에만 관측값을 기록하므로,
실패한 브랜치는 이번 스냅샷에 아무 series도 남기지 않습니다.
"""

from __future__ import annotations

import logging
from typing import Any

from core.config import ExporterConfig
from core.exceptions import CallCancelledError, ListingError, RemoteCallError
from core.metrics.context import CycleContext
from core.metrics.registry import MetricsRegistry
from core.metrics.snapshot import FamilySpec, MetricKind, SnapshotBuilder
from core.metrics.updater import MetricsUpdater
from core.parallel.group import BoundedTaskGroup
from shared.azure.batch import (
    get_batch_job_task_counts,
    list_batch_account_jobs,
    list_batch_account_pools,
    list_batch_accounts,
    list_batch_compute_nodes,
)
from shared.azure.clients import AzureClients
from shared.azure.subscription import get_subscription
from shared.azure.tags import TagFilter, parse_tag_filters
from shared.azure.types import (
    ALLOCATION_STATES,
    COMPUTE_NODE_STATES,
    JOB_STATES,
    BatchAccount,
    BatchJob,
    BatchPool,
    Subscription,
)

logger = logging.getLogger(__name__)

# =============================================================================
# 메트릭 패밀리
# =============================================================================

ACCOUNT_LABELS = ("subscription", "resource_group", "account")
POOL_LABELS = ACCOUNT_LABELS + ("pool",)
JOB_LABELS = ACCOUNT_LABELS + ("job_id",)

POOL_QUOTA = "azure_batch_pool_quota"
DEDICATED_CORE_QUOTA = "azure_batch_dedicated_core_quota"
LOW_PRIORITY_CORE_QUOTA = "azure_batch_low_priority_core_quota"
POOL_DEDICATED_NODES = "azure_batch_pool_dedicated_nodes"
POOL_LOW_PRIORITY_NODES = "azure_batch_pool_low_priority_nodes"
POOL_NODE_STATE = "azure_batch_pool_node_state"
POOL_ALLOCATION_STATE = "azure_batch_pool_allocation_state"
POOL_METADATA = "azure_batch_pool_metadata"
JOB_TASKS_ACTIVE = "azure_batch_job_tasks_active"
JOB_TASKS_RUNNING = "azure_batch_job_tasks_running"
JOB_TASKS_COMPLETED = "azure_batch_job_tasks_completed_total"
JOB_TASKS_SUCCEEDED = "azure_batch_job_tasks_succeeded_total"
JOB_TASKS_FAILED = "azure_batch_job_tasks_failed_total"
JOB_INFO = "azure_batch_job_info"
JOB_STATE = "azure_batch_job_state"
JOB_METADATA = "azure_batch_job_metadata"

BATCH_FAMILIES: tuple[FamilySpec, ...] = (
    FamilySpec(POOL_QUOTA, "Quota of pools in the batch account", labels=ACCOUNT_LABELS),
    FamilySpec(DEDICATED_CORE_QUOTA, "Quota of dedicated cores in the batch account", labels=ACCOUNT_LABELS),
    FamilySpec(LOW_PRIORITY_CORE_QUOTA, "Quota of low priority cores in the batch account", labels=ACCOUNT_LABELS),
    FamilySpec(POOL_DEDICATED_NODES, "Number of dedicated nodes for batch pool", labels=POOL_LABELS),
    FamilySpec(POOL_LOW_PRIORITY_NODES, "Number of low priority nodes for batch pool", labels=POOL_LABELS),
    FamilySpec(
        POOL_NODE_STATE,
        "Number of nodes in each state for batch pool",
        labels=POOL_LABELS + ("state",),
        state_label="state",
        states=COMPUTE_NODE_STATES,
    ),
    FamilySpec(
        POOL_ALLOCATION_STATE,
        "Allocation state of batch pool",
        labels=POOL_LABELS + ("state",),
        state_label="state",
        states=ALLOCATION_STATES,
    ),
    FamilySpec(POOL_METADATA, "Metadata of batch pool", labels=POOL_LABELS + ("metadata", "value")),
    FamilySpec(JOB_TASKS_ACTIVE, "Number of active tasks for batch job", labels=JOB_LABELS),
    FamilySpec(JOB_TASKS_RUNNING, "Number of running tasks for batch job", labels=JOB_LABELS),
    FamilySpec(
        JOB_TASKS_COMPLETED, "Total number of completed tasks for batch job", MetricKind.COUNTER, JOB_LABELS
    ),
    FamilySpec(
        JOB_TASKS_SUCCEEDED, "Total number of succeeded tasks for batch job", MetricKind.COUNTER, JOB_LABELS
    ),
    FamilySpec(JOB_TASKS_FAILED, "Total number of failed tasks for batch job", MetricKind.COUNTER, JOB_LABELS),
    FamilySpec(JOB_INFO, "Info about batch job", labels=JOB_LABELS + ("job_name", "pool")),
    FamilySpec(
        JOB_STATE,
        "State of batch job",
        labels=JOB_LABELS + ("state",),
        state_label="state",
        states=JOB_STATES,
    ),
    FamilySpec(JOB_METADATA, "Metadata of batch job", labels=JOB_LABELS + ("metadata", "value")),
)


class BatchUpdater(MetricsUpdater):
    """Azure Batch 업데이터"""

    name = "batch"
    families = BATCH_FAMILIES

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

    def list_resources(self, cycle: CycleContext) -> list[tuple[Subscription, BatchAccount]]:
        try:
            subscription = get_subscription(cycle, self.clients, self.subscription_id)
            accounts = list_batch_accounts(cycle, self.clients, self.subscription_id)
        except CallCancelledError:
            raise
        except RemoteCallError as e:
            raise ListingError(self.name, str(e), cause=e) from e

        logger.debug(f"[{cycle.cycle_id}] Batch 계정 {len(accounts)}개 ({subscription.display_name})")
        return [(subscription, account) for account in accounts]

    def include(self, cycle: CycleContext, resource: tuple[Subscription, BatchAccount]) -> bool:
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
        resource: tuple[Subscription, BatchAccount],
    ) -> None:
        subscription, account = resource
        labels = {
            "subscription": subscription.display_name,
            "resource_group": account.resource_group,
            "account": account.name,
        }
        builder.set(POOL_QUOTA, labels, account.pool_quota)
        builder.set(DEDICATED_CORE_QUOTA, labels, account.dedicated_core_quota)
        builder.set(LOW_PRIORITY_CORE_QUOTA, labels, account.low_priority_core_quota)

        group.add(self.collect_pools, cycle, builder, group, labels, account)
        group.add(self.collect_jobs, cycle, builder, group, labels, account)

    def collect_pools(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        group: BoundedTaskGroup,
        labels: dict[str, Any],
        account: BatchAccount,
    ) -> None:
        """풀 브랜치: 풀 목록 조회 후 풀마다 하위 태스크 추가"""
        try:
            pools = list_batch_account_pools(cycle, self.clients, self.subscription_id, account)
        except CallCancelledError:
            raise
        except RemoteCallError as e:
            logger.error(f"[{cycle.cycle_id}] 계정 '{account.name}' 풀 목록 조회 실패: {e}")
            return
        for pool in pools:
            group.add(self.collect_pool, cycle, builder, labels, account, pool)

    def collect_jobs(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        group: BoundedTaskGroup,
        labels: dict[str, Any],
        account: BatchAccount,
    ) -> None:
        """잡 브랜치: 잡 목록 조회 후 잡마다 하위 태스크 추가"""
        try:
            jobs = list_batch_account_jobs(cycle, self.clients, self.subscription_id, account)
        except CallCancelledError:
            raise
        except RemoteCallError as e:
            logger.error(f"[{cycle.cycle_id}] 계정 '{account.name}' 잡 목록 조회 실패: {e}")
            return
        for job in jobs:
            group.add(self.collect_job, cycle, builder, labels, account, job)

    def collect_pool(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        labels: dict[str, Any],
        account: BatchAccount,
        pool: BatchPool,
    ) -> None:
        """풀 메트릭 + 노드 상태별 수 (노드 조회 실패 시 풀 전체 미기록)"""
        nodes = list_batch_compute_nodes(cycle, self.clients, self.subscription_id, account, pool)

        pool_labels = {**labels, "pool": pool.name}
        builder.set_state(POOL_ALLOCATION_STATE, pool_labels, pool.allocation_state)
        builder.set(POOL_DEDICATED_NODES, pool_labels, pool.current_dedicated_nodes)
        builder.set(POOL_LOW_PRIORITY_NODES, pool_labels, pool.current_low_priority_nodes)
        for name, value in pool.metadata:
            builder.set(POOL_METADATA, {**pool_labels, "metadata": name, "value": value}, 1)

        builder.init_states(POOL_NODE_STATE, pool_labels)
        for node in nodes:
            builder.inc_state(POOL_NODE_STATE, pool_labels, node.state)

        logger.debug(
            f"[{cycle.cycle_id}] 풀 {account.name}/{pool.name}: "
            f"dedicated={pool.current_dedicated_nodes}, low_priority={pool.current_low_priority_nodes}, "
            f"nodes={len(nodes)}"
        )

    def collect_job(
        self,
        cycle: CycleContext,
        builder: SnapshotBuilder,
        labels: dict[str, Any],
        account: BatchAccount,
        job: BatchJob,
    ) -> None:
        """잡 상태/메타데이터 + 태스크 카운트 (카운트 조회 실패 시 잡 전체 미기록)"""
        counts = get_batch_job_task_counts(cycle, self.clients, self.subscription_id, account, job)

        job_labels = {**labels, "job_id": job.id}
        builder.set_state(JOB_STATE, job_labels, job.state)
        for name, value in job.metadata:
            builder.set(JOB_METADATA, {**job_labels, "metadata": name, "value": value}, 1)

        builder.set(JOB_TASKS_ACTIVE, job_labels, counts.active)
        builder.set(JOB_TASKS_RUNNING, job_labels, counts.running)
        builder.set(JOB_TASKS_COMPLETED, job_labels, counts.completed)
        builder.set(JOB_TASKS_SUCCEEDED, job_labels, counts.succeeded)
        builder.set(JOB_TASKS_FAILED, job_labels, counts.failed)
        builder.set(JOB_INFO, {**job_labels, "job_name": job.display_name, "pool": job.pool_id}, 1)

        logger.debug(
            f"[{cycle.cycle_id}] 잡 {account.name}/{job.id}: state={job.state}, active={counts.active}, "
            f"running={counts.running}, completed={counts.completed}, failed={counts.failed}"
        )


def create_updater(registry: MetricsRegistry, config: ExporterConfig, clients: AzureClients) -> BatchUpdater:
    """업데이터 팩토리 (discovery에서 호출)"""
    return BatchUpdater(
        registry,
        clients,
        config.subscription_id,
        tag_filter=parse_tag_filters(config.discovery_tags),
    )
