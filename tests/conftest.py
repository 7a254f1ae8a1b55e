"""
tests/conftest.py - pytest 공통 픽스처

Azure SDK 응답 모킹과 테스트 헬퍼를 제공합니다.

Usage:
    def test_something(fake_clients, cycle):
        # fake_clients: SDK 클라이언트 메서드가 MagicMock인 AzureClients 대체
        # cycle: 새 레지스트리와 취소 토큰을 가진 CycleContext
        pass
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.metrics.context import CycleContext  # noqa: E402
from core.metrics.registry import MetricsRegistry  # noqa: E402
from core.parallel.cancel import CancelToken  # noqa: E402
from core.tools.cache.ttl import reset_cache  # noqa: E402

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"


# =============================================================================
# 환경 설정
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_cache():
    """테스트마다 전역 TTL 캐시 초기화"""
    reset_cache()
    yield
    reset_cache()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """익스포터 환경 변수 제거"""
    for key in (
        "LISTENING_ADDRESS",
        "LISTENING_PORT",
        "UPDATE_INTERVAL",
        "UPDATE_INTERVAL_BATCH",
        "UPDATE_INTERVAL_STORAGE",
        "AZURE_SUBSCRIPTION_ID",
        "AUTODISCOVERY_TAGS",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(key, raising=False)


# =============================================================================
# 레지스트리 / 사이클
# =============================================================================


@pytest.fixture
def registry():
    """새 MetricsRegistry (전용 CollectorRegistry)"""
    return MetricsRegistry()


@pytest.fixture
def root_token():
    return CancelToken()


@pytest.fixture
def cycle(registry, root_token):
    """테스트용 CycleContext"""
    return CycleContext(
        cycle_id="test-000001",
        updater="test",
        token=root_token.child(),
        registry=registry,
    )


# =============================================================================
# Azure SDK 가짜 객체
# =============================================================================


def account_id(resource_group: str, provider_type: str, name: str, subscription: str = SUBSCRIPTION_ID) -> str:
    return f"/subscriptions/{subscription}/resourceGroups/{resource_group}/providers/{provider_type}/{name}"


def make_subscription(display_name: str = "S", subscription_id: str = SUBSCRIPTION_ID):
    return SimpleNamespace(subscription_id=subscription_id, display_name=display_name)


def make_batch_account(
    name: str,
    resource_group: str = "rg",
    tags: dict | None = None,
    pool_quota: int = 100,
    dedicated_core_quota: int = 500,
    low_priority_core_quota: int = 100,
    account_id_override: str | None = None,
):
    return SimpleNamespace(
        id=account_id_override or account_id(resource_group, "Microsoft.Batch/batchAccounts", name),
        name=name,
        account_endpoint=f"{name.lower()}.westeurope.batch.azure.com",
        tags=tags,
        pool_quota=pool_quota,
        dedicated_core_quota=dedicated_core_quota,
        low_priority_core_quota=low_priority_core_quota,
    )


def make_pool(
    name: str,
    allocation_state: str = "steady",
    dedicated: int = 0,
    low_priority: int = 0,
    vm_size: str = "STANDARD_D2S_V3",
    metadata: list | None = None,
):
    return SimpleNamespace(
        name=name,
        allocation_state=allocation_state,
        current_dedicated_nodes=dedicated,
        current_low_priority_nodes=low_priority,
        vm_size=vm_size,
        metadata=metadata,
    )


def make_node(node_id: str, state: str = "idle"):
    return SimpleNamespace(id=node_id, state=state)


def make_job(job_id: str, state: str = "active", pool_id: str = "", display_name: str | None = None, metadata=None):
    return SimpleNamespace(
        id=job_id,
        display_name=display_name,
        state=state,
        pool_info=SimpleNamespace(pool_id=pool_id),
        metadata=metadata,
    )


def make_task_counts(active=0, running=0, completed=0, succeeded=0, failed=0):
    return SimpleNamespace(
        task_counts=SimpleNamespace(
            active=active,
            running=running,
            completed=completed,
            succeeded=succeeded,
            failed=failed,
        )
    )


def make_storage_account(name: str, resource_group: str = "rg", tags: dict | None = None, kind="StorageV2", sku="Standard_LRS"):
    return SimpleNamespace(
        id=account_id(resource_group, "Microsoft.Storage/storageAccounts", name),
        name=name,
        tags=tags,
        kind=kind,
        sku=SimpleNamespace(name=sku),
    )


def make_blob(name: str, size: int = 0, snapshot: str | None = None):
    return SimpleNamespace(name=name, size=size, snapshot=snapshot)


class FakeClients:
    """AzureClients 대체

    모든 SDK 클라이언트가 MagicMock이며, 페이저 메서드는 일반 list를 반환하도록
    테스트에서 return_value를 설정합니다.
    """

    def __init__(self):
        self.subscription_client = MagicMock(name="SubscriptionClient")
        self.batch_mgmt = MagicMock(name="BatchManagementClient")
        self.batch_svc = MagicMock(name="BatchServiceClient")
        self.storage_mgmt = MagicMock(name="StorageManagementClient")
        self.blob = MagicMock(name="BlobServiceClient")
        self.batch_service_calls = []
        self.blob_service_calls = []

        self.subscription_client.subscriptions.get.return_value = make_subscription()
        self.batch_mgmt.batch_account.list.return_value = []
        self.batch_mgmt.batch_account.get_keys.return_value = SimpleNamespace(primary="batch-key")
        self.batch_mgmt.pool.list_by_batch_account.return_value = []
        self.batch_svc.compute_node.list.return_value = []
        self.batch_svc.job.list.return_value = []
        self.batch_svc.job.get_task_counts.return_value = make_task_counts()
        self.storage_mgmt.storage_accounts.list.return_value = []
        self.storage_mgmt.storage_accounts.list_keys.return_value = SimpleNamespace(
            keys=[SimpleNamespace(value="storage-key")]
        )
        self.storage_mgmt.blob_containers.list.return_value = []

    def subscription(self):
        return self.subscription_client

    def batch_management(self, subscription_id):
        return self.batch_mgmt

    def batch_service(self, account_name, endpoint, key):
        self.batch_service_calls.append((account_name, endpoint, key))
        return self.batch_svc

    def storage_management(self, subscription_id):
        return self.storage_mgmt

    def blob_service(self, account_name, key):
        self.blob_service_calls.append((account_name, key))
        return self.blob


@pytest.fixture
def fake_clients():
    return FakeClients()


class HttpError(Exception):
    """azure.core HttpResponseError 형태의 가짜 예외"""

    def __init__(self, status_code: int, code: str | None = None, message: str = "error"):
        super().__init__(message)
        self.status_code = status_code
        self.error = SimpleNamespace(code=code, message=message) if code else None
