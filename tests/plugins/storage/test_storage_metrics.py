"""
tests/plugins/storage/test_storage_metrics.py - Azure Storage 업데이터 테스트
"""

import threading
from types import SimpleNamespace

import pytest
from conftest import HttpError, make_blob, make_storage_account, make_subscription

from core.config import ExporterConfig
from core.metrics.updater import CycleResult, UpdateScheduler
from plugins.storage.metrics import STORAGE_FAMILIES, StorageUpdater, create_updater
from shared.azure.tags import parse_tag_filters

SUB = "00000000-0000-0000-0000-000000000001"
SA1 = {"subscription": "Prod", "resource_group": "rg", "account": "sa1"}


@pytest.fixture
def scenario(fake_clients):
    fake_clients.subscription_client.subscriptions.get.return_value = make_subscription("Prod")
    fake_clients.storage_mgmt.storage_accounts.list.return_value = [
        make_storage_account("sa1", tags={"monitor": "true"}),
        make_storage_account("sa2", tags={"monitor": "false"}),
    ]
    fake_clients.storage_mgmt.blob_containers.list.return_value = [
        SimpleNamespace(name="logs"),
        SimpleNamespace(name="data"),
    ]
    blobs = {
        "logs": [make_blob("a", 10), make_blob("b", 20), make_blob("b", 20, snapshot="2024-01-01")],
        "data": [make_blob("x", 1000)],
    }

    def container_client(name):
        client = SimpleNamespace(list_blobs=lambda **kwargs: list(blobs[name]))
        return client

    fake_clients.blob.get_container_client.side_effect = container_client
    return fake_clients


@pytest.fixture
def scheduler(registry):
    return UpdateScheduler(registry)


class TestStorageUpdater:
    """StorageUpdater 사이클"""

    def test_families(self):
        assert [f.name for f in STORAGE_FAMILIES] == [
            "azure_storage_account_info",
            "azure_storage_container_blob_count",
            "azure_storage_container_blob_size_bytes",
            "azure_storage_container_snapshot_count",
        ]

    def test_cycle(self, registry, scenario, scheduler):
        updater = StorageUpdater(registry, scenario, SUB, tag_filter=parse_tag_filters("monitor=true"))

        assert scheduler.run_updater(updater) is CycleResult.SUCCESS

        logs = {**SA1, "container": "logs"}
        data = {**SA1, "container": "data"}
        assert registry.sample("azure_storage_container_blob_count", logs) == 2.0
        assert registry.sample("azure_storage_container_blob_size_bytes", logs) == 30.0
        assert registry.sample("azure_storage_container_snapshot_count", logs) == 1.0
        assert registry.sample("azure_storage_container_blob_size_bytes", data) == 1000.0
        assert registry.sample(
            "azure_storage_account_info", {**SA1, "kind": "storagev2", "sku": "standard_lrs"}
        ) == 1.0
        assert 'account="sa2"' not in registry.render().decode()

    def test_container_failure_contained(self, registry, scenario, scheduler):
        def container_client(name):
            if name == "logs":
                raise HttpError(503)
            return SimpleNamespace(list_blobs=lambda **kwargs: [make_blob("x", 5)])

        scenario.blob.get_container_client.side_effect = container_client
        updater = StorageUpdater(registry, scenario, SUB, tag_filter=parse_tag_filters("monitor=true"))

        assert scheduler.run_updater(updater) is CycleResult.SUCCESS

        assert registry.sample("azure_storage_container_blob_count", {**SA1, "container": "logs"}) is None
        assert registry.sample("azure_storage_container_blob_count", {**SA1, "container": "data"}) == 1.0

    def test_container_listing_failure_keeps_account_info(self, registry, scenario, scheduler):
        scenario.storage_mgmt.blob_containers.list.side_effect = HttpError(403, "AuthorizationFailed")
        updater = StorageUpdater(registry, scenario, SUB, tag_filter=parse_tag_filters("monitor=true"))

        assert scheduler.run_updater(updater) is CycleResult.SUCCESS
        snap = registry.publisher.current("storage")
        assert len(snap.series("azure_storage_account_info")) == 1
        assert snap.series("azure_storage_container_blob_count") == {}

    def test_subscription_failure_fails_cycle(self, registry, scenario, scheduler):
        scenario.subscription_client.subscriptions.get.side_effect = HttpError(401, "InvalidAuthenticationToken")
        updater = StorageUpdater(registry, scenario, SUB)

        assert scheduler.run_updater(updater) is CycleResult.FAILED
        assert registry.publisher.current("storage") is None

    def test_container_listings_run_concurrently(self, registry, scenario, scheduler):
        """계정 8개의 컨테이너 목록 조회가 서로를 기다리지 않고 동시에 진행됨"""
        scenario.storage_mgmt.storage_accounts.list.return_value = [make_storage_account(f"sa{i}") for i in range(8)]
        barrier = threading.Barrier(8, timeout=5)

        def list_containers(resource_group, account_name, **kwargs):
            barrier.wait()
            return [SimpleNamespace(name="logs")]

        scenario.storage_mgmt.blob_containers.list.side_effect = list_containers
        updater = StorageUpdater(registry, scenario, SUB, max_concurrency=16)

        assert scheduler.run_updater(updater) is CycleResult.SUCCESS
        assert scenario.storage_mgmt.blob_containers.list.call_count == 8
        for i in range(8):
            labels = {"subscription": "Prod", "resource_group": "rg", "account": f"sa{i}", "container": "logs"}
            assert registry.sample("azure_storage_container_blob_count", labels) == 2.0


class TestCreateUpdater:
    """create_updater 팩토리"""

    def test_factory(self, registry, fake_clients):
        updater = create_updater(registry, ExporterConfig(subscription_id=SUB), fake_clients)
        assert isinstance(updater, StorageUpdater)
        assert updater.tag_filter.empty is True
