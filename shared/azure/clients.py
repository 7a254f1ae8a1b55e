"""
shared/azure/clients.py - Azure SDK 클라이언트 캐시

구독/계정 엔드포인트별로 SDK 클라이언트를 한 번만 생성해 재사용합니다.
계정 키로 인증하는 데이터 평면 클라이언트는 키 지문과 함께 캐시되어,
키가 교체되면 다음 조회에서 새 키로 다시 생성됩니다.
모든 생성/조회는 하나의 락 안에서 이루어지며, 원격 호출 중에는 락을 잡지 않습니다.

인증:
    관리 평면 클라이언트는 DefaultAzureCredential(AZURE_TENANT_ID, AZURE_CLIENT_ID,
    AZURE_CLIENT_SECRET, Managed Identity 등)을 사용합니다.
    Batch 데이터 평면과 Blob 클라이언트는 계정 키(shared key)로 인증합니다.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

BLOB_URL_FORMAT = "https://{account}.blob.core.windows.net"


class AzureClients:
    """Azure SDK 클라이언트 모음

    Args:
        credential: 관리 평면 자격 증명 (None이면 첫 사용 시 DefaultAzureCredential 생성)
    """

    def __init__(self, credential: Any = None):
        self._credential = credential
        self._clients: dict[tuple[str, ...], Any] = {}
        self._lock = threading.Lock()

    @property
    def credential(self) -> Any:
        with self._lock:
            if self._credential is None:
                from azure.identity import DefaultAzureCredential

                self._credential = DefaultAzureCredential()
                logger.debug("DefaultAzureCredential 생성")
            return self._credential

    def _get_or_create(self, key: tuple[str, ...], factory: Callable[[], Any]) -> Any:
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = factory()
                self._clients[key] = client
                logger.debug(f"Azure 클라이언트 생성: {'/'.join(key)}")
            return client

    def _get_or_create_keyed(self, key: tuple[str, ...], secret: str, factory: Callable[[], Any]) -> Any:
        """계정 키 지문이 같을 때만 캐시된 클라이언트 재사용"""
        fingerprint = hashlib.sha256(secret.encode("utf-8")).hexdigest()
        with self._lock:
            cached = self._clients.get(key)
            if cached is not None and cached[0] == fingerprint:
                return cached[1]
            client = factory()
            self._clients[key] = (fingerprint, client)
            if cached is None:
                logger.debug(f"Azure 클라이언트 생성: {'/'.join(key)}")
            else:
                logger.info(f"계정 키 변경으로 Azure 클라이언트 재생성: {'/'.join(key)}")
            return client

    def subscription(self) -> Any:
        """SubscriptionClient (구독 조회)"""
        from azure.mgmt.resource import SubscriptionClient

        credential = self.credential
        return self._get_or_create(("subscription",), lambda: SubscriptionClient(credential))

    def batch_management(self, subscription_id: str) -> Any:
        """BatchManagementClient (계정/풀/키 조회)"""
        from azure.mgmt.batch import BatchManagementClient

        credential = self.credential
        return self._get_or_create(
            ("batch-mgmt", subscription_id),
            lambda: BatchManagementClient(credential, subscription_id),
        )

    def batch_service(self, account_name: str, endpoint: str, key: str) -> Any:
        """BatchServiceClient (잡/노드/태스크 카운트 조회, shared key 인증)"""
        from azure.batch import BatchServiceClient
        from azure.batch.batch_auth import SharedKeyCredentials

        return self._get_or_create_keyed(
            ("batch-service", endpoint),
            key,
            lambda: BatchServiceClient(
                SharedKeyCredentials(account_name, key),
                batch_url=f"https://{endpoint}",
            ),
        )

    def storage_management(self, subscription_id: str) -> Any:
        """StorageManagementClient (스토리지 계정/컨테이너/키 조회)"""
        from azure.mgmt.storage import StorageManagementClient

        credential = self.credential
        return self._get_or_create(
            ("storage-mgmt", subscription_id),
            lambda: StorageManagementClient(credential, subscription_id),
        )

    def blob_service(self, account_name: str, key: str) -> Any:
        """BlobServiceClient (blob 목록, shared key 인증)"""
        from azure.storage.blob import BlobServiceClient

        return self._get_or_create_keyed(
            ("blob", account_name),
            key,
            lambda: BlobServiceClient(
                account_url=BLOB_URL_FORMAT.format(account=account_name),
                credential=key,
            ),
        )
