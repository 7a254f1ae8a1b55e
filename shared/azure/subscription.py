"""
shared/azure/subscription.py - 구독 조회

구독 표시 이름은 모든 리소스 메트릭의 subscription 라벨로 사용됩니다.
"""

from __future__ import annotations

from core.metrics.context import CycleContext
from core.metrics.instrument import instrumented_call
from core.parallel.cancel import CallScope
from core.tools.cache.ttl import get_cache

from .clients import AzureClients
from .types import Subscription

SURFACE = "subscription"

CACHE_KEY_SUBSCRIPTION = "sub-{subscription}"


def get_subscription(cycle: CycleContext, clients: AzureClients, subscription_id: str) -> Subscription:
    """구독 조회 (5분 캐시)

    Raises:
        RemoteCallError: 조회 실패
    """

    def fetch() -> Subscription:
        def call(scope: CallScope) -> Subscription:
            sub = clients.subscription().subscriptions.get(subscription_id, timeout=scope.remaining())
            return Subscription.from_sdk(sub, subscription_id)

        return instrumented_call(cycle, call, SURFACE, "subscriptions.get")

    return get_cache().get_or_fetch(
        CACHE_KEY_SUBSCRIPTION.format(subscription=subscription_id),
        Subscription,
        fetch,
    )
