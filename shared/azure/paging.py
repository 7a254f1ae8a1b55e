"""
shared/azure/paging.py - 페이지 단위 계측 목록 조회

페이지 하나를 가져오는 요청이 원격 호출 하나입니다. 따라서 페이지마다
instrumented_call로 감싸 각자의 데드라인과 호출/실패 카운터를 적용합니다.
여러 페이지에 걸친 전체 순회에는 데드라인이 없습니다.

지원하는 페이저:
    - azure-core ItemPaged: by_page() 페이지 이터레이터 (continuation_token)
    - msrest Paged (azure-batch): advance_page() / next_link
    - 그 외 iterable: 단일 페이지로 취급

Example:
    def open_pager(scope: CallScope):
        return client.pool.list_by_batch_account(rg, name, timeout=scope.remaining())

    pools = collect_pages(cycle, "batch", "pool.list_by_batch_account", open_pager, BatchPool.from_sdk)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any, TypeVar

from core.metrics.context import CycleContext
from core.metrics.instrument import instrumented_call
from core.parallel.cancel import CallScope

T = TypeVar("T")

_UNKNOWN = object()


class _AdvancePages:
    """msrest Paged를 페이지 이터레이터로 감싸기"""

    def __init__(self, pager: Any):
        self._pager = pager

    @property
    def continuation_token(self) -> Any:
        return self._pager.next_link

    def __iter__(self) -> _AdvancePages:
        return self

    def __next__(self) -> list[Any]:
        return self._pager.advance_page()


class _SinglePage:
    """페이지 구분이 없는 iterable (한 번의 응답)"""

    continuation_token = None

    def __init__(self, items: Iterable[Any]):
        self._items: Iterable[Any] | None = items

    def __iter__(self) -> _SinglePage:
        return self

    def __next__(self) -> Iterable[Any]:
        if self._items is None:
            raise StopIteration
        items, self._items = self._items, None
        return items


def page_iterator(pager: Any) -> Iterator[Iterable[Any]]:
    """SDK 페이저를 페이지 이터레이터로 변환"""
    by_page = getattr(pager, "by_page", None)
    if by_page is not None:
        return iter(by_page())
    if hasattr(pager, "advance_page"):
        return _AdvancePages(pager)
    return _SinglePage(pager)


def _exhausted(pages: Any) -> bool:
    """추가 요청 없이 마지막 페이지였음을 알 수 있으면 True"""
    token = getattr(pages, "continuation_token", _UNKNOWN)
    return token is None


def iter_pages(
    cycle: CycleContext,
    surface: str,
    operation: str,
    open_pager: Callable[[CallScope], Any],
) -> Iterator[list[Any]]:
    """페이지마다 계측된 호출로 가져와 순서대로 반환

    Args:
        cycle: 사이클 컨텍스트
        surface: 논리적 API 영역
        operation: API 작업 이름 (모든 페이지 공통)
        open_pager: 첫 페이지 호출의 스코프를 받아 SDK 페이저를 생성하는 함수

    Raises:
        CallCancelledError: 취소 (다음 페이지 요청 전에 확인)
        TransientRemoteError / APICallError: 페이지 요청 실패
    """
    state: dict[str, Any] = {"pages": None}

    def fetch(scope: CallScope) -> list[Any] | None:
        if state["pages"] is None:
            state["pages"] = page_iterator(open_pager(scope))
        page = next(state["pages"], None)
        if page is None:
            return None
        items = list(page)
        scope.check()
        return items

    while True:
        items = instrumented_call(cycle, fetch, surface, operation)
        if items is None:
            return
        yield items
        if _exhausted(state["pages"]):
            return


def collect_pages(
    cycle: CycleContext,
    surface: str,
    operation: str,
    open_pager: Callable[[CallScope], Any],
    convert: Callable[[Any], T],
) -> list[T]:
    """모든 페이지의 항목을 변환해 수집"""
    return [convert(item) for page in iter_pages(cycle, surface, operation, open_pager) for item in page]
