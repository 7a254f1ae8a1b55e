"""
tests/core/parallel/test_task_group.py - core/parallel/group.py 테스트
"""

import threading
import time

import pytest

from core.exceptions import CallCancelledError
from core.parallel.cancel import CancelToken
from core.parallel.group import BoundedTaskGroup


class TestBoundedTaskGroup:
    """BoundedTaskGroup 테스트"""

    def test_runs_all_tasks(self):
        results = []
        lock = threading.Lock()

        def task(i):
            with lock:
                results.append(i)

        with BoundedTaskGroup(CancelToken(), max_concurrency=4) as group:
            for i in range(20):
                group.add(task, i)

        assert sorted(results) == list(range(20))
        assert group.stats.added == 20
        assert group.stats.succeeded == 20
        assert group.stats.finished == 20

    def test_default_capacity(self):
        group = BoundedTaskGroup(CancelToken())
        assert group.capacity == 50
        group.wait()

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            BoundedTaskGroup(CancelToken(), max_concurrency=-1)

    def test_peak_never_exceeds_capacity(self):
        """동시 실행 태스크 수가 상한을 넘지 않음"""
        capacity = 3
        release = threading.Event()
        active = 0
        observed = []
        lock = threading.Lock()

        def task():
            nonlocal active
            with lock:
                active += 1
                observed.append(active)
            release.wait(5.0)
            with lock:
                active -= 1

        group = BoundedTaskGroup(CancelToken(), max_concurrency=capacity)
        adder = threading.Thread(target=lambda: [group.add(task) for _ in range(10)])
        adder.start()

        # 상한만큼 실행 중이면 add()가 블로킹되어야 함
        deadline = time.monotonic() + 5.0
        while group.running < capacity and time.monotonic() < deadline:
            time.sleep(0.01)
        time.sleep(0.05)
        assert group.running == capacity
        assert group.stats.added == capacity

        release.set()
        adder.join(5.0)
        stats = group.wait()

        assert max(observed) <= capacity
        assert stats.peak == capacity
        assert stats.succeeded == 10

    def test_barrier_reaches_capacity(self):
        """상한만큼은 실제로 동시에 실행됨"""
        capacity = 4
        barrier = threading.Barrier(capacity, timeout=5.0)

        with BoundedTaskGroup(CancelToken(), max_concurrency=capacity) as group:
            for _ in range(capacity):
                group.add(barrier.wait)

        assert group.stats.succeeded == capacity
        assert group.peak == capacity

    def test_task_exception_is_contained(self):
        ran = []

        def failing():
            raise RuntimeError("boom")

        with BoundedTaskGroup(CancelToken(), max_concurrency=2) as group:
            group.add(failing)
            group.add(ran.append, "sibling")

        assert ran == ["sibling"]
        assert group.stats.failed == 1
        assert group.stats.succeeded == 1
        assert "boom" in group.stats.errors[0]

    def test_cancelled_task_counted_separately(self):
        def cancelled():
            raise CallCancelledError("batch", "pool.list")

        with BoundedTaskGroup(CancelToken(), max_concurrency=2) as group:
            group.add(cancelled)

        assert group.stats.cancelled == 1
        assert group.stats.failed == 0

    def test_wait_twice_raises(self):
        group = BoundedTaskGroup(CancelToken(), max_concurrency=2)
        group.wait()
        with pytest.raises(RuntimeError):
            group.wait()

    def test_add_after_wait_raises(self):
        group = BoundedTaskGroup(CancelToken(), max_concurrency=2)
        group.wait()
        with pytest.raises(RuntimeError):
            group.add(lambda: None)

    def test_slots_released_after_failures(self):
        """실패한 태스크도 슬롯을 반환"""

        def failing():
            raise ValueError("x")

        with BoundedTaskGroup(CancelToken(), max_concurrency=1) as group:
            for _ in range(5):
                group.add(failing)

        assert group.stats.failed == 5
        assert group.running == 0


class TestNestedAdd:
    """태스크 안에서 add()하는 fan-out"""

    def test_nested_add_with_single_slot_runs_inline(self):
        """슬롯이 하나뿐이어도 교착 없이 하위 태스크가 호출 스레드에서 실행됨"""
        threads = {}

        def leaf(i):
            threads[i] = threading.current_thread().name

        def branch(group):
            threads["branch"] = threading.current_thread().name
            for i in range(3):
                group.add(leaf, i)

        group = BoundedTaskGroup(CancelToken(), max_concurrency=1)
        group.add(branch, group)
        finished = threading.Event()
        threading.Thread(target=lambda: (group.wait(), finished.set())).start()

        assert finished.wait(5.0)
        assert [threads[i] for i in range(3)] == [threads["branch"]] * 3
        assert group.stats.added == 4
        assert group.stats.succeeded == 4

    def test_wait_joins_nested_tasks(self):
        """wait()가 브랜치가 추가한 하위 태스크까지 기다림"""
        done = []
        lock = threading.Lock()

        def leaf(i):
            time.sleep(0.02)
            with lock:
                done.append(i)

        def branch(group, start):
            time.sleep(0.02)
            for i in range(start, start + 5):
                group.add(leaf, i)

        with BoundedTaskGroup(CancelToken(), max_concurrency=4) as group:
            for start in (0, 5, 10, 15):
                group.add(branch, group, start)

        assert sorted(done) == list(range(20))
        assert group.stats.finished == 24
        assert group.peak <= 4

    def test_branches_list_concurrently(self):
        """브랜치들이 동시에 실행되어 서로를 기다릴 수 있음"""
        barrier = threading.Barrier(8, timeout=5.0)
        leaves = []

        def branch(group, i):
            barrier.wait()
            group.add(leaves.append, i)

        with BoundedTaskGroup(CancelToken(), max_concurrency=8) as group:
            for i in range(8):
                group.add(branch, group, i)

        assert group.stats.failed == 0
        assert sorted(leaves) == list(range(8))

    def test_wait_inside_task_raises(self):
        errors = []

        def task(group):
            try:
                group.wait()
            except RuntimeError as e:
                errors.append(e)

        with BoundedTaskGroup(CancelToken(), max_concurrency=2) as group:
            group.add(task, group)

        assert len(errors) == 1
        assert group.stats.succeeded == 1
