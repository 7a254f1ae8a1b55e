"""
tests/core/metrics/test_snapshot.py - 메트릭 스냅샷 빌더/게시자 테스트
"""

import threading

import pytest
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.parser import text_string_to_metric_families

from core.metrics.snapshot import (
    FamilySpec,
    MetricKind,
    MetricSnapshot,
    SnapshotBuilder,
    SnapshotCollector,
    SnapshotPublisher,
)

POOL_LABELS = ("account", "pool")

NODES = FamilySpec("test_pool_nodes", "Number of nodes", labels=POOL_LABELS)
TASKS = FamilySpec("test_tasks_total", "Tasks", MetricKind.COUNTER, labels=("job",))
ALLOC = FamilySpec(
    "test_pool_allocation_state",
    "Allocation state",
    labels=POOL_LABELS + ("state",),
    state_label="state",
    states=("steady", "resizing", "stopping"),
)
FAMILIES = (NODES, TASKS, ALLOC)


@pytest.fixture
def builder():
    return SnapshotBuilder(FAMILIES)


class TestFamilySpec:
    """FamilySpec 검증"""

    def test_entity_labels(self):
        assert ALLOC.entity_labels == ("account", "pool")
        assert NODES.entity_labels == POOL_LABELS

    def test_duplicate_labels(self):
        with pytest.raises(ValueError):
            FamilySpec("x", "x", labels=("a", "a"))

    def test_state_label_must_be_declared(self):
        with pytest.raises(ValueError):
            FamilySpec("x", "x", labels=("a",), state_label="state", states=("on",))

    def test_state_family_needs_states(self):
        with pytest.raises(ValueError):
            FamilySpec("x", "x", labels=("state",), state_label="state")


class TestSnapshotBuilder:
    """SnapshotBuilder 테스트"""

    def test_set_with_mapping(self, builder):
        builder.set("test_pool_nodes", {"account": "a1", "pool": "p1"}, 3)
        snap = builder.build()
        assert snap.get("test_pool_nodes", {"account": "a1", "pool": "p1"}) == 3.0

    def test_set_with_sequence(self, builder):
        builder.set("test_pool_nodes", ("a1", "p1"), 2)
        assert builder.build().series("test_pool_nodes") == {("a1", "p1"): 2.0}

    def test_inc(self, builder):
        builder.inc("test_tasks_total", {"job": "j1"})
        builder.inc("test_tasks_total", {"job": "j1"}, 4)
        assert builder.build().get("test_tasks_total", {"job": "j1"}) == 5.0

    def test_unknown_family(self, builder):
        with pytest.raises(KeyError):
            builder.set("nope", {}, 1)

    def test_label_mismatch_mapping(self, builder):
        with pytest.raises(ValueError):
            builder.set("test_pool_nodes", {"account": "a1"}, 1)
        with pytest.raises(ValueError):
            builder.set("test_pool_nodes", {"account": "a1", "pool": "p", "extra": "x"}, 1)

    def test_label_mismatch_sequence(self, builder):
        with pytest.raises(ValueError):
            builder.set("test_pool_nodes", ("a1",), 1)

    def test_set_state_fills_declared_states(self, builder):
        """관측 상태는 1, 나머지 선언 상태는 0"""
        builder.set_state("test_pool_allocation_state", {"account": "a1", "pool": "p1"}, "resizing")
        series = builder.build().series("test_pool_allocation_state")
        assert series == {
            ("a1", "p1", "steady"): 0.0,
            ("a1", "p1", "resizing"): 1.0,
            ("a1", "p1", "stopping"): 0.0,
        }

    def test_inc_state_counts(self, builder):
        labels = {"account": "a1", "pool": "p1"}
        for state in ("steady", "steady", "stopping"):
            builder.inc_state("test_pool_allocation_state", labels, state)
        snap = builder.build()
        assert snap.find("test_pool_allocation_state", state="steady") == {("a1", "p1", "steady"): 2.0}
        assert snap.get("test_pool_allocation_state", {**labels, "state": "resizing"}) == 0.0
        assert snap.get("test_pool_allocation_state", {**labels, "state": "stopping"}) == 1.0

    def test_init_states_keeps_existing(self, builder):
        labels = {"account": "a1", "pool": "p1"}
        builder.inc_state("test_pool_allocation_state", labels, "steady")
        builder.init_states("test_pool_allocation_state", labels)
        snap = builder.build()
        assert snap.get("test_pool_allocation_state", {**labels, "state": "steady"}) == 1.0
        assert len(snap.series("test_pool_allocation_state")) == 3

    def test_undeclared_state_recorded(self, builder):
        builder.set_state("test_pool_allocation_state", ("a1", "p1"), "upgrading")
        series = builder.build().series("test_pool_allocation_state")
        assert series[("a1", "p1", "upgrading")] == 1.0
        assert len(series) == 4

    def test_state_methods_require_state_family(self, builder):
        with pytest.raises(ValueError):
            builder.set_state("test_pool_nodes", {"account": "a1", "pool": "p1"}, "x")

    def test_duplicate_family(self):
        with pytest.raises(ValueError):
            SnapshotBuilder((NODES, NODES))

    def test_build_once(self, builder):
        builder.build()
        with pytest.raises(RuntimeError):
            builder.build()
        with pytest.raises(RuntimeError):
            builder.set("test_pool_nodes", ("a1", "p1"), 1)

    def test_concurrent_inc(self, builder):
        def worker():
            for _ in range(500):
                builder.inc("test_tasks_total", ("j1",))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert builder.build().get("test_tasks_total", {"job": "j1"}) == 4000.0


class TestMetricSnapshot:
    """MetricSnapshot 불변성"""

    def test_read_only(self, builder):
        builder.set("test_pool_nodes", ("a1", "p1"), 1)
        snap = builder.build()
        with pytest.raises(TypeError):
            snap.series("test_pool_nodes")[("a2", "p2")] = 1.0
        with pytest.raises(TypeError):
            snap.families["other"] = NODES

    def test_empty_families_present(self, builder):
        snap = builder.build()
        assert "test_tasks_total" in snap
        assert snap.series("test_tasks_total") == {}
        assert snap.series_count() == 0

    def test_get_missing(self, builder):
        assert builder.build().get("test_pool_nodes", {"account": "x", "pool": "y"}) is None


class TestSnapshotPublisher:
    """SnapshotPublisher 테스트"""

    def test_publish_replaces(self):
        publisher = SnapshotPublisher()
        assert publisher.current("batch") is None

        first = MetricSnapshot({"test_pool_nodes": NODES}, {"test_pool_nodes": {("a1", "p1"): 1.0}})
        second = MetricSnapshot({"test_pool_nodes": NODES}, {"test_pool_nodes": {("a2", "p2"): 2.0}})
        publisher.publish("batch", first)
        publisher.publish("batch", second)

        current = publisher.current("batch")
        assert current is second
        assert ("a1", "p1") not in current.series("test_pool_nodes")

    def test_current_all_is_copy(self):
        publisher = SnapshotPublisher()
        publisher.publish("batch", SnapshotBuilder(FAMILIES).build())
        view = publisher.current_all()
        view.clear()
        assert publisher.current("batch") is not None

    def test_readers_see_whole_snapshots(self):
        """동시 읽기는 항상 완전한 이전 또는 새 스냅샷을 관측"""
        publisher = SnapshotPublisher()
        stop = threading.Event()
        torn = []

        def writer():
            n = 0
            while not stop.is_set():
                n += 1
                b = SnapshotBuilder(FAMILIES)
                b.set("test_pool_nodes", ("a", "p1"), n)
                b.set("test_pool_nodes", ("a", "p2"), n)
                publisher.publish("batch", b.build())

        def reader():
            while not stop.is_set():
                snap = publisher.current("batch")
                if snap is None:
                    continue
                values = set(snap.series("test_pool_nodes").values())
                if len(values) != 1:
                    torn.append(values)

        threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        stop.wait(0.3)
        stop.set()
        for t in threads:
            t.join()
        assert torn == []


class TestSnapshotCollector:
    """SnapshotCollector 렌더링"""

    def test_render(self):
        publisher = SnapshotPublisher()
        registry = CollectorRegistry()
        registry.register(SnapshotCollector(publisher))

        builder = SnapshotBuilder(FAMILIES)
        builder.set("test_pool_nodes", ("a1", "p1"), 3)
        builder.set("test_tasks_total", ("j1",), 7)
        builder.set_state("test_pool_allocation_state", ("a1", "p1"), "steady")
        publisher.publish("batch", builder.build())

        assert registry.get_sample_value("test_pool_nodes", {"account": "a1", "pool": "p1"}) == 3.0
        assert registry.get_sample_value("test_tasks_total", {"job": "j1"}) == 7.0
        assert (
            registry.get_sample_value("test_pool_allocation_state", {"account": "a1", "pool": "p1", "state": "stopping"})
            == 0.0
        )
        text = generate_latest(registry).decode()
        kinds = {family.name: family.type for family in text_string_to_metric_families(text)}
        assert kinds["test_pool_nodes"] == "gauge"
        assert kinds["test_tasks"] == "counter"

    def test_duplicate_family_across_kinds(self):
        publisher = SnapshotPublisher()
        registry = CollectorRegistry()
        registry.register(SnapshotCollector(publisher))

        for kind, value in (("a", 1), ("b", 2)):
            builder = SnapshotBuilder((NODES,))
            builder.set("test_pool_nodes", ("x", "y"), value)
            publisher.publish(kind, builder.build())

        assert registry.get_sample_value("test_pool_nodes", {"account": "x", "pool": "y"}) == 1.0

    def test_nothing_published(self):
        registry = CollectorRegistry()
        registry.register(SnapshotCollector(SnapshotPublisher()))
        assert generate_latest(registry) == b""
