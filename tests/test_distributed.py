import threading
from concurrent.futures import Future

import numpy as np
import pytest

from bisecting_kmeans import (
    BisectingKMeansModel,
    Broadcast,
    DimensionMismatch,
    PartitionedDataset,
    PartitionRunner,
    ServingConfig,
    euclidean_distance,
)
from bisecting_kmeans import distributed
from bisecting_kmeans.distributed import _cost_partition, cost_partitioned, predict_partitioned


def test_from_sequence_splits_contiguously():
    data = np.arange(20, dtype=np.float64).reshape(10, 2)
    dataset = PartitionedDataset.from_sequence(data, 3)
    assert dataset.num_partitions == 3
    assert [len(p) for p in dataset.partitions] == [4, 3, 3]
    assert len(dataset) == 10
    assert np.array_equal(dataset.collect(), data)
    assert np.array_equal(np.array(list(dataset)), data)


def test_from_sequence_more_partitions_than_rows():
    dataset = PartitionedDataset.from_sequence([[1.0], [2.0]], 4)
    assert dataset.num_partitions == 4
    assert [len(p) for p in dataset.partitions] == [1, 1, 0, 0]


def test_from_sequence_rejects_bad_input():
    with pytest.raises(ValueError):
        PartitionedDataset.from_sequence([[1.0]], 0)
    with pytest.raises(ValueError):
        PartitionedDataset.from_sequence([1.0, 2.0], 2)


def test_map_partitions_keeps_layout():
    dataset = PartitionedDataset([np.array([1, 2]), np.array([3])])
    doubled = dataset.map_partitions(lambda p: p * 2)
    assert [p.tolist() for p in doubled.partitions] == [[2, 4], [6]]


def test_broadcast_ids_are_unique():
    first, second = Broadcast("a"), Broadcast("b")
    assert first.id != second.id
    assert first.value == "a"


def test_unknown_executor():
    with pytest.raises(ValueError):
        PartitionRunner(executor="cluster")


@pytest.mark.parametrize("executor", ["serial", "thread", "process"])
def test_runner_returns_results_in_partition_order(executor):
    dataset = PartitionedDataset(
        [np.array([[1.0], [2.0]]), np.array([[10.0]]), np.empty((0, 1)), np.array([[5.0]])]
    )
    shared = Broadcast(((np.array([0.0]),), euclidean_distance))
    runner = PartitionRunner(executor=executor, max_workers=2)
    assert runner.run(_cost_partition, dataset, shared) == [3.0, 10.0, 0.0, 5.0]


def test_runner_with_no_partitions():
    assert PartitionRunner("thread").run(_cost_partition, PartitionedDataset([]), Broadcast(None)) == []


def test_thread_workers_share_one_broadcast_object():
    seen = []
    lock = threading.Lock()

    def record(partition, shared):
        with lock:
            seen.append(id(shared))
        return len(partition)

    shared = {"centers": [1, 2, 3]}
    dataset = PartitionedDataset([np.zeros(2)] * 6)
    PartitionRunner("thread", max_workers=3).run(record, dataset, Broadcast(shared))
    assert set(seen) == {id(shared)}


@pytest.mark.parametrize("executor", ["serial", "thread", "process"])
def test_distributed_predict_matches_local(blob_model, blobs, executor):
    model = BisectingKMeansModel(
        blob_model.node, config=ServingConfig(executor=executor, max_workers=2)
    )
    local = model.predict(blobs)
    for num_partitions in (1, 3, 7):
        dataset = PartitionedDataset.from_sequence(blobs, num_partitions)
        result = model.predict(dataset)
        assert isinstance(result, PartitionedDataset)
        assert result.num_partitions == num_partitions
        assert [len(p) for p in result.partitions] == [len(p) for p in dataset.partitions]
        assert result.collect().tolist() == local.tolist()


@pytest.mark.parametrize("executor", ["serial", "thread", "process"])
def test_distributed_wssse_matches_local(blob_model, blobs, executor):
    model = BisectingKMeansModel(
        blob_model.node, config=ServingConfig(executor=executor, max_workers=2)
    )
    dataset = PartitionedDataset.from_sequence(blobs, 5)
    assert model.wssse(dataset) == pytest.approx(model.wssse(blobs))


def test_partition_errors_fail_the_job(two_leaf_tree):
    runner = PartitionRunner("thread", max_workers=2)
    centers = [leaf.center for leaf in two_leaf_tree.leaves()]
    dataset = PartitionedDataset([np.array([[1.0]]), np.array([[1.0, 2.0]])])
    with pytest.raises(DimensionMismatch):
        predict_partitioned(dataset, centers, euclidean_distance, runner)
    with pytest.raises(DimensionMismatch):
        cost_partitioned(dataset, centers, euclidean_distance, runner)


def test_from_sequence_keeps_zero_width_rows():
    dataset = PartitionedDataset.from_sequence(np.empty((3, 0)), 2)
    assert len(dataset) == 3
    assert [p.shape for p in dataset.partitions] == [(2, 0), (1, 0)]


def test_zero_width_rows_fail_distributed_jobs(two_leaf_tree):
    model = BisectingKMeansModel(two_leaf_tree, config=ServingConfig(executor="serial"))
    dataset = PartitionedDataset.from_sequence([[], [], []], 2)
    with pytest.raises(DimensionMismatch):
        model.predict(dataset)
    with pytest.raises(DimensionMismatch):
        model.wssse(dataset)


def test_ragged_partitions_raise_dimension_mismatch():
    with pytest.raises(DimensionMismatch):
        PartitionedDataset.from_sequence([[1.0], [1.0, 2.0]], 2)
    with pytest.raises(DimensionMismatch):
        PartitionedDataset([[[1.0, 2.0], [3.0]]])


class _InlineProcessPool(object):
    """Stands in for ProcessPoolExecutor: one simulated worker, run inline."""

    created = []

    def __init__(self, max_workers=None, initializer=None, initargs=()):
        self.initargs = initargs
        self.submitted = []
        initializer(*initargs)
        _InlineProcessPool.created.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def submit(self, fn, *args):
        self.submitted.append(args)
        future = Future()
        future.set_result(fn(*args))
        return future


def test_process_tasks_carry_only_the_broadcast_id(monkeypatch):
    installs = []
    real_install = distributed._install_broadcast

    def counting_install(broadcast_id, value):
        installs.append(broadcast_id)
        real_install(broadcast_id, value)

    monkeypatch.setattr(distributed, "_WORKER_BROADCASTS", {})
    monkeypatch.setattr(distributed, "_install_broadcast", counting_install)
    monkeypatch.setattr(distributed, "ProcessPoolExecutor", _InlineProcessPool)
    _InlineProcessPool.created = []

    centers = (np.array([0.0]), np.array([10.0]))
    shared = Broadcast((centers, euclidean_distance))
    dataset = PartitionedDataset.from_sequence([[1.0], [9.0], [4.0], [6.0], [11.0]], 4)
    results = PartitionRunner("process", max_workers=1).run(distributed._predict_partition, dataset, shared)

    assert np.concatenate(results).tolist() == [0, 1, 0, 1, 1]
    assert installs == [shared.id]
    (pool,) = _InlineProcessPool.created
    assert pool.initargs == (shared.id, shared.value)
    assert len(pool.submitted) == dataset.num_partitions
    for func, broadcast_id, partition in pool.submitted:
        assert func is distributed._predict_partition
        assert broadcast_id == shared.id
        assert isinstance(partition, np.ndarray)
