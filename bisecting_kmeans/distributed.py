"""
Partitioned datasets and the broadcast-once runner used for distributed
prediction.

A job shares one read-only value (the leaf centers and the metric) with
every worker, then maps a per-partition function over the dataset. The
shared value is never shipped along with individual elements:

- ``serial`` runs partitions in the calling thread;
- ``thread`` hands the same in-memory object to every worker thread;
- ``process`` installs the value once per worker process through the pool
  initializer, and each task only carries the broadcast id and its
  partition.
"""
from __future__ import annotations

import itertools
import logging
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .config import EXECUTORS, ServingConfig
from .metrics import DistanceFunc, as_points
from .search import cost_points, predict_points

logger = logging.getLogger(__name__)

PartitionFunc = Callable[[np.ndarray, Any], Any]

_broadcast_ids = itertools.count()

# 工作进程中已安装的广播值：{broadcast_id: value}
_WORKER_BROADCASTS: Dict[int, Any] = {}


class Broadcast(object):
    """A read-only value shared with every worker of a job.

    Args:
        value: The value to share. It must be picklable for the
            ``process`` executor.
    """

    def __init__(self, value: Any) -> None:
        self._id = next(_broadcast_ids)
        self._value = value

    @property
    def id(self) -> int:
        return self._id

    @property
    def value(self) -> Any:
        return self._value

    def __repr__(self) -> str:
        return f"Broadcast(id={self._id})"


class PartitionedDataset(object):
    """An ordered collection of independent partitions.

    Each partition is a numpy array; for vector data every partition has
    shape ``(n_i, dim)``, for labels ``(n_i,)``. Element order is the
    partition order followed by the order within each partition.

    Args:
        partitions: The partitions, in order.
    """

    def __init__(self, partitions: Sequence) -> None:
        self._partitions: Tuple[np.ndarray, ...] = tuple(self._coerce(p) for p in partitions)

    @staticmethod
    def _coerce(partition) -> np.ndarray:
        try:
            return np.asarray(partition)
        except ValueError:
            # 不规则的向量分区：报告维度不匹配
            return as_points(partition)

    @classmethod
    def from_sequence(cls, data, num_partitions: int) -> PartitionedDataset:
        """Split ``data`` into ``num_partitions`` contiguous partitions.

        Args:
            data: A 2-D array-like of vectors.
            num_partitions: Number of partitions, at least 1. Trailing
                partitions may be empty when there are fewer rows than
                partitions.
        """
        if num_partitions < 1:
            raise ValueError(f"num_partitions must be positive, got {num_partitions}")
        array = as_points(data)
        if array.ndim == 1 and array.size == 0:
            array = array.reshape(0, 0)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D array of vectors, got shape {array.shape}.")
        return cls(np.array_split(array, num_partitions))

    @property
    def partitions(self) -> Tuple[np.ndarray, ...]:
        return self._partitions

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    def __len__(self) -> int:
        return sum(len(p) for p in self._partitions)

    def __iter__(self) -> Iterator:
        for partition in self._partitions:
            yield from partition

    def __repr__(self) -> str:
        return f"PartitionedDataset(num_partitions={self.num_partitions}, size={len(self)})"

    def map_partitions(self, func: Callable[[np.ndarray], Any]) -> PartitionedDataset:
        """Apply ``func`` to every partition locally, keeping the layout."""
        return PartitionedDataset([func(p) for p in self._partitions])

    def collect(self) -> np.ndarray:
        """Concatenate all partitions in order."""
        if not self._partitions:
            return np.empty(0)
        return np.concatenate(self._partitions)


def _install_broadcast(broadcast_id: int, value: Any) -> None:
    """进程池初始化函数：每个工作进程只安装一次广播值。"""
    _WORKER_BROADCASTS[broadcast_id] = value


def _run_with_installed_broadcast(func: PartitionFunc, broadcast_id: int, partition: np.ndarray) -> Any:
    return func(partition, _WORKER_BROADCASTS[broadcast_id])


class PartitionRunner(object):
    """Maps a per-partition function over a :class:`PartitionedDataset`.

    Args:
        executor (str): ``"serial"``, ``"thread"`` or ``"process"``.
        max_workers (Optional[int]): Pool size; None uses the
            :mod:`concurrent.futures` default.

    A new pool is created for every :meth:`run` call and shut down before it
    returns, so the runner holds no resources between jobs.
    """

    def __init__(self, executor: str = "thread", max_workers: Optional[int] = None) -> None:
        if executor not in EXECUTORS:
            raise ValueError(
                f"Unknown executor {executor!r}; expected one of {', '.join(EXECUTORS)}"
            )
        self.executor = executor
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, config: ServingConfig) -> PartitionRunner:
        return cls(executor=config.executor, max_workers=config.max_workers)

    def run(self, func: PartitionFunc, dataset: PartitionedDataset, broadcast: Broadcast) -> List[Any]:
        """Call ``func(partition, broadcast.value)`` for every partition.

        Args:
            func: The per-partition function. Must be a module-level
                function for the ``process`` executor.
            dataset: The partitions to process.
            broadcast: The value shared with every worker.

        Returns:
            List[Any]: One result per partition, in partition order.

        Raises:
            Exception: Whatever ``func`` raised for the first failing
                partition; the job is not retried or partially returned.
        """
        partitions = dataset.partitions
        logger.debug(
            "Running %s over %d partitions with %s executor (%s)",
            getattr(func, "__name__", func), len(partitions), self.executor, broadcast,
        )
        if not partitions:
            return []

        if self.executor == "serial":
            return [func(p, broadcast.value) for p in partitions]

        if self.executor == "thread":
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(func, p, broadcast.value) for p in partitions]
                return [f.result() for f in futures]

        with ProcessPoolExecutor(
            max_workers=self.max_workers,
            initializer=_install_broadcast,
            initargs=(broadcast.id, broadcast.value),
        ) as pool:
            futures = [
                pool.submit(_run_with_installed_broadcast, func, broadcast.id, p)
                for p in partitions
            ]
            return [f.result() for f in futures]


def _predict_partition(partition: np.ndarray, shared: Tuple[Sequence[np.ndarray], DistanceFunc]) -> np.ndarray:
    centers, metric = shared
    return predict_points(metric, centers, partition)


def _cost_partition(partition: np.ndarray, shared: Tuple[Sequence[np.ndarray], DistanceFunc]) -> float:
    centers, metric = shared
    return cost_points(metric, centers, partition)


def predict_partitioned(
    dataset: PartitionedDataset,
    centers: Sequence[np.ndarray],
    metric: DistanceFunc,
    runner: PartitionRunner,
) -> PartitionedDataset:
    """Label every element of ``dataset`` with its nearest center.

    The centers and metric are broadcast once for the whole job.

    Returns:
        PartitionedDataset: Integer label arrays, partitioned exactly like
            ``dataset``.
    """
    shared = Broadcast((tuple(centers), metric))
    return PartitionedDataset(runner.run(_predict_partition, dataset, shared))


def cost_partitioned(
    dataset: PartitionedDataset,
    centers: Sequence[np.ndarray],
    metric: DistanceFunc,
    runner: PartitionRunner,
) -> float:
    """Sum of the distances of every element to its nearest center."""
    shared = Broadcast((tuple(centers), metric))
    return float(sum(runner.run(_cost_partition, dataset, shared)))
