"""
Serving model for a tree produced by bisecting k-means.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

import numpy as np

from .config import ServingConfig, get_serving_config
from .distributed import PartitionRunner, PartitionedDataset, cost_partitioned, predict_partitioned
from .exceptions import DimensionMismatch, EmptyCenterSet
from .metrics import DistanceFunc, as_points, as_vector, euclidean_distance
from .node import ClusterNode, Edge, LinkageRow
from .search import cost_points, find_closest_center, predict_points

logger = logging.getLogger(__name__)


class BisectingKMeansModel(object):
    """A trained bisecting k-means model.

    The model is an immutable view over the root of a cluster tree. Leaf
    centers are extracted once at construction; cluster labels are
    positions in :meth:`get_clusters` order, which is also the leaf id
    order of :meth:`to_linkage_matrix`.

    Args:
        node (Optional[ClusterNode]): Root of the cluster tree. None builds
            an empty model whose exports are empty and whose predictions
            raise :class:`EmptyCenterSet`.
        metric: Distance function ``(a, b) -> float``. Defaults to
            Euclidean distance.
        config (Optional[ServingConfig]): Settings for partitioned
            prediction. Resolved from the environment when None.

    Raises:
        DimensionMismatch: If the leaf centers do not share one dimension.

    Examples:

        .. code-block:: python

            import numpy as np
            from bisecting_kmeans import BisectingKMeansModel, ClusterNode

            root = ClusterNode(
                1, [5.0],
                left=ClusterNode(2, [0.0], weight=5.0),
                right=ClusterNode(3, [10.0], weight=5.0),
                height=10.0,
            )
            model = BisectingKMeansModel(root)
            model.predict([6.0])                     # 1
            model.predict(np.array([[1.0], [9.0]]))  # array([0, 1])
            model.wssse([[1.0], [9.0]])              # 2.0
    """

    def __init__(
        self,
        node: Optional[ClusterNode],
        metric: DistanceFunc = euclidean_distance,
        config: Optional[ServingConfig] = None,
    ) -> None:
        self._node = node
        self._metric = metric
        self._config = config if config is not None else get_serving_config()
        self._clusters: List[ClusterNode] = [] if node is None else node.leaves()
        self._centers = tuple(leaf.center for leaf in self._clusters)
        if self._centers:
            dim = self._centers[0].shape[0]
            for center in self._centers[1:]:
                if center.shape[0] != dim:
                    raise DimensionMismatch(dim, center.shape[0])

    @property
    def node(self) -> Optional[ClusterNode]:
        return self._node

    root = node

    @property
    def metric(self) -> DistanceFunc:
        return self._metric

    @property
    def config(self) -> ServingConfig:
        return self._config

    @property
    def k(self) -> int:
        """Number of leaf clusters."""
        return len(self._clusters)

    def __len__(self) -> int:
        return len(self._clusters)

    def __repr__(self) -> str:
        return f"BisectingKMeansModel(k={self.k}, dim={self.dimension})"

    @property
    def dimension(self) -> Optional[int]:
        """Dimension of the centers, None for an empty model."""
        if not self._centers:
            return None
        return self._centers[0].shape[0]

    def get_clusters(self) -> List[ClusterNode]:
        """Leaf nodes, left to right."""
        return list(self._clusters)

    def get_centers(self) -> List[np.ndarray]:
        """Leaf centers in the same order as :meth:`get_clusters`."""
        return list(self._centers)

    def _require_centers(self) -> None:
        if not self._centers:
            raise EmptyCenterSet("The model has no leaf clusters.")

    def _runner(self) -> PartitionRunner:
        return PartitionRunner.from_config(self._config)

    def parallelize(self, data, num_partitions: Optional[int] = None) -> PartitionedDataset:
        """Split a local batch into a :class:`PartitionedDataset`, using the
        configured partition count unless one is given."""
        if num_partitions is None:
            num_partitions = self._config.num_partitions
        return PartitionedDataset.from_sequence(data, num_partitions)

    def predict(self, X) -> Union[int, np.ndarray, PartitionedDataset]:
        """Predict the closest leaf cluster.

        Args:
            X: One of

                - a single vector (rank-1 array-like): returns an ``int``;
                - a batch of vectors (rank-2 array or sequence of vectors):
                  returns an integer ``np.ndarray`` in input order;
                - a :class:`PartitionedDataset` of vectors: returns a
                  :class:`PartitionedDataset` of label arrays with the same
                  partitioning.

        Returns:
            Cluster labels, i.e. positions in :meth:`get_centers`.

        Raises:
            EmptyCenterSet: If the model has no leaves.
            DimensionMismatch: If a point's dimension differs from the
                centers'.
        """
        self._require_centers()
        if isinstance(X, PartitionedDataset):
            return self._predict_partitioned(X)
        points = as_points(X, self.dimension)
        if points.ndim == 1 and points.size > 0:
            return find_closest_center(self._metric, self._centers, as_vector(points))
        return predict_points(self._metric, self._centers, self._as_batch(points))

    def _predict_partitioned(self, dataset: PartitionedDataset) -> PartitionedDataset:
        logger.debug(
            "Predicting %d points across %d partitions", len(dataset), dataset.num_partitions
        )
        return predict_partitioned(dataset, self._centers, self._metric, self._runner())

    def wssse(self, data) -> float:
        """Sum of the distances from every point to its nearest center.

        The distance is the model metric itself (the raw Euclidean norm by
        default), not its square.

        Args:
            data: A batch of vectors or a :class:`PartitionedDataset`.

        Returns:
            float: The total, ``0.0`` for an empty dataset.

        Raises:
            EmptyCenterSet: If the model has no leaves.
            DimensionMismatch: If a point's dimension differs from the
                centers'.
        """
        self._require_centers()
        if isinstance(data, PartitionedDataset):
            return cost_partitioned(data, self._centers, self._metric, self._runner())
        points = self._as_batch(as_points(data, self.dimension))
        return cost_points(self._metric, self._centers, points)

    WSSSE = wssse

    @staticmethod
    def _as_batch(points: np.ndarray) -> np.ndarray:
        # 只有完全没有行的输入才视为空批次；(n, 0) 的行仍交给度量函数检查
        if points.ndim == 1 and points.size == 0:
            return points.reshape(0, 0)
        if points.ndim != 2:
            raise ValueError(f"Expected a 2-D batch of vectors, got shape {points.shape}.")
        return points

    def to_adjacency_list(self) -> List[Edge]:
        """``(parent_index, child_index, weight)`` edges of the tree."""
        if self._node is None:
            return []
        return self._node.to_adjacency_list()

    def to_linkage_matrix(self) -> List[LinkageRow]:
        """``(left_id, right_id, height, count)`` rows of the dendrogram."""
        if self._node is None:
            return []
        return self._node.to_linkage_matrix()

    def to_adjacency_list_rows(self) -> List[List[float]]:
        """The adjacency list as nested lists of floats, for callers that
        cannot consume tuples."""
        return [[float(parent), float(child), float(weight)]
                for parent, child, weight in self.to_adjacency_list()]

    def to_linkage_matrix_rows(self) -> List[List[float]]:
        """The linkage matrix as nested lists of floats, for callers that
        cannot consume tuples."""
        return [[float(left), float(right), float(height), float(count)]
                for left, right, height, count in self.to_linkage_matrix()]

    def linkage_array(self) -> np.ndarray:
        """The linkage matrix as a ``(k - 1, 4)`` float array, suitable for
        ``scipy.cluster.hierarchy.dendrogram``."""
        rows = self.to_linkage_matrix_rows()
        if not rows:
            return np.empty((0, 4), dtype=np.float64)
        return np.array(rows, dtype=np.float64)

    def get_cluster_info(self) -> Dict:
        """Get information about the cluster tree."""
        if self._node is None:
            return {'n_clusters': 0, 'n_internal_nodes': 0, 'depth': 0, 'dimension': None}

        info = {
            'n_clusters': self.k,
            'n_internal_nodes': len(self._node.internal_nodes()),
            'depth': self._node.depth(),
            'dimension': self.dimension,
        }
        sizes = [leaf.size for leaf in self._clusters]
        if all(size is not None for size in sizes):
            info.update({
                'cluster_sizes': dict(zip(range(self.k), sizes)),
                'avg_cluster_size': float(np.mean(sizes)),
                'std_cluster_size': float(np.std(sizes)),
                'min_cluster_size': int(np.min(sizes)),
                'max_cluster_size': int(np.max(sizes)),
            })
        return info
