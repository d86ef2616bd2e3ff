"""
Bisecting k-means training.

Builds a :class:`ClusterNode` tree by repeatedly splitting the divisible
leaf with the highest cost into two with scikit-learn's k-means, until the
requested number of leaves is reached or no leaf can be split any further.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
from sklearn.cluster import KMeans

from .model import BisectingKMeansModel
from .node import ClusterNode

logger = logging.getLogger(__name__)

ROOT_INDEX = 1

# 超过 2**53 的索引转成 float 后无法区分
MAX_EXACT_INDEX = 2 ** 53


class _Cluster(object):
    """训练期间的簇记录：成员行、中心和代价。"""

    def __init__(self, index: int, rows: np.ndarray, X: np.ndarray) -> None:
        self.index = index
        self.rows = rows
        self.center = X[rows].mean(axis=0)
        self.cost = float(np.linalg.norm(X[rows] - self.center, axis=1).sum())
        self.divisible = True


def _split(X: np.ndarray, cluster: _Cluster, random_state: Optional[int]) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Split a cluster's rows in two, or return None if it cannot be split."""
    points = X[cluster.rows]
    if len(np.unique(points, axis=0)) < 2:
        return None
    kmeans = KMeans(n_clusters=2, n_init=10, random_state=random_state)
    assignments = kmeans.fit_predict(points)
    left, right = cluster.rows[assignments == 0], cluster.rows[assignments == 1]
    if len(left) == 0 or len(right) == 0:
        return None
    return left, right


def bisect(
    X,
    k: int,
    min_divisible_size: int = 2,
    random_state: Optional[int] = None,
    verbose: bool = False,
) -> ClusterNode:
    """
    Build a bisecting k-means cluster tree.

    Nodes are indexed heap-style: the root is ``1`` and the children of
    node ``i`` are ``2i`` and ``2i + 1``. Each child's edge weight is the
    Euclidean distance between its center and its parent's. The height of
    an internal node is the larger of its children's heights plus the
    distance between their centers, so heights never decrease towards the
    root. A cluster whose children would get an index above
    ``MAX_EXACT_INDEX`` (2**53, the largest range in which every integer
    survives the float conversion of the nested-list exports) is left
    unsplit, which bounds the depth of any branch at 52 splits.

    Args:
        X: Training data of shape (n_samples, n_features)
        k: Desired number of leaf clusters
        min_divisible_size: Clusters with fewer points are never split
        random_state: Random seed passed to every k-means split
        verbose: Whether to log progress at INFO level

    Returns:
        Root of the cluster tree
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2 or len(X) == 0:
        raise ValueError(f"Expected a non-empty 2-D array, got shape {X.shape}.")
    if k < 1:
        raise ValueError(f"k must be positive, got {k}")
    if min_divisible_size < 2:
        raise ValueError(f"min_divisible_size must be at least 2, got {min_divisible_size}")

    log = logger.info if verbose else logger.debug
    log("Bisecting %d samples into at most %d clusters", len(X), k)

    clusters: Dict[int, _Cluster] = {ROOT_INDEX: _Cluster(ROOT_INDEX, np.arange(len(X)), X)}
    leaves = [ROOT_INDEX]
    splits: Dict[int, Tuple[int, int]] = {}

    while len(leaves) < k:
        candidates = [
            i for i in leaves
            if clusters[i].divisible and len(clusters[i].rows) >= min_divisible_size
        ]
        if not candidates:
            log("No divisible clusters left; stopping at %d clusters", len(leaves))
            break
        # 选择代价最大的可分簇进行二分
        target = max(candidates, key=lambda i: clusters[i].cost)
        left_index, right_index = 2 * target, 2 * target + 1
        if right_index > MAX_EXACT_INDEX:
            logger.warning(
                "Not splitting cluster %d: child indices would exceed %d", target, MAX_EXACT_INDEX
            )
            clusters[target].divisible = False
            continue
        halves = _split(X, clusters[target], random_state)
        if halves is None:
            clusters[target].divisible = False
            continue

        clusters[left_index] = _Cluster(left_index, halves[0], X)
        clusters[right_index] = _Cluster(right_index, halves[1], X)
        splits[target] = (left_index, right_index)
        position = leaves.index(target)
        leaves[position:position + 1] = [left_index, right_index]
        log(
            "Split cluster %d (cost %.4f) into %d (%d points) and %d (%d points)",
            target, clusters[target].cost,
            left_index, len(halves[0]), right_index, len(halves[1]),
        )

    return _assemble(clusters, splits)


def _assemble(clusters: Dict[int, _Cluster], splits: Dict[int, Tuple[int, int]]) -> ClusterNode:
    """Turn the training records into immutable nodes, children first."""
    built: Dict[int, ClusterNode] = {}
    stack: List[Tuple[int, float, bool]] = [(ROOT_INDEX, 0.0, False)]
    while stack:
        index, weight, expanded = stack.pop()
        cluster = clusters[index]
        if index in splits and not expanded:
            stack.append((index, weight, True))
            for child in splits[index]:
                child_weight = float(np.linalg.norm(clusters[child].center - cluster.center))
                stack.append((child, child_weight, False))
            continue

        left = right = None
        height = 0.0
        if index in splits:
            left, right = (built.pop(child) for child in splits[index])
            height = max(left.height, right.height) + float(np.linalg.norm(left.center - right.center))
        built[index] = ClusterNode(
            index,
            cluster.center,
            left=left,
            right=right,
            height=height,
            weight=weight,
            size=len(cluster.rows),
            cost=cluster.cost,
        )
    return built[ROOT_INDEX]


def fit(X, k: int, **kwargs) -> BisectingKMeansModel:
    """Train a tree with :func:`bisect` and wrap it in a model.

    Keyword arguments other than those of :func:`bisect` (``metric``,
    ``config``) are passed to :class:`BisectingKMeansModel`.
    """
    model_kwargs = {name: kwargs.pop(name) for name in ("metric", "config") if name in kwargs}
    return BisectingKMeansModel(bisect(X, k, **kwargs), **model_kwargs)
