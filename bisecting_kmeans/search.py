"""
Nearest-center search over a flat array of leaf centers.

The scan is linear in the number of centers and does not exploit the
bisecting structure of the tree. The same kernels serve single points,
local batches and every partition of a distributed batch.
"""

from typing import Sequence, Tuple

import numpy as np

from .exceptions import EmptyCenterSet
from .metrics import DistanceFunc


def find_closest(
    metric: DistanceFunc,
    centers: Sequence[np.ndarray],
    query: np.ndarray,
) -> Tuple[int, float]:
    """Find the center nearest to ``query``.

    Args:
        metric: Distance function ``(a, b) -> float``.
        centers: Candidate centers, indexed positionally.
        query: The point to classify.

    Returns:
        Tuple[int, float]: Index of the nearest center and its distance.
            On exact ties the lowest index wins.

    Raises:
        EmptyCenterSet: If ``centers`` is empty.
        DimensionMismatch: If the metric rejects ``query``.
    """
    if len(centers) == 0:
        raise EmptyCenterSet()
    best_index = 0
    best_distance = metric(centers[0], query)
    for i in range(1, len(centers)):
        distance = metric(centers[i], query)
        # 严格小于：距离相同时保留较小的索引
        if distance < best_distance:
            best_index = i
            best_distance = distance
    return best_index, best_distance


def find_closest_center(
    metric: DistanceFunc,
    centers: Sequence[np.ndarray],
    query: np.ndarray,
) -> int:
    """Index of the center nearest to ``query`` (lowest index on ties)."""
    return find_closest(metric, centers, query)[0]


def predict_points(
    metric: DistanceFunc,
    centers: Sequence[np.ndarray],
    points: np.ndarray,
) -> np.ndarray:
    """Label every row of ``points`` with its nearest center index."""
    labels = np.empty(len(points), dtype=np.int64)
    for i, point in enumerate(points):
        labels[i] = find_closest(metric, centers, point)[0]
    return labels


def cost_points(
    metric: DistanceFunc,
    centers: Sequence[np.ndarray],
    points: np.ndarray,
) -> float:
    """Sum of the distances of ``points`` to their nearest centers."""
    total = 0.0
    for point in points:
        total += find_closest(metric, centers, point)[1]
    return total
