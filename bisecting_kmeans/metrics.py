"""
Distance functions over fixed-dimension vectors.

A metric is any callable ``(a, b) -> float``; it is passed around as a plain
value so the tree and search code never depend on a particular distance.
"""

from typing import Callable, Optional

import numpy as np

from .exceptions import DimensionMismatch

DistanceFunc = Callable[[np.ndarray, np.ndarray], float]


def as_vector(x) -> np.ndarray:
    """Coerce an array-like into a read-only 1-D float64 vector.

    Args:
        x: Any rank-1 array-like (list, tuple, numpy array).

    Returns:
        np.ndarray: A non-writable copy of ``x`` with dtype float64.

    Raises:
        ValueError: If ``x`` is not rank 1.
    """
    vec = np.array(x, dtype=np.float64)
    if vec.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got an array of shape {vec.shape}.")
    vec.setflags(write=False)
    return vec


def as_points(X, dim: Optional[int] = None) -> np.ndarray:
    """Coerce a vector or a batch of vectors into a float64 array.

    Args:
        X: A vector or a sequence of vectors.
        dim: Expected vector length, used to report ragged batches.

    Raises:
        DimensionMismatch: If the rows of a batch differ in length.
    """
    try:
        return np.asarray(X, dtype=np.float64)
    except ValueError as exc:
        # 行长度不一致时 numpy 只报告通用错误，逐行转换以找出不匹配的行
        rows = [as_vector(row) for row in X]
        expected = dim if dim is not None else rows[0].shape[0]
        for row in rows:
            if row.shape[0] != expected:
                raise DimensionMismatch(expected, row.shape[0]) from exc
        raise


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """L2 norm of ``a - b``.

    Raises:
        DimensionMismatch: If ``a`` and ``b`` have different lengths.
    """
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0])
    return float(np.linalg.norm(a - b))
