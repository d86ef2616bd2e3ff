"""
Bisecting K-Means
=================

Serving for hierarchical cluster trees produced by bisecting k-means:
nearest-center prediction for single points, local batches and partitioned
datasets, aggregate error, and export of the tree as an edge list or as a
dendrogram linkage matrix.

Example:
--------
    >>> import numpy as np
    >>> from bisecting_kmeans import fit
    >>>
    >>> data = np.random.random((1000, 10))
    >>> model = fit(data, k=8, random_state=0)
    >>>
    >>> labels = model.predict(data)
    >>> cost = model.wssse(data)
    >>> linkage = model.linkage_array()
"""

import logging

from .version import __version__
from .exceptions import BisectingKMeansError, DimensionMismatch, EmptyCenterSet
from .metrics import as_vector, euclidean_distance
from .node import ClusterNode
from .search import find_closest_center
from .config import ServingConfig, get_serving_config
from .distributed import Broadcast, PartitionRunner, PartitionedDataset
from .model import BisectingKMeansModel
from .builder import bisect, fit

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'BisectingKMeansModel',
    'ClusterNode',
    'PartitionedDataset',
    'PartitionRunner',
    'Broadcast',
    'ServingConfig',
    'get_serving_config',
    'find_closest_center',
    'euclidean_distance',
    'as_vector',
    'bisect',
    'fit',
    'BisectingKMeansError',
    'DimensionMismatch',
    'EmptyCenterSet',
    '__version__',
]
