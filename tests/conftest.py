import numpy as np
import pytest

from bisecting_kmeans import BisectingKMeansModel, ClusterNode, ServingConfig, bisect


@pytest.fixture
def serial_config():
    return ServingConfig(executor="serial", num_partitions=3)


@pytest.fixture
def two_leaf_tree():
    return ClusterNode(
        1, [5.0],
        left=ClusterNode(2, [0.0], weight=5.0),
        right=ClusterNode(3, [10.0], weight=5.0),
        height=10.0,
    )


@pytest.fixture
def three_leaf_tree():
    # root -> leaf A, internal(B, C)
    inner = ClusterNode(
        3, [8.0],
        left=ClusterNode(6, [7.0], weight=1.0),
        right=ClusterNode(7, [9.0], weight=1.0),
        height=2.0,
        weight=4.0,
    )
    return ClusterNode(1, [4.0], left=ClusterNode(2, [0.0], weight=4.0), right=inner, height=8.0)


@pytest.fixture
def blobs():
    rng = np.random.default_rng(42)
    return np.vstack([
        rng.normal(loc=0.0, scale=0.3, size=(60, 4)),
        rng.normal(loc=5.0, scale=0.3, size=(60, 4)),
        rng.normal(loc=-5.0, scale=0.3, size=(60, 4)),
        rng.normal(loc=10.0, scale=0.3, size=(60, 4)),
    ])


@pytest.fixture
def blob_model(blobs, serial_config):
    return BisectingKMeansModel(bisect(blobs, k=4, random_state=0), config=serial_config)
