import numpy as np
import pytest

from bisecting_kmeans import BisectingKMeansModel, ServingConfig, bisect, builder, fit


def test_bisect_builds_requested_number_of_leaves(blobs):
    root = bisect(blobs, k=4, random_state=0)
    assert root.num_leaves() == 4
    assert len(root.internal_nodes()) == 3
    root.validate()
    assert sum(leaf.size for leaf in root.leaves()) == len(blobs)
    assert root.size == len(blobs)


def test_bisect_indices_are_heap_style(blobs):
    root = bisect(blobs, k=5, random_state=0)
    assert root.index == 1
    for node in root.internal_nodes():
        assert node.left.index == 2 * node.index
        assert node.right.index == 2 * node.index + 1


def test_bisect_weights_and_heights(blobs):
    root = bisect(blobs, k=4, random_state=0)
    assert root.weight == 0.0
    for node in root.internal_nodes():
        for child in node.children:
            assert child.weight == pytest.approx(np.linalg.norm(node.center - child.center))
            assert child.height <= node.height
        gap = np.linalg.norm(node.left.center - node.right.center)
        assert node.height == pytest.approx(max(node.left.height, node.right.height) + gap)
    for leaf in root.leaves():
        assert leaf.height == 0.0


def test_bisect_recovers_well_separated_blobs(blobs, serial_config):
    model = BisectingKMeansModel(bisect(blobs, k=4, random_state=0), config=serial_config)
    labels = model.predict(blobs)
    for start in range(0, len(blobs), 60):
        assert len(set(labels[start:start + 60].tolist())) == 1
    assert len(set(labels.tolist())) == 4


def test_bisect_stops_when_nothing_is_divisible():
    X = np.array([[1.0, 1.0]] * 5 + [[3.0, 3.0]] * 5)
    root = bisect(X, k=6, random_state=0)
    assert root.num_leaves() == 2
    assert sorted(leaf.size for leaf in root.leaves()) == [5, 5]


def test_bisect_respects_min_divisible_size():
    X = np.array([[0.0], [0.1], [10.0], [10.1], [10.2], [20.0]])
    root = bisect(X, k=10, min_divisible_size=4, random_state=0)
    assert all(leaf.size < 4 or leaf.cost == 0.0 for leaf in root.leaves())


def test_bisect_k_one_is_a_single_leaf(blobs):
    root = bisect(blobs, k=1)
    assert root.is_leaf
    assert np.allclose(root.center, blobs.mean(axis=0))


@pytest.mark.parametrize("kwargs", [{"k": 0}, {"k": 2, "min_divisible_size": 1}])
def test_bisect_rejects_bad_parameters(blobs, kwargs):
    with pytest.raises(ValueError):
        bisect(blobs, **kwargs)


def test_bisect_rejects_empty_data():
    with pytest.raises(ValueError):
        bisect(np.empty((0, 3)), k=2)


def test_fit_wraps_model(blobs):
    config = ServingConfig(executor="serial")
    model = fit(blobs, 3, random_state=0, config=config)
    assert isinstance(model, BisectingKMeansModel)
    assert model.k == 3
    assert model.config is config


def test_bisect_stops_before_indices_lose_float_precision(monkeypatch, blobs):
    monkeypatch.setattr(builder, "MAX_EXACT_INDEX", 7)
    root = bisect(blobs, k=10, random_state=0)
    indices = [node.index for node in root.iter_preorder()]
    assert max(indices) <= 7
    assert root.num_leaves() == 4
    rows = BisectingKMeansModel(root, config=ServingConfig(executor="serial")).to_adjacency_list_rows()
    assert [int(row[1]) for row in rows] == [child for _, child, _ in root.to_adjacency_list()]


def test_default_index_limit_is_exact_in_float():
    assert float(builder.MAX_EXACT_INDEX) == builder.MAX_EXACT_INDEX
    assert float(builder.MAX_EXACT_INDEX - 1) != float(builder.MAX_EXACT_INDEX)
