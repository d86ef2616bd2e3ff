#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Bisecting K-Means 示例
======================

Train a cluster tree, serve predictions locally and over a partitioned
dataset, and plot the tree as a dendrogram.

Requires the ``plot`` extra (scipy, matplotlib).
"""

import numpy as np

from bisecting_kmeans import PartitionedDataset, ServingConfig, fit


def make_data(seed=0):
    rng = np.random.default_rng(seed)
    centers = rng.uniform(-20, 20, size=(6, 8))
    return np.vstack([rng.normal(loc=c, scale=1.0, size=(200, 8)) for c in centers])


def basic_usage_example(data):
    """基本使用示例"""
    print("=== Prediction ===")
    model = fit(data, k=6, random_state=0, config=ServingConfig(executor="serial"))
    print(model)

    labels = model.predict(data)
    print(f"First labels: {labels[:10].tolist()}")
    print(f"Label of first point: {model.predict(data[0])}")
    print(f"WSSSE: {model.wssse(data):.2f}")
    return model


def partitioned_example(model, data):
    """分区数据预测示例"""
    print("\n=== Partitioned prediction ===")
    dataset = PartitionedDataset.from_sequence(data, 8)
    for executor in ("thread", "process"):
        served = type(model)(model.node, config=ServingConfig(executor=executor, max_workers=4))
        labels = served.predict(dataset).collect()
        same = np.array_equal(labels, model.predict(data))
        print(f"{executor:>8}: {dataset.num_partitions} partitions, matches local: {same}, "
              f"WSSSE: {served.wssse(dataset):.2f}")


def dendrogram_example(model, path="bisecting_kmeans_dendrogram.png"):
    """树状图示例"""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    from scipy.cluster.hierarchy import dendrogram

    print("\n=== Tree export ===")
    for parent, child, weight in model.to_adjacency_list():
        print(f"  {parent:>3} -> {child:<3} weight={weight:.3f}")

    fig, ax = plt.subplots(figsize=(8, 4))
    dendrogram(model.linkage_array(), ax=ax)
    ax.set_title("Bisecting k-means cluster tree")
    ax.set_xlabel("leaf cluster")
    ax.set_ylabel("merge height")
    fig.tight_layout()
    fig.savefig(path)
    print(f"Dendrogram saved to {path}")


if __name__ == "__main__":
    data = make_data()
    model = basic_usage_example(data)
    partitioned_example(model, data)
    dendrogram_example(model)
