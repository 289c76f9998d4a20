"""Shared fixtures and tree-walking helpers for the cartree test suite."""

from __future__ import annotations

import numpy as np
import pytest

from cartree._tree import TREE_LEAF


def iter_internal_nodes(tree):
    """Yield (node_id, node) for every split node of a fitted tree."""
    for node_id, node in enumerate(tree.nodes):
        if node.feature != TREE_LEAF:
            yield node_id, node


def iter_leaves(tree):
    """Yield (node_id, node) for every leaf of a fitted tree."""
    for node_id, node in enumerate(tree.nodes):
        if node.feature == TREE_LEAF:
            yield node_id, node


@pytest.fixture
def step_data() -> tuple[np.ndarray, np.ndarray]:
    """Four points on one feature with a step between x=1 and x=2."""
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array([0.0, 0.0, 10.0, 10.0])
    return X, y


@pytest.fixture
def blobs_data() -> tuple[np.ndarray, np.ndarray]:
    """Three noisy classes on four features, two of them informative."""
    rng = np.random.RandomState(0)
    n_per_class = 40
    centers = np.array([[0.0, 0.0], [3.0, 0.0], [0.0, 3.0]])
    informative = np.vstack([
        center + rng.normal(scale=1.0, size=(n_per_class, 2)) for center in centers
    ])
    noise = rng.uniform(size=(3 * n_per_class, 2))
    X = np.hstack([informative, noise])
    y = np.repeat(np.arange(3), n_per_class)
    return X, y


@pytest.fixture
def regression_data() -> tuple[np.ndarray, np.ndarray]:
    """Float32-exact features and a piecewise target with noise."""
    rng = np.random.RandomState(42)
    X = np.round(rng.uniform(size=(200, 3)) * 1000.0) / 8.0
    y = np.where(X[:, 0] > 60.0, 5.0, -5.0) + 0.01 * X[:, 1] + rng.normal(scale=0.5, size=200)
    return X, y
