"""Tests for DecisionTreeClassifier and DecisionTreeRegressor.

End-to-end scenarios on tiny datasets, boundary configurations, class
weights, probabilities, determinism, fit atomicity and parity with
scikit-learn's regressor.
"""

from __future__ import annotations

import numpy as np
import pytest
import sklearn.tree
from pytest_check import check
from sklearn.base import clone

from cartree import (
    DecisionTreeClassifier,
    DecisionTreeRegressor,
    compare_tree_structures,
)
from cartree._tree import TREE_LEAF, DepthFirstTreeBuilder


class TestEndToEnd:
    """Tiny datasets with a known tree."""

    def test_regression_step(self, step_data) -> None:
        """A single split between x=1 and x=2 with leaf values 0 and 10."""
        X, y = step_data
        reg = DecisionTreeRegressor(min_samples_split=2).fit(X, y)
        tree = reg.tree_

        with check:
            assert tree.node_count == 3
        with check:
            assert tree.feature[0] == 0
        with check:
            assert 1.0 < tree.threshold[0] < 2.0
        with check:
            assert tree.value[tree.children_left[0], 0] == 0.0
        with check:
            assert tree.value[tree.children_right[0], 0] == 10.0
        np.testing.assert_allclose(reg.predict([[0.2], [2.7]]), [0.0, 10.0])

    def test_classification_step(self, step_data) -> None:
        """Gini picks the same cut and the leaves hold pure class counts."""
        X, _ = step_data
        y = np.array([0, 0, 1, 1])
        clf = DecisionTreeClassifier().fit(X, y)
        tree = clf.tree_

        with check:
            assert 1.0 < tree.threshold[0] < 2.0
        np.testing.assert_allclose(tree.value[tree.children_left[0]], [2.0, 0.0])
        np.testing.assert_allclose(tree.value[tree.children_right[0]], [0.0, 2.0])
        np.testing.assert_allclose(clf.predict_proba([[1.0]]), [[1.0, 0.0]])

    def test_string_labels_round_trip(self, step_data) -> None:
        X, _ = step_data
        y = np.array(["cat", "cat", "dog", "dog"])
        clf = DecisionTreeClassifier().fit(X, y)

        with check:
            assert clf.classes_.tolist() == ["cat", "dog"]
        with check:
            assert clf.n_classes_ == 2
        with check:
            assert clf.predict([[0.0], [3.0]]).tolist() == ["cat", "dog"]

    def test_column_vector_target_is_accepted(self, step_data) -> None:
        X, y = step_data
        reg = DecisionTreeRegressor().fit(X, y.reshape(-1, 1))

        assert reg.get_n_leaves() == 2

    def test_fit_returns_self(self, step_data) -> None:
        X, y = step_data
        reg = DecisionTreeRegressor()

        assert reg.fit(X, y) is reg


class TestBoundaries:
    """Configurations that force a single leaf."""

    def test_large_min_samples_leaf_gives_single_leaf(self, blobs_data) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(min_samples_leaf=X.shape[0] // 2 + 1).fit(X, y)

        with check:
            assert clf.tree_.node_count == 1
        with check:
            assert clf.get_depth() == 0
        with check:
            assert np.all(clf.feature_importances() == 0.0)

    def test_constant_target_gives_single_leaf(self, regression_data) -> None:
        X, _ = regression_data
        y = np.full(X.shape[0], 3.25)
        reg = DecisionTreeRegressor(max_depth=None, min_samples_split=2).fit(X, y)

        with check:
            assert reg.get_n_leaves() == 1
        with check:
            assert reg.tree_.impurity[0] == pytest.approx(0.0, abs=1e-12)
        np.testing.assert_allclose(reg.predict(X[:5]), 3.25)

    def test_single_class_gives_single_leaf(self, blobs_data) -> None:
        X, _ = blobs_data
        clf = DecisionTreeClassifier().fit(X, np.zeros(X.shape[0], dtype=int))

        with check:
            assert clf.get_n_leaves() == 1
        np.testing.assert_allclose(clf.predict_proba(X[:3]), [[1.0]] * 3)

    def test_single_sample(self) -> None:
        reg = DecisionTreeRegressor().fit([[1.0, 2.0]], [7.0])

        with check:
            assert reg.get_n_leaves() == 1
        with check:
            assert reg.predict([[0.0, 0.0]]).tolist() == [7.0]

    def test_min_samples_split_stops_growth(self, step_data) -> None:
        X, y = step_data
        reg = DecisionTreeRegressor(min_samples_split=5).fit(X, y)

        assert reg.get_n_leaves() == 1

    def test_max_depth_one_is_a_stump(self, regression_data) -> None:
        X, y = regression_data
        reg = DecisionTreeRegressor(max_depth=1).fit(X, y)

        with check:
            assert reg.get_depth() == 1
        with check:
            assert reg.get_n_leaves() == 2

    def test_large_target_offset_keeps_the_splits(self) -> None:
        """Shifting y by a constant moves leaf values, never the splits."""
        rng = np.random.RandomState(7)
        X = np.round(rng.uniform(size=(60, 3)) * 800.0) / 8.0
        y = (np.where(X[:, 0] > 60.0, 10.0, 0.0) + np.where(X[:, 1] > 40.0, 3.0, 0.0)
             + rng.normal(scale=0.1, size=60))

        reg = DecisionTreeRegressor(max_depth=2, random_state=0).fit(X, y)
        shifted = DecisionTreeRegressor(max_depth=2, random_state=0).fit(X, y + 1e9)

        with check:
            np.testing.assert_array_equal(shifted.tree_.feature, reg.tree_.feature)
        with check:
            np.testing.assert_array_equal(shifted.tree_.threshold, reg.tree_.threshold)
        with check:
            assert shifted.tree_.feature[0] == 0
        np.testing.assert_allclose(shifted.predict(X) - 1e9, reg.predict(X), atol=1e-5)

    def test_zero_weight_samples_are_ignored(self, step_data) -> None:
        """Samples with weight 0 do not move leaf values."""
        X, y = step_data
        X = np.vstack([X, [[0.5]]])
        y = np.append(y, 1000.0)
        weights = np.array([1.0, 1.0, 1.0, 1.0, 0.0])
        reg = DecisionTreeRegressor(max_depth=1).fit(X, y, sample_weight=weights)

        np.testing.assert_allclose(reg.predict([[0.0], [3.0]]), [0.0, 10.0])

    def test_min_weight_fraction_leaf(self, step_data) -> None:
        """A leaf must carry at least the configured share of the total weight."""
        X, y = step_data
        weights = np.array([1.0, 1.0, 1.0, 7.0])
        reg = DecisionTreeRegressor(min_weight_fraction_leaf=0.5).fit(X, y, sample_weight=weights)
        tree = reg.tree_

        for node_id in range(tree.node_count):
            if tree.feature[node_id] == TREE_LEAF:
                with check:
                    assert tree.weighted_n_node_samples[node_id] >= 0.5 * weights.sum()


class TestPredictions:
    """Probabilities, importances and traversal helpers."""

    def test_predict_proba_rows_sum_to_one(self, blobs_data) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(max_depth=3, random_state=0).fit(X, y)

        proba = clf.predict_proba(X)

        with check:
            assert proba.shape == (X.shape[0], 3)
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)
        with check:
            assert np.array_equal(clf.classes_[proba.argmax(axis=1)], clf.predict(X))

    def test_predict_log_proba_is_finite(self, step_data) -> None:
        """Zero probabilities are clipped to proba_floor before the log."""
        X, _ = step_data
        clf = DecisionTreeClassifier(proba_floor=1e-10).fit(X, [0, 0, 1, 1])

        log_proba = clf.predict_log_proba([[0.0]])

        with check:
            assert np.all(np.isfinite(log_proba))
        with check:
            assert log_proba[0, 0] == pytest.approx(0.0)
        with check:
            assert log_proba[0, 1] == pytest.approx(np.log(1e-10))

    def test_predict_is_idempotent(self, blobs_data) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(random_state=0).fit(X, y)

        assert np.array_equal(clf.predict(X), clf.predict(X))

    def test_fully_grown_classifier_fits_training_set(self, blobs_data) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(random_state=0).fit(X, y)

        assert clf.score(X, y) == 1.0

    @pytest.mark.parametrize("criterion", ["gini", "entropy", "log_loss"])
    def test_feature_importances_sum_to_one(self, blobs_data, criterion: str) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(criterion=criterion, max_depth=4, random_state=0).fit(X, y)

        importances = clf.feature_importances()

        with check:
            assert importances.sum() == pytest.approx(1.0)
        with check:
            assert np.all(importances >= 0.0)
        with check:
            assert importances[:2].sum() > importances[2:].sum(), "informative features dominate"
        np.testing.assert_array_equal(clf.feature_importances_, importances)

    def test_decision_path_ends_at_apply(self, blobs_data) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(max_depth=4, random_state=0).fit(X, y)

        indicator = clf.decision_path(X)
        leaves = clf.apply(X)

        for i in range(0, X.shape[0], 7):
            row = indicator[i].indices
            with check:
                assert row.max() == leaves[i]

    def test_get_depth_and_leaves(self, regression_data) -> None:
        X, y = regression_data
        reg = DecisionTreeRegressor(max_depth=4).fit(X, y)

        with check:
            assert reg.get_depth() <= 4
        with check:
            assert reg.get_n_leaves() == len(np.unique(reg.apply(X)))


class TestDeterminism:
    """Same data and random_state give the same tree."""

    @pytest.mark.parametrize("splitter", ["best", "random"])
    def test_same_random_state_same_tree(self, blobs_data, splitter: str) -> None:
        X, y = blobs_data
        kwargs = dict(splitter=splitter, max_features=2, random_state=13)
        tree_a = DecisionTreeClassifier(**kwargs).fit(X, y)
        tree_b = DecisionTreeClassifier(**kwargs).fit(X, y)

        with check:
            assert compare_tree_structures(tree_a, tree_b) is None
        with check:
            assert np.array_equal(tree_a.tree_.value, tree_b.tree_.value)

    def test_random_state_instance_is_accepted(self, regression_data) -> None:
        X, y = regression_data
        reg_a = DecisionTreeRegressor(splitter="random", random_state=np.random.RandomState(5))
        reg_b = DecisionTreeRegressor(splitter="random", random_state=np.random.RandomState(5))

        reg_a.fit(X, y)
        reg_b.fit(X, y)

        assert compare_tree_structures(reg_a, reg_b) is None

    def test_refit_gives_same_tree(self, regression_data) -> None:
        X, y = regression_data
        reg = DecisionTreeRegressor(splitter="random", max_features="sqrt", random_state=1)
        first = reg.fit(X, y).tree_
        second = reg.fit(X, y).tree_

        with check:
            assert first is not second
        with check:
            assert compare_tree_structures(first, second) is None

    @pytest.mark.parametrize("seed", range(6))
    def test_tied_features_follow_the_random_state(self, step_data, seed: int) -> None:
        """Two identical columns: the seed picks which one splits, every time."""
        X, y = step_data
        X = np.hstack([X, X])
        roots = {
            DecisionTreeRegressor(random_state=seed).fit(X, y).tree_.feature[0]
            for _ in range(3)
        }

        assert len(roots) == 1 and roots <= {0, 1}

    def test_clone_keeps_parameters(self) -> None:
        clf = DecisionTreeClassifier(max_depth=3, class_weight="balanced", proba_floor=1e-8)

        params = clone(clf).get_params()

        with check:
            assert params["max_depth"] == 3
        with check:
            assert params["class_weight"] == "balanced"
        with check:
            assert params["proba_floor"] == 1e-8


class TestMaxFeatures:
    @pytest.mark.parametrize(
        ("max_features", "expected"),
        [(None, 4), ("all", 4), ("sqrt", 2), ("log2", 2), (3, 3), (0.5, 2), (0.1, 1)],
    )
    def test_resolution(self, blobs_data, max_features, expected: int) -> None:
        X, y = blobs_data
        clf = DecisionTreeClassifier(max_features=max_features, random_state=0).fit(X, y)

        assert clf.max_features_ == expected


class TestClassWeight:
    """Class weights are multiplied into the sample weights."""

    def test_dict_weights_scale_node_weight(self, step_data) -> None:
        X, _ = step_data
        y = np.array([0, 0, 1, 1])
        clf = DecisionTreeClassifier(class_weight={0: 2.0}).fit(X, y)

        with check:
            assert clf.tree_.weighted_n_node_samples[0] == pytest.approx(6.0)
        np.testing.assert_allclose(clf.tree_.value[0], [4.0, 2.0])

    def test_sequence_weights_follow_sorted_classes(self, step_data) -> None:
        X, _ = step_data
        y = np.array(["b", "b", "a", "a"])
        clf = DecisionTreeClassifier(class_weight=[3.0, 1.0]).fit(X, y)

        np.testing.assert_allclose(clf.tree_.value[0], [6.0, 2.0])

    def test_class_weight_combines_with_sample_weight(self, step_data) -> None:
        X, _ = step_data
        y = np.array([0, 0, 1, 1])
        clf = DecisionTreeClassifier(class_weight=[1.0, 2.0]).fit(
            X, y, sample_weight=[1.0, 1.0, 0.5, 0.5])

        np.testing.assert_allclose(clf.tree_.value[0], [2.0, 2.0])

    def test_balanced_equalizes_class_mass(self) -> None:
        X = np.arange(10, dtype=np.float64).reshape(-1, 1)
        y = np.array([0] * 8 + [1] * 2)
        clf = DecisionTreeClassifier(class_weight="balanced").fit(X, y)

        root_value = clf.tree_.value[0]

        assert root_value[0] == pytest.approx(root_value[1])

    def test_empty_class_weight_means_uniform(self, step_data) -> None:
        X, _ = step_data
        y = np.array([0, 0, 1, 1])
        clf = DecisionTreeClassifier(class_weight=[]).fit(X, y)

        np.testing.assert_allclose(clf.tree_.value[0], [2.0, 2.0])


class TestFitAtomicity:
    """A failed fit leaves a previous fit untouched."""

    def test_build_failure_keeps_previous_tree(self, step_data, monkeypatch) -> None:
        X, y = step_data
        reg = DecisionTreeRegressor().fit(X, y)
        previous_tree = reg.tree_

        def failing_build(self, tree, X, y, sample_weight=None):
            raise MemoryError("could not append node")

        monkeypatch.setattr(DepthFirstTreeBuilder, "build", failing_build)

        with pytest.raises(MemoryError):
            reg.fit(X * 2.0, y)

        with check:
            assert reg.tree_ is previous_tree
        np.testing.assert_allclose(reg.predict([[0.0], [3.0]]), [0.0, 10.0])

    def test_invalid_refit_keeps_previous_classes(self, step_data) -> None:
        X, _ = step_data
        clf = DecisionTreeClassifier().fit(X, [0, 0, 1, 1])

        with pytest.raises(ValueError):
            clf.fit(X, ["a", "b", "c"])

        with check:
            assert clf.classes_.tolist() == [0, 1]
        with check:
            assert clf.predict([[3.0]]).tolist() == [1]


class TestSklearnParity:
    """Same splits as scikit-learn when every value is exact in float32."""

    @pytest.mark.parametrize("max_depth", [1, 3])
    def test_regressor_matches_sklearn(self, regression_data, max_depth: int) -> None:
        X, y = regression_data
        ours = DecisionTreeRegressor(max_depth=max_depth).fit(X, y)
        reference = sklearn.tree.DecisionTreeRegressor(max_depth=max_depth, random_state=0).fit(X, y)

        with check:
            assert ours.tree_.node_count == reference.tree_.node_count
        np.testing.assert_allclose(ours.predict(X), reference.predict(X), rtol=1e-10, atol=1e-10)
