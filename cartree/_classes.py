"""
This module gathers the decision tree estimators.

BaseDecisionTree validates the training data, builds the criterion,
splitter and tree builder selected by the hyperparameters, and answers
predictions from the fitted Tree. DecisionTreeClassifier and
DecisionTreeRegressor only add the task specific parts: class encoding and
class weights, probabilities, and the regression output.
"""
from abc import ABCMeta, abstractmethod
from math import log2, sqrt

import numpy as np
from loguru import logger
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.utils import check_random_state
from sklearn.utils.class_weight import compute_sample_weight

from ._criterion import CRITERIA_CLF, CRITERIA_REG
from ._options import classifier_options, regressor_options
from ._splitter import DENSE_SPLITTERS
from ._tree import (
    MAX_DEPTH_UNBOUNDED, BestFirstTreeBuilder, DepthFirstTreeBuilder, Tree
)
from ._utils import RAND_R_MAX
from .exceptions import (
    InvalidConfigurationError, InvalidInputError, NotFittedError, ShapeMismatchError
)

__all__ = [
    "BaseDecisionTree",
    "DecisionTreeClassifier",
    "DecisionTreeRegressor",
]

DOUBLE = np.float64


# =============================================================================
# Base decision tree
# =============================================================================


class BaseDecisionTree(BaseEstimator, metaclass=ABCMeta):
    """Base class for decision trees.

    Warning: This class should not be used directly.
    Use derived classes instead.
    """

    _is_classification = False

    @abstractmethod
    def __init__(
        self,
        *,
        criterion,
        splitter,
        max_depth,
        min_samples_split,
        min_samples_leaf,
        min_weight_fraction_leaf,
        max_features,
        max_leaf_nodes,
        random_state,
        class_weight=None,
    ):
        self.criterion = criterion
        self.splitter = splitter
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_fraction_leaf = min_weight_fraction_leaf
        self.max_features = max_features
        self.max_leaf_nodes = max_leaf_nodes
        self.random_state = random_state
        self.class_weight = class_weight

        self._check_options()

    @abstractmethod
    def _make_options(self):
        """Return the OptionSet describing this estimator's parameters."""

    def _check_options(self):
        """Validate the current parameters; raises InvalidConfigurationError."""
        return self._make_options().update_from_estimator(self)

    def get_depth(self):
        """Return the depth of the decision tree (0 for a single leaf)."""
        self._check_is_fitted()
        return self.tree_.max_depth

    def get_n_leaves(self):
        """Return the number of leaves of the decision tree."""
        self._check_is_fitted()
        return self.tree_.n_leaves

    def _fit(self, X, y, sample_weight=None):
        options = self._check_options()

        X = self._check_X(X)
        n_samples, n_features = X.shape
        y = self._check_y(y, n_samples)
        sample_weight = self._check_sample_weight(sample_weight, n_samples)

        if self._is_classification:
            classes, y_encoded = np.unique(y, return_inverse=True)
            y_encoded = np.ascontiguousarray(y_encoded.reshape(-1), dtype=np.intp)
            n_classes = classes.shape[0]
            sample_weight = self._apply_class_weight(options['class_weight'], y,
                                                     classes, sample_weight)
        else:
            classes = None
            y_encoded = y
            n_classes = 1

        if sample_weight is None:
            weighted_n_samples = float(n_samples)
        else:
            weighted_n_samples = float(np.sum(sample_weight))
        if not weighted_n_samples > 0.0:
            raise InvalidInputError("Sum of sample weights must be positive, got %r"
                                    % weighted_n_samples)

        max_depth = options['max_depth']
        if max_depth is None:
            max_depth = MAX_DEPTH_UNBOUNDED
        max_features = self._resolve_max_features(options['max_features'], n_features)
        min_weight_leaf = options['min_weight_fraction_leaf'] * weighted_n_samples

        random_state = check_random_state(options['random_state'])
        seed = random_state.randint(0, RAND_R_MAX)

        if self._is_classification:
            criterion = CRITERIA_CLF[options['criterion']](n_samples, n_classes)
        else:
            criterion = CRITERIA_REG[options['criterion']](n_samples)

        splitter = DENSE_SPLITTERS[options['splitter']](
            criterion,
            max_features,
            options['min_samples_leaf'],
            min_weight_leaf,
            seed,
        )

        max_leaf_nodes = options['max_leaf_nodes']
        if max_leaf_nodes is None:
            builder = DepthFirstTreeBuilder(
                splitter,
                options['min_samples_split'],
                options['min_samples_leaf'],
                min_weight_leaf,
                max_depth,
            )
        else:
            builder = BestFirstTreeBuilder(
                splitter,
                options['min_samples_split'],
                options['min_samples_leaf'],
                min_weight_leaf,
                max_depth,
                max_leaf_nodes,
            )

        # Grow into a fresh tree; a failure leaves any previous fit untouched
        tree = Tree(n_features, n_classes)
        builder.build(tree, X, y_encoded, sample_weight)

        self.n_features_in_ = n_features
        self.n_outputs_ = 1
        self.max_features_ = max_features
        if self._is_classification:
            self.classes_ = classes
            self.n_classes_ = n_classes
        self.tree_ = tree

        logger.info("Fitted {} on {} samples x {} features: {} nodes, {} leaves, depth {}",
                    type(self).__name__, n_samples, n_features,
                    tree.node_count, tree.n_leaves, tree.max_depth)
        return self

    def _check_X(self, X):
        try:
            X = np.asarray(X, dtype=DOUBLE)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"X must be numeric: {e}") from e
        if X.ndim != 2:
            raise ShapeMismatchError(
                f"Expected a 2D array for X, got {X.ndim} dimension(s)",
                expected=2, actual=X.ndim)
        if X.shape[0] == 0:
            raise InvalidInputError("Found an empty training set (0 samples)")
        if X.shape[1] == 0:
            raise InvalidInputError("X has 0 features")
        if not np.all(np.isfinite(X)):
            raise InvalidInputError("X contains NaN or infinity")
        return X

    def _check_y(self, y, n_samples):
        y = np.asarray(y)
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()
        if y.ndim != 1:
            raise ShapeMismatchError(
                f"y must be a single target column, got shape {y.shape}",
                expected=(n_samples,), actual=y.shape)
        if y.shape[0] != n_samples:
            raise ShapeMismatchError(
                f"X has {n_samples} samples but y has {y.shape[0]}",
                expected=n_samples, actual=y.shape[0])

        if not self._is_classification:
            try:
                y = np.ascontiguousarray(y, dtype=DOUBLE)
            except (TypeError, ValueError) as e:
                raise InvalidInputError(f"y must be numeric for regression: {e}") from e
            if not np.all(np.isfinite(y)):
                raise InvalidInputError("y contains NaN or infinity")
        return y

    def _check_sample_weight(self, sample_weight, n_samples):
        if sample_weight is None:
            return None
        sample_weight = np.asarray(sample_weight, dtype=DOUBLE)
        if sample_weight.size == 0:
            # empty weights mean all samples are equally weighted
            return None
        if sample_weight.ndim != 1 or sample_weight.shape[0] != n_samples:
            raise ShapeMismatchError(
                f"sample_weight has shape {sample_weight.shape}, expected ({n_samples},)",
                expected=(n_samples,), actual=sample_weight.shape)
        if not np.all(np.isfinite(sample_weight)):
            raise InvalidInputError("sample_weight contains NaN or infinity")
        if np.any(sample_weight < 0):
            raise InvalidInputError("sample_weight must be non-negative")
        return np.ascontiguousarray(sample_weight)

    def _apply_class_weight(self, class_weight, y, classes, sample_weight):
        """Multiply the per-class weights into the sample weights."""
        if class_weight is None:
            return sample_weight

        if not isinstance(class_weight, (str, dict)):
            weights = list(class_weight)
            if len(weights) != len(classes):
                raise InvalidConfigurationError(
                    f"class_weight has {len(weights)} entries but y has {len(classes)} classes",
                    parameter="class_weight", value=class_weight)
            class_weight = dict(zip(classes.tolist(), weights))

        try:
            expanded_class_weight = compute_sample_weight(class_weight, y)
        except ValueError as e:
            raise InvalidConfigurationError(str(e), parameter="class_weight",
                                            value=class_weight) from e

        if sample_weight is None:
            return np.ascontiguousarray(expanded_class_weight, dtype=DOUBLE)
        return sample_weight * expanded_class_weight

    def _resolve_max_features(self, max_features, n_features):
        if max_features is None or max_features == "all":
            return n_features
        if max_features == "sqrt":
            return max(1, int(sqrt(n_features)))
        if max_features == "log2":
            return max(1, int(log2(n_features)))
        if isinstance(max_features, int):
            if max_features > n_features:
                raise InvalidConfigurationError(
                    f"max_features must be in [1, {n_features}], got {max_features}",
                    parameter="max_features", value=max_features)
            return max_features
        return max(1, int(max_features * n_features))

    def _check_is_fitted(self):
        if getattr(self, "tree_", None) is None:
            raise NotFittedError(
                f"This {type(self).__name__} instance is not fitted yet. Call 'fit' "
                "with appropriate arguments before using this estimator.")

    def _validate_X_predict(self, X):
        """Validate the training data on predict (probabilities)."""
        self._check_is_fitted()
        try:
            X = np.asarray(X, dtype=DOUBLE)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"X must be numeric: {e}") from e
        if X.ndim != 2:
            raise ShapeMismatchError(
                f"Expected a 2D array for X, got {X.ndim} dimension(s)",
                expected=2, actual=X.ndim)
        if X.shape[1] != self.n_features_in_:
            raise ShapeMismatchError(
                f"X has {X.shape[1]} features, but {type(self).__name__} is "
                f"expecting {self.n_features_in_} features as input",
                expected=self.n_features_in_, actual=X.shape[1])
        if not np.all(np.isfinite(X)):
            raise InvalidInputError("X contains NaN or infinity")
        return X

    def predict(self, X):
        """Predict class or regression value for X.

        For a classification model, the predicted class for each sample in X is
        returned. For a regression model, the predicted value based on X is
        returned.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            The input samples.

        Returns
        -------
        y : ndarray of shape (n_samples,)
            The predicted classes, or the predict values.
        """
        X = self._validate_X_predict(X)
        proba = self.tree_.predict(X)

        if self._is_classification:
            return self.classes_.take(np.argmax(proba, axis=1), axis=0)
        return proba[:, 0]

    def apply(self, X):
        """Return the index of the leaf that each sample is predicted as."""
        X = self._validate_X_predict(X)
        return self.tree_.apply(X)

    def decision_path(self, X):
        """Return the decision path in the tree.

        Returns
        -------
        indicator : sparse matrix of shape (n_samples, n_nodes)
            Return a node indicator CSR matrix where non zero elements
            indicates that the samples goes through the nodes.
        """
        X = self._validate_X_predict(X)
        return self.tree_.decision_path(X)

    def feature_importances(self):
        """Return the feature importances.

        The importance of a feature is computed as the (normalized) total
        reduction of the criterion brought by that feature. A tree that is a
        single leaf has all-zero importances.

        Returns
        -------
        feature_importances_ : ndarray of shape (n_features,)
        """
        self._check_is_fitted()
        return self.tree_.compute_feature_importances()

    @property
    def feature_importances_(self):
        return self.feature_importances()


# =============================================================================
# Public estimators
# =============================================================================


class DecisionTreeClassifier(ClassifierMixin, BaseDecisionTree):
    """A decision tree classifier.

    Parameters
    ----------
    criterion : {"gini", "entropy", "log_loss"}, default="gini"
        The function to measure the quality of a split.

    splitter : {"best", "random"}, default="best"
        The strategy used to choose the split at each node: the best
        threshold of each drawn feature, or one random threshold per feature.

    max_depth : int, default=None
        The maximum depth of the tree. If None, nodes are expanded until
        all leaves are pure or contain less than min_samples_split samples.

    min_samples_split : int, default=2
        The minimum number of samples required to split an internal node.

    min_samples_leaf : int, default=1
        The minimum number of samples required to be at a leaf node.

    min_weight_fraction_leaf : float, default=0.0
        The minimum weighted fraction of the sum total of weights (of all
        the input samples) required to be at a leaf node.

    max_features : int, float or {"all", "sqrt", "log2"}, default=None
        The number of features to consider when looking for the best split.
        None and "all" use every feature.

    max_leaf_nodes : int, default=None
        Grow a tree with ``max_leaf_nodes`` in best-first fashion.
        If None then unlimited number of leaf nodes.

    random_state : int, RandomState instance or None, default=None
        Controls the order in which features are drawn at each split and
        the thresholds of the random splitter.

    class_weight : dict, list, "balanced" or None, default=None
        Weights associated with classes, either ``{class_label: weight}`` or
        a list aligned with the sorted class labels. They are multiplied into
        the sample weights.

    proba_floor : float, default=1e-15
        Probabilities are clipped below at this value in
        ``predict_log_proba``.

    Attributes
    ----------
    classes_ : ndarray of shape (n_classes,)
    n_classes_ : int
    n_features_in_ : int
    max_features_ : int
    tree_ : Tree
    """

    _is_classification = True

    def __init__(
        self,
        *,
        criterion="gini",
        splitter="best",
        max_depth=None,
        min_samples_split=2,
        min_samples_leaf=1,
        min_weight_fraction_leaf=0.0,
        max_features=None,
        max_leaf_nodes=None,
        random_state=None,
        class_weight=None,
        proba_floor=1e-15,
    ):
        self.proba_floor = proba_floor
        super().__init__(
            criterion=criterion,
            splitter=splitter,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_weight_fraction_leaf=min_weight_fraction_leaf,
            max_features=max_features,
            max_leaf_nodes=max_leaf_nodes,
            random_state=random_state,
            class_weight=class_weight,
        )

    def _make_options(self):
        return classifier_options()

    def fit(self, X, y, sample_weight=None):
        """Build a decision tree classifier from the training set (X, y).

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            The training input samples.

        y : array-like of shape (n_samples,)
            The target values (class labels).

        sample_weight : array-like of shape (n_samples,), default=None
            Sample weights. If None or empty, then samples are equally weighted.

        Returns
        -------
        self : DecisionTreeClassifier
            Fitted estimator.
        """
        return self._fit(X, y, sample_weight=sample_weight)

    def predict_proba(self, X):
        """Predict class probabilities of the input samples X.

        The predicted class probability is the weighted fraction of samples
        of the same class in a leaf.
        """
        X = self._validate_X_predict(X)
        proba = self.tree_.predict(X)[:, :self.n_classes_]

        normalizer = proba.sum(axis=1)[:, np.newaxis]
        normalizer[normalizer == 0.0] = 1.0
        proba /= normalizer
        return proba

    def predict_log_proba(self, X):
        """Predict class log-probabilities of the input samples X."""
        proba = self.predict_proba(X)
        return np.log(np.clip(proba, self.proba_floor, None))


class DecisionTreeRegressor(RegressorMixin, BaseDecisionTree):
    """A decision tree regressor.

    Parameters are those of DecisionTreeClassifier, without class weights
    and probabilities; the only criterion is "squared_error" (weighted
    variance) and leaves predict the weighted mean of their targets.

    Attributes
    ----------
    n_features_in_ : int
    max_features_ : int
    tree_ : Tree
    """

    def __init__(
        self,
        *,
        criterion="squared_error",
        splitter="best",
        max_depth=None,
        min_samples_split=2,
        min_samples_leaf=1,
        min_weight_fraction_leaf=0.0,
        max_features=None,
        max_leaf_nodes=None,
        random_state=None,
    ):
        super().__init__(
            criterion=criterion,
            splitter=splitter,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_weight_fraction_leaf=min_weight_fraction_leaf,
            max_features=max_features,
            max_leaf_nodes=max_leaf_nodes,
            random_state=random_state,
        )

    def _make_options(self):
        return regressor_options()

    def fit(self, X, y, sample_weight=None):
        """Build a decision tree regressor from the training set (X, y).

        Returns
        -------
        self : DecisionTreeRegressor
            Fitted estimator.
        """
        return self._fit(X, y, sample_weight=sample_weight)
