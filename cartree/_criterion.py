# _criterion.py
import numpy as np

from ._utils import log
from .exceptions import InvalidInputError


class Criterion:
    """Interface for impurity criteria.

    A criterion is bound to the samples ``sample_indices[start:end]`` of one
    node by ``init``. During a split search the samples are moved to the left
    child one at a time with ``update``; the running sums give the children
    impurities without rescanning the node.
    """

    def __init__(self, n_samples):
        self.n_samples = n_samples

        # Buffers
        self.y = None
        self.sample_weight = None
        self.sample_indices = None

        # Node state
        self.start = 0
        self.end = 0
        self.pos = 0
        self.n_node_samples = 0
        self.weighted_n_samples = 0.0
        self.weighted_n_node_samples = 0.0
        self.weighted_n_left = 0.0
        self.weighted_n_right = 0.0

    def init(self, y, sample_weight, weighted_n_samples, sample_indices, start, end):
        """Initialize the criterion at node sample_indices[start:end]."""
        if end <= start:
            raise InvalidInputError(f"empty node range [{start}, {end})")
        if start < 0 or end > len(sample_indices):
            raise InvalidInputError(
                f"node range [{start}, {end}) outside of {len(sample_indices)} samples")
        if len(y) < end - start:
            raise InvalidInputError(
                f"{len(y)} targets for a node of {end - start} samples")
        if sample_weight is not None and len(sample_weight) != len(y):
            raise InvalidInputError(
                f"{len(sample_weight)} sample weights for {len(y)} targets")

        self.y = y
        self.sample_weight = sample_weight
        self.sample_indices = sample_indices
        self.start = start
        self.end = end
        self.n_node_samples = end - start
        self.weighted_n_samples = weighted_n_samples

        self._init_sums()
        self.reset()
        return 0

    def _init_sums(self):
        raise NotImplementedError()

    def reset(self):
        """Reset the criterion at pos=start."""
        raise NotImplementedError()

    def reverse_reset(self):
        """Reset the criterion at pos=end."""
        raise NotImplementedError()

    def update(self, new_pos):
        """Move samples[pos:new_pos] to the left child.

        Moving backwards starts a new sweep from ``start``.
        """
        raise NotImplementedError()

    def node_impurity(self):
        """Impurity of samples[start:end]."""
        raise NotImplementedError()

    def children_impurity(self, pos=None):
        """Impurities of samples[start:pos] and samples[pos:end]."""
        raise NotImplementedError()

    def node_value(self):
        """Value to predict at samples[start:end]."""
        raise NotImplementedError()

    def impurity_improvement(self, impurity_parent, impurity_left, impurity_right,
                             weighted_n_left=None, weighted_n_right=None,
                             weighted_n_parent=None):
        """Weighted impurity decrease of a split.

        The decrease is scaled by the node's share of the total weight so
        that improvements of different nodes sum to a global score::

            N_t / N * (impurity - N_t_L / N_t * left_impurity
                                - N_t_R / N_t * right_impurity)
        """
        if weighted_n_left is None:
            weighted_n_left = self.weighted_n_left
        if weighted_n_right is None:
            weighted_n_right = self.weighted_n_right
        if weighted_n_parent is None:
            weighted_n_parent = self.weighted_n_node_samples

        if weighted_n_parent <= 0.0 or self.weighted_n_samples <= 0.0:
            return 0.0

        return ((weighted_n_parent / self.weighted_n_samples) *
                (impurity_parent
                 - (weighted_n_right / weighted_n_parent * impurity_right)
                 - (weighted_n_left / weighted_n_parent * impurity_left)))

    def _weight(self, idx):
        if self.sample_weight is None:
            return 1.0
        return self.sample_weight[idx]


class ClassificationCriterion(Criterion):
    """Abstract criterion for classification.

    ``y`` holds class codes in ``[0, n_classes)``; the node value is the
    weighted count of each class.
    """

    def __init__(self, n_samples, n_classes):
        super().__init__(n_samples)
        self.n_classes = n_classes

        self.sum_total = np.zeros(n_classes, dtype=np.float64)
        self.sum_left = np.zeros(n_classes, dtype=np.float64)
        self.sum_right = np.zeros(n_classes, dtype=np.float64)

    def _init_sums(self):
        self.sum_total.fill(0.0)
        self.weighted_n_node_samples = 0.0

        for p in range(self.start, self.end):
            idx = self.sample_indices[p]
            w = self._weight(idx)
            self.sum_total[self.y[idx]] += w
            self.weighted_n_node_samples += w

    def reset(self):
        self.pos = self.start
        self.weighted_n_left = 0.0
        self.weighted_n_right = self.weighted_n_node_samples
        self.sum_left.fill(0.0)
        self.sum_right[:] = self.sum_total
        return 0

    def reverse_reset(self):
        self.pos = self.end
        self.weighted_n_left = self.weighted_n_node_samples
        self.weighted_n_right = 0.0
        self.sum_left[:] = self.sum_total
        self.sum_right.fill(0.0)
        return 0

    def update(self, new_pos):
        if new_pos < self.pos:
            self.reset()

        samples = self.sample_indices
        y = self.y
        for p in range(self.pos, new_pos):
            idx = samples[p]
            w = self._weight(idx)
            self.sum_left[y[idx]] += w
            self.weighted_n_left += w

        self.weighted_n_right = self.weighted_n_node_samples - self.weighted_n_left
        np.subtract(self.sum_total, self.sum_left, out=self.sum_right)
        self.pos = new_pos
        return 0

    def node_impurity(self):
        return self._impurity(self.sum_total, self.weighted_n_node_samples)

    def children_impurity(self, pos=None):
        if pos is not None:
            self.update(pos)
        return (self._impurity(self.sum_left, self.weighted_n_left),
                self._impurity(self.sum_right, self.weighted_n_right))

    def node_value(self):
        return self.sum_total.copy()

    def _impurity(self, counts, weighted_n):
        raise NotImplementedError()


class Gini(ClassificationCriterion):
    r"""Gini Index impurity criterion.

    With p_c the weighted fraction of class c in the node::

        index = \sum_{c} p_c (1 - p_c)
    """

    def _impurity(self, counts, weighted_n):
        if weighted_n <= 0.0:
            return 0.0
        gini = 0.0
        for c in range(self.n_classes):
            p = counts[c] / weighted_n
            gini += p * (1.0 - p)
        return gini


class Entropy(ClassificationCriterion):
    r"""Cross Entropy impurity criterion.

    With p_c the weighted fraction of class c in the node::

        cross-entropy = -\sum_{c} p_c log2(p_c)

    Empty classes contribute nothing (0 log 0 = 0).
    """

    def _impurity(self, counts, weighted_n):
        if weighted_n <= 0.0:
            return 0.0
        entropy = 0.0
        for c in range(self.n_classes):
            count = counts[c]
            if count > 0.0:
                p = count / weighted_n
                entropy -= p * log(p)
        return entropy


class SquaredError(Criterion):
    """Weighted variance of the target (mean squared error).

    The node mean is computed first; running sums of ``w * (y - mean)`` and
    ``w * (y - mean)**2`` are then maintained for the node and its left
    child. Centred sums keep child variances exact when the target carries
    a large offset.
    """

    def __init__(self, n_samples):
        super().__init__(n_samples)
        self.mean = 0.0
        self.sum_total = 0.0
        self.sq_sum_total = 0.0
        self.sum_left = 0.0
        self.sum_right = 0.0
        self.sq_sum_left = 0.0

    def _init_sums(self):
        samples = self.sample_indices[self.start:self.end]
        y = self.y[samples]
        if self.sample_weight is None:
            w = np.ones(len(samples), dtype=np.float64)
        else:
            w = self.sample_weight[samples]

        self.weighted_n_node_samples = float(np.sum(w))
        if self.weighted_n_node_samples > 0.0:
            self.mean = float(np.sum(w * y)) / self.weighted_n_node_samples
        else:
            self.mean = 0.0

        diff = y - self.mean
        self.sum_total = float(np.sum(w * diff))
        self.sq_sum_total = float(np.sum(w * diff * diff))

    def reset(self):
        self.pos = self.start
        self.weighted_n_left = 0.0
        self.weighted_n_right = self.weighted_n_node_samples
        self.sum_left = 0.0
        self.sq_sum_left = 0.0
        self.sum_right = self.sum_total
        return 0

    def reverse_reset(self):
        self.pos = self.end
        self.weighted_n_left = self.weighted_n_node_samples
        self.weighted_n_right = 0.0
        self.sum_left = self.sum_total
        self.sq_sum_left = self.sq_sum_total
        self.sum_right = 0.0
        return 0

    def update(self, new_pos):
        if new_pos < self.pos:
            self.reset()

        samples = self.sample_indices
        y = self.y
        mean = self.mean
        for p in range(self.pos, new_pos):
            idx = samples[p]
            w = self._weight(idx)
            diff = y[idx] - mean
            self.sum_left += w * diff
            self.sq_sum_left += w * diff * diff
            self.weighted_n_left += w

        self.weighted_n_right = self.weighted_n_node_samples - self.weighted_n_left
        self.sum_right = self.sum_total - self.sum_left
        self.pos = new_pos
        return 0

    def node_impurity(self):
        return self._variance(self.sum_total, self.sq_sum_total, self.weighted_n_node_samples)

    def children_impurity(self, pos=None):
        if pos is not None:
            self.update(pos)
        sq_sum_right = self.sq_sum_total - self.sq_sum_left
        return (self._variance(self.sum_left, self.sq_sum_left, self.weighted_n_left),
                self._variance(self.sum_right, sq_sum_right, self.weighted_n_right))

    def node_value(self):
        if self.weighted_n_node_samples <= 0.0:
            return np.zeros(1, dtype=np.float64)
        return np.array([self.mean + self.sum_total / self.weighted_n_node_samples],
                        dtype=np.float64)

    @staticmethod
    def _variance(sum_diff, sq_sum_diff, weighted_n):
        # sums are centred on the node mean
        if weighted_n <= 0.0:
            return 0.0
        shift = sum_diff / weighted_n
        # rounding can push the difference slightly below zero
        return max(sq_sum_diff / weighted_n - shift * shift, 0.0)


CRITERIA_CLF = {"gini": Gini, "entropy": Entropy, "log_loss": Entropy}
CRITERIA_REG = {"squared_error": SquaredError}
