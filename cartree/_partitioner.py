"""Sample partitioning for dense feature matrices.

The partitioner works on the splitter's sample-index array and its feature
value buffer, always restricted to the current node ``[start, end)``. Both
arrays are modified in place, so after a split the two children occupy
contiguous sub-ranges of their parent's range.
"""

import numpy as np


# Feature values closer than this are considered equal
FEATURE_THRESHOLD = 1e-7


class DensePartitioner:
    """Partitioner for dense feature matrices, shared by the best and random splitters."""

    def __init__(self, X, samples, feature_values):
        self.X = X
        self.samples = samples
        self.feature_values = feature_values
        self.start = 0
        self.end = 0

    def init_node_split(self, start, end):
        self.start = start
        self.end = end

    def _load(self, feature):
        node = slice(self.start, self.end)
        self.feature_values[node] = self.X[self.samples[node], feature]
        return node

    def sort_samples_and_feature_values(self, feature):
        """Sort the node's samples by one feature, keeping the values alongside.

        The sort is stable, so tied samples keep their relative order.
        """
        node = self._load(feature)
        order = np.argsort(self.feature_values[node], kind="mergesort")
        self.feature_values[node] = self.feature_values[node][order]
        self.samples[node] = self.samples[node][order]

    def find_min_max(self, feature):
        """Load the node's values of one feature and return their min and max."""
        values = self.feature_values[self._load(feature)]
        return float(values.min()), float(values.max())

    def next_p(self, p_prev, p):
        """Advance to the next cut point of the sorted feature values.

        Returns ``(p_prev, p)`` where ``p_prev`` is the last position of the
        current run of (nearly) equal values and ``p = p_prev + 1``. Values
        within FEATURE_THRESHOLD of their predecessor belong to the same run,
        so a cut at ``p`` never separates equal values. ``p >= end`` means no
        cut is left.
        """
        feature_values = self.feature_values
        while p + 1 < self.end and feature_values[p + 1] <= feature_values[p] + FEATURE_THRESHOLD:
            p += 1
        return p, p + 1

    def _split_node(self, goes_left):
        node = slice(self.start, self.end)
        samples = self.samples[node]
        values = self.feature_values[node]
        goes_right = ~goes_left

        n_left = int(np.count_nonzero(goes_left))
        self.samples[node] = np.concatenate((samples[goes_left], samples[goes_right]))
        self.feature_values[node] = np.concatenate((values[goes_left], values[goes_right]))
        return self.start + n_left

    def partition_samples(self, threshold):
        """Move samples whose loaded feature value is <= threshold to the front.

        Returns the position of the first sample on the right.
        """
        return self._split_node(self.feature_values[self.start:self.end] <= threshold)

    def partition_samples_final(self, best_pos, best_threshold, best_feature):
        """Partition samples[start:end] for X at best_threshold and best_feature.

        Returns the position of the first right-child sample, which equals
        ``best_pos`` for a split found by scanning this same node.
        """
        node_samples = self.samples[self.start:self.end]
        return self._split_node(self.X[node_samples, best_feature] <= best_threshold)
