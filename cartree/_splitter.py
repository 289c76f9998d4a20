# _splitter.py
import numpy as np

from ._partitioner import FEATURE_THRESHOLD, DensePartitioner
from ._utils import RAND_R_MAX, make_rand_state, rand_int, rand_uniform

INFINITY = np.inf

# A candidate must beat the current best by more than this relative margin,
# so among (numerically) equal improvements the first one scanned wins.
IMPROVEMENT_RTOL = 1e-12


class SplitRecord:
    """Best split found so far for a node: where to cut and what it gains."""

    def __init__(self, start_pos=0):
        self.feature = 0
        self.threshold = 0.0
        self.pos = start_pos
        self.improvement = -INFINITY
        self.impurity_left = INFINITY
        self.impurity_right = INFINITY

    def __repr__(self):
        return (f"SplitRecord(feature={self.feature}, threshold={self.threshold:.4f}, "
                f"pos={self.pos}, improvement={self.improvement:.4f})")


class ParentInfo:
    """Impurity of the node being split and the number of features known to
    be constant on it (inherited from its ancestors)."""

    def __init__(self, impurity=INFINITY, n_constant_features=0):
        self.impurity = impurity
        self.n_constant_features = n_constant_features


def _is_better(improvement, best_improvement):
    return (improvement > best_improvement and
            improvement - best_improvement > IMPROVEMENT_RTOL * abs(best_improvement))


class Splitter:
    """Abstract splitter class.

    Splitters are called by tree builders to find the best splits, one split
    at a time. The splitter owns the sample-index array ``samples``; every
    node is a contiguous range ``samples[start:end]`` of it and a successful
    split reorders that range so that the left child comes first.

    ``features`` is a permutation of the feature indices whose prefix holds
    the features found constant on the current branch, so that descendants
    never draw them again.
    """

    def __init__(self, criterion, max_features, min_samples_leaf, min_weight_leaf,
                 random_state):
        self.criterion = criterion
        self.max_features = max_features
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_leaf = min_weight_leaf
        self.random_state = random_state

        if random_state is None:
            seed = np.random.randint(0, RAND_R_MAX)
        elif hasattr(random_state, 'randint'):
            seed = random_state.randint(0, RAND_R_MAX)
        else:
            seed = int(random_state)
        self.rand_r_state = make_rand_state(seed)

        self.n_samples = 0
        self.n_features = 0
        self.weighted_n_samples = 0.0
        self.samples = None
        self.features = None
        self.constant_features = None
        self.feature_values = None
        self.partitioner = None
        self.y = None
        self.sample_weight = None

        self.start = 0
        self.end = 0

    def init(self, X, y, sample_weight):
        """Bind the training data.

        The sample-index permutation starts as the identity over all samples,
        zero-weight samples included.
        """
        self.n_samples, self.n_features = X.shape
        self.samples = np.arange(self.n_samples, dtype=np.intp)
        self.features = np.arange(self.n_features, dtype=np.intp)
        self.constant_features = np.empty(self.n_features, dtype=np.intp)
        self.feature_values = np.empty(self.n_samples, dtype=np.float64)

        if sample_weight is None:
            self.weighted_n_samples = float(self.n_samples)
        else:
            self.weighted_n_samples = float(np.sum(sample_weight))

        self.y = y
        self.sample_weight = sample_weight
        self.partitioner = DensePartitioner(X, self.samples, self.feature_values)
        return 0

    def node_reset(self, start, end):
        """Bind the criterion to samples[start:end]; return its weighted size."""
        self.start = start
        self.end = end
        self.criterion.init(self.y, self.sample_weight, self.weighted_n_samples,
                            self.samples, start, end)
        return self.criterion.weighted_n_node_samples

    def node_split(self, parent_record):
        """Search the split of the current node.

        Returns a SplitRecord with ``samples[start:end]`` reordered around it,
        or None when no admissible split has a positive improvement.
        """
        raise NotImplementedError()

    def find_best_split(self, start, end, parent_record=None):
        """Reset on samples[start:end] and search for its best split."""
        weighted_n_node_samples = self.node_reset(start, end)
        if parent_record is None:
            parent_record = ParentInfo(impurity=self.node_impurity())

        if (end - start < 2 * self.min_samples_leaf or
                weighted_n_node_samples < 2 * self.min_weight_leaf or
                weighted_n_node_samples <= 0.0):
            return None
        return self.node_split(parent_record)

    def node_value(self):
        return self.criterion.node_value()

    def node_impurity(self):
        return self.criterion.node_impurity()

    def _draw_features(self, parent_record, load_feature):
        """Yield ``(feature, min_value, max_value)`` for drawn features.

        Features are drawn without replacement with a Fisher-Yates scheme
        until ``max_features`` of them were visited; while all drawn features
        were constant the draw continues. ``load_feature(feature)`` copies the
        node's values of a feature into ``feature_values`` and returns their
        min and max. Constant features are not yielded; once the generator
        is exhausted they are recorded in ``parent_record`` for the children.

        Features are yielded in draw order, also when all of them are drawn;
        ties between features are therefore broken by the random state, not
        by feature index.

        ``features`` is laid out as::

            [known constants | newly found constants | undrawn | drawn]
             0               n_known                 n_total   f_i
        """
        features = self.features
        rand_state = self.rand_r_state

        n_known = parent_record.n_constant_features
        n_total = n_known
        n_found = 0
        n_drawn_known = 0
        n_visited = 0
        f_i = self.n_features

        while f_i > n_total and (n_visited < self.max_features or
                                 n_visited <= n_found + n_drawn_known):
            n_visited += 1
            f_j = rand_int(n_drawn_known, f_i - n_found, rand_state)

            if f_j < n_known:
                # constant on an ancestor, nothing to evaluate
                features[n_drawn_known], features[f_j] = features[f_j], features[n_drawn_known]
                n_drawn_known += 1
                continue

            # skip over the constants found on this node
            f_j += n_found
            feature = features[f_j]
            min_value, max_value = load_feature(feature)

            if max_value <= min_value + FEATURE_THRESHOLD:
                features[f_j], features[n_total] = features[n_total], feature
                n_found += 1
                n_total += 1
                continue

            f_i -= 1
            features[f_i], features[f_j] = features[f_j], features[f_i]
            yield feature, min_value, max_value

        # known constants must keep their order for siblings and children
        features[:n_known] = self.constant_features[:n_known]
        self.constant_features[n_known:n_total] = features[n_known:n_total]
        parent_record.n_constant_features = n_total

    def _is_admissible(self, pos):
        """Check the leaf size constraints for a cut of the current node at pos.

        Advances the criterion to ``pos`` as a side effect.
        """
        if (pos - self.start < self.min_samples_leaf or
                self.end - pos < self.min_samples_leaf):
            return False
        criterion = self.criterion
        criterion.update(pos)
        return (criterion.weighted_n_left >= self.min_weight_leaf and
                criterion.weighted_n_right >= self.min_weight_leaf)

    def _commit(self, best_split, parent_record):
        """Partition samples[start:end] around best_split and refresh its statistics."""
        criterion = self.criterion
        best_split.pos = self.partitioner.partition_samples_final(
            best_split.pos, best_split.threshold, best_split.feature)

        criterion.reset()
        criterion.update(best_split.pos)
        best_split.impurity_left, best_split.impurity_right = criterion.children_impurity()
        best_split.improvement = criterion.impurity_improvement(
            parent_record.impurity, best_split.impurity_left, best_split.impurity_right)
        return best_split


class BestSplitter(Splitter):
    """Splitter for finding the best split on dense data.

    Every drawn feature is sorted on the node and each boundary between two
    distinct values is evaluated; the threshold is their midpoint.
    """

    def node_split(self, parent_record):
        start, end = self.start, self.end
        criterion = self.criterion
        partitioner = self.partitioner
        feature_values = self.feature_values
        impurity = parent_record.impurity

        def load_sorted(feature):
            partitioner.sort_samples_and_feature_values(feature)
            return feature_values[start], feature_values[end - 1]

        partitioner.init_node_split(start, end)
        best_split = None
        best_improvement = 0.0

        for feature, _, _ in self._draw_features(parent_record, load_sorted):
            criterion.reset()
            p_prev, p = start, start

            while p < end:
                p_prev, p = partitioner.next_p(p_prev, p)
                if p >= end or not self._is_admissible(p):
                    continue

                impurity_left, impurity_right = criterion.children_impurity()
                improvement = criterion.impurity_improvement(
                    impurity, impurity_left, impurity_right)
                if not _is_better(improvement, best_improvement):
                    continue

                best_improvement = improvement
                if best_split is None:
                    best_split = SplitRecord(end)
                best_split.feature = feature
                best_split.pos = p
                best_split.improvement = improvement
                best_split.impurity_left = impurity_left
                best_split.impurity_right = impurity_right
                best_split.threshold = self._midpoint(feature_values[p_prev], feature_values[p])

        if best_split is None:
            return None
        return self._commit(best_split, parent_record)

    @staticmethod
    def _midpoint(lower, upper):
        # halves keep the sum finite for huge values
        threshold = lower / 2.0 + upper / 2.0
        if threshold == upper or threshold == INFINITY or threshold == -INFINITY:
            threshold = lower
        return float(threshold)


class RandomSplitter(Splitter):
    """Splitter for finding the best random split on dense data.

    For every drawn feature one threshold is drawn uniformly between its
    min and max on the node; the best of these candidates wins.
    """

    def node_split(self, parent_record):
        start, end = self.start, self.end
        criterion = self.criterion
        partitioner = self.partitioner
        rand_state = self.rand_r_state
        impurity = parent_record.impurity

        partitioner.init_node_split(start, end)
        best_split = None
        best_improvement = 0.0

        for feature, min_value, max_value in self._draw_features(
                parent_record, partitioner.find_min_max):
            threshold = rand_uniform(min_value, max_value, rand_state)
            if threshold == max_value:
                threshold = min_value

            pos = partitioner.partition_samples(threshold)
            criterion.reset()
            if not self._is_admissible(pos):
                continue

            impurity_left, impurity_right = criterion.children_impurity()
            improvement = criterion.impurity_improvement(
                impurity, impurity_left, impurity_right)
            if not _is_better(improvement, best_improvement):
                continue

            best_improvement = improvement
            if best_split is None:
                best_split = SplitRecord(end)
            best_split.feature = feature
            best_split.threshold = float(threshold)
            best_split.pos = pos
            best_split.improvement = improvement
            best_split.impurity_left = impurity_left
            best_split.impurity_right = impurity_right

        if best_split is None:
            return None
        return self._commit(best_split, parent_record)


DENSE_SPLITTERS = {"best": BestSplitter, "random": RandomSplitter}
