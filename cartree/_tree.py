# cartree/_tree.py
import heapq

import numpy as np
from loguru import logger
from scipy.sparse import csr_matrix

from ._splitter import ParentInfo
from .exceptions import ShapeMismatchError

INFINITY = np.inf
EPSILON = np.finfo('double').eps

TREE_LEAF = -1
TREE_UNDEFINED = -2

DOUBLE = np.float64

INTPTR_MAX = np.iinfo(np.intp).max

# Depth used when max_depth is unbounded
MAX_DEPTH_UNBOUNDED = np.iinfo(np.int32).max


class Node:
    """Node structure for tree.

    Leaves have ``feature == TREE_LEAF`` and both children set to ``TREE_LEAF``.
    """

    __slots__ = ('left_child', 'right_child', 'feature', 'threshold',
                 'impurity', 'n_node_samples', 'weighted_n_node_samples')

    def __init__(self, impurity=INFINITY, n_node_samples=0, weighted_n_node_samples=0.0):
        self.left_child = TREE_LEAF
        self.right_child = TREE_LEAF
        self.feature = TREE_LEAF
        self.threshold = float(TREE_UNDEFINED)
        self.impurity = impurity
        self.n_node_samples = n_node_samples
        self.weighted_n_node_samples = weighted_n_node_samples

    @property
    def is_leaf(self):
        return self.feature == TREE_LEAF

    def __repr__(self):
        return (f"Node(left={self.left_child}, right={self.right_child}, "
                f"feature={self.feature}, threshold={self.threshold:.4f}, "
                f"impurity={self.impurity:.4f}, samples={self.n_node_samples})")


class TreeBuilder:
    """Interface for different tree building strategies."""

    def build(self, tree, X, y, sample_weight=None):
        """Build a decision tree from the training set (X, y)."""
        raise NotImplementedError()

    def _check_input(self, X, y, sample_weight):
        X = np.ascontiguousarray(X, dtype=DOUBLE)
        y = np.ascontiguousarray(y)
        if sample_weight is not None:
            sample_weight = np.ascontiguousarray(sample_weight, dtype=DOUBLE)
        return X, y, sample_weight

    def _is_leaf(self, depth, n_node_samples, weighted_n_node_samples, impurity):
        """Stopping rules checked before searching a split.

        A node counts as pure when its impurity is within EPSILON of zero,
        not only when it is exactly zero; rounding leaves tiny positive
        impurities on nodes with nearly equal targets.
        """
        return (depth >= self.max_depth or
                n_node_samples < self.min_samples_split or
                n_node_samples < 2 * self.min_samples_leaf or
                weighted_n_node_samples < 2 * self.min_weight_leaf or
                impurity <= EPSILON)

    def _grow_node(self, tree, start, end, depth, parent, is_left, n_constant_features):
        """Search a split for samples[start:end] and store the node.

        Returns ``(node_id, split, parent_record)``; ``split`` is None for a
        leaf. ``node_id`` is INTPTR_MAX when the tree could not grow.
        """
        splitter = self.splitter
        n_node_samples = end - start
        weighted_n_node_samples = splitter.node_reset(start, end)
        parent_record = ParentInfo(impurity=splitter.node_impurity(),
                                   n_constant_features=n_constant_features)

        split = None
        if not self._is_leaf(depth, n_node_samples, weighted_n_node_samples,
                             parent_record.impurity):
            split = splitter.node_split(parent_record)
            if (split is not None and
                    (split.pos <= start or split.pos >= end or split.improvement <= 0.0)):
                split = None

        node_id = tree._add_node(
            parent, is_left, split is None,
            split.feature if split is not None else TREE_LEAF,
            split.threshold if split is not None else TREE_UNDEFINED,
            parent_record.impurity, n_node_samples, weighted_n_node_samples,
            splitter.node_value(),
        )
        return node_id, split, parent_record

    def _finish(self, tree, rc, max_depth_seen, strategy):
        if rc == -1:
            raise MemoryError("could not append node %d to the tree" % tree.node_count)
        tree.max_depth = max_depth_seen
        logger.debug("{} growth: {} nodes, {} leaves, depth {}",
                     strategy, tree.node_count, tree.n_leaves, tree.max_depth)
        return rc


class StackRecord:
    """Pending node of depth-first growth: a sample range and where to attach it."""

    __slots__ = ('start', 'end', 'depth', 'parent', 'is_left', 'n_constant_features')

    def __init__(self, start, end, depth, parent, is_left, n_constant_features):
        self.start = start
        self.end = end
        self.depth = depth
        self.parent = parent
        self.is_left = is_left
        self.n_constant_features = n_constant_features


class DepthFirstTreeBuilder(TreeBuilder):
    """Build a decision tree in depth-first fashion.

    Nodes are stored in pre-order: a node, then its whole left subtree, then
    its right subtree.
    """

    def __init__(self, splitter, min_samples_split, min_samples_leaf,
                 min_weight_leaf, max_depth):
        self.splitter = splitter
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_leaf = min_weight_leaf
        self.max_depth = max_depth

    def build(self, tree, X, y, sample_weight=None):
        """Build a decision tree from the training set (X, y)."""
        X, y, sample_weight = self._check_input(X, y, sample_weight)
        self.splitter.init(X, y, sample_weight)

        max_depth_seen = -1
        rc = 0
        stack = [StackRecord(0, self.splitter.n_samples, 0, TREE_UNDEFINED, False, 0)]

        while stack:
            record = stack.pop()
            node_id, split, parent_record = self._grow_node(
                tree, record.start, record.end, record.depth, record.parent,
                record.is_left, record.n_constant_features)

            if node_id == INTPTR_MAX:
                rc = -1
                break

            max_depth_seen = max(max_depth_seen, record.depth)
            if split is None:
                continue

            # the left child is pushed last so it is grown first
            n_constant_features = parent_record.n_constant_features
            stack.append(StackRecord(split.pos, record.end, record.depth + 1,
                                     node_id, False, n_constant_features))
            stack.append(StackRecord(record.start, split.pos, record.depth + 1,
                                     node_id, True, n_constant_features))

        return self._finish(tree, rc, max_depth_seen, "Depth-first")


class FrontierRecord:
    """Node waiting in the best-first frontier, with the split found for it."""

    __slots__ = ('node_id', 'start', 'end', 'pos', 'depth', 'is_leaf',
                 'impurity', 'improvement')

    def __init__(self, node_id, start, end, pos, depth, is_leaf, impurity, improvement):
        self.node_id = node_id
        self.start = start
        self.end = end
        self.pos = pos
        self.depth = depth
        self.is_leaf = is_leaf
        self.impurity = impurity
        self.improvement = improvement

    def __lt__(self, other):
        # heapq pops the smallest item: largest improvement first, then oldest node
        if self.improvement != other.improvement:
            return self.improvement > other.improvement
        return self.node_id < other.node_id


class BestFirstTreeBuilder(TreeBuilder):
    """Build a decision tree in best-first fashion.

    The split of a node is searched as soon as the node is created; the
    frontier node with the highest improvement is expanded next. At most
    ``max_leaf_nodes - 1`` splits are committed, the remaining frontier
    nodes become leaves.
    """

    def __init__(self, splitter, min_samples_split, min_samples_leaf,
                 min_weight_leaf, max_depth, max_leaf_nodes):
        self.splitter = splitter
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_leaf = min_weight_leaf
        self.max_depth = max_depth
        self.max_leaf_nodes = max_leaf_nodes

    def build(self, tree, X, y, sample_weight=None):
        """Build a decision tree from the training set (X, y)."""
        X, y, sample_weight = self._check_input(X, y, sample_weight)
        self.splitter.init(X, y, sample_weight)

        split_budget = self.max_leaf_nodes - 1
        max_depth_seen = -1
        rc = 0
        frontier = []

        root = self._add_to_frontier(tree, 0, self.splitter.n_samples, 0, TREE_UNDEFINED, False)
        if root is None:
            rc = -1
        else:
            heapq.heappush(frontier, root)

        while frontier:
            record = heapq.heappop(frontier)
            max_depth_seen = max(max_depth_seen, record.depth)

            if record.is_leaf or split_budget <= 0:
                tree._set_leaf(record.node_id)
                continue

            split_budget -= 1
            children = (
                self._add_to_frontier(tree, record.start, record.pos, record.depth + 1,
                                      record.node_id, True),
                self._add_to_frontier(tree, record.pos, record.end, record.depth + 1,
                                      record.node_id, False),
            )
            if None in children:
                rc = -1
                break
            for child in children:
                heapq.heappush(frontier, child)

        return self._finish(tree, rc, max_depth_seen, "Best-first")

    def _add_to_frontier(self, tree, start, end, depth, parent, is_left):
        """Store the node for samples[start:end] and return its FrontierRecord.

        Returns None if the node could not be stored.
        """
        # frontier nodes are not expanded in depth-first order, so constant
        # features are not inherited
        node_id, split, parent_record = self._grow_node(
            tree, start, end, depth, parent, is_left, 0)
        if node_id == INTPTR_MAX:
            return None

        if split is None:
            return FrontierRecord(node_id, start, end, end, depth, True,
                                  parent_record.impurity, 0.0)
        return FrontierRecord(node_id, start, end, split.pos, depth, False,
                              parent_record.impurity, split.improvement)


class Tree:
    """Array-based representation of a binary decision tree.

    Nodes live in one ordered list and refer to their children by index;
    the root is node 0. ``value[i]`` is the weighted class-count vector of
    node ``i`` (classification) or a one-element array with its weighted
    mean target (regression).

    The tree is read-only once built, so it can serve concurrent ``apply``
    and ``predict`` calls.
    """

    def __init__(self, n_features, n_classes):
        self.n_features = n_features
        self.n_classes = n_classes
        self.value_stride = n_classes

        self.max_depth = 0
        self.nodes = []
        self._values = []

    @property
    def node_count(self):
        return len(self.nodes)

    @property
    def n_leaves(self):
        return sum(1 for node in self.nodes if node.is_leaf)

    def _node_array(self, name, dtype):
        return np.array([getattr(node, name) for node in self.nodes], dtype=dtype)

    @property
    def children_left(self):
        return self._node_array('left_child', np.intp)

    @property
    def children_right(self):
        return self._node_array('right_child', np.intp)

    @property
    def feature(self):
        return self._node_array('feature', np.intp)

    @property
    def threshold(self):
        return self._node_array('threshold', np.float64)

    @property
    def impurity(self):
        return self._node_array('impurity', np.float64)

    @property
    def n_node_samples(self):
        return self._node_array('n_node_samples', np.intp)

    @property
    def weighted_n_node_samples(self):
        return self._node_array('weighted_n_node_samples', np.float64)

    @property
    def value(self):
        """2D array of node values, shape (node_count, value_stride)."""
        if not self._values:
            return np.zeros((0, self.value_stride), dtype=np.float64)
        return np.vstack(self._values)

    def _add_node(self, parent, is_left, is_leaf, feature, threshold, impurity,
                  n_node_samples, weighted_n_node_samples, value):
        """Append a node and link it to its parent.

        Returns the new node id, or INTPTR_MAX if it could not be stored.
        """
        node_id = self.node_count
        node = Node(impurity, n_node_samples, weighted_n_node_samples)
        if not is_leaf:
            # children are linked when they are added
            node.left_child = TREE_UNDEFINED
            node.right_child = TREE_UNDEFINED
            node.feature = int(feature)
            node.threshold = float(threshold)

        try:
            self.nodes.append(node)
            self._values.append(np.asarray(value, dtype=np.float64).reshape(self.value_stride))
        except MemoryError:
            del self.nodes[node_id:]
            return INTPTR_MAX

        if parent != TREE_UNDEFINED:
            if is_left:
                self.nodes[parent].left_child = node_id
            else:
                self.nodes[parent].right_child = node_id
        return node_id

    def _set_leaf(self, node_id):
        """Turn a node whose children were never added into a leaf."""
        node = self.nodes[node_id]
        node.left_child = TREE_LEAF
        node.right_child = TREE_LEAF
        node.feature = TREE_LEAF
        node.threshold = float(TREE_UNDEFINED)

    def _path(self, x):
        """Node ids visited by one sample, from the root to its leaf."""
        nodes = self.nodes
        node_id = 0
        path = [0]
        node = nodes[0]
        while node.feature != TREE_LEAF:
            node_id = node.left_child if x[node.feature] <= node.threshold else node.right_child
            path.append(node_id)
            node = nodes[node_id]
        return path

    def predict(self, X):
        """Leaf value of every row of X, shape (n_samples, value_stride)."""
        return self.value.take(self.apply(X), axis=0)

    def apply(self, X):
        """Index of the leaf reached by every row of X."""
        X = self._check_X(X)
        return np.array([self._path(x)[-1] for x in X], dtype=np.intp)

    def decision_path(self, X):
        """CSR indicator matrix (n_samples, node_count) of the nodes each row visits."""
        X = self._check_X(X)
        indptr = [0]
        indices = []
        for x in X:
            indices.extend(self._path(x))
            indptr.append(len(indices))

        data = np.ones(len(indices), dtype=np.intp)
        return csr_matrix((data, np.asarray(indices, dtype=np.intp),
                           np.asarray(indptr, dtype=np.intp)),
                          shape=(X.shape[0], self.node_count))

    def compute_node_depths(self):
        """Depth of every node; the root has depth 0."""
        depths = np.zeros(self.node_count, dtype=np.int64)
        # parents always precede their children in storage order
        for node_id, node in enumerate(self.nodes):
            if node.feature != TREE_LEAF:
                depths[node.left_child] = depths[node.right_child] = depths[node_id] + 1
        return depths

    def compute_feature_importances(self, normalize=True):
        """Computes the importance of each feature (aka variable).

        Each split adds its weighted impurity decrease to its feature::

            (W_t * impurity - W_left * left_impurity - W_right * right_impurity) / W_root
        """
        importances = np.zeros(self.n_features, dtype=np.float64)
        nodes = self.nodes

        for node in nodes:
            if node.feature == TREE_LEAF:
                continue
            left = nodes[node.left_child]
            right = nodes[node.right_child]
            importances[node.feature] += (
                node.weighted_n_node_samples * node.impurity -
                left.weighted_n_node_samples * left.impurity -
                right.weighted_n_node_samples * right.impurity)

        if nodes and nodes[0].weighted_n_node_samples > 0:
            importances /= nodes[0].weighted_n_node_samples

        if normalize:
            normalizer = np.sum(importances)
            # a single-leaf tree keeps all-zero importances
            if normalizer > 0.0:
                importances /= normalizer

        return importances

    def _check_X(self, X):
        if self.node_count == 0:
            raise ValueError("Tree has no nodes")
        X = np.asarray(X, dtype=DOUBLE)
        if X.ndim != 2:
            raise ShapeMismatchError(
                "X should be a 2D array, got %d dimension(s)" % X.ndim,
                expected=2, actual=X.ndim)
        if X.shape[1] != self.n_features:
            raise ShapeMismatchError(
                "X has %d features, but the tree was built with %d" % (X.shape[1], self.n_features),
                expected=self.n_features, actual=X.shape[1])
        return X
