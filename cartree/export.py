# cartree/export.py
"""Text rendering and structural comparison of fitted trees."""
import numpy as np

from ._tree import TREE_LEAF, Tree
from .exceptions import NotFittedError, ShapeMismatchError


def _get_tree(tree_or_estimator):
    if isinstance(tree_or_estimator, Tree):
        return tree_or_estimator
    tree = getattr(tree_or_estimator, "tree_", None)
    if tree is None:
        raise NotFittedError(
            f"{type(tree_or_estimator).__name__} has no fitted tree to export")
    return tree


def export_text(tree_or_estimator, feature_names=None, decimals=2):
    """Build a text report showing the rules of a decision tree.

    Parameters
    ----------
    tree_or_estimator : Tree or fitted estimator
    feature_names : sequence of str, default=None
        Names of each of the features. Defaults to ``feature_<i>``.
    decimals : int, default=2
        Number of decimal digits to display.

    Returns
    -------
    report : str
        One line per node, children indented below their parent, e.g.::

            |--- feature_0 <= 2.50
            |   |--- value: [3.00, 0.00]
            |--- feature_0 >  2.50
            |   |--- value: [0.00, 3.00]
    """
    tree = _get_tree(tree_or_estimator)
    classes = getattr(tree_or_estimator, "classes_", None)

    if feature_names is None:
        feature_names = [f"feature_{i}" for i in range(tree.n_features)]
    elif len(feature_names) != tree.n_features:
        raise ShapeMismatchError(
            f"feature_names must contain {tree.n_features} elements, got {len(feature_names)}",
            expected=tree.n_features, actual=len(feature_names))

    nodes = tree.nodes
    values = tree.value
    lines = []

    def leaf_text(node_id):
        value = values[node_id]
        if classes is not None:
            return f"class: {classes[int(np.argmax(value))]}"
        if tree.n_classes == 1:
            return f"value: [{value[0]:.{decimals}f}]"
        return "value: [" + ", ".join(f"{v:.{decimals}f}" for v in value) + "]"

    # (node_id, depth, text of the rule leading to the node)
    stack = [(0, 0, None)]
    while stack:
        node_id, depth, rule = stack.pop()
        indent = "|   " * depth
        node = nodes[node_id]

        if rule is not None:
            lines.append(f"{indent}|--- {rule}")
            indent += "|   "

        if node.feature == TREE_LEAF:
            lines.append(f"{indent}|--- {leaf_text(node_id)}")
            continue

        name = feature_names[node.feature]
        threshold = f"{node.threshold:.{decimals}f}"
        child_depth = depth + 1 if rule is not None else depth
        stack.append((node.right_child, child_depth, f"{name} >  {threshold}"))
        stack.append((node.left_child, child_depth, f"{name} <= {threshold}"))

    return "\n".join(lines) + "\n"


def compare_tree_structures(tree_a, tree_b):
    """Return the first node index where two trees differ, or None.

    Nodes are compared pairwise in storage order on their children, split
    feature and threshold. Trees of different size differ at the first node
    that only one of them has.
    """
    nodes_a = _get_tree(tree_a).nodes
    nodes_b = _get_tree(tree_b).nodes

    for node_id, (node_a, node_b) in enumerate(zip(nodes_a, nodes_b)):
        if (node_a.left_child != node_b.left_child or
                node_a.right_child != node_b.right_child or
                node_a.feature != node_b.feature or
                node_a.threshold != node_b.threshold):
            return node_id

    if len(nodes_a) != len(nodes_b):
        return min(len(nodes_a), len(nodes_b))
    return None
