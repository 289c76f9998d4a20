"""
cartree - CART decision trees for classification and regression
"""

from loguru import logger

from ._classes import BaseDecisionTree, DecisionTreeClassifier, DecisionTreeRegressor
from ._tree import Tree
from .exceptions import (
    InvalidConfigurationError,
    InvalidInputError,
    NotFittedError,
    ShapeMismatchError,
    TreeError,
)
from .export import compare_tree_structures, export_text
from .logging import PACKAGE_NAME, LoggingHandle, enable_logging

__version__ = "0.1.0"

logger.disable(PACKAGE_NAME)

__all__ = [
    'BaseDecisionTree',
    'DecisionTreeClassifier',
    'DecisionTreeRegressor',
    'Tree',
    'TreeError',
    'ShapeMismatchError',
    'InvalidConfigurationError',
    'InvalidInputError',
    'NotFittedError',
    'LoggingHandle',
    'enable_logging',
    'export_text',
    'compare_tree_structures',
]
