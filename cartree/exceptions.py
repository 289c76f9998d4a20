"""Exceptions raised by cartree estimators.

All errors derive from ``TreeError`` so callers can catch every failure of a
fit/predict call in one place:

- ShapeMismatchError: dimensions of X, y and sample_weight disagree, or X at
  predict time does not have the number of columns seen during fit.
- InvalidConfigurationError: a hyperparameter is out of range.
- InvalidInputError: the training data cannot be used (empty set, non-finite
  values, negative or all-zero sample weights, bad node range).
- NotFittedError: the estimator is used before a successful fit.

The value errors also subclass ``ValueError`` and ``NotFittedError`` subclasses
scikit-learn's ``NotFittedError`` so generic sklearn tooling keeps working.
"""

from sklearn.exceptions import NotFittedError as _SklearnNotFittedError


class TreeError(Exception):
    """Base exception for all cartree errors."""


class ShapeMismatchError(TreeError, ValueError):
    """Raised when array dimensions disagree.

    Attributes:
        expected: The expected size or shape, when known.
        actual: The size or shape that was received, when known.

    Examples:
        >>> err = ShapeMismatchError("X has 3 features, expected 2", expected=2, actual=3)
        >>> err.expected, err.actual
        (2, 3)
    """

    def __init__(self, message, *, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InvalidConfigurationError(TreeError, ValueError):
    """Raised when a hyperparameter is out of its valid range.

    Attributes:
        parameter: Name of the offending parameter, when known.
        value: The rejected value.
    """

    def __init__(self, message, *, parameter=None, value=None):
        super().__init__(message)
        self.parameter = parameter
        self.value = value

    def __repr__(self):
        return f"{self.__class__.__name__}(message={str(self)!r}, parameter={self.parameter!r})"


class InvalidInputError(TreeError, ValueError):
    """Raised when training data or a node range cannot be used."""


class NotFittedError(TreeError, _SklearnNotFittedError):
    """Raised when predict or feature_importances is called before fit."""
