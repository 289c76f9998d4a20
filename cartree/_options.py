"""Hyperparameter options of the tree estimators.

Each option validates a single value and knows its default; an OptionSet
groups the options of one estimator and reports failures as
InvalidConfigurationError naming the parameter.
"""
import abc
import numbers
from typing import Any, Dict, List, Optional

import numpy as np

from .exceptions import InvalidConfigurationError


class Option():
    def __init__(self):
        self.option_value = None
        try:
            self.set_value(self.default_value)
        except ValueError as e:
            raise ValueError(f'Incorrect default value: {str(e)}')

    def set_value(self, value):
        self.option_value = self._process_value(value)

    @abc.abstractmethod
    def _process_value(self, value: Any) -> Any:
        pass

    @property
    def value(self):
        return self.option_value

    @property
    def default_value(self):
        return self._default_value


class IntegerOption(Option):
    def __init__(self, default_value, min_value=None, max_value=None, nullable=False):
        self._default_value = default_value
        self.min_value = min_value
        self.max_value = max_value
        self.nullable = nullable
        super().__init__()

    def _process_value(self, value):
        if value is None:
            if self.nullable:
                return None
            raise ValueError("value must not be None")
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise ValueError("value must be integer")
        if self.max_value is not None and value > self.max_value:
            raise ValueError(f"value must not be larger than {self.max_value}")
        if self.min_value is not None and value < self.min_value:
            raise ValueError(f"value must not be lesser than {self.min_value}")
        return int(value)


class FloatOption(Option):
    def __init__(self, default_value, min_value=None, max_value=None,
                 include_min=True, include_max=True):
        self._default_value = default_value
        self.min_value = min_value
        self.max_value = max_value
        self.include_min = include_min
        self.include_max = include_max
        super().__init__()

    def _process_value(self, value):
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ValueError("value must be numerical")
        if self.min_value is not None:
            if value < self.min_value or (not self.include_min and value == self.min_value):
                bound = "at least" if self.include_min else "larger than"
                raise ValueError(f"value must be {bound} {self.min_value}")
        if self.max_value is not None:
            if value > self.max_value or (not self.include_max and value == self.max_value):
                bound = "at most" if self.include_max else "lesser than"
                raise ValueError(f"value must be {bound} {self.max_value}")
        return float(value)


class StringOption(Option):
    def __init__(self, default_value, available_options: Optional[List[str]] = None):
        self._default_value = default_value
        self.available_options = available_options
        super().__init__()

    def _process_value(self, value: Any):
        if not isinstance(value, str):
            raise ValueError("value must be string")
        if self.available_options is not None and value not in self.available_options:
            raise ValueError(f"value must be one of [{', '.join(self.available_options)}]")
        return value


class MaxFeaturesOption(Option):
    """None or "all", an integer >= 1, a fraction in (0, 1], "sqrt" or "log2"."""

    _keywords = ("all", "sqrt", "log2")

    def __init__(self, default_value=None):
        self._default_value = default_value
        super().__init__()

    def _process_value(self, value):
        if value is None:
            return None
        if isinstance(value, str):
            if value not in self._keywords:
                raise ValueError(f"value must be one of [{', '.join(self._keywords)}]")
            return value
        if isinstance(value, bool):
            raise ValueError("value must be integer, float or string")
        if isinstance(value, numbers.Integral):
            if value < 1:
                raise ValueError("value must not be lesser than 1")
            return int(value)
        if isinstance(value, numbers.Real):
            if not 0.0 < value <= 1.0:
                raise ValueError("a float value must be in (0, 1]")
            return float(value)
        raise ValueError("value must be integer, float or string")


class ClassWeightOption(Option):
    """None, "balanced", a dict {label: weight} or a sequence of weights."""

    def __init__(self, default_value=None):
        self._default_value = default_value
        super().__init__()

    def _process_value(self, value):
        if value is None:
            return value
        if isinstance(value, str):
            if value == "balanced":
                return value
            raise ValueError('value must be "balanced", a dict or a sequence')
        weights = list(value.values()) if isinstance(value, dict) else list(value)
        for weight in weights:
            if isinstance(weight, bool) or not isinstance(weight, numbers.Real):
                raise ValueError("class weights must be numerical")
            if weight < 0:
                raise ValueError("class weights must be non-negative")
        if len(weights) == 0:
            # an empty vector means uniform weights
            return None
        return value


class RandomStateOption(Option):
    """None, a seed in [0, 2**32) or a numpy RandomState instance."""

    def __init__(self, default_value=None):
        self._default_value = default_value
        super().__init__()

    def _process_value(self, value):
        if value is None or isinstance(value, np.random.RandomState):
            return value
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise ValueError("value must be None, an integer seed or a RandomState")
        if not 0 <= value < 2 ** 32:
            raise ValueError("seed must be in [0, 2**32)")
        return int(value)


class OptionSet():
    def __init__(self, options: Dict[str, Option]):
        self.options = options

    def update_from_estimator(self, estimator):
        """Validate every option against the estimator's current parameters."""
        estimator_params = estimator.get_params(deep=False)
        for key in self.options:
            if key in estimator_params:
                self[key] = estimator_params[key]
        return self

    def __getitem__(self, item):
        return self.options[item].value

    def __setitem__(self, item, value):
        try:
            self.options[item].set_value(value)
        except ValueError as e:
            raise InvalidConfigurationError(
                f'Incorrect value "{value}" for parameter "{item}": {str(e)}',
                parameter=item, value=value,
            ) from e

    def __contains__(self, item):
        return item in self.options


def _common_options():
    return {
        'splitter': StringOption(default_value="best", available_options=["best", "random"]),
        'max_depth': IntegerOption(default_value=None, min_value=1, nullable=True),
        'min_samples_split': IntegerOption(default_value=2, min_value=2),
        'min_samples_leaf': IntegerOption(default_value=1, min_value=1),
        'min_weight_fraction_leaf': FloatOption(default_value=0.0, min_value=0.0, max_value=0.5),
        'max_features': MaxFeaturesOption(default_value=None),
        'max_leaf_nodes': IntegerOption(default_value=None, min_value=2, nullable=True),
        'random_state': RandomStateOption(default_value=None),
    }


def classifier_options():
    options = _common_options()
    options.update({
        'criterion': StringOption(default_value="gini",
                                  available_options=["gini", "entropy", "log_loss"]),
        'class_weight': ClassWeightOption(default_value=None),
        'proba_floor': FloatOption(default_value=1e-15, min_value=0.0, max_value=1.0,
                                   include_min=False, include_max=False),
    })
    return OptionSet(options)


def regressor_options():
    options = _common_options()
    options.update({
        'criterion': StringOption(default_value="squared_error",
                                  available_options=["squared_error"]),
    })
    return OptionSet(options)
