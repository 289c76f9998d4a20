# _utils.py
# Authors: The scikit-learn developers
# SPDX-License-Identifier: BSD-3-Clause

import numpy as np
from math import log as math_log

# =============================================================================
# Random number generation
# =============================================================================

# Largest value returned by our_rand_r (31 bits)
RAND_R_MAX = 0x7FFFFFFF

_UINT32_MASK = 0xFFFFFFFF


def our_rand_r(state):
    """Linear congruential generator in the style of C's rand_r.

    ``state`` is a one-element mutable container holding the 32-bit seed,
    it is advanced in place:  state = state * 1103515245 + 12345 (mod 2**32)
    """
    seed = (int(state[0]) * 1103515245 + 12345) & _UINT32_MASK
    state[0] = seed
    return seed & RAND_R_MAX


def rand_int(low, high, state):
    """Generate a random integer in [low; high).

    Parameters
    ----------
    low : int
        Lower bound (inclusive)
    high : int
        Upper bound (exclusive)
    state : list with one element
        Random state that gets updated
    """
    if high <= low:
        return low
    return low + our_rand_r(state) % (high - low)


def rand_uniform(low, high, state):
    """Generate a random float in [low; high)."""
    if high == low:
        return low
    return ((high - low) * float(our_rand_r(state)) / float(RAND_R_MAX)) + low


def make_rand_state(seed):
    """Build the mutable state consumed by rand_int/rand_uniform."""
    return [int(seed) & _UINT32_MASK]


def log(x):
    """Base-2 logarithm."""
    if x <= 0:
        return -np.inf
    return math_log(x) / math_log(2.0)
