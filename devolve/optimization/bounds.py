# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import numpy as np
import devolve.common.typing as tp
from devolve.common import errors


def _f(x: tp.Any) -> str:
    """Format for prints:
    array with one scalars are converted to floats
    """
    if isinstance(x, (np.ndarray, list, tuple)):
        x = np.asarray(x)
        if x.size == 1:
            x = float(x.ravel()[0])
    if isinstance(x, float) and x.is_integer():
        x = int(x)
    return str(x)


class BoxBounds:
    """Axis-aligned box constraint [lower, upper] in a given dimension.
    Out-of-bounds components are repaired by clipping to the nearest bound
    (no reflection, no wrap-around).

    Parameters
    ----------
    lower: float or array-like
        lower bound, either shared by all dimensions or one value per dimension
    upper: float or array-like
        upper bound, either shared by all dimensions or one value per dimension
    dimension: int
        number of variables
    """

    def __init__(self, lower: tp.BoundValue, upper: tp.BoundValue, dimension: int) -> None:
        self.dimension = dimension
        self.lower = self._broadcast("lower", lower)
        self.upper = self._broadcast("upper", upper)
        if (self.lower >= self.upper).any():
            raise errors.DevolveValueError(
                f"Lower bounds {_f(lower)} should be strictly smaller than upper bounds {_f(upper)}"
            )
        self.name = f"Box({_f(lower)},{_f(upper)})"

    def _broadcast(self, name: str, value: tp.BoundValue) -> np.ndarray:
        try:
            array = np.array(value, dtype=float)
            if not array.ndim:
                array = np.full(self.dimension, float(array))
        except (TypeError, ValueError) as e:
            raise errors.DevolveValueError(f"Bound {name} must be a real number or a list of them (got {value!r})") from e
        if array.shape != (self.dimension,):
            raise errors.DevolveValueError(
                f"Bound {name} has shape {array.shape} while dimension is {self.dimension}"
            )
        if not np.all(np.isfinite(array)):
            raise errors.DevolveValueError(f"Bound {name} must be finite (got {_f(value)})")
        return array

    def __repr__(self) -> str:
        return self.name

    def sample(self, random_state: np.random.RandomState, num: int) -> np.ndarray:
        """Draws num points independently and uniformly in the box (one row per point)"""
        return random_state.uniform(self.lower, self.upper, size=(num, self.dimension))

    def clip(self, x: np.ndarray) -> np.ndarray:
        """Returns a copy of x with each component clamped into [lower, upper].
        Values already within the bounds (including on the bounds) are left untouched.
        """
        self._check_shape(x)
        return np.clip(x, self.lower, self.upper)

    def contains(self, x: np.ndarray) -> bool:
        """Checks whether the array lies within the bounds (inclusive)"""
        self._check_shape(x)
        return bool(np.all(x >= self.lower) and np.all(x <= self.upper))

    def _check_shape(self, x: np.ndarray) -> None:
        if x.shape[-1:] != (self.dimension,):
            raise errors.DevolveValueError(f"Shapes do not match: {(self.dimension,)} and {x.shape}")
