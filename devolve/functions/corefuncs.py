# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import numpy as np


def sphere(x: np.ndarray) -> float:
    """Sum of squares, the most classical continuous optimization testbed.

    If you do not solve that one then you have a bug."""
    assert x.ndim == 1
    return float(x.dot(x))


def sphere1(x: np.ndarray) -> float:
    """Translated sphere function."""
    return sphere(x - 1.0)


def constant(x: np.ndarray) -> float:  # pylint: disable=unused-argument
    """Flat landscape: every trial ties with its parent."""
    return 0.0


def rastrigin(x: np.ndarray) -> float:
    """Classical multimodal function."""
    cosi = float(np.sum(np.cos(2 * np.pi * x)))
    return float(10 * (len(x) - cosi) + sphere(x))


def rosenbrock(x: np.ndarray) -> float:
    x_m_1 = x[:-1] - 1
    x_diff = x[:-1] ** 2 - x[1:]
    return float(100 * x_diff.dot(x_diff) + x_m_1.dot(x_m_1))


# all of them reach their minimum 0 (at 0 for sphere and rastrigin, at 1 for sphere1 and rosenbrock)
FUNCTIONS = (sphere, sphere1, constant, rastrigin, rosenbrock)
