# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import numpy as np
import devolve.common.typing as tp
from devolve.common import errors


MIN_POPSIZE = 4  # the individual itself + 3 distinct donors


def _indices_without(size: int, excluded: int) -> np.ndarray:
    """Array [0..size) without the excluded index"""
    pool = np.arange(size - 1, dtype=int)
    pool[excluded:] += 1
    return pool


class RandOneMutation:
    """DE/rand/1 mutation: the mutant of individual i is
    x[r3] + F * (x[r1] - x[r2]), with r1, r2, r3 pairwise distinct, all different from i,
    and drawn uniformly without replacement.

    Parameters
    ----------
    random_state: np.random.RandomState
        random state used for drawing the indices
    F: float
        scaling factor of the difference vector
    """

    def __init__(self, random_state: np.random.RandomState, F: float) -> None:
        self.random_state = random_state
        self.F = F

    def select_indices(self, index: int, popsize: int) -> tp.Tuple[int, int, int]:
        if popsize < MIN_POPSIZE:
            raise errors.DevolveValueError(
                f"DE/rand/1 requires a population of at least {MIN_POPSIZE} individuals (got {popsize})"
            )
        r1, r2, r3 = self.random_state.choice(_indices_without(popsize, index), size=3, replace=False)
        return int(r1), int(r2), int(r3)

    def apply(self, positions: np.ndarray, index: int) -> np.ndarray:
        """Creates the mutant vector for individual index

        Parameters
        ----------
        positions: np.ndarray
            (popsize, dimension) snapshot of the positions at the start of the generation
        index: int
            index of the individual the mutant is created for
        """
        r1, r2, r3 = self.select_indices(index, positions.shape[0])
        return positions[r3] + self.F * (positions[r1] - positions[r2])  # type: ignore


class BinomialCrossover:
    """Component-wise crossover: each component of the trial comes from the mutant
    with probability CR (uniform draw <= CR), and from the parent otherwise.
    No component is forced to come from the mutant, so the trial may equal the parent.

    Parameters
    ----------
    random_state: np.random.RandomState
        random state used for the Bernoulli mask
    CR: float
        crossover probability, in [0, 1]
    """

    def __init__(self, random_state: np.random.RandomState, CR: float) -> None:
        self.random_state = random_state
        self.CR = CR

    def mask(self, dimension: int) -> np.ndarray:
        """Boolean mask, True where the trial takes the mutant's value"""
        return self.random_state.uniform(0.0, 1.0, size=dimension) <= self.CR  # type: ignore

    def apply(self, mutant: np.ndarray, parent: np.ndarray) -> np.ndarray:
        return np.where(self.mask(parent.size), mutant, parent)
