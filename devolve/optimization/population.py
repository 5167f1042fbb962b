# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import numpy as np
import devolve.common.typing as tp
from devolve.common import errors


class Individual:
    """Candidate solution of the population, with the state retained by
    elitist selection at the end of the previous generation.

    Parameters
    ----------
    position: np.ndarray
        the candidate vector
    fitness: float
        objective value at position
    """

    def __init__(self, position: np.ndarray, fitness: float) -> None:
        self.position = np.array(position, dtype=float)
        self.fitness = float(fitness)
        # rollback target and comparison baseline for the next generation
        self.accepted_position = self.position.copy()
        self.accepted_fitness = self.fitness

    def __repr__(self) -> str:
        return f"Individual(fitness={self.fitness}, position={self.position})"

    def rollback(self) -> None:
        """Restores the last accepted state as the working state"""
        self.position = self.accepted_position.copy()
        self.fitness = self.accepted_fitness

    def accept(self) -> None:
        """Commits the working state as the new accepted state"""
        self.accepted_position = self.position.copy()
        self.accepted_fitness = self.fitness


class Population(tp.Sequence[Individual]):
    """Fixed-size ordered collection of individuals.
    Individuals are updated in place, the collection itself never changes size.
    """

    def __init__(self, individuals: tp.Iterable[Individual]) -> None:
        self._individuals: tp.Tuple[Individual, ...] = tuple(individuals)
        if not self._individuals:
            raise errors.DevolveValueError("A population requires at least one individual")
        dimensions = {indiv.position.size for indiv in self._individuals}
        if len(dimensions) > 1:
            raise errors.DevolveValueError(f"Individuals have inconsistent dimensions: {sorted(dimensions)}")

    def __getitem__(self, index: int) -> Individual:  # type: ignore
        return self._individuals[index]

    def __len__(self) -> int:
        return len(self._individuals)

    def __repr__(self) -> str:
        return f"Population(size={len(self)}, dimension={self.dimension})"

    @property
    def dimension(self) -> int:
        return self._individuals[0].position.size

    def positions(self) -> np.ndarray:
        """Snapshot of all positions as a (size, dimension) array (a copy)"""
        return np.array([indiv.position for indiv in self._individuals])

    def fitnesses(self) -> np.ndarray:
        return np.array([indiv.fitness for indiv in self._individuals])

    def argmin(self) -> int:
        """Index of the individual with lowest fitness (first one in case of ties)"""
        return int(np.argmin(self.fitnesses()))
