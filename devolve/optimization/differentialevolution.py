# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import json
import math
import inspect
import warnings
from numbers import Real, Integral
import numpy as np
import devolve.common.typing as tp
from devolve.common import errors
from devolve.common import tools as dvtools
from . import base
from .bounds import BoxBounds
from .population import Individual
from .operators import BinomialCrossover
from .operators import RandOneMutation
from .operators import MIN_POPSIZE


def elitist_selection(individual: Individual) -> bool:
    """Keeps the freshly evaluated trial of the individual unless the state accepted at
    the previous generation was strictly better, in which case it is restored.
    The resulting state becomes the accepted state for the next generation.
    Ties are accepted.

    Returns
    -------
    bool
        True if the trial was kept, False if it was rolled back
    """
    kept = not individual.accepted_fitness < individual.fitness
    if not kept:
        individual.rollback()
    individual.accept()
    return kept


class DifferentialEvolution(base.Optimizer):
    """DE/rand/1/bin with clipping to the bounds and per-individual elitism.

    For each individual i (in index order), each generation:
    1. the mutant x[r3] + F * (x[r1] - x[r2]) is computed from the positions at the start of the generation,
    2. the mutant is clipped to the bounds,
    3. binomial crossover with rate CR mixes the mutant and the current position,
    4. the trial is clipped to the bounds, replaces the position and is evaluated,
    5. elitist selection rolls back to the previously accepted state if it was strictly better.

    Parameters
    ----------
    config: DEConfig
        settings of the run
    random_state: np.random.RandomState or None
        source of randomness of the run
    """

    def __init__(self, config: "DEConfig", random_state: tp.Optional[np.random.RandomState] = None) -> None:
        super().__init__(
            config.bounds,
            popsize=config.popsize,
            num_generations=config.num_generations,
            random_state=random_state,
        )
        self._config = config
        self.name = repr(config)
        self.num_rollbacks = 0

    @property
    def config(self) -> "DEConfig":
        return self._config

    def _internal_step(self, objective: tp.ObjectiveFunction) -> None:
        assert self.population is not None
        mutation = RandOneMutation(self._rng, self._config.F)
        crossover = BinomialCrossover(self._rng, self._config.CR)
        # mutation only reads the positions from the start of the generation
        positions = self.population.positions()
        for index, individual in enumerate(self.population):
            mutant = self.bounds.clip(mutation.apply(positions, index))
            trial = self.bounds.clip(crossover.apply(mutant, individual.position))
            individual.position = trial
            individual.fitness = self.evaluate(objective, trial)
            if not elitist_selection(individual):
                self.num_rollbacks += 1


# pylint: disable=too-many-arguments, too-many-instance-attributes
class DEConfig:
    """Settings of a differential evolution study, validated at instantiation.

    Parameters
    ----------
    dimension: int
        number of variables of the objective function
    lower: float or list of floats
        lower bound of the box constraint (shared by all variables, or one per variable)
    upper: float or list of floats
        upper bound of the box constraint (shared by all variables, or one per variable)
    popsize: int
        number of individuals, at least 4
    num_generations: int
        number of generations of each run
    num_runs: int
        number of independent runs
    F: float
        scaling factor of the difference vector in the mutation
    CR: float
        crossover probability, in [0, 1]
    seed: int or None
        seed of the random stream shared by the runs (unseeded if None)

    Raises
    ------
    DevolveValueError
        if any setting is invalid
    """

    def __init__(
        self,
        *,
        dimension: int = 2,
        lower: tp.BoundValue = -5.0,
        upper: tp.BoundValue = 5.0,
        popsize: int = 30,
        num_generations: int = 100,
        num_runs: int = 1,
        F: float = 0.5,
        CR: float = 0.9,
        seed: tp.Optional[int] = None,
    ) -> None:
        self.dimension = _check_integer("dimension", dimension, minimum=1)
        self.popsize = _check_integer("popsize", popsize, minimum=MIN_POPSIZE)
        self.num_generations = _check_integer("num_generations", num_generations, minimum=1)
        self.num_runs = _check_integer("num_runs", num_runs, minimum=1)
        if not isinstance(F, Real) or isinstance(F, bool) or not math.isfinite(F):
            raise errors.DevolveValueError(f"F must be a finite real number (got {F!r})")
        if not isinstance(CR, Real) or isinstance(CR, bool) or not 0 <= CR <= 1:
            raise errors.DevolveValueError(f"CR must be a real number in [0, 1] (got {CR!r})")
        self.F = float(F)
        self.CR = float(CR)
        self.seed = None if seed is None else _check_integer("seed", seed, minimum=0)
        # validates the bounds, which are stored as plain data
        self._bounds = BoxBounds(lower, upper, self.dimension)
        self.lower = _plain_bound(lower)
        self.upper = _plain_bound(upper)
        if not 0 < self.F <= 2:
            warnings.warn(f"F={self.F} is outside the usual range (0, 2]", errors.InefficientSettingsWarning)
        if not self.CR:
            warnings.warn(
                "CR=0 makes every trial identical to its parent", errors.InefficientSettingsWarning
            )

    @property
    def bounds(self) -> BoxBounds:
        return self._bounds

    def __call__(self, random_state: tp.Optional[np.random.RandomState] = None) -> DifferentialEvolution:
        """Creates the optimizer for one run"""
        return DifferentialEvolution(self, random_state=random_state)

    def __repr__(self) -> str:
        diff = dvtools.different_from_defaults(instance=self, instance_dict=self.to_dict())
        params = ", ".join(f"{x}={y!r}" for x, y in sorted(diff.items()))
        return f"{self.__class__.__name__}({params})"

    def __eq__(self, other: tp.Any) -> tp.Any:
        if self.__class__ == other.__class__:
            return self.to_dict() == other.to_dict()
        return False

    def to_dict(self) -> tp.Dict[str, tp.Any]:
        names = inspect.signature(self.__class__.__init__).parameters
        return {name: getattr(self, name) for name in names if name != "self"}

    def spawn(self, **changes: tp.Any) -> "DEConfig":
        """Creates a new config with some settings replaced (and validated again)"""
        return self.from_dict(dict(self.to_dict(), **changes))

    @classmethod
    def from_dict(cls, settings: tp.Dict[str, tp.Any]) -> "DEConfig":
        names = set(inspect.signature(cls.__init__).parameters) - {"self"}
        unknown = set(settings) - names
        if unknown:
            raise errors.DevolveValueError(f"Unknown settings {sorted(unknown)} (allowed: {sorted(names)})")
        return cls(**settings)

    @classmethod
    def load(cls, filepath: tp.PathLike) -> "DEConfig":
        """Loads the settings from a json file containing a single object"""
        with tp.Path(filepath).open("r") as f:
            settings = json.load(f)
        if not isinstance(settings, dict):
            raise errors.DevolveValueError(f"File {filepath} must contain a json object (got {type(settings)})")
        return cls.from_dict(settings)


def _check_integer(name: str, value: tp.Any, minimum: int) -> int:
    if not isinstance(value, Integral) or isinstance(value, bool):
        raise errors.DevolveValueError(f"{name} must be an integer (got {value!r})")
    if value < minimum:
        raise errors.DevolveValueError(f"{name} must be at least {minimum} (got {value})")
    return int(value)


def _plain_bound(value: tp.BoundValue) -> tp.Union[float, tp.List[float]]:
    if np.ndim(value):
        return [float(x) for x in value]  # type: ignore
    return float(value)  # type: ignore
