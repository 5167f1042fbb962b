# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import logging
from numbers import Real
import numpy as np
import devolve.common.typing as tp
from devolve.common import errors as errors
from .bounds import BoxBounds
from .population import Individual
from .population import Population


logger = logging.getLogger(__name__)
_GenerationCallBack = tp.Union[tp.GenerationCallback, tp.Callable[["Optimizer"], None]]


class Optimizer:  # pylint: disable=too-many-instance-attributes
    """Generation-synchronous population-based optimization framework:

    - :code:`initialize(objective)` samples and evaluates the initial population.
    - :code:`step(objective)` runs one generation on the whole population, then tracks the best point.
    - :code:`minimize(objective)` runs all the generations and returns the best point found.

    Each run goes through the states Uninitialized -> Initialized -> generations -> Finalized,
    sequentially. An optimizer instance should be used for only one run.

    This class is abstract, subclasses must override :code:`_internal_step`.

    Parameters
    ----------
    bounds: BoxBounds
        the box constraint of the search space
    popsize: int
        number of individuals in the population
    num_generations: int
        number of generations to run
    random_state: np.random.RandomState or None
        source of randomness of the run (a new unseeded one is created if not provided)
    """

    def __init__(
        self,
        bounds: BoxBounds,
        popsize: int,
        num_generations: int,
        random_state: tp.Optional[np.random.RandomState] = None,
    ) -> None:
        self.bounds = bounds
        self.popsize = popsize
        self.num_generations = num_generations
        self._random_state = random_state
        self.name = self.__class__.__name__  # printed name in repr
        self.run_index = 0  # index of the run when part of an experiment
        # run state
        self.population: tp.Optional[Population] = None
        self.best_position: tp.Optional[np.ndarray] = None
        self.best_fitness = float("inf")
        self.initial_best_fitness = float("inf")
        self.convergence_curve: tp.List[float] = []
        self._num_evaluations = 0
        self._finalized = False
        self._callbacks: tp.Dict[str, tp.List[tp.Any]] = {}

    @property
    def _rng(self) -> np.random.RandomState:
        """np.random.RandomState: random state the optimizer must pull from.
        It is lazily created if none was provided at instantiation.
        """
        if self._random_state is None:
            self._random_state = np.random.RandomState()
        return self._random_state

    @property
    def dimension(self) -> int:
        return self.bounds.dimension

    @property
    def num_evaluations(self) -> int:
        """Number of calls to the objective function"""
        return self._num_evaluations

    @property
    def generation(self) -> int:
        """Number of generations already completed"""
        return len(self.convergence_curve)

    @property
    def state(self) -> str:
        if self._finalized:
            return "finalized"
        if self.population is None:
            return "uninitialized"
        return "initialized" if not self.generation else f"generation({self.generation - 1})"

    def __repr__(self) -> str:
        return (
            f"Instance of {self.name}(bounds={self.bounds}, popsize={self.popsize}, "
            f"num_generations={self.num_generations})"
        )

    def register_callback(self, name: str, callback: _GenerationCallBack) -> None:
        """Add a callback method called either at the end of each generation or when the run is finalized.

        Parameters
        ----------
        name: str
            name of the event to register the callback for (either :code:`generation` or :code:`finalize`)
        callback: callable
            for :code:`generation`: a callable taking the optimizer, the index of the generation and
            the best fitness so far. For :code:`finalize`: a callable taking only the optimizer.
        """
        assert name in ["generation", "finalize"], f'Only "generation" and "finalize" events can have callbacks (not {name})'
        self._callbacks.setdefault(name, []).append(callback)

    def remove_all_callbacks(self) -> None:
        """Removes all registered callables"""
        self._callbacks = {}

    def evaluate(self, objective: tp.ObjectiveFunction, x: np.ndarray) -> float:
        """Evaluates the objective on a copy of x and checks the result

        Raises
        ------
        DevolveTypeError
            if the objective does not return a real scalar
        NonFiniteLossError
            if the objective returns NaN or an infinite value
        """
        loss: tp.Any = objective(x.copy())
        self._num_evaluations += 1
        if isinstance(loss, (tuple, list, np.ndarray)) and np.size(loss) == 1:
            loss = np.asarray(loss).ravel()[0]
        if not isinstance(loss, (Real, float)) or isinstance(loss, (bool, np.bool_)):
            # using "float" along "Real" because mypy does not understand "Real" for now
            raise errors.DevolveTypeError(
                f"Objective function must return a float value but returned: {loss} (type: {type(loss)})."
            )
        loss = float(loss)
        if not np.isfinite(loss):
            raise errors.NonFiniteLossError(f"Objective function returned {loss} at position {x}")
        return loss

    def initialize(self, objective: tp.ObjectiveFunction) -> None:
        """Samples the initial population uniformly in the bounds, evaluates it
        and initializes the best point.
        """
        if self.population is not None:
            raise errors.DevolveRuntimeError(f"{self.name} is already initialized (state: {self.state})")
        positions = self.bounds.sample(self._rng, self.popsize)
        self.population = Population(Individual(x, self.evaluate(objective, x)) for x in positions)
        self._update_best()
        self.initial_best_fitness = self.best_fitness

    def step(self, objective: tp.ObjectiveFunction) -> float:
        """Runs one generation on the whole population, updates the best point and
        records it in the convergence curve

        Returns
        -------
        float
            the best fitness so far
        """
        if self.population is None:
            raise errors.DevolveRuntimeError(f"{self.name} must be initialized before running a generation")
        if self._finalized or self.generation >= self.num_generations:
            raise errors.DevolveRuntimeError(
                f"{self.name} already ran its {self.num_generations} generations (state: {self.state})"
            )
        self._internal_step(objective)
        self._update_best()
        self.convergence_curve.append(self.best_fitness)
        # call callbacks for logging etc...
        for callback in self._callbacks.get("generation", []):
            callback(self, self.generation - 1, self.best_fitness)
        return self.best_fitness

    def finalize(self) -> None:
        if self._finalized:
            raise errors.DevolveRuntimeError(f"{self.name} is already finalized")
        if self.generation != self.num_generations:
            raise errors.DevolveRuntimeError(
                f"Cannot finalize {self.name} after {self.generation}/{self.num_generations} generations"
            )
        self._finalized = True
        for callback in self._callbacks.get("finalize", []):
            callback(self)

    def minimize(self, objective: tp.ObjectiveFunction) -> np.ndarray:
        """Optimization (minimization) procedure: initialization, then all the generations.

        Parameters
        ----------
        objective: callable
            A callable to optimize (minimize), taking a 1d array of size dimension and returning a float

        Returns
        -------
        np.ndarray
            The best position found during the run
        """
        self.initialize(objective)
        for _ in range(self.num_generations):
            self.step(objective)
        self.finalize()
        logger.debug("%s finalized with best fitness %s", self.name, self.best_fitness)
        return self.provide_recommendation()

    def provide_recommendation(self) -> np.ndarray:
        """Provides the best position found so far (a copy)"""
        if self.best_position is None:
            raise errors.DevolveRuntimeError(f"{self.name} has no recommendation before initialization")
        return self.best_position.copy()

    def _update_best(self) -> None:
        """Replaces the best point if some individual is strictly better"""
        assert self.population is not None
        index = self.population.argmin()
        candidate = self.population[index]
        if self.best_position is None or candidate.fitness < self.best_fitness:
            self.best_fitness = candidate.fitness
            self.best_position = candidate.position.copy()

    def _internal_step(self, objective: tp.ObjectiveFunction) -> None:
        raise NotImplementedError("Optimizer undefined.")
