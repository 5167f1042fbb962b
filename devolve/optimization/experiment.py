# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import logging
import numpy as np
import pandas as pd
import devolve.common.typing as tp
from devolve.common import errors
from . import base
from .differentialevolution import DEConfig
from .differentialevolution import DifferentialEvolution


logger = logging.getLogger(__name__)
ZERO_THRESHOLD = 1e-8  # best fitnesses below this (in absolute value) are reported as exactly 0


class RunRecord:
    """Results of one finalized run

    Parameters
    ----------
    run_index: int
        index of the run in the experiment
    optimizer: DifferentialEvolution
        the finalized optimizer of the run
    """

    def __init__(self, run_index: int, optimizer: DifferentialEvolution) -> None:
        if optimizer.state != "finalized":
            raise errors.DevolveRuntimeError(f"Cannot record a run which is not finalized (state: {optimizer.state})")
        self.run_index = run_index
        self.convergence_curve = np.array(optimizer.convergence_curve, dtype=float)
        self.best_fitness = optimizer.best_fitness
        self.best_position = optimizer.provide_recommendation()
        self.initial_best_fitness = optimizer.initial_best_fitness
        self.num_evaluations = optimizer.num_evaluations
        self.num_rollbacks = optimizer.num_rollbacks

    @property
    def reported_best_fitness(self) -> float:
        """Best fitness for display, with values negligible w.r.t. ZERO_THRESHOLD shown as 0"""
        return 0.0 if abs(self.best_fitness) < ZERO_THRESHOLD else self.best_fitness

    def __repr__(self) -> str:
        return f"RunRecord(run={self.run_index}, best_fitness={self.reported_best_fitness})"

    def as_dict(self) -> tp.Dict[str, tp.Any]:
        """Plain data description of the run (arrays are converted to lists)"""
        return {
            "run": self.run_index,
            "best_fitness": self.best_fitness,
            "reported_best_fitness": self.reported_best_fitness,
            "initial_best_fitness": self.initial_best_fitness,
            "best_position": self.best_position.tolist(),
            "convergence_curve": self.convergence_curve.tolist(),
            "num_evaluations": self.num_evaluations,
            "num_rollbacks": self.num_rollbacks,
        }


class ExperimentSummary:
    """Aggregation of the records of all the runs of an experiment"""

    def __init__(self, config: DEConfig, records: tp.Sequence[RunRecord]) -> None:
        if not records:
            raise errors.DevolveValueError("A summary requires at least one run record")
        self.config = config
        self.records = list(records)

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"ExperimentSummary(num_runs={len(self)}, best_fitness={self.best_record.reported_best_fitness})"

    @property
    def best_fitnesses(self) -> np.ndarray:
        return np.array([r.best_fitness for r in self.records])

    @property
    def convergence_curves(self) -> np.ndarray:
        """(num_runs, num_generations) array of best fitness per generation"""
        return np.array([r.convergence_curve for r in self.records])

    @property
    def best_record(self) -> RunRecord:
        """Record of the run with lowest best fitness (earliest run in case of ties)"""
        return self.records[int(np.argmin(self.best_fitnesses))]

    @property
    def mean(self) -> float:
        return float(np.mean(self.best_fitnesses))

    @property
    def std(self) -> float:
        return float(np.std(self.best_fitnesses))

    def to_dataframe(self) -> pd.DataFrame:
        """One row per run, with the run statistics and one column per component
        of the best position (x0, x1...)
        """
        rows = []
        for record in self.records:
            row = {x: y for x, y in record.as_dict().items() if x not in ("best_position", "convergence_curve")}
            row.update({f"x{k}": float(v) for k, v in enumerate(record.best_position)})
            rows.append(row)
        return pd.DataFrame(rows).set_index("run")


class Experiment:
    """Runs num_runs independent optimizations of the objective with the provided config.
    Each run starts from a freshly sampled population, nothing is carried from one run to the other
    except the random stream, which is consumed sequentially by the runs.

    Parameters
    ----------
    objective: callable
        function to minimize, taking a 1d array of size config.dimension and returning a float.
        It must be deterministic.
    config: DEConfig
        settings of the runs
    random_state: np.random.RandomState or None
        random stream for all the runs. If not provided, one is seeded with the seed parameter
        if provided, or config.seed otherwise.
    seed: int or None
        seed for the random stream (incompatible with random_state)

    Note
    ----
    Errors raised by the objective function are not caught: they abort the experiment.
    """

    def __init__(
        self,
        objective: tp.ObjectiveFunction,
        config: DEConfig,
        random_state: tp.Optional[np.random.RandomState] = None,
        seed: tp.Optional[int] = None,
    ) -> None:
        if random_state is not None and seed is not None:
            raise errors.DevolveValueError("Only one of random_state and seed can be provided")
        if not callable(objective):
            raise errors.DevolveTypeError(f"Objective function must be callable (got {objective!r})")
        self.objective = objective
        self.config = config
        if random_state is None:
            random_state = np.random.RandomState(seed if seed is not None else config.seed)
        self.random_state = random_state
        self.records: tp.List[RunRecord] = []
        self._callbacks: tp.Dict[str, tp.List[tp.Any]] = {}

    def __repr__(self) -> str:
        return f"Experiment: {self.config} on {getattr(self.objective, '__name__', self.objective)}"

    def register_callback(self, name: str, callback: base._GenerationCallBack) -> None:
        """Registers a callback on the optimizer of every run (see Optimizer.register_callback)"""
        assert name in ["generation", "finalize"], f'Only "generation" and "finalize" events can have callbacks (not {name})'
        self._callbacks.setdefault(name, []).append(callback)

    def run_once(self) -> RunRecord:
        """Runs one more independent run and records it"""
        if len(self.records) >= self.config.num_runs:
            raise errors.DevolveRuntimeError(f"All {self.config.num_runs} runs were already performed")
        optimizer = self.config(random_state=self.random_state)
        optimizer.run_index = len(self.records)
        for name, callbacks in self._callbacks.items():
            for callback in callbacks:
                optimizer.register_callback(name, callback)
        optimizer.minimize(self.objective)
        record = RunRecord(optimizer.run_index, optimizer)
        self.records.append(record)
        logger.debug("Run %s/%s: best fitness %s", record.run_index + 1, self.config.num_runs, record.best_fitness)
        return record

    def run(self) -> ExperimentSummary:
        """Performs all the remaining runs and summarizes the experiment"""
        logger.debug("Starting %s", self)
        while len(self.records) < self.config.num_runs:
            self.run_once()
        return ExperimentSummary(self.config, self.records)


def minimize(
    objective: tp.ObjectiveFunction, config: DEConfig, seed: tp.Optional[int] = None
) -> ExperimentSummary:
    """Runs all the independent runs of the config on the objective function

    Example
    -------

    .. code-block:: python

        config = DEConfig(dimension=2, lower=-5, upper=5, popsize=10, num_generations=50, num_runs=3)
        summary = minimize(corefuncs.sphere, config, seed=12)
        print(summary.best_record.best_position)
    """
    return Experiment(objective, config, seed=seed).run()
