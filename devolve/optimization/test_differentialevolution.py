# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import json
import warnings
from pathlib import Path
import pytest
import numpy as np
import devolve.common.typing as tp
from devolve.common import errors
from devolve.common import testing
from devolve.functions import corefuncs
from . import differentialevolution as de
from .population import Individual
from .operators import BinomialCrossover
from .operators import RandOneMutation


def _make_config(**kwargs: tp.Any) -> de.DEConfig:
    settings = dict(dimension=2, lower=-5, upper=5, popsize=10, num_generations=50, F=0.5, CR=0.9)
    settings.update(kwargs)
    return de.DEConfig(**settings)


@testing.parametrized(
    better=(4.0, True, 4.0),
    tie=(5.0, True, 5.0),
    worse=(6.0, False, 5.0),
)
def test_elitist_selection(trial_fitness: float, expected_kept: bool, expected_fitness: float) -> None:
    indiv = Individual(np.array([1.0, 2.0]), 5.0)
    indiv.position = np.array([3.0, 3.0])
    indiv.fitness = trial_fitness
    assert de.elitist_selection(indiv) == expected_kept
    assert indiv.fitness == expected_fitness
    assert indiv.accepted_fitness == expected_fitness
    np.testing.assert_array_equal(indiv.position, [3.0, 3.0] if expected_kept else [1.0, 2.0])
    np.testing.assert_array_equal(indiv.accepted_position, indiv.position)


def test_sphere_scenario() -> None:
    config = _make_config()
    optimizer = config(random_state=np.random.RandomState(12))
    recommendation = optimizer.minimize(corefuncs.sphere)
    assert optimizer.best_fitness < optimizer.initial_best_fitness
    assert len(optimizer.convergence_curve) == 50
    testing.assert_non_increasing(optimizer.convergence_curve)
    assert config.bounds.contains(recommendation)
    np.testing.assert_almost_equal(corefuncs.sphere(recommendation), optimizer.best_fitness)
    assert optimizer.best_fitness < 1e-2
    assert optimizer.num_evaluations == 10 * 51


def test_generation_invariants() -> None:
    config = _make_config(dimension=5, lower=[-1, -2, -3, -4, -5], upper=[0.5, 1, 1, 1, 1], num_generations=30)
    optimizer = config(random_state=np.random.RandomState(3))
    optimizer.initialize(corefuncs.rastrigin)
    assert optimizer.population is not None
    previous = optimizer.population.fitnesses()
    previous_best = optimizer.best_fitness
    for _ in range(config.num_generations):
        optimizer.step(corefuncs.rastrigin)
        fitnesses = optimizer.population.fitnesses()
        # per-slot elitism
        assert np.all(fitnesses <= previous), f"Some slot got worse: {fitnesses - previous}"
        assert optimizer.best_fitness <= previous_best
        assert optimizer.best_fitness <= fitnesses.min()
        for indiv in optimizer.population:
            assert config.bounds.contains(indiv.position)
            assert indiv.fitness == corefuncs.rastrigin(indiv.position)
            assert indiv.accepted_fitness == indiv.fitness
            np.testing.assert_array_equal(indiv.accepted_position, indiv.position)
        previous, previous_best = fitnesses, optimizer.best_fitness


def test_generation_reads_positions_from_start_of_generation() -> None:
    config = _make_config(popsize=6, dimension=3, F=0.8, CR=0.5)
    rng = np.random.RandomState(17)
    optimizer = config(random_state=rng)
    optimizer.initialize(corefuncs.sphere)
    assert optimizer.population is not None
    snapshot = optimizer.population.positions()
    fitnesses = optimizer.population.fitnesses()
    replay = np.random.RandomState()
    replay.set_state(rng.get_state())
    optimizer.step(corefuncs.sphere)
    # replay the generation with the same random stream
    mutation, crossover = RandOneMutation(replay, config.F), BinomialCrossover(replay, config.CR)
    expected = snapshot.copy()
    for index in range(config.popsize):
        mutant = config.bounds.clip(mutation.apply(snapshot, index))
        trial = config.bounds.clip(crossover.apply(mutant, snapshot[index]))
        if not fitnesses[index] < corefuncs.sphere(trial):
            expected[index] = trial
    np.testing.assert_array_equal(optimizer.population.positions(), expected)


def test_constant_objective_never_rolls_back() -> None:
    optimizer = _make_config()(random_state=np.random.RandomState(12))
    optimizer.minimize(corefuncs.constant)
    assert optimizer.initial_best_fitness == 0.0
    np.testing.assert_array_equal(optimizer.convergence_curve, np.zeros(50))
    assert optimizer.num_rollbacks == 0


def test_rollbacks_are_counted() -> None:
    optimizer = _make_config()(random_state=np.random.RandomState(12))
    optimizer.minimize(corefuncs.sphere)
    assert 0 < optimizer.num_rollbacks < 10 * 50


def test_determinism() -> None:
    config = _make_config(dimension=4)
    results = []
    for _ in range(2):
        optimizer = config(random_state=np.random.RandomState(24))
        results.append((optimizer.minimize(corefuncs.rosenbrock), optimizer.convergence_curve))
    np.testing.assert_array_equal(results[0][0], results[1][0])
    np.testing.assert_array_equal(results[0][1], results[1][1])


def test_minimal_population() -> None:
    optimizer = _make_config(popsize=4, num_generations=5)(random_state=np.random.RandomState(1))
    optimizer.minimize(corefuncs.sphere)
    assert len(optimizer.convergence_curve) == 5


@testing.parametrized(
    nan=(float("nan"), errors.NonFiniteLossError),
    inf=(float("inf"), errors.NonFiniteLossError),
    minus_inf=(-float("inf"), errors.NonFiniteLossError),
    string=("blublu", errors.DevolveTypeError),
    vector=(np.array([1.0, 2.0]), errors.DevolveTypeError),
    boolean=(True, errors.DevolveTypeError),
    numpy_boolean=(np.bool_(False), errors.DevolveTypeError),
)
def test_bad_objective_value(value: tp.Any, error: tp.Type[Exception]) -> None:
    optimizer = _make_config()(random_state=np.random.RandomState(12))
    with pytest.raises(error):
        optimizer.minimize(lambda x: value)


def test_objective_error_propagates() -> None:
    calls = []

    def failing(x: np.ndarray) -> float:
        calls.append(x)
        if len(calls) > 15:
            raise ZeroDivisionError("blublu")
        return corefuncs.sphere(x)

    optimizer = _make_config()(random_state=np.random.RandomState(12))
    with pytest.raises(ZeroDivisionError, match="blublu"):
        optimizer.minimize(failing)
    assert len(optimizer.convergence_curve) == 0


def test_single_value_array_objective() -> None:
    optimizer = _make_config(num_generations=3)(random_state=np.random.RandomState(12))
    optimizer.minimize(lambda x: np.array([corefuncs.sphere(x)]))
    assert isinstance(optimizer.best_fitness, float)


# # # # # configuration # # # # #


@testing.parametrized(
    popsize=(dict(popsize=3), "popsize must be at least 4"),
    popsize_float=(dict(popsize=10.0), "popsize must be an integer"),
    equal_bounds=(dict(lower=5, upper=5), "strictly smaller"),
    inverted_bounds=(dict(lower=1, upper=-1), "strictly smaller"),
    bounds_shape=(dict(lower=[-1, -1, -1]), "shape"),
    dimension=(dict(dimension=0), "dimension must be at least 1"),
    dimension_bool=(dict(dimension=True), "dimension must be an integer"),
    num_generations=(dict(num_generations=0), "num_generations must be at least 1"),
    num_runs=(dict(num_runs=-2), "num_runs must be at least 1"),
    cr_high=(dict(CR=1.5), "CR must be"),
    cr_low=(dict(CR=-0.1), "CR must be"),
    cr_string=(dict(CR="0.5"), "CR must be"),
    f_nan=(dict(F=float("nan")), "F must be"),
    seed=(dict(seed=-1), "seed must be at least 0"),
)
def test_invalid_config(changes: tp.Dict[str, tp.Any], message: str) -> None:
    with pytest.raises(errors.DevolveValueError, match=message):
        _make_config(**changes)
    with pytest.raises(ValueError):
        _make_config(**changes)


@testing.parametrized(
    large_f=(dict(F=2.5),),
    negative_f=(dict(F=-0.5),),
    null_cr=(dict(CR=0.0),),
)
def test_inefficient_config_warns(changes: tp.Dict[str, tp.Any]) -> None:
    with pytest.warns(errors.InefficientSettingsWarning):
        _make_config(**changes)


def test_efficient_config_does_not_warn() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        _make_config(CR=1.0, F=2.0)


def test_config_repr_and_dict() -> None:
    assert repr(de.DEConfig()) == "DEConfig()"
    config = de.DEConfig(popsize=12, lower=[-1, 0], upper=3)
    assert repr(config) == "DEConfig(lower=[-1.0, 0.0], popsize=12, upper=3.0)"
    settings = config.to_dict()
    testing.assert_set_equal(
        settings, ["dimension", "lower", "upper", "popsize", "num_generations", "num_runs", "F", "CR", "seed"]
    )
    assert settings["upper"] == 3.0
    assert de.DEConfig.from_dict(settings) == config
    assert config(random_state=np.random.RandomState(0)).name == repr(config)


def test_config_spawn() -> None:
    config = de.DEConfig(popsize=12)
    other = config.spawn(CR=0.2)
    assert other.CR == 0.2
    assert other.popsize == 12
    assert other != config
    assert config.CR == 0.9
    with pytest.raises(errors.DevolveValueError, match="popsize"):
        config.spawn(popsize=2)


def test_config_unknown_setting() -> None:
    with pytest.raises(errors.DevolveValueError, match="Unknown settings"):
        de.DEConfig.from_dict({"popsize": 12, "pop_size": 12})


def test_config_load(tmp_path: Path) -> None:
    filepath = tmp_path / "config.json"
    filepath.write_text(json.dumps({"dimension": 3, "lower": -2, "upper": [1, 2, 3], "num_runs": 4, "seed": 12}))
    config = de.DEConfig.load(filepath)
    assert config.dimension == 3
    assert config.num_runs == 4
    assert config.seed == 12
    np.testing.assert_array_equal(config.bounds.upper, [1.0, 2.0, 3.0])
    filepath.write_text(json.dumps([1, 2]))
    with pytest.raises(errors.DevolveValueError, match="json object"):
        de.DEConfig.load(filepath)


def test_config_zero_dim_array_bounds() -> None:
    config = de.DEConfig(dimension=3, lower=np.array(-2.0), upper=np.array([1, 2, 3]))
    assert config.lower == -2.0
    assert config.upper == [1.0, 2.0, 3.0]
    np.testing.assert_array_equal(config.bounds.lower, [-2.0, -2.0, -2.0])
