# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import json
import warnings
import datetime
import logging
from pathlib import Path
import devolve.common.typing as tp
from . import base

global_logger = logging.getLogger(__name__)


def _is_due(optimizer: base.Optimizer, generation: int, interval: int) -> bool:
    """Every interval generations, and always for the last one"""
    return not (generation + 1) % interval or generation + 1 == optimizer.num_generations


# -------------------------------------------------------------------------------------


class GenerationPrinter:
    """Printer to register as "generation" callback in an optimizer, for printing
    the best fitness regularly.

    Parameters
    ----------
    print_interval_generations: int
        number of generations between two prints (the last generation is always printed)
    """

    def __init__(self, print_interval_generations: int = 1) -> None:
        assert print_interval_generations > 0
        self._print_interval_generations = int(print_interval_generations)

    def __call__(self, optimizer: base.Optimizer, generation: int, best_fitness: float) -> None:
        if _is_due(optimizer, generation, self._print_interval_generations):
            print(f"Run {optimizer.run_index}, generation {generation}: best fitness is {best_fitness}")


# -------------------------------------------------------------------------------------


class GenerationLogger:
    """Logger to register as "generation" callback in an optimizer, for logging
    the best fitness regularly.

    Parameters
    ----------
    logger:
        given logger that callback will use to log
    log_level:
        log level that logger will write to
    log_interval_generations: int
        number of generations between two logs (the last generation is always logged)
    """

    def __init__(
        self,
        *,
        logger: logging.Logger = global_logger,
        log_level: int = logging.INFO,
        log_interval_generations: int = 1,
    ) -> None:
        assert log_interval_generations > 0
        self._logger = logger
        self._log_level = log_level
        self._log_interval_generations = int(log_interval_generations)

    def __call__(self, optimizer: base.Optimizer, generation: int, best_fitness: float) -> None:
        if _is_due(optimizer, generation, self._log_interval_generations):
            self._logger.log(
                self._log_level,
                "Run %s, generation %s: best fitness is %s",
                optimizer.run_index,
                generation,
                best_fitness,
            )


# -------------------------------------------------------------------------------------


class ConvergenceDumper:
    """Dumps the best fitness of each generation into a file, as one json object per line.

    Parameters
    ----------
    filepath: str or pathlib.Path
        the path to dump data to
    append: bool
        whether to append the file (otherwise it replaces it)

    Example
    -------

    .. code-block:: python

        dumper = ConvergenceDumper(filepath)
        experiment.register_callback("generation", dumper)
        experiment.run()
        list_of_dict_of_data = dumper.load()
    """

    def __init__(self, filepath: tp.Union[str, Path], append: bool = True) -> None:
        self._session = datetime.datetime.now().strftime("%y-%m-%d %H:%M:%S")
        self._filepath = Path(filepath)
        if self._filepath.exists() and not append:
            self._filepath.unlink()
        self._filepath.parent.mkdir(exist_ok=True, parents=True)

    def __call__(self, optimizer: base.Optimizer, generation: int, best_fitness: float) -> None:
        data = {
            "#optimizer": optimizer.name,
            "#session": self._session,
            "#run": optimizer.run_index,
            "#generation": generation,
            "#num-evaluations": optimizer.num_evaluations,
            "#best_fitness": best_fitness,
        }
        try:  # avoid bugging as much as possible
            with self._filepath.open("a") as f:
                f.write(json.dumps(data) + "\n")
        except OSError as e:
            warnings.warn(f"Failing to json data: {e}")

    def load(self) -> tp.List[tp.Dict[str, tp.Any]]:
        """Loads data from the log file"""
        data: tp.List[tp.Dict[str, tp.Any]] = []
        if self._filepath.exists():
            with self._filepath.open("r") as f:
                for line in f.readlines():
                    data.append(json.loads(line))
        return data
