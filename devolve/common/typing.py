# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

"""Definitions of some convenient types.
"""
# pylint: disable=unused-import
# structures
from typing import Any as Any
from typing import Type as Type
from typing import Optional as Optional
from typing import Union as Union

# containers
from typing import Dict as Dict
from typing import Tuple as Tuple
from typing import List as List
from typing import Sequence as Sequence

# iterables
from typing import Iterable as Iterable

# others
from typing import Callable as Callable
from pathlib import Path as Path
from typing_extensions import Protocol

#
import numpy as _np


PathLike = Union[str, Path]
BoundValue = Union[float, int, Sequence[float], _np.ndarray]


# %% Protocol definitions for objective and callback typing


class ObjectiveFunction(Protocol):
    # pylint: disable=pointless-statement

    def __call__(self, x: _np.ndarray) -> float:
        ...


class GenerationCallback(Protocol):
    # pylint: disable=pointless-statement, unused-argument

    def __call__(self, optimizer: Any, generation: int, best_fitness: float) -> None:
        ...
