# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from .common import typing as typing
from .common import errors as errors
from .optimization import DEConfig as DEConfig
from .optimization import DifferentialEvolution as DifferentialEvolution
from .optimization import Experiment as Experiment
from .optimization import minimize as minimize
from .optimization import callbacks as callbacks
from . import functions as functions


__all__ = [
    "DEConfig",
    "DifferentialEvolution",
    "Experiment",
    "minimize",
    "callbacks",
    "functions",
    "errors",
    "typing",
]


__version__ = "0.1.0"
