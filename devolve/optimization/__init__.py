# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from .base import Optimizer  # abstract class, for type checking
from .bounds import BoxBounds
from .differentialevolution import DEConfig
from .differentialevolution import DifferentialEvolution
from .experiment import Experiment
from .experiment import ExperimentSummary
from .experiment import RunRecord
from .experiment import minimize
from . import callbacks
