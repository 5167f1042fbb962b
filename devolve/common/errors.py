# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


# base classes


class DevolveError(Exception):
    """Base class for error raised by Devolve"""


class DevolveWarning(Warning):
    pass


# errors
# pylint: disable=too-many-ancestors


class DevolveRuntimeError(RuntimeError, DevolveError):
    """Runtime error raised by Devolve"""


class DevolveTypeError(TypeError, DevolveError):
    """Type error raised by Devolve"""


class DevolveValueError(ValueError, DevolveError):
    """Value error raised by Devolve"""


class NonFiniteLossError(DevolveRuntimeError):
    """Raised when the objective function returns NaN or an infinite value.
    Such a value cannot be ranked, so the run is aborted instead of silently going on.
    """


# warnings


class DevolveRuntimeWarning(RuntimeWarning, DevolveWarning):
    """Runtime warning raise by devolve"""


class InefficientSettingsWarning(DevolveRuntimeWarning):
    """Optimization settings are not optimal for the optimizer"""
