# Copyright (c) Facebook, Inc. and its affiliates. All Rights Reserved.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from .corefuncs import FUNCTIONS as FUNCTIONS
from .corefuncs import sphere as sphere
