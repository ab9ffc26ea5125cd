# Copyright (C) 2024 Collimator, Inc.
# SPDX-License-Identifier: AGPL-3.0-only
#
# This program is free software: you can redistribute it and/or modify it under
# the terms of the GNU Affero General Public License as published by the Free
# Software Foundation, version 3. This program is distributed in the hope that it
# will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the GNU Affero General
# Public License for more details.  You should have received a copy of the GNU
# Affero General Public License along with this program. If not, see
# <https://www.gnu.org/licenses/>.

from . import _init  # noqa: F401
from .backend import dispatcher as backend
from .error import (
    ArgumentError,
    BlockSystemsError,
    InvalidMapError,
    InvariantViolation,
    NamespaceCollisionError,
    SchemaError,
    StructuralError,
    SymbolNotFoundError,
    UnresolvedConnectionError,
)
from .function_generation import IdentityMassMatrix, IOFunction, generate_io_function
from .iosystems import IOBlock, IOSystem, resolve
from .naming import NameGenerator
from .symbolic import Differential, Equation, parameters, t, variables
from .transformations import connect_system, flatten
from .version import __version__

set_backend = backend.set_backend

__all__ = [
    "__version__",
    "backend",
    "set_backend",
    "t",
    "parameters",
    "variables",
    "Differential",
    "Equation",
    "IOBlock",
    "IOSystem",
    "resolve",
    "connect_system",
    "flatten",
    "generate_io_function",
    "IOFunction",
    "IdentityMassMatrix",
    "NameGenerator",
    "BlockSystemsError",
    "SchemaError",
    "InvariantViolation",
    "NamespaceCollisionError",
    "InvalidMapError",
    "UnresolvedConnectionError",
    "StructuralError",
    "ArgumentError",
    "SymbolNotFoundError",
]
