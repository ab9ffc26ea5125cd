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

"""Numerical backend used by the generated io functions.

The backend decides which array library `sympy.lambdify` prints against and
which `asarray` wraps the returned derivative vectors. The default comes from
the `BLOCKSYSTEMS_BACKEND` environment variable and falls back to numpy.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import numpy as np

from .error import ArgumentError
from .lazy_loader import LazyLoader

if TYPE_CHECKING:
    import jax.numpy as jnp
else:
    jnp = LazyLoader(
        "jnp",
        globals(),
        "jax.numpy",
        error_message="The jax backend requires jax, install blocksystems[jax].",
    )

__all__ = [
    "SUPPORTED_BACKENDS",
    "REQUESTED_BACKEND",
    "DEFAULT_BACKEND",
    "dispatcher",
    "set_backend",
]

SUPPORTED_BACKENDS = ("numpy", "jax")
REQUESTED_BACKEND = os.environ.get("BLOCKSYSTEMS_BACKEND", None)
DEFAULT_BACKEND = REQUESTED_BACKEND or "numpy"


class BackendDispatcher:
    """Singleton holding the active backend for function generation."""

    _active_backend = DEFAULT_BACKEND

    @property
    def active_backend(self) -> str:
        return self._active_backend

    def set_backend(self, backend: str):
        """Change the default backend of `generate_io_function`.

        Functions which were already generated keep the backend they were
        generated with.
        """
        self._active_backend = self.resolve(backend)

    def resolve(self, backend: str | None = None) -> str:
        backend = self._active_backend if backend is None else backend
        if backend not in SUPPORTED_BACKENDS:
            raise ArgumentError(
                f"Backend {backend!r} not supported, choose one of {SUPPORTED_BACKENDS}"
            )
        return backend

    def lambdify_modules(self, backend: str | None = None) -> list:
        return [self.resolve(backend)]

    def asarray(self, values, backend: str | None = None):
        if self.resolve(backend) == "jax":
            return jnp.asarray(values, dtype=float)
        return np.asarray(values, dtype=float)


dispatcher = BackendDispatcher()

set_backend = dispatcher.set_backend
