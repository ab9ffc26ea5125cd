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

"""
Generation of numerical functions from IOBlocks and IOSystems.

The generated functions have the signatures

    f_oop(u, inputs, p, t) -> du
    f_ip(du, u, inputs, p, t) -> None

where `u`, `inputs` and `p` are ordered like `states`, `inputs` and `params`
of the returned IOFunction. Together with the mass matrix `M` they describe
the semi-explicit DAE `M du/dt = f(u, inputs, p, t)`.
"""

from __future__ import annotations

import dataclasses
from typing import Callable, List, NamedTuple, Sequence, Union

import numpy as np
import sympy as sp

from .backend import dispatcher
from .error import ArgumentError, StructuralError
from .iosystems import IOBlock, IOSystem
from .logging import logdata, logger, scope_logging
from .symbolic import (
    Equation,
    differential_target,
    has_derivative,
    is_differential,
    is_residual,
    makesym,
    remove_namespace,
)
from .transformations import connect_system

__all__ = [
    "IOFunction",
    "IdentityMassMatrix",
    "generate_io_function",
    "transform_algebraic_equations",
    "reorder_by_states",
    "generate_massmatrix",
]


@dataclasses.dataclass(frozen=True)
class IdentityMassMatrix:
    """Mass matrix of a system of ODEs, i.e. every equation is differential."""

    n: int

    @property
    def shape(self):
        return (self.n, self.n)

    def __array__(self, dtype=None, copy=None):
        return np.eye(self.n, dtype=dtype if dtype is not None else float)


class IOFunction(NamedTuple):
    f_ip: Callable
    f_oop: Callable
    massm: Union[IdentityMassMatrix, np.ndarray]
    states: List
    inputs: List
    params: List
    equations: List[Equation]


def transform_algebraic_equations(eqs: Sequence[Equation]) -> List[Equation]:
    """Rewrite algebraic equations `a ~ b` as residuals `0 ~ b - a`."""
    return [
        eq if is_differential(eq) or is_residual(eq) else Equation(0, eq.rhs - eq.lhs)
        for eq in eqs
    ]


def reorder_by_states(eqs: Sequence[Equation], states: Sequence) -> List[Equation]:
    """Order the equations such that equation i is the equation of state i.

    The equation of a state is the first equation differentiating it. States
    without such an equation take the remaining equations in their order.
    """
    if len(eqs) != len(states):
        raise StructuralError(
            f"Can't reorder {len(eqs)} equations by {len(states)} states"
        )

    order = [None] * len(states)
    used = set()
    for k, state in enumerate(states):
        for i, eq in enumerate(eqs):
            if i not in used and differential_target(eq) == state:
                order[k] = i
                used.add(i)
                break

    unused = [i for i in range(len(eqs)) if i not in used]
    for k in range(len(states)):
        if order[k] is None:
            order[k] = unused.pop(0)

    if sorted(order) != list(range(len(eqs))):
        raise StructuralError("Equations can't be assigned to states one by one")

    return [eqs[i] for i in order]


def generate_massmatrix(eqs: Sequence[Equation]):
    """Diagonal mass matrix, 1 for differential and 0 for residual equations."""
    diagonal = []
    for eq in eqs:
        if is_differential(eq):
            diagonal.append(1.0)
        elif is_residual(eq):
            if has_derivative(eq.rhs):
                raise StructuralError(f"Residual equation with derivative: {eq}")
            diagonal.append(0.0)
        else:
            raise StructuralError(
                f"Equation is neither differential nor residual: {eq}"
            )

    if all(d == 1.0 for d in diagonal):
        return IdentityMassMatrix(len(diagonal))
    return np.diag(np.array(diagonal, dtype=float))


def _dedupe(syms) -> list:
    return list(dict.fromkeys(syms))


@scope_logging
def generate_io_function(
    ios: Union[IOBlock, IOSystem],
    first_states: Sequence = (),
    first_inputs: Sequence = (),
    simplify: bool = True,
    backend: str | None = None,
    verbose: bool = False,
) -> IOFunction:
    """Generate the numerical right-hand side of an IOBlock or IOSystem.

    Args:
        ios: Block or system. A system is flattened first.
        first_states: States which should come first in `u`, namespaced or
            not. Must be outputs or istates.
        first_inputs: Inputs which should come first in `inputs`.
        simplify: Simplify the right-hand sides before generating code.
        backend: "numpy" or "jax", defaults to the active backend.
        verbose: Log the intermediate equations.

    Returns:
        IOFunction with `f_ip`, `f_oop`, the mass matrix `massm` and the
        ordered `states`, `inputs`, `params` and `equations`.
    """
    backend = dispatcher.resolve(backend)

    if isinstance(ios, IOSystem):
        ios = connect_system(ios, verbose=verbose)

    first_states = [remove_namespace(ios.name, sp.sympify(s)) for s in first_states]
    first_inputs = [remove_namespace(ios.name, sp.sympify(s)) for s in first_inputs]

    states_set = set(ios.outputs) | set(ios.istates)
    unknown = [s for s in first_states if s not in states_set]
    if unknown:
        raise ArgumentError(
            "first_states must be outputs or istates", system=ios, symbols=unknown
        )
    unknown = [s for s in first_inputs if s not in set(ios.inputs)]
    if unknown:
        raise ArgumentError("first_inputs must be inputs", system=ios, symbols=unknown)

    states = _dedupe([*first_states, *ios.outputs, *ios.istates])
    inputs = _dedupe([*first_inputs, *ios.inputs])
    params = list(ios.iparams)

    eqs = transform_algebraic_equations(ios.equations)
    if verbose:
        logger.info("Transformed algebraic equations: %s", eqs, **logdata(system=ios))

    if simplify:
        eqs = [Equation(eq.lhs, sp.simplify(eq.rhs)) for eq in eqs]
        if verbose:
            logger.info("Simplified equations: %s", eqs, **logdata(system=ios))

    eqs = reorder_by_states(eqs, states)
    massm = generate_massmatrix(eqs)

    for eq in eqs:
        if has_derivative(eq.rhs):
            raise StructuralError(
                f"Right-hand side still contains derivatives: {eq}", system=ios
            )

    state_syms = [makesym(s) for s in states]
    formulas = [eq.rhs.xreplace(dict(zip(states, state_syms))) for eq in eqs]

    logger.debug(
        "Generating %s functions for %d states",
        backend,
        len(states),
        **logdata(system=ios),
    )
    rhs = sp.lambdify(
        [state_syms, inputs, params, ios.iv],
        formulas,
        modules=dispatcher.lambdify_modules(backend),
    )

    def f_oop(u, inputs, p, t):
        return dispatcher.asarray(rhs(u, inputs, p, t), backend)

    def f_ip(du, u, inputs, p, t):
        du[:] = rhs(u, inputs, p, t)

    return IOFunction(f_ip, f_oop, massm, states, inputs, params, eqs)
