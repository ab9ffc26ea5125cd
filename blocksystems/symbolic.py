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
Thin layer over Sympy for symbols, equations and namespaces of io systems.

Two kinds of symbols exist:
 - parameters are plain `Sympy.Symbol` objects. They are constant during
    integration, inputs and internal parameters of a block are both parameters.
 - variables (states) are undefined functions applied to the independent
    variable, e.g. `x(t)`.
"""

import dataclasses
from typing import Iterable, List

import sympy as sp
from sympy.core.function import AppliedUndef

from .error import SchemaError

__all__ = [
    "NAMESPACE_SEPARATOR",
    "t",
    "parameters",
    "variables",
    "Differential",
    "Equation",
    "getname",
    "rename",
    "renamespace",
    "remove_namespace",
    "makesym",
    "is_state",
    "is_parameter",
    "get_states",
    "get_parameters",
    "differential_target",
    "is_differential",
    "is_residual",
    "is_explicit_algebraic",
    "has_derivative",
]

NAMESPACE_SEPARATOR = "₊"

# default independent variable
t = sp.Symbol("t")


def parameters(names: str) -> tuple:
    """Create parameter symbols, e.g. `τ, K = parameters("τ K")`."""
    return tuple(sp.symbols(names, seq=True))


def variables(names: str, iv: sp.Symbol = t) -> tuple:
    """Create time dependent variables, e.g. `x, y = variables("x y")`."""
    return tuple(f(iv) for f in sp.symbols(names, cls=sp.Function, seq=True))


class Differential:
    """Time differentiation marker. `D = Differential(t); D(x)` is the
    unevaluated `Derivative(x(t), t)`."""

    def __init__(self, iv: sp.Symbol = t):
        self.iv = iv

    def __call__(self, expr):
        return sp.Derivative(expr, self.iv)

    def __repr__(self):
        return f"Differential({self.iv})"


@dataclasses.dataclass(frozen=True)
class Equation:
    """An equation `lhs ~ rhs` of two Sympy expressions.

    Sympy.Eq is not used as the container because it evaluates to a boolean
    whenever both sides are structurally equal, e.g. after substitutions.
    """

    lhs: sp.Expr
    rhs: sp.Expr

    def __post_init__(self):
        object.__setattr__(self, "lhs", sp.sympify(self.lhs))
        object.__setattr__(self, "rhs", sp.sympify(self.rhs))

    @classmethod
    def from_any(cls, eq) -> "Equation":
        """Accept Equation, Sympy.Eq or a (lhs, rhs) tuple."""
        if isinstance(eq, Equation):
            return eq
        if isinstance(eq, sp.Equality):
            return cls(eq.lhs, eq.rhs)
        if isinstance(eq, tuple) and len(eq) == 2:
            return cls(*eq)
        raise SchemaError(f"Can't interpret {eq!r} as an equation.")

    def xreplace(self, rules: dict) -> "Equation":
        return Equation(self.lhs.xreplace(rules), self.rhs.xreplace(rules))

    def free_variables(self) -> set:
        """All parameters and variables (including the independent variable)."""
        return self.lhs.atoms(sp.Symbol, AppliedUndef) | self.rhs.atoms(
            sp.Symbol, AppliedUndef
        )

    @property
    def expr(self):
        """
        Return the equation, re-arranged as an expression equal to zero.
        """
        return self.rhs - self.lhs

    def __repr__(self):
        return f"{self.lhs} ~ {self.rhs}"


def getname(sym) -> str:
    if isinstance(sym, AppliedUndef):
        return sym.func.__name__
    if isinstance(sym, sp.Symbol):
        return sym.name
    raise TypeError(f"{sym!r} is neither a parameter nor a variable.")


def rename(sym, name: str):
    """Create the same kind of symbol with another name."""
    if isinstance(sym, AppliedUndef):
        return sp.Function(name)(*sym.args)
    if isinstance(sym, sp.Symbol):
        return sp.Symbol(name, **sym.assumptions0)
    raise TypeError(f"{sym!r} is neither a parameter nor a variable.")


def renamespace(namespace: str, sym):
    return rename(sym, f"{namespace}{NAMESPACE_SEPARATOR}{getname(sym)}")


def remove_namespace(namespace: str, sym):
    """Strip `namespace₊` from the name of sym, other symbols are returned as is."""
    prefix = f"{namespace}{NAMESPACE_SEPARATOR}"
    name = getname(sym)
    if name.startswith(prefix):
        return rename(sym, name[len(prefix) :])
    return sym


def makesym(sym) -> sp.Symbol:
    """x(t) -> x"""
    if isinstance(sym, AppliedUndef):
        return sp.Symbol(getname(sym))
    return sym


def is_state(sym) -> bool:
    return isinstance(sym, AppliedUndef)


def is_parameter(sym) -> bool:
    return isinstance(sym, sp.Symbol)


def _ordered(eqs: Iterable[Equation], keep) -> List:
    # first appearance in a preorder traversal, lhs before rhs
    found = {}
    for eq in eqs:
        for expr in (eq.lhs, eq.rhs):
            for node in sp.preorder_traversal(expr):
                if keep(node):
                    found[node] = None
    return list(found)


def get_states(eqs: Iterable[Equation]) -> List:
    return _ordered(eqs, is_state)


def get_parameters(eqs: Iterable[Equation], iv: sp.Symbol = t) -> List:
    return _ordered(eqs, lambda node: is_parameter(node) and node != iv)


def differential_target(eq: Equation, iv: sp.Symbol = None):
    """The state x if eq is of the form `D(x) ~ rhs`, otherwise None."""
    lhs = eq.lhs
    if not isinstance(lhs, sp.Derivative) or lhs.derivative_count != 1:
        return None
    if iv is not None and lhs.variables != (iv,):
        return None
    if not is_state(lhs.expr):
        return None
    return lhs.expr


def is_differential(eq: Equation, iv: sp.Symbol = None) -> bool:
    return differential_target(eq, iv) is not None


def is_residual(eq: Equation) -> bool:
    return eq.lhs.is_zero is True


def is_explicit_algebraic(eq: Equation) -> bool:
    """`o ~ expr` where o is a single state which does not appear in expr."""
    lhs = eq.lhs
    return is_state(lhs) and lhs not in eq.rhs.atoms(AppliedUndef)


def has_derivative(expr) -> bool:
    return bool(expr.atoms(sp.Derivative))
