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

import pytest
import sympy as sp
from sympy.core.function import AppliedUndef

from blocksystems import Differential, Equation, parameters, t, variables
from blocksystems.error import SchemaError
from blocksystems.symbolic import (
    NAMESPACE_SEPARATOR,
    differential_target,
    get_parameters,
    get_states,
    getname,
    is_explicit_algebraic,
    is_residual,
    makesym,
    remove_namespace,
    rename,
    renamespace,
)

D = Differential(t)
x, y = variables("x y")
a, b = parameters("a b")


def test_symbol_kinds():
    assert isinstance(x, AppliedUndef)
    assert x.args == (t,)
    assert isinstance(a, sp.Symbol)
    assert getname(x) == "x"
    assert getname(a) == "a"

    with pytest.raises(TypeError):
        getname(a + b)


def test_differential_is_unevaluated():
    dx = D(x)
    assert isinstance(dx, sp.Derivative)
    assert dx.expr == x
    assert dx.variables == (t,)


def test_equation_from_any():
    eq = Equation.from_any(sp.Eq(D(x), -a * x))
    assert eq.lhs == D(x)
    assert eq.rhs == -a * x

    assert Equation.from_any((y, 2 * x)) == Equation(y, 2 * x)
    assert Equation.from_any(eq) is eq
    assert repr(Equation(y, a)) == "y(t) ~ a"

    with pytest.raises(SchemaError):
        Equation.from_any(y)


def test_equation_sympifies_numbers():
    eq = Equation(0, x - a)
    assert eq.lhs == sp.S.Zero
    assert is_residual(eq)
    assert eq.expr == x - a


def test_equation_xreplace():
    eq = Equation(D(x), -a * x + y)
    new = eq.xreplace({x: sp.Function("z")(t), a: b})
    z = sp.Function("z")(t)
    assert new == Equation(D(z), -b * z + y)
    # eq itself is untouched
    assert eq.rhs == -a * x + y


def test_free_variables():
    eq = Equation(D(x), -a * x + y)
    assert eq.free_variables() == {x, y, a, t}


def test_first_appearance_order():
    eqs = [Equation(D(y), b), Equation(D(x), a), Equation(0, y - b)]
    assert get_states(eqs) == [y, x]
    assert get_parameters(eqs) == [b, a]


def test_independent_variable_is_no_parameter():
    eqs = [Equation(D(x), a * t)]
    assert get_parameters(eqs) == [a]
    assert set(get_parameters(eqs, iv=sp.Symbol("s"))) == {a, t}


def test_rename_keeps_kind():
    assert rename(x, "z") == sp.Function("z")(t)
    assert rename(a, "c") == sp.Symbol("c")

    k = sp.Symbol("k", positive=True)
    assert rename(k, "m").is_positive

    with pytest.raises(TypeError):
        rename(sp.Integer(1), "one")


def test_namespacing():
    namespaced = renamespace("P", x)
    assert getname(namespaced) == f"P{NAMESPACE_SEPARATOR}x"
    assert namespaced == sp.Function("P₊x")(t)
    assert renamespace("P", a) == sp.Symbol("P₊a")

    assert remove_namespace("P", namespaced) == x
    assert remove_namespace("Q", namespaced) == namespaced
    assert remove_namespace("P", a) == a


def test_makesym():
    assert makesym(x) == sp.Symbol("x")
    assert makesym(a) == a


def test_classification():
    assert differential_target(Equation(D(x), a)) == x
    assert differential_target(Equation(D(x), a), iv=t) == x
    assert differential_target(Equation(D(x), a), iv=sp.Symbol("s")) is None
    assert differential_target(Equation(sp.Derivative(x, t, 2), a)) is None
    assert differential_target(Equation(y, a)) is None

    assert is_residual(Equation(0, x - y))
    assert not is_residual(Equation(y, x))

    assert is_explicit_algebraic(Equation(y, a * x))
    assert not is_explicit_algebraic(Equation(y, a * y))
    assert not is_explicit_algebraic(Equation(D(y), a))
    assert not is_explicit_algebraic(Equation(0, a - y))
