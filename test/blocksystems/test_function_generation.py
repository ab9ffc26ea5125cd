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

import numpy as np
import pytest
import sympy as sp

from blocksystems import (
    Differential,
    Equation,
    IdentityMassMatrix,
    IOBlock,
    IOSystem,
    generate_io_function,
    parameters,
    t,
    variables,
)
from blocksystems.error import ArgumentError, StructuralError
from blocksystems.function_generation import (
    generate_massmatrix,
    reorder_by_states,
    transform_algebraic_equations,
)

D = Differential(t)
x, y = variables("x y")
u, τ, e, K, a = parameters("u τ e K a")


def f(name):
    return sp.Function(name)(t)


def lowpass(name="P"):
    return IOBlock([(D(x), -x / τ + u)], [u], [x], name=name)


def gain(name="C"):
    return IOBlock([(y, K * e)], [e], [y], name=name)


def test_lowpass():
    func = generate_io_function(lowpass())
    assert func.states == [x]
    assert func.inputs == [u]
    assert func.params == [τ]
    assert isinstance(func.massm, IdentityMassMatrix)
    np.testing.assert_array_equal(np.asarray(func.massm), np.eye(1))

    du = func.f_oop(np.array([2.0]), np.array([0.0]), np.array([1.0]), 0.0)
    np.testing.assert_allclose(du, [-2.0])

    du = np.zeros(1)
    assert func.f_ip(du, np.array([2.0]), np.array([1.0]), np.array([2.0]), 0.0) is None
    np.testing.assert_allclose(du, [0.0])


def test_decay_at_zero():
    blk = IOBlock([(D(x), -a * x), (D(y), -a * y)], [], [x, y], name="decay")
    func = generate_io_function(blk)
    du = func.f_oop(np.zeros(2), [], [0.5], 0.0)
    np.testing.assert_array_equal(du, np.zeros(2))


def test_time_dependent():
    blk = IOBlock([(D(x), a * t)], [], [x], name="ramp")
    func = generate_io_function(blk)
    np.testing.assert_allclose(func.f_oop([0.0], [], [2.0], 3.0), [6.0])


def test_massmatrix_with_algebraic_equation():
    blk = IOBlock([(D(x), -x + y), (y, K * x)], [], [x, y], name="dae")
    func = generate_io_function(blk)

    assert func.states == [x, y]
    np.testing.assert_array_equal(func.massm, np.diag([1.0, 0.0]))
    assert func.equations[1].lhs == 0

    du = func.f_oop(np.array([1.0, 2.0]), [], np.array([3.0]), 0.0)
    # x' = -x + y and 0 = K x - y
    np.testing.assert_allclose(du, [1.0, 1.0])


def test_first_states():
    blk = IOBlock([(D(x), -x + y), (y, K * x)], [], [x, y], name="dae")
    func = generate_io_function(blk, first_states=[y])
    assert func.states == [y, x]
    np.testing.assert_array_equal(func.massm, np.diag([0.0, 1.0]))


def test_system_with_namespaced_hints():
    P, C = lowpass(), gain()
    sys = IOSystem({P.resolve("u"): C.resolve("y")}, [P, C], name="chain")

    func = generate_io_function(sys, first_states=[f("chain₊y")], first_inputs=[e])
    assert func.states == [y, x]
    assert func.inputs == [e]
    assert func.params == [τ, K]
    np.testing.assert_array_equal(func.massm, np.diag([0.0, 1.0]))

    # y = K e, x' = -x / τ + y
    du = func.f_oop(np.array([2.0, 4.0]), np.array([1.0]), np.array([2.0, 2.0]), 0.0)
    np.testing.assert_allclose(du, [0.0, 0.0])
    du = func.f_oop(np.array([0.0, 4.0]), np.array([1.0]), np.array([2.0, 2.0]), 0.0)
    np.testing.assert_allclose(du, [2.0, -2.0])


def test_system_feedback():
    P, C = lowpass(), gain()
    sys = IOSystem(
        {C.resolve("e"): P.resolve("x"), P.resolve("u"): C.resolve("y")},
        [P, C],
        name="loop",
        outputs=[P.resolve("x")],
    )
    func = generate_io_function(sys, simplify=False)
    assert func.states == [x]
    assert func.inputs == []
    assert func.params == [τ, K]

    du = func.f_oop([2.0], [], [1.0, 3.0], 0.0)
    np.testing.assert_allclose(du, [4.0])


def test_bad_hints():
    with pytest.raises(ArgumentError):
        generate_io_function(lowpass(), first_states=[f("nope")])
    with pytest.raises(ArgumentError):
        generate_io_function(lowpass(), first_inputs=[τ])


def test_unknown_backend():
    with pytest.raises(ArgumentError):
        generate_io_function(lowpass(), backend="fortran")


def test_derivative_in_rhs():
    blk = IOBlock([(D(x), -x + D(y)), (D(y), -y)], [], [x, y], name="blk")
    with pytest.raises(StructuralError):
        generate_io_function(blk)


def test_transform_algebraic_equations():
    eqs = [Equation(D(x), -x), Equation(y, K * x), Equation(0, x - y)]
    assert transform_algebraic_equations(eqs) == [
        Equation(D(x), -x),
        Equation(0, K * x - y),
        Equation(0, x - y),
    ]


def test_reorder_by_states():
    eqs = [Equation(0, y - x), Equation(D(x), -x)]
    assert reorder_by_states(eqs, [x, y]) == [eqs[1], eqs[0]]
    assert reorder_by_states(eqs, [y, x]) == eqs

    with pytest.raises(StructuralError):
        reorder_by_states(eqs, [x])


def test_generate_massmatrix():
    assert generate_massmatrix([Equation(D(x), -x)]) == IdentityMassMatrix(1)
    assert IdentityMassMatrix(3).shape == (3, 3)

    with pytest.raises(StructuralError):
        generate_massmatrix([Equation(0, D(x) - y)])
    with pytest.raises(StructuralError):
        generate_massmatrix([Equation(y, x)])


def test_jax_backend():
    jnp = pytest.importorskip("jax.numpy")
    func = generate_io_function(lowpass(), backend="jax")
    du = func.f_oop(jnp.array([2.0]), jnp.array([0.0]), jnp.array([1.0]), 0.0)
    assert isinstance(du, type(jnp.zeros(1)))
    np.testing.assert_allclose(np.asarray(du), [-2.0])
