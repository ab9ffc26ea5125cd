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
Flattening of an IOSystem into a single IOBlock.

The steps are:
    1. take the subsystems as blocks, nested IOSystems are flattened already
    2. namespace the equations of every subsystem with its name
    3. replace connected inputs by the outputs they are connected to
    4. eliminate explicit algebraic states which are only used as
        intermediate results, e.g. outputs which feed other blocks
    5. rename everything according to the promotion maps of the system
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Tuple

import sympy as sp
from sympy.core.function import AppliedUndef

from .error import UnresolvedConnectionError
from .iosystems import IOBlock, IOSystem
from .lazy_loader import LazyLoader
from .logging import logdata, logger, scope_logging
from .symbolic import (
    Equation,
    get_parameters,
    is_explicit_algebraic,
    renamespace,
    t,
)

if TYPE_CHECKING:
    import networkx as nx
else:
    nx = LazyLoader("nx", globals(), "networkx")

__all__ = [
    "connect_system",
    "flatten",
    "namespace_equations",
    "substitute_connections",
    "reduce_algebraic_states",
]


def namespace_equations(block: IOBlock) -> List[Equation]:
    """Equations of the block with every symbol namespaced by the block name."""
    rules = {sym: renamespace(block.name, sym) for sym in block.symbols}
    return [eq.xreplace(rules) for eq in block.equations]


def _resolve_transitively(connections: dict) -> dict:
    resolved = {}
    for inp, out in connections.items():
        seen = {inp}
        while out in connections:
            if out in seen:
                raise UnresolvedConnectionError(
                    "Cyclic connections", symbols=sorted(seen, key=str)
                )
            seen.add(out)
            out = connections[out]
        resolved[inp] = out
    return resolved


def substitute_connections(
    eqs: Iterable[Equation], connections: dict, system=None
) -> List[Equation]:
    """Replace every connected input by the output it is connected to."""
    rules = _resolve_transitively(dict(connections))
    eqs = [eq.xreplace(rules) for eq in eqs]

    present = set().union(*(eq.free_variables() for eq in eqs))

    dangling = [inp for inp in rules if inp in present]
    if dangling:
        raise UnresolvedConnectionError(
            "Connected inputs survived the substitution",
            system=system,
            symbols=dangling,
        )
    missing = [out for out in dict.fromkeys(rules.values()) if out not in present]
    if missing:
        raise UnresolvedConnectionError(
            "Connection targets don't appear in any equation",
            system=system,
            symbols=missing,
        )
    return eqs


def _differentiated_states(eqs: Iterable[Equation]) -> set:
    states = set()
    for eq in eqs:
        for d in eq.lhs.atoms(sp.Derivative) | eq.rhs.atoms(sp.Derivative):
            states |= d.expr.atoms(AppliedUndef)
    return states


def reduce_algebraic_states(
    eqs: Iterable[Equation], skip=(), iv: sp.Symbol = t
) -> Tuple[List[Equation], List]:
    """Eliminate explicit algebraic equations `o ~ expr` by substitution.

    An equation is eliminated if `o` is not in `skip`, never appears under a
    derivative, `expr` contains no derivative and `o` appears in at least one
    other equation. Algebraic loops among the candidates are left alone.

    Returns:
        The remaining equations in their original order and the eliminated
        states in elimination order.
    """
    eqs = list(eqs)
    skip = set(skip)
    differentiated = _differentiated_states(eqs)

    candidates = {}
    for i, eq in enumerate(eqs):
        if not is_explicit_algebraic(eq):
            continue
        o = eq.lhs
        if o.args != (iv,):
            continue
        if o in skip or o in differentiated or o in candidates:
            continue
        if eq.rhs.atoms(sp.Derivative):
            continue
        candidates[o] = i

    graph = nx.DiGraph()
    graph.add_nodes_from(candidates)
    for o, i in candidates.items():
        for dep in eqs[i].rhs.atoms(AppliedUndef):
            if dep in candidates:
                graph.add_edge(o, dep)

    loops = [scc for scc in nx.strongly_connected_components(graph) if len(scc) > 1]
    if loops:
        in_loops = sorted((o for scc in loops for o in scc), key=candidates.get)
        logger.warning(
            "Algebraic loop, can't eliminate %s",
            ", ".join(str(o) for o in in_loops),
        )
        graph.remove_nodes_from(in_loops)

    active = dict(enumerate(eqs))
    reduced = []
    for o in nx.lexicographical_topological_sort(graph, key=candidates.get):
        i = candidates[o]
        users = [j for j, eq in active.items() if j != i and o in eq.free_variables()]
        if not users:
            continue
        rule = {o: active.pop(i).rhs}
        for j in users:
            active[j] = active[j].xreplace(rule)
        reduced.append(o)

    return [active[j] for j in sorted(active)], reduced


@scope_logging
def connect_system(ios: IOSystem, verbose: bool = False) -> IOBlock:
    """Flatten an IOSystem into an IOBlock with the same name and interface.

    The inputs, iparams and outputs of the block are the ones of the system.
    Its istates are the system's istates without the eliminated ones.
    """
    if isinstance(ios, IOBlock):
        return ios

    eqs = [eq for block in ios.blocks for eq in namespace_equations(block)]
    if verbose:
        logger.info("Namespaced equations: %s", eqs, **logdata(system=ios))

    eqs = substitute_connections(eqs, ios.connections, system=ios)
    if verbose:
        logger.info("Connections substituted: %s", eqs, **logdata(system=ios))

    eqs, reduced = reduce_algebraic_states(eqs, skip=ios.outputs_map, iv=ios.iv)
    if reduced:
        logger.debug(
            "Eliminated algebraic states %s",
            ", ".join(str(o) for o in reduced),
            **logdata(system=ios),
        )

    promotions = ios.promotions
    eqs = [eq.xreplace(promotions) for eq in eqs]

    reduced = set(reduced)
    istates = [p for q, p in ios.istates_map.items() if q not in reduced]

    remaining = set(get_parameters(eqs, ios.iv))
    inputs = [p for p in ios.inputs if p in remaining]
    iparams = [p for p in ios.iparams if p in remaining]
    dropped = [p for p in ios.inputs + ios.iparams if p not in remaining]
    if dropped:
        logger.warning(
            "Parameters %s don't appear in the flattened equations and are dropped",
            ", ".join(str(p) for p in dropped),
            **logdata(system=ios),
        )

    block = IOBlock(
        eqs,
        inputs,
        ios.outputs,
        name=ios.name,
        iparams=iparams,
        istates=istates,
        iv=ios.iv,
    )
    if verbose:
        logger.info("Flattened block:\n%s", block, **logdata(system=ios))
    return block


flatten = connect_system
