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
Blocks of equations with inputs and outputs, and systems composed of them.

An IOBlock holds a square set of equations. Its parameters are split into
inputs and internal parameters (iparams), its states into outputs and
internal states (istates).

An IOSystem holds subsystems, connections between them and one promotion map
per category which maps the namespaced symbols of the subsystems to the
symbols of the system, e.g. `{P₊τ: τ, C₊K: K_c}`. An IOSystem does not hold
equations, it is turned into an IOBlock by `connect_system`.
"""

import abc
import collections
import copy
from types import MappingProxyType
from typing import Iterable, List, Union

import sympy as sp

from .error import (
    InvalidMapError,
    InvariantViolation,
    NamespaceCollisionError,
    SchemaError,
    StructuralError,
    SymbolNotFoundError,
    UnresolvedConnectionError,
)
from .logging import logdata, logger
from .namespace import fix_map_types, namespace_candidates, promote
from .symbolic import (
    NAMESPACE_SEPARATOR,
    Equation,
    get_parameters,
    get_states,
    getname,
    renamespace,
    t,
)

__all__ = ["AbstractIOSystem", "IOBlock", "IOSystem", "resolve", "CATEGORIES"]

CATEGORIES = ("inputs", "iparams", "istates", "outputs")


def _duplicates(items: Iterable) -> List:
    counts = collections.Counter(items)
    return [item for item, count in counts.items() if count > 1]


def _check_name(name):
    if not isinstance(name, str) or not name:
        raise SchemaError(f"Name must be a non-empty string, got {name!r}")


def _sympify_all(syms) -> tuple:
    if isinstance(syms, str):
        raise SchemaError(f"Expected a sequence of symbols, got the string {syms!r}")
    return tuple(sp.sympify(s) for s in syms)


class AbstractIOSystem(metaclass=abc.ABCMeta):
    """Common interface of IOBlock and IOSystem."""

    name: str
    iv: sp.Symbol
    inputs: tuple
    iparams: tuple
    istates: tuple
    outputs: tuple

    @property
    def symbols(self) -> tuple:
        return self.inputs + self.iparams + self.istates + self.outputs

    def namespace_property(self, category: str) -> list:
        return [renamespace(self.name, sym) for sym in getattr(self, category)]

    def namespace_inputs(self) -> list:
        return self.namespace_property("inputs")

    def namespace_iparams(self) -> list:
        return self.namespace_property("iparams")

    def namespace_istates(self) -> list:
        return self.namespace_property("istates")

    def namespace_outputs(self) -> list:
        return self.namespace_property("outputs")

    def resolve(self, name):
        """Namespaced symbol of this system, see `resolve`."""
        return resolve(self, name)

    def with_name(self, name: str):
        """Copy of this system under another name."""
        _check_name(name)
        new = copy.copy(self)
        new.name = name
        return new

    def _summary(self) -> str:
        lines = [f"{type(self).__name__} {self.name!r} {self._describe()}"]
        for i, category in enumerate(CATEGORIES):
            syms = getattr(self, category)
            branch = "└" if i == len(CATEGORIES) - 1 else "├"
            label = f"{category}:"
            content = ", ".join(str(s) for s in syms) if syms else "(empty)"
            lines.append(f"  {branch} {label:9} {content}")
        return "\n".join(lines)

    @abc.abstractmethod
    def _describe(self) -> str:
        pass

    def __repr__(self):
        return self._summary()


class IOBlock(AbstractIOSystem):
    """A named, square set of equations with declared inputs and outputs.

    Args:
        eqs: Equations, as `Equation`, `sympy.Eq` or `(lhs, rhs)` tuples.
        inputs: Parameters of the equations which are inputs of the block.
        outputs: States of the equations which are outputs of the block.
        name: Name of the block, used as namespace when the block becomes
            part of an IOSystem.
        iparams: Internal parameters. Derived from the equations if not given,
            if given they must match the derived ones and only fix the order.
        istates: Internal states, same as `iparams`.
        iv: Independent variable.

    Example:
        ```
        x, = variables("x")
        u, τ = parameters("u τ")
        D = Differential(t)
        P = IOBlock([(D(x), -x / τ + u)], [u], [x], name="P")
        ```
    """

    def __init__(
        self,
        eqs,
        inputs,
        outputs,
        *,
        name: str,
        iparams=None,
        istates=None,
        iv: sp.Symbol = t,
    ):
        _check_name(name)
        self.name = name
        self.iv = iv
        self.equations = tuple(Equation.from_any(eq) for eq in eqs)

        inputs = _sympify_all(inputs)
        outputs = _sympify_all(outputs)
        for category, declared in (("inputs", inputs), ("outputs", outputs)):
            duplicates = _duplicates(declared)
            if duplicates:
                raise SchemaError(
                    f"Duplicate {category} declared", system=name, symbols=duplicates
                )

        states = get_states(self.equations)
        params = get_parameters(self.equations, iv)

        not_params = [s for s in inputs if s not in set(params)]
        if not_params:
            raise SchemaError(
                "Inputs must be parameters of the equations",
                system=name,
                symbols=not_params,
            )
        not_states = [s for s in outputs if s not in set(states)]
        if not_states:
            raise SchemaError(
                "Outputs must be states of the equations",
                system=name,
                symbols=not_states,
            )

        self.inputs = inputs
        self.outputs = outputs
        self.iparams = self._internal(
            "iparams", iparams, [p for p in params if p not in set(inputs)]
        )
        self.istates = self._internal(
            "istates", istates, [s for s in states if s not in set(outputs)]
        )

        self._check_partition(states, params)

        duplicates = _duplicates(getname(s) for s in self.symbols)
        if duplicates:
            raise SchemaError(
                "Symbol names must be unique across inputs, iparams, istates "
                "and outputs",
                system=name,
                symbols=duplicates,
            )

        if len(self.equations) != len(states):
            raise StructuralError(
                f"Number of equations ({len(self.equations)}) does not match "
                f"the number of states ({len(states)})",
                system=name,
            )

    def _internal(self, category, given, derived) -> tuple:
        if given is None:
            return tuple(derived)
        given = _sympify_all(given)
        if len(given) != len(derived) or set(given) != set(derived):
            raise InvariantViolation(
                f"Given {category} don't match the {category} of the equations",
                system=self.name,
                symbols=given,
            )
        return given

    def _check_partition(self, states, params):
        if set(self.inputs) | set(self.iparams) != set(params) or set(
            self.inputs
        ) & set(self.iparams):
            raise InvariantViolation(
                "inputs and iparams don't partition the parameters", system=self
            )
        if set(self.istates) | set(self.outputs) != set(states) or set(
            self.istates
        ) & set(self.outputs):
            raise InvariantViolation(
                "istates and outputs don't partition the states", system=self
            )

    def _describe(self) -> str:
        return f"with {len(self.equations)} equations"


class IOSystem(AbstractIOSystem):
    """A system of connected subsystems.

    Args:
        connections: Mapping or sequence of `(input, output)` pairs of
            namespaced subsystem symbols. The input gets replaced by the output
            when the system is flattened.
        systems: Subsystems, IOBlocks or IOSystems with distinct names.
        name: Name of the system.
        inputs_map, iparams_map, istates_map, outputs_map: Optional partial
            maps from namespaced subsystem symbols to the symbols of this
            system. Values may be symbols or strings. Unmapped symbols are
            promoted automatically, i.e. to their bare name if that name is
            unique among the promoted names of all categories, else they keep
            the namespaced name.
        outputs: Namespaced subsystem outputs which are outputs of the
            system, all others become internal states. Can't be combined with
            `outputs_map`, whose keys select the outputs the same way.
        namespace_map: One map for all categories, split up by the category
            of its keys.

    Nested IOSystems are flattened on construction and kept in `blocks`, so
    states they eliminated are no symbols of this system.
    """

    def __init__(
        self,
        connections,
        systems,
        *,
        name: str,
        inputs_map=None,
        iparams_map=None,
        istates_map=None,
        outputs_map=None,
        outputs=None,
        namespace_map=None,
    ):
        _check_name(name)
        self.name = name
        self.systems = tuple(systems)

        if not self.systems:
            raise SchemaError("An IOSystem needs at least one subsystem", system=name)

        duplicates = _duplicates(sys.name for sys in self.systems)
        if duplicates:
            raise NamespaceCollisionError(
                "Subsystem names must be unique", system=name, symbols=duplicates
            )

        ivs = {sys.iv for sys in self.systems}
        if len(ivs) > 1:
            raise SchemaError(
                "Subsystems don't share the same independent variable",
                system=name,
                symbols=ivs,
            )
        self.iv = self.systems[0].iv

        # transformations imports this module
        from .transformations import connect_system

        self.blocks = tuple(
            connect_system(sys) if isinstance(sys, IOSystem) else sys
            for sys in self.systems
        )

        self.connections = MappingProxyType(self._check_connections(connections))

        pairs = {
            category: namespace_candidates(self.blocks, category)
            for category in CATEGORIES
        }

        if outputs is not None and outputs_map is not None:
            raise InvalidMapError(
                "Give either outputs or outputs_map, not both", system=name
            )
        if outputs is not None:
            exposed = set(_sympify_all(outputs))
            unknown = [o for o in exposed if o not in {q for q, _ in pairs["outputs"]}]
            if unknown:
                raise InvalidMapError(
                    "outputs must be namespaced outputs of the subsystems",
                    system=name,
                    symbols=unknown,
                )
        elif outputs_map is not None:
            outputs_map = fix_map_types(outputs_map, name)
            exposed = set(outputs_map)
        else:
            exposed = {q for q, _ in pairs["outputs"]}

        candidates = {
            "inputs": [p for p in pairs["inputs"] if p[0] not in self.connections],
            "iparams": pairs["iparams"],
            "istates": pairs["istates"]
            + [p for p in pairs["outputs"] if p[0] not in exposed],
            "outputs": [p for p in pairs["outputs"] if p[0] in exposed],
        }
        user_maps = {
            "inputs": inputs_map,
            "iparams": iparams_map,
            "istates": istates_map,
            "outputs": outputs_map,
        }
        if namespace_map:
            user_maps = self._split_namespace_map(namespace_map, candidates, user_maps)

        maps = {
            category: promote(
                candidates[category],
                user_maps[category],
                category=category,
                system_name=name,
            )
            for category in CATEGORIES
        }
        maps = self._keep_clashes_namespaced(maps, user_maps)

        duplicates = _duplicates(
            getname(sym) for category in CATEGORIES for sym in maps[category].values()
        )
        if duplicates:
            raise NamespaceCollisionError(
                "Promoted names must be unique across all categories",
                system=name,
                symbols=duplicates,
            )

        # read-only, categories are tuples
        self.inputs_map = MappingProxyType(maps["inputs"])
        self.iparams_map = MappingProxyType(maps["iparams"])
        self.istates_map = MappingProxyType(maps["istates"])
        self.outputs_map = MappingProxyType(maps["outputs"])

        self.inputs = tuple(self.inputs_map.values())
        self.iparams = tuple(self.iparams_map.values())
        self.istates = tuple(self.istates_map.values())
        self.outputs = tuple(self.outputs_map.values())

    @property
    def promotions(self) -> dict:
        """All four promotion maps merged, namespaced symbol -> system symbol."""
        return {
            **self.inputs_map,
            **self.iparams_map,
            **self.istates_map,
            **self.outputs_map,
        }

    def _check_connections(self, connections) -> dict:
        items = connections.items() if isinstance(connections, dict) else connections
        inputs = {q for blk in self.blocks for q in blk.namespace_inputs()}
        outputs = {q for blk in self.blocks for q in blk.namespace_outputs()}

        checked = {}
        for inp, out in items:
            inp, out = sp.sympify(inp), sp.sympify(out)
            if inp in checked:
                raise UnresolvedConnectionError(
                    "Input connected more than once", system=self, symbols=[inp]
                )
            if inp not in inputs:
                raise UnresolvedConnectionError(
                    "Connection source is not a namespaced input of a subsystem",
                    system=self,
                    symbols=[inp],
                )
            if out not in outputs:
                raise UnresolvedConnectionError(
                    "Connection target is not a namespaced output of a subsystem",
                    system=self,
                    symbols=[out],
                )
            checked[inp] = out
        return checked

    def _split_namespace_map(self, namespace_map, candidates, user_maps) -> dict:
        split = {
            category: dict(fix_map_types(user_map, self.name)) if user_map else {}
            for category, user_map in user_maps.items()
        }
        for key, value in fix_map_types(namespace_map, self.name).items():
            for category in CATEGORIES:
                if key in {q for q, _ in candidates[category]}:
                    break
            else:
                raise InvalidMapError(
                    "Key of namespace_map is no promotable symbol of the subsystems",
                    system=self,
                    symbols=[key],
                )
            if key in split[category]:
                raise InvalidMapError(
                    f"Key of namespace_map also given in {category}_map",
                    system=self,
                    symbols=[key],
                )
            split[category][key] = value
        return split

    def _keep_clashes_namespaced(self, maps, user_maps) -> dict:
        given = set()
        for user_map in user_maps.values():
            if user_map:
                given |= set(fix_map_types(user_map, self.name))

        # within a category clashes are already namespaced by `promote`
        names = [getname(p) for category in CATEGORIES for p in maps[category].values()]
        clashes = set(_duplicates(names))
        if not clashes:
            return maps

        kept = {}
        for category in CATEGORIES:
            kept[category] = {
                q: q if q not in given and getname(p) in clashes else p
                for q, p in maps[category].items()
            }
        demoted = [
            q
            for category in CATEGORIES
            for q, p in maps[category].items()
            if kept[category][q] != p
        ]
        if demoted:
            logger.warning(
                "Could not promote symbols whose names clash across categories, "
                "keeping %s",
                ", ".join(getname(q) for q in demoted),
                **logdata(system=self.name),
            )
        return kept

    def _describe(self) -> str:
        names = ", ".join(sys.name for sys in self.systems)
        return f"with subsystems {names}"


def resolve(sys: AbstractIOSystem, name: Union[str, sp.Basic]):
    """Find a symbol of `sys` by name and return it namespaced with `sys.name`.

    For IOSystems a namespaced subsystem name is followed through the
    promotion maps, e.g. if `P₊x(t)` was promoted to `y(t)` in `sys`, then
    `resolve(sys, "P₊x")` gives `sys₊y(t)`.
    """
    name = name if isinstance(name, str) else getname(name)
    for sym in sys.symbols:
        if getname(sym) == name:
            return renamespace(sys.name, sym)

    if isinstance(sys, IOSystem) and NAMESPACE_SEPARATOR in name:
        head, rest = name.split(NAMESPACE_SEPARATOR, 1)
        for sub in sys.systems:
            if sub.name != head:
                continue
            try:
                qualified = resolve(sub, rest)
            except SymbolNotFoundError as e:
                raise SymbolNotFoundError(
                    f"No symbol named {name!r}", system=sys
                ) from e
            if qualified in sys.promotions:
                return renamespace(sys.name, sys.promotions[qualified])

    raise SymbolNotFoundError(f"No symbol named {name!r}", system=sys)
