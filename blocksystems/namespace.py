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
Promotion of namespaced symbols `sys₊x` to names in the namespace of the
enclosing system.

Every promotion works on an ordered list of candidate pairs
`(namespaced, bare)`, e.g. `(P₊x(t), x(t))`. A bare name is promoted if it is
unique among the candidates, otherwise the namespaced name is kept.
"""

import collections
from typing import Iterable, List, Tuple

import sympy as sp

from .error import InvalidMapError, NamespaceCollisionError
from .logging import logdata, logger
from .symbolic import getname, is_parameter, is_state, rename, renamespace

__all__ = [
    "namespace_candidates",
    "create_namespace_map",
    "promote",
    "fix_map_types",
]

Pairs = List[Tuple[sp.Basic, sp.Basic]]


def namespace_candidates(systems: Iterable, category: str) -> Pairs:
    """(namespaced, bare) pairs of one symbol category, in subsystem order."""
    return [
        (renamespace(sys.name, sym), sym)
        for sys in systems
        for sym in getattr(sys, category)
    ]


def _duplicate_names(syms: Iterable) -> List[str]:
    counts = collections.Counter(getname(s) for s in syms)
    return [name for name, count in counts.items() if count > 1]


def _promote_pairs(pairs: Pairs, skip=(), system_name=None) -> dict:
    skip = set(skip)
    pairs = [(q, bare) for q, bare in pairs if q not in skip]
    duplicates = set(_duplicate_names(bare for _, bare in pairs))

    if duplicates:
        not_promoted = [q for q, bare in pairs if getname(bare) in duplicates]
        logger.warning(
            "Could not promote all symbols to the system namespace, keeping %s",
            ", ".join(getname(q) for q in not_promoted),
            **logdata(system=system_name),
        )

    return {
        q: q if getname(bare) in duplicates else bare for q, bare in pairs
    }


def create_namespace_map(systems: Iterable, category: str, skip=(), system_name=None):
    """Automatic promotion map of one category of the given subsystems.

    Namespaced symbols in `skip` don't show up in the map.
    """
    pairs = namespace_candidates(systems, category)
    return _promote_pairs(pairs, skip=skip, system_name=system_name)


def fix_map_types(mapping, system_name=None) -> dict:
    """Normalize a user given map.

    The map may be a dict or an iterable of pairs. Keys are sympified, string
    values become symbols of the same kind as their key.
    """
    items = mapping.items() if isinstance(mapping, dict) else mapping
    fixed = {}
    for key, value in items:
        key = sp.sympify(key)
        if not (is_state(key) or is_parameter(key)):
            raise InvalidMapError(
                f"Can't use {key} as a key of a namespace map", system=system_name
            )
        if key in fixed:
            raise InvalidMapError(
                "Key given twice in namespace map", system=system_name, symbols=[key]
            )
        if isinstance(value, str):
            value = rename(key, value)
        else:
            value = sp.sympify(value)
            same_kind = is_state(key) == is_state(value)
            if not (is_state(value) or is_parameter(value)) or not same_kind:
                raise InvalidMapError(
                    f"Can't map {key} to {value}, states must map to states "
                    "and parameters to parameters",
                    system=system_name,
                )
        fixed[key] = value
    return fixed


def promote(pairs: Pairs, user_map=None, *, skip=(), category="symbols", system_name=None):
    """Merge a user given promotion map with the automatic promotion.

    Keys of `user_map` have to be namespaced candidates. The remaining
    candidates (without `skip`) are promoted automatically. The result follows
    the candidate order.
    """
    pairs = list(pairs)
    user_map = fix_map_types(user_map, system_name) if user_map else {}

    legal = {q for q, _ in pairs}
    illegal = [key for key in user_map if key not in legal]
    if illegal:
        raise InvalidMapError(
            f"Keys of {category}_map must be namespaced {category} of the subsystems",
            system=system_name,
            symbols=illegal,
        )

    duplicates = _duplicate_names(user_map.values())
    if duplicates:
        raise InvalidMapError(
            f"Values of {category}_map are not unique",
            system=system_name,
            symbols=duplicates,
        )

    auto = _promote_pairs(
        pairs, skip=set(skip) | set(user_map), system_name=system_name
    )

    merged = {}
    for q, _ in pairs:
        if q in user_map:
            merged[q] = user_map[q]
        elif q in auto:
            merged[q] = auto[q]

    duplicates = _duplicate_names(merged.values())
    if duplicates:
        raise NamespaceCollisionError(
            f"Promoted {category} collide with the names given in {category}_map",
            system=system_name,
            symbols=duplicates,
        )
    return merged
