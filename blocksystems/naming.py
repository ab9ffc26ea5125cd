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

import itertools

__all__ = ["NameGenerator"]


class NameGenerator:
    """Generate unique names `<prefix>_<n>` with one counter per prefix.

    Block and system names are mandatory, this helps when many blocks of the
    same kind are created in a loop.
    """

    def __init__(self, separator: str = "_"):
        self.separator = separator
        self._counters = {}

    def __call__(self, prefix: str = "IOBlock") -> str:
        counter = self._counters.setdefault(prefix, itertools.count(1))
        return f"{prefix}{self.separator}{next(counter)}"

    def reset(self):
        self._counters.clear()
