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

from typing import TYPE_CHECKING, Iterable, Union

if TYPE_CHECKING:
    from .iosystems import AbstractIOSystem

__all__ = [
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


class BlockSystemsError(Exception):
    """Base class for all errors raised while building or compiling io systems.

    All errors are detected eagerly, i.e. while constructing blocks and systems
    or while generating functions, never when a generated function is called.
    """

    def __init__(
        self,
        message=None,
        *,
        system: Union["AbstractIOSystem", str] = None,
        symbols: Iterable = None,
    ):
        """Create a new BlockSystemsError.

        Only `message` is a positional argument, all others are keyword arguments.

        Args:
            message: A custom error message, defaults to the error class name.
            system: The block or system (or just its name) the error relates to.
            symbols: The offending symbols, if any.
        """
        super().__init__(message)

        if system is None or isinstance(system, str):
            self.system_name = system
        else:
            self.system_name = system.name

        self.message = message
        self.symbols = list(symbols) if symbols is not None else None

    def __str__(self):
        message = self.message or self.default_message
        return f"{message}{self._context_info()}"

    def _context_info(self) -> str:
        strbuf = []
        if self.system_name:
            strbuf.append(f" in system {self.system_name}")
        if self.symbols:
            strbuf.append(f": {', '.join(str(s) for s in self.symbols)}")
        if self.__cause__ is not None:
            strbuf.append(f" (caused by {self.__cause__!r})")
        return "".join(strbuf)

    @property
    def default_message(self):
        return type(self).__name__

    def caused_by(self, exc_type: type):
        """Check if this error is or was caused by another error type."""

        def _is_or_caused_by(exc, cause_type) -> bool:
            if not exc or not cause_type:
                return False
            if isinstance(exc, cause_type):
                return True
            return _is_or_caused_by(exc.__cause__, cause_type)

        return _is_or_caused_by(self, exc_type)


class SchemaError(BlockSystemsError):
    """Declared inputs/outputs don't match the free symbols of the equations."""

    pass


class InvariantViolation(BlockSystemsError):
    """The symbol categories of a block don't partition its parameters/states.

    This should be unreachable once the schema checks passed.
    """

    pass


class NamespaceCollisionError(BlockSystemsError):
    """Duplicate subsystem names or colliding promoted symbol names."""

    pass


class InvalidMapError(BlockSystemsError):
    """A user supplied namespace map is not valid for the system."""

    pass


class UnresolvedConnectionError(BlockSystemsError):
    """A connection does not point from a subsystem input to a subsystem output,
    or could not be resolved during flattening."""

    pass


class StructuralError(BlockSystemsError):
    """The equations can't be brought into the form needed for code generation."""

    pass


class ArgumentError(BlockSystemsError):
    """Invalid caller supplied argument, e.g. ordering hints or backend names."""

    pass


class SymbolNotFoundError(BlockSystemsError):
    """No symbol with the requested name exists in the block or system."""

    pass
