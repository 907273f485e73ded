"""Strongly typed indexes into DEX tables and register files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, TypeVar, Union

__all__ = [
    "Idx",
    "DexFieldIdx",
    "DexStringIdx",
    "DexTypeIdx",
    "DexMethodIdx",
    "DexProtoIdx",
    "DexVtabIdx",
    "DexInsnIdx",
    "RegisterIdx",
]

_T = TypeVar("_T", bound="Idx")


def _to_int32(value: int) -> int:
    """Wrap an integer into the signed 32-bit range."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


@dataclass(frozen=True, order=True)
class Idx:
    """A signed 32-bit index.

    The DEX format marks a missing index with ``0xffffffff``, which becomes
    ``-1`` here and is reported as invalid. Indexes of different kinds never
    compare equal and cannot be ordered against each other.
    """

    value: int

    UNKNOWN: ClassVar[int] = -1

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _to_int32(int(self.value)))

    def valid(self) -> bool:
        """Return True unless this is the unknown index."""
        return self.value != self.UNKNOWN

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def _operand(self, other: Union["Idx", int]) -> int:
        if isinstance(other, Idx):
            if type(other) is not type(self):
                raise TypeError(
                    f"cannot combine {type(self).__name__} "
                    f"with {type(other).__name__}"
                )
            return other.value
        if isinstance(other, int):
            return other
        raise TypeError(f"unsupported operand: {other!r}")

    def __add__(self: _T, other: Union["Idx", int]) -> _T:
        try:
            operand = self._operand(other)
        except TypeError:
            return NotImplemented
        return type(self)(self.value + operand)

    def __sub__(self: _T, other: Union["Idx", int]) -> _T:
        try:
            operand = self._operand(other)
        except TypeError:
            return NotImplemented
        return type(self)(self.value - operand)

    def __str__(self) -> str:
        return str(self.value)


class DexFieldIdx(Idx):
    """Index into the field ID table."""


class DexStringIdx(Idx):
    """Index into the string ID table."""


class DexTypeIdx(Idx):
    """Index into the type ID table."""


class DexMethodIdx(Idx):
    """Index into the method ID table."""


class DexProtoIdx(Idx):
    """Index into the prototype ID table."""


class DexVtabIdx(Idx):
    """Index into a virtual method table."""


class DexInsnIdx(Idx):
    """Index of an instruction within a method."""


class RegisterIdx(Idx):
    """A register index, with negative values reserved for special registers."""

    RESULT: ClassVar[int] = -2
    EXCEPTION: ClassVar[int] = -3

    def is_result(self) -> bool:
        """Return True if this is the result register."""
        return self.value == self.RESULT

    def is_exception(self) -> bool:
        """Return True if this is the exception register."""
        return self.value == self.EXCEPTION

    def __str__(self) -> str:
        if self.value == self.UNKNOWN:
            return "v?"
        if self.value == self.RESULT:
            return "vR"
        if self.value == self.EXCEPTION:
            return "vE"
        return f"v{self.value}"