"""Handles that identify loaders, DEX files and the entities inside them."""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from typing import Union

from dexcore.idx import RegisterIdx

__all__ = [
    "ClassLoaderHdl",
    "DexFileHdl",
    "DexTypeHdl",
    "DexMethodHdl",
    "DexFieldHdl",
    "DexInsnHdl",
    "DexRegHdl",
    "JvmTypeHdl",
    "JvmMethodHdl",
    "JvmFieldHdl",
    "AnyDexHdl",
]

_U64 = (1 << 64) - 1


def _to_int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


class _ComponentwiseOrder:
    """Partial order: one handle is less than another only if every part is.

    The remaining comparisons are derived from ``__lt__`` the same way for
    every handle, so two handles may be neither less nor greater.
    """

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return other < self

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return not other < self

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return not self < other


@dataclass(frozen=True, order=True)
class ClassLoaderHdl:
    """A handle to a class loader, an unsigned 8-bit number."""

    idx: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "idx", int(self.idx) & 0xFF)

    def __int__(self) -> int:
        return self.idx

    def __index__(self) -> int:
        return self.idx

    def __str__(self) -> str:
        return str(self.idx)


def _loader(value: Union[ClassLoaderHdl, int]) -> ClassLoaderHdl:
    return value if isinstance(value, ClassLoaderHdl) else ClassLoaderHdl(value)


@dataclass(frozen=True)
class DexFileHdl(_ComponentwiseOrder):
    """A handle to a DEX file within a class loader."""

    loader_hdl: ClassLoaderHdl
    idx: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "loader_hdl", _loader(self.loader_hdl))
        object.__setattr__(self, "idx", int(self.idx) & 0xFF)

    def __int__(self) -> int:
        return (int(self.loader_hdl) << 8) | self.idx

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.loader_hdl < other.loader_hdl and self.idx < other.idx

    def __str__(self) -> str:
        return f"{int(self.loader_hdl)}_{self.idx}"


@dataclass(frozen=True)
class _FileEntityHdl(_ComponentwiseOrder):
    file_hdl: DexFileHdl
    idx: int

    _TAG = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "idx", int(self.idx) & 0xFFFF)

    def __int__(self) -> int:
        return ((int(self.file_hdl) & 0xFFFF) << 16) | self.idx

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.file_hdl < other.file_hdl and self.idx < other.idx

    def __str__(self) -> str:
        return f"{self.file_hdl}_{self._TAG}{self.idx}"


@dataclass(frozen=True)
class DexTypeHdl(_FileEntityHdl):
    """A handle to a type ID in a DEX file."""

    _TAG = "t"

    def __int__(self) -> int:
        return super().__int__()

    def __lt__(self, other):
        return super().__lt__(other)

    def __str__(self) -> str:
        return super().__str__()


@dataclass(frozen=True)
class DexMethodHdl(_FileEntityHdl):
    """A handle to a method ID in a DEX file."""

    _TAG = "m"

    def __int__(self) -> int:
        return super().__int__()

    def __lt__(self, other):
        return super().__lt__(other)

    def __str__(self) -> str:
        return super().__str__()


@dataclass(frozen=True)
class DexFieldHdl(_FileEntityHdl):
    """A handle to a field ID in a DEX file."""

    _TAG = "f"

    def __int__(self) -> int:
        return super().__int__()

    def __lt__(self, other):
        return super().__lt__(other)

    def __str__(self) -> str:
        return super().__str__()


@dataclass(frozen=True)
class DexInsnHdl(_ComponentwiseOrder):
    """A handle to an instruction within a method."""

    method_hdl: DexMethodHdl
    idx: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "idx", int(self.idx) & 0xFFFF)

    def __int__(self) -> int:
        return ((int(self.method_hdl) & 0xFFFFFFFF) << 16) | self.idx

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.method_hdl < other.method_hdl and self.idx < other.idx

    def __str__(self) -> str:
        return f"{self.method_hdl}_i{self.idx}"


@dataclass(frozen=True)
class DexRegHdl(_ComponentwiseOrder):
    """A handle to a register as seen by one instruction.

    The index is a signed 16-bit value, so the special negative register
    indexes (result, exception) can be stored.
    """

    insn_hdl: DexInsnHdl
    idx: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "idx", _to_int16(int(self.idx)))

    def __int__(self) -> int:
        # A negative index sign-extends over the whole 64-bit value.
        return ((int(self.insn_hdl) << 32) | (self.idx & _U64)) & _U64

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.insn_hdl < other.insn_hdl and self.idx < other.idx

    def __str__(self) -> str:
        return f"{self.insn_hdl}_{RegisterIdx(self.idx)}"


@total_ordering
@dataclass(frozen=True)
class JvmTypeHdl:
    """A type named by its descriptor within a class loader."""

    loader_hdl: ClassLoaderHdl
    descriptor: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "loader_hdl", _loader(self.loader_hdl))

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        if self.loader_hdl != other.loader_hdl:
            return self.loader_hdl < other.loader_hdl
        return self.descriptor < other.descriptor

    def __str__(self) -> str:
        return f"{int(self.loader_hdl)}:{self.descriptor}"


@dataclass(frozen=True)
class JvmMethodHdl:
    """A method named by its type and its name plus prototype descriptor."""

    type_hdl: JvmTypeHdl
    unique_name: str

    def return_descriptor(self) -> str:
        """Return the part after the last ')', or '' if there is none."""
        _, sep, tail = self.unique_name.rpartition(")")
        return tail if sep else ""

    def __str__(self) -> str:
        return f"{self.type_hdl}.{self.unique_name}"


@dataclass(frozen=True)
class JvmFieldHdl:
    """A field named by its type and its name."""

    type_hdl: JvmTypeHdl
    unique_name: str

    def __str__(self) -> str:
        return f"{self.type_hdl}.{self.unique_name}"


AnyDexHdl = Union[
    ClassLoaderHdl,
    DexFileHdl,
    DexTypeHdl,
    DexMethodHdl,
    DexFieldHdl,
    DexInsnHdl,
    DexRegHdl,
]