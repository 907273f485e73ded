"""Fixed-layout records of the DEX file format and raw instruction decoding.

All multi-byte values are little-endian. Every ``parse`` reads one record at
a byte offset of a buffer and raises ValueError if the buffer is too short.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

from dexcore.access_flags import AccessFlags
from dexcore.idx import DexProtoIdx, DexStringIdx, DexTypeIdx
from dexcore.insn_info import InsnFmtId
from dexcore.opcode import Opcode

__all__ = [
    "DexStringId",
    "DexTypeId",
    "DexProtoId",
    "DexFieldId",
    "DexMethodId",
    "DexOptHeader",
    "DexHeader",
    "DexClassDef",
    "DexCodeHeader",
    "DexTryItem",
    "RawInsn",
    "decode_raw_insn",
    "PackedSwitchPayload",
    "SparseSwitchPayload",
    "FillArrayDataPayload",
]


def _check(data, offset: int, size: int) -> None:
    if offset < 0 or offset + size > len(data):
        raise ValueError(
            f"need {size} bytes at offset {offset}, buffer holds {len(data)}"
        )


def _unpack(fmt: str, data, offset: int) -> tuple:
    _check(data, offset, struct.calcsize(fmt))
    return struct.unpack_from(fmt, data, offset)


@dataclass(frozen=True)
class DexStringId:
    """Offset of a string's data item."""

    string_data_off: int

    SIZE: ClassVar[int] = 4

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexStringId":
        (off,) = _unpack("<I", data, offset)
        return cls(off)


@dataclass(frozen=True)
class DexTypeId:
    """A type, named by the string index of its descriptor."""

    descriptor_idx: DexStringIdx

    SIZE: ClassVar[int] = 4

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexTypeId":
        (idx,) = _unpack("<I", data, offset)
        return cls(DexStringIdx(idx))


@dataclass(frozen=True)
class DexProtoId:
    """A method prototype."""

    shorty_idx: DexStringIdx
    return_type_idx: DexTypeIdx
    parameters_off: int

    SIZE: ClassVar[int] = 12

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexProtoId":
        shorty, ret, params = _unpack("<III", data, offset)
        return cls(DexStringIdx(shorty), DexTypeIdx(ret), params)


@dataclass(frozen=True)
class DexFieldId:
    """A field reference."""

    class_idx: DexTypeIdx
    type_idx: DexTypeIdx
    name_idx: DexStringIdx

    SIZE: ClassVar[int] = 8

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexFieldId":
        class_idx, type_idx, name_idx = _unpack("<HHI", data, offset)
        return cls(DexTypeIdx(class_idx), DexTypeIdx(type_idx), DexStringIdx(name_idx))


@dataclass(frozen=True)
class DexMethodId:
    """A method reference."""

    class_idx: DexTypeIdx
    proto_idx: DexProtoIdx
    name_idx: DexStringIdx

    SIZE: ClassVar[int] = 8

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexMethodId":
        class_idx, proto_idx, name_idx = _unpack("<HHI", data, offset)
        return cls(
            DexTypeIdx(class_idx), DexProtoIdx(proto_idx), DexStringIdx(name_idx)
        )


@dataclass(frozen=True)
class DexOptHeader:
    """Header of an optimized (ODEX) file wrapping a DEX image."""

    magic: bytes
    dex_off: int
    dex_size: int
    deps_off: int
    deps_size: int
    opt_off: int
    opt_size: int
    flags: int
    checksum: int

    SIZE: ClassVar[int] = 40

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexOptHeader":
        return cls(*_unpack("<8s8I", data, offset))


@dataclass(frozen=True)
class DexHeader:
    """The DEX file header."""

    magic: bytes
    checksum: int
    signature: bytes
    file_size: int
    header_size: int
    endian_tag: int
    link_size: int
    link_off: int
    map_off: int
    string_ids_size: int
    string_ids_off: int
    type_ids_size: int
    type_ids_off: int
    proto_ids_size: int
    proto_ids_off: int
    field_ids_size: int
    field_ids_off: int
    method_ids_size: int
    method_ids_off: int
    class_defs_size: int
    class_defs_off: int
    data_size: int
    data_off: int

    SIZE: ClassVar[int] = 112

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexHeader":
        return cls(*_unpack("<8sI20s20I", data, offset))


@dataclass(frozen=True)
class DexClassDef:
    """A class definition."""

    class_idx: DexTypeIdx
    access_flags: AccessFlags
    superclass_idx: DexTypeIdx
    interfaces_off: int
    source_file_idx: DexStringIdx
    annotations_off: int
    class_data_off: int
    static_values_off: int

    SIZE: ClassVar[int] = 32

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexClassDef":
        (
            class_idx,
            flags,
            superclass_idx,
            interfaces_off,
            source_file_idx,
            annotations_off,
            class_data_off,
            static_values_off,
        ) = _unpack("<8I", data, offset)
        return cls(
            DexTypeIdx(class_idx),
            AccessFlags(flags),
            DexTypeIdx(superclass_idx),
            interfaces_off,
            DexStringIdx(source_file_idx),
            annotations_off,
            class_data_off,
            static_values_off,
        )


@dataclass(frozen=True)
class DexCodeHeader:
    """Header of a method's code item."""

    registers_size: int
    ins_size: int
    outs_size: int
    tries_size: int
    debug_info_off: int
    insns_size: int

    SIZE: ClassVar[int] = 16

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexCodeHeader":
        return cls(*_unpack("<4H2I", data, offset))


@dataclass(frozen=True)
class DexTryItem:
    """A try block covering a range of code units."""

    start_addr: int
    insn_count: int
    handler_off: int

    SIZE: ClassVar[int] = 8

    @classmethod
    def parse(cls, data, offset: int = 0) -> "DexTryItem":
        return cls(*_unpack("<I2H", data, offset))


@dataclass(frozen=True)
class RawInsn:
    """One decoded instruction word.

    ``size`` is the length in 16-bit code units. ``regs`` lists the register
    operands in order; for range formats it is the expanded range. The
    ``literal`` of format 21h is the raw high half as stored, unshifted.
    ``index`` holds a pool index, a field offset, a vtable offset or an
    inline index, depending on the format.
    """

    op: Opcode
    fmt_id: InsnFmtId
    size: int
    regs: tuple[int, ...] = ()
    literal: int | None = None
    branch_offset: int | None = None
    index: int | None = None
    error_kind: int | None = None


_UNITS = {
    InsnFmtId.FMT_10X: 1,
    InsnFmtId.FMT_12X: 1,
    InsnFmtId.FMT_11N: 1,
    InsnFmtId.FMT_11X: 1,
    InsnFmtId.FMT_10T: 1,
    InsnFmtId.FMT_20T: 2,
    InsnFmtId.FMT_20BC: 2,
    InsnFmtId.FMT_22X: 2,
    InsnFmtId.FMT_21T: 2,
    InsnFmtId.FMT_21S: 2,
    InsnFmtId.FMT_21H: 2,
    InsnFmtId.FMT_21C: 2,
    InsnFmtId.FMT_23X: 2,
    InsnFmtId.FMT_22B: 2,
    InsnFmtId.FMT_22T: 2,
    InsnFmtId.FMT_22S: 2,
    InsnFmtId.FMT_22C: 2,
    InsnFmtId.FMT_22CS: 2,
    InsnFmtId.FMT_30T: 3,
    InsnFmtId.FMT_32X: 3,
    InsnFmtId.FMT_31I: 3,
    InsnFmtId.FMT_31T: 3,
    InsnFmtId.FMT_31C: 3,
    InsnFmtId.FMT_35C: 3,
    InsnFmtId.FMT_35MS: 3,
    InsnFmtId.FMT_35MI: 3,
    InsnFmtId.FMT_3RC: 3,
    InsnFmtId.FMT_3RMS: 3,
    InsnFmtId.FMT_3RMI: 3,
    InsnFmtId.FMT_51L: 5,
}


def _signed_nibble(n: int) -> int:
    return n - 16 if n & 0x8 else n


def decode_raw_insn(data, offset: int, fmt_id: InsnFmtId) -> RawInsn:
    """Decode the instruction at byte ``offset`` using format ``fmt_id``."""
    try:
        units = _UNITS[fmt_id]
    except KeyError:
        raise ValueError(f"format {fmt_id.name} has no encoding") from None
    _check(data, offset, units * 2)

    op = Opcode(data[offset])
    b1 = data[offset + 1]
    lo, hi = b1 & 0xF, b1 >> 4

    def make(**fields) -> RawInsn:
        return RawInsn(op, fmt_id, units, **fields)

    def field(fmt: str, at: int) -> int:
        return struct.unpack_from(fmt, data, offset + at)[0]

    F = InsnFmtId
    match fmt_id:
        case F.FMT_10X:
            return make()
        case F.FMT_12X:
            return make(regs=(lo, hi))
        case F.FMT_11N:
            return make(regs=(lo,), literal=_signed_nibble(hi))
        case F.FMT_11X:
            return make(regs=(b1,))
        case F.FMT_10T:
            return make(branch_offset=field("<b", 1))
        case F.FMT_20T:
            return make(branch_offset=field("<h", 2))
        case F.FMT_20BC:
            return make(error_kind=b1, index=field("<H", 2))
        case F.FMT_22X:
            return make(regs=(b1, field("<H", 2)))
        case F.FMT_21T:
            return make(regs=(b1,), branch_offset=field("<h", 2))
        case F.FMT_21S:
            return make(regs=(b1,), literal=field("<h", 2))
        case F.FMT_21H:
            return make(regs=(b1,), literal=field("<H", 2))
        case F.FMT_21C:
            return make(regs=(b1,), index=field("<H", 2))
        case F.FMT_23X:
            return make(regs=(b1, data[offset + 2], data[offset + 3]))
        case F.FMT_22B:
            return make(regs=(b1, data[offset + 2]), literal=field("<b", 3))
        case F.FMT_22T:
            return make(regs=(lo, hi), branch_offset=field("<h", 2))
        case F.FMT_22S:
            return make(regs=(lo, hi), literal=field("<h", 2))
        case F.FMT_22C | F.FMT_22CS:
            return make(regs=(lo, hi), index=field("<H", 2))
        case F.FMT_30T:
            return make(branch_offset=field("<i", 2))
        case F.FMT_32X:
            return make(regs=(field("<H", 2), field("<H", 4)))
        case F.FMT_31I:
            return make(regs=(b1,), literal=field("<i", 2))
        case F.FMT_31T:
            return make(regs=(b1,), branch_offset=field("<i", 2))
        case F.FMT_31C:
            return make(regs=(b1,), index=field("<I", 2))
        case F.FMT_35C | F.FMT_35MS | F.FMT_35MI:
            if hi > 5:
                raise ValueError(f"argument count {hi} exceeds 5")
            b4, b5 = data[offset + 4], data[offset + 5]
            all_regs = (b4 & 0xF, b4 >> 4, b5 & 0xF, b5 >> 4, lo)
            return make(regs=all_regs[:hi], index=field("<H", 2))
        case F.FMT_3RC | F.FMT_3RMS | F.FMT_3RMI:
            first = field("<H", 4)
            return make(regs=tuple(range(first, first + b1)), index=field("<H", 2))
        case F.FMT_51L:
            return make(regs=(b1,), literal=field("<q", 2))
    raise ValueError(f"unsupported format {fmt_id.name}")


@dataclass(frozen=True)
class PackedSwitchPayload:
    """Targets of a packed switch, keyed consecutively from ``first_key``."""

    ident: int
    first_key: int
    targets: tuple[int, ...]

    @classmethod
    def parse(cls, data, offset: int = 0) -> "PackedSwitchPayload":
        ident, size, first_key = _unpack("<HHi", data, offset)
        targets = _unpack(f"<{size}i", data, offset + 8)
        return cls(ident, first_key, tuple(targets))


@dataclass(frozen=True)
class SparseSwitchPayload:
    """Sorted keys of a sparse switch and the target for each key."""

    ident: int
    keys: tuple[int, ...]
    targets: tuple[int, ...]

    @classmethod
    def parse(cls, data, offset: int = 0) -> "SparseSwitchPayload":
        ident, size = _unpack("<HH", data, offset)
        values = _unpack(f"<{2 * size}i", data, offset + 4)
        return cls(ident, tuple(values[:size]), tuple(values[size:]))


@dataclass(frozen=True)
class FillArrayDataPayload:
    """Element data for fill-array-data."""

    ident: int
    element_width: int
    size: int
    data: bytes

    @classmethod
    def parse(cls, data, offset: int = 0) -> "FillArrayDataPayload":
        ident, width, size = _unpack("<HHI", data, offset)
        length = width * size
        _check(data, offset + 8, length)
        return cls(ident, width, size, bytes(data[offset + 8 : offset + 8 + length]))