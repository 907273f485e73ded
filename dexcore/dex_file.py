"""Read the ID tables of a DEX image and resolve names and descriptors."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence, TypeVar, Union

from dexcore.dex_raw_types import (
    DexFieldId,
    DexHeader,
    DexMethodId,
    DexOptHeader,
    DexProtoId,
    DexStringId,
    DexTypeId,
)
from dexcore.idx import (
    DexFieldIdx,
    DexMethodIdx,
    DexProtoIdx,
    DexStringIdx,
    DexTypeIdx,
)

__all__ = ["DexFormatError", "read_uleb128", "DexIds"]

_DEX_MAGIC = b"dex\n"
_ODEX_MAGIC = b"dey\n"
_MAX_ULEB128_BYTES = 5

_E = TypeVar("_E")


class DexFormatError(ValueError):
    """The data is not a well-formed DEX image."""


def read_uleb128(data, offset: int = 0) -> tuple[int, int]:
    """Decode an unsigned LEB128 value at ``offset``.

    Returns the value and the offset just past it. A DEX value takes at most
    five bytes.
    """
    result = 0
    for count in range(_MAX_ULEB128_BYTES):
        pos = offset + count
        if pos < 0 or pos >= len(data):
            raise DexFormatError(f"truncated uleb128 at offset {offset}")
        byte = data[pos]
        result |= (byte & 0x7F) << (7 * count)
        if not byte & 0x80:
            return result, pos + 1
    raise DexFormatError(f"uleb128 at offset {offset} is longer than 5 bytes")


def _decode_mutf8(raw: bytes) -> str:
    """Decode modified UTF-8: encoded NULs and surrogate pairs."""
    raw = raw.replace(b"\xc0\x80", b"\x00")
    try:
        text = raw.decode("utf-8", "surrogatepass")
    except UnicodeDecodeError as exc:
        raise DexFormatError(f"malformed string data: {exc}") from None
    # Join surrogate pairs into the characters they stand for.
    return text.encode("utf-16-le", "surrogatepass").decode(
        "utf-16-le", "surrogatepass"
    )


def _parse_table(record, data, offset: int, count: int) -> tuple:
    end = offset + count * record.SIZE
    if count and (offset <= 0 or end > len(data)):
        raise DexFormatError(
            f"{record.__name__} table of {count} entries at offset {offset} "
            f"does not fit in {len(data)} bytes"
        )
    return tuple(record.parse(data, offset + k * record.SIZE) for k in range(count))


def _lookup(table: Sequence[_E], idx, kind: str) -> _E:
    i = int(idx)
    if i < 0 or i >= len(table):
        raise IndexError(f"{kind} index {i} out of range (table has {len(table)})")
    return table[i]


_StringIdx = Union[DexStringIdx, int]
_TypeIdx = Union[DexTypeIdx, int]
_ProtoIdx = Union[DexProtoIdx, int]
_MethodIdx = Union[DexMethodIdx, int]
_FieldIdx = Union[DexFieldIdx, int]


@dataclass(frozen=True)
class DexIds:
    """The string, type, prototype, field and method ID tables of a DEX image.

    All offsets are relative to the start of the DEX image, which for an
    optimized file is the part the ODEX header points to.
    """

    data: bytes
    header: DexHeader
    string_ids: tuple[DexStringId, ...]
    type_ids: tuple[DexTypeId, ...]
    proto_ids: tuple[DexProtoId, ...]
    field_ids: tuple[DexFieldId, ...]
    method_ids: tuple[DexMethodId, ...]

    @classmethod
    def from_bytes(cls, data) -> "DexIds":
        """Parse the ID tables of a DEX or ODEX image."""
        data = bytes(data)
        magic = data[:4]
        if magic == _ODEX_MAGIC:
            try:
                opt = DexOptHeader.parse(data, 0)
            except ValueError as exc:
                raise DexFormatError(f"truncated ODEX header: {exc}") from None
            end = opt.dex_off + opt.dex_size
            if end > len(data):
                raise DexFormatError("ODEX header points past the end of the data")
            data = data[opt.dex_off : end]
            magic = data[:4]
        if magic != _DEX_MAGIC:
            raise DexFormatError(f"bad DEX magic {magic!r}")
        try:
            header = DexHeader.parse(data, 0)
        except ValueError as exc:
            raise DexFormatError(f"truncated DEX header: {exc}") from None
        return cls(
            data=data,
            header=header,
            string_ids=_parse_table(
                DexStringId, data, header.string_ids_off, header.string_ids_size
            ),
            type_ids=_parse_table(
                DexTypeId, data, header.type_ids_off, header.type_ids_size
            ),
            proto_ids=_parse_table(
                DexProtoId, data, header.proto_ids_off, header.proto_ids_size
            ),
            field_ids=_parse_table(
                DexFieldId, data, header.field_ids_off, header.field_ids_size
            ),
            method_ids=_parse_table(
                DexMethodId, data, header.method_ids_off, header.method_ids_size
            ),
        )

    def string(self, idx: _StringIdx) -> str:
        """The string with the given string index."""
        entry = _lookup(self.string_ids, idx, "string")
        _, start = read_uleb128(self.data, entry.string_data_off)
        end = self.data.find(b"\x00", start)
        if end < 0:
            raise DexFormatError(f"unterminated string at offset {start}")
        return _decode_mutf8(self.data[start:end])

    def type_descriptor(self, idx: _TypeIdx) -> str:
        """The descriptor of a type, e.g. ``Ljava/lang/Object;``."""
        return self.string(_lookup(self.type_ids, idx, "type").descriptor_idx)

    def proto_descriptor(self, idx: _ProtoIdx) -> str:
        """The full prototype descriptor, e.g. ``(ILjava/lang/String;)V``."""
        params = "".join(self.proto_param_descriptors(idx))
        return f"({params}){self.proto_return_type(idx)}"

    def proto_param_descriptors(self, idx: _ProtoIdx) -> list[str]:
        """The descriptors of a prototype's parameters, in order."""
        offset = _lookup(self.proto_ids, idx, "proto").parameters_off
        if offset <= 0:
            return []
        try:
            (count,) = struct.unpack_from("<I", self.data, offset)
            type_idxs = struct.unpack_from(f"<{count}H", self.data, offset + 4)
        except struct.error:
            raise DexFormatError(
                f"parameter list at offset {offset} runs past the end of the data"
            ) from None
        return [self.type_descriptor(t) for t in type_idxs]

    def proto_return_type(self, idx: _ProtoIdx) -> str:
        """The descriptor of a prototype's return type."""
        return self.type_descriptor(_lookup(self.proto_ids, idx, "proto").return_type_idx)

    def proto_shorty(self, idx: _ProtoIdx) -> str:
        """The short-form descriptor of a prototype."""
        return self.string(_lookup(self.proto_ids, idx, "proto").shorty_idx)

    def _method(self, idx: _MethodIdx) -> DexMethodId:
        return _lookup(self.method_ids, idx, "method")

    def method_name(self, idx: _MethodIdx) -> str:
        """The bare name of a method."""
        return self.string(self._method(idx).name_idx)

    def method_unique_name(self, idx: _MethodIdx) -> str:
        """The method name followed by its prototype descriptor."""
        return self.method_name(idx) + self.method_proto_descriptor(idx)

    def method_class_descriptor(self, idx: _MethodIdx) -> str:
        """The descriptor of the class that declares the method."""
        return self.type_descriptor(self._method(idx).class_idx)

    def method_proto_descriptor(self, idx: _MethodIdx) -> str:
        """The prototype descriptor of a method."""
        return self.proto_descriptor(self._method(idx).proto_idx)

    def method_param_descriptors(self, idx: _MethodIdx) -> list[str]:
        """The descriptors of a method's parameters."""
        return self.proto_param_descriptors(self._method(idx).proto_idx)

    def method_return_type(self, idx: _MethodIdx) -> str:
        """The descriptor of a method's return type."""
        return self.proto_return_type(self._method(idx).proto_idx)

    def method_shorty(self, idx: _MethodIdx) -> str:
        """The short-form descriptor of a method's prototype."""
        return self.proto_shorty(self._method(idx).proto_idx)

    def _field(self, idx: _FieldIdx) -> DexFieldId:
        return _lookup(self.field_ids, idx, "field")

    def field_name(self, idx: _FieldIdx) -> str:
        """The name of a field."""
        return self.string(self._field(idx).name_idx)

    def field_class_descriptor(self, idx: _FieldIdx) -> str:
        """The descriptor of the class that declares the field."""
        return self.type_descriptor(self._field(idx).class_idx)

    def field_descriptor(self, idx: _FieldIdx) -> str:
        """The descriptor of a field's type."""
        return self.type_descriptor(self._field(idx).type_idx)