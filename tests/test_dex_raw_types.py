import struct

import pytest

from dexcore.access_flags import AccessFlags
from dexcore.dex_raw_types import (
    DexClassDef,
    DexCodeHeader,
    DexFieldId,
    DexHeader,
    DexMethodId,
    DexOptHeader,
    DexProtoId,
    DexStringId,
    DexTryItem,
    DexTypeId,
    FillArrayDataPayload,
    PackedSwitchPayload,
    SparseSwitchPayload,
    decode_raw_insn,
)
from dexcore.idx import DexProtoIdx, DexStringIdx, DexTypeIdx
from dexcore.insn_info import InsnFmtId
from dexcore.opcode import Opcode


def test_string_id_at_offset():
    data = b"\xaa\xbb" + struct.pack("<I", 0x70)
    assert DexStringId.parse(data, 2).string_data_off == 0x70


def test_type_id_invalid_index():
    tid = DexTypeId.parse(struct.pack("<I", 0xFFFFFFFF))
    assert not tid.descriptor_idx.valid()


def test_proto_id_fields():
    proto = DexProtoId.parse(struct.pack("<III", 3, 4, 0x100))
    assert proto.shorty_idx == DexStringIdx(3)
    assert proto.return_type_idx == DexTypeIdx(4)
    assert proto.parameters_off == 0x100


def test_field_and_method_ids():
    raw = struct.pack("<HHI", 7, 9, 11)
    field = DexFieldId.parse(raw)
    assert (field.class_idx, field.type_idx, field.name_idx) == (
        DexTypeIdx(7),
        DexTypeIdx(9),
        DexStringIdx(11),
    )
    method = DexMethodId.parse(raw)
    assert method.proto_idx == DexProtoIdx(9)
    assert method.name_idx == DexStringIdx(11)


def test_opt_header():
    raw = struct.pack("<8s8I", b"dey\n036\x00", *range(1, 9))
    header = DexOptHeader.parse(raw)
    assert header.magic == b"dey\n036\x00"
    assert header.dex_off == 1
    assert header.checksum == 8


def test_dex_header():
    values = list(range(100, 120))
    raw = struct.pack("<8sI20s20I", b"dex\n035\x00", 5, b"s" * 20, *values)
    header = DexHeader.parse(raw)
    assert header.magic == b"dex\n035\x00"
    assert header.signature == b"s" * 20
    assert header.file_size == values[0]
    assert header.string_ids_size == values[6]
    assert header.data_off == values[19]


def test_class_def():
    flags = AccessFlags.PUBLIC | AccessFlags.FINAL
    raw = struct.pack("<8I", 2, int(flags), 0xFFFFFFFF, 0, 4, 0, 0x200, 0)
    cdef = DexClassDef.parse(raw)
    assert cdef.class_idx == DexTypeIdx(2)
    assert cdef.access_flags == flags
    assert not cdef.superclass_idx.valid()
    assert cdef.source_file_idx == DexStringIdx(4)
    assert cdef.class_data_off == 0x200


def test_code_header_and_try_item():
    code = DexCodeHeader.parse(struct.pack("<4H2I", 6, 2, 3, 1, 0x40, 12))
    assert (code.registers_size, code.ins_size, code.insns_size) == (6, 2, 12)
    item = DexTryItem.parse(struct.pack("<I2H", 4, 5, 6))
    assert (item.start_addr, item.insn_count, item.handler_off) == (4, 5, 6)


@pytest.mark.parametrize(
    "cls",
    [
        DexStringId,
        DexTypeId,
        DexProtoId,
        DexFieldId,
        DexMethodId,
        DexOptHeader,
        DexHeader,
        DexClassDef,
        DexCodeHeader,
        DexTryItem,
    ],
)
def test_exact_size_and_truncation(cls):
    parsed = cls.parse(bytes(cls.SIZE))
    assert isinstance(parsed, cls)
    with pytest.raises(ValueError):
        cls.parse(bytes(cls.SIZE - 1))


def test_decode_11n_negative_literal():
    insn = decode_raw_insn(bytes([Opcode.CONST_4, 0xF3]), 0, InsnFmtId.FMT_11N)
    assert insn.op is Opcode.CONST_4
    assert insn.regs == (3,)
    assert insn.literal == -1


def test_decode_12x():
    insn = decode_raw_insn(bytes([Opcode.MOVE, 0x54]), 0, InsnFmtId.FMT_12X)
    assert insn.regs == (4, 5)
    assert insn.size == 1


def test_decode_10t_and_22t_branches():
    goto = decode_raw_insn(struct.pack("<Bb", Opcode.GOTO, -5), 0, InsnFmtId.FMT_10T)
    assert goto.branch_offset == -5
    raw = struct.pack("<BBh", Opcode.IF_EQ, 0x21, -300)
    branch = decode_raw_insn(raw, 0, InsnFmtId.FMT_22T)
    assert branch.regs == (1, 2)
    assert branch.branch_offset == -300


def test_decode_23x_and_32x():
    raw = bytes([Opcode.ADD_INT, 7, 8, 9])
    assert decode_raw_insn(raw, 0, InsnFmtId.FMT_23X).regs == (7, 8, 9)
    raw = struct.pack("<BBHH", Opcode.MOVE_16, 0, 1000, 2000)
    assert decode_raw_insn(raw, 0, InsnFmtId.FMT_32X).regs == (1000, 2000)


def test_decode_31c_and_20bc():
    raw = struct.pack("<BBI", Opcode.CONST_STRING_JUMBO, 4, 70000)
    insn = decode_raw_insn(raw, 0, InsnFmtId.FMT_31C)
    assert (insn.regs, insn.index) == ((4,), 70000)
    raw = struct.pack("<BBH", Opcode.THROW_VERIFICATION_ERROR, 2, 33)
    err = decode_raw_insn(raw, 0, InsnFmtId.FMT_20BC)
    assert (err.error_kind, err.index, err.regs) == (2, 33, ())


def test_decode_51l_at_offset():
    raw = b"\x00\x00" + struct.pack("<BBq", Opcode.CONST_WIDE, 5, -123456789012)
    insn = decode_raw_insn(raw, 2, InsnFmtId.FMT_51L)
    assert insn.regs == (5,)
    assert insn.literal == -123456789012
    assert insn.size * 2 == len(raw) - 2


def _pack_35c(op, regs, index):
    padded = list(regs) + [0] * (5 - len(regs))
    c, d, e, f, g = padded
    return struct.pack(
        "<BBHBB", op, (len(regs) << 4) | g, index, (d << 4) | c, (f << 4) | e
    )


@pytest.mark.parametrize("regs", [(), (1, 2), (1, 2, 3, 4, 5), (15, 0, 14)])
def test_decode_35c_round_trip(regs):
    raw = _pack_35c(Opcode.INVOKE_VIRTUAL, regs, 42)
    insn = decode_raw_insn(raw, 0, InsnFmtId.FMT_35C)
    assert insn.regs == regs
    assert insn.index == 42
    assert insn.size * 2 == len(raw)


def test_decode_35c_too_many_args():
    raw = struct.pack("<BBHBB", Opcode.INVOKE_STATIC, 6 << 4, 0, 0, 0)
    with pytest.raises(ValueError):
        decode_raw_insn(raw, 0, InsnFmtId.FMT_35C)


def test_decode_3rc_expands_range():
    raw = struct.pack("<BBHH", Opcode.INVOKE_STATIC_RANGE, 3, 9, 10)
    insn = decode_raw_insn(raw, 0, InsnFmtId.FMT_3RC)
    assert insn.regs == tuple(range(10, 13))
    assert insn.index == 9


def test_decode_errors():
    with pytest.raises(ValueError):
        decode_raw_insn(bytes([0x3E, 0]), 0, InsnFmtId.FMT_00X)
    with pytest.raises(ValueError):
        decode_raw_insn(bytes([Opcode.CONST, 0, 0, 0]), 0, InsnFmtId.FMT_31I)


def test_packed_switch_payload():
    targets = (5, -6, 7)
    raw = struct.pack("<HHi3i", 0x0100, len(targets), 10, *targets)
    payload = PackedSwitchPayload.parse(raw)
    assert payload.ident == 0x0100
    assert payload.first_key == 10
    assert payload.targets == targets


def test_sparse_switch_payload():
    keys, targets = (-1, 100), (8, 12)
    raw = struct.pack("<HH4i", 0x0200, 2, *keys, *targets)
    payload = SparseSwitchPayload.parse(raw)
    assert payload.keys == keys
    assert payload.targets == targets


def test_fill_array_payload():
    body = b"\x01\x00\x02\x00\x03\x00"
    raw = struct.pack("<HHI", 0x0300, 2, 3) + body
    payload = FillArrayDataPayload.parse(raw)
    assert (payload.element_width, payload.size) == (2, 3)
    assert payload.data == body


def test_payload_truncated():
    raw = struct.pack("<HHi", 0x0100, 4, 0) + struct.pack("<2i", 1, 2)
    with pytest.raises(ValueError):
        PackedSwitchPayload.parse(raw)
    with pytest.raises(ValueError):
        FillArrayDataPayload.parse(struct.pack("<HHI", 0x0300, 4, 2) + b"\x00")