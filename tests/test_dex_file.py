import struct

import pytest

from dexcore.dex_file import DexFormatError, DexIds, read_uleb128
from dexcore.idx import DexFieldIdx, DexMethodIdx, DexProtoIdx, DexStringIdx, DexTypeIdx

DEX_MAGIC = b"dex\n035\x00"


def _uleb(value):
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _mutf8(s):
    if isinstance(s, bytes):
        return s, 2
    return s.encode("utf-8").replace(b"\x00", b"\xc0\x80"), len(s.encode("utf-16-le")) // 2


def build_dex(strings, types, protos, fields, methods, magic=DEX_MAGIC):
    string_ids_off = 112
    type_ids_off = string_ids_off + 4 * len(strings)
    proto_ids_off = type_ids_off + 4 * len(types)
    field_ids_off = proto_ids_off + 12 * len(protos)
    method_ids_off = field_ids_off + 8 * len(fields)
    data_off = method_ids_off + 8 * len(methods)

    data = bytearray()
    param_offs = []
    for _, _, params in protos:
        if not params:
            param_offs.append(0)
            continue
        while (data_off + len(data)) % 4:
            data.append(0)
        param_offs.append(data_off + len(data))
        data += struct.pack(f"<I{len(params)}H", len(params), *params)
    string_offs = []
    for s in strings:
        raw, units = _mutf8(s)
        string_offs.append(data_off + len(data))
        data += _uleb(units) + raw + b"\x00"

    body = bytearray()
    body += b"".join(struct.pack("<I", o) for o in string_offs)
    body += b"".join(struct.pack("<I", t) for t in types)
    body += b"".join(
        struct.pack("<III", shorty, ret, off)
        for (shorty, ret, _), off in zip(protos, param_offs)
    )
    body += b"".join(struct.pack("<HHI", *f) for f in fields)
    body += b"".join(struct.pack("<HHI", *m) for m in methods)
    body += data

    file_size = 112 + len(body)
    header = struct.pack(
        "<8sI20s20I",
        magic, 0, b"\x00" * 20,
        file_size, 112, 0x12345678, 0, 0, 0,
        len(strings), string_ids_off,
        len(types), type_ids_off,
        len(protos), proto_ids_off,
        len(fields), field_ids_off,
        len(methods), method_ids_off,
        0, 0,
        len(data), data_off,
    )
    return header + bytes(body)


STRINGS = [
    "I",
    "LFoo;",
    "Ljava/lang/String;",
    "V",
    "VIL",
    "bar",
    "count",
    "<init>",
    "café",
    "a\x00b",
    b"\xed\xa0\xbd\xed\xb8\x80",
]
TYPES = [0, 1, 2, 3]
PROTOS = [(3, 3, []), (4, 3, [0, 2])]
FIELDS = [(1, 0, 6), (1, 2, 5)]
METHODS = [(1, 0, 7), (1, 1, 5)]


@pytest.fixture
def ids():
    return DexIds.from_bytes(build_dex(STRINGS, TYPES, PROTOS, FIELDS, METHODS))


def test_read_uleb128_known_values():
    assert read_uleb128(b"\x00") == (0, 1)
    assert read_uleb128(b"\x7f") == (127, 1)
    assert read_uleb128(b"\x80\x01") == (128, 2)
    assert read_uleb128(b"\xe5\x8e\x26") == (624485, 3)


def test_read_uleb128_at_offset():
    assert read_uleb128(b"\xff\x80\x01\x00", 1) == (128, 3)


@pytest.mark.parametrize("value", [0, 1, 127, 128, 300, 16383, 16384, 0xFFFFFFFF])
def test_read_uleb128_round_trip(value):
    encoded = _uleb(value)
    assert read_uleb128(encoded + b"\x55") == (value, len(encoded))


def test_read_uleb128_truncated():
    with pytest.raises(DexFormatError):
        read_uleb128(b"\x80\x80")


def test_read_uleb128_too_long():
    with pytest.raises(DexFormatError):
        read_uleb128(b"\x80\x80\x80\x80\x80\x01")


def test_table_sizes(ids):
    assert len(ids.string_ids) == len(STRINGS)
    assert len(ids.type_ids) == len(TYPES)
    assert len(ids.proto_ids) == len(PROTOS)
    assert len(ids.field_ids) == len(FIELDS)
    assert len(ids.method_ids) == len(METHODS)
    assert ids.header.endian_tag == 0x12345678


def test_strings(ids):
    assert [ids.string(i) for i in range(8)] == STRINGS[:8]
    assert ids.string(DexStringIdx(5)) == "bar"


def test_non_ascii_string(ids):
    assert ids.string(8) == "café"


def test_encoded_nul(ids):
    assert ids.string(9) == "a\x00b"


def test_surrogate_pair(ids):
    assert ids.string(10) == "\U0001F600"


def test_type_descriptors(ids):
    assert ids.type_descriptor(DexTypeIdx(1)) == "LFoo;"
    assert ids.type_descriptor(2) == "Ljava/lang/String;"


def test_proto_without_params(ids):
    assert ids.proto_param_descriptors(DexProtoIdx(0)) == []
    assert ids.proto_descriptor(0) == "()V"
    assert ids.proto_return_type(0) == "V"
    assert ids.proto_shorty(0) == "V"


def test_proto_with_params(ids):
    assert ids.proto_param_descriptors(1) == ["I", "Ljava/lang/String;"]
    assert ids.proto_descriptor(1) == "(ILjava/lang/String;)V"
    assert ids.proto_shorty(1) == "VIL"


def test_method_lookups(ids):
    m = DexMethodIdx(1)
    assert ids.method_name(m) == "bar"
    assert ids.method_class_descriptor(m) == "LFoo;"
    assert ids.method_proto_descriptor(m) == "(ILjava/lang/String;)V"
    assert ids.method_unique_name(m) == "bar(ILjava/lang/String;)V"
    assert ids.method_param_descriptors(m) == ["I", "Ljava/lang/String;"]
    assert ids.method_return_type(m) == "V"
    assert ids.method_shorty(m) == "VIL"


def test_constructor_unique_name(ids):
    assert ids.method_unique_name(0) == "<init>()V"


def test_unique_name_is_name_plus_proto(ids):
    for i in range(len(METHODS)):
        assert ids.method_unique_name(i) == ids.method_name(i) + ids.method_proto_descriptor(i)


def test_field_lookups(ids):
    assert ids.field_name(DexFieldIdx(0)) == "count"
    assert ids.field_class_descriptor(0) == "LFoo;"
    assert ids.field_descriptor(0) == "I"
    assert ids.field_descriptor(1) == "Ljava/lang/String;"


def test_invalid_index_raises(ids):
    with pytest.raises(IndexError):
        ids.string(DexStringIdx(-1))
    with pytest.raises(IndexError):
        ids.type_descriptor(len(TYPES))
    with pytest.raises(IndexError):
        ids.method_name(0xFFFFFFFF)
    with pytest.raises(IndexError):
        ids.field_name(5)


def test_bad_magic():
    data = build_dex(STRINGS, TYPES, PROTOS, FIELDS, METHODS, magic=b"xyz\n035\x00")
    with pytest.raises(DexFormatError):
        DexIds.from_bytes(data)


def test_truncated_header():
    with pytest.raises(DexFormatError):
        DexIds.from_bytes(DEX_MAGIC + b"\x00" * 20)


def test_truncated_tables():
    data = build_dex(STRINGS, TYPES, PROTOS, FIELDS, METHODS)
    with pytest.raises(DexFormatError):
        DexIds.from_bytes(data[:120])


def test_empty_tables():
    ids = DexIds.from_bytes(build_dex([], [], [], [], []))
    assert ids.string_ids == ()
    assert ids.method_ids == ()


def test_odex_wrapper():
    dex = build_dex(STRINGS, TYPES, PROTOS, FIELDS, METHODS)
    opt = struct.pack("<8s8I", b"dey\n036\x00", 40, len(dex), 0, 0, 0, 0, 0, 0)
    ids = DexIds.from_bytes(opt + dex)
    assert ids.method_unique_name(1) == "bar(ILjava/lang/String;)V"
    assert ids.data == dex


def test_odex_pointing_past_end():
    dex = build_dex(STRINGS, TYPES, PROTOS, FIELDS, METHODS)
    opt = struct.pack("<8s8I", b"dey\n036\x00", 40, len(dex) + 10, 0, 0, 0, 0, 0, 0)
    with pytest.raises(DexFormatError):
        DexIds.from_bytes(opt + dex)