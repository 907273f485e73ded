# dexcore

`dexcore` is a small data model for reading Dalvik executable (DEX) files,
written in plain Python with no third-party dependencies.

## Modules

- `dexcore.opcode`: `Opcode`, an `IntEnum` holding every one-byte Dalvik
  opcode, the ODEX-only ones included.
- `dexcore.access_flags`: `AccessFlags`, an `IntFlag` of DEX access flags,
  and `format_access_flags(flags)`, which returns the names of the set bits
  separated by spaces, such as `public static final`. Bits that have two
  names (`volatile`/`bridge`, `transient`/`varargs`) give both names.
  `str()` of an `AccessFlags` value gives the same text.
- `dexcore.idx`: typed signed 32-bit indexes `DexStringIdx`, `DexTypeIdx`,
  `DexProtoIdx`, `DexFieldIdx`, `DexMethodIdx`, `DexVtabIdx`, `DexInsnIdx`,
  all based on `Idx`, and `RegisterIdx`. The value `-1` (stored in the file
  as `0xffffffff`) is the unknown index, and `valid()` is false only for it.
  `RegisterIdx` reserves `-2` for the result register and `-3` for the
  exception register, and prints as `v3`, `vR`, `vE` or `v?`. Indexes of
  different kinds cannot be added, subtracted or ordered against each other.
- `dexcore.insn_info`: `InsnInfo`, a record of one opcode's mnemonic, format
  (`InsnFmtId`), size and property bits (`InsnProps`), with queries such as
  `can_throw()`, `sets_register()`, `can_branch()`,
  `sets_register_inplace()`, `can_virtually_invoke()` and
  `can_directly_invoke()`. The last three look at the opcode alone.
- `dexcore.hdl`: frozen, hashable handles naming a class loader
  (`ClassLoaderHdl`), a DEX file (`DexFileHdl`), and the types, methods,
  fields, instructions and registers in it (`DexTypeHdl`, `DexMethodHdl`,
  `DexFieldHdl`, `DexInsnHdl`, `DexRegHdl`). Each packs into an integer with
  `int()` and prints as, for example, `1_0_m7`. They are ordered
  part by part: one handle is less than another only if every part is less.
  `JvmTypeHdl` names a type by loader and descriptor and is fully ordered;
  `JvmMethodHdl` and `JvmFieldHdl` add a name, and
  `JvmMethodHdl.return_descriptor()` returns the text after the last `)`.
- `dexcore.dex_raw_types`: little-endian parsers for the fixed-layout
  records (`DexHeader`, `DexOptHeader`, `DexStringId`, `DexTypeId`,
  `DexProtoId`, `DexFieldId`, `DexMethodId`, `DexClassDef`,
  `DexCodeHeader`, `DexTryItem`), the switch and array payloads
  (`PackedSwitchPayload`, `SparseSwitchPayload`, `FillArrayDataPayload`),
  and `decode_raw_insn(data, offset, fmt_id)`, which decodes one
  instruction of a given format into a `RawInsn`. Each `parse` raises
  `ValueError` when the buffer is too short.
- `dexcore.insn`: `Insn`, an instruction of some `InsnKind` with its
  registers and constant, with `is_regs_range()`, `regs_vec()`,
  `defs(info)`, `uses(info)`, `is_pseudo()` and `format(info)`, and
  `ArrayPayload` for `fill-array-data`.
- `dexcore.dex_file`: `DexIds.from_bytes(data)`, which reads the string,
  type, prototype, field and method ID tables of a DEX image (or of the DEX
  image inside an ODEX file) and resolves strings, type descriptors,
  prototype descriptors, shorties, and method and field names;
  `read_uleb128(data, offset)`; and `DexFormatError`, a `ValueError` raised
  for malformed input.

## Installation

```
pip install .
```

## Examples

Resolve names from a DEX file:

```python
from pathlib import Path

from dexcore.dex_file import DexIds

ids = DexIds.from_bytes(Path("classes.dex").read_bytes())
print(ids.method_class_descriptor(0), ids.method_unique_name(0))
print(ids.field_class_descriptor(0), ids.field_name(0), ids.field_descriptor(0))
```

Access flags:

```python
from dexcore.access_flags import AccessFlags, format_access_flags

print(format_access_flags(AccessFlags.PUBLIC | AccessFlags.STATIC))
# public static
```

Decode one raw instruction (`const/4 v0, #1`):

```python
from dexcore.dex_raw_types import decode_raw_insn
from dexcore.insn_info import InsnFmtId

raw = decode_raw_insn(b"\x12\x10", 0, InsnFmtId.FMT_11N)
print(raw.op.name, raw.regs, raw.literal)
# CONST_4 (0,) 1
```

Registers defined and used by an instruction:

```python
from dexcore.insn import Insn, InsnKind
from dexcore.insn_info import InsnFmtId, InsnInfo, InsnProps
from dexcore.opcode import Opcode

info = InsnInfo(Opcode.MOVE, "move", InsnFmtId.FMT_12X, 1,
                InsnProps.CAN_CONTINUE | InsnProps.SETS_REGISTER)
insn = Insn(InsnKind.MOVE, Opcode.MOVE, (1, 2))
print([str(r) for r in insn.defs(info)], [str(r) for r in insn.uses(info)])
# ['v1'] ['v2']
print(insn.format(info))
# move v1 v2 []
```

## What it does not do

- There is no built-in table of `InsnInfo` records for the opcodes; the
  caller builds the `InsnInfo` passed to `Insn.defs`, `Insn.uses` and
  `Insn.format`.
- It does not walk class definitions or code items to decode whole methods
  into `Insn` lists; `decode_raw_insn` decodes one instruction whose format
  the caller already knows.
- It has no class loader, no model of loaded classes, methods or fields as
  graphs, no call graph and no points-to analysis.
- It does not read APK archives or Android manifests, and has no command-line
  program.

## Running the tests

```
pip install .[test]
pytest
```