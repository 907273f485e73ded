"""Decoded Dalvik instructions and their register def/use sets."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from dexcore.idx import RegisterIdx
from dexcore.insn_info import InsnInfo
from dexcore.opcode import Opcode

__all__ = ["ArrayPayload", "InsnKind", "Insn"]


@dataclass(frozen=True, order=True)
class ArrayPayload:
    """Element data of fill-array-data. Compared by its data only."""

    element_width: int = field(compare=False)
    size: int = field(compare=False)
    data: bytes = b""

    def __str__(self) -> str:
        return f"[{self.element_width}x{len(self.data)}]"


class InsnKind(Enum):
    """The shape of an instruction: how many registers and what constant."""

    NOP = "nop"
    MOVE = "move"
    RETURN = "return"
    CONST = "const"
    CONST_WIDE = "const_wide"
    CONST_STRING = "const_string"
    CONST_CLASS = "const_class"
    MONITOR_ENTER = "monitor_enter"
    MONITOR_EXIT = "monitor_exit"
    CHECK_CAST = "check_cast"
    INSTANCE_OF = "instance_of"
    ARRAY_LENGTH = "array_length"
    NEW_INSTANCE = "new_instance"
    NEW_ARRAY = "new_array"
    FILLED_NEW_ARRAY = "filled_new_array"
    FILL_ARRAY_DATA = "fill_array_data"
    THROW = "throw"
    GOTO = "goto"
    SWITCH = "switch"
    CMP = "cmp"
    IF = "if"
    IF_Z = "if_z"
    AGET = "aget"
    APUT = "aput"
    IGET = "iget"
    IGET_QUICK = "iget_quick"
    IPUT = "iput"
    IPUT_QUICK = "iput_quick"
    SGET = "sget"
    SPUT = "sput"
    INVOKE = "invoke"
    INVOKE_QUICK = "invoke_quick"
    UNARY_ARITH_OP = "unary_arith_op"
    BINARY_ARITH_OP = "binary_arith_op"
    AUG_ASSIGN_OP = "aug_assign_op"
    CONST_ARITH_OP = "const_arith_op"
    ENTRY = "entry"
    EXIT = "exit"

    def reg_count(self) -> int:
        """Number of register slots an instruction of this kind carries."""
        return _REG_COUNTS[self]


_REG_COUNTS = {
    InsnKind.NOP: 0,
    InsnKind.MOVE: 2,
    InsnKind.RETURN: 1,
    InsnKind.CONST: 1,
    InsnKind.CONST_WIDE: 1,
    InsnKind.CONST_STRING: 1,
    InsnKind.CONST_CLASS: 1,
    InsnKind.MONITOR_ENTER: 1,
    InsnKind.MONITOR_EXIT: 1,
    InsnKind.CHECK_CAST: 1,
    InsnKind.INSTANCE_OF: 2,
    InsnKind.ARRAY_LENGTH: 2,
    InsnKind.NEW_INSTANCE: 1,
    InsnKind.NEW_ARRAY: 2,
    InsnKind.FILLED_NEW_ARRAY: 5,
    InsnKind.FILL_ARRAY_DATA: 1,
    InsnKind.THROW: 1,
    InsnKind.GOTO: 0,
    InsnKind.SWITCH: 1,
    InsnKind.CMP: 3,
    InsnKind.IF: 2,
    InsnKind.IF_Z: 1,
    InsnKind.AGET: 3,
    InsnKind.APUT: 3,
    InsnKind.IGET: 2,
    InsnKind.IGET_QUICK: 2,
    InsnKind.IPUT: 2,
    InsnKind.IPUT_QUICK: 2,
    InsnKind.SGET: 1,
    InsnKind.SPUT: 1,
    InsnKind.INVOKE: 5,
    InsnKind.INVOKE_QUICK: 5,
    InsnKind.UNARY_ARITH_OP: 2,
    InsnKind.BINARY_ARITH_OP: 3,
    InsnKind.AUG_ASSIGN_OP: 2,
    InsnKind.CONST_ARITH_OP: 2,
    InsnKind.ENTRY: 5,
    InsnKind.EXIT: 1,
}


def _unique_sorted(regs: Iterable[RegisterIdx]) -> list[RegisterIdx]:
    return sorted(set(regs))


def _reg_range(first: RegisterIdx, stop: int) -> list[RegisterIdx]:
    return [RegisterIdx(v) for v in range(first.value, stop)]


@dataclass(frozen=True)
class Insn:
    """A decoded instruction.

    ``regs`` always holds exactly ``kind.reg_count()`` slots; missing slots
    are filled with the unknown register. A register range is stored as its
    first register in slot 0, unknown in slot 1 and its last one in the final
    slot.
    """

    kind: InsnKind
    op: Opcode
    regs: tuple[RegisterIdx, ...] = ()
    const_val: Any = None

    def __post_init__(self) -> None:
        count = self.kind.reg_count()
        regs = tuple(
            r if isinstance(r, RegisterIdx) else RegisterIdx(r) for r in self.regs
        )
        if len(regs) > count:
            raise ValueError(
                f"{self.kind.name} takes at most {count} registers, got {len(regs)}"
            )
        regs += (RegisterIdx(RegisterIdx.UNKNOWN),) * (count - len(regs))
        object.__setattr__(self, "regs", regs)
        object.__setattr__(self, "op", Opcode(self.op))

    def is_regs_range(self) -> bool:
        """True if the registers describe a contiguous range."""
        regs = self.regs
        return (
            len(regs) >= 3
            and not regs[1].valid()
            and regs[0].valid()
            and regs[-1].valid()
            and regs[0] <= regs[-1]
        )

    def regs_vec(self) -> list[RegisterIdx]:
        """The registers in use: the range (last one excluded) or the valid slots."""
        if self.is_regs_range():
            return _reg_range(self.regs[0], self.regs[-1].value)
        return [r for r in self.regs if r.valid()]

    def defs(self, info: InsnInfo) -> list[RegisterIdx]:
        """Registers written by this instruction, sorted and unique."""
        if self.kind is InsnKind.ENTRY:
            if self.is_regs_range():
                return _reg_range(self.regs[0], self.regs[-1].value + 1)
            return []
        result: list[RegisterIdx] = []
        if self.regs and info.sets_register() and not info.sets_result():
            result.append(self.regs[0])
        if info.sets_result():
            result.append(RegisterIdx(RegisterIdx.RESULT))
        return _unique_sorted(result)

    def uses(self, info: InsnInfo) -> list[RegisterIdx]:
        """Registers read by this instruction, sorted and unique."""
        if self.kind is InsnKind.ENTRY:
            return []
        result: list[RegisterIdx] = []
        if self.is_regs_range():
            result.extend(_reg_range(self.regs[0], self.regs[-1].value))
        if self.regs:
            start = 0
            if (
                info.sets_register()
                and not info.sets_result()
                and not info.sets_register_inplace()
            ):
                start = 1
            result.extend(self.regs[start:])
            result = _unique_sorted(result)
        return result

    def is_pseudo(self) -> bool:
        """True for the entry and exit pseudo-instructions."""
        return self.kind in (InsnKind.ENTRY, InsnKind.EXIT)

    def format(self, info: InsnInfo) -> str:
        """Render the instruction as text, taking the mnemonic from ``info``."""
        if self.kind is InsnKind.ENTRY:
            return f"ENTRY {self.regs[0]}-{self.regs[-1]}"
        if self.kind is InsnKind.EXIT:
            return "EXIT" + "".join(f" {r}" for r in self.regs if r.valid())
        parts = [info.mnemonic]
        if self.is_regs_range():
            parts.append(f" {self.regs[0]}-{self.regs[-1]}")
        else:
            parts.extend(f" {r}" for r in self.regs if r.valid())
        const = "" if self.const_val is None else str(self.const_val)
        parts.append(f" [{const}]")
        return "".join(parts)