"""Static properties of Dalvik instructions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntFlag, auto

from dexcore.opcode import Opcode

__all__ = ["InsnProps", "InsnFmtId", "InsnInfo"]


class InsnProps(IntFlag):
    """Instruction property bits. CAN_RETURN and CAN_BRANCH share a bit."""

    NONE = 0
    CAN_THROW = 1 << 0
    ODEX_ONLY = 1 << 1
    CAN_CONTINUE = 1 << 2
    SETS_RESULT = 1 << 3
    SETS_REGISTER = 1 << 4
    SETS_WIDE_REGISTER = 1 << 5
    READS_WIDE_REGISTER = 1 << 6
    ODEXED_INSTANCE_QUICK = 1 << 7
    ODEXED_INSTANCE_VOLATILE = 1 << 8
    ODEXED_STATIC_VOLATILE = 1 << 9
    CAN_INITIALIZE_REFERENCE = 1 << 10
    CAN_RETURN = 1 << 11
    CAN_BRANCH = 1 << 11
    CAN_SWITCH = 1 << 12
    CAN_INVOKE = 1 << 13


class InsnFmtId(Enum):
    """Dalvik instruction encoding formats."""

    FMT_00X = auto()
    FMT_10X = auto()
    FMT_12X = auto()
    FMT_11N = auto()
    FMT_11X = auto()
    FMT_10T = auto()
    FMT_20T = auto()
    FMT_20BC = auto()
    FMT_22X = auto()
    FMT_21T = auto()
    FMT_21S = auto()
    FMT_21H = auto()
    FMT_21C = auto()
    FMT_23X = auto()
    FMT_22B = auto()
    FMT_22T = auto()
    FMT_22S = auto()
    FMT_22C = auto()
    FMT_22CS = auto()
    FMT_30T = auto()
    FMT_32X = auto()
    FMT_31I = auto()
    FMT_31T = auto()
    FMT_31C = auto()
    FMT_35C = auto()
    FMT_35MS = auto()
    FMT_35MI = auto()
    FMT_3RC = auto()
    FMT_3RMS = auto()
    FMT_3RMI = auto()
    FMT_51L = auto()


_INPLACE_OPS = frozenset(
    {
        Opcode.CHECK_CAST,
        Opcode.ADD_INT_2ADDR,
        Opcode.SUB_INT_2ADDR,
        Opcode.MUL_INT_2ADDR,
        Opcode.DIV_INT_2ADDR,
        Opcode.REM_INT_2ADDR,
        Opcode.AND_INT_2ADDR,
        Opcode.OR_INT_2ADDR,
        Opcode.XOR_INT_2ADDR,
        Opcode.SHL_INT_2ADDR,
        Opcode.SHR_INT_2ADDR,
        Opcode.USHR_INT_2ADDR,
        Opcode.ADD_LONG_2ADDR,
        Opcode.SUB_LONG_2ADDR,
        Opcode.MUL_LONG_2ADDR,
        Opcode.DIV_LONG_2ADDR,
        Opcode.REM_LONG_2ADDR,
        Opcode.AND_LONG_2ADDR,
        Opcode.OR_LONG_2ADDR,
        Opcode.XOR_LONG_2ADDR,
        Opcode.SHL_LONG_2ADDR,
        Opcode.SHR_LONG_2ADDR,
        Opcode.USHR_LONG_2ADDR,
        Opcode.ADD_FLOAT_2ADDR,
        Opcode.SUB_FLOAT_2ADDR,
        Opcode.MUL_FLOAT_2ADDR,
        Opcode.DIV_FLOAT_2ADDR,
        Opcode.REM_FLOAT_2ADDR,
        Opcode.ADD_DOUBLE_2ADDR,
        Opcode.SUB_DOUBLE_2ADDR,
        Opcode.MUL_DOUBLE_2ADDR,
        Opcode.DIV_DOUBLE_2ADDR,
        Opcode.REM_DOUBLE_2ADDR,
    }
)

_VIRTUAL_INVOKE_OPS = frozenset(
    {
        Opcode.INVOKE_VIRTUAL,
        Opcode.INVOKE_INTERFACE,
        Opcode.INVOKE_VIRTUAL_RANGE,
        Opcode.INVOKE_INTERFACE_RANGE,
        Opcode.INVOKE_VIRTUAL_QUICK,
        Opcode.INVOKE_VIRTUAL_QUICK_RANGE,
    }
)

_DIRECT_INVOKE_OPS = frozenset(
    {
        Opcode.INVOKE_SUPER,
        Opcode.INVOKE_DIRECT,
        Opcode.INVOKE_STATIC,
        Opcode.INVOKE_SUPER_RANGE,
        Opcode.INVOKE_DIRECT_RANGE,
        Opcode.INVOKE_STATIC_RANGE,
        Opcode.INVOKE_OBJECT_INIT_RANGE,
        Opcode.EXECUTE_INLINE,
        Opcode.INVOKE_SUPER_QUICK,
        Opcode.EXECUTE_INLINE_RANGE,
        Opcode.INVOKE_SUPER_QUICK_RANGE,
    }
)


@dataclass(frozen=True)
class InsnInfo:
    """Description of one opcode: mnemonic, format, size and properties."""

    op: Opcode
    mnemonic: str
    format_id: InsnFmtId
    size: int
    props: InsnProps = InsnProps.NONE

    def _has(self, mask: InsnProps) -> bool:
        return bool(self.props & mask)

    def can_throw(self) -> bool:
        """True if the instruction can throw an exception."""
        return self._has(InsnProps.CAN_THROW)

    def odex_only(self) -> bool:
        """True if the instruction appears in ODEX files only."""
        return self._has(InsnProps.ODEX_ONLY)

    def can_continue(self) -> bool:
        """True if control can fall through to the next instruction."""
        return self._has(InsnProps.CAN_CONTINUE)

    def sets_result(self) -> bool:
        """True if the instruction sets the result register."""
        return self._has(InsnProps.SETS_RESULT)

    def sets_register(self) -> bool:
        """True if the instruction sets a register."""
        return self._has(InsnProps.SETS_REGISTER)

    def sets_register_inplace(self) -> bool:
        """True if the destination register is also a source."""
        return self.op in _INPLACE_OPS

    def sets_wide_register(self) -> bool:
        """True if the instruction sets a wide register pair."""
        return self._has(InsnProps.SETS_WIDE_REGISTER)

    def reads_wide_register(self) -> bool:
        """True if the instruction reads a wide register pair."""
        return self._has(InsnProps.READS_WIDE_REGISTER)

    def odexed_instance_quick(self) -> bool:
        """True for ODEX quick instance instructions."""
        return self._has(InsnProps.ODEXED_INSTANCE_QUICK)

    def odexed_instance_volatile(self) -> bool:
        """True for ODEX volatile instance instructions."""
        return self._has(InsnProps.ODEXED_INSTANCE_VOLATILE)

    def odexed_static_volatile(self) -> bool:
        """True for ODEX volatile static instructions."""
        return self._has(InsnProps.ODEXED_STATIC_VOLATILE)

    def can_initialize_reference(self) -> bool:
        """True if the instruction can initialize a reference."""
        return self._has(InsnProps.CAN_INITIALIZE_REFERENCE)

    def can_return(self) -> bool:
        """True if the instruction can return from the method."""
        return self._has(InsnProps.CAN_RETURN)

    def can_branch(self) -> bool:
        """True if the instruction can branch."""
        return self._has(InsnProps.CAN_BRANCH)

    def can_switch(self) -> bool:
        """True if the instruction can switch."""
        return self._has(InsnProps.CAN_SWITCH)

    def can_invoke(self) -> bool:
        """True if the instruction can invoke a method."""
        return self._has(InsnProps.CAN_INVOKE)

    def can_virtually_invoke(self) -> bool:
        """True for virtual and interface invocations."""
        return self.op in _VIRTUAL_INVOKE_OPS

    def can_directly_invoke(self) -> bool:
        """True for super, direct, static and inline invocations."""
        return self.op in _DIRECT_INVOKE_OPS