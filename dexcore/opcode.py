"""Dalvik instruction opcodes."""

from enum import IntEnum

__all__ = ["Opcode"]


class Opcode(IntEnum):
    """One-byte Dalvik opcodes, including the ODEX-only ones."""

    NOP = 0x00
    MOVE = 0x01
    MOVE_FROM16 = 0x02
    MOVE_16 = 0x03
    MOVE_WIDE = 0x04
    MOVE_WIDE_FROM16 = 0x05
    MOVE_WIDE_16 = 0x06
    MOVE_OBJECT = 0x07
    MOVE_OBJECT_FROM16 = 0x08
    MOVE_OBJECT_16 = 0x09
    MOVE_RESULT = 0x0A
    MOVE_RESULT_WIDE = 0x0B
    MOVE_RESULT_OBJECT = 0x0C
    MOVE_EXCEPTION = 0x0D
    RETURN_VOID = 0x0E
    RETURN = 0x0F
    RETURN_WIDE = 0x10
    RETURN_OBJECT = 0x11
    CONST_4 = 0x12
    CONST_16 = 0x13
    CONST = 0x14
    CONST_HIGH16 = 0x15
    CONST_WIDE_16 = 0x16
    CONST_WIDE_32 = 0x17
    CONST_WIDE = 0x18
    CONST_WIDE_HIGH16 = 0x19
    CONST_STRING = 0x1A
    CONST_STRING_JUMBO = 0x1B
    CONST_CLASS = 0x1C
    MONITOR_ENTER = 0x1D
    MONITOR_EXIT = 0x1E
    CHECK_CAST = 0x1F
    INSTANCE_OF = 0x20
    ARRAY_LENGTH = 0x21
    NEW_INSTANCE = 0x22
    NEW_ARRAY = 0x23
    FILLED_NEW_ARRAY = 0x24
    FILLED_NEW_ARRAY_RANGE = 0x25
    FILL_ARRAY_DATA = 0x26
    THROW = 0x27
    GOTO = 0x28
    GOTO_16 = 0x29
    GOTO_32 = 0x2A
    PACKED_SWITCH = 0x2B
    SPARSE_SWITCH = 0x2C
    CMPL_FLOAT = 0x2D
    CMPG_FLOAT = 0x2E
    CMPL_DOUBLE = 0x2F
    CMPG_DOUBLE = 0x30
    CMP_LONG = 0x31
    IF_EQ = 0x32
    IF_NE = 0x33
    IF_LT = 0x34
    IF_GE = 0x35
    IF_GT = 0x36
    IF_LE = 0x37
    IF_EQZ = 0x38
    IF_NEZ = 0x39
    IF_LTZ = 0x3A
    IF_GEZ = 0x3B
    IF_GTZ = 0x3C
    IF_LEZ = 0x3D
    OP_3E = 0x3E
    OP_3F = 0x3F
    OP_40 = 0x40
    OP_41 = 0x41
    OP_42 = 0x42
    OP_43 = 0x43
    AGET = 0x44
    AGET_WIDE = 0x45
    AGET_OBJECT = 0x46
    AGET_BOOLEAN = 0x47
    AGET_BYTE = 0x48
    AGET_CHAR = 0x49
    AGET_SHORT = 0x4A
    APUT = 0x4B
    APUT_WIDE = 0x4C
    APUT_OBJECT = 0x4D
    APUT_BOOLEAN = 0x4E
    APUT_BYTE = 0x4F
    APUT_CHAR = 0x50
    APUT_SHORT = 0x51
    IGET = 0x52
    IGET_WIDE = 0x53
    IGET_OBJECT = 0x54
    IGET_BOOLEAN = 0x55
    IGET_BYTE = 0x56
    IGET_CHAR = 0x57
    IGET_SHORT = 0x58
    IPUT = 0x59
    IPUT_WIDE = 0x5A
    IPUT_OBJECT = 0x5B
    IPUT_BOOLEAN = 0x5C
    IPUT_BYTE = 0x5D
    IPUT_CHAR = 0x5E
    IPUT_SHORT = 0x5F
    SGET = 0x60
    SGET_WIDE = 0x61
    SGET_OBJECT = 0x62
    SGET_BOOLEAN = 0x63
    SGET_BYTE = 0x64
    SGET_CHAR = 0x65
    SGET_SHORT = 0x66
    SPUT = 0x67
    SPUT_WIDE = 0x68
    SPUT_OBJECT = 0x69
    SPUT_BOOLEAN = 0x6A
    SPUT_BYTE = 0x6B
    SPUT_CHAR = 0x6C
    SPUT_SHORT = 0x6D
    INVOKE_VIRTUAL = 0x6E
    INVOKE_SUPER = 0x6F
    INVOKE_DIRECT = 0x70
    INVOKE_STATIC = 0x71
    INVOKE_INTERFACE = 0x72
    OP_73 = 0x73
    INVOKE_VIRTUAL_RANGE = 0x74
    INVOKE_SUPER_RANGE = 0x75
    INVOKE_DIRECT_RANGE = 0x76
    INVOKE_STATIC_RANGE = 0x77
    INVOKE_INTERFACE_RANGE = 0x78
    OP_79 = 0x79
    OP_7A = 0x7A
    NEG_INT = 0x7B
    NOT_INT = 0x7C
    NEG_LONG = 0x7D
    NOT_LONG = 0x7E
    NEG_FLOAT = 0x7F
    NEG_DOUBLE = 0x80
    INT_TO_LONG = 0x81
    INT_TO_FLOAT = 0x82
    INT_TO_DOUBLE = 0x83
    LONG_TO_INT = 0x84
    LONG_TO_FLOAT = 0x85
    LONG_TO_DOUBLE = 0x86
    FLOAT_TO_INT = 0x87
    FLOAT_TO_LONG = 0x88
    FLOAT_TO_DOUBLE = 0x89
    DOUBLE_TO_INT = 0x8A
    DOUBLE_TO_LONG = 0x8B
    DOUBLE_TO_FLOAT = 0x8C
    INT_TO_BYTE = 0x8D
    INT_TO_CHAR = 0x8E
    INT_TO_SHORT = 0x8F
    ADD_INT = 0x90
    SUB_INT = 0x91
    MUL_INT = 0x92
    DIV_INT = 0x93
    REM_INT = 0x94
    AND_INT = 0x95
    OR_INT = 0x96
    XOR_INT = 0x97
    SHL_INT = 0x98
    SHR_INT = 0x99
    USHR_INT = 0x9A
    ADD_LONG = 0x9B
    SUB_LONG = 0x9C
    MUL_LONG = 0x9D
    DIV_LONG = 0x9E
    REM_LONG = 0x9F
    AND_LONG = 0xA0
    OR_LONG = 0xA1
    XOR_LONG = 0xA2
    SHL_LONG = 0xA3
    SHR_LONG = 0xA4
    USHR_LONG = 0xA5
    ADD_FLOAT = 0xA6
    SUB_FLOAT = 0xA7
    MUL_FLOAT = 0xA8
    DIV_FLOAT = 0xA9
    REM_FLOAT = 0xAA
    ADD_DOUBLE = 0xAB
    SUB_DOUBLE = 0xAC
    MUL_DOUBLE = 0xAD
    DIV_DOUBLE = 0xAE
    REM_DOUBLE = 0xAF
    ADD_INT_2ADDR = 0xB0
    SUB_INT_2ADDR = 0xB1
    MUL_INT_2ADDR = 0xB2
    DIV_INT_2ADDR = 0xB3
    REM_INT_2ADDR = 0xB4
    AND_INT_2ADDR = 0xB5
    OR_INT_2ADDR = 0xB6
    XOR_INT_2ADDR = 0xB7
    SHL_INT_2ADDR = 0xB8
    SHR_INT_2ADDR = 0xB9
    USHR_INT_2ADDR = 0xBA
    ADD_LONG_2ADDR = 0xBB
    SUB_LONG_2ADDR = 0xBC
    MUL_LONG_2ADDR = 0xBD
    DIV_LONG_2ADDR = 0xBE
    REM_LONG_2ADDR = 0xBF
    AND_LONG_2ADDR = 0xC0
    OR_LONG_2ADDR = 0xC1
    XOR_LONG_2ADDR = 0xC2
    SHL_LONG_2ADDR = 0xC3
    SHR_LONG_2ADDR = 0xC4
    USHR_LONG_2ADDR = 0xC5
    ADD_FLOAT_2ADDR = 0xC6
    SUB_FLOAT_2ADDR = 0xC7
    MUL_FLOAT_2ADDR = 0xC8
    DIV_FLOAT_2ADDR = 0xC9
    REM_FLOAT_2ADDR = 0xCA
    ADD_DOUBLE_2ADDR = 0xCB
    SUB_DOUBLE_2ADDR = 0xCC
    MUL_DOUBLE_2ADDR = 0xCD
    DIV_DOUBLE_2ADDR = 0xCE
    REM_DOUBLE_2ADDR = 0xCF
    ADD_INT_LIT16 = 0xD0
    RSUB_INT = 0xD1
    MUL_INT_LIT16 = 0xD2
    DIV_INT_LIT16 = 0xD3
    REM_INT_LIT16 = 0xD4
    AND_INT_LIT16 = 0xD5
    OR_INT_LIT16 = 0xD6
    XOR_INT_LIT16 = 0xD7
    ADD_INT_LIT8 = 0xD8
    RSUB_INT_LIT8 = 0xD9
    MUL_INT_LIT8 = 0xDA
    DIV_INT_LIT8 = 0xDB
    REM_INT_LIT8 = 0xDC
    AND_INT_LIT8 = 0xDD
    OR_INT_LIT8 = 0xDE
    XOR_INT_LIT8 = 0xDF
    SHL_INT_LIT8 = 0xE0
    SHR_INT_LIT8 = 0xE1
    USHR_INT_LIT8 = 0xE2
    IGET_VOLATILE = 0xE3
    IPUT_VOLATILE = 0xE4
    SGET_VOLATILE = 0xE5
    SPUT_VOLATILE = 0xE6
    IGET_OBJECT_VOLATILE = 0xE7
    IGET_WIDE_VOLATILE = 0xE8
    IPUT_WIDE_VOLATILE = 0xE9
    SGET_WIDE_VOLATILE = 0xEA
    SPUT_WIDE_VOLATILE = 0xEB
    OP_EC = 0xEC
    THROW_VERIFICATION_ERROR = 0xED
    EXECUTE_INLINE = 0xEE
    EXECUTE_INLINE_RANGE = 0xEF
    INVOKE_OBJECT_INIT_RANGE = 0xF0
    RETURN_VOID_BARRIER = 0xF1
    IGET_QUICK = 0xF2
    IGET_WIDE_QUICK = 0xF3
    IGET_OBJECT_QUICK = 0xF4
    IPUT_QUICK = 0xF5
    IPUT_WIDE_QUICK = 0xF6
    IPUT_OBJECT_QUICK = 0xF7
    INVOKE_VIRTUAL_QUICK = 0xF8
    INVOKE_VIRTUAL_QUICK_RANGE = 0xF9
    INVOKE_SUPER_QUICK = 0xFA
    INVOKE_SUPER_QUICK_RANGE = 0xFB
    IPUT_OBJECT_VOLATILE = 0xFC
    SGET_OBJECT_VOLATILE = 0xFD
    SPUT_OBJECT_VOLATILE = 0xFE
    OP_FF = 0xFF