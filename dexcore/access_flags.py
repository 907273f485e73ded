"""DEX access flags and their textual form."""

from enum import IntFlag

__all__ = ["AccessFlags", "format_access_flags"]


class AccessFlags(IntFlag):
    """A set of DEX access flags.

    Some bits carry two meanings depending on whether they apply to a field
    or a method; those names are aliases of the same bit.
    """

    PUBLIC = 0x1
    PRIVATE = 0x2
    PROTECTED = 0x4
    STATIC = 0x8
    FINAL = 0x10
    SYNCHRONIZED = 0x20
    VOLATILE = 0x40
    BRIDGE = 0x40
    TRANSIENT = 0x80
    VARARGS = 0x80
    NATIVE = 0x100
    INTERFACE = 0x200
    ABSTRACT = 0x400
    STRICT = 0x800
    SYNTHETIC = 0x1000
    ANNOTATION = 0x2000
    ENUM = 0x4000
    CONSTRUCTOR = 0x10000
    DECLARED_SYNCHRONIZED = 0x20000

    def __str__(self) -> str:
        return format_access_flags(self)


_FLAG_NAMES = (
    (0x1, "public"),
    (0x2, "private"),
    (0x4, "protected"),
    (0x8, "static"),
    (0x10, "final"),
    (0x20, "synchronized"),
    (0x40, "volatile"),
    (0x40, "bridge"),
    (0x80, "transient"),
    (0x80, "varargs"),
    (0x100, "native"),
    (0x200, "interface"),
    (0x400, "abstract"),
    (0x800, "strict"),
    (0x1000, "synthetic"),
    (0x2000, "annotation"),
    (0x4000, "enum"),
    (0x10000, "constructor"),
    (0x20000, "declared_synchronized"),
)


def format_access_flags(flags: int) -> str:
    """Return the space-separated names of the flags set in ``flags``.

    Every name whose bit is set is listed, so shared bits yield both names.
    Bits with no name are ignored.
    """
    value = int(flags)
    return " ".join(name for bit, name in _FLAG_NAMES if value & bit)