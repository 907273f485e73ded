"""Data model for Dalvik DEX files: opcodes, access flags, indexes, handles, record parsers, instructions and ID-table lookups."""

__version__ = "0.1.0"