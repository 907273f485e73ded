[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dexcore"
version = "0.1.0"
description = "Data model for Dalvik DEX files: opcodes, access flags, typed indexes, handles, raw record parsers, instructions and ID-table lookups"
requires-python = ">=3.10"
dependencies = []
keywords = ["dex", "dalvik", "android", "bytecode", "disassembler", "static-analysis"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dexcore"]

[tool.pytest.ini_options]
addopts = "-ra"
