"""
z80asm - Z80 Cross-Assembler
============================

Converts Z80 assembly source into raw binary images.

Main Components
---------------
- **assembler**: Lexer, parser, two-pass encoder and bundler (zasm)
- **cpu**: Z80 register, condition and opcode tables
- **config**: Run settings, optionally read from the environment

Quick Start
-----------
    >>> from z80asm import Assembler
    >>> result = Assembler().assemble_string("ORG $100\\nLD A,$12\\nHALT")
    >>> hex(result.origin), result.code.hex(" ")
    ('0x100', '3e 12 76')

Or use the command-line tool:
    $ zasm hello.asm -o hello.bin

Reference Documentation
-----------------------
- Zilog Z80 CPU User Manual (UM0080)
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from z80asm.config import AssemblerConfig
from z80asm.cpu import CpuMode
from z80asm.assembler import Assembler, AssemblyResult, assemble, assemble_file
from z80asm.errors import (
    Z80AsmError,
    SourceLocation,
    AssemblerError,
    LexicalError,
    AssemblySyntaxError,
    AddressingModeError,
    RegisterRestrictionError,
    ValueRangeError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    DirectiveError,
    UnsupportedCpuError,
    BundleError,
    ErrorCollector,
)

__all__ = [
    "__version__",
    "AssemblerConfig",
    "CpuMode",
    "Assembler",
    "AssemblyResult",
    "assemble",
    "assemble_file",
    "Z80AsmError",
    "SourceLocation",
    "AssemblerError",
    "LexicalError",
    "AssemblySyntaxError",
    "AddressingModeError",
    "RegisterRestrictionError",
    "ValueRangeError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "DirectiveError",
    "UnsupportedCpuError",
    "BundleError",
    "ErrorCollector",
]
