"""
Z80 Assembler
=============

Assembles Z80 source text into raw binary images.

Main Components
---------------
- **Assembler**: Runs the whole pipeline and returns an AssemblyResult
- **Lexer**: Tokenizes source text
- **Parser**: Classifies tokens into items (registers, indirections, ...)
- **Encoder**: Two-pass encoding of items into address-tagged ByteRanges
- **bundle / flatten**: Group ByteRanges into regions and images

Assembly Process
----------------
1. **Lexer**: source text -> tokens (numbers already base-converted)
2. **Parser**: tokens -> items, every operand fully classified
3. **Encoder**: items -> ByteRanges
   - Pass 1: statement sizes and label addresses
   - Pass 2: final bytes with all labels resolved
4. **Bundler**: ByteRanges -> contiguous (base, bytes) regions

Every stage keeps going after an error, so one run reports every
problem in the file. A run with any error produces no usable output.

Example Usage
-------------
>>> from z80asm.assembler import assemble
>>> assemble("LD A,$12\\nLD B,A").hex(" ")
'3e 12 47'
"""

from z80asm.assembler.lexer import Lexer, Token, TokenType, tokenize
from z80asm.assembler.parser import Item, ItemKind, Parser, parse
from z80asm.assembler.symbols import Symbol, SymbolTable
from z80asm.assembler.encoder import AssemblerState, ByteRange, Encoder, encode
from z80asm.assembler.bundler import Region, bundle, flatten
from z80asm.assembler.assembler import (
    Assembler,
    AssemblyResult,
    assemble,
    assemble_file,
)

__all__ = [
    "Assembler",
    "AssemblyResult",
    "assemble",
    "assemble_file",
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "Item",
    "ItemKind",
    "Parser",
    "parse",
    "Symbol",
    "SymbolTable",
    "AssemblerState",
    "ByteRange",
    "Encoder",
    "encode",
    "Region",
    "bundle",
    "flatten",
]
