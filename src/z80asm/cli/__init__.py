"""
Z80 Assembler Command-Line Interface
====================================

- **zasm**: Z80 assembler

Implemented as a Click application; exit codes are defined in
z80asm.cli.errors.
"""

__all__ = ["zasm"]
