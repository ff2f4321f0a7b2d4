"""
Z80 Assembler CPU Package
=========================

CPU architecture definitions shared by the parser (which classifies
names) and the encoder (which builds opcodes from bit fields).

Modules:
    z80: Z80 register, condition and operation field codes, fixed
         opcodes and mnemonic reference lists.

Usage:
    from z80asm.cpu import (
        CpuMode,
        REGISTER_CODES,
        FIXED_OPCODES,
        MNEMONICS,
    )
"""

from z80asm.cpu.z80 import (
    # Core types
    CpuMode,
    # Prefix bytes
    PREFIX_CB,
    PREFIX_ED,
    PREFIX_IX,
    PREFIX_IY,
    INDEX_PREFIXES,
    # Keywords
    CPU_KEYWORDS,
    UNIMPLEMENTED_DIRECTIVES,
    KEYWORDS,
    # Register and condition fields
    REGISTER_CODES,
    MEMORY_FIELD,
    PAIR_CODES,
    STACK_PAIR_CODES,
    REGISTERS_16,
    INDIRECT_REGISTERS,
    CONDITION_CODES,
    RELATIVE_CONDITION_OPCODES,
    # Operation fields
    ALU_OPS,
    ROTATE_OPS,
    BIT_OPS,
    INTERRUPT_MODES,
    RESTART_TARGETS,
    FIXED_OPCODES,
    # Mnemonic reference lists
    FUSED_CONDITIONALS,
    FUSED_INTERRUPT_MODES,
    OPERAND_MNEMONICS,
    MNEMONICS,
    RELATIVE_JUMPS,
)

__all__ = [
    "CpuMode",
    "PREFIX_CB",
    "PREFIX_ED",
    "PREFIX_IX",
    "PREFIX_IY",
    "INDEX_PREFIXES",
    "CPU_KEYWORDS",
    "UNIMPLEMENTED_DIRECTIVES",
    "KEYWORDS",
    "REGISTER_CODES",
    "MEMORY_FIELD",
    "PAIR_CODES",
    "STACK_PAIR_CODES",
    "REGISTERS_16",
    "INDIRECT_REGISTERS",
    "CONDITION_CODES",
    "RELATIVE_CONDITION_OPCODES",
    "ALU_OPS",
    "ROTATE_OPS",
    "BIT_OPS",
    "INTERRUPT_MODES",
    "RESTART_TARGETS",
    "FIXED_OPCODES",
    "FUSED_CONDITIONALS",
    "FUSED_INTERRUPT_MODES",
    "OPERAND_MNEMONICS",
    "MNEMONICS",
    "RELATIVE_JUMPS",
]
