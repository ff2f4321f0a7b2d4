"""
Z80 Instruction Set Definition
==============================

This module defines the static tables the assembler needs to classify
names and to build Z80 opcodes. All tables are immutable, process-wide
read-only data and may be shared between assembly runs.

Opcode Structure
----------------
Most Z80 opcodes are bit-packed from small fields:

    LD r,r'      01 ddd sss
    ALU r        10 ooo sss
    LD dd,nn     00 dd0 001
    JP cc,nn     11 ccc 010

8-bit register fields use B=000 C=001 D=010 E=011 H=100 L=101 A=111.
The field value 110 selects the memory operand (HL) and is never the
code of a plain register.

Prefix Bytes
------------
- $CB: rotate/shift and bit instructions
- $ED: extended instructions (block ops, 16-bit ADC/SBC, I/R loads)
- $DD/$FD: replace HL by IX/IY; (HL) becomes (IX+d)/(IY+d) and the
  signed displacement byte follows the opcode

Reference
---------
- Zilog Z80 CPU User Manual (UM0080)
- http://www.z80.info/decoding.htm
"""

from enum import Enum


# =============================================================================
# CPU Modes
# =============================================================================

class CpuMode(Enum):
    """
    CPU families selectable with a mode keyword in the source.

    Only Z80 has an encoder; M6502 is recognized so that a source can
    switch to it, but any instruction assembled in that mode is an error.
    """
    Z80 = "Z80"
    M6502 = "M6502"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Prefix Bytes
# =============================================================================

PREFIX_CB = 0xCB
PREFIX_ED = 0xED
PREFIX_IX = 0xDD
PREFIX_IY = 0xFD

INDEX_PREFIXES: dict[str, int] = {
    "IX": PREFIX_IX,
    "IY": PREFIX_IY,
}


# =============================================================================
# Directive Keywords
# =============================================================================

# Keywords that select the CPU mode
CPU_KEYWORDS: dict[str, CpuMode] = {
    "Z80": CpuMode.Z80,
    "M6502": CpuMode.M6502,
}

# Recognized but not implemented directives
UNIMPLEMENTED_DIRECTIVES = frozenset({
    "INCLUDE", "INCBIN",       # Source/binary inclusion
    "DB", "DW",                # Data definition
    "CONST",                   # Named constant
    "MACRO", "ENDM",           # Macro definition
    "END",                     # End of source
})

KEYWORDS = frozenset({"ORG"}) | frozenset(CPU_KEYWORDS) | UNIMPLEMENTED_DIRECTIVES


# =============================================================================
# Register Field Codes
# =============================================================================

# 8-bit register field (ddd / sss / rrr)
REGISTER_CODES: dict[str, int] = {
    "B": 0b000,
    "C": 0b001,
    "D": 0b010,
    "E": 0b011,
    "H": 0b100,
    "L": 0b101,
    "A": 0b111,
}

# Register field value selecting (HL), (IX+d) or (IY+d)
MEMORY_FIELD = 0b110

# Register pair field (dd / ss) for LD dd,nn, INC/DEC ss, ADD HL,ss
PAIR_CODES: dict[str, int] = {
    "BC": 0b00,
    "DE": 0b01,
    "HL": 0b10,
    "SP": 0b11,
}

# Register pair field (qq) for PUSH and POP
STACK_PAIR_CODES: dict[str, int] = {
    "BC": 0b00,
    "DE": 0b01,
    "HL": 0b10,
    "AF": 0b11,
}

REGISTERS_16 = frozenset({"BC", "DE", "HL", "SP", "AF", "AF'", "IX", "IY"})

# Names allowed between brackets as a plain register indirection
INDIRECT_REGISTERS = frozenset({"BC", "DE", "HL", "SP"})


# =============================================================================
# Condition Codes
# =============================================================================

# ccc field for JP cc, CALL cc and RET cc
CONDITION_CODES: dict[str, int] = {
    "NZ": 0b000,
    "Z": 0b001,
    "NC": 0b010,
    "C": 0b011,
    "PO": 0b100,
    "PE": 0b101,
    "P": 0b110,
    "M": 0b111,
}

# JR only supports the first four conditions
RELATIVE_CONDITION_OPCODES: dict[str, int] = {
    "NZ": 0x20,
    "Z": 0x28,
    "NC": 0x30,
    "C": 0x38,
}


# =============================================================================
# Operation Codes
# =============================================================================

# 8-bit arithmetic/logic group (ooo field)
ALU_OPS: dict[str, int] = {
    "ADD": 0b000,
    "ADC": 0b001,
    "SUB": 0b010,
    "SBC": 0b011,
    "AND": 0b100,
    "XOR": 0b101,
    "OR": 0b110,
    "CP": 0b111,
}

# $CB rotate/shift group (ooo field)
ROTATE_OPS: dict[str, int] = {
    "RLC": 0b000,
    "RRC": 0b001,
    "RL": 0b010,
    "RR": 0b011,
    "SLA": 0b100,
    "SRA": 0b101,
    "SRL": 0b111,
}

# $CB bit group (top two bits)
BIT_OPS: dict[str, int] = {
    "BIT": 0b01,
    "RES": 0b10,
    "SET": 0b11,
}

# IM n second byte after $ED
INTERRUPT_MODES: dict[int, int] = {
    0: 0x46,
    1: 0x56,
    2: 0x5E,
}

RESTART_TARGETS = frozenset(range(0x00, 0x40, 0x08))


# =============================================================================
# Fixed Opcodes
# =============================================================================
# Instructions without operands map straight to their byte sequence.

FIXED_OPCODES: dict[str, bytes] = {
    # Control
    "NOP": bytes([0x00]),
    "HALT": bytes([0x76]),
    "DI": bytes([0xF3]),
    "EI": bytes([0xFB]),
    "EXX": bytes([0xD9]),

    # Accumulator and flags
    "DAA": bytes([0x27]),
    "CPL": bytes([0x2F]),
    "NEG": bytes([0xED, 0x44]),
    "CCF": bytes([0x3F]),
    "SCF": bytes([0x37]),

    # Accumulator rotates
    "RLCA": bytes([0x07]),
    "RLA": bytes([0x17]),
    "RRCA": bytes([0x0F]),
    "RRA": bytes([0x1F]),
    "RLD": bytes([0xED, 0x6F]),
    "RRD": bytes([0xED, 0x67]),

    # Block transfer and compare
    "LDI": bytes([0xED, 0xA0]),
    "LDIR": bytes([0xED, 0xB0]),
    "LDD": bytes([0xED, 0xA8]),
    "LDDR": bytes([0xED, 0xB8]),
    "CPI": bytes([0xED, 0xA1]),
    "CPIR": bytes([0xED, 0xB1]),
    "CPD": bytes([0xED, 0xA9]),
    "CPDR": bytes([0xED, 0xB9]),

    # Block I/O
    "INI": bytes([0xED, 0xA2]),
    "INIR": bytes([0xED, 0xB2]),
    "IND": bytes([0xED, 0xAA]),
    "INDR": bytes([0xED, 0xBA]),
    "OUTI": bytes([0xED, 0xA3]),
    "OTIR": bytes([0xED, 0xB3]),
    "OUTD": bytes([0xED, 0xAB]),
    "OTDR": bytes([0xED, 0xBB]),

    # Interrupt returns
    "RETI": bytes([0xED, 0x4D]),
    "RETN": bytes([0xED, 0x45]),
}


# =============================================================================
# Fused Mnemonics
# =============================================================================
# Condition-suffixed spellings, e.g. "JPNZ target" for "JP NZ,target".

FUSED_CONDITIONALS: dict[str, tuple[str, str]] = {
    f"{base}{cond}": (base, cond)
    for base, conds in (
        ("JP", CONDITION_CODES),
        ("CALL", CONDITION_CODES),
        ("RET", CONDITION_CODES),
        ("JR", RELATIVE_CONDITION_OPCODES),
    )
    for cond in conds
}

FUSED_INTERRUPT_MODES: dict[str, int] = {
    f"IM{mode}": mode for mode in INTERRUPT_MODES
}


# =============================================================================
# Mnemonic Reference Lists
# =============================================================================

# Mnemonics whose encoding depends on operands
OPERAND_MNEMONICS = frozenset({
    "LD", "PUSH", "POP", "EX",
    "INC", "DEC",
    "JP", "JR", "DJNZ", "CALL", "RET", "RST",
    "IM", "IN", "OUT",
}) | frozenset(ALU_OPS) | frozenset(ROTATE_OPS) | frozenset(BIT_OPS)

MNEMONICS = (
    OPERAND_MNEMONICS
    | frozenset(FIXED_OPCODES)
    | frozenset(FUSED_CONDITIONALS)
    | frozenset(FUSED_INTERRUPT_MODES)
)

# Mnemonics taking a relative (PC + 2 based) jump target
RELATIVE_JUMPS = frozenset({"JR", "DJNZ"})
