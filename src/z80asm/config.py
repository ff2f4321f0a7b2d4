"""
Assembler Configuration
=======================

Run-wide settings for the assembler. Configuration can come from:
- Default values (defined here)
- Environment variables (AssemblerConfig.from_env)
- Command-line options (the zasm CLI overrides individual fields)

A config only describes how a run starts. Everything a run mutates
(address counter, symbol table, error list) lives in per-run objects.
"""

from dataclasses import dataclass
from typing import Optional
import os

from z80asm.cpu import CpuMode


def parse_number(text: str) -> Optional[int]:
    """
    Parse a number written as $hex, 0xhex or decimal.

    Returns:
        The value, or None if the text is not a valid number
    """
    text = text.strip()
    try:
        if text.startswith("$"):
            return int(text[1:], 16)
        if text.lower().startswith("0x"):
            return int(text[2:], 16)
        return int(text, 10)
    except ValueError:
        return None


@dataclass
class AssemblerConfig:
    """
    Configuration for an assembly run.

    Attributes:
        cpu: CPU mode active at the start of the source (default: Z80)
        origin: Initial address counter value (default: 0)
        fill_byte: Byte used for gaps when flattening regions (default: $FF)
        filename: Source name used in diagnostics (default: "<input>")
    """

    cpu: CpuMode = CpuMode.Z80
    origin: int = 0
    fill_byte: int = 0xFF
    filename: str = "<input>"

    @classmethod
    def from_env(cls) -> "AssemblerConfig":
        """
        Create an AssemblerConfig from environment variables.

        Environment variables (all optional):
            Z80ASM_CPU: Initial CPU mode ("Z80" or "M6502")
            Z80ASM_ORIGIN: Initial address counter ($hex, 0xhex or decimal)
            Z80ASM_FILL: Gap fill byte for flattened images

        Invalid values are ignored and the default is kept.
        """
        config = cls()

        if cpu := os.environ.get("Z80ASM_CPU"):
            try:
                config.cpu = CpuMode[cpu.strip().upper()]
            except KeyError:
                pass

        if origin := os.environ.get("Z80ASM_ORIGIN"):
            value = parse_number(origin)
            if value is not None and 0 <= value <= 0xFFFF:
                config.origin = value

        if fill := os.environ.get("Z80ASM_FILL"):
            value = parse_number(fill)
            if value is not None and 0 <= value <= 0xFF:
                config.fill_byte = value

        return config
