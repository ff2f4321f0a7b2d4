"""
Z80 Assembler Error Hierarchy
=============================

This module defines the exception hierarchy for the assembler. All
exceptions inherit from Z80AsmError, allowing callers to catch every
assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
Z80AsmError (base)
├── AssemblerError (diagnostics tied to a source line)
│   ├── LexicalError - unknown character, malformed literal
│   ├── AssemblySyntaxError - wrong token, missing bracket, bad statement
│   ├── AddressingModeError - invalid operand combination for a mnemonic
│   │   └── RegisterRestrictionError - only the accumulator is legal here
│   ├── ValueRangeError - value exceeds the 8-bit/16-bit/displacement bound
│   ├── UndefinedSymbolError - reference to undefined label
│   ├── DuplicateSymbolError - label defined multiple times
│   ├── DirectiveError - error in (or unimplemented) assembler directive
│   └── UnsupportedCpuError - instruction in a CPU mode with no encoder
└── BundleError - output regions cannot be combined

Diagnostics are never raised out of an assembly run. Each stage collects
them in an ErrorCollector and keeps going, so one bad statement costs
exactly one diagnostic and zero bytes.

Error messages follow this format:
    filename:line:column: error: description
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Iterator, Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Z80AsmError(Exception):
    """
    Base exception for all assembler errors.

        try:
            assemble(source)
        except Z80AsmError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(Z80AsmError):
    """
    Base exception for diagnostics produced while assembling.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        super().__init__(self._format_message())

    @property
    def line(self) -> int:
        """Source line of the error, 0 when no location is known."""
        return self.location.line if self.location else 0

    def _format_message(self) -> str:
        """
        Format the error message with location and hint.

        Example output:
            game.asm:15:9: error: undefined symbol 'PRNT'
            hint: did you mean 'PRINT'?
        """
        if self.location:
            text = f"{self.location}: error: {self.message}"
        else:
            text = f"error: {self.message}"
        if self.hint:
            text += f"\nhint: {self.hint}"
        return text


class LexicalError(AssemblerError):
    """
    Lexical error in assembly source code.

    Examples:
        - Character that starts no token ("?", "!")
        - Literal without digits ("$", "%2")
        - Literal running into letters ("12AB")
        - Unterminated string literal
    """
    pass


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Examples:
        - Missing closing bracket in "(HL"
        - "(A)" where an indirection register is expected
        - Missing comma between operands
        - Unknown mnemonic at the start of a statement
    """
    pass


class AddressingModeError(AssemblerError):
    """
    Operand combination not encodable for an instruction.

    Example:
        LD (BC),(DE)   ; no memory-to-memory load
    """

    def __init__(
        self,
        mnemonic: str,
        operands: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.mnemonic = mnemonic
        self.operands = operands
        if operands:
            message = f"invalid operands for {mnemonic}: {operands}"
        else:
            message = f"{mnemonic} requires operands"
        super().__init__(message, location=location, hint=hint)


class RegisterRestrictionError(AddressingModeError):
    """
    Register used in a position where only the accumulator is legal.

    Example:
        LD B,(BC)      ; only A may load from (BC)
    """

    def __init__(
        self,
        mnemonic: str,
        operands: str,
        operand: str,
        location: Optional[SourceLocation] = None,
    ):
        self.operand = operand
        super().__init__(
            mnemonic,
            operands,
            location=location,
            hint=f"only A may be used with {operand}",
        )


class ValueRangeError(AssemblerError):
    """
    Numeric value outside the range its position allows.

    Raised for 8-bit immediates above $FF, 16-bit values above $FFFF,
    index displacements outside -128..127 and relative jumps whose target
    is too far away.
    """

    def __init__(
        self,
        value: int,
        what: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.value = value
        self.what = what
        rendered = f"-${-value:X}" if value < 0 else f"${value:X}"
        super().__init__(
            f"{what} {rendered} out of range",
            location=location,
            hint=hint,
        )


class UndefinedSymbolError(AssemblerError):
    """
    Reference to an undefined label.

    The assembler suggests similarly-named symbols when this error
    occurs, helping to catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        hint = None
        if self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
        )


class DuplicateSymbolError(AssemblerError):
    """Label defined more than once."""

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
        )


class DirectiveError(AssemblerError):
    """
    Error in an assembler directive.

    Examples:
        - ORG without a numeric address
        - DB/DW/INCLUDE/MACRO, which are recognized but not implemented
    """
    pass


class UnsupportedCpuError(AssemblerError):
    """Instruction found while a CPU mode without an encoder is active."""
    pass


class BundleError(Z80AsmError):
    """Output regions overlap and cannot be flattened into one image."""
    pass


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects errors in source order for batch reporting.

    Every stage of the pipeline owns one collector and keeps processing
    after an error, so a single run reports every problem in the file.

    Example:
        collector = ErrorCollector()
        collector.add(AssemblySyntaxError("expected ')'", location))
        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self):
        self.errors: list[AssemblerError] = []

    def add(self, error: AssemblerError) -> None:
        """Add an error to the collection."""
        self.errors.append(error)

    def extend(self, errors: "ErrorCollector | list[AssemblerError]") -> None:
        """Append all errors of another collector (or list), keeping order."""
        self.errors.extend(errors)

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def report(self) -> str:
        """
        Format all errors for display.

        Returns:
            One block per error followed by a summary line
        """
        lines = [str(error) for error in self.errors]
        error_word = "error" if len(self.errors) == 1 else "errors"
        lines.append(f"{len(self.errors)} {error_word}")
        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors."""
        self.errors.clear()

    def __iter__(self) -> Iterator[AssemblerError]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)
