"""
Z80 Assembler - Main Interface
==============================

This module provides the Assembler class, the primary interface for
assembling Z80 source code. It runs the lexer, parser, encoder and
bundler in order and returns everything a run produced in one
AssemblyResult.

Example Usage
-------------
>>> from z80asm.assembler import Assembler
>>> asm = Assembler()
>>> result = asm.assemble_string('''
...     ORG $8000
... start:
...     LD A,$41
...     JR start
... ''')
>>> result.ok
True
>>> result.code.hex(" ")
'3e 41 18 fc'
>>> result.symbols
{'START': 32768}

Every call allocates its own AssemblerState, so one Assembler can be
used for any number of runs (or several Assemblers from several
threads) without runs seeing each other's labels.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

from z80asm.config import AssemblerConfig
from z80asm.errors import AssemblerError, ErrorCollector
from z80asm.assembler.lexer import Lexer
from z80asm.assembler.parser import Parser
from z80asm.assembler.encoder import AssemblerState, ByteRange, Encoder
from z80asm.assembler.bundler import Region, bundle, flatten

logger = logging.getLogger(__name__)


@dataclass
class AssemblyResult:
    """
    Everything produced by one assembly run.

    Attributes:
        ranges: Accepted ByteRanges in statement order
        regions: Contiguous output regions
        errors: All diagnostics (lexical, syntactic, encoding) in source order
        symbols: Label name -> address
        fill_byte: Gap filler used by code
    """
    ranges: list[ByteRange] = field(default_factory=list)
    regions: list[Region] = field(default_factory=list)
    errors: list[AssemblerError] = field(default_factory=list)
    symbols: dict[str, int] = field(default_factory=dict)
    fill_byte: int = 0xFF

    @property
    def ok(self) -> bool:
        """True if the run produced no diagnostics."""
        return not self.errors

    @property
    def origin(self) -> int:
        """Base address of the lowest region (0 if nothing was emitted)."""
        if not self.regions:
            return 0
        return min(region.base for region in self.regions)

    @property
    def code(self) -> bytes:
        """
        All regions flattened into one image starting at origin.

        Raises:
            AssemblerError: If the run has errors
            BundleError: If regions overlap
        """
        if self.errors:
            raise AssemblerError(
                f"Assembly failed with {len(self.errors)} errors:\n\n"
                f"{self.error_report()}"
            )
        _, image = flatten(self.regions, self.fill_byte)
        return image

    def error_report(self) -> str:
        """Format all diagnostics for display."""
        collector = ErrorCollector()
        collector.extend(self.errors)
        return collector.report()


class Assembler:
    """
    Main Z80 assembler class.

    Attributes:
        config: Settings every run starts from
    """

    def __init__(self, config: Optional[AssemblerConfig] = None):
        """
        Initialize the assembler.

        Args:
            config: Run settings (default: AssemblerConfig())
        """
        self.config = config if config is not None else AssemblerConfig()
        self._result: Optional[AssemblyResult] = None

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: Optional[str] = None) -> AssemblyResult:
        """
        Assemble source code from a string.

        The assembly pipeline is:
        1. Tokenize (Lexer)
        2. Classify tokens into items (Parser)
        3. Encode items in two passes (Encoder)
        4. Group byte ranges into regions (Bundler)

        Args:
            source: Assembly source code
            filename: Name used in diagnostics (default: config.filename)

        Returns:
            The AssemblyResult; check result.ok before using the output
        """
        filename = filename or self.config.filename
        errors = ErrorCollector()

        tokens = list(Lexer(source, filename).tokenize())
        logger.debug(f"{filename}: {len(tokens)} tokens")

        items, parse_errors = Parser(tokens, filename).parse()
        errors.extend(parse_errors)

        state = AssemblerState(address=self.config.origin, cpu=self.config.cpu)
        ranges, encode_errors = Encoder(state).assemble(items)
        errors.extend(encode_errors)

        regions = bundle(ranges)
        logger.debug(
            f"{filename}: {sum(len(region) for region in regions)} bytes "
            f"in {len(regions)} regions"
        )

        # Stages run one after another; restore source order for the report
        ordered = sorted(errors, key=lambda error: error.line)

        self._result = AssemblyResult(
            ranges=ranges,
            regions=regions,
            errors=ordered,
            symbols=state.symbols.as_dict(),
            fill_byte=self.config.fill_byte,
        )
        return self._result

    def assemble_file(self, filepath: str | Path) -> AssemblyResult:
        """
        Assemble source code from a file.

        Raises:
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)
        logger.debug(f"Assembling {filepath}")
        source = filepath.read_text()
        return self.assemble_string(source, str(filepath))

    # =========================================================================
    # Results of the Last Run
    # =========================================================================

    def _last(self) -> AssemblyResult:
        if self._result is None:
            raise RuntimeError("nothing has been assembled yet")
        return self._result

    def get_code(self) -> bytes:
        """Flattened image of the last run."""
        return self._last().code

    def get_origin(self) -> int:
        return self._last().origin

    def get_symbols(self) -> dict[str, int]:
        return dict(self._last().symbols)

    def has_errors(self) -> bool:
        return not self._last().ok

    def get_error_report(self) -> str:
        return self._last().error_report()


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>") -> bytes:
    """
    Convenience function to assemble source code.

    Returns:
        Flattened object code

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(AssemblerConfig(filename=filename)).assemble_string(source).code


def assemble_file(filepath: str | Path) -> bytes:
    """
    Convenience function to assemble a file.

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler().assemble_file(filepath).code
