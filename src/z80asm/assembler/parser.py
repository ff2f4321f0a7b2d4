"""
Z80 Assembly Language Parser
============================

This module converts the lexer's token stream into a flat stream of
classified items. Classification is complete: by the time an operand
leaves the parser its addressing form is fully known, so the encoder
can consume operands one at a time without backtracking.

Item Kinds
----------
| Source      | Item kind            | Notes                          |
|-------------|----------------------|--------------------------------|
| start:      | LABEL                | colon consumed                 |
| ORG, Z80    | KEYWORD              | directives                     |
| LD, JPNZ    | MNEMONIC             |                                |
| A, B .. L   | REGISTER8            | C is also the carry condition  |
| I / R       | REGISTER_I / _R      | special registers              |
| HL, IX      | REGISTER16           | IX/IY record prefix $DD/$FD    |
| NZ, PE, M   | CONDITION            |                                |
| (HL), (IX)  | INDIRECT_REGISTER16  | (IX) has no displacement       |
| (IX+5)      | INDIRECT_INDEXED     | signed displacement -128..127  |
| (C)         | INDIRECT_C           | port addressed by C            |
| ($1234)     | INDIRECT_IMMEDIATE   | also (label)                   |
| $12, 42     | NUMBER               | low/high bytes precomputed     |
| ,           | COMMA                |                                |
| other names | NAME                 | symbol references              |
| "text"      | STRING               |                                |
| newline     | SEPARATOR            | ends a statement               |
| (bad input) | INVALID              | marks a reported error         |

A "#" in front of a number or name is accepted as an immediate marker
and dropped.

Error Recovery
--------------
The parser never raises on bad input. A malformed item is reported and
replaced by an INVALID item, and parsing resumes with the following
token, so one bad statement never hides errors further down the file.
The encoder drops every statement holding an INVALID item without
reporting it again.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional
import logging

from z80asm.errors import (
    AssemblerError,
    AssemblySyntaxError,
    ErrorCollector,
    LexicalError,
    SourceLocation,
    ValueRangeError,
)
from z80asm.assembler.lexer import Token, TokenType
from z80asm.cpu import (
    KEYWORDS,
    MNEMONICS,
    REGISTER_CODES,
    REGISTERS_16,
    INDEX_PREFIXES,
    INDIRECT_REGISTERS,
    CONDITION_CODES,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Item Kinds
# =============================================================================

class ItemKind(Enum):
    """Semantic classes of parsed items."""

    # Statements
    LABEL = auto()
    KEYWORD = auto()
    MNEMONIC = auto()
    SEPARATOR = auto()

    # Registers
    REGISTER8 = auto()
    REGISTER_I = auto()
    REGISTER_R = auto()
    REGISTER16 = auto()
    CONDITION = auto()

    # Indirections
    INDIRECT_REGISTER16 = auto()
    INDIRECT_INDEXED = auto()
    INDIRECT_C = auto()
    INDIRECT_IMMEDIATE = auto()

    # Values and punctuation
    NUMBER = auto()
    COMMA = auto()
    NAME = auto()
    STRING = auto()

    # Placeholder for an item the parser reported and discarded
    INVALID = auto()


# Item kinds that may appear as an instruction operand
OPERAND_KINDS = frozenset({
    ItemKind.REGISTER8,
    ItemKind.REGISTER_I,
    ItemKind.REGISTER_R,
    ItemKind.REGISTER16,
    ItemKind.CONDITION,
    ItemKind.INDIRECT_REGISTER16,
    ItemKind.INDIRECT_INDEXED,
    ItemKind.INDIRECT_C,
    ItemKind.INDIRECT_IMMEDIATE,
    ItemKind.NUMBER,
    ItemKind.NAME,
    ItemKind.STRING,
})


# =============================================================================
# Item Data Class
# =============================================================================

@dataclass(frozen=True)
class Item:
    """
    A classified element of the source.

    Byte split and range flags are computed once, when the item is
    created through number(), and never change afterwards.

    Attributes:
        kind: The ItemKind classification
        location: Where the item starts in the source
        text: Name of the label/keyword/mnemonic/register/symbol, or the
              string contents; for (label) the referenced symbol
        value: Number value, indirect address, or signed displacement
        prefix: Index prefix byte ($DD/$FD) for IX/IY forms
        low: value & $FF
        high: (value >> 8) & $FF
        fits8: value is within 0..$FF
        fits16: value is within 0..$FFFF
    """
    kind: ItemKind
    location: SourceLocation
    text: Optional[str] = None
    value: int = 0
    prefix: Optional[int] = None
    low: int = 0
    high: int = 0
    fits8: bool = False
    fits16: bool = False

    @classmethod
    def number(
        cls,
        value: int,
        location: SourceLocation,
        kind: ItemKind = ItemKind.NUMBER,
    ) -> "Item":
        """Create a NUMBER (or INDIRECT_IMMEDIATE) item with its byte split."""
        return cls(
            kind=kind,
            location=location,
            value=value,
            low=value & 0xFF,
            high=(value >> 8) & 0xFF,
            fits8=0 <= value <= 0xFF,
            fits16=0 <= value <= 0xFFFF,
        )

    @classmethod
    def indexed(
        cls,
        register: str,
        displacement: int,
        location: SourceLocation,
    ) -> "Item":
        """Create an (IX+d)/(IY+d) item; low holds the two's complement byte."""
        return cls(
            kind=ItemKind.INDIRECT_INDEXED,
            location=location,
            text=register,
            value=displacement,
            prefix=INDEX_PREFIXES[register],
            low=displacement & 0xFF,
        )

    @property
    def line(self) -> int:
        return self.location.line

    def __str__(self) -> str:
        """Render the item the way it would be written in source."""
        kind = self.kind
        if kind is ItemKind.LABEL:
            return f"{self.text}:"
        if kind is ItemKind.NUMBER:
            return f"${self.value:X}"
        if kind is ItemKind.COMMA:
            return ","
        if kind is ItemKind.STRING:
            return f'"{self.text}"'
        if kind is ItemKind.SEPARATOR:
            return "end of line"
        if kind is ItemKind.INVALID:
            return "invalid item"
        if kind is ItemKind.INDIRECT_REGISTER16:
            return f"({self.text})"
        if kind is ItemKind.INDIRECT_C:
            return "(C)"
        if kind is ItemKind.INDIRECT_INDEXED:
            sign = "-" if self.value < 0 else "+"
            return f"({self.text}{sign}${abs(self.value):X})"
        if kind is ItemKind.INDIRECT_IMMEDIATE:
            if self.text is not None:
                return f"({self.text})"
            return f"(${self.value:04X})"
        return str(self.text)


# =============================================================================
# Name Classification
# =============================================================================

# Special 8-bit registers only reachable through LD A,I / LD I,A etc.
SPECIAL_REGISTERS: dict[str, ItemKind] = {
    "I": ItemKind.REGISTER_I,
    "R": ItemKind.REGISTER_R,
}

# Token types rendered in diagnostics
TOKEN_NAMES: dict[TokenType, str] = {
    TokenType.NEWLINE: "end of line",
    TokenType.EOF: "end of input",
    TokenType.COMMA: "','",
    TokenType.COLON: "':'",
    TokenType.PLUS: "'+'",
    TokenType.MINUS: "'-'",
    TokenType.POUND: "'#'",
    TokenType.LPAREN: "'('",
    TokenType.RPAREN: "')'",
}


def classify_name(name: str) -> ItemKind:
    """
    Return the item kind of a bare name (not followed by a colon).

    C is classified as a register; the encoder reads it as the carry
    condition where a condition is expected.
    """
    if name in KEYWORDS:
        return ItemKind.KEYWORD
    if name in MNEMONICS:
        return ItemKind.MNEMONIC
    if name in REGISTER_CODES:
        return ItemKind.REGISTER8
    if name in SPECIAL_REGISTERS:
        return SPECIAL_REGISTERS[name]
    if name in REGISTERS_16:
        return ItemKind.REGISTER16
    if name in CONDITION_CODES:
        return ItemKind.CONDITION
    return ItemKind.NAME


def describe_token(token: Token) -> str:
    """Render a token for diagnostics."""
    if token.type in TOKEN_NAMES:
        return TOKEN_NAMES[token.type]
    if token.type is TokenType.NUMBER:
        return f"${token.value:X}"
    if token.type is TokenType.STRING:
        return f'"{token.value}"'
    return f"'{token.value}'"


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses Z80 assembly tokens into classified items.

    Single pass with at most one token of lookahead.

    Usage:
        tokens = list(Lexer(source, filename).tokenize())
        items, errors = Parser(tokens).parse()
    """

    def __init__(self, tokens: list[Token], filename: str = "<input>"):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from the lexer
            filename: Source filename for error reporting
        """
        self._tokens = tokens
        self._filename = filename
        self._pos = 0
        self._items: list[Item] = []
        self._errors = ErrorCollector()

    def parse(self) -> tuple[list[Item], list[AssemblerError]]:
        """
        Parse all tokens into items.

        Returns:
            (items, errors) with errors in source order
        """
        self._pos = 0
        self._items = []
        self._errors = ErrorCollector()

        while not self._check(TokenType.EOF):
            item = self._parse_item(self._advance())
            if item is not None:
                self._items.append(item)

        logger.debug(
            f"Parsed {len(self._items)} items from {len(self._tokens)} tokens "
            f"({self._errors.error_count()} errors)"
        )
        return self._items, list(self._errors)

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        if self._pos >= len(self._tokens):
            last = self._tokens[-1] if self._tokens else None
            return Token(
                TokenType.EOF, None,
                last.line if last else 1,
                last.column if last else 1,
                last.filename if last else self._filename,
            )
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        """Consume and return current token (EOF is never consumed)."""
        token = self._current()
        if token.type is not TokenType.EOF:
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _error(self, error: AssemblerError) -> None:
        self._errors.add(error)

    def _fail(self, error: AssemblerError, location: SourceLocation) -> Item:
        """Record an error and return the INVALID item that takes its place."""
        self._error(error)
        return Item(ItemKind.INVALID, location)

    # =========================================================================
    # Item Parsing
    # =========================================================================

    def _parse_item(self, token: Token) -> Optional[Item]:
        """
        Turn one token (plus lookahead) into an item.

        Returns None only for a collapsed blank line; bad input yields an
        INVALID item after its error is recorded.
        """
        location = token.location
        kind = token.type

        if kind is TokenType.NEWLINE:
            # Collapse blank lines into one separator
            if not self._items or self._items[-1].kind is ItemKind.SEPARATOR:
                return None
            return Item(ItemKind.SEPARATOR, location)

        if kind is TokenType.COMMA:
            return Item(ItemKind.COMMA, location)

        if kind is TokenType.NUMBER:
            return Item.number(token.value, location)

        if kind is TokenType.STRING:
            return Item(ItemKind.STRING, location, text=token.value)

        if kind is TokenType.NAME:
            if self._check(TokenType.COLON):
                self._advance()
                return Item(ItemKind.LABEL, location, text=token.value)
            name_kind = classify_name(token.value)
            prefix = INDEX_PREFIXES.get(token.value) if name_kind is ItemKind.REGISTER16 else None
            return Item(name_kind, location, text=token.value, prefix=prefix)

        if kind is TokenType.POUND:
            if self._check(TokenType.NUMBER, TokenType.NAME):
                return self._parse_item(self._advance())
            return self._fail(AssemblySyntaxError(
                f"expected number after '#', got {describe_token(self._current())}",
                location,
            ), location)

        if kind is TokenType.LPAREN:
            item = self._parse_indirection(location)
            if item is None:
                return Item(ItemKind.INVALID, location)
            return item

        if kind is TokenType.UNKNOWN:
            return self._fail(
                LexicalError(f"unexpected character '{token.value}'", location), location
            )

        if kind is TokenType.ERROR:
            return self._fail(LexicalError(token.value, location), location)

        return self._fail(AssemblySyntaxError(
            f"unhandled token: {describe_token(token)}", location
        ), location)

    def _parse_indirection(self, location: SourceLocation) -> Optional[Item]:
        """
        Parse the inside of "( ... )" after the opening bracket.

        Returns None after reporting a malformed indirection.

        Forms:
            (nn)            INDIRECT_IMMEDIATE
            (label)         INDIRECT_IMMEDIATE referencing a symbol
            (BC) (DE) (HL) (SP) (IX) (IY)
                            INDIRECT_REGISTER16
            (C)             INDIRECT_C
            (IX+d) (IY-d)   INDIRECT_INDEXED
        """
        if self._check(TokenType.NEWLINE, TokenType.EOF):
            self._error(AssemblySyntaxError(
                "expected indirection register", self._current().location
            ))
            return None

        token = self._advance()
        item: Optional[Item] = None

        if token.type is TokenType.NUMBER:
            if token.value > 0xFFFF:
                self._error(ValueRangeError(token.value, "indirect address", token.location))
            else:
                item = Item.number(token.value, location, kind=ItemKind.INDIRECT_IMMEDIATE)

        elif token.type is TokenType.NAME:
            name = token.value
            if name in INDIRECT_REGISTERS:
                item = Item(ItemKind.INDIRECT_REGISTER16, location, text=name)
            elif name == "C":
                item = Item(ItemKind.INDIRECT_C, location, text=name)
            elif name in INDEX_PREFIXES:
                item = self._parse_index_displacement(name, location)
            elif classify_name(name) is ItemKind.NAME:
                item = Item(ItemKind.INDIRECT_IMMEDIATE, location, text=name)
            else:
                self._error(AssemblySyntaxError(
                    f"expected indirection register, got '{name}'", token.location
                ))

        else:
            self._error(AssemblySyntaxError(
                f"expected indirection register, got {describe_token(token)}",
                token.location,
            ))
            if token.type is TokenType.RPAREN:
                return None

        if item is None:
            self._skip_indirection()
            return None

        if not self._check(TokenType.RPAREN):
            self._error(AssemblySyntaxError(
                f"expected ')', got {describe_token(self._current())}",
                self._current().location,
            ))
            self._skip_indirection()
            return None

        self._advance()
        return item

    def _parse_index_displacement(self, register: str, location: SourceLocation) -> Optional[Item]:
        """
        Parse an optional "+d" / "-d" after IX or IY.

        Without a sign the operand is a plain (IX)/(IY) indirection.
        """
        if not self._check(TokenType.PLUS, TokenType.MINUS):
            return Item(
                ItemKind.INDIRECT_REGISTER16,
                location,
                text=register,
                prefix=INDEX_PREFIXES[register],
            )

        sign = self._advance()
        if not self._check(TokenType.NUMBER):
            self._error(AssemblySyntaxError(
                f"expected displacement in ({register}{'+' if sign.type is TokenType.PLUS else '-'}d), "
                f"got {describe_token(self._current())}",
                self._current().location,
            ))
            return None

        number = self._advance()
        displacement = number.value if sign.type is TokenType.PLUS else -number.value
        if not -128 <= displacement <= 127:
            self._error(ValueRangeError(
                displacement,
                "index displacement",
                number.location,
                hint="displacement must be within -128..127",
            ))
            return None

        return Item.indexed(register, displacement, location)

    def _skip_indirection(self) -> None:
        """Skip the rest of a malformed indirection, up to and including ')'."""
        while not self._check(TokenType.RPAREN, TokenType.NEWLINE, TokenType.EOF):
            self._advance()
        if self._check(TokenType.RPAREN):
            self._advance()


# =============================================================================
# Convenience Functions
# =============================================================================

def parse(tokens: list[Token], filename: str = "<input>") -> tuple[list[Item], list[AssemblerError]]:
    """
    Parse a token list into items.

    Returns:
        (items, errors)
    """
    return Parser(tokens, filename).parse()
