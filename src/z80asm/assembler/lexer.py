"""
Z80 Assembly Language Lexer
===========================

This module implements a lexer (tokenizer) for Z80 assembly language.
It converts source text into a flat stream of tokens that the parser can
process. The lexer is pure: tokenizing the same text twice yields the
same token sequence.

Token Types
-----------
- NAME: Mnemonics, registers, directives, labels (folded to uppercase)
- NUMBER: Decimal, hex ($FF), binary (%1010)
- STRING: Double-quoted strings ("hello")
- Delimiters: , : + - # ( )
- NEWLINE: End of line (statement separator)
- EOF: End of input
- UNKNOWN: A character that starts no token
- ERROR: A malformed literal; the value holds the diagnostic text

The lexer never raises on bad input. Malformed input becomes UNKNOWN or
ERROR tokens which the parser turns into diagnostics, so the token
stream always reaches EOF.

Number Formats
--------------
| Format      | Prefix   | Example  | Value |
|-------------|----------|----------|-------|
| Decimal     | (none)   | 123      | 123   |
| Hexadecimal | $        | $7F      | 127   |
| Binary      | %        | %1010    | 10    |

Example
-------
>>> from z80asm.assembler.lexer import Lexer
>>> for token in Lexer("start: LD A,$41 ; load 'A'").tokenize():
...     print(token)
Token(NAME, 'START', 1:1)
Token(COLON, 1:6)
Token(NAME, 'LD', 1:8)
Token(NAME, 'A', 1:11)
Token(COMMA, 1:12)
Token(NUMBER, $41, 1:13)
Token(EOF, 1:27)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from z80asm.errors import SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Lexical classes of Z80 assembly source."""

    # Structural tokens
    NEWLINE = auto()    # End of line (statement separator)
    EOF = auto()        # End of input

    # Values
    NAME = auto()       # Mnemonics, registers, directives, symbols
    NUMBER = auto()     # Numeric literals (all formats)
    STRING = auto()     # Double-quoted string "..."

    # Delimiters
    COMMA = auto()      # ,
    COLON = auto()      # :
    PLUS = auto()       # +
    MINUS = auto()      # -
    POUND = auto()      # # (optional immediate marker)
    LPAREN = auto()     # (
    RPAREN = auto()     # )

    # Lexical errors
    UNKNOWN = auto()    # Unrecognized character
    ERROR = auto()      # Malformed literal


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from the source code.

    Attributes:
        type: The TokenType classification
        value: Name/string text, number value, or diagnostic text for ERROR
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | None
    line: int
    column: int
    filename: str = "<input>"

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, ${self.value:X}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes Z80 assembly source code.

    Every call to tokenize() starts from the beginning of the source, so a
    Lexer can be re-run and always produces the same tokens.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())
    """

    # Characters that can start a name
    NAME_START = string.ascii_letters + "_"

    # Characters that can continue a name
    NAME_CHARS = string.ascii_letters + string.digits + "_"

    # Characters skipped between tokens
    WHITESPACE = " \t\r"

    SINGLE_CHAR_TOKENS = {
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "#": TokenType.POUND,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
    }

    BINARY_DIGITS = "01"

    def __init__(self, source: str, filename: str = "<input>", line_number: int = 1):
        """
        Initialize the lexer with source code.

        Args:
            source: The assembly source code to tokenize
            filename: Name of the source file (for error messages)
            line_number: Starting line number (default 1)
        """
        self.source = source
        self.filename = filename
        self._first_line = line_number
        self._reset()

    def _reset(self) -> None:
        self._pos = 0
        self._line = self._first_line
        self._column = 1

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Every loop iteration consumes at least one character, so the
        generator terminates on any input.

        Yields:
            Token objects, always ending with one EOF token
        """
        self._reset()
        while not self._at_end():
            if self._skip_whitespace():
                continue

            if self._skip_comment():
                continue

            yield self._scan_token()

        yield self._make_token(TokenType.EOF, None)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """
        Look at character at current position + offset without advancing.

        Returns empty string if past end of source.
        """
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
        else:
            self._column += 1

        return char

    def _take_while(self, chars: str) -> str:
        """Consume the longest run of characters from the given set."""
        taken = []
        # '' in chars is True, so check for a character first
        while self._peek() and self._peek() in chars:
            taken.append(self._advance())
        return "".join(taken)

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | None,
        start_line: Optional[int] = None,
        start_column: Optional[int] = None,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=start_line or self._line,
            column=start_column or self._column,
            filename=self.filename,
        )

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace(self) -> bool:
        """Skip spaces, tabs and carriage returns (not newlines)."""
        return bool(self._take_while(self.WHITESPACE))

    def _skip_comment(self) -> bool:
        """Skip a semicolon comment up to (not including) the newline."""
        if self._peek() != ";":
            return False
        while not self._at_end() and self._peek() != "\n":
            self._advance()
        return True

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        """Scan the next token; always consumes at least one character."""
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char == "\n":
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start_line, start_column)

        if char in self.NAME_START:
            return self._scan_name(start_line, start_column)

        # ASCII only: _scan_number must consume the first digit
        if char in string.digits:
            return self._scan_number(
                "", string.digits, 10, "decimal", start_line, start_column
            )

        if char == "$":
            self._advance()
            return self._scan_number(
                "$", string.hexdigits, 16, "hexadecimal", start_line, start_column
            )

        if char == "%":
            self._advance()
            return self._scan_number(
                "%", self.BINARY_DIGITS, 2, "binary", start_line, start_column
            )

        if char == '"':
            return self._scan_string(start_line, start_column)

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(
                self.SINGLE_CHAR_TOKENS[char], None, start_line, start_column
            )

        self._advance()
        return self._make_token(TokenType.UNKNOWN, char, start_line, start_column)

    def _scan_name(self, start_line: int, start_column: int) -> Token:
        """
        Scan a name, folded to uppercase.

        The shadow register pair is written AF' and scans as one name.
        """
        name = self._take_while(self.NAME_CHARS).upper()
        if name == "AF" and self._peek() == "'":
            name += self._advance()
        return self._make_token(TokenType.NAME, name, start_line, start_column)

    def _scan_number(
        self,
        prefix: str,
        digits: str,
        base: int,
        base_name: str,
        start_line: int,
        start_column: int,
    ) -> Token:
        """
        Scan the digits of a numeric literal after its prefix.

        A literal without digits, or one running straight into letters
        ("12AB", "%102"), becomes an ERROR token instead of a number.
        """
        body = self._take_while(digits)
        tail = self._take_while(self.NAME_CHARS)

        if not body or tail:
            literal = prefix + body + tail
            return self._make_token(
                TokenType.ERROR,
                f"malformed {base_name} literal '{literal}'",
                start_line,
                start_column,
            )

        return self._make_token(TokenType.NUMBER, int(body, base), start_line, start_column)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        """
        Scan a double-quoted string literal.

        A backslash makes the next character literal (so \\" does not end
        the string); no other escape decoding is done.
        """
        self._advance()  # consume opening "

        chars = []
        while not self._at_end() and self._peek() != "\n":
            char = self._advance()
            if char == '"':
                return self._make_token(
                    TokenType.STRING, "".join(chars), start_line, start_column
                )
            if char == "\\":
                if self._at_end() or self._peek() == "\n":
                    break
                char = self._advance()
            chars.append(char)

        return self._make_token(
            TokenType.ERROR, "unterminated string literal", start_line, start_column
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """
    Tokenize source text into a list of tokens ending with EOF.

    Args:
        source: Assembly source code
        filename: Name used in token locations
    """
    return list(Lexer(source, filename).tokenize())
