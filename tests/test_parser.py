# =============================================================================
# test_parser.py - Parser Unit Tests
# =============================================================================
# Tests for the Z80 assembler parser (tokens -> classified items).
#
# Test coverage includes:
#   - Classification of names (keywords, mnemonics, registers, conditions)
#   - Number items with precomputed byte split and range flags
#   - Indirections: (HL), (IX+d), (IY-d), (IX), (C), (nn), (label)
#   - Statement separators
#   - Error recovery: a malformed item is discarded, parsing continues
# =============================================================================

import pytest
from z80asm.assembler.lexer import tokenize
from z80asm.assembler.parser import Item, ItemKind, Parser, parse, classify_name
from z80asm.errors import (
    AssemblySyntaxError,
    LexicalError,
    SourceLocation,
    ValueRangeError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def parse_source(source: str):
    """Tokenize and parse source, returning (items, errors)."""
    return Parser(tokenize(source, "<test>"), "<test>").parse()


def parse_ok(source: str) -> list:
    """Parse source that must not produce errors."""
    items, errors = parse_source(source)
    assert errors == [], [str(e) for e in errors]
    return items


def kinds(source: str) -> list:
    return [item.kind for item in parse_ok(source)]


def single(source: str) -> Item:
    items = parse_ok(source)
    assert len(items) == 1
    return items[0]


LOC = SourceLocation("<test>", 1, 1)


# =============================================================================
# Name Classification
# =============================================================================

class TestNameClassification:
    """Test how bare names become items."""

    @pytest.mark.parametrize("name,kind", [
        ("ORG", ItemKind.KEYWORD),
        ("Z80", ItemKind.KEYWORD),
        ("M6502", ItemKind.KEYWORD),
        ("DB", ItemKind.KEYWORD),
        ("LD", ItemKind.MNEMONIC),
        ("JPNZ", ItemKind.MNEMONIC),
        ("IM1", ItemKind.MNEMONIC),
        ("LDIR", ItemKind.MNEMONIC),
        ("A", ItemKind.REGISTER8),
        ("C", ItemKind.REGISTER8),
        ("I", ItemKind.REGISTER_I),
        ("R", ItemKind.REGISTER_R),
        ("HL", ItemKind.REGISTER16),
        ("AF'", ItemKind.REGISTER16),
        ("NZ", ItemKind.CONDITION),
        ("PE", ItemKind.CONDITION),
        ("M", ItemKind.CONDITION),
        ("COUNTER", ItemKind.NAME),
    ])
    def test_classify(self, name, kind):
        assert classify_name(name) is kind

    def test_index_register_prefix(self):
        ix = single("IX")
        assert ix.kind is ItemKind.REGISTER16
        assert ix.prefix == 0xDD
        assert single("IY").prefix == 0xFD

    def test_plain_pair_has_no_prefix(self):
        assert single("HL").prefix is None

    def test_label(self):
        items = parse_ok("start: NOP")
        assert items[0].kind is ItemKind.LABEL
        assert items[0].text == "START"
        assert items[1].kind is ItemKind.MNEMONIC

    def test_label_named_like_register(self):
        """A name directly followed by ':' is always a label."""
        assert single("a:").kind is ItemKind.LABEL

    def test_instruction_items(self):
        assert kinds("LD A,B") == [
            ItemKind.MNEMONIC, ItemKind.REGISTER8, ItemKind.COMMA, ItemKind.REGISTER8
        ]

    def test_string(self):
        item = single('"Hi"')
        assert item.kind is ItemKind.STRING
        assert item.text == "Hi"


# =============================================================================
# Number Items
# =============================================================================

class TestNumberItems:
    """Number items carry their byte split and range flags."""

    def test_byte_split(self):
        item = single("$1234")
        assert item.kind is ItemKind.NUMBER
        assert item.value == 0x1234
        assert item.low == 0x34
        assert item.high == 0x12
        assert not item.fits8
        assert item.fits16

    def test_small_number(self):
        item = single("$12")
        assert item.fits8
        assert item.fits16
        assert item.high == 0

    def test_too_large(self):
        item = single("$10000")
        assert not item.fits8
        assert not item.fits16

    @pytest.mark.parametrize("value", [0, 1, 0xFF, 0x100, 0xABCD, 0xFFFF])
    def test_split_recombines(self, value):
        item = single(f"${value:X}")
        assert item.high * 256 + item.low == value

    def test_pound_prefix(self):
        item = single("#$12")
        assert item.kind is ItemKind.NUMBER
        assert item.value == 0x12

    def test_pound_before_name(self):
        item = single("#table")
        assert item.kind is ItemKind.NAME
        assert item.text == "TABLE"

    def test_items_are_immutable(self):
        item = single("$12")
        with pytest.raises(AttributeError):
            item.value = 3


# =============================================================================
# Indirections
# =============================================================================

class TestIndirection:
    """Test "( ... )" operand classification."""

    @pytest.mark.parametrize("register", ["BC", "DE", "HL", "SP"])
    def test_register_indirection(self, register):
        item = single(f"({register})")
        assert item.kind is ItemKind.INDIRECT_REGISTER16
        assert item.text == register

    def test_port_c(self):
        assert single("(C)").kind is ItemKind.INDIRECT_C

    def test_index_without_displacement(self):
        item = single("(IX)")
        assert item.kind is ItemKind.INDIRECT_REGISTER16
        assert item.text == "IX"
        assert item.prefix == 0xDD

    def test_positive_displacement(self):
        item = single("(IX+5)")
        assert item.kind is ItemKind.INDIRECT_INDEXED
        assert item.prefix == 0xDD
        assert item.value == 5
        assert item.low == 0x05

    def test_negative_displacement(self):
        item = single("(IY-1)")
        assert item.kind is ItemKind.INDIRECT_INDEXED
        assert item.prefix == 0xFD
        assert item.value == -1
        assert item.low == 0xFF

    @pytest.mark.parametrize("source,value", [("(IX+127)", 127), ("(IX-128)", -128)])
    def test_displacement_limits(self, source, value):
        assert single(source).value == value

    def test_immediate_address(self):
        item = single("($1234)")
        assert item.kind is ItemKind.INDIRECT_IMMEDIATE
        assert item.value == 0x1234
        assert item.low == 0x34
        assert item.high == 0x12

    def test_label_address(self):
        item = single("(buffer)")
        assert item.kind is ItemKind.INDIRECT_IMMEDIATE
        assert item.text == "BUFFER"

    def test_str(self):
        assert str(single("(IX+5)")) == "(IX+$5)"
        assert str(single("(IY-1)")) == "(IY-$1)"
        assert str(single("($1234)")) == "($1234)"
        assert str(single("(HL)")) == "(HL)"


# =============================================================================
# Separators
# =============================================================================

class TestSeparators:
    """Newlines become statement separators."""

    def test_separator_between_statements(self):
        assert kinds("NOP\nHALT") == [
            ItemKind.MNEMONIC, ItemKind.SEPARATOR, ItemKind.MNEMONIC
        ]

    def test_blank_lines_collapse(self):
        assert kinds("NOP\n\n; comment\n\nHALT") == [
            ItemKind.MNEMONIC, ItemKind.SEPARATOR, ItemKind.MNEMONIC
        ]

    def test_no_leading_separator(self):
        assert kinds("\n\nNOP") == [ItemKind.MNEMONIC]

    def test_item_lines(self):
        items = parse_ok("NOP\nHALT")
        assert items[0].line == 1
        assert items[2].line == 2


# =============================================================================
# Error Recovery
# =============================================================================

class TestErrors:
    """Malformed items are reported and discarded."""

    def test_unknown_character(self):
        items, errors = parse_source("NOP ?")
        assert [i.kind for i in items] == [ItemKind.MNEMONIC, ItemKind.INVALID]
        assert len(errors) == 1
        assert isinstance(errors[0], LexicalError)

    def test_malformed_number(self):
        items, errors = parse_source("LD A,$")
        assert isinstance(errors[0], LexicalError)
        assert "malformed hexadecimal literal" in errors[0].message

    def test_unhandled_token(self):
        items, errors = parse_source(": NOP")
        assert isinstance(errors[0], AssemblySyntaxError)
        assert "unhandled token" in errors[0].message
        assert [i.kind for i in items] == [ItemKind.INVALID, ItemKind.MNEMONIC]

    def test_bad_indirection_register(self):
        items, errors = parse_source("LD A,(A)")
        assert [i.kind for i in items] == [
            ItemKind.MNEMONIC, ItemKind.REGISTER8, ItemKind.COMMA, ItemKind.INVALID
        ]
        assert len(errors) == 1
        assert "expected indirection register" in errors[0].message

    def test_empty_indirection(self):
        items, errors = parse_source("()")
        assert items == [Item(ItemKind.INVALID, LOC)]
        assert len(errors) == 1

    def test_missing_close_bracket(self):
        items, errors = parse_source("LD A,(HL\nNOP")
        assert len(errors) == 1
        assert "expected ')'" in errors[0].message
        # The newline survives, so the next statement is intact
        assert [i.kind for i in items] == [
            ItemKind.MNEMONIC, ItemKind.REGISTER8, ItemKind.COMMA, ItemKind.INVALID,
            ItemKind.SEPARATOR, ItemKind.MNEMONIC,
        ]

    def test_address_out_of_range(self):
        items, errors = parse_source("($10000)")
        assert items == [Item(ItemKind.INVALID, LOC)]
        assert isinstance(errors[0], ValueRangeError)

    def test_displacement_out_of_range(self):
        items, errors = parse_source("(IX+128)\nNOP")
        assert isinstance(errors[0], ValueRangeError)
        assert errors[0].value == 128
        assert [i.kind for i in items] == [
            ItemKind.INVALID, ItemKind.SEPARATOR, ItemKind.MNEMONIC
        ]

    def test_negative_displacement_out_of_range(self):
        _, errors = parse_source("(IY-129)")
        assert errors[0].value == -129
        assert "-$81" in errors[0].message

    def test_displacement_must_be_number(self):
        items, errors = parse_source("(IX+A)")
        assert items == [Item(ItemKind.INVALID, LOC)]
        assert len(errors) == 1

    def test_pound_without_number(self):
        _, errors = parse_source("LD A,#")
        assert "expected number after '#'" in errors[0].message

    def test_errors_do_not_stop_parsing(self):
        items, errors = parse_source("(A)\n?\nNOP")
        assert len(errors) == 2
        assert [e.line for e in errors] == [1, 2]
        assert items[-1].kind is ItemKind.MNEMONIC

    def test_error_location(self):
        _, errors = parse_source("NOP\n  ?")
        assert str(errors[0].location) == "<test>:2:3"


class TestParseFunction:
    """Test the module-level convenience function."""

    def test_parse(self):
        items, errors = parse(tokenize("LD A,1"))
        assert errors == []
        assert len(items) == 4

    def test_parse_empty_token_list(self):
        assert parse([]) == ([], [])

    def test_number_factory(self):
        item = Item.number(0x1234, LOC)
        assert (item.low, item.high, item.fits8, item.fits16) == (0x34, 0x12, False, True)
