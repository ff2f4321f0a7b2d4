"""
Z80 Instruction Encoder
=======================

This module turns the parser's item stream into address-tagged byte
ranges. It implements a two-pass assembly process:

Pass 1 (Symbol Collection)
--------------------------
- Walk every statement and encode it with unknown labels read as 0
- Advance the address counter by each statement's size
- Bind every label to the address counter at its definition

Pass 2 (Code Generation)
------------------------
- Encode every statement again with the complete symbol table
- Resolve absolute jump/call targets and JR/DJNZ displacements
- Collect diagnostics and produce the final ByteRange list

Z80 instruction sizes never depend on operand values, so the addresses
computed in pass 1 are final. Range checks on values are only enforced
in pass 2, where every symbol is known.

Statement Handling
------------------
| Statement      | Effect                                             |
|----------------|----------------------------------------------------|
| label:         | binds label to the current address                 |
| ORG n          | sets the address counter                           |
| Z80 / M6502    | switches the CPU mode                              |
| DB, DW, ...    | recognized, reported as not implemented            |
| mnemonic ops   | one ByteRange at the current address               |

A statement that fails to encode is reported, its ByteRange is marked
discarded, and the address counter stays where it was. Encoding resumes
with the next statement. A statement holding an INVALID item from the
parser is dropped the same way, without a second diagnostic.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from z80asm.errors import (
    AddressingModeError,
    AssemblerError,
    AssemblySyntaxError,
    DirectiveError,
    ErrorCollector,
    RegisterRestrictionError,
    SourceLocation,
    UnsupportedCpuError,
    ValueRangeError,
)
from z80asm.assembler.parser import Item, ItemKind, OPERAND_KINDS
from z80asm.assembler.symbols import SymbolTable
from z80asm.cpu import (
    CpuMode,
    PREFIX_CB,
    PREFIX_ED,
    INDEX_PREFIXES,
    CPU_KEYWORDS,
    REGISTER_CODES,
    MEMORY_FIELD,
    PAIR_CODES,
    STACK_PAIR_CODES,
    CONDITION_CODES,
    RELATIVE_CONDITION_OPCODES,
    ALU_OPS,
    ROTATE_OPS,
    BIT_OPS,
    INTERRUPT_MODES,
    RESTART_TARGETS,
    FIXED_OPCODES,
    FUSED_CONDITIONALS,
    FUSED_INTERRUPT_MODES,
    MNEMONICS,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Output and State
# =============================================================================

@dataclass
class ByteRange:
    """
    Bytes produced by one statement.

    Attributes:
        address: Address counter value before the bytes were appended
        data: The encoded bytes
        location: Source location of the statement
        label: Label attached to this range (the last one defined before it)
        ready: True once the range has been accepted into the output
        discard: True if the statement failed to encode
    """
    address: int
    data: bytes = b""
    location: Optional[SourceLocation] = None
    label: Optional[str] = None
    ready: bool = False
    discard: bool = False

    @property
    def line(self) -> int:
        return self.location.line if self.location else 0

    @property
    def end(self) -> int:
        """Address just past the last byte."""
        return self.address + len(self.data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class AssemblerState:
    """
    Mutable state of one assembly run.

    Attributes:
        address: Address counter (16-bit, wraps at $10000)
        cpu: Active CPU mode
        symbols: Label bindings
    """
    address: int = 0
    cpu: CpuMode = CpuMode.Z80
    symbols: SymbolTable = field(default_factory=SymbolTable)


# =============================================================================
# Encoder
# =============================================================================

class Encoder:
    """
    Encodes parsed items into ByteRanges.

    An Encoder drives exactly one AssemblerState; create a new state (and
    encoder) for every run.

    Usage:
        encoder = Encoder(AssemblerState(address=0x8000))
        ranges, errors = encoder.assemble(items)
    """

    # Mnemonic -> encoding method. Checked against MNEMONICS at import.
    _HANDLERS: dict[str, str] = {
        "LD": "_encode_ld",
        "PUSH": "_encode_push_pop",
        "POP": "_encode_push_pop",
        "EX": "_encode_ex",
        "INC": "_encode_inc_dec",
        "DEC": "_encode_inc_dec",
        "JP": "_encode_jp",
        "JR": "_encode_jr",
        "DJNZ": "_encode_djnz",
        "CALL": "_encode_call",
        "RET": "_encode_ret",
        "RST": "_encode_rst",
        "IM": "_encode_im",
        "IN": "_encode_in",
        "OUT": "_encode_out",
        **{name: "_encode_alu" for name in ALU_OPS},
        **{name: "_encode_rotate" for name in ROTATE_OPS},
        **{name: "_encode_bit" for name in BIT_OPS},
        **{name: "_encode_fixed" for name in FIXED_OPCODES},
        **{name: "_encode_fused_conditional" for name in FUSED_CONDITIONALS},
        **{name: "_encode_fused_im" for name in FUSED_INTERRUPT_MODES},
    }

    def __init__(self, state: Optional[AssemblerState] = None):
        self.state = state if state is not None else AssemblerState()
        self._items: list[Item] = []
        self._pos = 0
        self._final = False
        self._errors = ErrorCollector()

    def assemble(self, items: list[Item]) -> tuple[list[ByteRange], list[AssemblerError]]:
        """
        Encode all items.

        Args:
            items: Parser output

        Returns:
            (ranges, errors): accepted ByteRanges in statement order and
            the encoding diagnostics in source order
        """
        origin = self.state.address
        cpu = self.state.cpu
        self._items = list(items)
        self._errors = ErrorCollector()

        self._run_pass(final=False)
        logger.debug(f"Pass 1 complete: {len(self.state.symbols)} symbols bound")

        self.state.address = origin
        self.state.cpu = cpu
        ranges = self._run_pass(final=True)
        logger.debug(
            f"Pass 2 complete: {len(ranges)} ranges, "
            f"{self._errors.error_count()} errors"
        )

        return ranges, list(self._errors)

    # =========================================================================
    # Statement Loop
    # =========================================================================

    def _run_pass(self, final: bool) -> list[ByteRange]:
        """Walk all statements once."""
        self._final = final
        self._pos = 0
        ranges: list[ByteRange] = []
        label: Optional[str] = None

        while self._pos < len(self._items):
            item = self._next()

            if item.kind is ItemKind.SEPARATOR:
                continue

            if item.kind is not ItemKind.LABEL and self._holds_invalid_item():
                # The parser has already reported it
                self._skip_statement()
                continue

            if item.kind is ItemKind.LABEL:
                try:
                    self._bind_label(item)
                except AssemblerError as e:
                    self._report(e)
                label = item.text
                continue

            if item.kind is ItemKind.MNEMONIC:
                byte_range = ByteRange(
                    address=self.state.address,
                    location=item.location,
                    label=label,
                )
                try:
                    byte_range.data = self._encode_statement(item)
                except AssemblerError as e:
                    byte_range.discard = True
                    self._report(e)
                    self._skip_statement()
                    continue
                self._accept(byte_range)
                ranges.append(byte_range)
                label = None
                continue

            try:
                if item.kind is ItemKind.KEYWORD:
                    self._directive(item)
                    if item.text == "ORG":
                        label = None
                elif item.kind is ItemKind.NAME:
                    raise AssemblySyntaxError(f"unknown mnemonic '{item.text}'", item.location)
                else:
                    raise AssemblySyntaxError(
                        f"unexpected {item} at start of statement", item.location
                    )
            except AssemblerError as e:
                self._report(e)
                self._skip_statement()

        return ranges

    def _report(self, error: AssemblerError) -> None:
        # Pass 1 runs with an incomplete symbol table, so only pass 2 reports
        if self._final:
            self._errors.add(error)

    def _accept(self, byte_range: ByteRange) -> None:
        """Mark a range as emitted and advance the address counter."""
        byte_range.ready = True
        end = self.state.address + len(byte_range.data)
        if end > 0xFFFF and self._final:
            logger.warning(
                f"line {byte_range.line}: address counter wrapped past $FFFF"
            )
        self.state.address = end & 0xFFFF

    def _bind_label(self, item: Item) -> None:
        if self._final:
            self.state.symbols.verify(item.text, item.location)
        else:
            self.state.symbols.define(item.text, self.state.address, item.location)

    # =========================================================================
    # Item Navigation
    # =========================================================================

    def _peek(self) -> Optional[Item]:
        if self._pos < len(self._items):
            return self._items[self._pos]
        return None

    def _next(self) -> Item:
        item = self._items[self._pos]
        self._pos += 1
        return item

    def _at_statement_end(self) -> bool:
        item = self._peek()
        return item is None or item.kind is ItemKind.SEPARATOR

    def _holds_invalid_item(self) -> bool:
        """True if the statement starting at the last item read holds an INVALID item."""
        for item in self._items[self._pos - 1:]:
            if item.kind is ItemKind.SEPARATOR:
                return False
            if item.kind is ItemKind.INVALID:
                return True
        return False

    def _skip_statement(self) -> None:
        """Skip the rest of the current statement, including its separator."""
        while self._pos < len(self._items):
            if self._next().kind is ItemKind.SEPARATOR:
                break

    def _expect_statement_end(self, statement: Item) -> None:
        if not self._at_statement_end():
            extra = self._peek()
            raise AssemblySyntaxError(
                f"unexpected {extra} after {statement.text}", extra.location
            )

    def _read_operands(self, mnemonic: Item) -> list[Item]:
        """
        Read the comma-separated operands of an instruction.

        Stops before the statement separator.
        """
        operands: list[Item] = []
        while not self._at_statement_end():
            if operands:
                comma = self._next()
                if comma.kind is not ItemKind.COMMA:
                    raise AssemblySyntaxError(
                        f"expected ',' between operands, got {comma}", comma.location
                    )
                if self._at_statement_end():
                    raise AssemblySyntaxError("expected operand after ','", comma.location)

            operand = self._next()
            if operand.kind not in OPERAND_KINDS:
                raise AssemblySyntaxError(
                    f"unexpected {operand} in operands of {mnemonic.text}",
                    operand.location,
                )
            operands.append(operand)
        return operands

    # =========================================================================
    # Directives
    # =========================================================================

    def _directive(self, item: Item) -> None:
        """Process ORG, CPU mode keywords and unimplemented directives."""
        name = item.text

        if name == "ORG":
            operand = self._peek()
            if operand is None or operand.kind is not ItemKind.NUMBER:
                raise DirectiveError("ORG requires a numeric address", item.location)
            self._next()
            if not operand.fits16:
                raise ValueRangeError(operand.value, "ORG address", operand.location)
            self._expect_statement_end(item)
            self.state.address = operand.value
            if self._final:
                logger.debug(f"line {item.line}: ORG ${operand.value:04X}")
            return

        if name in CPU_KEYWORDS:
            self._expect_statement_end(item)
            self.state.cpu = CPU_KEYWORDS[name]
            return

        raise DirectiveError(f"{name} directive is not implemented", item.location)

    # =========================================================================
    # Instruction Dispatch
    # =========================================================================

    def _encode_statement(self, mnemonic: Item) -> bytes:
        operands = self._read_operands(mnemonic)
        if self.state.cpu is not CpuMode.Z80:
            raise UnsupportedCpuError(
                f"cannot encode {mnemonic.text}: no instruction encoder for {self.state.cpu}",
                mnemonic.location,
            )
        handler = getattr(self, self._HANDLERS[mnemonic.text])
        return bytes(handler(mnemonic.text, operands, mnemonic.location))

    # =========================================================================
    # Operand Helpers
    # =========================================================================

    def _invalid(
        self,
        mnemonic: str,
        operands: list[Item],
        location: SourceLocation,
        hint: Optional[str] = None,
    ) -> AddressingModeError:
        return AddressingModeError(
            mnemonic, ",".join(str(op) for op in operands), location, hint=hint
        )

    def _restricted(
        self,
        mnemonic: str,
        operands: list[Item],
        operand: Item,
        location: SourceLocation,
    ) -> RegisterRestrictionError:
        return RegisterRestrictionError(
            mnemonic, ",".join(str(op) for op in operands), str(operand), location
        )

    def _operands(
        self,
        mnemonic: str,
        operands: list[Item],
        count: int,
        location: SourceLocation,
    ) -> list[Item]:
        """Return operands if there are exactly count of them."""
        if len(operands) != count:
            if count == 0:
                hint = f"{mnemonic} takes no operands"
            elif count == 1:
                hint = f"{mnemonic} takes one operand"
            else:
                hint = f"{mnemonic} takes {count} operands"
            raise self._invalid(mnemonic, operands, location, hint=hint)
        return operands

    @staticmethod
    def _is_immediate(operand: Item) -> bool:
        return operand.kind in (ItemKind.NUMBER, ItemKind.NAME)

    @staticmethod
    def _register(operand: Item) -> int:
        # A missing name here is a table bug, not a user error
        return REGISTER_CODES[operand.text]

    @staticmethod
    def _condition(operand: Item) -> Optional[str]:
        """Condition name of an operand; the register C doubles as carry."""
        if operand.kind is ItemKind.CONDITION:
            return operand.text
        if operand.kind is ItemKind.REGISTER8 and operand.text == "C":
            return "C"
        return None

    @staticmethod
    def _memory(operand: Item) -> Optional[tuple[list[int], list[int]]]:
        """
        Split an 8-bit memory operand into (prefix bytes, displacement bytes).

        (HL) has neither, (IX+d)/(IY+d) have both and (IX)/(IY) are read
        as a zero displacement. Returns None for any other operand.
        """
        if operand.kind is ItemKind.INDIRECT_INDEXED:
            return [operand.prefix], [operand.low]
        if operand.kind is ItemKind.INDIRECT_REGISTER16:
            if operand.text == "HL":
                return [], []
            if operand.text in INDEX_PREFIXES:
                return [INDEX_PREFIXES[operand.text]], [0]
        return None

    def _value(self, operand: Item) -> int:
        """Value of a number, a label name or an (address) operand."""
        if operand.text is not None and operand.kind in (
            ItemKind.NAME, ItemKind.INDIRECT_IMMEDIATE
        ):
            return self.state.symbols.lookup(
                operand.text, operand.location, allow_undefined=not self._final
            )
        return operand.value

    def _check_range(
        self,
        value: int,
        low: int,
        high: int,
        what: str,
        operand: Item,
        hint: Optional[str] = None,
    ) -> None:
        if self._final and not low <= value <= high:
            raise ValueRangeError(value, what, operand.location, hint=hint)

    def _byte(self, operand: Item, what: str = "8-bit value") -> list[int]:
        value = self._value(operand)
        self._check_range(value, 0, 0xFF, what, operand)
        return [value & 0xFF]

    def _word(self, operand: Item, what: str = "16-bit value") -> list[int]:
        value = self._value(operand)
        self._check_range(value, 0, 0xFFFF, what, operand)
        return [value & 0xFF, (value >> 8) & 0xFF]

    def _relative(self, operand: Item) -> list[int]:
        """
        Displacement byte for JR/DJNZ.

        The offset is measured from the byte after the two-byte
        instruction, as the CPU does.
        """
        target = self._value(operand)
        self._check_range(target, 0, 0xFFFF, "jump target", operand)
        offset = ((target - (self.state.address + 2) + 0x8000) & 0xFFFF) - 0x8000
        self._check_range(
            offset, -128, 127, "relative jump offset", operand,
            hint=f"target ${target & 0xFFFF:04X} is out of reach; use JP",
        )
        return [offset & 0xFF]

    # =========================================================================
    # Fixed Instructions
    # =========================================================================

    def _encode_fixed(self, mnemonic, operands, location):
        self._operands(mnemonic, operands, 0, location)
        return FIXED_OPCODES[mnemonic]

    # =========================================================================
    # Load Group
    # =========================================================================

    @staticmethod
    def _is_accumulator_operand(operand: Item) -> bool:
        """Operands that can only be transferred to or from A."""
        if operand.kind is ItemKind.INDIRECT_REGISTER16:
            return operand.text in ("BC", "DE")
        return operand.kind in (
            ItemKind.INDIRECT_IMMEDIATE,
            ItemKind.REGISTER_I,
            ItemKind.REGISTER_R,
        )

    def _accumulator_transfer(self, operand: Item, load: bool) -> list[int]:
        """LD A,x (load) or LD x,A (store) for an accumulator-only operand."""
        if operand.kind is ItemKind.INDIRECT_REGISTER16:
            opcode = 0x02 if operand.text == "BC" else 0x12
            return [opcode | 0x08 if load else opcode]
        if operand.kind is ItemKind.INDIRECT_IMMEDIATE:
            return [0x3A if load else 0x32] + self._word(operand, "address")
        if operand.kind is ItemKind.REGISTER_I:
            return [PREFIX_ED, 0x57 if load else 0x47]
        return [PREFIX_ED, 0x5F if load else 0x4F]

    def _pair_transfer(self, register: Item, address: Item, load: bool) -> Optional[list[int]]:
        """LD rr,(nn) (load) or LD (nn),rr (store); None for AF/AF'."""
        name = register.text
        if name == "HL":
            return [0x2A if load else 0x22] + self._word(address, "address")
        if name in INDEX_PREFIXES:
            return [INDEX_PREFIXES[name], 0x2A if load else 0x22] + self._word(address, "address")
        if name in PAIR_CODES:
            opcode = (0x4B if load else 0x43) | PAIR_CODES[name] << 4
            return [PREFIX_ED, opcode] + self._word(address, "address")
        return None

    def _encode_ld(self, mnemonic, operands, location):
        dst, src = self._operands(mnemonic, operands, 2, location)

        if dst.kind is ItemKind.REGISTER8:
            code = self._register(dst)
            if src.kind is ItemKind.REGISTER8:
                return [0x40 | code << 3 | self._register(src)]
            if self._is_immediate(src):
                return [0x06 | code << 3] + self._byte(src)
            memory = self._memory(src)
            if memory is not None:
                prefix, displacement = memory
                return prefix + [0x46 | code << 3] + displacement
            if self._is_accumulator_operand(src):
                if dst.text != "A":
                    raise self._restricted(mnemonic, operands, src, location)
                return self._accumulator_transfer(src, load=True)
            raise self._invalid(mnemonic, operands, location)

        memory = self._memory(dst)
        if memory is not None:
            prefix, displacement = memory
            if src.kind is ItemKind.REGISTER8:
                return prefix + [0x70 | self._register(src)] + displacement
            if self._is_immediate(src):
                return prefix + [0x36] + displacement + self._byte(src)
            raise self._invalid(mnemonic, operands, location)

        if self._is_accumulator_operand(dst):
            if src.kind is ItemKind.REGISTER8:
                if src.text != "A":
                    raise self._restricted(mnemonic, operands, dst, location)
                return self._accumulator_transfer(dst, load=False)
            if dst.kind is ItemKind.INDIRECT_IMMEDIATE and src.kind is ItemKind.REGISTER16:
                encoded = self._pair_transfer(src, dst, load=False)
                if encoded is not None:
                    return encoded
            raise self._invalid(mnemonic, operands, location)

        if dst.kind is ItemKind.REGISTER16:
            return self._encode_ld16(mnemonic, operands, location)

        raise self._invalid(mnemonic, operands, location)

    def _encode_ld16(self, mnemonic, operands, location):
        """16-bit loads: LD rr,nn / LD rr,(nn) / LD SP,HL|IX|IY."""
        dst, src = operands
        name = dst.text

        if self._is_immediate(src):
            if name in PAIR_CODES:
                return [0x01 | PAIR_CODES[name] << 4] + self._word(src)
            if name in INDEX_PREFIXES:
                return [INDEX_PREFIXES[name], 0x21] + self._word(src)

        elif src.kind is ItemKind.INDIRECT_IMMEDIATE:
            encoded = self._pair_transfer(dst, src, load=True)
            if encoded is not None:
                return encoded

        elif name == "SP" and src.kind is ItemKind.REGISTER16:
            if src.text == "HL":
                return [0xF9]
            if src.text in INDEX_PREFIXES:
                return [INDEX_PREFIXES[src.text], 0xF9]

        raise self._invalid(mnemonic, operands, location)

    # =========================================================================
    # Stack and Exchange
    # =========================================================================

    def _encode_push_pop(self, mnemonic, operands, location):
        (operand,) = self._operands(mnemonic, operands, 1, location)
        opcode = 0xC5 if mnemonic == "PUSH" else 0xC1
        if operand.kind is ItemKind.REGISTER16:
            if operand.text in STACK_PAIR_CODES:
                return [opcode | STACK_PAIR_CODES[operand.text] << 4]
            if operand.text in INDEX_PREFIXES:
                return [INDEX_PREFIXES[operand.text], opcode | 0x20]
        raise self._invalid(mnemonic, operands, location)

    def _encode_ex(self, mnemonic, operands, location):
        first, second = self._operands(mnemonic, operands, 2, location)
        if first.kind is ItemKind.REGISTER16 and second.kind is ItemKind.REGISTER16:
            if (first.text, second.text) == ("DE", "HL"):
                return [0xEB]
            if (first.text, second.text) == ("AF", "AF'"):
                return [0x08]
        if (
            first.kind is ItemKind.INDIRECT_REGISTER16
            and first.text == "SP"
            and second.kind is ItemKind.REGISTER16
        ):
            if second.text == "HL":
                return [0xE3]
            if second.text in INDEX_PREFIXES:
                return [INDEX_PREFIXES[second.text], 0xE3]
        raise self._invalid(mnemonic, operands, location)

    # =========================================================================
    # Arithmetic Group
    # =========================================================================

    def _encode_alu(self, mnemonic, operands, location):
        """
        8-bit ALU operations, written either "OP src" or "OP A,src".

        ADD/ADC/SBC with a 16-bit destination are handled by
        _encode_alu16.
        """
        operation = ALU_OPS[mnemonic] << 3

        if len(operands) == 2:
            dst, src = operands
            if dst.kind is ItemKind.REGISTER16:
                return self._encode_alu16(mnemonic, operands, location)
            if dst.kind is not ItemKind.REGISTER8 or dst.text != "A":
                raise self._invalid(
                    mnemonic, operands, location,
                    hint=f"the destination of {mnemonic} must be A",
                )
        else:
            (src,) = self._operands(mnemonic, operands, 1, location)

        if src.kind is ItemKind.REGISTER8:
            return [0x80 | operation | self._register(src)]
        if self._is_immediate(src):
            return [0xC6 | operation] + self._byte(src)
        memory = self._memory(src)
        if memory is not None:
            prefix, displacement = memory
            return prefix + [0x86 | operation] + displacement
        raise self._invalid(mnemonic, operands, location)

    def _encode_alu16(self, mnemonic, operands, location):
        dst, src = operands
        if src.kind is ItemKind.REGISTER16:
            if dst.text == "HL" and src.text in PAIR_CODES:
                pair = PAIR_CODES[src.text] << 4
                if mnemonic == "ADD":
                    return [0x09 | pair]
                if mnemonic == "ADC":
                    return [PREFIX_ED, 0x4A | pair]
                if mnemonic == "SBC":
                    return [PREFIX_ED, 0x42 | pair]
            elif dst.text in INDEX_PREFIXES and mnemonic == "ADD":
                # The index register itself takes the HL slot
                pairs = {"BC": 0b00, "DE": 0b01, dst.text: 0b10, "SP": 0b11}
                if src.text in pairs:
                    return [INDEX_PREFIXES[dst.text], 0x09 | pairs[src.text] << 4]
        raise self._invalid(mnemonic, operands, location)

    def _encode_inc_dec(self, mnemonic, operands, location):
        (operand,) = self._operands(mnemonic, operands, 1, location)
        decrement = 1 if mnemonic == "DEC" else 0

        if operand.kind is ItemKind.REGISTER8:
            return [0x04 | self._register(operand) << 3 | decrement]
        memory = self._memory(operand)
        if memory is not None:
            prefix, displacement = memory
            return prefix + [0x34 | decrement] + displacement
        if operand.kind is ItemKind.REGISTER16:
            if operand.text in PAIR_CODES:
                return [0x03 | PAIR_CODES[operand.text] << 4 | decrement << 3]
            if operand.text in INDEX_PREFIXES:
                return [INDEX_PREFIXES[operand.text], 0x23 | decrement << 3]
        raise self._invalid(mnemonic, operands, location)

    # =========================================================================
    # Jumps, Calls and Returns
    # =========================================================================

    def _encode_jp(self, mnemonic, operands, location):
        if len(operands) == 1:
            (target,) = operands
            if self._is_immediate(target):
                return [0xC3] + self._word(target, "jump target")
            if target.kind is ItemKind.INDIRECT_REGISTER16:
                if target.text == "HL":
                    return [0xE9]
                if target.text in INDEX_PREFIXES:
                    return [INDEX_PREFIXES[target.text], 0xE9]
            raise self._invalid(mnemonic, operands, location)

        condition, target = self._operands(mnemonic, operands, 2, location)
        cc = self._condition(condition)
        if cc is None or not self._is_immediate(target):
            raise self._invalid(mnemonic, operands, location)
        return [0xC2 | CONDITION_CODES[cc] << 3] + self._word(target, "jump target")

    def _encode_call(self, mnemonic, operands, location):
        if len(operands) == 1:
            if self._is_immediate(operands[0]):
                return [0xCD] + self._word(operands[0], "call target")
            raise self._invalid(mnemonic, operands, location)

        condition, target = self._operands(mnemonic, operands, 2, location)
        cc = self._condition(condition)
        if cc is None or not self._is_immediate(target):
            raise self._invalid(mnemonic, operands, location)
        return [0xC4 | CONDITION_CODES[cc] << 3] + self._word(target, "call target")

    def _encode_ret(self, mnemonic, operands, location):
        if not operands:
            return [0xC9]
        (condition,) = self._operands(mnemonic, operands, 1, location)
        cc = self._condition(condition)
        if cc is None:
            raise self._invalid(mnemonic, operands, location)
        return [0xC0 | CONDITION_CODES[cc] << 3]

    def _encode_jr(self, mnemonic, operands, location):
        if len(operands) == 1:
            if self._is_immediate(operands[0]):
                return [0x18] + self._relative(operands[0])
            raise self._invalid(mnemonic, operands, location)

        condition, target = self._operands(mnemonic, operands, 2, location)
        cc = self._condition(condition)
        if cc not in RELATIVE_CONDITION_OPCODES:
            raise self._invalid(
                mnemonic, operands, location,
                hint="JR only accepts the conditions NZ, Z, NC and C",
            )
        if not self._is_immediate(target):
            raise self._invalid(mnemonic, operands, location)
        return [RELATIVE_CONDITION_OPCODES[cc]] + self._relative(target)

    def _encode_djnz(self, mnemonic, operands, location):
        (target,) = self._operands(mnemonic, operands, 1, location)
        if not self._is_immediate(target):
            raise self._invalid(mnemonic, operands, location)
        return [0x10] + self._relative(target)

    def _encode_rst(self, mnemonic, operands, location):
        (target,) = self._operands(mnemonic, operands, 1, location)
        if not self._is_immediate(target):
            raise self._invalid(mnemonic, operands, location)
        value = self._value(target)
        if self._final and value not in RESTART_TARGETS:
            raise ValueRangeError(
                value, "restart address", target.location,
                hint="RST accepts $00, $08, $10, $18, $20, $28, $30 and $38",
            )
        return [0xC7 | value & 0x38]

    def _encode_fused_conditional(self, mnemonic, operands, location):
        """JPNZ x, CALLZ x, RETNC, JRC x ... as JP NZ,x etc."""
        base, condition = FUSED_CONDITIONALS[mnemonic]
        condition_item = Item(ItemKind.CONDITION, location, text=condition)
        handler = getattr(self, self._HANDLERS[base])
        return handler(base, [condition_item] + operands, location)

    # =========================================================================
    # Interrupt Mode and I/O
    # =========================================================================

    def _encode_im(self, mnemonic, operands, location):
        (mode,) = self._operands(mnemonic, operands, 1, location)
        if not self._is_immediate(mode):
            raise self._invalid(mnemonic, operands, location)
        value = self._value(mode)
        if value not in INTERRUPT_MODES:
            if self._final:
                raise ValueRangeError(
                    value, "interrupt mode", mode.location, hint="IM accepts 0, 1 or 2"
                )
            value = 0
        return [PREFIX_ED, INTERRUPT_MODES[value]]

    def _encode_fused_im(self, mnemonic, operands, location):
        self._operands(mnemonic, operands, 0, location)
        return [PREFIX_ED, INTERRUPT_MODES[FUSED_INTERRUPT_MODES[mnemonic]]]

    def _encode_in(self, mnemonic, operands, location):
        dst, src = self._operands(mnemonic, operands, 2, location)
        if dst.kind is ItemKind.REGISTER8:
            if src.kind is ItemKind.INDIRECT_C:
                return [PREFIX_ED, 0x40 | self._register(dst) << 3]
            if src.kind is ItemKind.INDIRECT_IMMEDIATE:
                if dst.text != "A":
                    raise self._restricted(mnemonic, operands, src, location)
                return [0xDB] + self._byte(src, "port number")
        raise self._invalid(mnemonic, operands, location)

    def _encode_out(self, mnemonic, operands, location):
        dst, src = self._operands(mnemonic, operands, 2, location)
        if src.kind is ItemKind.REGISTER8:
            if dst.kind is ItemKind.INDIRECT_C:
                return [PREFIX_ED, 0x41 | self._register(src) << 3]
            if dst.kind is ItemKind.INDIRECT_IMMEDIATE:
                if src.text != "A":
                    raise self._restricted(mnemonic, operands, dst, location)
                return [0xD3] + self._byte(dst, "port number")
        raise self._invalid(mnemonic, operands, location)

    # =========================================================================
    # $CB Group
    # =========================================================================

    def _cb_operation(self, mnemonic, operands, operand, opcode, location):
        """
        Encode a $CB instruction on r, (HL), (IX+d) or (IY+d).

        Indexed forms place the displacement before the opcode:
        prefix, $CB, d, opcode.
        """
        if operand.kind is ItemKind.REGISTER8:
            return [PREFIX_CB, opcode | self._register(operand)]
        memory = self._memory(operand)
        if memory is not None:
            prefix, displacement = memory
            return prefix + [PREFIX_CB] + displacement + [opcode | MEMORY_FIELD]
        raise self._invalid(mnemonic, operands, location)

    def _encode_rotate(self, mnemonic, operands, location):
        (operand,) = self._operands(mnemonic, operands, 1, location)
        return self._cb_operation(
            mnemonic, operands, operand, ROTATE_OPS[mnemonic] << 3, location
        )

    def _encode_bit(self, mnemonic, operands, location):
        bit, operand = self._operands(mnemonic, operands, 2, location)
        if not self._is_immediate(bit):
            raise self._invalid(mnemonic, operands, location)
        value = self._value(bit)
        self._check_range(value, 0, 7, "bit number", bit)
        opcode = BIT_OPS[mnemonic] << 6 | (value & 0b111) << 3
        return self._cb_operation(mnemonic, operands, operand, opcode, location)


_MISSING_HANDLERS = MNEMONICS - frozenset(Encoder._HANDLERS)
if _MISSING_HANDLERS:
    raise RuntimeError(
        f"no encoder for mnemonics: {', '.join(sorted(_MISSING_HANDLERS))}"
    )

_UNBOUND_HANDLERS = {
    name for name in Encoder._HANDLERS.values() if not hasattr(Encoder, name)
}
if _UNBOUND_HANDLERS:
    raise RuntimeError(
        f"encoder handlers not implemented: {', '.join(sorted(_UNBOUND_HANDLERS))}"
    )


# =============================================================================
# Convenience Functions
# =============================================================================

def encode(
    items: list[Item],
    state: Optional[AssemblerState] = None,
) -> tuple[list[ByteRange], list[AssemblerError]]:
    """
    Encode parsed items with a fresh (or the given) assembler state.

    Returns:
        (ranges, errors)
    """
    return Encoder(state).assemble(items)
