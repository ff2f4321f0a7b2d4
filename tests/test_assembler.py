# =============================================================================
# test_assembler.py - Assembler Integration Tests
# =============================================================================
# End-to-end tests for the Assembler facade and the zasm command line.
#
# Test coverage includes:
#   - Complete programs through lexer, parser, encoder and bundler
#   - Error collection across all stages, in source order
#   - Configuration (origin, CPU mode, fill byte, environment)
#   - The zasm CLI: output files, --split, exit codes
# =============================================================================

import pytest
from click.testing import CliRunner

from z80asm import __version__
from z80asm.assembler import Assembler, assemble, assemble_file
from z80asm.cli.zasm import main
from z80asm.config import AssemblerConfig
from z80asm.cpu import CpuMode
from z80asm.errors import (
    AddressingModeError,
    AssemblerError,
    LexicalError,
    UnsupportedCpuError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def run(source: str, **config):
    """Assemble source with an optional config; returns the AssemblyResult."""
    return Assembler(AssemblerConfig(**config)).assemble_string(source)


def write_source(tmp_path, text: str, name: str = "prog.asm"):
    path = tmp_path / name
    path.write_text(text)
    return path


# =============================================================================
# End-to-End Scenarios
# =============================================================================

class TestScenarios:
    """Short programs with known machine code."""

    def test_load_and_copy(self):
        assert assemble("LD A,$12\nLD B,A") == bytes.fromhex("3E 12 47")

    def test_store_through_hl(self):
        assert assemble("LD HL,$1000\nLD (HL),$33") == bytes.fromhex("21 00 10 36 33")

    def test_store_through_ix(self):
        code = assemble("LD A,$55\nLD IX,$1003\nLD (IX+0),A")
        assert code == bytes.fromhex("3E 55 DD 21 03 10 DD 77 00")

    def test_load_through_bc(self):
        assert assemble("LD BC,$1000\nLD A,(BC)") == bytes.fromhex("01 00 10 0A")

    def test_bad_statement_keeps_good_ones(self):
        result = run("LD A,$12\nLD Q,A")
        assert not result.ok
        assert len(result.errors) >= 1
        assert [r.line for r in result.ranges] == [1]
        assert result.ranges[0].data == bytes.fromhex("3E 12")

    @pytest.mark.parametrize("source", ["LD A,$12 ?\nNOP", "RET (A)\nNOP"])
    def test_malformed_statement_emits_nothing(self, source):
        result = run(source)
        assert len(result.errors) == 1
        assert [(r.address, r.data) for r in result.ranges] == [(0, b"\x00")]

    def test_org(self):
        result = run("ORG $200\nNOP")
        assert result.ranges[0].address == 0x200
        assert result.origin == 0x200

    def test_counting_loop(self):
        source = """
        ; count B down to zero, storing each value
                ORG $8000
        start:  LD HL,buffer
                LD B,4
        loop:   LD (HL),B
                INC HL
                DJNZ loop
                RET
        buffer:
        """
        result = run(source)
        assert result.ok, result.error_report()
        assert result.code == bytes.fromhex("21 0A 80 06 04 70 23 10 FC C9")
        assert result.symbols == {"START": 0x8000, "LOOP": 0x8005, "BUFFER": 0x800A}


# =============================================================================
# Assembly Results
# =============================================================================

class TestAssemblyResult:

    def test_regions(self):
        result = run("ORG $100\nNOP\nRET\nORG $200\nHALT")
        assert [(r.base, bytes(r.data)) for r in result.regions] == [
            (0x100, b"\x00\xc9"),
            (0x200, b"\x76"),
        ]

    def test_code_flattens_regions(self):
        result = run("ORG $10\nNOP\nORG $12\nHALT")
        assert result.origin == 0x10
        assert result.code == bytes.fromhex("00 FF 76")

    def test_fill_byte(self):
        result = run("ORG $10\nNOP\nORG $12\nHALT", fill_byte=0x00)
        assert result.code == bytes.fromhex("00 00 76")

    def test_instruction_across_top_of_memory(self):
        result = run("ORG $FFFE\nLD HL,$1234\nNOP")
        assert [(r.base, bytes(r.data)) for r in result.regions] == [
            (0xFFFE, bytes.fromhex("21 34")),
            (0x0000, bytes.fromhex("12 00")),
        ]
        image = result.code
        assert len(image) == 0x10000
        assert image[:2] == bytes.fromhex("12 00")
        assert image[-2:] == bytes.fromhex("21 34")

    def test_code_raises_on_errors(self):
        result = run("LD Q,A")
        with pytest.raises(AssemblerError) as exc_info:
            result.code
        assert "invalid operands for LD" in str(exc_info.value)

    def test_empty_source(self):
        result = run("")
        assert result.ok
        assert result.code == b""
        assert result.origin == 0

    def test_errors_from_every_stage_in_line_order(self):
        result = run("LD Q,A\n?\nLD A,(X\nFOO")
        assert [e.line for e in result.errors] == [1, 2, 3, 4]
        assert isinstance(result.errors[0], AddressingModeError)
        assert isinstance(result.errors[1], LexicalError)

    def test_error_report(self):
        result = run("NOP\nLD Q,A", filename="prog.asm")
        report = result.error_report()
        assert report.startswith("prog.asm:2:1: error: invalid operands for LD: Q,A")
        assert report.endswith("1 error")


class TestConfiguration:

    def test_origin(self):
        result = run("here: JP here", origin=0x8000)
        assert result.origin == 0x8000
        assert result.code == bytes.fromhex("C3 00 80")

    def test_cpu_mode(self):
        result = run("NOP", cpu=CpuMode.M6502)
        assert isinstance(result.errors[0], UnsupportedCpuError)

    def test_runs_are_independent(self):
        asm = Assembler()
        asm.assemble_string("label: NOP")
        result = asm.assemble_string("JP label")
        assert not result.ok
        assert asm.has_errors()

    def test_last_result_accessors(self):
        asm = Assembler(AssemblerConfig(origin=0x100))
        asm.assemble_string("start: NOP")
        assert asm.get_code() == b"\x00"
        assert asm.get_origin() == 0x100
        assert asm.get_symbols() == {"START": 0x100}
        assert not asm.has_errors()
        assert asm.get_error_report() == "0 errors"

    def test_accessors_before_assembly(self):
        with pytest.raises(RuntimeError):
            Assembler().get_code()


class TestConvenienceFunctions:

    def test_assemble_raises(self):
        with pytest.raises(AssemblerError):
            assemble("LD B,(BC)")

    def test_assemble_file(self, tmp_path):
        path = write_source(tmp_path, "LD A,1\nRET\n")
        assert assemble_file(path) == bytes.fromhex("3E 01 C9")

    def test_assemble_file_uses_filename(self, tmp_path):
        path = write_source(tmp_path, "FOO\n")
        result = Assembler().assemble_file(path)
        assert str(path) in result.error_report()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Assembler().assemble_file(tmp_path / "missing.asm")


# =============================================================================
# Command-Line Interface
# =============================================================================

class TestCli:
    """Tests for the zasm command."""

    def test_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Assemble Z80 source code" in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_default_output(self, tmp_path):
        source = write_source(tmp_path, "LD A,$12\nLD B,A\n")
        result = CliRunner().invoke(main, [str(source)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "prog.bin").read_bytes() == bytes.fromhex("3E 12 47")

    def test_output_option(self, tmp_path):
        source = write_source(tmp_path, "NOP\n")
        output = tmp_path / "out.rom"
        result = CliRunner().invoke(main, [str(source), "-o", str(output)])
        assert result.exit_code == 0, result.output
        assert output.read_bytes() == b"\x00"

    def test_errors_exit_1_without_output(self, tmp_path):
        source = write_source(tmp_path, "NOP\nLD Q,A\n")
        result = CliRunner().invoke(main, [str(source)])
        assert result.exit_code == 1
        assert "invalid operands for LD" in result.output
        assert not (tmp_path / "prog.bin").exists()

    def test_split(self, tmp_path):
        source = write_source(tmp_path, "ORG $100\nNOP\nORG $200\nHALT\n")
        result = CliRunner().invoke(main, [str(source), "--split"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "prog_0100.bin").read_bytes() == b"\x00"
        assert (tmp_path / "prog_0200.bin").read_bytes() == b"\x76"

    def test_flatten_with_fill(self, tmp_path):
        source = write_source(tmp_path, "ORG $10\nNOP\nORG $12\nHALT\n")
        result = CliRunner().invoke(main, [str(source), "--fill", "0"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "prog.bin").read_bytes() == bytes.fromhex("00 00 76")

    def test_origin_option(self, tmp_path):
        source = write_source(tmp_path, "here: JP here\n")
        result = CliRunner().invoke(main, [str(source), "--origin", "$8000"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "prog.bin").read_bytes() == bytes.fromhex("C3 00 80")

    def test_origin_from_environment(self, tmp_path):
        source = write_source(tmp_path, "here: JP here\n")
        result = CliRunner().invoke(main, [str(source)], env={"Z80ASM_ORIGIN": "0x4000"})
        assert result.exit_code == 0, result.output
        assert (tmp_path / "prog.bin").read_bytes() == bytes.fromhex("C3 00 40")

    def test_cpu_option(self, tmp_path):
        source = write_source(tmp_path, "NOP\n")
        result = CliRunner().invoke(main, [str(source), "--cpu", "m6502"])
        assert result.exit_code == 1

    def test_bad_fill(self, tmp_path):
        source = write_source(tmp_path, "NOP\n")
        result = CliRunner().invoke(main, [str(source), "--fill", "300"])
        assert result.exit_code == 2

    def test_missing_input(self, tmp_path):
        result = CliRunner().invoke(main, [str(tmp_path / "missing.asm")])
        assert result.exit_code == 2

    def test_verbose(self, tmp_path):
        source = write_source(tmp_path, "NOP\n")
        result = CliRunner().invoke(main, [str(source), "-v"])
        assert result.exit_code == 0, result.output
        assert "Assembly complete" in result.output
