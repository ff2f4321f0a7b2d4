"""
zasm - Z80 Assembler Command-Line Interface
===========================================

Usage Examples
--------------
Basic assembly:
    $ zasm hello.asm              # writes hello.bin

With output file:
    $ zasm hello.asm -o rom.bin

One file per ORG region:
    $ zasm --split monitor.asm    # monitor_0000.bin, monitor_8000.bin ...

Verbose mode:
    $ zasm -v hello.asm

Defaults for --cpu, --origin and --fill can also be set with the
Z80ASM_CPU, Z80ASM_ORIGIN and Z80ASM_FILL environment variables.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click

from z80asm import __version__
from z80asm.assembler import Assembler
from z80asm.assembler.bundler import flatten
from z80asm.cli.errors import ExitCode, handle_cli_exception
from z80asm.config import AssemblerConfig, parse_number
from z80asm.cpu import CpuMode


def _number_option(limit: int):
    """Build a click callback parsing $hex/0xhex/decimal within 0..limit."""
    def callback(ctx, param, value):
        if value is None:
            return None
        number = parse_number(value)
        if number is None or not 0 <= number <= limit:
            raise click.BadParameter(
                f"expected a number from 0 to ${limit:X}, got {value!r}"
            )
        return number
    return callback


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output binary file (default: input.bin)",
)
@click.option(
    "--split",
    is_flag=True,
    help="Write one file per region, named <stem>_<BASE>.bin",
)
@click.option(
    "--fill",
    callback=_number_option(0xFF),
    help="Byte used to fill gaps between regions (default: $FF)",
)
@click.option(
    "--origin",
    callback=_number_option(0xFFFF),
    help="Initial address counter (default: 0)",
)
@click.option(
    "--cpu",
    type=click.Choice([mode.value for mode in CpuMode], case_sensitive=False),
    default=None,
    help="CPU mode at the start of the source (default: Z80)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="zasm")
def main(
    input_file: Path,
    output: Optional[Path],
    split: bool,
    fill: Optional[int],
    origin: Optional[int],
    cpu: Optional[str],
    verbose: bool,
) -> None:
    """
    Assemble Z80 source code into raw binary.

    INPUT_FILE is the assembly source file (.asm) to assemble.

    \b
    Examples:
        zasm hello.asm               # Outputs hello.bin
        zasm hello.asm -o out.bin    # Specify output file
        zasm --split rom.asm         # One file per ORG region
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    config = AssemblerConfig.from_env()
    config.filename = str(input_file)
    if fill is not None:
        config.fill_byte = fill
    if origin is not None:
        config.origin = origin
    if cpu is not None:
        config.cpu = CpuMode[cpu.upper()]

    output_file = output if output is not None else input_file.with_suffix(".bin")

    try:
        if verbose:
            click.echo(f"Assembling {input_file}...")

        result = Assembler(config).assemble_file(input_file)

        if not result.ok:
            click.echo(result.error_report(), err=True)
            sys.exit(ExitCode.BUILD_ERROR)

        if split:
            for region in result.regions:
                path = output_file.with_name(f"{output_file.stem}_{region.base:04X}.bin")
                path.write_bytes(bytes(region.data))
                if verbose:
                    click.echo(f"Wrote {len(region)} bytes at ${region.base:04X} to {path}")
        else:
            base, image = flatten(result.regions, config.fill_byte)
            output_file.write_bytes(image)
            if verbose:
                click.echo(f"Wrote {len(image)} bytes at ${base:04X} to {output_file}")

        if verbose:
            click.echo(
                f"Assembly complete: {len(result.regions)} regions, "
                f"{len(result.symbols)} symbols"
            )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
