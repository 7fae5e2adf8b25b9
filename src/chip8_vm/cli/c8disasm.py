"""
c8disasm - CHIP-8 Disassembler Command-Line Interface
=====================================================

Lists a CHIP-8 ROM one instruction word per line:

    $0200: 00E0  CLS
    $0202: A22A  LD   I, $22A

Words that are not valid instructions (sprite data, padding) are shown as
`DW   $WWWW`.

Usage Examples
--------------
Disassemble a ROM:
    $ c8disasm pong.ch8

Limit number of instructions:
    $ c8disasm pong.ch8 --count 20

Output to file:
    $ c8disasm pong.ch8 -o pong.lst

Copyright (c) 2026 chip8-vm Contributors
"""

from pathlib import Path
from typing import Optional

import click

from chip8_vm import __version__
from chip8_vm.cli.errors import handle_cli_exception
from chip8_vm.vm.decode import disassemble
from chip8_vm.vm.memory import MEMORY_SIZE, PROGRAM_START


def parse_address(text: str) -> int:
    """Parse an address given as 0x-prefixed hex, $-prefixed hex or decimal."""
    try:
        if text.lower().startswith("0x"):
            value = int(text, 16)
        elif text.startswith("$"):
            value = int(text[1:], 16)
        else:
            value = int(text)
    except ValueError:
        raise click.BadParameter(f"invalid address {text!r}", param_hint="--address")

    if not 0 <= value < MEMORY_SIZE:
        raise click.BadParameter(
            f"address must be 0-4095 ($000-$FFF), got {text!r}", param_hint="--address"
        )
    return value


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
    help="Output file (default: stdout)",
)
@click.option(
    "-a", "--address",
    type=str,
    default=f"0x{PROGRAM_START:03X}",
    show_default=True,
    help="Load address of the first byte (hex with 0x or $ prefix, or decimal)",
)
@click.option(
    "-c", "--count",
    type=int,
    default=None,
    help="Maximum number of instructions to disassemble (default: all)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="c8disasm")
def main(
    input_file: Path,
    output: Optional[Path],
    address: str,
    count: Optional[int],
    verbose: bool,
) -> None:
    """
    Disassemble a CHIP-8 ROM image.

    INPUT_FILE is the raw program image.

    Examples:

        # List the first 20 instructions
        c8disasm pong.ch8 --count 20

        # Save a full listing
        c8disasm pong.ch8 -o pong.lst
    """
    try:
        base_address = parse_address(address)
        if count is not None and count < 0:
            raise click.BadParameter("must be zero or more", param_hint="--count")

        data = input_file.read_bytes()
        if verbose:
            click.echo(f"Input file: {input_file} ({len(data)} bytes)", err=True)
            click.echo(f"Base address: ${base_address:04X}", err=True)

        lines = disassemble(data, start_address=base_address, count=count)
        result = "".join(f"{line}\n" for line in lines)

        if output:
            output.write_text(result, encoding="utf-8")
            if verbose:
                click.echo(f"Output written to: {output}", err=True)
        else:
            click.echo(result, nl=False)

        if verbose:
            click.echo(f"Instructions disassembled: {len(lines)}", err=True)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


if __name__ == "__main__":
    main()
