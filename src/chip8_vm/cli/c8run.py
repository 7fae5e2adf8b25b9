"""
c8run - Headless CHIP-8 Runner
==============================

Runs a CHIP-8 ROM for a fixed number of 60 Hz frames without a window and
dumps the final screen as text or as a PNG image.

Usage Examples
--------------
Run for one second of emulated time and print the screen:
    $ c8run maze.ch8 --frames 60

Reproducible run with a fixed random seed:
    $ c8run maze.ch8 --seed 1234

Hold keys 5 and A down for the whole run:
    $ c8run game.ch8 --keys 5,A

Save the screen as a PNG sized for a 1280x640 window:
    $ c8run ibm_logo.ch8 --png logo.png --window 1280x640

Configuration defaults can also come from the environment
(CHIP8_CYCLES_PER_FRAME, CHIP8_FRAME_RATE, CHIP8_DRAW_POLICY, CHIP8_SEED,
CHIP8_SCALE); command-line options take precedence.

Copyright (c) 2026 chip8-vm Contributors
"""

import logging
from pathlib import Path
from typing import List, Optional

import click

from chip8_vm import __version__
from chip8_vm.cli.errors import handle_cli_exception
from chip8_vm.vm.display import DrawPolicy, scale_for_window
from chip8_vm.vm.keyboard import parse_hex_key
from chip8_vm.vm.machine import Machine, MachineConfig


def parse_key_list(text: str) -> List[int]:
    """Parse a comma-separated list of hex keypad labels ("5,A")."""
    keys = []
    for part in text.split(","):
        if not part.strip():
            continue
        try:
            keys.append(parse_hex_key(part))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--keys")
    return keys


def parse_window(text: str) -> int:
    """Turn a WIDTHxHEIGHT window size into a display scale."""
    try:
        width_str, height_str = text.lower().split("x", 1)
        width, height = int(width_str), int(height_str)
    except ValueError:
        raise click.BadParameter(f"expected WIDTHxHEIGHT, got {text!r}", param_hint="--window")
    return scale_for_window(width, height)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "rom_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-f", "--frames",
    type=int,
    default=60,
    show_default=True,
    help="Number of 60 Hz frames to run",
)
@click.option(
    "-c", "--cycles-per-frame",
    type=int,
    default=None,
    help="Instructions executed per frame (default: 10)",
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Seed for the random-number opcode",
)
@click.option(
    "--draw-policy",
    type=click.Choice([p.value for p in DrawPolicy]),
    default=None,
    help="Sprite behaviour at the screen edge (default: wrap)",
)
@click.option(
    "-k", "--keys",
    type=str,
    default="",
    help="Comma-separated hex keys held down for the whole run (e.g. 5,A)",
)
@click.option(
    "--png",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the final screen to a PNG file instead of printing it",
)
@click.option(
    "-s", "--scale",
    type=int,
    default=None,
    help="Host pixels per display cell for --png (default: 10)",
)
@click.option(
    "--window",
    type=str,
    default=None,
    help="Target window size WIDTHxHEIGHT; sets the scale for --png",
)
@click.option(
    "--ascii",
    "ascii_only",
    is_flag=True,
    help="Print the screen with '#' and '.' instead of block characters",
)
@click.option(
    "--realtime",
    is_flag=True,
    help="Pace execution at the configured frame rate",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output (debug logging)",
)
@click.version_option(version=__version__, prog_name="c8run")
def main(
    rom_file: Path,
    frames: int,
    cycles_per_frame: Optional[int],
    seed: Optional[int],
    draw_policy: Optional[str],
    keys: str,
    png: Optional[Path],
    scale: Optional[int],
    window: Optional[str],
    ascii_only: bool,
    realtime: bool,
    verbose: bool,
) -> None:
    """
    Run a CHIP-8 ROM headless and show the final screen.

    ROM_FILE is the raw program image, loaded at $200.

    Examples:

        # Run two seconds and print the screen
        c8run maze.ch8 --frames 120

        # Save a PNG at 10x scale
        c8run ibm_logo.ch8 --png logo.png
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")

    try:
        if frames < 0:
            raise click.BadParameter("must be zero or more", param_hint="--frames")

        overrides = {}
        if cycles_per_frame is not None:
            overrides["cycles_per_frame"] = cycles_per_frame
        if seed is not None:
            overrides["seed"] = seed
        if draw_policy is not None:
            overrides["draw_policy"] = DrawPolicy(draw_policy)
        if window is not None:
            overrides["scale"] = parse_window(window)
        elif scale is not None:
            overrides["scale"] = scale
        config = MachineConfig.from_env(**overrides)

        held_keys = parse_key_list(keys)

        machine = Machine(config)
        machine.load_rom(rom_file)
        for key in held_keys:
            machine.keypad.key_down(key)

        if verbose:
            click.echo(f"ROM: {rom_file} ({rom_file.stat().st_size} bytes)", err=True)
            click.echo(
                f"Running {frames} frames at {config.cycles_per_frame} cycles/frame",
                err=True,
            )

        result = machine.run(frames, realtime=realtime)

        if png:
            png.write_bytes(machine.framebuffer.render_image(config.scale))
            if verbose:
                click.echo(f"Screen written to: {png}", err=True)
        elif ascii_only:
            click.echo(machine.framebuffer.get_text(on="#", off="."))
        else:
            click.echo(machine.framebuffer.get_text())

        if verbose:
            click.echo(
                f"Frames: {result.frames}, cycles: {result.cycles}, redraws: {result.redraws}",
                err=True,
            )

        if result.error is not None:
            handle_cli_exception(result.error, verbose=verbose)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


if __name__ == "__main__":
    main()
