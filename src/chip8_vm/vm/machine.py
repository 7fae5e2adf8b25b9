"""
CHIP-8 Host Loop
================

This module provides the `Machine` class that drives a `Chip8` core the
way an interactive front end would:

- Loads ROM images from disk
- Runs a fixed number of instruction cycles per 60 Hz frame
- Decrements the delay and sound timers once per frame
- Feeds the current keypad snapshot into every step
- Stops cleanly on a fatal execution error and reports it

The core itself never self-decrements timers or paces itself; both are
the host's job and live here.

Example usage:
    >>> from chip8_vm.vm import Machine, MachineConfig
    >>> machine = Machine(MachineConfig(cycles_per_frame=12, seed=1))
    >>> machine.load_rom("pong.ch8")
    >>> result = machine.run(frames=600)
    >>> print(machine.framebuffer.get_text())

Copyright (c) 2026 chip8-vm Contributors
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from chip8_vm.errors import ConfigurationError, ExecutionError
from chip8_vm.vm.cpu import Chip8, VMState
from chip8_vm.vm.display import DrawPolicy, Framebuffer
from chip8_vm.vm.keyboard import Keypad
from chip8_vm.vm.memory import MAX_PROGRAM_SIZE

logger = logging.getLogger(__name__)


def _parse_int(raw: str) -> int:
    """Parse a decimal or 0x/0o/0b-prefixed integer ("010" is ten)."""
    text = raw.strip()
    if text.lower().lstrip("+-").startswith(("0x", "0o", "0b")):
        return int(text, 0)
    return int(text)


@dataclass(frozen=True)
class MachineConfig:
    """
    Configuration for a host loop.

    Attributes:
        cycles_per_frame: Instructions executed per 60 Hz frame (default 10,
                          i.e. roughly 600 instructions per second)
        frame_rate: Frames per second used for realtime pacing (default 60)
        draw_policy: Sprite edge behaviour (default WRAP)
        seed: Seed for the Cxnn random source (None = unseeded)
        scale: Host pixels per display cell for image output (default 10)

    Example:
        >>> config = MachineConfig(cycles_per_frame=20, draw_policy=DrawPolicy.CLIP)
    """
    cycles_per_frame: int = 10
    frame_rate: int = 60
    draw_policy: DrawPolicy = DrawPolicy.WRAP
    seed: Optional[int] = None
    scale: int = 10

    def __post_init__(self):
        if self.cycles_per_frame < 1:
            raise ConfigurationError(
                f"cycles_per_frame must be at least 1, got {self.cycles_per_frame}"
            )
        if self.frame_rate < 1:
            raise ConfigurationError(f"frame_rate must be at least 1, got {self.frame_rate}")
        if self.scale < 1:
            raise ConfigurationError(f"scale must be at least 1, got {self.scale}")
        if not isinstance(self.draw_policy, DrawPolicy):
            raise ConfigurationError(f"draw_policy must be a DrawPolicy, got {self.draw_policy!r}")

    @classmethod
    def from_env(cls, **overrides) -> "MachineConfig":
        """
        Create MachineConfig from environment variables.

        Environment variables (all optional):
            CHIP8_CYCLES_PER_FRAME: Instructions per frame (integer)
            CHIP8_FRAME_RATE: Frames per second (integer)
            CHIP8_DRAW_POLICY: "wrap" or "clip"
            CHIP8_SEED: Random seed (integer)
            CHIP8_SCALE: Image scale (integer)

        Keyword arguments override the environment.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        values = {}

        for name, env_var in (
            ("cycles_per_frame", "CHIP8_CYCLES_PER_FRAME"),
            ("frame_rate", "CHIP8_FRAME_RATE"),
            ("seed", "CHIP8_SEED"),
            ("scale", "CHIP8_SCALE"),
        ):
            if raw := os.environ.get(env_var):
                try:
                    values[name] = _parse_int(raw)
                except ValueError:
                    raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")

        if policy := os.environ.get("CHIP8_DRAW_POLICY"):
            try:
                values["draw_policy"] = DrawPolicy(policy.strip().lower())
            except ValueError:
                raise ConfigurationError(
                    f"CHIP8_DRAW_POLICY must be 'wrap' or 'clip', got {policy!r}"
                )

        values.update(overrides)
        return cls(**values)


@dataclass
class RunResult:
    """
    Outcome of `Machine.run()`.

    Attributes:
        frames: Frames fully or partially executed
        cycles: Instructions executed
        redraws: Frames after which the display needed a refresh
        error: The fatal error that stopped the run, if any
    """
    frames: int = 0
    cycles: int = 0
    redraws: int = 0
    error: Optional[ExecutionError] = None

    @property
    def faulted(self) -> bool:
        return self.error is not None


class Machine:
    """
    Frame-paced host loop around a `Chip8` core.

    Attributes:
        config: The MachineConfig used to build this instance
        cpu: The Chip8 core (accessible for low-level control)
        keypad: Keypad whose snapshot is fed to every step

    Example:
        >>> machine = Machine()
        >>> machine.load_program(bytes([0x12, 0x00]))   # JP $200
        >>> machine.run_frame()
        False
        >>> machine.cpu.cycles
        10
    """

    def __init__(self, config: Optional[MachineConfig] = None):
        self.config = config or MachineConfig()
        self.cpu = Chip8(draw_policy=self.config.draw_policy, seed=self.config.seed)
        self.keypad = Keypad()
        self.rom_path: Optional[Path] = None
        self._program: Optional[bytes] = None

    @property
    def framebuffer(self) -> Framebuffer:
        return self.cpu.framebuffer

    @property
    def sound_active(self) -> bool:
        """True while the sound timer is running (no audio is produced)."""
        return self.cpu.sound_timer > 0

    @property
    def is_faulted(self) -> bool:
        return self.cpu.state is VMState.FAULTED

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_rom(self, path: Union[str, Path]) -> None:
        """
        Load a ROM file at $200.

        Args:
            path: Path to the raw program image

        Raises:
            FileNotFoundError: If the file does not exist
            ProgramTooLargeError: If the image exceeds 3584 bytes
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"ROM file not found: {path}")

        data = path.read_bytes()
        self.cpu.load_program(data)
        self.rom_path = path
        self._program = None
        logger.info(f"Loaded ROM {path} ({len(data)} of {MAX_PROGRAM_SIZE} bytes)")

    def load_program(self, program: bytes) -> None:
        """Load a program image held in memory at $200. `reset` restores it."""
        self.cpu.load_program(program)
        self._program = bytes(program)
        self.rom_path = None

    def reset(self) -> None:
        """
        Reset the core and release all keys.

        The program image is cleared along with the rest of memory, then the
        most recently loaded program is restored: a ROM is reread from disk,
        an in-memory image is copied back.
        """
        self.cpu.reset()
        self.keypad.release_all()
        if self.rom_path is not None:
            self.load_rom(self.rom_path)
        elif self._program is not None:
            self.cpu.load_program(self._program)

    # =========================================================================
    # Execution
    # =========================================================================

    def run_frame(self) -> bool:
        """
        Run one 60 Hz frame: `cycles_per_frame` steps, then one timer tick.

        Returns:
            True if the framebuffer changed during the frame

        Raises:
            ExecutionError: On a fatal error (the frame is abandoned and
                the timers are not decremented)
        """
        keys = self.keypad.snapshot()
        changed = False
        for _ in range(self.config.cycles_per_frame):
            if self.cpu.step(keys):
                changed = True
        self.cpu.decrement_timers()
        return changed

    def run(self, frames: int, realtime: bool = False) -> RunResult:
        """
        Run a number of frames, stopping early on a fatal error.

        Args:
            frames: Number of frames to run
            realtime: Sleep between frames to hold `frame_rate`

        Returns:
            RunResult with counts and the error that stopped the run, if any
        """
        result = RunResult()
        start_cycles = self.cpu.cycles
        frame_time = 1.0 / self.config.frame_rate
        deadline = time.monotonic()

        for _ in range(frames):
            result.frames += 1
            try:
                if self.run_frame():
                    result.redraws += 1
            except ExecutionError as e:
                logger.error(f"Emulation stopped: {e}")
                result.error = e
                break

            if realtime:
                deadline += frame_time
                delay = deadline - time.monotonic()
                if delay > 0:
                    time.sleep(delay)

        result.cycles = self.cpu.cycles - start_cycles
        return result

    def __repr__(self) -> str:
        return f"Machine(rom={self.rom_path}, cpu={self.cpu!r})"
