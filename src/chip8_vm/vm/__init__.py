"""
CHIP-8 Virtual Machine
======================

The execution core of a CHIP-8 emulator plus thin host-side adapters.

- **Chip8**: registers, call stack, timers and the fetch-decode-execute step
- **Memory**: 4KB address space with the built-in hex font at $000
- **Framebuffer**: 64x32 XOR display with a needs-refresh flag
- **Keypad**: 16-key state holder producing the per-step key vector
- **Machine**: frame-paced host loop (cycles per frame, 60 Hz timers)

Quick Start
-----------

Drive the core directly::

    >>> from chip8_vm.vm import Chip8
    >>> vm = Chip8()
    >>> vm.load_program(open("maze.ch8", "rb").read())
    >>> for _ in range(1000):
    ...     vm.step([False] * 16)
    >>> print(vm.framebuffer.get_text())

Or let the host loop pace it::

    >>> from chip8_vm.vm import Machine, MachineConfig
    >>> machine = Machine(MachineConfig(seed=42))
    >>> machine.load_rom("maze.ch8")
    >>> machine.run(frames=120)

Module Structure
----------------

- `cpu.py`: Chip8 core and VMState
- `decode.py`: Opcode enum, Instruction, decoder and disassembler
- `memory.py`: Memory and the font
- `display.py`: Framebuffer, DrawPolicy, window scaling
- `keyboard.py`: Keypad and QWERTY mapping
- `machine.py`: Machine host loop and MachineConfig

Copyright (c) 2026 chip8-vm Contributors
"""

# Core
from .cpu import Chip8, CPUState, VMState, REGISTER_COUNT, STACK_DEPTH

# Instruction decoding
from .decode import (
    Opcode,
    Instruction,
    DisassemblyLine,
    decode,
    disassemble,
    iter_disassembly,
)

# Memory subsystem
from .memory import (
    Memory,
    FONT_DATA,
    MEMORY_SIZE,
    PROGRAM_START,
    MAX_PROGRAM_SIZE,
    font_address,
)

# I/O adapters
from .display import Framebuffer, DrawPolicy, DISPLAY_WIDTH, DISPLAY_HEIGHT, scale_for_window
from .keyboard import Keypad, QWERTY_KEY_MAP, parse_hex_key

# Host loop
from .machine import Machine, MachineConfig, RunResult

__all__ = [
    # Core
    "Chip8",
    "CPUState",
    "VMState",
    "REGISTER_COUNT",
    "STACK_DEPTH",

    # Decoding
    "Opcode",
    "Instruction",
    "DisassemblyLine",
    "decode",
    "disassemble",
    "iter_disassembly",

    # Memory
    "Memory",
    "FONT_DATA",
    "MEMORY_SIZE",
    "PROGRAM_START",
    "MAX_PROGRAM_SIZE",
    "font_address",

    # Display
    "Framebuffer",
    "DrawPolicy",
    "DISPLAY_WIDTH",
    "DISPLAY_HEIGHT",
    "scale_for_window",

    # Keyboard
    "Keypad",
    "QWERTY_KEY_MAP",
    "parse_hex_key",

    # Host loop
    "Machine",
    "MachineConfig",
    "RunResult",
]
