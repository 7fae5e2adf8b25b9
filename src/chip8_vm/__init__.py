"""
chip8-vm - A CHIP-8 Virtual Machine
===================================

This package provides the execution core of an emulator for CHIP-8, the
interpreted 8-bit virtual machine from the late 1970s, together with the
small host-side pieces needed to actually run programs: a frame-paced
host loop, a keypad adapter, text/PNG rendering and two command-line tools.

The machine has 4KB of memory, sixteen 8-bit registers, a 16-bit index
register, a 16-entry call stack, two 60 Hz timers and a 64x32 monochrome
display drawn with XOR sprites.

Main Components
---------------
- **vm**: the virtual machine
    Chip8 core, Memory, Framebuffer, Keypad, instruction decoder and the
    Machine host loop

- **cli**: command-line tools
    c8run (headless runner) and c8disasm (disassembler)

Quick Start
-----------
Run a program for two seconds of emulated time:
    >>> from chip8_vm import Machine
    >>> machine = Machine()
    >>> machine.load_rom("ibm_logo.ch8")
    >>> result = machine.run(frames=120)
    >>> print(machine.framebuffer.get_text())

Disassemble a program:
    >>> from chip8_vm import disassemble
    >>> for line in disassemble(open("ibm_logo.ch8", "rb").read(), count=4):
    ...     print(line)
    $0200: 00E0  CLS
    $0202: A22A  LD   I, $22A
    ...

Or use the command-line tools:
    $ c8run ibm_logo.ch8 --frames 60
    $ c8disasm ibm_logo.ch8 --count 20

Version History
---------------
1.0.0 - Initial release with core, host loop, c8run and c8disasm
"""

__version__ = "1.0.0"
__author__ = "chip8-vm Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from chip8_vm.errors import (
    Chip8Error,
    ConfigurationError,
    ProgramTooLargeError,
    DisplayScaleError,
    ExecutionError,
    InvalidOpcodeError,
    StackUnderflowError,
    StackOverflowError,
    MemoryBoundsError,
    ProtectedMemoryError,
    MachineFaultedError,
)

from chip8_vm.vm import (
    Chip8,
    VMState,
    Memory,
    Framebuffer,
    DrawPolicy,
    Keypad,
    Machine,
    MachineConfig,
    RunResult,
    Opcode,
    Instruction,
    decode,
    disassemble,
    scale_for_window,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Virtual machine
    "Chip8",
    "VMState",
    "Memory",
    "Framebuffer",
    "DrawPolicy",
    "Keypad",
    "Machine",
    "MachineConfig",
    "RunResult",
    "Opcode",
    "Instruction",
    "decode",
    "disassemble",
    "scale_for_window",
    # Exception hierarchy
    "Chip8Error",
    "ConfigurationError",
    "ProgramTooLargeError",
    "DisplayScaleError",
    "ExecutionError",
    "InvalidOpcodeError",
    "StackUnderflowError",
    "StackOverflowError",
    "MemoryBoundsError",
    "ProtectedMemoryError",
    "MachineFaultedError",
]
