"""
Memory Subsystem for the CHIP-8 VM
==================================

Flat 4KB address space backed by a single bytearray.

Memory Map:
    $000-$04F  Built-in hexadecimal font (16 glyphs x 5 bytes), read-only
               for running programs
    $050-$1FF  Free (historically the interpreter itself)
    $200-$FFF  Program image and program data

Every access is bounds-checked against the full range before any byte is
touched, so a failing multi-byte write leaves memory unchanged.

Copyright (c) 2026 chip8-vm Contributors
"""

import logging
from typing import Iterable

from chip8_vm.errors import MemoryBoundsError, ProgramTooLargeError, ProtectedMemoryError

logger = logging.getLogger(__name__)


MEMORY_SIZE = 0x1000
PROGRAM_START = 0x200
MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START

FONT_START = 0x000
FONT_GLYPH_SIZE = 5

# =============================================================================
# BUILT-IN FONT
# =============================================================================
# 4x5 pixel glyphs for the hex digits 0-F. Each byte is one row; only the
# high nibble is lit. Digit d starts at FONT_START + d * FONT_GLYPH_SIZE.

FONT_DATA = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])

FONT_END = FONT_START + len(FONT_DATA)  # one past the last font byte ($050)


def font_address(digit: int) -> int:
    """Address of the built-in glyph for a hex digit (low nibble used)."""
    return FONT_START + (digit & 0x0F) * FONT_GLYPH_SIZE


class Memory:
    """
    4KB CHIP-8 memory with the built-in font preloaded.

    Reads and writes used by opcode handlers go through the checked
    methods below. The font region can only be written by `reset()`;
    a program store into it raises ProtectedMemoryError.

    Example:
        >>> mem = Memory()
        >>> mem.load_program(bytes([0x00, 0xE0]))
        >>> hex(mem.read_word(0x200))
        '0xe0'
    """

    def __init__(self):
        """Allocate zeroed memory and install the font."""
        self._data = bytearray(MEMORY_SIZE)
        self.reset()

    def __len__(self) -> int:
        return MEMORY_SIZE

    def __getitem__(self, address):
        return self._data[address]

    def reset(self) -> None:
        """Zero all memory and reinstall the built-in font."""
        self._data[:] = bytes(MEMORY_SIZE)
        self._data[FONT_START:FONT_END] = FONT_DATA

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_program(self, program: bytes) -> None:
        """
        Copy a program image into memory at $200.

        Args:
            program: Raw program bytes (any length up to 3584)

        Raises:
            ProgramTooLargeError: If the image does not fit below $1000
        """
        program = bytes(program)
        if len(program) > MAX_PROGRAM_SIZE:
            raise ProgramTooLargeError(len(program), MAX_PROGRAM_SIZE)

        self._data[PROGRAM_START:PROGRAM_START + len(program)] = program
        logger.debug(f"Loaded program: {len(program)} bytes at ${PROGRAM_START:03X}")

    # =========================================================================
    # Checked Access
    # =========================================================================

    def _check(self, address: int, length: int, operation: str) -> None:
        if address < 0 or address + length > MEMORY_SIZE:
            raise MemoryBoundsError(address, length, operation)

    def read(self, address: int) -> int:
        """Read one byte."""
        self._check(address, 1, "read")
        return self._data[address]

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word (instruction fetch)."""
        self._check(address, 2, "instruction fetch")
        return (self._data[address] << 8) | self._data[address + 1]

    def read_block(self, address: int, length: int, operation: str = "read") -> bytes:
        """
        Read `length` consecutive bytes.

        Raises:
            MemoryBoundsError: If any byte lies outside memory
        """
        self._check(address, length, operation)
        return bytes(self._data[address:address + length])

    def write(self, address: int, value: int) -> None:
        """Write one byte (masked to 8 bits)."""
        self.write_block(address, (value,))

    def write_block(self, address: int, values: Iterable[int], operation: str = "write") -> None:
        """
        Write consecutive bytes, all or nothing.

        Raises:
            MemoryBoundsError: If any byte lies outside memory
            ProtectedMemoryError: If any byte lies in the font region
        """
        data = bytes(value & 0xFF for value in values)
        self._check(address, len(data), operation)
        if data and address < FONT_END:
            raise ProtectedMemoryError(address, len(data), operation)
        self._data[address:address + len(data)] = data

    def poke(self, address: int, value: int) -> None:
        """
        Write a byte without the font protection.

        For hosts and test harnesses priming memory outside opcode
        execution.
        """
        self._check(address, 1, "poke")
        self._data[address] = value & 0xFF

    def dump(self) -> bytes:
        """Copy of the full 4KB contents."""
        return bytes(self._data)
