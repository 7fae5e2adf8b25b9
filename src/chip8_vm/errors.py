"""
CHIP-8 VM Error Hierarchy
=========================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from Chip8Error, allowing callers to catch every
VM-related error with a single except clause if desired.

Exception Hierarchy
-------------------
Chip8Error (base)
├── ConfigurationError (setup time, never fatal to the process)
│   ├── ProgramTooLargeError - program image does not fit in memory
│   └── DisplayScaleError - window size is not a clean multiple of 64x32
└── ExecutionError (fatal to the emulation session)
    ├── InvalidOpcodeError - instruction word matches no opcode
    ├── StackUnderflowError - return with an empty call stack
    ├── StackOverflowError - call with the call stack full
    ├── MemoryBoundsError - access outside 0x000-0xFFF
    │   └── ProtectedMemoryError - write into the built-in font region
    └── MachineFaultedError - step() after a fatal error, without reset()

Design Philosophy
-----------------
Configuration errors are raised before anything runs; the caller decides
whether to abort. Execution errors mean the loaded program is malformed or
incompatible. They capture the address and raw word of the faulting
instruction so the message points at the culprit:

    error at $0234 (0xF155): register dump to $0FFE-$1003 exceeds memory
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Chip8Error(Exception):
    """
    Base exception for all chip8_vm errors.

    All exceptions in the package inherit from this class, allowing callers
    to catch all VM-related errors with a single except clause:

        try:
            machine.run(frames=600)
        except Chip8Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(Chip8Error):
    """
    Invalid setup-time configuration.

    Raised while preparing a session (loading a program, validating
    rendering or host-loop settings). Nothing has executed yet, so the
    VM state is untouched and the caller may simply fix the input and
    try again.
    """
    pass


class ProgramTooLargeError(ConfigurationError):
    """
    Program image does not fit between the load address and end of memory.

    Programs load at $200, so at most 4096 - 512 = 3584 bytes fit.
    """

    def __init__(self, size: int, capacity: int):
        self.size = size
        self.capacity = capacity
        super().__init__(
            f"program too large: {size} bytes, at most {capacity} bytes fit"
        )


class DisplayScaleError(ConfigurationError):
    """
    Window size cannot be mapped onto the 64x32 logical display.

    The window width must be an exact multiple of 64, the height an exact
    multiple of 32, and both must give the same integer scale.
    """

    def __init__(self, message: str, width: int, height: int):
        self.width = width
        self.height = height
        super().__init__(message)


# =============================================================================
# Execution Exceptions
# =============================================================================

class ExecutionError(Chip8Error):
    """
    Base exception for fatal errors raised while executing a program.

    An execution error leaves the core in the FAULTED state. The step
    that raised it made no partial changes; the host may reset() and
    reload rather than exit.

    Attributes:
        message: The error description
        pc: Address of the faulting instruction (optional)
        instruction: Raw 16-bit instruction word (optional)
    """

    def __init__(
        self,
        message: str,
        pc: Optional[int] = None,
        instruction: Optional[int] = None,
    ):
        self.message = message
        self.pc = pc
        self.instruction = instruction
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with the faulting location.

        Example output:
            error at $0234 (0xF155): register dump exceeds memory
        """
        if self.pc is None:
            return f"error: {self.message}"
        if self.instruction is None:
            return f"error at ${self.pc:04X}: {self.message}"
        return f"error at ${self.pc:04X} (0x{self.instruction:04X}): {self.message}"

    def at(self, pc: int, instruction: Optional[int]) -> "ExecutionError":
        """Attach location details to an error raised below the dispatcher."""
        self.pc = pc
        self.instruction = instruction
        self.args = (self._format_message(),)
        return self


class InvalidOpcodeError(ExecutionError):
    """
    Instruction word matches none of the 35 opcodes.

    Executing past the end of a program or jumping into data usually
    produces this. It is never treated as a no-op.
    """

    def __init__(self, instruction: int, pc: Optional[int] = None):
        super().__init__(
            f"unrecognized opcode 0x{instruction:04X}",
            pc=pc,
            instruction=instruction,
        )


class StackUnderflowError(ExecutionError):
    """Return (00EE) executed with an empty call stack."""

    def __init__(self, pc: Optional[int] = None, instruction: Optional[int] = None):
        super().__init__(
            "return with empty call stack",
            pc=pc,
            instruction=instruction,
        )


class StackOverflowError(ExecutionError):
    """Call (2nnn) executed with every stack frame in use."""

    def __init__(
        self,
        depth: int,
        pc: Optional[int] = None,
        instruction: Optional[int] = None,
    ):
        self.depth = depth
        super().__init__(
            f"call stack overflow (depth {depth})",
            pc=pc,
            instruction=instruction,
        )


class MemoryBoundsError(ExecutionError):
    """
    Memory access outside the 4KB address space.

    Raised by instruction fetch, sprite reads, BCD stores and register
    dump/load whenever any byte of the access falls past $FFF.
    """

    def __init__(
        self,
        address: int,
        length: int = 1,
        operation: str = "access",
        pc: Optional[int] = None,
        instruction: Optional[int] = None,
    ):
        self.address = address
        self.length = length
        self.operation = operation
        if length == 1:
            span = f"${address:04X}"
        else:
            span = f"${address:04X}-${address + length - 1:04X}"
        super().__init__(
            self._describe(operation, span),
            pc=pc,
            instruction=instruction,
        )

    @staticmethod
    def _describe(operation: str, span: str) -> str:
        return f"{operation} at {span} exceeds memory"


class ProtectedMemoryError(MemoryBoundsError):
    """Opcode attempted to overwrite the built-in font at $000-$04F."""

    @staticmethod
    def _describe(operation: str, span: str) -> str:
        return f"{operation} at {span} overwrites the built-in font"


class MachineFaultedError(ExecutionError):
    """
    step() called on a core that already raised a fatal error.

    The original error is kept in `cause` and the core must be reset
    before it can run again.
    """

    def __init__(self, cause: Optional[ExecutionError] = None):
        self.cause = cause
        detail = f" ({cause.message})" if cause is not None else ""
        super().__init__(
            f"virtual machine is faulted{detail}; call reset() first",
            pc=cause.pc if cause is not None else None,
            instruction=cause.instruction if cause is not None else None,
        )
