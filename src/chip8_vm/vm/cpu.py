"""
CHIP-8 CPU Core
===============

The instruction-cycle engine: registers, call stack, timers, and the
fetch-decode-execute step that drives memory and the framebuffer.

Machine state:
- 16 8-bit general registers V0-VF (VF doubles as carry/borrow/collision flag)
- I: 16-bit index register
- PC: 16-bit program counter, starts at $200
- Call stack of up to 16 return addresses
- Delay and sound timers (8-bit, decremented by the host at 60 Hz)

Execution states:

    RUNNING --Fx0A, no key down--> AWAITING_KEY --key down--> RUNNING
       |                                |
       +------- ExecutionError ---------+--> FAULTED --reset()--> RUNNING

Every handler either lets PC auto-advance by 2 or sets it explicitly.
Handlers validate everything they touch before writing anything, so a
step that raises leaves registers, memory and the display unchanged.
Flag writes to VF always come after the result write and use the operand
values from before the operation.

Copyright (c) 2026 chip8-vm Contributors
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from chip8_vm.errors import (
    ExecutionError,
    MachineFaultedError,
    StackOverflowError,
    StackUnderflowError,
)
from chip8_vm.vm.decode import Instruction, Opcode, decode
from chip8_vm.vm.display import DrawPolicy, Framebuffer
from chip8_vm.vm.keyboard import KEY_COUNT
from chip8_vm.vm.memory import FONT_GLYPH_SIZE, FONT_START, PROGRAM_START, Memory

logger = logging.getLogger(__name__)


REGISTER_COUNT = 16
STACK_DEPTH = 16
FLAG = 0xF  # VF


class VMState(Enum):
    """Execution state of the core."""
    RUNNING = "running"
    AWAITING_KEY = "awaiting_key"  # Fx0A stalled, PC still on the Fx0A word
    FAULTED = "faulted"


@dataclass
class CPUState:
    """
    Complete register state.

    All values stored as Python ints but represent:
    - v: sixteen 8-bit registers
    - i, pc: 16-bit unsigned
    - stack: 16-bit return addresses, most recent last
    - delay_timer, sound_timer: 8-bit unsigned
    """
    v: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    i: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=list)
    delay_timer: int = 0
    sound_timer: int = 0


class Chip8:
    """
    CHIP-8 virtual machine core.

    Owns memory, registers, stack, timers and framebuffer. The host calls
    `step()` once per emulated cycle with the current keypad snapshot and
    redraws when `framebuffer.needs_refresh` is set.

    Example:
        >>> vm = Chip8()
        >>> vm.load_program(bytes([0x6A, 0x3C]))   # LD VA, #$3C
        >>> vm.step([False] * 16)
        False
        >>> hex(vm.registers[0xA]), hex(vm.pc)
        ('0x3c', '0x202')
    """

    def __init__(self, draw_policy: DrawPolicy = DrawPolicy.WRAP, seed: Optional[int] = None):
        """
        Create a core in its power-on state.

        Args:
            draw_policy: Edge behaviour for sprites (default WRAP)
            seed: Seed for the Cxnn random source (None = OS entropy)
        """
        self.memory = Memory()
        self.framebuffer = Framebuffer(draw_policy)
        self.seed = seed
        self._rng = random.Random(seed)
        self._cpu = CPUState()
        self._state = VMState.RUNNING
        self._fault: Optional[ExecutionError] = None
        self._wait_register = 0
        self._keys: Tuple[bool, ...] = (False,) * KEY_COUNT
        self._display_touched = False
        self.cycles = 0

    # ========================================
    # Register Properties
    # ========================================

    @property
    def pc(self) -> int:
        """Program counter (16-bit)."""
        return self._cpu.pc

    @pc.setter
    def pc(self, value: int) -> None:
        self._cpu.pc = value & 0xFFFF

    @property
    def index(self) -> int:
        """Index register I (16-bit)."""
        return self._cpu.i

    @index.setter
    def index(self, value: int) -> None:
        self._cpu.i = value & 0xFFFF

    @property
    def delay_timer(self) -> int:
        return self._cpu.delay_timer

    @delay_timer.setter
    def delay_timer(self, value: int) -> None:
        self._cpu.delay_timer = value & 0xFF

    @property
    def sound_timer(self) -> int:
        return self._cpu.sound_timer

    @sound_timer.setter
    def sound_timer(self, value: int) -> None:
        self._cpu.sound_timer = value & 0xFF

    @property
    def registers(self) -> Tuple[int, ...]:
        """Read-only copy of V0-VF. Use set_register() to change one."""
        return tuple(self._cpu.v)

    @property
    def stack(self) -> Tuple[int, ...]:
        """Return addresses, oldest first."""
        return tuple(self._cpu.stack)

    @property
    def state(self) -> VMState:
        return self._state

    @property
    def fault(self) -> Optional[ExecutionError]:
        """The error that moved the core to FAULTED, if any."""
        return self._fault

    @property
    def draw_policy(self) -> DrawPolicy:
        return self.framebuffer.policy

    # ========================================
    # Host Interface
    # ========================================

    def reset(self) -> None:
        """
        Return to the power-on state.

        Memory is zeroed (font reinstalled), registers, timers and stack
        cleared, PC set to $200 and the display blanked in place. The
        random source is reseeded so seeded runs repeat exactly.
        """
        self.memory.reset()
        self.framebuffer.reset()
        self._rng.seed(self.seed)
        self._cpu = CPUState()
        self._state = VMState.RUNNING
        self._fault = None
        self._wait_register = 0
        self._keys = (False,) * KEY_COUNT
        self._display_touched = False
        self.cycles = 0
        logger.info("CHIP-8 core reset")

    def load_program(self, program: bytes) -> None:
        """
        Copy a program image to $200.

        Raises:
            ProgramTooLargeError: If the image exceeds 3584 bytes
        """
        self.memory.load_program(program)

    def set_register(self, index: int, value: int) -> None:
        """
        Poke a general register outside of step().

        Args:
            index: Register number 0-15
            value: New value (masked to 8 bits)

        Raises:
            ValueError: If index is not 0-15
        """
        if not 0 <= index < REGISTER_COUNT:
            raise ValueError(f"Invalid register index: {index} (must be 0-15)")
        self._cpu.v[index] = value & 0xFF

    def decrement_timers(self) -> None:
        """Count both timers down by one, stopping at zero (60 Hz tick)."""
        if self._cpu.delay_timer > 0:
            self._cpu.delay_timer -= 1
        if self._cpu.sound_timer > 0:
            self._cpu.sound_timer -= 1

    # ========================================
    # Execution
    # ========================================

    def step(self, keys: Optional[Sequence[bool]] = None) -> bool:
        """
        Execute one instruction cycle.

        Args:
            keys: 16-element keypad state for this cycle (None = no keys)

        Returns:
            True if this step cleared or drew to the framebuffer

        Raises:
            ValueError: If keys is not 16 elements long
            ExecutionError: On any fatal error (core becomes FAULTED)
            MachineFaultedError: If the core is already FAULTED
        """
        self._begin(keys)
        if self._state is VMState.AWAITING_KEY:
            self._poll_key_wait()
            return False

        pc = self._cpu.pc
        try:
            word = self.memory.read_word(pc)
        except ExecutionError as e:
            self._raise_fault(e, pc, None)
        return self._run(word, pc)

    def execute(self, word: int, keys: Optional[Sequence[bool]] = None) -> bool:
        """
        Execute a single instruction word at the current PC.

        The word is not fetched from memory; PC advances (or jumps) exactly
        as it would under step(). While a key wait is pending the word is
        ignored and the call only re-polls input, same as step().

        Args:
            word: 16-bit instruction word
            keys: 16-element keypad state (None = no keys)

        Returns:
            True if the instruction cleared or drew to the framebuffer
        """
        self._begin(keys)
        if self._state is VMState.AWAITING_KEY:
            self._poll_key_wait()
            return False
        return self._run(word & 0xFFFF, self._cpu.pc)

    def _begin(self, keys: Optional[Sequence[bool]]) -> None:
        if self._state is VMState.FAULTED:
            raise MachineFaultedError(self._fault)
        if keys is None:
            self._keys = (False,) * KEY_COUNT
        else:
            if len(keys) != KEY_COUNT:
                raise ValueError(f"Keyboard state must have {KEY_COUNT} entries, got {len(keys)}")
            self._keys = tuple(bool(k) for k in keys)
        self._display_touched = False

    def _run(self, word: int, pc: int) -> bool:
        try:
            instruction = decode(word)
            next_pc = self._dispatch(instruction)
        except ExecutionError as e:
            self._raise_fault(e, pc, word)

        self._cpu.pc = (pc + 2 if next_pc is None else next_pc) & 0xFFFF
        self.cycles += 1
        return self._display_touched

    def _raise_fault(self, error: ExecutionError, pc: int, word: Optional[int]) -> None:
        if error.pc is None:
            error.at(pc, word)
        self._state = VMState.FAULTED
        self._fault = error
        raise error

    def _poll_key_wait(self) -> None:
        pressed = self._lowest_key()
        if pressed is None:
            return
        self._cpu.v[self._wait_register] = pressed
        self._cpu.pc = (self._cpu.pc + 2) & 0xFFFF
        self._state = VMState.RUNNING
        logger.debug(f"Key wait satisfied: V{self._wait_register:X} = {pressed:X}")

    def _lowest_key(self) -> Optional[int]:
        for key, down in enumerate(self._keys):
            if down:
                return key
        return None

    def _skip_if(self, condition: bool) -> Optional[int]:
        return (self._cpu.pc + 4) & 0xFFFF if condition else None

    # ========================================
    # Dispatch
    # ========================================

    def _dispatch(self, ins: Instruction) -> Optional[int]:
        """
        Execute a decoded instruction.

        Returns:
            The new PC if the handler set it explicitly, else None
        """
        v = self._cpu.v
        x, y = ins.x, ins.y

        match ins.opcode:
            case Opcode.SYS:
                logger.debug(f"Ignoring machine-code call SYS ${ins.nnn:03X}")
            case Opcode.CLS:
                self.framebuffer.clear()
                self._display_touched = True
            case Opcode.RET:
                return self._op_ret()
            case Opcode.JP:
                return ins.nnn
            case Opcode.CALL:
                return self._op_call(ins.nnn)
            case Opcode.SE_BYTE:
                return self._skip_if(v[x] == ins.nn)
            case Opcode.SNE_BYTE:
                return self._skip_if(v[x] != ins.nn)
            case Opcode.SE_REG:
                return self._skip_if(v[x] == v[y])
            case Opcode.SNE_REG:
                return self._skip_if(v[x] != v[y])
            case Opcode.LD_BYTE:
                v[x] = ins.nn
            case Opcode.ADD_BYTE:
                v[x] = (v[x] + ins.nn) & 0xFF
            case Opcode.LD_REG:
                v[x] = v[y]
            case Opcode.OR:
                v[x] |= v[y]
            case Opcode.AND:
                v[x] &= v[y]
            case Opcode.XOR:
                v[x] ^= v[y]
            case Opcode.ADD_REG:
                a, b = v[x], v[y]
                v[x] = (a + b) & 0xFF
                v[FLAG] = 1 if a + b > 0xFF else 0
            case Opcode.SUB:
                a, b = v[x], v[y]
                v[x] = (a - b) & 0xFF
                v[FLAG] = 1 if a >= b else 0
            case Opcode.SUBN:
                a, b = v[x], v[y]
                v[x] = (b - a) & 0xFF
                v[FLAG] = 1 if b >= a else 0
            case Opcode.SHR:
                a = v[x]
                v[x] = a >> 1
                v[FLAG] = a & 0x01
            case Opcode.SHL:
                a = v[x]
                v[x] = (a << 1) & 0xFF
                v[FLAG] = (a >> 7) & 0x01
            case Opcode.LD_I:
                self._cpu.i = ins.nnn
            case Opcode.JP_V0:
                return (v[0] + ins.nnn) & 0xFFFF
            case Opcode.RND:
                v[x] = self._rng.randint(0, 0xFF) & ins.nn
            case Opcode.DRW:
                self._op_draw(x, y, ins.n)
            case Opcode.SKP:
                return self._skip_if(self._keys[v[x] & 0x0F])
            case Opcode.SKNP:
                return self._skip_if(not self._keys[v[x] & 0x0F])
            case Opcode.LD_VX_DT:
                v[x] = self._cpu.delay_timer
            case Opcode.LD_VX_K:
                return self._op_wait_key(x)
            case Opcode.LD_DT_VX:
                self._cpu.delay_timer = v[x]
            case Opcode.LD_ST_VX:
                self._cpu.sound_timer = v[x]
            case Opcode.ADD_I:
                self._cpu.i = (self._cpu.i + v[x]) & 0xFFFF
            case Opcode.LD_F:
                self._cpu.i = (FONT_START + v[x] * FONT_GLYPH_SIZE) & 0xFFFF
            case Opcode.LD_B:
                value = v[x]
                self.memory.write_block(
                    self._cpu.i,
                    (value // 100, (value // 10) % 10, value % 10),
                    operation="BCD store",
                )
            case Opcode.LD_MEM_VX:
                self.memory.write_block(self._cpu.i, v[:x + 1], operation="register dump")
            case Opcode.LD_VX_MEM:
                v[:x + 1] = self.memory.read_block(self._cpu.i, x + 1, operation="register load")
        return None

    # ========================================
    # Handlers with more than one effect
    # ========================================

    def _op_ret(self) -> int:
        if not self._cpu.stack:
            raise StackUnderflowError()
        return self._cpu.stack.pop()

    def _op_call(self, target: int) -> int:
        if len(self._cpu.stack) >= STACK_DEPTH:
            raise StackOverflowError(STACK_DEPTH)
        self._cpu.stack.append((self._cpu.pc + 2) & 0xFFFF)
        return target

    def _op_draw(self, x: int, y: int, height: int) -> None:
        v = self._cpu.v
        vx, vy = v[x], v[y]
        sprite = self.memory.read_block(self._cpu.i, height, operation="sprite read")
        collision = self.framebuffer.draw_sprite(vx, vy, sprite)
        v[FLAG] = 1 if collision else 0
        self._display_touched = True
        if collision:
            logger.debug(f"Sprite collision drawing {height} rows at ({vx}, {vy})")

    def _op_wait_key(self, x: int) -> Optional[int]:
        pressed = self._lowest_key()
        if pressed is not None:
            self._cpu.v[x] = pressed
            return None

        self._wait_register = x
        self._state = VMState.AWAITING_KEY
        logger.debug(f"Waiting for key into V{x:X}")
        return self._cpu.pc

    def __repr__(self) -> str:
        return (
            f"Chip8(pc=${self.pc:04X}, i=${self.index:04X}, "
            f"state={self._state.name}, cycles={self.cycles})"
        )
