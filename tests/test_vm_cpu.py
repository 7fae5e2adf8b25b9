"""
CHIP-8 CPU Unit Tests
=====================

Comprehensive tests for the CHIP-8 core, covering:
- Register access and masking
- All instruction groups
- VF flag ordering
- Program counter advance rules
- Key-wait state machine
- Fatal errors, the FAULTED state and reset

Copyright (c) 2026 chip8-vm Contributors
"""

import logging

import pytest
from chip8_vm.errors import (
    ExecutionError,
    InvalidOpcodeError,
    MachineFaultedError,
    MemoryBoundsError,
    ProgramTooLargeError,
    ProtectedMemoryError,
    StackOverflowError,
    StackUnderflowError,
)
from chip8_vm.vm.cpu import STACK_DEPTH, Chip8, VMState
from chip8_vm.vm.display import DrawPolicy
from chip8_vm.vm.memory import FONT_DATA, PROGRAM_START

NO_KEYS = [False] * 16


def keys_down(*indices):
    """Keyboard vector with the given keys pressed."""
    return [i in indices for i in range(16)]


# =============================================================================
# CPU Fixture
# =============================================================================

@pytest.fixture
def vm():
    """Core with a fixed random seed."""
    return Chip8(seed=1234)


def run(vm, *words, keys=None):
    """Execute instruction words in order, returning the last step result."""
    result = False
    for word in words:
        result = vm.execute(word, keys)
    return result


# =============================================================================
# Register Tests
# =============================================================================

class TestRegisters:
    """Test initial state and register access."""

    def test_initial_state(self, vm):
        assert vm.pc == PROGRAM_START
        assert vm.index == 0
        assert vm.registers == (0,) * 16
        assert vm.stack == ()
        assert vm.delay_timer == 0
        assert vm.sound_timer == 0
        assert vm.state is VMState.RUNNING
        assert vm.fault is None

    def test_set_register(self, vm):
        vm.set_register(0xA, 0x42)
        assert vm.registers[0xA] == 0x42

    def test_set_register_masks(self, vm):
        vm.set_register(0, 0x1FF)
        assert vm.registers[0] == 0xFF

    @pytest.mark.parametrize("index", [-1, 16])
    def test_set_register_bad_index(self, vm, index):
        with pytest.raises(ValueError):
            vm.set_register(index, 0)

    def test_registers_read_only(self, vm):
        regs = vm.registers
        with pytest.raises(TypeError):
            regs[0] = 1

    def test_pc_and_index_16bit(self, vm):
        vm.pc = 0x1_0002
        vm.index = 0x1_0003
        assert vm.pc == 0x0002
        assert vm.index == 0x0003

    def test_timers_8bit(self, vm):
        vm.delay_timer = 0x1FF
        assert vm.delay_timer == 0xFF


# =============================================================================
# Load and Arithmetic
# =============================================================================

class TestLoad:
    """Test 6xnn, 8xy0 and Annn."""

    def test_load_byte(self, vm):
        run(vm, 0x6A3C)
        assert vm.registers[0xA] == 0x3C
        assert vm.pc == 0x202

    def test_load_register(self, vm):
        vm.set_register(2, 0x99)
        run(vm, 0x8120)
        assert vm.registers[1] == 0x99

    def test_load_index(self, vm):
        run(vm, 0xA123)
        assert vm.index == 0x123


class TestAdd:
    """Test 7xnn and 8xy4."""

    def test_add_byte_wraps_without_flag(self, vm):
        vm.set_register(1, 0xFF)
        vm.set_register(0xF, 7)
        run(vm, 0x7102)
        assert vm.registers[1] == 0x01
        assert vm.registers[0xF] == 7

    def test_add_no_carry(self, vm):
        vm.set_register(5, 90)
        vm.set_register(0xC, 56)
        run(vm, 0x85C4)
        assert vm.registers[5] == 146
        assert vm.registers[0xF] == 0

    def test_add_with_carry(self, vm):
        vm.set_register(5, 160)
        vm.set_register(0xC, 160)
        run(vm, 0x85C4)
        assert vm.registers[5] == 64
        assert vm.registers[0xF] == 1

    @pytest.mark.parametrize("a,b", [(0, 0), (255, 1), (128, 127), (200, 100), (255, 255)])
    def test_add_property(self, vm, a, b):
        vm.set_register(1, a)
        vm.set_register(2, b)
        run(vm, 0x8124)
        assert vm.registers[1] == (a + b) % 256
        assert vm.registers[0xF] == (1 if a + b > 255 else 0)

    def test_add_all_operands(self, vm):
        for a in range(256):
            for b in range(256):
                vm.set_register(1, a)
                vm.set_register(2, b)
                vm.execute(0x8124)
                assert vm.registers[1] == (a + b) % 256
                assert vm.registers[0xF] == (1 if a + b > 255 else 0)

    def test_flag_overrides_vf_target(self, vm):
        """When Vx is VF, the carry wins over the sum."""
        vm.set_register(0xF, 200)
        vm.set_register(1, 100)
        run(vm, 0x8F14)
        assert vm.registers[0xF] == 1


class TestSubtract:
    """Test 8xy5 and 8xy7."""

    @pytest.mark.parametrize("a,b", [(5, 3), (3, 5), (7, 7), (0, 255), (255, 0)])
    def test_sub_property(self, vm, a, b):
        vm.set_register(1, a)
        vm.set_register(2, b)
        run(vm, 0x8125)
        assert vm.registers[1] == (a - b) % 256
        assert vm.registers[0xF] == (1 if a >= b else 0)

    @pytest.mark.parametrize("a,b", [(5, 3), (3, 5), (7, 7)])
    def test_subn_property(self, vm, a, b):
        vm.set_register(1, a)
        vm.set_register(2, b)
        run(vm, 0x8127)
        assert vm.registers[1] == (b - a) % 256
        assert vm.registers[0xF] == (1 if b >= a else 0)

    def test_sub_and_subn_all_operands(self, vm):
        for a in range(256):
            for b in range(256):
                vm.set_register(1, a)
                vm.set_register(2, b)
                vm.execute(0x8125)
                assert vm.registers[1] == (a - b) % 256
                assert vm.registers[0xF] == (1 if a >= b else 0)

                vm.set_register(1, a)
                vm.execute(0x8127)
                assert vm.registers[1] == (b - a) % 256
                assert vm.registers[0xF] == (1 if b >= a else 0)

    def test_sub_flag_uses_original_operands(self, vm):
        """VF as Vy: the borrow is computed before VF is overwritten."""
        vm.set_register(1, 10)
        vm.set_register(0xF, 3)
        run(vm, 0x81F5)
        assert vm.registers[1] == 7
        assert vm.registers[0xF] == 1


class TestLogic:
    """Test 8xy1, 8xy2 and 8xy3 (VF unaffected)."""

    @pytest.mark.parametrize("word,expected", [
        (0x8121, 0b1110),
        (0x8122, 0b1000),
        (0x8123, 0b0110),
    ])
    def test_logic(self, vm, word, expected):
        vm.set_register(1, 0b1100)
        vm.set_register(2, 0b1010)
        vm.set_register(0xF, 9)
        run(vm, word)
        assert vm.registers[1] == expected
        assert vm.registers[0xF] == 9


class TestShift:
    """Test 8xy6 and 8xyE."""

    def test_shift_right(self, vm):
        vm.set_register(1, 0x05)
        run(vm, 0x8106)
        assert vm.registers[1] == 0x02
        assert vm.registers[0xF] == 1

    def test_shift_right_even(self, vm):
        vm.set_register(1, 0x04)
        run(vm, 0x8106)
        assert vm.registers[1] == 0x02
        assert vm.registers[0xF] == 0

    def test_shift_left(self, vm):
        vm.set_register(1, 0x81)
        run(vm, 0x810E)
        assert vm.registers[1] == 0x02
        assert vm.registers[0xF] == 1

    def test_shift_left_no_overflow(self, vm):
        vm.set_register(1, 0x40)
        run(vm, 0x810E)
        assert vm.registers[1] == 0x80
        assert vm.registers[0xF] == 0

    def test_shift_ignores_vy(self, vm):
        vm.set_register(1, 0x10)
        vm.set_register(2, 0xFF)
        run(vm, 0x8126)
        assert vm.registers[1] == 0x08

    def test_shift_vf_itself(self, vm):
        """Shifting VF leaves the displaced bit in VF."""
        vm.set_register(0xF, 0x81)
        run(vm, 0x8F06)
        assert vm.registers[0xF] == 1


class TestRandom:
    """Test Cxnn."""

    def test_mask_applied(self, vm):
        for _ in range(50):
            run(vm, 0xC10F)
            assert vm.registers[1] <= 0x0F

    def test_zero_mask(self, vm):
        run(vm, 0xC100)
        assert vm.registers[1] == 0

    def test_seed_reproducible(self):
        sequences = []
        for vm in (Chip8(seed=7), Chip8(seed=7)):
            values = []
            for _ in range(10):
                run(vm, 0xC1FF)
                values.append(vm.registers[1])
            sequences.append(values)
        assert sequences[0] == sequences[1]

    def test_reset_reseeds(self, vm):
        run(vm, 0xC1FF)
        first = vm.registers[1]
        vm.reset()
        run(vm, 0xC1FF)
        assert vm.registers[1] == first


# =============================================================================
# Control Flow
# =============================================================================

class TestJumps:
    """Test 1nnn, 2nnn, 00EE and Bnnn."""

    def test_jump(self, vm):
        run(vm, 0x1234)
        assert vm.pc == 0x234

    def test_call_and_return(self, vm):
        run(vm, 0x2300)
        assert vm.pc == 0x300
        assert vm.stack == (0x202,)
        run(vm, 0x00EE)
        assert vm.pc == 0x202
        assert vm.stack == ()

    def test_nested_calls(self, vm):
        run(vm, 0x2300, 0x2400)
        assert vm.stack == (0x202, 0x302)
        run(vm, 0x00EE)
        assert vm.pc == 0x302

    def test_jump_with_offset(self, vm):
        vm.set_register(0, 0x10)
        run(vm, 0xB300)
        assert vm.pc == 0x310

    def test_sys_is_noop(self, vm):
        run(vm, 0x0123)
        assert vm.pc == 0x202
        assert vm.registers == (0,) * 16


class TestSkips:
    """Test 3xnn, 4xnn, 5xy0 and 9xy0."""

    def test_skip_equal_from_arbitrary_pc(self, vm):
        vm.pc = 46
        vm.set_register(0xB, 0x35)
        run(vm, 0x3B35)
        assert vm.pc == 50

    @pytest.mark.parametrize("word,v1,expected_pc", [
        (0x3142, 0x42, 0x204),
        (0x3142, 0x41, 0x202),
        (0x4142, 0x42, 0x202),
        (0x4142, 0x41, 0x204),
    ])
    def test_skip_immediate(self, vm, word, v1, expected_pc):
        vm.set_register(1, v1)
        run(vm, word)
        assert vm.pc == expected_pc

    @pytest.mark.parametrize("word,v2,expected_pc", [
        (0x5120, 5, 0x204),
        (0x5120, 6, 0x202),
        (0x9120, 5, 0x202),
        (0x9120, 6, 0x204),
    ])
    def test_skip_register(self, vm, word, v2, expected_pc):
        vm.set_register(1, 5)
        vm.set_register(2, v2)
        run(vm, word)
        assert vm.pc == expected_pc


# =============================================================================
# Display
# =============================================================================

class TestDisplayOpcodes:
    """Test 00E0 and Dxyn."""

    def test_draw_font_glyph(self, vm):
        assert run(vm, 0xF029, 0xD015) is True   # I = glyph 0, draw at (0, 0)
        assert vm.framebuffer.get_pixel(0, 0)
        assert vm.framebuffer.count_lit() == 14
        assert vm.registers[0xF] == 0
        assert vm.index == 0

    def test_draw_twice_restores(self, vm):
        run(vm, 0xD015)
        run(vm, 0xD015)
        assert vm.framebuffer.count_lit() == 0
        assert vm.registers[0xF] == 1

    def test_draw_twice_over_lit_cells_restores(self, vm):
        vm.set_register(2, 2)
        run(vm, 0xF229, 0xD005)          # glyph 2 at (0, 0)
        before = vm.framebuffer.get_rows()

        vm.set_register(3, 1)
        vm.set_register(4, 2)
        run(vm, 0xA000, 0xD345)          # glyph 0 overlapping at (1, 2)
        assert vm.registers[0xF] == 1
        run(vm, 0xD345)
        assert vm.registers[0xF] == 1
        assert vm.framebuffer.get_rows() == before

    def test_collision_log_uses_coordinates(self, vm, caplog):
        vm.set_register(1, 7)
        run(vm, 0xD015)                  # glyph 0 at (0, 7)
        vm.set_register(0xF, 7)
        with caplog.at_level(logging.DEBUG, logger="chip8_vm.vm.cpu"):
            run(vm, 0xD0F5)              # Vy is VF, same spot
        assert vm.registers[0xF] == 1
        assert "at (0, 7)" in caplog.text

    def test_draw_uses_registers_for_position(self, vm):
        vm.set_register(3, 10)
        vm.set_register(4, 20)
        run(vm, 0xA000, 0xD341)
        assert vm.framebuffer.get_pixel(10, 20)

    def test_clear(self, vm):
        run(vm, 0xD015)
        vm.framebuffer.acknowledge()
        assert run(vm, 0x00E0) is True
        assert vm.framebuffer.count_lit() == 0
        assert vm.framebuffer.needs_refresh

    def test_non_display_step_returns_false(self, vm):
        assert run(vm, 0x6000) is False

    def test_clip_policy(self):
        vm = Chip8(draw_policy=DrawPolicy.CLIP)
        vm.set_register(0, 62)
        run(vm, 0xA000, 0xD011)   # F0 at x=62: two pixels survive
        assert vm.framebuffer.count_lit() == 2
        assert vm.draw_policy is DrawPolicy.CLIP


# =============================================================================
# Keys
# =============================================================================

class TestKeySkips:
    """Test Ex9E and ExA1."""

    def test_skip_if_pressed(self, vm):
        vm.set_register(1, 5)
        run(vm, 0xE19E, keys=keys_down(5))
        assert vm.pc == 0x204

    def test_no_skip_if_released(self, vm):
        vm.set_register(1, 5)
        run(vm, 0xE19E, keys=NO_KEYS)
        assert vm.pc == 0x202

    def test_skip_if_not_pressed(self, vm):
        vm.set_register(1, 5)
        run(vm, 0xE1A1, keys=keys_down(4))
        assert vm.pc == 0x204

    def test_no_skip_if_not_pressed_but_held(self, vm):
        vm.set_register(1, 5)
        run(vm, 0xE1A1, keys=keys_down(5))
        assert vm.pc == 0x202

    def test_low_nibble_of_vx(self, vm):
        vm.set_register(1, 0x15)
        run(vm, 0xE19E, keys=keys_down(5))
        assert vm.pc == 0x204

    def test_bad_key_vector(self, vm):
        with pytest.raises(ValueError):
            vm.execute(0xE19E, [False] * 15)
        assert vm.state is VMState.RUNNING


class TestKeyWait:
    """Test the Fx0A stall state machine."""

    def test_key_already_down(self, vm):
        run(vm, 0xF30A, keys=keys_down(9, 3))
        assert vm.registers[3] == 3
        assert vm.pc == 0x202
        assert vm.state is VMState.RUNNING

    def test_stall_until_key(self, vm):
        vm.load_program(bytes([0xF3, 0x0A, 0xFF, 0xFF]))
        vm.step(NO_KEYS)
        assert vm.state is VMState.AWAITING_KEY
        assert vm.pc == 0x200

        for _ in range(5):
            assert vm.step(NO_KEYS) is False
        assert vm.pc == 0x200

        vm.step(keys_down(0xC))
        assert vm.registers[3] == 0xC
        assert vm.pc == 0x202
        assert vm.state is VMState.RUNNING

    def test_waiting_does_not_execute(self, vm):
        """While stalled, the instruction at PC is not re-run."""
        vm.load_program(bytes([0xF3, 0x0A]))
        vm.step(NO_KEYS)
        cycles = vm.cycles
        vm.step(NO_KEYS)
        assert vm.cycles == cycles


# =============================================================================
# Timers
# =============================================================================

class TestTimers:
    """Test Fx07, Fx15, Fx18 and host decrementing."""

    def test_set_and_read_delay(self, vm):
        vm.set_register(1, 30)
        run(vm, 0xF115, 0xF207)
        assert vm.delay_timer == 30
        assert vm.registers[2] == 30

    def test_set_sound(self, vm):
        vm.set_register(1, 4)
        run(vm, 0xF118)
        assert vm.sound_timer == 4

    def test_core_does_not_decrement(self, vm):
        vm.delay_timer = 5
        run(vm, 0x6000, 0x6000)
        assert vm.delay_timer == 5

    def test_decrement_stops_at_zero(self, vm):
        vm.delay_timer = 1
        vm.sound_timer = 2
        vm.decrement_timers()
        vm.decrement_timers()
        assert vm.delay_timer == 0
        assert vm.sound_timer == 0


# =============================================================================
# Index and Memory Transfer
# =============================================================================

class TestIndexOpcodes:
    """Test Fx1E, Fx29, Fx33, Fx55 and Fx65."""

    def test_add_to_index(self, vm):
        vm.index = 0x300
        vm.set_register(1, 0x20)
        run(vm, 0xF11E)
        assert vm.index == 0x320

    def test_add_to_index_wraps_16bit(self, vm):
        vm.index = 0xFFF0
        vm.set_register(1, 0x20)
        run(vm, 0xF11E)
        assert vm.index == 0x0010

    @pytest.mark.parametrize("value,address", [(0x0, 0), (0xA, 50), (0x1A, 130), (0xFF, 1275)])
    def test_font_address(self, vm, value, address):
        vm.set_register(1, value)
        run(vm, 0xF129)
        assert vm.index == address

    def test_bcd(self, vm):
        vm.set_register(0xC, 129)
        run(vm, 0xA350, 0xFC33)
        assert vm.memory.read_block(0x350, 3) == bytes([1, 2, 9])
        assert vm.index == 0x350

    def test_dump_and_load_round_trip(self, vm):
        for reg, value in enumerate([11, 22, 33, 44]):
            vm.set_register(reg, value)
        run(vm, 0xA300, 0xF355)
        assert vm.memory.read_block(0x300, 4) == bytes([11, 22, 33, 44])

        for reg in range(4):
            vm.set_register(reg, 0)
        run(vm, 0xF365)
        assert vm.registers[:4] == (11, 22, 33, 44)
        assert vm.index == 0x300

    def test_load_only_up_to_x(self, vm):
        vm.memory.write_block(0x300, [1, 2, 3])
        vm.set_register(2, 99)
        run(vm, 0xA300, 0xF165)
        assert vm.registers[:3] == (1, 2, 99)


# =============================================================================
# Fatal Errors
# =============================================================================

class TestFatalErrors:
    """Test errors, the FAULTED state and all-or-nothing steps."""

    def test_invalid_opcode_location(self, vm):
        vm.load_program(bytes([0xFF, 0xFF]))
        with pytest.raises(InvalidOpcodeError) as exc_info:
            vm.step(NO_KEYS)
        assert exc_info.value.pc == 0x200
        assert exc_info.value.instruction == 0xFFFF
        assert "error at $0200 (0xFFFF)" in str(exc_info.value)
        assert vm.state is VMState.FAULTED
        assert vm.fault is exc_info.value

    def test_stack_underflow(self, vm):
        with pytest.raises(StackUnderflowError):
            run(vm, 0x00EE)
        assert vm.pc == 0x200

    def test_stack_overflow(self, vm):
        for _ in range(STACK_DEPTH):
            run(vm, 0x2300)
        with pytest.raises(StackOverflowError) as exc_info:
            run(vm, 0x2300)
        assert exc_info.value.depth == STACK_DEPTH
        assert len(vm.stack) == STACK_DEPTH

    def test_fetch_past_end(self, vm):
        vm.pc = 0xFFF
        with pytest.raises(MemoryBoundsError) as exc_info:
            vm.step(NO_KEYS)
        assert exc_info.value.pc == 0xFFF
        assert exc_info.value.instruction is None

    def test_dump_past_end_is_atomic(self, vm):
        vm.index = 0xFFE
        vm.set_register(0, 1)
        with pytest.raises(MemoryBoundsError):
            run(vm, 0xF355)
        assert vm.memory.read(0xFFE) == 0
        assert vm.pc == 0x200

    def test_bcd_past_end(self, vm):
        vm.index = 0xFFE
        with pytest.raises(MemoryBoundsError):
            run(vm, 0xF033)

    def test_load_past_end_is_atomic(self, vm):
        vm.index = 0xFFE
        vm.set_register(0, 42)
        with pytest.raises(MemoryBoundsError):
            run(vm, 0xF265)
        assert vm.registers[0] == 42

    def test_sprite_past_end_leaves_display(self, vm):
        vm.index = 0xFFE
        with pytest.raises(MemoryBoundsError):
            run(vm, 0xD015)
        assert vm.framebuffer.count_lit() == 0
        assert not vm.framebuffer.needs_refresh

    def test_write_into_font(self, vm):
        vm.index = 0x10
        with pytest.raises(ProtectedMemoryError):
            run(vm, 0xF055)
        assert vm.memory.read_block(0, len(FONT_DATA)) == FONT_DATA

    def test_step_after_fault(self, vm):
        with pytest.raises(StackUnderflowError) as first:
            run(vm, 0x00EE)
        with pytest.raises(MachineFaultedError) as exc_info:
            vm.step(NO_KEYS)
        assert exc_info.value.cause is first.value
        assert isinstance(exc_info.value, ExecutionError)

    def test_reset_clears_fault(self, vm):
        with pytest.raises(StackUnderflowError):
            run(vm, 0x00EE)
        vm.reset()
        assert vm.state is VMState.RUNNING
        run(vm, 0x6001)
        assert vm.registers[0] == 1

    def test_program_too_large_not_fatal(self, vm):
        with pytest.raises(ProgramTooLargeError):
            vm.load_program(bytes(4000))
        assert vm.state is VMState.RUNNING


# =============================================================================
# Reset and Program Execution
# =============================================================================

class TestReset:
    """Test returning to the power-on state."""

    def test_reset_state(self, vm):
        vm.load_program(bytes([0x60, 0x05]))
        run(vm, 0x6105, 0x2300, 0xA000, 0xD015)
        vm.delay_timer = 9
        framebuffer = vm.framebuffer

        vm.reset()
        assert vm.pc == PROGRAM_START
        assert vm.index == 0
        assert vm.registers == (0,) * 16
        assert vm.stack == ()
        assert vm.delay_timer == 0
        assert vm.memory.read(PROGRAM_START) == 0
        assert vm.framebuffer is framebuffer
        assert vm.framebuffer.count_lit() == 0


class TestPrograms:
    """Test short programs run with step()."""

    def test_counting_loop(self, vm):
        # V0 += 1 until V0 == 5, then spin
        vm.load_program(bytes([
            0x70, 0x01,   # $200: ADD V0, #1
            0x30, 0x05,   # $202: SE  V0, #5
            0x12, 0x00,   # $204: JP  $200
            0x12, 0x06,   # $206: JP  $206
        ]))
        for _ in range(20):
            vm.step(NO_KEYS)
        assert vm.registers[0] == 5
        assert vm.pc == 0x206

    def test_subroutine(self, vm):
        vm.load_program(bytes([
            0x22, 0x06,   # $200: CALL $206
            0x61, 0x02,   # $202: LD V1, #2
            0x12, 0x04,   # $204: JP $204
            0x60, 0x01,   # $206: LD V0, #1
            0x00, 0xEE,   # $208: RET
        ]))
        for _ in range(5):
            vm.step(NO_KEYS)
        assert vm.registers[0] == 1
        assert vm.registers[1] == 2
        assert vm.stack == ()

    def test_cycle_counter(self, vm):
        vm.load_program(bytes([0x12, 0x00]))
        for _ in range(3):
            vm.step()
        assert vm.cycles == 3
