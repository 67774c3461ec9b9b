"""Tests for Chip8Registry opcode primitives."""

import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_core.decode import Op, decode
from chip8_core.registry import Chip8Registry, get_registry
from chip8_core.state import (
    AwaitingKey,
    StackOverflowError,
    StackUnderflowError,
    create_initial_state,
)


@pytest.fixture
def registry():
    return Chip8Registry()


@pytest.fixture
def state():
    return create_initial_state(b"")


def execute(registry, state, opcode):
    registry.execute(state, decode(opcode))
    return state


class TestRegistryStructure:
    """Test registry construction and freezing."""

    def test_every_op_has_handler(self, registry):
        assert registry.get_valid_keys() == set(Op)

    def test_frozen(self, registry):
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError):
            registry.register(Op.CLS, lambda state, ins: None)

    def test_singleton(self):
        assert get_registry() is get_registry()

    def test_cycle_count_increments(self, registry, state):
        execute(registry, state, 0x6001)
        assert state.cycle_count == 1

    def test_invalid_does_not_count(self, registry, state):
        execute(registry, state, 0xFFFF)
        assert state.cycle_count == 0


class TestControlFlow:
    """00E0, 00EE, 1nnn, 2nnn, Bnnn."""

    def test_cls(self, registry, state):
        state.display[5] = True
        execute(registry, state, 0x00E0)
        assert not any(state.display)
        assert state.render is True
        assert state.pc == 0x202

    def test_jp(self, registry, state):
        execute(registry, state, 0x1ABC)
        assert state.pc == 0xABC

    def test_call_pushes_current_pc(self, registry, state):
        execute(registry, state, 0x2400)
        assert state.pc == 0x400
        assert state.stack == [0x200]
        assert state.sp == 1

    def test_ret_resumes_after_call(self, registry, state):
        execute(registry, state, 0x2400)
        execute(registry, state, 0x00EE)
        assert state.pc == 0x202
        assert state.sp == 0

    def test_ret_empty_stack(self, registry, state):
        with pytest.raises(StackUnderflowError):
            execute(registry, state, 0x00EE)
        assert state.pc == 0x200

    def test_call_full_stack(self, registry, state):
        for _ in range(16):
            execute(registry, state, 0x2200)
        with pytest.raises(StackOverflowError):
            execute(registry, state, 0x2200)
        assert state.sp == 16

    def test_jp_v0_uses_x_register(self, registry, state):
        """Bnnn adds the register named by the x nibble."""
        state.v[0] = 0x50
        state.v[2] = 0x04
        execute(registry, state, 0xB210)
        assert state.pc == 0x214


class TestSkips:
    """3xkk, 4xkk, 5xy0, 9xy0, Ex9E, ExA1."""

    @pytest.mark.parametrize("opcode,v1,v2,expected_pc", [
        (0x3142, 0x42, 0, 0x204),
        (0x3142, 0x41, 0, 0x202),
        (0x4142, 0x41, 0, 0x204),
        (0x4142, 0x42, 0, 0x202),
        (0x5120, 0x07, 0x07, 0x204),
        (0x5120, 0x07, 0x08, 0x202),
        (0x9120, 0x07, 0x08, 0x204),
        (0x9120, 0x07, 0x07, 0x202),
    ])
    def test_register_skips(self, registry, state, opcode, v1, v2, expected_pc):
        state.v[1] = v1
        state.v[2] = v2
        execute(registry, state, opcode)
        assert state.pc == expected_pc

    def test_skp_pressed(self, registry, state):
        state.v[1] = 5
        state.keyboard[5] = True
        execute(registry, state, 0xE19E)
        assert state.pc == 0x204

    def test_skp_not_pressed(self, registry, state):
        state.v[1] = 5
        execute(registry, state, 0xE19E)
        assert state.pc == 0x202

    def test_sknp_not_pressed(self, registry, state):
        state.v[1] = 5
        execute(registry, state, 0xE1A1)
        assert state.pc == 0x204

    def test_sknp_pressed(self, registry, state):
        state.v[1] = 5
        state.keyboard[5] = True
        execute(registry, state, 0xE1A1)
        assert state.pc == 0x202

    def test_key_index_uses_low_nibble(self, registry, state):
        state.v[1] = 0x15
        state.keyboard[5] = True
        execute(registry, state, 0xE19E)
        assert state.pc == 0x204


class TestLoadAndAdd:
    """6xkk, 7xkk, 8xy0."""

    def test_ld_byte(self, registry, state):
        execute(registry, state, 0x6A7F)
        assert state.v[0xA] == 0x7F
        assert state.pc == 0x202

    def test_add_byte_wraps_without_flag(self, registry, state):
        state.v[0] = 0xFF
        state.v[0xF] = 5
        execute(registry, state, 0x7002)
        assert state.v[0] == 0x01
        assert state.v[0xF] == 5

    def test_ld_reg(self, registry, state):
        state.v[3] = 0x99
        execute(registry, state, 0x8130)
        assert state.v[1] == 0x99


class TestLogicOps:
    """8xy1, 8xy2, 8xy3 clear VF."""

    @pytest.mark.parametrize("opcode,expected", [
        (0x8011, 0xFF),
        (0x8012, 0x00),
        (0x8013, 0xFF),
    ])
    def test_logic(self, registry, state, opcode, expected):
        state.v[0] = 0x0F
        state.v[1] = 0xF0
        state.v[0xF] = 1
        execute(registry, state, opcode)
        assert state.v[0] == expected
        assert state.v[0xF] == 0
        assert state.pc == 0x202

    def test_and_overlapping(self, registry, state):
        state.v[0] = 0b1100
        state.v[1] = 0b1010
        execute(registry, state, 0x8012)
        assert state.v[0] == 0b1000


class TestArithmetic:
    """8xy4, 8xy5, 8xy7 flag rules."""

    @pytest.mark.parametrize("vx,vy,result,flag", [
        (200, 100, 44, 1),
        (100, 100, 200, 0),
        (255, 1, 0, 1),
        (0, 0, 0, 0),
    ])
    def test_add_carry(self, registry, state, vx, vy, result, flag):
        state.v[0], state.v[1] = vx, vy
        execute(registry, state, 0x8014)
        assert state.v[0] == result
        assert state.v[0xF] == flag

    @pytest.mark.parametrize("vx,vy,result,flag", [
        (5, 3, 2, 1),
        (3, 5, 254, 0),
        (7, 7, 0, 1),
        (0, 255, 1, 0),
    ])
    def test_sub_not_borrow(self, registry, state, vx, vy, result, flag):
        state.v[0], state.v[1] = vx, vy
        execute(registry, state, 0x8015)
        assert state.v[0] == result
        assert state.v[0xF] == flag

    @pytest.mark.parametrize("vx,vy,result,flag", [
        (3, 5, 2, 1),
        (5, 3, 254, 0),
        (7, 7, 0, 1),
    ])
    def test_subn_not_borrow(self, registry, state, vx, vy, result, flag):
        state.v[0], state.v[1] = vx, vy
        execute(registry, state, 0x8017)
        assert state.v[0] == result
        assert state.v[0xF] == flag

    def test_flag_written_after_result_when_x_is_vf(self, registry, state):
        """With x = F the carry overwrites the sum."""
        state.v[0xF] = 200
        state.v[1] = 100
        execute(registry, state, 0x8F14)
        assert state.v[0xF] == 1

    def test_sub_flag_wins_over_result(self, registry, state):
        state.v[0xF] = 3
        state.v[1] = 5
        execute(registry, state, 0x8F15)
        assert state.v[0xF] == 0


class TestShifts:
    """8xy6 and 8xyE."""

    def test_shr(self, registry, state):
        state.v[0] = 0x05
        execute(registry, state, 0x8016)
        assert state.v[0] == 0x02
        assert state.v[0xF] == 1

    def test_shr_even(self, registry, state):
        state.v[0] = 0x04
        execute(registry, state, 0x8016)
        assert state.v[0] == 0x02
        assert state.v[0xF] == 0

    def test_shl(self, registry, state):
        state.v[0] = 0x81
        execute(registry, state, 0x801E)
        assert state.v[0] == 0x02
        assert state.v[0xF] == 1

    def test_shl_no_high_bit(self, registry, state):
        state.v[0] = 0x41
        execute(registry, state, 0x801E)
        assert state.v[0] == 0x82
        assert state.v[0xF] == 0

    def test_shift_ignores_vy(self, registry, state):
        state.v[0] = 0x10
        state.v[1] = 0xFF
        execute(registry, state, 0x8016)
        assert state.v[0] == 0x08

    def test_shr_then_shl_loses_low_bit(self, registry, state):
        state.v[0] = 0x81
        execute(registry, state, 0x8016)
        assert state.v[0xF] == 1
        execute(registry, state, 0x801E)
        assert state.v[0] == 0x80
        assert state.v[0xF] == 0


class TestRandom:
    """Cxkk."""

    def test_rnd_masks_with_kk(self, registry):
        state = create_initial_state(b"", rng=random.Random(1234))
        expected = random.Random(1234).randint(0, 0xFF) & 0x0F
        execute(registry, state, 0xC30F)
        assert state.v[3] == expected
        assert state.pc == 0x202

    def test_rnd_zero_mask(self, registry, state):
        execute(registry, state, 0xC300)
        assert state.v[3] == 0


class TestIndexOps:
    """Annn, Fx1E, Fx29, Fx33, Fx55, Fx65."""

    def test_ld_i(self, registry, state):
        execute(registry, state, 0xA123)
        assert state.i == 0x123

    def test_add_i(self, registry, state):
        state.i = 0x300
        state.v[2] = 0x10
        execute(registry, state, 0xF21E)
        assert state.i == 0x310
        assert state.v[0xF] == 0

    def test_add_i_wraps_16_bits(self, registry, state):
        state.i = 0xFFFF
        state.v[0] = 2
        execute(registry, state, 0xF01E)
        assert state.i == 0x0001

    @pytest.mark.parametrize("digit", [0x0, 0x7, 0xA, 0xF])
    def test_ld_f(self, registry, state, digit):
        state.v[4] = digit
        execute(registry, state, 0xF429)
        assert state.i == digit * 5

    @pytest.mark.parametrize("value,digits", [
        (205, [2, 0, 5]),
        (0, [0, 0, 0]),
        (9, [0, 0, 9]),
        (42, [0, 4, 2]),
        (255, [2, 5, 5]),
        (100, [1, 0, 0]),
    ])
    def test_ld_b(self, registry, state, value, digits):
        state.v[6] = value
        state.i = 0x300
        execute(registry, state, 0xF633)
        assert list(state.memory[0x300:0x303]) == digits
        assert state.i == 0x300

    def test_store_registers(self, registry, state):
        state.v[0:4] = [1, 2, 3, 4]
        state.i = 0x300
        execute(registry, state, 0xF355)
        assert list(state.memory[0x300:0x305]) == [1, 2, 3, 4, 0]
        assert state.i == 0x304

    def test_load_registers(self, registry, state):
        state.memory[0x300:0x303] = bytes([9, 8, 7])
        state.i = 0x300
        execute(registry, state, 0xF265)
        assert state.v[0:4] == [9, 8, 7, 0]
        assert state.i == 0x303

    def test_store_load_restores_registers(self, registry, state):
        original = [0x10 * n + 1 for n in range(16)]
        state.v[:] = original
        state.i = 0x400
        execute(registry, state, 0xFF55)
        assert state.i == 0x410

        state.v[:] = [0] * 16
        state.i = 0x400
        execute(registry, state, 0xFF65)
        assert state.v == original
        assert state.i == 0x410

    def test_store_into_font_region_is_refused(self, registry, state):
        font = bytes(state.memory[0:5])
        state.v[0] = 0xAA
        state.i = 0x000
        execute(registry, state, 0xF055)
        assert bytes(state.memory[0:5]) == font
        assert state.i == 0x001


class TestTimersAndInput:
    """Fx07, Fx15, Fx18, Fx0A."""

    def test_ld_vx_dt(self, registry, state):
        state.dt = 9
        execute(registry, state, 0xF507)
        assert state.v[5] == 9

    def test_ld_dt(self, registry, state):
        state.v[5] = 60
        execute(registry, state, 0xF515)
        assert state.dt == 60

    def test_ld_st(self, registry, state):
        state.v[5] = 30
        execute(registry, state, 0xF518)
        assert state.st == 30

    def test_ld_vx_k_enters_wait_and_advances(self, registry, state):
        execute(registry, state, 0xF30A)
        assert state.key_wait == AwaitingKey(3)
        assert state.pc == 0x202
        assert state.v[3] == 0


class TestDraw:
    """Dxyn."""

    def test_drw_sets_vf_on_collision(self, registry, state):
        state.i = 0x000  # glyph 0
        execute(registry, state, 0xD015)
        assert state.v[0xF] == 0
        assert state.render is True
        assert state.pc == 0x202

        state.pc = 0x200
        execute(registry, state, 0xD015)
        assert state.v[0xF] == 1
        assert not any(state.display)

    def test_drw_reads_origin_from_registers(self, registry, state):
        state.i = 0x000
        state.v[1] = 10
        state.v[2] = 3
        execute(registry, state, 0xD121)
        row = state.display[3 * 64:4 * 64]
        assert [x for x, cell in enumerate(row) if cell] == [10, 11, 12, 13]


class TestInvalid:
    """Unrecognized opcodes stall the PC."""

    def test_invalid_keeps_pc(self, registry, state):
        execute(registry, state, 0x5121)
        assert state.pc == 0x200
        assert state.v == [0] * 16


class TestProgramCounterWrap:
    """PC stays inside the 12-bit address space."""

    def test_skip_at_end_of_memory_wraps(self, registry, state):
        state.pc = 0xFFC
        state.v[1] = 0x42
        execute(registry, state, 0x3142)
        assert state.pc == 0x000
        assert state.validate() is True

    def test_advance_at_last_word_wraps(self, registry, state):
        state.pc = 0xFFE
        execute(registry, state, 0x6001)
        assert state.pc == 0x000
        assert state.validate() is True

    def test_ret_to_last_word_wraps(self, registry, state):
        state.push(0xFFE)
        execute(registry, state, 0x00EE)
        assert state.pc == 0x000
