"""Chip8Registry: verified opcode primitives for the CHIP-8 interpreter.

This module implements the registry pattern for instruction execution:
every member of the ``Op`` enumeration maps to exactly one handler, the
mapping is checked for completeness at construction and frozen afterwards.

Registry Groups:
    Control flow: CLS, RET, JP, CALL, JP_V0
    Skips: SE_BYTE, SNE_BYTE, SE_REG, SNE_REG, SKP, SKNP
    Register/ALU: LD_BYTE, ADD_BYTE, LD_REG, OR, AND, XOR, ADD_REG,
                  SUB, SHR, SUBN, SHL, RND
    Memory/index: LD_I, ADD_I_VX, LD_F_VX, LD_B_VX, LD_I_VX, LD_VX_I
    Timers/input: LD_VX_DT, LD_DT_VX, LD_ST_VX, LD_VX_K
    Display: DRW
    Special: INVALID

Each primitive has the signature (Chip8State, Instruction) -> None and
mutates the state in place, including the PC advance. VF is always written
after the instruction's primary register write, so when x is 0xF the flag
wins.
"""

import logging
from typing import Callable, Dict, Optional

from .decode import Instruction, Op
from .display import clear, draw_sprite
from .state import FONT_GLYPH_SIZE, AwaitingKey, Chip8State


logger = logging.getLogger(__name__)

Handler = Callable[[Chip8State, Instruction], None]

VF = 0xF


class Chip8Registry:
    """Verified registry of CHIP-8 primitives.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur.

    Attributes:
        _primitives: Dictionary mapping Op members to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all primitives and verify coverage."""
        self._primitives: Dict[Op, Handler] = {}
        self._frozen = False
        self._register_all_primitives()

        missing = set(Op) - set(self._primitives)
        if missing:
            names = ", ".join(sorted(op.name for op in missing))
            raise RuntimeError(f"Opcodes without a handler: {names}")
        self.freeze()

    def _register_all_primitives(self) -> None:
        # Control flow
        self.register(Op.CLS, self._op_cls)
        self.register(Op.RET, self._op_ret)
        self.register(Op.JP, self._op_jp)
        self.register(Op.CALL, self._op_call)
        self.register(Op.JP_V0, self._op_jp_v0)

        # Skips
        self.register(Op.SE_BYTE, self._op_se_byte)
        self.register(Op.SNE_BYTE, self._op_sne_byte)
        self.register(Op.SE_REG, self._op_se_reg)
        self.register(Op.SNE_REG, self._op_sne_reg)
        self.register(Op.SKP, self._op_skp)
        self.register(Op.SKNP, self._op_sknp)

        # Register / ALU
        self.register(Op.LD_BYTE, self._op_ld_byte)
        self.register(Op.ADD_BYTE, self._op_add_byte)
        self.register(Op.LD_REG, self._op_ld_reg)
        self.register(Op.OR, self._op_or)
        self.register(Op.AND, self._op_and)
        self.register(Op.XOR, self._op_xor)
        self.register(Op.ADD_REG, self._op_add_reg)
        self.register(Op.SUB, self._op_sub)
        self.register(Op.SHR, self._op_shr)
        self.register(Op.SUBN, self._op_subn)
        self.register(Op.SHL, self._op_shl)
        self.register(Op.RND, self._op_rnd)

        # Memory / index
        self.register(Op.LD_I, self._op_ld_i)
        self.register(Op.ADD_I_VX, self._op_add_i_vx)
        self.register(Op.LD_F_VX, self._op_ld_f_vx)
        self.register(Op.LD_B_VX, self._op_ld_b_vx)
        self.register(Op.LD_I_VX, self._op_ld_i_vx)
        self.register(Op.LD_VX_I, self._op_ld_vx_i)

        # Timers / input
        self.register(Op.LD_VX_DT, self._op_ld_vx_dt)
        self.register(Op.LD_DT_VX, self._op_ld_dt_vx)
        self.register(Op.LD_ST_VX, self._op_ld_st_vx)
        self.register(Op.LD_VX_K, self._op_ld_vx_k)

        # Display
        self.register(Op.DRW, self._op_drw)

        # Special
        self.register(Op.INVALID, self._op_invalid)

    def register(self, key: Op, handler: Handler) -> None:
        """Register a primitive operation.

        Args:
            key: Instruction the handler executes
            handler: Function that takes (state, instruction)

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key.name}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        return set(self._primitives.keys())

    def execute(self, state: Chip8State, instruction: Instruction) -> None:
        """Execute a decoded instruction against the state.

        The PC wraps to 12 bits after every instruction.

        Args:
            state: Machine state, mutated in place
            instruction: Decoded instruction

        Raises:
            StackOverflowError: CALL with a full stack
            StackUnderflowError: RET with an empty stack
        """
        self._primitives[instruction.op](state, instruction)
        state.pc &= 0xFFF
        if instruction.valid:
            state.cycle_count += 1

    # =========================================================================
    # Control Flow Primitives
    # =========================================================================

    def _op_cls(self, state: Chip8State, ins: Instruction) -> None:
        """00E0 - CLS: clear the display."""
        clear(state)
        state.pc += 2

    def _op_ret(self, state: Chip8State, ins: Instruction) -> None:
        """00EE - RET: return from a subroutine.

        The stored address is that of the CALL itself, so execution
        resumes two bytes past it.
        """
        state.pc = state.pop() + 2

    def _op_jp(self, state: Chip8State, ins: Instruction) -> None:
        """1nnn - JP addr."""
        state.pc = ins.nnn

    def _op_call(self, state: Chip8State, ins: Instruction) -> None:
        """2nnn - CALL addr: push the current PC, jump to nnn."""
        state.push(state.pc)
        state.pc = ins.nnn

    def _op_jp_v0(self, state: Chip8State, ins: Instruction) -> None:
        """Bnnn - JP V0, addr.

        The offset register is selected by the x nibble, not fixed to V0.
        """
        state.pc = (ins.nnn + state.v[ins.x]) & 0xFFF

    # =========================================================================
    # Skip Primitives
    # =========================================================================

    def _skip_if(self, state: Chip8State, condition: bool) -> None:
        state.pc += 4 if condition else 2

    def _op_se_byte(self, state: Chip8State, ins: Instruction) -> None:
        """3xkk - SE Vx, byte."""
        self._skip_if(state, state.v[ins.x] == ins.kk)

    def _op_sne_byte(self, state: Chip8State, ins: Instruction) -> None:
        """4xkk - SNE Vx, byte."""
        self._skip_if(state, state.v[ins.x] != ins.kk)

    def _op_se_reg(self, state: Chip8State, ins: Instruction) -> None:
        """5xy0 - SE Vx, Vy."""
        self._skip_if(state, state.v[ins.x] == state.v[ins.y])

    def _op_sne_reg(self, state: Chip8State, ins: Instruction) -> None:
        """9xy0 - SNE Vx, Vy."""
        self._skip_if(state, state.v[ins.x] != state.v[ins.y])

    def _op_skp(self, state: Chip8State, ins: Instruction) -> None:
        """Ex9E - SKP Vx: skip if key Vx is pressed."""
        self._skip_if(state, state.keyboard[state.v[ins.x] & 0xF])

    def _op_sknp(self, state: Chip8State, ins: Instruction) -> None:
        """ExA1 - SKNP Vx: skip if key Vx is not pressed."""
        self._skip_if(state, not state.keyboard[state.v[ins.x] & 0xF])

    # =========================================================================
    # Register / ALU Primitives
    # =========================================================================

    def _op_ld_byte(self, state: Chip8State, ins: Instruction) -> None:
        """6xkk - LD Vx, byte."""
        state.v[ins.x] = ins.kk
        state.pc += 2

    def _op_add_byte(self, state: Chip8State, ins: Instruction) -> None:
        """7xkk - ADD Vx, byte. Wraps, VF untouched."""
        state.v[ins.x] = (state.v[ins.x] + ins.kk) & 0xFF
        state.pc += 2

    def _op_ld_reg(self, state: Chip8State, ins: Instruction) -> None:
        """8xy0 - LD Vx, Vy."""
        state.v[ins.x] = state.v[ins.y]
        state.pc += 2

    def _op_or(self, state: Chip8State, ins: Instruction) -> None:
        """8xy1 - OR Vx, Vy. Clears VF."""
        state.v[ins.x] |= state.v[ins.y]
        state.v[VF] = 0
        state.pc += 2

    def _op_and(self, state: Chip8State, ins: Instruction) -> None:
        """8xy2 - AND Vx, Vy. Clears VF."""
        state.v[ins.x] &= state.v[ins.y]
        state.v[VF] = 0
        state.pc += 2

    def _op_xor(self, state: Chip8State, ins: Instruction) -> None:
        """8xy3 - XOR Vx, Vy. Clears VF."""
        state.v[ins.x] ^= state.v[ins.y]
        state.v[VF] = 0
        state.pc += 2

    def _op_add_reg(self, state: Chip8State, ins: Instruction) -> None:
        """8xy4 - ADD Vx, Vy. VF = carry."""
        total = state.v[ins.x] + state.v[ins.y]
        state.v[ins.x] = total & 0xFF
        state.v[VF] = 1 if total > 0xFF else 0
        state.pc += 2

    def _op_sub(self, state: Chip8State, ins: Instruction) -> None:
        """8xy5 - SUB Vx, Vy. VF = NOT borrow."""
        vx, vy = state.v[ins.x], state.v[ins.y]
        state.v[ins.x] = (vx - vy) & 0xFF
        state.v[VF] = 1 if vx >= vy else 0
        state.pc += 2

    def _op_shr(self, state: Chip8State, ins: Instruction) -> None:
        """8xy6 - SHR Vx. VF = bit shifted out."""
        vx = state.v[ins.x]
        state.v[ins.x] = vx >> 1
        state.v[VF] = vx & 0x1
        state.pc += 2

    def _op_subn(self, state: Chip8State, ins: Instruction) -> None:
        """8xy7 - SUBN Vx, Vy: Vx = Vy - Vx. VF = NOT borrow."""
        vx, vy = state.v[ins.x], state.v[ins.y]
        state.v[ins.x] = (vy - vx) & 0xFF
        state.v[VF] = 1 if vy >= vx else 0
        state.pc += 2

    def _op_shl(self, state: Chip8State, ins: Instruction) -> None:
        """8xyE - SHL Vx. VF = bit shifted out."""
        vx = state.v[ins.x]
        state.v[ins.x] = (vx << 1) & 0xFF
        state.v[VF] = (vx & 0x80) >> 7
        state.pc += 2

    def _op_rnd(self, state: Chip8State, ins: Instruction) -> None:
        """Cxkk - RND Vx, byte."""
        state.v[ins.x] = state.rng.randint(0, 0xFF) & ins.kk
        state.pc += 2

    # =========================================================================
    # Memory / Index Primitives
    # =========================================================================

    def _op_ld_i(self, state: Chip8State, ins: Instruction) -> None:
        """Annn - LD I, addr."""
        state.i = ins.nnn
        state.pc += 2

    def _op_add_i_vx(self, state: Chip8State, ins: Instruction) -> None:
        """Fx1E - ADD I, Vx. 16-bit, no flag."""
        state.i = (state.i + state.v[ins.x]) & 0xFFFF
        state.pc += 2

    def _op_ld_f_vx(self, state: Chip8State, ins: Instruction) -> None:
        """Fx29 - LD F, Vx: point I at the glyph for digit Vx."""
        state.i = state.v[ins.x] * FONT_GLYPH_SIZE
        state.pc += 2

    def _op_ld_b_vx(self, state: Chip8State, ins: Instruction) -> None:
        """Fx33 - LD B, Vx: store BCD of Vx at I, I+1, I+2."""
        vx = state.v[ins.x]
        state.write_byte(state.i, vx // 100)
        state.write_byte(state.i + 1, (vx % 100) // 10)
        state.write_byte(state.i + 2, vx % 10)
        state.pc += 2

    def _op_ld_i_vx(self, state: Chip8State, ins: Instruction) -> None:
        """Fx55 - LD [I], Vx: store V0..Vx, advancing I per register."""
        for reg in range(ins.x + 1):
            state.write_byte(state.i, state.v[reg])
            state.i = (state.i + 1) & 0xFFFF
        state.pc += 2

    def _op_ld_vx_i(self, state: Chip8State, ins: Instruction) -> None:
        """Fx65 - LD Vx, [I]: load V0..Vx, advancing I per register."""
        for reg in range(ins.x + 1):
            state.v[reg] = state.read_byte(state.i)
            state.i = (state.i + 1) & 0xFFFF
        state.pc += 2

    # =========================================================================
    # Timer / Input Primitives
    # =========================================================================

    def _op_ld_vx_dt(self, state: Chip8State, ins: Instruction) -> None:
        """Fx07 - LD Vx, DT."""
        state.v[ins.x] = state.dt
        state.pc += 2

    def _op_ld_dt_vx(self, state: Chip8State, ins: Instruction) -> None:
        """Fx15 - LD DT, Vx."""
        state.dt = state.v[ins.x]
        state.pc += 2

    def _op_ld_st_vx(self, state: Chip8State, ins: Instruction) -> None:
        """Fx18 - LD ST, Vx."""
        state.st = state.v[ins.x]
        state.pc += 2

    def _op_ld_vx_k(self, state: Chip8State, ins: Instruction) -> None:
        """Fx0A - LD Vx, K.

        Blocks for a key press. The PC still advances now; only the
        register write is deferred until a key arrives.
        """
        state.key_wait = AwaitingKey(ins.x)
        logger.debug(f"Waiting for a key to store in V{ins.x:X}.")
        state.pc += 2

    # =========================================================================
    # Display Primitives
    # =========================================================================

    def _op_drw(self, state: Chip8State, ins: Instruction) -> None:
        """Dxyn - DRW Vx, Vy, n. VF = collision."""
        collision = draw_sprite(state, state.v[ins.x], state.v[ins.y], ins.n)
        state.v[VF] = 1 if collision else 0
        state.pc += 2

    # =========================================================================
    # Special Primitives
    # =========================================================================

    def _op_invalid(self, state: Chip8State, ins: Instruction) -> None:
        """Unrecognized opcode: report it and leave PC where it is."""
        logger.error(f"Invalid opcode {ins.raw:#06x} at {state.pc:#05x}.")


# Singleton registry instance
_registry: Optional[Chip8Registry] = None


def get_registry() -> Chip8Registry:
    """Get the singleton registry instance."""
    global _registry
    if _registry is None:
        _registry = Chip8Registry()
    return _registry
