"""Chip8State: machine state representation for the CHIP-8 interpreter.

This module defines the state owned by the interpreter core, the built-in
font set and the errors raised for fatal machine faults.

State Components:
    - Memory: 4096 bytes; font at 0x000-0x04F, program from 0x200
    - Registers: V0-VF (VF doubles as carry/borrow/collision flag)
    - I: 16-bit index register
    - Timers: delay (DT) and sound (ST), decremented once per step
    - PC: Program counter, starts at 0x200
    - Stack: up to 16 return addresses
    - Keyboard: 16 pressed/released flags
    - Display: width x height lit/unlit cells, row-major
    - Key wait: Running, AwaitingKey or PendingWrite

Unlike snapshots handed to renderers, the state itself is mutable and owned
by exactly one interpreter instance.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


logger = logging.getLogger(__name__)


MEMORY_SIZE = 0x1000
PROGRAM_START = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START
NUM_REGISTERS = 16
STACK_DEPTH = 16
NUM_KEYS = 16
DEFAULT_WIDTH = 64
DEFAULT_HEIGHT = 32

FONT_START = 0x000
FONT_GLYPH_SIZE = 5
FONT_SET = bytes([
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
FONT_END = FONT_START + len(FONT_SET)


# =============================================================================
# Errors
# =============================================================================

class Chip8Error(RuntimeError):
    """Fatal machine fault; the interpreter cannot continue."""


class StackOverflowError(Chip8Error):
    """CALL executed with all 16 stack frames in use."""


class StackUnderflowError(Chip8Error):
    """RET executed with an empty stack."""


class RomTooLargeError(ValueError):
    """ROM image does not fit between 0x200 and the end of memory."""


# =============================================================================
# Key-wait state
# =============================================================================

@dataclass(frozen=True)
class Running:
    """Normal execution; no key wait in progress."""


@dataclass(frozen=True)
class AwaitingKey:
    """Fx0A executed; blocked until a key is pressed.

    Attributes:
        register: Index of the register that receives the key
    """
    register: int


@dataclass(frozen=True)
class PendingWrite:
    """Key arrived; the register write lands on the next step.

    Attributes:
        register: Index of the target register
        value: Key index to store
    """
    register: int
    value: int


KeyWaitState = Union[Running, AwaitingKey, PendingWrite]
RUNNING = Running()


# =============================================================================
# State
# =============================================================================

@dataclass
class Chip8State:
    """Complete CHIP-8 machine state.

    Attributes:
        memory: 4096 bytes of addressable memory
        v: General purpose registers V0-VF
        i: Index register
        dt: Delay timer
        st: Sound timer
        pc: Program counter
        stack: Return addresses, most recent last
        keyboard: Pressed state per key 0-F
        width: Display width in cells
        height: Display height in cells
        display: Lit/unlit cells, row-major
        render: Display changed during the most recent step
        key_wait: Key-wait protocol state
        rng: Random source for RND
        cycle_count: Number of executed instructions
    """
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    v: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    i: int = 0
    dt: int = 0
    st: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=list)
    keyboard: List[bool] = field(default_factory=lambda: [False] * NUM_KEYS)
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    display: List[bool] = field(
        default_factory=lambda: [False] * (DEFAULT_WIDTH * DEFAULT_HEIGHT)
    )
    render: bool = False
    key_wait: KeyWaitState = RUNNING
    rng: random.Random = field(default_factory=random.Random, repr=False)
    cycle_count: int = 0

    @property
    def sp(self) -> int:
        """Number of frames currently on the stack."""
        return len(self.stack)

    def read_byte(self, addr: int) -> int:
        return self.memory[addr & 0xFFF]

    def write_byte(self, addr: int, value: int) -> None:
        """Store a byte, refusing writes into the font region."""
        addr &= 0xFFF
        if FONT_START <= addr < FONT_END:
            logger.warning(f"Refused write of {value:#04x} to font address {addr:#05x}.")
            return
        self.memory[addr] = value & 0xFF

    def push(self, addr: int) -> None:
        if len(self.stack) >= STACK_DEPTH:
            raise StackOverflowError(f"Stack overflow calling from {addr:#05x}")
        self.stack.append(addr)

    def pop(self) -> int:
        if not self.stack:
            raise StackUnderflowError(f"Return with empty stack at {self.pc:#05x}")
        return self.stack.pop()

    def snapshot(self) -> dict:
        """Create a copy of the CPU-visible state for tracing.

        Returns:
            Dictionary of registers, timers, PC, stack and flags.
            Memory and display are excluded for size.
        """
        return {
            "registers": self.dump_registers(),
            "i": self.i,
            "dt": self.dt,
            "st": self.st,
            "pc": self.pc,
            "sp": self.sp,
            "stack": list(self.stack),
            "render": self.render,
            "key_wait": self.key_wait,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Memory is exactly 4096 bytes
            - Registers and timers hold 8-bit values, I holds 16 bits
            - PC lies inside memory
            - Stack depth is at most 16
            - Display buffer matches width x height

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False

        if len(self.v) != NUM_REGISTERS:
            return False
        for value in self.v + [self.dt, self.st]:
            if not isinstance(value, int) or not 0 <= value <= 0xFF:
                return False
        if not 0 <= self.i <= 0xFFFF:
            return False

        if not 0 <= self.pc < MEMORY_SIZE:
            return False

        if len(self.stack) > STACK_DEPTH:
            return False

        if len(self.keyboard) != NUM_KEYS:
            return False

        if self.width <= 0 or self.height <= 0:
            return False
        if len(self.display) != self.width * self.height:
            return False

        return True

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed V0-VF."""
        return {f"V{idx:X}": value for idx, value in enumerate(self.v)}

    def __str__(self) -> str:
        regs = " ".join(f"{k}={v:02X}" for k, v in self.dump_registers().items())
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03X} I={self.i:03X} "
            f"DT={self.dt} ST={self.st} SP={self.sp} {regs}"
        )


def create_initial_state(
    rom: bytes = b"",
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    rng: Optional[random.Random] = None,
) -> Chip8State:
    """Create initial machine state with font and program loaded.

    Args:
        rom: Program image copied to 0x200
        width: Display width in cells
        height: Display height in cells
        rng: Random source for RND (unseeded when None)

    Returns:
        Fresh Chip8State ready to execute at 0x200

    Raises:
        RomTooLargeError: If the ROM exceeds 3584 bytes
        ValueError: If width or height is not positive
    """
    if len(rom) > MAX_ROM_SIZE:
        raise RomTooLargeError(
            f"ROM is {len(rom)} bytes; at most {MAX_ROM_SIZE} fit in memory"
        )
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid display size: {width}x{height}")

    memory = bytearray(MEMORY_SIZE)
    memory[FONT_START:FONT_END] = FONT_SET
    memory[PROGRAM_START:PROGRAM_START + len(rom)] = rom

    return Chip8State(
        memory=memory,
        width=width,
        height=height,
        display=[False] * (width * height),
        rng=rng if rng is not None else random.Random(),
    )
