"""Chip8: interpreter core orchestrating the CHIP-8 instruction cycle.

This module implements the step pipeline:
    TIMERS -> KEY COMMIT -> FETCH -> DECODE -> REGISTRY -> EXECUTE -> STATE

The core is driven by an external scheduler calling ``step()`` at a fixed
rate. The scheduler copies ``display()`` whenever ``step()`` reports a
frame change and stops stepping while ``awaiting_key`` is set; the next
``key_down()`` resumes the machine.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .decode import Instruction, decode
from .display import render_text, rows
from .registry import Chip8Registry, get_registry
from .state import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    NUM_KEYS,
    NUM_REGISTERS,
    RUNNING,
    AwaitingKey,
    Chip8State,
    PendingWrite,
    create_initial_state,
)


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Value of the cycle counter after the step
        address: PC the instruction was fetched from
        instruction: Decoded instruction
        pre_state: Snapshot before execution
        post_state: Snapshot after execution
        error: Error message if execution failed
    """
    cycle: int
    address: int
    instruction: Instruction
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class Chip8:
    """CHIP-8 interpreter core.

    One instance is created per loaded ROM and replaced, never reset,
    when another ROM is loaded.

    Attributes:
        state: Machine state owned by this core
        registry: Chip8Registry with verified primitives
        trace: Execution trace entries (only filled when tracing)
        tracing: Whether steps are recorded in the trace
        last_error: Message from the most recent invalid opcode, if any
    """

    def __init__(
        self,
        rom: bytes = b"",
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        rng: Optional[random.Random] = None,
        trace: bool = False,
    ):
        """Initialize the interpreter with a program image.

        Args:
            rom: Program bytes copied to 0x200
            width: Display width in cells
            height: Display height in cells
            rng: Random source for RND; inject a seeded one for determinism
            trace: Record an ExecutionTraceEntry per executed instruction

        Raises:
            RomTooLargeError: If the ROM exceeds 3584 bytes
        """
        self.state: Chip8State = create_initial_state(bytes(rom), width, height, rng)
        self.registry: Chip8Registry = get_registry()
        self.trace: List[ExecutionTraceEntry] = []
        self.tracing = trace
        self.last_error: Optional[str] = None
        logger.debug(f"Loaded {len(rom)} byte ROM, display {width}x{height}.")

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> bool:
        """Execute a single instruction cycle.

        Performs: CLEAR RENDER -> TIMERS -> KEY COMMIT or FETCH/DECODE/EXECUTE

        A pending key write is committed instead of decoding, consuming
        the whole step. While awaiting a key no opcode is decoded.

        Returns:
            The render flag: True if the display changed this step

        Raises:
            StackOverflowError: CALL with a full stack
            StackUnderflowError: RET with an empty stack
        """
        state = self.state
        state.render = False

        if state.dt > 0:
            state.dt -= 1
        if state.st > 0:
            state.st -= 1

        key_wait = state.key_wait
        if isinstance(key_wait, PendingWrite):
            state.v[key_wait.register] = key_wait.value
            state.key_wait = RUNNING
            logger.debug(f"Stored key {key_wait.value:X} in V{key_wait.register:X}.")
            return state.render
        if isinstance(key_wait, AwaitingKey):
            logger.debug("Step while awaiting a key; nothing decoded.")
            return state.render

        pc = state.pc
        opcode = (state.read_byte(pc) << 8) | state.read_byte(pc + 1)
        instruction = decode(opcode)
        pre_state = state.snapshot() if self.tracing else {}

        error = None
        try:
            self.registry.execute(state, instruction)
        except Exception as e:
            error = str(e)
            raise
        finally:
            if not instruction.valid:
                error = f"Invalid opcode {opcode:#06x} at {pc:#05x}"
                self.last_error = error
            if self.tracing:
                self.trace.append(ExecutionTraceEntry(
                    cycle=state.cycle_count,
                    address=pc,
                    instruction=instruction,
                    pre_state=pre_state,
                    post_state=state.snapshot(),
                    error=error,
                ))

        return state.render

    def run(self, cycles: int) -> int:
        """Step up to ``cycles`` times, stopping early while awaiting a key.

        Args:
            cycles: Maximum number of steps

        Returns:
            Number of steps performed
        """
        performed = 0
        while performed < cycles and not self.awaiting_key:
            self.step()
            performed += 1
        return performed

    # =========================================================================
    # Input
    # =========================================================================

    def key_down(self, key: int) -> None:
        """Mark a key pressed; completes a pending Fx0A wait.

        Raises:
            ValueError: If key is outside 0-15
        """
        self._check_key(key)
        self.state.keyboard[key] = True
        key_wait = self.state.key_wait
        if isinstance(key_wait, AwaitingKey):
            self.state.key_wait = PendingWrite(key_wait.register, key)
            logger.debug(f"Key {key:X} latched for V{key_wait.register:X}.")

    def key_up(self, key: int) -> None:
        """Mark a key released.

        Raises:
            ValueError: If key is outside 0-15
        """
        self._check_key(key)
        self.state.keyboard[key] = False

    def _check_key(self, key: int) -> None:
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Invalid key index: {key}")

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def render(self) -> bool:
        return self.state.render

    @property
    def awaiting_key(self) -> bool:
        return isinstance(self.state.key_wait, AwaitingKey)

    @property
    def width(self) -> int:
        return self.state.width

    @property
    def height(self) -> int:
        return self.state.height

    @property
    def pc(self) -> int:
        return self.state.pc

    @property
    def i(self) -> int:
        return self.state.i

    @property
    def sp(self) -> int:
        return self.state.sp

    @property
    def delay_timer(self) -> int:
        return self.state.dt

    @property
    def sound_timer(self) -> int:
        return self.state.st

    @property
    def sound_active(self) -> bool:
        """True while the sound timer runs. No tone is produced."""
        return self.state.st > 0

    @property
    def cycle_count(self) -> int:
        return self.state.cycle_count

    def get_register(self, index: int) -> int:
        """Get the value of register V0-VF by index.

        Raises:
            IndexError: If index is outside 0-15
        """
        if not 0 <= index < NUM_REGISTERS:
            raise IndexError(f"Invalid register: {index}")
        return self.state.v[index]

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def display(self) -> Tuple[bool, ...]:
        """Immutable copy of the display buffer, row-major."""
        return tuple(self.state.display)

    def display_rows(self) -> List[Tuple[bool, ...]]:
        return [tuple(row) for row in rows(self.state.display, self.state.width)]

    def frame(self) -> Tuple[bool, Tuple[bool, ...]]:
        """Render flag together with a display snapshot."""
        return self.state.render, self.display()

    def screen_text(self, on: str = "#", off: str = ".") -> str:
        return render_text(self.state.display, self.state.width, on, off)

    # =========================================================================
    # Reporting
    # =========================================================================

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("CHIP-8 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] {entry.address:03X}: "
                  f"{entry.instruction.raw:04X}  {entry.instruction.mnemonic()}  {status}")

            if not entry.post_state:
                continue

            pre_regs = entry.pre_state.get("registers", {})
            post_regs = entry.post_state.get("registers", {})
            changes = []
            for reg in pre_regs:
                if pre_regs[reg] != post_regs.get(reg, pre_regs[reg]):
                    changes.append(f"{reg}: {pre_regs[reg]:#04x} -> {post_regs[reg]:#04x}")
            if entry.pre_state.get("i") != entry.post_state.get("i"):
                changes.append(f"I: {entry.pre_state['i']:#05x} -> {entry.post_state['i']:#05x}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  {self.state}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.cycle_count,
            "pc": self.pc,
            "i": self.i,
            "sp": self.sp,
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "awaiting_key": self.awaiting_key,
            "registers": self.dump_registers(),
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
            "last_error": self.last_error,
        }
