"""chip8_core: CHIP-8 virtual machine interpreter.

This package implements the CHIP-8 fetch-decode-execute cycle over 4 KB of
memory, sixteen 8-bit registers and a monochrome bitmap display. It knows
nothing about windows, colors or files: a host feeds it ROM bytes and key
state changes, calls ``step()`` at a fixed rate, and copies the display
out when ``step()`` reports a frame change.

Architecture:
    MEMORY -> FETCH -> DECODE -> Op -> REGISTRY -> EXECUTE -> STATE
               |         |       |       |            |
             [PC]    [nibbles] [enum] [Verified]  [display, timers,
                                       Primitives   key-wait latch]

Modules:
    state: Chip8State, constants, font and machine errors
    decode: Closed Op enumeration and the opcode decoder
    display: Sprite engine with wraparound and collision
    registry: Verified opcode primitives
    cpu: Main Chip8 interpreter core
    keymap: Host keyboard layout
    rom: ROM file and hex listing loaders
"""

__version__ = "0.1.0"

from .state import (
    Chip8State,
    Chip8Error,
    StackOverflowError,
    StackUnderflowError,
    RomTooLargeError,
)
from .decode import Op, Instruction, decode
from .registry import Chip8Registry
from .cpu import Chip8

__all__ = [
    "Chip8",
    "Chip8State",
    "Chip8Registry",
    "Chip8Error",
    "StackOverflowError",
    "StackUnderflowError",
    "RomTooLargeError",
    "Op",
    "Instruction",
    "decode",
]
