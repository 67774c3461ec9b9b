"""Opcode decoder for the CHIP-8 interpreter.

Every fetched 16-bit word is split into four nibbles n1..n4 and mapped to
exactly one member of the closed ``Op`` enumeration. Words that match no
pattern decode to ``Op.INVALID`` instead of falling through a default case,
so the registry can check that every member has a handler.

Architecture:
    memory[PC], memory[PC+1] -> decode -> Instruction(op, fields) -> Registry
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from .state import PROGRAM_START


class Op(Enum):
    """CHIP-8 instruction set, one member per opcode pattern."""
    CLS = "00E0"
    RET = "00EE"
    JP = "1nnn"
    CALL = "2nnn"
    SE_BYTE = "3xkk"
    SNE_BYTE = "4xkk"
    SE_REG = "5xy0"
    LD_BYTE = "6xkk"
    ADD_BYTE = "7xkk"
    LD_REG = "8xy0"
    OR = "8xy1"
    AND = "8xy2"
    XOR = "8xy3"
    ADD_REG = "8xy4"
    SUB = "8xy5"
    SHR = "8xy6"
    SUBN = "8xy7"
    SHL = "8xyE"
    SNE_REG = "9xy0"
    LD_I = "Annn"
    JP_V0 = "Bnnn"
    RND = "Cxkk"
    DRW = "Dxyn"
    SKP = "Ex9E"
    SKNP = "ExA1"
    LD_VX_DT = "Fx07"
    LD_VX_K = "Fx0A"
    LD_DT_VX = "Fx15"
    LD_ST_VX = "Fx18"
    ADD_I_VX = "Fx1E"
    LD_F_VX = "Fx29"
    LD_B_VX = "Fx33"
    LD_I_VX = "Fx55"
    LD_VX_I = "Fx65"
    INVALID = "????"


# Opcodes fully determined by n1 alone
_BY_N1 = {
    0x1: Op.JP,
    0x2: Op.CALL,
    0x3: Op.SE_BYTE,
    0x4: Op.SNE_BYTE,
    0x6: Op.LD_BYTE,
    0x7: Op.ADD_BYTE,
    0xA: Op.LD_I,
    0xB: Op.JP_V0,
    0xC: Op.RND,
    0xD: Op.DRW,
}

_ALU = {
    0x0: Op.LD_REG,
    0x1: Op.OR,
    0x2: Op.AND,
    0x3: Op.XOR,
    0x4: Op.ADD_REG,
    0x5: Op.SUB,
    0x6: Op.SHR,
    0x7: Op.SUBN,
    0xE: Op.SHL,
}

_KEY = {
    0x9E: Op.SKP,
    0xA1: Op.SKNP,
}

_MISC = {
    0x07: Op.LD_VX_DT,
    0x0A: Op.LD_VX_K,
    0x15: Op.LD_DT_VX,
    0x18: Op.LD_ST_VX,
    0x1E: Op.ADD_I_VX,
    0x29: Op.LD_F_VX,
    0x33: Op.LD_B_VX,
    0x55: Op.LD_I_VX,
    0x65: Op.LD_VX_I,
}


@dataclass(frozen=True)
class Instruction:
    """A decoded opcode.

    Attributes:
        op: Matched instruction
        raw: Original 16-bit opcode
    """
    op: Op
    raw: int

    @property
    def n1(self) -> int:
        return (self.raw >> 12) & 0xF

    @property
    def x(self) -> int:
        return (self.raw >> 8) & 0xF

    @property
    def y(self) -> int:
        return (self.raw >> 4) & 0xF

    @property
    def n(self) -> int:
        return self.raw & 0xF

    @property
    def kk(self) -> int:
        return self.raw & 0xFF

    @property
    def nnn(self) -> int:
        return self.raw & 0xFFF

    @property
    def valid(self) -> bool:
        return self.op is not Op.INVALID

    def mnemonic(self) -> str:
        """Render the instruction in Cowgod assembly syntax."""
        op, x, y = self.op, self.x, self.y
        kk, nnn = self.kk, self.nnn

        if op is Op.CLS:
            return "CLS"
        if op is Op.RET:
            return "RET"
        if op is Op.JP:
            return f"JP {nnn:#05x}"
        if op is Op.CALL:
            return f"CALL {nnn:#05x}"
        if op is Op.SE_BYTE:
            return f"SE V{x:X}, {kk:#04x}"
        if op is Op.SNE_BYTE:
            return f"SNE V{x:X}, {kk:#04x}"
        if op is Op.SE_REG:
            return f"SE V{x:X}, V{y:X}"
        if op is Op.LD_BYTE:
            return f"LD V{x:X}, {kk:#04x}"
        if op is Op.ADD_BYTE:
            return f"ADD V{x:X}, {kk:#04x}"
        if op in _ALU_NAMES:
            return f"{_ALU_NAMES[op]} V{x:X}, V{y:X}"
        if op is Op.SNE_REG:
            return f"SNE V{x:X}, V{y:X}"
        if op is Op.LD_I:
            return f"LD I, {nnn:#05x}"
        if op is Op.JP_V0:
            return f"JP V{x:X}, {nnn:#05x}"
        if op is Op.RND:
            return f"RND V{x:X}, {kk:#04x}"
        if op is Op.DRW:
            return f"DRW V{x:X}, V{y:X}, {self.n}"
        if op is Op.SKP:
            return f"SKP V{x:X}"
        if op is Op.SKNP:
            return f"SKNP V{x:X}"
        if op is Op.LD_VX_DT:
            return f"LD V{x:X}, DT"
        if op is Op.LD_VX_K:
            return f"LD V{x:X}, K"
        if op is Op.LD_DT_VX:
            return f"LD DT, V{x:X}"
        if op is Op.LD_ST_VX:
            return f"LD ST, V{x:X}"
        if op is Op.ADD_I_VX:
            return f"ADD I, V{x:X}"
        if op is Op.LD_F_VX:
            return f"LD F, V{x:X}"
        if op is Op.LD_B_VX:
            return f"LD B, V{x:X}"
        if op is Op.LD_I_VX:
            return f"LD [I], V{x:X}"
        if op is Op.LD_VX_I:
            return f"LD V{x:X}, [I]"
        return f"??? {self.raw:#06x}"

    def __str__(self) -> str:
        return self.mnemonic()


_ALU_NAMES = {
    Op.LD_REG: "LD",
    Op.OR: "OR",
    Op.AND: "AND",
    Op.XOR: "XOR",
    Op.ADD_REG: "ADD",
    Op.SUB: "SUB",
    Op.SHR: "SHR",
    Op.SUBN: "SUBN",
    Op.SHL: "SHL",
}


def split_nibbles(opcode: int) -> Tuple[int, int, int, int]:
    """Split a 16-bit opcode into (n1, n2, n3, n4), most significant first."""
    return (
        (opcode >> 12) & 0xF,
        (opcode >> 8) & 0xF,
        (opcode >> 4) & 0xF,
        opcode & 0xF,
    )


def decode(opcode: int) -> Instruction:
    """Decode a 16-bit opcode.

    Args:
        opcode: Instruction word, high byte first

    Returns:
        Instruction whose op is Op.INVALID when no pattern matches
    """
    opcode &= 0xFFFF
    n1, _, n3, n4 = split_nibbles(opcode)
    low = opcode & 0xFF

    if n1 in _BY_N1:
        op = _BY_N1[n1]
    elif opcode == 0x00E0:
        op = Op.CLS
    elif opcode == 0x00EE:
        op = Op.RET
    elif n1 == 0x5 and n4 == 0x0:
        op = Op.SE_REG
    elif n1 == 0x8:
        op = _ALU.get(n4, Op.INVALID)
    elif n1 == 0x9 and n4 == 0x0:
        op = Op.SNE_REG
    elif n1 == 0xE:
        op = _KEY.get(low, Op.INVALID)
    elif n1 == 0xF:
        op = _MISC.get(low, Op.INVALID)
    else:
        op = Op.INVALID

    return Instruction(op, opcode)


def disassemble(program: bytes, start: int = PROGRAM_START) -> List[Tuple[int, int, str]]:
    """Disassemble a program image two bytes at a time.

    Args:
        program: Raw ROM bytes
        start: Address of the first byte

    Returns:
        List of (address, opcode, mnemonic); an odd trailing byte is
        treated as the high byte of a zero-padded word
    """
    listing = []
    for offset in range(0, len(program), 2):
        high = program[offset]
        low = program[offset + 1] if offset + 1 < len(program) else 0
        opcode = (high << 8) | low
        listing.append((start + offset, opcode, decode(opcode).mnemonic()))
    return listing
