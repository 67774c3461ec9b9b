"""Host keyboard layout for the CHIP-8 hex keypad.

The list position of each host key is the CHIP-8 key it stands for, so
host key "x" is key 0 and "v" is key F. On a QWERTY keyboard the block
1234/qwer/asdf/zxcv lines up with the original keypad:

    1 2 3 C        1 2 3 4
    4 5 6 D   <-   q w e r
    7 8 9 E        a s d f
    A 0 B F        z x c v
"""

from typing import Optional


HOST_KEYS = [
    "x", "1", "2", "3",
    "q", "w", "e", "a",
    "s", "d", "z", "c",
    "4", "r", "f", "v",
]

# Keypad as drawn on the original hardware, row by row
KEY_LAYOUT = [
    [0x1, 0x2, 0x3, 0xC],
    [0x4, 0x5, 0x6, 0xD],
    [0x7, 0x8, 0x9, 0xE],
    [0xA, 0x0, 0xB, 0xF],
]


def key_index(char: str) -> Optional[int]:
    """Map a host key character to its CHIP-8 key, or None if unmapped."""
    char = char.lower()
    if char in HOST_KEYS:
        return HOST_KEYS.index(char)
    return None


def host_key(index: int) -> str:
    """Host key character for a CHIP-8 key.

    Raises:
        IndexError: If index is outside 0-15
    """
    if not 0 <= index < len(HOST_KEYS):
        raise IndexError(f"Invalid key index: {index}")
    return HOST_KEYS[index]
