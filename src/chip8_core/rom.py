"""ROM image loading for the host application.

The interpreter core only accepts bytes; reading them from disk or from a
hex listing happens here.
"""

import logging
import re
from pathlib import Path
from typing import Union

from .state import MAX_ROM_SIZE, RomTooLargeError


logger = logging.getLogger(__name__)


def load_rom(path: Union[str, Path]) -> bytes:
    """Read a ROM file.

    Args:
        path: Path to the raw program image

    Returns:
        ROM bytes

    Raises:
        FileNotFoundError: If the file does not exist
        RomTooLargeError: If the image exceeds 3584 bytes
    """
    rom_path = Path(path)
    if not rom_path.is_file():
        raise FileNotFoundError(f"ROM file not found: {path}")

    rom = rom_path.read_bytes()
    if len(rom) > MAX_ROM_SIZE:
        raise RomTooLargeError(
            f"ROM {rom_path.name} is {len(rom)} bytes; at most {MAX_ROM_SIZE} fit in memory"
        )
    logger.debug(f"Read {len(rom)} bytes from {rom_path}.")
    return rom


def parse_hex(text: str) -> bytes:
    """Parse a hex listing into ROM bytes.

    Whitespace is ignored and ``#`` starts a comment running to the end
    of the line, so ``"6005 F029  # glyph 5"`` and
    ``"6005F029"`` give the same four bytes.

    Raises:
        ValueError: On non-hex characters or an odd digit count
    """
    digits = []
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        digits.append(re.sub(r"\s+", "", line))
    joined = "".join(digits)

    if not re.fullmatch(r"[0-9A-Fa-f]*", joined):
        raise ValueError("Hex listing contains non-hex characters")
    if len(joined) % 2:
        raise ValueError("Hex listing has an odd number of digits")

    rom = bytes.fromhex(joined)
    if len(rom) > MAX_ROM_SIZE:
        raise RomTooLargeError(f"Listing is {len(rom)} bytes; at most {MAX_ROM_SIZE} fit in memory")
    return rom
