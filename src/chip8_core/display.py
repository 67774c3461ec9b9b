"""Sprite engine for the CHIP-8 display buffer.

Sprites are 8 pixels wide and n rows tall, one byte per row with the most
significant bit leftmost. They are XOR-blitted with toroidal wraparound:
coordinates past the right or bottom edge continue from the opposite edge.
"""

from typing import List, Sequence

from .state import Chip8State


SPRITE_WIDTH = 8


def draw_sprite(state: Chip8State, x: int, y: int, n: int) -> bool:
    """XOR an n-row sprite from memory[I..I+n) onto the display at (x, y).

    Args:
        state: Machine state; display and render flag are updated in place
        x: Origin column (wrapped modulo width)
        y: Origin row (wrapped modulo height)
        n: Sprite height in rows, 0-15

    Returns:
        True if any lit cell was turned off
    """
    width, height = state.width, state.height
    display = state.display
    collision = False

    for row in range(n):
        sprite_row = state.read_byte(state.i + row)
        target_y = (y + row) % height
        for col in range(SPRITE_WIDTH):
            new_pixel = bool((sprite_row << col) & 0x80)
            target = target_y * width + (x + col) % width
            current = display[target]
            collision = collision or (current and new_pixel)
            display[target] = current != new_pixel

    state.render = True
    return collision


def clear(state: Chip8State) -> None:
    """Unlight every cell and flag the frame for redraw."""
    state.display = [False] * (state.width * state.height)
    state.render = True


def rows(cells: Sequence[bool], width: int) -> List[Sequence[bool]]:
    """Split a row-major buffer into rows."""
    return [cells[start:start + width] for start in range(0, len(cells), width)]


def render_text(cells: Sequence[bool], width: int, on: str = "#", off: str = ".") -> str:
    """Format a display snapshot as one line of text per row."""
    return "\n".join(
        "".join(on if lit else off for lit in row) for row in rows(cells, width)
    )
