"""
Framebuffer for the CHIP-8 VM
=============================

Monochrome 64x32 display. Cells are only ever changed in two ways:

- `clear()` (opcode 00E0) switches every cell off
- `draw_sprite()` (opcode Dxyn) XORs sprite bits into the grid

Both raise the `needs_refresh` flag, which stays up until the rendering
side observes the grid. The flag is raised even when a draw leaves the
net picture unchanged, because cells are toggled rather than set.

Sprites are 8 pixels wide, one byte per row, most significant bit on the
left. What happens at the right and bottom edges is selected by
`DrawPolicy`.

The logical resolution is fixed; host window scaling lives in
`scale_for_window()` and `render_image()`.

Copyright (c) 2026 chip8-vm Contributors
"""

import io
import logging
from enum import Enum
from typing import List, Sequence

from chip8_vm.errors import DisplayScaleError

logger = logging.getLogger(__name__)


DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8


class DrawPolicy(Enum):
    """Edge behaviour for sprites that cross the display boundary."""
    WRAP = "wrap"  # every pixel wraps modulo width/height
    CLIP = "clip"  # start position wraps, overflowing pixels are dropped


def scale_for_window(width: int, height: int) -> int:
    """
    Integer scale factor mapping the 64x32 display onto a host window.

    Args:
        width: Window width in host pixels
        height: Window height in host pixels

    Returns:
        Scale factor (host pixels per display cell)

    Raises:
        DisplayScaleError: If either dimension is not a positive multiple
            of the logical size, or the two scales differ

    Example:
        >>> scale_for_window(640, 320)
        10
    """
    if width <= 0 or height <= 0:
        raise DisplayScaleError(
            f"Window size must be positive. Window width: {width}, height: {height}",
            width, height,
        )
    if width % DISPLAY_WIDTH != 0:
        raise DisplayScaleError(
            f"Window width is not evenly divisible by display width. "
            f"Window width: {width}, display width: {DISPLAY_WIDTH}",
            width, height,
        )
    if height % DISPLAY_HEIGHT != 0:
        raise DisplayScaleError(
            f"Window height is not evenly divisible by display height. "
            f"Window height: {height}, display height: {DISPLAY_HEIGHT}",
            width, height,
        )

    width_scale = width // DISPLAY_WIDTH
    height_scale = height // DISPLAY_HEIGHT
    if width_scale != height_scale:
        raise DisplayScaleError(
            f"Window width scale and window height scale do not match. "
            f"Width scale: {width_scale}, height scale: {height_scale}",
            width, height,
        )
    return width_scale


class Framebuffer:
    """
    64x32 grid of on/off cells with a changed flag.

    Cells are stored row-major in a bytearray (1 = on). The buffer is
    allocated once; `reset()` clears it in place.

    Example:
        >>> fb = Framebuffer()
        >>> fb.draw_sprite(0, 0, bytes([0xF0, 0x90, 0x90, 0x90, 0xF0]))
        False
        >>> fb.get_pixel(0, 0), fb.needs_refresh
        (True, True)
    """

    def __init__(self, policy: DrawPolicy = DrawPolicy.WRAP):
        self.policy = policy
        self._cells = bytearray(DISPLAY_WIDTH * DISPLAY_HEIGHT)
        self._needs_refresh = False

    @property
    def width(self) -> int:
        return DISPLAY_WIDTH

    @property
    def height(self) -> int:
        return DISPLAY_HEIGHT

    @property
    def needs_refresh(self) -> bool:
        """True if cells were touched since the grid was last observed."""
        return self._needs_refresh

    def acknowledge(self) -> None:
        """Mark the current contents as observed by the renderer."""
        self._needs_refresh = False

    def reset(self) -> None:
        """Switch every cell off without raising the changed flag."""
        self._cells[:] = bytes(len(self._cells))
        self._needs_refresh = False

    # =========================================================================
    # Mutation (opcode side)
    # =========================================================================

    def clear(self) -> None:
        """Switch every cell off (00E0)."""
        self._cells[:] = bytes(len(self._cells))
        self._needs_refresh = True

    def draw_sprite(self, x: int, y: int, rows: Sequence[int]) -> bool:
        """
        XOR a sprite into the grid (Dxyn).

        Args:
            x: Column of the sprite's left edge (any non-negative int)
            y: Row of the sprite's top edge
            rows: Sprite bytes, one per row, MSB = leftmost pixel

        Returns:
            True if any cell went from on to off (collision)
        """
        collision = False
        x0 = x % DISPLAY_WIDTH
        y0 = y % DISPLAY_HEIGHT
        clip = self.policy is DrawPolicy.CLIP

        for row_offset, row_byte in enumerate(rows):
            py = y0 + row_offset
            if py >= DISPLAY_HEIGHT:
                if clip:
                    break
                py %= DISPLAY_HEIGHT

            for column in range(SPRITE_WIDTH):
                if not row_byte & (0x80 >> column):
                    continue
                px = x0 + column
                if px >= DISPLAY_WIDTH:
                    if clip:
                        break
                    px %= DISPLAY_WIDTH

                index = py * DISPLAY_WIDTH + px
                if self._cells[index]:
                    collision = True
                self._cells[index] ^= 1

        self._needs_refresh = True
        return collision

    # =========================================================================
    # Inspection (renderer side)
    # =========================================================================

    def get_pixel(self, x: int, y: int) -> bool:
        """State of a single cell (no wrapping; raises IndexError off-grid)."""
        if not (0 <= x < DISPLAY_WIDTH and 0 <= y < DISPLAY_HEIGHT):
            raise IndexError(f"pixel ({x}, {y}) outside {DISPLAY_WIDTH}x{DISPLAY_HEIGHT} display")
        return bool(self._cells[y * DISPLAY_WIDTH + x])

    def get_rows(self) -> List[List[bool]]:
        """
        Grid as 32 rows of 64 booleans and acknowledge the change.

        This is the call the rendering adapter makes after seeing
        `needs_refresh`.
        """
        self._needs_refresh = False
        return [
            [bool(cell) for cell in self._cells[row * DISPLAY_WIDTH:(row + 1) * DISPLAY_WIDTH]]
            for row in range(DISPLAY_HEIGHT)
        ]

    def count_lit(self) -> int:
        """Number of cells currently on."""
        return sum(self._cells)

    def get_text(self, on: str = "█", off: str = " ") -> str:
        """
        Render the grid as text, one line per display row.

        Args:
            on: Character for lit cells (default full block)
            off: Character for dark cells

        Returns:
            32 lines of 64 characters joined by newlines
        """
        return "\n".join(
            "".join(on if cell else off for cell in row)
            for row in self.get_rows()
        )

    def render_image(self, scale: int = 10) -> bytes:
        """
        Render the grid as a PNG image.

        Args:
            scale: Host pixels per display cell (default 10)

        Returns:
            PNG image bytes, white cells on black
        """
        from PIL import Image

        if scale < 1:
            raise DisplayScaleError(f"Scale must be at least 1, got {scale}",
                                    DISPLAY_WIDTH * scale, DISPLAY_HEIGHT * scale)

        img = Image.new('L', (DISPLAY_WIDTH * scale, DISPLAY_HEIGHT * scale), color=0)
        for index, cell in enumerate(self._cells):
            if cell:
                x = (index % DISPLAY_WIDTH) * scale
                y = (index // DISPLAY_WIDTH) * scale
                img.paste(255, (x, y, x + scale, y + scale))
        self._needs_refresh = False

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        logger.debug(f"Rendered {DISPLAY_WIDTH * scale}x{DISPLAY_HEIGHT * scale} PNG")
        return buffer.getvalue()
