"""
CHIP-8 display emulation.

The display is a 64x32 monochrome grid. Sprites are XOR-composited onto it:
a set sprite bit toggles the pixel under it, and turning off a lit pixel is
reported as a collision. Coordinates wrap around both edges.
"""

from ...common.interfaces import Display
from ...constants import DISPLAY_WIDTH, DISPLAY_HEIGHT, SPRITE_WIDTH
import numpy as np
import logging
from typing import Dict, Any

logger = logging.getLogger("Chip8Emulator.Chip8.Display")

class Chip8Display(Display):
    """
    64x32 monochrome framebuffer stored as a numpy bool array indexed [y, x].
    """

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT):
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width), dtype=bool)

        # Bit masks for the 8 sprite columns, most-significant bit first
        self._bit_masks = np.array([0x80 >> col for col in range(SPRITE_WIDTH)], dtype=np.uint8)

        self.draw_count = 0

    def clear(self) -> None:
        self.pixels[:] = False

    def reset(self) -> None:
        self.clear()
        self.draw_count = 0

    def draw_sprite(self, x: int, y: int, sprite: bytes) -> bool:
        """
        XOR a sprite onto the display.

        Each byte of ``sprite`` is one row; its bits are the row's pixels,
        most-significant first. Columns wrap at the display width and rows
        wrap at the display height.

        Args:
            x: Column of the sprite's left edge
            y: Row of the sprite's top edge
            sprite: Sprite rows

        Returns:
            True if any lit pixel was turned off
        """
        collision = False
        cols = (x + np.arange(SPRITE_WIDTH)) % self.width

        for row, sprite_byte in enumerate(sprite):
            target_y = (y + row) % self.height
            bits = (sprite_byte & self._bit_masks) != 0

            if np.any(self.pixels[target_y, cols] & bits):
                collision = True

            self.pixels[target_y, cols] ^= bits

        self.draw_count += 1
        return collision

    def get_frame_buffer(self) -> np.ndarray:
        """
        Get a read-only view of the framebuffer.

        Returns:
            Boolean array of shape (height, width)
        """
        view = self.pixels.view()
        view.flags.writeable = False
        return view

    def load_pixels(self, pixels) -> None:
        """Replace the framebuffer contents with a saved grid."""
        grid = np.asarray(pixels, dtype=bool)
        if grid.shape != self.pixels.shape:
            raise ValueError(f"Framebuffer must have shape {self.pixels.shape}, got {grid.shape}")
        self.pixels[:] = grid

    def render_text(self, on: str = "#", off: str = ".") -> str:
        """Render the framebuffer as text, one line per row."""
        return "\n".join(
            "".join(on if cell else off for cell in row) for row in self.pixels
        )

    def get_state(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "lit_pixels": int(self.pixels.sum()),
            "draw_count": self.draw_count
        }
