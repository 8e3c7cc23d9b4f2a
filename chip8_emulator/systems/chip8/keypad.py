"""
CHIP-8 hexadecimal keypad.

Sixteen keys labelled 0-F. The host writes key states between cycles; the
CPU only reads them.
"""

from ...constants import NUM_KEYS
from ...utils.error_handler import InvalidKey
import logging
from typing import Dict, Any, List, Optional

logger = logging.getLogger("Chip8Emulator.Chip8.Keypad")

class Chip8Keypad:
    """Holds the pressed/released state of the 16 keys."""

    def __init__(self):
        self.keys = [False] * NUM_KEYS

    def _check(self, key: int) -> None:
        if not 0 <= key < NUM_KEYS:
            raise InvalidKey(key)

    def set_key(self, key: int, pressed: bool) -> None:
        """
        Set the state of one key.

        Raises:
            InvalidKey: If ``key`` is not in 0-15
        """
        self._check(key)
        self.keys[key] = bool(pressed)
        logger.debug(f"Key {key:X} {'pressed' if pressed else 'released'}")

    def is_pressed(self, key: int) -> bool:
        self._check(key)
        return self.keys[key]

    def first_pressed(self) -> Optional[int]:
        """Return the lowest-numbered pressed key, or None."""
        for key, pressed in enumerate(self.keys):
            if pressed:
                return key
        return None

    def reset(self) -> None:
        self.keys = [False] * NUM_KEYS

    def get_state(self) -> Dict[str, Any]:
        return {"pressed": self.pressed_keys()}

    def pressed_keys(self) -> List[int]:
        return [key for key, pressed in enumerate(self.keys) if pressed]
