"""
CHIP-8 program image handling.

CHIP-8 programs are raw byte images with no header; they are copied
verbatim into memory at 0x200. This module reads them from disk and
validates their size before they reach the machine.
"""

import logging
import os
import zlib
from typing import Dict, Any

from ...constants import MAX_ROM_SIZE, ROM_EXTENSIONS
from ...utils.error_handler import RomTooLarge

logger = logging.getLogger("Chip8Emulator.Chip8.Cartridge")

class Chip8Cartridge:
    """A program image plus the metadata the front end reports."""

    def __init__(self, rom_data: bytes, name: str = ""):
        """
        Args:
            rom_data: Raw program bytes
            name: Display name, usually the file name

        Raises:
            RomTooLarge: If the image cannot fit in program memory
        """
        if len(rom_data) > MAX_ROM_SIZE:
            raise RomTooLarge(len(rom_data), MAX_ROM_SIZE)

        self.data = bytes(rom_data)
        self.name = name
        self.size = len(self.data)
        self.crc32 = zlib.crc32(self.data) & 0xFFFFFFFF

    @classmethod
    def from_file(cls, rom_path: str) -> 'Chip8Cartridge':
        """
        Read a program image from disk.

        Args:
            rom_path: Path to ROM file

        Returns:
            Cartridge holding the file contents
        """
        _, ext = os.path.splitext(rom_path)
        if ext.lower() not in ROM_EXTENSIONS["chip8"]:
            logger.warning(f"Unrecognized ROM extension '{ext}', loading anyway")

        with open(rom_path, 'rb') as f:
            rom_data = f.read()

        cartridge = cls(rom_data, name=os.path.basename(rom_path))
        logger.info(f"Read ROM {cartridge.name}: {cartridge.size} bytes, CRC32 {cartridge.crc32:08X}")
        return cartridge

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "crc32": f"{self.crc32:08X}"
        }
