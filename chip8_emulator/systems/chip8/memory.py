"""
CHIP-8 memory system implementation.

The CHIP-8 address space is a flat 4KB of RAM:
- 0x000-0x04F reserved for the interpreter
- 0x050-0x09F built-in hexadecimal font (16 glyphs of 5 bytes)
- 0x200-0xFFF program image and working memory

All accesses are bounds-checked; out-of-range addresses raise
MemoryAccessError instead of wrapping or aliasing.
"""

from ...common.interfaces import Memory
from ...constants import (
    MEMORY_SIZE, FONTSET, FONTSET_START_ADDRESS, PROGRAM_START_ADDRESS
)
from ...utils.error_handler import MemoryAccessError, RomTooLarge
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger("Chip8Emulator.Chip8.Memory")

class Chip8Memory(Memory):
    """
    Emulates the CHIP-8 4KB RAM with the font preloaded.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the memory system.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.size = self.config.get("memory_size", MEMORY_SIZE)

        self.ram = bytearray(self.size)
        self.rom_size = 0

        self._load_font()

        logger.info(f"CHIP-8 memory initialized ({self.size} bytes)")

    def _load_font(self) -> None:
        self.ram[FONTSET_START_ADDRESS:FONTSET_START_ADDRESS + len(FONTSET)] = FONTSET

    def check_range(self, address: int, length: int = 1) -> None:
        """
        Validate that ``length`` bytes starting at ``address`` are addressable.

        Raises:
            MemoryAccessError: If any byte of the range falls outside memory
        """
        if address < 0 or length < 0 or address + length > self.size:
            raise MemoryAccessError(address, length)

    def read(self, address: int) -> int:
        """
        Read a byte from the specified address.

        Args:
            address: Memory address

        Returns:
            Byte value at address
        """
        self.check_range(address)
        return self.ram[address]

    def write(self, address: int, value: int) -> None:
        """
        Write a byte to the specified address.

        Args:
            address: Memory address
            value: Byte value to write
        """
        self.check_range(address)
        self.ram[address] = value & 0xFF

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word."""
        self.check_range(address, 2)
        return (self.ram[address] << 8) | self.ram[address + 1]

    def read_block(self, address: int, length: int) -> bytes:
        """Read ``length`` consecutive bytes."""
        self.check_range(address, length)
        return bytes(self.ram[address:address + length])

    def write_block(self, address: int, data: bytes) -> None:
        """Write consecutive bytes. Nothing is written if any byte is out of range."""
        self.check_range(address, len(data))
        self.ram[address:address + len(data)] = bytes(b & 0xFF for b in data)

    def load_rom(self, rom_data: bytes) -> None:
        """
        Copy a program image into memory at 0x200.

        Args:
            rom_data: Raw ROM bytes

        Raises:
            RomTooLarge: If the image does not fit; memory is left untouched
        """
        limit = self.size - PROGRAM_START_ADDRESS
        if len(rom_data) > limit:
            raise RomTooLarge(len(rom_data), limit)

        self.ram[PROGRAM_START_ADDRESS:PROGRAM_START_ADDRESS + len(rom_data)] = rom_data
        self.rom_size = len(rom_data)

        logger.info(f"Loaded {self.rom_size} bytes at ${PROGRAM_START_ADDRESS:03X}")

    def reset(self) -> None:
        """Zero memory and restore the font region."""
        self.ram[:] = bytes(self.size)
        self.rom_size = 0
        self._load_font()
        logger.debug("Memory reset")

    def dump(self) -> bytes:
        """Return a copy of the full address space."""
        return bytes(self.ram)

    def restore(self, data: bytes) -> None:
        """Replace the full address space with a previously dumped image."""
        if len(data) != self.size:
            raise ValueError(f"Memory image must be {self.size} bytes, got {len(data)}")
        self.ram[:] = data

    def get_state(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "rom_size": self.rom_size
        }
