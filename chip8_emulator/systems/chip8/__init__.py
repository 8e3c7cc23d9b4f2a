"""
CHIP-8 emulation components.
"""
# Import main classes for external use
from .cpu import Chip8CPU, Instruction
from .memory import Chip8Memory
from .display import Chip8Display
from .keypad import Chip8Keypad
from .cartridge import Chip8Cartridge
from .chip8_system import Chip8System
