"""
Global constants for the CHIP-8 Emulator.
"""

# Memory layout
MEMORY_SIZE = 4096
FONTSET_START_ADDRESS = 0x50
PROGRAM_START_ADDRESS = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START_ADDRESS

# Register file
NUM_REGISTERS = 16
FLAG_REGISTER = 0xF  # VF
STACK_DEPTH = 16
NUM_KEYS = 16

# Display
DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8

# Built-in hexadecimal digit sprites, 5 bytes each (0-F)
FONT_GLYPH_SIZE = 5
FONTSET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])
FONTSET_SIZE = len(FONTSET)

# Register names used in state snapshots
REGISTER_NAMES = [f"V{i:X}" for i in range(NUM_REGISTERS)]

# Visualization constants
COLOR_MAPS = {
    'framebuffer': 'binary_r',
    'register': 'inferno'
}

# Default number of snapshots kept by the state recorder
MAX_HISTORY_SIZE = 100000

# File extensions accepted by the ROM loader
ROM_EXTENSIONS = {
    'chip8': ['.ch8', '.c8', '.rom', '.bin']
}
