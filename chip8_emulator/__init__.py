"""
CHIP-8 Emulator

An interpreter for the CHIP-8 virtual machine: a 4KB memory image, sixteen
8-bit registers, a 64x32 monochrome display and a 16-key hexadecimal keypad,
with state recording and visualization tools for inspecting program runs.
"""

__version__ = "0.1.0"
