"""
Configuration data for supported virtual machines.
"""

from .constants import (
    MEMORY_SIZE, FONTSET_START_ADDRESS, PROGRAM_START_ADDRESS,
    DISPLAY_WIDTH, DISPLAY_HEIGHT, STACK_DEPTH, REGISTER_NAMES
)

SYSTEM_CONFIGS = {
    "chip8": {
        "cpu_type": "CHIP-8",
        "memory_size": MEMORY_SIZE,
        "memory_map": {
            "reserved": {"start": 0x000, "end": FONTSET_START_ADDRESS - 1},
            "font": {"start": FONTSET_START_ADDRESS, "end": 0x09F},
            "program": {"start": PROGRAM_START_ADDRESS, "end": MEMORY_SIZE - 1},
        },
        "registers": REGISTER_NAMES + ["I", "PC", "SP", "DT", "ST"],
        "stack_depth": STACK_DEPTH,
        "resolution": (DISPLAY_WIDTH, DISPLAY_HEIGHT),
        "timer_freq_hz": 60,
        # Typical interpreter speed is 500-1000 instructions per second,
        # i.e. roughly 10 per 60Hz frame.
        "cycles_per_frame": 10,
        "num_keys": 16,
    }
}
