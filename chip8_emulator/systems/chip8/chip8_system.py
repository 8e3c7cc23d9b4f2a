"""
CHIP-8 system implementation.

This module provides the complete virtual machine, integrating the CPU,
memory, display and keypad. It is the surface the front end talks to:
loading programs, stepping the machine, feeding key states in and reading
the framebuffer and sound timer out.
"""

import logging
import time
from typing import Dict, Optional, Any

import numpy as np

from ...common.interfaces import System
from ...system_configs import SYSTEM_CONFIGS
from ...utils.error_handler import (
    Chip8Error, UnknownOpcode, ErrorLevel, error_handler as default_error_handler
)
from .cpu import Chip8CPU
from .memory import Chip8Memory
from .display import Chip8Display
from .keypad import Chip8Keypad
from .cartridge import Chip8Cartridge

logger = logging.getLogger("Chip8Emulator.Chip8.System")

class Chip8System(System):
    """
    Complete CHIP-8 virtual machine.

    Owns all emulated state. ``step`` runs exactly one instruction cycle;
    ``run_frame`` runs ``cycles_per_frame`` of them. Pacing against wall
    time is left to the caller.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, error_handler=None):
        """
        Initialize the CHIP-8 system.

        Args:
            config: System configuration dictionary (defaults to the chip8
                entry of SYSTEM_CONFIGS). Recognized overrides: ``seed``,
                ``strict_opcodes``, ``cycles_per_frame``.
            error_handler: ErrorHandler receiving diagnostics and faults
        """
        self.config = dict(SYSTEM_CONFIGS["chip8"])
        if config:
            self.config.update(config)

        self.error_handler = error_handler or default_error_handler

        # Create and connect components
        self.memory = Chip8Memory(self.config)
        self.display = Chip8Display(*self.config["resolution"])
        self.keypad = Chip8Keypad()
        self.cpu = Chip8CPU(
            display=self.display,
            keypad=self.keypad,
            seed=self.config.get("seed"),
            strict_opcodes=self.config.get("strict_opcodes", False)
        )
        self.cpu.set_memory(self.memory)

        # System state
        self.frame_count = 0
        self.cycles_per_frame = self.config.get("cycles_per_frame", 10)
        self.last_diagnostic = None
        self.diagnostic_count = 0

        # Timing
        self.last_frame_time = time.time()

        # ROM information
        self.rom_loaded = False
        self.rom_name = ""
        self.cartridge = None

        # Optional recorder fed by step()
        self.state_recorder = None
        self.record_interval = 1

        logger.info("CHIP-8 system initialized")

    @property
    def cycle_count(self) -> int:
        return self.cpu.cycles

    def register_state_recorder(self, recorder, interval: int = 1) -> None:
        """
        Record a register snapshot every ``interval`` cycles.

        Args:
            recorder: StateRecorder instance
            interval: Cycles between snapshots
        """
        self.state_recorder = recorder
        self.record_interval = max(1, interval)
        logger.debug(f"State recorder registered (interval {self.record_interval})")

    def reset(self) -> None:
        """Reset all machine state. The program image is cleared as well."""
        self.memory.reset()
        self.display.reset()
        self.keypad.reset()
        self.cpu.reset()

        self.frame_count = 0
        self.last_diagnostic = None
        self.diagnostic_count = 0
        self.rom_loaded = False
        self.last_frame_time = time.time()

        logger.info("System reset")

    def load(self, rom_data: bytes) -> None:
        """
        Copy a program image into memory at 0x200.

        Args:
            rom_data: Raw ROM bytes

        Raises:
            RomTooLarge: If the image does not fit; memory is unchanged
        """
        try:
            self.memory.load_rom(rom_data)
        except Chip8Error as e:
            self.error_handler.report(e)
            raise

        self.rom_loaded = True

    def load_rom(self, rom_path: str) -> None:
        """
        Load a CHIP-8 ROM file.

        Args:
            rom_path: Path to ROM file
        """
        try:
            cartridge = Chip8Cartridge.from_file(rom_path)
        except Chip8Error as e:
            self.error_handler.report(e)
            raise

        self.load(cartridge.data)
        self.cartridge = cartridge
        self.rom_name = cartridge.name

        logger.info(f"Loaded ROM: {self.rom_name}")

    def restart(self) -> None:
        """Reset the machine and reload the current cartridge."""
        self.reset()
        if self.cartridge is not None:
            self.load(self.cartridge.data)

    def step(self) -> Optional[UnknownOpcode]:
        """
        Execute one instruction cycle.

        Returns:
            UnknownOpcode diagnostic if the instruction was undefined

        Raises:
            Chip8Error: Machine fault; the faulting instruction had no effect
        """
        try:
            diagnostic = self.cpu.step()
        except Chip8Error as e:
            self.error_handler.report(e)
            raise

        if diagnostic is not None:
            self.last_diagnostic = diagnostic
            self.diagnostic_count += 1
            self.error_handler.report(diagnostic, level=ErrorLevel.WARNING)

        if self.state_recorder is not None and self.cpu.cycles % self.record_interval == 0:
            self._record_state()

        return diagnostic

    def set_key(self, index: int, pressed: bool) -> None:
        """
        Set the state of a keypad key.

        Raises:
            InvalidKey: If ``index`` is not in 0-15
        """
        try:
            self.keypad.set_key(index, pressed)
        except Chip8Error as e:
            self.error_handler.report(e)
            raise

    def framebuffer(self) -> np.ndarray:
        """Read-only (32, 64) boolean view of the display."""
        return self.display.get_frame_buffer()

    def sound_timer(self) -> int:
        """Current sound timer value; the tone plays while it is non-zero."""
        return self.cpu.sound_timer

    def run_frame(self) -> Dict[str, Any]:
        """
        Run ``cycles_per_frame`` instruction cycles.

        Returns:
            System state at the end of the frame
        """
        if not self.rom_loaded:
            logger.warning("Running with no ROM loaded")

        for _ in range(self.cycles_per_frame):
            self.step()

        self.frame_count += 1

        current_time = time.time()
        frame_time = current_time - self.last_frame_time
        fps = 1.0 / frame_time if frame_time > 0 else 0
        self.last_frame_time = current_time

        logger.debug(f"Frame {self.frame_count} completed: {self.cycles_per_frame} cycles, {fps:.2f} FPS")

        return self.get_system_state()

    def get_system_state(self) -> Dict[str, Any]:
        """
        Get the current system state.

        Returns:
            Dictionary with system state
        """
        return {
            "cycle_count": self.cycle_count,
            "frame_count": self.frame_count,
            "rom_name": self.rom_name,
            "cpu_state": self.cpu.get_state(),
            "memory_state": self.memory.get_state(),
            "display_state": self.display.get_state(),
            "keypad_state": self.keypad.get_state(),
            "diagnostics": self.diagnostic_count,
            "frame_buffer": self.display.pixels.copy()
        }

    def get_snapshot(self) -> Dict[str, Any]:
        """
        Capture the full machine state in a JSON-serializable form.

        Returns:
            Snapshot dictionary accepted by ``restore_state``
        """
        return {
            "cpu": self.cpu.get_state(),
            "memory": list(self.memory.dump()),
            "framebuffer": self.display.pixels.astype(int).tolist(),
            "keys": list(self.keypad.keys),
            "frame_count": self.frame_count,
            "rom_name": self.rom_name
        }

    def restore_state(self, snapshot: Dict[str, Any]) -> None:
        """
        Restore a snapshot taken with ``get_snapshot``.

        Args:
            snapshot: Snapshot dictionary
        """
        self.cpu.set_state(snapshot["cpu"])
        self.memory.restore(bytes(snapshot["memory"]))
        self.display.load_pixels(snapshot["framebuffer"])
        for key, pressed in enumerate(snapshot.get("keys", [])):
            self.keypad.set_key(key, pressed)

        self.frame_count = snapshot.get("frame_count", 0)
        self.rom_name = snapshot.get("rom_name", "")
        self.rom_loaded = True

        logger.info(f"Restored snapshot at cycle {self.cycle_count}")

    def _record_state(self) -> None:
        """Record the current register state for analysis."""
        cpu_state = self.cpu.get_state()
        self.state_recorder.record_state({
            "cycle": self.cpu.cycles,
            "frame": self.frame_count,
            "opcode": cpu_state["opcode"],
            "registers": cpu_state["registers"]
        })
