# common/interfaces.py
from abc import ABC, abstractmethod
import typing as t

class CPU(ABC):
    @abstractmethod
    def reset(self) -> None:
        """Reset the CPU to initial state."""
        pass

    @abstractmethod
    def step(self) -> t.Optional[Exception]:
        """Execute one instruction. Return a diagnostic or None."""
        pass

    @abstractmethod
    def get_state(self) -> dict:
        """Return the current CPU state as a dictionary."""
        pass

    @abstractmethod
    def set_memory(self, memory: 'Memory') -> None:
        """Connect the CPU to a memory system."""
        pass

class Memory(ABC):
    @abstractmethod
    def read(self, address: int) -> int:
        """Read a byte from the specified address."""
        pass

    @abstractmethod
    def write(self, address: int, value: int) -> None:
        """Write a byte to the specified address."""
        pass

    @abstractmethod
    def load_rom(self, rom_data: bytes) -> None:
        """Load ROM data into memory."""
        pass

class Display(ABC):
    @abstractmethod
    def clear(self) -> None:
        """Clear every pixel."""
        pass

    @abstractmethod
    def draw_sprite(self, x: int, y: int, sprite: bytes) -> bool:
        """XOR a sprite onto the display. Return True on collision."""
        pass

    @abstractmethod
    def get_frame_buffer(self) -> t.Any:
        """Get the current frame buffer."""
        pass

class System(ABC):
    @abstractmethod
    def __init__(self, config: dict):
        """Initialize the system with configuration."""
        pass

    @abstractmethod
    def load_rom(self, rom_path: str) -> None:
        """Load a ROM file."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset the system."""
        pass

    @abstractmethod
    def run_frame(self) -> dict:
        """Run one frame and return state data."""
        pass

    @abstractmethod
    def get_system_state(self) -> dict:
        """Get complete system state."""
        pass
