# systems/system_factory.py
from typing import Any, Dict, Optional

from ..common.interfaces import System
from ..system_configs import SYSTEM_CONFIGS

# Import system implementations
from .chip8.chip8_system import Chip8System

class SystemFactory:
    @staticmethod
    def create_system(system_type: str, overrides: Optional[Dict[str, Any]] = None) -> System:
        """Create and return a system implementation based on type."""
        if system_type not in SYSTEM_CONFIGS:
            raise ValueError(f"Unknown system type: {system_type}")

        config = dict(SYSTEM_CONFIGS[system_type])
        if overrides:
            config.update(overrides)

        if system_type == "chip8":
            return Chip8System(config)
        else:
            raise ValueError(f"System implementation not available for: {system_type}")
