"""
Configuration management for the CHIP-8 Emulator.

This module loads, validates and provides dotted-key access to the emulator's
run-time settings. JSON and YAML files are supported; user values are deep
merged over the defaults.
"""

import os
import json
import logging
import copy
from typing import Dict, Any, Optional, List
import yaml

from ..constants import MAX_HISTORY_SIZE
from ..system_configs import SYSTEM_CONFIGS

logger = logging.getLogger("Chip8Emulator.ConfigManager")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

class ConfigManager:
    """
    Configuration management for the CHIP-8 Emulator.

    Holds a nested configuration dictionary, tracks which keys differ from
    the defaults and validates user input before merging it.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (None for default values)
        """
        self.defaults = {
            "system": "chip8",
            "cpu": {
                "cycles_per_frame": 10,
                "strict_opcodes": False,
                "seed": None
            },
            "visualization": {
                "enabled": True,
                "dark_mode": True,
                "output_dir": "./output"
            },
            "logging": {
                "level": "INFO",
                "file": None,
                "console": True
            },
            "recording": {
                "enabled": False,
                "max_history": MAX_HISTORY_SIZE,
                "compression_ratio": 10,
                "interval": 1
            }
        }

        self.config = copy.deepcopy(self.defaults)

        # Dotted paths of keys changed from defaults
        self.modified_keys = set()

        if config_path:
            self.load_config(config_path)

        logger.debug("ConfigManager initialized")

    def load_config(self, config_path: str) -> bool:
        """
        Load configuration from file.

        Args:
            config_path: Path to configuration file

        Returns:
            True if configuration loaded successfully, False otherwise
        """
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found: {config_path}")
            return False

        _, ext = os.path.splitext(config_path)
        ext = ext.lower()

        try:
            with open(config_path, 'r') as f:
                if ext == '.json':
                    user_config = json.load(f)
                elif ext in ['.yaml', '.yml']:
                    user_config = yaml.safe_load(f) or {}
                else:
                    logger.error(f"Unsupported configuration format: {ext}")
                    return False
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading configuration: {e}")
            return False

        if not self.load_from_dict(user_config):
            return False

        logger.info(f"Configuration loaded from {config_path}")
        return True

    def _merge_config(self, user_config: Dict[str, Any], target: Optional[Dict[str, Any]] = None,
                      path: str = "") -> None:
        """
        Deep-merge user configuration into the current one, tracking modified keys.

        Args:
            user_config: User configuration dictionary
            target: Dictionary being merged into (internal use)
            path: Current key path for tracking (internal use)
        """
        if target is None:
            target = self.config

        for key, value in user_config.items():
            current_path = f"{path}.{key}" if path else key

            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge_config(value, target[key], current_path)
            else:
                target[key] = value
                self.modified_keys.add(current_path)

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate configuration against schema.

        Args:
            config: Configuration dictionary to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not isinstance(config, dict):
            return [f"Configuration must be a mapping, got {type(config).__name__}"]

        if "system" in config and config["system"] not in SYSTEM_CONFIGS:
            valid_systems = ", ".join(SYSTEM_CONFIGS.keys())
            errors.append(f"Invalid system type: {config['system']}. Valid options: {valid_systems}")

        cpu_config = config.get("cpu", {})
        if "cycles_per_frame" in cpu_config:
            value = cpu_config["cycles_per_frame"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                errors.append(f"Invalid cpu.cycles_per_frame: {value}. Must be a positive integer")

        if "strict_opcodes" in cpu_config and not isinstance(cpu_config["strict_opcodes"], bool):
            errors.append(f"Invalid cpu.strict_opcodes: {cpu_config['strict_opcodes']}. Must be a boolean")

        if "seed" in cpu_config and cpu_config["seed"] is not None:
            seed = cpu_config["seed"]
            if not isinstance(seed, int) or isinstance(seed, bool) or seed < 0:
                errors.append(f"Invalid cpu.seed: {seed}. Must be a non-negative integer or null")

        vis_config = config.get("visualization", {})
        for key in ["enabled", "dark_mode"]:
            if key in vis_config and not isinstance(vis_config[key], bool):
                errors.append(f"Invalid visualization.{key}: {vis_config[key]}. Must be a boolean")

        log_config = config.get("logging", {})
        if "level" in log_config and log_config["level"] not in LOG_LEVELS:
            errors.append(f"Invalid logging.level: {log_config['level']}. "
                          f"Valid options: {', '.join(LOG_LEVELS)}")

        rec_config = config.get("recording", {})
        for key in ["max_history", "compression_ratio", "interval"]:
            if key in rec_config:
                value = rec_config[key]
                if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                    errors.append(f"Invalid recording.{key}: {value}. Must be a positive integer")

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key path.

        Args:
            key: Configuration key path (e.g., 'cpu.cycles_per_frame')
            default: Default value if key not found

        Returns:
            Configuration value or default if not found
        """
        value = self.config
        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value by key path.

        Args:
            key: Configuration key path (e.g., 'cpu.seed')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self.modified_keys.add(key)

        logger.debug(f"Configuration updated: {key} = {value}")

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset configuration to defaults.

        Args:
            key: Key path to reset (None for all)
        """
        if key is None:
            self.config = copy.deepcopy(self.defaults)
            self.modified_keys.clear()
            logger.info("Configuration reset to defaults")
            return

        keys = key.split('.')
        default_value = self._get_default_value(keys)

        config = self.config
        for k in keys[:-1]:
            if k not in config:
                return
            config = config[k]

        config[keys[-1]] = default_value
        self.modified_keys.discard(key)
        logger.info(f"Configuration key reset to default: {key}")

    def _get_default_value(self, keys: List[str]) -> Any:
        value = self.defaults
        for k in keys:
            if k not in value:
                return None
            value = value[k]
        return copy.deepcopy(value)

    def save_config(self, config_path: str, format: str = 'json') -> bool:
        """
        Save current configuration to file.

        Args:
            config_path: Path to output file
            format: Output format ('json' or 'yaml')

        Returns:
            True if saved successfully, False otherwise
        """
        if format.lower() not in ['json', 'yaml', 'yml']:
            logger.error(f"Unsupported configuration format: {format}")
            return False

        try:
            directory = os.path.dirname(config_path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory)

            with open(config_path, 'w') as f:
                if format.lower() == 'json':
                    json.dump(self.config, f, indent=2)
                else:
                    yaml.safe_dump(self.config, f, default_flow_style=False)

        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            return False

        logger.info(f"Configuration saved to {config_path}")
        return True

    def get_modified_config(self) -> Dict[str, Any]:
        """
        Get a dictionary containing only modified configuration values.

        Returns:
            Dictionary with modified values
        """
        modified_config = {}

        for key in self.modified_keys:
            keys = key.split('.')
            current = modified_config
            for k in keys[:-1]:
                current = current.setdefault(k, {})
            current[keys[-1]] = self.get(key)

        return modified_config

    def load_from_dict(self, config_dict: Dict[str, Any]) -> bool:
        """
        Load configuration from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            True if loaded successfully, False otherwise
        """
        validation_errors = self.validate_config(config_dict)
        if validation_errors:
            for error in validation_errors:
                logger.error(f"Configuration validation error: {error}")
            return False

        self._merge_config(config_dict)

        logger.debug("Configuration loaded from dictionary")
        return True

    def get_system_config(self) -> Dict[str, Any]:
        """
        Get the machine configuration with CPU overrides applied.

        Returns:
            Dictionary accepted by Chip8System
        """
        system_config = dict(SYSTEM_CONFIGS.get(self.get("system", "chip8"), {}))
        system_config.update({
            "cycles_per_frame": self.get("cpu.cycles_per_frame"),
            "strict_opcodes": self.get("cpu.strict_opcodes"),
            "seed": self.get("cpu.seed")
        })
        return system_config

    def as_dict(self) -> Dict[str, Any]:
        """Get a deep copy of the full configuration."""
        return copy.deepcopy(self.config)
