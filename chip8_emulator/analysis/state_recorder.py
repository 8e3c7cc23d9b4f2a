"""
State recording module for capturing and managing virtual machine state.
"""

import numpy as np
import logging
import json
import os
import time
from typing import Dict, List, Optional, Any
from collections import deque
import pickle

from ..constants import MAX_HISTORY_SIZE

logger = logging.getLogger("Chip8Emulator.StateRecorder")

class StateRecorder:
    """
    Records per-cycle register snapshots during emulation.
    Keeps a bounded history, a sparse compressed history and a cycle index.
    """

    def __init__(self, max_history: int = MAX_HISTORY_SIZE,
                compression_ratio: int = 10,
                record_filter: Optional[List[str]] = None):
        """
        Initialize the state recorder.

        Args:
            max_history: Maximum number of states to keep in memory
            compression_ratio: Ratio for compressed storage (1:N)
            record_filter: List of register names to include (None for all)
        """
        self.max_history = max_history
        self.compression_ratio = max(1, compression_ratio)
        self.record_filter = record_filter

        # Oldest states fall off the front once max_history is reached
        self.state_history = deque(maxlen=max_history)

        # Keeps 1 out of N states, covering N times the span of state_history
        self.compressed_history = deque(maxlen=self._compressed_limit())

        # Cycle -> state, for states still in state_history
        self.cycle_index = {}

        self.stats = {
            "total_records": 0,
            "start_time": time.time(),
            "start_cycle": None,
            "current_cycle": None,
            "unique_registers": set()
        }

        logger.debug(f"Initialized state recorder with max history {max_history}, "
                     f"compression ratio 1:{self.compression_ratio}")

    def _compressed_limit(self) -> int:
        return max(1, self.max_history // self.compression_ratio)

    def record_state(self, state: Dict[str, Any]) -> None:
        """
        Record a state snapshot.

        Args:
            state: Dictionary with ``cycle`` and ``registers`` keys
        """
        if self.record_filter is not None and "registers" in state:
            state = state.copy()
            state["registers"] = {
                name: value for name, value in state["registers"].items()
                if name in self.record_filter
            }

        self.stats["total_records"] += 1

        if len(self.state_history) == self.max_history:
            evicted = self.state_history[0]
            if self.cycle_index.get(evicted.get("cycle")) is evicted:
                del self.cycle_index[evicted["cycle"]]

        if "cycle" in state:
            cycle = state["cycle"]
            if self.stats["start_cycle"] is None:
                self.stats["start_cycle"] = cycle
            self.stats["current_cycle"] = cycle
            self.cycle_index[cycle] = state

        if "registers" in state:
            self.stats["unique_registers"].update(state["registers"].keys())

        self.state_history.append(state)

        if self.stats["total_records"] % self.compression_ratio == 0:
            self.compressed_history.append(state)

    def clear(self) -> None:
        """Drop all recorded states and statistics."""
        self.state_history.clear()
        self.compressed_history.clear()
        self.cycle_index = {}
        self.stats.update({
            "total_records": 0,
            "start_time": time.time(),
            "start_cycle": None,
            "current_cycle": None,
            "unique_registers": set()
        })

    def get_state_history(self, start_idx: Optional[int] = None,
                       end_idx: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get a slice of the state history.

        Args:
            start_idx: Starting index (None for beginning)
            end_idx: Ending index (None for end)

        Returns:
            List of state snapshots
        """
        return list(self.state_history)[start_idx:end_idx]

    def get_state_by_cycle(self, cycle: int) -> Optional[Dict[str, Any]]:
        """
        Get the snapshot for a cycle, or the nearest recorded one.

        Args:
            cycle: Cycle number to retrieve

        Returns:
            State snapshot, or None if nothing is recorded
        """
        if cycle in self.cycle_index:
            return self.cycle_index[cycle]

        if not self.cycle_index:
            return None

        nearest_cycle = min(self.cycle_index, key=lambda c: (abs(c - cycle), c))
        logger.debug(f"Exact cycle {cycle} not found, returning nearest cycle {nearest_cycle}")
        return self.cycle_index[nearest_cycle]

    def get_register_history(self, register_name: str) -> Dict[str, List[Any]]:
        """
        Get history for a specific register.

        Args:
            register_name: Register name, e.g. ``V3`` or ``PC``

        Returns:
            Dictionary with cycle numbers and register values
        """
        cycles = []
        values = []

        for state in self.state_history:
            registers = state.get("registers", {})
            if register_name in registers:
                cycles.append(state.get("cycle", len(cycles)))
                values.append(registers[register_name])

        return {
            "cycles": cycles,
            "values": values
        }

    def get_register_matrix(self, register_names: List[str]) -> np.ndarray:
        """
        Stack register histories into an array of shape (states, registers).

        Missing values are filled with 0.
        """
        rows = [
            [state.get("registers", {}).get(name, 0) for name in register_names]
            for state in self.state_history
        ]
        return np.array(rows, dtype=np.int64).reshape(len(rows), len(register_names))

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get recorder statistics.

        Returns:
            Dictionary with statistics
        """
        elapsed_time = time.time() - self.stats["start_time"]

        if self.stats["start_cycle"] is not None and self.stats["current_cycle"] is not None:
            total_cycles = self.stats["current_cycle"] - self.stats["start_cycle"]
        else:
            total_cycles = 0

        return {
            "total_records": self.stats["total_records"],
            "elapsed_time": elapsed_time,
            "total_cycles": total_cycles,
            "cycles_per_second": total_cycles / elapsed_time if elapsed_time > 0 else 0,
            "current_history_size": len(self.state_history),
            "max_history_size": self.max_history,
            "compression_ratio": self.compression_ratio,
            "compressed_history_size": len(self.compressed_history),
            "unique_registers": sorted(self.stats["unique_registers"])
        }

    def save_history(self, filename: str, format: str = 'pickle') -> bool:
        """
        Save state history to a file.

        Args:
            filename: Output filename
            format: File format ('pickle', 'json', or 'csv')

        Returns:
            True if successful, False otherwise
        """
        try:
            output_dir = os.path.dirname(filename)
            if output_dir and not os.path.exists(output_dir):
                os.makedirs(output_dir)

            data = {
                "history": list(self.state_history),
                "compressed": list(self.compressed_history),
                "statistics": self.get_statistics()
            }

            if format == 'pickle':
                with open(filename, 'wb') as f:
                    pickle.dump(data, f)

            elif format == 'json':
                self._convert_numpy_arrays(data)
                with open(filename, 'w') as f:
                    json.dump(data, f, indent=2)

            elif format == 'csv':
                register_names = sorted(self.stats["unique_registers"])
                with open(filename, 'w') as f:
                    headers = ["record_idx", "cycle", "frame", "opcode"]
                    headers.extend(f"reg_{name}" for name in register_names)
                    f.write(",".join(headers) + "\n")

                    for i, state in enumerate(self.state_history):
                        row = [
                            str(i),
                            str(state.get("cycle", "")),
                            str(state.get("frame", "")),
                            str(state.get("opcode", ""))
                        ]
                        registers = state.get("registers", {})
                        row.extend(str(registers.get(name, "")) for name in register_names)
                        f.write(",".join(row) + "\n")
            else:
                logger.error(f"Unsupported format: {format}")
                return False

            logger.info(f"Saved state history to {filename} in {format} format")
            return True

        except OSError as e:
            logger.error(f"Error saving history: {e}")
            return False

    def _convert_numpy_arrays(self, data: Any) -> None:
        """Convert numpy arrays and scalars to plain Python values in place."""
        items = data.items() if isinstance(data, dict) else enumerate(data)
        for key, value in list(items):
            if isinstance(value, np.ndarray):
                data[key] = value.tolist()
            elif isinstance(value, np.generic):
                data[key] = value.item()
            elif isinstance(value, (dict, list)):
                self._convert_numpy_arrays(value)

    def load_history(self, filename: str) -> bool:
        """
        Load state history from a pickle or JSON file.

        Args:
            filename: Input filename

        Returns:
            True if successful, False otherwise
        """
        _, ext = os.path.splitext(filename)
        ext = ext.lower()

        try:
            if ext in ('.pkl', '.pickle'):
                with open(filename, 'rb') as f:
                    data = pickle.load(f)
            elif ext == '.json':
                with open(filename, 'r') as f:
                    data = json.load(f)
            else:
                logger.error(f"Unsupported file format: {ext}")
                return False
        except (OSError, ValueError, pickle.UnpicklingError) as e:
            logger.error(f"Error loading history: {e}")
            return False

        self.state_history = deque(data.get("history", []), maxlen=self.max_history)
        self.compressed_history = deque(data.get("compressed", []), maxlen=self._compressed_limit())

        self.cycle_index = {
            state["cycle"]: state for state in self.state_history if "cycle" in state
        }

        statistics = data.get("statistics", {})
        for stat in ("total_records", "start_cycle", "current_cycle"):
            if stat in statistics:
                self.stats[stat] = statistics[stat]

        unique_regs = set()
        for state in self.state_history:
            unique_regs.update(state.get("registers", {}).keys())
        self.stats["unique_registers"] = unique_regs

        logger.info(f"Loaded state history from {filename}")
        return True

    def find_register_value_changes(self, register_name: str,
                                 start_cycle: Optional[int] = None,
                                 end_cycle: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Find all instances where a register changes value.

        Args:
            register_name: Register name to track
            start_cycle: Starting cycle (None for beginning)
            end_cycle: Ending cycle (None for end)

        Returns:
            List of change events with cycle and value information
        """
        changes = []
        last_value = None

        for state in self.state_history:
            registers = state.get("registers", {})
            if register_name not in registers:
                continue

            current_value = registers[register_name]
            current_cycle = state.get("cycle")

            if start_cycle is not None and current_cycle is not None and current_cycle < start_cycle:
                last_value = current_value
                continue

            if end_cycle is not None and current_cycle is not None and current_cycle > end_cycle:
                break

            if last_value is not None and current_value != last_value:
                changes.append({
                    "cycle": current_cycle,
                    "frame": state.get("frame"),
                    "old_value": last_value,
                    "new_value": current_value
                })

            last_value = current_value

        return changes
