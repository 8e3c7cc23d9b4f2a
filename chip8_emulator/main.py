"""
Main entry point for the CHIP-8 Emulator.

Runs a ROM headlessly for a number of frames, optionally recording register
state, and reports what happened. Presentation, keyboard input and audio
belong to a front end; this runner only drives the machine.
"""

import argparse
import json
import logging
import os
import sys
import time
from typing import List, Optional

from tqdm import tqdm

from chip8_emulator.systems.system_factory import SystemFactory
from chip8_emulator.analysis.state_recorder import StateRecorder
from chip8_emulator.common.visualizer import FramebufferVisualizer
from chip8_emulator.utils.config_manager import ConfigManager
from chip8_emulator.utils.error_handler import (
    Chip8Error, ErrorCategory, error_boundary, error_handler
)

logger = logging.getLogger("Chip8Emulator")

def parse_keys(keys: str) -> List[int]:
    """Parse a string of hex digits (e.g. ``"5A"``) into key indices."""
    try:
        return [int(ch, 16) for ch in keys]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Keys must be hex digits 0-F, got '{keys}'")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CHIP-8 Emulator (headless runner)")
    parser.add_argument('--rom', type=str, required=True, help='Path to ROM file')
    parser.add_argument('--frames', type=int, default=60, help='Number of frames to run')
    parser.add_argument('--cycles-per-frame', type=int, help='Instructions executed per frame')
    parser.add_argument('--seed', type=int, help='Seed for the RND instruction')
    parser.add_argument('--strict', action='store_true', help='Stop on unknown opcodes')
    parser.add_argument('--keys', type=parse_keys, default=[],
                        help='Hex keys held down for the whole run, e.g. 5A')
    parser.add_argument('--record', action='store_true', help='Record register state every cycle')
    parser.add_argument('--save-state', type=str, help='Path to save recorded state history')
    parser.add_argument('--output', type=str, choices=['json', 'csv', 'pickle'], default='json',
                        help='Format for saved state history')
    parser.add_argument('--save-snapshot', type=str, help='Path to save the final machine snapshot')
    parser.add_argument('--load-snapshot', type=str, help='Path to a machine snapshot to start from')
    parser.add_argument('--screenshot', type=str, help='Path to save the final framebuffer image')
    parser.add_argument('--print-screen', action='store_true', help='Print the final framebuffer as text')
    parser.add_argument('--no-visualization', action='store_true', help='Disable plots')
    parser.add_argument('--config', type=str, help='Path to configuration file (JSON or YAML)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    return parser

@error_boundary(ErrorCategory.PROCESSING)
def render_figures(system, state_recorder, config: ConfigManager,
                   screenshot: Optional[str] = None) -> None:
    """Write the framebuffer screenshot and register plot for a finished run."""
    visualizer = FramebufferVisualizer(
        dark_mode=config.get("visualization.dark_mode"),
        output_dir=config.get("visualization.output_dir")
    )
    if screenshot:
        visualizer.plot_framebuffer(system.framebuffer(), filename=screenshot,
                                    title=system.rom_name or "Framebuffer")
    if state_recorder is not None:
        visualizer.plot_register_history(state_recorder, filename="registers.png")

def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments, run the ROM and print a summary.

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)

    config = ConfigManager()
    if args.config and not config.load_config(args.config):
        return 1

    # Command-line flags override the configuration file
    if args.cycles_per_frame is not None:
        config.set("cpu.cycles_per_frame", args.cycles_per_frame)
    if args.seed is not None:
        config.set("cpu.seed", args.seed)
    if args.strict:
        config.set("cpu.strict_opcodes", True)
    if args.log_level:
        config.set("logging.level", args.log_level)
    if args.debug:
        config.set("logging.level", "DEBUG")
    if args.record or args.save_state:
        config.set("recording.enabled", True)

    error_handler.set_log_levels(getattr(logging, config.get("logging.level", "INFO")))
    if config.get("logging.file"):
        error_handler.set_log_file(config.get("logging.file"))

    print("=" * 80)
    print("  CHIP-8 Emulator")
    print(f"  ROM: {args.rom}")
    print(f"  Frames: {args.frames} x {config.get('cpu.cycles_per_frame')} cycles")
    print("=" * 80)

    try:
        system = SystemFactory.create_system(config.get("system"), config.get_system_config())
    except ValueError as e:
        logger.error(f"Error creating system: {e}")
        return 1

    state_recorder = None
    if config.get("recording.enabled"):
        state_recorder = StateRecorder(
            max_history=config.get("recording.max_history"),
            compression_ratio=config.get("recording.compression_ratio")
        )
        system.register_state_recorder(state_recorder, interval=config.get("recording.interval"))

    try:
        system.reset()
        system.load_rom(args.rom)
    except (OSError, Chip8Error) as e:
        logger.error(f"Error loading ROM: {e}")
        return 1

    if args.load_snapshot:
        try:
            with open(args.load_snapshot, 'r') as f:
                system.restore_state(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Error loading snapshot: {e}")
            return 1

    for key in args.keys:
        system.set_key(key, True)

    status = 0
    start_time = time.time()

    for frame in tqdm(range(args.frames), desc="Running frames", unit="frame",
                      disable=not sys.stdout.isatty()):
        try:
            system.run_frame()
        except Chip8Error as e:
            logger.error(f"Machine fault in frame {frame + 1}: {e}")
            status = 2
            break

    execution_time = time.time() - start_time

    if state_recorder is not None and args.save_state:
        state_recorder.save_history(args.save_state, format=args.output)

    if args.save_snapshot:
        try:
            directory = os.path.dirname(args.save_snapshot)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(args.save_snapshot, 'w') as f:
                json.dump(system.get_snapshot(), f)
            logger.info(f"Saved snapshot to {args.save_snapshot}")
        except OSError as e:
            logger.error(f"Error saving snapshot: {e}")

    if args.print_screen:
        print(system.display.render_text())

    if not args.no_visualization and config.get("visualization.enabled"):
        render_figures(system, state_recorder, config, args.screenshot)
    elif args.screenshot:
        logger.warning(f"Visualization disabled, not writing screenshot {args.screenshot}")

    total_cycles = system.cycle_count
    cycles_per_second = total_cycles / execution_time if execution_time > 0 else 0
    summary = error_handler.get_error_summary()

    print("\nRun Summary:")
    print(f"ROM: {system.rom_name}")
    print(f"Frames run: {system.frame_count}")
    print(f"Cycles executed: {total_cycles}")
    print(f"Unknown opcodes: {system.diagnostic_count}")
    print(f"Reported conditions: {summary['total']}")
    print(f"Final PC: ${system.cpu.PC:03X}")
    print(f"Execution time: {execution_time:.2f} seconds")
    print(f"Performance: {cycles_per_second:.2f} cycles/second")

    logger.info("CHIP-8 Emulator run complete")
    return status

if __name__ == "__main__":
    sys.exit(main())
