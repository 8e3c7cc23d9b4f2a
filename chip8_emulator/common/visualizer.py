"""
Visualization tools for inspecting emulation results.
"""
import numpy as np
import matplotlib.pyplot as plt
import logging
import os
from typing import List, Tuple, Optional

from ..constants import COLOR_MAPS

logger = logging.getLogger("Chip8Emulator.Visualizer")

class FramebufferVisualizer:
    """
    Renders framebuffers and recorded register histories with matplotlib.

    Figures are written to disk when a filename is given, otherwise shown
    interactively.
    """

    def __init__(self, dark_mode: bool = True, output_dir: Optional[str] = None):
        """
        Initialize the visualizer.

        Args:
            dark_mode: Whether to use dark background for plots
            output_dir: Directory relative filenames are resolved against
        """
        self.dark_mode = dark_mode
        self.output_dir = output_dir
        self.style = 'dark_background' if dark_mode else 'default'

        logger.debug("Initialized framebuffer visualizer")

    def _resolve(self, filename: str) -> str:
        if self.output_dir and not os.path.isabs(filename):
            filename = os.path.join(self.output_dir, filename)
        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return filename

    def _finish(self, fig, filename: Optional[str]) -> Optional[str]:
        fig.tight_layout()
        if filename is None:
            plt.show()
            plt.close(fig)
            return None

        path = self._resolve(filename)
        fig.savefig(path)
        plt.close(fig)
        logger.info(f"Saved figure to {path}")
        return path

    def plot_framebuffer(self, framebuffer: np.ndarray,
                         filename: Optional[str] = None,
                         title: str = "Framebuffer",
                         scale: float = 0.15) -> Optional[str]:
        """
        Draw a framebuffer as a pixel image.

        Args:
            framebuffer: Boolean array of shape (height, width)
            filename: Output image path (None to show)
            title: Figure title
            scale: Inches per pixel

        Returns:
            Path of the written image, or None when shown
        """
        pixels = np.asarray(framebuffer, dtype=np.uint8)
        height, width = pixels.shape

        with plt.style.context(self.style):
            fig, ax = plt.subplots(figsize=(max(width * scale, 2), max(height * scale, 1) + 0.6))
            ax.imshow(pixels, cmap=COLOR_MAPS['framebuffer'], interpolation='nearest',
                      vmin=0, vmax=1)
            ax.set_title(f"{title} ({int(pixels.sum())} lit)")
            ax.set_xticks([])
            ax.set_yticks([])
            return self._finish(fig, filename)

    def plot_register_history(self, recorder,
                              register_names: Optional[List[str]] = None,
                              filename: Optional[str] = None,
                              figsize: Tuple[int, int] = (12, 8)) -> Optional[str]:
        """
        Plot register values over time from a StateRecorder.

        Args:
            recorder: StateRecorder holding per-cycle snapshots
            register_names: Registers to plot (those that changed if None)
            filename: Output image path (None to show)
            figsize: Figure size (width, height) in inches

        Returns:
            Path of the written image, or None when shown or nothing to plot
        """
        history = recorder.get_state_history()
        if not history:
            logger.warning("No state history available for visualization")
            return None

        if register_names is None:
            candidates = sorted(recorder.stats["unique_registers"])
            register_names = [
                name for name in candidates
                if len(set(recorder.get_register_history(name)["values"])) > 1
            ]

        if not register_names:
            logger.warning("No changing registers found in state history")
            return None

        # Keep the legend readable
        if len(register_names) > 8:
            logger.info(f"Limiting visualization to first 8 of {len(register_names)} registers")
            register_names = register_names[:8]

        cycles = [state.get("cycle", i) for i, state in enumerate(history)]
        values = recorder.get_register_matrix(register_names)

        with plt.style.context(self.style):
            fig, ax = plt.subplots(figsize=figsize)
            cmap = plt.get_cmap(COLOR_MAPS['register'])
            for i, name in enumerate(register_names):
                color = cmap(0.15 + 0.7 * i / max(len(register_names) - 1, 1))
                ax.step(cycles, values[:, i], where='post', label=name, color=color, alpha=0.8)

            ax.set_title("Register States Over Time")
            ax.set_xlabel("Cycle")
            ax.set_ylabel("Value")
            ax.grid(True, alpha=0.3)
            ax.legend(loc='upper right')
            return self._finish(fig, filename)
