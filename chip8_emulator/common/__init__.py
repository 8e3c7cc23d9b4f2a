"""
Common functionality shared across system implementations.
"""
from .interfaces import CPU, Memory, Display, System
from .visualizer import FramebufferVisualizer
