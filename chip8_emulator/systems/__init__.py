"""
System implementations.
"""
# Import the factory for creating system instances
from .system_factory import SystemFactory
