"""
Error handling and logging utilities for the CHIP-8 Emulator.

This module defines the emulator's error taxonomy (every fault the virtual
machine can report derives from ``Chip8Error``) and a central handler that
logs, categorizes and keeps a history of reported conditions.
"""

import logging
import sys
import os
import traceback
import json
import datetime
from typing import Dict, List, Any, Optional, Callable
from enum import Enum, auto
import threading
from functools import wraps
import inspect

# Configure base logger
logger = logging.getLogger("Chip8Emulator")

class ErrorLevel(Enum):
    """Error severity levels."""
    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()

class ErrorCategory(Enum):
    """Categories of errors."""
    SYSTEM = auto()
    CONFIGURATION = auto()
    INPUT = auto()
    PROCESSING = auto()
    HARDWARE = auto()
    UNKNOWN = auto()


class Chip8Error(Exception):
    """
    Base class for conditions raised or reported by the virtual machine.

    Every error carries the category it is filed under by the ErrorHandler
    and a context dictionary describing the machine state that caused it.
    """
    category = ErrorCategory.HARDWARE

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context


class RomTooLarge(Chip8Error):
    """ROM image does not fit between the program start and end of memory."""
    category = ErrorCategory.INPUT

    def __init__(self, size: int, limit: int):
        super().__init__(f"ROM is {size} bytes, maximum is {limit} bytes",
                         size=size, limit=limit)
        self.size = size
        self.limit = limit


class StackOverflow(Chip8Error):
    """A call was attempted with all stack slots in use."""

    def __init__(self, pc: int, depth: int):
        super().__init__(f"Stack overflow at ${pc:03X} (depth {depth})",
                         pc=pc, depth=depth)
        self.pc = pc


class StackUnderflow(Chip8Error):
    """A return was attempted with an empty stack."""

    def __init__(self, pc: int):
        super().__init__(f"Stack underflow at ${pc:03X}", pc=pc)
        self.pc = pc


class MemoryAccessError(Chip8Error):
    """An access touched addresses outside the 4K address space."""

    def __init__(self, address: int, length: int = 1):
        super().__init__(f"Memory access out of range: ${address:04X} (+{length})",
                         address=address, length=length)
        self.address = address
        self.length = length


class InvalidKey(Chip8Error):
    """A key index outside 0-F was used."""
    category = ErrorCategory.INPUT

    def __init__(self, key: int):
        super().__init__(f"Invalid key index: {key}", key=key)
        self.key = key


class UnknownOpcode(Chip8Error):
    """The decoded instruction has no handler. Executed as a no-op."""
    category = ErrorCategory.PROCESSING

    def __init__(self, opcode: int, pc: int):
        super().__init__(f"Unknown opcode ${opcode:04X} at ${pc:03X}",
                         opcode=opcode, pc=pc)
        self.opcode = opcode
        self.pc = pc


class ErrorHandler:
    """
    Centralized error handling and logging for the CHIP-8 Emulator.

    Captures reported conditions with their level and category, keeps a
    bounded history, and dispatches to per-category callbacks.
    """

    def __init__(self,
                log_file: Optional[str] = None,
                console_level: int = logging.INFO,
                file_level: int = logging.DEBUG,
                report_errors: bool = True,
                max_error_history: int = 100):
        """
        Initialize the error handler.

        Args:
            log_file: Path to log file (None for no file logging)
            console_level: Logging level for console output
            file_level: Logging level for file output
            report_errors: Whether to collect error reports
            max_error_history: Maximum number of errors to keep in history
        """
        self.log_file = log_file
        self.console_level = console_level
        self.file_level = file_level
        self.report_errors = report_errors
        self.max_error_history = max_error_history

        self.error_history = []
        self.error_history_lock = threading.Lock()

        # Callbacks by category
        self.error_handlers = {}

        self._configure_logging()

        logger.debug("Error handler initialized")

    def _configure_logging(self) -> None:
        """Configure logging system."""
        logger.handlers = []
        logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.console_level)
        console_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_format)
        logger.addHandler(console_handler)

        if self.log_file:
            self._add_file_handler(self.log_file)

    def _add_file_handler(self, log_file: str) -> None:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(self.file_level)
        file_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    def handle_error(self,
                  exception: Optional[Exception] = None,
                  message: Optional[str] = None,
                  level: ErrorLevel = ErrorLevel.ERROR,
                  category: ErrorCategory = ErrorCategory.UNKNOWN,
                  context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Handle an error.

        Args:
            exception: Exception object
            message: Error message
            level: Error severity level
            category: Error category
            context: Additional context

        Returns:
            Error information dictionary
        """
        if message is None:
            message = str(exception) if exception else "Unknown error"

        error_info = {
            "timestamp": datetime.datetime.now().isoformat(),
            "level": level.name,
            "category": category.name,
            "message": message,
            "exception_type": exception.__class__.__name__ if exception else None,
            "exception_args": exception.args if exception else None,
            "traceback": traceback.format_exc() if exception and sys.exc_info()[0] is not None else None,
            "context": context or {},
            "caller": self._get_caller_info()
        }

        log_level = getattr(logging, level.name)
        logger.log(log_level, f"{message} ({category.name})")

        if self.report_errors:
            with self.error_history_lock:
                self.error_history.append(error_info)

                if len(self.error_history) > self.max_error_history:
                    self.error_history = self.error_history[-self.max_error_history:]

        handler = self.error_handlers.get(category)
        if handler:
            try:
                handler(error_info)
            except Exception as e:
                logger.error(f"Error in error handler: {e}")

        return error_info

    def report(self, error: Chip8Error,
               level: ErrorLevel = ErrorLevel.ERROR) -> Dict[str, Any]:
        """
        Report a machine condition under its own category and context.

        Args:
            error: Condition raised or returned by the machine
            level: Error severity level

        Returns:
            Error information dictionary
        """
        return self.handle_error(
            exception=error,
            level=level,
            category=error.category,
            context=error.context
        )

    def _get_caller_info(self) -> Dict[str, Any]:
        """
        Get information about the first caller outside this module.

        Returns:
            Dictionary with caller information
        """
        caller_info = {
            "file": None,
            "function": None,
            "line": None
        }

        frame = inspect.currentframe()
        while frame:
            code = frame.f_code
            if 'error_handler.py' not in code.co_filename:
                caller_info["file"] = code.co_filename
                caller_info["function"] = code.co_name
                caller_info["line"] = frame.f_lineno
                break
            frame = frame.f_back

        return caller_info

    def register_handler(self, category: ErrorCategory, handler: Callable[[Dict[str, Any]], None]) -> None:
        """
        Register a handler for a specific error category.

        Args:
            category: Error category
            handler: Handler function
        """
        self.error_handlers[category] = handler
        logger.debug(f"Registered handler for {category.name} errors")

    def unregister_handler(self, category: ErrorCategory) -> bool:
        """Unregister a category handler. Returns False if none was set."""
        if category in self.error_handlers:
            del self.error_handlers[category]
            logger.debug(f"Unregistered handler for {category.name} errors")
            return True
        return False

    def clear_error_history(self) -> None:
        """Clear the error history."""
        with self.error_history_lock:
            self.error_history = []
        logger.debug("Cleared error history")

    def get_error_history(self,
                         level: Optional[ErrorLevel] = None,
                         category: Optional[ErrorCategory] = None,
                         max_errors: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get error history, optionally filtered.

        Args:
            level: Filter by error level
            category: Filter by error category
            max_errors: Maximum number of errors to return

        Returns:
            List of error dictionaries
        """
        with self.error_history_lock:
            errors = self.error_history.copy()

        if level:
            errors = [e for e in errors if e["level"] == level.name]

        if category:
            errors = [e for e in errors if e["category"] == category.name]

        if max_errors and max_errors < len(errors):
            errors = errors[-max_errors:]

        return errors

    def get_error_summary(self) -> Dict[str, Any]:
        """
        Get a summary of errors by category, level and exception type.

        Returns:
            Dictionary with error summary
        """
        with self.error_history_lock:
            errors = self.error_history.copy()

        categories = {}
        levels = {}
        exceptions = {}
        for e in errors:
            categories[e["category"]] = categories.get(e["category"], 0) + 1
            levels[e["level"]] = levels.get(e["level"], 0) + 1
            exception_type = e.get("exception_type")
            if exception_type:
                exceptions[exception_type] = exceptions.get(exception_type, 0) + 1

        return {
            "total": len(errors),
            "by_category": categories,
            "by_level": levels,
            "by_exception": exceptions,
            "latest": errors[-1] if errors else None
        }

    def export_error_report(self, filename: str) -> bool:
        """
        Export error history to a JSON file.

        Args:
            filename: Output filename

        Returns:
            True if successful, False otherwise
        """
        try:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with self.error_history_lock:
                errors = self.error_history.copy()

            report = {
                "timestamp": datetime.datetime.now().isoformat(),
                "summary": self.get_error_summary(),
                "errors": errors
            }

            with open(filename, 'w') as f:
                json.dump(report, f, indent=2, default=str)

            logger.info(f"Exported error report to {filename}")
            return True

        except OSError as e:
            logger.error(f"Error exporting error report: {e}")
            return False

    def set_log_levels(self, console_level: int, file_level: Optional[int] = None) -> None:
        """
        Set logging levels.

        Args:
            console_level: Logging level for console output
            file_level: Logging level for file output (None to keep current)
        """
        self.console_level = console_level
        if file_level is not None:
            self.file_level = file_level

        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler):
                if file_level is not None:
                    handler.setLevel(file_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(console_level)

        logger.debug(f"Updated log levels: console={console_level}, file={file_level}")

    def set_log_file(self, log_file: Optional[str]) -> None:
        """
        Set log file.

        Args:
            log_file: Path to log file (None to disable file logging)
        """
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()

        self.log_file = log_file

        if log_file:
            self._add_file_handler(log_file)
            logger.debug(f"Set log file to {log_file}")
        else:
            logger.debug("Disabled file logging")


# Global error handler instance
error_handler = ErrorHandler()

# Decorators

def error_boundary(category: ErrorCategory = ErrorCategory.UNKNOWN):
    """
    Decorator that reports exceptions through the global handler.

    SYSTEM errors are re-raised after reporting; all others make the
    wrapped function return None.

    Args:
        category: Error category

    Returns:
        Decorator function
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                context = {
                    "function": func.__name__,
                    "module": func.__module__
                }
                if isinstance(e, Chip8Error):
                    context.update(e.context)

                error_handler.handle_error(
                    exception=e,
                    message=f"Error in {func.__name__}: {e}",
                    level=ErrorLevel.ERROR,
                    category=getattr(e, "category", category),
                    context=context
                )

                if category == ErrorCategory.SYSTEM:
                    raise

                return None

        return wrapper
    return decorator
