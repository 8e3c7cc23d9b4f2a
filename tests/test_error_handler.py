"""
Tests for the error taxonomy and ErrorHandler.
"""
import json
import os
import tempfile
import unittest
from chip8_emulator.utils.error_handler import (
    Chip8Error, ErrorCategory, ErrorHandler, ErrorLevel, InvalidKey,
    MemoryAccessError, RomTooLarge, StackOverflow, StackUnderflow, UnknownOpcode,
    error_boundary, error_handler
)


class TestErrorTypes(unittest.TestCase):
    def test_hierarchy_and_categories(self):
        for error in (StackOverflow(0x200, 16), StackUnderflow(0x200),
                      MemoryAccessError(0x1000)):
            self.assertIsInstance(error, Chip8Error)
            self.assertEqual(error.category, ErrorCategory.HARDWARE)

        self.assertEqual(RomTooLarge(4000, 3584).category, ErrorCategory.INPUT)
        self.assertEqual(InvalidKey(16).category, ErrorCategory.INPUT)
        self.assertEqual(UnknownOpcode(0xE3A2, 0x200).category, ErrorCategory.PROCESSING)

    def test_messages_and_context(self):
        error = UnknownOpcode(0xE3A2, 0x2A0)
        self.assertEqual(str(error), "Unknown opcode $E3A2 at $2A0")
        self.assertEqual(error.context, {"opcode": 0xE3A2, "pc": 0x2A0})
        self.assertEqual(RomTooLarge(4000, 3584).context["limit"], 3584)


class TestErrorHandler(unittest.TestCase):
    def setUp(self):
        self.handler = ErrorHandler(console_level=100, max_error_history=3)

    def test_report_uses_error_category(self):
        info = self.handler.report(StackUnderflow(0x204))
        self.assertEqual(info["category"], "HARDWARE")
        self.assertEqual(info["level"], "ERROR")
        self.assertEqual(info["exception_type"], "StackUnderflow")
        self.assertEqual(info["context"], {"pc": 0x204})

    def test_traceback_only_for_raised_errors(self):
        info = self.handler.report(UnknownOpcode(0xE3A2, 0x200), level=ErrorLevel.WARNING)
        self.assertIsNone(info["traceback"])

        try:
            raise StackUnderflow(0x200)
        except StackUnderflow as e:
            info = self.handler.report(e)
        self.assertIn("StackUnderflow", info["traceback"])

    def test_history_is_bounded(self):
        for pc in range(5):
            self.handler.report(UnknownOpcode(0xFFFF, pc), level=ErrorLevel.WARNING)
        history = self.handler.get_error_history()
        self.assertEqual(len(history), 3)
        self.assertEqual(history[0]["context"]["pc"], 2)

    def test_filters_and_summary(self):
        self.handler.report(InvalidKey(20))
        self.handler.report(UnknownOpcode(0x0123, 0x200), level=ErrorLevel.WARNING)

        self.assertEqual(len(self.handler.get_error_history(level=ErrorLevel.WARNING)), 1)
        self.assertEqual(len(self.handler.get_error_history(category=ErrorCategory.INPUT)), 1)

        summary = self.handler.get_error_summary()
        self.assertEqual(summary["total"], 2)
        self.assertEqual(summary["by_level"], {"ERROR": 1, "WARNING": 1})
        self.assertEqual(summary["latest"]["exception_type"], "UnknownOpcode")

        self.handler.clear_error_history()
        self.assertEqual(self.handler.get_error_summary()["total"], 0)

    def test_category_callbacks(self):
        seen = []
        self.handler.register_handler(ErrorCategory.HARDWARE, seen.append)
        self.handler.report(StackOverflow(0x21E, 16))
        self.handler.report(InvalidKey(99))
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0]["context"]["depth"], 16)

        self.assertTrue(self.handler.unregister_handler(ErrorCategory.HARDWARE))
        self.assertFalse(self.handler.unregister_handler(ErrorCategory.HARDWARE))

    def test_failing_callback_is_contained(self):
        def broken(info):
            raise RuntimeError("callback failed")

        self.handler.register_handler(ErrorCategory.INPUT, broken)
        info = self.handler.report(InvalidKey(17))
        self.assertEqual(info["exception_type"], "InvalidKey")

    def test_export_report(self):
        self.handler.report(MemoryAccessError(0xFFF, 3))
        with tempfile.TemporaryDirectory() as temp_dir:
            filename = os.path.join(temp_dir, "reports", "errors.json")
            self.assertTrue(self.handler.export_error_report(filename))
            with open(filename) as f:
                report = json.load(f)
        self.assertEqual(report["summary"]["total"], 1)
        self.assertEqual(report["errors"][0]["context"]["address"], 0xFFF)


class TestErrorBoundary(unittest.TestCase):
    def setUp(self):
        error_handler.clear_error_history()

    def tearDown(self):
        error_handler.clear_error_history()

    def test_reports_and_returns_none(self):
        @error_boundary(ErrorCategory.PROCESSING)
        def fails():
            raise InvalidKey(42)

        self.assertIsNone(fails())
        latest = error_handler.get_error_summary()["latest"]
        self.assertEqual(latest["category"], "INPUT")
        self.assertEqual(latest["context"]["key"], 42)
        self.assertEqual(latest["context"]["function"], "fails")

    def test_plain_exceptions_use_given_category(self):
        @error_boundary(ErrorCategory.PROCESSING)
        def fails():
            raise KeyError("missing")

        self.assertIsNone(fails())
        self.assertEqual(error_handler.get_error_summary()["latest"]["category"], "PROCESSING")

    def test_system_errors_propagate(self):
        @error_boundary(ErrorCategory.SYSTEM)
        def fails():
            raise OSError("disk gone")

        with self.assertRaises(OSError):
            fails()

    def test_passes_through_results(self):
        @error_boundary()
        def works(value):
            return value * 2

        self.assertEqual(works(21), 42)


if __name__ == '__main__':
    unittest.main()
