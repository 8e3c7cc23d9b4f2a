"""
Behavioural properties of the CHIP-8 machine.

Covers flag semantics across operand ranges (including VF as an operand),
sprite compositing and wraparound, call stack depth and small end-to-end
programs run through Chip8System.
"""
import unittest
import numpy as np
from chip8_emulator.systems.chip8 import Chip8System
from chip8_emulator.utils.error_handler import ErrorHandler, StackOverflow

SAMPLE_VALUES = [0, 1, 2, 15, 16, 127, 128, 129, 200, 254, 255]


def program(*words):
    return b"".join(word.to_bytes(2, "big") for word in words)


class MachineTestCase(unittest.TestCase):
    def setUp(self):
        self.handler = ErrorHandler(console_level=100)
        self.system = Chip8System({"seed": 7}, error_handler=self.handler)
        self.system.reset()
        self.cpu = self.system.cpu

    def execute(self, opcode):
        """Place one instruction at PC and run it."""
        self.system.memory.write_block(self.cpu.PC, program(opcode))
        return self.system.step()


class TestArithmeticFlags(MachineTestCase):
    def test_add_register_flag_and_result(self):
        for a in SAMPLE_VALUES:
            for b in SAMPLE_VALUES:
                self.cpu.V[1], self.cpu.V[2] = a, b
                self.execute(0x8124)
                self.assertEqual(self.cpu.V[1], (a + b) % 256)
                self.assertEqual(self.cpu.V[0xF], 1 if a + b > 255 else 0)

    def test_sub_flag_and_result(self):
        for a in SAMPLE_VALUES:
            for b in SAMPLE_VALUES:
                self.cpu.V[1], self.cpu.V[2] = a, b
                self.execute(0x8125)
                self.assertEqual(self.cpu.V[1], (a - b) % 256)
                self.assertEqual(self.cpu.V[0xF], 1 if a > b else 0)

    def test_subn_flag_and_result(self):
        for a in SAMPLE_VALUES:
            for b in SAMPLE_VALUES:
                self.cpu.V[1], self.cpu.V[2] = a, b
                self.execute(0x8127)
                self.assertEqual(self.cpu.V[1], (b - a) % 256)
                self.assertEqual(self.cpu.V[0xF], 1 if b > a else 0)

    def test_same_register_operands(self):
        for a in SAMPLE_VALUES:
            self.cpu.V[3] = a
            self.execute(0x8334)
            self.assertEqual(self.cpu.V[3], (2 * a) % 256)
            self.assertEqual(self.cpu.V[0xF], 1 if 2 * a > 255 else 0)

            self.cpu.V[3] = a
            self.execute(0x8335)
            self.assertEqual(self.cpu.V[3], 0)
            self.assertEqual(self.cpu.V[0xF], 0)

    def test_flag_register_as_both_operands(self):
        # The flag is written last, so VF ends up holding it
        for a in SAMPLE_VALUES:
            self.cpu.V[0xF] = a
            self.execute(0x8FF4)
            self.assertEqual(self.cpu.V[0xF], 1 if 2 * a > 255 else 0)

            self.cpu.V[0xF] = a
            self.execute(0x8FF5)
            self.assertEqual(self.cpu.V[0xF], 0)

            self.cpu.V[0xF] = a
            self.execute(0x8FF7)
            self.assertEqual(self.cpu.V[0xF], 0)

    def test_flag_register_as_destination(self):
        self.cpu.V[0xF], self.cpu.V[1] = 200, 100
        self.execute(0x8F14)
        self.assertEqual(self.cpu.V[0xF], 1)

        self.cpu.V[0xF], self.cpu.V[1] = 10, 100
        self.execute(0x8F15)
        self.assertEqual(self.cpu.V[0xF], 0)

    def test_flag_register_as_source(self):
        self.cpu.V[1], self.cpu.V[0xF] = 250, 10
        self.execute(0x81F4)
        self.assertEqual(self.cpu.V[1], 4)
        self.assertEqual(self.cpu.V[0xF], 1)


class TestShiftFlags(MachineTestCase):
    def test_shift_right_reports_pre_shift_bit(self):
        for value in SAMPLE_VALUES:
            for x, y in ((1, 2), (3, 3)):
                self.cpu.V[y] = value
                self.execute(0x8006 | (x << 8) | (y << 4))
                self.assertEqual(self.cpu.V[x], value >> 1)
                self.assertEqual(self.cpu.V[0xF], value & 1)

    def test_shift_left_reports_pre_shift_bit(self):
        for value in SAMPLE_VALUES:
            for x, y in ((1, 2), (3, 3)):
                self.cpu.V[y] = value
                self.execute(0x800E | (x << 8) | (y << 4))
                self.assertEqual(self.cpu.V[x], (value << 1) & 0xFF)
                self.assertEqual(self.cpu.V[0xF], 1 if value & 0x80 else 0)

    def test_shift_into_flag_register(self):
        self.cpu.V[2] = 0x02
        self.execute(0x8F26)
        self.assertEqual(self.cpu.V[0xF], 0)

        self.cpu.V[2] = 0x81
        self.execute(0x8F2E)
        self.assertEqual(self.cpu.V[0xF], 1)


class TestDraw(MachineTestCase):
    def sprite_at(self, address, rows):
        self.system.memory.write_block(address, bytes(rows))
        self.cpu.I = address

    def test_clear_screen(self):
        self.system.display.pixels[5, 7] = True
        self.system.display.pixels[31, 63] = True
        self.execute(0x00E0)
        self.assertFalse(self.system.framebuffer().any())

    def test_draw_font_glyph(self):
        self.cpu.I = 0x50
        self.execute(0xD015)
        fb = self.system.framebuffer()
        # Glyph "0": F0 90 90 90 F0
        self.assertTrue(fb[0, 0:4].all())
        self.assertFalse(fb[0, 4:8].any())
        self.assertTrue(fb[1, 0] and fb[1, 3])
        self.assertFalse(fb[1, 1] or fb[1, 2])
        self.assertEqual(int(fb.sum()), 14)
        self.assertEqual(self.cpu.V[0xF], 0)

    def test_draw_twice_restores_framebuffer(self):
        self.system.display.pixels[20, 40] = True
        original = self.system.framebuffer().copy()
        self.sprite_at(0x300, [0x3C, 0x42, 0x81])
        self.cpu.V[0], self.cpu.V[1] = 10, 4

        self.execute(0xD013)
        self.assertEqual(self.cpu.V[0xF], 0)
        self.assertFalse(np.array_equal(self.system.framebuffer(), original))

        self.execute(0xD013)
        self.assertTrue(np.array_equal(self.system.framebuffer(), original))
        # Erasing the first copy turns lit pixels off
        self.assertEqual(self.cpu.V[0xF], 1)

    def test_draw_wraps_both_axes(self):
        self.sprite_at(0x300, [0xFF] * 5)
        self.cpu.V[0], self.cpu.V[1] = 60, 30
        self.execute(0xD015)

        fb = self.system.framebuffer()
        expected = np.zeros((32, 64), dtype=bool)
        for y in (30, 31, 0, 1, 2):
            for x in (60, 61, 62, 63, 0, 1, 2, 3):
                expected[y, x] = True
        self.assertTrue(np.array_equal(fb, expected))
        self.assertEqual(self.cpu.V[0xF], 0)

    def test_coordinates_wrap_before_drawing(self):
        self.sprite_at(0x300, [0x80])
        self.cpu.V[0], self.cpu.V[1] = 64 + 5, 32 + 3
        self.execute(0xD011)
        self.assertTrue(self.system.framebuffer()[3, 5])

    def test_collision_flag_is_sticky(self):
        self.system.display.pixels[0, 0] = True
        self.sprite_at(0x300, [0x80, 0x80, 0x80])
        self.cpu.V[0], self.cpu.V[1] = 0, 0
        self.execute(0xD013)
        self.assertEqual(self.cpu.V[0xF], 1)
        self.assertFalse(self.system.framebuffer()[0, 0])
        self.assertTrue(self.system.framebuffer()[1, 0])

    def test_flag_register_as_coordinate(self):
        self.sprite_at(0x300, [0x80])
        self.cpu.V[0xF], self.cpu.V[1] = 10, 2
        self.execute(0xDF11)
        self.assertTrue(self.system.framebuffer()[2, 10])
        self.assertEqual(self.cpu.V[0xF], 0)


class TestCallStack(MachineTestCase):
    def test_call_then_return(self):
        self.system.load(program(0x2300, 0x6001))
        self.system.memory.write_block(0x300, program(0x00EE))
        self.system.step()
        self.system.step()
        self.assertEqual(self.cpu.PC, 0x202)
        self.system.step()
        self.assertEqual(self.cpu.V[0], 1)

    def test_sixteen_nested_calls_then_overflow(self):
        # Each instruction calls the next one
        words = [0x2000 | (0x202 + 2 * i) for i in range(17)]
        self.system.load(program(*words))

        for depth in range(1, 17):
            self.system.step()
            self.assertEqual(self.cpu.SP, depth)

        memory_before = self.system.memory.dump()
        pc_before = self.cpu.PC

        with self.assertRaises(StackOverflow):
            self.system.step()

        self.assertEqual(self.system.memory.dump(), memory_before)
        self.assertEqual(self.cpu.PC, pc_before)
        self.assertEqual(self.cpu.SP, 16)
        self.assertEqual(self.handler.get_error_summary()["by_exception"], {"StackOverflow": 1})


class TestEndToEnd(MachineTestCase):
    def test_two_instruction_rom(self):
        self.system.load(bytes.fromhex("6A02600A"))
        self.system.step()
        self.system.step()
        self.assertEqual(self.cpu.V[10], 2)
        self.assertEqual(self.cpu.V[0], 10)
        self.assertEqual(self.cpu.PC, 0x204)

    def test_bcd_of_234(self):
        self.system.load(program(0x65EA, 0xA300, 0xF533))
        for _ in range(3):
            self.system.step()
        memory = self.system.memory
        self.assertEqual([memory.read(0x300), memory.read(0x301), memory.read(0x302)], [2, 3, 4])

    def test_font_char_for_a(self):
        self.system.load(program(0x650A, 0xF529))
        self.system.step()
        self.system.step()
        self.assertEqual(self.cpu.I, 0x50 + 50)
        self.assertEqual(self.system.memory.read_block(self.cpu.I, 5),
                         bytes([0xF0, 0x90, 0xF0, 0x90, 0x90]))

    def test_countdown_loop(self):
        # V0 = 5; loop: V0 -= 1 (add 0xFF); skip-if V0 == 0; jump loop
        self.system.load(program(0x6005, 0x70FF, 0x3000, 0x1202, 0x1208))
        for _ in range(1 + 5 * 3):
            self.system.step()
        self.assertEqual(self.cpu.V[0], 0)
        self.assertEqual(self.cpu.PC, 0x208)


if __name__ == '__main__':
    unittest.main()
