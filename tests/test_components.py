"""
Tests for the CHIP-8 memory, display, keypad and cartridge components.
"""
import os
import tempfile
import unittest
import numpy as np
from chip8_emulator.constants import FONTSET, MAX_ROM_SIZE
from chip8_emulator.systems.chip8.memory import Chip8Memory
from chip8_emulator.systems.chip8.display import Chip8Display
from chip8_emulator.systems.chip8.keypad import Chip8Keypad
from chip8_emulator.systems.chip8.cartridge import Chip8Cartridge
from chip8_emulator.utils.error_handler import (
    ErrorCategory, InvalidKey, MemoryAccessError, RomTooLarge
)


class TestChip8Memory(unittest.TestCase):
    def setUp(self):
        self.memory = Chip8Memory()

    def test_font_is_loaded(self):
        self.assertEqual(self.memory.read_block(0x50, 80), FONTSET)
        self.assertEqual(self.memory.read_block(0x000, 0x50), bytes(0x50))

    def test_load_rom_at_program_start(self):
        self.memory.load_rom(b"\x12\x34\x56")
        self.assertEqual(self.memory.read_word(0x200), 0x1234)
        self.assertEqual(self.memory.read(0x202), 0x56)
        self.assertEqual(self.memory.read(0x203), 0x00)

    def test_largest_rom_fits(self):
        self.memory.load_rom(bytes([0xAB]) * MAX_ROM_SIZE)
        self.assertEqual(self.memory.read(0xFFF), 0xAB)

    def test_rom_too_large(self):
        before = self.memory.dump()
        with self.assertRaises(RomTooLarge) as ctx:
            self.memory.load_rom(bytes(MAX_ROM_SIZE + 1))
        self.assertEqual(ctx.exception.size, MAX_ROM_SIZE + 1)
        self.assertEqual(ctx.exception.category, ErrorCategory.INPUT)
        self.assertEqual(self.memory.dump(), before)

    def test_out_of_range_access(self):
        with self.assertRaises(MemoryAccessError):
            self.memory.read(0x1000)
        with self.assertRaises(MemoryAccessError):
            self.memory.write(-1, 0)
        with self.assertRaises(MemoryAccessError):
            self.memory.read_word(0xFFF)

    def test_write_block_is_all_or_nothing(self):
        before = self.memory.dump()
        with self.assertRaises(MemoryAccessError) as ctx:
            self.memory.write_block(0xFFD, b"\x01\x02\x03\x04")
        self.assertEqual(ctx.exception.address, 0xFFD)
        self.assertEqual(self.memory.dump(), before)

    def test_write_masks_to_byte(self):
        self.memory.write(0x300, 0x1FF)
        self.assertEqual(self.memory.read(0x300), 0xFF)

    def test_reset_keeps_font_and_clears_program(self):
        self.memory.load_rom(b"\xFF" * 16)
        self.memory.write(0x010, 0x77)
        self.memory.reset()
        self.assertEqual(self.memory.read_block(0x200, 16), bytes(16))
        self.assertEqual(self.memory.read(0x010), 0)
        self.assertEqual(self.memory.read_block(0x50, 80), FONTSET)

    def test_restore_requires_full_image(self):
        with self.assertRaises(ValueError):
            self.memory.restore(bytes(10))


class TestChip8Display(unittest.TestCase):
    def setUp(self):
        self.display = Chip8Display()

    def test_shape(self):
        self.assertEqual(self.display.get_frame_buffer().shape, (32, 64))
        self.assertEqual(self.display.get_frame_buffer().dtype, np.bool_)

    def test_frame_buffer_is_read_only(self):
        fb = self.display.get_frame_buffer()
        with self.assertRaises(ValueError):
            fb[0, 0] = True

    def test_frame_buffer_tracks_display(self):
        fb = self.display.get_frame_buffer()
        self.display.draw_sprite(0, 0, b"\x80")
        self.assertTrue(fb[0, 0])

    def test_draw_sprite_bits_msb_first(self):
        collision = self.display.draw_sprite(2, 1, b"\xA0")
        self.assertFalse(collision)
        self.assertTrue(self.display.pixels[1, 2])
        self.assertFalse(self.display.pixels[1, 3])
        self.assertTrue(self.display.pixels[1, 4])

    def test_collision_only_when_lit_pixel_turns_off(self):
        self.display.draw_sprite(0, 0, b"\xF0")
        self.assertFalse(self.display.draw_sprite(4, 0, b"\xF0"))
        self.assertTrue(self.display.draw_sprite(3, 0, b"\x80"))
        self.assertFalse(self.display.pixels[0, 3])

    def test_empty_sprite(self):
        self.assertFalse(self.display.draw_sprite(0, 0, b""))
        self.assertFalse(self.display.pixels.any())

    def test_render_text(self):
        self.display.draw_sprite(0, 0, b"\xC0")
        lines = self.display.render_text().splitlines()
        self.assertEqual(len(lines), 32)
        self.assertTrue(lines[0].startswith("##.."))

    def test_load_pixels_shape_check(self):
        with self.assertRaises(ValueError):
            self.display.load_pixels(np.zeros((2, 2)))


class TestChip8Keypad(unittest.TestCase):
    def setUp(self):
        self.keypad = Chip8Keypad()

    def test_set_and_read(self):
        self.keypad.set_key(0xF, True)
        self.assertTrue(self.keypad.is_pressed(0xF))
        self.keypad.set_key(0xF, False)
        self.assertFalse(self.keypad.is_pressed(0xF))

    def test_first_pressed_scans_from_zero(self):
        self.assertIsNone(self.keypad.first_pressed())
        self.keypad.set_key(9, True)
        self.keypad.set_key(4, True)
        self.assertEqual(self.keypad.first_pressed(), 4)
        self.assertEqual(self.keypad.pressed_keys(), [4, 9])

    def test_invalid_index(self):
        for key in (-1, 16, 255):
            with self.assertRaises(InvalidKey):
                self.keypad.set_key(key, True)
            with self.assertRaises(InvalidKey):
                self.keypad.is_pressed(key)


class TestChip8Cartridge(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_file(self, name, data):
        path = os.path.join(self.temp_dir.name, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_from_file(self):
        path = self.write_file("maze.ch8", b"\x6A\x02\x60\x0A")
        cartridge = Chip8Cartridge.from_file(path)
        self.assertEqual(cartridge.name, "maze.ch8")
        self.assertEqual(cartridge.data, b"\x6A\x02\x60\x0A")
        self.assertEqual(cartridge.get_info()["size"], 4)
        self.assertEqual(len(cartridge.get_info()["crc32"]), 8)

    def test_unknown_extension_still_loads(self):
        path = self.write_file("program.dat", b"\x00\xE0")
        self.assertEqual(Chip8Cartridge.from_file(path).size, 2)

    def test_too_large(self):
        path = self.write_file("huge.ch8", bytes(MAX_ROM_SIZE + 1))
        with self.assertRaises(RomTooLarge):
            Chip8Cartridge.from_file(path)

    def test_missing_file(self):
        with self.assertRaises(OSError):
            Chip8Cartridge.from_file(os.path.join(self.temp_dir.name, "missing.ch8"))


if __name__ == '__main__':
    unittest.main()
