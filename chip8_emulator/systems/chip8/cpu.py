"""
CHIP-8 CPU emulation.

CHIP-8 is a virtual machine with sixteen 8-bit registers (V0-VF), a 16-bit
index register, a 16-level call stack and two 60Hz countdown timers. Every
instruction is two bytes, stored big-endian. This module implements fetch,
decode and execute for the 35 standard instructions.

Register VF doubles as the flag output of the arithmetic, shift and draw
instructions. Handlers write VF after their destination register, so an
instruction targeting VF leaves the flag there.
"""

from ...common.interfaces import CPU, Memory
from ...constants import (
    NUM_REGISTERS, FLAG_REGISTER, STACK_DEPTH, PROGRAM_START_ADDRESS,
    FONTSET_START_ADDRESS, FONT_GLYPH_SIZE, REGISTER_NAMES
)
from ...utils.error_handler import (
    Chip8Error, StackOverflow, StackUnderflow, UnknownOpcode
)
from .display import Chip8Display
from .keypad import Chip8Keypad
import numpy as np
import typing as t
import logging

logger = logging.getLogger("Chip8Emulator.Chip8.CPU")


class Instruction(t.NamedTuple):
    """Operand fields of a decoded instruction word."""
    opcode: int
    x: int      # bits 11-8
    y: int      # bits 7-4
    n: int      # bits 3-0
    kk: int     # bits 7-0
    nnn: int    # bits 11-0

    @classmethod
    def decode(cls, opcode: int) -> 'Instruction':
        return cls(
            opcode=opcode,
            x=(opcode & 0x0F00) >> 8,
            y=(opcode & 0x00F0) >> 4,
            n=opcode & 0x000F,
            kk=opcode & 0x00FF,
            nnn=opcode & 0x0FFF
        )


class Chip8CPU(CPU):
    """
    Emulates the CHIP-8 interpreter core.

    The CPU owns the register file, call stack and timers, and drives the
    display and keypad it is connected to. Memory is attached with
    ``set_memory`` as with the other CPU implementations.
    """

    def __init__(self, display: t.Optional[Chip8Display] = None,
                 keypad: t.Optional[Chip8Keypad] = None,
                 seed: t.Optional[int] = None,
                 strict_opcodes: bool = False):
        """
        Initialize the CPU.

        Args:
            display: Framebuffer driven by CLS and DRW
            keypad: Key states read by SKP, SKNP and LD Vx, K
            seed: Seed for the RND instruction's generator (None for entropy)
            strict_opcodes: Raise UnknownOpcode instead of returning it
        """
        # CPU registers
        self.V = bytearray(NUM_REGISTERS)
        self.I = 0x0000
        self.PC = PROGRAM_START_ADDRESS
        self.SP = 0
        self.stack = [0] * STACK_DEPTH

        # Timers
        self.delay_timer = 0
        self.sound_timer = 0

        # Last fetched instruction word
        self.opcode = 0x0000
        self.cycles = 0

        self.memory = None
        self.display = display if display is not None else Chip8Display()
        self.keypad = keypad if keypad is not None else Chip8Keypad()

        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.strict_opcodes = strict_opcodes

        self._build_instruction_table()

        logger.info("CHIP-8 CPU initialized")

    def _build_instruction_table(self):
        """Build the instruction lookup tables."""
        # Primary table keyed by the top nibble
        self.instructions = {
            0x1: self._jp,      # 1nnn - JP addr
            0x2: self._call,    # 2nnn - CALL addr
            0x3: self._se_imm,  # 3xkk - SE Vx, byte
            0x4: self._sne_imm, # 4xkk - SNE Vx, byte
            0x5: self._se_reg,  # 5xy0 - SE Vx, Vy
            0x6: self._ld_imm,  # 6xkk - LD Vx, byte
            0x7: self._add_imm, # 7xkk - ADD Vx, byte
            0x9: self._sne_reg, # 9xy0 - SNE Vx, Vy
            0xA: self._ld_i,    # Annn - LD I, addr
            0xB: self._jp_v0,   # Bnnn - JP V0, addr
            0xC: self._rnd,     # Cxkk - RND Vx, byte
            0xD: self._drw,     # Dxyn - DRW Vx, Vy, nibble
        }

        # Classes that share a top nibble, keyed by the low nibble
        self.table_0 = {
            0x0: self._cls,     # 00E0 - CLS
            0xE: self._ret,     # 00EE - RET
        }
        self.table_8 = {
            0x0: self._ld_reg,  # 8xy0 - LD Vx, Vy
            0x1: self._or,      # 8xy1 - OR Vx, Vy
            0x2: self._and,     # 8xy2 - AND Vx, Vy
            0x3: self._xor,     # 8xy3 - XOR Vx, Vy
            0x4: self._add_reg, # 8xy4 - ADD Vx, Vy
            0x5: self._sub,     # 8xy5 - SUB Vx, Vy
            0x6: self._shr,     # 8xy6 - SHR Vx, Vy
            0x7: self._subn,    # 8xy7 - SUBN Vx, Vy
            0xE: self._shl,     # 8xyE - SHL Vx, Vy
        }
        self.table_E = {
            0xE: self._skp,     # Ex9E - SKP Vx
            0x1: self._sknp,    # ExA1 - SKNP Vx
        }

        # Keyed by the low byte
        self.table_F = {
            0x07: self._ld_vx_dt,  # Fx07 - LD Vx, DT
            0x0A: self._ld_vx_k,   # Fx0A - LD Vx, K
            0x15: self._ld_dt_vx,  # Fx15 - LD DT, Vx
            0x18: self._ld_st_vx,  # Fx18 - LD ST, Vx
            0x1E: self._add_i,     # Fx1E - ADD I, Vx
            0x29: self._ld_f,      # Fx29 - LD F, Vx
            0x33: self._ld_b,      # Fx33 - LD B, Vx
            0x55: self._ld_mem_vx, # Fx55 - LD [I], Vx
            0x65: self._ld_vx_mem, # Fx65 - LD Vx, [I]
        }

        self.secondary_tables = {
            0x0: self.table_0,
            0x8: self.table_8,
            0xE: self.table_E,
            0xF: self.table_F,
        }

    def set_memory(self, memory: Memory) -> None:
        """
        Connect the CPU to a memory system.

        Args:
            memory: Memory implementation
        """
        self.memory = memory

    def reset(self) -> None:
        """Reset registers, stack and timers to power-on state."""
        self.V = bytearray(NUM_REGISTERS)
        self.I = 0x0000
        self.PC = PROGRAM_START_ADDRESS
        self.SP = 0
        self.stack = [0] * STACK_DEPTH
        self.delay_timer = 0
        self.sound_timer = 0
        self.opcode = 0x0000
        self.cycles = 0

        logger.info(f"CPU reset. PC set to ${self.PC:03X}")

    def decode(self, opcode: int) -> t.Optional[t.Callable[[Instruction], None]]:
        """
        Look up the handler for an instruction word.

        Args:
            opcode: 16-bit instruction word

        Returns:
            Bound handler, or None if the word is not a valid instruction
        """
        op_class = opcode >> 12
        table = self.secondary_tables.get(op_class)
        if table is None:
            return self.instructions.get(op_class)

        if op_class == 0xF:
            return table.get(opcode & 0x00FF)
        return table.get(opcode & 0x000F)

    def step(self) -> t.Optional[UnknownOpcode]:
        """
        Execute one fetch-decode-execute-timer cycle.

        Returns:
            UnknownOpcode diagnostic if the instruction had no handler
            (executed as a no-op), otherwise None

        Raises:
            Chip8Error: On a machine fault (stack overflow/underflow, memory
                access out of range, invalid key). The faulting instruction
                has no effect and PC is left pointing at it.
        """
        if self.memory is None:
            raise RuntimeError("No memory connected to CPU")

        pc = self.PC
        self.opcode = self.memory.read_word(pc)
        self.PC = (pc + 2) & 0xFFFF

        diagnostic = None
        handler = self.decode(self.opcode)

        if handler is None:
            diagnostic = UnknownOpcode(self.opcode, pc)
            if self.strict_opcodes:
                self.PC = pc
                raise diagnostic
            logger.debug(str(diagnostic))
        else:
            try:
                handler(Instruction.decode(self.opcode))
            except Chip8Error:
                self.PC = pc
                raise

        self._tick_timers()
        self.cycles += 1

        return diagnostic

    def _tick_timers(self) -> None:
        if self.delay_timer > 0:
            self.delay_timer -= 1
        if self.sound_timer > 0:
            self.sound_timer -= 1

    def get_state(self) -> dict:
        """Return the current CPU state as a dictionary."""
        registers = {name: self.V[i] for i, name in enumerate(REGISTER_NAMES)}
        registers.update({
            "I": self.I,
            "PC": self.PC,
            "SP": self.SP,
            "DT": self.delay_timer,
            "ST": self.sound_timer
        })

        return {
            "registers": registers,
            "stack": self.stack[:self.SP],
            "opcode": self.opcode,
            "cycles": self.cycles
        }

    def set_state(self, state: dict) -> None:
        """
        Restore CPU state from a dictionary produced by ``get_state``.

        Args:
            state: CPU state dictionary
        """
        registers = state["registers"]
        stack = list(state.get("stack", []))
        if len(stack) > STACK_DEPTH:
            raise ValueError(f"Stack snapshot deeper than {STACK_DEPTH}")

        self.V = bytearray(registers[name] & 0xFF for name in REGISTER_NAMES)
        self.I = registers["I"] & 0xFFFF
        self.PC = registers["PC"] & 0xFFFF
        self.delay_timer = registers["DT"] & 0xFF
        self.sound_timer = registers["ST"] & 0xFF

        self.stack = stack + [0] * (STACK_DEPTH - len(stack))
        self.SP = len(stack)

        self.opcode = state.get("opcode", 0)
        self.cycles = state.get("cycles", 0)

    # Instruction implementations

    def _cls(self, ins: Instruction) -> None:
        self.display.clear()

    def _ret(self, ins: Instruction) -> None:
        if self.SP == 0:
            raise StackUnderflow(self.PC - 2)
        self.SP -= 1
        self.PC = self.stack[self.SP]

    def _jp(self, ins: Instruction) -> None:
        self.PC = ins.nnn

    def _call(self, ins: Instruction) -> None:
        if self.SP >= STACK_DEPTH:
            raise StackOverflow(self.PC - 2, self.SP)
        self.stack[self.SP] = self.PC
        self.SP += 1
        self.PC = ins.nnn

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.PC = (self.PC + 2) & 0xFFFF

    def _se_imm(self, ins: Instruction) -> None:
        self._skip_if(self.V[ins.x] == ins.kk)

    def _sne_imm(self, ins: Instruction) -> None:
        self._skip_if(self.V[ins.x] != ins.kk)

    def _se_reg(self, ins: Instruction) -> None:
        self._skip_if(self.V[ins.x] == self.V[ins.y])

    def _sne_reg(self, ins: Instruction) -> None:
        self._skip_if(self.V[ins.x] != self.V[ins.y])

    def _ld_imm(self, ins: Instruction) -> None:
        self.V[ins.x] = ins.kk

    def _add_imm(self, ins: Instruction) -> None:
        # No carry flag for the immediate form
        self.V[ins.x] = (self.V[ins.x] + ins.kk) & 0xFF

    def _ld_reg(self, ins: Instruction) -> None:
        self.V[ins.x] = self.V[ins.y]

    def _or(self, ins: Instruction) -> None:
        self.V[ins.x] |= self.V[ins.y]

    def _and(self, ins: Instruction) -> None:
        self.V[ins.x] &= self.V[ins.y]

    def _xor(self, ins: Instruction) -> None:
        self.V[ins.x] ^= self.V[ins.y]

    def _add_reg(self, ins: Instruction) -> None:
        total = self.V[ins.x] + self.V[ins.y]
        self.V[ins.x] = total & 0xFF
        self.V[FLAG_REGISTER] = 1 if total > 0xFF else 0

    def _sub(self, ins: Instruction) -> None:
        vx, vy = self.V[ins.x], self.V[ins.y]
        self.V[ins.x] = (vx - vy) & 0xFF
        self.V[FLAG_REGISTER] = 1 if vx > vy else 0

    def _shr(self, ins: Instruction) -> None:
        vy = self.V[ins.y]
        self.V[ins.x] = vy >> 1
        self.V[FLAG_REGISTER] = vy & 0x01

    def _subn(self, ins: Instruction) -> None:
        vx, vy = self.V[ins.x], self.V[ins.y]
        self.V[ins.x] = (vy - vx) & 0xFF
        self.V[FLAG_REGISTER] = 1 if vy > vx else 0

    def _shl(self, ins: Instruction) -> None:
        vy = self.V[ins.y]
        self.V[ins.x] = (vy << 1) & 0xFF
        self.V[FLAG_REGISTER] = 1 if vy & 0x80 else 0

    def _ld_i(self, ins: Instruction) -> None:
        self.I = ins.nnn

    def _jp_v0(self, ins: Instruction) -> None:
        self.PC = ins.nnn + self.V[0]

    def _rnd(self, ins: Instruction) -> None:
        self.V[ins.x] = int(self.rng.integers(0, 256)) & ins.kk

    def _drw(self, ins: Instruction) -> None:
        # Rows are fetched before any pixel changes
        sprite = self.memory.read_block(self.I, ins.n)
        collision = self.display.draw_sprite(self.V[ins.x], self.V[ins.y], sprite)
        self.V[FLAG_REGISTER] = 1 if collision else 0

    def _skp(self, ins: Instruction) -> None:
        self._skip_if(self.keypad.is_pressed(self.V[ins.x]))

    def _sknp(self, ins: Instruction) -> None:
        self._skip_if(not self.keypad.is_pressed(self.V[ins.x]))

    def _ld_vx_dt(self, ins: Instruction) -> None:
        self.V[ins.x] = self.delay_timer

    def _ld_vx_k(self, ins: Instruction) -> None:
        key = self.keypad.first_pressed()
        if key is None:
            # Re-run this instruction next cycle until a key is held
            self.PC -= 2
        else:
            self.V[ins.x] = key

    def _ld_dt_vx(self, ins: Instruction) -> None:
        self.delay_timer = self.V[ins.x]

    def _ld_st_vx(self, ins: Instruction) -> None:
        self.sound_timer = self.V[ins.x]

    def _add_i(self, ins: Instruction) -> None:
        self.I = (self.I + self.V[ins.x]) & 0xFFFF

    def _ld_f(self, ins: Instruction) -> None:
        self.I = FONTSET_START_ADDRESS + FONT_GLYPH_SIZE * self.V[ins.x]

    def _ld_b(self, ins: Instruction) -> None:
        value = self.V[ins.x]
        self.memory.write_block(self.I, bytes([value // 100, (value // 10) % 10, value % 10]))

    def _ld_mem_vx(self, ins: Instruction) -> None:
        self.memory.write_block(self.I, bytes(self.V[:ins.x + 1]))

    def _ld_vx_mem(self, ins: Instruction) -> None:
        self.V[:ins.x + 1] = self.memory.read_block(self.I, ins.x + 1)
