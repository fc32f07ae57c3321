"""The CHIP-8 virtual machine: memory, registers, timers, keypad and screen."""

from __future__ import annotations

import random
from pathlib import Path

MEMORY_SIZE = 4096
PROGRAM_START = 0x200
FONT_START = 0x50
WIDTH = 64
HEIGHT = 32
REGISTER_COUNT = 16
STACK_DEPTH = 16
KEY_COUNT = 16

ON_COLOUR = bytes((0, 255, 0, 255))
OFF_COLOUR = bytes((0, 0, 0, 0))

FONTSET = bytes(
    (
        0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
        0x20, 0x60, 0x20, 0x20, 0x70,  # 1
        0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
        0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
        0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
        0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
        0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
        0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
        0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
        0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
        0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
        0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
        0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
        0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
        0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
        0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
    )
)


class Chip8Error(Exception):
    """Base class for errors raised by the machine."""


class RomNotFoundError(Chip8Error):
    """The ROM file could not be read."""


class UnknownOpcodeError(Chip8Error):
    """The machine fetched an instruction it does not implement."""

    def __init__(self, opcode: int, address: int) -> None:
        super().__init__(f"unknown opcode {opcode:04X} at {address:03X}")
        self.opcode = opcode
        self.address = address


def _x(opcode: int) -> int:
    return (opcode & 0x0F00) >> 8


def _y(opcode: int) -> int:
    return (opcode & 0x00F0) >> 4


class Chip8:
    """A CHIP-8 interpreter with 4 KiB of memory and a 64x32 monochrome screen."""

    def __init__(self, program: bytes = b"", rng: random.Random | None = None) -> None:
        program = bytes(program)
        if len(program) > MEMORY_SIZE - PROGRAM_START:
            raise Chip8Error(f"program of {len(program)} bytes does not fit in memory")
        self.ram = bytearray(MEMORY_SIZE)
        self.ram[PROGRAM_START:PROGRAM_START + len(program)] = program
        self.ram[FONT_START:FONT_START + len(FONTSET)] = FONTSET
        self.v = [0] * REGISTER_COUNT
        self.stack = [0] * STACK_DEPTH
        self.pc = PROGRAM_START
        self.sp = 0
        self.index = 0
        self.dt = 0
        self.st = 0
        self.draw_flag = True
        self.wait_key: int | None = None
        self._rng = rng if rng is not None else random.Random()
        self._pressed: set[int] = set()
        self._screen = [bytearray(WIDTH) for _ in range(HEIGHT)]

        self._main_ops = {
            0x1: self._jump,
            0x2: self._call,
            0x3: self._skip_if_equal_byte,
            0x4: self._skip_if_not_equal_byte,
            0x5: self._skip_if_equal_register,
            0x6: self._load_byte,
            0x7: self._add_byte,
            0x9: self._skip_if_not_equal_register,
            0xA: self._load_index,
            0xB: self._jump_offset,
            0xC: self._random,
            0xD: self._draw_sprite,
        }
        self._alu_ops = {
            0x0: self._alu_load,
            0x1: self._alu_or,
            0x2: self._alu_and,
            0x3: self._alu_xor,
            0x4: self._alu_add,
            0x5: self._alu_sub,
            0x6: self._alu_shift_right,
            0x7: self._alu_subn,
            0xE: self._alu_shift_left,
        }
        self._key_ops = {
            0x9E: self._skip_if_pressed,
            0xA1: self._skip_if_not_pressed,
        }
        self._misc_ops = {
            0x07: self._read_delay,
            0x0A: self._await_key,
            0x15: self._set_delay,
            0x18: self._set_delay,
            0x1E: self._add_index,
            0x29: self._font_address,
            0x33: self._store_bcd,
            0x55: self._store_registers,
            0x65: self._load_registers,
        }

    @classmethod
    def from_file(cls, path: str | Path, rng: random.Random | None = None) -> "Chip8":
        """Build a machine with the ROM at ``path`` loaded."""
        try:
            program = Path(path).read_bytes()
        except OSError as exc:
            raise RomNotFoundError(f"cannot find the rom: {path}") from exc
        return cls(program, rng)

    def step(self) -> None:
        """Fetch, decode and execute one instruction."""
        address = self.pc
        opcode = (self.ram[address] << 8) | self.ram[(address + 1) % MEMORY_SIZE]
        self.pc = (self.pc + 2) & 0xFFF
        if opcode == 0x00EE:
            self._return()
            return
        if opcode == 0x00E0:
            self._clear_screen()
            return
        family = opcode >> 12
        if family == 0x8:
            handler = self._alu_ops.get(opcode & 0xF)
        elif family == 0xE:
            handler = self._key_ops.get(opcode & 0xFF)
        elif family == 0xF:
            handler = self._misc_ops.get(opcode & 0xFF)
        else:
            handler = self._main_ops.get(family)
        if handler is None:
            raise UnknownOpcodeError(opcode, address)
        handler(opcode)

    def run_cycles(self, count: int) -> None:
        """Execute ``count`` instructions."""
        for _ in range(count):
            self.step()

    def update_timers(self) -> None:
        """Count both timers down by one tick, stopping at zero."""
        if self.dt > 0:
            self.dt -= 1
        if self.st > 0:
            self.st -= 1

    def press_key(self, key: int) -> None:
        """Mark keypad key ``key`` (0-15) as held down."""
        self._check_key(key)
        self._pressed.add(key)

    def release_key(self, key: int) -> None:
        """Mark keypad key ``key`` (0-15) as released."""
        self._check_key(key)
        self._pressed.discard(key)

    def resolve_wait_key(self) -> int | None:
        """Finish a pending key wait with the lowest held key; return that key."""
        if self.wait_key is None:
            return None
        for key in range(KEY_COUNT):
            if key in self._pressed:
                self.v[self.wait_key] = key
                self.wait_key = None
                return key
        return None

    def pixel(self, x: int, y: int) -> bool:
        """Return whether the screen pixel at column ``x``, row ``y`` is lit."""
        if not (0 <= x < WIDTH and 0 <= y < HEIGHT):
            raise IndexError(f"pixel ({x}, {y}) is off the screen")
        return bool(self._screen[y][x])

    def render_rgba(self) -> bytes:
        """Return the screen as row-major RGBA bytes: lit pixels green, others clear."""
        return b"".join(
            ON_COLOUR if lit else OFF_COLOUR for row in self._screen for lit in row
        )

    @staticmethod
    def _check_key(key: int) -> None:
        if not 0 <= key < KEY_COUNT:
            raise ValueError(f"keypad key must be 0-15, not {key}")

    def _skip(self) -> None:
        self.pc = (self.pc + 2) & 0xFFF

    def _clear_screen(self) -> None:
        for row in self._screen:
            row[:] = bytes(WIDTH)

    def _return(self) -> None:
        if self.sp > 0:
            self.sp -= 1
            self.pc = self.stack[self.sp]

    def _jump(self, opcode: int) -> None:
        self.pc = opcode & 0xFFF

    def _call(self, opcode: int) -> None:
        if self.sp >= STACK_DEPTH:
            raise Chip8Error("stack overflow")
        self.stack[self.sp] = self.pc
        self.sp += 1
        self.pc = opcode & 0xFFF

    def _skip_if_equal_byte(self, opcode: int) -> None:
        if self.v[_x(opcode)] == opcode & 0xFF:
            self._skip()

    def _skip_if_not_equal_byte(self, opcode: int) -> None:
        if self.v[_x(opcode)] != opcode & 0xFF:
            self._skip()

    def _skip_if_equal_register(self, opcode: int) -> None:
        if self.v[_x(opcode)] == self.v[_y(opcode)]:
            self._skip()

    def _skip_if_not_equal_register(self, opcode: int) -> None:
        if self.v[_x(opcode)] != self.v[_y(opcode)]:
            self._skip()

    def _load_byte(self, opcode: int) -> None:
        self.v[_x(opcode)] = opcode & 0xFF

    def _add_byte(self, opcode: int) -> None:
        x = _x(opcode)
        self.v[x] = (self.v[x] + (opcode & 0xFF)) & 0xFF

    def _alu_load(self, opcode: int) -> None:
        self.v[_x(opcode)] = self.v[_y(opcode)]

    def _alu_or(self, opcode: int) -> None:
        self.v[_x(opcode)] |= self.v[_y(opcode)]

    def _alu_and(self, opcode: int) -> None:
        self.v[_x(opcode)] &= self.v[_y(opcode)]

    def _alu_xor(self, opcode: int) -> None:
        self.v[_x(opcode)] ^= self.v[_y(opcode)]

    def _alu_add(self, opcode: int) -> None:
        total = self.v[_x(opcode)] + self.v[_y(opcode)]
        self.v[0xF] = int(total > 0xFF)
        self.v[_x(opcode)] = total & 0xFF

    def _alu_sub(self, opcode: int) -> None:
        x, y = _x(opcode), _y(opcode)
        self.v[0xF] = int(self.v[x] > self.v[y])
        self.v[x] = (self.v[x] - self.v[y]) & 0xFF

    def _alu_shift_right(self, opcode: int) -> None:
        x = _x(opcode)
        self.v[0xF] = self.v[x] & 1
        self.v[x] >>= 1

    def _alu_subn(self, opcode: int) -> None:
        x, y = _x(opcode), _y(opcode)
        self.v[0xF] = int(self.v[y] > self.v[x])
        self.v[x] = (self.v[y] - self.v[x]) & 0xFF

    def _alu_shift_left(self, opcode: int) -> None:
        x = _x(opcode)
        self.v[0xF] = (self.v[x] & 0x80) >> 7
        self.v[x] = (self.v[x] << 1) & 0xFF

    def _load_index(self, opcode: int) -> None:
        self.index = opcode & 0xFFF

    def _jump_offset(self, opcode: int) -> None:
        self.pc = ((opcode & 0xFFF) + self.v[0]) & 0xFFF

    def _random(self, opcode: int) -> None:
        self.v[_x(opcode)] = self._rng.randrange(256) & (opcode & 0xFF)

    def _draw_sprite(self, opcode: int) -> None:
        self.draw_flag = True
        x = self.v[_x(opcode)]
        y = self.v[_y(opcode)]
        self.v[0xF] = 0
        for row_offset in range(opcode & 0xF):
            sprite_row = self.ram[(self.index + row_offset) % MEMORY_SIZE]
            screen_row = self._screen[(y + row_offset) % HEIGHT]
            for bit in range(8):
                if (sprite_row >> (7 - bit)) & 1:
                    column = (x + bit) % WIDTH
                    if screen_row[column]:
                        self.v[0xF] = 1
                    screen_row[column] ^= 1

    def _skip_if_pressed(self, opcode: int) -> None:
        if self.v[_x(opcode)] in self._pressed:
            self._skip()

    def _skip_if_not_pressed(self, opcode: int) -> None:
        if self.v[_x(opcode)] not in self._pressed:
            self._skip()

    def _read_delay(self, opcode: int) -> None:
        self.v[_x(opcode)] = self.dt

    def _await_key(self, opcode: int) -> None:
        self.wait_key = _x(opcode)

    def _set_delay(self, opcode: int) -> None:
        self.dt = self.v[_x(opcode)]

    def _add_index(self, opcode: int) -> None:
        self.index = (self.index + self.v[_x(opcode)]) & 0xFFFF

    def _font_address(self, opcode: int) -> None:
        self.index = FONT_START + self.v[_x(opcode)] * 5

    def _store_bcd(self, opcode: int) -> None:
        value = self.v[_x(opcode)]
        self.ram[self.index % MEMORY_SIZE] = (value // 100) % 10
        self.ram[(self.index + 1) % MEMORY_SIZE] = (value // 10) % 10
        self.ram[(self.index + 2) % MEMORY_SIZE] = value % 10

    def _store_registers(self, opcode: int) -> None:
        for register in range(_x(opcode) + 1):
            self.ram[(self.index + register) % MEMORY_SIZE] = self.v[register]

    def _load_registers(self, opcode: int) -> None:
        for register in range(_x(opcode) + 1):
            self.v[register] = self.ram[(self.index + register) % MEMORY_SIZE]