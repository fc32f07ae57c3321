import pytest

from chipeight.machine import (
    FONT_START,
    FONTSET,
    HEIGHT,
    OFF_COLOUR,
    ON_COLOUR,
    PROGRAM_START,
    STACK_DEPTH,
    WIDTH,
    Chip8,
    Chip8Error,
    RomNotFoundError,
    UnknownOpcodeError,
)


def program(*opcodes):
    return b"".join(op.to_bytes(2, "big") for op in opcodes)


def run(*opcodes):
    machine = Chip8(program(*opcodes))
    machine.run_cycles(len(opcodes))
    return machine


class FixedRng:
    def __init__(self, value):
        self.value = value

    def randrange(self, stop):
        return self.value % stop


def test_font_and_program_are_loaded():
    data = program(0x1234, 0xABCD)
    machine = Chip8(data)
    assert bytes(machine.ram[FONT_START:FONT_START + len(FONTSET)]) == FONTSET
    assert bytes(machine.ram[PROGRAM_START:PROGRAM_START + len(data)]) == data
    assert machine.pc == PROGRAM_START
    assert machine.draw_flag is True
    assert machine.wait_key is None


def test_program_too_large():
    with pytest.raises(Chip8Error):
        Chip8(bytes(4096))


def test_from_file_round_trip(tmp_path):
    rom = tmp_path / "game.ch8"
    data = program(0x6012)
    rom.write_bytes(data)
    machine = Chip8.from_file(rom)
    machine.step()
    assert machine.v[0] == 0x12


def test_from_file_missing(tmp_path):
    with pytest.raises(RomNotFoundError):
        Chip8.from_file(tmp_path / "absent")


def test_jump():
    machine = run(0x1345)
    assert machine.pc == 0x345


def test_call_and_return():
    machine = Chip8(program(0x2206, 0x0000, 0x0000, 0x00EE))
    machine.step()
    assert machine.pc == 0x206
    assert machine.sp == 1
    machine.step()
    assert machine.pc == PROGRAM_START + 2
    assert machine.sp == 0


def test_return_with_empty_stack_only_advances():
    machine = run(0x00EE)
    assert machine.pc == PROGRAM_START + 2
    assert machine.sp == 0


def test_stack_overflow():
    machine = Chip8(program(0x2200))
    machine.run_cycles(STACK_DEPTH)
    with pytest.raises(Chip8Error):
        machine.step()


@pytest.mark.parametrize(
    "opcodes, skipped",
    [
        ((0x6012, 0x3012), True),
        ((0x6012, 0x3013), False),
        ((0x6012, 0x4013), True),
        ((0x6012, 0x4012), False),
        ((0x6012, 0x6112, 0x5010), True),
        ((0x6012, 0x6113, 0x5010), False),
        ((0x6012, 0x6113, 0x9010), True),
        ((0x6012, 0x6112, 0x9010), False),
    ],
)
def test_conditional_skips(opcodes, skipped):
    machine = run(*opcodes)
    expected = PROGRAM_START + 2 * len(opcodes) + (2 if skipped else 0)
    assert machine.pc == expected


def test_add_byte_wraps_without_carry_flag():
    machine = run(0x60FF, 0x6F07, 0x7002)
    assert machine.v[0] == 1
    assert machine.v[0xF] == 0x07


@pytest.mark.parametrize(
    "op, expected",
    [(0x8011, 0x0C | 0x0A), (0x8012, 0x0C & 0x0A), (0x8013, 0x0C ^ 0x0A), (0x8010, 0x0A)],
)
def test_bitwise(op, expected):
    machine = run(0x600C, 0x610A, op)
    assert machine.v[0] == expected


def test_add_registers_sets_carry():
    machine = run(0x60FF, 0x6101, 0x8014)
    assert machine.v[0] == 0
    assert machine.v[0xF] == 1


def test_sub_flag_is_strict():
    machine = run(0x6005, 0x6105, 0x8015)
    assert machine.v[0] == 0
    assert machine.v[0xF] == 0


def test_subn_borrow_wraps():
    machine = run(0x6005, 0x6104, 0x8017)
    assert machine.v[0] == 0xFF
    assert machine.v[0xF] == 0


def test_shifts_report_lost_bit():
    right = run(0x6081, 0x8006)
    assert right.v[0] == 0x40
    assert right.v[0xF] == 1
    left = run(0x6081, 0x800E)
    assert left.v[0] == 0x02
    assert left.v[0xF] == 1


def test_load_index_and_jump_offset():
    machine = run(0xA123, 0x6010, 0xBFF0)
    assert machine.index == 0x123
    assert machine.pc == 0x000


def test_random_masks_with_byte():
    machine = Chip8(program(0xC30F), rng=FixedRng(0xFF))
    machine.step()
    assert machine.v[3] == 0x0F


@pytest.mark.parametrize("opcode", [0x0123, 0x8008, 0xE0FF, 0xF0FF])
def test_unknown_opcodes(opcode):
    machine = Chip8(program(opcode))
    with pytest.raises(UnknownOpcodeError) as info:
        machine.step()
    assert info.value.opcode == opcode
    assert info.value.address == PROGRAM_START


def test_draw_font_glyph_and_collision():
    machine = Chip8(program(0x6000, 0xF029, 0xD005, 0xD005))
    machine.run_cycles(3)
    assert machine.index == FONT_START
    assert machine.v[0xF] == 0
    assert machine.pixel(0, 0) and machine.pixel(3, 0)
    assert not machine.pixel(4, 0)
    assert not machine.pixel(1, 1)
    machine.step()
    assert machine.v[0xF] == 1
    assert not any(machine.pixel(x, y) for x in range(WIDTH) for y in range(HEIGHT))


def test_draw_wraps_around_edges():
    machine = run(0x603E, 0x611F, 0xF229, 0xD011)
    assert machine.pixel(WIDTH - 2, HEIGHT - 1)
    assert machine.pixel(0, HEIGHT - 1)
    assert machine.pixel(1, HEIGHT - 1)


def test_clear_screen():
    machine = run(0x6000, 0xF029, 0xD005, 0x00E0)
    assert not any(machine.pixel(x, y) for x in range(WIDTH) for y in range(HEIGHT))


def test_pixel_off_screen():
    with pytest.raises(IndexError):
        Chip8().pixel(WIDTH, 0)


def test_render_rgba():
    machine = run(0x6000, 0xF029, 0xD005)
    frame = machine.render_rgba()
    assert len(frame) == WIDTH * HEIGHT * 4
    assert frame[:4] == ON_COLOUR
    assert frame[4 * 4:5 * 4] == OFF_COLOUR


def test_bcd():
    machine = run(0xA300, 0x609C, 0xF033)
    assert list(machine.ram[0x300:0x303]) == [1, 5, 6]


def test_store_and_load_registers_round_trip():
    machine = Chip8(program(0x600A, 0x610B, 0x620C, 0xA300, 0xF255, 0x6000, 0x6100, 0x6200, 0xF265))
    machine.run_cycles(5)
    assert list(machine.ram[0x300:0x303]) == [0x0A, 0x0B, 0x0C]
    machine.run_cycles(4)
    assert machine.v[:3] == [0x0A, 0x0B, 0x0C]


def test_add_index():
    machine = run(0xA300, 0x6005, 0xF01E)
    assert machine.index == 0x305


def test_key_skips():
    machine = Chip8(program(0x6007, 0xE09E, 0x0000, 0xE0A1))
    machine.press_key(7)
    machine.run_cycles(2)
    assert machine.pc == PROGRAM_START + 6
    machine.step()
    assert machine.pc == PROGRAM_START + 8
    machine.release_key(7)
    other = Chip8(program(0x6007, 0xE0A1))
    other.run_cycles(2)
    assert other.pc == PROGRAM_START + 6


def test_press_invalid_key():
    with pytest.raises(ValueError):
        Chip8().press_key(16)


def test_wait_key():
    machine = run(0xF50A)
    assert machine.wait_key == 5
    assert machine.resolve_wait_key() is None
    machine.press_key(9)
    machine.press_key(3)
    assert machine.resolve_wait_key() == 3
    assert machine.v[5] == 3
    assert machine.wait_key is None


def test_timers():
    machine = run(0x6002, 0xF015)
    assert machine.dt == 2
    machine.update_timers()
    machine.update_timers()
    machine.update_timers()
    assert machine.dt == 0
    assert machine.st == 0


def test_fx18_sets_delay_and_fx07_reads_it():
    machine = run(0x6004, 0xF018, 0xF107)
    assert machine.dt == 4
    assert machine.v[1] == 4