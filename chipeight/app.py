"""Window, keyboard and frame loop for running a ROM."""

from __future__ import annotations

import argparse
import os
import sys

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from .machine import HEIGHT, WIDTH, Chip8, RomNotFoundError  # noqa: E402

DEFAULT_ROM = "c8games/INVADERS"
DEFAULT_SCALE = 10
DEFAULT_CYCLES = 15
FRAME_RATE = 60
WINDOW_TITLE = "chip 8"

KEYMAP = (
    pygame.K_x,
    pygame.K_1,
    pygame.K_2,
    pygame.K_3,
    pygame.K_q,
    pygame.K_w,
    pygame.K_e,
    pygame.K_a,
    pygame.K_s,
    pygame.K_d,
    pygame.K_z,
    pygame.K_c,
    pygame.K_4,
    pygame.K_r,
    pygame.K_f,
    pygame.K_v,
)
_CHIP_KEYS = {pygame_key: chip_key for chip_key, pygame_key in enumerate(KEYMAP)}


def chip_key_for(pygame_key: int) -> int | None:
    """Return the keypad key bound to a pygame key code, or None."""
    return _CHIP_KEYS.get(pygame_key)


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {text}")
    return value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse the command line."""
    parser = argparse.ArgumentParser(prog="chipeight", description="Run a CHIP-8 ROM.")
    parser.add_argument("rom", nargs="?", default=DEFAULT_ROM, help="path of the ROM file")
    parser.add_argument("--scale", type=_positive_int, default=DEFAULT_SCALE,
                        help="window pixels per screen pixel")
    parser.add_argument("--cycles", type=_positive_int, default=DEFAULT_CYCLES,
                        help="instructions executed per frame")
    return parser.parse_args(argv)


def run(machine: Chip8, scale: int = DEFAULT_SCALE, cycles_per_frame: int = DEFAULT_CYCLES) -> None:
    """Show ``machine`` in a window and run it at 60 frames a second until closed."""
    pygame.init()
    try:
        screen = pygame.display.set_mode((WIDTH * scale, HEIGHT * scale))
        pygame.display.set_caption(WINDOW_TITLE)
        clock = pygame.time.Clock()
        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                    break
                if event.type in (pygame.KEYDOWN, pygame.KEYUP):
                    key = chip_key_for(event.key)
                    if key is None:
                        continue
                    if event.type == pygame.KEYDOWN:
                        machine.press_key(key)
                    else:
                        machine.release_key(key)
            if not running:
                break
            if machine.wait_key is None:
                machine.run_cycles(cycles_per_frame)
            else:
                machine.resolve_wait_key()
            machine.update_timers()
            if machine.draw_flag:
                frame = pygame.image.frombuffer(machine.render_rgba(), (WIDTH, HEIGHT), "RGBA")
                screen.fill((0, 0, 0))
                screen.blit(pygame.transform.scale(frame, screen.get_size()), (0, 0))
                pygame.display.flip()
                machine.draw_flag = False
            clock.tick(FRAME_RATE)
    finally:
        pygame.quit()


def main(argv: list[str] | None = None) -> int:
    """Load the ROM named on the command line and run it."""
    args = parse_args(argv)
    try:
        machine = Chip8.from_file(args.rom)
    except RomNotFoundError:
        print("cannot find the rom", file=sys.stderr)
        return 1
    run(machine, args.scale, args.cycles)
    return 0