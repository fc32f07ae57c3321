# chipeight

A CHIP-8 virtual machine. You can use it as a library and drive the machine from your own code. You can also run it as a desktop program that opens a pygame window.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Playing a ROM

```
chipeight path/to/ROM
```

If you give no ROM path, the program looks for `c8games/INVADERS` relative to the current directory. If it cannot read the ROM file, it prints `cannot find the rom` to standard error and exits with status 1.

The program opens a window titled "chip 8" that shows the 64×32 display scaled up. Each frame it runs a set number of instructions, and it runs 60 frames per second. The delay and sound timers count down once per frame. If the program is waiting for a key (`Fx0A`), no instructions run until one of the mapped keys is held down.

Options:

- `--scale N`: window pixels per screen pixel. The default is 10, and N must be positive.
- `--cycles N`: instructions executed per frame. The default is 15, and N must be positive.

Run `chipeight --help` to see all options.

### Keys

The 16 CHIP-8 keys are laid out on the left side of the keyboard:

| Keyboard  | CHIP-8    |
|-----------|-----------|
| `1 2 3 4` | `1 2 3 C` |
| `Q W E R` | `4 5 6 D` |
| `A S D F` | `7 8 9 E` |
| `Z X C V` | `A 0 B F` |

Close the window to quit.

## Using the machine from Python

```python
import random

from chipeight.machine import Chip8

machine = Chip8.from_file("path/to/ROM", random.Random(1))
machine.run_cycles(15)
machine.update_timers()

if machine.pixel(0, 0):
    print("top-left pixel is lit")

frame = machine.render_rgba()  # 64 * 32 * 4 bytes, row by row
```

`Chip8(program, rng)` builds a machine from a bytes object. Both arguments are optional. The program is loaded at address 0x200 and the built-in font at 0x50. The `rng` argument is a `random.Random` used by the `Cxkk` instruction; if you leave it out, a fresh one is made.

The machine's state is held in these plain attributes, which you can read and change:

- `ram`
- `v`, the registers
- `stack` and `sp`
- `pc`
- `index`
- `dt` and `st`, the timers
- `draw_flag`, which is set when a sprite is drawn
- `wait_key`, the register waiting for a key press, or `None`

The main methods are:

- `step()` executes one instruction.
- `run_cycles(count)` executes `count` instructions.
- `update_timers()` counts the delay and sound timers down by one. They stop at zero.
- `press_key(key)` and `release_key(key)` hold and release keypad keys 0 to 15. Any other value raises `ValueError`.
- `resolve_wait_key()` ends a pending `Fx0A` wait. It stores the lowest held key in the waiting register and returns that key. If there is no wait or no key is held, it returns `None`.
- `pixel(x, y)` tells whether a screen pixel is lit. A position off the 64×32 screen raises `IndexError`.
- `render_rgba()` returns the screen as RGBA bytes. Lit pixels are opaque green and unlit pixels are fully transparent black.

`chipeight.app` holds the front end:

- `chip_key_for(pygame_key)` maps a pygame key code to a keypad key.
- `parse_args(argv)` reads the command-line options.
- `run(machine, scale, cycles_per_frame)` opens the window and runs a machine you have built yourself.
- `main(argv)` is the `chipeight` command.

## Errors

All machine errors derive from `Chip8Error`:

- `RomNotFoundError` is raised when a ROM file cannot be read.
- `UnknownOpcodeError` is raised when the machine fetches an instruction it does not implement. It carries `opcode` and `address`.
- `Chip8Error` itself is raised when a program is too large for memory, and when a call overflows the 16-entry stack.

## What it does not do

- The sound timer counts down, but no sound is ever played.
- There is no debugger, save state or ROM browser.
- `0nnn` machine-code calls and SUPER-CHIP instructions raise `UnknownOpcodeError`.

## Running the tests

```
pytest
```