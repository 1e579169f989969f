"""Command line entry point: ``chip8 [options] romfile``."""

import argparse
import sys
from pathlib import Path

from chip8_vm import Chip8, Chip8Error, Quirks, set_logging

DEFAULT_SCALE = 10
DEFAULT_CPU_HZ = 500


def positive_int(text):
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer, got %s" % text)
    return value


def build_parser():
    parser = argparse.ArgumentParser(prog="chip8", description="CHIP-8 emulator")
    parser.add_argument("rom", help="path to a raw CHIP-8 ROM image")
    parser.add_argument(
        "--cpu-hz", type=positive_int, default=DEFAULT_CPU_HZ,
        help="instructions executed per second (default %(default)s)"
    )
    parser.add_argument(
        "--scale", type=positive_int, default=DEFAULT_SCALE,
        help="screen pixels per CHIP-8 pixel (default %(default)s)"
    )
    parser.add_argument(
        "--increment-index", action="store_true",
        help="Fx55/Fx65 advance I past the last register"
    )
    parser.add_argument(
        "--shift-vy", action="store_true",
        help="8xy6/8xyE shift Vy into Vx"
    )
    parser.add_argument(
        "--jump-vx", action="store_true",
        help="Bnnn jumps to nnn + Vx instead of nnn + V0"
    )
    parser.add_argument("--show-stats", action="store_true", help="show FPS and cycles/s")
    parser.add_argument("--log", action="store_true", help="start with instruction logging on (F1 toggles)")
    return parser


def read_rom(path):
    return Path(path).read_bytes()


def create_vm(args):
    quirks = Quirks(
        increment_index=args.increment_index,
        shift_vy=args.shift_vy,
        jump_vx=args.jump_vx,
    )
    vm = Chip8(quirks=quirks)
    vm.load_rom(read_rom(args.rom))
    return vm


def main(argv=None):
    args = build_parser().parse_args(argv)
    set_logging(args.log)

    try:
        vm = create_vm(args)
    except (OSError, Chip8Error) as e:
        print("Failed to load ROM:", e, file=sys.stderr)
        return 1

    # pyglet wants a display as soon as the window module loads
    import pyglet
    from chip8_emulator import Chip8Window

    Chip8Window(
        vm,
        rom_name=Path(args.rom).name,
        scale=args.scale,
        cpu_hz=args.cpu_hz,
        show_stats=args.show_stats,
    )
    pyglet.app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
