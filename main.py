#!/usr/bin/env python3
"""CHIP-8 Command Line Interface.

Run CHIP-8 programs headless and print the final display.

Usage:
    python main.py --rom roms/IBM.ch8 --cycles 200
    python main.py --hex "00E0 6005 F029 6000 6100 D015 120C" --trace
    python main.py --rom roms/keypad.ch8 --keys 5,5,6 --rate 125
"""

import argparse
import logging
import random
import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_core import Chip8, Chip8Error, RomTooLargeError
from chip8_core.decode import disassemble
from chip8_core.rom import load_rom, parse_hex


def parse_keys(text: str) -> list:
    """Parse a comma-separated list of hex key indices."""
    keys = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        key = int(item, 16)
        if not 0 <= key <= 0xF:
            raise ValueError(f"Key out of range: {item}")
        keys.append(key)
    return keys


def run(cpu: Chip8, cycles: int, rate: float, keys: list) -> int:
    """Host scheduler: step at a fixed rate, feeding keys on Fx0A waits.

    A fed key is held down for one step and released after its deferred
    write has been committed.

    Returns:
        Number of steps performed
    """
    interval = 1.0 / rate if rate > 0 else 0.0
    pending = list(keys)
    held = None
    performed = 0

    while performed < cycles:
        if cpu.awaiting_key:
            if not pending:
                break
            held = pending.pop(0)
            cpu.key_down(held)

        cpu.step()
        performed += 1

        if held is not None:
            cpu.key_up(held)
            held = None

        if interval:
            time.sleep(interval)

    return performed


def main():
    parser = argparse.ArgumentParser(
        description="CHIP-8 interpreter (headless)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a ROM for 500 steps and print the screen
    python main.py --rom roms/IBM.ch8 --cycles 500

    # Show every executed instruction
    python main.py --rom roms/IBM.ch8 --cycles 50 --trace

    # Disassemble without running
    python main.py --rom roms/IBM.ch8 --disasm

    # Answer the first two key waits with keys 1 and A at 125 steps/s
    python main.py --rom roms/keypad.ch8 --keys 1,A --rate 125
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        help="Path to a raw CHIP-8 program image"
    )
    parser.add_argument(
        "--hex",
        type=str,
        help="Program as a hex listing, e.g. \"6005 F029\""
    )
    parser.add_argument(
        "--cycles", "-c",
        type=int,
        default=1000,
        help="Maximum steps to run. Default: 1000"
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=0,
        help="Steps per second; 0 runs unthrottled. Typical rate is 125. Default: 0"
    )
    parser.add_argument(
        "--keys", "-k",
        type=str,
        default="",
        help="Comma-separated hex keys fed one per key wait, e.g. 1,A,F"
    )
    parser.add_argument("--width", type=int, default=64, help="Display width. Default: 64")
    parser.add_argument("--height", type=int, default=32, help="Display height. Default: 32")
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the RND instruction"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--disasm",
        action="store_true",
        help="Print a disassembly of the program and exit"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final screen only)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Diagnostic log level. Default: WARNING"
    )

    args = parser.parse_args()

    if not args.rom and not args.hex:
        parser.error("Either --rom or --hex is required")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="[%(levelname)s]:  %(message)s",
        stream=sys.stderr,
    )

    try:
        keys = parse_keys(args.keys)
    except ValueError as e:
        parser.error(f"--keys: {e}")

    # Load program
    try:
        if args.rom:
            rom = load_rom(args.rom)
            if not args.quiet:
                print(f"Loading ROM: {args.rom} ({len(rom)} bytes)")
        else:
            rom = parse_hex(args.hex)
            if not args.quiet:
                print(f"Running hex listing ({len(rom)} bytes)")
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    if args.disasm:
        for address, opcode, mnemonic in disassemble(rom):
            print(f"{address:03X}: {opcode:04X}  {mnemonic}")
        return 0

    rng = random.Random(args.seed) if args.seed is not None else None

    try:
        cpu = Chip8(rom, width=args.width, height=args.height, rng=rng, trace=args.trace)
    except (RomTooLargeError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    # Run
    if not args.quiet:
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    status = 0
    try:
        performed = run(cpu, args.cycles, args.rate, keys)
    except Chip8Error as e:
        print(f"Execution error: {e}")
        performed = None
        status = 1

    # Output
    if args.trace:
        cpu.print_trace()
    print(cpu.screen_text())

    if not args.quiet:
        print()
        summary = cpu.get_summary()
        if performed is not None:
            print(f"Steps: {performed}")
        print(f"Cycles: {summary['cycles']}")
        print(f"PC: {summary['pc']:#05x}  I: {summary['i']:#05x}  SP: {summary['sp']}")
        print(f"Timers: DT={summary['delay_timer']} ST={summary['sound_timer']}")
        print(f"Registers: {summary['registers']}")
        if summary['awaiting_key']:
            print("Stopped: waiting for a key press")
        if summary['last_error']:
            print(f"Last error: {summary['last_error']}")

    return status


if __name__ == "__main__":
    sys.exit(main())
