#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
User MAT flashing tool for Hitachi/Renesas boot-mode devices.

Usage:
    python hboot_flash.py firmware.bin
    python hboot_flash.py firmware.bin --vid 0x045b --pid 0x0025
    python hboot_flash.py firmware.bin --serial /dev/ttyUSB0 --baudrate 9600

Exit status:
    0   firmware written and verified
    1   protocol or transport error, device memory untouched
    2   firmware image error or invalid arguments
    3   failure after programming began, device memory undefined
    130 cancelled before programming began

Requirements:
    pip install pyusb pyserial
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

from hboot_protocol import (
    BitRateSelection,
    FirmwareImage,
    Flasher,
    FlashCancelled,
    FlashError,
    ImageError,
    IntegrityError,
    ModeList,
    Phase,
    Reporter,
    SerialPort,
    SumCheckResult,
    UsbPort,
)
from hboot_protocol.transport import DEFAULT_PRODUCT_ID, DEFAULT_TIMEOUT, DEFAULT_VENDOR_ID

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_IMAGE = 2
EXIT_MEMORY_UNDEFINED = 3
EXIT_CANCELLED = 130


class ConsoleReporter(Reporter):
    """Print flashing status to stdout."""

    def phase(self, phase: Phase) -> None:
        if phase in (Phase.PROGRAMMING, Phase.DONE):
            return
        print(f"{str(phase).capitalize()}... ", flush=True)

    def device(self, identity) -> None:
        print(f"Detected device: {identity}")

    def clock_modes(self, modes: ModeList) -> None:
        print(f"Supported clock modes: {_hex_list(modes.codes)}")

    def programming_units(self, units: ModeList) -> None:
        print(f"Supported programming units: {_hex_list(units.codes)}")

    def progress(self, written: int, total: int) -> None:
        pct = written * 100 // total
        print(f"\rProgramming: {pct:3d}% ({written}/{total} blocks)", end="", flush=True)
        if written == total:
            print()

    def sum_check(self, result: SumCheckResult) -> None:
        print(f"Device sum: 0x{result.checksum:08X}")


def _hex_list(codes) -> str:
    return " ".join(f"0x{code:02X}" for code in codes) or "(none)"


class CancelFlag:
    """SIGINT handler that defers cancellation to the next phase boundary."""

    def __init__(self):
        self.requested = False

    def __call__(self, signum=None, frame=None):
        if self.requested:
            return
        self.requested = True
        print("\nInterrupt received, stopping after the current frame...", file=sys.stderr)

    def is_set(self) -> bool:
        return self.requested


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Flash the User MAT of a Hitachi/Renesas boot-mode device"
    )
    parser.add_argument("firmware", type=Path, help="Firmware binary file")
    parser.add_argument(
        "--serial", "-s",
        metavar="PORT",
        help="Use a serial port (e.g., /dev/ttyUSB0) instead of USB"
    )
    parser.add_argument("--baudrate", type=int, default=9600,
                        help="Initial serial baud rate (default 9600)")
    parser.add_argument("--vid", type=lambda v: int(v, 0), default=DEFAULT_VENDOR_ID,
                        help=f"USB vendor ID (default 0x{DEFAULT_VENDOR_ID:04x})")
    parser.add_argument("--pid", type=lambda v: int(v, 0), default=DEFAULT_PRODUCT_ID,
                        help=f"USB product ID (default 0x{DEFAULT_PRODUCT_ID:04x})")
    parser.add_argument("--timeout", "-t", type=float, default=DEFAULT_TIMEOUT,
                        help=f"Per-exchange timeout in seconds (default {DEFAULT_TIMEOUT})")
    parser.add_argument("--bit-rate", type=int, default=115200,
                        help="New bit rate negotiated with the boot ROM (default 115200)")
    parser.add_argument("--clock-mode", type=lambda v: int(v, 0), default=0x01,
                        help="Clock mode to select (default 0x01)")
    parser.add_argument("--no-pad", action="store_true",
                        help="Reject images that are not a multiple of 1024 bytes")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Log protocol activity (-vv for frame dumps)")
    return parser


def open_port(args):
    if args.serial:
        return SerialPort(args.serial, baudrate=args.baudrate, timeout=args.timeout)
    return UsbPort(vendor_id=args.vid, product_id=args.pid, timeout=args.timeout)


def flash(args, cancel: CancelFlag) -> int:
    """Run one flashing session and map its outcome to an exit status."""
    try:
        image = FirmwareImage.from_file(args.firmware, pad=not args.no_pad)
    except ImageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_IMAGE

    print(f"Firmware: {args.firmware} ({len(image)} bytes, {image.chunk_count} blocks)")
    if image.padding:
        print(f"          last block padded with {image.padding} bytes of 0xFF")
    print()

    port = open_port(args)
    try:
        port.open()
        flasher = Flasher(
            port,
            clock_mode=args.clock_mode,
            bit_rate=BitRateSelection(bit_rate=args.bit_rate),
            reporter=ConsoleReporter(),
            cancel=cancel.is_set,
        )
        session = flasher.run(image)
    except FlashError as e:
        print(file=sys.stderr)
        if e.phase:
            print(f"Error during {e.phase}: {e}", file=sys.stderr)
        else:
            print(f"Error: {e}", file=sys.stderr)
        if isinstance(e, IntegrityError):
            print(
                "WARNING: the device memory does not match the image, "
                "firmware may be incorrectly written.",
                file=sys.stderr,
            )
            return EXIT_MEMORY_UNDEFINED
        if e.memory_undefined:
            print(
                "WARNING: programming was interrupted, the device memory is in an "
                "undefined state. Reflash before resetting the device.",
                file=sys.stderr,
            )
            return EXIT_MEMORY_UNDEFINED
        if isinstance(e, FlashCancelled):
            return EXIT_CANCELLED
        return EXIT_ERROR
    finally:
        port.close()

    print()
    print(f"Firmware written to {session.device} and verified (sum 0x{session.checksum:08X})")
    return EXIT_OK


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        BitRateSelection(bit_rate=args.bit_rate).to_bytes()
    except ValueError as e:
        parser.error(str(e))

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    cancel = CancelFlag()
    previous = signal.signal(signal.SIGINT, cancel)
    try:
        return flash(args, cancel)
    finally:
        signal.signal(signal.SIGINT, previous)


if __name__ == "__main__":
    sys.exit(main())
