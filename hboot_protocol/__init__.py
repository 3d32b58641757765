# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Hitachi/Renesas boot-mode protocol - Python flashing library.

This package reprograms a device's User MAT through its boot ROM, over
USB bulk endpoints or a serial link.

Example usage:
    from hboot_protocol import Flasher, FirmwareImage, UsbPort

    image = FirmwareImage.from_file("firmware.bin")

    with UsbPort() as port:
        session = Flasher(port).run(image)
        print(f"Flashed {session.device}: sum 0x{session.checksum:08x}")
"""

from .checksum import checksum, verify
from .errors import (
    FlashError,
    TransportError,
    TransportTimeout,
    DeviceNotFound,
    ProtocolViolation,
    IntegrityError,
    ImageError,
    FlashCancelled,
)
from .flasher import Flasher, FlashSession, Phase, Reporter
from .image import FirmwareImage
from .protocol import (
    CHUNK_SIZE,
    CommandType,
    Response,
    DeviceIdentity,
    DeviceInquiryResponse,
    ModeList,
    SumCheckResult,
    BitRateSelection,
    ProgrammingChunk,
    encode_command,
    encode_frame,
    encode_device_select,
    encode_clock_select,
    encode_bit_rate_select,
    encode_program_chunk,
    encode_program_stop,
    decode_device_inquiry,
    decode_mode_list,
    decode_sum_check,
)
from .transport import Port, UsbPort, SerialPort

__version__ = "0.1.0"

__all__ = [
    # Checksum
    "checksum",
    "verify",
    # Errors
    "FlashError",
    "TransportError",
    "TransportTimeout",
    "DeviceNotFound",
    "ProtocolViolation",
    "IntegrityError",
    "ImageError",
    "FlashCancelled",
    # Engine
    "Flasher",
    "FlashSession",
    "Phase",
    "Reporter",
    # Image
    "FirmwareImage",
    # Protocol types
    "CHUNK_SIZE",
    "CommandType",
    "Response",
    "DeviceIdentity",
    "DeviceInquiryResponse",
    "ModeList",
    "SumCheckResult",
    "BitRateSelection",
    "ProgrammingChunk",
    # Protocol encoding
    "encode_command",
    "encode_frame",
    "encode_device_select",
    "encode_clock_select",
    "encode_bit_rate_select",
    "encode_program_chunk",
    "encode_program_stop",
    "decode_device_inquiry",
    "decode_mode_list",
    "decode_sum_check",
    # Transport
    "Port",
    "UsbPort",
    "SerialPort",
]
