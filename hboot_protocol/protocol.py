# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Boot-mode protocol definitions and serialization.

This module defines the command bytes and frame layouts exchanged with the
device's boot ROM, and encodes/decodes them. Multi-byte fields are
big-endian on the wire.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .checksum import checksum, verify

# Size of one programming block and its User MAT address step
CHUNK_SIZE = 1024

# Address that terminates a programming sequence
PROGRAM_STOP_ADDRESS = 0xFFFFFFFF

# [cmd][size][ndev][nchar][code0..3]
DEVICE_INQUIRY_HEADER_SIZE = 8
DEVICE_CODE_SIZE = 4

# [cmd][size][sum: 4 bytes][checksum]
SUM_CHECK_RESPONSE_SIZE = 7


class CommandType(IntEnum):
    """Command bytes sent to the boot ROM."""
    DEVICE_SELECT = 0x10
    CLOCK_SELECT = 0x11
    DEVICE_INQUIRY = 0x20
    CLOCK_INQUIRY = 0x21
    PROG_UNIT_INQUIRY = 0x27
    BIT_RATE_SELECT = 0x3F
    BIT_RATE_CONFIRM = 0x06
    ENTER_PROGRAMMING = 0x40
    USER_MAT_SELECT = 0x43
    SUM_CHECK = 0x4B
    PROGRAM = 0x50
    HANDSHAKE = 0x55

    def __str__(self) -> str:
        return self.name


class Response:
    """Single-byte response constants."""
    ACK = 0x06
    HANDSHAKE_OK = 0xE6


@dataclass(frozen=True)
class DeviceIdentity:
    """Device code and product name reported by the device inquiry."""
    code: str
    name: str

    def __str__(self) -> str:
        return f"{self.code}-{self.name}"


@dataclass
class DeviceInquiryResponse:
    """Decoded supported-device inquiry response."""
    command: int
    size: int
    device_count: int
    identity: DeviceIdentity
    checksum: int


@dataclass
class ModeList:
    """
    Clock mode or programming unit list.

    `payload` holds the raw bytes between the size field and the checksum.
    `codes` drops the leading count byte when the payload carries one.
    """
    command: int
    size: int
    count: int
    codes: Tuple[int, ...]
    payload: bytes
    checksum: int
    checksum_ok: bool


@dataclass
class SumCheckResult:
    """User MAT sum reported by the device."""
    command: int
    size: int
    checksum: int
    frame_checksum: int


@dataclass
class BitRateSelection:
    """
    Parameters of the new bit-rate selection command.

    Attributes:
        bit_rate: New bit rate in bits per second (multiple of 100)
        input_clock: Input clock frequency in units of 10 kHz
        multipliers: Clock multiplication ratios, one byte each
    """
    bit_rate: int = 115200
    input_clock: int = 1600
    multipliers: Tuple[int, ...] = (0x01, 0x01)

    def to_bytes(self) -> bytes:
        if self.bit_rate % 100 or not 0 < self.bit_rate // 100 <= 0xFFFF:
            raise ValueError(f"Unsupported bit rate: {self.bit_rate}")
        if not 0 <= self.input_clock <= 0xFFFF:
            raise ValueError(f"Input clock out of range: {self.input_clock}")
        return (
            struct.pack(">HHB", self.bit_rate // 100, self.input_clock, len(self.multipliers))
            + bytes(self.multipliers)
        )


@dataclass(frozen=True)
class ProgrammingChunk:
    """One 1024-byte block of firmware and its User MAT address."""
    address: int
    data: bytes

    def to_bytes(self) -> bytes:
        return encode_program_chunk(self.address, self.data)

    @property
    def checksum(self) -> int:
        return self.to_bytes()[-1]


def encode_command(command: int) -> bytes:
    """Encode a single-byte command."""
    return bytes([command])


def encode_frame(command: int, payload: bytes) -> bytes:
    """Encode a [cmd][size][payload][checksum] frame."""
    if len(payload) > 0xFF:
        raise ValueError(f"Payload too long: {len(payload)} bytes")
    return _with_checksum(bytes([command, len(payload)]) + payload)


def encode_device_select(code: str) -> bytes:
    """Encode a device selection for a 4-character device code."""
    raw = code.encode("latin-1")
    if len(raw) != DEVICE_CODE_SIZE:
        raise ValueError(f"Device code must be {DEVICE_CODE_SIZE} bytes, got {code!r}")
    return encode_frame(CommandType.DEVICE_SELECT, raw)


def encode_clock_select(mode: int = 0x01) -> bytes:
    """Encode a clock mode selection."""
    return encode_frame(CommandType.CLOCK_SELECT, bytes([mode]))


def encode_bit_rate_select(selection: BitRateSelection) -> bytes:
    """Encode a new bit-rate selection."""
    return encode_frame(CommandType.BIT_RATE_SELECT, selection.to_bytes())


def encode_program_chunk(address: int, data: bytes) -> bytes:
    """
    Encode a programming block.

    Args:
        address: User MAT address of the block
        data: Exactly CHUNK_SIZE bytes

    Returns:
        [0x50][address BE][data][checksum]
    """
    if len(data) != CHUNK_SIZE:
        raise ValueError(f"Block must be {CHUNK_SIZE} bytes, got {len(data)}")
    if not 0 <= address < PROGRAM_STOP_ADDRESS:
        raise ValueError(f"Address out of range: 0x{address:X}")
    return _with_checksum(struct.pack(">BI", CommandType.PROGRAM, address) + data)


def encode_program_stop() -> bytes:
    """Encode the programming termination frame."""
    return _with_checksum(struct.pack(">BI", CommandType.PROGRAM, PROGRAM_STOP_ADDRESS))


def device_inquiry_length(header: bytes) -> int:
    """Return the full device inquiry frame length given its header."""
    if len(header) < DEVICE_INQUIRY_HEADER_SIZE:
        raise ValueError("Truncated device inquiry header")
    return DEVICE_INQUIRY_HEADER_SIZE + header[3] + 1


def decode_device_inquiry(data: bytes) -> DeviceInquiryResponse:
    """
    Decode a supported-device inquiry response.

    Args:
        data: [cmd][size][ndev][nchar][code0..3][name: nchar][checksum]

    Returns:
        Decoded response for the first listed device

    Raises:
        ValueError: If the frame is truncated or its checksum is wrong
    """
    length = device_inquiry_length(data)
    if len(data) < length:
        raise ValueError(f"Truncated device inquiry: {len(data)} of {length} bytes")

    frame = data[:length]
    if not verify(frame):
        raise ValueError(
            f"Device inquiry checksum mismatch: expected 0x{checksum(frame[:-1]):02X}, "
            f"got 0x{frame[-1]:02X}"
        )

    identity = DeviceIdentity(
        code=frame[4:DEVICE_INQUIRY_HEADER_SIZE].decode("latin-1"),
        name=frame[DEVICE_INQUIRY_HEADER_SIZE:-1].decode("latin-1"),
    )
    return DeviceInquiryResponse(
        command=frame[0],
        size=frame[1],
        device_count=frame[2],
        identity=identity,
        checksum=frame[-1],
    )


def decode_mode_list(data: bytes) -> ModeList:
    """
    Decode a clock mode or programming unit inquiry response.

    The trailing checksum is recorded but never rejected. A payload whose
    first byte equals the number of bytes after it is read as a counted
    list; any other payload (e.g. a programming unit response) is reported
    byte for byte.

    Args:
        data: [cmd][size][count][codes...][checksum] or [cmd][size][codes...][checksum]

    Raises:
        ValueError: If the frame is shorter than its size field
    """
    if len(data) < 2:
        raise ValueError("Truncated list response")
    size = data[1]
    length = size + 3
    if len(data) < length:
        raise ValueError(f"Truncated list response: {len(data)} of {length} bytes")

    payload = bytes(data[2:2 + size])
    if payload and payload[0] == size - 1:
        codes = tuple(payload[1:])
    else:
        codes = tuple(payload)
    return ModeList(
        command=data[0],
        size=size,
        count=len(codes),
        codes=codes,
        payload=payload,
        checksum=data[length - 1],
        checksum_ok=verify(data[:length]),
    )


def decode_sum_check(data: bytes) -> SumCheckResult:
    """
    Decode a User MAT sum check response.

    Raises:
        ValueError: If the frame is truncated, mis-sized or its checksum is wrong
    """
    if len(data) < SUM_CHECK_RESPONSE_SIZE:
        raise ValueError(
            f"Truncated sum check response: {len(data)} of {SUM_CHECK_RESPONSE_SIZE} bytes"
        )
    frame = data[:SUM_CHECK_RESPONSE_SIZE]
    if frame[1] != 4:
        raise ValueError(f"Unexpected sum check size: {frame[1]}")
    if not verify(frame):
        raise ValueError(
            f"Sum check frame checksum mismatch: expected 0x{checksum(frame[:-1]):02X}, "
            f"got 0x{frame[-1]:02X}"
        )
    command, size, total, frame_checksum = struct.unpack(">BBIB", frame)
    return SumCheckResult(
        command=command,
        size=size,
        checksum=total,
        frame_checksum=frame_checksum,
    )


def _with_checksum(data: bytes) -> bytes:
    """Append the frame checksum."""
    return data + bytes([checksum(data)])
