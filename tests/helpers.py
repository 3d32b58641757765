# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Scripted device responses shared by the unit tests."""

import struct
from typing import List, Optional

from hboot_protocol.checksum import checksum
from hboot_protocol.errors import TransportTimeout
from hboot_protocol.image import FirmwareImage
from hboot_protocol.transport import Port

ACK = b"\x06"
NAK = b"\x15"


class FakePort(Port):
    """In-memory port replaying one queued response per receive() call."""

    def __init__(self, responses: Optional[List[bytes]] = None):
        self.responses = list(responses or [])
        self.sent: List[bytes] = []
        self.bit_rates: List[int] = []
        self.is_open = False
        self.short_write = False

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def send(self, data: bytes, timeout=None) -> int:
        self.sent.append(bytes(data))
        return len(data) - 1 if self.short_write else len(data)

    def receive(self, max_len: int, timeout=None) -> bytes:
        if not self.responses:
            raise TransportTimeout("Timeout waiting for response")
        return self.responses.pop(0)

    def set_bit_rate(self, bit_rate: int) -> None:
        self.bit_rates.append(bit_rate)


def with_checksum(body: bytes) -> bytes:
    return body + bytes([checksum(body)])


def device_inquiry_frame(code: bytes = b"AB12", name: bytes = b"XYZ", ndev: int = 1) -> bytes:
    """[0x30][size][ndev][nchar][code][name][checksum]"""
    return with_checksum(bytes([0x30, 2 + len(code) + len(name), ndev, len(name)]) + code + name)


def mode_list_frame(command: int, codes: bytes) -> bytes:
    """[cmd][size][count][codes][checksum]"""
    return with_checksum(bytes([command, len(codes) + 1, len(codes)]) + codes)


def sum_check_frame(total: int) -> bytes:
    """[0x5B][0x04][sum BE][checksum]"""
    return with_checksum(struct.pack(">BBI", 0x5B, 4, total))


def expected_sum(image: FirmwareImage) -> int:
    return sum(chunk.checksum for chunk in image.chunks()) & 0xFFFFFFFF


def setup_responses() -> List[bytes]:
    """Responses for every phase up to and including User MAT selection.

    Frames with a trailing checksum are split into two transfers, the way
    the boot ROM sends them over USB.
    """
    inquiry = device_inquiry_frame()
    clocks = mode_list_frame(0x31, b"\x01\x02")
    units = mode_list_frame(0x37, b"\x01")
    return [
        b"\xE6",                        # handshake
        inquiry[:-1], inquiry[-1:],     # device inquiry
        ACK,                            # device selection
        clocks[:-1], clocks[-1:],       # clock mode inquiry
        ACK,                            # clock mode selection
        units[:-1], units[-1:],         # programming unit inquiry
        ACK,                            # bit rate selection
        ACK,                            # bit rate confirmation
        ACK,                            # programming state
        ACK,                            # user MAT selection
    ]


def full_responses(image: FirmwareImage, total: Optional[int] = None) -> List[bytes]:
    """Responses for a complete, successful run."""
    if total is None:
        total = expected_sum(image)
    return (
        setup_responses()
        + [ACK] * image.chunk_count     # programming blocks
        + [ACK]                         # programming stop
        + [sum_check_frame(total)]
    )
