# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Firmware image loading and block splitting."""

from pathlib import Path
from typing import Iterator

from .errors import ImageError
from .protocol import CHUNK_SIZE, PROGRAM_STOP_ADDRESS, ProgrammingChunk

# Value of erased flash, used to pad a short last block
FILL_BYTE = 0xFF


class FirmwareImage:
    """
    Raw binary image for the User MAT.

    A last block shorter than CHUNK_SIZE is padded with `fill` when `pad`
    is set, otherwise the image is rejected.
    """

    def __init__(self, data: bytes, pad: bool = True, fill: int = FILL_BYTE):
        if not data:
            raise ImageError("Firmware image is empty")
        if len(data) > PROGRAM_STOP_ADDRESS - CHUNK_SIZE + 1:
            raise ImageError(f"Firmware image too large: {len(data)} bytes")

        remainder = len(data) % CHUNK_SIZE
        if remainder:
            if not pad:
                raise ImageError(
                    f"Firmware size {len(data)} is not a multiple of {CHUNK_SIZE} bytes"
                )
            data = data + bytes([fill]) * (CHUNK_SIZE - remainder)

        self.data = bytes(data)
        self.padding = (CHUNK_SIZE - remainder) % CHUNK_SIZE

    @classmethod
    def from_file(cls, path, pad: bool = True, fill: int = FILL_BYTE) -> "FirmwareImage":
        """
        Load an image from a binary file.

        Raises:
            ImageError: If the file cannot be read or is not a valid image
        """
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise ImageError(f"Cannot read firmware {path}: {e}") from e
        return cls(data, pad=pad, fill=fill)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def chunk_count(self) -> int:
        return len(self.data) // CHUNK_SIZE

    def chunks(self) -> Iterator[ProgrammingChunk]:
        """Yield programming blocks in increasing address order."""
        for address in range(0, len(self.data), CHUNK_SIZE):
            yield ProgrammingChunk(address, self.data[address:address + CHUNK_SIZE])
