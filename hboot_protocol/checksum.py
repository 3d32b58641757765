# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Boot-mode frame checksum.

Every checksummed frame ends with the two's-complement negation of the
8-bit sum of the bytes before it, so the whole frame sums to zero.
"""


def checksum(data: bytes) -> int:
    """
    Compute the frame checksum.

    Args:
        data: Frame bytes preceding the checksum byte

    Returns:
        8-bit checksum value
    """
    return ((~sum(data) & 0xFF) + 1) & 0xFF


def verify(frame: bytes) -> bool:
    """Return True if a frame including its trailing checksum sums to zero."""
    return len(frame) > 0 and sum(frame) & 0xFF == 0
