# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Exceptions raised while flashing a device."""

from typing import Optional


class FlashError(Exception):
    """
    Base exception for every fatal flashing error.

    Attributes:
        phase: Name of the phase that failed, if known
        memory_undefined: True once the User MAT may hold a partial image
    """

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        self.phase = phase
        self.memory_undefined = False


class TransportError(FlashError):
    """Open, claim or I/O failure of the underlying transport."""
    pass


class TransportTimeout(TransportError):
    """Timeout waiting for the device."""
    pass


class DeviceNotFound(TransportError):
    """No device matched the requested identifiers."""
    pass


class ProtocolViolation(FlashError):
    """Unexpected response byte, bad frame length or checksum mismatch."""

    def __init__(
        self,
        message: str,
        phase: Optional[str] = None,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ):
        super().__init__(message, phase)
        self.expected = expected
        self.actual = actual


class IntegrityError(ProtocolViolation):
    """Device-reported User MAT sum differs from the uploaded data."""
    pass


class ImageError(FlashError):
    """Firmware image unreadable or not splittable into blocks."""
    pass


class FlashCancelled(FlashError):
    """Run cancelled between phases."""
    pass
