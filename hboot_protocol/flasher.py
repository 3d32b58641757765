# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Boot-mode flashing sequence.

Drives a borrowed Port through the fixed phase order, from the initial
handshake to the final User MAT sum check. Every phase either completes or
raises a FlashError; nothing is retried.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from .errors import (
    FlashCancelled,
    FlashError,
    IntegrityError,
    ProtocolViolation,
    TransportError,
)
from .image import FirmwareImage
from .protocol import (
    DEVICE_INQUIRY_HEADER_SIZE,
    SUM_CHECK_RESPONSE_SIZE,
    BitRateSelection,
    CommandType,
    DeviceIdentity,
    ModeList,
    Response,
    SumCheckResult,
    decode_device_inquiry,
    decode_mode_list,
    decode_sum_check,
    device_inquiry_length,
    encode_bit_rate_select,
    encode_clock_select,
    encode_command,
    encode_device_select,
    encode_program_stop,
)
from .transport import RECEIVE_SIZE, Port

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Flashing phases, in execution order."""
    IDLE = "idle"
    HANDSHAKE = "handshake"
    DEVICE_INQUIRY = "device inquiry"
    DEVICE_SELECT = "device selection"
    CLOCK_INQUIRY = "clock mode inquiry"
    CLOCK_SELECT = "clock mode selection"
    PROG_UNIT_INQUIRY = "programming unit inquiry"
    BIT_RATE_SELECT = "bit rate selection"
    BIT_RATE_CONFIRM = "bit rate confirmation"
    MODE_TRANSITION = "transition to programming state"
    MAT_SELECT = "user MAT programming selection"
    PROGRAMMING = "programming"
    PROGRAMMING_STOP = "programming stop"
    SUM_CHECK = "user MAT sum check"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


# Once one of these has started the User MAT may hold a partial image
WRITE_PHASES = (Phase.PROGRAMMING, Phase.PROGRAMMING_STOP, Phase.SUM_CHECK)


@dataclass
class FlashSession:
    """State of a single flashing run."""
    phase: Phase = Phase.IDLE
    checksum: int = 0
    device: Optional[DeviceIdentity] = None
    chunks_written: int = 0
    clock_modes: Tuple[int, ...] = ()
    programming_units: Tuple[int, ...] = ()
    memory_undefined: bool = False

    def add_chunk(self, chunk_checksum: int) -> None:
        """Account for one acknowledged programming block."""
        self.checksum = (self.checksum + chunk_checksum) & 0xFFFFFFFF
        self.chunks_written += 1


class Reporter:
    """Receives status from a flashing run. All hooks default to no-ops."""

    def phase(self, phase: Phase) -> None:
        pass

    def device(self, identity: DeviceIdentity) -> None:
        pass

    def clock_modes(self, modes: ModeList) -> None:
        pass

    def programming_units(self, units: ModeList) -> None:
        pass

    def progress(self, written: int, total: int) -> None:
        pass

    def sum_check(self, result: SumCheckResult) -> None:
        pass


class Flasher:
    """
    Boot-mode flasher for the User MAT.

    The port is borrowed: it must already be open and stays open after run().

        with UsbPort() as port:
            session = Flasher(port).run(FirmwareImage.from_file("fw.bin"))
    """

    def __init__(
        self,
        port: Port,
        clock_mode: int = 0x01,
        bit_rate: Optional[BitRateSelection] = None,
        timeout: Optional[float] = None,
        reporter: Optional[Reporter] = None,
        cancel: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            port: Open transport to the boot ROM
            clock_mode: Clock mode code sent in the clock mode selection
            bit_rate: New bit-rate parameters (default 115200 bps, 16 MHz)
            timeout: Per-exchange timeout in seconds (default: port's own)
            reporter: Status sink
            cancel: Polled between phases and blocks; True aborts the run
        """
        self.port = port
        self.clock_mode = clock_mode
        self.bit_rate = bit_rate or BitRateSelection()
        self.timeout = timeout
        self.reporter = reporter or Reporter()
        self.cancel = cancel
        self.session = FlashSession()
        self._image: Optional[FirmwareImage] = None
        self._buffer = bytearray()

    def run(self, image: FirmwareImage) -> FlashSession:
        """
        Flash an image.

        Returns:
            The completed session

        Raises:
            FlashError: On any failure; `phase` names the failing phase and
                `memory_undefined` is set once programming has begun
        """
        self.session = FlashSession()
        self._image = image
        self._buffer.clear()

        steps = (
            (Phase.HANDSHAKE, self._handshake),
            (Phase.DEVICE_INQUIRY, self._device_inquiry),
            (Phase.DEVICE_SELECT, self._device_select),
            (Phase.CLOCK_INQUIRY, self._clock_inquiry),
            (Phase.CLOCK_SELECT, self._clock_select),
            (Phase.PROG_UNIT_INQUIRY, self._prog_unit_inquiry),
            (Phase.BIT_RATE_SELECT, self._bit_rate_select),
            (Phase.BIT_RATE_CONFIRM, self._bit_rate_confirm),
            (Phase.MODE_TRANSITION, self._mode_transition),
            (Phase.MAT_SELECT, self._mat_select),
            (Phase.PROGRAMMING, self._programming),
            (Phase.PROGRAMMING_STOP, self._programming_stop),
            (Phase.SUM_CHECK, self._sum_check),
        )

        try:
            for phase, step in steps:
                self._check_cancel()
                self._enter(phase)
                step()
        except FlashError as e:
            self._fail(e)
            raise
        except ValueError as e:
            # Frame could not be built from the configured parameters
            error = ProtocolViolation(str(e))
            self._fail(error)
            raise error from e

        self._enter(Phase.DONE)
        return self.session

    # Phases

    def _handshake(self) -> None:
        self._send(encode_command(CommandType.HANDSHAKE))
        self._expect(Response.HANDSHAKE_OK)

    def _device_inquiry(self) -> DeviceIdentity:
        self._send(encode_command(CommandType.DEVICE_INQUIRY))
        header = self._read(DEVICE_INQUIRY_HEADER_SIZE)
        body = self._read(device_inquiry_length(header) - len(header))

        try:
            response = decode_device_inquiry(header + body)
        except ValueError as e:
            raise ProtocolViolation(str(e), str(self.session.phase)) from e

        if response.device_count > 1:
            logger.warning(
                "Device reports %d supported devices, using the first",
                response.device_count,
            )

        self.session.device = response.identity
        logger.info("Detected device %s", response.identity)
        self.reporter.device(response.identity)
        return response.identity

    def _device_select(self) -> None:
        self._send(encode_device_select(self.session.device.code))
        self._expect(Response.ACK)

    def _clock_inquiry(self) -> ModeList:
        self._send(encode_command(CommandType.CLOCK_INQUIRY))
        modes = self._read_list()
        self.session.clock_modes = modes.codes
        self.reporter.clock_modes(modes)
        return modes

    def _clock_select(self) -> None:
        self._send(encode_clock_select(self.clock_mode))
        self._expect(Response.ACK)

    def _prog_unit_inquiry(self) -> ModeList:
        self._send(encode_command(CommandType.PROG_UNIT_INQUIRY))
        units = self._read_list()
        self.session.programming_units = units.codes
        self.reporter.programming_units(units)
        return units

    def _bit_rate_select(self) -> None:
        self._send(encode_bit_rate_select(self.bit_rate))
        self._expect(Response.ACK)

    def _bit_rate_confirm(self) -> None:
        # Confirmation is the first exchange at the new rate
        self.port.set_bit_rate(self.bit_rate.bit_rate)
        self._send(encode_command(CommandType.BIT_RATE_CONFIRM))
        self._expect(Response.ACK)

    def _mode_transition(self) -> None:
        self._send(encode_command(CommandType.ENTER_PROGRAMMING))
        self._expect(Response.ACK)

    def _mat_select(self) -> None:
        self._send(encode_command(CommandType.USER_MAT_SELECT))
        self._expect(Response.ACK)

    def _programming(self) -> None:
        total = self._image.chunk_count
        for chunk in self._image.chunks():
            if self.session.chunks_written:
                self._check_cancel()
            frame = chunk.to_bytes()
            self._send(frame)
            self._expect(Response.ACK, f"block at 0x{chunk.address:08X}")
            self.session.add_chunk(frame[-1])
            self.reporter.progress(self.session.chunks_written, total)

    def _programming_stop(self) -> None:
        self._send(encode_program_stop())
        self._expect(Response.ACK)

    def _sum_check(self) -> SumCheckResult:
        self._send(encode_command(CommandType.SUM_CHECK))
        try:
            result = decode_sum_check(self._read(SUM_CHECK_RESPONSE_SIZE))
        except ValueError as e:
            raise ProtocolViolation(str(e), str(self.session.phase)) from e

        self.reporter.sum_check(result)
        if result.checksum != self.session.checksum:
            raise IntegrityError(
                f"User MAT sum mismatch: expected 0x{self.session.checksum:08X}, "
                f"device reports 0x{result.checksum:08X}",
                str(self.session.phase),
                expected=self.session.checksum,
                actual=result.checksum,
            )
        logger.info("User MAT sum 0x%08X verified", result.checksum)
        return result

    # Helpers

    def _enter(self, phase: Phase) -> None:
        if self._buffer:
            logger.warning(
                "Discarding %d unexpected bytes: %s",
                len(self._buffer),
                self._buffer.hex(" "),
            )
            self._buffer.clear()
        self.session.phase = phase
        logger.info("Phase: %s", phase)
        self.reporter.phase(phase)

    def _fail(self, error: FlashError) -> None:
        phase = self.session.phase
        if error.phase is None:
            error.phase = str(phase)
        if phase in WRITE_PHASES:
            self.session.memory_undefined = True
            error.memory_undefined = True
        self.session.phase = Phase.FAILED
        logger.info("Flashing failed during %s: %s", error.phase, error)

    def _check_cancel(self) -> None:
        if self.cancel is not None and self.cancel():
            raise FlashCancelled(f"Cancelled during {self.session.phase}")

    def _send(self, frame: bytes) -> None:
        written = self.port.send(frame, self.timeout)
        if written != len(frame):
            raise TransportError(
                f"Short write: {written} of {len(frame)} bytes",
                str(self.session.phase),
            )

    def _read(self, count: int) -> bytes:
        """Read exactly count bytes, across as many transfers as needed."""
        while len(self._buffer) < count:
            self._buffer += self.port.receive(RECEIVE_SIZE, self.timeout)
        data = bytes(self._buffer[:count])
        del self._buffer[:count]
        return data

    def _read_list(self) -> ModeList:
        head = self._read(2)
        body = self._read(head[1] + 1)
        modes = decode_mode_list(head + body)
        if not modes.checksum_ok:
            logger.warning(
                "Ignoring bad checksum 0x%02X in %s response",
                modes.checksum,
                self.session.phase,
            )
        return modes

    def _expect(self, expected: int, what: Optional[str] = None) -> None:
        actual = self._read(1)[0]
        if actual != expected:
            context = f" for {what}" if what else ""
            raise ProtocolViolation(
                f"Expected 0x{expected:02X}{context}, got 0x{actual:02X}",
                str(self.session.phase),
                expected=expected,
                actual=actual,
            )
