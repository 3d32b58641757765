# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Transport layer for boot-mode communication.

Provides the byte-level port used by the flasher: USB bulk endpoints via
pyusb, or an SCI/UART link via pyserial.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import serial
import usb.core
import usb.util

from .errors import DeviceNotFound, TransportError, TransportTimeout

logger = logging.getLogger(__name__)

DEFAULT_VENDOR_ID = 0x045B
DEFAULT_PRODUCT_ID = 0x0025

BULK_EP_OUT = 0x01
BULK_EP_IN = 0x82

DEFAULT_TIMEOUT = 5.0

# Max transfer size requested from the device per read
RECEIVE_SIZE = 64 * 1024


class Port(ABC):
    """
    Byte-oriented port to the boot ROM.

    Can be used as a context manager:
        with UsbPort() as port:
            port.send(b"\\x55")
            port.receive(1)
    """

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @abstractmethod
    def open(self) -> None:
        """Acquire the underlying device."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device."""

    @abstractmethod
    def send(self, data: bytes, timeout: Optional[float] = None) -> int:
        """
        Send raw bytes.

        Returns:
            Number of bytes written

        Raises:
            TransportError: On I/O failure
            TransportTimeout: If the write does not complete in time
        """

    @abstractmethod
    def receive(self, max_len: int, timeout: Optional[float] = None) -> bytes:
        """
        Receive at most max_len bytes.

        Returns:
            At least one byte

        Raises:
            TransportError: On I/O failure
            TransportTimeout: If nothing arrives in time
        """

    def set_bit_rate(self, bit_rate: int) -> None:
        """Switch to a new bit rate. Ports without a line rate ignore this."""
        logger.debug("Port has no line rate, ignoring bit rate %d", bit_rate)


class UsbPort(Port):
    """USB bulk transport to the boot ROM."""

    def __init__(
        self,
        vendor_id: int = DEFAULT_VENDOR_ID,
        product_id: int = DEFAULT_PRODUCT_ID,
        ep_out: int = BULK_EP_OUT,
        ep_in: int = BULK_EP_IN,
        interface: int = 0,
        configuration: int = 1,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            vendor_id: USB vendor ID of the boot ROM
            product_id: USB product ID of the boot ROM
            ep_out: Bulk OUT endpoint address
            ep_in: Bulk IN endpoint address
            interface: Interface number to claim
            configuration: Configuration value to set
            timeout: Default per-transfer timeout in seconds
        """
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.ep_out = ep_out
        self.ep_in = ep_in
        self.interface = interface
        self.configuration = configuration
        self.timeout = timeout
        self._dev = None

    @property
    def name(self) -> str:
        return f"usb:{self.vendor_id:04x}:{self.product_id:04x}"

    def open(self) -> None:
        try:
            dev = usb.core.find(idVendor=self.vendor_id, idProduct=self.product_id)
        except usb.core.NoBackendError as e:
            raise TransportError(f"No USB backend available: {e}", "open") from e
        if dev is None:
            raise DeviceNotFound(
                f"Cannot find device {self.vendor_id:04x}:{self.product_id:04x}", "open"
            )

        try:
            dev.reset()
            try:
                if dev.is_kernel_driver_active(self.interface):
                    logger.info("Detaching kernel driver from interface %d", self.interface)
                    dev.detach_kernel_driver(self.interface)
            except NotImplementedError:
                # Backend without kernel driver support
                pass
            dev.set_configuration(self.configuration)
            usb.util.claim_interface(dev, self.interface)
        except usb.core.USBError as e:
            usb.util.dispose_resources(dev)
            raise TransportError(f"Cannot claim device {self.name}: {e}", "open") from e

        self._dev = dev
        logger.info("Opened %s", self.name)

    def close(self) -> None:
        if self._dev is None:
            return
        try:
            usb.util.release_interface(self._dev, self.interface)
        except usb.core.USBError as e:
            logger.warning("Cannot release interface %d: %s", self.interface, e)
        usb.util.dispose_resources(self._dev)
        self._dev = None

    def send(self, data: bytes, timeout: Optional[float] = None) -> int:
        dev = self._require_open()
        logger.debug("-> %s", data.hex(" "))
        try:
            return dev.write(self.ep_out, data, timeout=self._timeout_ms(timeout))
        except usb.core.USBTimeoutError as e:
            raise TransportTimeout("Timeout sending to device") from e
        except usb.core.USBError as e:
            raise TransportError(f"USB write failed: {e}") from e

    def receive(self, max_len: int, timeout: Optional[float] = None) -> bytes:
        dev = self._require_open()
        try:
            data = bytes(dev.read(self.ep_in, max_len, timeout=self._timeout_ms(timeout)))
        except usb.core.USBTimeoutError as e:
            raise TransportTimeout("Timeout waiting for response") from e
        except usb.core.USBError as e:
            raise TransportError(f"USB read failed: {e}") from e
        if not data:
            raise TransportTimeout("Timeout waiting for response")
        logger.debug("<- %s", data.hex(" "))
        return data

    def _require_open(self):
        if self._dev is None:
            raise TransportError("Port is not open")
        return self._dev

    def _timeout_ms(self, timeout: Optional[float]) -> int:
        return int((self.timeout if timeout is None else timeout) * 1000)


class SerialPort(Port):
    """SCI/UART transport to the boot ROM."""

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            port: Serial port path (e.g., "/dev/ttyUSB0")
            baudrate: Initial baud rate used for the handshake
            timeout: Default read timeout in seconds
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self._ser = None

    @property
    def name(self) -> str:
        return self.port

    def open(self) -> None:
        try:
            self._ser = serial.Serial(self.port, self.baudrate, timeout=self.timeout)
        except (ValueError, serial.SerialException) as e:
            # pyserial raises ValueError for out-of-range parameters
            raise TransportError(f"Cannot open {self.port}: {e}", "open") from e
        logger.info("Opened %s at %d baud", self.port, self.baudrate)

    def close(self) -> None:
        if self._ser and self._ser.is_open:
            self._ser.close()
        self._ser = None

    def send(self, data: bytes, timeout: Optional[float] = None) -> int:
        ser = self._require_open()
        logger.debug("-> %s", data.hex(" "))
        try:
            ser.write_timeout = self.timeout if timeout is None else timeout
            written = ser.write(data)
            ser.flush()
        except serial.SerialTimeoutException as e:
            raise TransportTimeout("Timeout sending to device") from e
        except serial.SerialException as e:
            raise TransportError(f"Serial write failed: {e}") from e
        return written

    def receive(self, max_len: int, timeout: Optional[float] = None) -> bytes:
        ser = self._require_open()
        try:
            ser.timeout = self.timeout if timeout is None else timeout
            data = ser.read(1)
            if not data:
                raise TransportTimeout("Timeout waiting for response")
            pending = min(ser.in_waiting, max_len - 1)
            if pending:
                data += ser.read(pending)
        except serial.SerialException as e:
            raise TransportError(f"Serial read failed: {e}") from e
        logger.debug("<- %s", data.hex(" "))
        return data

    def set_bit_rate(self, bit_rate: int) -> None:
        ser = self._require_open()
        logger.info("Switching %s to %d baud", self.port, bit_rate)
        try:
            ser.baudrate = bit_rate
        except (ValueError, serial.SerialException) as e:
            raise TransportError(f"Cannot set {bit_rate} baud on {self.port}: {e}") from e
        self.baudrate = bit_rate

    def _require_open(self):
        if self._ser is None:
            raise TransportError("Port is not open")
        return self._ser
